"""
Structure-aware search and replace for single cell values.

A plain substring replace corrupts PHP-serialized values because every string
carries its byte length (``s:18:"http://old/img.jpg";``). Values are therefore
decoded, rewritten leaf by leaf, and re-encoded. The decode step returns an
explicit ``Decoded`` wrapper so a value that legitimately decodes to ``False``
(``b:0;``) is not mistaken for a failed decode.
"""
import json
import math
from dataclasses import dataclass
from decimal import Decimal
from io import BytesIO
from typing import Any, Optional, Union

import phpserialize

from spacesync.core.exceptions import DecodeAmbiguousError
from spacesync.core.logging_config import log_debug

CellValue = Union[str, bytes]

# First byte of every PHP serialization opcode (phpserialize accepts either case)
_SERIALIZED_OPCODES = frozenset(b"aAbBdDiInNoOsS")


@dataclass(frozen=True)
class Decoded:
    """Successful decode result; ``value`` may be any decoded node, including False or None."""
    value: Any


def _to_bytes(value: CellValue) -> bytes:
    return value if isinstance(value, bytes) else value.encode("utf-8")


def decode_serialized(raw: CellValue) -> Optional[Decoded]:
    """Decode a PHP-serialized value, or return None if ``raw`` is not one.

    Strings decode to ``bytes`` so length prefixes stay byte-exact on
    re-encode. Trailing data after a complete value counts as a failed decode.
    """
    data = _to_bytes(raw)
    if not data or data[0] not in _SERIALIZED_OPCODES:
        return None

    fp = BytesIO(data)
    try:
        value = phpserialize.load(fp, object_hook=phpserialize.phpobject)
    except (ValueError, TypeError, IndexError, KeyError, RecursionError):
        return None
    if fp.read(1) != b"":
        return None
    return Decoded(value)


def php_float(value: float) -> str:
    """Format a float the way PHP's ``serialize()`` does.

    Shortest round-trip digits, no trailing ``.0`` for integral values, and
    ``1.0E+25`` style exponents once the decimal point moves past 17 digits
    or more than four places to the right.
    """
    if math.isnan(value):
        return "NAN"
    if math.isinf(value):
        return "INF" if value > 0 else "-INF"
    if value == 0:
        return "-0" if math.copysign(1.0, value) < 0 else "0"

    sign, digit_tuple, exponent = Decimal(repr(value)).normalize().as_tuple()
    digits = "".join(str(d) for d in digit_tuple)
    point = len(digits) + exponent
    prefix = "-" if sign else ""

    if point < -3 or point > 17:
        mantissa = f"{digits[0]}.{digits[1:] or '0'}"
        shift = point - 1
        return f"{prefix}{mantissa}E{'+' if shift >= 0 else '-'}{abs(shift)}"
    if point <= 0:
        return f"{prefix}0.{'0' * -point}{digits}"
    if point >= len(digits):
        return f"{prefix}{digits}{'0' * (point - len(digits))}"
    return f"{prefix}{digits[:point]}.{digits[point:]}"


def _dump(node: Any) -> bytes:
    # phpserialize writes floats with Python's repr (d:1.0;), so containers and
    # floats are assembled here and every other node is left to phpserialize
    if isinstance(node, float):
        return f"d:{php_float(node)};".encode("ascii")
    if isinstance(node, (dict, list, tuple)):
        items = node.items() if isinstance(node, dict) else enumerate(node)
        body = b"".join(phpserialize.dumps(key) + _dump(item) for key, item in items)
        return b"a:%d:{%s}" % (len(node), body)
    if isinstance(node, phpserialize.phpobject):
        return b"O" + phpserialize.dumps(node.__name__)[1:-1] + _dump(node.__php_vars__)[1:]
    return phpserialize.dumps(node)


def encode_serialized(value: Any) -> bytes:
    try:
        return _dump(value)
    except (TypeError, ValueError, RecursionError) as exc:
        raise DecodeAmbiguousError(f"Cannot re-serialize decoded value: {exc}") from exc


def decode_json_container(raw: CellValue) -> Optional[Decoded]:
    """Decode a JSON object or array; scalars and invalid JSON return None."""
    text = raw.decode("utf-8") if isinstance(raw, bytes) else raw
    stripped = text.strip()
    if not stripped or stripped[0] not in "[{":
        return None
    try:
        value = json.loads(stripped)
    except (ValueError, TypeError, RecursionError):
        return None
    if not isinstance(value, (dict, list)):
        return None
    return Decoded(value)


def encode_json(value: Any, ensure_ascii: bool = False, escape_slashes: bool = False) -> str:
    """Compact JSON; ``escape_slashes`` writes ``\\/`` like PHP's ``json_encode``."""
    try:
        encoded = json.dumps(value, ensure_ascii=ensure_ascii, separators=(",", ":"))
    except (TypeError, ValueError, RecursionError) as exc:
        raise DecodeAmbiguousError(f"Cannot re-encode JSON value: {exc}") from exc
    if escape_slashes:
        # "/" only ever occurs inside string literals of JSON output
        encoded = encoded.replace("/", "\\/")
    return encoded


def replace_leaves(node: Any, old: str, new: str) -> Any:
    """Return ``node`` with ``old`` replaced by ``new`` in every string leaf.

    Containers are rebuilt; mapping keys, numbers, booleans and None pass
    through unchanged.
    """
    if isinstance(node, bytes):
        return node.replace(old.encode("utf-8"), new.encode("utf-8"))
    if isinstance(node, str):
        return node.replace(old, new)
    if isinstance(node, dict):
        return {key: replace_leaves(value, old, new) for key, value in node.items()}
    if isinstance(node, (list, tuple)):
        return [replace_leaves(item, old, new) for item in node]
    if isinstance(node, phpserialize.phpobject):
        return phpserialize.phpobject(node.__name__, replace_leaves(node.__php_vars__, old, new))
    return node


def _rewrite_serialized(value: CellValue, old: str, new: str) -> Optional[CellValue]:
    decoded = decode_serialized(value)
    if decoded is None:
        return None
    rewritten = encode_serialized(replace_leaves(decoded.value, old, new))
    if rewritten == _to_bytes(value):
        return None
    if isinstance(value, bytes):
        return rewritten
    try:
        return rewritten.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise DecodeAmbiguousError("Re-serialized value is not valid UTF-8") from exc


def _rewrite_json(value: CellValue, old: str, new: str) -> Optional[CellValue]:
    try:
        decoded = decode_json_container(value)
    except UnicodeDecodeError:
        return None
    if decoded is None:
        return None
    replaced = replace_leaves(decoded.value, old, new)
    if replaced == decoded.value:
        return None
    text = value.decode("utf-8") if isinstance(value, bytes) else value
    rewritten = encode_json(replaced, ensure_ascii=text.isascii(), escape_slashes="\\/" in text)
    return rewritten.encode("utf-8") if isinstance(value, bytes) else rewritten


def rewrite_value(value: CellValue, old: str, new: str) -> CellValue:
    """Replace ``old`` with ``new`` inside ``value`` without breaking its encoding.

    Order: PHP-serialized container, then JSON container, then plain
    substring replace. The first structural rewrite that changes the value
    wins. Returns the same type it was given.
    """
    if not old:
        return value
    old_token: CellValue = old.encode("utf-8") if isinstance(value, bytes) else old
    if old_token not in value:
        return value

    if isinstance(value, bytes):
        plain_replaced = value.replace(old.encode("utf-8"), new.encode("utf-8"))
    else:
        plain_replaced = value.replace(old, new)

    for rewriter in (_rewrite_serialized, _rewrite_json):
        try:
            rewritten = rewriter(value, old, new)
        except (DecodeAmbiguousError, RecursionError) as exc:
            log_debug("Structured rewrite failed, using plain replace", error=str(exc))
            return plain_replaced
        if rewritten is not None:
            return rewritten

    return plain_replaced
