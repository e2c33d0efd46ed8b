"""
Unit tests for the serialization-aware value rewriter.
"""
import json

import phpserialize
import pytest

from spacesync.services.value_rewriter import (
    Decoded,
    decode_json_container,
    decode_serialized,
    encode_serialized,
    php_float,
    replace_leaves,
    rewrite_value,
)

OLD = "http://old"
NEW = "https://cdn.example.com"


def _unserialize(value):
    data = value.encode("utf-8") if isinstance(value, str) else value
    return phpserialize.loads(data, object_hook=phpserialize.phpobject)


class TestDecodeSerialized:
    def test_false_is_a_successful_decode(self):
        """b:0; decodes to False, which must not look like a failure."""
        result = decode_serialized("b:0;")
        assert result == Decoded(False)
        assert result is not None

    def test_null_is_a_successful_decode(self):
        assert decode_serialized("N;") == Decoded(None)

    def test_plain_text_is_not_decoded(self):
        assert decode_serialized("<p>http://old/img.jpg</p>") is None

    def test_empty_value_is_not_decoded(self):
        assert decode_serialized("") is None
        assert decode_serialized(b"") is None

    def test_trailing_bytes_mean_not_decoded(self):
        assert decode_serialized('s:3:"abc";junk') is None

    def test_wrong_length_prefix_is_not_decoded(self):
        assert decode_serialized('s:5:"http://old/a";') is None

    def test_strings_decode_to_bytes(self):
        result = decode_serialized('a:1:{s:3:"url";s:18:"http://old/img.jpg";}')
        assert result.value == {b"url": b"http://old/img.jpg"}


class TestDecodeJsonContainer:
    def test_object_and_array_qualify(self):
        assert decode_json_container('{"a": 1}') == Decoded({"a": 1})
        assert decode_json_container("[1, 2]") == Decoded([1, 2])

    def test_scalars_do_not_qualify(self):
        assert decode_json_container('"http://old/a.jpg"') is None
        assert decode_json_container("42") is None

    def test_invalid_json_is_not_decoded(self):
        assert decode_json_container("{not json") is None

    def test_too_deeply_nested_is_not_decoded(self):
        assert decode_json_container("[" * 100000 + "]" * 100000) is None


class TestEncodeSerialized:
    @pytest.mark.parametrize("number, expected", [
        (1.0, "1"),
        (0.5, "0.5"),
        (-2.25, "-2.25"),
        (100.0, "100"),
        (0.1, "0.1"),
        (0.0001, "0.0001"),
        (0.00001, "1.0E-5"),
        (1.5e-7, "1.5E-7"),
        (1e25, "1.0E+25"),
        (1.25e30, "1.25E+30"),
        (0.0, "0"),
        (-0.0, "-0"),
        (float("inf"), "INF"),
        (float("-inf"), "-INF"),
    ])
    def test_floats_are_written_like_php(self, number, expected):
        assert php_float(number) == expected

    @pytest.mark.parametrize("raw", [
        b'a:3:{s:5:"ratio";d:1;s:5:"scale";d:0.5;s:4:"huge";d:1.0E+25;}',
        b'O:8:"stdClass":2:{s:1:"a";i:-3;s:1:"b";a:2:{i:0;b:1;i:1;N;}}',
    ])
    def test_untouched_values_encode_to_the_same_bytes(self, raw):
        assert encode_serialized(decode_serialized(raw).value) == raw


class TestReplaceLeaves:
    def test_keys_are_left_alone(self):
        tree = {OLD: OLD + "/a.jpg", "n": 3, "flag": False, "none": None}
        assert replace_leaves(tree, OLD, NEW) == {
            OLD: NEW + "/a.jpg", "n": 3, "flag": False, "none": None,
        }

    def test_nested_lists_and_bytes(self):
        tree = [b"http://old/a.jpg", ["http://old/b.jpg", 1.5]]
        assert replace_leaves(tree, OLD, NEW) == [
            b"https://cdn.example.com/a.jpg", ["https://cdn.example.com/b.jpg", 1.5],
        ]


class TestRewriteValue:
    def test_value_without_old_is_returned_unchanged(self):
        value = 'a:1:{s:3:"url";s:19:"http://other/img.jpg";}'
        assert rewrite_value(value, OLD, NEW) is value

    def test_empty_old_is_a_no_op(self):
        assert rewrite_value("anything", "", NEW) == "anything"

    def test_serialized_leaf_length_is_recomputed(self):
        value = 'a:1:{s:3:"url";s:18:"http://old/img.jpg";}'

        result = rewrite_value(value, OLD, NEW)

        assert result == 'a:1:{s:3:"url";s:31:"https://cdn.example.com/img.jpg";}'
        assert _unserialize(result) == {b"url": b"https://cdn.example.com/img.jpg"}

    def test_serialized_other_leaves_stay_byte_identical(self):
        value = (
            'a:3:{s:3:"url";s:18:"http://old/img.jpg";'
            's:3:"alt";s:6:"Café!";i:7;b:0;}'
        )

        result = rewrite_value(value, OLD, NEW)

        assert 's:3:"alt";s:6:"Café!";' in result
        assert "i:7;b:0;" in result
        decoded = _unserialize(result)
        assert decoded[b"url"] == b"https://cdn.example.com/img.jpg"
        assert decoded[b"alt"] == "Café!".encode("utf-8")
        assert decoded[7] is False

    def test_serialized_float_leaves_keep_php_formatting(self):
        value = 'a:2:{s:5:"ratio";d:1;s:3:"url";s:18:"http://old/img.jpg";}'

        result = rewrite_value(value, "http://old/img.jpg", "http://new/image.jpg")

        assert result == 'a:2:{s:5:"ratio";d:1;s:3:"url";s:20:"http://new/image.jpg";}'

    def test_serialized_object_is_rewritten(self):
        value = 'O:8:"stdClass":1:{s:3:"url";s:18:"http://old/img.jpg";}'

        result = rewrite_value(value, OLD, NEW)

        decoded = _unserialize(result)
        assert decoded.__php_vars__ == {b"url": b"https://cdn.example.com/img.jpg"}

    def test_bytes_in_bytes_out(self):
        value = b'a:1:{s:3:"url";s:18:"http://old/img.jpg";}'

        result = rewrite_value(value, OLD, NEW)

        assert isinstance(result, bytes)
        assert result == b'a:1:{s:3:"url";s:31:"https://cdn.example.com/img.jpg";}'

    def test_json_container_is_rewritten_compactly(self):
        value = json.dumps({"src": "http://old/a.jpg", "width": 300}, indent=2)

        result = rewrite_value(value, OLD, NEW)

        assert result == '{"src":"https://cdn.example.com/a.jpg","width":300}'

    def test_json_unicode_escapes_are_kept(self):
        value = '{"title":"Caf\\u00e9","url":"http://old/a.jpg"}'

        result = rewrite_value(value, OLD, NEW)

        assert result == '{"title":"Caf\\u00e9","url":"https://cdn.example.com/a.jpg"}'

    def test_json_raw_unicode_is_kept(self):
        value = '{"title":"Café","url":"http://old/a.jpg"}'

        assert rewrite_value(value, OLD, NEW) == '{"title":"Café","url":"https://cdn.example.com/a.jpg"}'

    def test_json_escaped_slashes_are_kept(self):
        value = '{"icon":"https:\\/\\/cdn.test\\/a.png","file":"2024\\/05\\/img.jpg"}'

        result = rewrite_value(value, "img.jpg", "photo.jpg")

        assert result == '{"icon":"https:\\/\\/cdn.test\\/a.png","file":"2024\\/05\\/photo.jpg"}'

    def test_deeply_nested_json_falls_back_to_plain_replace(self):
        value = "[" * 50000 + '"http://old/img.jpg"' + "]" * 50000

        assert rewrite_value(value, OLD, NEW) == value.replace(OLD, NEW)

    def test_broken_serialized_value_falls_back_to_plain_replace(self):
        value = 's:5:"http://old/a";'
        assert rewrite_value(value, OLD, NEW) == 's:5:"https://cdn.example.com/a";'

    def test_plain_text_is_replaced_everywhere(self):
        value = '<img src="http://old/a.jpg"><img src="http://old/b.jpg">'
        assert rewrite_value(value, OLD, NEW) == (
            '<img src="https://cdn.example.com/a.jpg"><img src="https://cdn.example.com/b.jpg">'
        )

    @pytest.mark.parametrize("value", [
        'a:2:{i:0;s:18:"http://old/img.jpg";i:1;s:16:"http://old/b.png";}',
        '{"gallery": ["http://old/a.jpg", "http://old/b.jpg"]}',
        "Body text linking http://old/img.jpg twice: http://old/img.jpg",
        b"http://old/raw.png",
    ])
    def test_rewrite_is_idempotent(self, value):
        once = rewrite_value(value, OLD, NEW)
        assert rewrite_value(once, OLD, NEW) == once
