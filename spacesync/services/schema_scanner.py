"""
Runtime schema discovery for tables that may reference local media.
"""
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, inspect, or_, select, table, column
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from spacesync.core.exceptions import SchemaIntrospectionError
from spacesync.core.logging_config import log_debug, log_info, log_warning

# Substring match, so MEDIUMTEXT, NVARCHAR, LONGBLOB and VARBINARY all qualify
TEXT_TYPE_PATTERN = re.compile(r"text|char|blob|binary|varchar", re.IGNORECASE)


@dataclass(frozen=True)
class ColumnInfo:
    name: str
    type_name: str
    is_text_like: bool


@dataclass(frozen=True)
class TableSchema:
    """Column layout of one table as discovered at runtime."""
    name: str
    columns: Tuple[ColumnInfo, ...]
    primary_key: Optional[str] = None

    @property
    def text_columns(self) -> List[str]:
        return [col.name for col in self.columns if col.is_text_like]

    @property
    def is_row_addressable(self) -> bool:
        return self.primary_key is not None


def is_text_like(type_name: str) -> bool:
    return bool(TEXT_TYPE_PATTERN.search(type_name or ""))


def _type_name(col_type) -> str:
    try:
        return str(col_type)
    except Exception:
        # Some dialect types cannot compile without a dialect
        return type(col_type).__name__


class SchemaScanner:
    """Inspects tables and counts rows that contain media references."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def list_tables(self) -> List[str]:
        return sorted(inspect(self.engine).get_table_names())

    def describe_table(self, table_name: str) -> TableSchema:
        """Read column names, type names and the primary key of ``table_name``.

        Raises:
            SchemaIntrospectionError: If the columns cannot be read.
        """
        inspector = inspect(self.engine)
        try:
            raw_columns = inspector.get_columns(table_name)
        except (SQLAlchemyError, NotImplementedError) as exc:
            raise SchemaIntrospectionError(f"Cannot read columns of {table_name}: {exc}") from exc

        if not raw_columns:
            raise SchemaIntrospectionError(f"Table {table_name} has no readable columns")

        columns = []
        for raw in raw_columns:
            type_name = _type_name(raw["type"])
            columns.append(ColumnInfo(raw["name"], type_name, is_text_like(type_name)))

        primary_key = None
        try:
            constrained = inspector.get_pk_constraint(table_name).get("constrained_columns") or []
            # Composite keys are not addressed row by row
            if len(constrained) == 1:
                primary_key = constrained[0]
        except (SQLAlchemyError, NotImplementedError) as exc:
            log_warning("Primary key lookup failed", table=table_name, error=str(exc))

        return TableSchema(name=table_name, columns=tuple(columns), primary_key=primary_key)

    def count_matching_rows(self, schema: TableSchema, patterns: Iterable[str]) -> int:
        """Count rows where any text-like column contains any pattern."""
        patterns = [p for p in patterns if p]
        text_columns = schema.text_columns
        if not text_columns or not patterns:
            return 0

        t = table(schema.name, *(column(name) for name in text_columns))
        condition = or_(*(
            t.c[name].contains(pattern)
            for name in text_columns
            for pattern in patterns
        ))
        stmt = select(func.count()).select_from(t).where(condition)
        with self.engine.connect() as conn:
            return int(conn.execute(stmt).scalar_one())

    def scan(self, exclude_tables: Iterable[str], patterns: Iterable[str]) -> Dict[str, int]:
        """Map each non-excluded table with matching rows to its row count.

        A table that cannot be described or counted is logged and skipped.
        """
        excluded = set(exclude_tables)
        patterns = list(patterns)
        results: Dict[str, int] = {}

        for table_name in self.list_tables():
            if table_name in excluded:
                continue
            try:
                schema = self.describe_table(table_name)
            except SchemaIntrospectionError as exc:
                log_warning("Skipping table during scan", table=table_name, error=str(exc))
                continue

            if not schema.text_columns:
                log_debug("Skipping table without text columns", table=table_name)
                continue

            try:
                count = self.count_matching_rows(schema, patterns)
            except SQLAlchemyError as exc:
                log_warning("Row count failed during scan", table=table_name, error=str(exc))
                continue

            if count > 0:
                results[table_name] = count

        log_info("Schema scan completed", tables=len(results), rows=sum(results.values()))
        return results
