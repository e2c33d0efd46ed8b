"""
Apply a URL rewrite across every row of a table.
"""
from dataclasses import dataclass
from typing import Iterable, List, Optional

from sqlalchemy import column, func, or_, select, table, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from spacesync.core.exceptions import NoPrimaryKeyError, SchemaIntrospectionError
from spacesync.core.logging_config import log_error, log_rewrite, log_warning
from spacesync.models.enums import RewriteStrategy
from spacesync.services.schema_scanner import SchemaScanner, TableSchema
from spacesync.services.value_rewriter import rewrite_value


@dataclass
class TableRewriteResult:
    table: str
    strategy: RewriteStrategy
    rows_updated: int = 0
    rows_failed: int = 0
    fell_back: bool = False
    skipped: bool = False


class TableRewriter:
    """Rewrites ``old`` into ``new`` in the text-like columns of a table."""

    def __init__(self, engine: Engine, scanner: Optional[SchemaScanner] = None):
        self.engine = engine
        self.scanner = scanner or SchemaScanner(engine)

    def rewrite_tables(
        self,
        tables: Iterable[str],
        old: str,
        new: str,
        strategy: RewriteStrategy,
    ) -> List[TableRewriteResult]:
        """Rewrite every table in order; one table's failure never stops the others."""
        results = []
        for table_name in dict.fromkeys(tables):
            try:
                results.append(self.rewrite_table(table_name, old, new, strategy))
            except Exception as exc:
                log_error(exc, table=table_name, strategy=strategy.value)
                results.append(TableRewriteResult(table_name, strategy, skipped=True))
        return results

    def rewrite_table(
        self,
        table_name: str,
        old: str,
        new: str,
        strategy: RewriteStrategy,
    ) -> TableRewriteResult:
        if not old or old == new:
            return TableRewriteResult(table_name, strategy, skipped=True)

        try:
            schema = self.scanner.describe_table(table_name)
        except SchemaIntrospectionError as exc:
            log_warning("Skipping table rewrite", table=table_name, error=str(exc))
            return TableRewriteResult(table_name, strategy, skipped=True)

        if not schema.text_columns:
            return TableRewriteResult(table_name, strategy, skipped=True)

        if strategy == RewriteStrategy.ADVANCED:
            try:
                return self._advanced(schema, old, new)
            except NoPrimaryKeyError as exc:
                log_warning(
                    "Advanced rewrite needs a single-column primary key, falling back to naive",
                    table=table_name,
                    error=str(exc),
                )
                result = self._naive(schema, old, new)
                result.fell_back = True
                return result

        return self._naive(schema, old, new)

    def _naive(self, schema: TableSchema, old: str, new: str) -> TableRewriteResult:
        """One bulk ``REPLACE()`` statement per text-like column."""
        result = TableRewriteResult(schema.name, RewriteStrategy.NAIVE)
        t = table(schema.name, *(column(name) for name in schema.text_columns))

        for name in schema.text_columns:
            col = t.c[name]
            stmt = (
                update(t)
                .where(col.contains(old, autoescape=True))
                .values({name: func.replace(col, old, new)})
            )
            try:
                with self.engine.begin() as conn:
                    rowcount = conn.execute(stmt).rowcount
            except SQLAlchemyError as exc:
                result.rows_failed += 1
                log_error(exc, table=schema.name, column=name, strategy="naive")
                continue
            if rowcount and rowcount > 0:
                result.rows_updated += rowcount

        log_rewrite("Naive rewrite finished", table=schema.name, rows_updated=result.rows_updated)
        return result

    def _candidate_keys(self, schema: TableSchema, old: str) -> list:
        pk = schema.primary_key
        t = table(schema.name, column(pk), *(column(name) for name in schema.text_columns if name != pk))
        condition = or_(*(t.c[name].contains(old, autoescape=True) for name in schema.text_columns))
        stmt = select(t.c[pk]).where(condition).order_by(t.c[pk])
        with self.engine.connect() as conn:
            return list(conn.execute(stmt).scalars())

    def _advanced(self, schema: TableSchema, old: str, new: str) -> TableRewriteResult:
        """Row-by-row, decode-aware rewrite keyed by primary key.

        Raises:
            NoPrimaryKeyError: If the table is not row-addressable.
        """
        if not schema.is_row_addressable:
            raise NoPrimaryKeyError(f"Table {schema.name} has no single-column primary key")

        result = TableRewriteResult(schema.name, RewriteStrategy.ADVANCED)
        pk = schema.primary_key
        t = table(schema.name, *(column(col.name) for col in schema.columns))
        text_columns = schema.text_columns
        old_bytes = old.encode("utf-8")

        for key in self._candidate_keys(schema, old):
            try:
                with self.engine.begin() as conn:
                    row = conn.execute(select(t).where(t.c[pk] == key)).mappings().first()
                    if row is None:
                        continue

                    changes = {}
                    for name in text_columns:
                        raw = row[name]
                        if isinstance(raw, str) and old in raw:
                            rewritten = rewrite_value(raw, old, new)
                        elif isinstance(raw, (bytes, bytearray, memoryview)) and old_bytes in bytes(raw):
                            rewritten = rewrite_value(bytes(raw), old, new)
                        else:
                            continue
                        if rewritten != raw:
                            changes[name] = rewritten

                    if not changes:
                        continue

                    conn.execute(update(t).where(t.c[pk] == key).values(changes))
                    result.rows_updated += 1
            except Exception as exc:
                result.rows_failed += 1
                log_error(exc, table=schema.name, row=key, strategy="advanced")

        log_rewrite(
            "Advanced rewrite finished",
            table=schema.name,
            rows_updated=result.rows_updated,
            rows_failed=result.rows_failed,
        )
        return result
