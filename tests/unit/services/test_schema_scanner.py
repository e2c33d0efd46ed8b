"""
Unit tests for SchemaScanner table discovery and row counting.
"""
import pytest
from sqlalchemy import text

from spacesync.core.exceptions import SchemaIntrospectionError
from spacesync.services.schema_scanner import SchemaScanner, is_text_like
from tests.conftest import make_settings

PATTERNS = ["uploads%.jpg", "uploads%.png"]


@pytest.fixture
def scanner(engine) -> SchemaScanner:
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE widgets (id INTEGER PRIMARY KEY, title VARCHAR(100), body TEXT)"))
        conn.execute(text("CREATE TABLE counters (id INTEGER PRIMARY KEY, amount INTEGER, ratio FLOAT)"))
        conn.execute(text("CREATE TABLE plain_notes (note_key INTEGER, note TEXT)"))
        conn.execute(text(
            "INSERT INTO widgets (id, title, body) VALUES "
            "(1, 'first', '<img src=\"http://local.test/uploads/2024/05/a.jpg\">'), "
            "(2, 'http://local.test/uploads/b.png', NULL), "
            "(3, 'third', 'no media here'), "
            "(4, 'fourth', 'uploads/readme.txt')"
        ))
        conn.execute(text("INSERT INTO counters (id, amount, ratio) VALUES (1, 10, 0.5)"))
        conn.execute(text("INSERT INTO plain_notes (note_key, note) VALUES (1, 'nothing')"))
    return SchemaScanner(engine)


class TestIsTextLike:
    @pytest.mark.parametrize("type_name", ["TEXT", "VARCHAR(255)", "MEDIUMTEXT", "nvarchar", "LONGBLOB", "VARBINARY(16)", "CHAR(32)"])
    def test_text_like_types(self, type_name):
        assert is_text_like(type_name)

    @pytest.mark.parametrize("type_name", ["INTEGER", "FLOAT", "DATETIME", "BOOLEAN", "JSON", ""])
    def test_other_types(self, type_name):
        assert not is_text_like(type_name)


class TestDescribeTable:
    def test_columns_and_primary_key(self, scanner):
        schema = scanner.describe_table("widgets")

        assert schema.name == "widgets"
        assert schema.primary_key == "id"
        assert schema.text_columns == ["title", "body"]
        assert schema.is_row_addressable

    def test_table_without_primary_key(self, scanner):
        schema = scanner.describe_table("plain_notes")
        assert schema.primary_key is None
        assert not schema.is_row_addressable

    def test_unknown_table_raises(self, scanner):
        with pytest.raises(SchemaIntrospectionError):
            scanner.describe_table("does_not_exist")


class TestScan:
    def test_tables_without_text_columns_are_excluded(self, scanner):
        result = scanner.scan([], ["%"])
        assert "counters" not in result

    def test_counts_match_a_direct_query(self, scanner, engine):
        result = scanner.scan([], PATTERNS)

        with engine.connect() as conn:
            expected = conn.execute(text(
                "SELECT COUNT(*) FROM widgets WHERE "
                "title LIKE '%uploads%.jpg%' OR title LIKE '%uploads%.png%' OR "
                "body LIKE '%uploads%.jpg%' OR body LIKE '%uploads%.png%'"
            )).scalar_one()

        assert result["widgets"] == expected == 2

    def test_tables_without_matches_are_omitted(self, scanner):
        result = scanner.scan([], PATTERNS)
        assert "plain_notes" not in result
        assert all(count >= 1 for count in result.values())

    def test_excluded_tables_are_skipped(self, scanner, engine):
        with engine.begin() as conn:
            conn.execute(text(
                "INSERT INTO content_entries (id, created_at, updated_at, title, body) VALUES "
                "('00000000000000000000000000000001', '2024-01-01 00:00:00', '2024-01-01 00:00:00', "
                "'post', '<img src=\"uploads/x.jpg\">')"
            ))

        settings = make_settings()
        assert "content_entries" in scanner.scan([], PATTERNS)
        assert "content_entries" not in scanner.scan(settings.scan_exclude_tables, PATTERNS)

    def test_scan_is_read_only(self, scanner, engine):
        scanner.scan([], PATTERNS)
        with engine.connect() as conn:
            rows = conn.execute(text("SELECT id, title, body FROM widgets ORDER BY id")).all()
        assert rows[1] == (2, "http://local.test/uploads/b.png", None)
        assert len(rows) == 4
