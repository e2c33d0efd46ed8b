"""
Unit tests for log context formatting and secret masking.
"""
import logging

from spacesync.core.logging_config import (
    LogCategory,
    _sanitize_data,
    log_error,
    log_migration,
    log_upload,
)


class TestSanitizeData:
    def test_sensitive_keys_are_masked(self):
        data = {"spaces_secret_key": "abc", "access_key": "xyz", "bucket": "media"}
        assert _sanitize_data(data) == {
            "spaces_secret_key": "***MASKED***",
            "access_key": "***MASKED***",
            "bucket": "media",
        }

    def test_url_credentials_are_masked(self):
        assert _sanitize_data("postgresql://app:hunter2@db:5432/spacesync") == "postgresql://app:***@db:5432/spacesync"

    def test_nested_values(self):
        assert _sanitize_data({"items": [{"token": "t"}, "plain"]}) == {
            "items": [{"token": "***MASKED***"}, "plain"],
        }

    def test_plain_values_pass_through(self):
        assert _sanitize_data("2024/05/photo.jpg") == "2024/05/photo.jpg"
        assert _sanitize_data(42) == 42
        assert _sanitize_data(None) is None


def test_migration_log_carries_run_id(caplog):
    with caplog.at_level(logging.INFO, logger=LogCategory.MIGRATION.value):
        log_migration("Scheduled 3 chunk(s)", run_id="run-1", total=250)

    record = caplog.records[-1]
    assert record.name == "spacesync.migration"
    assert record.getMessage() == "[run-1] Scheduled 3 chunk(s) (total=250)"


def test_failed_upload_is_a_warning(caplog):
    with caplog.at_level(logging.INFO, logger=LogCategory.UPLOADS.value):
        log_upload("2024/a.jpg", 10, success=False, reason="unavailable", secret_key="s")

    record = caplog.records[-1]
    assert record.levelno == logging.WARNING
    assert "reason=unavailable" in record.getMessage()
    assert "secret_key=***MASKED***" in record.getMessage()


def test_error_includes_traceback_for_exceptions(caplog):
    with caplog.at_level(logging.ERROR, logger=LogCategory.ERRORS.value):
        try:
            raise RuntimeError("boom")
        except RuntimeError as exc:
            log_error(exc, media_id="m1")
        log_error("plain message")

    exception_record, message_record = caplog.records[-2:]
    assert exception_record.exc_info is not None
    assert exception_record.getMessage() == "Error: boom (media_id=m1)"
    assert not message_record.exc_info
