"""Tests for the logging utilities."""

import json
import logging
import subprocess
import sys
from pathlib import Path

from auth_migrator.types import SourceUser
from auth_migrator.utils.logging import (
    LOGGER_NAME,
    EnhancedFormatter,
    JsonFormatter,
    log_record,
    log_with_context,
    setup_logger,
)
from auth_migrator.utils.redaction import REDACTED


def _make_record(msg="hello", **extra):
    record = logging.LogRecord(
        name=LOGGER_NAME,
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def test_outputs_json_with_core_fields(self):
        data = json.loads(JsonFormatter().format(_make_record()))
        assert data["message"] == "hello"
        assert data["level"] == "INFO"

    def test_includes_context_attributes(self):
        data = json.loads(JsonFormatter().format(_make_record(user="@a:x", stage="committed")))
        assert data["user"] == "@a:x"
        assert data["stage"] == "committed"

    def test_masks_sensitive_context(self):
        data = json.loads(JsonFormatter().format(_make_record(token="secret")))
        assert data["token"] == REDACTED


class TestEnhancedFormatter:
    """Tests for EnhancedFormatter."""

    def test_verbose_appends_user(self):
        output = EnhancedFormatter(verbose=True).format(_make_record(user="@a:x"))
        assert output.endswith("[user=@a:x]")

    def test_non_verbose_omits_user(self):
        output = EnhancedFormatter().format(_make_record(user="@a:x"))
        assert "[user=" not in output

    def test_verbose_includes_module_and_line(self):
        output = EnhancedFormatter(verbose=True).format(_make_record())
        assert "[test_logging:1]" in output


class TestSetupLogger:
    """Tests for setup_logger."""

    def test_console_level_follows_verbose(self):
        logger = setup_logger(verbose=True)
        assert logger.handlers[0].level == logging.DEBUG
        logger = setup_logger(verbose=False)
        assert logger.handlers[0].level == logging.INFO

    def test_replaces_existing_handlers(self):
        setup_logger()
        logger = setup_logger()
        assert len(logger.handlers) == 1

    def test_json_logs_use_json_formatter(self):
        logger = setup_logger(json_logs=True)
        assert isinstance(logger.handlers[0].formatter, JsonFormatter)

    def test_output_dir_creates_main_log_file(self, tmp_path):
        setup_logger(output_dir=str(tmp_path))
        log_with_context(logging.DEBUG, "written to file")
        for handler in logging.getLogger(LOGGER_NAME).handlers:
            handler.flush()
        content = (tmp_path / "migration.log").read_text()
        assert "written to file" in content


class TestLogWithContext:
    """Tests for log_with_context and log_record."""

    def test_passes_context_as_extra(self, caplog):
        with caplog.at_level(logging.INFO, logger=LOGGER_NAME):
            log_with_context(logging.INFO, "msg", user="@a:x", stage=None)
        record = caplog.records[-1]
        assert record.user == "@a:x"
        assert not hasattr(record, "stage")

    def test_log_record_masks_secrets(self, caplog):
        user = SourceUser(name="@a:x", creation_ts=1, password_hash="$2b$secret")
        with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
            log_record(logging.DEBUG, "Processing", user, user=user.name)
        assert "$2b$secret" not in caplog.text
        assert REDACTED in caplog.text

    def test_log_record_skips_disabled_levels(self, caplog):
        with caplog.at_level(logging.INFO, logger=LOGGER_NAME):
            log_record(logging.DEBUG, "Processing", {"name": "x"})
        assert "Processing" not in caplog.text

    def test_exc_info_reaches_the_record(self, caplog):
        with caplog.at_level(logging.ERROR, logger=LOGGER_NAME):
            try:
                raise RuntimeError("boom")
            except RuntimeError:
                log_with_context(logging.ERROR, "failed", exc_info=True, user="@a:x")
        record = caplog.records[-1]
        assert record.exc_info[0] is RuntimeError
        assert record.user == "@a:x"


class TestImportSideEffects:
    """Importing the package must leave logging configuration to the caller."""

    def test_import_attaches_no_handlers(self):
        result = subprocess.run(
            [
                sys.executable,
                "-c",
                "import logging, auth_migrator; "
                f"print(len(logging.getLogger({LOGGER_NAME!r}).handlers))",
            ],
            cwd=Path(__file__).resolve().parents[2],
            capture_output=True,
            text=True,
            check=True,
        )
        assert result.stdout.strip() == "0"
