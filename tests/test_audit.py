"""Tests for chat_gateway/logging/audit.py — JSON audit logging."""

import json
import logging
import sys

from chat_gateway.logging.audit import (
    ROOT_LOGGER,
    JSONFormatter,
    RequestTimer,
    generate_request_id,
    get_audit_logger,
    mask_secret,
    request_id_var,
    setup_logging,
)


def _record(msg: str = "test") -> logging.LogRecord:
    return logging.LogRecord(
        name="test", level=logging.INFO, pathname="",
        lineno=0, msg=msg, args=(), exc_info=None,
    )


class TestJSONFormatter:

    def test_output_is_valid_json(self):
        parsed = json.loads(JSONFormatter().format(_record("hello")))
        assert parsed["message"] == "hello"
        assert parsed["level"] == "INFO"
        assert "timestamp" in parsed

    def test_includes_request_id(self):
        token = request_id_var.set("req-abc123")
        try:
            parsed = json.loads(JSONFormatter().format(_record()))
            assert parsed["request_id"] == "req-abc123"
        finally:
            request_id_var.reset(token)

    def test_includes_audit_data(self):
        record = _record()
        record.audit_data = {"endpoint": "azureOpenAI", "model": "gpt-4o"}
        parsed = json.loads(JSONFormatter().format(record))
        assert parsed["endpoint"] == "azureOpenAI"
        assert parsed["model"] == "gpt-4o"

    def test_masks_credential_fields(self):
        record = _record()
        record.audit_data = {"api_key": "sk-abcdefghijklmnop", "authorization": "Bearer abc.def.ghi"}
        parsed = json.loads(JSONFormatter().format(record))
        assert parsed["api_key"] == "sk-a...op"
        assert parsed["authorization"] == "Bear...hi"

    def test_already_masked_unchanged(self):
        record = _record()
        record.audit_data = {"api_key": mask_secret("sk-abcdefghijklmnop")}
        parsed = json.loads(JSONFormatter().format(record))
        assert parsed["api_key"] == "sk-a...op"

    def test_includes_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord(
                name="test", level=logging.ERROR, pathname="",
                lineno=0, msg="failed", args=(), exc_info=sys.exc_info(),
            )
        parsed = json.loads(JSONFormatter().format(record))
        assert "ValueError: boom" in parsed["exception"]

    def test_empty_request_id_default(self):
        parsed = json.loads(JSONFormatter().format(_record()))
        assert parsed["request_id"] == ""


class TestMaskSecret:

    def test_empty(self):
        assert mask_secret("") == ""
        assert mask_secret(None) == ""

    def test_short_values_fully_hidden(self):
        assert mask_secret("sk-1234") == "***"

    def test_long_values_keep_edges(self):
        assert mask_secret("sk-abcdefghijklmnop") == "sk-a...op"


class TestGenerateRequestId:

    def test_length(self):
        assert len(generate_request_id()) == 12

    def test_uniqueness(self):
        ids = {generate_request_id() for _ in range(100)}
        assert len(ids) == 100


class TestRequestTimer:

    def test_measures_elapsed(self):
        with RequestTimer() as timer:
            _ = sum(range(1000))
        assert timer.elapsed_ms >= 0
        assert isinstance(timer.elapsed_ms, float)


class TestSetupLogging:

    def test_configures_package_logger(self, override_settings):
        override_settings(AUDIT_LOG_FILE="")
        setup_logging()
        logger = logging.getLogger(ROOT_LOGGER)
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)
        assert logger.propagate is False

    def test_audit_logger_is_child(self):
        assert get_audit_logger().name == f"{ROOT_LOGGER}.audit"

    def test_file_handler(self, override_settings, tmp_path):
        path = tmp_path / "audit.log"
        override_settings(AUDIT_LOG_FILE=str(path))
        setup_logging()
        logger = logging.getLogger(ROOT_LOGGER)
        try:
            assert any(isinstance(h, logging.FileHandler) for h in logger.handlers)
        finally:
            for handler in logger.handlers:
                handler.close()
            logger.handlers.clear()
