"""
Unit tests for core.logger module.

Tests:
- Logger initialization and name
- format_kv_pairs() escaping and truncation
- JSON output fields
- Context binding with bind()
- Level filtering and exception info
- StructuredFormatter output
"""

import json
import logging
from unittest.mock import MagicMock

import pytest

from cfgsync.core.logger import Logger, StructuredFormatter, format_kv_pairs


class TestInit:
    """Logger initialization."""

    def test_name(self) -> None:
        logger = Logger("cfgsync.test")
        assert logger.name == "cfgsync.test"
        assert logger._logger is logging.getLogger("cfgsync.test")

    def test_default_not_json(self) -> None:
        assert Logger("test")._json_output is False

    def test_default_max_value_length(self) -> None:
        assert Logger("test")._max_value_length == 1000


class TestFormatKvPairs:
    """Key-value pairs formatting and escaping."""

    def test_simple(self) -> None:
        assert format_kv_pairs({"key": "hello"}) == " key=hello"
        assert format_kv_pairs({"key": 123}) == " key=123"

    def test_with_spaces(self) -> None:
        assert format_kv_pairs({"key": "hello world"}) == ' key="hello world"'

    def test_with_equals(self) -> None:
        assert format_kv_pairs({"key": "foo=bar"}) == ' key="foo=bar"'

    def test_with_double_quotes(self) -> None:
        assert format_kv_pairs({"key": 'say "hello"'}) == ' key="say \\"hello\\""'

    def test_empty_value(self) -> None:
        assert format_kv_pairs({"key": ""}) == ' key=""'

    def test_empty_dict(self) -> None:
        assert format_kv_pairs({}) == ""

    def test_truncation(self) -> None:
        result = format_kv_pairs({"key": "x" * 1500}, max_value_length=1000)
        assert "truncated 500 chars" in result

    def test_no_truncation(self) -> None:
        result = format_kv_pairs({"key": "x" * 1500}, max_value_length=None)
        assert "truncated" not in result

    def test_custom_prefix(self) -> None:
        assert format_kv_pairs({"key": "val"}, prefix="") == "key=val"


class TestBind:
    """Context binding."""

    def test_bind_returns_new_logger(self) -> None:
        logger = Logger("test")
        bound = logger.bind(application="billing")

        assert bound is not logger
        assert bound.name == "test"
        assert logger._context == {}
        assert bound._context == {"application": "billing"}

    def test_bind_merges_context(self) -> None:
        bound = Logger("test").bind(a=1, b=2).bind(b=3)
        assert bound._context == {"a": 1, "b": 3}

    def test_bind_preserves_json_mode(self) -> None:
        assert Logger("test", json_output=True).bind(a=1)._json_output is True

    def test_context_in_output(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="bound_test"):
            Logger("bound_test").bind(application="billing").info("load_completed", count=2)

        kv = caplog.records[0].structured_kv
        assert kv == {"application": "billing", "count": 2}

    def test_call_kwargs_override_context(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="override_test"):
            Logger("override_test").bind(count=1).info("evt", count=2)

        assert caplog.records[0].structured_kv["count"] == 2


class TestLogLevels:
    """Level methods delegate to the stdlib logger."""

    @pytest.fixture
    def mock_logger(self) -> tuple[Logger, MagicMock]:
        logger = Logger("test")
        mock = MagicMock()
        mock.isEnabledFor.return_value = True
        logger._logger = mock
        return logger, mock

    @pytest.mark.parametrize(
        ("method", "level"),
        [
            ("debug", logging.DEBUG),
            ("info", logging.INFO),
            ("warning", logging.WARNING),
            ("error", logging.ERROR),
            ("critical", logging.CRITICAL),
        ],
    )
    def test_levels(self, mock_logger: tuple[Logger, MagicMock], method: str, level: int) -> None:
        logger, mock = mock_logger
        getattr(logger, method)("evt", count=1)

        mock.log.assert_called_once()
        assert mock.log.call_args.args == (level, "evt")
        assert mock.log.call_args.kwargs["extra"] == {"structured_kv": {"count": 1}}
        assert mock.log.call_args.kwargs["exc_info"] is False

    def test_exception_sets_exc_info(self, mock_logger: tuple[Logger, MagicMock]) -> None:
        logger, mock = mock_logger
        logger.exception("evt")

        assert mock.log.call_args.args[0] == logging.ERROR
        assert mock.log.call_args.kwargs["exc_info"] is True

    def test_disabled_level_skips_formatting(self, mock_logger: tuple[Logger, MagicMock]) -> None:
        logger, mock = mock_logger
        mock.isEnabledFor.return_value = False

        logger.debug("evt", count=1)

        mock.log.assert_not_called()


class TestJsonOutput:
    """JSON output mode."""

    def test_json_fields(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="json_test"):
            Logger("json_test", json_output=True).info("load_completed", count=42)

        parsed = json.loads(caplog.records[0].message)
        assert parsed["message"] == "load_completed"
        assert parsed["level"] == "info"
        assert parsed["logger"] == "json_test"
        assert parsed["count"] == 42
        assert "timestamp" in parsed

    def test_json_non_serializable_values(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="json_obj_test"):
            Logger("json_obj_test", json_output=True).info("evt", value=object())

        parsed = json.loads(caplog.records[0].message)
        assert parsed["value"].startswith("<object")


class TestStructuredFormatter:
    """StructuredFormatter output."""

    def _record(self, msg: str, **extra: object) -> logging.LogRecord:
        record = logging.LogRecord("cfgsync.test", logging.INFO, __file__, 1, msg, None, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_plain_record(self) -> None:
        assert StructuredFormatter().format(self._record("hello")) == "info cfgsync.test hello"

    def test_structured_record(self) -> None:
        record = self._record("load_completed", structured_kv={"count": 3})
        assert StructuredFormatter().format(record) == "info cfgsync.test load_completed count=3"

    def test_long_values_truncated_before_formatting(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.INFO, logger="trunc_test"):
            Logger("trunc_test", max_value_length=10).info("evt", value="x" * 50)

        assert "truncated 40 chars" in caplog.records[0].structured_kv["value"]
