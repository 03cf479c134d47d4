"""
Structured logging with key=value and JSON output support.

Wraps the standard library ``logging`` module so every sync component emits
events as ``event_name key=value ...`` (default) or as JSON objects for log
aggregators. A [Logger][cfgsync.core.logger.Logger] instance is the
diagnostic sink a host passes to the
[SyncCoordinator][cfgsync.sync.coordinator.SyncCoordinator]; the
coordinator hands it down to its components so all events of one client end
up in one place.

Values containing spaces, equals signs, or quotes are escaped and wrapped in
double quotes. Long values are truncated to a configurable maximum length.

The ``StructuredFormatter`` is a stdlib ``logging.Formatter`` that reads
structured data from the ``structured_kv`` extra field (attached by Logger)
and appends it as key=value pairs. When installed on the root handler, it
unifies output from both ``Logger`` and plain ``logging.getLogger()`` calls
used in the utils layer.

Examples:
    ```python
    from cfgsync.core.logger import Logger

    logger = Logger("cfgsync.coordinator")
    logger.info("load_completed", count=12)
    # Output: load_completed count=12

    scoped = logger.bind(application="billing", environment="prod")
    scoped.warning("login_failed", status=401)
    # Output: login_failed application=billing environment=prod status=401
    ```
"""

from __future__ import annotations

import datetime
import json
import logging
from typing import Any, ClassVar


def format_kv_pairs(
    kwargs: dict[str, Any],
    max_value_length: int | None = 1000,
    prefix: str = " ",
) -> str:
    """Format a dictionary as space-separated key=value pairs.

    Values are truncated to ``max_value_length`` characters, and values
    containing whitespace, equals signs, or quotes are escaped and quoted.

    Args:
        kwargs: Key-value pairs to format.
        max_value_length: Maximum characters per value before truncation.
            Pass None to disable truncation.
        prefix: String prepended to the output (default: single space).

    Returns:
        Formatted string, e.g. ' key1=value1 key2="value with spaces"'.
        Returns empty string if kwargs is empty.
    """
    if not kwargs:
        return ""

    parts = []
    for k, v in kwargs.items():
        s = str(v)
        if max_value_length and len(s) > max_value_length:
            s = s[:max_value_length] + f"...<truncated {len(s) - max_value_length} chars>"
        if not s or " " in s or "=" in s or '"' in s or "'" in s:
            escaped = s.replace("\\", "\\\\").replace('"', '\\"')
            parts.append(f'{k}="{escaped}"')
        else:
            parts.append(f"{k}={s}")

    return prefix + " ".join(parts)


class StructuredFormatter(logging.Formatter):
    """Formats all log records as structured key=value output.

    Reads structured data from the ``structured_kv`` extra field
    (attached by Logger) and appends it as key=value pairs. Records without
    ``structured_kv`` (plain ``logging.getLogger()`` calls) are emitted with
    the same ``level name message`` prefix for consistency.
    """

    def format(self, record: logging.LogRecord) -> str:
        base = f"{record.levelname.lower()} {record.name} {record.getMessage()}"
        extra: dict[str, Any] = getattr(record, "structured_kv", {})
        if extra:
            base += format_kv_pairs(extra)
        if record.exc_info:
            base += "\n" + self.formatException(record.exc_info)
        return base


class Logger:
    """Structured logger that appends keyword arguments as extra fields.

    Wraps a standard ``logging.Logger`` and formats keyword arguments as
    either key=value pairs or JSON. All public methods mirror the standard
    logging API with an added ``**kwargs`` parameter. Context bound with
    [bind()][cfgsync.core.logger.Logger.bind] is prepended to every event.

    Examples:
        ```python
        logger = Logger("cfgsync.channel")
        logger.info("channel_opened", url="https://cfg.example.com/_backchannel")
        ```
    """

    _DEFAULT_MAX_VALUE_LENGTH: ClassVar[int] = 1000

    def __init__(
        self,
        name: str,
        *,
        json_output: bool = False,
        max_value_length: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize a structured logger.

        Args:
            name: Logger name, typically ``cfgsync.<component>``. Maps to
                the underlying ``logging.getLogger(name)`` call.
            json_output: If True, emit JSON objects instead of key=value pairs.
            max_value_length: Maximum character length for individual values
                before truncation. Defaults to 1000.
            context: Fields included in every event emitted by this logger.
        """
        if max_value_length is None:
            max_value_length = self._DEFAULT_MAX_VALUE_LENGTH
        self._logger = logging.getLogger(name)
        self._json_output = json_output
        self._max_value_length = max_value_length
        self._context: dict[str, Any] = dict(context or {})

    @property
    def name(self) -> str:
        """Name of the underlying stdlib logger."""
        return self._logger.name

    def bind(self, **context: Any) -> Logger:
        """Return a logger sharing this one's output but with extra context.

        Later bindings override earlier ones for the same key; per-call
        keyword arguments override both.
        """
        return Logger(
            self._logger.name,
            json_output=self._json_output,
            max_value_length=self._max_value_length,
            context={**self._context, **context},
        )

    def _format_json(self, msg: str, level: str, kwargs: dict[str, Any]) -> str:
        """Format message and kwargs as a JSON string for cloud logging.

        Includes standard fields expected by log aggregators:
        ``timestamp`` (ISO 8601), ``level``, ``logger`` (logger name).
        """
        record = {
            "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
            "level": level,
            "logger": self._logger.name,
            "message": msg,
            **kwargs,
        }
        return json.dumps(record, default=str)

    def _make_extra(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        """Build the ``extra`` dict for structured log records.

        Applies ``max_value_length`` truncation so the StructuredFormatter
        receives pre-truncated values.
        """
        if not kwargs:
            return {}
        truncated: dict[str, Any] = {}
        for k, v in kwargs.items():
            s = str(v)
            if self._max_value_length and len(s) > self._max_value_length:
                truncated[k] = (
                    s[: self._max_value_length]
                    + f"...<truncated {len(s) - self._max_value_length} chars>"
                )
            else:
                truncated[k] = v
        return {"structured_kv": truncated}

    def _log(
        self,
        level: int,
        level_name: str,
        msg: str,
        kwargs: dict[str, Any],
        *,
        exc_info: bool = False,
    ) -> None:
        if not self._logger.isEnabledFor(level):
            return
        fields = {**self._context, **kwargs}
        if self._json_output:
            self._logger.log(level, self._format_json(msg, level_name, fields), exc_info=exc_info)
        else:
            self._logger.log(level, msg, extra=self._make_extra(fields), exc_info=exc_info)

    def debug(self, msg: str, **kwargs: Any) -> None:
        """Log a DEBUG level message with optional key=value pairs."""
        self._log(logging.DEBUG, "debug", msg, kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        """Log an INFO level message with optional key=value pairs."""
        self._log(logging.INFO, "info", msg, kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        """Log a WARNING level message with optional key=value pairs."""
        self._log(logging.WARNING, "warning", msg, kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        """Log an ERROR level message with optional key=value pairs."""
        self._log(logging.ERROR, "error", msg, kwargs)

    def critical(self, msg: str, **kwargs: Any) -> None:
        """Log a CRITICAL level message with optional key=value pairs."""
        self._log(logging.CRITICAL, "critical", msg, kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        """Log an ERROR level message with exception traceback and optional key=value pairs."""
        self._log(logging.ERROR, "error", msg, kwargs, exc_info=True)
