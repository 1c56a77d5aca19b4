"""Leveled logger whose threshold is read from a feature flag on every call.

Example:
    ```python
    from flag_logging import Logger, LoggerConfig, InMemoryFlagClient, LogLevel

    logger = Logger(LoggerConfig(console_log_flag_key="console-log-level"))
    logger.info("dropped: no client attached, the ERROR fallback applies")

    client = InMemoryFlagClient(flags={"console-log-level": LogLevel.INFO})
    logger.set_client(client)
    logger.info("shown")
    logger.debug("dropped")
    ```
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

from .client import ClientHandle
from .config import LoggerConfig
from .errors import ConfigurationError, MissingFallbackError, NotInitializedError
from .log_levels import LogLevel, coerce_log_level, should_emit
from .sink import ConsoleSink

T = TypeVar("T")

FALLBACK_THRESHOLD = LogLevel.ERROR
BRACKET_THRESHOLD = LogLevel.DEBUG


class Logger:
    """Level-gated logger driven by a console-level flag.

    The threshold is never cached: a flag change takes effect on the next call.
    Without an attached client every call uses the ERROR threshold.

    Args:
        config: Flag keys to evaluate
        sink:   Output target (default: a ConsoleSink)

    Raises:
        ConfigurationError: If no configuration is given
    """

    def __init__(self, config: LoggerConfig, sink: ConsoleSink | None = None) -> None:
        if config is None:
            msg = "Logger requires a LoggerConfig with the flag keys"
            raise ConfigurationError(msg)
        self._config = config
        self._sink = sink if sink is not None else ConsoleSink()
        self._client: ClientHandle | None = None

    @property
    def config(self) -> LoggerConfig:
        return self._config

    @property
    def client(self) -> ClientHandle | None:
        return self._client

    def set_client(self, client: ClientHandle | None) -> None:
        """Attach a flag client, or detach with None to force the ERROR fallback."""
        self._client = client

    def current_level(self) -> LogLevel:
        """Evaluate the console-level flag.

        Raises:
            ConfigurationError: If no console log flag key was configured
        """
        flag_key = self._config.console_log_flag_key
        if not flag_key:
            msg = "console_log_flag_key is required to resolve the console log level"
            raise ConfigurationError(msg)

        if self._client is None:
            return FALLBACK_THRESHOLD
        value = self._client.evaluate(flag_key, FALLBACK_THRESHOLD)
        return coerce_log_level(value, FALLBACK_THRESHOLD)

    def is_enabled_for(self, level: LogLevel) -> bool:
        return should_emit(level, self.current_level())

    def emit(self, level: LogLevel, *values: Any) -> None:
        """Write values to the sink if ``level`` passes the current threshold."""
        if self.is_enabled_for(level):
            self._sink.write(level, *values)

    def fatal(self, *values: Any) -> None:
        self.emit(LogLevel.FATAL, *values)

    def error(self, *values: Any) -> None:
        self.emit(LogLevel.ERROR, *values)

    def warn(self, *values: Any) -> None:
        self.emit(LogLevel.WARN, *values)

    warning = warn

    def info(self, *values: Any) -> None:
        self.emit(LogLevel.INFO, *values)

    log = info

    def debug(self, *values: Any) -> None:
        self.emit(LogLevel.DEBUG, *values)

    def trace(self, *values: Any) -> None:
        self.emit(LogLevel.TRACE, *values)

    def group(self, label: str) -> None:
        if self.is_enabled_for(BRACKET_THRESHOLD):
            self._sink.group(label)

    def group_end(self) -> None:
        if self.is_enabled_for(BRACKET_THRESHOLD):
            self._sink.group_end()

    def time(self, label: str) -> None:
        if self.is_enabled_for(BRACKET_THRESHOLD):
            self._sink.time(label)

    def time_end(self, label: str) -> None:
        if self.is_enabled_for(BRACKET_THRESHOLD):
            self._sink.time_end(label)

    @contextmanager
    def grouped(self, label: str) -> Iterator["Logger"]:
        """Run the block inside ``group(label)`` / ``group_end()``."""
        self.group(label)
        try:
            yield self
        finally:
            self.group_end()

    @contextmanager
    def timed(self, label: str) -> Iterator["Logger"]:
        """Run the block between ``time(label)`` and ``time_end(label)``."""
        self.time(label)
        try:
            yield self
        finally:
            self.time_end(label)

    def get_sdk_log_level(self, fallback: T | None = None) -> Any | T:
        """Evaluate the SDK log level flag.

        The value is returned as-is; it is not checked against the valid levels.

        Args:
            fallback: Value to use when the flag has no value

        Returns:
            Flag value, or the fallback when the flag has no value

        Raises:
            NotInitializedError:    If no client is attached
            ConfigurationError:     If no SDK log flag key was configured
            MissingFallbackError:   If the flag has no value and no fallback was given
        """
        if self._client is None:
            msg = "No flag client attached; call set_client() first"
            raise NotInitializedError(msg)

        flag_key = self._config.sdk_log_flag_key
        if not flag_key:
            msg = "sdk_log_flag_key is required to resolve the SDK log level"
            raise ConfigurationError(msg)

        value = self._client.evaluate(flag_key, fallback)
        if value is None:
            if fallback is None:
                msg = f"Flag {flag_key!r} has no value and no fallback was provided"
                raise MissingFallbackError(msg)
            return fallback
        return value
