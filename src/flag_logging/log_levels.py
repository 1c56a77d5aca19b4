"""Log level definitions, validation constants and the emission policy."""

from enum import IntEnum
from typing import Any, Literal, get_args


class LogLevel(IntEnum):
    """Console log levels ordered by severity.

    Lower values are more severe and are therefore always shown when a
    less severe threshold is active.
    """

    FATAL = 0
    ERROR = 1
    WARN = 2
    INFO = 3
    DEBUG = 4
    TRACE = 5


SdkLogLevel = Literal["error", "warn", "info", "debug"]
VALID_SDK_LOG_LEVELS = frozenset(get_args(SdkLogLevel))

DEFAULT_SDK_LOG_LEVEL: SdkLogLevel = "info"

# Levels accepted by the standard library for ambient output
StdlibLogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
VALID_STDLIB_LOG_LEVELS = frozenset(get_args(StdlibLogLevel))


def should_emit(candidate: LogLevel, current: LogLevel) -> bool:
    """Check whether a message at ``candidate`` passes the ``current`` threshold.

    Args:
        candidate:  Level of the message being logged
        current:    Active threshold

    Returns:
        True if the candidate is as severe as or more severe than the threshold
    """
    return int(candidate) <= int(current)


def is_valid_remote_level(value: Any) -> bool:
    """Check if a raw flag value is one of the SDK log levels.

    The check is case-sensitive and does not trim whitespace.
    """
    return isinstance(value, str) and value in VALID_SDK_LOG_LEVELS


def coerce_log_level(value: Any, fallback: LogLevel) -> LogLevel:
    """Map a raw flag value onto a ``LogLevel``.

    Accepts ``LogLevel`` members, integers within range and member names in
    any case. Anything else (including ``None`` and booleans) yields the fallback.

    Args:
        value:      Raw value returned by the flag client
        fallback:   Level to use when the value cannot be mapped

    Returns:
        Resolved LogLevel
    """
    if isinstance(value, LogLevel):
        return value

    if isinstance(value, bool) or value is None:
        return fallback

    if isinstance(value, int):
        try:
            return LogLevel(value)
        except ValueError:
            return fallback

    if isinstance(value, str):
        return LogLevel.__members__.get(value.upper(), fallback)

    return fallback
