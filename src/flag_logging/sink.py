"""Console sink receiving the output that passed the flag-driven level gate.

Each LogLevel maps to a fixed glyph and a logging channel. Grouping and timing
mirror a browser console: the sink keeps the indent depth and the running
timers, and tolerates unbalanced calls.
"""

import time
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Final

from .factory import SINK_LOGGER_NAME, get_logger
from .log_levels import LogLevel

LEVEL_GLYPHS: Final[Mapping[LogLevel, str]] = MappingProxyType({
    LogLevel.FATAL: "💀",
    LogLevel.ERROR: "🔴",
    LogLevel.WARN: "🟡",
    LogLevel.INFO: "🔵",
    LogLevel.DEBUG: "⚪",
    LogLevel.TRACE: "🟣",
})

# Logger method used for each level
LEVEL_CHANNELS: Final[Mapping[LogLevel, str]] = MappingProxyType({
    LogLevel.FATAL: "critical",
    LogLevel.ERROR: "error",
    LogLevel.WARN: "warning",
    LogLevel.INFO: "info",
    LogLevel.DEBUG: "debug",
    LogLevel.TRACE: "debug",
})

GROUP_INDENT: Final = "  "


class ConsoleSink:
    """Writes gated log output to a structlog logger.

    Attributes:
        _logger:    Target logger (defaults to the ``flag_logging.console`` logger)
        _depth:     Current group nesting depth
        _timers:    Start times of running timers, keyed by label
    """

    def __init__(self, logger: Any = None) -> None:
        self._logger = logger if logger is not None else get_logger(SINK_LOGGER_NAME)
        self._depth = 0
        self._timers: dict[str, float] = {}

    @property
    def depth(self) -> int:
        return self._depth

    def write(self, level: LogLevel, *values: Any) -> None:
        """Write values on the channel for ``level``, prefixed by its glyph.

        TRACE output also carries the current stack.
        """
        message = " ".join(str(value) for value in (LEVEL_GLYPHS[level], *values))
        method = getattr(self._logger, LEVEL_CHANNELS[level])
        if level is LogLevel.TRACE:
            method(self._indent(message), stack_info=True)
        else:
            method(self._indent(message))

    def group(self, label: str) -> None:
        self._logger.info(self._indent(label))
        self._depth += 1

    def group_end(self) -> None:
        # Closing with no open group is a no-op.
        self._depth = max(0, self._depth - 1)

    def time(self, label: str) -> None:
        if label in self._timers:
            self._logger.warning(self._indent(f"Timer '{label}' already exists"))
            return
        self._timers[label] = time.perf_counter()

    def time_end(self, label: str) -> None:
        started = self._timers.pop(label, None)
        if started is None:
            self._logger.warning(self._indent(f"Timer '{label}' does not exist"))
            return
        elapsed_ms = (time.perf_counter() - started) * 1000
        self._logger.info(self._indent(f"{label}: {elapsed_ms:.3f} ms"))

    def _indent(self, message: str) -> str:
        return f"{GROUP_INDENT * self._depth}{message}"
