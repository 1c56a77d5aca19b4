"""Factory module for configuring and creating structured loggers.

The package's own diagnostics and the flag-gated console sink are both emitted
through structlog loggers obtained here. Logging can be fully configured only
once; if a logger is requested before that, a console-only fallback is applied.
"""

import logging
import threading
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Final

import structlog
from structlog.stdlib import BoundLogger

from .config import ConsoleHandlerConfig, FileHandlerConfig, LogConfig
from .handlers import create_handlers, create_shared_processors

SINK_LOGGER_NAME: Final = "flag_logging.console"


@dataclass(frozen=True)
class RuntimeConfig:
    """Effective configuration combining the base config and builder overrides.

    Attributes:
        base_config:    Base logging configuration from TOML or defaults
        file_path:      Optional custom path for file logging
    """

    base_config: LogConfig
    file_path: Path | None = None

    @property
    def file_config(self) -> FileHandlerConfig | None:
        """Get the effective file configuration, or None when file output is off."""
        if self.file_path is not None:
            return self.base_config.file.with_path(self.file_path)

        if self.base_config.file.enabled:
            return self.base_config.file

        return None


class ConfigurationState:
    """Thread-safe holder for the global logging configuration.

    Attributes:
        _state:             Applied configuration, None until build() runs
        _fallback_applied:  Whether the console-only fallback is active
        _lock:              Lock guarding state changes
    """

    def __init__(self) -> None:
        self._state: RuntimeConfig | None = None
        self._fallback_applied = False
        self._lock: Final = threading.Lock()

    def is_configured(self) -> bool:
        return self._state is not None

    def set_config(self, config: RuntimeConfig) -> None:
        """Record the configuration.

        Raises:
            RuntimeError: If logging has already been configured
        """
        with self._lock:
            if self.is_configured():
                msg = (
                    "Logging has already been configured. "
                    "configure_logging() should only be called once."
                )
                raise RuntimeError(msg)
            self._state = config

    def ensure_fallback(self) -> None:
        """Apply the console-only configuration once if nothing was configured."""
        with self._lock:
            if self._state is not None or self._fallback_applied:
                return
            _apply(RuntimeConfig(base_config=LogConfig.create_default()))
            self._fallback_applied = True


_config_state: Final = ConfigurationState()


@dataclass
class LoggingBuilder:
    """Fluent builder for the ambient logging configuration.

    Attributes:
        _base_config:   Base logging configuration from TOML or defaults
        _file_path:     Optional custom path for file logging output
    """

    _base_config: LogConfig
    _file_path: Path | None = None

    def with_file(self, path: str | Path | None = None) -> "LoggingBuilder":
        """Enable file logging, optionally at a custom path.

        Relative paths are resolved from the current working directory. Without
        a path, the path from the base configuration is used.

        Args:
            path: Optional log file path overriding the configuration file

        Returns:
            Self for method chaining
        """
        if path is not None:
            self._file_path = Path(path)
        else:
            file_config = replace(self._base_config.file, enabled=True)
            self._base_config = replace(self._base_config, file=file_config)

        return self

    def with_console(
            self,
            *,
            colors: bool | None = None,
            rich_tracebacks: bool | None = None
    ) -> "LoggingBuilder":
        """Override console rendering options.

        Returns:
            Self for method chaining
        """
        current = self._base_config.console
        console = ConsoleHandlerConfig(
            colors=current.colors if colors is None else colors,
            rich_tracebacks=(
                current.rich_tracebacks if rich_tracebacks is None else rich_tracebacks
            ),
        )
        self._base_config = replace(self._base_config, console=console)
        return self

    def with_level(self, level: str) -> "LoggingBuilder":
        """Set the ambient logging level (the console sink is not affected)."""
        self._base_config = replace(self._base_config, level=level.upper())
        return self

    def build(self) -> None:
        """Apply the configuration globally.

        Can only be called once per process.

        Raises:
            RuntimeError: If logging has already been configured
        """
        config = RuntimeConfig(
            base_config=self._base_config,
            file_path=self._file_path,
        )
        _config_state.set_config(config)
        _apply(config)


def configure_logging(config_path: str | Path | None = None) -> LoggingBuilder:
    """Start configuring structlog and standard library logging.

    Args:
        config_path: Optional path to a TOML config file with a ``[logging]`` table

    Returns:
        LoggingBuilder instance for method chaining
    """
    config = (
        LogConfig.from_toml(Path(config_path))
        if config_path is not None
        else LogConfig.create_default()
    )

    return LoggingBuilder(config)


def get_logger(name: str | None = None) -> BoundLogger:
    """Get a structlog logger, applying console-only output if unconfigured.

    Args:
        name: Optional logger name (typically __name__)

    Returns:
        BoundLogger instance
    """
    if not _config_state.is_configured():
        _config_state.ensure_fallback()
    return structlog.get_logger(name)


def _apply(config: RuntimeConfig) -> None:
    shared_processors = create_shared_processors()
    handlers = create_handlers(
        config.base_config,
        shared_processors,
        file_config=config.file_config,
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    _configure_root_logger(config.base_config.level, handlers)
    _configure_sink_logger()


def _configure_root_logger(level: str, handlers: list[logging.Handler]) -> None:
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    for handler in handlers:
        root_logger.addHandler(handler)

    root_logger.setLevel(level)


def _configure_sink_logger() -> None:
    # The console flag is the only gate for sink output.
    sink_logger = logging.getLogger(SINK_LOGGER_NAME)
    sink_logger.setLevel(logging.DEBUG)
