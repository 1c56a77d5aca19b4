"""Configuration handling for flag-driven logging.

This module provides the configuration classes and TOML/environment parsing for
both the ambient structured logging outputs and the flag service inputs
(client identifier, flag keys, initialization timeout and persistence location).
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

import tomllib

from .errors import ConfigurationError
from .log_levels import VALID_STDLIB_LOG_LEVELS, StdlibLogLevel

DEFAULT_INIT_TIMEOUT = 2.0
ENV_PREFIX = "FLAG_LOGGING_"


@dataclass(frozen=True, slots=True)
class FileHandlerConfig:
    """Configuration for file-based logging output.

    Attributes:
        path:           Path to the log file
        max_size:       Maximum size of the log file in bytes before rotating
        backup_count:   Number of backup log files to keep before overwriting
        encoding:       Character encoding for the log file (default: utf-8)
        enabled:        Enable file-based logging (default: False)
    """

    path: Path
    max_size: int
    backup_count: int
    encoding: str = "utf-8"
    enabled: bool = field(default=False)

    def __post_init__(self) -> None:
        """Validate configuration values after initialization.

        Raises:
            ConfigurationError: If max_size is not positive or backup_count is negative
        """
        if self.max_size <= 0:
            msg = "max_size must be a positive integer (bytes)"
            raise ConfigurationError(msg)

        if self.backup_count < 0:
            msg = "backup_count must be a non-negative integer"
            raise ConfigurationError(msg)

    def with_path(self, new_path: Path) -> "FileHandlerConfig":
        """Create a new instance with an updated path and file logging enabled."""
        self._validate_path(new_path)
        return replace(self, path=new_path, enabled=True)

    @staticmethod
    def _validate_path(path: Path) -> None:
        try:
            resolved_path = Path.cwd() / path if not path.is_absolute() else path
            parent = resolved_path.parent

            if not parent.exists() or os.access(parent, os.W_OK):
                return
            msg = f"Log directory is not writable: {parent}"
            raise ConfigurationError(msg)

        except OSError as e:
            msg = f"Invalid log file path: {path}. Error: {e}"
            raise ConfigurationError(msg) from e


@dataclass(frozen=True, slots=True)
class ConsoleHandlerConfig:
    """Configuration for console-based logging output.

    Attributes:
        colors:             Enable colored output (requires 'colorama')
        rich_tracebacks:    Enable rich traceback formatting (requires 'rich')
    """

    colors: bool
    rich_tracebacks: bool


@dataclass(frozen=True, slots=True)
class LogConfig:
    """Ambient logging configuration.

    The level here only applies to the package's own diagnostics and to other
    stdlib loggers. Flag-gated console output is filtered by the flag alone.

    Attributes:
        level:      Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        file:       FileHandlerConfig for file-based output
        console:    ConsoleHandlerConfig for console output
    """

    level: StdlibLogLevel
    file: FileHandlerConfig
    console: ConsoleHandlerConfig

    def __post_init__(self) -> None:
        if self.level in VALID_STDLIB_LOG_LEVELS:
            return
        msg = (
            f"Invalid logging level: {self.level!r}. "
            f"Must be one of: {', '.join(sorted(VALID_STDLIB_LOG_LEVELS))}"
        )
        raise ConfigurationError(msg)

    @classmethod
    def from_toml(cls, config_path: Path) -> "LogConfig":
        """Create a LogConfig from the ``[logging]`` table of a TOML file.

        Args:
            config_path: Path to the TOML configuration file

        Returns:
            Configured LogConfig instance

        Raises:
            ConfigurationError: If required keys are missing or values are invalid
        """
        config_data = load_toml(config_path)
        try:
            return cls._parse_config(config_data)

        except KeyError as e:
            msg = f"Missing required configuration key: {e.args[0]}"
            raise ConfigurationError(msg) from e

        except (TypeError, ValueError) as e:
            msg = f"Invalid value in configuration file: {e!s}"
            raise ConfigurationError(msg) from e

    @classmethod
    def _parse_config(cls, config_data: dict) -> "LogConfig":
        logging_config = config_data["logging"]

        return cls(
            level=logging_config.get("level", "INFO").upper(),
            file=cls._create_file_config(logging_config.get("file", {})),
            console=cls._create_console_config(logging_config.get("console", {})),
        )

    @staticmethod
    def _create_file_config(file_config: dict) -> FileHandlerConfig:
        if not file_config:
            return FileHandlerConfig(
                path=Path("logs/app.log"),
                max_size=10 * 1024 * 1024,  # 10MB
                backup_count=5,
                enabled=False
            )

        return FileHandlerConfig(
            path=Path(file_config["path"]),
            max_size=int(file_config["max_size"]),
            backup_count=int(file_config["backup_count"]),
            encoding=file_config.get("encoding", "utf-8"),
            enabled=True
        )

    @staticmethod
    def _create_console_config(console_config: dict) -> ConsoleHandlerConfig:
        return ConsoleHandlerConfig(
            colors=bool(console_config.get("colors", True)),
            rich_tracebacks=bool(console_config.get("rich_tracebacks", True))
        )

    @classmethod
    def create_default(cls, log_dir: Path = Path("logs")) -> "LogConfig":
        """Create a default LogConfig instance.

        Creates a configuration with sensible defaults:
        - INFO level logging
        - Console logging enabled with colors and rich tracebacks
        - File logging disabled

        Args:
            log_dir: Directory where log files will be stored if enabled

        Returns:
            LogConfig instance with default settings
        """
        return cls(
            level="INFO",
            file=FileHandlerConfig(
                path=log_dir / "app.log",
                max_size=10 * 1024 * 1024,  # 10MB
                backup_count=5,
                enabled=False
            ),
            console=ConsoleHandlerConfig(
                colors=True,
                rich_tracebacks=True
            ),
        )


@dataclass(frozen=True, slots=True)
class LoggerConfig:
    """Flag keys consulted by a ``Logger``.

    Either key may be left out, but the operation that needs it fails with
    ConfigurationError instead of falling back to a default key.

    Attributes:
        console_log_flag_key:   Flag holding the console LogLevel threshold
        sdk_log_flag_key:       Flag holding the flag client's own log level
    """

    console_log_flag_key: str | None = None
    sdk_log_flag_key: str | None = None

    def __post_init__(self) -> None:
        for name in ("console_log_flag_key", "sdk_log_flag_key"):
            if getattr(self, name) == "":
                msg = f"{name} must not be empty"
                raise ConfigurationError(msg)


@dataclass(frozen=True, slots=True)
class FlagSettings:
    """Inputs for connecting to the flag service.

    Attributes:
        client_id:              Client-side identifier for the flag service
        console_log_flag_key:   Flag holding the console LogLevel threshold
        sdk_log_flag_key:       Flag holding the flag client's own log level
        init_timeout:           Seconds the client may take to initialize
        store_path:             JSON file holding persisted values, if any
    """

    client_id: str | None = None
    console_log_flag_key: str | None = None
    sdk_log_flag_key: str | None = None
    init_timeout: float = DEFAULT_INIT_TIMEOUT
    store_path: Path | None = None

    def __post_init__(self) -> None:
        if self.init_timeout <= 0:
            msg = f"init_timeout must be positive, got {self.init_timeout!r}"
            raise ConfigurationError(msg)

    def logger_config(self) -> LoggerConfig:
        """Build the LoggerConfig holding this instance's flag keys."""
        return LoggerConfig(
            console_log_flag_key=self.console_log_flag_key,
            sdk_log_flag_key=self.sdk_log_flag_key,
        )

    @classmethod
    def from_toml(cls, config_path: Path) -> "FlagSettings":
        """Create FlagSettings from the ``[flags]`` table of a TOML file.

        Raises:
            ConfigurationError: If the table is missing or holds invalid values
        """
        config_data = load_toml(config_path)
        try:
            return cls._from_mapping(config_data["flags"])

        except KeyError as e:
            msg = f"Missing required configuration key: {e.args[0]}"
            raise ConfigurationError(msg) from e

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "FlagSettings":
        """Create FlagSettings from ``FLAG_LOGGING_*`` environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``

        Returns:
            FlagSettings with any unset variable left at its default
        """
        env = os.environ if environ is None else environ
        values = {
            key[len(ENV_PREFIX):].lower(): value
            for key, value in env.items()
            if key.startswith(ENV_PREFIX) and value != ""
        }
        return cls._from_mapping(values)

    @classmethod
    def _from_mapping(cls, values: Mapping[str, object]) -> "FlagSettings":
        try:
            timeout = float(values.get("init_timeout", DEFAULT_INIT_TIMEOUT))
        except (TypeError, ValueError) as e:
            msg = f"Invalid init_timeout: {values.get('init_timeout')!r}"
            raise ConfigurationError(msg) from e

        store_path = values.get("store_path")
        return cls(
            client_id=values.get("client_id"),
            console_log_flag_key=values.get("console_log_flag_key"),
            sdk_log_flag_key=values.get("sdk_log_flag_key"),
            init_timeout=timeout,
            store_path=Path(store_path) if store_path else None,
        )


def load_toml(config_path: Path) -> dict:
    """Load and parse a TOML configuration file.

    Raises:
        ConfigurationError: If the file doesn't exist or is malformed
    """
    try:
        with Path(config_path).open("rb") as f:
            return tomllib.load(f)

    except FileNotFoundError as e:
        msg = f"Configuration file not found: {config_path}"
        raise ConfigurationError(msg) from e

    except tomllib.TOMLDecodeError as e:
        msg = f"Failed to parse TOML file {config_path}: {e}"
        raise ConfigurationError(msg) from e
