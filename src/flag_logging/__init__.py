"""Flag-driven logging and flag client initialization.

This package provides a leveled logger whose threshold is read from a feature
flag on every call, and a lifecycle that adopts or creates the flag client the
logger evaluates against. Ambient output goes through structlog and the
standard library logging module.

Key Features:
    - Six console levels (FATAL..TRACE) gated live by a console-level flag
    - ERROR fallback threshold whenever no flag client is attached
    - Single in-flight client creation with synchronous input validation
    - SDK log level changes persisted when valid and always forwarded
    - Optional teardown and recreation of the client on level changes
    - TOML and environment configuration with explicit required fields
    - Colored console output with rich tracebacks, optional JSON file output

Basic Usage:
    ```python
    import asyncio

    from flag_logging import (
        ClientLifecycle,
        FlagSettings,
        InMemoryFlagClient,
        Logger,
        ReactionMode,
        configure_logging,
    )

    configure_logging("config/flag_logging.toml").build()
    settings = FlagSettings.from_toml("config/flag_logging.toml")
    logger = Logger(settings.logger_config())

    async def main() -> None:
        lifecycle = ClientLifecycle.from_settings(
            settings,
            create_context=lambda: {"kind": "user", "key": "anonymous"},
            client_factory=InMemoryFlagClient.factory({"console-log-level": 3}),
            logger=logger,
            mode=ReactionMode.RECREATE,
        )
        async with lifecycle:
            logger.info("flag client ready")

    asyncio.run(main())
    ```

Configuration:
    ```toml
    [logging]
    level = "INFO"

    [logging.console]
    colors = true
    rich_tracebacks = true

    [flags]
    client_id = "client-side-id"
    console_log_flag_key = "console-log-level"
    sdk_log_flag_key = "sdk-log-level"
    init_timeout = 2
    store_path = ".flag_logging/store.json"
    ```

    The same ``[flags]`` values can be supplied through ``FLAG_LOGGING_*``
    environment variables with ``FlagSettings.from_env()``.
"""

from .binding import ReadyGate, use_logger
from .client import ClientHandle, ClientOptions, InMemoryFlagClient, change_event
from .config import FlagSettings, LogConfig, LoggerConfig
from .errors import (
    ConfigurationError,
    FlagLoggingError,
    InitializationError,
    MissingFallbackError,
    NotInitializedError,
)
from .factory import configure_logging, get_logger
from .lifecycle import ClientLifecycle, LifecycleState, ReactionMode
from .log_levels import LogLevel, is_valid_remote_level, should_emit
from .logger import Logger
from .persistence import JsonFileStore, LevelPersistence, MemoryStore
from .sink import ConsoleSink

__all__ = [
    "ClientHandle",
    "ClientLifecycle",
    "ClientOptions",
    "ConfigurationError",
    "ConsoleSink",
    "FlagLoggingError",
    "FlagSettings",
    "InMemoryFlagClient",
    "InitializationError",
    "JsonFileStore",
    "LevelPersistence",
    "LifecycleState",
    "LogConfig",
    "LogLevel",
    "Logger",
    "LoggerConfig",
    "MemoryStore",
    "MissingFallbackError",
    "NotInitializedError",
    "ReactionMode",
    "ReadyGate",
    "change_event",
    "configure_logging",
    "get_logger",
    "is_valid_remote_level",
    "should_emit",
    "use_logger",
]
