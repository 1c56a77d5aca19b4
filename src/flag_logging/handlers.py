"""Handler creation for the package's structured log output.

Both the ambient diagnostics and the flag-gated console sink end up in the
stdlib handlers built here, rendered through structlog's ProcessorFormatter.
"""

import json
import logging
import logging.handlers
import sys
from typing import IO, Any

import structlog
from structlog.types import Processor

from .config import ConsoleHandlerConfig, FileHandlerConfig, LogConfig

DEFAULT_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_TIMESTAMP_UTC = False

# Keys rendered first in file output, in this order
_LEADING_KEYS = ("event", "level", "logger")


def create_shared_processors() -> list[Processor]:
    """Create the structlog processors shared by console and file output.

    Returns:
        List of structlog processors
    """
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.ExtraAdder(),
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(
            fmt=DEFAULT_TIMESTAMP_FORMAT,
            utc=DEFAULT_TIMESTAMP_UTC
        ),
    ]


def create_handlers(
        config: LogConfig,
        shared_processors: list[Processor],
        file_config: FileHandlerConfig | None = None
) -> list[logging.Handler]:
    """Build every handler the configuration asks for.

    Args:
        config:             Ambient logging configuration
        shared_processors:  Processors used as the foreign pre-chain
        file_config:        Effective file configuration, or None for console only

    Returns:
        Console handler followed by the file handler when enabled
    """
    handlers = [create_console_handler(config.console, shared_processors)]
    if file_config is not None:
        handlers.append(create_file_handler(file_config, shared_processors))
    return handlers


def create_console_handler(
        config: ConsoleHandlerConfig,
        shared_processors: list[Processor],
        stream: IO[str] | None = None
) -> logging.Handler:
    """Create a StreamHandler rendering through structlog's ConsoleRenderer.

    Args:
        config:             Console handler configuration settings
        shared_processors:  Shared structlog processors
        stream:             Output stream (default: stdout)

    Returns:
        Configured StreamHandler instance
    """
    handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    handler.setFormatter(_create_console_formatter(config, shared_processors))
    return handler


def create_file_handler(
        config: FileHandlerConfig,
        shared_processors: list[Processor]
) -> logging.Handler:
    """Create a RotatingFileHandler writing one JSON object per record.

    Args:
        config:             File handler configuration settings
        shared_processors:  Shared structlog processors

    Returns:
        Configured RotatingFileHandler instance
    """
    path = config.path
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        filename=path,
        maxBytes=config.max_size,
        backupCount=config.backup_count,
        encoding=config.encoding,
    )
    handler.setFormatter(_create_file_formatter(shared_processors))
    return handler


def _create_console_formatter(
        config: ConsoleHandlerConfig,
        shared_processors: list[Processor]
) -> structlog.stdlib.ProcessorFormatter:
    exception_formatter = (
        structlog.dev.rich_traceback
        if config.rich_tracebacks
        else structlog.dev.plain_traceback
    )

    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(
                colors=config.colors,
                exception_formatter=exception_formatter
            ),
        ],
    )


def _create_file_formatter(
        shared_processors: list[Processor]
) -> structlog.stdlib.ProcessorFormatter:

    def ordered_json_dumps(data: dict, **kwargs: Any) -> str:
        """Serialize with the leading keys first and the timestamp last."""
        ordered = {key: data[key] for key in _LEADING_KEYS if key in data}
        ordered.update({
            key: value for key, value in data.items()
            if key not in ordered and key != "timestamp"
        })

        if "timestamp" in data:
            ordered["timestamp"] = data["timestamp"]

        return json.dumps(ordered, ensure_ascii=False, **kwargs)

    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(serializer=ordered_json_dumps),
        ],
    )
