"""Structured logging configuration with structlog.

Environment variables:
- STREAKS_LOG_FORMAT: "json" for machine-readable lines, "console" or unset for
  human-readable output.
- STREAKS_LOG_LEVEL: "DEBUG", "INFO" (default), "WARNING", "ERROR", or "CRITICAL".

Rule-engine modules log through stdlib ``logging``; everything else uses
``structlog.get_logger()``. Both end up in the same handlers.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from typing import Any

LOG_FILE_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

_FORMATS = {"json", "console", ""}
_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _enum_values(
    _logger: object,
    _method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Render Enum values (players, power-ups, statuses) by their value."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
        elif isinstance(value, dict):
            event_dict[key] = {k: v.value if isinstance(v, Enum) else v for k, v in value.items()}
        elif isinstance(value, (list, tuple)):
            event_dict[key] = [v.value if isinstance(v, Enum) else v for v in value]
    return event_dict


def _is_test() -> bool:
    return "pytest" in sys.modules


def _json_output() -> bool:
    value = os.environ.get("STREAKS_LOG_FORMAT", "").lower()
    if value not in _FORMATS:
        msg = f"Invalid STREAKS_LOG_FORMAT={value!r}. Must be 'json', 'console', or unset."
        raise ValueError(msg)
    return value == "json"


def _log_level() -> int:
    value = os.environ.get("STREAKS_LOG_LEVEL", "INFO").upper()
    if value not in _LEVELS:
        msg = f"Invalid STREAKS_LOG_LEVEL={value!r}. Must be one of {', '.join(sorted(_LEVELS))}."
        raise ValueError(msg)
    return getattr(logging, value)


def _formatter(*, json_output: bool, colors: bool = False) -> logging.Formatter:
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=colors)
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )


def setup_logging(
    log_dir: Path | str | None = None,
    level: int | None = None,
) -> Path | None:
    """Route structlog and stdlib logging to stdout and, optionally, a log file.

    The level comes from STREAKS_LOG_LEVEL unless given. With a log_dir, a file
    named after the current UTC time is created there and its path returned.
    """
    json_output = _json_output()
    if level is None:
        level = _log_level()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _enum_values,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    # uvicorn's access log duplicates the request lines we already emit
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setFormatter(_formatter(json_output=json_output, colors=sys.stdout.isatty()))
    root_logger.addHandler(stdout_handler)

    if log_dir is None or _is_test():
        return None

    dir_path = Path(log_dir)
    dir_path.mkdir(parents=True, exist_ok=True)
    file_path = dir_path / f"{datetime.now(tz=UTC).strftime(LOG_FILE_TIMESTAMP_FORMAT)}.log"
    file_handler = logging.FileHandler(file_path)
    file_handler.setFormatter(_formatter(json_output=json_output))
    root_logger.addHandler(file_handler)
    return file_path
