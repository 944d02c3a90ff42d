#  -----------------------------------------------------------------------------
#  Copyright (c) 2024 Bud Ecosystem Inc.
#  #
#  Licensed under the Apache License, Version 2.0 (the "License");
#  you may not use this file except in compliance with the License.
#  You may obtain a copy of the License at
#  #
#      http://www.apache.org/licenses/LICENSE-2.0
#  #
#  Unless required by applicable law or agreed to in writing, software
#  distributed under the License is distributed on an "AS IS" BASIS,
#  WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#  See the License for the specific language governing permissions and
#  limitations under the License.
#  -----------------------------------------------------------------------------

"""Structured logging setup built on structlog and the standard library logging module."""

import logging
import sys
from enum import Enum
from typing import Any, Optional

import structlog


def _get_log_level_string(log_level: Any) -> str:
    """Convert log level to string for use with logging module.

    Args:
        log_level: Log level value (can be Enum, string, or int).

    Returns:
        String representation of the log level.
    """
    if isinstance(log_level, Enum):
        return log_level.value.upper() if isinstance(log_level.value, str) else log_level.name
    if isinstance(log_level, str):
        return log_level.upper()
    if isinstance(log_level, int):
        return logging.getLevelName(log_level)
    return str(log_level)


def configure_logging(log_level: Optional[Any] = None, debug: bool = False) -> None:
    """Configure structlog and the standard library root logger.

    Development runs get a colored console renderer, everything else renders JSON lines.

    Args:
        log_level: Minimum level to emit, defaults to INFO.
        debug: Whether to use the console renderer.
    """
    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if debug:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True),
        ]
    else:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    log_level_str = _get_log_level_string(log_level or "INFO")
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level_str, logging.INFO),
        force=True,
    )


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger bound to the given name."""
    return structlog.get_logger(name)
