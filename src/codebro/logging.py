from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from pathlib import Path

_LOGGING_CONFIGURED = False

_PROCESSORS = [
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.add_log_level,
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.processors.JSONRenderer(),
]


def setup_logging(filename: str | Path | None = None, *, level: int = logging.WARNING) -> structlog.BoundLogger:
    """Set up structured logging for the codebro package.

    The first call wins; later calls only return the shared logger. The CLI
    calls it early with ``--log-file`` so that file logging takes effect.

    Args:
        filename: Optional path to a log file. If None, logs are written to stderr.
        level: Minimum level emitted. Terminal output is handled separately,
            so the default keeps the console quiet.

    Returns:
        A structlog logger instance configured for the codebro package.
    """
    global _LOGGING_CONFIGURED  # noqa: PLW0603
    if not _LOGGING_CONFIGURED:
        handlers: list[logging.Handler] = []
        if filename:
            handlers.append(logging.FileHandler(str(filename), encoding="utf-8"))
            level = min(level, logging.INFO)
        else:
            handlers.append(logging.StreamHandler(sys.stderr))

        logging.basicConfig(
            level=level,
            handlers=handlers,
            format="%(message)s",
        )
        structlog.configure(
            processors=_PROCESSORS,
            wrapper_class=structlog.make_filtering_bound_logger(level),
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _LOGGING_CONFIGURED = True

    return structlog.get_logger("codebro")


# Until setup_logging runs, events go to the stdlib "codebro" logger, which
# drops them unless the host application adds handlers.
logging.getLogger("codebro").addHandler(logging.NullHandler())
if not structlog.is_configured():
    structlog.configure(
        processors=_PROCESSORS,
        wrapper_class=structlog.make_filtering_bound_logger(logging.WARNING),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

# Lazy proxy: picks up whatever configuration setup_logging installs later.
logger = structlog.get_logger("codebro")
