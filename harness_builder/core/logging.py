"""
Structured logging configuration for harness-builder.

structlog events are rendered by structlog and handed to the stdlib
``harness_builder`` logger, whose handler looks up ``sys.stderr`` each time a
record is emitted. Interactive terminals get rich's console handler; anything
else (CI, pipes, captured streams) gets one JSON object per line.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog
from rich.console import Console
from rich.logging import RichHandler

if TYPE_CHECKING:
    from .config import Config

LOGGER_NAME = "harness_builder"

_SECRET_FLAGS = frozenset({"-storepass", "-keypass"})


class CurrentStderrHandler(logging.StreamHandler):
    """A StreamHandler bound to ``sys.stderr`` as it is at emit time.

    Swapping ``sys.stderr`` (test runners, CLI harnesses) never leaves the
    handler pointing at a closed stream.
    """

    @property
    def stream(self):
        return sys.stderr

    @stream.setter
    def stream(self, value) -> None:
        pass


def _handler(interactive: bool, show_locals: bool) -> logging.Handler:
    if interactive:
        # Console(stderr=True) resolves sys.stderr per write.
        return RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
            tracebacks_show_locals=show_locals,
        )
    handler = CurrentStderrHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


def setup_logging(config: Config | None = None) -> None:
    """Configure structured logging for the application.

    Safe to call more than once; each call replaces the handler installed by
    the previous one.

    Args:
        config: Optional configuration. If None, uses INFO level.
    """
    log_level = config.log_level if config else "INFO"
    level = getattr(logging, log_level, logging.INFO)
    interactive = sys.stderr.isatty()

    package_logger = logging.getLogger(LOGGER_NAME)
    for existing in list(package_logger.handlers):
        package_logger.removeHandler(existing)
    package_logger.addHandler(_handler(interactive, show_locals=log_level == "DEBUG"))
    package_logger.setLevel(level)
    package_logger.propagate = False

    processors: list[structlog.types.Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.processors.StackInfoRenderer(),
    ]
    if interactive:
        # RichHandler prints time and level itself.
        processors += [structlog.dev.set_exc_info, structlog.dev.ConsoleRenderer(colors=False)]
    else:
        processors += [
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger; pass ``__name__`` so events land under ``harness_builder``."""
    return structlog.get_logger(name)


def bind_context(**kwargs: object) -> None:
    """Bind key/value pairs to every event logged from this context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove previously bound context variables."""
    structlog.contextvars.unbind_contextvars(*keys)


def redact_command(command: list[str]) -> str:
    """Render a command line for logging with password arguments masked."""
    parts: list[str] = []
    mask_next = False
    for arg in command:
        parts.append("****" if mask_next else arg)
        mask_next = arg in _SECRET_FLAGS
    return " ".join(parts)
