"""
Structured logging configuration using structlog.

All omnisign modules log through ``logging.getLogger(__name__)``; records are
rendered by structlog. Signing passes and completion monitors bind the quote
they work on (and the origin operation being signed) with ``quote_context``,
so every record emitted inside carries ``quote_id`` / ``operation_index``.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator, Optional

import structlog

from .config import settings


# Keys whose values are key material and must never reach a log line
SECRET_KEYS = frozenset({"private_key", "secret_key", "evm_key", "solana_key", "solana_keypair", "api_key"})


@contextmanager
def quote_context(quote_id: Optional[str] = None, **values: Any) -> Iterator[None]:
    """Bind quote context to every log record emitted inside the block."""
    if quote_id is not None:
        values["quote_id"] = quote_id
    with structlog.contextvars.bound_contextvars(**values):
        yield


def redact_secrets(logger: Any, method_name: str, event_dict: dict) -> dict:
    for key in SECRET_KEYS.intersection(event_dict):
        event_dict[key] = "[redacted]"
    return event_dict


def _use_console(level: int, log_format: str) -> bool:
    log_format = log_format.lower()
    if log_format == "console":
        return True
    if log_format == "json":
        return False
    return level == logging.DEBUG


def setup_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Configure structlog and route stdlib logging through it.

    Args:
        log_level: Override log level (default: from settings.log_level)
        log_format: ``json``, ``console`` or ``auto`` (default: settings.log_format)
    """
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        redact_secrets,
    ]

    if _use_console(level, log_format or settings.log_format):
        renderer = structlog.dev.ConsoleRenderer()
    else:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Records from logging.getLogger() loggers take the foreign_pre_chain,
    # which is where bound quote context is merged in.
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # httpx logs every status query at INFO
    for name in ("httpcore", "httpx"):
        logging.getLogger(name).setLevel(logging.WARNING)
