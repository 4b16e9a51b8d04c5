"""Logging configuration for the Ordering domain.

Structured logs via structlog on top of stdlib logging. Everything goes to
the console and a rotating ``ordering.log``; warnings and errors from the
modules that move money or stock are copied to ``settlement.log`` so a
failed debit, refund or stock commit can be audited on its own.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path

import structlog

from ordering import settings

# Loggers whose warnings belong in the settlement audit log
SETTLEMENT_LOGGERS = (
    "ordering.settlement",
    "ordering.wallet",
    "ordering.order.side_effects",
    "ordering.order.cancellation",
    "ordering.order.verification",
)

_LEVELS_BY_ENVIRONMENT = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}

_MAX_BYTES = 10 * 1024 * 1024
_BACKUPS = 5


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", _LEVELS_BY_ENVIRONMENT.get(settings.ENVIRONMENT, "INFO"))


def _rotating(path: Path, level) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        filename=path,
        maxBytes=_MAX_BYTES,
        backupCount=_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(level)
    return handler


def setup_stdlib_logging(log_dir: Path | None = None) -> None:
    """Route stdlib logging to the console and rotating files.

    No files are written in the test environment.
    """
    log_level = get_log_level()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    root_logger.addHandler(console_handler)

    if settings.ENVIRONMENT != "test":
        log_dir = log_dir or Path(os.getenv("LOG_DIR", "logs"))
        log_dir.mkdir(parents=True, exist_ok=True)
        root_logger.addHandler(_rotating(log_dir / "ordering.log", log_level))

        audit = _rotating(log_dir / "settlement.log", logging.WARNING)
        for name in SETTLEMENT_LOGGERS:
            logging.getLogger(name).addHandler(audit)

    for noisy in ("urllib3", "asyncio", "protean"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def setup_structlog() -> None:
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.ENVIRONMENT in ("production", "staging"):
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stdout.isatty(),
                exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=False, max_frames=3),
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging(log_dir: Path | None = None) -> None:
    setup_stdlib_logging(log_dir)
    setup_structlog()


def bind_order_context(order_number: str, **kwargs) -> None:
    """Attach the order number (and any extra keys) to subsequent log lines."""
    structlog.contextvars.bind_contextvars(order_number=order_number, **kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
