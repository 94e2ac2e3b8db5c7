"""Logging configuration for the seat extraction tools."""
import logging
import sys
from typing import Any, Optional
import structlog
from pythonjsonlogger import jsonlogger

from seatmap.config import settings


def setup_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """Configure structured logging.

    JSON lines go to stdout when ``fmt`` is ``"json"``; otherwise structlog's
    console renderer is used, which reads better in a terminal batch run.
    """
    log_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)
    fmt = fmt or settings.log_format

    class CustomJsonFormatter(jsonlogger.JsonFormatter):
        def add_fields(self, log_record: dict[str, Any], record: logging.LogRecord, message_dict: dict[str, Any]) -> None:
            super().add_fields(log_record, record, message_dict)
            log_record['level'] = record.levelname
            log_record['logger'] = record.name
            log_record['environment'] = settings.environment

    handler = logging.StreamHandler(sys.stdout)
    if fmt == "json":
        handler.setFormatter(
            CustomJsonFormatter('%(timestamp)s %(level)s %(logger)s %(message)s')
        )
        renderer: Any = structlog.stdlib.ProcessorFormatter.wrap_for_formatter
    else:
        handler.setFormatter(logging.Formatter("%(message)s"))
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = []
    root_logger.addHandler(handler)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance for the given name.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)
