"""
Structured logging setup.

Configures structlog on top of the standard library and tags every log entry
with the current engine run id.
"""
import logging
import uuid
from contextvars import ContextVar
from typing import Any, Optional

import structlog

# Context variable for the engine run id (thread-safe)
run_id: ContextVar[str] = ContextVar("run_id", default="")


def get_run_id() -> str:
    """Get the current engine run id."""
    return run_id.get()


def new_run_id() -> str:
    """Generate and bind a fresh run id for the current context."""
    value = str(uuid.uuid4())[:8]
    run_id.set(value)
    return value


def add_run_id_processor(
    logger: Any, method_name: str, event_dict: dict
) -> dict:
    """Structlog processor that adds the run id to all log entries."""
    current = get_run_id()
    if current:
        event_dict["run_id"] = current
    return event_dict


def configure_logging(level: Optional[str] = None, json_logs: Optional[bool] = None) -> None:
    """
    Configure structlog and the standard library root logger.

    Args:
        level: Log level name; defaults to the configured ``log_level``.
        json_logs: Render JSON instead of console output.
    """
    from tb_engine.config import get_settings

    settings = get_settings()
    level = (level or settings.log_level).upper()
    if json_logs is None:
        json_logs = settings.json_logs

    logging.basicConfig(format="%(message)s", level=getattr(logging, level, logging.INFO))

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            add_run_id_processor,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
