"""Log setup for reelsmith.

Modules log through ``logging.getLogger(__name__)``; ``setup_logging`` routes
those records through structlog so they come out either as coloured console
lines or as one JSON object per line. While a generation job runs, every
record is tagged with its ``job_id``.
"""

import logging
import sys
from contextvars import ContextVar

import structlog

_job_id: ContextVar[str | None] = ContextVar("reelsmith_job_id", default=None)

# Libraries that log every request at INFO
QUIET_LOGGERS = (
    "aiohttp.access",
    "aiosqlite",
    "google_genai",
    "httpcore",
    "httpx",
    "uvicorn.access",
)


def tag_job_id(_logger, _method_name, event_dict):
    job_id = _job_id.get()
    if job_id:
        event_dict.setdefault("job_id", job_id)
    return event_dict


def setup_logging(log_level: str = "INFO", json_output: bool = False) -> None:
    """Install the structlog formatter on the root logger.

    Args:
        log_level: Name of the root level, e.g. ``"DEBUG"``
        json_output: Render JSON lines instead of the coloured console format
    """
    pre_chain = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        tag_job_id,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(log_level.upper())

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def set_job_context(job_id: str) -> None:
    """Tag log records from this task with ``job_id``."""
    _job_id.set(job_id)


def clear_job_context() -> None:
    _job_id.set(None)
