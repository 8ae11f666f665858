"""Structured logging configuration for promptreel.

Stdlib loggers are rendered through structlog, and each record carries the
id of the generation job that emitted it.
"""

import logging
import sys
from contextvars import ContextVar

import structlog

# Each job runs in its own asyncio task, so the context var is per job
current_job_id: ContextVar[str | None] = ContextVar("current_job_id", default=None)

NOISY_LOGGERS = [
    "httpx",
    "httpcore",
    "google_genai",
    "google_genai.models",
    "aiohttp.access",
    "aiohttp.client",
    "asyncio",
]


def add_job_id(_logger, _method_name, event_dict):
    """Structlog processor that injects the current job id."""
    job_id = current_job_id.get()
    if job_id:
        event_dict["job_id"] = job_id
    return event_dict


def setup_logging(log_level: str = "INFO", json_output: bool = False) -> None:
    """Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        json_output: Emit JSON lines instead of colored console output
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_job_id,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Records from plain logging.getLogger() loggers go through the same chain
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def set_job_context(job_id: str) -> None:
    """Tag all subsequent log records in this context with ``job_id``."""
    current_job_id.set(job_id)


def clear_job_context() -> None:
    current_job_id.set(None)
