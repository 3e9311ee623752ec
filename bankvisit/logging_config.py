"""Structured logging for the branch-visit engine.

Every component logs through structlog with key/value context
(appointment_id, branch_id, time_slot, from_status/to_status). A session id
bound once per CLI or view session is merged into each event.

JSON lines by default; the interactive CLI switches to the console renderer
and writes to stderr so log events do not interleave with its prompts.
"""
import logging
import sys
import uuid
from typing import IO, Optional

import structlog

from bankvisit import config


def setup_structured_logging(
    log_level: str = config.LOG_LEVEL,
    json_output: bool = True,
    stream: Optional[IO[str]] = None,
):
    """
    Configure structlog and the stdlib root logger.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
        json_output: JSON lines (True) or human-readable console output
        stream: Destination (default: stdout)

    Raises:
        ValueError: Unknown log level name
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    renderer = (
        structlog.processors.JSONRenderer() if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # force: a second call (CLI start-up after import-time defaults) must win
    logging.basicConfig(
        format="%(message)s",
        stream=stream or sys.stdout,
        level=level,
        force=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Module logger; pass __name__ so events carry the component name."""
    return structlog.get_logger(name)


def generate_session_id() -> str:
    """Identifier for one customer session ("sess-" + 12 hex chars)."""
    return f"sess-{uuid.uuid4().hex[:12]}"


def bind_session(session_id: str):
    """Attach session_id to every log event emitted in this context."""
    structlog.contextvars.bind_contextvars(session_id=session_id)


def clear_session():
    """Drop session context (view teardown / logout)."""
    structlog.contextvars.clear_contextvars()
