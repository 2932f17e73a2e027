"""
structlog configuration for the API process and the reconcile worker.

Every entry is a JSON object carrying the emitting service, so host load
events can be filtered and aggregated downstream.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import LoggerFactory

SERVICE_NAME = "host_scheduler"


def setup_logging(log_level: str = "INFO", json_logs: bool = True) -> None:
    """
    Install the structlog pipeline and route stdlib logging to stdout.

    Pass json_logs=False for a readable console format when running locally.
    """
    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            _add_service_context,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    # Pool checkouts and access lines drown out host events
    for noisy in ("psycopg.pool", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _add_service_context(logger, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def log_host_event(
    action: str,
    host_email: str,
    current_meetings: int,
    max_concurrent_meetings: int,
    session_id: str = None,
    **extra: Any,
):
    """
    Record a change to a host's live load (assign, release, reconcile).

    Logged at warning level when the counter ends up above the host's
    limit, which should only happen through drift.
    """
    logger = get_logger("host_load")

    fields = {
        "event_type": "host_load_change",
        "action": action,
        "host_email": host_email,
        "current_meetings": current_meetings,
        "max_concurrent_meetings": max_concurrent_meetings,
        **extra,
    }
    if session_id:
        fields["session_id"] = session_id

    if current_meetings > max_concurrent_meetings:
        logger.warning("Host load above capacity", **fields)
        return
    logger.info("Host load changed", **fields)
