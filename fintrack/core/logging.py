"""
Structured logging configuration.

Library modules only call ``structlog.get_logger(__name__)``; the host process
calls ``configure_logging`` once at startup to route structlog through the
standard library with either console or JSON rendering.
"""

import logging
import sys
from typing import Optional

import structlog

_CONFIGURED = False


def configure_logging(level: Optional[str] = None, json_logs: Optional[bool] = None) -> None:
    """Configure structlog and the stdlib root handler exactly once.

    Args:
        level: Level name such as ``"INFO"``; defaults to ``Settings.LOG_LEVEL``
        json_logs: Render JSON instead of the console format; defaults to
            ``Settings.LOG_JSON``
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    if level is None or json_logs is None:
        from .config import get_settings

        settings = get_settings()
        level = level or settings.LOG_LEVEL
        json_logs = settings.LOG_JSON if json_logs is None else json_logs

    level_name = level.upper()
    render_json = json_logs

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level_name, logging.INFO),
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if render_json
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    _CONFIGURED = True
