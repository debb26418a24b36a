"""Log output for the CodesRock API.

Routers and middleware log through structlog; the gamification and learning
services use stdlib ``logging``. Both end up on the root handler configured here.
"""

import logging

import structlog

from codesrock.config import Settings


def setup_logging(settings: Settings) -> None:
    """Apply ``CODESROCK_LOG_FORMAT`` and ``CODESROCK_LOG_LEVEL``."""
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if settings.log_format == "json" else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    # SQL echo is controlled by the engine; keep the pool quiet
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
