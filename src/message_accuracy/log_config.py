"""structlog configuration shared by every entry point that embeds the engine."""

import logging
import os

import structlog


def configure_logging(env: str | None = None) -> None:
    """Configure structlog for production (JSON) or development (console).

    Args:
        env: Environment name. Falls back to the ENV variable, then "development".
    """
    env = (env or os.getenv("ENV", "development")).lower()

    if env == "production":
        # Production: JSON format for machine parsing
        renderer = structlog.processors.JSONRenderer()
        level = logging.INFO
    else:
        # Development: console format for human readability
        renderer = structlog.dev.ConsoleRenderer()
        level = logging.DEBUG

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
