"""
Structured logging setup.

Modules log through ``structlog.get_logger(__name__)`` with snake_case event
names and bound context (component, event_id, ...). ``configure_logging``
picks JSON output for production and a console renderer for development.
"""

import logging
import sys

import structlog

from school_health.config import LoggingConfig


def configure_logging(config: LoggingConfig | None = None) -> None:
    config = config or LoggingConfig()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, config.level),
        force=True,
    )

    processors: list[structlog.types.Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if config.format == "console":
        # ConsoleRenderer formats exceptions itself
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
