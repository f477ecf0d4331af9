"""structlog setup shared by the stores, services and HTTP app."""
import logging

import structlog


def configure_logging(level: int = logging.INFO) -> None:
    """Route structlog events through stdlib logging as JSON lines.

    Every event carries ``level`` and an ISO ``timestamp``. Event names are
    snake_case (``item_selected``, ``review_recorded``, ``store_write_failed``,
    ``session_closed``) with the ids and scheduling values as keys.
    """
    logging.basicConfig(level=level)
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


logger = structlog.get_logger()
