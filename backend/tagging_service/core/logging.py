"""Logging setup."""
import logging

from tagging_service.core.config import settings


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging and SQL echo."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    # Enable SQL query logging
    if settings.SQL_ECHO:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)
