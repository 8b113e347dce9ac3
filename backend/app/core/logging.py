import logging

from app.core.settings import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging() -> None:
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)

    # SQL echo is too chatty below WARNING.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
