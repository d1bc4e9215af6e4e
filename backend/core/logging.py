import logging

from .config import Settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(settings: Settings) -> None:
    """Configure application-wide logging from settings.

    Ops events (sweep ticks, archivals, guard rejections) share the root
    handler; SQLAlchemy engine chatter stays at WARNING outside of DEBUG.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)

    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access", "ops_events"):
        logging.getLogger(logger_name).setLevel(level)
    if level > logging.DEBUG:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
