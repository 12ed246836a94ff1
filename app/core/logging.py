import logging
from typing import Optional

from app.core.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    resolved = (level or get_settings().log_level or "INFO").upper()
    root = logging.getLogger()
    if not any(getattr(handler, "_mnetifi", False) for handler in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._mnetifi = True
        root.addHandler(handler)
    root.setLevel(resolved)
    # Pool chatter is noise at INFO.
    logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
