import importlib.util
import logging
from contextlib import contextmanager
from typing import Iterator, Optional
from urllib.parse import urlparse

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

MEMORY_SQLITE_URLS = {"sqlite://", "sqlite:///:memory:"}
LOCAL_DB_HOSTS = {"localhost", "127.0.0.1", "db", "postgres"}

# Floors applied to the configured pool; the console polls transactions every 30s per open tab.
MIN_POOL_SIZE = 5
MIN_MAX_OVERFLOW = 5
MIN_POOL_TIMEOUT = 8


class Base(DeclarativeBase):
    pass


def normalize_database_url(url: str) -> str:
    """Accept ``postgres://`` URLs and fall back to psycopg 3 when psycopg2 is missing."""
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    if url.startswith("postgresql://") and importlib.util.find_spec("psycopg2") is None:
        if importlib.util.find_spec("psycopg") is not None:
            return "postgresql+psycopg://" + url[len("postgresql://"):]
    return url


def connect_args_for(url: str, connect_timeout: Optional[int] = None) -> dict:
    parsed = urlparse(url)
    if parsed.scheme.startswith("sqlite"):
        return {"check_same_thread": False}
    if not parsed.scheme.startswith("postgresql"):
        return {}
    args = {"keepalives": 1, "keepalives_idle": 30, "keepalives_interval": 10, "keepalives_count": 5}
    if connect_timeout:
        args["connect_timeout"] = connect_timeout
    if parsed.hostname not in LOCAL_DB_HOSTS:
        args["sslmode"] = "require"
    return args


def pool_options_for(url: str, settings: Settings) -> dict:
    if url in MEMORY_SQLITE_URLS:
        # Sessions must share the single connection that holds the schema.
        return {"poolclass": StaticPool}
    if not url.startswith("postgresql"):
        return {}

    requested = (settings.db_pool_size, settings.db_max_overflow, settings.db_pool_timeout)
    pool_size = max(MIN_POOL_SIZE, settings.db_pool_size)
    max_overflow = max(MIN_MAX_OVERFLOW, settings.db_max_overflow)
    pool_timeout = max(MIN_POOL_TIMEOUT, settings.db_pool_timeout)
    if (pool_size, max_overflow, pool_timeout) != requested:
        logger.warning(
            "Raised DB pool settings (size, overflow, timeout) from %s to %s",
            requested,
            (pool_size, max_overflow, pool_timeout),
        )
    return {
        "pool_pre_ping": settings.db_pool_pre_ping,
        "pool_recycle": settings.db_pool_recycle,
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_timeout": pool_timeout,
        "pool_use_lifo": True,
    }


settings = get_settings()
database_url = normalize_database_url(str(settings.database_url))

engine = create_engine(
    database_url,
    connect_args=connect_args_for(database_url, settings.db_connect_timeout),
    **pool_options_for(database_url, settings),
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Session for scripts and jobs: commit on success, roll back on error."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
