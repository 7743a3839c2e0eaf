from sqlalchemy import Column, String, DateTime, event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, AsyncEngine
from sqlalchemy.orm import declarative_base, sessionmaker
from datetime import datetime, timezone
from pathlib import Path
import logging

from config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()

_SQLITE_ASYNC_PREFIX = "sqlite+aiosqlite:///"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ==================== LOCAL SELECTION ====================


class LocalSelection(Base):
    """Persisted client-side selection (last connected wallet, last search).

    One row per key; writes overwrite the value (last writer wins).
    """

    __tablename__ = "local_selection"

    key = Column(String, primary_key=True)
    value = Column(String, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)


# ==================== DATABASE SETUP ====================


def _set_sqlite_pragma(dbapi_connection, connection_record):
    """Configure SQLite for concurrent access (WAL mode, busy timeout)."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=30000")
    cursor.close()


def build_engine(database_url: str) -> AsyncEngine:
    """Create an async engine, creating the SQLite parent directory if needed."""
    engine_kw: dict = {"echo": False}
    is_sqlite = "sqlite" in database_url
    if is_sqlite:
        engine_kw["connect_args"] = {"timeout": 30}
        if database_url.startswith(_SQLITE_ASYNC_PREFIX):
            path_part = database_url[len(_SQLITE_ASYNC_PREFIX) :]
            if path_part and path_part != ":memory:":
                Path(path_part).parent.mkdir(parents=True, exist_ok=True)

    engine = create_async_engine(database_url, **engine_kw)
    if is_sqlite:
        event.listens_for(engine.sync_engine, "connect")(_set_sqlite_pragma)
    return engine


def build_session_factory(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


_async_engine: AsyncEngine | None = None
_session_factory: sessionmaker | None = None


def get_session_factory() -> sessionmaker:
    """Return the process-wide session factory bound to STATE_DATABASE_URL."""
    global _async_engine, _session_factory
    if _session_factory is None:
        _async_engine = build_engine(settings.STATE_DATABASE_URL)
        _session_factory = build_session_factory(_async_engine)
    return _session_factory


async def init_database(engine: AsyncEngine | None = None) -> None:
    """Create the local state tables if they do not exist."""
    if engine is None:
        get_session_factory()
        engine = _async_engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.debug("Local state database initialized")


async def dispose_database() -> None:
    global _async_engine, _session_factory
    if _async_engine is not None:
        await _async_engine.dispose()
    _async_engine = None
    _session_factory = None
