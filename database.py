from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from config import get_settings

MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def make_engine(database_url: str) -> Engine:
    """Engine with the SQLite settings the stores rely on.

    Foreign keys are enforced, so deleting a custom category nulls the
    expenses that point at it. An in-memory database keeps a single
    connection, otherwise every session would see its own empty schema.
    """
    if not database_url.startswith("sqlite"):
        return create_engine(database_url)

    memory = database_url in MEMORY_URLS
    kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if memory:
        kwargs["poolclass"] = StaticPool
    eng = create_engine(database_url, **kwargs)

    @event.listens_for(eng, "connect")
    def _sqlite_pragmas(dbapi_conn, _record):
        cursor = dbapi_conn.cursor()
        if not memory:
            cursor.execute("PRAGMA journal_mode=WAL;")
        cursor.execute("PRAGMA foreign_keys=ON;")
        cursor.close()

    return eng


engine = make_engine(get_settings().database_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


def init_db(bind: Engine = engine) -> None:
    # Import registers the mapped classes on Base.metadata.
    import models  # noqa: F401

    Base.metadata.create_all(bind)
