"""Engine, session factory and schema helpers for the chat database."""

from __future__ import annotations

from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from securechat.core.settings import settings


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""


# Model modules register their tables on Base.metadata.
import securechat.models  # noqa: E402,F401


def _enable_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def configure_sqlite(engine: Engine) -> Engine:
    """Make SQLite honour the ``ondelete`` rules declared on the models.

    Deleting an identity must cascade to its relationships and messages and
    clear ``action_user_id``; SQLite ignores foreign keys unless asked.
    """
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_foreign_keys)
    return engine


def _engine_options(url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"pool_pre_ping": True, "echo": settings.sql_debug}
    if url.startswith("sqlite"):
        # Sessions are used from FastAPI's threadpool and the event loop thread.
        options["connect_args"] = {"check_same_thread": False}
    return options


engine = configure_sqlite(
    create_engine(
        settings.effective_database_url,
        **_engine_options(settings.effective_database_url),
    )
)

SessionLocal = sessionmaker(autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Yield a request-scoped session; it is closed even if the handler fails."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables() -> None:
    Base.metadata.create_all(bind=engine)


def drop_tables() -> None:
    Base.metadata.drop_all(bind=engine)
