"""SQLite engine and session factory for the tracking ledger."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from stockwatch.logging_config import get_logger

from .models_sql import Base

LOGGER = get_logger(__name__)

MEMORY = ":memory:"


def _apply_sqlite_pragmas(engine: Engine, busy_timeout_s: float) -> None:
    # The status API reads from its own thread while ticks write.
    try:
        with engine.connect() as connection:
            connection.execute(text("PRAGMA journal_mode=WAL"))
            connection.execute(text("PRAGMA synchronous=NORMAL"))
            connection.execute(text(f"PRAGMA busy_timeout = {int(busy_timeout_s * 1000)}"))
    except Exception as exc:  # pragma: no cover
        LOGGER.warning("Unable to configure SQLite pragmas: %s", exc)


def get_engine(sqlite_path: str, *, busy_timeout: int | float | None = None) -> Engine:
    """Return an engine for *sqlite_path*, creating its parent directory.

    ``":memory:"`` gives a single shared in-process database.
    """

    timeout_s = float(busy_timeout) if busy_timeout is not None else 30.0
    if sqlite_path == MEMORY:
        return create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    Path(sqlite_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(
        f"sqlite:///{Path(sqlite_path).expanduser()}",
        pool_pre_ping=True,
        connect_args={"check_same_thread": False, "timeout": timeout_s},
    )
    _apply_sqlite_pragmas(engine, timeout_s)
    return engine


def make_session(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create the subscriber and tracking tables when they are missing."""

    Base.metadata.create_all(engine, checkfirst=True)
