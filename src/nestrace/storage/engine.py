"""Engine and session factory for nestrace storage.

Provides SQLite engine creation with performance pragmas,
session factory creation, and database initialization.
"""

from __future__ import annotations

from sqlalchemy import Engine, create_engine, event, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from nestrace.storage.schema import Base, NestraceMetaRow

SCHEMA_VERSION = "1"


def create_trace_engine(
    db_path: str = ":memory:",
    *,
    url: str | None = None,
) -> Engine:
    """Create a SQLAlchemy engine for event storage.

    1. **SQLite shorthand** (default): pass a file path or ``":memory:"``.
    2. **Full URL**: pass any SQLAlchemy connection URL via *url=*.

    An in-memory database is pinned to a single shared connection so that
    events written from several host threads land in the same database.
    SQLite pragmas (WAL, busy_timeout) are applied when the dialect is
    SQLite.

    Args:
        db_path: Path to SQLite database file, or ``":memory:"``.
            Ignored when *url* is provided.
        url: Full SQLAlchemy database URL.

    Returns:
        Configured SQLAlchemy Engine.
    """
    if url is not None:
        engine = create_engine(url, echo=False)
    elif db_path == ":memory:":
        engine = create_engine(
            "sqlite://",
            echo=False,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_engine(
            f"sqlite:///{db_path}",
            echo=False,
            connect_args={"check_same_thread": False},
        )

    if engine.dialect.name == "sqlite":

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):  # type: ignore[no-untyped-def]
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.close()

    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Create a session factory bound to the given engine.

    Uses expire_on_commit=False to prevent lazy-load issues
    when accessing attributes after commit.
    """
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create all tables and record the schema version for new databases."""
    Base.metadata.create_all(engine)

    SessionLocal = create_session_factory(engine)
    with SessionLocal() as session:
        existing = session.execute(
            select(NestraceMetaRow).where(NestraceMetaRow.key == "schema_version")
        ).scalar_one_or_none()
        if existing is None:
            session.add(NestraceMetaRow(key="schema_version", value=SCHEMA_VERSION))
            session.commit()


def get_schema_version(engine: Engine) -> str | None:
    SessionLocal = create_session_factory(engine)
    with SessionLocal() as session:
        row = session.execute(
            select(NestraceMetaRow).where(NestraceMetaRow.key == "schema_version")
        ).scalar_one_or_none()
        return row.value if row is not None else None
