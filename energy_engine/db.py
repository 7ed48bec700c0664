# energy_engine/db.py
from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.dialects import postgresql, sqlite
import os
from pathlib import Path

DB_URL = os.environ.get("DB_URL", "sqlite:///./data/energy.db")
DB_BUSY_TIMEOUT = float(os.environ.get("DB_BUSY_TIMEOUT", "15"))

def sqlite_file(url) -> Path | None:
    """Database file behind a SQLite URL; None for other backends, in-memory and URI-style databases."""
    url = make_url(url)
    if url.get_backend_name() != "sqlite":
        return None
    database = url.database
    if not database or database == ":memory:" or database.startswith("file:"):
        return None
    return Path(database).resolve()

def make_engine(url: str):
    db_file = sqlite_file(url)
    if db_file is not None:
        db_file.parent.mkdir(parents=True, exist_ok=True)
    connect_args = {}
    if make_url(url).get_backend_name() == "sqlite":
        # Writers queue on the database lock instead of failing immediately
        connect_args = {"check_same_thread": False, "timeout": DB_BUSY_TIMEOUT}
    return create_engine(
        url,
        echo=os.environ.get("SQL_ECHO", "0") == "1",
        future=True,
        pool_pre_ping=True,
        connect_args=connect_args,
    )

def make_session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True, expire_on_commit=False)

_engine = None

def get_engine():
    global _engine
    if _engine is None:
        _engine = make_engine(DB_URL)
    return _engine

def ping(engine) -> None:
    """Round-trip a trivial statement; raises if the store is unreachable."""
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))

_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

def upsert_insert(dialect_name: str):
    """Dialect insert() construct that supports ON CONFLICT ... DO UPDATE."""
    insert = _UPSERT_INSERTS.get(dialect_name)
    if insert is None:
        raise NotImplementedError(f"No ON CONFLICT upsert for dialect {dialect_name!r}")
    return insert
