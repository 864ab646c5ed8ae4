"""SQLAlchemy database models for the andtask record store."""
import logging
from typing import Optional

from sqlalchemy import (Boolean, Column, DateTime, Integer, String, Text,
                        create_engine, event, inspect, text)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from andtask.config import config
from andtask.exceptions import StoreUnavailableError
from andtask.utils import UNTITLED_NOTE

logger = logging.getLogger(__name__)

# Create base class for SQLAlchemy models
Base = declarative_base()

# Name of the FTS5 virtual table mirroring todos and notes
SEARCH_TABLE = "search_fts"

# Process-wide engine, created on first use
_engine: Optional[Engine] = None


class DBTodo(Base):
    """Database model for a todo."""
    __tablename__ = "todos"
    id = Column(String(255), primary_key=True)
    text = Column(Text, nullable=False)
    done = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, nullable=False, index=True)
    updated_at = Column(DateTime, nullable=False)

    def __repr__(self) -> str:
        """Return string representation of todo."""
        return f"<Todo(id='{self.id}', done={self.done})>"


class DBNote(Base):
    """Database model for a note."""
    __tablename__ = "notes"
    __table_args__ = {"sqlite_autoincrement": True}
    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(Text, nullable=False, default=UNTITLED_NOTE)
    content = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self) -> str:
        """Return string representation of note."""
        return f"<Note(id={self.id}, title='{self.title}')>"


def init_db(db_url: Optional[str] = None) -> Engine:
    """Create an engine for the database file and make sure the schema exists.

    Applies WAL journaling (when configured) and NORMAL synchronous mode
    on every connection, creates the primary tables, upgrades legacy
    note tables without a title column and creates the search index.

    Raises:
        StoreUnavailableError: If the database file cannot be opened.
    """
    url = db_url
    try:
        if url is None:
            url = config.get_db_url()
        engine = create_engine(url, pool_pre_ping=True)

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            if config.wal_mode:
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.close()

        Base.metadata.create_all(engine)
        _migrate_add_title_column(engine)
        init_fts5(engine)
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Failed to open database {url}: {e}")
        raise StoreUnavailableError(
            "Database file cannot be opened",
            path=url,
            original_error=e,
        ) from e

    logger.info(f"Database ready: {url}")
    return engine


def get_engine() -> Engine:
    """Return the process-wide engine, creating it on the first call.

    Repeated calls return the same engine without reopening the file.
    """
    global _engine
    if _engine is None:
        _engine = init_db()
    return _engine


def dispose_engine() -> None:
    """Dispose the process-wide engine so the next get_engine() reopens it."""
    global _engine
    if _engine is not None:
        _engine.dispose()
        _engine = None


def _migrate_add_title_column(engine: Engine) -> None:
    """Migration: add the title column to note tables created without one.

    SQLite doesn't support IF NOT EXISTS for ADD COLUMN, so we check
    the schema first. Idempotent.
    """
    inspector = inspect(engine)
    columns = [col["name"] for col in inspector.get_columns("notes")]

    if "title" not in columns:
        logger.info("Adding title column to legacy notes table")
        with engine.connect() as conn:
            conn.execute(text(
                "ALTER TABLE notes ADD COLUMN title TEXT "
                f"NOT NULL DEFAULT '{UNTITLED_NOTE}'"
            ))
            conn.commit()


def init_fts5(engine: Engine) -> None:
    """Initialize the FTS5 search table.

    item_type and item_id are stored but not tokenized, so a query for
    "note" or "todo" only matches record text. A table left by older
    versions with those columns tokenized is recreated and rebuilt.
    """
    with engine.connect() as conn:
        existing = conn.execute(
            text("SELECT sql FROM sqlite_master WHERE type = 'table' AND name = :name"),
            {"name": SEARCH_TABLE},
        ).scalar()
        legacy_layout = existing is not None and "UNINDEXED" not in existing.upper()
        if legacy_layout:
            logger.info("Recreating search index with unindexed type and id columns")
            conn.execute(text(f"DROP TABLE {SEARCH_TABLE}"))

        conn.execute(text(f"""
            CREATE VIRTUAL TABLE IF NOT EXISTS {SEARCH_TABLE} USING fts5(
                item_type UNINDEXED,
                item_id UNINDEXED,
                title,
                content,
                tokenize = 'porter'
            )
        """))
        conn.commit()

    if legacy_layout:
        count = rebuild_search_index(engine)
        logger.info(f"Search index repopulated with {count} entries")


def rebuild_search_index(engine: Engine) -> int:
    """Rebuild the search index from the todos and notes tables.

    Returns:
        Number of index entries written.
    """
    with engine.connect() as conn:
        conn.execute(text(f"DELETE FROM {SEARCH_TABLE}"))
        conn.execute(text(f"""
            INSERT INTO {SEARCH_TABLE}(item_type, item_id, title, content)
            SELECT 'todo', id, NULL, text FROM todos
        """))
        conn.execute(text(f"""
            INSERT INTO {SEARCH_TABLE}(item_type, item_id, title, content)
            SELECT 'note', CAST(id AS TEXT), title, content FROM notes
        """))
        conn.commit()

        count = conn.execute(text(f"SELECT COUNT(*) FROM {SEARCH_TABLE}")).scalar()

    return count


def get_session_factory(engine: Engine) -> sessionmaker:
    """Get a session factory bound to ``engine``."""
    return sessionmaker(bind=engine, expire_on_commit=False)
