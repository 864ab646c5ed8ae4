"""Repository for note storage and retrieval."""
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from andtask.exceptions import StorageError
from andtask.models.db_models import DBNote
from andtask.models.schema import ItemType, Note, ensure_timezone_aware, utc_now
from andtask.storage.search_index import SearchIndex
from andtask.utils import UNTITLED_NOTE, derive_title

logger = logging.getLogger(__name__)


class NoteRepository:
    """Repository for notes.

    The "current" note is the one with the greatest ID. Every write
    touches the notes table and the search index in one session.
    """

    def __init__(self, session_factory, index: SearchIndex):
        """Initialize the repository.

        Args:
            session_factory: SQLAlchemy session factory for database operations.
            index: Search index that mirrors note title and content.
        """
        self.session_factory = session_factory
        self._index = index

    def list_all(self) -> List[Note]:
        """All notes, most recently updated first."""
        with self.session_factory() as session:
            db_notes = session.scalars(
                select(DBNote).order_by(DBNote.updated_at.desc(), DBNote.id.desc())
            ).all()
            return [self._db_to_model(n) for n in db_notes]

    def get(self, id: int) -> Optional[Note]:
        """Get a note by ID, or None."""
        with self.session_factory() as session:
            db_note = session.get(DBNote, id)
            return self._db_to_model(db_note) if db_note else None

    def get_current(self) -> Optional[Note]:
        """The note with the greatest ID, or None when there are no notes."""
        with self.session_factory() as session:
            db_note = self._select_current(session)
            return self._db_to_model(db_note) if db_note else None

    def create(self, title: Optional[str], content: str) -> Note:
        """Insert a note and its index entry.

        A blank title is derived from the content.

        Returns:
            The created note, including its assigned ID.
        """
        if not title or not title.strip():
            title = derive_title(content)

        with self.session_factory() as session:
            db_note = self._insert(session, title, content)
            session.commit()
            logger.debug(f"Created note {db_note.id}")
            return self._db_to_model(db_note)

    def update(self, id: int, title: Optional[str], content: str) -> bool:
        """Overwrite content (and title, when non-blank) and stamp updated_at.

        Returns:
            False if no note has this ID.
        """
        with self.session_factory() as session:
            db_note = session.get(DBNote, id)
            if db_note is None:
                return False

            if title and title.strip():
                db_note.title = title
            db_note.content = content
            db_note.updated_at = utc_now()
            self._flush(session, "update_note", id)

            self._index.update_entry(
                session, ItemType.NOTE, id, content, title=db_note.title
            )
            session.commit()
            return True

    def delete(self, id: int) -> bool:
        """Delete a note and its index entry.

        Returns:
            False if no note has this ID.
        """
        with self.session_factory() as session:
            db_note = session.get(DBNote, id)
            if db_note is None:
                return False

            session.delete(db_note)
            self._flush(session, "delete_note", id)

            self._index.delete_entry(session, ItemType.NOTE, id)
            session.commit()
            return True

    def save_current(self, content: str) -> Note:
        """Overwrite the current note's content, or create an untitled one.

        The lookup and the write share one transaction.
        """
        with self.session_factory() as session:
            db_note = self._select_current(session)
            if db_note is None:
                db_note = self._insert(session, UNTITLED_NOTE, content)
            else:
                db_note.content = content
                db_note.updated_at = utc_now()
                self._flush(session, "save_note", db_note.id)
                self._index.update_entry(session, ItemType.NOTE, db_note.id, content)
            session.commit()
            return self._db_to_model(db_note)

    def _insert(self, session: Session, title: str, content: str) -> DBNote:
        now = utc_now()
        db_note = DBNote(title=title, content=content, created_at=now, updated_at=now)
        session.add(db_note)
        self._flush(session, "create_note", None)
        self._index.add_entry(session, ItemType.NOTE, db_note.id, content, title=title)
        return db_note

    @staticmethod
    def _select_current(session: Session) -> Optional[DBNote]:
        return session.scalars(
            select(DBNote).order_by(DBNote.id.desc()).limit(1)
        ).first()

    @staticmethod
    def _flush(session: Session, operation: str, id: Optional[int]) -> None:
        try:
            session.flush()
        except SQLAlchemyError as e:
            target = f"note {id}" if id is not None else "note"
            raise StorageError(
                f"Failed to write {target}",
                operation=operation,
                original_error=e,
            ) from e

    @staticmethod
    def _db_to_model(db_note: DBNote) -> Note:
        return Note(
            id=db_note.id,
            title=db_note.title,
            content=db_note.content,
            created_at=ensure_timezone_aware(db_note.created_at),
            updated_at=ensure_timezone_aware(db_note.updated_at),
        )
