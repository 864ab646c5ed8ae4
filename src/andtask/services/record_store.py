"""Record store: the public surface for todos, notes and search."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.engine import Engine

from andtask.config import config
from andtask.exceptions import ValidationError
from andtask.models.db_models import get_engine, get_session_factory
from andtask.models.schema import Note, SearchResult, Todo
from andtask.observability import metrics, traced
from andtask.storage.note_repository import NoteRepository
from andtask.storage.search_index import SearchIndex
from andtask.storage.todo_repository import TodoRepository

logger = logging.getLogger(__name__)


class RecordStore:
    """CRUD for todos and notes with a search index kept in step.

    The engine may be injected; otherwise the process-wide engine is
    opened on first use and reused for the life of the process.
    """

    def __init__(self, engine: Optional[Engine] = None):
        self._engine = engine
        self._todos: Optional[TodoRepository] = None
        self._notes: Optional[NoteRepository] = None
        self._index: Optional[SearchIndex] = None

    @property
    def engine(self) -> Engine:
        """The database engine, opened on first access.

        Raises:
            StoreUnavailableError: If the database file cannot be opened.
        """
        if self._engine is None:
            self._engine = get_engine()
        return self._engine

    def _ensure_repositories(self) -> None:
        if self._index is not None:
            return
        session_factory = get_session_factory(self.engine)
        self._index = SearchIndex(
            self.engine, session_factory, limit=config.search_limit
        )
        self._todos = TodoRepository(session_factory, self._index)
        self._notes = NoteRepository(session_factory, self._index)

    @property
    def todos(self) -> TodoRepository:
        self._ensure_repositories()
        return self._todos

    @property
    def notes(self) -> NoteRepository:
        self._ensure_repositories()
        return self._notes

    @property
    def index(self) -> SearchIndex:
        self._ensure_repositories()
        return self._index

    # =========================================================================
    # Todos
    # =========================================================================

    @traced("list_todos")
    def list_todos(self) -> List[Todo]:
        """All todos ordered by created_at, newest first."""
        return self.todos.list_all()

    @traced("get_todo")
    def get_todo(self, id: str) -> Optional[Todo]:
        return self.todos.get(id)

    @traced("add_todo")
    def add_todo(self, id: str, text: str, done: bool = False) -> Todo:
        """Add a todo under a caller-supplied ID.

        Raises:
            ValidationError: If the ID is blank.
            ConstraintViolationError: If the ID already exists.
            IndexSyncError: If the index entry cannot be written.
        """
        if not id or not id.strip():
            raise ValidationError("Todo id is required", field="id", value=id)
        return self.todos.add(id, text, done)

    @traced("update_todo")
    def update_todo(self, todo: Todo) -> None:
        """Overwrite text and done for ``todo.id``.

        An unknown ID is not an error; nothing is written.
        """
        if not self.todos.update(todo):
            logger.debug(f"update_todo: no todo with id {todo.id}")

    @traced("delete_todo")
    def delete_todo(self, id: str) -> None:
        """Delete a todo. An unknown ID is not an error."""
        if not self.todos.delete(id):
            logger.debug(f"delete_todo: no todo with id {id}")

    # =========================================================================
    # Notes
    # =========================================================================

    @traced("list_notes")
    def list_notes(self) -> List[Note]:
        """All notes ordered by updated_at, most recent first."""
        return self.notes.list_all()

    @traced("get_note")
    def get_note(self, id: int) -> Optional[Note]:
        return self.notes.get(id)

    @traced("get_current_note")
    def get_current_note(self) -> Optional[Note]:
        """The scratch note: the note with the greatest ID, or None."""
        return self.notes.get_current()

    @traced("create_note")
    def create_note(self, title: str, content: str) -> Note:
        """Create a note and return it with its assigned ID.

        A blank title is derived from the first line of ``content``.
        """
        return self.notes.create(title, content)

    @traced("update_note")
    def update_note(self, id: int, title: Optional[str], content: str) -> None:
        """Overwrite a note's content, and its title when one is given.

        An unknown ID is not an error.
        """
        if not self.notes.update(id, title, content):
            logger.debug(f"update_note: no note with id {id}")

    @traced("delete_note")
    def delete_note(self, id: int) -> None:
        """Delete a note and its index entry. An unknown ID is not an error.

        Index failures propagate like every other paired write.
        """
        if not self.notes.delete(id):
            logger.debug(f"delete_note: no note with id {id}")

    @traced("save_note")
    def save_note(self, content: str) -> Note:
        """Save into the scratch note, creating "Untitled Note" if none exists."""
        return self.notes.save_current(content)

    # =========================================================================
    # Search
    # =========================================================================

    @traced("search")
    def search(self, query: str) -> List[SearchResult]:
        """Ranked full-text search over todos and notes, at most 50 hits.

        A blank query returns [] without opening the database.
        """
        if not query or not query.strip():
            return []
        return self.index.search(query)

    @traced("rebuild_search_index")
    def rebuild_search_index(self) -> int:
        """Repopulate the search index from the todos and notes tables."""
        return self.index.rebuild()

    def get_metrics(self) -> Dict[str, Dict[str, Any]]:
        """Per-operation call metrics for this process."""
        return metrics.get_metrics()
