"""Repository for todo storage and retrieval."""
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from andtask.exceptions import (
    ConstraintViolationError,
    ErrorCode,
    StorageError,
)
from andtask.models.db_models import DBTodo
from andtask.models.schema import ItemType, Todo, ensure_timezone_aware, utc_now
from andtask.storage.search_index import SearchIndex

logger = logging.getLogger(__name__)


class TodoRepository:
    """Repository for todos.

    Every write touches the todos table and the search index in the same
    session, so both commit together or not at all.
    """

    def __init__(self, session_factory, index: SearchIndex):
        """Initialize the repository.

        Args:
            session_factory: SQLAlchemy session factory for database operations.
            index: Search index that mirrors todo text.
        """
        self.session_factory = session_factory
        self._index = index

    def list_all(self) -> List[Todo]:
        """All todos, newest first by creation time."""
        with self.session_factory() as session:
            db_todos = session.scalars(
                select(DBTodo).order_by(DBTodo.created_at.desc())
            ).all()
            return [self._db_to_model(t) for t in db_todos]

    def get(self, id: str) -> Optional[Todo]:
        """Get a todo by ID, or None."""
        with self.session_factory() as session:
            db_todo = session.get(DBTodo, id)
            return self._db_to_model(db_todo) if db_todo else None

    def add(self, id: str, text: str, done: bool = False) -> Todo:
        """Insert a todo and its index entry.

        Raises:
            ConstraintViolationError: If a todo with this ID already exists.
            IndexSyncError: If the index entry cannot be written; the todo
                insert is rolled back.
        """
        with self.session_factory() as session:
            if session.get(DBTodo, id) is not None:
                raise ConstraintViolationError(
                    f"Todo '{id}' already exists",
                    table="todos",
                    record_id=id,
                    code=ErrorCode.DUPLICATE_KEY,
                )

            now = utc_now()
            db_todo = DBTodo(
                id=id, text=text, done=done, created_at=now, updated_at=now
            )
            session.add(db_todo)
            try:
                session.flush()
            except IntegrityError as e:
                raise ConstraintViolationError(
                    f"Todo '{id}' violates a table constraint",
                    table="todos",
                    record_id=id,
                    code=ErrorCode.DUPLICATE_KEY,
                    original_error=e,
                ) from e
            except SQLAlchemyError as e:
                raise StorageError(
                    f"Failed to insert todo '{id}'",
                    operation="add_todo",
                    original_error=e,
                ) from e

            self._index.add_entry(session, ItemType.TODO, id, text)
            session.commit()

            logger.debug(f"Added todo {id}")
            return self._db_to_model(db_todo)

    def update(self, todo: Todo) -> bool:
        """Overwrite text and done of an existing todo and stamp updated_at.

        Returns:
            False if no todo has this ID (nothing is written).
        """
        with self.session_factory() as session:
            db_todo = session.get(DBTodo, todo.id)
            if db_todo is None:
                return False

            db_todo.text = todo.text
            db_todo.done = todo.done
            db_todo.updated_at = utc_now()
            try:
                session.flush()
            except SQLAlchemyError as e:
                raise StorageError(
                    f"Failed to update todo '{todo.id}'",
                    operation="update_todo",
                    original_error=e,
                ) from e

            self._index.update_entry(session, ItemType.TODO, todo.id, todo.text)
            session.commit()
            return True

    def delete(self, id: str) -> bool:
        """Delete a todo and its index entry.

        Returns:
            False if no todo has this ID.
        """
        with self.session_factory() as session:
            db_todo = session.get(DBTodo, id)
            if db_todo is None:
                return False

            session.delete(db_todo)
            try:
                session.flush()
            except SQLAlchemyError as e:
                raise StorageError(
                    f"Failed to delete todo '{id}'",
                    operation="delete_todo",
                    original_error=e,
                ) from e

            self._index.delete_entry(session, ItemType.TODO, id)
            session.commit()
            return True

    @staticmethod
    def _db_to_model(db_todo: DBTodo) -> Todo:
        return Todo(
            id=db_todo.id,
            text=db_todo.text,
            done=bool(db_todo.done),
            created_at=ensure_timezone_aware(db_todo.created_at),
            updated_at=ensure_timezone_aware(db_todo.updated_at),
        )
