"""Storage layer for the andtask record store."""

from andtask.storage.note_repository import NoteRepository
from andtask.storage.search_index import SearchIndex
from andtask.storage.todo_repository import TodoRepository

__all__ = [
    "NoteRepository",
    "SearchIndex",
    "TodoRepository",
]
