"""Tests for todo operations on the record store."""
import pytest

from andtask.exceptions import ConstraintViolationError, ErrorCode, ValidationError
from andtask.models.schema import ItemType, Todo


class TestAddTodo:
    """Tests for RecordStore.add_todo()."""

    def test_add_todo_appears_in_list(self, record_store):
        """An added todo is listed with the same id, text and done flag."""
        record_store.add_todo("t1", "Buy milk", False)

        todos = record_store.list_todos()

        assert len(todos) == 1
        assert todos[0].id == "t1"
        assert todos[0].text == "Buy milk"
        assert todos[0].done is False

    def test_add_todo_sets_timestamps(self, record_store):
        """created_at and updated_at are set by the store."""
        created = record_store.add_todo("t1", "Stamp me")

        assert created.created_at is not None
        assert created.updated_at is not None
        assert created.created_at.tzinfo is not None

    def test_add_todo_preserves_done_flag(self, record_store):
        """A todo can be inserted already completed."""
        record_store.add_todo("t1", "Already finished", True)

        assert record_store.get_todo("t1").done is True

    def test_list_todos_newest_first(self, record_store):
        """list_todos orders by created_at descending."""
        record_store.add_todo("first", "First")
        record_store.add_todo("second", "Second")
        record_store.add_todo("third", "Third")

        ids = [t.id for t in record_store.list_todos()]

        assert ids == ["third", "second", "first"]

    def test_duplicate_id_fails_and_keeps_row(self, record_store):
        """A duplicate id raises and leaves the existing row unchanged."""
        record_store.add_todo("dup", "Original", False)

        with pytest.raises(ConstraintViolationError) as exc_info:
            record_store.add_todo("dup", "Replacement", True)

        assert exc_info.value.code == ErrorCode.DUPLICATE_KEY
        assert exc_info.value.details["record_id"] == "dup"
        todos = record_store.list_todos()
        assert len(todos) == 1
        assert todos[0].text == "Original"
        assert todos[0].done is False

    def test_duplicate_id_does_not_add_index_entry(self, record_store):
        """A rejected duplicate leaves no second search entry behind."""
        record_store.add_todo("dup", "Original")

        with pytest.raises(ConstraintViolationError):
            record_store.add_todo("dup", "Replacement")

        assert record_store.search("Replacement") == []
        assert len(record_store.search("Original")) == 1

    def test_blank_id_rejected(self, record_store):
        """A blank id is a validation error, not a database error."""
        with pytest.raises(ValidationError) as exc_info:
            record_store.add_todo("   ", "No id")

        assert exc_info.value.field == "id"
        assert record_store.list_todos() == []

    def test_add_todo_is_searchable(self, record_store):
        """The index entry is written with item_type todo."""
        record_store.add_todo("t1", "Water the plants")

        results = record_store.search("plants")

        assert len(results) == 1
        assert results[0].type == ItemType.TODO
        assert results[0].id == "t1"


class TestUpdateTodo:
    """Tests for RecordStore.update_todo()."""

    def test_update_changes_text_and_done(self, record_store):
        """The listed todo reflects the new text and done flag."""
        original = record_store.add_todo("t1", "Draft report")

        record_store.update_todo(Todo(id="t1", text="Send report", done=True))

        updated = record_store.list_todos()[0]
        assert updated.text == "Send report"
        assert updated.done is True
        assert updated.updated_at > original.updated_at
        assert updated.created_at == original.created_at

    def test_update_mirrors_text_into_search(self, record_store):
        """Search finds the new text and no longer finds the old one."""
        record_store.add_todo("t1", "Draft report")

        record_store.update_todo(Todo(id="t1", text="Send invoice", done=False))

        assert [r.id for r in record_store.search("invoice")] == ["t1"]
        assert record_store.search("Draft") == []

    def test_update_unknown_id_is_silent(self, record_store):
        """Updating a missing todo does nothing and raises nothing."""
        record_store.update_todo(Todo(id="ghost", text="Nobody home", done=True))

        assert record_store.list_todos() == []
        assert record_store.search("Nobody") == []

    def test_update_twice_is_idempotent(self, record_store):
        """Applying the same payload twice yields the same row."""
        record_store.add_todo("t1", "Initial")
        payload = Todo(id="t1", text="Final text", done=True)

        record_store.update_todo(payload)
        first = record_store.get_todo("t1")
        record_store.update_todo(payload)
        second = record_store.get_todo("t1")

        assert (first.id, first.text, first.done) == (second.id, second.text, second.done)
        assert len(record_store.search("Final")) == 1


class TestDeleteTodo:
    """Tests for RecordStore.delete_todo()."""

    def test_delete_removes_from_list_and_search(self, record_store):
        """A deleted todo is neither listed nor found."""
        record_store.add_todo("t1", "Cancel subscription")
        record_store.add_todo("t2", "Keep subscription list")

        record_store.delete_todo("t1")

        assert [t.id for t in record_store.list_todos()] == ["t2"]
        assert all(r.id != "t1" for r in record_store.search("subscription"))
        assert record_store.get_todo("t1") is None

    def test_delete_unknown_id_is_silent(self, record_store):
        """Deleting a missing todo does nothing."""
        record_store.add_todo("t1", "Stay")

        record_store.delete_todo("missing")

        assert len(record_store.list_todos()) == 1

    def test_id_can_be_reused_after_delete(self, record_store):
        """Deleting frees the caller-supplied id."""
        record_store.add_todo("t1", "Old")
        record_store.delete_todo("t1")

        record_store.add_todo("t1", "New")

        assert record_store.get_todo("t1").text == "New"
        assert [r.content for r in record_store.search("New")] == ["New"]
