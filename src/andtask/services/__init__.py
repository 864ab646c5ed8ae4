"""Service layer for andtask."""

from andtask.services.record_store import RecordStore

__all__ = ["RecordStore"]
