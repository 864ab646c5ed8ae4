"""Data models for the andtask record store."""

import datetime
from datetime import timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


def utc_now() -> datetime.datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.datetime.now(timezone.utc)


def ensure_timezone_aware(dt_value: Optional[datetime.datetime]) -> Optional[datetime.datetime]:
    """Attach UTC to a naive datetime read back from SQLite.

    SQLite drops tzinfo on write, so every stored timestamp is UTC.
    """
    if dt_value is None:
        return None
    if dt_value.tzinfo is None:
        return dt_value.replace(tzinfo=timezone.utc)
    return dt_value


class ItemType(str, Enum):
    """Kinds of record mirrored into the search index."""

    TODO = "todo"
    NOTE = "note"


class Todo(BaseModel):
    """A todo item, keyed by a caller-supplied ID."""

    id: str = Field(..., description="Caller-supplied unique identifier")
    text: str = Field(..., description="Free-form content")
    done: bool = Field(default=False, description="Completion flag")
    created_at: Optional[datetime.datetime] = Field(
        default=None, description="Set by the store on insert (UTC)"
    )
    updated_at: Optional[datetime.datetime] = Field(
        default=None, description="Set by the store on every update (UTC)"
    )

    model_config = {"validate_assignment": True}

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Reject blank IDs."""
        if not v or not v.strip():
            raise ValueError("Todo id cannot be empty")
        return v


class Note(BaseModel):
    """A freeform note with a store-assigned integer ID."""

    id: int = Field(..., description="Store-assigned identity")
    title: str = Field(..., description="Human-readable title")
    content: str = Field(default="", description="Free-form content, may be markup")
    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None

    model_config = {"validate_assignment": True}


class SearchResult(BaseModel):
    """One ranked hit from the search index.

    ``title`` is always derived from ``content``; lower ``rank`` means
    a closer match.
    """

    type: ItemType
    id: str
    title: str
    content: str
    rank: float

    model_config = {"frozen": True}
