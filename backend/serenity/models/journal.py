"""
Journal Schemas
===============
Journal entries and the request models for the journal API.

A journal entry carries one emotion picked by the user from a fixed
subset of the mood categories.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from serenity.models.base import (
    SyncableRecord,
    SyncState,
    ensure_aware,
    from_epoch_ms,
    parse_iso,
    to_epoch_ms,
    to_iso,
    utc_now,
)
from serenity.models.mood import MoodCategory


# ---------------------------------------------------------------------------
# Allowed values
# ---------------------------------------------------------------------------

JOURNAL_EMOTIONS = frozenset({
    MoodCategory.HAPPY,
    MoodCategory.CALM,
    MoodCategory.SAD,
    MoodCategory.ANXIOUS,
    MoodCategory.ANGRY,
    MoodCategory.STRESSED,
    MoodCategory.GRATEFUL,
    MoodCategory.HOPEFUL,
})


def _journal_emotion(value: Any) -> MoodCategory:
    emotion = MoodCategory(value)
    if emotion not in JOURNAL_EMOTIONS:
        raise ValueError(
            f"'{emotion.value}' is not a journal emotion; "
            f"choose one of {sorted(e.value for e in JOURNAL_EMOTIONS)}"
        )
    return emotion


# ---------------------------------------------------------------------------
# Persisted record
# ---------------------------------------------------------------------------

class JournalEntry(SyncableRecord):
    """A single journal entry: free text, one emotion, a date."""

    text: str
    emotion: MoodCategory
    date: datetime = Field(default_factory=utc_now)

    @field_validator("emotion", mode="before")
    @classmethod
    def _allowed_emotion(cls, value: Any) -> MoodCategory:
        return _journal_emotion(value)

    @field_validator("date")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        return ensure_aware(value)

    def to_local(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "emotion": self.emotion.value,
            "date": to_epoch_ms(self.date),
            "sync_state": int(self.sync_state),
        }

    @classmethod
    def from_local(cls, row: dict[str, Any]) -> JournalEntry:
        return cls(
            id=row["id"],
            text=row["text"],
            emotion=row["emotion"],
            date=from_epoch_ms(row["date"]),
            sync_state=row.get("sync_state", SyncState.UNSYNCED),
        )

    def to_remote(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "emotion": self.emotion.value,
            "date": to_iso(self.date),
        }

    @classmethod
    def from_remote(cls, doc: dict[str, Any]) -> JournalEntry:
        # Anything read from the remote store is, by definition, synced.
        return cls(
            id=doc["id"],
            text=doc["text"],
            emotion=doc["emotion"],
            date=parse_iso(doc["date"]),
            sync_state=SyncState.SYNCED,
        )


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------

class JournalEntryCreate(BaseModel):
    """Payload the app sends when the user writes a new entry."""

    text: str = Field(..., min_length=1, max_length=10000)
    emotion: MoodCategory
    date: Optional[datetime] = None

    @field_validator("emotion", mode="before")
    @classmethod
    def _allowed_emotion(cls, value: Any) -> MoodCategory:
        return _journal_emotion(value)


class JournalEntryUpdate(BaseModel):
    """Partial edit of an existing entry. Omitted fields are kept."""

    text: Optional[str] = Field(default=None, min_length=1, max_length=10000)
    emotion: Optional[MoodCategory] = None

    @field_validator("emotion", mode="before")
    @classmethod
    def _allowed_emotion(cls, value: Any) -> Optional[MoodCategory]:
        return None if value is None else _journal_emotion(value)
