"""
Syncable Record Base
====================
Shared plumbing for every record the sync engine replicates: journal
entries, mood entries, chat messages and conversations.

Two representations per record:
- local cache row: dates as integer epoch-milliseconds, enums as their
  string values, plus an integer ``sync_state`` column.
- remote document: dates as ISO-8601 strings, no sync columns.

The ``sync_state`` travels with the model so a freshly read row tells the
caller whether the remote copy is known to match.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from enum import IntEnum
from typing import Any, ClassVar

from pydantic import BaseModel, Field, field_validator

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


class SyncState(IntEnum):
    """Per-record replication flag stored in the local cache."""

    UNSYNCED = 0
    SYNCED = 1
    # Gave up after repeated sweep failures; excluded from sweeps until retried.
    DEAD_LETTER = 2


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------

def utc_now() -> datetime:
    return ensure_aware(datetime.now(timezone.utc))


def ensure_aware(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC. Truncated to whole milliseconds,
    the precision of the local cache."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.replace(microsecond=value.microsecond // 1000 * 1000)


def to_epoch_ms(value: datetime) -> int:
    return (ensure_aware(value) - _EPOCH) // _ONE_MS


def from_epoch_ms(value: int) -> datetime:
    return _EPOCH + timedelta(milliseconds=int(value))


def to_iso(value: datetime) -> str:
    return ensure_aware(value).isoformat()


def parse_iso(value: str) -> datetime:
    return ensure_aware(datetime.fromisoformat(value.replace("Z", "+00:00")))


def new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Base model
# ---------------------------------------------------------------------------

class SyncableRecord(BaseModel):
    """Common fields and serialisation contract for replicated records."""

    # Column that orders sweeps and list reads, e.g. "date" or "timestamp".
    order_field: ClassVar[str] = "date"

    id: str = Field(default_factory=new_id)
    sync_state: SyncState = SyncState.UNSYNCED

    @field_validator("sync_state", mode="before")
    @classmethod
    def _coerce_sync_state(cls, value: Any) -> SyncState:
        return SyncState(int(value))

    def to_local(self) -> dict[str, Any]:
        raise NotImplementedError

    @classmethod
    def from_local(cls, row: dict[str, Any]) -> SyncableRecord:
        raise NotImplementedError

    def to_remote(self) -> dict[str, Any]:
        raise NotImplementedError

    @classmethod
    def from_remote(cls, doc: dict[str, Any]) -> SyncableRecord:
        raise NotImplementedError
