"""
Sync Schemas
============
Record kinds known to the sync engine and the reports it produces.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel


class RecordKind(str, Enum):
    JOURNAL = "journal"
    MOOD = "mood"
    MESSAGE = "message"
    CONVERSATION = "conversation"


# Sweep order: a conversation lands remotely before its messages.
SWEEP_ORDER: tuple[RecordKind, ...] = (
    RecordKind.CONVERSATION,
    RecordKind.MESSAGE,
    RecordKind.JOURNAL,
    RecordKind.MOOD,
)


@dataclass
class SyncReport:
    """Outcome of one reconciliation sweep."""

    attempted: int = 0
    synced: int = 0
    failed: int = 0
    dead_lettered: int = 0
    # True when the sweep never ran: another was in flight, or nobody is signed in
    skipped: bool = False
    per_kind: dict[str, int] = field(default_factory=dict)

    @property
    def clean(self) -> bool:
        return not self.skipped and self.failed == 0


class PendingCounts(BaseModel):
    unsynced: int
    dead_letter: int


class SyncStatusResponse(BaseModel):
    online: bool
    signed_in: bool
    sweep_in_progress: bool
    pending: dict[RecordKind, PendingCounts]


class SyncReportResponse(BaseModel):
    attempted: int
    synced: int
    failed: int
    dead_lettered: int
    skipped: bool
