"""
Journal Router
==============
CRUD for journal entries plus per-emotion counts.

POST   /api/v1/journal                   — Write an entry
GET    /api/v1/journal                   — List entries (newest first)
GET    /api/v1/journal/emotions/counts   — How often each emotion was picked
GET    /api/v1/journal/{entry_id}        — One entry
PUT    /api/v1/journal/{entry_id}        — Edit text and/or emotion
DELETE /api/v1/journal/{entry_id}        — Delete an entry

Writes return as soon as the entry is in the local cache; the remote copy
follows in the background.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from serenity.dependencies import get_journal_service
from serenity.models.journal import JournalEntry, JournalEntryCreate, JournalEntryUpdate
from serenity.models.mood import MoodCategory
from serenity.services.journal import JournalService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/journal", tags=["journal"])


def _not_found(entry_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail={"message": f"Journal entry '{entry_id}' not found", "code": "journal_not_found"},
    )


@router.post(
    "",
    response_model=JournalEntry,
    status_code=status.HTTP_201_CREATED,
    summary="Write a journal entry",
    responses={
        201: {"description": "Entry saved locally"},
        422: {"description": "Validation error (empty text, emotion not allowed for journals)"},
        503: {"description": "Local cache unavailable"},
    },
)
async def create_entry(
    body: JournalEntryCreate,
    journal: JournalService = Depends(get_journal_service),
) -> JournalEntry:
    return await journal.create(body)


@router.get("", response_model=list[JournalEntry], summary="List journal entries")
async def list_entries(
    emotion: Optional[MoodCategory] = Query(default=None, description="Only entries with this emotion"),
    days: Optional[int] = Query(default=None, ge=1, le=3650, description="Only the last N days"),
    journal: JournalService = Depends(get_journal_service),
) -> list[JournalEntry]:
    if days is not None:
        entries = await journal.recent(days)
        return [e for e in entries if emotion is None or e.emotion is emotion]
    return await journal.list_entries(emotion)


@router.get(
    "/emotions/counts",
    response_model=dict[str, int],
    summary="Count entries per emotion",
)
async def emotion_counts(
    days: Optional[int] = Query(default=None, ge=1, le=3650),
    journal: JournalService = Depends(get_journal_service),
) -> dict[str, int]:
    return await journal.emotion_counts(days)


@router.get("/{entry_id}", response_model=JournalEntry, summary="Get a journal entry")
async def get_entry(
    entry_id: str,
    journal: JournalService = Depends(get_journal_service),
) -> JournalEntry:
    entry = await journal.get(entry_id)
    if entry is None:
        raise _not_found(entry_id)
    return entry


@router.put("/{entry_id}", response_model=JournalEntry, summary="Edit a journal entry")
async def update_entry(
    entry_id: str,
    body: JournalEntryUpdate,
    journal: JournalService = Depends(get_journal_service),
) -> JournalEntry:
    entry = await journal.update(entry_id, body)
    if entry is None:
        raise _not_found(entry_id)
    return entry


@router.delete(
    "/{entry_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a journal entry",
)
async def delete_entry(
    entry_id: str,
    journal: JournalService = Depends(get_journal_service),
) -> None:
    if not await journal.delete(entry_id):
        raise _not_found(entry_id)
