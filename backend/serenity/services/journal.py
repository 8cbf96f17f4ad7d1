"""
Journal Service
===============
Journal entries: create, edit, delete and the read views behind the
journal screen. Every write goes through the sync engine, so an edit
flips the entry back to unsynced until it reaches the remote store.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from serenity.db.local import JOURNAL_TABLE, LocalCache
from serenity.models.base import to_epoch_ms, utc_now
from serenity.models.journal import JournalEntry, JournalEntryCreate, JournalEntryUpdate
from serenity.models.mood import MoodCategory
from serenity.models.sync import RecordKind
from serenity.services.sync_engine import SyncEngine

logger = logging.getLogger(__name__)


class JournalService:
    def __init__(self, cache: LocalCache, engine: SyncEngine) -> None:
        self._cache = cache
        self._engine = engine

    async def create(self, body: JournalEntryCreate) -> JournalEntry:
        entry = JournalEntry(text=body.text, emotion=body.emotion, date=body.date or utc_now())
        saved = await self._engine.save(entry)
        logger.info("Journal entry %s created (%s)", saved.id, saved.emotion.value)
        return saved

    async def update(self, entry_id: str, body: JournalEntryUpdate) -> Optional[JournalEntry]:
        """Apply a partial edit. Returns ``None`` if the entry does not exist."""
        entry = await self.get(entry_id)
        if entry is None:
            return None
        changes = body.model_dump(exclude_none=True)
        if not changes:
            return entry
        return await self._engine.save(entry.model_copy(update=changes))

    async def delete(self, entry_id: str) -> bool:
        if await self.get(entry_id) is None:
            return False
        await self._engine.delete(RecordKind.JOURNAL, entry_id)
        return True

    async def get(self, entry_id: str) -> Optional[JournalEntry]:
        row = await self._cache.get(JOURNAL_TABLE, entry_id)
        return JournalEntry.from_local(row) if row else None

    async def list_entries(self, emotion: Optional[MoodCategory] = None) -> list[JournalEntry]:
        """All entries newest first, optionally only those with *emotion*."""
        where = {"emotion": emotion.value} if emotion else None
        rows = await self._cache.query(JOURNAL_TABLE, where=where, order_by="date", descending=True)
        if rows:
            return [JournalEntry.from_local(row) for row in rows]
        if emotion is not None:
            return []
        return await self._engine.hydrate(RecordKind.JOURNAL, order_by="date", descending=True)

    async def recent(self, days: int) -> list[JournalEntry]:
        cutoff = utc_now() - timedelta(days=days)
        rows = await self._cache.query(
            JOURNAL_TABLE,
            min_values={"date": to_epoch_ms(cutoff)},
            order_by="date",
            descending=True,
        )
        return [JournalEntry.from_local(row) for row in rows]

    async def emotion_counts(self, days: Optional[int] = None) -> dict[str, int]:
        """How often each emotion was picked, optionally over the last *days*."""
        min_values = None
        if days is not None:
            min_values = {"date": to_epoch_ms(utc_now() - timedelta(days=days))}
        return await self._cache.group_count(JOURNAL_TABLE, "emotion", min_values=min_values)
