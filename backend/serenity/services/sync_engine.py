"""
Sync Engine
===========
Offline-first replication between the local cache and the remote store.

Write path (``save``):
    1. Upsert the record locally with ``sync_state = unsynced``. This
       always happens, and completes before ``save`` returns.
    2. If online and signed in, schedule a mirror write in the background.
       The caller never waits for it. The mirror is bounded by
       ``remote_write_timeout_seconds``; on success the local row is marked
       synced, on timeout or error it is logged and left unsynced.

Reconciliation (``sweep``):
    - Single-flight: a sweep requested while one runs is dropped, not queued.
    - Order: conversations, messages, journal entries, mood entries; oldest
      first within each kind. One remote write per record per sweep.
    - A failed write bumps ``sync_attempts``. At ``sync_max_attempts`` the
      row is dead-lettered and left out of later sweeps until
      ``retry_dead_letters`` puts it back.
    - Skipped while offline or signed out.

Read-side helpers (``hydrate``, ``merge_remote``, ``follow``) cache remote
documents locally as synced. Remote failures on any of these paths are
logged and swallowed: the user only ever sees local-cache errors.

Background work goes into a supervised task set; ``drain`` awaits it on
shutdown.
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, Coroutine, Iterable, Mapping, Optional

from pydantic import ValidationError

from serenity.db.local import (
    CONVERSATION_TABLE,
    JOURNAL_TABLE,
    MESSAGE_TABLE,
    MOOD_TABLE,
    LocalCache,
    LocalCacheError,
)
from serenity.db.remote import (
    CHAT_MESSAGES,
    CONVERSATIONS,
    JOURNALS,
    MOODS,
    NotSignedInError,
    RemoteStore,
    RemoteStoreError,
)
from serenity.models.base import SyncableRecord, SyncState
from serenity.models.chat import ChatConversation, ChatMessage
from serenity.models.journal import JournalEntry
from serenity.models.mood import MoodRecord
from serenity.models.sync import SWEEP_ORDER, PendingCounts, RecordKind, SyncReport
from serenity.services.connectivity import ConnectivityMonitor

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Kind bindings
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class KindBinding:
    model: type[SyncableRecord]
    table: str
    collection: str


KIND_BINDINGS: dict[RecordKind, KindBinding] = {
    RecordKind.JOURNAL: KindBinding(JournalEntry, JOURNAL_TABLE, JOURNALS),
    RecordKind.MOOD: KindBinding(MoodRecord, MOOD_TABLE, MOODS),
    RecordKind.MESSAGE: KindBinding(ChatMessage, MESSAGE_TABLE, CHAT_MESSAGES),
    RecordKind.CONVERSATION: KindBinding(ChatConversation, CONVERSATION_TABLE, CONVERSATIONS),
}


def kind_of(record: SyncableRecord) -> RecordKind:
    for kind, binding in KIND_BINDINGS.items():
        if isinstance(record, binding.model):
            return kind
    raise TypeError(f"Not a syncable record type: {type(record).__name__}")


_REMOTE_FAILURES = (asyncio.TimeoutError, RemoteStoreError)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class SyncEngine:
    """Owns every local write that needs to reach the remote store."""

    def __init__(
        self,
        cache: LocalCache,
        remote: RemoteStore,
        connectivity: ConnectivityMonitor,
        *,
        write_timeout: float = 5.0,
        max_attempts: int = 10,
    ) -> None:
        self._cache = cache
        self._remote = remote
        self._connectivity = connectivity
        self._write_timeout = write_timeout
        self._max_attempts = max_attempts
        self._tasks: set[asyncio.Task] = set()
        self._sweeping = False
        self._subscriptions: dict[RecordKind, Any] = {}

    @property
    def sweep_in_progress(self) -> bool:
        return self._sweeping

    @property
    def signed_in(self) -> bool:
        return self._remote.signed_in

    @property
    def can_reach_remote(self) -> bool:
        return self._connectivity.is_online and self._remote.signed_in

    # ---- Task supervision ---------------------------------------------------

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background sync task failed", exc_info=exc)

    async def drain(self) -> None:
        """Wait for every outstanding mirror write, delete and sweep."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ---- Write path ---------------------------------------------------------

    async def save(self, record: SyncableRecord) -> SyncableRecord:
        """Persist *record* locally as unsynced, then mirror it if possible."""
        kind = kind_of(record)
        binding = KIND_BINDINGS[kind]
        record = record.model_copy(update={"sync_state": SyncState.UNSYNCED})
        await self._cache.upsert(binding.table, record.to_local())
        if self.can_reach_remote:
            self._spawn(self._mirror(binding, record))
        return record

    async def _mirror(self, binding: KindBinding, record: SyncableRecord) -> None:
        try:
            await asyncio.wait_for(
                self._remote.upsert(binding.collection, record.to_remote()),
                timeout=self._write_timeout,
            )
        except _REMOTE_FAILURES as exc:
            logger.warning(
                "Mirror write of %s/%s failed, left for the next sweep: %s",
                binding.collection, record.id, str(exc) or type(exc).__name__,
            )
            return
        try:
            await self._cache.mark_synced(binding.table, record.id, record.to_local())
        except LocalCacheError:
            logger.exception("Could not mark %s/%s synced", binding.table, record.id)

    async def delete(self, kind: RecordKind, record_id: str) -> None:
        """Delete locally, then best-effort remotely."""
        binding = KIND_BINDINGS[kind]
        await self._cache.delete(binding.table, record_id)
        if self.can_reach_remote:
            self._spawn(self._remote_delete([(binding.collection, {"id": record_id})]))

    async def delete_conversation(self, conversation_id: str) -> None:
        """Delete a conversation together with all of its messages."""
        await self._cache.delete_where(MESSAGE_TABLE, {"conversation_id": conversation_id})
        await self._cache.delete(CONVERSATION_TABLE, conversation_id)
        if self.can_reach_remote:
            self._spawn(self._remote_delete([
                (CHAT_MESSAGES, {"conversation_id": conversation_id}),
                (CONVERSATIONS, {"id": conversation_id}),
            ]))

    async def clear(self, kinds: Iterable[RecordKind]) -> None:
        """Remove every record of *kinds*, locally and then remotely."""
        bindings = [KIND_BINDINGS[kind] for kind in kinds]
        for binding in bindings:
            await self._cache.delete_where(binding.table)
        if self.can_reach_remote:
            self._spawn(self._remote_delete([(binding.collection, {}) for binding in bindings]))

    async def _remote_delete(self, targets: list[tuple[str, Mapping[str, Any]]]) -> None:
        for collection, filters in targets:
            try:
                await asyncio.wait_for(
                    self._remote.delete_where(collection, filters),
                    timeout=self._write_timeout,
                )
            except _REMOTE_FAILURES as exc:
                logger.warning("Remote delete from %s failed: %s", collection, str(exc) or type(exc).__name__)
                return

    # ---- Read helpers -------------------------------------------------------

    def _parse_remote(self, kind: RecordKind, docs: Iterable[Mapping[str, Any]]) -> list[SyncableRecord]:
        model = KIND_BINDINGS[kind].model
        records = []
        for doc in docs:
            try:
                records.append(model.from_remote(dict(doc)))
            except (KeyError, ValueError, ValidationError) as exc:
                logger.warning("Skipping malformed remote %s document: %s", kind.value, exc)
        return records

    async def hydrate(
        self,
        kind: RecordKind,
        *,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        since: Optional[tuple[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> list[SyncableRecord]:
        """Fetch from the remote store and cache the result as synced.

        Called by read paths whose local query came back empty. Returns an
        empty list when offline, signed out, or on any remote failure.
        """
        if not self.can_reach_remote:
            return []
        binding = KIND_BINDINGS[kind]
        try:
            docs = await self._remote.query(
                binding.collection,
                filters=filters,
                order_by=order_by,
                descending=descending,
                since=since,
                limit=limit,
            )
        except RemoteStoreError as exc:
            logger.warning("Hydrating %s from remote failed: %s", kind.value, exc)
            return []
        records = self._parse_remote(kind, docs)
        await self._cache.upsert_many(binding.table, [record.to_local() for record in records])
        logger.debug("Hydrated %d %s record(s) from remote", len(records), kind.value)
        return records

    async def merge_remote(self, kind: RecordKind, docs: Iterable[Mapping[str, Any]]) -> int:
        """Write pushed remote documents into the local cache as synced."""
        records = self._parse_remote(kind, docs)
        await self._cache.upsert_many(
            KIND_BINDINGS[kind].table, [record.to_local() for record in records],
        )
        return len(records)

    def follow(self, kind: RecordKind) -> None:
        """Mirror remote pushes for *kind* into the local cache."""
        if kind in self._subscriptions:
            return
        loop = asyncio.get_running_loop()

        def on_doc(doc: dict[str, Any]) -> None:
            loop.call_soon_threadsafe(lambda: self._spawn(self.merge_remote(kind, [doc])))

        try:
            self._subscriptions[kind] = self._remote.subscribe(KIND_BINDINGS[kind].collection, on_doc)
        except Exception as exc:
            logger.warning("Live updates for %s unavailable: %s", kind.value, exc)

    def unfollow_all(self) -> None:
        for kind, handle in list(self._subscriptions.items()):
            try:
                self._remote.unsubscribe(handle)
            except Exception as exc:
                logger.warning("Unsubscribing from %s failed: %s", kind.value, exc)
        self._subscriptions.clear()

    # ---- Reconciliation -----------------------------------------------------

    def request_sweep(self) -> None:
        """Start a sweep in the background. Dropped if one is running."""
        if self._sweeping:
            logger.debug("Sweep already running; request dropped")
            return
        self._spawn(self.sweep())

    async def sweep(self) -> SyncReport:
        """Push every unsynced record to the remote store, once."""
        if self._sweeping:
            return SyncReport(skipped=True)
        if not self.can_reach_remote:
            logger.debug("Sweep skipped (online=%s, signed_in=%s)",
                         self._connectivity.is_online, self._remote.signed_in)
            return SyncReport(skipped=True)

        self._sweeping = True
        report = SyncReport()
        synced_per_kind: Counter = Counter()
        try:
            for kind in SWEEP_ORDER:
                binding = KIND_BINDINGS[kind]
                rows = await self._cache.unsynced(binding.table, binding.model.order_field)
                for row in rows:
                    record = binding.model.from_local(row)
                    report.attempted += 1
                    try:
                        await asyncio.wait_for(
                            self._remote.upsert(binding.collection, record.to_remote()),
                            timeout=self._write_timeout,
                        )
                    except NotSignedInError:
                        logger.info("Signed out mid-sweep; stopping")
                        report.attempted -= 1
                        return report
                    except _REMOTE_FAILURES as exc:
                        report.failed += 1
                        state = await self._cache.record_sync_failure(
                            binding.table, record.id, self._max_attempts,
                        )
                        if state is SyncState.DEAD_LETTER:
                            report.dead_lettered += 1
                            logger.warning(
                                "%s/%s dead-lettered after %d failed attempts: %s",
                                binding.table, record.id, self._max_attempts, exc,
                            )
                        continue
                    await self._cache.mark_synced(binding.table, record.id, record.to_local())
                    report.synced += 1
                    synced_per_kind[kind.value] += 1
        finally:
            self._sweeping = False
            report.per_kind = dict(synced_per_kind)

        logger.info(
            "Sweep finished: %d attempted, %d synced, %d failed, %d dead-lettered",
            report.attempted, report.synced, report.failed, report.dead_lettered,
        )
        return report

    async def retry_dead_letters(self) -> int:
        """Return dead-lettered records to the unsynced pool."""
        total = 0
        for binding in KIND_BINDINGS.values():
            total += await self._cache.reset_dead_letters(binding.table)
        if total:
            logger.info("Re-queued %d dead-lettered record(s)", total)
        return total

    async def pending_counts(self) -> dict[RecordKind, PendingCounts]:
        counts: dict[RecordKind, PendingCounts] = {}
        for kind, binding in KIND_BINDINGS.items():
            by_state = await self._cache.count_by_state(binding.table)
            counts[kind] = PendingCounts(
                unsynced=by_state[SyncState.UNSYNCED],
                dead_letter=by_state[SyncState.DEAD_LETTER],
            )
        return counts
