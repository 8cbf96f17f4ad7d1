"""
Tests for the offline-first sync engine
=======================================
Covers:
- save(): local write always, background mirror when online and signed in
- Mirror failures and timeouts leave the record unsynced
- An edit made while a mirror write is in flight stays unsynced
- Sweep: kind order, oldest first, one write per record, per-kind report
- Sweep skipped offline, signed out, or while another sweep runs
- Failed writes counted; dead-lettered at the cap; retry re-queues
- Sign-out mid-sweep stops without counting failures
- Reconnect triggers a sweep
- hydrate / merge_remote / follow cache remote documents as synced
- delete, delete_conversation and clear reach both stores

Run: pytest tests/test_sync_engine.py -v
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from conftest import FakeRemote, set_transports
from serenity.db.local import CONVERSATION_TABLE, JOURNAL_TABLE, MESSAGE_TABLE, MOOD_TABLE
from serenity.db.remote import NotSignedInError
from serenity.models.base import SyncState
from serenity.models.chat import ChatConversation, ChatMessage
from serenity.models.journal import JournalEntry
from serenity.models.mood import MoodRecord
from serenity.models.sync import PendingCounts, RecordKind
from serenity.services.connectivity import Transport
from serenity.services.sync_engine import SyncEngine, kind_of

_BASE = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _journal(day: int = 0, text: str = "entry") -> JournalEntry:
    return JournalEntry(text=text, emotion="calm", date=_BASE + timedelta(days=day))


async def _state(cache, table: str, record_id: str) -> SyncState:
    return SyncState((await cache.get(table, record_id))["sync_state"])


async def _go_offline(source, monitor) -> None:
    await set_transports(source, monitor, Transport.NONE)


async def _go_online(source, monitor) -> None:
    await set_transports(source, monitor, Transport.WIFI)


# ---------------------------------------------------------------------------
# Write path
# ---------------------------------------------------------------------------

class TestSave:

    @pytest.mark.asyncio
    async def test_online_save_mirrors_and_marks_synced(self, engine, cache, remote):
        entry = _journal()

        saved = await engine.save(entry)
        assert saved.sync_state is SyncState.UNSYNCED
        assert await cache.get(JOURNAL_TABLE, entry.id) is not None

        await engine.drain()
        assert remote.upserts == [("journals", entry.id)]
        assert await _state(cache, JOURNAL_TABLE, entry.id) is SyncState.SYNCED

    @pytest.mark.asyncio
    async def test_offline_save_stays_local(self, engine, cache, remote, source, monitor):
        await _go_offline(source, monitor)
        entry = _journal()

        await engine.save(entry)
        await engine.drain()

        assert remote.upserts == []
        assert await _state(cache, JOURNAL_TABLE, entry.id) is SyncState.UNSYNCED

    @pytest.mark.asyncio
    async def test_signed_out_save_stays_local(self, engine, cache, remote):
        remote.user_id = None
        entry = _journal()

        await engine.save(entry)
        await engine.drain()

        assert remote.upserts == []
        assert engine.can_reach_remote is False

    @pytest.mark.asyncio
    async def test_mirror_failure_leaves_record_unsynced(self, engine, cache, remote):
        remote.fail_all = True
        entry = _journal()

        await engine.save(entry)
        await engine.drain()

        row = await cache.get(JOURNAL_TABLE, entry.id)
        assert row["sync_state"] == SyncState.UNSYNCED
        # Only sweeps count towards the dead-letter cap
        assert row["sync_attempts"] == 0

    @pytest.mark.asyncio
    async def test_mirror_timeout_leaves_record_unsynced(self, cache, remote, monitor):
        engine = SyncEngine(cache, remote, monitor, write_timeout=0.05)
        remote.delay = 0.5
        entry = _journal()

        await engine.save(entry)
        await engine.drain()

        assert remote.upserts == []
        assert await _state(cache, JOURNAL_TABLE, entry.id) is SyncState.UNSYNCED

    @pytest.mark.asyncio
    async def test_save_resets_synced_record(self, engine, cache, source, monitor):
        entry = await engine.save(_journal())
        await engine.drain()
        assert await _state(cache, JOURNAL_TABLE, entry.id) is SyncState.SYNCED
        await _go_offline(source, monitor)

        await engine.save(entry.model_copy(update={"text": "edited", "sync_state": SyncState.SYNCED}))

        assert await _state(cache, JOURNAL_TABLE, entry.id) is SyncState.UNSYNCED

    @pytest.mark.asyncio
    async def test_edit_during_mirror_stays_unsynced(self, engine, cache, remote, source, monitor):
        remote.delay = 0.1
        entry = await engine.save(_journal())
        await _go_offline(source, monitor)

        await engine.save(entry.model_copy(update={"text": "edited"}))
        await engine.drain()

        assert remote.upserts == [("journals", entry.id)]
        row = await cache.get(JOURNAL_TABLE, entry.id)
        assert row["text"] == "edited"
        assert row["sync_state"] == SyncState.UNSYNCED

    @pytest.mark.asyncio
    async def test_saving_twice_leaves_one_copy(self, engine, cache, remote):
        entry = _journal()

        await engine.save(entry)
        await engine.drain()
        await engine.save(entry)
        await engine.drain()

        assert remote.upserts == [("journals", entry.id)] * 2
        assert remote.docs["journals"] == {entry.id: entry.to_remote()}
        assert await cache.count(JOURNAL_TABLE) == 1
        assert await _state(cache, JOURNAL_TABLE, entry.id) is SyncState.SYNCED

    def test_kind_of_rejects_unknown_type(self):
        with pytest.raises(TypeError):
            kind_of(object())


# ---------------------------------------------------------------------------
# Sweep
# ---------------------------------------------------------------------------

class TestSweep:

    @pytest.mark.asyncio
    async def test_sweep_order_and_report(self, engine, cache, remote, source, monitor):
        await _go_offline(source, monitor)
        conversation = ChatConversation(created_at=_BASE, last_message_at=_BASE)
        message = ChatMessage(text="hi", sender="user", timestamp=_BASE, conversation_id=conversation.id)
        mood = MoodRecord(mood="calm", score=7, date=_BASE)
        journal = _journal()
        for record in (mood, journal, message, conversation):
            await engine.save(record)

        await _go_online(source, monitor)
        report = await engine.sweep()

        assert [collection for collection, _ in remote.upserts] == [
            "conversations", "chat_messages", "journals", "moods",
        ]
        assert report.attempted == 4
        assert report.synced == 4
        assert report.clean
        assert report.per_kind == {"conversation": 1, "message": 1, "journal": 1, "mood": 1}
        for table, record in (
            (CONVERSATION_TABLE, conversation),
            (MESSAGE_TABLE, message),
            (JOURNAL_TABLE, journal),
            (MOOD_TABLE, mood),
        ):
            assert await _state(cache, table, record.id) is SyncState.SYNCED

    @pytest.mark.asyncio
    async def test_oldest_first_within_kind(self, engine, remote, source, monitor):
        await _go_offline(source, monitor)
        newest, oldest, middle = _journal(day=5), _journal(day=1), _journal(day=3)
        for entry in (newest, oldest, middle):
            await engine.save(entry)

        await _go_online(source, monitor)
        await engine.sweep()

        assert [record_id for _, record_id in remote.upserts] == [oldest.id, middle.id, newest.id]

    @pytest.mark.asyncio
    async def test_sweep_skips_synced_records(self, engine, remote):
        await engine.save(_journal())
        await engine.drain()

        report = await engine.sweep()

        assert report.attempted == 0
        assert len(remote.upserts) == 1

    @pytest.mark.asyncio
    async def test_skipped_offline(self, engine, source, monitor):
        await _go_offline(source, monitor)
        await engine.save(_journal())

        report = await engine.sweep()

        assert report.skipped is True
        assert report.attempted == 0

    @pytest.mark.asyncio
    async def test_skipped_signed_out(self, engine, remote):
        remote.user_id = None
        await engine.save(_journal())

        assert (await engine.sweep()).skipped is True

    @pytest.mark.asyncio
    async def test_single_flight(self, engine, remote, source, monitor):
        await _go_offline(source, monitor)
        for day in range(3):
            await engine.save(_journal(day=day))
        await _go_online(source, monitor)
        remote.delay = 0.05

        first = asyncio.create_task(engine.sweep())
        await asyncio.sleep(0)
        assert engine.sweep_in_progress is True

        second = await engine.sweep()
        engine.request_sweep()
        report = await first
        await engine.drain()

        assert second.skipped is True
        assert report.synced == 3
        assert len(remote.upserts) == 3
        assert engine.sweep_in_progress is False

    @pytest.mark.asyncio
    async def test_one_failure_does_not_block_the_rest(self, engine, cache, remote, source, monitor):
        await _go_offline(source, monitor)
        failing, fine = _journal(day=0), _journal(day=1)
        await engine.save(failing)
        await engine.save(fine)
        await _go_online(source, monitor)
        remote.fail_ids = {failing.id}

        report = await engine.sweep()

        assert (report.attempted, report.synced, report.failed) == (2, 1, 1)
        assert not report.clean
        row = await cache.get(JOURNAL_TABLE, failing.id)
        assert row["sync_attempts"] == 1
        assert await _state(cache, JOURNAL_TABLE, fine.id) is SyncState.SYNCED

    @pytest.mark.asyncio
    async def test_dead_letter_and_retry(self, engine, cache, remote, source, monitor):
        await _go_offline(source, monitor)
        entry = _journal()
        await engine.save(entry)
        await _go_online(source, monitor)
        remote.fail_ids = {entry.id}

        reports = [await engine.sweep() for _ in range(3)]

        assert [r.failed for r in reports] == [1, 1, 1]
        assert [r.dead_lettered for r in reports] == [0, 0, 1]
        assert (await engine.pending_counts())[RecordKind.JOURNAL] == PendingCounts(
            unsynced=0, dead_letter=1,
        )
        assert (await engine.sweep()).attempted == 0

        remote.fail_ids = set()
        assert await engine.retry_dead_letters() == 1
        report = await engine.sweep()

        assert report.synced == 1
        assert await _state(cache, JOURNAL_TABLE, entry.id) is SyncState.SYNCED

    @pytest.mark.asyncio
    async def test_sign_out_mid_sweep_stops_quietly(self, engine, cache, remote, source, monitor):
        await _go_offline(source, monitor)
        entry = _journal()
        await engine.save(entry)
        await _go_online(source, monitor)
        remote.upsert = AsyncMock(side_effect=NotSignedInError("No signed-in user"))

        report = await engine.sweep()

        assert (report.attempted, report.failed) == (0, 0)
        assert (await cache.get(JOURNAL_TABLE, entry.id))["sync_attempts"] == 0
        assert engine.sweep_in_progress is False

    @pytest.mark.asyncio
    async def test_reconnect_triggers_sweep(self, engine, cache, remote, source, monitor):
        monitor.add_reconnect_listener(engine.request_sweep)
        await _go_offline(source, monitor)
        entry = _journal()
        await engine.save(entry)

        await _go_online(source, monitor)
        await engine.drain()

        assert remote.upserts == [("journals", entry.id)]
        assert await _state(cache, JOURNAL_TABLE, entry.id) is SyncState.SYNCED

    @pytest.mark.asyncio
    async def test_pending_counts_cover_every_kind(self, engine, source, monitor):
        await _go_offline(source, monitor)
        await engine.save(_journal())

        counts = await engine.pending_counts()

        assert set(counts) == set(RecordKind)
        assert counts[RecordKind.JOURNAL].unsynced == 1
        assert counts[RecordKind.MOOD].unsynced == 0


# ---------------------------------------------------------------------------
# Read helpers
# ---------------------------------------------------------------------------

class TestRemoteReads:

    @pytest.mark.asyncio
    async def test_hydrate_caches_documents_as_synced(self, engine, cache, remote):
        entry = _journal()
        remote.docs["journals"][entry.id] = entry.to_remote()

        records = await engine.hydrate(RecordKind.JOURNAL, order_by="date", descending=True)

        assert [r.id for r in records] == [entry.id]
        assert records[0].sync_state is SyncState.SYNCED
        assert await _state(cache, JOURNAL_TABLE, entry.id) is SyncState.SYNCED

    @pytest.mark.asyncio
    async def test_hydrate_skips_malformed_documents(self, engine, remote):
        good = _journal()
        remote.docs["journals"][good.id] = good.to_remote()
        remote.docs["journals"]["bad"] = {"id": "bad", "text": "no emotion or date"}

        records = await engine.hydrate(RecordKind.JOURNAL)

        assert [r.id for r in records] == [good.id]

    @pytest.mark.asyncio
    async def test_hydrate_offline_returns_empty(self, engine, remote, source, monitor):
        entry = _journal()
        remote.docs["journals"][entry.id] = entry.to_remote()
        await _go_offline(source, monitor)

        assert await engine.hydrate(RecordKind.JOURNAL) == []

    @pytest.mark.asyncio
    async def test_hydrate_remote_failure_returns_empty(self, engine, remote):
        remote.fail_all = True

        assert await engine.hydrate(RecordKind.MOOD) == []

    @pytest.mark.asyncio
    async def test_merge_remote(self, engine, cache):
        conversation = ChatConversation(title="Evening check-in", created_at=_BASE, last_message_at=_BASE)

        merged = await engine.merge_remote(RecordKind.CONVERSATION, [conversation.to_remote()])

        assert merged == 1
        row = await cache.get(CONVERSATION_TABLE, conversation.id)
        assert row["title"] == "Evening check-in"
        assert row["sync_state"] == SyncState.SYNCED

    @pytest.mark.asyncio
    async def test_follow_merges_pushed_documents(self, engine, cache, remote):
        engine.follow(RecordKind.CONVERSATION)
        engine.follow(RecordKind.CONVERSATION)
        callback = remote.subscriptions["conversations"]
        conversation = ChatConversation(title="From another device", created_at=_BASE, last_message_at=_BASE)

        # The realtime client delivers on its own thread
        await asyncio.to_thread(callback, conversation.to_remote())
        await engine.drain()

        assert (await cache.get(CONVERSATION_TABLE, conversation.id))["title"] == "From another device"

        engine.unfollow_all()
        assert remote.subscriptions == {}

    @pytest.mark.asyncio
    async def test_follow_signed_out_is_logged_not_raised(self, engine, remote):
        remote.user_id = None

        engine.follow(RecordKind.CONVERSATION)

        assert remote.subscriptions == {}


# ---------------------------------------------------------------------------
# Deletes
# ---------------------------------------------------------------------------

class TestDeletes:

    @pytest.mark.asyncio
    async def test_delete_reaches_both_stores(self, engine, cache, remote):
        entry = await engine.save(_journal())
        await engine.drain()

        await engine.delete(RecordKind.JOURNAL, entry.id)
        await engine.drain()

        assert await cache.get(JOURNAL_TABLE, entry.id) is None
        assert remote.docs["journals"] == {}

    @pytest.mark.asyncio
    async def test_delete_offline_is_local_only(self, engine, cache, remote, source, monitor):
        entry = await engine.save(_journal())
        await engine.drain()
        await _go_offline(source, monitor)

        await engine.delete(RecordKind.JOURNAL, entry.id)
        await engine.drain()

        assert await cache.get(JOURNAL_TABLE, entry.id) is None
        assert remote.deletes == []

    @pytest.mark.asyncio
    async def test_delete_conversation_removes_its_messages(self, engine, cache, remote):
        conversation = ChatConversation(created_at=_BASE, last_message_at=_BASE)
        await engine.save(conversation)
        for text in ("one", "two"):
            await engine.save(ChatMessage(text=text, sender="user", conversation_id=conversation.id))
        other = await engine.save(ChatMessage(text="keep", sender="user", conversation_id="other"))
        await engine.drain()

        await engine.delete_conversation(conversation.id)
        await engine.drain()

        assert await cache.count(MESSAGE_TABLE) == 1
        assert await cache.get(MESSAGE_TABLE, other.id) is not None
        assert await cache.get(CONVERSATION_TABLE, conversation.id) is None
        assert remote.deletes == [
            ("chat_messages", {"conversation_id": conversation.id}),
            ("conversations", {"id": conversation.id}),
        ]

    @pytest.mark.asyncio
    async def test_clear_empties_kinds(self, engine, cache, remote):
        conversation = await engine.save(ChatConversation(created_at=_BASE, last_message_at=_BASE))
        await engine.save(ChatMessage(text="hi", sender="user", conversation_id=conversation.id))
        entry = await engine.save(_journal())
        await engine.drain()

        await engine.clear([RecordKind.MESSAGE, RecordKind.CONVERSATION])
        await engine.drain()

        assert await cache.count(MESSAGE_TABLE) == 0
        assert await cache.count(CONVERSATION_TABLE) == 0
        assert await cache.get(JOURNAL_TABLE, entry.id) is not None
        assert remote.docs["chat_messages"] == {}
        assert remote.docs["conversations"] == {}

    @pytest.mark.asyncio
    async def test_remote_delete_failure_is_swallowed(self, cache, monitor):
        remote = FakeRemote()
        engine = SyncEngine(cache, remote, monitor)
        entry = await engine.save(_journal())
        await engine.drain()
        remote.fail_all = True

        await engine.delete(RecordKind.JOURNAL, entry.id)
        await engine.drain()

        assert await cache.get(JOURNAL_TABLE, entry.id) is None
