"""
Mood Service
============
Mood tracking on top of the local cache: manual entries, chat-derived
day aggregates, dashboard insights and activity suggestions.

``aggregate_day`` turns a day's chat messages into one mood record:
    - only the user's messages count; AI replies are ignored
    - no user messages -> neutral default (score 5, origin chat, no breakdown)
    - otherwise the texts are space-joined and classified once

Reads go to the local cache first. When a local query is empty the sync
engine hydrates it from the remote store, once.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional

from serenity.db.local import MESSAGE_TABLE, MOOD_TABLE, LocalCache
from serenity.models.base import to_epoch_ms, to_iso, utc_now
from serenity.models.chat import ChatMessage, Sender
from serenity.models.mood import (
    NEUTRAL_SCORE,
    ActivitySuggestion,
    DailyMoodPoint,
    MoodCategory,
    MoodEntryCreate,
    MoodInsightsResponse,
    MoodOrigin,
    MoodRecord,
    MoodTrend,
)
from serenity.models.sync import RecordKind
from serenity.services import insights
from serenity.services.activities import suggest_activities
from serenity.services.mood_classifier import analyze_message
from serenity.services.sync_engine import SyncEngine

logger = logging.getLogger(__name__)


def aggregate_day(messages: Iterable[ChatMessage], date: datetime) -> MoodRecord:
    """One chat-origin mood record summarising a day's user messages."""
    user_texts = [m.text for m in messages if m.sender is Sender.USER]
    if not user_texts:
        return MoodRecord(
            mood=MoodCategory.NEUTRAL,
            score=NEUTRAL_SCORE,
            source=MoodOrigin.CHAT,
            date=date,
        )

    result = analyze_message(" ".join(user_texts))
    count = len(user_texts)
    return MoodRecord(
        mood=result.mood,
        score=result.score,
        note=f"Detected from {count} chat message{'s' if count > 1 else ''}",
        source=MoodOrigin.CHAT,
        date=date,
        emotion_breakdown=result.emotions,
    )


def _start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


class MoodService:
    """Mood records: persistence, aggregates and suggestions."""

    def __init__(self, cache: LocalCache, engine: SyncEngine) -> None:
        self._cache = cache
        self._engine = engine

    # ---- Writes -------------------------------------------------------------

    async def save(self, record: MoodRecord) -> MoodRecord:
        saved = await self._engine.save(record)
        logger.info("Saved %s mood %s (%d)", record.source.value, record.mood.value, record.score)
        return saved

    async def log_mood(self, body: MoodEntryCreate) -> MoodRecord:
        """Manual entry from the mood screen."""
        return await self.save(MoodRecord(
            mood=body.mood,
            score=body.score,
            note=body.note,
            source=MoodOrigin.MANUAL,
            date=body.date or utc_now(),
        ))

    # ---- Reads --------------------------------------------------------------

    async def list_all(self) -> list[MoodRecord]:
        """Every mood record, newest first."""
        rows = await self._cache.query(MOOD_TABLE, order_by="date", descending=True)
        if rows:
            return [MoodRecord.from_local(row) for row in rows]
        return await self._engine.hydrate(RecordKind.MOOD, order_by="date", descending=True)

    async def recent(self, days: int) -> list[MoodRecord]:
        """Records from the last *days* days, oldest first."""
        cutoff = utc_now() - timedelta(days=days)
        rows = await self._cache.query(
            MOOD_TABLE,
            min_values={"date": to_epoch_ms(cutoff)},
            order_by="date",
        )
        if rows:
            return [MoodRecord.from_local(row) for row in rows]
        if await self._cache.count(MOOD_TABLE):
            return []
        return await self._engine.hydrate(
            RecordKind.MOOD, since=("date", to_iso(cutoff)), order_by="date",
        )

    async def today(self) -> Optional[MoodRecord]:
        """Latest record dated today, if any."""
        start = _start_of_day(utc_now())
        rows = await self._cache.query(
            MOOD_TABLE,
            min_values={"date": to_epoch_ms(start)},
            max_values={"date": to_epoch_ms(start + timedelta(days=1)) - 1},
            order_by="date",
            descending=True,
            limit=1,
        )
        return MoodRecord.from_local(rows[0]) if rows else None

    async def average_score(self, days: int) -> float:
        return insights.average_score(await self.recent(days))

    async def distribution(self, days: int) -> dict[str, int]:
        return insights.mood_distribution(await self.recent(days))

    async def daily_scores(self, days: int) -> list[DailyMoodPoint]:
        return insights.daily_scores(await self.recent(days))

    async def trend(self) -> MoodTrend:
        return insights.mood_trend(await self.recent(insights.TREND_WINDOW_DAYS))

    # ---- Suggestions & dashboard -------------------------------------------

    async def suggestions(self) -> list[ActivitySuggestion]:
        """Based on today's mood, else the latest recent one, else neutral."""
        latest = await self.today()
        if latest is None:
            recent = await self.recent(7)
            latest = recent[-1] if recent else None
        if latest is None:
            return suggest_activities(MoodCategory.NEUTRAL, NEUTRAL_SCORE)
        return suggest_activities(latest.mood, latest.score)

    async def dashboard(self, days: int = 7) -> MoodInsightsResponse:
        await self.analyze_today_chats()
        records = await self.recent(days)
        trend_records = await self.recent(insights.TREND_WINDOW_DAYS)
        today = await self.today()
        anchor = today or (records[-1] if records else None)
        suggestions = (
            suggest_activities(anchor.mood, anchor.score)
            if anchor
            else suggest_activities(MoodCategory.NEUTRAL, NEUTRAL_SCORE)
        )
        return MoodInsightsResponse(
            days=days,
            average_score=insights.average_score(records),
            trend=insights.mood_trend(trend_records),
            distribution=insights.mood_distribution(records),
            daily_scores=insights.daily_scores(records),
            today=today,
            suggestions=suggestions,
        )

    async def analyze_today_chats(self) -> Optional[MoodRecord]:
        """Derive today's chat mood from today's user messages in the cache.

        Returns the existing record when today already has a chat-derived
        mood, ``None`` when there is nothing to analyse.
        """
        existing = await self.today()
        if existing is not None and existing.source is MoodOrigin.CHAT:
            return existing

        start = _start_of_day(utc_now())
        rows = await self._cache.query(
            MESSAGE_TABLE,
            where={"sender": Sender.USER.value},
            min_values={"timestamp": to_epoch_ms(start)},
            order_by="timestamp",
        )
        if not rows:
            return None
        record = aggregate_day([ChatMessage.from_local(row) for row in rows], utc_now())
        return await self.save(record)
