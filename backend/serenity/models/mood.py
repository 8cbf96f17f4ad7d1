"""
Mood Schemas
============
Mood categories, the classifier result, the persisted mood record and the
request/response models for the mood API.

Key design decisions:
- Categories are a closed enum. Every table keyed by category (score map,
  keyword lists, suggestions) covers the whole enum, so an unknown label
  can never fall silently into a default branch.
- ``score`` is clamped to 1-10 when a record is built, whatever the source
  (classifier, local row, remote document). Manual entries from the API
  are validated strictly instead (422 on out-of-range).
- ``emotion_breakdown`` weights are non-negative but need not sum to 1;
  negated positive keywords leave a gap (see the classifier).
"""

from __future__ import annotations

import json
from datetime import date, datetime
from enum import Enum
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


# ---------------------------------------------------------------------------
# Allowed values
# ---------------------------------------------------------------------------

class MoodCategory(str, Enum):
    EXCELLENT = "excellent"
    HAPPY = "happy"
    CALM = "calm"
    GRATEFUL = "grateful"
    HOPEFUL = "hopeful"
    NEUTRAL = "neutral"
    STRESSED = "stressed"
    ANXIOUS = "anxious"
    ANGRY = "angry"
    SAD = "sad"
    DISTRESSED = "distressed"


class MoodOrigin(str, Enum):
    """Provenance of a mood record."""

    CHAT = "chat"  # derived automatically from chat messages
    MANUAL = "manual"  # entered explicitly by the user


class MoodTrend(str, Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"
    INSUFFICIENT = "insufficient"  # not enough data


MIN_SCORE = 1
MAX_SCORE = 10
NEUTRAL_SCORE = 5


def clamp_score(value: int) -> int:
    return max(MIN_SCORE, min(MAX_SCORE, int(value)))


def mood_from_score(score: int) -> MoodCategory:
    """Default category for a 1-10 score, before any dominant-emotion override."""
    if score >= 9:
        return MoodCategory.EXCELLENT
    if score >= 7:
        return MoodCategory.HAPPY
    if score >= 5:
        return MoodCategory.NEUTRAL
    if score >= 3:
        return MoodCategory.SAD
    return MoodCategory.DISTRESSED


def _clean_breakdown(value: Any) -> dict[str, float]:
    if not value:
        return {}
    breakdown: dict[str, float] = {}
    for key, weight in dict(value).items():
        weight = float(weight)
        if weight < 0:
            raise ValueError(f"emotion weight for '{key}' must be non-negative")
        breakdown[MoodCategory(key).value] = weight
    return breakdown


# ---------------------------------------------------------------------------
# Classifier output
# ---------------------------------------------------------------------------

class MoodAnalysisResult(BaseModel):
    """Score, category and normalised emotion weights for one block of text."""

    score: int = Field(..., ge=MIN_SCORE, le=MAX_SCORE)
    mood: MoodCategory
    emotions: dict[MoodCategory, float] = Field(default_factory=dict)

    @property
    def is_neutral_default(self) -> bool:
        """True when nothing but the no-keywords neutral default was found."""
        return set(self.emotions) <= {MoodCategory.NEUTRAL}


# ---------------------------------------------------------------------------
# Persisted record
# ---------------------------------------------------------------------------

class MoodRecord(SyncableRecord):
    """A detected (chat) or entered (manual) mood for a point in time."""

    mood: MoodCategory
    score: int = NEUTRAL_SCORE
    note: str = ""
    source: MoodOrigin = MoodOrigin.MANUAL
    date: datetime = Field(default_factory=utc_now)
    emotion_breakdown: dict[MoodCategory, float] = Field(default_factory=dict)

    @field_validator("score", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> int:
        return clamp_score(value)

    @field_validator("date")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        return ensure_aware(value)

    @field_validator("emotion_breakdown", mode="before")
    @classmethod
    def _non_negative(cls, value: Any) -> dict[str, float]:
        return _clean_breakdown(value)

    @property
    def is_negative(self) -> bool:
        return self.score <= 4

    @property
    def is_positive(self) -> bool:
        return self.score >= 7

    def _breakdown_values(self) -> dict[str, float]:
        return {category.value: weight for category, weight in self.emotion_breakdown.items()}

    def to_local(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "mood": self.mood.value,
            "score": self.score,
            "note": self.note,
            "source": self.source.value,
            "date": to_epoch_ms(self.date),
            "emotion_breakdown": json.dumps(self._breakdown_values()),
            "sync_state": int(self.sync_state),
        }

    @classmethod
    def from_local(cls, row: dict[str, Any]) -> MoodRecord:
        raw_breakdown = row.get("emotion_breakdown") or ""
        return cls(
            id=row["id"],
            mood=row["mood"],
            score=row["score"],
            note=row.get("note") or "",
            source=row.get("source") or MoodOrigin.MANUAL,
            date=from_epoch_ms(row["date"]),
            emotion_breakdown=json.loads(raw_breakdown) if raw_breakdown else {},
            sync_state=row.get("sync_state", SyncState.UNSYNCED),
        )

    def to_remote(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "mood": self.mood.value,
            "score": self.score,
            "note": self.note,
            "source": self.source.value,
            "date": to_iso(self.date),
            "emotion_breakdown": self._breakdown_values(),
        }

    @classmethod
    def from_remote(cls, doc: dict[str, Any]) -> MoodRecord:
        return cls(
            id=doc["id"],
            mood=doc["mood"],
            score=int(doc["score"]),
            note=doc.get("note") or "",
            source=doc.get("source") or MoodOrigin.MANUAL,
            date=parse_iso(doc["date"]),
            emotion_breakdown=doc.get("emotion_breakdown") or {},
            sync_state=SyncState.SYNCED,
        )


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------

class MoodAnalyzeRequest(BaseModel):
    """Free text to run through the keyword classifier."""

    text: str = Field(default="", max_length=10000)


class MoodEntryCreate(BaseModel):
    """Payload the app sends when the user logs a mood manually."""

    mood: MoodCategory
    score: int = Field(
        ...,
        ge=MIN_SCORE,
        le=MAX_SCORE,
        description="Self-reported mood score. 1 = very low, 10 = excellent.",
    )
    note: str = Field(default="", max_length=1000)
    date: Optional[datetime] = Field(
        default=None,
        description="When the mood was felt. Defaults to now.",
    )


# ---------------------------------------------------------------------------
# Response
# ---------------------------------------------------------------------------

class ActivitySuggestion(BaseModel):
    """A short self-care activity suggested for the current mood."""

    title: str
    description: str
    icon: str  # Material icon name
    category: str  # breathing | movement | social | creative | mindfulness


class DailyMoodPoint(BaseModel):
    """A single day's average mood score."""

    day: date
    score: float


class MoodInsightsResponse(BaseModel):
    """Everything the mood dashboard renders, in one round-trip."""

    days: int
    average_score: float
    trend: MoodTrend
    distribution: dict[str, int]
    daily_scores: list[DailyMoodPoint]
    today: Optional[MoodRecord] = None
    suggestions: list[ActivitySuggestion]
