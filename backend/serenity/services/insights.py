"""
Mood Insights
=============
Aggregates over mood records for the dashboard: average score, category
distribution, per-day average scores and the recent trend.

All functions are pure and take records oldest first. Days are calendar
days of the stored (UTC) timestamp.
"""

from __future__ import annotations

import logging
from typing import Sequence

import pandas as pd

from serenity.models.mood import NEUTRAL_SCORE, DailyMoodPoint, MoodRecord, MoodTrend

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

TREND_WINDOW_DAYS = 14
MIN_TREND_ENTRIES = 3
TREND_THRESHOLD = 1.0  # points of average score between halves


def mood_frame(records: Sequence[MoodRecord]) -> pd.DataFrame:
    """One row per record: ``date`` (datetime), ``day``, ``score``, ``mood``."""
    frame = pd.DataFrame(
        [{"date": r.date, "score": r.score, "mood": r.mood.value} for r in records],
        columns=["date", "score", "mood"],
    )
    frame["day"] = [r.date.date() for r in records]
    return frame


def average_score(records: Sequence[MoodRecord]) -> float:
    if not records:
        return float(NEUTRAL_SCORE)
    return float(mood_frame(records)["score"].mean())


def mood_distribution(records: Sequence[MoodRecord]) -> dict[str, int]:
    if not records:
        return {}
    counts = mood_frame(records)["mood"].value_counts()
    return {str(mood): int(count) for mood, count in counts.items()}


def daily_scores(records: Sequence[MoodRecord]) -> list[DailyMoodPoint]:
    """Average score per calendar day, oldest day first."""
    if not records:
        return []
    daily = mood_frame(records).groupby("day")["score"].mean().sort_index()
    return [DailyMoodPoint(day=day, score=float(score)) for day, score in daily.items()]


def mood_trend(records: Sequence[MoodRecord]) -> MoodTrend:
    """Compare the average of the older half against the newer half.

    *records* should be the last ``TREND_WINDOW_DAYS`` of entries, oldest
    first. With an odd count the newer half gets the extra entry.
    """
    if len(records) < MIN_TREND_ENTRIES:
        return MoodTrend.INSUFFICIENT

    scores = mood_frame(records)["score"]
    midpoint = len(scores) // 2
    diff = scores.iloc[midpoint:].mean() - scores.iloc[:midpoint].mean()

    logger.debug("Mood trend over %d entries: diff=%.2f", len(scores), diff)
    if diff > TREND_THRESHOLD:
        return MoodTrend.IMPROVING
    if diff < -TREND_THRESHOLD:
        return MoodTrend.DECLINING
    return MoodTrend.STABLE
