"""
Tests for /api/v1/mood
======================
Covers:
- POST /analyze: classifier result, no persistence
- POST: manual mood, 201; score and mood validation
- GET: all or last N days
- GET /today: 200 or 204
- GET /insights and /suggestions
- POST /analyze-today: 200 or 204

Run: pytest tests/test_mood_api.py -v
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from serenity.dependencies import get_mood_service
from serenity.main import app
from serenity.models.mood import (
    DailyMoodPoint,
    MoodEntryCreate,
    MoodInsightsResponse,
    MoodOrigin,
    MoodRecord,
    MoodTrend,
)
from serenity.services.activities import suggest_activities
from serenity.services.mood import MoodService

_RECORD = MoodRecord(
    mood="anxious",
    score=3,
    note="Detected from 2 chat messages",
    source=MoodOrigin.CHAT,
    date=datetime(2026, 3, 3, 21, 0, tzinfo=timezone.utc),
    emotion_breakdown={"anxious": 0.75, "stressed": 0.25},
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def moods() -> MagicMock:
    return MagicMock(spec=MoodService)


@pytest.fixture
def client(moods):
    app.dependency_overrides[get_mood_service] = lambda: moods
    yield TestClient(app)
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestAnalyze:

    def test_analyze_returns_classification(self, client, moods):
        resp = client.post("/api/v1/mood/analyze", json={"text": "I feel happy"})

        assert resp.status_code == 200
        assert resp.json() == {"score": 8, "mood": "happy", "emotions": {"happy": 1.0}}
        moods.save.assert_not_called()

    def test_analyze_empty_text_is_neutral(self, client):
        resp = client.post("/api/v1/mood/analyze", json={})

        assert resp.json()["mood"] == "neutral"


class TestLogMood:

    def test_log_mood(self, client, moods):
        moods.log_mood.return_value = MoodRecord(mood="calm", score=7, source=MoodOrigin.MANUAL)

        resp = client.post("/api/v1/mood", json={"mood": "calm", "score": 7, "note": "After a walk"})

        assert resp.status_code == 201
        assert resp.json()["source"] == "manual"
        body = moods.log_mood.await_args.args[0]
        assert isinstance(body, MoodEntryCreate)
        assert body.note == "After a walk"

    @pytest.mark.parametrize("payload", [
        {"mood": "calm", "score": 11},
        {"mood": "calm", "score": 0},
        {"mood": "bored", "score": 5},
    ])
    def test_invalid_entry_rejected(self, client, moods, payload):
        assert client.post("/api/v1/mood", json=payload).status_code == 422
        moods.log_mood.assert_not_awaited()


class TestReads:

    def test_list_all(self, client, moods):
        moods.list_all.return_value = [_RECORD]

        resp = client.get("/api/v1/mood")

        data = resp.json()
        assert data[0]["emotion_breakdown"] == {"anxious": 0.75, "stressed": 0.25}
        moods.recent.assert_not_awaited()

    def test_list_recent(self, client, moods):
        moods.recent.return_value = []

        client.get("/api/v1/mood", params={"days": 14})

        moods.recent.assert_awaited_once_with(14)

    def test_today(self, client, moods):
        moods.today.return_value = _RECORD

        resp = client.get("/api/v1/mood/today")

        assert resp.status_code == 200
        assert resp.json()["id"] == _RECORD.id

    def test_today_empty_is_204(self, client, moods):
        moods.today.return_value = None

        resp = client.get("/api/v1/mood/today")

        assert resp.status_code == 204
        assert resp.content == b""

    def test_insights(self, client, moods):
        moods.dashboard.return_value = MoodInsightsResponse(
            days=14,
            average_score=4.5,
            trend=MoodTrend.DECLINING,
            distribution={"anxious": 3, "calm": 1},
            daily_scores=[DailyMoodPoint(day=date(2026, 3, 3), score=4.5)],
            today=_RECORD,
            suggestions=suggest_activities(_RECORD.mood, _RECORD.score),
        )

        resp = client.get("/api/v1/mood/insights", params={"days": 14})

        assert resp.status_code == 200
        data = resp.json()
        assert data["trend"] == "declining"
        assert data["daily_scores"] == [{"day": "2026-03-03", "score": 4.5}]
        assert data["suggestions"][0]["title"] == "Mindful Breathing"
        moods.dashboard.assert_awaited_once_with(14)

    def test_suggestions(self, client, moods):
        moods.suggestions.return_value = suggest_activities(_RECORD.mood, _RECORD.score)

        resp = client.get("/api/v1/mood/suggestions")

        assert resp.json()[-1]["title"] == "Progressive Muscle Relaxation"


class TestAnalyzeToday:

    def test_analyze_today(self, client, moods):
        moods.analyze_today_chats.return_value = _RECORD

        resp = client.post("/api/v1/mood/analyze-today")

        assert resp.status_code == 200
        assert resp.json()["source"] == "chat"

    def test_no_chats_today_is_204(self, client, moods):
        moods.analyze_today_chats.return_value = None

        assert client.post("/api/v1/mood/analyze-today").status_code == 204
