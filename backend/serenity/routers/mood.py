"""
Mood Router
===========
Mood analysis, manual mood logging and the mood dashboard.

POST /api/v1/mood/analyze        — Classify free text (no persistence)
POST /api/v1/mood                — Log a mood manually
GET  /api/v1/mood                — Mood history (all, or the last N days)
GET  /api/v1/mood/today          — Today's latest mood, if any
GET  /api/v1/mood/insights       — Average, trend, distribution, daily scores
GET  /api/v1/mood/suggestions    — Activity suggestions for the current mood
POST /api/v1/mood/analyze-today  — Derive today's mood from today's chats

Analysis is keyword based and runs entirely on the device: no text leaves
the process on this router.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from serenity.dependencies import get_mood_service
from serenity.models.mood import (
    ActivitySuggestion,
    MoodAnalysisResult,
    MoodAnalyzeRequest,
    MoodEntryCreate,
    MoodInsightsResponse,
    MoodRecord,
)
from serenity.services.mood import MoodService
from serenity.services.mood_classifier import analyze_message

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/mood", tags=["mood"])


@router.post(
    "/analyze",
    response_model=MoodAnalysisResult,
    summary="Classify the mood of a piece of text",
    description=(
        "Runs the keyword classifier over the text and returns a 1-10 score, "
        "a mood category and the normalised emotion breakdown. Nothing is saved."
    ),
)
async def analyze(body: MoodAnalyzeRequest) -> MoodAnalysisResult:
    return analyze_message(body.text)


@router.post(
    "",
    response_model=MoodRecord,
    status_code=status.HTTP_201_CREATED,
    summary="Log a mood manually",
    responses={
        201: {"description": "Mood saved locally"},
        422: {"description": "Validation error (score outside 1-10, unknown mood)"},
        503: {"description": "Local cache unavailable"},
    },
)
async def log_mood(
    body: MoodEntryCreate,
    moods: MoodService = Depends(get_mood_service),
) -> MoodRecord:
    return await moods.log_mood(body)


@router.get("", response_model=list[MoodRecord], summary="Mood history")
async def list_moods(
    days: Optional[int] = Query(
        default=None, ge=1, le=3650,
        description="Only the last N days, oldest first. Omit for everything, newest first.",
    ),
    moods: MoodService = Depends(get_mood_service),
) -> list[MoodRecord]:
    if days is None:
        return await moods.list_all()
    return await moods.recent(days)


@router.get(
    "/today",
    response_model=MoodRecord,
    summary="Today's latest mood",
    responses={204: {"description": "No mood recorded today"}},
)
async def today(
    moods: MoodService = Depends(get_mood_service),
):
    record = await moods.today()
    if record is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return record


@router.get(
    "/insights",
    response_model=MoodInsightsResponse,
    summary="Mood dashboard",
    description=(
        "Analyses today's chats first if today has no chat-derived mood yet, "
        "then aggregates the last N days."
    ),
)
async def insights(
    days: int = Query(default=7, ge=1, le=365),
    moods: MoodService = Depends(get_mood_service),
) -> MoodInsightsResponse:
    return await moods.dashboard(days)


@router.get(
    "/suggestions",
    response_model=list[ActivitySuggestion],
    summary="Activity suggestions for the current mood",
)
async def suggestions(
    moods: MoodService = Depends(get_mood_service),
) -> list[ActivitySuggestion]:
    return await moods.suggestions()


@router.post(
    "/analyze-today",
    response_model=MoodRecord,
    summary="Derive today's mood from today's chat messages",
    responses={204: {"description": "No chat messages today"}},
)
async def analyze_today(
    moods: MoodService = Depends(get_mood_service),
):
    record = await moods.analyze_today_chats()
    if record is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return record
