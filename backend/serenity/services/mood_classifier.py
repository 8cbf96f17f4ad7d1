"""
Mood Classifier
===============
Maps free text to a 1-10 mood score, a mood category and a normalised
emotion breakdown using keyword matching. No I/O, no randomness: the same
text always yields the same result, and every string input is handled.

Algorithm:
    1. Lower-case the text.
    2. For every keyword contained in the text, add 1.0 to its category's
       accumulator and 1.0 to the running total weight.
    3. For every negation prefix immediately followed by a positive
       keyword ("not happy"), subtract 1.0 from that positive category and
       add 0.5 to sad. The total weight is left untouched.
    4. Drop accumulators <= 0.
    5. No keyword at all -> score 5, neutral, {neutral: 1.0}.
    6. Otherwise divide each accumulator by the total weight, take the
       weighted average of the per-category scores, round half up, clamp
       to 1-10, and pick the category from the score bucket unless one
       emotion holds more than half of the weight.

Because step 3 does not touch the total, a negated text's breakdown sums
to less than 1. Kept as-is so stored breakdowns stay comparable over time.
"""

from __future__ import annotations

import logging
import math

from serenity.models.mood import (
    MAX_SCORE,
    MIN_SCORE,
    NEUTRAL_SCORE,
    MoodAnalysisResult,
    MoodCategory,
    mood_from_score,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Keyword tables
# ---------------------------------------------------------------------------

POSITIVE_KEYWORDS: dict[MoodCategory, tuple[str, ...]] = {
    MoodCategory.HAPPY: ("happy", "joy", "joyful", "delighted", "cheerful", "elated", "thrilled"),
    MoodCategory.CALM: ("calm", "peaceful", "relaxed", "serene", "tranquil", "at ease", "comfortable"),
    MoodCategory.GRATEFUL: ("grateful", "thankful", "blessed", "appreciate", "appreciation", "fortunate"),
    MoodCategory.HOPEFUL: ("hopeful", "optimistic", "looking forward", "excited", "motivated", "inspired"),
    MoodCategory.EXCELLENT: ("amazing", "wonderful", "fantastic", "incredible", "awesome", "great", "perfect"),
}

NEGATIVE_KEYWORDS: dict[MoodCategory, tuple[str, ...]] = {
    MoodCategory.SAD: (
        "sad", "unhappy", "depressed", "down", "miserable", "heartbroken",
        "grief", "lonely", "alone", "crying", "tears",
    ),
    MoodCategory.ANXIOUS: (
        "anxious", "worried", "nervous", "panic", "fear", "scared",
        "terrified", "uneasy", "overthinking", "restless",
    ),
    MoodCategory.ANGRY: (
        "angry", "furious", "rage", "frustrated", "irritated", "annoyed", "mad", "upset",
    ),
    MoodCategory.STRESSED: (
        "stressed", "overwhelmed", "pressure", "burnout", "exhausted",
        "drained", "tired", "burnt out", "overloaded",
    ),
    MoodCategory.DISTRESSED: (
        "helpless", "hopeless", "worthless", "broken", "suffering", "pain",
        "hurt", "struggling", "desperate", "suicidal", "self-harm",
    ),
}

NEUTRAL_KEYWORDS: dict[MoodCategory, tuple[str, ...]] = {
    MoodCategory.NEUTRAL: ("okay", "fine", "alright", "so-so", "meh", "not bad", "decent", "average"),
}

NEGATION_PREFIXES: tuple[str, ...] = (
    "not ", "don't ", "can't ", "isn't ", "aren't ", "won't ", "doesn't ", "never ",
)

# Scan order matters: it fixes the accumulator order, and with it which
# category wins a tie for dominance.
_SCAN_ORDER = (POSITIVE_KEYWORDS, NEGATIVE_KEYWORDS, NEUTRAL_KEYWORDS)

CATEGORY_SCORES: dict[MoodCategory, float] = {
    MoodCategory.EXCELLENT: 10.0,
    MoodCategory.HAPPY: 8.0,
    MoodCategory.GRATEFUL: 8.5,
    MoodCategory.HOPEFUL: 7.5,
    MoodCategory.CALM: 7.0,
    MoodCategory.NEUTRAL: 5.0,
    MoodCategory.STRESSED: 3.5,
    MoodCategory.ANGRY: 3.0,
    MoodCategory.ANXIOUS: 3.0,
    MoodCategory.SAD: 2.5,
    MoodCategory.DISTRESSED: 1.5,
}

NEGATION_SAD_BOOST = 0.5
DOMINANCE_THRESHOLD = 0.5


def neutral_result() -> MoodAnalysisResult:
    return MoodAnalysisResult(
        score=NEUTRAL_SCORE,
        mood=MoodCategory.NEUTRAL,
        emotions={MoodCategory.NEUTRAL: 1.0},
    )


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def analyze_message(text: str) -> MoodAnalysisResult:
    """Classify *text* into a score, a category and an emotion breakdown."""
    lower_text = (text or "").lower()
    accumulators: dict[MoodCategory, float] = {}
    total_weight = 0.0

    for table in _SCAN_ORDER:
        for category, keywords in table.items():
            for keyword in keywords:
                if keyword in lower_text:
                    accumulators[category] = accumulators.get(category, 0.0) + 1.0
                    total_weight += 1.0

    # "not happy" counted as happy above; take it back and lean towards sad.
    for prefix in NEGATION_PREFIXES:
        for category, keywords in POSITIVE_KEYWORDS.items():
            for keyword in keywords:
                if f"{prefix}{keyword}" in lower_text:
                    accumulators[category] = accumulators.get(category, 0.0) - 1.0
                    accumulators[MoodCategory.SAD] = (
                        accumulators.get(MoodCategory.SAD, 0.0) + NEGATION_SAD_BOOST
                    )

    accumulators = {category: value for category, value in accumulators.items() if value > 0}

    if total_weight == 0:
        return neutral_result()

    normalised = {category: value / total_weight for category, value in accumulators.items()}
    weighted_score = sum(CATEGORY_SCORES[category] * weight for category, weight in normalised.items())

    score = max(MIN_SCORE, min(MAX_SCORE, _round_half_up(weighted_score)))
    mood = mood_from_score(score)

    if normalised:
        # Ties go to the category detected last.
        dominant, weight = next(iter(normalised.items()))
        for category, value in normalised.items():
            if value >= weight:
                dominant, weight = category, value
        if weight > DOMINANCE_THRESHOLD:
            mood = dominant

    logger.debug("Classified text (%d chars): score=%d mood=%s", len(lower_text), score, mood.value)
    return MoodAnalysisResult(score=score, mood=mood, emotions=normalised)
