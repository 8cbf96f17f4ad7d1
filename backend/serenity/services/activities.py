"""
Activity Suggestions
====================
Short self-care activities for the mood dashboard.

Selection:
    1. Mindful Breathing, always.
    2. One band keyed by score: <= 3, <= 5, <= 7, above 7.
    3. Extras for anxious/stressed, angry, and sad/distressed moods.

The copy avoids clinical language; these are wellbeing nudges, not advice.
"""

from __future__ import annotations

from serenity.models.mood import ActivitySuggestion, MoodCategory

MINDFUL_BREATHING = ActivitySuggestion(
    title="Mindful Breathing",
    description="Take 5 deep breaths. Inhale for 4s, hold 4s, exhale 6s.",
    icon="air",
    category="breathing",
)

# (inclusive upper score bound, suggestions); the last band catches the rest
SCORE_BANDS: tuple[tuple[int, tuple[ActivitySuggestion, ...]], ...] = (
    (3, (
        ActivitySuggestion(
            title="Grounding Exercise",
            description="Name 5 things you see, 4 you touch, 3 you hear, 2 you smell, 1 you taste.",
            icon="self_improvement",
            category="mindfulness",
        ),
        ActivitySuggestion(
            title="Reach Out",
            description="Text or call someone you trust. Connection helps during tough times.",
            icon="people",
            category="social",
        ),
        ActivitySuggestion(
            title="Gentle Walk",
            description="A short 10-minute walk outside can significantly boost your mood.",
            icon="directions_walk",
            category="movement",
        ),
        ActivitySuggestion(
            title="Listen to Calming Music",
            description="Put on soothing sounds or your favorite calming playlist.",
            icon="music_note",
            category="creative",
        ),
    )),
    (5, (
        ActivitySuggestion(
            title="Gratitude List",
            description="Write down 3 things you're grateful for, no matter how small.",
            icon="favorite",
            category="mindfulness",
        ),
        ActivitySuggestion(
            title="Light Stretching",
            description="5 minutes of gentle stretches to release physical tension.",
            icon="fitness_center",
            category="movement",
        ),
        ActivitySuggestion(
            title="Creative Expression",
            description="Draw, doodle, or write freely for 10 minutes without judgment.",
            icon="brush",
            category="creative",
        ),
        ActivitySuggestion(
            title="Nature Break",
            description="Step outside and observe nature for a few minutes. Fresh air helps.",
            icon="park",
            category="movement",
        ),
    )),
    (7, (
        ActivitySuggestion(
            title="Journaling",
            description="Write about what's going well today. Reinforce positive patterns.",
            icon="edit_note",
            category="mindfulness",
        ),
        ActivitySuggestion(
            title="Random Act of Kindness",
            description="Do something nice for someone. Kindness boosts your own happiness too.",
            icon="volunteer_activism",
            category="social",
        ),
    )),
)

HIGH_MOOD_SUGGESTIONS: tuple[ActivitySuggestion, ...] = (
    ActivitySuggestion(
        title="Celebrate This Feeling",
        description="Notice what's contributing to your good mood. Savor it!",
        icon="celebration",
        category="mindfulness",
    ),
    ActivitySuggestion(
        title="Share Your Joy",
        description="Tell someone about something good that happened to you.",
        icon="share",
        category="social",
    ),
)

_MUSCLE_RELAXATION = ActivitySuggestion(
    title="Progressive Muscle Relaxation",
    description="Tense and release each muscle group for 5 seconds. Start from your toes.",
    icon="accessibility_new",
    category="breathing",
)

_PHYSICAL_RELEASE = ActivitySuggestion(
    title="Physical Release",
    description="Try jumping jacks, push-ups, or running in place for 2 minutes.",
    icon="sports_martial_arts",
    category="movement",
)

_SELF_COMPASSION = ActivitySuggestion(
    title="Self-Compassion Pause",
    description='Place your hand on your heart. Say: "This is hard, but I\'m not alone."',
    icon="healing",
    category="mindfulness",
)

MOOD_EXTRAS: dict[MoodCategory, tuple[ActivitySuggestion, ...]] = {
    MoodCategory.ANXIOUS: (_MUSCLE_RELAXATION,),
    MoodCategory.STRESSED: (_MUSCLE_RELAXATION,),
    MoodCategory.ANGRY: (_PHYSICAL_RELEASE,),
    MoodCategory.SAD: (_SELF_COMPASSION,),
    MoodCategory.DISTRESSED: (_SELF_COMPASSION,),
}


def suggest_activities(mood: MoodCategory, score: int) -> list[ActivitySuggestion]:
    suggestions = [MINDFUL_BREATHING]
    for upper, band in SCORE_BANDS:
        if score <= upper:
            suggestions.extend(band)
            break
    else:
        suggestions.extend(HIGH_MOOD_SUGGESTIONS)
    suggestions.extend(MOOD_EXTRAS.get(mood, ()))
    return suggestions
