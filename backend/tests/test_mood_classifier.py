"""
Tests for the keyword mood classifier
=====================================
Covers:
- No keywords: neutral default with a full neutral breakdown
- Single-category texts: score, category, breakdown
- Round half up (2.5 -> 3)
- Mixed emotions: weighted score, no dominant category
- Dominance: a category holding more than half the weight wins; ties go
  to the category detected last
- "I am so happy and grateful today" scores positive
- Negation: "not happy" moves weight to sad, breakdown sums below 1
- Substring matching ("unhappy" also contains "happy")
- Case insensitivity and determinism
- is_neutral_default

Run: pytest tests/test_mood_classifier.py -v
"""

from __future__ import annotations

import pytest

from serenity.models.mood import MoodCategory
from serenity.services.mood_classifier import CATEGORY_SCORES, analyze_message, neutral_result


class TestNeutralDefault:

    @pytest.mark.parametrize("text", ["", "   ", "The bus left at noon.", "1234"])
    def test_text_without_keywords_is_neutral(self, text):
        result = analyze_message(text)

        assert result.score == 5
        assert result.mood == MoodCategory.NEUTRAL
        assert result.emotions == {MoodCategory.NEUTRAL: 1.0}
        assert result.is_neutral_default is True

    def test_none_is_handled(self):
        assert analyze_message(None) == neutral_result()

    def test_neutral_keyword_scores_five(self):
        result = analyze_message("I'm okay")

        assert result.score == 5
        assert result.mood == MoodCategory.NEUTRAL
        assert result.emotions == {MoodCategory.NEUTRAL: 1.0}


class TestSingleCategory:

    def test_happy(self):
        result = analyze_message("I feel happy")

        assert result.score == 8
        assert result.mood == MoodCategory.HAPPY
        assert result.emotions == {MoodCategory.HAPPY: 1.0}
        assert result.is_neutral_default is False

    def test_sad_rounds_half_up(self):
        """Sad scores 2.5; half-up rounding gives 3, not banker's 2."""
        result = analyze_message("I am so sad today")

        assert result.score == 3
        assert result.mood == MoodCategory.SAD

    def test_excellent(self):
        result = analyze_message("This is amazing and wonderful")

        assert result.score == 10
        assert result.mood == MoodCategory.EXCELLENT
        assert result.emotions == {MoodCategory.EXCELLENT: 1.0}

    def test_distressed(self):
        result = analyze_message("I feel hopeless and worthless")

        assert result.score == 2
        assert result.mood == MoodCategory.DISTRESSED


class TestMixedEmotions:

    def test_even_split_has_no_dominant_category(self):
        result = analyze_message("I am happy but anxious")

        # (8.0 + 3.0) / 2 = 5.5 -> 6, which falls in the neutral band
        assert result.score == 6
        assert result.mood == MoodCategory.NEUTRAL
        assert result.emotions == {MoodCategory.HAPPY: 0.5, MoodCategory.ANXIOUS: 0.5}

    def test_dominant_category_overrides_score_band(self):
        # happy, joy, joyful -> 3 happy hits; tired -> 1 stressed hit
        result = analyze_message("I am happy and joyful but a bit tired")

        assert result.emotions[MoodCategory.HAPPY] == pytest.approx(0.75)
        assert result.emotions[MoodCategory.STRESSED] == pytest.approx(0.25)
        assert result.score == 7
        assert result.mood == MoodCategory.HAPPY

    def test_happy_and_grateful_is_positive(self):
        result = analyze_message("I am so happy and grateful today")

        assert result.score >= 7
        assert result.mood in {MoodCategory.HAPPY, MoodCategory.GRATEFUL}
        assert result.emotions[MoodCategory.HAPPY] > 0
        assert result.emotions[MoodCategory.GRATEFUL] > 0

    def test_dominance_tie_goes_to_later_category(self):
        # calm: 3 hits. Six negated "happy" leave sad at 3.0, detected after calm.
        result = analyze_message(
            "calm peaceful relaxed not happy don't happy can't happy "
            "isn't happy aren't happy won't happy"
        )

        assert result.emotions == {MoodCategory.CALM: 0.75, MoodCategory.SAD: 0.75}
        assert result.mood == MoodCategory.SAD

    def test_keywords_match_as_substrings(self):
        """'unhappy' is a sad keyword and also contains 'happy'."""
        result = analyze_message("I am unhappy")

        assert set(result.emotions) == {MoodCategory.HAPPY, MoodCategory.SAD}
        assert result.score == 5


class TestNegation:

    def test_negated_positive_moves_weight_to_sad(self):
        result = analyze_message("I am not happy")

        assert MoodCategory.HAPPY not in result.emotions
        assert result.emotions == {MoodCategory.SAD: 0.5}
        # 2.5 * 0.5 = 1.25 -> 1
        assert result.score == 1
        # sad holds exactly half, which is not a majority
        assert result.mood == MoodCategory.DISTRESSED

    def test_negated_breakdown_sums_below_one(self):
        result = analyze_message("I don't feel calm, I'm not relaxed")

        assert sum(result.emotions.values()) < 1.0

    def test_negation_of_negative_word_is_not_special(self):
        result = analyze_message("I am not sad")

        assert result.emotions == {MoodCategory.SAD: 1.0}


class TestProperties:

    def test_case_insensitive(self):
        assert analyze_message("HAPPY and GRATEFUL") == analyze_message("happy and grateful")

    def test_deterministic(self):
        text = "Overwhelmed at work, but grateful for my friends"
        assert analyze_message(text) == analyze_message(text)

    @pytest.mark.parametrize("text", [
        "suicidal",
        "amazing " * 50,
        "sad happy angry calm tired hopeful",
        "x" * 10000,
    ])
    def test_score_always_in_range(self, text):
        result = analyze_message(text)

        assert 1 <= result.score <= 10
        assert all(weight >= 0 for weight in result.emotions.values())

    def test_every_category_has_a_score(self):
        assert set(CATEGORY_SCORES) == set(MoodCategory)
