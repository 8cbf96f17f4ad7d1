"""
Tests for the offline responder
===============================
Covers:
- Category priority (crisis first, default last)
- Every crisis reply carries the 988 lifeline
- Replies are deterministic and case-insensitive
- Substring keyword matching

Run: pytest tests/test_offline_responder.py -v
"""

from __future__ import annotations

import pytest

from serenity.services.offline_responder import (
    CATEGORY_PRIORITY,
    CRISIS_RESPONSES,
    DEFAULT_RESPONSES,
    GRATITUDE_RESPONSES,
    SAD_RESPONSES,
    classify_offline_category,
    get_offline_response,
)


class TestCategories:

    @pytest.mark.parametrize("text, category", [
        ("I feel sad and I want to die", "crisis"),
        ("I'm sad and anxious", "sad"),
        ("anxious and angry", "anxious"),
        ("So frustrated with everyone", "angry"),
        ("Completely overwhelmed at work", "stressed"),
        ("I feel so isolated", "lonely"),
        ("Today was a good day", "happy"),
        ("Thank you, that helped me", "gratitude"),
        ("I can't sleep again", "sleep"),
        ("Hello!", "greeting"),
        ("The bus was late", "default"),
        ("", "default"),
    ])
    def test_first_matching_category_wins(self, text, category):
        assert classify_offline_category(text) == category

    def test_keywords_match_inside_words(self):
        # "hi" is inside "this"
        assert classify_offline_category("this") == "greeting"

    def test_priority_starts_with_crisis(self):
        assert CATEGORY_PRIORITY[0][0] == "crisis"
        assert CATEGORY_PRIORITY[-1][0] == "greeting"


class TestResponses:

    def test_every_crisis_reply_has_the_lifeline(self):
        assert all("988" in response for response in CRISIS_RESPONSES)

    @pytest.mark.parametrize("text", [
        "I want to end my life",
        "sometimes I think about self-harm",
        "Thank you but I feel suicidal",
    ])
    def test_crisis_reply_chosen(self, text):
        response = get_offline_response(text)

        assert response in CRISIS_RESPONSES
        assert "988" in response

    def test_reply_comes_from_matching_category(self):
        assert get_offline_response("I'm so sad") in SAD_RESPONSES
        assert get_offline_response("thanks for listening") in GRATITUDE_RESPONSES
        assert get_offline_response("The bus was late") in DEFAULT_RESPONSES

    def test_deterministic_and_case_insensitive(self):
        assert get_offline_response("I am SO sad") == get_offline_response("i am so sad")
        assert get_offline_response("I am so sad") == get_offline_response("I am so sad")

    def test_empty_text_gets_a_default_reply(self):
        assert get_offline_response("") in DEFAULT_RESPONSES
