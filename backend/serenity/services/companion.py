"""
Chat Companion
==============
Generates Serenity's replies with the Claude API.

Request shape:
    - system: the Serenity persona prompt
    - messages: the recent history, coerced into the alternating
      user/assistant sequence the Messages API accepts, followed by the new
      user message

History coercion rules:
    - keep only the last ``companion_history_limit`` messages
    - drop leading assistant turns so the sequence starts with the user
    - skip a turn whose role repeats the previous one
    - drop a trailing user turn (the new message takes its place)

Retries: 429 responses and timeouts are retried up to
``companion_max_attempts`` times, waiting ``backoff * (attempt + 1)`` seconds
after a 429. Any other failure raises ``CompanionError`` at once. The chat
service always recovers from ``CompanionError`` with the offline responder,
so a failed call never costs the user their message.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, Sequence

import httpx

from serenity.config import Settings, get_settings
from serenity.models.chat import ChatMessage, ChatRole, role_for_sender

logger = logging.getLogger(__name__)

ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"

EMPTY_REPLY_FALLBACK = "I'm here for you. Could you share that again? 💙"

TITLE_WORDS = 5

_SYSTEM_PROMPT = """\
You are Serenity, a compassionate AI wellness companion for emotional support. \
Be warm, empathetic, and non-judgmental like a caring friend.

Rules:
- Acknowledge feelings first using reflective listening before giving advice.
- Validate emotions, never dismiss them.
- Ask open-ended questions to help users explore their feelings.
- Suggest coping strategies when appropriate: breathing exercises, grounding \
(5-4-3-2-1), journaling, mindfulness.
- Keep responses concise (2-3 short paragraphs). Use emoji sparingly (💙, 🌿).
- If someone mentions self-harm or crisis, respond with compassion and share: \
"Please reach out to the 988 Suicide & Crisis Lifeline (call/text 988) or Crisis \
Text Line (text HOME to 741741)".
- You are NOT a therapist. Encourage professional help when needed. Do not \
diagnose or give medication advice.
- End with an invitation to keep talking.
"""


class CompanionError(Exception):
    """The LLM could not produce a reply."""


def generate_title(first_message: str) -> str:
    """Conversation title from the first user message, computed locally."""
    words = first_message.split()
    if len(words) <= TITLE_WORDS:
        return first_message.strip()
    return " ".join(words[:TITLE_WORDS]) + "..."


def build_history_turns(history: Sequence[ChatMessage], limit: int) -> list[dict[str, str]]:
    """Coerce stored messages into alternating turns starting with the user."""
    recent = list(history)[-limit:] if limit > 0 else []
    turns: list[dict[str, str]] = []
    for message in recent:
        role = role_for_sender(message.sender)
        if not turns and role is not ChatRole.USER:
            continue
        if turns and turns[-1]["role"] == role.value:
            continue
        turns.append({"role": role.value, "content": message.text})
    if turns and turns[-1]["role"] == ChatRole.USER.value:
        turns.pop()
    return turns


def _extract_text(data: dict) -> str:
    parts = [
        block.get("text", "")
        for block in data.get("content", [])
        if block.get("type") == "text"
    ]
    return "\n".join(part for part in parts if part).strip()


class CompanionClient:
    """Talks to the Claude Messages API on behalf of the chat service."""

    def __init__(
        self,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._settings = settings or get_settings()
        self._sleep = sleep
        self._api_url = ANTHROPIC_MESSAGES_URL

    @property
    def configured(self) -> bool:
        return bool(self._settings.anthropic_api_key)

    def build_payload(self, message: str, history: Iterable[ChatMessage]) -> dict:
        turns = build_history_turns(list(history), self._settings.companion_history_limit)
        turns.append({"role": ChatRole.USER.value, "content": message})
        return {
            "model": self._settings.anthropic_model,
            "max_tokens": self._settings.anthropic_max_tokens,
            "system": _SYSTEM_PROMPT,
            "messages": turns,
        }

    async def reply(self, message: str, history: Iterable[ChatMessage] = ()) -> str:
        """Return the companion's reply to *message*. Raises CompanionError."""
        payload = self.build_payload(message, history)
        headers = {
            "x-api-key": self._settings.anthropic_api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        max_attempts = max(1, self._settings.companion_max_attempts)

        for attempt in range(max_attempts):
            last_attempt = attempt == max_attempts - 1
            try:
                async with httpx.AsyncClient(timeout=self._settings.companion_timeout_seconds) as client:
                    response = await client.post(self._api_url, headers=headers, json=payload)
            except httpx.TimeoutException as exc:
                logger.warning("Companion request timed out (attempt %d/%d)", attempt + 1, max_attempts)
                if last_attempt:
                    raise CompanionError("Response took too long. Please try again.") from exc
                continue
            except httpx.HTTPError as exc:
                raise CompanionError(f"Unable to reach the companion service: {exc}") from exc

            if response.status_code == 429:
                logger.warning("Companion rate limited (attempt %d/%d)", attempt + 1, max_attempts)
                if last_attempt:
                    raise CompanionError("The service is busy right now. Please try again in a moment.")
                await self._sleep(self._settings.companion_retry_backoff_seconds * (attempt + 1))
                continue

            if not response.is_success:
                logger.error("Companion API error %d: %s", response.status_code, response.text[:200])
                raise CompanionError(f"AI service error: HTTP {response.status_code}")

            try:
                data = response.json()
            except ValueError as exc:
                raise CompanionError("AI service returned malformed JSON") from exc

            text = _extract_text(data)
            logger.debug("Companion replied with %d chars", len(text))
            return text or EMPTY_REPLY_FALLBACK

        raise CompanionError("Unable to get a response. Please try again.")
