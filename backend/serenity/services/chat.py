"""
Chat Service
============
Conversations with the Serenity companion, offline-first.

send_message() flow:
    1. First message of a conversation: save the conversation (titled from
       the message) and the pending greeting.
    2. Save the user's message and point the conversation preview at it.
    3. Classify the message; unless only the neutral default came back,
       save a chat-origin mood record for it. Failures here never block
       the reply.
    4. Reply with the companion when online and enabled. Otherwise, or if
       the companion fails, reply from the offline responder.
    5. Save the reply and point the preview at it.

Every save goes through the sync engine, so all of the above lands in the
local cache before the response returns, whatever the network is doing.
"""

from __future__ import annotations

import logging

from serenity.config import Settings, get_settings
from serenity.db.local import CONVERSATION_TABLE, MESSAGE_TABLE, LocalCache, LocalCacheError
from serenity.models.base import new_id, utc_now
from serenity.models.chat import (
    ChatConversation,
    ChatExchange,
    ChatMessage,
    ConversationStarted,
    ReplySource,
    Sender,
)
from serenity.models.sync import RecordKind
from serenity.services.companion import CompanionClient, CompanionError, generate_title
from serenity.services.connectivity import ConnectivityMonitor
from serenity.services.mood import MoodService, aggregate_day
from serenity.services.mood_classifier import analyze_message
from serenity.services.offline_responder import get_offline_response
from serenity.services.sync_engine import SyncEngine

logger = logging.getLogger(__name__)

PREVIEW_LIMIT = 100
# Started-but-unused conversations kept in memory; the oldest is dropped first
MAX_PENDING_GREETINGS = 50

GREETINGS = (
    "Hello! I'm Serenity, your wellness companion 💙\n\nI'm here to listen and support "
    "you without any judgment. How are you feeling today?",
    "Hi there! I'm Serenity 🌿\n\nThis is a safe space for you to share whatever is on "
    "your heart and mind. How are you doing today?",
    "Welcome! I'm Serenity, and I'm so glad you're here 💙\n\nI'm here to listen, support, "
    "and walk alongside you. What's been on your mind lately?",
)


class EmptyMessageError(Exception):
    """A message with no text after trimming whitespace."""


def preview(text: str) -> str:
    if len(text) <= PREVIEW_LIMIT:
        return text
    return f"{text[:PREVIEW_LIMIT]}..."


class ChatService:
    def __init__(
        self,
        cache: LocalCache,
        engine: SyncEngine,
        connectivity: ConnectivityMonitor,
        companion: CompanionClient,
        moods: MoodService,
        settings: Settings | None = None,
    ) -> None:
        self._cache = cache
        self._engine = engine
        self._connectivity = connectivity
        self._companion = companion
        self._moods = moods
        self._settings = settings or get_settings()
        # Greetings of conversations that have no user message yet
        self._pending_greetings: dict[str, ChatMessage] = {}

    # ---- Conversations ------------------------------------------------------

    def start_conversation(self) -> ConversationStarted:
        """Open a conversation with a local greeting. Nothing is saved yet."""
        conversation_id = new_id()
        now = utc_now()
        greeting = ChatMessage(
            text=GREETINGS[(now.microsecond // 1000) % len(GREETINGS)],
            sender=Sender.AI,
            timestamp=now,
            conversation_id=conversation_id,
        )
        self._pending_greetings[conversation_id] = greeting
        while len(self._pending_greetings) > MAX_PENDING_GREETINGS:
            del self._pending_greetings[next(iter(self._pending_greetings))]
        return ConversationStarted(conversation_id=conversation_id, greeting=greeting)

    async def list_conversations(self) -> list[ChatConversation]:
        """Newest activity first."""
        rows = await self._cache.query(CONVERSATION_TABLE, order_by="last_message_at", descending=True)
        if rows:
            return [ChatConversation.from_local(row) for row in rows]
        return await self._engine.hydrate(
            RecordKind.CONVERSATION, order_by="last_message_at", descending=True,
        )

    async def get_messages(self, conversation_id: str) -> list[ChatMessage]:
        """Messages of a conversation, oldest first."""
        rows = await self._cache.query(
            MESSAGE_TABLE, where={"conversation_id": conversation_id}, order_by="timestamp",
        )
        if rows:
            return [ChatMessage.from_local(row) for row in rows]
        pending = self._pending_greetings.get(conversation_id)
        if pending is not None:
            return [pending]
        return await self._engine.hydrate(
            RecordKind.MESSAGE, filters={"conversation_id": conversation_id}, order_by="timestamp",
        )

    async def delete_conversation(self, conversation_id: str) -> None:
        self._pending_greetings.pop(conversation_id, None)
        await self._engine.delete_conversation(conversation_id)
        logger.info("Conversation %s deleted", conversation_id)

    async def clear_history(self) -> None:
        self._pending_greetings.clear()
        await self._engine.clear([RecordKind.MESSAGE, RecordKind.CONVERSATION])
        logger.info("Chat history cleared")

    # ---- Messages -----------------------------------------------------------

    async def _history(self, conversation_id: str) -> list[ChatMessage]:
        rows = await self._cache.query(
            MESSAGE_TABLE,
            where={"conversation_id": conversation_id},
            order_by="timestamp",
            descending=True,
            limit=self._settings.companion_history_limit,
        )
        return [ChatMessage.from_local(row) for row in reversed(rows)]

    async def send_message(self, conversation_id: str, text: str) -> ChatExchange:
        text = text.strip()
        if not text:
            raise EmptyMessageError("Message text is empty")

        now = utc_now()
        history = await self._history(conversation_id)

        row = await self._cache.get(CONVERSATION_TABLE, conversation_id)
        if row is None:
            conversation = ChatConversation(
                id=conversation_id,
                title=generate_title(text),
                created_at=now,
                last_message_at=now,
                last_message=preview(text),
            )
            await self._engine.save(conversation)
            greeting = self._pending_greetings.pop(conversation_id, None)
            if greeting is not None:
                await self._engine.save(greeting)
                history.append(greeting)
        else:
            conversation = await self._engine.save(
                ChatConversation.from_local(row).model_copy(
                    update={"last_message": preview(text), "last_message_at": now}
                )
            )

        user_message = await self._engine.save(ChatMessage(
            text=text, sender=Sender.USER, timestamp=now, conversation_id=conversation_id,
        ))

        mood = analyze_message(text)
        if not mood.is_neutral_default:
            try:
                await self._moods.save(aggregate_day([user_message], now))
            except LocalCacheError:
                logger.exception("Saving chat mood failed (non-blocking)")

        reply_text, source = await self._reply(text, history)
        reply = await self._engine.save(ChatMessage(
            text=reply_text, sender=Sender.AI, timestamp=utc_now(), conversation_id=conversation_id,
        ))
        await self._engine.save(conversation.model_copy(
            update={"last_message": preview(reply_text), "last_message_at": reply.timestamp}
        ))

        return ChatExchange(user_message=user_message, reply=reply, reply_source=source, mood=mood)

    async def _reply(self, text: str, history: list[ChatMessage]) -> tuple[str, ReplySource]:
        use_companion = (
            self._settings.enable_ai_companion
            and self._companion.configured
            and await self._connectivity.check()
        )
        if use_companion:
            try:
                return await self._companion.reply(text, history), ReplySource.COMPANION
            except CompanionError as exc:
                logger.warning("Companion unavailable, replying offline: %s", exc)
        return get_offline_response(text), ReplySource.OFFLINE
