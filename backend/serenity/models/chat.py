"""
Chat Schemas
============
Chat messages, conversations and the request/response models for the
chat API.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, ClassVar

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
from serenity.models.mood import MoodAnalysisResult

DEFAULT_CONVERSATION_TITLE = "New Chat"


class Sender(str, Enum):
    """Author of a stored chat message."""

    USER = "user"
    AI = "ai"


class ChatRole(str, Enum):
    """Turn role in an LLM request."""

    USER = "user"
    ASSISTANT = "assistant"


def role_for_sender(sender: Sender) -> ChatRole:
    if sender is Sender.USER:
        return ChatRole.USER
    if sender is Sender.AI:
        return ChatRole.ASSISTANT
    raise ValueError(f"Unhandled sender: {sender!r}")


class ReplySource(str, Enum):
    COMPANION = "companion"  # LLM reply
    OFFLINE = "offline"  # canned local reply


# ---------------------------------------------------------------------------
# Persisted records
# ---------------------------------------------------------------------------

class ChatMessage(SyncableRecord):
    """One message in a conversation with the companion."""

    order_field: ClassVar[str] = "timestamp"

    text: str
    sender: Sender
    timestamp: datetime = Field(default_factory=utc_now)
    conversation_id: str

    @field_validator("timestamp")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        return ensure_aware(value)

    @property
    def is_user(self) -> bool:
        return self.sender is Sender.USER

    def to_local(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "sender": self.sender.value,
            "timestamp": to_epoch_ms(self.timestamp),
            "conversation_id": self.conversation_id,
            "sync_state": int(self.sync_state),
        }

    @classmethod
    def from_local(cls, row: dict[str, Any]) -> ChatMessage:
        return cls(
            id=row["id"],
            text=row["text"],
            sender=row["sender"],
            timestamp=from_epoch_ms(row["timestamp"]),
            conversation_id=row.get("conversation_id") or "",
            sync_state=row.get("sync_state", SyncState.UNSYNCED),
        )

    def to_remote(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "sender": self.sender.value,
            "timestamp": to_iso(self.timestamp),
            "conversation_id": self.conversation_id,
        }

    @classmethod
    def from_remote(cls, doc: dict[str, Any]) -> ChatMessage:
        return cls(
            id=doc["id"],
            text=doc["text"],
            sender=doc["sender"],
            timestamp=parse_iso(doc["timestamp"]),
            conversation_id=doc.get("conversation_id") or "",
            sync_state=SyncState.SYNCED,
        )


class ChatConversation(SyncableRecord):
    """A chat session; carries a preview of its latest message."""

    order_field: ClassVar[str] = "last_message_at"

    title: str = DEFAULT_CONVERSATION_TITLE
    created_at: datetime = Field(default_factory=utc_now)
    last_message_at: datetime = Field(default_factory=utc_now)
    last_message: str = ""

    @field_validator("created_at", "last_message_at")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        return ensure_aware(value)

    def to_local(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "created_at": to_epoch_ms(self.created_at),
            "last_message_at": to_epoch_ms(self.last_message_at),
            "last_message": self.last_message,
            "sync_state": int(self.sync_state),
        }

    @classmethod
    def from_local(cls, row: dict[str, Any]) -> ChatConversation:
        return cls(
            id=row["id"],
            title=row.get("title") or DEFAULT_CONVERSATION_TITLE,
            created_at=from_epoch_ms(row["created_at"]),
            last_message_at=from_epoch_ms(row["last_message_at"]),
            last_message=row.get("last_message") or "",
            sync_state=row.get("sync_state", SyncState.UNSYNCED),
        )

    def to_remote(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "created_at": to_iso(self.created_at),
            "last_message_at": to_iso(self.last_message_at),
            "last_message": self.last_message,
        }

    @classmethod
    def from_remote(cls, doc: dict[str, Any]) -> ChatConversation:
        return cls(
            id=doc["id"],
            title=doc.get("title") or DEFAULT_CONVERSATION_TITLE,
            created_at=parse_iso(doc["created_at"]),
            last_message_at=parse_iso(doc["last_message_at"]),
            last_message=doc.get("last_message") or "",
            sync_state=SyncState.SYNCED,
        )


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------

class ChatMessageCreate(BaseModel):
    text: str = Field(..., min_length=1, max_length=4000)


# ---------------------------------------------------------------------------
# Response
# ---------------------------------------------------------------------------

class ConversationStarted(BaseModel):
    """A new conversation id and the companion's opening line.

    Nothing is persisted until the user sends a first message.
    """

    conversation_id: str
    greeting: ChatMessage


class ChatExchange(BaseModel):
    """The user's message, the reply, and where the reply came from."""

    user_message: ChatMessage
    reply: ChatMessage
    reply_source: ReplySource
    mood: MoodAnalysisResult
