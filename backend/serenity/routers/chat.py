"""
Chat Router
===========
Conversations with the Serenity companion.

POST   /api/v1/chat/conversations                  — Start a conversation
GET    /api/v1/chat/conversations                  — List conversations
GET    /api/v1/chat/conversations/{id}/messages    — Messages, oldest first
POST   /api/v1/chat/conversations/{id}/messages    — Send a message, get a reply
DELETE /api/v1/chat/conversations/{id}             — Delete a conversation
DELETE /api/v1/chat/history                        — Delete every conversation

Sending a message always succeeds once the local cache has it: if the LLM
is unreachable the reply comes from the offline responder, and the
response says which one answered.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from serenity.dependencies import get_chat_service
from serenity.models.chat import (
    ChatConversation,
    ChatExchange,
    ChatMessage,
    ChatMessageCreate,
    ConversationStarted,
)
from serenity.services.chat import ChatService, EmptyMessageError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/chat", tags=["chat"])


@router.post(
    "/conversations",
    response_model=ConversationStarted,
    status_code=status.HTTP_201_CREATED,
    summary="Start a conversation",
    description=(
        "Returns a new conversation id and a greeting. The conversation is "
        "saved with the first message the user sends."
    ),
)
async def start_conversation(
    chat: ChatService = Depends(get_chat_service),
) -> ConversationStarted:
    return chat.start_conversation()


@router.get(
    "/conversations",
    response_model=list[ChatConversation],
    summary="List conversations, most recent activity first",
)
async def list_conversations(
    chat: ChatService = Depends(get_chat_service),
) -> list[ChatConversation]:
    return await chat.list_conversations()


@router.get(
    "/conversations/{conversation_id}/messages",
    response_model=list[ChatMessage],
    summary="Messages of a conversation, oldest first",
)
async def get_messages(
    conversation_id: str,
    chat: ChatService = Depends(get_chat_service),
) -> list[ChatMessage]:
    return await chat.get_messages(conversation_id)


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=ChatExchange,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message",
    responses={
        201: {"description": "Message and reply saved"},
        422: {"description": "Empty or over-long message"},
        503: {"description": "Local cache unavailable"},
    },
)
async def send_message(
    conversation_id: str,
    body: ChatMessageCreate,
    chat: ChatService = Depends(get_chat_service),
) -> ChatExchange:
    try:
        return await chat.send_message(conversation_id, body.text)
    except EmptyMessageError as exc:
        raise HTTPException(
            status_code=422,
            detail={"message": str(exc), "code": "empty_message"},
        ) from exc


@router.delete(
    "/conversations/{conversation_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a conversation and its messages",
)
async def delete_conversation(
    conversation_id: str,
    chat: ChatService = Depends(get_chat_service),
) -> None:
    await chat.delete_conversation(conversation_id)


@router.delete(
    "/history",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete every conversation and message",
)
async def clear_history(
    chat: ChatService = Depends(get_chat_service),
) -> None:
    await chat.clear_history()
