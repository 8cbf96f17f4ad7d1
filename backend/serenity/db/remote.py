"""
Remote Store
============
Per-user document collections in Supabase: ``journals``, ``moods``,
``chat_messages`` and ``conversations``.

Rows are keyed by the client-generated ``id`` (upserts use
``on_conflict="id"``) and scoped by a ``user_id`` column that RLS checks
against the signed-in user. ``user_id`` is added on write and stripped
on read, so callers only ever see the record's own fields.

The Supabase client is synchronous. Every call runs in a worker thread so
the sync engine can bound it with ``asyncio.wait_for`` and move on.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Mapping, Optional

from supabase import Client

logger = logging.getLogger(__name__)

JOURNALS = "journals"
MOODS = "moods"
CHAT_MESSAGES = "chat_messages"
CONVERSATIONS = "conversations"

COLLECTIONS = frozenset({JOURNALS, MOODS, CHAT_MESSAGES, CONVERSATIONS})

_OWNER_COLUMN = "user_id"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class RemoteStoreError(Exception):
    """A remote read or write failed. Never surfaced to the user."""


class NotSignedInError(RemoteStoreError):
    """No user is signed in, so there is no remote namespace to use."""


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class RemoteStore:
    """Async facade over the Supabase tables backing the sync engine."""

    def __init__(self, client: Client, current_user_id: Callable[[], Optional[str]]) -> None:
        self._client = client
        self._current_user_id = current_user_id

    @property
    def signed_in(self) -> bool:
        return bool(self._current_user_id())

    def _user_id(self) -> str:
        user_id = self._current_user_id()
        if not user_id:
            raise NotSignedInError("No signed-in user")
        return user_id

    @staticmethod
    def _check_collection(collection: str) -> None:
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown remote collection: {collection!r}")

    @staticmethod
    def _strip_owner(row: Mapping[str, Any]) -> dict[str, Any]:
        return {key: value for key, value in row.items() if key != _OWNER_COLUMN}

    async def _run(self, description: str, call: Callable[[], Any]) -> Any:
        try:
            return await asyncio.to_thread(call)
        except Exception as exc:
            logger.warning("Remote %s failed: %s", description, exc)
            raise RemoteStoreError(f"Remote {description} failed: {exc}") from exc

    # ---- Writes -------------------------------------------------------------

    async def upsert(self, collection: str, doc: Mapping[str, Any]) -> None:
        """Create or overwrite the document with ``doc["id"]``."""
        self._check_collection(collection)
        row = {**doc, _OWNER_COLUMN: self._user_id()}
        await self._run(
            f"upsert {collection}/{doc['id']}",
            lambda: self._client.table(collection).upsert(row, on_conflict="id").execute(),
        )

    async def delete(self, collection: str, record_id: str) -> None:
        await self.delete_where(collection, {"id": record_id})

    async def delete_where(self, collection: str, filters: Mapping[str, Any]) -> None:
        """Delete every document of the signed-in user matching *filters*.

        An empty mapping deletes the whole collection for that user.
        """
        self._check_collection(collection)
        user_id = self._user_id()

        def call() -> Any:
            request = self._client.table(collection).delete().eq(_OWNER_COLUMN, user_id)
            for column, value in filters.items():
                request = request.eq(column, value)
            return request.execute()

        await self._run(f"delete from {collection}", call)

    # ---- Reads --------------------------------------------------------------

    async def query(
        self,
        collection: str,
        *,
        filters: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        since: Optional[tuple[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """Read documents of the signed-in user.

        ``since`` is a ``(column, lower_bound)`` pair applied with ``gte``.
        """
        self._check_collection(collection)
        user_id = self._user_id()

        def call() -> Any:
            request = self._client.table(collection).select("*").eq(_OWNER_COLUMN, user_id)
            for column, value in (filters or {}).items():
                request = request.eq(column, value)
            if since is not None:
                request = request.gte(since[0], since[1])
            if order_by:
                request = request.order(order_by, desc=descending)
            if limit is not None:
                request = request.limit(limit)
            return request.execute()

        result = await self._run(f"query {collection}", call)
        return [self._strip_owner(row) for row in (result.data or [])]

    # ---- Live subscription --------------------------------------------------

    def subscribe(
        self,
        collection: str,
        callback: Callable[[dict[str, Any]], None],
    ) -> Any:
        """Push inserted/updated documents of *collection* to *callback*.

        The callback runs on the realtime client's thread and receives the
        document without its owner column. Returns a handle for
        :meth:`unsubscribe`.
        """
        self._check_collection(collection)
        user_id = self._user_id()

        def on_change(payload: dict[str, Any]) -> None:
            data = payload.get("data") or {}
            record = data.get("record") or payload.get("new") or payload.get("record")
            if record:
                callback(self._strip_owner(record))

        channel = self._client.channel(f"serenity-{collection}-{user_id}")
        channel.on_postgres_changes(
            event="*",
            schema="public",
            table=collection,
            filter=f"{_OWNER_COLUMN}=eq.{user_id}",
            callback=on_change,
        )
        channel.subscribe()
        logger.info("Subscribed to remote %s", collection)
        return channel

    def unsubscribe(self, handle: Any) -> None:
        self._client.remove_channel(handle)
