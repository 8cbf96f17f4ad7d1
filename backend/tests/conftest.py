"""
Shared fixtures
===============
In-memory stand-ins for the pieces of the sync stack that touch the
outside world:

- FakeRemote: dict-backed replacement for RemoteStore with failure and
  latency injection
- FakeSource: connectivity source whose transports the test sets directly
  or pushes through ``watch()``

The ``cache`` fixture is a real LocalCache on an in-memory SQLite database.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Any, Callable, Iterable, Mapping, Optional

import pytest
import pytest_asyncio

from serenity.db.local import LocalCache
from serenity.db.remote import NotSignedInError, RemoteStoreError
from serenity.services.connectivity import ConnectivityMonitor, ConnectivitySource, Transport
from serenity.services.sync_engine import SyncEngine

USER_ID = "user-1"


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeRemote:
    """Same async surface as RemoteStore, backed by dicts."""

    def __init__(self, user_id: Optional[str] = USER_ID) -> None:
        self.user_id = user_id
        self.docs: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self.upserts: list[tuple[str, str]] = []
        self.deletes: list[tuple[str, dict[str, Any]]] = []
        self.subscriptions: dict[str, Callable[[dict[str, Any]], None]] = {}
        self.fail_ids: set[str] = set()
        self.fail_all = False
        self.delay = 0.0

    @property
    def signed_in(self) -> bool:
        return bool(self.user_id)

    def _require_user(self) -> None:
        if not self.user_id:
            raise NotSignedInError("No signed-in user")

    async def upsert(self, collection: str, doc: Mapping[str, Any]) -> None:
        self._require_user()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_all or doc["id"] in self.fail_ids:
            raise RemoteStoreError(f"Remote upsert {collection}/{doc['id']} failed")
        self.upserts.append((collection, doc["id"]))
        self.docs[collection][doc["id"]] = dict(doc)

    async def delete(self, collection: str, record_id: str) -> None:
        await self.delete_where(collection, {"id": record_id})

    async def delete_where(self, collection: str, filters: Mapping[str, Any]) -> None:
        self._require_user()
        if self.fail_all:
            raise RemoteStoreError(f"Remote delete from {collection} failed")
        self.deletes.append((collection, dict(filters)))
        for doc_id, doc in list(self.docs[collection].items()):
            if all(doc.get(column) == value for column, value in filters.items()):
                del self.docs[collection][doc_id]

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
        self._require_user()
        if self.fail_all:
            raise RemoteStoreError(f"Remote query {collection} failed")
        docs = [
            dict(doc) for doc in self.docs[collection].values()
            if all(doc.get(column) == value for column, value in (filters or {}).items())
        ]
        if since is not None:
            docs = [doc for doc in docs if doc[since[0]] >= since[1]]
        if order_by:
            docs.sort(key=lambda doc: doc[order_by], reverse=descending)
        if limit is not None:
            docs = docs[:limit]
        return docs

    def subscribe(self, collection: str, callback: Callable[[dict[str, Any]], None]) -> str:
        self._require_user()
        self.subscriptions[collection] = callback
        return collection

    def unsubscribe(self, handle: str) -> None:
        self.subscriptions.pop(handle, None)


class FakeSource(ConnectivitySource):
    """Transports set by the test; ``push`` feeds the ``watch`` stream."""

    def __init__(self, transports: Iterable[Transport] = (Transport.WIFI,)) -> None:
        self.transports = list(transports)
        self._pushes: asyncio.Queue = asyncio.Queue()

    async def current(self) -> list[Transport]:
        return list(self.transports)

    async def watch(self):
        while True:
            transports = await self._pushes.get()
            self.transports = list(transports)
            yield list(transports)

    def push(self, transports: Iterable[Transport]) -> None:
        self._pushes.put_nowait(list(transports))


async def set_transports(
    source: FakeSource,
    monitor: ConnectivityMonitor,
    *transports: Transport,
) -> bool:
    """Change what the platform reports and make the monitor see it now."""
    source.transports = list(transports)
    return await monitor.check()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def cache():
    cache = LocalCache(":memory:")
    await cache.open()
    yield cache
    await cache.close()


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def source() -> FakeSource:
    return FakeSource([Transport.WIFI])


@pytest_asyncio.fixture
async def monitor(source):
    monitor = ConnectivityMonitor(source)
    await monitor.check()
    yield monitor
    await monitor.close()


@pytest_asyncio.fixture
async def engine(cache, remote, monitor):
    engine = SyncEngine(cache, remote, monitor, write_timeout=0.5, max_attempts=3)
    yield engine
    await engine.drain()
