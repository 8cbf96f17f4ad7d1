"""
Local Cache
===========
SQLite-backed offline cache for journal entries, mood entries, chat
messages and conversations. This is the source of truth for every read
path; the remote store is only a durability/sharing layer behind it.

Every table carries two sync columns:
- ``sync_state``: 0 unsynced, 1 synced, 2 dead-lettered (see SyncState)
- ``sync_attempts``: failed sweep attempts since the last local write

Dates are stored as integer epoch-milliseconds. Writes are
insert-or-replace keyed by ``id``, so replaying the same upsert is a no-op.

The cache is an explicitly constructed object with an ``open()`` /
``close()`` lifecycle; the FastAPI lifespan owns the single instance.
"""

from __future__ import annotations

import contextlib
import logging
import sqlite3
from pathlib import Path
from typing import Any, Iterator, Mapping, Optional

from serenity.models.base import SyncState

logger = logging.getLogger(__name__)

JOURNAL_TABLE = "journal_entries"
MOOD_TABLE = "mood_entries"
MESSAGE_TABLE = "chat_messages"
CONVERSATION_TABLE = "conversations"

_SYNC_COLUMNS = ("sync_state", "sync_attempts")

# Column allow-list per table. Every identifier that reaches SQL text is
# checked against it.
TABLE_COLUMNS: dict[str, frozenset[str]] = {
    JOURNAL_TABLE: frozenset({"id", "text", "emotion", "date", *_SYNC_COLUMNS}),
    MOOD_TABLE: frozenset({
        "id", "mood", "score", "note", "source", "date", "emotion_breakdown", *_SYNC_COLUMNS,
    }),
    MESSAGE_TABLE: frozenset({
        "id", "text", "sender", "timestamp", "conversation_id", *_SYNC_COLUMNS,
    }),
    CONVERSATION_TABLE: frozenset({
        "id", "title", "created_at", "last_message_at", "last_message", *_SYNC_COLUMNS,
    }),
}

# ---------------------------------------------------------------------------
# Schema migrations, applied in order above PRAGMA user_version
# ---------------------------------------------------------------------------

_MIGRATIONS: list[tuple[int, tuple[str, ...]]] = [
    (1, (
        """
        CREATE TABLE IF NOT EXISTS journal_entries(
            id TEXT PRIMARY KEY,
            text TEXT NOT NULL,
            emotion TEXT NOT NULL,
            date INTEGER NOT NULL,
            sync_state INTEGER NOT NULL DEFAULT 0,
            sync_attempts INTEGER NOT NULL DEFAULT 0
        )
        """,
    )),
    (2, (
        """
        CREATE TABLE IF NOT EXISTS mood_entries(
            id TEXT PRIMARY KEY,
            mood TEXT NOT NULL,
            score INTEGER NOT NULL,
            note TEXT NOT NULL DEFAULT '',
            source TEXT NOT NULL DEFAULT 'manual',
            date INTEGER NOT NULL,
            emotion_breakdown TEXT NOT NULL DEFAULT '',
            sync_state INTEGER NOT NULL DEFAULT 0,
            sync_attempts INTEGER NOT NULL DEFAULT 0
        )
        """,
    )),
    (3, (
        """
        CREATE TABLE IF NOT EXISTS conversations(
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL DEFAULT 'New Chat',
            created_at INTEGER NOT NULL,
            last_message_at INTEGER NOT NULL,
            last_message TEXT NOT NULL DEFAULT '',
            sync_state INTEGER NOT NULL DEFAULT 0,
            sync_attempts INTEGER NOT NULL DEFAULT 0
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS chat_messages(
            id TEXT PRIMARY KEY,
            text TEXT NOT NULL,
            sender TEXT NOT NULL,
            timestamp INTEGER NOT NULL,
            conversation_id TEXT NOT NULL,
            sync_state INTEGER NOT NULL DEFAULT 0,
            sync_attempts INTEGER NOT NULL DEFAULT 0
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_chat_messages_conversation "
        "ON chat_messages(conversation_id, timestamp)",
    )),
]

SCHEMA_VERSION = _MIGRATIONS[-1][0]


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class LocalCacheError(Exception):
    """The local cache could not complete an operation. Retryable by the user."""


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

class LocalCache:
    """Async-facing accessor for the on-device SQLite database."""

    def __init__(self, db_path: str | Path) -> None:
        self._path = str(db_path)
        self._conn: Optional[sqlite3.Connection] = None

    # ---- Lifecycle ----------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def open(self) -> None:
        if self._conn is not None:
            return
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = sqlite3.connect(self._path)
            conn.row_factory = sqlite3.Row
            self._migrate(conn)
        except sqlite3.Error as exc:
            raise LocalCacheError(f"Could not open local cache at {self._path}: {exc}") from exc
        self._conn = conn
        logger.info("Local cache open at %s (schema v%d)", self._path, SCHEMA_VERSION)

    async def close(self) -> None:
        if self._conn is None:
            return
        self._conn.close()
        self._conn = None
        logger.info("Local cache closed")

    @staticmethod
    def _migrate(conn: sqlite3.Connection) -> None:
        current = conn.execute("PRAGMA user_version").fetchone()[0]
        for version, statements in _MIGRATIONS:
            if version <= current:
                continue
            with conn:
                for statement in statements:
                    conn.execute(statement)
                conn.execute(f"PRAGMA user_version = {version}")
            logger.debug("Local cache migrated to schema v%d", version)

    @contextlib.contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        if self._conn is None:
            raise LocalCacheError("Local cache is not open")
        try:
            with self._conn:
                yield self._conn
        except sqlite3.Error as exc:
            logger.error("Local cache operation failed: %s", exc)
            raise LocalCacheError(str(exc)) from exc

    # ---- Validation ---------------------------------------------------------

    @staticmethod
    def _columns(table: str) -> frozenset[str]:
        try:
            return TABLE_COLUMNS[table]
        except KeyError:
            raise ValueError(f"Unknown local table: {table!r}") from None

    def _check_columns(self, table: str, columns: Any) -> None:
        unknown = set(columns) - self._columns(table)
        if unknown:
            raise ValueError(f"Unknown column(s) for {table}: {sorted(unknown)}")

    def _where(
        self,
        table: str,
        where: Optional[Mapping[str, Any]],
        min_values: Optional[Mapping[str, Any]],
        max_values: Optional[Mapping[str, Any]],
    ) -> tuple[str, list[Any]]:
        self._columns(table)
        clauses: list[str] = []
        params: list[Any] = []
        for mapping, operator in ((where, "="), (min_values, ">="), (max_values, "<=")):
            if not mapping:
                continue
            self._check_columns(table, mapping)
            for column, value in mapping.items():
                clauses.append(f"{column} {operator} ?")
                params.append(value)
        sql = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        return sql, params

    # ---- Writes -------------------------------------------------------------

    async def upsert(self, table: str, row: Mapping[str, Any]) -> None:
        """Insert or replace *row* by id. Resets ``sync_attempts``."""
        await self.upsert_many(table, [row])

    async def upsert_many(self, table: str, rows: list[Mapping[str, Any]]) -> None:
        self._columns(table)
        if not rows:
            return
        columns = list(rows[0])
        self._check_columns(table, columns)
        placeholders = ", ".join("?" for _ in columns)
        sql = f"INSERT OR REPLACE INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"
        with self._transaction() as conn:
            conn.executemany(sql, [tuple(row[c] for c in columns) for row in rows])

    async def update(self, table: str, record_id: str, values: Mapping[str, Any]) -> int:
        self._check_columns(table, values)
        assignments = ", ".join(f"{column} = ?" for column in values)
        with self._transaction() as conn:
            cursor = conn.execute(
                f"UPDATE {table} SET {assignments} WHERE id = ?",
                (*values.values(), record_id),
            )
            return cursor.rowcount

    async def delete(self, table: str, record_id: str) -> int:
        return await self.delete_where(table, {"id": record_id})

    async def delete_where(self, table: str, where: Optional[Mapping[str, Any]] = None) -> int:
        clause, params = self._where(table, where, None, None)
        with self._transaction() as conn:
            return conn.execute(f"DELETE FROM {table}{clause}", params).rowcount

    # ---- Reads --------------------------------------------------------------

    async def get(self, table: str, record_id: str) -> Optional[dict[str, Any]]:
        rows = await self.query(table, where={"id": record_id}, limit=1)
        return rows[0] if rows else None

    async def query(
        self,
        table: str,
        *,
        where: Optional[Mapping[str, Any]] = None,
        min_values: Optional[Mapping[str, Any]] = None,
        max_values: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """Equality / range filtered read, optionally ordered and limited."""
        clause, params = self._where(table, where, min_values, max_values)
        sql = f"SELECT * FROM {table}{clause}"
        if order_by:
            self._check_columns(table, [order_by])
            # rowid breaks ties so equal timestamps keep insertion order
            direction = "DESC" if descending else "ASC"
            sql += f" ORDER BY {order_by} {direction}, rowid {direction}"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))
        with self._transaction() as conn:
            return [dict(row) for row in conn.execute(sql, params).fetchall()]

    async def count(self, table: str, where: Optional[Mapping[str, Any]] = None) -> int:
        clause, params = self._where(table, where, None, None)
        with self._transaction() as conn:
            return conn.execute(f"SELECT COUNT(*) FROM {table}{clause}", params).fetchone()[0]

    async def group_count(
        self,
        table: str,
        column: str,
        *,
        min_values: Optional[Mapping[str, Any]] = None,
    ) -> dict[str, int]:
        """``SELECT column, COUNT(*) ... GROUP BY column`` as a dict."""
        self._check_columns(table, [column])
        clause, params = self._where(table, None, min_values, None)
        sql = f"SELECT {column} AS key, COUNT(*) AS count FROM {table}{clause} GROUP BY {column}"
        with self._transaction() as conn:
            return {row["key"]: row["count"] for row in conn.execute(sql, params).fetchall()}

    # ---- Sync state ---------------------------------------------------------

    async def unsynced(self, table: str, order_by: str) -> list[dict[str, Any]]:
        """Rows still waiting for a confirmed remote write, oldest first."""
        return await self.query(
            table, where={"sync_state": int(SyncState.UNSYNCED)}, order_by=order_by,
        )

    async def mark_synced(
        self,
        table: str,
        record_id: str,
        matching: Optional[Mapping[str, Any]] = None,
    ) -> int:
        """Flag a row synced. With *matching*, only if its data columns still
        equal what was written remotely; a newer local edit stays unsynced."""
        where = {"id": record_id}
        if matching:
            where.update({
                k: v for k, v in matching.items() if k not in _SYNC_COLUMNS and v is not None
            })
        clause, params = self._where(table, where, None, None)
        with self._transaction() as conn:
            return conn.execute(
                f"UPDATE {table} SET sync_state = ?, sync_attempts = 0{clause}",
                (int(SyncState.SYNCED), *params),
            ).rowcount

    async def record_sync_failure(self, table: str, record_id: str, max_attempts: int) -> SyncState:
        """Count a failed remote write; dead-letter the row once the cap is hit."""
        with self._transaction() as conn:
            row = conn.execute(
                f"SELECT sync_state, sync_attempts FROM {self._table(table)} WHERE id = ?",
                (record_id,),
            ).fetchone()
            if row is None:
                return SyncState.UNSYNCED
            if row["sync_state"] == SyncState.SYNCED:
                # A concurrent mirror write landed first.
                return SyncState.SYNCED
            attempts = row["sync_attempts"] + 1
            state = SyncState.DEAD_LETTER if attempts >= max_attempts else SyncState.UNSYNCED
            conn.execute(
                f"UPDATE {table} SET sync_state = ?, sync_attempts = ? WHERE id = ?",
                (int(state), attempts, record_id),
            )
            return state

    async def reset_dead_letters(self, table: str) -> int:
        with self._transaction() as conn:
            return conn.execute(
                f"UPDATE {self._table(table)} SET sync_state = ?, sync_attempts = 0 "
                "WHERE sync_state = ?",
                (int(SyncState.UNSYNCED), int(SyncState.DEAD_LETTER)),
            ).rowcount

    async def count_by_state(self, table: str) -> dict[SyncState, int]:
        counts = await self.group_count(table, "sync_state")
        return {state: counts.get(int(state), 0) for state in SyncState}

    def _table(self, table: str) -> str:
        self._columns(table)
        return table
