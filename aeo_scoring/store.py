"""Keyed document stores for domain analyses and page scores."""

from __future__ import annotations

import asyncio
import json
import sqlite3
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from aeo_scoring.exceptions import StoreError


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class KeyValueStore(ABC):
    """
    Minimal persistence contract.

    Documents are JSON-serializable dicts grouped in named collections.
    Each document has an ``id`` and may carry a ``parent`` key (for
    example ``domain:project``) used by ``find_latest_by_parent``.
    """

    @abstractmethod
    async def create(self, collection: str, doc: Dict[str, Any], parent: str | None = None) -> str:
        ...

    @abstractmethod
    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def find_latest_by_parent(self, collection: str, parent: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def upsert(self, collection: str, doc_id: str, doc: Dict[str, Any], parent: str | None = None) -> str:
        ...

    @abstractmethod
    async def delete(self, collection: str, doc_id: str | None = None, parent: str | None = None) -> int:
        """Delete by id, or every document under ``parent``. Returns the count removed."""

    async def close(self) -> None:
        return None


class InMemoryStore(KeyValueStore):
    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._seq = 0
        self._lock = asyncio.Lock()

    def _put(self, collection: str, doc_id: str, doc: Dict[str, Any], parent: str | None) -> None:
        self._seq += 1
        self._collections.setdefault(collection, {})[doc_id] = {
            "id": doc_id,
            "parent": parent,
            "seq": self._seq,
            "updated_at": _now(),
            "doc": json.loads(json.dumps(doc, default=str)),
        }

    async def create(self, collection: str, doc: Dict[str, Any], parent: str | None = None) -> str:
        doc_id = str(uuid.uuid4())
        async with self._lock:
            self._put(collection, doc_id, doc, parent)
        return doc_id

    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            row = self._collections.get(collection, {}).get(doc_id)
            return dict(row["doc"]) if row else None

    async def find_latest_by_parent(self, collection: str, parent: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            rows = [r for r in self._collections.get(collection, {}).values() if r["parent"] == parent]
            if not rows:
                return None
            return dict(max(rows, key=lambda r: r["seq"])["doc"])

    async def upsert(self, collection: str, doc_id: str, doc: Dict[str, Any], parent: str | None = None) -> str:
        async with self._lock:
            self._put(collection, doc_id, doc, parent)
        return doc_id

    async def delete(self, collection: str, doc_id: str | None = None, parent: str | None = None) -> int:
        async with self._lock:
            rows = self._collections.get(collection, {})
            if doc_id is not None:
                return 1 if rows.pop(doc_id, None) is not None else 0
            doomed = [k for k, r in rows.items() if r["parent"] == parent]
            for k in doomed:
                del rows[k]
            return len(doomed)


class SqliteStore(KeyValueStore):
    """SQLite-backed store; blocking calls run in a worker thread."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            if str(self.path) != ":memory:":
                self.path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self.path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    collection TEXT NOT NULL,
                    id TEXT NOT NULL,
                    parent TEXT,
                    seq INTEGER NOT NULL,
                    updated_at TEXT NOT NULL,
                    body TEXT NOT NULL,
                    PRIMARY KEY (collection, id)
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_documents_parent ON documents (collection, parent, seq)"
            )
            conn.commit()
            self._conn = conn
        return self._conn

    async def _run(self, fn, *args):
        def locked():
            with self._lock:
                return fn(*args)

        try:
            return await asyncio.to_thread(locked)
        except sqlite3.Error as e:
            raise StoreError(f"SQLite store error: {e}") from e

    def _write(self, collection: str, doc_id: str, doc: Dict[str, Any], parent: str | None) -> None:
        conn = self._get_conn()
        seq = conn.execute("SELECT COALESCE(MAX(seq), 0) + 1 FROM documents").fetchone()[0]
        conn.execute(
            """
            INSERT INTO documents (collection, id, parent, seq, updated_at, body)
            VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT (collection, id) DO UPDATE SET
                parent = excluded.parent, seq = excluded.seq,
                updated_at = excluded.updated_at, body = excluded.body
            """,
            (collection, doc_id, parent, seq, _now(), json.dumps(doc, default=str)),
        )
        conn.commit()

    def _select_one(self, query: str, params: tuple) -> Optional[Dict[str, Any]]:
        row = self._get_conn().execute(query, params).fetchone()
        return json.loads(row["body"]) if row else None

    def _delete(self, collection: str, doc_id: str | None, parent: str | None) -> int:
        conn = self._get_conn()
        if doc_id is not None:
            cur = conn.execute("DELETE FROM documents WHERE collection = ? AND id = ?", (collection, doc_id))
        else:
            cur = conn.execute("DELETE FROM documents WHERE collection = ? AND parent = ?", (collection, parent))
        conn.commit()
        return cur.rowcount

    async def create(self, collection: str, doc: Dict[str, Any], parent: str | None = None) -> str:
        doc_id = str(uuid.uuid4())
        await self._run(self._write, collection, doc_id, doc, parent)
        return doc_id

    async def find_by_id(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        return await self._run(
            self._select_one,
            "SELECT body FROM documents WHERE collection = ? AND id = ?",
            (collection, doc_id),
        )

    async def find_latest_by_parent(self, collection: str, parent: str) -> Optional[Dict[str, Any]]:
        return await self._run(
            self._select_one,
            "SELECT body FROM documents WHERE collection = ? AND parent = ? ORDER BY seq DESC LIMIT 1",
            (collection, parent),
        )

    async def upsert(self, collection: str, doc_id: str, doc: Dict[str, Any], parent: str | None = None) -> str:
        await self._run(self._write, collection, doc_id, doc, parent)
        return doc_id

    async def delete(self, collection: str, doc_id: str | None = None, parent: str | None = None) -> int:
        return await self._run(self._delete, collection, doc_id, parent)

    async def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None


def create_store(sqlite_path: str | None = None) -> KeyValueStore:
    return SqliteStore(sqlite_path) if sqlite_path else InMemoryStore()
