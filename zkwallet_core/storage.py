"""
Key-value persistence for sessions, salts and pending-login state.

Two scopes are used by the wallet:

    local    durable; holds the session record and per-subject salts,
             survives logout
    session  ephemeral; holds the pending login and ephemeral key,
             cleared on every logout

Values are JSON-serialisable objects.

Usage:
    local = SqliteStore("data/zkwallet.db", scope="local")
    local.set("salt:github:42", "1234")
    local.get("salt:github:42")
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Iterator, Protocol

logger = logging.getLogger("zkwallet.storage")

LOCAL_SCOPE = "local"
SESSION_SCOPE = "session"


class KeyValueStore(Protocol):
    def get(self, key: str, default: Any = None) -> Any: ...
    def set(self, key: str, value: Any) -> None: ...
    def delete(self, key: str) -> None: ...
    def clear(self) -> None: ...
    def keys(self) -> Iterator[str]: ...


class MemoryStore:
    """Process-local store; values are copied through JSON like the SQLite store."""

    def __init__(self, scope: str = LOCAL_SCOPE):
        self.scope = scope
        self._data: dict[str, str] = {}

    def get(self, key: str, default: Any = None) -> Any:
        raw = self._data.get(key)
        return default if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def keys(self) -> Iterator[str]:
        return iter(list(self._data))

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)


class SqliteStore:
    """Thin SQLite wrapper holding one scope of key-value records."""

    CURRENT_SCHEMA_VERSION = 1

    def __init__(self, db_path: str = "data/zkwallet.db", scope: str = LOCAL_SCOPE):
        self.db_path = db_path
        self.scope = scope
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA busy_timeout = 5000")
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._create_tables()
        self._ensure_schema_version()
        logger.debug(f"Storage opened: {db_path} [{scope}]")

    # ── schema ───────────────────────────────────────────────────

    def _create_tables(self) -> None:
        c = self._conn
        c.execute("""
            CREATE TABLE IF NOT EXISTS kv (
                scope TEXT NOT NULL,
                key   TEXT NOT NULL,
                value TEXT NOT NULL,
                PRIMARY KEY (scope, key)
            )
        """)
        c.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                id      INTEGER PRIMARY KEY CHECK (id = 1),
                version INTEGER NOT NULL
            )
        """)
        c.commit()

    def _ensure_schema_version(self) -> None:
        row = self._conn.execute(
            "SELECT version FROM schema_version WHERE id = 1"
        ).fetchone()
        if row is None:
            self._conn.execute(
                "INSERT OR IGNORE INTO schema_version (id, version) VALUES (1, ?)",
                (self.CURRENT_SCHEMA_VERSION,),
            )
            self._conn.commit()
        elif row["version"] > self.CURRENT_SCHEMA_VERSION:
            raise RuntimeError(
                f"Database schema v{row['version']} is newer than this software "
                f"(v{self.CURRENT_SCHEMA_VERSION})."
            )

    # ── records ──────────────────────────────────────────────────

    def get(self, key: str, default: Any = None) -> Any:
        row = self._conn.execute(
            "SELECT value FROM kv WHERE scope = ? AND key = ?", (self.scope, key)
        ).fetchone()
        return default if row is None else json.loads(row["value"])

    def set(self, key: str, value: Any) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO kv (scope, key, value) VALUES (?, ?, ?)",
            (self.scope, key, json.dumps(value)),
        )
        self._conn.commit()

    def delete(self, key: str) -> None:
        self._conn.execute(
            "DELETE FROM kv WHERE scope = ? AND key = ?", (self.scope, key)
        )
        self._conn.commit()

    def clear(self) -> None:
        self._conn.execute("DELETE FROM kv WHERE scope = ?", (self.scope,))
        self._conn.commit()

    def keys(self) -> Iterator[str]:
        rows = self._conn.execute(
            "SELECT key FROM kv WHERE scope = ? ORDER BY key", (self.scope,)
        ).fetchall()
        return iter([r["key"] for r in rows])

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    # ── lifecycle ────────────────────────────────────────────────

    def close(self) -> None:
        self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


def open_stores(backend: str = "memory", path: str = "data/zkwallet.db") -> tuple[KeyValueStore, KeyValueStore]:
    """Return ``(local, session)`` stores for the configured backend."""
    if backend == "sqlite":
        return SqliteStore(path, LOCAL_SCOPE), SqliteStore(path, SESSION_SCOPE)
    if backend == "memory":
        return MemoryStore(LOCAL_SCOPE), MemoryStore(SESSION_SCOPE)
    raise ValueError(f"Unknown storage backend: {backend}")
