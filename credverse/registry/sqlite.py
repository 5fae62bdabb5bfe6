"""
SQLite ledger backend.

Two tables:
    - registry_entries: one row per anchored digest.
    - authorized_issuers: identities holding anchor rights.

Invariants (enforced by the schema, not only by this class):
    - digest and credential_id are unique.
    - digest, issuer, anchored_at, credential_id and storage_refs_json are
      never updated (trigger).
    - revoked never goes from 1 back to 0 (trigger).
    - All timestamps are RFC3339 UTC.

SQLite patterns:
    - _get_conn() with persistent connection for :memory:
    - _transaction() context manager with commit/rollback
    - _init_schema() via executescript
    - sqlite3.Row row factory
    - WAL mode for file-backed databases

The async LedgerBackend methods run the synchronous queries on a worker
thread via asyncio.to_thread.
"""

from __future__ import annotations

import asyncio
import json
import sqlite3
import threading
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from credverse.config import CredverseSettings
from credverse.registry.backend import LedgerErrorCode, LedgerResponse, ledger_now
from credverse.registry.entry import RegistryEntry

_SCHEMA = """\
CREATE TABLE IF NOT EXISTS registry_entries (
    digest TEXT PRIMARY KEY,
    credential_id TEXT NOT NULL UNIQUE,
    issuer TEXT NOT NULL,
    anchored_at TEXT NOT NULL,
    revoked INTEGER NOT NULL DEFAULT 0,
    revocation_reason TEXT NOT NULL DEFAULT '',
    revoked_at TEXT,
    storage_refs_json TEXT NOT NULL DEFAULT '[]'
);

CREATE INDEX IF NOT EXISTS idx_entries_issuer
ON registry_entries(issuer);

CREATE TABLE IF NOT EXISTS authorized_issuers (
    identity TEXT PRIMARY KEY,
    granted_at TEXT NOT NULL
);

CREATE TRIGGER IF NOT EXISTS registry_entries_immutable
BEFORE UPDATE OF digest, credential_id, issuer, anchored_at, storage_refs_json
ON registry_entries
BEGIN
    SELECT RAISE(ABORT, 'registry entries are append-only');
END;

CREATE TRIGGER IF NOT EXISTS registry_entries_revoked_monotonic
BEFORE UPDATE OF revoked ON registry_entries
WHEN OLD.revoked = 1 AND NEW.revoked = 0
BEGIN
    SELECT RAISE(ABORT, 'revoked flag is monotonic');
END;

CREATE TRIGGER IF NOT EXISTS registry_entries_no_delete
BEFORE DELETE ON registry_entries
BEGIN
    SELECT RAISE(ABORT, 'registry entries are append-only');
END;
"""


def _row_to_entry(row: sqlite3.Row | dict[str, Any]) -> RegistryEntry:
    return RegistryEntry(
        digest=row["digest"],
        issuer=row["issuer"],
        anchored_at=row["anchored_at"],
        credential_id=row["credential_id"],
        revoked=bool(row["revoked"]),
        revocation_reason=row["revocation_reason"] or "",
        storage_refs=tuple(json.loads(row["storage_refs_json"])),
    )


class SqliteLedger:
    """SQLite-backed append-only registry.

    Args:
        db_path: Path to SQLite database file, or ":memory:" for in-memory.
        authorized_issuers: Identities to grant anchor rights at startup.
        now_fn: Timestamp source (RFC3339 UTC); injectable for tests.
    """

    def __init__(
        self,
        db_path: str | Path = ":memory:",
        authorized_issuers: Iterable[str] = (),
        now_fn: Callable[[], str] = ledger_now,
    ) -> None:
        self._db_path = str(db_path)
        self._is_memory = self._db_path == ":memory:"
        self._now = now_fn
        # Serializes read-check-write sequences across to_thread workers.
        self._lock = threading.Lock()

        if self._is_memory:
            self._persistent_conn = sqlite3.connect(":memory:", check_same_thread=False)
            self._persistent_conn.row_factory = sqlite3.Row
        else:
            self._persistent_conn = None

        self._init_schema()
        for identity in authorized_issuers:
            self.authorize(identity)

    @classmethod
    def from_settings(
        cls,
        settings: CredverseSettings,
        authorized_issuers: Iterable[str] = (),
    ) -> SqliteLedger:
        return cls(settings.registry_db_path, authorized_issuers=authorized_issuers)

    def _get_conn(self) -> sqlite3.Connection:
        """Get a database connection with proper settings."""
        if self._persistent_conn is not None:
            return self._persistent_conn

        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode = WAL")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for a database transaction."""
        with self._lock:
            conn = self._get_conn()
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise
            finally:
                if self._persistent_conn is None:
                    conn.close()

    def _init_schema(self) -> None:
        """Create tables and triggers if they don't exist."""
        with self._transaction() as conn:
            conn.executescript(_SCHEMA)

    def close(self) -> None:
        if self._persistent_conn is not None:
            self._persistent_conn.close()
            self._persistent_conn = None

    # -----------------------------------------------------------------
    # Synchronous operations
    # -----------------------------------------------------------------

    def authorize(self, identity: str) -> None:
        """Grant anchor rights to ``identity`` (idempotent)."""
        with self._transaction() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO authorized_issuers (identity, granted_at) VALUES (?, ?)",
                (identity, self._now()),
            )

    def is_authorized_sync(self, identity: str) -> bool:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT 1 FROM authorized_issuers WHERE identity = ?",
                (identity,),
            ).fetchone()
        return row is not None

    def get_entry(self, digest: str) -> RegistryEntry | None:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM registry_entries WHERE digest = ?",
                (digest,),
            ).fetchone()
        return None if row is None else _row_to_entry(row)

    def count_entries(self) -> int:
        with self._transaction() as conn:
            row = conn.execute("SELECT COUNT(*) AS n FROM registry_entries").fetchone()
        return int(row["n"])

    def anchor_sync(
        self,
        digest: str,
        issuer: str,
        credential_id: str,
        storage_refs: tuple[str, ...],
    ) -> LedgerResponse:
        with self._transaction() as conn:
            authorized = conn.execute(
                "SELECT 1 FROM authorized_issuers WHERE identity = ?",
                (issuer,),
            ).fetchone()
            if authorized is None:
                return LedgerResponse.failure(
                    LedgerErrorCode.UNAUTHORIZED, f"{issuer} lacks anchor rights"
                )

            existing = conn.execute(
                "SELECT * FROM registry_entries WHERE digest = ? OR credential_id = ?",
                (digest, credential_id),
            ).fetchone()
            if existing is not None:
                detail = None
                if existing["digest"] != digest:
                    detail = f"credential id {credential_id} already anchored under another digest"
                return LedgerResponse.failure(
                    LedgerErrorCode.ALREADY_ANCHORED, detail, entry=_row_to_entry(existing)
                )

            now = self._now()
            conn.execute(
                """
                INSERT INTO registry_entries
                (digest, credential_id, issuer, anchored_at, revoked, storage_refs_json)
                VALUES (?, ?, ?, ?, 0, ?)
                """,
                (digest, credential_id, issuer, now, json.dumps(list(storage_refs))),
            )
            row = conn.execute(
                "SELECT * FROM registry_entries WHERE digest = ?", (digest,)
            ).fetchone()
        return LedgerResponse.success(_row_to_entry(row), timestamp=now)

    def lookup_sync(self, digest: str) -> LedgerResponse:
        entry = self.get_entry(digest)
        if entry is None:
            return LedgerResponse.failure(LedgerErrorCode.NOT_FOUND)
        return LedgerResponse.success(entry)

    def revoke_sync(self, credential_id: str, reason: str, caller: str) -> LedgerResponse:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM registry_entries WHERE credential_id = ?",
                (credential_id,),
            ).fetchone()
            if row is None:
                return LedgerResponse.failure(LedgerErrorCode.NOT_FOUND)

            entry = _row_to_entry(row)
            if entry.issuer != caller:
                return LedgerResponse.failure(LedgerErrorCode.NOT_ISSUER, entry=entry)

            now = self._now()
            cursor = conn.execute(
                """
                UPDATE registry_entries
                SET revoked = 1, revocation_reason = ?, revoked_at = ?
                WHERE credential_id = ? AND revoked = 0
                """,
                (reason, now, credential_id),
            )
            if cursor.rowcount == 0:
                return LedgerResponse.failure(LedgerErrorCode.ALREADY_REVOKED, entry=entry)

            row = conn.execute(
                "SELECT * FROM registry_entries WHERE credential_id = ?",
                (credential_id,),
            ).fetchone()
        return LedgerResponse.success(_row_to_entry(row), timestamp=now)

    # -----------------------------------------------------------------
    # LedgerBackend
    # -----------------------------------------------------------------

    async def anchor(
        self,
        digest: str,
        issuer: str,
        credential_id: str,
        storage_refs: tuple[str, ...],
    ) -> LedgerResponse:
        return await asyncio.to_thread(
            self.anchor_sync, digest, issuer, credential_id, tuple(storage_refs)
        )

    async def lookup(self, digest: str) -> LedgerResponse:
        return await asyncio.to_thread(self.lookup_sync, digest)

    async def revoke(self, credential_id: str, reason: str, caller: str) -> LedgerResponse:
        return await asyncio.to_thread(self.revoke_sync, credential_id, reason, caller)

    async def is_authorized_issuer(self, identity: str) -> bool:
        return await asyncio.to_thread(self.is_authorized_sync, identity)
