"""
Ledger backend protocol — the registry boundary.

Defines the interface the RegistryClient depends on, not a concrete
ledger. This keeps the client testable and keeps storage and consensus
mechanics out of the protocol logic.

Concrete implementations:
    - InMemoryLedger (reference, single process)
    - SqliteLedger (reference, file-backed or :memory:)
    - FlakyLedger / DownLedger (tests)

The backend, not the client, enforces the registry rules:
    - at most one entry per digest (and per credential id)
    - only authorized issuers may anchor
    - only the anchoring issuer may revoke
    - revoked is monotonic

Expected outcomes (conflicts, not-found) come back as LedgerResponse
values. Transport-level faults raise TransientLedgerError, TimeoutError
or ConnectionError; the client retries those.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Protocol, runtime_checkable

from credverse.registry.entry import RegistryEntry


class LedgerErrorCode(StrEnum):
    """Registry-reported failure categories."""

    ALREADY_ANCHORED = "ALREADY_ANCHORED"
    UNAUTHORIZED = "UNAUTHORIZED"
    NOT_FOUND = "NOT_FOUND"
    NOT_ISSUER = "NOT_ISSUER"
    ALREADY_REVOKED = "ALREADY_REVOKED"
    SERVER_ERROR = "SERVER_ERROR"


@dataclass(frozen=True)
class LedgerResponse:
    """Outcome of one ledger operation.

    Attributes:
        ok: Whether the operation succeeded.
        entry: The affected (or looked-up) entry. On ALREADY_ANCHORED this
            is the existing entry. None when there is no entry.
        error_code: Failure category when ok is False.
        detail: Human-readable diagnostics.
        timestamp: RFC3339 UTC time the ledger applied a write.
    """

    ok: bool
    entry: RegistryEntry | None = None
    error_code: LedgerErrorCode | None = None
    detail: str | None = None
    timestamp: str | None = None

    @classmethod
    def success(cls, entry: RegistryEntry | None, timestamp: str | None = None) -> LedgerResponse:
        return cls(ok=True, entry=entry, timestamp=timestamp)

    @classmethod
    def failure(
        cls,
        code: LedgerErrorCode,
        detail: str | None = None,
        entry: RegistryEntry | None = None,
    ) -> LedgerResponse:
        return cls(ok=False, entry=entry, error_code=code, detail=detail)


def ledger_now() -> str:
    """RFC3339 UTC timestamp with millisecond precision."""
    now = datetime.now(UTC)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


@runtime_checkable
class LedgerBackend(Protocol):
    """Interface for append-only registry operations.

    Methods are async because a real ledger is a remote service.
    """

    async def anchor(
        self,
        digest: str,
        issuer: str,
        credential_id: str,
        storage_refs: tuple[str, ...],
    ) -> LedgerResponse:
        """Record a new entry keyed by ``digest`` on behalf of ``issuer``."""
        ...

    async def lookup(self, digest: str) -> LedgerResponse:
        """Read the entry for ``digest`` (NOT_FOUND if absent). Read-only."""
        ...

    async def revoke(self, credential_id: str, reason: str, caller: str) -> LedgerResponse:
        """Set the revoked flag of the entry anchored for ``credential_id``."""
        ...

    async def is_authorized_issuer(self, identity: str) -> bool:
        """Whether ``identity`` holds anchor rights."""
        ...
