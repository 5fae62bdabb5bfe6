"""
In-memory ledger backend.

Reference implementation of LedgerBackend for tests and single-process
use. Every method completes without yielding to the event loop, so each
operation is atomic with respect to other tasks.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import replace

from credverse.registry.backend import LedgerErrorCode, LedgerResponse, ledger_now
from credverse.registry.entry import RegistryEntry


class InMemoryLedger:
    """Dict-backed append-only registry.

    Args:
        authorized_issuers: Identities holding anchor rights.
        now_fn: Timestamp source (RFC3339 UTC); injectable for tests.
    """

    def __init__(
        self,
        authorized_issuers: Iterable[str] = (),
        now_fn: Callable[[], str] = ledger_now,
    ) -> None:
        self._authorized: set[str] = set(authorized_issuers)
        self._entries: dict[str, RegistryEntry] = {}
        self._by_credential: dict[str, str] = {}
        self._now = now_fn

    def authorize(self, identity: str) -> None:
        """Grant anchor rights to ``identity``."""
        self._authorized.add(identity)

    def __len__(self) -> int:
        return len(self._entries)

    async def anchor(
        self,
        digest: str,
        issuer: str,
        credential_id: str,
        storage_refs: tuple[str, ...],
    ) -> LedgerResponse:
        if issuer not in self._authorized:
            return LedgerResponse.failure(LedgerErrorCode.UNAUTHORIZED, f"{issuer} lacks anchor rights")

        existing = self._entries.get(digest)
        if existing is not None:
            return LedgerResponse.failure(LedgerErrorCode.ALREADY_ANCHORED, entry=existing)

        prior = self._by_credential.get(credential_id)
        if prior is not None:
            return LedgerResponse.failure(
                LedgerErrorCode.ALREADY_ANCHORED,
                f"credential id {credential_id} already anchored under another digest",
                entry=self._entries[prior],
            )

        now = self._now()
        entry = RegistryEntry(
            digest=digest,
            issuer=issuer,
            anchored_at=now,
            credential_id=credential_id,
            storage_refs=tuple(storage_refs),
        )
        self._entries[digest] = entry
        self._by_credential[credential_id] = digest
        return LedgerResponse.success(entry, timestamp=now)

    async def lookup(self, digest: str) -> LedgerResponse:
        entry = self._entries.get(digest)
        if entry is None:
            return LedgerResponse.failure(LedgerErrorCode.NOT_FOUND)
        return LedgerResponse.success(entry)

    async def revoke(self, credential_id: str, reason: str, caller: str) -> LedgerResponse:
        digest = self._by_credential.get(credential_id)
        if digest is None:
            return LedgerResponse.failure(LedgerErrorCode.NOT_FOUND)

        entry = self._entries[digest]
        if entry.issuer != caller:
            return LedgerResponse.failure(LedgerErrorCode.NOT_ISSUER, entry=entry)
        if entry.revoked:
            return LedgerResponse.failure(LedgerErrorCode.ALREADY_REVOKED, entry=entry)

        now = self._now()
        revoked = replace(entry, revoked=True, revocation_reason=reason)
        self._entries[digest] = revoked
        return LedgerResponse.success(revoked, timestamp=now)

    async def is_authorized_issuer(self, identity: str) -> bool:
        return identity in self._authorized
