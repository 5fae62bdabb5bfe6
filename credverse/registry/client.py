"""
Registry client — the only path by which credverse talks to the ledger.

Wraps a LedgerBackend with:
    - caller identity (anchor/revoke rights are checked by the ledger)
    - digest normalization (accepts "sha256:", "0x" or bare hex)
    - per-call timeout and bounded exponential backoff (credverse.retry)
    - mapping of ledger error codes to typed exceptions

The client holds no entry cache: every lookup is a fresh registry read,
so a revocation is visible to the next verification.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import structlog

from credverse.config import CredverseSettings
from credverse.errors import NotIssuer, Unauthorized
from credverse.integrity import normalize_digest
from credverse.registry.backend import (
    LedgerBackend,
    LedgerErrorCode,
    LedgerResponse,
    ledger_now,
)
from credverse.registry.entry import AnchorReceipt, RegistryEntry, RevocationReceipt
from credverse.registry.errors import raise_for_response
from credverse.retry import RetryPolicy, call_with_retry

logger = structlog.get_logger()


def _is_own_entry(
    response: LedgerResponse,
    digest: str,
    identity: str,
    credential_id: str,
) -> bool:
    entry = response.entry
    return (
        response.error_code == LedgerErrorCode.ALREADY_ANCHORED
        and entry is not None
        and entry.digest == digest
        and entry.issuer == identity
        and entry.credential_id == credential_id
    )


class RegistryClient:
    """Async client for the append-only credential registry.

    Args:
        backend: Ledger implementation.
        identity: Identity the client acts as for anchor/revoke. A client
            without identity is read-only.
        policy: Timeout/backoff budget applied to every call.
        sleep: Injectable sleep used between retries (tests).
    """

    def __init__(
        self,
        backend: LedgerBackend,
        *,
        identity: str | None = None,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._backend = backend
        self._identity = identity
        self._policy = policy or RetryPolicy()
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        backend: LedgerBackend,
        settings: CredverseSettings,
        *,
        identity: str | None = None,
    ) -> RegistryClient:
        return cls(backend, identity=identity, policy=RetryPolicy.from_settings(settings))

    @property
    def identity(self) -> str | None:
        return self._identity

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    @property
    def sleep(self) -> Callable[[float], Awaitable[None]]:
        return self._sleep

    def with_identity(self, identity: str) -> RegistryClient:
        """Client sharing this backend and policy, acting as ``identity``."""
        return RegistryClient(
            self._backend, identity=identity, policy=self._policy, sleep=self._sleep
        )

    async def _call(
        self,
        operation: str,
        fn: Callable[[], Awaitable[LedgerResponse]],
    ) -> LedgerResponse:
        """Run one ledger call under the retry policy.

        SERVER_ERROR responses are raised inside the attempt so they consume
        the retry budget; every other response is returned as-is.
        """

        async def attempt() -> LedgerResponse:
            response = await fn()
            if response.error_code == LedgerErrorCode.SERVER_ERROR:
                raise_for_response(response)
            return response

        return await call_with_retry(operation, attempt, self._policy, sleep=self._sleep)

    # -----------------------------------------------------------------
    # Writes
    # -----------------------------------------------------------------

    async def anchor(
        self,
        digest: str,
        credential_id: str,
        storage_refs: tuple[str, ...] | list[str] = (),
    ) -> AnchorReceipt:
        """Anchor ``digest`` for ``credential_id`` under the client identity.

        A retry that finds the entry this call already wrote returns its
        receipt instead of raising AlreadyAnchored.

        Raises:
            MalformedDocument: If ``digest`` is not a SHA-256 digest.
            Unauthorized: No identity, or the identity lacks anchor rights.
            AlreadyAnchored: The digest (or credential id) is already anchored.
            RegistryUnavailable: Retry budget exhausted.
        """
        hex_digest = normalize_digest(digest)
        identity = self._identity
        if not identity:
            raise Unauthorized(None, detail="registry client has no identity")

        refs = tuple(storage_refs)
        attempts = 0

        async def send() -> LedgerResponse:
            nonlocal attempts
            attempts += 1
            return await self._backend.anchor(hex_digest, identity, credential_id, refs)

        response = await self._call("anchor", send)
        # A retried anchor may find the entry an earlier attempt wrote before
        # its response was lost.
        if attempts > 1 and _is_own_entry(response, hex_digest, identity, credential_id):
            assert response.entry is not None
            logger.info(
                "anchor_recovered",
                digest=hex_digest,
                credential_id=credential_id,
                attempts=attempts,
            )
            return AnchorReceipt.from_entry(response.entry)
        raise_for_response(
            response, digest=hex_digest, credential_id=credential_id, identity=identity
        )
        assert response.entry is not None
        receipt = AnchorReceipt.from_entry(response.entry)
        logger.info(
            "credential_anchored",
            digest=hex_digest,
            credential_id=credential_id,
            issuer=identity,
        )
        return receipt

    async def revoke(self, credential_id: str, reason: str) -> RevocationReceipt:
        """Revoke the credential anchored for ``credential_id``.

        Raises:
            NotIssuer: No identity, or the caller is not the anchoring issuer.
            AlreadyRevoked: The revoked flag is already set.
            NotFound: Nothing is anchored for ``credential_id``.
            RegistryUnavailable: Retry budget exhausted.
        """
        identity = self._identity
        if not identity:
            raise NotIssuer(credential_id, detail="registry client has no identity")

        response = await self._call(
            "revoke",
            lambda: self._backend.revoke(credential_id, reason, identity),
        )
        raise_for_response(response, credential_id=credential_id, identity=identity)
        assert response.entry is not None
        entry = response.entry
        receipt = RevocationReceipt(
            credential_id=credential_id,
            digest=entry.digest,
            issuer=entry.issuer,
            reason=entry.revocation_reason,
            revoked_at=response.timestamp or ledger_now(),
        )
        logger.info(
            "credential_revoked",
            digest=entry.digest,
            credential_id=credential_id,
            issuer=identity,
        )
        return receipt

    # -----------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------

    async def lookup(self, digest: str) -> RegistryEntry | None:
        """Fetch the registry entry for ``digest``; None when not anchored.

        Raises:
            MalformedDocument: If ``digest`` is not a SHA-256 digest.
            RegistryUnavailable: Retry budget exhausted.
        """
        hex_digest = normalize_digest(digest)
        response = await self._call("lookup", lambda: self._backend.lookup(hex_digest))
        if not response.ok and response.error_code == LedgerErrorCode.NOT_FOUND:
            return None
        raise_for_response(response, digest=hex_digest)
        return response.entry

    async def is_authorized_issuer(self, identity: str) -> bool:
        """Whether ``identity`` holds anchor rights on the registry."""
        return await call_with_retry(
            "is_authorized_issuer",
            lambda: self._backend.is_authorized_issuer(identity),
            self._policy,
            sleep=self._sleep,
        )
