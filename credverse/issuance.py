"""
Issuance pipeline — build, sign, store, anchor.

Flow for one credential:
    1. Build: subject fields + template + metadata → draft credential.
    2. Sign: attach an Ed25519 proof over the canonical digest.
    3. Store (optional): put the canonical signed credential blob in the
       content store under the registry retry policy; its address becomes
       a storage ref.
    4. Anchor: record {digest, issuer, credentialId, storageRefs} on the
       registry under the issuer identity.
    5. Fill in metadata.digest and metadata.storageRefs. These fields are
       outside the canonical form, so the proof and digest stay valid.

Revocation goes straight to the registry under the same identity.

Bulk issuance runs the single-credential flow per subject with bounded
concurrency. A failing item is reported in its BulkItemResult and never
aborts the rest of the batch.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import structlog

from credverse.canonical_json import canonical_json_bytes
from credverse.config import CredverseSettings, get_settings
from credverse.content_store import ContentStore
from credverse.credential.builder import build_credential
from credverse.credential.model import Credential, CredentialMetadata
from credverse.credential.pointer import verification_uri
from credverse.credential.signing import IssuerKey, sign_credential
from credverse.integrity import prefixed
from credverse.registry.client import RegistryClient
from credverse.registry.entry import AnchorReceipt, RevocationReceipt
from credverse.retry import call_with_retry

logger = structlog.get_logger()

DEFAULT_REVOCATION_REASON = "Credential revoked by issuer"


@dataclass(frozen=True)
class IssuedCredential:
    """A signed, anchored credential plus its anchor receipt."""

    credential: Credential
    receipt: AnchorReceipt
    verification_uri: str

    @property
    def digest(self) -> str:
        return self.receipt.digest

    def to_dict(self) -> dict[str, object]:
        return {
            "credential": self.credential.to_dict(),
            "receipt": self.receipt.to_dict(),
            "verificationUri": self.verification_uri,
        }


@dataclass(frozen=True)
class BulkItemResult:
    """Outcome of one item in a bulk issuance."""

    index: int
    issued: IssuedCredential | None = None
    error_type: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.issued is not None

    def to_dict(self) -> dict[str, object]:
        result: dict[str, object] = {"index": self.index, "ok": self.ok}
        if self.issued is not None:
            result["credentialId"] = self.issued.credential.id
            result["digest"] = self.issued.digest
        if self.error is not None:
            result["errorType"] = self.error_type
            result["error"] = self.error
        return result


class CredentialIssuer:
    """Issues and revokes credentials for one issuer identity.

    Args:
        issuer_key: The issuer's identity and signing key.
        registry: Registry client. A client without identity is bound to
            the issuer identity; one bound to a different identity is
            rejected.
        content_store: Optional blob store for the signed credential.
        settings: Source of the verification base URL and bulk concurrency.
    """

    def __init__(
        self,
        issuer_key: IssuerKey,
        registry: RegistryClient,
        content_store: ContentStore | None = None,
        *,
        settings: CredverseSettings | None = None,
    ) -> None:
        if registry.identity is None:
            registry = registry.with_identity(issuer_key.identity)
        elif registry.identity != issuer_key.identity:
            raise ValueError(
                f"registry client acts as {registry.identity}, "
                f"issuer key belongs to {issuer_key.identity}"
            )
        self._key = issuer_key
        self._registry = registry
        self._store = content_store
        self._settings = settings or get_settings()

    @property
    def identity(self) -> str:
        return self._key.identity

    async def issue(
        self,
        subject: Mapping[str, Any],
        template_id: str,
        metadata: CredentialMetadata | None = None,
    ) -> IssuedCredential:
        """Build, sign, store and anchor one credential.

        Raises:
            MissingRequiredField, MalformedDocument: Bad subject/template.
            SigningKeyUnavailable: The issuer key cannot sign.
            Unauthorized, AlreadyAnchored: Registry refused the anchor.
            RegistryUnavailable: Registry or content store retry budget
                exhausted.
        """
        draft = build_credential(subject, template_id, metadata, issuer=self._key.identity)
        signed = sign_credential(draft, self._key)
        digest = signed.digest()

        storage_refs: tuple[str, ...] = ()
        store = self._store
        if store is not None:
            blob = canonical_json_bytes(signed.to_dict())
            address = await call_with_retry(
                "content_put",
                lambda: store.put(blob),
                self._registry.policy,
                sleep=self._registry.sleep,
            )
            storage_refs = (address,)

        receipt = await self._registry.anchor(digest, signed.id, storage_refs)
        credential = signed.with_anchor(prefixed(digest), storage_refs)

        logger.info(
            "credential_issued",
            credential_id=credential.id,
            digest=digest,
            template_id=template_id,
            stored=bool(storage_refs),
        )
        return IssuedCredential(
            credential=credential,
            receipt=receipt,
            verification_uri=verification_uri(credential.id, self._settings.verify_base_url),
        )

    async def revoke(
        self,
        credential_id: str,
        reason: str = DEFAULT_REVOCATION_REASON,
    ) -> RevocationReceipt:
        """Revoke a credential this issuer anchored.

        Raises:
            NotIssuer, AlreadyRevoked, NotFound: Registry refused the revocation.
            RegistryUnavailable: Registry retry budget exhausted.
        """
        return await self._registry.revoke(credential_id, reason or DEFAULT_REVOCATION_REASON)

    async def bulk_issue(
        self,
        subjects: Sequence[Mapping[str, Any]],
        template_id: str,
        metadata: CredentialMetadata | None = None,
        *,
        concurrency: int | None = None,
    ) -> list[BulkItemResult]:
        """Issue one credential per subject; results are in input order."""
        limit = concurrency if concurrency is not None else self._settings.bulk_concurrency
        if limit < 1:
            raise ValueError(f"concurrency must be >= 1, got: {limit}")
        semaphore = asyncio.Semaphore(limit)

        async def run(index: int, subject: Mapping[str, Any]) -> BulkItemResult:
            async with semaphore:
                try:
                    issued = await self.issue(subject, template_id, metadata)
                except Exception as exc:
                    logger.warning(
                        "bulk_item_failed",
                        index=index,
                        error_type=type(exc).__name__,
                        error=str(exc),
                    )
                    return BulkItemResult(
                        index=index, error_type=type(exc).__name__, error=str(exc)
                    )
                return BulkItemResult(index=index, issued=issued)

        results = await asyncio.gather(*(run(i, s) for i, s in enumerate(subjects)))
        failed = sum(1 for r in results if not r.ok)
        logger.info(
            "bulk_issue_complete",
            total=len(results),
            succeeded=len(results) - failed,
            failed=failed,
        )
        return list(results)
