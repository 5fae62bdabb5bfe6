"""
Verification orchestrator — combines the signature check and a fresh
registry lookup into one verdict.

A credential is valid iff:
    - its proof verifies against the issuer's resolved key (when checked)
    - its digest is anchored on the registry
    - the anchored entry is not revoked
    - the anchoring issuer matches the document issuer (or the expected
      issuer, for digest-only verification)

Each condition is recorded as a VerificationCheck. The verdict reason is
the first failing check in this order:

    malformed, signature_invalid, not_found, revoked, issuer_mismatch,
    registry_unavailable

Verification never raises for untrusted input: shape violations, unknown
issuers and registry outages all come back as verdicts. Every call
re-queries the registry; nothing is cached between verifications.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import structlog

from credverse.canonical_json import canonicalize
from credverse.credential import signing
from credverse.credential.model import Credential
from credverse.credential.signing import SignatureCheck, SignatureFailure
from credverse.errors import CredverseError, MalformedDocument
from credverse.identity import IdentityResolver
from credverse.integrity import normalize_digest, sha256_digest
from credverse.registry.client import RegistryClient
from credverse.registry.entry import RegistryEntry

logger = structlog.get_logger()


class VerdictReason(StrEnum):
    """Why a verification failed (first failing check wins)."""

    MALFORMED = "malformed"
    SIGNATURE_INVALID = "signature_invalid"
    NOT_FOUND = "not_found"
    REVOKED = "revoked"
    ISSUER_MISMATCH = "issuer_mismatch"
    REGISTRY_UNAVAILABLE = "registry_unavailable"


# Check name → reason reported when that check fails, in precedence order.
_CHECK_REASONS: tuple[tuple[str, VerdictReason], ...] = (
    ("document_well_formed", VerdictReason.MALFORMED),
    ("signature_valid", VerdictReason.SIGNATURE_INVALID),
    ("digest_anchored", VerdictReason.NOT_FOUND),
    ("not_revoked", VerdictReason.REVOKED),
    ("issuer_matches", VerdictReason.ISSUER_MISMATCH),
    ("registry_reachable", VerdictReason.REGISTRY_UNAVAILABLE),
)


@dataclass(frozen=True)
class VerificationCheck:
    """Single verification check result."""

    name: str
    ok: bool
    expected: str | None = None
    actual: str | None = None
    detail: str | None = None

    def to_dict(self) -> dict[str, object]:
        result: dict[str, object] = {"name": self.name, "ok": self.ok}
        if not self.ok:
            if self.expected is not None:
                result["expected"] = self.expected
            if self.actual is not None:
                result["actual"] = self.actual
        if self.detail is not None:
            result["detail"] = self.detail
        return result


@dataclass(frozen=True)
class Verdict:
    """Outcome of verifying one credential or digest."""

    valid: bool
    reason: VerdictReason | None = None
    digest: str | None = None
    issuer: str | None = None
    anchored_at: str | None = None
    revoked: bool = False
    revocation_reason: str | None = None
    signature_reason: str | None = None
    checks: tuple[VerificationCheck, ...] = field(default_factory=tuple)

    def check(self, name: str) -> VerificationCheck | None:
        for item in self.checks:
            if item.name == name:
                return item
        return None

    def to_dict(self) -> dict[str, object]:
        result: dict[str, object] = {
            "valid": self.valid,
            "revoked": self.revoked,
            "checks": [c.to_dict() for c in self.checks],
        }
        if self.reason is not None:
            result["reason"] = self.reason.value
        for key, value in (
            ("digest", self.digest),
            ("issuer", self.issuer),
            ("anchoredAt", self.anchored_at),
            ("revocationReason", self.revocation_reason),
            ("signatureReason", self.signature_reason),
        ):
            if value is not None:
                result[key] = value
        return result


def _first_failure(checks: Iterable[VerificationCheck]) -> VerdictReason | None:
    failed = {c.name for c in checks if not c.ok}
    for name, reason in _CHECK_REASONS:
        if name in failed:
            return reason
    return None


class Verifier:
    """Verifies credentials against an identity resolver and the registry.

    Args:
        registry: Registry client (identity not required; reads only).
        resolver: Issuer key resolver used for signature checks.
    """

    def __init__(
        self,
        registry: RegistryClient,
        resolver: IdentityResolver | None = None,
    ) -> None:
        self._registry = registry
        self._resolver = resolver

    async def _registry_checks(
        self,
        digest: str,
        expected_issuer: str | None,
    ) -> tuple[list[VerificationCheck], RegistryEntry | None]:
        try:
            entry = await self._registry.lookup(digest)
        except CredverseError as exc:
            logger.warning("registry_lookup_failed", digest=digest, error=str(exc))
            return [
                VerificationCheck(name="registry_reachable", ok=False, detail=str(exc))
            ], None

        checks = [VerificationCheck(name="registry_reachable", ok=True)]
        if entry is None:
            checks.append(
                VerificationCheck(
                    name="digest_anchored",
                    ok=False,
                    actual=digest,
                    detail="no registry entry for digest",
                )
            )
            return checks, None

        checks.append(VerificationCheck(name="digest_anchored", ok=True))
        checks.append(
            VerificationCheck(
                name="not_revoked",
                ok=not entry.revoked,
                detail=(entry.revocation_reason or None) if entry.revoked else None,
            )
        )
        if expected_issuer is not None:
            checks.append(
                VerificationCheck(
                    name="issuer_matches",
                    ok=entry.issuer == expected_issuer,
                    expected=expected_issuer,
                    actual=entry.issuer,
                )
            )
        return checks, entry

    def _verdict(
        self,
        checks: list[VerificationCheck],
        digest: str | None,
        issuer: str | None,
        entry: RegistryEntry | None,
        signature: SignatureCheck | None = None,
    ) -> Verdict:
        reason = _first_failure(checks)
        verdict = Verdict(
            valid=reason is None,
            reason=reason,
            digest=digest,
            issuer=entry.issuer if entry is not None else issuer,
            anchored_at=entry.anchored_at if entry is not None else None,
            revoked=entry.revoked if entry is not None else False,
            revocation_reason=(
                entry.revocation_reason if entry is not None and entry.revoked else None
            ),
            signature_reason=(
                signature.reason.value
                if signature is not None and signature.reason is not None
                else None
            ),
            checks=tuple(checks),
        )
        logger.info(
            "credential_verified",
            digest=digest,
            valid=verdict.valid,
            reason=reason.value if reason else None,
        )
        return verdict

    def _malformed(self, exc: BaseException) -> Verdict:
        detail = str(exc) or type(exc).__name__
        return self._verdict(
            [VerificationCheck(name="document_well_formed", ok=False, detail=detail)],
            None,
            None,
            None,
        )

    async def _check_signature(self, data: Mapping[str, Any], digest: str) -> SignatureCheck:
        """Run the signature check on a worker thread.

        Resolvers may block on network IO (did:web), so the check never runs
        on the event loop. A resolver fault is reported as unknown_issuer.
        """
        assert self._resolver is not None
        try:
            return await asyncio.to_thread(signing.check_signature, data, self._resolver)
        except Exception as exc:
            logger.warning("issuer_resolution_failed", digest=digest, error=str(exc))
            return SignatureCheck(
                ok=False,
                reason=SignatureFailure.UNKNOWN_ISSUER,
                digest=digest,
                detail=f"{type(exc).__name__}: {exc}",
            )

    async def verify_document(
        self,
        document: Credential | Mapping[str, Any],
        *,
        check_signature: bool = True,
    ) -> Verdict:
        """Verify a credential document (signed plaintext).

        Args:
            document: Credential or its JSON-shaped dict.
            check_signature: Verify the proof; disable to check registry
                status only.
        """
        data: Any = document.to_dict() if isinstance(document, Credential) else document

        try:
            Credential.from_dict(data)
            digest = sha256_digest(canonicalize(data))
        except (CredverseError, RecursionError, ValueError, TypeError) as exc:
            return self._malformed(exc)

        issuer = data["issuer"]
        checks = [VerificationCheck(name="document_well_formed", ok=True)]

        signature: SignatureCheck | None = None
        if check_signature:
            if self._resolver is None:
                signature = SignatureCheck(
                    ok=False,
                    reason=SignatureFailure.UNKNOWN_ISSUER,
                    digest=digest,
                    detail="no identity resolver configured",
                )
            else:
                signature = await self._check_signature(data, digest)
            checks.append(
                VerificationCheck(
                    name="signature_valid",
                    ok=signature.ok,
                    detail=signature.detail,
                    actual=signature.reason.value if signature.reason else None,
                )
            )

        registry_checks, entry = await self._registry_checks(digest, issuer)
        checks.extend(registry_checks)
        return self._verdict(checks, digest, issuer, entry, signature)

    async def verify_digest(
        self,
        digest: str,
        *,
        expected_issuer: str | None = None,
    ) -> Verdict:
        """Verify by digest alone (no plaintext, so no signature check).

        Accepts "sha256:", "0x" or bare-hex digests.
        """
        try:
            hex_digest = normalize_digest(digest)
        except MalformedDocument as exc:
            return self._verdict(
                [VerificationCheck(name="document_well_formed", ok=False, detail=str(exc))],
                None,
                expected_issuer,
                None,
            )

        checks, entry = await self._registry_checks(hex_digest, expected_issuer)
        return self._verdict(checks, hex_digest, expected_issuer, entry)

    async def verify_many(
        self,
        documents: Iterable[Credential | Mapping[str, Any]],
        *,
        concurrency: int = 8,
        check_signature: bool = True,
    ) -> list[Verdict]:
        """Verify documents concurrently; verdicts are returned in input order."""
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got: {concurrency}")
        semaphore = asyncio.Semaphore(concurrency)

        async def run(index: int, doc: Credential | Mapping[str, Any]) -> Verdict:
            async with semaphore:
                try:
                    return await self.verify_document(doc, check_signature=check_signature)
                except Exception as exc:
                    logger.warning(
                        "verify_item_failed",
                        index=index,
                        error_type=type(exc).__name__,
                        error=str(exc),
                    )
                    return self._malformed(exc)

        return list(await asyncio.gather(*(run(i, doc) for i, doc in enumerate(documents))))
