"""
Credential signing and signature verification.

A proof binds the credential digest to the issuer identity. It is an
overlay: the digest is computed over the proof-stripped canonical form,
so attaching (or replacing) a proof never changes the digest.

Signed input:
    The 32 raw bytes of sha256(canonicalize(credential)). The same digest
    is the registry key, so a verifier holding only the plaintext document
    recomputes exactly what the issuer signed and anchored.

Proof fields:
    type                "Ed25519Signature2020"
    created             RFC3339 UTC timestamp of signing
    verificationMethod  "<issuer>#keys-<index>"
    proofPurpose        "assertionMethod"
    proofValue          hex-encoded Ed25519 signature (128 hex chars)

Verification:
    Never raises for untrusted input. A failing check reports one of four
    reasons (missing proof, digest mismatch, signature mismatch, unknown
    issuer) plus "malformed" for documents with no canonical form.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

import structlog
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    PublicFormat,
)

from credverse.canonical_json import canonicalize
from credverse.credential.model import Credential, Proof
from credverse.errors import (
    CredverseError,
    MalformedDocument,
    SigningKeyUnavailable,
    UnknownIssuer,
)
from credverse.identity import IdentityResolver
from credverse.integrity import digest_bytes, normalize_digest

logger = structlog.get_logger()

PROOF_TYPE = "Ed25519Signature2020"
PROOF_PURPOSE = "assertionMethod"


class SignatureFailure(StrEnum):
    """Why a signature check failed."""

    MISSING_PROOF = "missing_proof"
    DIGEST_MISMATCH = "digest_mismatch"
    SIGNATURE_MISMATCH = "signature_mismatch"
    UNKNOWN_ISSUER = "unknown_issuer"
    MALFORMED = "malformed"


# =========================================================================
# Types
# =========================================================================


@dataclass(frozen=True)
class IssuerKey:
    """An issuer identity and its signing key.

    ``private_key`` may be None (e.g. a verifier-only deployment); signing
    with such a key raises SigningKeyUnavailable.
    """

    identity: str
    private_key: Ed25519PrivateKey | None
    key_index: int = 1

    @property
    def verification_method(self) -> str:
        return verification_method_for(self.identity, self.key_index)

    def public_key(self) -> Ed25519PublicKey:
        if self.private_key is None:
            raise SigningKeyUnavailable(f"no private key for {self.identity}")
        return self.private_key.public_key()


@dataclass(frozen=True)
class SignatureCheck:
    """Result of check_signature."""

    ok: bool
    reason: SignatureFailure | None = None
    digest: str | None = None
    detail: str | None = None

    def to_dict(self) -> dict[str, object]:
        result: dict[str, object] = {"ok": self.ok}
        if self.reason is not None:
            result["reason"] = self.reason.value
        if self.digest is not None:
            result["digest"] = self.digest
        if self.detail is not None:
            result["detail"] = self.detail
        return result


# =========================================================================
# Key helpers
# =========================================================================


def verification_method_for(identity: str, key_index: int = 1) -> str:
    return f"{identity}#keys-{key_index}"


def generate_issuer_key(identity: str, key_index: int = 1) -> IssuerKey:
    """Generate a new Ed25519 signing key for an issuer identity."""
    return IssuerKey(
        identity=identity,
        private_key=Ed25519PrivateKey.generate(),
        key_index=key_index,
    )


def get_public_key_hex(private_key: Ed25519PrivateKey) -> str:
    """Extract the public key as a hex-encoded string (64 chars / 32 bytes)."""
    return public_key_to_hex(private_key.public_key())


def public_key_to_hex(public_key: Ed25519PublicKey) -> str:
    return public_key.public_bytes(Encoding.Raw, PublicFormat.Raw).hex()


def public_key_from_hex(hex_string: str) -> Ed25519PublicKey:
    """Reconstruct an Ed25519 public key from hex-encoded raw bytes."""
    return Ed25519PublicKey.from_public_bytes(bytes.fromhex(hex_string))


def _now_utc() -> str:
    """RFC3339 UTC timestamp."""
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


# =========================================================================
# Signing
# =========================================================================


def sign_credential(
    credential: Credential,
    issuer_key: IssuerKey | None,
    *,
    created: str | None = None,
) -> Credential:
    """Sign a credential and return a copy with the proof attached.

    Any existing proof is replaced. The input credential is not modified.

    Args:
        credential: Draft (or previously signed) credential.
        issuer_key: The issuer's signing key.
        created: RFC3339 timestamp for the proof. Defaults to now (UTC).

    Raises:
        SigningKeyUnavailable: If no usable Ed25519 key is supplied, or the
            key belongs to a different identity than credential.issuer.
    """
    if issuer_key is None or issuer_key.private_key is None:
        raise SigningKeyUnavailable("no signing key supplied")
    if not isinstance(issuer_key.private_key, Ed25519PrivateKey):
        raise SigningKeyUnavailable(
            f"unsupported key type: {type(issuer_key.private_key).__name__}"
        )
    if issuer_key.identity != credential.issuer:
        raise SigningKeyUnavailable(
            f"key belongs to {issuer_key.identity}, credential issuer is {credential.issuer}"
        )

    digest = digest_bytes(canonicalize(credential.to_dict()))
    signature = issuer_key.private_key.sign(digest)

    proof = Proof(
        type=PROOF_TYPE,
        created=created if created is not None else _now_utc(),
        verification_method=issuer_key.verification_method,
        proof_purpose=PROOF_PURPOSE,
        proof_value=signature.hex(),
    )
    logger.debug(
        "credential_signed",
        credential_id=credential.id,
        digest=digest.hex(),
        verification_method=proof.verification_method,
    )
    return credential.with_proof(proof)


# =========================================================================
# Verification
# =========================================================================


def _as_document(document: Credential | Mapping[str, Any]) -> Mapping[str, Any]:
    if isinstance(document, Credential):
        return document.to_dict()
    return document


def _check_with_key(
    document: Mapping[str, Any],
    public_key: Ed25519PublicKey | None,
    resolver: IdentityResolver | None,
) -> SignatureCheck:
    try:
        digest = digest_bytes(canonicalize(document))
    except MalformedDocument as exc:
        return SignatureCheck(ok=False, reason=SignatureFailure.MALFORMED, detail=str(exc))
    digest_hex = digest.hex()

    proof = document.get("proof")
    if not isinstance(proof, Mapping):
        return SignatureCheck(
            ok=False, reason=SignatureFailure.MISSING_PROOF, digest=digest_hex
        )

    # A filled-in digest placeholder that disagrees means the body was edited.
    metadata = document.get("metadata")
    recorded = metadata.get("digest") if isinstance(metadata, Mapping) else None
    if isinstance(recorded, str) and recorded:
        try:
            recorded_ok = normalize_digest(recorded) == digest_hex
        except MalformedDocument:
            recorded_ok = False
        if not recorded_ok:
            return SignatureCheck(
                ok=False,
                reason=SignatureFailure.DIGEST_MISMATCH,
                digest=digest_hex,
                detail=f"recorded digest {recorded!r} does not match document",
            )

    if public_key is None:
        issuer = document.get("issuer")
        if not isinstance(issuer, str) or resolver is None:
            return SignatureCheck(
                ok=False,
                reason=SignatureFailure.UNKNOWN_ISSUER,
                digest=digest_hex,
                detail="issuer is not a resolvable identity reference",
            )
        try:
            public_key = resolver.resolve(issuer)
        except UnknownIssuer as exc:
            return SignatureCheck(
                ok=False,
                reason=SignatureFailure.UNKNOWN_ISSUER,
                digest=digest_hex,
                detail=str(exc),
            )

    try:
        signature = bytes.fromhex(str(proof.get("proofValue", "")))
        public_key.verify(signature, digest)
    except (InvalidSignature, ValueError, TypeError):
        return SignatureCheck(
            ok=False,
            reason=SignatureFailure.SIGNATURE_MISMATCH,
            digest=digest_hex,
            detail="Ed25519 signature does not verify against issuer key",
        )

    return SignatureCheck(ok=True, digest=digest_hex)


def check_signature(
    document: Credential | Mapping[str, Any],
    resolver: IdentityResolver,
) -> SignatureCheck:
    """Check a credential's proof against its resolved issuer key.

    Steps: canonicalize + hash (proof stripped), require a proof, compare
    a recorded metadata digest if one is present, resolve the issuer,
    verify the Ed25519 signature over the digest bytes.

    Never raises; failures are reported in the returned SignatureCheck.
    """
    try:
        check = _check_with_key(_as_document(document), None, resolver)
    except CredverseError as exc:
        check = SignatureCheck(ok=False, reason=SignatureFailure.MALFORMED, detail=str(exc))
    if not check.ok:
        logger.info(
            "signature_check_failed",
            reason=check.reason.value if check.reason else None,
            digest=check.digest,
        )
    return check


def verify_credential(
    document: Credential | Mapping[str, Any],
    resolver: IdentityResolver,
) -> bool:
    """True iff the proof verifies against the issuer's resolved key."""
    return check_signature(document, resolver).ok


def verify_signature(
    document: Credential | Mapping[str, Any],
    public_key: Ed25519PublicKey,
) -> bool:
    """True iff the proof verifies against the given public key."""
    try:
        return _check_with_key(_as_document(document), public_key, None).ok
    except CredverseError:
        return False
