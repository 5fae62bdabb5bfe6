"""
Registry records — what the append-only ledger holds and what it hands back.

RegistryEntry mirrors the ledger's logical schema:

    {digest, issuer, anchoredAt, revoked, revocationReason,
     credentialId, storageRefs}

Invariants:
    - digest: 64 lowercase hex chars (32 bytes). One entry per digest.
    - anchored_at / revoked_at / created timestamps: RFC3339 UTC.
    - revoked is monotonic: once True it is never False again.
    - Only revoked and revocation_reason change after anchoring.

AnchorReceipt and RevocationReceipt are the typed results of the two write
operations. Receipts are plain records; they are not a cache of registry
state and must not be consulted instead of a fresh lookup.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

# Validation patterns
_HEX_DIGEST_RE = re.compile(r"^[0-9a-f]{64}$")
_RFC3339_UTC_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?(Z|\+00:00)$"
)


# =========================================================================
# Validation helpers
# =========================================================================


def _validate_digest(value: str) -> None:
    if not isinstance(value, str) or not _HEX_DIGEST_RE.match(value):
        raise ValueError(f"digest must be 64 lowercase hex chars, got: {value!r}")


def _validate_timestamp(name: str, value: str) -> None:
    if not isinstance(value, str) or not _RFC3339_UTC_RE.match(value):
        raise ValueError(
            f"{name} must be RFC3339 UTC (ending Z or +00:00), got: {value!r}"
        )


def _validate_non_empty(name: str, value: str) -> None:
    if not isinstance(value, str) or not value:
        raise ValueError(f"{name} must be a non-empty string")


# =========================================================================
# RegistryEntry
# =========================================================================


@dataclass(frozen=True)
class RegistryEntry:
    """One anchored credential digest as recorded by the registry."""

    digest: str
    issuer: str
    anchored_at: str
    credential_id: str
    revoked: bool = False
    revocation_reason: str = ""
    storage_refs: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        _validate_digest(self.digest)
        _validate_non_empty("issuer", self.issuer)
        _validate_non_empty("credential_id", self.credential_id)
        _validate_timestamp("anchored_at", self.anchored_at)
        if not self.revoked and self.revocation_reason:
            raise ValueError("revocation_reason set on a non-revoked entry")

    def to_dict(self) -> dict[str, object]:
        return {
            "digest": self.digest,
            "issuer": self.issuer,
            "anchoredAt": self.anchored_at,
            "revoked": self.revoked,
            "revocationReason": self.revocation_reason,
            "credentialId": self.credential_id,
            "storageRefs": list(self.storage_refs),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RegistryEntry:
        return cls(
            digest=data["digest"],
            issuer=data["issuer"],
            anchored_at=data["anchoredAt"],
            credential_id=data["credentialId"],
            revoked=bool(data.get("revoked", False)),
            revocation_reason=data.get("revocationReason") or "",
            storage_refs=tuple(data.get("storageRefs", ())),
        )


# =========================================================================
# Receipts
# =========================================================================


@dataclass(frozen=True)
class AnchorReceipt:
    """Result of a successful anchor."""

    digest: str
    credential_id: str
    issuer: str
    anchored_at: str
    storage_refs: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        _validate_digest(self.digest)
        _validate_timestamp("anchored_at", self.anchored_at)

    @classmethod
    def from_entry(cls, entry: RegistryEntry) -> AnchorReceipt:
        return cls(
            digest=entry.digest,
            credential_id=entry.credential_id,
            issuer=entry.issuer,
            anchored_at=entry.anchored_at,
            storage_refs=entry.storage_refs,
        )

    def to_dict(self) -> dict[str, object]:
        result: dict[str, object] = {
            "digest": self.digest,
            "credentialId": self.credential_id,
            "issuer": self.issuer,
            "anchoredAt": self.anchored_at,
        }
        if self.storage_refs:
            result["storageRefs"] = list(self.storage_refs)
        return result


@dataclass(frozen=True)
class RevocationReceipt:
    """Result of a successful revocation."""

    credential_id: str
    digest: str
    issuer: str
    reason: str
    revoked_at: str

    def __post_init__(self) -> None:
        _validate_digest(self.digest)
        _validate_timestamp("revoked_at", self.revoked_at)

    def to_dict(self) -> dict[str, object]:
        return {
            "credentialId": self.credential_id,
            "digest": self.digest,
            "issuer": self.issuer,
            "reason": self.reason,
            "revokedAt": self.revoked_at,
        }
