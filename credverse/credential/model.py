"""
Credential data model.

A Credential is the portable, bit-exact artifact exchanged with callers.
The dataclasses here are a typed view over the JSON document; ``to_dict()``
produces the document and ``from_dict()`` parses untrusted input.

Document shape (keys as serialized):

    @context           ["https://www.w3.org/2018/credentials/v1",
                        "https://credverse.in/contexts/v1", ...]
    id                 "urn:credverse:credential:<ms>:<hex>"
    type               ["VerifiableCredential", "CredVerseCredential", <templateId>]
    issuer             identity reference string (never an object)
    issuanceDate       RFC3339 UTC
    credentialSubject  required fields + open extension fields
    metadata           schema version, template, issuer, digest placeholder,
                       storage refs, classification, compliance flags
    proof              optional; see credverse.credential.signing

Invariants:
    - Required subject fields are present and non-empty.
    - Extension values are string, number, boolean, object or array.
    - metadata.digest is "" until the credential is anchored.
    - A Credential is never mutated; signing and anchoring return copies.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Any

from credverse.canonical_json import MAX_NESTING_DEPTH
from credverse.errors import MalformedDocument, MissingRequiredField
from credverse.integrity import credential_digest

# Fixed prefixes.
CREDENTIAL_CONTEXTS: tuple[str, ...] = (
    "https://www.w3.org/2018/credentials/v1",
    "https://credverse.in/contexts/v1",
)
BASE_TYPE = "VerifiableCredential"
SYSTEM_TYPE = "CredVerseCredential"

# Metadata schema version stamped on new credentials.
METADATA_VERSION = "1.0.0"

# Validated in this order so error messages are deterministic.
REQUIRED_SUBJECT_FIELDS: tuple[str, ...] = (
    "studentId",
    "studentName",
    "programName",
    "institutionName",
    "graduationDate",
)


class CredentialState(StrEnum):
    """Locally observable lifecycle state.

    Anchored and revoked are registry states; they are observed by the
    verification orchestrator, never stored on the credential.
    """

    DRAFT = "draft"
    SIGNED = "signed"


class CredentialCategory(StrEnum):
    DEGREE = "degree"
    DIPLOMA = "diploma"
    CERTIFICATE = "certificate"
    BADGE = "badge"
    TRANSCRIPT = "transcript"
    MICROCREDENTIAL = "microcredential"
    SKILL_CERTIFICATION = "skill_certification"
    ACHIEVEMENT = "achievement"
    OTHER = "other"


class CredentialLevel(StrEnum):
    FOUNDATIONAL = "foundational"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"
    DOCTORAL = "doctoral"
    POSTDOCTORAL = "postdoctoral"


# =========================================================================
# Validation helpers
# =========================================================================


def _validate_value_kind(value: Any, path: str, depth: int = 0) -> None:
    """Raise MalformedDocument unless value is a closed-set JSON kind."""
    if depth > MAX_NESTING_DEPTH:
        raise MalformedDocument(f"{path}: nesting deeper than {MAX_NESTING_DEPTH} levels")
    if isinstance(value, (bool, str, int)):
        return
    if isinstance(value, float):
        if not math.isfinite(value):
            raise MalformedDocument(f"{path}: non-finite number")
        return
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                raise MalformedDocument(f"{path}: object key {key!r} is not a string")
            if item is None:
                continue
            _validate_value_kind(item, f"{path}.{key}", depth + 1)
        return
    if isinstance(value, (list, tuple)):
        for i, item in enumerate(value):
            _validate_value_kind(item, f"{path}[{i}]", depth + 1)
        return
    raise MalformedDocument(
        f"{path}: unsupported value kind {type(value).__name__} "
        "(expected string, number, boolean, object or array)"
    )


def check_required_fields(fields: dict[str, Any]) -> None:
    """Raise MissingRequiredField naming the first absent required field."""
    for name in REQUIRED_SUBJECT_FIELDS:
        value = fields.get(name)
        if value is None or value == "":
            raise MissingRequiredField(name)


# =========================================================================
# CredentialSubject
# =========================================================================


@dataclass(frozen=True)
class CredentialSubject:
    """Subject payload: five known fields plus ordered extension fields."""

    student_id: str
    student_name: str
    program_name: str
    institution_name: str
    graduation_date: str
    extensions: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        required = self._required_dict()
        check_required_fields(required)
        for name, value in required.items():
            if not isinstance(value, str):
                raise MalformedDocument(f"credentialSubject.{name} must be a string")
        for key, value in self.extensions.items():
            if key in REQUIRED_SUBJECT_FIELDS:
                raise MalformedDocument(
                    f"credentialSubject extension {key!r} shadows a required field"
                )
            if value is not None:
                _validate_value_kind(value, f"credentialSubject.{key}")

    def _required_dict(self) -> dict[str, Any]:
        return {
            "studentId": self.student_id,
            "studentName": self.student_name,
            "programName": self.program_name,
            "institutionName": self.institution_name,
            "graduationDate": self.graduation_date,
        }

    def to_dict(self) -> dict[str, Any]:
        result = self._required_dict()
        for key, value in self.extensions.items():
            if value is not None:
                result[key] = value
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CredentialSubject:
        """Parse subject fields.

        Raises:
            MissingRequiredField: First absent required field, in fixed order.
            MalformedDocument: On unsupported extension values.
        """
        if not isinstance(data, dict):
            raise MalformedDocument("credentialSubject must be an object")
        check_required_fields(data)
        extensions = {
            k: v for k, v in data.items() if k not in REQUIRED_SUBJECT_FIELDS
        }
        return cls(
            student_id=data["studentId"],
            student_name=data["studentName"],
            program_name=data["programName"],
            institution_name=data["institutionName"],
            graduation_date=data["graduationDate"],
            extensions=extensions,
        )


# =========================================================================
# CredentialMetadata
# =========================================================================


@dataclass(frozen=True)
class CredentialMetadata:
    """Metadata block.

    ``issuer_did`` duplicates Credential.issuer so the block is
    self-contained. ``digest`` and ``storage_refs`` are written after
    anchoring and are excluded from the canonical form.
    """

    template_id: str
    issuer_did: str
    version: str = METADATA_VERSION
    digest: str = ""
    storage_refs: tuple[str, ...] = ()
    category: CredentialCategory = CredentialCategory.DEGREE
    level: CredentialLevel = CredentialLevel.INTERMEDIATE
    tags: tuple[str, ...] = ()
    compliance: dict[str, bool] = field(default_factory=dict)
    language: str | None = None
    region: str | None = None
    expiration_date: str | None = None

    def __post_init__(self) -> None:
        for flag, value in self.compliance.items():
            if not isinstance(value, bool):
                raise MalformedDocument(
                    f"metadata.compliance[{flag!r}] must be a boolean"
                )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "version": self.version,
            "templateId": self.template_id,
            "issuerDID": self.issuer_did,
            "digest": self.digest,
            "category": self.category.value,
            "level": self.level.value,
            "tags": list(self.tags),
            "compliance": dict(self.compliance),
        }
        if self.storage_refs:
            result["storageRefs"] = list(self.storage_refs)
        if self.language is not None:
            result["language"] = self.language
        if self.region is not None:
            result["region"] = self.region
        if self.expiration_date is not None:
            result["expirationDate"] = self.expiration_date
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CredentialMetadata:
        try:
            category = CredentialCategory(data.get("category", CredentialCategory.DEGREE))
            level = CredentialLevel(data.get("level", CredentialLevel.INTERMEDIATE))
        except ValueError as exc:
            raise MalformedDocument(f"metadata: {exc}") from exc
        return cls(
            template_id=data["templateId"],
            issuer_did=data["issuerDID"],
            version=data.get("version", METADATA_VERSION),
            digest=data.get("digest", ""),
            storage_refs=tuple(data.get("storageRefs", ())),
            category=category,
            level=level,
            tags=tuple(data.get("tags", ())),
            compliance=dict(data.get("compliance", {})),
            language=data.get("language"),
            region=data.get("region"),
            expiration_date=data.get("expirationDate"),
        )


# =========================================================================
# Proof
# =========================================================================


@dataclass(frozen=True)
class Proof:
    """Signature binding the credential digest to the issuer identity."""

    type: str
    created: str
    verification_method: str
    proof_purpose: str
    proof_value: str

    def to_dict(self) -> dict[str, str]:
        return {
            "type": self.type,
            "created": self.created,
            "verificationMethod": self.verification_method,
            "proofPurpose": self.proof_purpose,
            "proofValue": self.proof_value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Proof:
        return cls(
            type=data["type"],
            created=data["created"],
            verification_method=data["verificationMethod"],
            proof_purpose=data["proofPurpose"],
            proof_value=data["proofValue"],
        )


# =========================================================================
# Credential
# =========================================================================


@dataclass(frozen=True)
class Credential:
    """A credential document, draft or signed."""

    id: str
    issuer: str
    issuance_date: str
    credential_subject: CredentialSubject
    metadata: CredentialMetadata
    context: tuple[str, ...] = CREDENTIAL_CONTEXTS
    types: tuple[str, ...] = (BASE_TYPE, SYSTEM_TYPE)
    proof: Proof | None = None

    @property
    def state(self) -> CredentialState:
        return CredentialState.SIGNED if self.proof is not None else CredentialState.DRAFT

    @property
    def template_id(self) -> str:
        return self.metadata.template_id

    def digest(self) -> str:
        """Canonical digest (64 hex chars), independent of proof and anchor fields."""
        return credential_digest(self.to_dict())

    def with_proof(self, proof: Proof) -> Credential:
        return replace(self, proof=proof)

    def with_anchor(self, digest: str, storage_refs: tuple[str, ...] = ()) -> Credential:
        """Copy with the post-anchor metadata fields filled in."""
        return replace(
            self,
            metadata=replace(self.metadata, digest=digest, storage_refs=tuple(storage_refs)),
        )

    # --- Serialization ---

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "@context": list(self.context),
            "id": self.id,
            "type": list(self.types),
            "issuer": self.issuer,
            "issuanceDate": self.issuance_date,
            "credentialSubject": self.credential_subject.to_dict(),
            "metadata": self.metadata.to_dict(),
        }
        if self.proof is not None:
            result["proof"] = self.proof.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: Any) -> Credential:
        """Parse an untrusted credential document.

        Raises:
            MalformedDocument: On any shape violation (including an object issuer).
            MissingRequiredField: If a required subject field is absent.
        """
        from credverse.credential.schema import validate_document

        data = validate_document(data)
        proof_data = data.get("proof")
        return cls(
            id=data["id"],
            issuer=data["issuer"],
            issuance_date=data["issuanceDate"],
            credential_subject=CredentialSubject.from_dict(data["credentialSubject"]),
            metadata=CredentialMetadata.from_dict(data["metadata"]),
            context=tuple(data["@context"]),
            types=tuple(data["type"]),
            proof=Proof.from_dict(proof_data) if proof_data is not None else None,
        )
