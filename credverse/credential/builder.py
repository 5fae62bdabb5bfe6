"""
Credential builder — subject fields + template + metadata → draft credential.

Builds an unsigned credential with:
    - a fresh id: "urn:credverse:credential:<unix ms>:<128-bit random hex>"
    - the fixed context and type prefixes, plus the template id as third type
    - issuanceDate = now (UTC)
    - metadata stamped with templateId, issuerDID and an empty digest

Required subject fields are checked in a fixed order before anything else,
so the same bad input always names the same missing field. Subject fields
are deep-copied, so later changes to the caller's nested values never
reach the draft.
"""

from __future__ import annotations

import copy
import secrets
import time
from collections.abc import Mapping
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from credverse.credential.model import (
    BASE_TYPE,
    CREDENTIAL_CONTEXTS,
    SYSTEM_TYPE,
    Credential,
    CredentialCategory,
    CredentialLevel,
    CredentialMetadata,
    CredentialSubject,
    check_required_fields,
)
from credverse.errors import MalformedDocument

CREDENTIAL_ID_PREFIX = "urn:credverse:credential"

# Random component of the id, in bytes (128 bits).
CREDENTIAL_ID_RANDOM_BYTES = 16


def _now_utc() -> str:
    """RFC3339 UTC timestamp."""
    return datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def generate_credential_id() -> str:
    """Time component (ms) + 128 random bits; collisions are astronomically unlikely."""
    millis = time.time_ns() // 1_000_000
    return f"{CREDENTIAL_ID_PREFIX}:{millis}:{secrets.token_hex(CREDENTIAL_ID_RANDOM_BYTES)}"


def default_metadata(template_id: str, issuer: str, **overrides: Any) -> CredentialMetadata:
    """Metadata skeleton with the bulk-issuance defaults.

    version 1.0.0, category degree, level intermediate, language "en",
    region "IN", compliance {gdpr: True, dpdp: True}.
    """
    kwargs: dict[str, Any] = {
        "template_id": template_id,
        "issuer_did": issuer,
        "category": CredentialCategory.DEGREE,
        "level": CredentialLevel.INTERMEDIATE,
        "tags": (),
        "language": "en",
        "region": "IN",
        "compliance": {"gdpr": True, "dpdp": True},
    }
    kwargs.update(overrides)
    return CredentialMetadata(**kwargs)


def build_credential(
    subject_fields: Mapping[str, Any],
    template_id: str,
    metadata: CredentialMetadata | None = None,
    *,
    issuer: str,
    issuance_date: str | None = None,
    credential_id: str | None = None,
) -> Credential:
    """Assemble a draft credential.

    Args:
        subject_fields: Required fields plus any extension fields.
        template_id: Template identifier (third type tag, metadata.templateId).
        metadata: Metadata skeleton. templateId, issuerDID and digest are
            overwritten. Defaults to default_metadata().
        issuer: Issuer identity reference.
        issuance_date: RFC3339 timestamp. Defaults to now (UTC).
        credential_id: Explicit id. Defaults to a freshly generated one.

    Raises:
        MissingRequiredField: First absent required field, in fixed order.
        MalformedDocument: Empty template/issuer or unsupported extension values.
    """
    fields = copy.deepcopy(dict(subject_fields))
    check_required_fields(fields)
    if not template_id:
        raise MalformedDocument("template_id must be non-empty")
    if not issuer:
        raise MalformedDocument("issuer must be non-empty")

    subject = CredentialSubject.from_dict(fields)

    if metadata is None:
        metadata = default_metadata(template_id, issuer)
    metadata = replace(
        metadata,
        template_id=template_id,
        issuer_did=issuer,
        digest="",
        storage_refs=(),
    )

    return Credential(
        id=credential_id or generate_credential_id(),
        issuer=issuer,
        issuance_date=issuance_date or _now_utc(),
        credential_subject=subject,
        metadata=metadata,
        context=CREDENTIAL_CONTEXTS,
        types=(BASE_TYPE, SYSTEM_TYPE, template_id),
    )
