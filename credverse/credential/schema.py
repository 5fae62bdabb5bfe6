"""
JSON Schema for credential documents, applied at the untrusted-input boundary.
"""

from __future__ import annotations

from typing import Any

import jsonschema  # type: ignore[import-untyped]
from jsonschema.exceptions import best_match  # type: ignore[import-untyped]

from credverse.canonical_json import normalize
from credverse.credential.model import (
    BASE_TYPE,
    CREDENTIAL_CONTEXTS,
    SYSTEM_TYPE,
    CredentialCategory,
    CredentialLevel,
)
from credverse.errors import MalformedDocument

_STRING = {"type": "string"}
_NON_EMPTY_STRING = {"type": "string", "minLength": 1}

PROOF_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["type", "created", "verificationMethod", "proofPurpose", "proofValue"],
    "properties": {
        "type": _NON_EMPTY_STRING,
        "created": _NON_EMPTY_STRING,
        "verificationMethod": _NON_EMPTY_STRING,
        "proofPurpose": _NON_EMPTY_STRING,
        "proofValue": _STRING,
    },
}

METADATA_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["version", "templateId", "issuerDID"],
    "properties": {
        "version": _NON_EMPTY_STRING,
        "templateId": _NON_EMPTY_STRING,
        "issuerDID": _NON_EMPTY_STRING,
        "digest": _STRING,
        "storageRefs": {"type": "array", "items": _STRING},
        "category": {"enum": [c.value for c in CredentialCategory]},
        "level": {"enum": [lv.value for lv in CredentialLevel]},
        "tags": {"type": "array", "items": _STRING},
        "compliance": {
            "type": "object",
            "additionalProperties": {"type": "boolean"},
        },
        "language": _STRING,
        "region": _STRING,
        "expirationDate": _STRING,
    },
    "additionalProperties": False,
}

CREDENTIAL_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": [
        "@context",
        "id",
        "type",
        "issuer",
        "issuanceDate",
        "credentialSubject",
        "metadata",
    ],
    "properties": {
        "@context": {
            "type": "array",
            "prefixItems": [{"const": c} for c in CREDENTIAL_CONTEXTS],
            "items": _STRING,
            "minItems": len(CREDENTIAL_CONTEXTS),
        },
        "id": _NON_EMPTY_STRING,
        "type": {
            "type": "array",
            "prefixItems": [{"const": BASE_TYPE}, {"const": SYSTEM_TYPE}],
            "items": _STRING,
            "minItems": 2,
        },
        "issuer": _NON_EMPTY_STRING,
        "issuanceDate": _NON_EMPTY_STRING,
        "credentialSubject": {"type": "object"},
        "metadata": METADATA_SCHEMA,
        "proof": PROOF_SCHEMA,
    },
    "additionalProperties": False,
}

_VALIDATOR = jsonschema.Draft202012Validator(CREDENTIAL_SCHEMA)


def validate_document(document: Any) -> dict[str, Any]:
    """Check the credential document shape and return its normalized form.

    Normalization is the canonicalizer's: None-valued keys are dropped and
    integral floats become integers, so "absent" and "null" parse the same.

    Raises:
        MalformedDocument: With the most relevant schema violation. An
            object-valued issuer gets its own message; only the reference
            string form is accepted.
    """
    if not isinstance(document, dict):
        raise MalformedDocument(
            f"document must be a mapping, got {type(document).__name__}"
        )
    if isinstance(document.get("issuer"), dict):
        raise MalformedDocument(
            "issuer must be an identity reference string; issuer objects are not accepted"
        )
    normalized: dict[str, Any] = normalize(document)
    error = best_match(_VALIDATOR.iter_errors(normalized))
    if error is not None:
        location = "/".join(str(p) for p in error.absolute_path) or "$"
        raise MalformedDocument(f"{location}: {error.message}")
    return normalized
