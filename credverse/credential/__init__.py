"""
Credential documents: model, builder, signing, verification pointer.

Public API:

    Model:
        - ``Credential``, ``CredentialSubject``, ``CredentialMetadata``, ``Proof``
        - ``CredentialState``, ``CredentialCategory``, ``CredentialLevel``
        - ``REQUIRED_SUBJECT_FIELDS``

    Builder:
        - ``build_credential()``, ``default_metadata()``, ``generate_credential_id()``

    Signing (pure, synchronous):
        - ``IssuerKey``, ``generate_issuer_key()``
        - ``sign_credential()``
        - ``check_signature()`` → ``SignatureCheck``
        - ``verify_credential()``, ``verify_signature()`` → bool

    Pointer:
        - ``verification_uri()``, ``credential_id_from_uri()``
"""

from credverse.credential.builder import (
    build_credential,
    default_metadata,
    generate_credential_id,
)
from credverse.credential.model import (
    REQUIRED_SUBJECT_FIELDS,
    Credential,
    CredentialCategory,
    CredentialLevel,
    CredentialMetadata,
    CredentialState,
    CredentialSubject,
    Proof,
)
from credverse.credential.pointer import credential_id_from_uri, verification_uri
from credverse.credential.schema import validate_document
from credverse.credential.signing import (
    IssuerKey,
    SignatureCheck,
    SignatureFailure,
    check_signature,
    generate_issuer_key,
    sign_credential,
    verify_credential,
    verify_signature,
)

__all__ = [
    "Credential",
    "CredentialCategory",
    "CredentialLevel",
    "CredentialMetadata",
    "CredentialState",
    "CredentialSubject",
    "IssuerKey",
    "Proof",
    "REQUIRED_SUBJECT_FIELDS",
    "SignatureCheck",
    "SignatureFailure",
    "build_credential",
    "check_signature",
    "credential_id_from_uri",
    "default_metadata",
    "generate_credential_id",
    "generate_issuer_key",
    "sign_credential",
    "validate_document",
    "verification_uri",
    "verify_credential",
    "verify_signature",
]
