"""
credverse: Verifiable academic credentials anchored on an append-only registry.

A credential is:
- built from a template and subject fields
- signed by its issuer (Ed25519 over the canonical SHA-256 digest)
- anchored by digest on the registry, where only its issuer can revoke it

Anyone holding the plaintext credential can verify it offline against the
issuer's key and online against the registry.
"""

__version__ = "0.1.0"

from credverse.canonical_json import canonical_json, canonicalize
from credverse.content_store import (
    ContentStore,
    FileContentStore,
    InMemoryContentStore,
    content_store_from_settings,
)
from credverse.credential import (
    Credential,
    CredentialMetadata,
    CredentialSubject,
    IssuerKey,
    build_credential,
    check_signature,
    generate_issuer_key,
    sign_credential,
    verification_uri,
)
from credverse.errors import (
    AlreadyAnchored,
    AlreadyRevoked,
    ContentNotFound,
    CredverseError,
    MalformedDocument,
    MissingRequiredField,
    NotFound,
    NotIssuer,
    RegistryError,
    RegistryUnavailable,
    SigningKeyUnavailable,
    Unauthorized,
    UnknownIssuer,
)
from credverse.identity import DidWebResolver, IdentityResolver, StaticIdentityResolver
from credverse.integrity import credential_digest
from credverse.issuance import BulkItemResult, CredentialIssuer, IssuedCredential
from credverse.registry import (
    AnchorReceipt,
    InMemoryLedger,
    LedgerBackend,
    RegistryClient,
    RegistryEntry,
    RevocationReceipt,
    SqliteLedger,
)
from credverse.retry import RetryPolicy
from credverse.verification import Verdict, VerdictReason, VerificationCheck, Verifier

__all__ = [
    "AlreadyAnchored",
    "AlreadyRevoked",
    "AnchorReceipt",
    "BulkItemResult",
    "ContentNotFound",
    "ContentStore",
    "Credential",
    "CredentialIssuer",
    "CredentialMetadata",
    "CredentialSubject",
    "CredverseError",
    "DidWebResolver",
    "FileContentStore",
    "IdentityResolver",
    "InMemoryContentStore",
    "InMemoryLedger",
    "IssuedCredential",
    "IssuerKey",
    "LedgerBackend",
    "MalformedDocument",
    "MissingRequiredField",
    "NotFound",
    "NotIssuer",
    "RegistryClient",
    "RegistryEntry",
    "RegistryError",
    "RegistryUnavailable",
    "RetryPolicy",
    "RevocationReceipt",
    "SigningKeyUnavailable",
    "SqliteLedger",
    "StaticIdentityResolver",
    "Unauthorized",
    "UnknownIssuer",
    "Verdict",
    "VerdictReason",
    "VerificationCheck",
    "Verifier",
    "build_credential",
    "canonical_json",
    "canonicalize",
    "check_signature",
    "content_store_from_settings",
    "credential_digest",
    "generate_issuer_key",
    "sign_credential",
    "verification_uri",
]
