"""
Error taxonomy for credential issuance and verification.

Local errors (caller can fix the input):
    - MalformedDocument: structural/shape violation.
    - MissingRequiredField: a required subject field is absent.
    - SigningKeyUnavailable: no usable issuer signing key.

Collaborator errors:
    - UnknownIssuer: identity resolution failed.
    - ContentNotFound: content-store address has no blob.

Registry-reported conflicts (surfaced verbatim, never retried):
    - AlreadyAnchored, AlreadyRevoked, NotIssuer, Unauthorized, NotFound.

Availability:
    - TransientLedgerError: raised by ledger backends for retryable faults.
    - RegistryUnavailable: retries exhausted (or timeout on every attempt).

Verification never raises any of these for adversarial input — the
orchestrator maps them to verdict reasons.
"""

from __future__ import annotations


class CredverseError(Exception):
    """Base class for all credverse errors."""


# =========================================================================
# Local errors
# =========================================================================


class MalformedDocument(CredverseError, ValueError):
    """The document is not credential-shaped."""


class MissingRequiredField(CredverseError, ValueError):
    """A required credential subject field is absent or empty."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"missing required field: {field}")


class SigningKeyUnavailable(CredverseError):
    """No usable signing key was supplied for the issuer."""


# =========================================================================
# Collaborator errors
# =========================================================================


class UnknownIssuer(CredverseError, LookupError):
    """The issuer identity could not be resolved to a verification key."""

    def __init__(self, identity: str, detail: str | None = None) -> None:
        self.identity = identity
        self.detail = detail
        message = f"unknown issuer: {identity}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class ContentNotFound(CredverseError, LookupError):
    """No blob is stored under the given content address."""


# =========================================================================
# Registry errors
# =========================================================================


class RegistryError(CredverseError):
    """Base class for errors reported by (or about) the registry."""

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        self.detail = detail
        super().__init__(message)


class AlreadyAnchored(RegistryError):
    """The registry already holds an entry for this digest."""

    def __init__(self, digest: str, *, detail: str | None = None) -> None:
        self.digest = digest
        super().__init__(f"digest already anchored: {digest}", detail=detail)


class AlreadyRevoked(RegistryError):
    """The credential's revoked flag is already set."""

    def __init__(self, credential_id: str, *, detail: str | None = None) -> None:
        self.credential_id = credential_id
        super().__init__(f"credential already revoked: {credential_id}", detail=detail)


class NotIssuer(RegistryError):
    """The caller is not the identity that anchored the credential."""

    def __init__(self, credential_id: str, *, detail: str | None = None) -> None:
        self.credential_id = credential_id
        super().__init__(
            f"caller is not the anchoring issuer of {credential_id}", detail=detail
        )


class Unauthorized(RegistryError):
    """The calling identity lacks anchor rights."""

    def __init__(self, identity: str | None, *, detail: str | None = None) -> None:
        self.identity = identity
        super().__init__(f"identity not authorized to anchor: {identity}", detail=detail)


class NotFound(RegistryError):
    """The registry has no entry for the requested key."""

    def __init__(self, key: str, *, detail: str | None = None) -> None:
        self.key = key
        super().__init__(f"no registry entry for: {key}", detail=detail)


class TransientLedgerError(RegistryError):
    """A retryable fault talking to the ledger (connection drop, busy node)."""


class RegistryUnavailable(RegistryError):
    """The registry did not answer within the retry budget."""

    def __init__(
        self, operation: str, attempts: int, *, detail: str | None = None
    ) -> None:
        self.operation = operation
        self.attempts = attempts
        super().__init__(
            f"registry unavailable: {operation} failed after {attempts} attempt(s)",
            detail=detail,
        )
