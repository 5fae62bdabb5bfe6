"""
Ledger error mapping — translates LedgerResponse failures into exceptions.

Registry conflicts are surfaced verbatim to the caller and never retried.
SERVER_ERROR is treated as transient: the ledger answered but could not
serve the request, so the client's retry budget applies.
"""

from __future__ import annotations

from credverse.errors import (
    AlreadyAnchored,
    AlreadyRevoked,
    NotFound,
    NotIssuer,
    RegistryError,
    TransientLedgerError,
    Unauthorized,
)
from credverse.registry.backend import LedgerErrorCode, LedgerResponse


def raise_for_response(
    response: LedgerResponse,
    *,
    digest: str | None = None,
    credential_id: str | None = None,
    identity: str | None = None,
) -> None:
    """Raise the exception matching a failed LedgerResponse; no-op on success.

    Args:
        response: The ledger's answer.
        digest: Digest the operation targeted (for error messages).
        credential_id: Credential id the operation targeted.
        identity: Calling identity.

    Raises:
        AlreadyAnchored, Unauthorized, NotFound, NotIssuer, AlreadyRevoked:
            Registry conflicts.
        TransientLedgerError: SERVER_ERROR (retryable).
        RegistryError: Unrecognized error code.
    """
    if response.ok:
        return

    code = response.error_code
    detail = response.detail
    key = digest or credential_id or "?"

    if code == LedgerErrorCode.ALREADY_ANCHORED:
        raise AlreadyAnchored(digest or key, detail=detail)
    if code == LedgerErrorCode.UNAUTHORIZED:
        raise Unauthorized(identity, detail=detail)
    if code == LedgerErrorCode.NOT_FOUND:
        raise NotFound(key, detail=detail)
    if code == LedgerErrorCode.NOT_ISSUER:
        raise NotIssuer(credential_id or key, detail=detail)
    if code == LedgerErrorCode.ALREADY_REVOKED:
        raise AlreadyRevoked(credential_id or key, detail=detail)
    if code == LedgerErrorCode.SERVER_ERROR:
        raise TransientLedgerError(f"ledger server error: {detail or 'no detail'}")
    raise RegistryError(f"unrecognized ledger error code: {code!r}", detail=detail)
