"""Verification pointer (QR target) for a credential id.

The URI is an opaque locator; it plays no part in the trust computation.
"""

from __future__ import annotations

from urllib.parse import quote, unquote, urlsplit

VERIFY_PATH = "/verify/"


def verification_uri(credential_id: str, base_url: str) -> str:
    """Deterministic verification URI: ``<base_url>/verify/<percent-encoded id>``."""
    if not credential_id:
        raise ValueError("credential_id must be non-empty")
    return f"{base_url.rstrip('/')}{VERIFY_PATH}{quote(credential_id, safe='')}"


def credential_id_from_uri(uri: str) -> str:
    """Extract the credential id from a verification URI.

    Raises:
        ValueError: If the URI has no /verify/<id> path.
    """
    path = urlsplit(uri).path
    index = path.rfind(VERIFY_PATH)
    if index < 0 or index + len(VERIFY_PATH) == len(path):
        raise ValueError(f"not a verification URI: {uri!r}")
    return unquote(path[index + len(VERIFY_PATH):])
