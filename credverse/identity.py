"""
Identity resolution — issuer identity → Ed25519 verification key.

The verifier depends on the ``IdentityResolver`` protocol only.

Concrete implementations:
    - StaticIdentityResolver (in-memory directory, tests and offline use)
    - DidWebResolver (fetches did:web documents over HTTPS with httpx)

Every failure — unknown identity, network error, unusable document — is
reported as UnknownIssuer. Resolution is synchronous: the signature check
it feeds is a pure, synchronous computation.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable
from urllib.parse import unquote

import base58
import httpx
import structlog
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from credverse.config import CredverseSettings
from credverse.errors import UnknownIssuer

logger = structlog.get_logger()

# Multibase prefix for base58btc.
MB_PREFIX = "z"

# Multicodec header for ed25519-pub.
ED25519_MULTICODEC = b"\xed\x01"


@runtime_checkable
class IdentityResolver(Protocol):
    """Interface for issuer key resolution."""

    def resolve(self, identity: str) -> Ed25519PublicKey:
        """Resolve an issuer identity to its verification key.

        Raises:
            UnknownIssuer: If the identity cannot be resolved.
        """
        ...


class StaticIdentityResolver:
    """In-memory identity directory.

    Args:
        keys: Initial mapping of identity → public key.
    """

    def __init__(self, keys: dict[str, Ed25519PublicKey] | None = None) -> None:
        self._keys: dict[str, Ed25519PublicKey] = dict(keys or {})

    def register(self, identity: str, public_key: Ed25519PublicKey) -> None:
        self._keys[identity] = public_key

    def resolve(self, identity: str) -> Ed25519PublicKey:
        key = self._keys.get(identity.split("#", 1)[0])
        if key is None:
            raise UnknownIssuer(identity)
        return key


# =========================================================================
# did:web
# =========================================================================


def did_web_url(did: str) -> str:
    """Map a did:web identifier to the URL of its DID document.

    did:web:example.edu               → https://example.edu/.well-known/did.json
    did:web:example.edu:issuers:reg   → https://example.edu/issuers/reg/did.json
    did:web:localhost%3A8443          → https://localhost:8443/.well-known/did.json

    Raises:
        UnknownIssuer: If ``did`` is not a did:web identifier.
    """
    if not did.startswith("did:web:"):
        raise UnknownIssuer(did, "not a did:web identifier")
    parts = did[len("did:web:"):].split(":")
    if not parts or not parts[0]:
        raise UnknownIssuer(did, "missing host")
    host = unquote(parts[0])
    if len(parts) == 1:
        return f"https://{host}/.well-known/did.json"
    path = "/".join(unquote(p) for p in parts[1:])
    return f"https://{host}/{path}/did.json"


def decode_public_key(method: dict[str, Any]) -> Ed25519PublicKey:
    """Decode an Ed25519 key from a verification method entry.

    Supports ``publicKeyHex`` and ``publicKeyMultibase`` (base58btc, with
    or without the ed25519-pub multicodec header).

    Raises:
        ValueError: If no supported key encoding is present.
    """
    if "publicKeyHex" in method:
        return Ed25519PublicKey.from_public_bytes(bytes.fromhex(method["publicKeyHex"]))
    multibase = method.get("publicKeyMultibase")
    if isinstance(multibase, str) and multibase.startswith(MB_PREFIX):
        raw = base58.b58decode(multibase[len(MB_PREFIX):])
        if len(raw) == 34 and raw[:2] == ED25519_MULTICODEC:
            raw = raw[2:]
        return Ed25519PublicKey.from_public_bytes(raw)
    raise ValueError("verification method has no supported Ed25519 key encoding")


def select_verification_method(
    document: dict[str, Any], identity: str
) -> dict[str, Any]:
    """Pick the verification method for ``identity``.

    If ``identity`` carries a fragment ("did:web:x#keys-2"), the method with
    that id is required; otherwise the first method is used.
    """
    methods = document.get("verificationMethod")
    if not isinstance(methods, list) or not methods:
        raise ValueError("DID document has no verificationMethod")
    if "#" in identity:
        for method in methods:
            if isinstance(method, dict) and method.get("id") == identity:
                return method
        raise ValueError(f"verification method {identity!r} not found")
    first = methods[0]
    if not isinstance(first, dict):
        raise ValueError("verification method entry is not an object")
    return first


class DidWebResolver:
    """Resolve did:web identities by fetching their DID documents.

    Args:
        timeout: Request timeout in seconds.
        client: Optional pre-configured httpx.Client (tests, shared pools).
    """

    def __init__(self, timeout: float = 5.0, client: httpx.Client | None = None) -> None:
        self._timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls, settings: CredverseSettings) -> DidWebResolver:
        return cls(timeout=settings.resolver_timeout_s)

    def _fetch(self, url: str) -> dict[str, Any]:
        if self._client is not None:
            response = self._client.get(url)
        else:
            with httpx.Client(timeout=self._timeout) as client:
                response = client.get(url)
        response.raise_for_status()
        result: dict[str, Any] = response.json()
        return result

    def resolve(self, identity: str) -> Ed25519PublicKey:
        did = identity.split("#", 1)[0]
        url = did_web_url(did)
        try:
            document = self._fetch(url)
            if document.get("id") != did:
                raise ValueError(f"DID document id {document.get('id')!r} != {did!r}")
            method = select_verification_method(document, identity)
            return decode_public_key(method)
        except (httpx.HTTPError, ValueError, TypeError, AttributeError) as exc:
            logger.info("did_web_resolution_failed", did=did, url=url, error=str(exc))
            raise UnknownIssuer(identity, str(exc)) from exc
