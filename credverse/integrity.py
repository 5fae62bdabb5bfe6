"""
Integrity utilities for content hashing and verification.

One primitive, SHA-256 (32 bytes, unkeyed), is used for the signing input,
the registry key and content-store addresses, so a verifier holding only
the plaintext credential recomputes exactly what the issuer anchored.
"""

import hashlib
import re
from collections.abc import Mapping
from typing import Any

from credverse.canonical_json import canonicalize
from credverse.errors import MalformedDocument

DIGEST_SIZE = 32

_HEX_DIGEST_RE = re.compile(r"^[0-9a-f]{64}$")


def sha256_digest(data: bytes) -> str:
    """Compute SHA256 hex digest of bytes."""
    return hashlib.sha256(data).hexdigest()


def digest_bytes(data: bytes) -> bytes:
    """Compute the raw 32-byte SHA256 digest of bytes."""
    return hashlib.sha256(data).digest()


def credential_digest(document: Mapping[str, Any]) -> str:
    """Digest (64 hex chars) of a credential's canonical, proof-stripped form."""
    return sha256_digest(canonicalize(document))


def prefixed(hex_digest: str) -> str:
    """Add the sha256: prefix used at storage/presentation boundaries."""
    return f"sha256:{hex_digest}"


def normalize_digest(value: str) -> str:
    """Normalize a digest string to 64 lowercase hex chars.

    Accepts raw hex, "sha256:"-prefixed or "0x"-prefixed forms.

    Raises:
        MalformedDocument: If the value is not a 32-byte hex digest.
    """
    if not isinstance(value, str):
        raise MalformedDocument(f"digest must be a string, got {type(value).__name__}")
    candidate = value.strip()
    for prefix in ("sha256:", "0x", "0X"):
        if candidate.startswith(prefix):
            candidate = candidate[len(prefix):]
            break
    candidate = candidate.lower()
    if not _HEX_DIGEST_RE.match(candidate):
        raise MalformedDocument(f"digest must be 32 bytes of hex, got: {value!r}")
    return candidate
