"""
Canonical JSON serialization for deterministic hashing.

Two layers:

    canonical_json / canonical_json_bytes
        Generic encoding for receipts, blobs and anything else that needs
        a stable byte form. Sorted keys, no whitespace, UTF-8.

    canonicalize
        The credential canonical form — the sole input to the credential
        digest. Adds document rules on top of the generic encoding.

Credential canonical form:
    - Top level must be a mapping (MalformedDocument otherwise).
    - ``proof`` is removed.
    - Post-anchor metadata (``metadata.digest``, ``metadata.storageRefs``)
      is removed. Both are written after the digest is anchored.
    - Keys whose value is None are omitted (absent == null). None inside
      arrays stays as null; array order is never changed.
    - Integral floats are emitted as integers (2.0 -> 2). Booleans are
      left alone.
    - NaN / Infinity, non-string keys and non-JSON values are rejected,
      as is nesting deeper than MAX_NESTING_DEPTH.
    - Keys sorted by code point (recursive), separators (",", ":"),
      UTF-8 without ASCII escapes.
"""

import json
import math
from collections.abc import Mapping
from typing import Any

from credverse.errors import MalformedDocument

# Fields that never participate in the credential digest.
PROOF_FIELD = "proof"
METADATA_FIELD = "metadata"
POST_ANCHOR_METADATA_FIELDS = ("digest", "storageRefs")

# Deepest object/array nesting accepted in a document.
MAX_NESTING_DEPTH = 64


def canonical_json(obj: Any) -> str:
    """
    Serialize object to canonical JSON string.

    Rules:
    - Keys sorted alphabetically (recursive)
    - No whitespace
    - UTF-8 encoding (no ASCII escapes for non-ASCII chars)
    - Consistent float representation
    """
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    )


def canonical_json_bytes(obj: Any) -> bytes:
    """Serialize to canonical JSON as UTF-8 bytes."""
    return canonical_json(obj).encode("utf-8")


# =========================================================================
# Credential canonical form
# =========================================================================


def strip_proof(document: Mapping[str, Any]) -> dict[str, Any]:
    """Return a shallow copy of ``document`` without proof or post-anchor metadata."""
    if not isinstance(document, Mapping):
        raise MalformedDocument(
            f"document must be a mapping, got {type(document).__name__}"
        )

    stripped = {k: v for k, v in document.items() if k != PROOF_FIELD}
    metadata = stripped.get(METADATA_FIELD)
    if isinstance(metadata, Mapping):
        stripped[METADATA_FIELD] = {
            k: v for k, v in metadata.items() if k not in POST_ANCHOR_METADATA_FIELDS
        }
    return stripped


def normalize(value: Any, path: str = "$", depth: int = 0) -> Any:
    """Rewrite a JSON-like value into its canonical Python shape.

    Raises:
        MalformedDocument: On values that have no canonical JSON form, or
            nesting deeper than MAX_NESTING_DEPTH.
    """
    if depth > MAX_NESTING_DEPTH:
        raise MalformedDocument(f"{path}: nesting deeper than {MAX_NESTING_DEPTH} levels")
    # bool before int/float: bool is an int subclass
    if value is None or isinstance(value, (bool, str)):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise MalformedDocument(f"{path}: non-finite number {value!r}")
        if value.is_integer():
            return int(value)
        return value
    if isinstance(value, Mapping):
        result: dict[str, Any] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise MalformedDocument(f"{path}: mapping key {key!r} is not a string")
            if item is None:
                continue
            result[key] = normalize(item, f"{path}.{key}", depth + 1)
        return result
    if isinstance(value, (list, tuple)):
        return [normalize(item, f"{path}[{i}]", depth + 1) for i, item in enumerate(value)]
    raise MalformedDocument(f"{path}: unsupported value type {type(value).__name__}")


def canonical_document(document: Mapping[str, Any]) -> dict[str, Any]:
    """Normalized, proof-stripped credential dict (pre-serialization)."""
    return normalize(strip_proof(document))


def canonicalize(document: Mapping[str, Any]) -> bytes:
    """Produce the canonical bytes of a credential document.

    Two documents that differ only in mapping-key order, ``proof``, or
    post-anchor metadata produce byte-identical output.

    Raises:
        MalformedDocument: If ``document`` is not a mapping or holds a
            value with no canonical form.
    """
    return canonical_json_bytes(canonical_document(document))
