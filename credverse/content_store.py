"""
Content-addressed blob storage.

Used to persist credential blobs that are referenced by, but never hashed
into, the anchored credential digest.

Address:
    "sha256:" + hex(sha256(blob)). Same bytes → same address, so ``put`` is
    idempotent.

Concrete implementations:
    - InMemoryContentStore (tests, single process)
    - FileContentStore (blobs under {base_path}/sha256/{hex[:2]}/{hex}.blob,
      fanout by first two hex chars for filesystem sanity)

The protocol is async: a production store (IPFS, Arweave, S3) is a
network service. Transient failures should surface as ConnectionError or
TimeoutError; the issuance pipeline retries those under the registry
retry policy and bounds each put by its timeout.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Protocol, runtime_checkable

from credverse.config import CredverseSettings
from credverse.errors import ContentNotFound, MalformedDocument
from credverse.integrity import normalize_digest, prefixed, sha256_digest


def content_address(data: bytes) -> str:
    """Content address of a blob ("sha256:<hex>")."""
    return prefixed(sha256_digest(data))


def _address_hex(address: str) -> str:
    try:
        return normalize_digest(address)
    except MalformedDocument as exc:
        raise ContentNotFound(f"invalid content address: {address!r}") from exc


@runtime_checkable
class ContentStore(Protocol):
    """Interface for content-addressed storage."""

    async def put(self, data: bytes) -> str:
        """Store a blob and return its content address."""
        ...

    async def get(self, address: str) -> bytes:
        """Fetch a blob by content address.

        Raises:
            ContentNotFound: If nothing is stored under ``address``.
        """
        ...


class InMemoryContentStore:
    """Dict-backed content store."""

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}

    def __len__(self) -> int:
        return len(self._blobs)

    async def put(self, data: bytes) -> str:
        address = content_address(data)
        self._blobs.setdefault(_address_hex(address), bytes(data))
        return address

    async def get(self, address: str) -> bytes:
        blob = self._blobs.get(_address_hex(address))
        if blob is None:
            raise ContentNotFound(address)
        return blob


class FileContentStore:
    """Filesystem-backed content store.

    Args:
        base_path: Root directory; created if missing.
    """

    def __init__(self, base_path: str | Path) -> None:
        self._base_path = Path(base_path)
        self._base_path.mkdir(parents=True, exist_ok=True)

    def _blob_path(self, hex_digest: str) -> Path:
        return self._base_path / "sha256" / hex_digest[:2] / f"{hex_digest}.blob"

    def _write(self, data: bytes) -> str:
        address = content_address(data)
        path = self._blob_path(_address_hex(address))
        if not path.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".tmp")
            tmp.write_bytes(data)
            tmp.replace(path)
        return address

    def _read(self, address: str) -> bytes:
        hex_digest = _address_hex(address)
        path = self._blob_path(hex_digest)
        if not path.exists():
            raise ContentNotFound(address)
        data = path.read_bytes()
        if sha256_digest(data) != hex_digest:
            raise ContentNotFound(f"{address} (stored blob failed integrity check)")
        return data

    async def put(self, data: bytes) -> str:
        return await asyncio.to_thread(self._write, data)

    async def get(self, address: str) -> bytes:
        return await asyncio.to_thread(self._read, address)


def content_store_from_settings(settings: CredverseSettings) -> ContentStore:
    """FileContentStore under ``content_store_path``, or in-memory when unset."""
    if settings.content_store_path:
        return FileContentStore(settings.content_store_path)
    return InMemoryContentStore()
