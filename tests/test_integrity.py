"""
Tests for hashing utilities.

Test plan:
- credential_digest: 64 hex chars, sha256 of the canonical bytes,
  independent of proof
- digest_bytes: 32 raw bytes matching the hex digest
- normalize_digest: accepts sha256:, 0x and bare hex (any case),
  rejects wrong length / non-hex / non-string
- prefixed: adds sha256:
"""

import hashlib

import pytest

from credverse.canonical_json import canonicalize
from credverse.errors import MalformedDocument
from credverse.integrity import (
    DIGEST_SIZE,
    credential_digest,
    digest_bytes,
    normalize_digest,
    prefixed,
    sha256_digest,
)

SAMPLE_DOCUMENT = {
    "id": "urn:x:1",
    "issuer": "did:web:demo.example.edu",
    "credentialSubject": {"studentId": "S-001"},
}

HEX = "0123456789abcdef" * 4


class TestCredentialDigest:
    def test_is_sha256_of_canonical_bytes(self) -> None:
        expected = hashlib.sha256(canonicalize(SAMPLE_DOCUMENT)).hexdigest()
        assert credential_digest(SAMPLE_DOCUMENT) == expected

    def test_fixed_width(self) -> None:
        assert len(credential_digest(SAMPLE_DOCUMENT)) == DIGEST_SIZE * 2

    def test_proof_independent(self) -> None:
        signed = {**SAMPLE_DOCUMENT, "proof": {"proofValue": "00"}}
        assert credential_digest(signed) == credential_digest(SAMPLE_DOCUMENT)

    def test_content_change_changes_digest(self) -> None:
        other = {**SAMPLE_DOCUMENT, "id": "urn:x:2"}
        assert credential_digest(other) != credential_digest(SAMPLE_DOCUMENT)


class TestPrimitives:
    def test_digest_bytes_matches_hex(self) -> None:
        raw = digest_bytes(b"hello")
        assert len(raw) == DIGEST_SIZE
        assert raw.hex() == sha256_digest(b"hello")

    def test_empty_input_is_legal(self) -> None:
        assert sha256_digest(b"") == hashlib.sha256(b"").hexdigest()

    def test_prefixed(self) -> None:
        assert prefixed(HEX) == f"sha256:{HEX}"


class TestNormalizeDigest:
    @pytest.mark.parametrize(
        "value",
        [HEX, f"sha256:{HEX}", f"0x{HEX}", f"0X{HEX.upper()}", f"  {HEX}  "],
    )
    def test_accepted_forms(self, value: str) -> None:
        assert normalize_digest(value) == HEX

    @pytest.mark.parametrize("value", ["", "abc", HEX[:-1], "g" * 64, f"sha256:{HEX}00"])
    def test_rejected_forms(self, value: str) -> None:
        with pytest.raises(MalformedDocument):
            normalize_digest(value)

    def test_non_string_rejected(self) -> None:
        with pytest.raises(MalformedDocument, match="string"):
            normalize_digest(123)  # type: ignore[arg-type]
