"""
Tests for the credential canonical form.

Test plan:
- Determinism: repeated calls byte-identical, key insertion order irrelevant
- Proof exclusion: adding or replacing proof leaves bytes unchanged
- Post-anchor metadata (digest, storageRefs) excluded, other metadata kept
- Nulls: None-valued keys omitted (absent == null), None inside arrays kept
- Numbers: integral floats emitted as integers, booleans untouched
- Arrays keep element order; nested mappings sorted recursively
- UTF-8 output without ASCII escapes
- Failure: non-mapping top level, NaN, non-string keys, unsupported
  types, nesting past MAX_NESTING_DEPTH → MalformedDocument
"""

import pytest

from credverse.canonical_json import (
    MAX_NESTING_DEPTH,
    canonical_document,
    canonical_json,
    canonicalize,
    strip_proof,
)
from credverse.errors import MalformedDocument

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

SAMPLE_DOCUMENT = {
    "id": "urn:x:1",
    "issuer": "did:web:demo.example.edu",
    "credentialSubject": {
        "studentName": "Jane Doe",
        "studentId": "S-001",
        "scores": [3, 1, 2],
    },
    "metadata": {"templateId": "degree", "version": "1.0.0"},
}


def _nested(levels: int) -> dict[str, object]:
    node: object = "leaf"
    for _ in range(levels):
        node = {"a": node}
    return node  # type: ignore[return-value]

SAMPLE_PROOF = {
    "type": "Ed25519Signature2020",
    "created": "2025-06-01T00:00:00Z",
    "verificationMethod": "did:web:demo.example.edu#keys-1",
    "proofPurpose": "assertionMethod",
    "proofValue": "ab" * 64,
}


def _reordered(value: object) -> object:
    """Same structure with every mapping's insertion order reversed."""
    if isinstance(value, dict):
        return {k: _reordered(value[k]) for k in reversed(list(value))}
    if isinstance(value, list):
        return [_reordered(v) for v in value]
    return value


# ---------------------------------------------------------------------------
# Determinism
# ---------------------------------------------------------------------------


class TestDeterminism:
    def test_repeated_calls_identical(self) -> None:
        assert canonicalize(SAMPLE_DOCUMENT) == canonicalize(SAMPLE_DOCUMENT)

    def test_insertion_order_irrelevant(self) -> None:
        assert canonicalize(_reordered(SAMPLE_DOCUMENT)) == canonicalize(SAMPLE_DOCUMENT)  # type: ignore[arg-type]

    def test_keys_sorted_recursively(self) -> None:
        assert canonicalize({"b": 1, "a": {"d": 2, "c": 3}}) == b'{"a":{"c":3,"d":2},"b":1}'

    def test_array_order_preserved(self) -> None:
        assert canonicalize({"a": [3, 1, 2]}) == b'{"a":[3,1,2]}'

    def test_no_whitespace(self) -> None:
        out = canonicalize(SAMPLE_DOCUMENT)
        assert b" " not in out.replace(b"Jane Doe", b"")
        assert b"\n" not in out

    def test_utf8_without_escapes(self) -> None:
        assert canonicalize({"name": "Zoë"}) == '{"name":"Zoë"}'.encode()


# ---------------------------------------------------------------------------
# Proof exclusion
# ---------------------------------------------------------------------------


class TestProofExclusion:
    def test_proof_does_not_change_bytes(self) -> None:
        signed = {**SAMPLE_DOCUMENT, "proof": SAMPLE_PROOF}
        assert canonicalize(signed) == canonicalize(SAMPLE_DOCUMENT)

    def test_different_proofs_same_bytes(self) -> None:
        a = {**SAMPLE_DOCUMENT, "proof": SAMPLE_PROOF}
        b = {**SAMPLE_DOCUMENT, "proof": {**SAMPLE_PROOF, "proofValue": "cd" * 64}}
        assert canonicalize(a) == canonicalize(b)

    def test_strip_proof_does_not_mutate_input(self) -> None:
        signed = {**SAMPLE_DOCUMENT, "proof": SAMPLE_PROOF}
        stripped = strip_proof(signed)
        assert "proof" not in stripped
        assert "proof" in signed

    def test_post_anchor_metadata_excluded(self) -> None:
        anchored = {
            **SAMPLE_DOCUMENT,
            "metadata": {
                **SAMPLE_DOCUMENT["metadata"],  # type: ignore[dict-item]
                "digest": "sha256:" + "a" * 64,
                "storageRefs": ["sha256:" + "b" * 64],
            },
        }
        assert canonicalize(anchored) == canonicalize(SAMPLE_DOCUMENT)

    def test_other_metadata_included(self) -> None:
        changed = {
            **SAMPLE_DOCUMENT,
            "metadata": {**SAMPLE_DOCUMENT["metadata"], "region": "IN"},  # type: ignore[dict-item]
        }
        assert canonicalize(changed) != canonicalize(SAMPLE_DOCUMENT)


# ---------------------------------------------------------------------------
# Value normalization
# ---------------------------------------------------------------------------


class TestNormalization:
    def test_null_key_omitted(self) -> None:
        assert canonicalize({"a": None, "b": 1}) == b'{"b":1}'

    def test_absent_and_null_hash_identically(self) -> None:
        with_null = {**SAMPLE_DOCUMENT, "expirationDate": None}
        assert canonicalize(with_null) == canonicalize(SAMPLE_DOCUMENT)

    def test_null_inside_array_kept(self) -> None:
        assert canonicalize({"a": [None, 1]}) == b'{"a":[null,1]}'

    def test_integral_float_as_integer(self) -> None:
        assert canonicalize({"x": 2.0}) == b'{"x":2}'
        assert canonicalize({"x": 2.0}) == canonicalize({"x": 2})

    def test_fractional_float_kept(self) -> None:
        assert canonicalize({"x": 8.75}) == b'{"x":8.75}'

    def test_booleans_not_numbers(self) -> None:
        assert canonicalize({"flag": True, "n": 1}) == b'{"flag":true,"n":1}'

    def test_tuple_encoded_as_array(self) -> None:
        assert canonicalize({"a": (1, 2)}) == b'{"a":[1,2]}'

    def test_canonical_document_returns_dict(self) -> None:
        doc = canonical_document({**SAMPLE_DOCUMENT, "proof": SAMPLE_PROOF})
        assert isinstance(doc, dict)
        assert "proof" not in doc


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestMalformed:
    @pytest.mark.parametrize("value", [[1, 2], "string", 42, None])
    def test_non_mapping_top_level(self, value: object) -> None:
        with pytest.raises(MalformedDocument):
            canonicalize(value)  # type: ignore[arg-type]

    def test_nan_rejected(self) -> None:
        with pytest.raises(MalformedDocument, match="non-finite"):
            canonicalize({"x": float("nan")})

    def test_infinity_rejected(self) -> None:
        with pytest.raises(MalformedDocument):
            canonicalize({"x": [float("inf")]})

    def test_non_string_key_rejected(self) -> None:
        with pytest.raises(MalformedDocument, match="not a string"):
            canonicalize({"x": {1: "a"}})

    def test_unsupported_type_rejected(self) -> None:
        with pytest.raises(MalformedDocument, match="unsupported"):
            canonicalize({"x": {1, 2}})

    def test_malformed_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            canonicalize([])  # type: ignore[arg-type]

    def test_nesting_at_limit_accepted(self) -> None:
        encoded = canonicalize(_nested(MAX_NESTING_DEPTH))
        assert encoded.endswith(b'"leaf"' + b"}" * MAX_NESTING_DEPTH)

    def test_nesting_past_limit_rejected(self) -> None:
        with pytest.raises(MalformedDocument, match="nesting"):
            canonicalize(_nested(MAX_NESTING_DEPTH + 1))

    def test_very_deep_nesting_rejected(self) -> None:
        with pytest.raises(MalformedDocument, match="nesting"):
            canonicalize(_nested(5000))


# ---------------------------------------------------------------------------
# Generic encoding
# ---------------------------------------------------------------------------


class TestCanonicalJson:
    def test_sorted_compact(self) -> None:
        assert canonical_json({"b": [1, 2], "a": "x"}) == '{"a":"x","b":[1,2]}'

    def test_nan_not_allowed(self) -> None:
        with pytest.raises(ValueError):
            canonical_json({"x": float("nan")})
