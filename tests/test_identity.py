"""
Tests for issuer identity resolution.

Uses pytest_httpx to serve DID documents; no network.

Test plan:
- StaticIdentityResolver: register/resolve, fragment stripped, unknown
  identity → UnknownIssuer
- did_web_url: bare host, path-based, percent-encoded port, non did:web
- decode_public_key: publicKeyHex, publicKeyMultibase with and without
  the ed25519-pub multicodec header, unsupported encoding
- DidWebResolver: resolves first method, fragment selects a method,
  HTTP error / connection error / id mismatch / no methods / bad JSON
  → UnknownIssuer
- End to end: signature check through a did:web resolver
"""

import base58
import httpx
import pytest
from pytest_httpx import HTTPXMock

from credverse.config import CredverseSettings
from credverse.credential import build_credential, check_signature, sign_credential
from credverse.credential.signing import generate_issuer_key, public_key_to_hex
from credverse.errors import UnknownIssuer
from credverse.identity import (
    DidWebResolver,
    IdentityResolver,
    StaticIdentityResolver,
    decode_public_key,
    did_web_url,
)

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

ISSUER = "did:web:demo.example.edu"
DID_URL = "https://demo.example.edu/.well-known/did.json"

KEY = generate_issuer_key(ISSUER)
ROTATED = generate_issuer_key(ISSUER, key_index=2)


def _raw(key: object) -> bytes:
    return bytes.fromhex(public_key_to_hex(key))  # type: ignore[arg-type]


def _did_document(**overrides: object) -> dict[str, object]:
    document: dict[str, object] = {
        "@context": ["https://www.w3.org/ns/did/v1"],
        "id": ISSUER,
        "verificationMethod": [
            {
                "id": f"{ISSUER}#keys-1",
                "type": "Ed25519VerificationKey2020",
                "controller": ISSUER,
                "publicKeyHex": public_key_to_hex(KEY.public_key()),
            },
            {
                "id": f"{ISSUER}#keys-2",
                "type": "Ed25519VerificationKey2020",
                "controller": ISSUER,
                "publicKeyMultibase": "z"
                + base58.b58encode(b"\xed\x01" + _raw(ROTATED.public_key())).decode(),
            },
        ],
    }
    document.update(overrides)
    return document


# ---------------------------------------------------------------------------
# Static resolver
# ---------------------------------------------------------------------------


class TestStaticResolver:
    def test_resolve_registered(self) -> None:
        resolver = StaticIdentityResolver()
        resolver.register(ISSUER, KEY.public_key())
        assert _raw(resolver.resolve(ISSUER)) == _raw(KEY.public_key())

    def test_fragment_stripped(self) -> None:
        resolver = StaticIdentityResolver({ISSUER: KEY.public_key()})
        assert _raw(resolver.resolve(f"{ISSUER}#keys-1")) == _raw(KEY.public_key())

    def test_unknown(self) -> None:
        with pytest.raises(UnknownIssuer, match="did:web:nobody.example"):
            StaticIdentityResolver().resolve("did:web:nobody.example")

    def test_satisfies_protocol(self) -> None:
        assert isinstance(StaticIdentityResolver(), IdentityResolver)
        assert isinstance(DidWebResolver(), IdentityResolver)


# ---------------------------------------------------------------------------
# did:web mapping and key decoding
# ---------------------------------------------------------------------------


class TestDidWebUrl:
    def test_bare_host(self) -> None:
        assert did_web_url(ISSUER) == DID_URL

    def test_path(self) -> None:
        assert (
            did_web_url("did:web:demo.example.edu:issuers:registrar")
            == "https://demo.example.edu/issuers/registrar/did.json"
        )

    def test_encoded_port(self) -> None:
        assert did_web_url("did:web:localhost%3A8443") == "https://localhost:8443/.well-known/did.json"

    @pytest.mark.parametrize("did", ["did:key:z6Mk", "did:web:", "demo.example.edu"])
    def test_rejected(self, did: str) -> None:
        with pytest.raises(UnknownIssuer):
            did_web_url(did)


class TestDecodePublicKey:
    def test_hex(self) -> None:
        key = decode_public_key({"publicKeyHex": public_key_to_hex(KEY.public_key())})
        assert _raw(key) == _raw(KEY.public_key())

    def test_multibase_with_multicodec(self) -> None:
        encoded = "z" + base58.b58encode(b"\xed\x01" + _raw(KEY.public_key())).decode()
        assert _raw(decode_public_key({"publicKeyMultibase": encoded})) == _raw(KEY.public_key())

    def test_multibase_raw(self) -> None:
        encoded = "z" + base58.b58encode(_raw(KEY.public_key())).decode()
        assert _raw(decode_public_key({"publicKeyMultibase": encoded})) == _raw(KEY.public_key())

    def test_unsupported(self) -> None:
        with pytest.raises(ValueError):
            decode_public_key({"publicKeyJwk": {"kty": "OKP"}})


# ---------------------------------------------------------------------------
# DidWebResolver
# ---------------------------------------------------------------------------


class TestDidWebResolver:
    def test_resolves_first_method(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=DID_URL, json=_did_document())
        key = DidWebResolver().resolve(ISSUER)
        assert _raw(key) == _raw(KEY.public_key())

    def test_fragment_selects_method(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=DID_URL, json=_did_document())
        key = DidWebResolver().resolve(f"{ISSUER}#keys-2")
        assert _raw(key) == _raw(ROTATED.public_key())

    def test_unknown_fragment(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=DID_URL, json=_did_document())
        with pytest.raises(UnknownIssuer, match="keys-9"):
            DidWebResolver().resolve(f"{ISSUER}#keys-9")

    def test_http_error(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=DID_URL, status_code=404)
        with pytest.raises(UnknownIssuer):
            DidWebResolver().resolve(ISSUER)

    def test_connection_error(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_exception(httpx.ConnectError("connection refused"), url=DID_URL)
        with pytest.raises(UnknownIssuer, match="connection refused"):
            DidWebResolver().resolve(ISSUER)

    def test_id_mismatch(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=DID_URL, json=_did_document(id="did:web:evil.example"))
        with pytest.raises(UnknownIssuer, match="evil"):
            DidWebResolver().resolve(ISSUER)

    def test_no_methods(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=DID_URL, json=_did_document(verificationMethod=[]))
        with pytest.raises(UnknownIssuer, match="verificationMethod"):
            DidWebResolver().resolve(ISSUER)

    def test_invalid_json(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=DID_URL, text="<html>not json</html>")
        with pytest.raises(UnknownIssuer):
            DidWebResolver().resolve(ISSUER)

    def test_shared_client(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=DID_URL, json=_did_document())
        with httpx.Client() as client:
            key = DidWebResolver(client=client).resolve(ISSUER)
        assert _raw(key) == _raw(KEY.public_key())

    def test_from_settings(self) -> None:
        resolver = DidWebResolver.from_settings(CredverseSettings(resolver_timeout_s=1.5))
        assert resolver._timeout == 1.5


class TestSignatureThroughDidWeb:
    def test_check_signature(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=DID_URL, json=_did_document())
        credential = build_credential(
            {
                "studentId": "S-001",
                "studentName": "Jane Doe",
                "programName": "B.Tech",
                "institutionName": "Demo U",
                "graduationDate": "2025-05-31",
            },
            "degree-btech",
            issuer=ISSUER,
        )
        signed = sign_credential(credential, KEY)
        assert check_signature(signed, DidWebResolver()).ok is True
