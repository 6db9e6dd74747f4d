"""Tests for self-contained authorization code encoding and decoding."""

from __future__ import annotations

import base64
import json

import pytest

from projectflow.domain.oauth.authorization_code import (
    AuthorizationCodePayload,
    MalformedAuthorizationCodeError,
    decode_authorization_code,
    encode_authorization_code,
)
from projectflow.foundation.domain.exceptions import InvalidGrantError


def _payload(**overrides: object) -> AuthorizationCodePayload:
    fields: dict[str, object] = {
        "user_id": "user-123",
        "code_challenge": "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM",
        "code_challenge_method": "S256",
        "redirect_uri": "cursor://anysphere.cursor-retrieval/oauth/callback",
        "expires_at": 1_700_000_600_000,
        "access_token": "at",
        "refresh_token": "rt",
        "scope": "projects:read",
        "state": "xyz",
    }
    fields.update(overrides)
    return AuthorizationCodePayload(**fields)  # type: ignore[arg-type]


def _code_for(data: object) -> str:
    raw = json.dumps(data).encode()
    return "prefix." + base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


@pytest.mark.unit
class TestEncode:
    def test_shape_is_prefix_dot_body(self) -> None:
        code = encode_authorization_code(_payload())
        prefix, body = code.split(".")
        assert prefix
        assert "=" not in body

    def test_payload_uses_camel_case_keys(self) -> None:
        code = encode_authorization_code(_payload())
        body = code.split(".")[1]
        data = json.loads(base64.urlsafe_b64decode(body + "=" * (-len(body) % 4)))
        assert data["userId"] == "user-123"
        assert data["accessToken"] == "at"
        assert data["refreshToken"] == "rt"
        assert data["expiresAt"] == 1_700_000_600_000
        assert data["state"] == "xyz"

    def test_state_omitted_when_absent(self) -> None:
        code = encode_authorization_code(_payload(state=None))
        assert decode_authorization_code(code).state is None

    def test_identical_payloads_give_distinct_codes(self) -> None:
        payload = _payload()
        assert encode_authorization_code(payload) != encode_authorization_code(payload)

    def test_decode_returns_original_payload(self) -> None:
        payload = _payload()
        assert decode_authorization_code(encode_authorization_code(payload)) == payload


@pytest.mark.unit
class TestDecodeRejects:
    @pytest.mark.parametrize("code", ["no-dot", "a.b.c", ".body", "prefix."])
    def test_wrong_part_count(self, code: str) -> None:
        with pytest.raises(MalformedAuthorizationCodeError, match="format"):
            decode_authorization_code(code)

    def test_bad_base64(self) -> None:
        with pytest.raises(MalformedAuthorizationCodeError):
            decode_authorization_code("prefix.!!!not-base64!!!")

    def test_non_json(self) -> None:
        body = base64.urlsafe_b64encode(b"not json").rstrip(b"=").decode()
        with pytest.raises(MalformedAuthorizationCodeError, match="JSON"):
            decode_authorization_code(f"prefix.{body}")

    def test_non_object_json(self) -> None:
        with pytest.raises(MalformedAuthorizationCodeError, match="object"):
            decode_authorization_code(_code_for([1, 2, 3]))

    @pytest.mark.parametrize("missing", ["userId", "codeChallenge", "redirectUri", "expiresAt"])
    def test_missing_required_field(self, missing: str) -> None:
        data = _payload().to_wire()
        del data[missing]
        with pytest.raises(MalformedAuthorizationCodeError, match=missing):
            decode_authorization_code(_code_for(data))

    @pytest.mark.parametrize("value", [float("inf"), float("-inf"), float("nan"), True, "soon"])
    def test_non_finite_or_non_numeric_expiry(self, value: object) -> None:
        data = {**_payload().to_wire(), "expiresAt": value}
        with pytest.raises(MalformedAuthorizationCodeError, match="expiresAt"):
            decode_authorization_code(_code_for(data))

    def test_missing_tokens_decode_to_none(self) -> None:
        data = _payload().to_wire()
        del data["accessToken"]
        payload = decode_authorization_code(_code_for(data))
        assert payload.access_token is None

    def test_malformed_code_is_invalid_grant(self) -> None:
        with pytest.raises(InvalidGrantError) as exc_info:
            decode_authorization_code("garbage")
        assert exc_info.value.error == "invalid_grant"
        assert exc_info.value.status_code == 400


@pytest.mark.unit
class TestExpiry:
    def test_not_expired_before_deadline(self) -> None:
        assert not _payload(expires_at=2_000).is_expired(1_999)

    def test_expired_at_deadline(self) -> None:
        assert _payload(expires_at=2_000).is_expired(2_000)
