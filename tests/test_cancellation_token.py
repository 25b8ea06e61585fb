"""Tests for magic-link token signing and verification."""

import base64
import hashlib
import hmac
import time
from unittest.mock import patch

import pytest

from app.core.exceptions import TokenFormatError, TokenSignatureError, TokenTimestampError
from app.services import cancellation_token
from app.services.cancellation_token import TokenPayload, build_cancellation_link, generate, token_id, validate, verify

SECRET = "s3cret"


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


class TestRoundTrip:
    @pytest.mark.parametrize(
        "booking_id,order_number,email",
        [
            ("b-123", "A0GWPTWH", "test@example.com"),
            ("7c9e6679-7425-40de-944b-e07fc1f90ae7", "ZZ000001", "Mixed.Case+tag@Example.org"),
            ("1", "#1", "müller@example.de"),
        ],
    )
    def test_validate_recovers_all_fields(self, booking_id, order_number, email):
        token = generate(booking_id, order_number, email, SECRET, issued_at_ms=1_700_000_000_123)

        result = validate(token, SECRET)

        assert result.valid is True
        assert result.error is None
        assert result.payload == TokenPayload(booking_id, order_number, email, 1_700_000_000_123)

    def test_scenario_booking_b123(self):
        token = generate("b-123", "A0GWPTWH", "test@example.com", SECRET)

        payload = verify(token, SECRET)

        assert payload.booking_id == "b-123"
        assert payload.order_number == "A0GWPTWH"
        assert payload.email == "test@example.com"
        assert abs(payload.issued_at_ms - int(time.time() * 1000)) < 60_000


class TestWireFormat:
    def test_token_is_unpadded_urlsafe(self):
        for n in range(1, 12):
            token = generate("b" * n, "ORDER", "a@b.c", SECRET)
            assert "=" not in token
            assert "+" not in token and "/" not in token

    def test_outer_and_inner_encoding(self):
        token = generate("b-1", "ORD1", "x@y.z", SECRET, issued_at_ms=42)

        decoded = base64.urlsafe_b64decode(token + "=" * (-len(token) % 4)).decode("utf-8")
        message = "b-1:ORD1:x@y.z:42"
        expected_sig = _b64url(hmac.new(SECRET.encode(), message.encode(), hashlib.sha256).digest())

        assert decoded == f"{message}:{expected_sig}"

    def test_no_expiry_in_token(self):
        token = generate("b-1", "ORD1", "x@y.z", SECRET, issued_at_ms=0)

        assert validate(token, SECRET).valid is True


class TestTamperDetection:
    def test_any_single_character_flip_is_rejected(self):
        token = generate("b-123", "A0GWPTWH", "test@example.com", SECRET)

        for i, ch in enumerate(token):
            replacement = "A" if ch != "A" else "B"
            tampered = token[:i] + replacement + token[i + 1:]
            result = validate(tampered, SECRET)
            assert result.valid is False, f"flip at {i} accepted"
            assert isinstance(result.error, (TokenFormatError, TokenSignatureError, TokenTimestampError))

    def test_wrong_secret_is_rejected(self):
        token = generate("b-123", "A0GWPTWH", "test@example.com", "secret-a")

        result = validate(token, "secret-b")

        assert result.valid is False
        assert isinstance(result.error, TokenSignatureError)

    def test_forged_payload_with_reused_signature(self):
        token = generate("b-123", "A0GWPTWH", "test@example.com", SECRET, issued_at_ms=5)
        decoded = base64.urlsafe_b64decode(token + "=" * (-len(token) % 4)).decode()
        signature = decoded.rsplit(":", 1)[1]
        forged = _b64url(f"b-999:A0GWPTWH:test@example.com:5:{signature}".encode())

        with pytest.raises(TokenSignatureError):
            verify(forged, SECRET)

    def test_signature_compared_in_constant_time(self):
        token = generate("b-123", "A0GWPTWH", "test@example.com", SECRET)

        with patch.object(cancellation_token.hmac, "compare_digest", wraps=hmac.compare_digest) as spy:
            assert validate(token, SECRET).valid is True

        spy.assert_called_once()


class TestMalformedTokens:
    def test_not_base64(self):
        with pytest.raises(TokenFormatError):
            verify("!!!not-a-token!!!", SECRET)

    def test_empty(self):
        with pytest.raises(TokenFormatError):
            verify("", SECRET)

    def test_wrong_segment_count(self):
        with pytest.raises(TokenFormatError):
            verify(_b64url(b"b-1:ORD:x@y.z:sig"), SECRET)
        with pytest.raises(TokenFormatError):
            verify(_b64url(b"b-1:ORD:x@y.z:1:sig:extra"), SECRET)

    def test_non_numeric_timestamp(self):
        with pytest.raises(TokenTimestampError):
            verify(_b64url(b"b-1:ORD:x@y.z:yesterday:sig"), SECRET)

    def test_invalid_utf8(self):
        with pytest.raises(TokenFormatError):
            verify(_b64url(b"\xff\xfe:a:b:1:c"), SECRET)

    def test_validate_never_raises(self):
        result = validate("%%%", SECRET)

        assert result.valid is False
        assert result.payload is None
        assert result.error.code == "invalid_token"


class TestGenerate:
    def test_distinct_timestamps_give_distinct_tokens(self):
        a = generate("b-123", "A0GWPTWH", "test@example.com", SECRET, issued_at_ms=1_000)
        b = generate("b-123", "A0GWPTWH", "test@example.com", SECRET, issued_at_ms=1_001)

        assert a != b
        assert validate(a, SECRET).valid and validate(b, SECRET).valid

    @pytest.mark.parametrize("field", ["booking_id", "order_number", "email"])
    def test_rejects_separator_in_fields(self, field):
        args = {"booking_id": "b-1", "order_number": "ORD", "email": "x@y.z"}
        args[field] = "has:colon"

        with pytest.raises(ValueError):
            generate(args["booking_id"], args["order_number"], args["email"], SECRET)

    def test_rejects_empty_secret(self):
        with pytest.raises(ValueError):
            generate("b-1", "ORD", "x@y.z", "")


class TestHelpers:
    def test_token_id_is_short_prefix(self):
        token = generate("b-1", "ORD", "x@y.z", SECRET)

        assert token_id(token) == token[:8]

    def test_cancellation_link(self):
        assert build_cancellation_link("abc", "https://shop.example.com/") == "https://shop.example.com/cancel/abc"

    def test_cancellation_link_defaults_to_website_url(self, monkeypatch):
        monkeypatch.setattr(cancellation_token.settings, "WEBSITE_URL", "https://tours.example.com")

        assert build_cancellation_link("abc") == "https://tours.example.com/cancel/abc"
