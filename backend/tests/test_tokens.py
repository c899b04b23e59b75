"""
Token issuing and verification: HS256 only, expiry enforced with small skew.
"""
from __future__ import annotations

import time

import pytest
from jose import jwt

from identity_access import tokens as tokens_mod
from identity_access.tokens import TokenVerificationError, issue_token, verify_token

SECRET = "unit-test-secret-that-is-long-enough-123"


def test_issue_and_verify_returns_email():
    token = issue_token(email="ana@example.com", secret=SECRET)
    assert verify_token(token=token, secret=SECRET) == "ana@example.com"


def test_claims_carry_email_iat_exp_only():
    token = issue_token(email="ana@example.com", secret=SECRET, ttl_seconds=60, now=1_700_000_000)
    claims = jwt.get_unverified_claims(token)
    assert claims == {"email": "ana@example.com", "iat": 1_700_000_000, "exp": 1_700_000_060}


def test_wrong_secret_is_invalid():
    token = issue_token(email="ana@example.com", secret=SECRET)
    with pytest.raises(TokenVerificationError) as exc:
        verify_token(token=token, secret="another-secret-entirely-000000000")
    assert exc.value.code == "invalid_token"


def test_expired_token_rejected():
    issued = time.time() - 3600
    token = issue_token(email="ana@example.com", secret=SECRET, ttl_seconds=60, now=issued)
    with pytest.raises(TokenVerificationError) as exc:
        verify_token(token=token, secret=SECRET)
    assert exc.value.code == "token_expired"


def test_expiry_within_clock_skew_is_tolerated():
    issued = time.time() - 62
    token = issue_token(email="ana@example.com", secret=SECRET, ttl_seconds=60, now=issued)
    assert verify_token(token=token, secret=SECRET) == "ana@example.com"


def test_issued_in_future_rejected():
    token = issue_token(email="ana@example.com", secret=SECRET, now=time.time() + 600)
    with pytest.raises(TokenVerificationError) as exc:
        verify_token(token=token, secret=SECRET)
    assert exc.value.code == "invalid_token"


def test_missing_email_claim_rejected():
    now = int(time.time())
    token = jwt.encode({"iat": now, "exp": now + 60}, SECRET, algorithm="HS256")
    with pytest.raises(TokenVerificationError) as exc:
        verify_token(token=token, secret=SECRET)
    assert exc.value.code == "missing_email"


@pytest.mark.parametrize("raw", ["", "not-a-jwt", "a.b.c"])
def test_garbage_is_rejected(raw: str):
    with pytest.raises(TokenVerificationError):
        verify_token(token=raw, secret=SECRET)


def test_verify_enforces_hs256_alg(monkeypatch: pytest.MonkeyPatch):
    captured = {}

    def fake_decode(token, key, algorithms=None, **kwargs):
        captured["algorithms"] = list(algorithms or [])
        from jose.exceptions import JOSEError
        raise JOSEError("boom")

    monkeypatch.setattr(tokens_mod.jwt, "decode", fake_decode)
    with pytest.raises(TokenVerificationError):
        verify_token(token="dummy", secret=SECRET)
    assert captured.get("algorithms") == ["HS256"]


def test_issue_requires_email_and_secret():
    with pytest.raises(ValueError):
        issue_token(email="", secret=SECRET)
    with pytest.raises(ValueError):
        issue_token(email="ana@example.com", secret="")


def test_tampered_payload_with_original_signature_rejected():
    import base64
    import json

    token = issue_token(email="ana@example.com", secret=SECRET)
    header, _, signature = token.split(".")
    forged_claims = {"email": "admin@example.com", "iat": int(time.time()), "exp": int(time.time()) + 600}
    forged = base64.urlsafe_b64encode(json.dumps(forged_claims).encode()).rstrip(b"=").decode()

    with pytest.raises(TokenVerificationError) as exc:
        verify_token(token=f"{header}.{forged}.{signature}", secret=SECRET)
    assert exc.value.code == "invalid_token"
