"""
Signed credential tokens for the identity_access bounded context.

Why: Keep cryptographic issuing and validation of tokens outside the web
adapter so it can be unit tested independently of transport.

Security: Tokens are HS256 JWTs signed with a process-wide shared secret and
carry only `{email, iat, exp}`. They are stateless: verification checks the
signature and the temporal claims, nothing is stored server-side.
"""
from __future__ import annotations

from typing import Dict
import time

from jose import jwt
from jose.exceptions import JOSEError

ALGORITHM = "HS256"
DEFAULT_TOKEN_TTL_SECONDS = 30 * 60
MAX_CLOCK_SKEW_SECONDS = 5  # Allow minimal skew between services


class TokenVerificationError(Exception):
    """Raised when a token fails verification."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


def issue_token(
    *,
    email: str,
    secret: str,
    ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS,
    now: float | None = None,
) -> str:
    """Sign a token for `email` valid for `ttl_seconds` from `now`."""
    if not email:
        raise ValueError("email required")
    if not secret:
        raise ValueError("secret required")
    issued_at = int(now if now is not None else time.time())
    claims = {"email": email, "iat": issued_at, "exp": issued_at + int(ttl_seconds)}
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


def verify_token(*, token: str, secret: str) -> str:
    """Validate a token and return the email it was issued for.

    Parameters
    ----------
    token:
        The raw JWT string taken from the `token` cookie.
    secret:
        Shared HMAC secret.

    Raises
    ------
    TokenVerificationError:
        When the token is malformed, tampered with, expired, or lacks an email.
    """
    if not token or not isinstance(token, str):
        raise TokenVerificationError("malformed_token")
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=[ALGORITHM],
            options={
                "verify_signature": True,
                "verify_exp": False,
                "verify_iat": False,
                "verify_nbf": False,
                "verify_aud": False,
            },
        )
    except JOSEError as exc:
        raise TokenVerificationError("invalid_token") from exc

    _validate_temporal_claims(claims)

    email = claims.get("email")
    if not isinstance(email, str) or not email.strip():
        raise TokenVerificationError("missing_email")
    return email.strip()


def _validate_temporal_claims(claims: Dict[str, object]) -> None:
    now = time.time()
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        raise TokenVerificationError("invalid_token")
    if exp + MAX_CLOCK_SKEW_SECONDS < now:
        raise TokenVerificationError("token_expired")

    iat = claims.get("iat")
    if isinstance(iat, (int, float)):
        if iat - MAX_CLOCK_SKEW_SECONDS > now:
            raise TokenVerificationError("invalid_token")
