"""
Credential verification: turn the raw Cookie header into candidate identities.

Why:
    The web adapter should not know how tokens are signed or where sessions
    live. It hands the raw header to `CredentialVerifier.verify` and receives
    one `SourceResult` per presented credential, in header order.

Behavior:
    - `token=<jwt>`: signature and expiry checked; a failure is reported as a
      result with `error` set, never raised.
    - `sessionId=<handle>`: looked up in the SessionStore; an unknown handle
      yields a result without email (not an error).
    - No recognized credential at all raises `Unauthenticated`.
    - Session store failures propagate unchanged so the caller reports a
      server fault instead of a missing identity.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple
import logging

from .domain import SESSION_COOKIE_NAME, TOKEN_COOKIE_NAME
from .errors import Unauthenticated
from .reconcile import reconcile_identities
from .stores import SessionStore
from .tokens import TokenVerificationError, verify_token

logger = logging.getLogger("campus.identity_access")

RECOGNIZED_NAMES = (TOKEN_COOKIE_NAME, SESSION_COOKIE_NAME)


@dataclass(frozen=True)
class SourceResult:
    source: str
    value: str
    email: Optional[str] = None
    error: Optional[str] = None


def parse_credential_header(raw: str | None) -> List[Tuple[str, str]]:
    """Split `name1=value1; name2=value2` into recognized (name, value) pairs.

    Unknown names, empty values and fragments without `=` are skipped. Values
    keep any further `=` characters (base64 padding).
    """
    pairs: List[Tuple[str, str]] = []
    if not raw:
        return pairs
    for part in str(raw).split(";"):
        part = part.strip()
        if "=" not in part:
            continue
        name, value = part.split("=", 1)
        name = name.strip()
        value = value.strip()
        if name in RECOGNIZED_NAMES and value:
            pairs.append((name, value))
    return pairs


class CredentialVerifier:
    def __init__(self, *, secret: str, sessions: SessionStore):
        self._secret = secret
        self._sessions = sessions

    @property
    def sessions(self) -> SessionStore:
        return self._sessions

    def verify(self, raw_header: str | None) -> List[SourceResult]:
        pairs = parse_credential_header(raw_header)
        if not pairs:
            raise Unauthenticated("no_credentials")
        return [self._verify_one(name, value) for name, value in pairs]

    def _verify_one(self, name: str, value: str) -> SourceResult:
        if name == TOKEN_COOKIE_NAME:
            try:
                email = verify_token(token=value, secret=self._secret)
            except TokenVerificationError as exc:
                logger.warning("Token rejected: %s", exc.code)
                return SourceResult(source=name, value=value, error=exc.code)
            return SourceResult(source=name, value=value, email=email)
        email = self._sessions.get(value)
        return SourceResult(source=name, value=value, email=email)

    def authenticate(self, raw_header: str | None) -> Tuple[str, List[SourceResult]]:
        """Verify and reconcile in one step; returns (email, results)."""
        results = self.verify(raw_header)
        email = reconcile_identities(r.email for r in results)
        return email, results


__all__ = ["SourceResult", "CredentialVerifier", "parse_credential_header", "RECOGNIZED_NAMES"]
