"""
Identity reconciliation: merge credential-derived emails into one identity.

A request may present a token and a session at the same time (for example
while clients migrate from token to session login). Each credential source
yields an optional email; this module combines them:

- all sources empty          -> Unauthenticated
- exactly one distinct email -> that email
- two or more distinct       -> IdentityConflict (guards against credential
                                mixing and session fixation)

The function is pure and independent of transport.
"""
from __future__ import annotations

from typing import Iterable, Optional

from .errors import IdentityConflict, Unauthenticated


def reconcile_identities(candidates: Iterable[Optional[str]]) -> str:
    """Return the single trusted email for a request or raise."""
    found: str | None = None
    for email in candidates:
        if not email:
            continue
        if found is None:
            found = email
        elif email != found:
            raise IdentityConflict("credentials_mismatch")
    if found is None:
        raise Unauthenticated("no_valid_credential")
    return found


__all__ = ["reconcile_identities"]
