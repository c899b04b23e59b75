"""
Shared authentication utilities.

Why:
    Avoid duplicating environment-dependent cookie policy logic across modules
    (main app and auth router).

Design:
    The helpers are framework-agnostic apart from the response object passed
    in. Callers decide where the environment and lifetimes come from.
"""

from __future__ import annotations

from identity_access.domain import SESSION_COOKIE_NAME, TOKEN_COOKIE_NAME


def cookie_opts(environment: str) -> dict:
    """Return cookie flags for the environment.

    Returns a mapping with keys:
      - secure: True outside of dev (local HTTP needs insecure cookies)
      - samesite: "lax"
    """
    return {"secure": (environment or "dev").lower() != "dev", "samesite": "lax"}


def set_credential_cookie(response, name: str, value: str, *, max_age: int, environment: str) -> None:
    opts = cookie_opts(environment)
    response.set_cookie(
        key=name,
        value=value,
        httponly=True,
        secure=opts["secure"],
        samesite=opts["samesite"],
        path="/",
        max_age=max_age,
    )


def clear_credential_cookies(response, *, environment: str) -> None:
    opts = cookie_opts(environment)
    for name in (TOKEN_COOKIE_NAME, SESSION_COOKIE_NAME):
        response.delete_cookie(name, path="/", secure=opts["secure"], httponly=True, samesite=opts["samesite"])
