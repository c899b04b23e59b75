"""
Authentication routes (router-only module): registration, both login flavors,
logout and profile.

Why:
    Clients may authenticate with a signed token (`token` cookie, 30 minutes)
    or a revocable server-side session (`sessionId` cookie, 24 hours). Both
    login endpoints verify the same password; the middleware reconciles
    whatever the client presents afterwards.

Notes:
    - Logout deletes the session handle the request was authenticated with and
      expires both cookies. Tokens cannot be revoked; they lapse on expiry.
    - Error bodies never reveal whether an email is registered on login.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from identity_access.domain import SESSION_COOKIE_NAME, TOKEN_COOKIE_NAME
from identity_access.passwords import hash_password, verify_password
from identity_access.tokens import issue_token
from web import services
from web.auth_utils import clear_credential_cookies, set_credential_cookie
from web.routes.users import serialize_user_detail

auth_router = APIRouter(prefix="/api/auth", tags=["Auth"])
logger = logging.getLogger("campus.web.auth")

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 256


class RegisterPayload(BaseModel):
    # Loose typing so validation failures map to 400 instead of FastAPI 422
    name: object | None = None
    email: object | None = None
    password: object | None = None


class LoginPayload(BaseModel):
    email: object | None = None
    password: object | None = None


def _private(payload, *, status_code: int = 200) -> JSONResponse:
    return JSONResponse(payload, status_code=status_code, headers={"Cache-Control": "private, no-store"})


def _bad_request(detail: str) -> JSONResponse:
    return _private({"error": "bad_request", "detail": detail}, status_code=400)


def normalize_email(raw: object) -> str | None:
    """Lowercase/trim and apply a minimal `local@domain` check."""
    if not isinstance(raw, str):
        return None
    normalized = raw.strip().lower()
    if "@" not in normalized:
        return None
    local, domain = normalized.rsplit("@", 1)
    if not local or not domain or " " in normalized:
        return None
    return normalized


def _check_credentials(payload: LoginPayload):
    """Return the user for valid credentials, else None."""
    email = normalize_email(payload.email)
    password = payload.password if isinstance(payload.password, str) else ""
    if not email or not password:
        return None
    user = services.get_users().find_by_email(email)
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


@auth_router.post("/register")
async def register(payload: RegisterPayload):
    """Create a local account with role `student`.

    Behavior:
        - 201 with the public user summary
        - 400 `invalid_name` / `invalid_email` / `weak_password` / `email_taken`
    """
    name = payload.name.strip() if isinstance(payload.name, str) else ""
    if not name:
        return _bad_request("invalid_name")
    email = normalize_email(payload.email)
    if not email:
        return _bad_request("invalid_email")
    password = payload.password if isinstance(payload.password, str) else ""
    if len(password) < MIN_PASSWORD_LENGTH or len(password) > MAX_PASSWORD_LENGTH:
        return _bad_request("weak_password")
    users = services.get_users()
    if users.find_by_email(email) is not None:
        return _bad_request("email_taken")
    try:
        user = users.create(name=name, email=email, password_hash=hash_password(password))
    except ValueError as exc:
        return _bad_request(str(exc))
    logger.info("Registered user %s", email)
    return _private({"id": user.id, "name": user.name, "email": user.email, "role": user.role}, status_code=201)


@auth_router.post("/login")
async def login(payload: LoginPayload):
    """Verify the password and set a signed `token` cookie."""
    user = _check_credentials(payload)
    if user is None:
        return _private({"error": "invalid_credentials"}, status_code=401)
    settings = services.get_settings()
    token = issue_token(email=user.email, secret=settings.jwt_secret, ttl_seconds=settings.token_ttl_seconds)
    resp = _private({"email": user.email, "expires_in": settings.token_ttl_seconds})
    set_credential_cookie(
        resp, TOKEN_COOKIE_NAME, token, max_age=settings.token_ttl_seconds, environment=settings.environment
    )
    return resp


@auth_router.post("/login-session")
async def login_session(payload: LoginPayload):
    """Verify the password, store a session and set the `sessionId` cookie."""
    user = _check_credentials(payload)
    if user is None:
        return _private({"error": "invalid_credentials"}, status_code=401)
    settings = services.get_settings()
    rec = services.get_session_store().create(email=user.email)
    resp = _private({"email": user.email, "expires_in": settings.session_ttl_seconds})
    set_credential_cookie(
        resp, SESSION_COOKIE_NAME, rec.handle, max_age=settings.session_ttl_seconds, environment=settings.environment
    )
    return resp


@auth_router.post("/logout")
async def logout(request: Request):
    """Delete the server-side session (if any) and expire both cookies."""
    handle = getattr(request.state, "session_handle", None)
    if handle:
        services.get_session_store().delete(handle)
    resp = _private({"message": "logged_out"})
    clear_credential_cookies(resp, environment=services.get_settings().environment)
    return resp


@auth_router.get("/profile")
async def profile(request: Request):
    principal = request.state.principal
    user = services.get_users().get(principal.user_id)
    if user is None:
        return _private({"error": "identity_not_found"}, status_code=401)
    return _private(serialize_user_detail(user))
