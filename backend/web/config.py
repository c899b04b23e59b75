"""
Configuration and startup security checks for the campus backend.

Why: Both services share one process-wide token secret and cookie lifetimes.
This module reads them from the environment in one place and refuses to start
a production deployment with obviously insecure settings, without burdening
local development.

Permissions: The caller needs no special privileges. The functions read
environment variables; the guard raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

from dataclasses import dataclass
import os

DEV_JWT_SECRET = "CHANGE_ME_DEV_ONLY"


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def _int_env(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


@dataclass(frozen=True)
class AppSettings:
    environment: str
    jwt_secret: str
    token_ttl_seconds: int
    session_ttl_seconds: int
    sessions_backend: str
    log_level: str

    @property
    def is_prod(self) -> bool:
        return _is_prod_like(self.environment)


def load_settings() -> AppSettings:
    return AppSettings(
        environment=(os.getenv("CAMPUS_ENV", "dev") or "dev").lower(),
        jwt_secret=os.getenv("JWT_SECRET") or DEV_JWT_SECRET,
        token_ttl_seconds=_int_env("TOKEN_TTL_SECONDS", 30 * 60),
        session_ttl_seconds=_int_env("SESSION_TTL_SECONDS", 24 * 60 * 60),
        sessions_backend=(os.getenv("SESSIONS_BACKEND", "memory") or "memory").lower(),
        log_level=(os.getenv("LOG_LEVEL", "INFO") or "INFO").strip().upper() or "INFO",
    )


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Intent: Abort process startup when obviously insecure settings are detected
    in production/staging. Development remains permissive for convenience.

    Checks:
    - JWT_SECRET must be set, not a placeholder, and at least 32 characters.
    - DATABASE_URL must not explicitly disable TLS in prod-like envs.
    """
    env = os.getenv("CAMPUS_ENV", "dev")
    if not _is_prod_like(env):
        return  # dev/test remain permissive

    secret = (os.getenv("JWT_SECRET") or "").strip()
    if not secret or secret.upper().startswith("CHANGE_ME") or len(secret) < 32:
        raise SystemExit(
            "Refusing to start: JWT_SECRET is unset, a placeholder, or shorter than 32 characters in production."
        )

    for key in ("DATABASE_URL", "SESSION_DATABASE_URL"):
        dsn = os.getenv(key, "")
        if "sslmode=disable" in dsn:
            raise SystemExit(
                f"Refusing to start: {key} contains sslmode=disable in production. Use sslmode=require or verify TLS."
            )
