"""
Process-wide wiring for settings, repositories, session store and verifier.

Why:
    Routers and the middleware need the same instances. Keeping them here (not
    in `main`) avoids circular imports, and the setters let tests swap in fresh
    in-memory state between cases.

Notes:
    - `SESSIONS_BACKEND=db` selects the Postgres key/value backend outside of
      pytest. Only a missing module falls back to the in-memory map; a missing
      DSN, missing driver or bad table name aborts startup.
"""
from __future__ import annotations

import logging
import os
import sys

from identity_access.credentials import CredentialVerifier
from identity_access.stores import SessionStore
from teaching.enrollment import EnrollmentManager
from teaching.repo import CourseRepo, UserRepo

from .config import AppSettings, load_settings

logger = logging.getLogger("campus.web")

SETTINGS: AppSettings = load_settings()
_USERS: UserRepo | None = None
_COURSES: CourseRepo | None = None
_MANAGER: EnrollmentManager | None = None
_SESSION_STORE: SessionStore | None = None


def _under_pytest() -> bool:
    return "pytest" in sys.modules or bool(os.getenv("PYTEST_CURRENT_TEST"))


def _build_session_store(settings: AppSettings) -> SessionStore:
    if (not _under_pytest()) and settings.sessions_backend == "db":
        try:
            from identity_access.stores_db import DBKeyValueStore
            return SessionStore(DBKeyValueStore())
        except ImportError as exc:
            logger.warning("DB session store unavailable (%s); using in-memory store", exc)
    return SessionStore()


def get_settings() -> AppSettings:
    return SETTINGS


def set_settings(settings: AppSettings) -> None:
    """Allow tests to override secret/lifetimes."""
    global SETTINGS
    SETTINGS = settings


def get_users() -> UserRepo:
    global _USERS
    if _USERS is None:
        _USERS = UserRepo()
    return _USERS


def get_courses() -> CourseRepo:
    global _COURSES
    if _COURSES is None:
        _COURSES = CourseRepo()
    return _COURSES


def get_manager() -> EnrollmentManager:
    global _MANAGER
    if _MANAGER is None:
        _MANAGER = EnrollmentManager(get_users(), get_courses())
    return _MANAGER


def set_repos(users, courses) -> None:
    """Swap both repositories and rebuild the manager around them."""
    global _USERS, _COURSES, _MANAGER
    _USERS = users
    _COURSES = courses
    _MANAGER = EnrollmentManager(users, courses)


def get_session_store() -> SessionStore:
    global _SESSION_STORE
    if _SESSION_STORE is None:
        _SESSION_STORE = _build_session_store(SETTINGS)
    return _SESSION_STORE


def set_session_store(store: SessionStore) -> None:
    global _SESSION_STORE
    _SESSION_STORE = store


def get_verifier() -> CredentialVerifier:
    return CredentialVerifier(secret=SETTINGS.jwt_secret, sessions=get_session_store())


def reset_state() -> None:
    """Fresh in-memory repos and session store (used between tests)."""
    set_repos(UserRepo(), CourseRepo())
    set_session_store(SessionStore())
