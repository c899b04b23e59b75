"""
Session storage: a pluggable key/value capability plus the SessionStore on top.

Why: Session handles must resolve to an identity without a database round trip,
but the core must not assume the store lives in the same process. Any backend
offering get/set/delete (in-memory dict, Postgres table, shared cache) can be
plugged in.

Security: Cookies carry only the opaque handle. The email stays server-side.
Entries do not expire inside the store; the 24h lifetime is enforced through
the cookie `Max-Age`. Restarting the process with the in-memory backend
invalidates every session while signed tokens stay valid until expiry.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Protocol
import secrets


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    """Process-local map for single-instance deployments and tests."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __len__(self) -> int:
        return len(self._data)


@dataclass(frozen=True)
class SessionRecord:
    handle: str
    email: str


class SessionStore:
    """Maps random, unguessable handles to emails."""

    def __init__(self, backend: KeyValueStore | None = None):
        self._backend: KeyValueStore = backend if backend is not None else InMemoryKeyValueStore()

    @property
    def backend(self) -> KeyValueStore:
        return self._backend

    def create(self, *, email: str) -> SessionRecord:
        if not email:
            raise ValueError("email required")
        handle = secrets.token_urlsafe(24)
        self._backend.set(handle, email)
        return SessionRecord(handle=handle, email=email)

    def get(self, handle: str) -> Optional[str]:
        """Return the email for `handle`, or None when unknown."""
        if not handle:
            return None
        return self._backend.get(handle)

    def delete(self, handle: str) -> None:
        if handle:
            self._backend.delete(handle)


__all__ = ["KeyValueStore", "InMemoryKeyValueStore", "SessionRecord", "SessionStore"]
