"""
Database-backed key/value store for session handles (Postgres).

Why: The in-memory store is not durable and does not work across instances.
This backend keeps handle → email pairs in a Postgres table so several app
processes can share sessions while the cookie stays opaque.

Security:
- Intended for a service connection; the table must not be readable by
  anonymous clients.
- The table identifier is validated up front and is the only value
  interpolated into SQL; keys and values are always bound parameters.

Note: This module uses psycopg3. It is imported only when enabled via
`SESSIONS_BACKEND=db`. Tests use the in-memory store or a fake driver.
"""
from __future__ import annotations

from typing import Optional
import os
import re

try:
    import psycopg
    HAVE_PSYCOPG = True
except Exception:  # pragma: no cover - optional dependency in dev
    psycopg = None  # type: ignore
    HAVE_PSYCOPG = False


_TABLE_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}(?:\.[A-Za-z_][A-Za-z0-9_]{0,62})?$")


class DBKeyValueStore:
    """Postgres-backed key/value store.

    Parameters
    ----------
    dsn:
        Psycopg3 connection string. Falls back to `SESSION_DATABASE_URL`, then
        `DATABASE_URL`.
    table:
        Table name, optionally schema-qualified. Defaults to `public.app_sessions`
        with columns `handle text primary key, email text not null`.
    """

    def __init__(self, dsn: str | None = None, table: str = "public.app_sessions") -> None:
        if not HAVE_PSYCOPG:
            raise RuntimeError("psycopg3 is required for DBKeyValueStore")
        self._dsn = dsn or os.getenv("SESSION_DATABASE_URL") or os.getenv("DATABASE_URL", "")
        if not self._dsn:
            raise RuntimeError("No database DSN provided for DBKeyValueStore")
        if not _TABLE_PATTERN.match(table or ""):
            raise ValueError("Invalid table name")
        self._table = table

    def get(self, key: str) -> Optional[str]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(f"select email from {self._table} where handle = %s", (key,))
                row = cur.fetchone()
        if not row:
            return None
        return str(row[0])

    def set(self, key: str, value: str) -> None:
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"insert into {self._table} (handle, email) values (%s, %s) "
                    f"on conflict (handle) do update set email = excluded.email",
                    (key, value),
                )

    def delete(self, key: str) -> None:
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(f"delete from {self._table} where handle = %s", (key,))


__all__ = ["DBKeyValueStore", "HAVE_PSYCOPG"]
