"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend to avoid sandbox restrictions
that can affect the Trio backend (e.g., socketpair permission errors).
"""
import os
import sys
from pathlib import Path

import pytest

# Ensure modules in backend/ are importable across tests
REPO_ROOT = Path(__file__).resolve().parents[2]
BACKEND_DIR = REPO_ROOT / "backend"
TESTS_DIR = BACKEND_DIR / "tests"
for p in (str(BACKEND_DIR), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)

# Tests always run against the in-memory stores with a dev secret.
os.environ.setdefault("CAMPUS_ENV", "dev")
os.environ["SESSIONS_BACKEND"] = "memory"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _reset_campus_state():
    """
    Give every test fresh repositories and an empty session store.

    Why:
        Routers share process-wide singletons in `web.services`; without a
        reset, users and sessions leak across tests.
    """
    from web import services

    services.reset_state()
    yield
    services.reset_state()
