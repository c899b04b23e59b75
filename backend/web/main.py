"campus backend"
from __future__ import annotations

import logging
import os
import re
import sys

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from identity_access.authorization import resolve_principal
from identity_access.domain import SESSION_COOKIE_NAME
from identity_access.errors import IdentityConflict, IdentityError
from teaching.errors import CatalogError

from web import config as _cfg
from web import services


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out via CAMPUS_ENABLE_DOTENV (default true outside pytest).
    """
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("CAMPUS_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


if _should_load_dotenv():
    from dotenv import load_dotenv

    load_dotenv()
    services.set_settings(_cfg.load_settings())

# Minimal production safety checks (fail-fast on insecure config)
_cfg.ensure_secure_config_on_startup()

logging.basicConfig(level=services.get_settings().log_level)
logger = logging.getLogger("campus.web")

app = FastAPI(title="campus", description="Course catalog, enrollment and identity services", version="0.1.0")

from web.routes.auth import auth_router  # noqa: E402
from web.routes.courses import courses_router  # noqa: E402
from web.routes.operations import operations_router  # noqa: E402
from web.routes.users import users_router  # noqa: E402

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(courses_router)
app.include_router(operations_router)

# --- Auth Helpers & Middleware --------------------------------------------------

_PUBLIC_PATHS = frozenset({
    "/health",
    "/api/auth/register",
    "/api/auth/login",
    "/api/auth/login-session",
    "/docs",
    "/openapi.json",
})
# Catalog browsing is public: GET /api/courses and GET /api/courses/{id}
_PUBLIC_COURSE_READ = re.compile(r"^/api/courses(?:/[^/]+)?/?$")
_PRIVATE_HEADERS = {"Cache-Control": "private, no-store"}


def _is_public_path(method: str, path: str) -> bool:
    if path in _PUBLIC_PATHS:
        return True
    return method == "GET" and bool(_PUBLIC_COURSE_READ.match(path))


def _authenticate(raw_cookie: str | None):
    """Verify, reconcile and resolve the caller; returns (principal, session_handle)."""
    verifier = services.get_verifier()
    email, results = verifier.authenticate(raw_cookie)
    principal = resolve_principal(email, services.get_users())
    handle = next(
        (r.value for r in results if r.source == SESSION_COOKIE_NAME and r.email == email),
        None,
    )
    return principal, handle


@app.middleware("http")
async def identity_enforcement(request: Request, call_next):
    if _is_public_path(request.method, request.url.path):
        return await call_next(request)

    try:
        principal, handle = _authenticate(request.headers.get("cookie"))
    except IdentityError as exc:
        if isinstance(exc, IdentityConflict):
            logger.warning("Token and session identities differ for %s %s", request.method, request.url.path)
        return JSONResponse(exc.to_payload(), status_code=exc.status_code, headers=_PRIVATE_HEADERS)
    except Exception as exc:
        # Store/lookup failures are infrastructure faults, never "no identity"
        logger.error("Identity resolution failed: %s", exc.__class__.__name__)
        return JSONResponse({"error": "server_error"}, status_code=500, headers=_PRIVATE_HEADERS)

    # Expose minimal, read-only user context for downstream handlers.
    request.state.principal = principal
    request.state.session_handle = handle
    return await call_next(request)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    client = request.client.host if request.client else "-"
    logger.info("Incoming request: %s %s - %s", request.method, request.url.path, client)
    return await call_next(request)


@app.exception_handler(IdentityError)
async def _identity_error_handler(request: Request, exc: IdentityError):
    return JSONResponse(exc.to_payload(), status_code=exc.status_code, headers=_PRIVATE_HEADERS)


@app.exception_handler(CatalogError)
async def _catalog_error_handler(request: Request, exc: CatalogError):
    return JSONResponse(exc.to_payload(), status_code=exc.status_code, headers=_PRIVATE_HEADERS)


@app.exception_handler(Exception)
async def _server_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc.__class__.__name__)
    return JSONResponse({"error": "server_error"}, status_code=500, headers=_PRIVATE_HEADERS)


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "web.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=not services.get_settings().is_prod,
    )
