"""
api/main.py -- FastAPI application entry point for Tradepost.

Run with:      python main.py serve
               uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware   -- rejects requests with unexpected Host headers
  2. CORSMiddleware          -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware       -- enforces per-route rate limits from api.limiter
  4. ServerSessionMiddleware -- loads the signed-cookie session from SessionStore

Lifespan builds the engine and every store exactly once and publishes them on
app.state; shutdown cancels the purge task and disposes the engine.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from api.errors import install_error_handlers
from api.limiter import limiter
from api.models import HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.products import router as products_router
from api.routes.v1.users import router as users_router
from auth.directory import AccountDirectory
from auth.reset import PasswordResetLedger
from auth.session import ServerSessionMiddleware
from auth.session_store import SessionStore
from auth.store import AccountStore
from catalog.service import ProductCatalog
from catalog.store import ProductStore
from core.config import get_settings
from core.database import create_db_engine

API_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("tradepost.api")

settings = get_settings()

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI) -> None:
    """Purge expired session records every hour.

    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and unwinds the coroutine.
    """
    while True:
        await asyncio.sleep(60 * 60)
        removed = await run_in_threadpool(app.state.session_store.purge_expired)
        if removed:
            logger.info("Purged %d expired sessions", removed)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


def wire_services(app: FastAPI, engine) -> None:
    """Build the stores and services over engine and publish them on app.state.

    Shared by the lifespan and the test fixtures so both wire the same graph.
    """
    app.state.engine = engine
    app.state.account_store = AccountStore(engine)
    app.state.product_store = ProductStore(engine)
    app.state.session_store = SessionStore(engine, ttl=settings.session_ttl_seconds)
    app.state.accounts = AccountDirectory(app.state.account_store)
    app.state.reset_ledger = PasswordResetLedger(app.state.account_store, settings.reset_token_expire_minutes)
    app.state.catalog = ProductCatalog(app.state.product_store)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Everything before yield runs on startup; everything after on shutdown.

    The purge task starts last because it references app.state.session_store.
    """
    logger.info("Tradepost API starting up (environment=%s)", settings.environment)
    wire_services(app, create_db_engine(settings.database_url))
    logger.info("Stores initialized (%d accounts)", app.state.account_store.count_accounts())
    app.state.purge_task = asyncio.create_task(_purge_loop(app))

    yield

    app.state.purge_task.cancel()
    app.state.engine.dispose()
    logger.info("Tradepost API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Tradepost API",
    description="Accounts, sessions, password reset and owner-guarded product listings.",
    version=API_VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# add_middleware() wraps the current stack, so the last registration is the
# outermost layer. Register innermost first: Session -> SlowAPI -> CORS ->
# TrustedHost.
# ---------------------------------------------------------------------------

app.add_middleware(
    ServerSessionMiddleware,
    secret_key=settings.secret_key,
    cookie_name=settings.session_cookie_name,
    max_age=settings.session_ttl_seconds,
    same_site=settings.cookie_samesite,
    https_only=settings.secure_cookies,
)

app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Exception handlers and routers
# ---------------------------------------------------------------------------

install_error_handlers(app)

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])
app.include_router(products_router, prefix="/api/v1", tags=["Products"])


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable.
# No rate limit applied.
# ---------------------------------------------------------------------------


def _database_status(request: Request) -> str:
    try:
        with request.app.state.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Health check: database unreachable")
        return "unavailable"
    return "ok"


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version and per-component status."""
    components = {"app": "ok", "database": _database_status(request)}
    status = "healthy" if all(v == "ok" for v in components.values()) else "degraded"
    return HealthResponse(status=status, version=API_VERSION, components=components)
