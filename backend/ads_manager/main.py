"""
Google Ads Account Manager — FastAPI Backend
Google sign-in, linking of Google Ads accounts, and campaign create/delete through the Google Ads API.
"""

import logging
import time
from contextlib import asynccontextmanager
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from ads_manager.config import get_settings
from ads_manager.database import init_db, check_db_connection
from ads_manager.routers import auth, managed_accounts, campaigns

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)
request_logger = logging.getLogger("ads_manager.requests")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Google Ads Account Manager...")
    if not settings.is_production:
        try:
            await init_db()
            logger.info("Database initialized, all tables ready.")
        except Exception as e:
            logger.error(f"Startup failed (DB/init): {e}", exc_info=True)
            # Still yield so app can serve /api/health (degraded) and logs are visible
    yield
    logger.info("Shutting down...")


app = FastAPI(
    title="Google Ads Account Manager",
    description="Link Google Ads accounts and manage their campaigns",
    version="1.0.0",
    lifespan=lifespan,
)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and duration of every request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        # Unhandled exceptions surface as 500 further out
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration_ms = (time.perf_counter() - start) * 1000
            request_logger.info(f"{request.method} {request.url.path} {status_code} {duration_ms:.0f}ms")


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

# ── Auth (register/login/Google sign-in public; /auth/me requires JWT) ──
app.include_router(auth.router)

# ── Routers (JWT per endpoint; the linking callback authenticates via OAuth state) ──
app.include_router(managed_accounts.router, prefix="/api/managed-accounts", tags=["Managed Accounts"])
app.include_router(campaigns.router, prefix="/api/campaigns", tags=["Campaigns"])


@app.get("/api/health")
async def health_check():
    db_ok = await check_db_connection()
    return {
        "status": "healthy" if db_ok else "degraded",
        "service": "Google Ads Account Manager",
        "database": "connected" if db_ok else "disconnected",
    }
