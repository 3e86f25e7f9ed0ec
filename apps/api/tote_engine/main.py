"""FastAPI application entry point."""

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from tote_engine.core.config import settings
from tote_engine.core.exceptions import AllocationError
from tote_engine.core.structured_logging import build_log_context
from tote_engine.db.session import engine

logger = logging.getLogger(__name__)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,
        send_default_pii=False,  # Claimant emails/phones stay out of Sentry
    )
    logger.info("Sentry initialized for error tracking")

# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from tote_engine.core.rate_limit import limiter

# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Tote Engine API",
    description="Tote allocation, claim verification and waitlist promotion",
    version=settings.VERSION,
    docs_url="/docs" if settings.is_dev else None,
    redoc_url="/redoc" if settings.is_dev else None,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


async def allocation_error_handler(request: Request, exc: AllocationError) -> JSONResponse:
    """Render domain errors as {"detail", "error", "next_step"}."""
    context = build_log_context(route=request.url.path, method=request.method)
    if exc.status_code >= 500:
        logger.error("Allocation invariant failure: %s", exc, extra=context)
    else:
        logger.info("Request rejected (%s): %s", exc.kind, exc, extra=context)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": exc.kind, "next_step": exc.next_step},
    )


app.add_exception_handler(AllocationError, allocation_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "X-Admin-Key"],
)

# ============================================================================
# Routers
# ============================================================================

from tote_engine.routers import admin, causes, claims, internal, sponsorships, waitlist

app.include_router(causes.router)
app.include_router(claims.router)
app.include_router(waitlist.router)
app.include_router(sponsorships.router)

# Admin surface (X-Admin-Key)
app.include_router(admin.router)

# Internal endpoints (scheduled/cron jobs - protected by INTERNAL_SECRET)
app.include_router(internal.router)


# ============================================================================
# Health Check
# ============================================================================


@app.get("/health")
def health_check():
    """Health check with database connectivity."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error("Health check failed: %s", type(e).__name__)
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "database": "unreachable", "version": settings.VERSION},
        )
    return {"status": "ok", "database": "ok", "env": settings.ENV, "version": settings.VERSION}
