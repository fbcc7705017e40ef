"""MIMS API application."""
import logging

import sentry_sdk
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from app.core.config import settings
from app.core.db_errors import integrity_error_handler
from app.core.rate_limit import limiter
from app.core.structured_logging import configure_logging
from app.db.session import engine
from app.routers import (
    attachments,
    auth,
    case_types,
    cases,
    dashboard,
    internal,
    notifications,
    orders,
    providers,
    reports,
    team,
    users,
    webhooks,
)

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

if settings.SENTRY_DSN and settings.ENV != "dev":
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        release=settings.VERSION,
        integrations=[FastApiIntegration(transaction_style="endpoint"), SqlalchemyIntegration()],
        traces_sample_rate=0.1,
        send_default_pii=False,
    )
    logger.info("Sentry enabled for %s", settings.ENV)

_dev_docs = settings.ENV == "dev"

app = FastAPI(
    title="MIMS API",
    description="Case and issue tracking back office",
    version=settings.VERSION,
    docs_url="/docs" if _dev_docs else None,
    redoc_url="/redoc" if _dev_docs else None,
)

app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Requested-With"],
    expose_headers=["Content-Disposition"],
)
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(IntegrityError, integrity_error_handler)

# (router, prefix); attachments mixes /cases/{id}/attachments and /attachments/{id}
ROUTES = [
    (auth.router, "/auth"),
    (users.router, "/users"),
    (case_types.router, "/case-types"),
    (providers.router, "/providers"),
    (cases.router, "/cases"),
    (orders.router, "/orders"),
    (attachments.router, ""),
    (webhooks.router, "/webhooks"),
    (notifications.router, "/notifications"),
    (dashboard.router, "/dashboard"),
    (reports.router, "/reports"),
    (team.router, "/team"),
]
for router, prefix in ROUTES:
    app.include_router(router, prefix=prefix, tags=[prefix.strip("/") or "attachments"])

# Cron targets, guarded by INTERNAL_SECRET rather than a session
app.include_router(internal.router, prefix="/internal/scheduled", include_in_schema=False)


@app.get("/health")
def health():
    """Liveness plus a database round trip."""
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
