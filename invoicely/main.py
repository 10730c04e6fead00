"""
Invoicely API: multi-tenant invoicing backend.

ARCHITECTURE:
- FastAPI: HTTP surface, auth, request validation
- Services: pricing, numbering, lifecycle, PDF rendering, email delivery
- SQL database (SQLite by default): source of truth for all state

Every record belongs to one user; every query is scoped to the caller.
Totals are computed server-side only.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware

from invoicely.api.routes import auth, clients, invoices, products, reports
from invoicely.core.config import settings
from invoicely.core.exceptions import register_exception_handlers
from invoicely.core.rate_limiter import RateLimitMiddleware
from invoicely.db.init_db import init_db
from invoicely.jobs.overdue import start_overdue_scheduler, stop_overdue_scheduler
from invoicely.services.invoice_service import cleanup_temp_documents

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("invoicely")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
    1. Initialize database tables
    2. Remove rendered PDFs left behind by an earlier crash
    3. Start the overdue scan (if enabled)
    """
    logger.info("[*] Initializing database...")
    init_db()
    cleanup_temp_documents()

    if settings.OVERDUE_SCAN_ENABLED:
        start_overdue_scheduler()
    else:
        logger.info("[*] Overdue scan runs externally (invoicely-overdue)")

    yield

    if settings.OVERDUE_SCAN_ENABLED:
        stop_overdue_scheduler()


app = FastAPI(
    title="Invoicely API",
    description="Clients, products and GST invoices with PDF delivery by email.",
    version="0.1.0",
    lifespan=lifespan,
)

register_exception_handlers(app)

# SECURITY: Trust only specific hosts
app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.ALLOWED_HOSTS)

# SECURITY: Restrict CORS to specific methods and headers (not wildcards)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Authorization",
        "Accept",
        "Origin",
    ],
    max_age=600,  # Cache preflight for 10 minutes
    expose_headers=["Content-Type", "Content-Disposition"],
)

# SECURITY: Rate limiting to prevent brute force and DoS attacks
app.add_middleware(RateLimitMiddleware)


@app.middleware("http")
async def add_security_headers(request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(clients.router, prefix="/clients", tags=["clients"])
app.include_router(products.router, prefix="/products", tags=["products"])
app.include_router(invoices.router, prefix="/invoices", tags=["invoices"])
app.include_router(reports.router, prefix="/reports", tags=["reports"])


@app.get("/health")
def health():
    return {"status": "ok"}
