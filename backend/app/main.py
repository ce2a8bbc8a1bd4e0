"""
NIMBUS Reorder Engine: FastAPI Application Entry Point

Architecture patterns applied:
- Global exception handlers (convert domain exceptions to HTTP responses)
- Observer Pattern: EventBus initialized at startup with LoggingHandler
- Dependency Inversion: routers depend on service abstractions
"""
import logging
import time
import uuid
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app.config import settings
from app.database import create_tables, SessionLocal, engine
from app.core.exceptions import NimbusException, to_http_exception
from app.services.analysis_job_service import analysis_job_service
from app.services.policy_service import PolicyService
from app.services.reorder_settings_store import reorder_settings_store
from app.utils.events import configure_event_bus
from app.utils.logging import configure_logging, request_id_var
from app.routers import reorder

configure_logging(log_level=settings.LOG_LEVEL, log_format=settings.LOG_FORMAT, service=settings.APP_NAME)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Reorder recommendation engine: demand forecasting, policy-driven reorder suggestions and analysis jobs",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS Middleware ───────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """
    Adds request correlation metadata for observability.
    - Reads incoming X-Request-ID (if present) or generates one
    - Exposes request_id on request.state for handlers/endpoints
    - Adds timing header for basic performance visibility
    """
    start = time.perf_counter()
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    token = request_id_var.set(request_id)

    try:
        response = await call_next(request)
    finally:
        request_id_var.reset(token)

    duration_ms = (time.perf_counter() - start) * 1000
    if settings.ENABLE_REQUEST_ID:
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time-Ms"] = f"{duration_ms:.2f}"

    if settings.ENABLE_REQUEST_LOGGING:
        logger.info(
            "request_completed method=%s path=%s status=%s duration_ms=%.2f request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request_id,
        )

    if settings.ENABLE_SECURITY_HEADERS:
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if not settings.DEBUG:
            response.headers["Strict-Transport-Security"] = (
                f"max-age={settings.STRICT_TRANSPORT_SECURITY_SECONDS}; includeSubDomains"
            )

    return response

# ── Global Exception Handlers ─────────────────────────────────────────────────

@app.exception_handler(NimbusException)
async def nimbus_exception_handler(request: Request, exc: NimbusException) -> JSONResponse:
    """
    Converts all domain exceptions to structured HTTP responses.
    Routers never need to catch domain exceptions.
    """
    http_exc = to_http_exception(exc)
    if http_exc.status_code >= 500:
        logger.error("domain_error code=%s message=%s", exc.code, exc.message)
    return JSONResponse(
        status_code=http_exc.status_code,
        content={"success": False, "error": http_exc.detail},
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": {"code": "VALIDATION_ERROR", "message": str(exc)}},
    )


# ── API Routers ───────────────────────────────────────────────────────────────
API_PREFIX = "/api/v1"
app.include_router(reorder.router, prefix=API_PREFIX)


# ── Lifecycle Events ──────────────────────────────────────────────────────────

@app.on_event("startup")
def startup_event():
    """
    Application startup:
    1. Create database tables (development only)
    2. Initialize EventBus with LoggingHandler (Observer Pattern)
    3. Seed the global reorder policy if none is active
    4. Load the reorder settings snapshot
    """
    logger.info("Starting %s v%s", settings.APP_NAME, settings.APP_VERSION)
    create_tables()
    configure_event_bus()
    logger.info("EventBus initialized with LoggingHandler")

    db = SessionLocal()
    try:
        PolicyService(db).ensure_global_policy()
    finally:
        db.close()
    reorder_settings_store.load()
    logger.info("API available at http://localhost:8000/docs")


@app.on_event("shutdown")
def shutdown_event():
    analysis_job_service.shutdown(wait_for_jobs=False)
    reorder_settings_store.reset()
    logger.info("%s shutting down.", settings.APP_NAME)


# ── Health Endpoints ──────────────────────────────────────────────────────────

@app.get("/", tags=["Health"])
def root():
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "status": "running",
    }


@app.get("/health", tags=["Health"])
def health_check():
    return {"status": "healthy", "app": settings.APP_NAME}


@app.get("/ready", tags=["Health"])
def readiness_check(request: Request):
    """
    Lightweight readiness endpoint intended for orchestrators.
    """
    db_ok = True
    db_error = None

    if settings.READINESS_CHECK_DATABASE:
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception as exc:
            db_ok = False
            db_error = str(exc)

    status = "ready" if db_ok else "not_ready"
    status_code = 200 if db_ok else 503

    return JSONResponse(
        status_code=status_code,
        content={
            "status": status,
            "app": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "request_id": getattr(request.state, "request_id", None),
            "checks": {
                "database": {
                    "enabled": settings.READINESS_CHECK_DATABASE,
                    "ok": db_ok,
                    "error": db_error,
                }
            },
        },
    )
