# app/main.py
import asyncio
import logging
import traceback
import uuid
from contextlib import asynccontextmanager
from time import perf_counter

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.responses import JSONResponse

from app.core import ratelimit
from app.core.config import settings
from app.db.session import SessionLocal, init_db
from app.services.audit import write_log
from app.services.workflow import InvalidTransition

# Routers
from app.routers import health, auth, users, departments, categories, tickets
from app.routers import courses, batches, modules, resit_forms, medical_submissions
from app.routers import logs, analytics

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s  %(levelname)s  %(name)s  %(message)s",
)
log = logging.getLogger("app")


# ---------------- Startup ----------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    log.info("Started (%s)", settings.ENVIRONMENT)
    yield


app = FastAPI(title="University Helpdesk", lifespan=lifespan)


def _audit_in_own_session(**kwargs) -> None:
    """Audit rows written outside a handler get their own session."""
    db = SessionLocal()
    try:
        write_log(db, **kwargs)
        db.commit()
    except Exception:
        db.rollback()
        log.exception("Could not write audit row %s", kwargs.get("action"))
    finally:
        db.close()


# ---------------- Request completion log ----------------
@app.middleware("http")
async def request_logging(request: Request, call_next):
    health.count_request()
    path = request.url.path
    started = perf_counter()
    resp = await call_next(request)
    if path.startswith("/api") and not path.startswith("/api/health"):
        elapsed = round((perf_counter() - started) * 1000, 2)
        level = "error" if resp.status_code >= 500 else "warn" if resp.status_code >= 400 else "info"
        _audit_in_own_session(
            category="performance", level=level, action="request_completed",
            description=f"{request.method} {path} {resp.status_code}",
            request=request, response_status=resp.status_code, response_time=elapsed,
        )
    return resp


# ---------------- Rate limit ----------------
@app.middleware("http")
async def rate_limit(request: Request, call_next):
    path = request.url.path
    if not settings.RATE_LIMIT_ENABLED or not path.startswith("/api"):
        return await call_next(request)

    client = request.client.host if request.client else "unknown"
    if path.startswith("/api/auth"):
        bucket, limit = "auth", settings.AUTH_RATE_LIMIT_MAX_REQUESTS
    else:
        bucket, limit = "api", settings.RATE_LIMIT_MAX_REQUESTS
    allowed, retry_after = ratelimit.hit(bucket, client, limit, settings.RATE_LIMIT_WINDOW_MS)
    if not allowed:
        _audit_in_own_session(
            category="security", level="warn", action="rate_limit_exceeded",
            description=f"Rate limit exceeded for {client} on {bucket}", request=request,
        )
        return JSONResponse(
            {"detail": "Too many requests"}, status_code=429,
            headers={"Retry-After": str(retry_after)},
        )
    return await call_next(request)


# ---------------- Body size ----------------
@app.middleware("http")
async def body_size_guard(request: Request, call_next):
    raw = request.headers.get("content-length")
    if raw and raw.isdigit():
        ctype = request.headers.get("content-type", "")
        limit = settings.MAX_JSON_BODY
        if ctype.startswith("multipart/"):
            limit += settings.MAX_FILE_SIZE * settings.MAX_FILES
        if int(raw) > limit:
            return JSONResponse({"detail": "Request entity too large"}, status_code=413)
    return await call_next(request)


# ---------------- Timeout ----------------
@app.middleware("http")
async def request_timeout(request: Request, call_next):
    try:
        return await asyncio.wait_for(call_next(request), timeout=settings.REQUEST_TIMEOUT_MS / 1000)
    except asyncio.TimeoutError:
        log.warning("Request timeout: %s %s", request.method, request.url.path)
        return JSONResponse({"detail": "Request timeout"}, status_code=408)


# ---------------- Correlation-ID ----------------
@app.middleware("http")
async def add_correlation_id(request: Request, call_next):
    cid = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
    request.state.correlation_id = cid
    resp = await call_next(request)
    resp.headers["X-Correlation-ID"] = cid
    return resp


# ---------------- CORS ----------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Correlation-ID", "Retry-After"],
)


# ---------------- Exception handlers ----------------
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(p) for p in err.get("loc", ())[1:]) or "body",
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"detail": "Validation failed", "errors": errors})


@app.exception_handler(InvalidTransition)
async def invalid_transition_handler(request: Request, exc: InvalidTransition):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    log.warning("IntegrityError on %s: %s", request.url.path, exc.orig)
    if "foreign key" in str(exc.orig).lower():
        return JSONResponse(status_code=400, content={"detail": "Record is still referenced by other data"})
    return JSONResponse(status_code=400, content={"detail": "Duplicate field value"})


@app.exception_handler(OperationalError)
async def operational_error_handler(request: Request, exc: OperationalError):
    log.error("OperationalError on %s: %s", request.url.path, exc.orig)
    return JSONResponse(
        status_code=503,
        content={"detail": "Database connection failed. Please try again later."},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    log.error("Unhandled error on %s %s\n%s", request.method, request.url.path, stack)
    _audit_in_own_session(
        category="system", level="error", action="server_error",
        description=f"{type(exc).__name__} on {request.method} {request.url.path}",
        request=request, response_status=500, error=exc, error_stack=stack,
    )
    content = {"detail": "Server Error"}
    if not settings.is_production:
        content.update({"error": str(exc), "stack": stack})
    return JSONResponse(status_code=500, content=content)


# ---------------- Mount routers ----------------
API_ROUTERS = (
    auth.router, users.router, departments.router, categories.router, tickets.router,
    courses.router, batches.router, modules.router, resit_forms.router,
    medical_submissions.router, logs.router, analytics.router,
)
for r in API_ROUTERS:
    app.include_router(r, prefix="/api")

# Health on both /health and /api/health
app.include_router(health.router)
app.include_router(health.router, prefix="/api", include_in_schema=False)

# Examination department path for the same medical routes (hidden from docs)
app.include_router(medical_submissions.router, prefix="/api/examination", include_in_schema=False)
