# ================================
# file: app/routers/health.py
# ================================
import logging
import threading
import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.base import Base
from app.db.session import engine, get_db, ping_db
from app.models.ticket import Ticket, OPEN_STATUSES
from app.models.user import User
from app.utils.datetime import utcnow

log = logging.getLogger("db")

router = APIRouter(tags=["Health"])

STARTED_AT = time.time()
_lock = threading.Lock()
_requests_total = 0


def count_request() -> None:
    global _requests_total
    with _lock:
        _requests_total += 1


def uptime() -> float:
    return round(time.time() - STARTED_AT, 3)


def _db_ok() -> bool:
    try:
        ping_db()
        return True
    except SQLAlchemyError as e:
        log.error("Database ping failed: %s", e)
        return False


@router.get("/health")
def health():
    ok = _db_ok()
    body = {
        "status": "ok" if ok else "error",
        "time": utcnow().isoformat(),
        "uptime": uptime(),
        "environment": settings.ENVIRONMENT,
        "database": "connected" if ok else "disconnected",
    }
    return JSONResponse(body, status_code=200 if ok else 503)


@router.get("/health/detailed")
def health_detailed(db: Session = Depends(get_db)):
    if not _db_ok():
        return JSONResponse({"status": "error", "database": "disconnected"}, status_code=503)

    tables = {
        t.name: int(db.query(func.count()).select_from(t).scalar() or 0)
        for t in Base.metadata.sorted_tables
    }
    pool = engine.pool
    return {
        "status": "ok",
        "uptime": uptime(),
        "database": {
            "dialect": engine.dialect.name,
            "tables": tables,
            "pool": {"class": type(pool).__name__, "status": pool.status()},
        },
    }


@router.get("/health/ready")
def health_ready():
    if not _db_ok():
        return JSONResponse({"status": "not ready"}, status_code=503)
    return {"status": "ready"}


@router.get("/health/live")
def health_live():
    return {"status": "alive", "uptime": uptime()}


@router.get("/health/metrics", response_class=PlainTextResponse)
def health_metrics(db: Session = Depends(get_db)):
    tickets_total = db.query(Ticket).count()
    tickets_open = db.query(Ticket).filter(Ticket.status.in_(OPEN_STATUSES)).count()
    users_total = db.query(User).count()

    lines = [
        "# TYPE process_uptime_seconds gauge",
        f"process_uptime_seconds {uptime()}",
        "# TYPE http_requests_total counter",
        f"http_requests_total {_requests_total}",
        "# TYPE tickets_total gauge",
        f"tickets_total {tickets_total}",
        "# TYPE tickets_open_total gauge",
        f"tickets_open_total {tickets_open}",
        "# TYPE users_total gauge",
        f"users_total {users_total}",
    ]
    return "\n".join(lines) + "\n"
