# app/routers/logs.py
from __future__ import annotations

from datetime import datetime, time, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.models.audit import Log, LOG_LEVELS
from app.routers.auth import require_superadmin
from app.services.audit import write_log, verify_signature
from app.utils.datetime import utcnow, parse_date

router = APIRouter(prefix="/logs", tags=["Logs"])

RequireSuperadmin = Depends(require_superadmin)


# ===================== LIST =====================
@router.get("", dependencies=[RequireSuperadmin])
def list_logs(
    request: Request,
    db: Session = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    level: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    action: Optional[str] = Query(None),
    user_id: Optional[int] = Query(None),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
):
    q = db.query(Log)
    if level:
        q = q.filter(Log.level == level)
    if category:
        q = q.filter(Log.category == category)
    if action:
        q = q.filter(Log.action.ilike(f"%{action.strip()}%"))
    if user_id is not None:
        q = q.filter(Log.user_id == user_id)

    # date range on timestamp; end_date covers its whole day
    start = parse_date(start_date)
    end = parse_date(end_date)
    if (start_date and start is None) or (end_date and end is None):
        raise HTTPException(400, "Invalid date format")
    if start:
        q = q.filter(Log.timestamp >= datetime.combine(start, time.min))
    if end:
        q = q.filter(Log.timestamp < datetime.combine(end + timedelta(days=1), time.min))

    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(Log.description.ilike(like), Log.action.ilike(like), Log.user_email.ilike(like)))

    total = q.count()
    items = (
        q.order_by(Log.timestamp.desc(), Log.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    total_pages = (total + limit - 1) // limit

    write_log(
        db, category="system", action="logs_viewed",
        description="Audit logs viewed", request=request,
        metadata={"page": page, "limit": limit, "total": total},
    )
    db.commit()

    return {
        "items": [i.to_dict() for i in items],
        "page": page,
        "size": limit,
        "total": total,
        "total_pages": total_pages,
        "has_next_page": page < total_pages,
        "has_prev_page": page > 1,
    }


# ===================== STATS =====================
@router.get("/stats", dependencies=[RequireSuperadmin])
def log_stats(db: Session = Depends(get_db)):
    by_level = dict(db.query(Log.level, func.count(Log.id)).group_by(Log.level).all())
    by_category = db.query(Log.category, func.count(Log.id)).group_by(Log.category).all()
    avg_ms = db.query(func.avg(Log.response_time)).filter(Log.response_time.isnot(None)).scalar()

    count = func.count(Log.id).label("n")
    top_actions = (
        db.query(Log.action, count)
        .group_by(Log.action)
        .order_by(count.desc())
        .limit(10)
        .all()
    )
    top_users = (
        db.query(Log.user_id, Log.user_email, count)
        .filter(Log.user_id.isnot(None))
        .group_by(Log.user_id, Log.user_email)
        .order_by(count.desc())
        .limit(10)
        .all()
    )

    return {
        "total": sum(by_level.values()),
        "by_level": {lv: int(by_level.get(lv, 0)) for lv in LOG_LEVELS},
        "avg_response_time": round(float(avg_ms), 2) if avg_ms is not None else None,
        "by_category": [{"category": c, "count": int(n)} for c, n in by_category],
        "top_actions": [{"action": a, "count": int(n)} for a, n in top_actions],
        "top_users": [{"user_id": u, "user_email": e, "count": int(n)} for u, e, n in top_users],
    }


# ===================== CLEAR =====================
@router.delete("/clear", dependencies=[RequireSuperadmin])
def clear_logs(request: Request, days: int = Query(30, ge=0), db: Session = Depends(get_db)):
    cutoff = utcnow() - timedelta(days=days)
    deleted = db.query(Log).filter(Log.timestamp < cutoff).delete(synchronize_session=False)
    write_log(
        db, category="system", level="warn", action="logs_cleared",
        description=f"Cleared {deleted} log entries older than {days} days",
        request=request, metadata={"days": days, "deleted": deleted},
    )
    db.commit()
    return {"message": f"Deleted {deleted} log entries", "deleted_count": deleted}


# ===================== DETAIL =====================
@router.get("/{log_id}", dependencies=[RequireSuperadmin])
def log_detail(log_id: int, db: Session = Depends(get_db)):
    row = db.get(Log, log_id)
    if not row:
        raise HTTPException(404, "Log entry not found")
    out = row.to_dict()
    out["signature_valid"] = verify_signature(row)
    return out
