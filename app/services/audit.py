# app/services/audit.py
from __future__ import annotations

import json
import hmac
import hashlib
import logging
from typing import Optional, Any, Dict

from fastapi import Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.audit import Log, LOG_LEVELS, LOG_CATEGORIES
from app.utils.datetime import utcnow

log = logging.getLogger("audit")

_PY_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

# request bodies are truncated before storage
MAX_BODY_CHARS = 4000
_SECRET_KEYS = {"password", "current_password", "new_password", "token"}


def _norm_json(val: Any) -> Dict[str, Any]:
    """
    Normalize metadata into a dict for the JSON column.
    - None -> {}
    - dict -> as is
    - JSON string -> parsed
    - anything else -> {"_raw": ...}
    """
    if val is None:
        return {}
    if isinstance(val, dict):
        return val
    if isinstance(val, str):
        try:
            parsed = json.loads(val)
            return parsed if isinstance(parsed, dict) else {"_raw": parsed}
        except ValueError:
            return {"_raw": val}
    return {"_raw": val}


def _redact(body: Any) -> Any:
    if isinstance(body, dict):
        return {k: ("***" if k in _SECRET_KEYS else _redact(v)) for k, v in body.items()}
    if isinstance(body, list):
        return [_redact(v) for v in body]
    return body


def _dump_body(body: Any) -> Optional[str]:
    if body in (None, "", {}, []):
        return None
    raw = json.dumps(_redact(body), ensure_ascii=False, default=str)
    return raw[:MAX_BODY_CHARS]


def _actor(user: Any) -> Dict[str, Any]:
    """Plain snapshot of the acting user (ORM object or dict)."""
    if user is None:
        return {}
    if isinstance(user, dict):
        return user
    return {"id": getattr(user, "id", None), "role": getattr(user, "role", None), "email": getattr(user, "email", None)}


def _signing_payload(row: Log) -> str:
    payload = {
        "timestamp": row.timestamp.isoformat(timespec="seconds") if row.timestamp else "",
        "level": row.level or "",
        "category": row.category or "",
        "action": row.action or "",
        "description": row.description or "",
        "user_id": row.user_id,
        "correlation_id": row.correlation_id or "",
        "response_status": row.response_status,
        "metadata": row.meta or {},
    }
    return json.dumps(payload, sort_keys=True, ensure_ascii=False, separators=(",", ":"), default=str)


def sign_row(row: Log) -> str:
    """HMAC-SHA256 over the normalized audit payload."""
    raw = _signing_payload(row)
    return hmac.new(settings.AUDIT_HMAC_SECRET.encode("utf-8"), raw.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_signature(row: Log) -> bool:
    return hmac.compare_digest(row.signature or "", sign_row(row))


def write_log(
    db: Session,
    *,
    action: str,
    category: str = "system",
    level: str = "info",
    description: Optional[str] = None,
    user: Any = None,
    request: Optional[Request] = None,
    request_body: Any = None,
    response_status: Optional[int] = None,
    response_time: Optional[float] = None,
    error: Optional[BaseException] = None,
    error_stack: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    user_email: Optional[str] = None,
) -> Log:
    """
    Add one audit row. Does not commit (the caller decides).
    The actor is ``user`` when given, else the actor snapshot the auth gate stored on the request.
    """
    if level not in LOG_LEVELS:
        level = "info"
    if category not in LOG_CATEGORIES:
        category = "system"

    if user is None and request is not None:
        user = getattr(request.state, "actor", None)
    actor = _actor(user)

    headers = request.headers if request is not None else {}
    row = Log(
        timestamp=utcnow(),
        level=level,
        category=category,
        action=action,
        description=description,
        user_id=actor.get("id"),
        user_role=actor.get("role"),
        user_email=actor.get("email") or user_email,
        ip_address=request.client.host if (request is not None and request.client) else None,
        user_agent=(headers.get("user-agent") or None) if request is not None else None,
        request_method=request.method if request is not None else None,
        request_url=str(request.url.path) if request is not None else None,
        request_body=_dump_body(request_body),
        response_status=response_status,
        response_time=response_time,
        correlation_id=getattr(request.state, "correlation_id", None) if request is not None else None,
        error_message=str(error) if error is not None else None,
        error_stack=error_stack,
        meta=_norm_json(metadata),
    )
    row.signature = sign_row(row)
    db.add(row)

    log.log(_PY_LEVELS[level], "[%s] %s: %s", category, action, description or "")
    return row
