# ================================
# file: app/utils/datetime.py
# ================================
from datetime import datetime, timezone, date
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def day_key(d: Optional[date] = None) -> str:
    return (d or utcnow().date()).strftime("%Y%m%d")


def iso(v) -> Optional[str]:
    return v.isoformat() if v else None


def parse_date(raw) -> Optional[date]:
    """Accept YYYY-MM-DD (or a full ISO timestamp) and dd/MM/YYYY. None when unparseable."""
    if raw in (None, ""):
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    s = str(raw).strip()
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(s, "%d/%m/%Y").date()
    except ValueError:
        return None
