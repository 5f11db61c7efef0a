# ================================
# app/services/export_service.py
# ================================
from __future__ import annotations
import csv
from io import BytesIO, StringIO
from datetime import datetime
from typing import List, Any

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font

from ..models import Ticket

HEADERS = [
    "Ticket Number", "Title", "Status", "Priority", "Category", "Department",
    "Submitted By", "Assigned To", "Approval", "Created At", "Resolved At",
]


# ---------- Helper ----------
def _name(obj) -> str:
    if obj is None:
        return ""
    return getattr(obj, "name", "") or ""


def ticket_row(t: Ticket) -> List[Any]:
    return [
        t.ticket_number,
        t.title or "",
        t.status or "",
        t.priority or "",
        _name(t.category),
        _name(t.department),
        t.submitted_by.email if t.submitted_by else "",
        t.assigned_to.email if t.assigned_to else "",
        t.approval_status or "none",
        t.created_at,
        t.resolved_at,
    ]


def _autosize(ws):
    ws.freeze_panes = "A2"
    for col in ws.columns:
        w = max(10, *(len(str(c.value)) if c.value else 0 for c in col)) + 2
        ws.column_dimensions[col[0].column_letter].width = min(w, 50)


# ---------- Export: CSV ----------
def build_tickets_csv(tickets: List[Ticket]) -> str:
    out = StringIO()
    w = csv.writer(out)
    w.writerow(HEADERS)
    for t in tickets:
        w.writerow(["" if v is None else (v.isoformat() if isinstance(v, datetime) else v) for v in ticket_row(t)])
    return out.getvalue()


# ---------- Export: XLSX ----------
def build_tickets_xlsx(tickets: List[Ticket]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Tickets"
    ws.append(HEADERS)
    for c in ws[1]:
        c.font = Font(bold=True)

    for t in tickets:
        ws.append(ticket_row(t))

    # 10: Created At, 11: Resolved At
    for col in (10, 11):
        for cells in ws.iter_cols(min_col=col, max_col=col, min_row=2):
            for c in cells:
                if isinstance(c.value, datetime):
                    c.number_format = "yyyy-mm-dd hh:mm"
                    c.alignment = Alignment(horizontal="center")

    _autosize(ws)
    out = BytesIO()
    wb.save(out)
    out.seek(0)
    return out.getvalue()
