# tests/test_analytics.py
from io import BytesIO

from openpyxl import load_workbook

from app.services.export_service import HEADERS


def _tickets(make_user, make_department, make_ticket):
    dept = make_department("Information Technology")
    student = make_user("student")
    party = make_user("party", department=dept)
    make_ticket(student, assigned_to=party, department=dept)
    make_ticket(student, assigned_to=party, department=dept, status="Resolved")
    make_ticket(student, status="Issued")
    return student, party


def test_dashboard_counts(client, headers, make_user, make_department, make_ticket):
    _tickets(make_user, make_department, make_ticket)
    r = client.get("/api/analytics/dashboard", headers=headers(make_user("superadmin")))
    assert r.status_code == 200
    data = r.json()
    assert data["total"] == 3
    assert data["open"] == 2
    assert data["resolved"] == 1
    assert data["by_status"]["Issued"] == 1
    assert data["by_department"] == [{"department": "Information Technology", "count": 2}]
    assert data["users_by_role"]["student"] == 1
    assert len(data["recent_tickets"]) == 3


def test_student_and_party_dashboards(client, headers, make_user, make_department, make_ticket):
    student, party = _tickets(make_user, make_department, make_ticket)

    mine = client.get("/api/analytics/student-dashboard", headers=headers(student)).json()
    assert mine["total"] == 3

    assigned = client.get("/api/analytics/party-dashboard", headers=headers(party)).json()
    assert assigned["total"] == 2
    assert assigned["resolved"] == 1
    assert assigned["pending_approvals"] == 0

    assert client.get("/api/analytics/party-dashboard", headers=headers(student)).status_code == 403


def test_export_csv(client, headers, make_user, make_department, make_ticket):
    _tickets(make_user, make_department, make_ticket)
    r = client.get("/api/analytics/export/tickets", headers=headers(make_user("superadmin")))
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    assert "attachment" in r.headers["content-disposition"]
    lines = r.text.strip().splitlines()
    assert lines[0].split(",") == HEADERS
    assert len(lines) == 4


def test_export_xlsx(client, headers, make_user, make_department, make_ticket):
    _tickets(make_user, make_department, make_ticket)
    r = client.get("/api/analytics/export/tickets", headers=headers(make_user("superadmin")),
                   params={"format": "xlsx"})
    assert r.status_code == 200
    ws = load_workbook(BytesIO(r.content)).active
    assert [c.value for c in ws[1]] == HEADERS
    assert ws.max_row == 4


def test_export_json_and_bad_format(client, headers, make_user, make_department, make_ticket):
    _tickets(make_user, make_department, make_ticket)
    h = headers(make_user("superadmin"))
    r = client.get("/api/analytics/export/tickets", headers=h, params={"format": "json"})
    assert len(r.json()) == 3
    r = client.get("/api/analytics/export/tickets", headers=h, params={"format": "pdf"})
    assert r.status_code == 400
