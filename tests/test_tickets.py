# tests/test_tickets.py
import pytest

from app.models.ticket import Ticket

BODY = {"title": "Broken chair", "description": "Chair in lecture hall B is broken."}


@pytest.fixture
def setup(make_user, make_department, make_category):
    it = make_department("Information Technology")
    facilities = make_department("Facilities Management")
    return {
        "it": it,
        "facilities": facilities,
        "other": make_category("Other", "other"),
        "lms": make_category("LMS issues", "lms-issues", department=it),
        "student": make_user("student"),
        "it_party": make_user("party", department=it),
        "fac_party": make_user("party", department=facilities),
        "admin": make_user("party", is_admin=True, name="General Admin"),
        "superadmin": make_user("superadmin"),
    }


# ---------------- create ----------------
def test_other_category_with_explicit_party(client, headers, setup):
    s = setup
    r = client.post("/api/tickets", headers=headers(s["student"]), json={
        **BODY, "category_id": s["other"].id,
        "department_id": s["facilities"].id, "assigned_to_id": s["fac_party"].id,
    })
    assert r.status_code == 201, r.text
    data = r.json()
    assert data["assigned_to"]["id"] == s["fac_party"].id
    assert data["status"] == "Seen"
    assert data["department"]["id"] == s["facilities"].id
    assert len(data["ticket_number"]) == 12


def test_other_category_party_from_another_department(client, headers, setup):
    s = setup
    r = client.post("/api/tickets", headers=headers(s["student"]), json={
        **BODY, "category_id": s["other"].id,
        "department_id": s["facilities"].id, "assigned_to_id": s["it_party"].id,
    })
    assert r.status_code == 400
    assert r.json()["detail"] == "Selected party does not belong to the chosen department"


def test_other_category_requires_department(client, headers, setup):
    r = client.post("/api/tickets", headers=headers(setup["student"]),
                    json={**BODY, "category_id": setup["other"].id})
    assert r.status_code == 400
    assert r.json()["detail"] == "Department is required for Other category"


@pytest.mark.parametrize("body, message", [
    ({"title": "Broken chair"}, "Title, description, and category are required"),
    ({**BODY, "category_id": 999}, "Invalid or inactive category"),
    ({**BODY, "title": "Hey", "category_id": 1}, "Title must be between 5 and 200 characters"),
])
def test_create_validation(client, headers, setup, body, message):
    r = client.post("/api/tickets", headers=headers(setup["student"]), json=body)
    assert r.status_code == 400
    assert r.json()["detail"] == message


def test_only_students_create_tickets(client, headers, setup):
    r = client.post("/api/tickets", headers=headers(setup["it_party"]),
                    json={**BODY, "category_id": setup["lms"].id})
    assert r.status_code == 403


# ---------------- status ----------------
def test_non_assignee_cannot_update_status(client, db, headers, setup, make_ticket):
    s = setup
    t = make_ticket(s["student"], assigned_to=s["it_party"], department=s["it"])

    r = client.patch(f"/api/tickets/{t.id}/status", headers=headers(s["fac_party"]),
                     json={"status": "Resolved", "resolution": "Fixed it"})
    assert r.status_code == 403

    db.expire_all()
    same = db.get(Ticket, t.id)
    assert same.status == "Seen"
    assert same.resolution is None
    assert same.resolved_at is None


def test_resolved_stamp_is_set_once(client, db, headers, setup, make_ticket):
    s = setup
    t = make_ticket(s["student"], assigned_to=s["it_party"], department=s["it"])
    h = headers(s["it_party"])

    r = client.patch(f"/api/tickets/{t.id}/status", headers=h,
                     json={"status": "Resolved", "resolution": "Router restarted"})
    assert r.status_code == 200
    first = r.json()["resolved_at"]
    assert first

    r = client.patch(f"/api/tickets/{t.id}/status", headers=h,
                     json={"status": "Resolved", "resolution": "Router replaced"})
    assert r.status_code == 200
    assert r.json()["resolved_at"] == first
    assert r.json()["resolution"] == "Router replaced"

    # reopening keeps the first resolution stamp
    r = client.patch(f"/api/tickets/{t.id}/status", headers=h, json={"status": "In Progress"})
    assert r.status_code == 200
    assert r.json()["status"] == "In Progress"
    assert r.json()["resolved_at"] == first

    r = client.patch(f"/api/tickets/{t.id}/status", headers=h, json={"status": "Resolved"})
    assert r.status_code == 200
    assert r.json()["resolved_at"] == first


def test_status_must_be_a_working_status(client, headers, setup, make_ticket):
    t = make_ticket(setup["student"], assigned_to=setup["it_party"])
    r = client.patch(f"/api/tickets/{t.id}/status", headers=headers(setup["it_party"]),
                     json={"status": "Issued"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid status"


# ---------------- reassign ----------------
def test_reassign_keeps_in_progress(client, headers, setup, make_ticket):
    s = setup
    t = make_ticket(s["student"], assigned_to=s["it_party"], status="In Progress")
    r = client.patch(f"/api/tickets/{t.id}/reassign", headers=headers(s["it_party"]),
                     json={"assigned_to_id": s["fac_party"].id})
    assert r.status_code == 200
    assert r.json()["assigned_to"]["id"] == s["fac_party"].id
    assert r.json()["status"] == "In Progress"


def test_reassign_resets_to_seen(client, headers, setup, make_ticket):
    s = setup
    t = make_ticket(s["student"], assigned_to=s["it_party"], status="Issued")
    r = client.patch(f"/api/tickets/{t.id}/reassign", headers=headers(s["it_party"]),
                     json={"assigned_to_id": s["fac_party"].id})
    assert r.json()["status"] == "Seen"


@pytest.mark.parametrize("status", ["Resolved", "Denounced"])
def test_closed_ticket_cannot_be_reassigned(client, headers, setup, make_ticket, status):
    s = setup
    t = make_ticket(s["student"], assigned_to=s["it_party"], status=status)
    r = client.patch(f"/api/tickets/{t.id}/reassign", headers=headers(s["it_party"]),
                     json={"assigned_to_id": s["fac_party"].id})
    assert r.status_code == 400
    assert r.json()["detail"] == "Cannot reassign a resolved or denounced ticket"


# ---------------- approval ----------------
def _request(client, headers, ticket, requester, admin, notes="Refund over the limit"):
    return client.post(f"/api/tickets/{ticket.id}/approval/request", headers=headers(requester),
                       json={"admin_id": admin.id, "notes": notes})


@pytest.mark.parametrize("status", ["Resolved", "Denounced"])
def test_approval_blocked_on_closed_ticket(client, db, headers, setup, make_ticket, status):
    s = setup
    t = make_ticket(s["student"], assigned_to=s["it_party"], status=status)
    r = _request(client, headers, t, s["it_party"], s["admin"])
    assert r.status_code == 400
    assert r.json()["detail"] == "Cannot request approval for a resolved or denounced ticket"
    db.expire_all()
    assert db.get(Ticket, t.id).approval_status == "none"


def test_approval_notes_are_optional(client, headers, setup, make_ticket):
    s = setup
    t = make_ticket(s["student"], assigned_to=s["it_party"])
    r = client.post(f"/api/tickets/{t.id}/approval/request", headers=headers(s["it_party"]),
                    json={"admin_id": s["admin"].id})
    assert r.status_code == 200, r.text
    assert r.json()["approval"]["status"] == "pending"
    assert r.json()["approval"]["notes"] is None

    other = make_ticket(s["student"], assigned_to=s["it_party"])
    r = _request(client, headers, other, s["it_party"], s["admin"], notes="ok")
    assert r.status_code == 400
    assert r.json()["detail"] == "Notes must be between 5 and 500 characters"


def test_approval_target_must_be_admin_party(client, headers, setup, make_ticket):
    s = setup
    t = make_ticket(s["student"], assigned_to=s["it_party"])
    r = _request(client, headers, t, s["it_party"], s["fac_party"])
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid admin ID"


def test_approval_cycle(client, headers, setup, make_ticket, make_user):
    s = setup
    t = make_ticket(s["student"], assigned_to=s["it_party"])

    r = _request(client, headers, t, s["it_party"], s["admin"])
    assert r.status_code == 200
    assert r.json()["approval"]["status"] == "pending"
    assert r.json()["approval"]["requested_by"]["id"] == s["it_party"].id

    # a second request while pending is refused
    assert _request(client, headers, t, s["it_party"], s["admin"]).status_code == 400

    # only the named admin reviews
    other_admin = make_user("party", is_admin=True)
    r = client.post(f"/api/tickets/{t.id}/approval/approve", headers=headers(other_admin), json={})
    assert r.status_code == 403
    assert r.json()["detail"] == "Not authorized or no pending approval for this ticket"

    r = client.post(f"/api/tickets/{t.id}/approval/approve", headers=headers(s["admin"]),
                    json={"notes": "Go ahead"})
    assert r.status_code == 200
    approval = r.json()["approval"]
    assert approval["status"] == "approved"
    assert approval["reviewed_by"]["id"] == s["admin"].id
    assert approval["notes"] == "Go ahead"

    pending = client.get("/api/tickets/approvals/pending", headers=headers(s["admin"])).json()
    assert pending == []
    history = client.get("/api/tickets/approvals/history", headers=headers(s["admin"])).json()
    assert [h["id"] for h in history] == [t.id]

    # a decided approval can start a fresh cycle
    r = _request(client, headers, t, s["it_party"], other_admin, notes="Second opinion please")
    assert r.status_code == 200
    approval = r.json()["approval"]
    assert approval["status"] == "pending"
    assert approval["admin"]["id"] == other_admin.id
    assert approval["reviewed_by"] is None


def test_review_notes_length(client, headers, setup, make_ticket):
    s = setup
    t = make_ticket(s["student"], assigned_to=s["it_party"])
    _request(client, headers, t, s["it_party"], s["admin"])
    r = client.post(f"/api/tickets/{t.id}/approval/reject", headers=headers(s["admin"]),
                    json={"notes": "no"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Notes must be between 5 and 500 characters"


# ---------------- messages / access ----------------
def test_message_thread_access(client, headers, setup, make_ticket):
    s = setup
    t = make_ticket(s["student"], assigned_to=s["it_party"])

    for who in ("student", "it_party", "superadmin"):
        r = client.post(f"/api/tickets/{t.id}/messages", headers=headers(s[who]),
                        json={"message": f"hello from {who}"})
        assert r.status_code == 200, who
    assert len(r.json()["messages"]) == 3

    r = client.post(f"/api/tickets/{t.id}/messages", headers=headers(s["fac_party"]),
                    json={"message": "not mine"})
    assert r.status_code == 403


def test_my_tickets_by_role(client, headers, setup, make_ticket):
    s = setup
    mine = make_ticket(s["student"], assigned_to=s["it_party"])
    make_ticket(s["student"], assigned_to=s["fac_party"])

    student_view = client.get("/api/tickets/my-tickets", headers=headers(s["student"])).json()
    party_view = client.get("/api/tickets/my-tickets", headers=headers(s["it_party"])).json()
    assert len(student_view) == 2
    assert [t["id"] for t in party_view] == [mine.id]


def test_superadmin_assign_and_priority(client, headers, setup, make_ticket):
    s = setup
    t = make_ticket(s["student"], status="Issued")
    h = headers(s["superadmin"])

    r = client.patch(f"/api/tickets/{t.id}/assign", headers=h, json={"assigned_to_id": s["it_party"].id})
    assert r.status_code == 200
    assert r.json()["status"] == "Seen"

    r = client.patch(f"/api/tickets/{t.id}/priority", headers=h, json={"priority": "Urgent"})
    assert r.status_code == 400
    r = client.patch(f"/api/tickets/{t.id}/priority", headers=h, json={"priority": "Critical"})
    assert r.json()["priority"] == "Critical"

    listed = client.get("/api/tickets", headers=h, params={"priority": "Critical"}).json()
    assert [x["id"] for x in listed] == [t.id]
