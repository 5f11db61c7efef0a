# tests/test_academic.py
import pytest
from fastapi import HTTPException

from app.models.academic import Course
from app.routers.courses import DUPLICATE_CODE, UNIQUE_MESSAGES
from app.services.integrity import commit_unique


def test_course_delete_blocked_by_batches(client, headers, make_user):
    admin = make_user("superadmin")
    director = make_user("party")
    h = headers(admin)

    course = client.post("/api/courses", headers=h, json={
        "name": "Business", "code": "BUS", "course_director_id": director.id,
    }).json()
    batch_ids = []
    for code in ("B24", "B25"):
        r = client.post("/api/batches", headers=h, json={
            "name": f"Business {code}", "code": code, "course_id": course["id"],
            "start_year": 2024, "end_year": 2027,
        })
        assert r.status_code == 201, r.text
        batch_ids.append(r.json()["id"])

    r = client.delete(f"/api/courses/{course['id']}", headers=h)
    assert r.status_code == 400
    assert r.json()["detail"] == (
        "Cannot delete course. It has 2 batch(es) assigned to it. Please delete all batches first."
    )

    for bid in batch_ids:
        assert client.delete(f"/api/batches/{bid}", headers=h).status_code == 200
    r = client.delete(f"/api/courses/{course['id']}", headers=h)
    assert r.status_code == 200
    assert client.get(f"/api/courses/{course['id']}", headers=h).status_code == 404


def test_batch_delete_blocked_by_modules(client, headers, academic, make_user):
    h = headers(make_user("superadmin"))
    r = client.delete(f"/api/batches/{academic['batch'].id}", headers=h)
    assert r.status_code == 400
    assert "1 module(s)" in r.json()["detail"]


def test_module_delete_blocked_by_resit_forms(client, headers, academic, make_user):
    student = make_user("student")
    client.post("/api/resit-forms", headers=headers(student), json={
        "course_id": academic["course"].id, "batch_id": academic["batch"].id,
        "module_id": academic["module"].id, "exam_type": "Coursework",
        "past_exam_dates": ["2025-02-01"], "phone_number": "0700000000",
    })
    r = client.delete(f"/api/modules/{academic['module'].id}", headers=headers(make_user("superadmin")))
    assert r.status_code == 400
    assert r.json()["detail"] == (
        "Cannot delete module. It has 1 resit form(s) assigned to it. Please delete all resit forms first."
    )


def test_available_courses_for_any_signed_in_user(client, headers, academic, make_user):
    for role in ("student", "party"):
        r = client.get("/api/courses/available", headers=headers(make_user(role)))
        assert r.status_code == 200
        assert [c["code"] for c in r.json()] == ["CS"]
    assert client.get("/api/courses/available").status_code == 401


def test_storage_conflict_names_the_right_column(db, academic):
    # same name, fresh code: only the name constraint can fire
    db.add(Course(name="Computer Science", code="CS2", course_director_id=academic["director"].id))
    with pytest.raises(HTTPException) as exc:
        commit_unique(db, DUPLICATE_CODE, UNIQUE_MESSAGES)
    assert exc.value.detail == "Course name already exists"

    db.add(Course(name="Data Science", code="CS", course_director_id=academic["director"].id))
    with pytest.raises(HTTPException) as exc:
        commit_unique(db, DUPLICATE_CODE, UNIQUE_MESSAGES)
    assert exc.value.detail == "Course code already exists"


def test_duplicate_codes(client, headers, academic, make_user):
    h = headers(make_user("superadmin"))
    r = client.post("/api/courses", headers=h, json={
        "name": "Another", "code": "CS", "course_director_id": academic["director"].id,
    })
    assert r.status_code == 400
    assert r.json()["detail"] == "Course code already exists"

    r = client.post("/api/batches", headers=h, json={
        "name": "Dup", "code": "CS24", "course_id": academic["course"].id,
        "start_year": 2024, "end_year": 2025,
    })
    assert r.status_code == 400
    assert r.json()["detail"] == "Batch code already exists for this course"

    r = client.post("/api/modules", headers=h, json={
        "name": "Dup", "code": "ALG", "batch_id": academic["batch"].id,
    })
    assert r.status_code == 400
    assert r.json()["detail"] == "Module code already exists for this batch"


def test_module_takes_course_from_batch(client, headers, academic, make_user):
    h = headers(make_user("superadmin"))
    r = client.post("/api/modules", headers=h, json={
        "name": "Compilers", "code": "CMP", "batch_id": academic["batch"].id, "credits": 15,
    })
    assert r.status_code == 201
    assert r.json()["course"]["id"] == academic["course"].id


def test_batch_years(client, headers, academic, make_user):
    h = headers(make_user("superadmin"))
    r = client.post("/api/batches", headers=h, json={
        "name": "Backwards", "code": "BK", "course_id": academic["course"].id,
        "start_year": 2026, "end_year": 2024,
    })
    assert r.status_code == 400


def test_director_lists(client, headers, academic, make_user):
    h = headers(academic["director"])
    assert [c["code"] for c in client.get("/api/courses/my-courses", headers=h).json()] == ["CS"]
    assert [b["code"] for b in client.get("/api/batches/my-batches", headers=h).json()] == ["CS24"]
    assert [m["code"] for m in client.get("/api/modules/my-modules", headers=h).json()] == ["ALG"]

    outsider = headers(make_user("party"))
    assert client.get("/api/modules/my-modules", headers=outsider).json() == []


def test_department_and_category_guards(client, headers, make_user, make_department, make_category,
                                        make_ticket):
    h = headers(make_user("superadmin"))
    dept = make_department("Academic Affairs")
    cat = make_category("Letter request", "letter-request", department=dept)

    r = client.delete(f"/api/departments/{dept.id}", headers=h)
    assert r.status_code == 400
    assert "1 category(ies)" in r.json()["detail"]

    make_ticket(make_user("student"), department=dept, category=cat)
    r = client.delete(f"/api/categories/{cat.id}", headers=h)
    assert r.status_code == 400
    assert r.json()["detail"] == (
        "Cannot delete category. It has 1 ticket(s) assigned to it. Please delete all tickets first."
    )


def test_category_slug_and_department_rule(client, headers, make_user, make_department):
    h = headers(make_user("superadmin"))
    dept = make_department("Information Technology")

    r = client.post("/api/categories", headers=h, json={"name": "Email, Wifi & 365!", "department_id": dept.id})
    assert r.status_code == 201
    assert r.json()["slug"] == "email-wifi-365"

    r = client.post("/api/categories", headers=h, json={"name": "Printing"})
    assert r.status_code == 400

    r = client.post("/api/categories", headers=h, json={"name": "Other"})
    assert r.status_code == 201
    assert r.json()["slug"] == "other"

    public = client.get("/api/categories").json()
    assert {c["slug"] for c in public} == {"email-wifi-365", "other"}
