# tests/test_medical.py
import os

import pytest

from app.models.medical import MedicalSubmission

FORM = {"medical_condition": "Influenza", "start_date": "2025-02-01", "end_date": "2025-02-05"}
PDF = ("doctor-note.pdf", b"%PDF-1.4 medical certificate", "application/pdf")


@pytest.fixture
def exam_officer(make_user, make_department):
    return make_user("party", department=make_department("Examination Department"))


def _submit(client, headers, student, files=None, **overrides):
    return client.post("/api/medical-submissions", headers=headers(student),
                       data={**FORM, **overrides}, files=files)


def test_submit_with_document(client, headers, make_user):
    student = make_user("student")
    r = _submit(client, headers, student, files=[("documents", PDF)])
    assert r.status_code == 201, r.text
    sub = r.json()["submission"]
    assert sub["status"] == "pending"
    assert sub["reference_id"].startswith("MED") and len(sub["reference_id"]) == 12
    assert len(sub["documents"]) == 1
    doc = sub["documents"][0]
    assert doc["original_name"] == "doctor-note.pdf"
    assert doc["filename"].startswith("documents-") and doc["filename"].endswith(".pdf")
    assert os.path.isfile(doc["path"])


def test_submit_without_documents(client, headers, make_user):
    r = _submit(client, headers, make_user("student"))
    assert r.status_code == 201
    assert r.json()["submission"]["documents"] == []


def test_refused_file_type_leaves_nothing_behind(client, db, headers, make_user):
    student = make_user("student")
    r = _submit(client, headers, student,
                files=[("documents", PDF), ("documents", ("run.exe", b"MZ", "application/octet-stream"))])
    assert r.status_code == 400
    assert r.json()["detail"].startswith("File type not allowed")
    assert db.query(MedicalSubmission).count() == 0


@pytest.mark.parametrize("overrides, message", [
    ({"medical_condition": ""}, "Medical condition, start date, and end date are required"),
    ({"start_date": "yesterday"}, "Invalid date format"),
    ({"start_date": "2025-02-10"}, "Start date must be before or equal to end date"),
])
def test_submit_validation(client, headers, make_user, overrides, message):
    r = _submit(client, headers, make_user("student"), **overrides)
    assert r.status_code == 400
    assert r.json()["detail"] == message


def test_review_requires_exam_department(client, headers, make_user, make_department, make_medical):
    sub = make_medical(make_user("student"))
    it_party = make_user("party", department=make_department("Information Technology"))
    r = client.get("/api/medical-submissions/pending", headers=headers(it_party))
    assert r.status_code == 403
    assert r.json()["detail"] == "Access denied. Only Examination Department users can access this."
    r = client.post(f"/api/medical-submissions/{sub.id}/approve", headers=headers(it_party), json={})
    assert r.status_code == 403


def test_approve_and_reject_flow(client, headers, make_user, make_medical, exam_officer):
    student = make_user("student")
    first = make_medical(student)
    second = make_medical(student)
    h = headers(exam_officer)

    r = client.post(f"/api/medical-submissions/{first.id}/approve", headers=h, json={})
    assert r.status_code == 200
    approved = r.json()["submission"]
    assert approved["status"] == "approved"
    assert approved["review_notes"] == "Approved by examination department"
    assert approved["reviewed_by"]["id"] == exam_officer.id

    r = client.post(f"/api/medical-submissions/{first.id}/approve", headers=h, json={})
    assert r.status_code == 400
    assert r.json()["detail"] == "Can only approve pending submissions"

    r = client.post(f"/api/medical-submissions/{second.id}/reject", headers=h, json={})
    assert r.status_code == 400
    assert r.json()["detail"] == "Review notes are required for rejection"

    r = client.post(f"/api/medical-submissions/{second.id}/reject", headers=h,
                    json={"review_notes": "Certificate is not signed"})
    assert r.status_code == 200
    assert r.json()["submission"]["status"] == "rejected"

    stats = client.get("/api/medical-submissions/stats/overview", headers=h).json()
    assert stats == {"pending": 0, "approved": 1, "rejected": 1, "total": 2}
    assert [s["id"] for s in client.get("/api/medical-submissions/approved", headers=h).json()] == [first.id]


def test_examination_alias_route(client, headers, make_user, make_medical, exam_officer):
    make_medical(make_user("student"))
    r = client.get("/api/examination/medical-submissions/pending", headers=headers(exam_officer))
    assert r.status_code == 200
    assert len(r.json()) == 1


def test_student_sees_only_own(client, headers, make_user, make_medical):
    a = make_user("student")
    b = make_user("student")
    sub = make_medical(a)
    assert [s["id"] for s in client.get("/api/medical-submissions/my-submissions", headers=headers(a)).json()] \
        == [sub.id]
    assert client.get("/api/medical-submissions/my-submissions", headers=headers(b)).json() == []
    assert client.get(f"/api/medical-submissions/{sub.id}", headers=headers(b)).status_code == 403
    assert client.get(f"/api/medical-submissions/{sub.id}", headers=headers(a)).status_code == 200


def test_download_permissions(client, headers, make_user, exam_officer):
    owner = make_user("student")
    other = make_user("student")
    r = _submit(client, headers, owner, files=[("documents", PDF)])
    doc = r.json()["submission"]["documents"][0]
    url = f"/api/medical-submissions/download/{doc['filename']}"

    r = client.get(url, headers=headers(owner))
    assert r.status_code == 200
    assert r.content == PDF[1]

    assert client.get(url, headers=headers(other)).status_code == 403
    assert client.get(url, headers=headers(exam_officer)).status_code == 200

    r = client.get("/api/medical-submissions/download/documents-0-0.pdf", headers=headers(owner))
    assert r.status_code == 404

    os.remove(doc["path"])
    r = client.get(url, headers=headers(owner))
    assert r.status_code == 404
    assert r.json()["detail"] == "File not found"
