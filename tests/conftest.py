# tests/conftest.py
import os
import random
import tempfile
from datetime import date

# settings are read at import time
os.environ["DB_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"
os.environ["UPLOAD_PATH"] = tempfile.mkdtemp(prefix="helpdesk-uploads-")

import pytest
from fastapi.testclient import TestClient

from app.core import ratelimit
from app.core.security import hash_password, create_access_token
from app.db.base import Base
from app.db.session import SessionLocal, engine
from app.main import app
from app.models import (
    User, Department, IssueCategory, Course, Batch, Module, MedicalSubmission,
)
from app.services.assignment import get_assignment_rng

PASSWORD = "Secret123!"
_PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    ratelimit.reset()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    s = SessionLocal()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def seeded_rng():
    rng = random.Random(1234)
    app.dependency_overrides[get_assignment_rng] = lambda: rng
    return rng


# ---------------- factories ----------------
@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make(role="student", name=None, email=None, is_admin=False, department=None, is_active=True):
        counter["n"] += 1
        n = counter["n"]
        u = User(
            name=name or f"{role.title()} {n}",
            email=email or f"{role}{n}@example.com",
            password_hash=_PASSWORD_HASH,
            role=role,
            is_admin=is_admin,
            department_id=department.id if department else None,
            is_active=is_active,
        )
        db.add(u)
        db.commit()
        db.refresh(u)
        return u

    return _make


@pytest.fixture
def make_department(db):
    def _make(name="Information Technology", assigned_party=None):
        d = Department(name=name, assigned_party_id=assigned_party.id if assigned_party else None)
        db.add(d)
        db.commit()
        db.refresh(d)
        return d

    return _make


@pytest.fixture
def make_category(db):
    def _make(name, slug, department=None, is_active=True, ordering=0):
        c = IssueCategory(
            name=name, slug=slug, is_active=is_active, ordering=ordering,
            department_id=department.id if department else None,
        )
        db.add(c)
        db.commit()
        db.refresh(c)
        return c

    return _make


@pytest.fixture
def academic(db, make_user):
    """A course directed by a party user, with one batch and one module."""
    director = make_user("party", name="Course Director")
    course = Course(name="Computer Science", code="CS", course_director_id=director.id)
    db.add(course)
    db.commit()
    batch = Batch(name="CS 2024", code="CS24", course_id=course.id, start_year=2024, end_year=2027)
    db.add(batch)
    db.commit()
    module = Module(name="Algorithms", code="ALG", batch_id=batch.id, course_id=course.id, credits=20)
    db.add(module)
    db.commit()
    return {"director": director, "course": course, "batch": batch, "module": module}


@pytest.fixture
def make_medical(db):
    counter = {"n": 0}

    def _make(student, status="pending", reference_id=None):
        counter["n"] += 1
        s = MedicalSubmission(
            reference_id=reference_id or f"MED{student.id:06d}{counter['n']:03d}",
            student_id=student.id,
            medical_condition="Flu",
            start_date=date(2025, 1, 10),
            end_date=date(2025, 1, 14),
            status=status,
        )
        db.add(s)
        db.commit()
        db.refresh(s)
        return s

    return _make


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


@pytest.fixture
def headers():
    return auth_headers


@pytest.fixture
def make_ticket(db, make_category):
    from app.models.ticket import Ticket

    state = {"n": 0, "category": None}

    def _make(submitted_by, assigned_to=None, status="Seen", department=None, category=None, **extra):
        state["n"] += 1
        if category is None:
            if state["category"] is None:
                state["category"] = make_category("General issues", "general-issues", department=department)
            category = state["category"]
        t = Ticket(
            ticket_number=f"20250101{state['n']:04d}",
            title="Wifi not working",
            description="The wifi in the library keeps dropping.",
            status=status,
            category_id=category.id,
            submitted_by_id=submitted_by.id,
            assigned_to_id=assigned_to.id if assigned_to else None,
            department_id=department.id if department else None,
            **extra,
        )
        db.add(t)
        db.commit()
        db.refresh(t)
        return t

    return _make
