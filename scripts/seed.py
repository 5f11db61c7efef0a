# scripts/seed.py
"""Idempotent demo data: departments, issue categories and one user per role."""
from app.core.security import hash_password
from app.db.session import SessionLocal, engine, init_db
from app.models.department import Department, IssueCategory
from app.models.user import User
from app.routers.categories import slugify

DEMO_PASSWORD = "Password123!"

DEPARTMENTS = [
    ("Information Technology", "IT support, LMS, email and network"),
    ("Facilities Management", "Buildings, rooms and services"),
    ("Academic Affairs", "Letters, certificates and general academic issues"),
    ("Examination Department", "Exams, resits and medical evidence"),
]

# (name, department name)
CATEGORIES = [
    ("Letter request", "Academic Affairs"),
    ("General issues", "Academic Affairs"),
    ("Exam issues", "Examination Department"),
    ("LMS issues", "Information Technology"),
    ("Quality of service", "Facilities Management"),
    ("Certificate collection", "Academic Affairs"),
    ("Email, wifi and 365 issues", "Information Technology"),
    ("Other", None),
]

# (name, email, role, is_admin, department name)
USERS = [
    ("Super Admin", "admin@example.com", "superadmin", False, None),
    ("John Student", "john@student.com", "student", False, None),
    ("Jane Student", "jane@student.com", "student", False, None),
    ("IT Support Team", "it@support.com", "party", False, "Information Technology"),
    ("Facilities Management", "facilities@example.com", "party", False, "Facilities Management"),
    ("Exam Officer", "exams@example.com", "party", False, "Examination Department"),
    ("General Admin", "general.admin@example.com", "party", True, None),
    ("IT Department Admin", "it.admin@example.com", "party", True, "Information Technology"),
]


def ensure_department(db, name, description):
    d = db.query(Department).filter(Department.name == name).first()
    if d:
        return d, f"KEPT department {name}"
    d = Department(name=name, description=description)
    db.add(d)
    db.flush()
    return d, f"CREATED department {name}"


def ensure_category(db, ordering, name, department):
    slug = slugify(name)
    c = db.query(IssueCategory).filter(IssueCategory.slug == slug).first()
    if c:
        return f"KEPT category {slug}"
    db.add(IssueCategory(
        name=name, slug=slug, ordering=ordering, is_active=True,
        department_id=department.id if department else None,
    ))
    return f"CREATED category {slug}"


def upsert_user(db, name, email, role, is_admin, department):
    u = db.query(User).filter(User.email == email).first()
    if u:
        u.role = role
        u.is_admin = is_admin
        u.department_id = department.id if department else None
        u.is_active = True
        return f"UPDATED {email}"
    db.add(User(
        name=name, email=email, password_hash=hash_password(DEMO_PASSWORD),
        role=role, is_admin=is_admin, is_active=True,
        department_id=department.id if department else None,
    ))
    return f"CREATED {email}"


def main():
    print("DB =", engine.url.render_as_string(hide_password=True))
    init_db()
    db = SessionLocal()
    try:
        depts = {}
        for name, desc in DEPARTMENTS:
            depts[name], msg = ensure_department(db, name, desc)
            print(msg)
        for i, (name, dept) in enumerate(CATEGORIES):
            print(ensure_category(db, i, name, depts.get(dept)))
        for name, email, role, is_admin, dept in USERS:
            print(upsert_user(db, name, email, role, is_admin, depts.get(dept)))
        db.commit()
        users = db.query(User).order_by(User.id).all()
        print("Users in DB:", [(x.id, x.email, x.role, x.is_admin) for x in users])
        print("Demo password:", DEMO_PASSWORD)
    finally:
        db.close()


if __name__ == "__main__":
    main()
