# tests/test_numbering.py
import random
from concurrent.futures import ThreadPoolExecutor
from datetime import date

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.models.ticket import Counter
from app.services.numbering import next_ticket_number, next_sequence, generate_reference_id


def test_ticket_numbers_increase_within_a_day(db):
    day = date(2025, 3, 7)
    numbers = [next_ticket_number(db, day) for _ in range(12)]
    db.commit()

    assert numbers[0] == "202503070001"
    assert numbers[-1] == "202503070012"
    assert len(set(numbers)) == len(numbers)
    assert numbers == sorted(numbers)
    assert db.get(Counter, "tickets:20250307").seq == 12


def test_concurrent_creators_get_distinct_numbers(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'numbers.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Counter.__table__.create(bind=engine)
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    day = date(2025, 3, 7)

    def _worker(_):
        s = Session()
        try:
            minted = []
            for _ in range(10):
                minted.append(next_ticket_number(s, day))
                s.commit()
            return minted
        finally:
            s.close()

    with ThreadPoolExecutor(max_workers=8) as pool:
        per_thread = list(pool.map(_worker, range(8)))
    engine.dispose()

    numbers = [n for minted in per_thread for n in minted]
    assert len(set(numbers)) == 80
    assert sorted(numbers) == [f"20250307{i:04d}" for i in range(1, 81)]
    # each creator sees its own numbers strictly increasing
    assert all(minted == sorted(minted) for minted in per_thread)

def test_each_day_has_its_own_sequence(db):
    assert next_ticket_number(db, date(2025, 3, 7)) == "202503070001"
    assert next_ticket_number(db, date(2025, 3, 8)) == "202503080001"
    assert next_ticket_number(db, date(2025, 3, 7)) == "202503070002"


def test_sequence_survives_new_sessions(db):
    from app.db.session import SessionLocal

    assert next_sequence(db, "demo") == 1
    db.commit()
    other = SessionLocal()
    try:
        assert next_sequence(other, "demo") == 2
        other.commit()
    finally:
        other.close()


def test_reference_id_format_and_retry(db, make_user, make_medical, monkeypatch):
    student = make_user("student")
    taken = make_medical(student, reference_id="MED123456001")

    # first candidate collides, second is free
    candidates = iter(["MED123456001", "MED123456002"])
    monkeypatch.setattr("app.services.numbering._candidate_reference", lambda rng: next(candidates))
    assert generate_reference_id(db) == "MED123456002"
    assert taken.reference_id == "MED123456001"


def test_reference_id_shape(db):
    ref = generate_reference_id(db, rng=random.Random(7))
    assert ref.startswith("MED")
    assert len(ref) == 12
    assert ref[3:].isdigit()
