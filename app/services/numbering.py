# app/services/numbering.py
"""
Daily ticket numbers and medical reference ids.

Ticket numbers come from a single atomic upsert on ``counters`` so concurrent
creators never read the same value. The counter row stays locked until the
surrounding transaction commits.
"""
from __future__ import annotations

import random
import time
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models.medical import MedicalSubmission
from app.models.ticket import Counter
from app.utils.datetime import day_key

TICKET_COUNTER_PREFIX = "tickets"
REFERENCE_PREFIX = "MED"
MAX_REFERENCE_ATTEMPTS = 20


def next_sequence(db: Session, key: str) -> int:
    """Increment the named counter and return the new value in one statement."""
    dialect = db.get_bind().dialect.name
    table = Counter.__table__

    if dialect in ("sqlite", "postgresql"):
        if dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            from sqlalchemy.dialects.postgresql import insert
        stmt = (
            insert(table)
            .values(key=key, seq=1)
            .on_conflict_do_update(index_elements=[table.c.key], set_={"seq": table.c.seq + 1})
            .returning(table.c.seq)
        )
        return int(db.execute(stmt).scalar_one())

    if dialect in ("mysql", "mariadb"):
        from sqlalchemy.dialects.mysql import insert

        # LAST_INSERT_ID(expr) keeps the written value readable on this connection
        stmt = insert(table).values(key=key, seq=func.last_insert_id(1))
        stmt = stmt.on_duplicate_key_update(seq=func.last_insert_id(table.c.seq + 1))
        db.execute(stmt)
        return int(db.execute(select(func.last_insert_id())).scalar_one())

    raise RuntimeError(f"Atomic counters are not supported on {dialect}")


def next_ticket_number(db: Session, today=None) -> str:
    """``YYYYMMDD`` + 4-digit sequence scoped to that day."""
    day = day_key(today)
    seq = next_sequence(db, f"{TICKET_COUNTER_PREFIX}:{day}")
    return f"{day}{seq:04d}"


def _candidate_reference(rng: random.Random) -> str:
    millis = str(int(time.time() * 1000))
    return f"{REFERENCE_PREFIX}{millis[-6:]}{rng.randint(0, 999):03d}"


def generate_reference_id(db: Session, rng: Optional[random.Random] = None) -> str:
    """Pick a ``MED`` reference id not yet used by any submission."""
    rng = rng or random.Random()
    for _ in range(MAX_REFERENCE_ATTEMPTS):
        ref = _candidate_reference(rng)
        taken = db.query(MedicalSubmission.id).filter(MedicalSubmission.reference_id == ref).first()
        if not taken:
            return ref
    raise RuntimeError("Could not generate a unique medical reference id")
