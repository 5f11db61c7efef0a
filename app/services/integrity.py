# app/services/integrity.py
"""Delete guard and unique-constraint helpers shared by the CRUD routers."""
from __future__ import annotations

import logging
import re
from typing import Any, Mapping, Optional, Sequence, Union

from fastapi import HTTPException
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

log = logging.getLogger("db")


def count_dependents(db: Session, fk_column: Union[Any, Sequence[Any]], parent_id: int) -> int:
    """Rows of one child table pointing at ``parent_id`` through any of the given columns."""
    columns = tuple(fk_column) if isinstance(fk_column, (list, tuple)) else (fk_column,)
    q = db.query(func.count()).select_from(columns[0].class_)
    return int(q.filter(or_(*[c == parent_id for c in columns])).scalar() or 0)


def assert_no_dependents(
    db: Session,
    *,
    parent: str,
    child: str,
    children: str,
    fk_column: Any,
    parent_id: int,
) -> None:
    """
    The one place a delete is refused because children still reference the row.
    ``child`` is the counted label, e.g. "batch(es)"; ``children`` the plural.
    ``fk_column`` is the child column that points at the parent, or a tuple of them
    when one child table references the parent in several roles.
    """
    n = count_dependents(db, fk_column, parent_id)
    if n:
        raise HTTPException(
            400,
            f"Cannot delete {parent}. It has {n} {child} assigned to it. "
            f"Please delete all {children} first.",
        )


def _violated_column(error: IntegrityError, columns) -> Optional[str]:
    text = str(error.orig)
    for col in columns:
        if re.search(rf"(?<![A-Za-z0-9]){re.escape(col)}(?![A-Za-z0-9])", text):
            return col
    return None


def commit_unique(
    db: Session, conflict_message: str, by_column: Optional[Mapping[str, str]] = None
) -> None:
    """
    Flush+commit; a unique-constraint violation becomes 400 ``conflict_message``.
    The storage constraint is the source of truth, pre-checks only give a nicer path.
    With ``by_column`` ({column: message}) a table holding several unique columns
    reports the one the driver names in its error.
    """
    try:
        db.flush()
        db.commit()
    except IntegrityError as e:
        db.rollback()
        log.info("Unique constraint hit: %s", e.orig)
        col = _violated_column(e, by_column or {})
        raise HTTPException(400, by_column[col] if col else conflict_message)
