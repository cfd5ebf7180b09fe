"""
Unit of work: one transaction per block. Commit when the block exits cleanly,
roll back and re-raise otherwise.

    with unit_of_work(db):
        db.add(row)
"""
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
