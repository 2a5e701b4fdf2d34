"""Session helpers: atomic units of work and request teardown."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session

from chessmgr.extensions import db


@contextmanager
def transaction() -> Iterator[Session]:
    """Run a block as one unit of work.

    Commits when the block exits normally; on any exception the session is
    rolled back and the exception propagates, so no partial state is left.
    """
    session = db.session
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise


def close_db(_: Exception | None = None) -> None:
    db.session.remove()


__all__ = ["transaction", "close_db"]
