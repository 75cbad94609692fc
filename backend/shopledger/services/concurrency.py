# Overview: Transaction helpers shared by the ledger services.

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from ..errors import StorageError

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def commit_unit_of_work(session, *, action: str) -> None:
    """
    Commit the caller's unit of work or roll it back and raise StorageError.

    Nothing is retried here; the caller owns retry policy.
    """
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error("Commit failed during %s: %s", action, exc)
        raise StorageError(f"Failed to {action}") from exc


def flush_or_raise(session, *, action: str) -> None:
    """Flush pending writes, mapping database failures to StorageError."""
    try:
        session.flush()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error("Flush failed during %s: %s", action, exc)
        raise StorageError(f"Failed to {action}") from exc
