from __future__ import annotations

from sqlalchemy import text

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() covers it there.
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Take the database write lock for the rest of the current transaction.

    SQLite: BEGIN IMMEDIATE serializes writers, so a read-then-write section
    cannot interleave with another one. BEGIN must open the transaction, so a
    read-only transaction left by earlier queries is rolled back first.
    Pending changes raise RuntimeError instead of being committed outside
    the lock.

    Other engines: no-op, callers lock the rows they depend on with
    lock_for_update().
    """
    if db.engine.dialect.name != "sqlite":
        return
    session = db.session()
    if session.new or session.dirty or session.deleted:
        raise RuntimeError("begin_write() called with pending changes in the session")
    if session.in_transaction():
        session.rollback()
    session.execute(text("BEGIN IMMEDIATE"))
