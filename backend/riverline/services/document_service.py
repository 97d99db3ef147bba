from __future__ import annotations

from datetime import date

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence


SALE_DOCUMENT_TYPE = "SALE"
SALE_PREFIX = "V"


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def _bump(document_type: str, period: str) -> int | None:
    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == document_type,
            DocumentSequence.period == period,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type, period=period)
        .scalar()
    )
    return current - 1


def next_document_number(*, document_type: str, period: str) -> int:
    """
    Atomically allocate the next number of a (type, period) sequence.

    Runs inside the caller's transaction. The UPDATE takes the row lock; the
    first allocation of a period inserts the row inside a savepoint so a
    concurrent insert can be absorbed without losing the outer transaction.
    """
    if not document_type:
        raise DocumentSequenceError("document_type is required")
    if not period:
        raise DocumentSequenceError("period is required")

    number = _bump(document_type, period)
    if number is not None:
        return number

    try:
        with db.session.begin_nested():
            db.session.add(DocumentSequence(document_type=document_type, period=period, next_number=2))
        return 1
    except IntegrityError:
        number = _bump(document_type, period)
        if number is None:
            raise
        return number


def next_sale_number(business_day: date) -> str:
    """Sale numbers restart daily: V{YYMMDD}-{NNN}."""
    period = business_day.strftime("%y%m%d")
    number = next_document_number(document_type=SALE_DOCUMENT_TYPE, period=period)
    return f"{SALE_PREFIX}{period}-{number:03d}"
