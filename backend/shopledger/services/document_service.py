# Overview: Atomic document numbering shared by accounting and procurement.

from __future__ import annotations

from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence

DOCUMENT_TYPE_JOURNAL_ENTRY = "JOURNAL_ENTRY"
DOCUMENT_TYPE_PURCHASE_ORDER = "PURCHASE_ORDER"
DOCUMENT_TYPE_GRN = "GRN"


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def _bump(document_type: str) -> int:
    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return 0
    db.session.flush()
    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type)
        .scalar()
    )
    return current - 1


def next_document_number(
    *,
    document_type: str,
    prefix: Optional[str] = None,
    pad: int = 6,
) -> str:
    """
    Allocate the next number for a document type inside the caller's
    transaction: "000001", or "PO-000001" with a prefix.

    The UPDATE takes a row lock on the sequence; the first allocation
    inserts the row inside a savepoint so a concurrent insert only rolls
    back the savepoint.
    """
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    next_num = _bump(document_type)
    if not next_num:
        try:
            with db.session.begin_nested():
                db.session.add(DocumentSequence(document_type=document_type, next_number=2))
            next_num = 1
        except IntegrityError:
            next_num = _bump(document_type)
            if not next_num:
                raise DocumentSequenceError(f"Could not allocate a {document_type} number")

    number = f"{next_num:0{pad}d}"
    return f"{prefix}-{number}" if prefix else number
