"""Invoice numbering: INV-001, INV-002, ... per user.

Numbers come from a per-user counter row incremented in a single atomic
statement inside the caller's transaction. They are never derived from a
count of existing invoices, so concurrent creations and deletions cannot
produce or reuse a duplicate.
"""
import logging

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from invoicely.core.config import settings
from invoicely.models.invoice import InvoiceCounter

logger = logging.getLogger(__name__)

PREFIX = "INV-"


def format_sequence_number(number: int, width: int | None = None) -> str:
    """INV- followed by the number zero-padded to `width` digits (never truncated)."""
    width = settings.INVOICE_NUMBER_WIDTH if width is None else width
    if number < 1:
        raise ValueError("Sequence numbers start at 1")
    return f"{PREFIX}{number:0{width}d}"


def _upsert_increment(db: Session, user_id: int, insert_fn) -> int:
    stmt = (
        insert_fn(InvoiceCounter)
        .values(user_id=user_id, last_value=1)
        .on_conflict_do_update(
            index_elements=[InvoiceCounter.user_id],
            set_={"last_value": InvoiceCounter.last_value + 1},
        )
        .returning(InvoiceCounter.last_value)
    )
    return db.execute(stmt).scalar_one()


def _locked_increment(db: Session, user_id: int) -> int:
    counter = db.execute(
        select(InvoiceCounter).where(InvoiceCounter.user_id == user_id).with_for_update()
    ).scalar_one_or_none()
    if counter is None:
        counter = InvoiceCounter(user_id=user_id, last_value=0)
        db.add(counter)
        db.flush()
    db.execute(
        update(InvoiceCounter)
        .where(InvoiceCounter.user_id == user_id)
        .values(last_value=InvoiceCounter.last_value + 1)
    )
    db.flush()
    db.refresh(counter)
    return counter.last_value


def next_sequence_value(db: Session, user_id: int) -> int:
    """Reserve the next number for `user_id`. Committed with the caller's transaction."""
    dialect = db.get_bind().dialect.name
    if dialect == "sqlite":
        value = _upsert_increment(db, user_id, sqlite_insert)
    elif dialect == "postgresql":
        value = _upsert_increment(db, user_id, pg_insert)
    else:
        value = _locked_increment(db, user_id)
    logger.debug(f"[Sequence] user={user_id} reserved {value}")
    return value


def next_sequence_number(db: Session, user_id: int) -> str:
    return format_sequence_number(next_sequence_value(db, user_id))
