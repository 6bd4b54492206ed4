"""
Bounded recovery from identity-sequence drift.

After bulk or manual inserts a table's serial sequence can fall behind the
rows already stored, so the next insert collides on the primary key. The
policy here repairs the sequence once and retries the insert once; a second
collision is a ``SequenceDriftError``.
"""
import logging
from typing import Callable, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt

from examportal.core.errors import IdentityConflict, SequenceDriftError

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNIQUE_VIOLATION = "23505"
MAX_REPAIRS = 1


def identity_conflict_for(exc: IntegrityError, table: str) -> bool:
    """True when the driver reports a unique violation on ``table``'s primary key."""
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) != UNIQUE_VIOLATION:
        return False
    diag = getattr(orig, "diag", None)
    return getattr(diag, "constraint_name", None) == f"{table}_pkey"


def repair_sequence(db: Session, table: str, pk_column: str) -> None:
    """Move the serial sequence of ``table`` to max(pk)+1."""
    if db.get_bind().dialect.name != "postgresql":
        return
    logger.warning(f"Repairing identity sequence for {table}.{pk_column}")
    db.execute(text(
        f"SELECT setval(pg_get_serial_sequence('{table}', '{pk_column}'), "
        f"COALESCE((SELECT MAX({pk_column}) FROM {table}), 0) + 1, false)"
    ))


def insert_with_sequence_repair(db: Session, table: str, pk_column: str, insert: Callable[[], T]) -> T:
    """Run ``insert`` inside a savepoint, repairing the sequence once on an identity collision."""

    def attempt() -> T:
        try:
            with db.begin_nested():
                return insert()
        except IntegrityError as e:
            if identity_conflict_for(e, table):
                raise IdentityConflict(table) from e
            raise

    retrying = Retrying(
        stop=stop_after_attempt(MAX_REPAIRS + 1),
        retry=retry_if_exception_type(IdentityConflict),
        before_sleep=lambda _state: repair_sequence(db, table, pk_column),
        reraise=True,
    )
    try:
        return retrying(attempt)
    except IdentityConflict as e:
        raise SequenceDriftError(table) from e
