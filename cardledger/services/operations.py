"""Unit-of-work wrapper and ownership checks shared by the ledger services"""

from contextlib import contextmanager
from typing import Iterator, Optional, TypeVar

from sqlalchemy.orm import Session

from cardledger.domain.exceptions import DomainException, InvalidInputError, NotFoundError, UnauthorizedError
from cardledger.infrastructure.database.session import atomic
from cardledger.infrastructure.observability.logging import log_ledger_rejection
from cardledger.infrastructure.observability.metrics import record_operation

OwnedT = TypeVar("OwnedT")


@contextmanager
def ledger_operation(db: Session, operation: str, user_id: str) -> Iterator[Session]:
    """
    Run one mutating operation atomically.

    Commits on success. A precondition failure rolls everything back, is
    counted and logged as a rejection, then re-raised to the caller.
    """
    try:
        with atomic(db):
            yield db
    except DomainException as e:
        record_operation(operation, e)
        log_ledger_rejection(operation, user_id, e)
        raise
    record_operation(operation)


def require_owned(entity: Optional[OwnedT], user_id: str, label: str) -> OwnedT:
    """Entity must exist and belong to the caller"""
    if entity is None:
        raise NotFoundError(f"{label} not found")
    if entity.owner_id != user_id:
        raise UnauthorizedError("Unauthorized")
    return entity


def require_text(value: Optional[str], field: str) -> str:
    if value is None or not value.strip():
        raise InvalidInputError(f"{field} is required")
    return value.strip()
