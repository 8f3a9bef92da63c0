"""Typed lookups and the transaction boundary shared by routes and services."""
from contextlib import contextmanager
from typing import Iterator, Type, TypeVar

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from busline.core.exceptions import NotFoundError, from_integrity_error
from busline.models.base import Base
from busline.models.enums import TicketStatus
from busline.models.ticket import Ticket

M = TypeVar("M", bound=Base)


def get_or_404(db: Session, model: Type[M], pk: int, label: str | None = None) -> M:
    obj = db.get(model, pk)
    if obj is None:
        raise NotFoundError(f"{label or model.__name__} not found")
    return obj


def lock_or_404(db: Session, model: Type[M], pk: int, label: str | None = None) -> M:
    """Load a row with a row lock (FOR UPDATE on Postgres, ignored by SQLite).

    Concurrent bookings on the same schedule queue up behind the schedule's
    lock; the partial unique index on tickets backs the invariant either way.
    """
    obj = db.execute(
        select(model).where(model.id == pk).with_for_update()
    ).scalar_one_or_none()
    if obj is None:
        raise NotFoundError(f"{label or model.__name__} not found")
    return obj


def find_active_ticket(db: Session, schedule_id: int, bus_seat_id: int) -> Ticket | None:
    return db.execute(
        select(Ticket).where(
            Ticket.schedule_id == schedule_id,
            Ticket.bus_seat_id == bus_seat_id,
            Ticket.status == TicketStatus.ACTIVE,
        )
    ).scalars().first()


def booked_seat_ids(db: Session, schedule_id: int) -> set[int]:
    rows = db.execute(
        select(Ticket.bus_seat_id).where(
            Ticket.schedule_id == schedule_id,
            Ticket.status == TicketStatus.ACTIVE,
        )
    ).scalars().all()
    return set(rows)


def count_where(db: Session, model: Type[M], *criteria) -> int:
    return db.execute(select(func.count()).select_from(model).where(*criteria)).scalar_one()


@contextmanager
def atomic(db: Session, conflict_detail: str | None = None) -> Iterator[Session]:
    """Commit everything written inside the block, or nothing.

    A unique/foreign-key violation surfacing at flush or commit is reported
    as a ConflictError (409) carrying ``conflict_detail``.
    """
    try:
        yield db
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise from_integrity_error(e, conflict_detail) from e
    except Exception:
        db.rollback()
        raise
