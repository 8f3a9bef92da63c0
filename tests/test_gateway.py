import pytest
from sqlalchemy.exc import IntegrityError

from busline.core.exceptions import ConflictError, NotFoundError
from busline.db.gateway import atomic, booked_seat_ids, get_or_404
from busline.db.session import SessionLocal
from busline.models.enums import TicketStatus
from busline.models.schedule import Schedule
from busline.models.ticket import Ticket


@pytest.fixture
def db():
    session = SessionLocal()
    yield session
    session.close()


def ticket(world, status=TicketStatus.ACTIVE, seat=None):
    return Ticket(schedule_id=world.schedule_id, bus_seat_id=seat or world.seat_a1, price=10, status=status)


def test_storage_rejects_two_active_tickets_for_one_seat(db, world):
    db.add(ticket(world))
    db.commit()
    db.add(ticket(world))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_inactive_tickets_do_not_hold_the_seat(db, world):
    db.add_all([
        ticket(world, TicketStatus.CANCELLED),
        ticket(world, TicketStatus.CANCELLED),
        ticket(world, TicketStatus.USED),
        ticket(world),
    ])
    db.commit()
    assert booked_seat_ids(db, world.schedule_id) == {world.seat_a1}


def test_atomic_maps_constraint_violations_to_conflict(db, world):
    with atomic(db):
        db.add(ticket(world))

    with pytest.raises(ConflictError) as excinfo:
        with atomic(db, "Seat taken"):
            db.add(ticket(world, seat=world.seat_a2))
            db.add(ticket(world))
    assert excinfo.value.status_code == 409
    assert excinfo.value.detail == "Seat taken"
    # the whole block was rolled back
    assert booked_seat_ids(db, world.schedule_id) == {world.seat_a1}


def test_atomic_rolls_back_on_other_errors(db, world):
    with pytest.raises(NotFoundError):
        with atomic(db):
            db.add(ticket(world))
            get_or_404(db, Schedule, 9999, "Schedule")
    assert db.query(Ticket).count() == 0


def test_get_or_404_message(db, world):
    with pytest.raises(NotFoundError) as excinfo:
        get_or_404(db, Schedule, 9999)
    assert excinfo.value.detail == "Schedule not found"
