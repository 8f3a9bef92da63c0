from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from busline.api.deps import MANAGERS, OPERATORS, ensure_company_access, require_roles
from busline.core.exceptions import ConflictError, NotFoundError
from busline.db.gateway import atomic, count_where, get_or_404
from busline.db.session import get_db
from busline.models.fleet import Bus, BusSeat, SeatTier
from busline.models.people import Profile
from busline.models.ticket import Ticket
from busline.schemas.booking import SeatOut
from busline.schemas.fleet import BulkSeatCreate, BusSeatCreate, BusSeatUpdate
from busline.services.fleet import normalize_seat_number

router = APIRouter()

SEAT_TAKEN = "A seat with this number already exists on this bus"


def _load_bus(db: Session, caller: Profile, bus_id: int) -> Bus:
    bus = get_or_404(db, Bus, bus_id, "Bus")
    ensure_company_access(caller, bus.company_id)
    return bus


def _check_tier(db: Session, bus: Bus, tier_id: int) -> None:
    tier = db.get(SeatTier, tier_id)
    if tier is None or tier.company_id != bus.company_id:
        raise NotFoundError("Seat tier not found for this bus's company")


@router.post("", status_code=201, response_model=SeatOut)
def create_bus_seat(
    payload: BusSeatCreate,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*MANAGERS)),
):
    bus = _load_bus(db, caller, payload.bus_id)
    _check_tier(db, bus, payload.tier_id)
    number = normalize_seat_number(payload.seat_number)
    if db.query(BusSeat).filter(BusSeat.bus_id == bus.id, BusSeat.seat_number == number).first():
        raise ConflictError(SEAT_TAKEN)
    seat = BusSeat(
        bus_id=bus.id,
        tier_id=payload.tier_id,
        seat_number=number,
        floor=payload.floor,
        row=payload.row,
        column=payload.column,
        status=payload.status,
    )
    with atomic(db, SEAT_TAKEN):
        db.add(seat)
    return seat


@router.post("/bulk", status_code=201)
def create_bus_seats_bulk(
    payload: BulkSeatCreate,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*MANAGERS)),
):
    bus = _load_bus(db, caller, payload.bus_id)
    existing = {n for (n,) in db.query(BusSeat.seat_number).filter(BusSeat.bus_id == bus.id).all()}
    for tier_id in {s.tier_id for s in payload.seats}:
        _check_tier(db, bus, tier_id)
    seats = []
    for n, item in enumerate(payload.seats, start=1):
        number = normalize_seat_number(item.seat_number)
        if number in existing:
            raise ConflictError(f"Seat #{n}: seat number {number} already exists on this bus")
        existing.add(number)
        seats.append(BusSeat(
            bus_id=bus.id,
            tier_id=item.tier_id,
            seat_number=number,
            floor=item.floor,
            row=item.row,
            column=item.column,
        ))
    with atomic(db, SEAT_TAKEN):
        db.add_all(seats)
    return {"created": len(seats), "seats": [SeatOut.model_validate(s) for s in seats]}


@router.patch("/{seat_id}", response_model=SeatOut)
def update_bus_seat(
    seat_id: int,
    payload: BusSeatUpdate,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*OPERATORS)),
):
    seat = get_or_404(db, BusSeat, seat_id, "Bus seat")
    bus = _load_bus(db, caller, seat.bus_id)
    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "tier_id" in data:
        _check_tier(db, bus, data["tier_id"])
    with atomic(db):
        for field, value in data.items():
            setattr(seat, field, value)
    return seat


@router.delete("/{seat_id}")
def delete_bus_seat(
    seat_id: int,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*MANAGERS)),
):
    """Delete a seat, or only deactivate it once tickets reference it."""
    seat = get_or_404(db, BusSeat, seat_id, "Bus seat")
    _load_bus(db, caller, seat.bus_id)
    with atomic(db):
        if count_where(db, Ticket, Ticket.bus_seat_id == seat.id):
            seat.is_active = False
            result = {"id": seat.id, "deleted": False, "deactivated": True}
        else:
            db.delete(seat)
            result = {"id": seat_id, "deleted": True, "deactivated": False}
    return result
