import logging
from datetime import date, datetime, timedelta
from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session

from busline.api.deps import MANAGERS, OPERATORS, STAFF, company_scope, ensure_company_access, require_roles
from busline.api.pagination import paginate
from busline.db.gateway import atomic, get_or_404
from busline.db.session import get_db
from busline.models.enums import ScheduleStatus, TicketStatus
from busline.models.fleet import Bus, BusSeat
from busline.models.parcel import Parcel
from busline.models.people import Customer, Profile
from busline.models.schedule import BusLog, OccupancyLog, Schedule
from busline.models.ticket import Ticket
from busline.schemas.booking import TicketCreate, TicketOut
from busline.schemas.parcel import ParcelCreate, ParcelOut
from busline.schemas.schedule import (
    BusLogOut,
    OccupancyLogCreate,
    OccupancyLogOut,
    ScheduleCreate,
    ScheduleOut,
    ScheduleStatusUpdate,
    ScheduleUpdate,
)
from busline.services import booking, parcels, schedule_status, schedules

logger = logging.getLogger(__name__)

router = APIRouter()


def _load_schedule(db: Session, caller: Profile, schedule_id: int) -> Schedule:
    schedule = get_or_404(db, Schedule, schedule_id, "Schedule")
    ensure_company_access(caller, db.get(Bus, schedule.bus_id).company_id)
    return schedule


def _counts(db: Session, model, schedule_ids: list[int]) -> dict[int, int]:
    if not schedule_ids:
        return {}
    rows = (
        db.query(model.schedule_id, func.count(model.id))
        .filter(model.schedule_id.in_(schedule_ids))
        .group_by(model.schedule_id)
        .all()
    )
    return dict(rows)


@router.get("")
def list_schedules(
    route_id: int | None = None,
    route_schedule_id: int | None = None,
    bus_id: int | None = None,
    driver_id: int | None = None,
    status: ScheduleStatus | None = None,
    from_date: date | None = Query(None, description="Departures on or after this day"),
    to_date: date | None = Query(None, description="Departures on or before this day"),
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=200),
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*STAFF)),
):
    q = db.query(Schedule)
    scope = company_scope(caller)
    if scope is not None:
        q = q.join(Bus, Bus.id == Schedule.bus_id).filter(Bus.company_id == scope)
    if route_id is not None:
        q = q.filter(Schedule.route_id == route_id)
    if route_schedule_id is not None:
        q = q.filter(Schedule.route_schedule_id == route_schedule_id)
    if bus_id is not None:
        q = q.filter(Schedule.bus_id == bus_id)
    if driver_id is not None:
        q = q.filter((Schedule.primary_driver_id == driver_id) | (Schedule.secondary_driver_id == driver_id))
    if status is not None:
        q = q.filter(Schedule.status == status)
    if from_date:
        q = q.filter(Schedule.departure_date >= datetime.combine(from_date, datetime.min.time()))
    if to_date:
        q = q.filter(Schedule.departure_date < datetime.combine(to_date + timedelta(days=1), datetime.min.time()))
    q = q.order_by(Schedule.departure_date.desc(), Schedule.id.desc())

    result = paginate(q, page, page_size, lambda s: ScheduleOut.model_validate(s).model_dump())
    ids = [item["id"] for item in result["items"]]
    tickets = _counts(db, Ticket, ids)
    parcel_counts = _counts(db, Parcel, ids)
    for item in result["items"]:
        item["ticket_count"] = tickets.get(item["id"], 0)
        item["parcel_count"] = parcel_counts.get(item["id"], 0)
    return result


@router.post("", status_code=201, response_model=ScheduleOut)
def create_schedule(
    payload: ScheduleCreate,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*OPERATORS)),
):
    bus = get_or_404(db, Bus, payload.bus_id, "Bus")
    ensure_company_access(caller, bus.company_id)
    return schedules.create_schedule(db, payload, caller)


# Declared before /{schedule_id} so "availability" is not parsed as an id.
@router.get("/availability")
def availability_by_query(
    schedule_id: int = Query(..., alias="scheduleId"),
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*STAFF)),
):
    _load_schedule(db, caller, schedule_id)
    return booking.compute_availability(db, schedule_id)


@router.get("/{schedule_id}", response_model=ScheduleOut)
def get_schedule(schedule_id: int, db: Session = Depends(get_db), caller: Profile = Depends(require_roles(*STAFF))):
    return _load_schedule(db, caller, schedule_id)


@router.patch("/{schedule_id}", response_model=ScheduleOut)
def update_schedule(
    schedule_id: int,
    payload: ScheduleUpdate,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*OPERATORS)),
):
    _load_schedule(db, caller, schedule_id)
    if payload.bus_id is not None:
        ensure_company_access(caller, get_or_404(db, Bus, payload.bus_id, "Bus").company_id)
    return schedules.update_schedule(db, schedule_id, payload, caller)


@router.patch("/{schedule_id}/status", response_model=ScheduleOut)
def change_schedule_status(
    schedule_id: int,
    payload: ScheduleStatusUpdate,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*OPERATORS)),
):
    _load_schedule(db, caller, schedule_id)
    return schedule_status.change_status(db, schedule_id, payload, caller)


@router.delete("/{schedule_id}", response_model=ScheduleOut)
def cancel_schedule(
    schedule_id: int,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*MANAGERS)),
):
    """Schedules are never deleted; this cancels the trip."""
    _load_schedule(db, caller, schedule_id)
    body = ScheduleStatusUpdate(status=ScheduleStatus.CANCELLED)
    return schedule_status.change_status(db, schedule_id, body, caller)


@router.get("/{schedule_id}/availability")
def availability(schedule_id: int, db: Session = Depends(get_db), caller: Profile = Depends(require_roles(*STAFF))):
    _load_schedule(db, caller, schedule_id)
    return booking.compute_availability(db, schedule_id)


@router.get("/{schedule_id}/tickets")
def list_schedule_tickets(
    schedule_id: int,
    status: TicketStatus | None = None,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*STAFF)),
):
    _load_schedule(db, caller, schedule_id)
    q = db.query(Ticket).filter(Ticket.schedule_id == schedule_id)
    if status is not None:
        q = q.filter(Ticket.status == status)
    return [TicketOut.model_validate(t) for t in q.order_by(Ticket.purchased_at.asc(), Ticket.id.asc()).all()]


@router.post("/{schedule_id}/tickets", status_code=201)
def book_ticket(
    schedule_id: int,
    payload: TicketCreate,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*STAFF)),
):
    _load_schedule(db, caller, schedule_id)
    ticket = booking.create_ticket(db, schedule_id, payload, caller)
    return TicketOut.model_validate(ticket)


@router.get("/{schedule_id}/parcels")
def list_schedule_parcels(
    schedule_id: int,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*STAFF)),
):
    _load_schedule(db, caller, schedule_id)
    rows = db.query(Parcel).filter(Parcel.schedule_id == schedule_id).order_by(Parcel.created_at.asc(), Parcel.id.asc()).all()
    return [ParcelOut.model_validate(p) for p in rows]


@router.post("/{schedule_id}/parcels", status_code=201, response_model=ParcelOut)
def register_parcel(
    schedule_id: int,
    payload: ParcelCreate,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*STAFF)),
):
    _load_schedule(db, caller, schedule_id)
    return parcels.create_parcel(db, schedule_id, payload, caller)


@router.get("/{schedule_id}/passenger-list")
def passenger_list(schedule_id: int, db: Session = Depends(get_db), caller: Profile = Depends(require_roles(*STAFF))):
    """Boarding list built from the schedule's active tickets, ordered by seat."""
    _load_schedule(db, caller, schedule_id)
    rows = (
        db.query(Ticket, BusSeat, Customer)
        .join(BusSeat, BusSeat.id == Ticket.bus_seat_id)
        .outerjoin(Customer, Customer.id == Ticket.customer_id)
        .filter(Ticket.schedule_id == schedule_id, Ticket.status == TicketStatus.ACTIVE)
        .order_by(BusSeat.floor.asc(), BusSeat.row.asc(), BusSeat.column.asc(), BusSeat.seat_number.asc())
        .all()
    )
    passengers = [
        {
            "ticket_id": ticket.id,
            "seat_number": seat.seat_number,
            "full_name": customer.full_name if customer else "Unknown",
            "document_id": customer.document_id if customer else None,
            "phone": customer.phone if customer else None,
        }
        for ticket, seat, customer in rows
    ]
    return {"schedule_id": schedule_id, "total": len(passengers), "passengers": passengers}


@router.get("/{schedule_id}/logs")
def schedule_logs(schedule_id: int, db: Session = Depends(get_db), caller: Profile = Depends(require_roles(*STAFF))):
    _load_schedule(db, caller, schedule_id)
    rows = db.query(BusLog).filter(BusLog.schedule_id == schedule_id).order_by(BusLog.logged_at.asc(), BusLog.id.asc()).all()
    return [BusLogOut.model_validate(log) for log in rows]


@router.get("/{schedule_id}/occupancy")
def occupancy_logs(schedule_id: int, db: Session = Depends(get_db), caller: Profile = Depends(require_roles(*STAFF))):
    """Recorded headcounts, newest first."""
    _load_schedule(db, caller, schedule_id)
    rows = (
        db.query(OccupancyLog)
        .filter(OccupancyLog.schedule_id == schedule_id)
        .order_by(OccupancyLog.recorded_at.desc(), OccupancyLog.id.desc())
        .all()
    )
    return [OccupancyLogOut.model_validate(row) for row in rows]


@router.post("/{schedule_id}/occupancy", status_code=201, response_model=OccupancyLogOut)
def record_occupancy(
    schedule_id: int,
    payload: OccupancyLogCreate,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*STAFF)),
):
    _load_schedule(db, caller, schedule_id)
    entry = OccupancyLog(
        schedule_id=schedule_id,
        passenger_count=payload.passenger_count,
        recorded_at=payload.recorded_at or datetime.utcnow(),
        recorded_by=caller.id,
        notes=payload.notes,
    )
    with atomic(db):
        db.add(entry)
    logger.info("Schedule %s occupancy: %d passengers", schedule_id, entry.passenger_count)
    return entry
