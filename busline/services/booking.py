"""Seat availability and the ticket lifecycle: book, bulk-book, cancel, reassign, use.

A seat is free on a schedule exactly when no *active* ticket holds it; there
is no seat-level "booked" flag to keep in sync. Every write below runs inside
``atomic()`` so a failed precondition or a constraint violation leaves no
partial rows behind.
"""
import logging
from collections import defaultdict
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from busline.core.exceptions import ConflictError, InvalidStateError, NotFoundError, ValidationError
from busline.db.gateway import atomic, booked_seat_ids, find_active_ticket, get_or_404, lock_or_404
from busline.models.enums import ScheduleStatus, SeatStatus, TicketStatus
from busline.models.fleet import Bus, BusSeat, SeatTier
from busline.models.people import Customer, Profile
from busline.models.schedule import Schedule
from busline.models.ticket import Ticket, TicketCancellation, TicketReassignment
from busline.schemas.booking import BulkTicketCreate, BulkTicketItem, TicketCreate, TicketReassign
from busline.services.fleet import FLOORS, normalize_seat_number

logger = logging.getLogger(__name__)

BOOKING_CLOSED = {ScheduleStatus.CANCELLED, ScheduleStatus.COMPLETED}
SEAT_TAKEN = "This seat is already booked for this schedule"


def ensure_bookable(schedule: Schedule, what: str = "ticket") -> None:
    if schedule.status in BOOKING_CLOSED:
        raise ConflictError(f"Cannot create {what} for a {schedule.status.value} schedule")


def _seat_dict(seat: BusSeat, tier: SeatTier | None, booked: set[int]) -> dict[str, Any]:
    is_booked = seat.id in booked
    return {
        "id": seat.id,
        "seat_number": seat.seat_number,
        "floor": seat.floor,
        "row": seat.row,
        "column": seat.column,
        "status": seat.status.value,
        "is_active": seat.is_active,
        "tier_id": seat.tier_id,
        "tier": {"id": tier.id, "name": tier.name, "base_price": float(tier.base_price)} if tier else None,
        "is_booked": is_booked,
        "is_available": seat.is_active and seat.status == SeatStatus.AVAILABLE and not is_booked,
    }


def _matrix_from_seats(seats: list[dict[str, Any]]) -> dict:
    matrix = {}
    for key, floor in FLOORS:
        on_floor = [s for s in seats if s["floor"] == floor]
        if not on_floor and key != "first_floor":
            continue
        matrix[key] = {
            "dimensions": {
                "rows": max((s["row"] or 0 for s in on_floor), default=0),
                "seats_per_row": max((s["column"] or 0 for s in on_floor), default=0),
            },
            "seats": [
                {"id": s["seat_number"], "tier_id": s["tier_id"], "row": s["row"], "column": s["column"], "is_empty": False}
                for s in on_floor
            ],
        }
    return matrix


def seat_matrix_with_status(matrix: dict | None, seats: list[dict[str, Any]]) -> dict:
    """Stamp each cell of the bus's seat matrix with its seat's booking state.

    Cells with no matching seat (aisles, removed seats) are never available.
    A bus without a stored matrix gets one laid out from its seats.
    """
    by_number = {s["seat_number"]: s for s in seats}
    layout = matrix or _matrix_from_seats(seats)
    result = {}
    for key, floor in FLOORS:
        src = layout.get(key)
        if not src:
            continue
        cells = []
        for cell in src.get("seats", []):
            seat = by_number.get(normalize_seat_number(cell.get("id", "")))
            if seat is None:
                cells.append(dict(cell, floor=floor, is_booked=False, is_available=False))
                continue
            cells.append(dict(
                cell,
                floor=floor,
                bus_seat_id=seat["id"],
                status=seat["status"],
                is_active=seat["is_active"],
                is_booked=seat["is_booked"],
                is_available=seat["is_available"],
                tier=seat["tier"],
            ))
        result[key] = {"dimensions": dict(src.get("dimensions") or {}), "seats": cells}
    return result


def compute_availability(db: Session, schedule_id: int) -> dict[str, Any]:
    """Partition the schedule's bus seats into booked and available.

    occupancy_rate = booked / total seats on the bus, and 0.0 for a bus
    without seats.
    """
    schedule = get_or_404(db, Schedule, schedule_id, "Schedule")
    bus = db.get(Bus, schedule.bus_id)
    seats = db.execute(
        select(BusSeat).where(BusSeat.bus_id == schedule.bus_id).order_by(BusSeat.floor, BusSeat.row, BusSeat.column, BusSeat.id)
    ).scalars().all()
    tier_ids = {s.tier_id for s in seats}
    tiers = {}
    if tier_ids:
        tiers = {t.id: t for t in db.execute(select(SeatTier).where(SeatTier.id.in_(tier_ids))).scalars()}
    booked = booked_seat_ids(db, schedule_id)

    all_seats = [_seat_dict(s, tiers.get(s.tier_id), booked) for s in seats]
    available = [s for s in all_seats if s["is_available"]]
    booked_on_bus = sorted(s["id"] for s in all_seats if s["is_booked"])
    seats_by_tier: dict[str, list[dict[str, Any]]] = defaultdict(list)
    for s in available:
        seats_by_tier[str(s["tier_id"])].append(s)

    total = len(all_seats)
    return {
        "schedule_id": schedule.id,
        "bus_id": schedule.bus_id,
        "schedule_status": schedule.status.value,
        "price": float(schedule.price),
        "seats": all_seats,
        "available_seats": available,
        "booked_seat_ids": booked_on_bus,
        "seats_by_tier": dict(seats_by_tier),
        "seat_matrix": seat_matrix_with_status(bus.seat_matrix if bus else None, all_seats),
        "total_capacity": total,
        "total_booked": len(booked_on_bus),
        "total_available": len(available),
        "occupancy_rate": len(booked_on_bus) / total if total else 0.0,
    }


def _check_seat(db: Session, schedule: Schedule, bus_seat_id: int, label: str = "Bus seat") -> BusSeat:
    seat = get_or_404(db, BusSeat, bus_seat_id, label)
    if seat.bus_id != schedule.bus_id:
        raise InvalidStateError(f"{label} does not belong to the schedule's bus")
    return seat


def _check_seat_usable(seat: BusSeat) -> None:
    if not seat.is_active or seat.status != SeatStatus.AVAILABLE:
        raise InvalidStateError(f"Seat {seat.seat_number} is not available for sale")


def create_ticket(db: Session, schedule_id: int, body: TicketCreate, caller: Profile | None = None) -> Ticket:
    with atomic(db, SEAT_TAKEN):
        schedule = lock_or_404(db, Schedule, schedule_id, "Schedule")
        ensure_bookable(schedule)
        seat = _check_seat(db, schedule, body.bus_seat_id)
        if find_active_ticket(db, schedule.id, seat.id):
            raise ConflictError(SEAT_TAKEN)
        _check_seat_usable(seat)
        if body.customer_id is not None:
            get_or_404(db, Customer, body.customer_id, "Customer")
        ticket = Ticket(
            schedule_id=schedule.id,
            bus_seat_id=seat.id,
            customer_id=body.customer_id,
            purchased_by=caller.id if caller else None,
            price=body.price if body.price is not None else schedule.price,
            notes=body.notes,
            status=TicketStatus.ACTIVE,
        )
        db.add(ticket)
    logger.info("Ticket %s booked: schedule=%s seat=%s", ticket.id, schedule.id, seat.id)
    return ticket


def _resolve_customer(db: Session, item: BulkTicketItem) -> int | None:
    if item.customer_id is not None:
        return item.customer_id
    if not (item.passenger_name and item.passenger_document):
        return None
    existing = db.execute(select(Customer).where(Customer.document_id == item.passenger_document)).scalars().first()
    if existing:
        return existing.id
    customer = Customer(
        full_name=item.passenger_name,
        document_id=item.passenger_document,
        phone=item.contact_phone,
        email=item.contact_email,
    )
    db.add(customer)
    db.flush()
    logger.info("Created customer %s for passenger %s", customer.id, item.passenger_name)
    return customer.id


def bulk_create_tickets(db: Session, body: BulkTicketCreate, caller: Profile | None = None) -> list[Ticket]:
    """Book every requested seat or none of them.

    All requests are validated before the first write; the first invalid one
    aborts the batch with an error naming its position.
    """
    with atomic(db, "One of the seats was booked concurrently; no tickets were created"):
        schedules: dict[int, Schedule] = {}
        seen: set[tuple[int, int]] = set()
        for n, item in enumerate(body.tickets, start=1):
            prefix = f"Ticket #{n}"
            schedule = schedules.get(item.schedule_id)
            if schedule is None:
                schedule = db.execute(
                    select(Schedule).where(Schedule.id == item.schedule_id).with_for_update()
                ).scalar_one_or_none()
                if schedule is None:
                    raise NotFoundError(f"{prefix}: schedule {item.schedule_id} not found")
                schedules[schedule.id] = schedule
            if schedule.status in BOOKING_CLOSED:
                raise ConflictError(f"{prefix}: cannot book on a {schedule.status.value} schedule")
            seat = db.get(BusSeat, item.bus_seat_id)
            if seat is None:
                raise NotFoundError(f"{prefix}: bus seat {item.bus_seat_id} not found")
            if seat.bus_id != schedule.bus_id:
                raise InvalidStateError(f"{prefix}: seat {seat.seat_number} does not belong to the schedule's bus")
            pair = (schedule.id, seat.id)
            if pair in seen:
                raise ConflictError(f"{prefix}: seat {seat.seat_number} is requested twice for schedule {schedule.id}")
            seen.add(pair)
            if find_active_ticket(db, *pair):
                raise ConflictError(f"{prefix}: seat {seat.seat_number} is already booked for schedule {schedule.id}")
            if not seat.is_active or seat.status != SeatStatus.AVAILABLE:
                raise InvalidStateError(f"{prefix}: seat {seat.seat_number} is not available for sale")
            if item.customer_id is not None and db.get(Customer, item.customer_id) is None:
                raise NotFoundError(f"{prefix}: customer {item.customer_id} not found")

        tickets = []
        for item in body.tickets:
            schedule = schedules[item.schedule_id]
            notes = item.notes
            if not notes and item.passenger_name:
                notes = f"Passenger: {item.passenger_name}, Document: {item.passenger_document or 'Unknown'}"
            ticket = Ticket(
                schedule_id=schedule.id,
                bus_seat_id=item.bus_seat_id,
                customer_id=_resolve_customer(db, item),
                purchased_by=caller.id if caller else None,
                price=item.price if item.price is not None else schedule.price,
                notes=notes,
                status=TicketStatus.ACTIVE,
            )
            db.add(ticket)
            tickets.append(ticket)
    logger.info("Bulk booked %d tickets: %s", len(tickets), [t.id for t in tickets])
    return tickets


def cancel_ticket(db: Session, ticket_id: int, reason: str, caller: Profile | None = None) -> tuple[Ticket, TicketCancellation]:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("Cancellation reason is required")
    with atomic(db):
        ticket = lock_or_404(db, Ticket, ticket_id, "Ticket")
        if ticket.status == TicketStatus.CANCELLED:
            raise ConflictError("Ticket is already cancelled")
        if ticket.status != TicketStatus.ACTIVE:
            raise ConflictError(f"Only active tickets can be cancelled (ticket is {ticket.status.value})")
        ticket.status = TicketStatus.CANCELLED
        cancellation = TicketCancellation(ticket_id=ticket.id, reason=reason, cancelled_by=caller.id if caller else None)
        db.add(cancellation)
    logger.info("Ticket %s cancelled: %s", ticket.id, reason)
    return ticket, cancellation


def reassign_ticket(db: Session, ticket_id: int, body: TicketReassign, caller: Profile | None = None) -> tuple[Ticket, TicketReassignment]:
    reason = body.reason.strip()
    if not reason:
        raise ValidationError("Reassignment reason is required")
    with atomic(db, "The selected seat is already booked for the new schedule"):
        ticket = lock_or_404(db, Ticket, ticket_id, "Ticket")
        if ticket.status != TicketStatus.ACTIVE:
            raise ConflictError("Only active tickets can be reassigned")
        new_schedule = lock_or_404(db, Schedule, body.new_schedule_id, "New schedule")
        ensure_bookable(new_schedule, "a reassignment")
        new_seat = _check_seat(db, new_schedule, body.new_bus_seat_id, "New bus seat")
        if (ticket.schedule_id, ticket.bus_seat_id) == (new_schedule.id, new_seat.id):
            raise ValidationError("Ticket already holds this seat on this schedule")
        _check_seat_usable(new_seat)
        if find_active_ticket(db, new_schedule.id, new_seat.id):
            raise ConflictError("The selected seat is already booked for the new schedule")
        reassignment = TicketReassignment(
            ticket_id=ticket.id,
            old_schedule_id=ticket.schedule_id,
            new_schedule_id=new_schedule.id,
            old_bus_seat_id=ticket.bus_seat_id,
            new_bus_seat_id=new_seat.id,
            reason=reason,
            reassigned_by=caller.id if caller else None,
        )
        ticket.schedule_id = new_schedule.id
        ticket.bus_seat_id = new_seat.id
        db.add(reassignment)
    # bus_seat was loaded for the old seat
    db.refresh(ticket)
    logger.info(
        "Ticket %s reassigned: schedule %s -> %s, seat %s -> %s",
        ticket.id, reassignment.old_schedule_id, reassignment.new_schedule_id,
        reassignment.old_bus_seat_id, reassignment.new_bus_seat_id,
    )
    return ticket, reassignment


def mark_ticket_used(db: Session, ticket_id: int) -> Ticket:
    with atomic(db):
        ticket = lock_or_404(db, Ticket, ticket_id, "Ticket")
        if ticket.status != TicketStatus.ACTIVE:
            raise ConflictError(f"Only active tickets can be used (ticket is {ticket.status.value})")
        ticket.status = TicketStatus.USED
    logger.info("Ticket %s used", ticket.id)
    return ticket
