from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from busline.api.deps import OPERATORS, STAFF, company_scope, ensure_company_access, require_roles
from busline.api.pagination import paginate
from busline.db.gateway import atomic, get_or_404
from busline.db.session import get_db
from busline.models.enums import TicketStatus
from busline.models.fleet import Bus
from busline.models.people import Profile
from busline.models.schedule import Schedule
from busline.models.ticket import Ticket, TicketCancellation, TicketReassignment
from busline.schemas.booking import (
    BulkTicketCreate,
    TicketCancel,
    TicketCancellationOut,
    TicketOut,
    TicketReassign,
    TicketReassignmentOut,
    TicketUpdate,
)
from busline.services import booking

router = APIRouter()


def _check_schedule_access(db: Session, caller: Profile, schedule_id: int) -> None:
    schedule = db.get(Schedule, schedule_id)
    if schedule is not None:
        ensure_company_access(caller, db.get(Bus, schedule.bus_id).company_id)


def _load_ticket(db: Session, caller: Profile, ticket_id: int) -> Ticket:
    ticket = get_or_404(db, Ticket, ticket_id, "Ticket")
    _check_schedule_access(db, caller, ticket.schedule_id)
    return ticket


def _ticket_detail(db: Session, ticket: Ticket) -> dict:
    data = TicketOut.model_validate(ticket).model_dump()
    cancellations = db.query(TicketCancellation).filter(TicketCancellation.ticket_id == ticket.id).order_by(TicketCancellation.id).all()
    reassignments = db.query(TicketReassignment).filter(TicketReassignment.ticket_id == ticket.id).order_by(TicketReassignment.id).all()
    data["cancellations"] = [TicketCancellationOut.model_validate(c).model_dump() for c in cancellations]
    data["reassignments"] = [TicketReassignmentOut.model_validate(r).model_dump() for r in reassignments]
    return data


@router.get("")
def list_tickets(
    schedule_id: int | None = None,
    customer_id: int | None = None,
    status: TicketStatus | None = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=200),
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*STAFF)),
):
    q = db.query(Ticket)
    scope = company_scope(caller)
    if scope is not None:
        q = (
            q.join(Schedule, Schedule.id == Ticket.schedule_id)
            .join(Bus, Bus.id == Schedule.bus_id)
            .filter(Bus.company_id == scope)
        )
    if schedule_id is not None:
        q = q.filter(Ticket.schedule_id == schedule_id)
    if customer_id is not None:
        q = q.filter(Ticket.customer_id == customer_id)
    if status is not None:
        q = q.filter(Ticket.status == status)
    q = q.order_by(Ticket.purchased_at.desc(), Ticket.id.desc())
    return paginate(q, page, page_size, lambda t: TicketOut.model_validate(t).model_dump())


@router.post("/bulk", status_code=201)
def bulk_book(
    payload: BulkTicketCreate,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*STAFF)),
):
    """All-or-nothing booking of up to 100 seats, possibly across schedules."""
    for schedule_id in {item.schedule_id for item in payload.tickets}:
        _check_schedule_access(db, caller, schedule_id)
    tickets = booking.bulk_create_tickets(db, payload, caller)
    return {"created": len(tickets), "tickets": [TicketOut.model_validate(t) for t in tickets]}


@router.get("/{ticket_id}")
def get_ticket(ticket_id: int, db: Session = Depends(get_db), caller: Profile = Depends(require_roles(*STAFF))):
    return _ticket_detail(db, _load_ticket(db, caller, ticket_id))


@router.patch("/{ticket_id}")
def update_ticket(
    ticket_id: int,
    payload: TicketUpdate,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*STAFF)),
):
    ticket = _load_ticket(db, caller, ticket_id)
    with atomic(db):
        ticket.notes = payload.notes
    return TicketOut.model_validate(ticket)


@router.post("/{ticket_id}/cancel")
def cancel_ticket(
    ticket_id: int,
    payload: TicketCancel,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*STAFF)),
):
    _load_ticket(db, caller, ticket_id)
    ticket, cancellation = booking.cancel_ticket(db, ticket_id, payload.reason, caller)
    return {
        "ticket": TicketOut.model_validate(ticket),
        "cancellation": TicketCancellationOut.model_validate(cancellation),
    }


@router.post("/{ticket_id}/reassign")
def reassign_ticket(
    ticket_id: int,
    payload: TicketReassign,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*OPERATORS)),
):
    _load_ticket(db, caller, ticket_id)
    _check_schedule_access(db, caller, payload.new_schedule_id)
    ticket, reassignment = booking.reassign_ticket(db, ticket_id, payload, caller)
    return {
        "ticket": TicketOut.model_validate(ticket),
        "reassignment": TicketReassignmentOut.model_validate(reassignment),
    }


@router.post("/{ticket_id}/use")
def use_ticket(ticket_id: int, db: Session = Depends(get_db), caller: Profile = Depends(require_roles(*STAFF))):
    _load_ticket(db, caller, ticket_id)
    return TicketOut.model_validate(booking.mark_ticket_used(db, ticket_id))
