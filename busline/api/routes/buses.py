import logging
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from busline.api.deps import MANAGERS, OPERATORS, STAFF, company_scope, ensure_company_access, require_roles
from busline.api.pagination import paginate
from busline.core.exceptions import ConflictError, InvalidStateError
from busline.db.gateway import atomic, get_or_404
from busline.db.session import get_db
from busline.models.company import Company
from busline.models.enums import MaintenanceStatus
from busline.models.fleet import Bus, BusSeat, BusTemplate
from busline.models.people import Profile
from busline.schemas.booking import SeatOut
from busline.schemas.fleet import BusCreate, BusMaintenance, BusOut, BusUpdate
from busline.services.fleet import bus_matrix_from_template, create_default_seats, create_seats_from_matrix

logger = logging.getLogger(__name__)

router = APIRouter()

PLATE_TAKEN = "A bus with this plate number already exists"


def _plate_taken(db: Session, plate: str, exclude_id: int | None = None) -> bool:
    q = db.query(Bus).filter(Bus.plate_number == plate)
    if exclude_id is not None:
        q = q.filter(Bus.id != exclude_id)
    return q.first() is not None


@router.get("")
def list_buses(
    company_id: int | None = None,
    template_id: int | None = None,
    is_active: bool | None = None,
    maintenance_status: MaintenanceStatus | None = None,
    plate: str | None = Query(None, description="Plate number prefix"),
    page: int = Query(1, ge=1),
    page_size: int = Query(25, ge=1, le=200),
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*STAFF)),
):
    q = db.query(Bus)
    scope = company_scope(caller)
    if scope is not None:
        q = q.filter(Bus.company_id == scope)
    if company_id is not None:
        q = q.filter(Bus.company_id == company_id)
    if template_id is not None:
        q = q.filter(Bus.template_id == template_id)
    if is_active is not None:
        q = q.filter(Bus.is_active == is_active)
    if maintenance_status is not None:
        q = q.filter(Bus.maintenance_status == maintenance_status)
    if plate:
        q = q.filter(Bus.plate_number.ilike(f"{plate.strip()}%"))
    q = q.order_by(Bus.plate_number.asc())
    return paginate(q, page, page_size, lambda b: BusOut.model_validate(b).model_dump())


@router.post("", status_code=201, response_model=BusOut)
def create_bus(
    payload: BusCreate,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*MANAGERS)),
):
    """Register a bus; with a template, its seat matrix and seats are copied over."""
    get_or_404(db, Company, payload.company_id, "Company")
    ensure_company_access(caller, payload.company_id)
    plate = payload.plate_number.strip().upper()
    if _plate_taken(db, plate):
        raise ConflictError(PLATE_TAKEN)
    matrix = None
    if payload.template_id is not None:
        template = get_or_404(db, BusTemplate, payload.template_id, "Bus template")
        if template.company_id != payload.company_id:
            raise InvalidStateError("Bus template belongs to another company")
        if not template.is_active:
            raise InvalidStateError("Bus template is inactive")
        matrix = bus_matrix_from_template(template.seat_template_matrix or {})
    with atomic(db, PLATE_TAKEN):
        bus = Bus(
            company_id=payload.company_id,
            template_id=payload.template_id,
            plate_number=plate,
            seat_matrix=matrix,
            maintenance_status=payload.maintenance_status,
            is_active=payload.is_active and payload.maintenance_status != MaintenanceStatus.RETIRED,
        )
        db.add(bus)
        db.flush()
        seats = create_seats_from_matrix(db, bus, matrix) if matrix else []
    logger.info("Bus %s (%s) created with %d seats", bus.id, bus.plate_number, len(seats))
    return bus


@router.get("/{bus_id}", response_model=BusOut)
def get_bus(bus_id: int, db: Session = Depends(get_db), caller: Profile = Depends(require_roles(*STAFF))):
    bus = get_or_404(db, Bus, bus_id, "Bus")
    ensure_company_access(caller, bus.company_id)
    return bus


@router.patch("/{bus_id}", response_model=BusOut)
def update_bus(
    bus_id: int,
    payload: BusUpdate,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*MANAGERS)),
):
    bus = get_or_404(db, Bus, bus_id, "Bus")
    ensure_company_access(caller, bus.company_id)
    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "plate_number" in data:
        data["plate_number"] = data["plate_number"].strip().upper()
        if _plate_taken(db, data["plate_number"], exclude_id=bus.id):
            raise ConflictError(PLATE_TAKEN)
    if data.get("is_active") and bus.maintenance_status == MaintenanceStatus.RETIRED:
        raise InvalidStateError("A retired bus cannot be reactivated")
    with atomic(db, PLATE_TAKEN):
        for field, value in data.items():
            setattr(bus, field, value)
    return bus


@router.patch("/{bus_id}/maintenance", response_model=BusOut)
def set_maintenance(
    bus_id: int,
    payload: BusMaintenance,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*OPERATORS)),
):
    bus = get_or_404(db, Bus, bus_id, "Bus")
    ensure_company_access(caller, bus.company_id)
    with atomic(db):
        bus.maintenance_status = payload.maintenance_status
        if payload.maintenance_status == MaintenanceStatus.RETIRED:
            bus.is_active = False
    logger.info("Bus %s maintenance status -> %s", bus.id, bus.maintenance_status.value)
    return bus


@router.get("/{bus_id}/seats")
def list_bus_seats(
    bus_id: int,
    is_active: bool | None = None,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*STAFF)),
):
    bus = get_or_404(db, Bus, bus_id, "Bus")
    ensure_company_access(caller, bus.company_id)
    q = db.query(BusSeat).filter(BusSeat.bus_id == bus.id)
    if is_active is not None:
        q = q.filter(BusSeat.is_active == is_active)
    seats = q.order_by(BusSeat.floor.asc(), BusSeat.row.asc(), BusSeat.column.asc(), BusSeat.id.asc()).all()
    return [SeatOut.model_validate(s) for s in seats]


@router.post("/{bus_id}/seats/create-default", status_code=201)
def create_default_bus_seats(
    bus_id: int,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*MANAGERS)),
):
    bus = get_or_404(db, Bus, bus_id, "Bus")
    ensure_company_access(caller, bus.company_id)
    with atomic(db):
        seats = create_default_seats(db, bus)
    return {"created": len(seats), "seats": [SeatOut.model_validate(s) for s in seats]}
