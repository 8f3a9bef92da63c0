"""Seat layout helpers: bus seat matrices and the BusSeat rows derived from them."""
import logging
import string

from sqlalchemy.orm import Session

from busline.core.exceptions import ConflictError, InvalidStateError, NotFoundError
from busline.db.gateway import count_where
from busline.models.enums import SeatStatus
from busline.models.fleet import Bus, BusSeat, SeatTier
from busline.schemas.fleet import SeatMatrix

logger = logging.getLogger(__name__)

FLOORS = (("first_floor", "first"), ("second_floor", "second"))
DEFAULT_ROWS = 10
DEFAULT_COLUMNS = 4


def normalize_seat_number(value) -> str:
    return str(value).strip().upper()


def check_matrix_tiers(db: Session, company_id: int, matrix: SeatMatrix) -> None:
    """Every seat of the matrix must use a tier of the same company."""
    tier_ids = set()
    for key, _ in FLOORS:
        floor = getattr(matrix, key)
        if floor is not None:
            tier_ids.update(s.tier_id for s in floor.seats if not s.is_empty)
    if not tier_ids:
        return
    found = {
        t.id for t in db.query(SeatTier).filter(SeatTier.id.in_(tier_ids), SeatTier.company_id == company_id).all()
    }
    missing = sorted(tier_ids - found)
    if missing:
        raise NotFoundError(f"Seat tier(s) {missing} not found for this company")


def bus_matrix_from_template(template_matrix: dict) -> dict:
    """Copy a template matrix, stamping each seat with its floor and status."""
    matrix = {}
    for key, floor in FLOORS:
        src = template_matrix.get(key)
        if not src:
            continue
        matrix[key] = {
            "dimensions": dict(src.get("dimensions") or {}),
            "seats": [
                dict(seat, id=normalize_seat_number(seat["id"]), floor=floor, status=SeatStatus.AVAILABLE.value)
                for seat in src.get("seats", [])
            ],
        }
    return matrix


def create_seats_from_matrix(db: Session, bus: Bus, matrix: dict) -> list[BusSeat]:
    seats = []
    seen = set()
    for key, floor in FLOORS:
        for cell in (matrix.get(key) or {}).get("seats", []):
            if cell.get("is_empty"):
                continue
            number = normalize_seat_number(cell["id"])
            if number in seen:
                raise ConflictError(f"Seat number {number} appears twice in the seat matrix")
            seen.add(number)
            seats.append(BusSeat(
                bus_id=bus.id,
                tier_id=cell["tier_id"],
                seat_number=number,
                floor=floor,
                row=cell.get("row"),
                column=cell.get("column"),
                status=SeatStatus.AVAILABLE,
            ))
    db.add_all(seats)
    return seats


def create_default_seats(db: Session, bus: Bus) -> list[BusSeat]:
    """10 rows x 4 columns (1A..10D) on the company's first active tier."""
    if count_where(db, BusSeat, BusSeat.bus_id == bus.id):
        raise ConflictError("Bus already has seats")
    tier = (
        db.query(SeatTier)
        .filter(SeatTier.company_id == bus.company_id, SeatTier.is_active.is_(True))
        .order_by(SeatTier.id.asc())
        .first()
    )
    if tier is None:
        raise InvalidStateError("The bus company has no active seat tier")
    seats = []
    for row in range(1, DEFAULT_ROWS + 1):
        for col, letter in enumerate(string.ascii_uppercase[:DEFAULT_COLUMNS], start=1):
            seats.append(BusSeat(
                bus_id=bus.id,
                tier_id=tier.id,
                seat_number=f"{row}{letter}",
                floor="first",
                row=row,
                column=col,
                status=SeatStatus.AVAILABLE,
            ))
    db.add_all(seats)
    logger.info("Created %d default seats for bus %s", len(seats), bus.id)
    return seats
