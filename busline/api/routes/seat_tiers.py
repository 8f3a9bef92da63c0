from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from busline.api.deps import MANAGERS, STAFF, company_scope, ensure_company_access, require_roles
from busline.core.exceptions import ConflictError
from busline.db.gateway import atomic, get_or_404
from busline.db.session import get_db
from busline.models.company import Company
from busline.models.fleet import SeatTier
from busline.models.people import Profile
from busline.schemas.fleet import SeatTierCreate, SeatTierDetail, SeatTierUpdate

router = APIRouter()

DUPLICATE = "A seat tier with this name already exists for this company"


@router.get("")
def list_seat_tiers(
    company_id: int | None = None,
    is_active: bool | None = None,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*STAFF)),
):
    q = db.query(SeatTier)
    scope = company_scope(caller)
    if scope is not None:
        q = q.filter(SeatTier.company_id == scope)
    if company_id is not None:
        q = q.filter(SeatTier.company_id == company_id)
    if is_active is not None:
        q = q.filter(SeatTier.is_active == is_active)
    return [SeatTierDetail.model_validate(t) for t in q.order_by(SeatTier.name.asc()).all()]


@router.post("", status_code=201, response_model=SeatTierDetail)
def create_seat_tier(
    payload: SeatTierCreate,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*MANAGERS)),
):
    get_or_404(db, Company, payload.company_id, "Company")
    ensure_company_access(caller, payload.company_id)
    name = payload.name.strip()
    if db.query(SeatTier).filter(SeatTier.company_id == payload.company_id, SeatTier.name == name).first():
        raise ConflictError(DUPLICATE)
    tier = SeatTier(company_id=payload.company_id, name=name, description=payload.description, base_price=payload.base_price)
    with atomic(db, DUPLICATE):
        db.add(tier)
    return tier


@router.get("/{tier_id}", response_model=SeatTierDetail)
def get_seat_tier(tier_id: int, db: Session = Depends(get_db), caller: Profile = Depends(require_roles(*STAFF))):
    tier = get_or_404(db, SeatTier, tier_id, "Seat tier")
    ensure_company_access(caller, tier.company_id)
    return tier


@router.patch("/{tier_id}", response_model=SeatTierDetail)
def update_seat_tier(
    tier_id: int,
    payload: SeatTierUpdate,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*MANAGERS)),
):
    tier = get_or_404(db, SeatTier, tier_id, "Seat tier")
    ensure_company_access(caller, tier.company_id)
    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "name" in data:
        data["name"] = data["name"].strip()
        clash = (
            db.query(SeatTier)
            .filter(SeatTier.company_id == tier.company_id, SeatTier.name == data["name"], SeatTier.id != tier.id)
            .first()
        )
        if clash:
            raise ConflictError(DUPLICATE)
    with atomic(db, DUPLICATE):
        for field, value in data.items():
            setattr(tier, field, value)
    return tier
