from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from busline.api.deps import STAFF, ensure_company_access, require_roles
from busline.core.exceptions import NotFoundError
from busline.db.gateway import get_or_404
from busline.db.session import get_db
from busline.models.fleet import Bus
from busline.models.parcel import Parcel, ParcelStatusUpdate
from busline.models.people import Profile
from busline.models.schedule import Schedule
from busline.schemas.parcel import ParcelOut, ParcelStatusChange, ParcelStatusUpdateOut
from busline.services import parcels

router = APIRouter()


def _load_parcel(db: Session, caller: Profile, parcel_id: int) -> Parcel:
    parcel = get_or_404(db, Parcel, parcel_id, "Parcel")
    schedule = db.get(Schedule, parcel.schedule_id)
    ensure_company_access(caller, db.get(Bus, schedule.bus_id).company_id)
    return parcel


def _history(db: Session, parcel_id: int) -> list[dict]:
    rows = (
        db.query(ParcelStatusUpdate)
        .filter(ParcelStatusUpdate.parcel_id == parcel_id)
        .order_by(ParcelStatusUpdate.updated_at.asc(), ParcelStatusUpdate.id.asc())
        .all()
    )
    return [ParcelStatusUpdateOut.model_validate(u).model_dump() for u in rows]


@router.get("/{parcel_id}")
def get_parcel(parcel_id: int, db: Session = Depends(get_db), caller: Profile = Depends(require_roles(*STAFF))):
    parcel = _load_parcel(db, caller, parcel_id)
    data = ParcelOut.model_validate(parcel).model_dump()
    data["history"] = _history(db, parcel.id)
    return data


@router.get("/tracking/{tracking_number}")
def track_parcel(tracking_number: str, db: Session = Depends(get_db), caller: Profile = Depends(require_roles(*STAFF))):
    parcel = db.query(Parcel).filter(Parcel.tracking_number == tracking_number.strip().upper()).first()
    if parcel is None:
        raise NotFoundError("Parcel not found")
    return get_parcel(parcel.id, db, caller)


@router.patch("/{parcel_id}/status")
def change_parcel_status(
    parcel_id: int,
    payload: ParcelStatusChange,
    db: Session = Depends(get_db),
    caller: Profile = Depends(require_roles(*STAFF)),
):
    _load_parcel(db, caller, parcel_id)
    parcel, update = parcels.change_parcel_status(db, parcel_id, payload, caller)
    return {
        "parcel": ParcelOut.model_validate(parcel),
        "update": ParcelStatusUpdateOut.model_validate(update),
    }
