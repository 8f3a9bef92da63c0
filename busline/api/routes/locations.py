from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import Field
from sqlalchemy import or_
from sqlalchemy.orm import Session

from busline.api.deps import MANAGERS, STAFF, require_roles
from busline.core.exceptions import ConflictError
from busline.db.gateway import atomic, count_where, get_or_404
from busline.db.session import get_db
from busline.models.location import Location
from busline.models.people import Profile
from busline.models.route import Route
from busline.schemas.common import ORMModel, RequestModel

router = APIRouter()


class LocationCreate(RequestModel):
    name: str = Field(..., min_length=1, max_length=255)
    city: Optional[str] = Field(None, max_length=128)
    address: Optional[str] = Field(None, max_length=512)


class LocationUpdate(RequestModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    city: Optional[str] = Field(None, max_length=128)
    address: Optional[str] = Field(None, max_length=512)
    active: Optional[bool] = None


class LocationOut(ORMModel):
    id: int
    name: str
    city: Optional[str]
    address: Optional[str]
    active: bool


@router.get("")
def list_locations(
    search: str | None = Query(None, description="Substring of name or city"),
    active: bool | None = None,
    db: Session = Depends(get_db),
    _caller: Profile = Depends(require_roles(*STAFF)),
):
    q = db.query(Location)
    if search:
        s = f"%{search.strip()}%"
        q = q.filter(or_(Location.name.ilike(s), Location.city.ilike(s)))
    if active is not None:
        q = q.filter(Location.active == active)
    return [LocationOut.model_validate(loc) for loc in q.order_by(Location.name.asc()).all()]


@router.post("", status_code=201, response_model=LocationOut)
def create_location(
    payload: LocationCreate,
    db: Session = Depends(get_db),
    _caller: Profile = Depends(require_roles(*MANAGERS)),
):
    location = Location(name=payload.name.strip(), city=payload.city, address=payload.address)
    with atomic(db):
        db.add(location)
    return location


@router.get("/{location_id}", response_model=LocationOut)
def get_location(location_id: int, db: Session = Depends(get_db), _caller: Profile = Depends(require_roles(*STAFF))):
    return get_or_404(db, Location, location_id, "Location")


@router.patch("/{location_id}", response_model=LocationOut)
def update_location(
    location_id: int,
    payload: LocationUpdate,
    db: Session = Depends(get_db),
    _caller: Profile = Depends(require_roles(*MANAGERS)),
):
    location = get_or_404(db, Location, location_id, "Location")
    with atomic(db):
        for field, value in payload.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(location, field, value)
    return location


@router.patch("/{location_id}/deactivate", response_model=LocationOut)
def deactivate_location(
    location_id: int,
    db: Session = Depends(get_db),
    _caller: Profile = Depends(require_roles(*MANAGERS)),
):
    location = get_or_404(db, Location, location_id, "Location")
    in_use = count_where(
        db, Route,
        Route.active.is_(True),
        or_(Route.origin_id == location.id, Route.destination_id == location.id),
    )
    if in_use:
        raise ConflictError(f"Location is used by {in_use} active route(s)")
    with atomic(db):
        location.active = False
    return location
