from datetime import date, time
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from pydantic import Field, field_validator
from sqlalchemy.orm import Session

from busline.api.deps import MANAGERS, STAFF, require_roles
from busline.core.exceptions import ValidationError
from busline.db.gateway import atomic, get_or_404
from busline.db.session import get_db
from busline.models.enums import Weekday
from busline.models.location import Location
from busline.models.people import Profile
from busline.models.route import Route, RouteSchedule
from busline.schemas.common import ORMModel, RequestModel

router = APIRouter()
route_schedules_router = APIRouter()


class RouteCreate(RequestModel):
    name: str = Field(..., min_length=1, max_length=255)
    origin_id: int
    destination_id: int
    estimated_duration: int = Field(..., gt=0, description="Minutes")


class RouteUpdate(RequestModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    origin_id: Optional[int] = None
    destination_id: Optional[int] = None
    estimated_duration: Optional[int] = Field(None, gt=0)
    active: Optional[bool] = None


class LocationBrief(ORMModel):
    id: int
    name: str
    city: Optional[str]


class RouteOut(ORMModel):
    id: int
    name: str
    origin_id: int
    destination_id: int
    estimated_duration: int
    active: bool
    origin: Optional[LocationBrief] = None
    destination: Optional[LocationBrief] = None


class RouteScheduleCreate(RequestModel):
    route_id: int
    operating_days: List[Weekday] = Field(..., min_length=1)
    departure_time: time
    estimated_arrival_time: time
    season_start: Optional[date] = None
    season_end: Optional[date] = None

    @field_validator("operating_days")
    @classmethod
    def dedupe_days(cls, v: List[Weekday]) -> List[Weekday]:
        return list(dict.fromkeys(v))


class RouteScheduleUpdate(RequestModel):
    operating_days: Optional[List[Weekday]] = Field(None, min_length=1)
    departure_time: Optional[time] = None
    estimated_arrival_time: Optional[time] = None
    season_start: Optional[date] = None
    season_end: Optional[date] = None
    active: Optional[bool] = None


class RouteScheduleOut(ORMModel):
    id: int
    route_id: int
    operating_days: List[str]
    departure_time: time
    estimated_arrival_time: time
    season_start: Optional[date]
    season_end: Optional[date]
    active: bool


def _check_endpoints(db: Session, origin_id: int, destination_id: int):
    if origin_id == destination_id:
        raise ValidationError("Origin and destination must be different")
    get_or_404(db, Location, origin_id, "Origin location")
    get_or_404(db, Location, destination_id, "Destination location")


def _check_season(season_start: date | None, season_end: date | None):
    if season_start and season_end and season_end < season_start:
        raise ValidationError("Season end must not be before season start")


@router.get("")
def list_routes(
    origin_id: int | None = None,
    destination_id: int | None = None,
    active: bool | None = None,
    db: Session = Depends(get_db),
    _caller: Profile = Depends(require_roles(*STAFF)),
):
    q = db.query(Route)
    if origin_id is not None:
        q = q.filter(Route.origin_id == origin_id)
    if destination_id is not None:
        q = q.filter(Route.destination_id == destination_id)
    if active is not None:
        q = q.filter(Route.active == active)
    return [RouteOut.model_validate(r) for r in q.order_by(Route.name.asc()).all()]


@router.post("", status_code=201, response_model=RouteOut)
def create_route(
    payload: RouteCreate,
    db: Session = Depends(get_db),
    _caller: Profile = Depends(require_roles(*MANAGERS)),
):
    _check_endpoints(db, payload.origin_id, payload.destination_id)
    route = Route(
        name=payload.name.strip(),
        origin_id=payload.origin_id,
        destination_id=payload.destination_id,
        estimated_duration=payload.estimated_duration,
    )
    with atomic(db):
        db.add(route)
    return RouteOut.model_validate(route)


@router.get("/{route_id}", response_model=RouteOut)
def get_route(route_id: int, db: Session = Depends(get_db), _caller: Profile = Depends(require_roles(*STAFF))):
    return RouteOut.model_validate(get_or_404(db, Route, route_id, "Route"))


@router.patch("/{route_id}", response_model=RouteOut)
def update_route(
    route_id: int,
    payload: RouteUpdate,
    db: Session = Depends(get_db),
    _caller: Profile = Depends(require_roles(*MANAGERS)),
):
    route = get_or_404(db, Route, route_id, "Route")
    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "origin_id" in data or "destination_id" in data:
        _check_endpoints(db, data.get("origin_id", route.origin_id), data.get("destination_id", route.destination_id))
    with atomic(db):
        for field, value in data.items():
            setattr(route, field, value)
    db.refresh(route)
    return RouteOut.model_validate(route)


@router.patch("/{route_id}/deactivate", response_model=RouteOut)
def deactivate_route(
    route_id: int,
    db: Session = Depends(get_db),
    _caller: Profile = Depends(require_roles(*MANAGERS)),
):
    route = get_or_404(db, Route, route_id, "Route")
    with atomic(db):
        route.active = False
    return RouteOut.model_validate(route)


@route_schedules_router.get("")
def list_route_schedules(
    route_id: int | None = Query(None),
    active: bool | None = None,
    db: Session = Depends(get_db),
    _caller: Profile = Depends(require_roles(*STAFF)),
):
    q = db.query(RouteSchedule)
    if route_id is not None:
        q = q.filter(RouteSchedule.route_id == route_id)
    if active is not None:
        q = q.filter(RouteSchedule.active == active)
    rows = q.order_by(RouteSchedule.route_id.asc(), RouteSchedule.departure_time.asc()).all()
    return [RouteScheduleOut.model_validate(rs) for rs in rows]


@route_schedules_router.post("", status_code=201, response_model=RouteScheduleOut)
def create_route_schedule(
    payload: RouteScheduleCreate,
    db: Session = Depends(get_db),
    _caller: Profile = Depends(require_roles(*MANAGERS)),
):
    get_or_404(db, Route, payload.route_id, "Route")
    _check_season(payload.season_start, payload.season_end)
    rs = RouteSchedule(
        route_id=payload.route_id,
        operating_days=[d.value for d in payload.operating_days],
        departure_time=payload.departure_time,
        estimated_arrival_time=payload.estimated_arrival_time,
        season_start=payload.season_start,
        season_end=payload.season_end,
    )
    with atomic(db):
        db.add(rs)
    return rs


@route_schedules_router.get("/{route_schedule_id}", response_model=RouteScheduleOut)
def get_route_schedule(route_schedule_id: int, db: Session = Depends(get_db), _caller: Profile = Depends(require_roles(*STAFF))):
    return get_or_404(db, RouteSchedule, route_schedule_id, "Route schedule")


@route_schedules_router.patch("/{route_schedule_id}", response_model=RouteScheduleOut)
def update_route_schedule(
    route_schedule_id: int,
    payload: RouteScheduleUpdate,
    db: Session = Depends(get_db),
    _caller: Profile = Depends(require_roles(*MANAGERS)),
):
    rs = get_or_404(db, RouteSchedule, route_schedule_id, "Route schedule")
    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    _check_season(data.get("season_start", rs.season_start), data.get("season_end", rs.season_end))
    if "operating_days" in data:
        data["operating_days"] = list(dict.fromkeys(d.value for d in payload.operating_days))
    with atomic(db):
        for field, value in data.items():
            setattr(rs, field, value)
    return rs
