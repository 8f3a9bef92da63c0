from datetime import datetime, date, time
from typing import Optional
from pydantic import Field, field_validator

from busline.models.enums import ScheduleStatus, BusLogType
from busline.schemas.common import RequestModel, ORMModel, naive_utc


class ScheduleCreate(RequestModel):
    route_schedule_id: int
    bus_id: int
    primary_driver_id: int
    secondary_driver_id: Optional[int] = None
    departure_date: date
    # Default to the route-schedule's times on departure_date
    departure_time: Optional[time] = None
    estimated_arrival_time: Optional[datetime] = None
    price: float = Field(..., ge=0)

    @field_validator("estimated_arrival_time")
    @classmethod
    def to_naive_utc(cls, v):
        return naive_utc(v)


class ScheduleUpdate(RequestModel):
    bus_id: Optional[int] = None
    primary_driver_id: Optional[int] = None
    secondary_driver_id: Optional[int] = None
    departure_date: Optional[datetime] = None
    estimated_arrival_time: Optional[datetime] = None
    price: Optional[float] = Field(None, ge=0)

    @field_validator("departure_date", "estimated_arrival_time")
    @classmethod
    def to_naive_utc(cls, v):
        return naive_utc(v)


class ScheduleStatusUpdate(RequestModel):
    status: ScheduleStatus
    actual_departure_time: Optional[datetime] = None
    actual_arrival_time: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=1024)

    @field_validator("actual_departure_time", "actual_arrival_time")
    @classmethod
    def to_naive_utc(cls, v):
        return naive_utc(v)


class ScheduleOut(ORMModel):
    id: int
    route_schedule_id: int
    route_id: int
    bus_id: int
    primary_driver_id: int
    secondary_driver_id: Optional[int]
    departure_date: datetime
    estimated_arrival_time: datetime
    actual_departure_time: Optional[datetime]
    actual_arrival_time: Optional[datetime]
    price: float
    status: ScheduleStatus
    created_at: datetime
    updated_at: datetime


class BusLogOut(ORMModel):
    id: int
    schedule_id: int
    bus_id: Optional[int]
    location_id: Optional[int]
    profile_id: Optional[int]
    type: BusLogType
    notes: Optional[str]
    logged_at: datetime


class OccupancyLogCreate(RequestModel):
    passenger_count: int = Field(..., ge=0)
    recorded_at: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=1024)

    @field_validator("recorded_at")
    @classmethod
    def to_naive_utc(cls, v):
        return naive_utc(v)


class OccupancyLogOut(ORMModel):
    id: int
    schedule_id: int
    passenger_count: int
    recorded_at: datetime
    recorded_by: Optional[int]
    notes: Optional[str]
