from datetime import datetime
from typing import Optional
from pydantic import Field

from busline.models.enums import ParcelStatus
from busline.schemas.common import RequestModel, ORMModel


class ParcelCreate(RequestModel):
    tracking_number: Optional[str] = Field(None, min_length=4, max_length=32)
    sender_id: int
    receiver_id: int
    weight: Optional[float] = Field(None, ge=0)
    dimensions: Optional[str] = Field(None, max_length=64)
    declared_value: float = Field(0, ge=0)
    price: float = Field(0, ge=0)
    status: ParcelStatus = ParcelStatus.RECEIVED
    notes: Optional[str] = Field(None, max_length=1024)


class ParcelStatusChange(RequestModel):
    status: ParcelStatus
    location_id: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=1024)


class ParcelOut(ORMModel):
    id: int
    tracking_number: str
    schedule_id: int
    sender_id: int
    receiver_id: int
    weight: Optional[float]
    dimensions: Optional[str]
    declared_value: float
    price: float
    status: ParcelStatus
    notes: Optional[str]
    created_at: datetime


class ParcelStatusUpdateOut(ORMModel):
    id: int
    parcel_id: int
    status: ParcelStatus
    location_id: Optional[int]
    notes: Optional[str]
    updated_by: Optional[int]
    updated_at: datetime
