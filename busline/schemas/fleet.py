from datetime import datetime
from typing import List, Optional
from pydantic import Field

from busline.models.enums import MaintenanceStatus, SeatStatus
from busline.schemas.common import RequestModel, ORMModel


class MatrixSeat(RequestModel):
    id: str = Field(..., min_length=1, max_length=16)  # becomes BusSeat.seat_number
    tier_id: int
    row: Optional[int] = None
    column: Optional[int] = None
    is_empty: bool = False


class FloorDimensions(RequestModel):
    rows: int = Field(..., ge=1)
    seats_per_row: int = Field(..., ge=1)


class MatrixFloor(RequestModel):
    dimensions: FloorDimensions
    seats: List[MatrixSeat] = Field(default_factory=list)


class SeatMatrix(RequestModel):
    first_floor: MatrixFloor
    second_floor: Optional[MatrixFloor] = None


class SeatTierCreate(RequestModel):
    company_id: int
    name: str = Field(..., min_length=1, max_length=128)
    description: Optional[str] = Field(None, max_length=512)
    base_price: float = Field(..., ge=0)


class SeatTierUpdate(RequestModel):
    name: Optional[str] = Field(None, min_length=1, max_length=128)
    description: Optional[str] = Field(None, max_length=512)
    base_price: Optional[float] = Field(None, ge=0)
    is_active: Optional[bool] = None


class SeatTierDetail(ORMModel):
    id: int
    company_id: int
    name: str
    description: Optional[str]
    base_price: float
    is_active: bool


class BusTemplateCreate(RequestModel):
    company_id: int
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=512)
    seat_template_matrix: SeatMatrix


class BusTemplateUpdate(RequestModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=512)
    seat_template_matrix: Optional[SeatMatrix] = None
    is_active: Optional[bool] = None


class BusTemplateOut(ORMModel):
    id: int
    company_id: int
    name: str
    description: Optional[str]
    seat_template_matrix: dict
    is_active: bool


class BusCreate(RequestModel):
    company_id: int
    template_id: Optional[int] = None
    plate_number: str = Field(..., min_length=1, max_length=32)
    maintenance_status: MaintenanceStatus = MaintenanceStatus.ACTIVE
    is_active: bool = True


class BusUpdate(RequestModel):
    plate_number: Optional[str] = Field(None, min_length=1, max_length=32)
    is_active: Optional[bool] = None


class BusMaintenance(RequestModel):
    maintenance_status: MaintenanceStatus


class BusOut(ORMModel):
    id: int
    company_id: int
    template_id: Optional[int]
    plate_number: str
    seat_matrix: Optional[dict]
    maintenance_status: MaintenanceStatus
    is_active: bool
    created_at: datetime


class BusSeatCreate(RequestModel):
    bus_id: int
    tier_id: int
    seat_number: str = Field(..., min_length=1, max_length=16)
    floor: str = Field("first", pattern="^(first|second)$")
    row: Optional[int] = None
    column: Optional[int] = None
    status: SeatStatus = SeatStatus.AVAILABLE


class BulkSeatItem(RequestModel):
    tier_id: int
    seat_number: str = Field(..., min_length=1, max_length=16)
    floor: str = Field("first", pattern="^(first|second)$")
    row: Optional[int] = None
    column: Optional[int] = None


class BulkSeatCreate(RequestModel):
    bus_id: int
    seats: List[BulkSeatItem] = Field(..., min_length=1, max_length=200)


class BusSeatUpdate(RequestModel):
    tier_id: Optional[int] = None
    status: Optional[SeatStatus] = None
    is_active: Optional[bool] = None
