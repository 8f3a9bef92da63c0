from sqlalchemy import String, Integer, ForeignKey, DateTime, Numeric
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime

from busline.models.base import Base, str_enum
from busline.models.enums import ParcelStatus

class Parcel(Base):
    __tablename__ = "parcels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tracking_number: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    schedule_id: Mapped[int] = mapped_column(ForeignKey("schedules.id"), index=True)
    sender_id: Mapped[int] = mapped_column(ForeignKey("customers.id"))
    receiver_id: Mapped[int] = mapped_column(ForeignKey("customers.id"))
    weight: Mapped[float | None] = mapped_column(Numeric(10, 2), nullable=True)
    dimensions: Mapped[str | None] = mapped_column(String(64), nullable=True)
    declared_value: Mapped[float] = mapped_column(Numeric(10, 2), default=0)
    price: Mapped[float] = mapped_column(Numeric(10, 2), default=0)
    status: Mapped[ParcelStatus] = mapped_column(str_enum(ParcelStatus, 16), default=ParcelStatus.RECEIVED)
    notes: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class ParcelStatusUpdate(Base):
    __tablename__ = "parcel_status_updates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    parcel_id: Mapped[int] = mapped_column(ForeignKey("parcels.id"), index=True)
    status: Mapped[ParcelStatus] = mapped_column(str_enum(ParcelStatus, 16))
    location_id: Mapped[int | None] = mapped_column(ForeignKey("locations.id"), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    updated_by: Mapped[int | None] = mapped_column(ForeignKey("profiles.id"), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
