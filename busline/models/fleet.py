from sqlalchemy import String, Integer, Boolean, ForeignKey, Numeric, JSON, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime

from busline.models.base import Base, str_enum
from busline.models.enums import MaintenanceStatus, SeatStatus

class SeatTier(Base):
    __tablename__ = "seat_tiers"
    __table_args__ = (UniqueConstraint("company_id", "name", name="uq_seat_tier_company_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), index=True)
    name: Mapped[str] = mapped_column(String(128))
    description: Mapped[str | None] = mapped_column(String(512), nullable=True)
    base_price: Mapped[float] = mapped_column(Numeric(10, 2))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class BusTemplate(Base):
    __tablename__ = "bus_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), index=True)
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(String(512), nullable=True)
    seat_template_matrix: Mapped[dict] = mapped_column(JSON, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class Bus(Base):
    __tablename__ = "buses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    company_id: Mapped[int] = mapped_column(ForeignKey("companies.id"), index=True)
    template_id: Mapped[int | None] = mapped_column(ForeignKey("bus_templates.id"), nullable=True)
    plate_number: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    seat_matrix: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    maintenance_status: Mapped[MaintenanceStatus] = mapped_column(str_enum(MaintenanceStatus), default=MaintenanceStatus.ACTIVE)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class BusSeat(Base):
    __tablename__ = "bus_seats"
    __table_args__ = (UniqueConstraint("bus_id", "seat_number", name="uq_bus_seat_number"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    bus_id: Mapped[int] = mapped_column(ForeignKey("buses.id"), index=True)
    tier_id: Mapped[int] = mapped_column(ForeignKey("seat_tiers.id"))
    seat_number: Mapped[str] = mapped_column(String(16))
    floor: Mapped[str] = mapped_column(String(16), default="first")
    row: Mapped[int | None] = mapped_column(Integer, nullable=True)
    column: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[SeatStatus] = mapped_column(str_enum(SeatStatus), default=SeatStatus.AVAILABLE)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    tier: Mapped[SeatTier] = relationship()
