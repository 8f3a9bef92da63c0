from sqlalchemy import String, Integer, ForeignKey, DateTime, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime

from busline.models.base import Base, str_enum
from busline.models.enums import ScheduleStatus, AssignmentStatus, BusLogType
from busline.models.route import RouteSchedule

class Schedule(Base):
    """One dated trip. Never deleted; cancellation is a status change."""
    __tablename__ = "schedules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    route_schedule_id: Mapped[int] = mapped_column(ForeignKey("route_schedules.id"), index=True)
    route_id: Mapped[int] = mapped_column(ForeignKey("routes.id"), index=True)
    bus_id: Mapped[int] = mapped_column(ForeignKey("buses.id"), index=True)
    primary_driver_id: Mapped[int] = mapped_column(ForeignKey("drivers.id"))
    secondary_driver_id: Mapped[int | None] = mapped_column(ForeignKey("drivers.id"), nullable=True)
    departure_date: Mapped[datetime] = mapped_column(DateTime, index=True)
    estimated_arrival_time: Mapped[datetime] = mapped_column(DateTime)
    actual_departure_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    actual_arrival_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    price: Mapped[float] = mapped_column(Numeric(10, 2))
    status: Mapped[ScheduleStatus] = mapped_column(str_enum(ScheduleStatus), default=ScheduleStatus.SCHEDULED, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    route_schedule: Mapped[RouteSchedule] = relationship()


class BusAssignment(Base):
    __tablename__ = "bus_assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    bus_id: Mapped[int] = mapped_column(ForeignKey("buses.id"), index=True)
    schedule_id: Mapped[int] = mapped_column(ForeignKey("schedules.id"), index=True)
    status: Mapped[AssignmentStatus] = mapped_column(str_enum(AssignmentStatus), default=AssignmentStatus.ACTIVE)
    assigned_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class BusLog(Base):
    """Append-only trip journal (creation, edits, status changes, departures, arrivals)."""
    __tablename__ = "bus_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    schedule_id: Mapped[int] = mapped_column(ForeignKey("schedules.id"), index=True)
    bus_id: Mapped[int | None] = mapped_column(ForeignKey("buses.id"), nullable=True)
    location_id: Mapped[int | None] = mapped_column(ForeignKey("locations.id"), nullable=True)
    profile_id: Mapped[int | None] = mapped_column(ForeignKey("profiles.id"), nullable=True)
    type: Mapped[BusLogType] = mapped_column(str_enum(BusLogType))
    notes: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    logged_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class OccupancyLog(Base):
    """Headcount observed on board, recorded by staff during the trip."""
    __tablename__ = "occupancy_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    schedule_id: Mapped[int] = mapped_column(ForeignKey("schedules.id"), index=True)
    passenger_count: Mapped[int] = mapped_column(Integer)
    recorded_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    recorded_by: Mapped[int | None] = mapped_column(ForeignKey("profiles.id"), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(1024), nullable=True)
