from sqlalchemy import String, Integer, Boolean, ForeignKey, Time, Date, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import date, time

from busline.models.base import Base
from busline.models.location import Location

class Route(Base):
    __tablename__ = "routes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    origin_id: Mapped[int] = mapped_column(ForeignKey("locations.id"))
    destination_id: Mapped[int] = mapped_column(ForeignKey("locations.id"))
    estimated_duration: Mapped[int] = mapped_column(Integer)  # minutes
    active: Mapped[bool] = mapped_column(Boolean, default=True)

    origin: Mapped[Location] = relationship(foreign_keys=[origin_id])
    destination: Mapped[Location] = relationship(foreign_keys=[destination_id])


class RouteSchedule(Base):
    """Recurring timetable entry a dated Schedule is instantiated from."""
    __tablename__ = "route_schedules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    route_id: Mapped[int] = mapped_column(ForeignKey("routes.id"), index=True)
    operating_days: Mapped[list[str]] = mapped_column(JSON, default=list)  # ["monday", ...]
    departure_time: Mapped[time] = mapped_column(Time)
    estimated_arrival_time: Mapped[time] = mapped_column(Time)
    season_start: Mapped[date | None] = mapped_column(Date, nullable=True)
    season_end: Mapped[date | None] = mapped_column(Date, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True)

    route: Mapped[Route] = relationship()
