from sqlalchemy import String, Integer, ForeignKey, DateTime, Numeric, Index, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime

from busline.models.base import Base, str_enum
from busline.models.enums import TicketStatus
from busline.models.fleet import BusSeat
from busline.models.people import Customer

ACTIVE_ONLY = text("status = 'active'")

class Ticket(Base):
    __tablename__ = "tickets"
    # At most one active ticket per (schedule, seat); cancelled/used rows may pile up.
    __table_args__ = (
        Index(
            "uq_tickets_active_seat",
            "schedule_id",
            "bus_seat_id",
            unique=True,
            postgresql_where=ACTIVE_ONLY,
            sqlite_where=ACTIVE_ONLY,
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    schedule_id: Mapped[int] = mapped_column(ForeignKey("schedules.id"), index=True)
    bus_seat_id: Mapped[int] = mapped_column(ForeignKey("bus_seats.id"), index=True)
    customer_id: Mapped[int | None] = mapped_column(ForeignKey("customers.id"), nullable=True, index=True)
    purchased_by: Mapped[int | None] = mapped_column(ForeignKey("profiles.id"), nullable=True)
    price: Mapped[float] = mapped_column(Numeric(10, 2))
    status: Mapped[TicketStatus] = mapped_column(str_enum(TicketStatus, 16), default=TicketStatus.ACTIVE)
    notes: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    purchased_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    bus_seat: Mapped[BusSeat] = relationship()
    customer: Mapped[Customer | None] = relationship()


class TicketCancellation(Base):
    __tablename__ = "ticket_cancellations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(ForeignKey("tickets.id"), index=True)
    reason: Mapped[str] = mapped_column(String(1024))
    cancelled_by: Mapped[int | None] = mapped_column(ForeignKey("profiles.id"), nullable=True)
    cancelled_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class TicketReassignment(Base):
    __tablename__ = "ticket_reassignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ticket_id: Mapped[int] = mapped_column(ForeignKey("tickets.id"), index=True)
    old_schedule_id: Mapped[int] = mapped_column(ForeignKey("schedules.id"))
    new_schedule_id: Mapped[int] = mapped_column(ForeignKey("schedules.id"))
    old_bus_seat_id: Mapped[int] = mapped_column(ForeignKey("bus_seats.id"))
    new_bus_seat_id: Mapped[int] = mapped_column(ForeignKey("bus_seats.id"))
    reason: Mapped[str] = mapped_column(String(1024))
    reassigned_by: Mapped[int | None] = mapped_column(ForeignKey("profiles.id"), nullable=True)
    reassigned_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
