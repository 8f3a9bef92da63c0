import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from busline.core.exceptions import ConflictError, InvalidStateError, ValidationError
from busline.db.gateway import atomic, count_where, get_or_404, lock_or_404
from busline.models.enums import AssignmentStatus, BusLogType, MaintenanceStatus, TicketStatus, Weekday
from busline.models.fleet import Bus
from busline.models.people import Driver, Profile
from busline.models.route import RouteSchedule
from busline.models.schedule import BusAssignment, Schedule
from busline.models.ticket import Ticket
from busline.schemas.schedule import ScheduleCreate, ScheduleUpdate
from busline.services.schedule_status import TERMINAL, write_log

logger = logging.getLogger(__name__)

WEEKDAYS = list(Weekday)


def _check_bus(db: Session, bus_id: int) -> Bus:
    bus = get_or_404(db, Bus, bus_id, "Bus")
    if not bus.is_active or bus.maintenance_status != MaintenanceStatus.ACTIVE:
        raise InvalidStateError(f"Bus {bus.plate_number} is not in service")
    return bus


def _check_drivers(db: Session, bus: Bus, primary_id: int, secondary_id: int | None) -> None:
    if secondary_id is not None and secondary_id == primary_id:
        raise ValidationError("Primary and secondary driver must be different")
    for label, driver_id in (("Primary driver", primary_id), ("Secondary driver", secondary_id)):
        if driver_id is None:
            continue
        driver = get_or_404(db, Driver, driver_id, label)
        if not driver.active:
            raise InvalidStateError(f"{label} is inactive")
        if driver.company_id != bus.company_id:
            raise InvalidStateError(f"{label} does not work for the bus company")


def create_schedule(db: Session, body: ScheduleCreate, caller: Profile | None = None) -> Schedule:
    """Instantiate a route-schedule for one date.

    Departure and arrival default to the route-schedule's times on that date;
    an arrival time earlier than the departure time lands on the next day.
    """
    rs = get_or_404(db, RouteSchedule, body.route_schedule_id, "Route schedule")
    if not rs.active:
        raise InvalidStateError("Route schedule is inactive")
    day = body.departure_date
    if rs.operating_days and WEEKDAYS[day.weekday()].value not in rs.operating_days:
        raise ValidationError(f"Route schedule does not operate on {WEEKDAYS[day.weekday()].value}")
    if (rs.season_start and day < rs.season_start) or (rs.season_end and day > rs.season_end):
        raise ValidationError("Departure date is outside the route schedule's season")

    bus = _check_bus(db, body.bus_id)
    _check_drivers(db, bus, body.primary_driver_id, body.secondary_driver_id)

    departure = datetime.combine(day, body.departure_time or rs.departure_time)
    arrival = body.estimated_arrival_time
    if arrival is None:
        arrival = datetime.combine(day, rs.estimated_arrival_time)
        if arrival < departure:
            arrival += timedelta(days=1)
    if arrival < departure:
        raise ValidationError("Estimated arrival must be after departure")

    with atomic(db):
        schedule = Schedule(
            route_schedule_id=rs.id,
            route_id=rs.route_id,
            bus_id=bus.id,
            primary_driver_id=body.primary_driver_id,
            secondary_driver_id=body.secondary_driver_id,
            departure_date=departure,
            estimated_arrival_time=arrival,
            price=body.price,
        )
        db.add(schedule)
        db.flush()
        db.add(BusAssignment(bus_id=bus.id, schedule_id=schedule.id, status=AssignmentStatus.ACTIVE))
        write_log(db, schedule, BusLogType.SCHEDULE_CREATED, caller, notes=f"Departure {departure.isoformat()}")
    logger.info("Schedule %s created: route_schedule=%s bus=%s departure=%s", schedule.id, rs.id, bus.id, departure)
    return schedule


def update_schedule(db: Session, schedule_id: int, body: ScheduleUpdate, caller: Profile | None = None) -> Schedule:
    data = body.model_dump(exclude_unset=True, exclude_none=True)
    with atomic(db):
        schedule = lock_or_404(db, Schedule, schedule_id, "Schedule")
        if schedule.status in TERMINAL:
            raise ConflictError(f"Cannot modify a {schedule.status.value} schedule")
        bus = db.get(Bus, schedule.bus_id)
        if "bus_id" in data and data["bus_id"] != schedule.bus_id:
            sold = count_where(db, Ticket, Ticket.schedule_id == schedule.id, Ticket.status == TicketStatus.ACTIVE)
            if sold:
                raise ConflictError("Cannot change the bus of a schedule with active tickets")
            bus = _check_bus(db, data["bus_id"])
        if "primary_driver_id" in data or "secondary_driver_id" in data or "bus_id" in data:
            _check_drivers(
                db, bus,
                data.get("primary_driver_id", schedule.primary_driver_id),
                data.get("secondary_driver_id", schedule.secondary_driver_id),
            )
        departure = data.get("departure_date", schedule.departure_date)
        arrival = data.get("estimated_arrival_time", schedule.estimated_arrival_time)
        if arrival < departure:
            raise ValidationError("Estimated arrival must be after departure")

        if data.get("bus_id", schedule.bus_id) != schedule.bus_id:
            db.query(BusAssignment).filter(
                BusAssignment.schedule_id == schedule.id, BusAssignment.status == AssignmentStatus.ACTIVE
            ).update({BusAssignment.status: AssignmentStatus.CANCELLED}, synchronize_session=False)
            db.add(BusAssignment(bus_id=data["bus_id"], schedule_id=schedule.id, status=AssignmentStatus.ACTIVE))
        for field, value in data.items():
            setattr(schedule, field, value)
        write_log(db, schedule, BusLogType.SCHEDULE_UPDATED, caller, notes="Updated: " + ", ".join(sorted(data)))
    logger.info("Schedule %s updated: %s", schedule.id, sorted(data))
    return schedule
