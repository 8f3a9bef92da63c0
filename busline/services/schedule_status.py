import logging
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.orm import Session

from busline.core.exceptions import ConflictError
from busline.db.gateway import atomic, lock_or_404
from busline.models.enums import AssignmentStatus, BusLogType, ScheduleStatus
from busline.models.people import Profile
from busline.models.route import Route
from busline.models.schedule import BusAssignment, BusLog, Schedule
from busline.schemas.schedule import ScheduleStatusUpdate

logger = logging.getLogger(__name__)

TRANSITIONS: dict[ScheduleStatus, set[ScheduleStatus]] = {
    ScheduleStatus.SCHEDULED: {ScheduleStatus.IN_PROGRESS, ScheduleStatus.DELAYED, ScheduleStatus.CANCELLED},
    ScheduleStatus.IN_PROGRESS: {ScheduleStatus.COMPLETED, ScheduleStatus.DELAYED, ScheduleStatus.CANCELLED},
    ScheduleStatus.DELAYED: {ScheduleStatus.IN_PROGRESS, ScheduleStatus.COMPLETED, ScheduleStatus.CANCELLED},
    ScheduleStatus.COMPLETED: set(),
    ScheduleStatus.CANCELLED: set(),
}
TERMINAL = {s for s, targets in TRANSITIONS.items() if not targets}

ASSIGNMENT_CASCADE = {
    ScheduleStatus.COMPLETED: AssignmentStatus.COMPLETED,
    ScheduleStatus.CANCELLED: AssignmentStatus.CANCELLED,
}


def check_transition(current: ScheduleStatus, target: ScheduleStatus) -> None:
    if current in TERMINAL:
        raise ConflictError(f"Cannot change status of a {current.value} schedule")
    if target not in TRANSITIONS[current]:
        raise ConflictError(f"Invalid status transition from {current.value} to {target.value}")


def write_log(db: Session, schedule: Schedule, type_: BusLogType, caller: Profile | None = None,
              location_id: int | None = None, notes: str | None = None) -> BusLog:
    log = BusLog(
        schedule_id=schedule.id,
        bus_id=schedule.bus_id,
        location_id=location_id,
        profile_id=caller.id if caller else None,
        type=type_,
        notes=notes,
    )
    db.add(log)
    return log


def change_status(db: Session, schedule_id: int, body: ScheduleStatusUpdate, caller: Profile | None = None) -> Schedule:
    """Move a schedule along its lifecycle and apply the transition's side effects.

    Departure/arrival timestamps are only recorded the first time the trip
    enters in_progress/completed; re-entering in_progress after a delay keeps
    the original departure.
    """
    with atomic(db):
        schedule = lock_or_404(db, Schedule, schedule_id, "Schedule")
        previous = schedule.status
        target = body.status
        check_transition(previous, target)

        route = db.get(Route, schedule.route_id)
        now = datetime.utcnow()
        schedule.status = target

        if target == ScheduleStatus.IN_PROGRESS and schedule.actual_departure_time is None:
            schedule.actual_departure_time = body.actual_departure_time or now
            write_log(db, schedule, BusLogType.DEPARTURE, caller,
                      location_id=route.origin_id if route else None, notes=body.notes)
        if target == ScheduleStatus.COMPLETED and schedule.actual_arrival_time is None:
            schedule.actual_arrival_time = body.actual_arrival_time or now
            write_log(db, schedule, BusLogType.ARRIVAL, caller,
                      location_id=route.destination_id if route else None, notes=body.notes)

        if target in ASSIGNMENT_CASCADE:
            db.execute(
                update(BusAssignment)
                .where(BusAssignment.schedule_id == schedule.id)
                .values(status=ASSIGNMENT_CASCADE[target])
            )

        write_log(db, schedule, BusLogType.STATUS_CHANGED, caller,
                  notes=body.notes or f"{previous.value} -> {target.value}")
    logger.info("Schedule %s: %s -> %s", schedule.id, previous.value, target.value)
    return schedule
