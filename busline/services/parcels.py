import logging
import random
import string

from sqlalchemy import select
from sqlalchemy.orm import Session

from busline.core.exceptions import ConflictError, ValidationError
from busline.db.gateway import atomic, get_or_404, lock_or_404
from busline.models.enums import ParcelStatus
from busline.models.location import Location
from busline.models.parcel import Parcel, ParcelStatusUpdate
from busline.models.people import Customer, Profile
from busline.models.schedule import Schedule
from busline.schemas.parcel import ParcelCreate, ParcelStatusChange
from busline.services.booking import ensure_bookable

logger = logging.getLogger(__name__)

PARCEL_TRANSITIONS: dict[ParcelStatus, set[ParcelStatus]] = {
    ParcelStatus.RECEIVED: {ParcelStatus.IN_TRANSIT, ParcelStatus.CANCELLED},
    ParcelStatus.IN_TRANSIT: {ParcelStatus.DELIVERED, ParcelStatus.CANCELLED},
    ParcelStatus.DELIVERED: set(),
    ParcelStatus.CANCELLED: set(),
}


def _gen_tracking_number() -> str:
    return "P" + "".join(random.choices(string.ascii_uppercase + string.digits, k=9))


def _tracking_taken(db: Session, tracking_number: str) -> bool:
    return db.execute(
        select(Parcel.id).where(Parcel.tracking_number == tracking_number)
    ).first() is not None


def create_parcel(db: Session, schedule_id: int, body: ParcelCreate, caller: Profile | None = None) -> Parcel:
    if not PARCEL_TRANSITIONS[body.status]:
        raise ValidationError(f"A parcel cannot be registered as {body.status.value}")
    with atomic(db, "Tracking number already exists"):
        schedule = lock_or_404(db, Schedule, schedule_id, "Schedule")
        ensure_bookable(schedule, "parcel")
        get_or_404(db, Customer, body.sender_id, "Sender")
        get_or_404(db, Customer, body.receiver_id, "Receiver")

        tracking = body.tracking_number.strip().upper() if body.tracking_number else None
        if tracking:
            if _tracking_taken(db, tracking):
                raise ConflictError("Tracking number already exists")
        else:
            tracking = _gen_tracking_number()
            while _tracking_taken(db, tracking):
                tracking = _gen_tracking_number()

        parcel = Parcel(
            tracking_number=tracking,
            schedule_id=schedule.id,
            sender_id=body.sender_id,
            receiver_id=body.receiver_id,
            weight=body.weight,
            dimensions=body.dimensions,
            declared_value=body.declared_value,
            price=body.price,
            status=body.status,
            notes=body.notes,
        )
        db.add(parcel)
        db.flush()
        db.add(ParcelStatusUpdate(
            parcel_id=parcel.id,
            status=parcel.status,
            notes="Parcel registered",
            updated_by=caller.id if caller else None,
        ))
    logger.info("Parcel %s (%s) registered on schedule %s", parcel.id, parcel.tracking_number, schedule.id)
    return parcel


def change_parcel_status(db: Session, parcel_id: int, body: ParcelStatusChange,
                         caller: Profile | None = None) -> tuple[Parcel, ParcelStatusUpdate]:
    with atomic(db):
        parcel = lock_or_404(db, Parcel, parcel_id, "Parcel")
        if body.status not in PARCEL_TRANSITIONS[parcel.status]:
            raise ConflictError(
                f"Invalid parcel status transition from {parcel.status.value} to {body.status.value}"
            )
        if body.location_id is not None:
            get_or_404(db, Location, body.location_id, "Location")
        parcel.status = body.status
        update = ParcelStatusUpdate(
            parcel_id=parcel.id,
            status=body.status,
            location_id=body.location_id,
            notes=body.notes,
            updated_by=caller.id if caller else None,
        )
        db.add(update)
    logger.info("Parcel %s -> %s", parcel.id, parcel.status.value)
    return parcel, update
