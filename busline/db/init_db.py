import logging
from datetime import time

from busline.core.config import settings
from busline.core.security import create_access_token
from busline.db.session import engine, SessionLocal
from busline.models import Base
from busline.models.company import Company
from busline.models.enums import Role, Weekday
from busline.models.fleet import SeatTier
from busline.models.location import Location
from busline.models.people import Profile
from busline.models.route import Route, RouteSchedule

logger = logging.getLogger(__name__)


def create_tables():
    Base.metadata.create_all(bind=engine)


def seed_demo_data():
    """Idempotent dev seed: a superadmin profile, a demo company and one route."""
    db = SessionLocal()
    try:
        user_id = settings.seed_superadmin_user_id or "dev-superadmin"
        admin = db.query(Profile).filter(Profile.user_id == user_id).first()
        if not admin:
            admin = Profile(user_id=user_id, full_name="Superadmin", role=Role.SUPERADMIN)
            db.add(admin)
            db.commit()
            logger.info("Seeded superadmin profile for user %s", user_id)

        company = db.query(Company).filter(Company.name == "Demo Bus Lines").first()
        if not company:
            company = Company(name="Demo Bus Lines")
            db.add(company)
            db.commit()
            db.add(SeatTier(company_id=company.id, name="Standard", base_price=25))
            db.commit()

        if db.query(Route).count() == 0:
            origin = Location(name="Central Terminal", city="La Paz")
            destination = Location(name="South Terminal", city="Oruro")
            db.add_all([origin, destination])
            db.flush()
            route = Route(name="La Paz - Oruro", origin_id=origin.id, destination_id=destination.id, estimated_duration=210)
            db.add(route)
            db.flush()
            db.add(RouteSchedule(
                route_id=route.id,
                operating_days=[d.value for d in Weekday],
                departure_time=time(8, 0),
                estimated_arrival_time=time(11, 30),
            ))
            db.commit()

        if settings.env.lower() in {"dev", "development"}:
            logger.info("Dev token for %s: %s", user_id, create_access_token(user_id))
    finally:
        db.close()
