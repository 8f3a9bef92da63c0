import os
import tempfile
from datetime import datetime, time, timedelta
from pathlib import Path

_tmpdir = tempfile.mkdtemp(prefix="busline-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{Path(_tmpdir) / 'test.db'}"
os.environ["ENV"] = "test"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["AUTO_CREATE_TABLES"] = "false"

import pytest
from fastapi.testclient import TestClient

from busline.core.security import create_access_token
from busline.db.session import SessionLocal, engine
from busline.main import app
from busline.models import Base
from busline.models.company import Company
from busline.models.enums import Role, ScheduleStatus, Weekday
from busline.models.fleet import Bus, BusSeat, SeatTier
from busline.models.location import Location
from busline.models.people import Customer, Driver, Profile
from busline.models.route import Route, RouteSchedule
from busline.models.schedule import BusAssignment, Schedule


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def client():
    return TestClient(app)


def auth(user_id: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


class World:
    """Ids of a small seeded network: one company, one route, one bus with seats A1 and A2."""

    def __init__(self):
        db = SessionLocal()
        try:
            company = Company(name="Andes Express")
            other = Company(name="Rival Lines")
            db.add_all([company, other])
            db.flush()
            self.company_id, self.other_company_id = company.id, other.id

            profiles = [
                Profile(user_id="root", full_name="Root", role=Role.SUPERADMIN),
                Profile(user_id="boss", full_name="Boss", role=Role.COMPANY_ADMIN, company_id=company.id),
                Profile(user_id="desk", full_name="Desk", role=Role.BRANCH_ADMIN, company_id=company.id),
                Profile(user_id="seller", full_name="Seller", role=Role.SELLER, company_id=company.id),
                Profile(user_id="outsider", full_name="Outsider", role=Role.COMPANY_ADMIN, company_id=other.id),
                Profile(user_id="retired", full_name="Retired", role=Role.SELLER, company_id=company.id, active=False),
            ]
            db.add_all(profiles)

            origin = Location(name="La Paz Terminal", city="La Paz")
            destination = Location(name="Oruro Terminal", city="Oruro")
            db.add_all([origin, destination])
            db.flush()
            self.origin_id, self.destination_id = origin.id, destination.id

            route = Route(name="La Paz - Oruro", origin_id=origin.id, destination_id=destination.id, estimated_duration=210)
            db.add(route)
            db.flush()
            self.route_id = route.id
            rs = RouteSchedule(
                route_id=route.id,
                operating_days=[d.value for d in Weekday],
                departure_time=time(8, 0),
                estimated_arrival_time=time(11, 30),
            )
            db.add(rs)

            tier = SeatTier(company_id=company.id, name="Standard", base_price=30)
            db.add(tier)
            db.flush()
            self.route_schedule_id, self.tier_id = rs.id, tier.id

            self.bus_id, (self.seat_a1, self.seat_a2) = self._bus(db, "ABC-123", ["A1", "A2"])
            self.other_bus_id, (self.other_seat,) = self._bus(db, "XYZ-999", ["B1"])

            driver = Driver(company_id=company.id, full_name="Juan Perez", document_id="D-1", license_number="L-1")
            driver2 = Driver(company_id=company.id, full_name="Ana Rojas", document_id="D-2", license_number="L-2")
            db.add_all([driver, driver2])
            c1 = Customer(full_name="Carla Quispe", document_id="C-1")
            c2 = Customer(full_name="Mario Flores", document_id="C-2")
            db.add_all([c1, c2])
            db.flush()
            self.driver_id, self.driver2_id = driver.id, driver2.id
            self.customer1_id, self.customer2_id = c1.id, c2.id
            db.commit()
        finally:
            db.close()
        self.schedule_id = self.schedule()

    def _bus(self, db, plate: str, numbers: list[str]):
        bus = Bus(company_id=self.company_id, plate_number=plate)
        db.add(bus)
        db.flush()
        seats = [
            BusSeat(bus_id=bus.id, tier_id=self.tier_id, seat_number=n, row=1, column=i)
            for i, n in enumerate(numbers, start=1)
        ]
        db.add_all(seats)
        db.flush()
        return bus.id, [s.id for s in seats]

    def schedule(self, bus_id: int | None = None, status: ScheduleStatus = ScheduleStatus.SCHEDULED, price: float = 50) -> int:
        db = SessionLocal()
        try:
            departure = datetime(2099, 1, 1, 8, 0) + timedelta(days=db.query(Schedule).count())
            schedule = Schedule(
                route_schedule_id=self.route_schedule_id,
                route_id=self.route_id,
                bus_id=bus_id or self.bus_id,
                primary_driver_id=self.driver_id,
                departure_date=departure,
                estimated_arrival_time=departure + timedelta(hours=3, minutes=30),
                price=price,
                status=status,
            )
            db.add(schedule)
            db.flush()
            db.add(BusAssignment(bus_id=schedule.bus_id, schedule_id=schedule.id))
            db.commit()
            return schedule.id
        finally:
            db.close()


@pytest.fixture
def world() -> World:
    return World()


@pytest.fixture
def as_user():
    return auth
