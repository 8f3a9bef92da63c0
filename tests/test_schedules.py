from datetime import date

from busline.db.session import SessionLocal
from busline.models.enums import AssignmentStatus, BusLogType, MaintenanceStatus, Weekday
from busline.models.fleet import Bus
from busline.models.route import RouteSchedule
from busline.models.schedule import BusAssignment, BusLog, Schedule

DAY = date(2099, 3, 2)


def new_schedule(client, world, headers, **overrides):
    body = {
        "routeScheduleId": world.route_schedule_id,
        "busId": world.bus_id,
        "primaryDriverId": world.driver_id,
        "departureDate": DAY.isoformat(),
        "price": 45,
        **overrides,
    }
    return client.post("/schedules", json=body, headers=headers)


def set_status(client, headers, schedule_id, status, **extra):
    return client.patch(f"/schedules/{schedule_id}/status", json={"status": status, **extra}, headers=headers)


def logs(schedule_id):
    db = SessionLocal()
    try:
        return [log.type for log in db.query(BusLog).filter(BusLog.schedule_id == schedule_id).order_by(BusLog.id)]
    finally:
        db.close()


def assignment_statuses(schedule_id):
    db = SessionLocal()
    try:
        rows = db.query(BusAssignment).filter(BusAssignment.schedule_id == schedule_id).order_by(BusAssignment.id)
        return [a.status for a in rows]
    finally:
        db.close()


def test_create_schedule_uses_route_schedule_times(client, world, as_user):
    r = new_schedule(client, world, as_user("desk"), secondaryDriverId=world.driver2_id)
    assert r.status_code == 201, r.text
    data = r.json()
    assert data["departure_date"] == "2099-03-02T08:00:00"
    assert data["estimated_arrival_time"] == "2099-03-02T11:30:00"
    assert data["status"] == "scheduled"
    assert data["route_id"] == world.route_id
    assert logs(data["id"]) == [BusLogType.SCHEDULE_CREATED]
    assert assignment_statuses(data["id"]) == [AssignmentStatus.ACTIVE]


def test_overnight_arrival_rolls_to_next_day(client, world, as_user):
    r = new_schedule(client, world, as_user("desk"), departureTime="22:00:00")
    assert r.status_code == 201, r.text
    # 11:30 is before 22:00, so the arrival is on the following day
    assert r.json()["estimated_arrival_time"] == "2099-03-03T11:30:00"


def test_create_schedule_rejects_days_off_and_seasons(client, world, as_user):
    weekday = list(Weekday)[DAY.weekday()]
    db = SessionLocal()
    rs = db.get(RouteSchedule, world.route_schedule_id)
    rs.operating_days = [d.value for d in Weekday if d != weekday]
    db.commit()
    db.close()

    r = new_schedule(client, world, as_user("desk"))
    assert r.status_code == 400
    assert weekday.value in r.json()["error"]

    db = SessionLocal()
    rs = db.get(RouteSchedule, world.route_schedule_id)
    rs.operating_days = [d.value for d in Weekday]
    rs.season_end = date(2099, 2, 1)
    db.commit()
    db.close()
    assert new_schedule(client, world, as_user("desk")).status_code == 400


def test_create_schedule_checks_bus_and_drivers(client, world, as_user):
    h = as_user("desk")
    assert new_schedule(client, world, h, busId=9999).status_code == 404
    assert new_schedule(client, world, h, primaryDriverId=9999).status_code == 404
    r = new_schedule(client, world, h, secondaryDriverId=world.driver_id)
    assert r.status_code == 400

    db = SessionLocal()
    db.get(Bus, world.bus_id).maintenance_status = MaintenanceStatus.IN_MAINTENANCE
    db.commit()
    db.close()
    r = new_schedule(client, world, h)
    assert r.status_code == 400
    assert "not in service" in r.json()["error"]


def test_sellers_cannot_create_schedules(client, world, as_user):
    assert new_schedule(client, world, as_user("seller")).status_code == 403
    assert new_schedule(client, world, as_user("outsider")).status_code == 403


def test_status_lifecycle_records_times_and_logs(client, world, as_user):
    h = as_user("desk")
    sid = world.schedule_id

    r = set_status(client, h, sid, "in_progress", actualDepartureTime="2099-01-01T08:05:00")
    assert r.status_code == 200, r.text
    assert r.json()["actual_departure_time"] == "2099-01-01T08:05:00"

    assert set_status(client, h, sid, "delayed").status_code == 200
    r = set_status(client, h, sid, "in_progress")
    # the first departure time is kept
    assert r.json()["actual_departure_time"] == "2099-01-01T08:05:00"

    r = set_status(client, h, sid, "completed")
    assert r.status_code == 200
    assert r.json()["actual_arrival_time"] is not None

    assert logs(sid) == [
        BusLogType.DEPARTURE, BusLogType.STATUS_CHANGED,
        BusLogType.STATUS_CHANGED,
        BusLogType.STATUS_CHANGED,
        BusLogType.ARRIVAL, BusLogType.STATUS_CHANGED,
    ]
    assert assignment_statuses(sid) == [AssignmentStatus.COMPLETED]

    db = SessionLocal()
    try:
        departure = db.query(BusLog).filter(BusLog.schedule_id == sid, BusLog.type == BusLogType.DEPARTURE).one()
        assert departure.location_id == world.origin_id
    finally:
        db.close()


def test_invalid_transitions(client, world, as_user):
    h = as_user("desk")
    r = set_status(client, h, world.schedule_id, "completed")
    assert r.status_code == 409
    assert r.json()["error"] == "Invalid status transition from scheduled to completed"

    assert set_status(client, h, world.schedule_id, "cancelled").status_code == 200
    r = set_status(client, h, world.schedule_id, "in_progress")
    assert r.status_code == 409
    assert r.json()["error"] == "Cannot change status of a cancelled schedule"


def test_delete_cancels_and_keeps_the_row(client, world, as_user):
    r = client.delete(f"/schedules/{world.schedule_id}", headers=as_user("boss"))
    assert r.status_code == 200
    assert r.json()["status"] == "cancelled"
    assert assignment_statuses(world.schedule_id) == [AssignmentStatus.CANCELLED]

    db = SessionLocal()
    try:
        assert db.get(Schedule, world.schedule_id) is not None
    finally:
        db.close()

    assert client.delete(f"/schedules/{world.schedule_id}", headers=as_user("desk")).status_code == 403


def test_update_schedule_swaps_bus_until_tickets_are_sold(client, world, as_user):
    h = as_user("desk")
    r = client.patch(f"/schedules/{world.schedule_id}", json={"busId": world.other_bus_id, "price": 60}, headers=h)
    assert r.status_code == 200, r.text
    assert r.json()["bus_id"] == world.other_bus_id
    assert r.json()["price"] == 60.0
    assert assignment_statuses(world.schedule_id) == [AssignmentStatus.CANCELLED, AssignmentStatus.ACTIVE]

    client.post(f"/schedules/{world.schedule_id}/tickets", json={"busSeatId": world.other_seat}, headers=h)
    r = client.patch(f"/schedules/{world.schedule_id}", json={"busId": world.bus_id}, headers=h)
    assert r.status_code == 409


def test_update_ignores_nulls_and_rejects_terminal(client, world, as_user):
    h = as_user("desk")
    r = client.patch(f"/schedules/{world.schedule_id}", json={"price": None}, headers=h)
    assert r.json()["price"] == 50.0

    set_status(client, h, world.schedule_id, "cancelled")
    r = client.patch(f"/schedules/{world.schedule_id}", json={"price": 10}, headers=h)
    assert r.status_code == 409


def test_list_schedules_with_counts_and_scope(client, world, as_user):
    client.post(f"/schedules/{world.schedule_id}/tickets", json={"busSeatId": world.seat_a1}, headers=as_user("seller"))
    world.schedule()

    data = client.get(f"/schedules?route_id={world.route_id}", headers=as_user("seller")).json()
    assert data["total"] == 2
    counts = {item["id"]: item["ticket_count"] for item in data["items"]}
    assert counts[world.schedule_id] == 1

    assert client.get("/schedules", headers=as_user("outsider")).json()["total"] == 0
    assert client.get(f"/schedules/{world.schedule_id}", headers=as_user("outsider")).status_code == 403


def test_passenger_list_and_logs(client, world, as_user):
    h = as_user("seller")
    client.post(f"/schedules/{world.schedule_id}/tickets", json={"busSeatId": world.seat_a2, "customerId": world.customer1_id}, headers=h)
    client.post(f"/schedules/{world.schedule_id}/tickets", json={"busSeatId": world.seat_a1}, headers=h)

    data = client.get(f"/schedules/{world.schedule_id}/passenger-list", headers=h).json()
    assert data["total"] == 2
    assert [p["seat_number"] for p in data["passengers"]] == ["A1", "A2"]
    assert data["passengers"][0]["full_name"] == "Unknown"
    assert data["passengers"][1]["full_name"] == "Carla Quispe"

    set_status(client, as_user("desk"), world.schedule_id, "delayed", notes="road works")
    entries = client.get(f"/schedules/{world.schedule_id}/logs", headers=h).json()
    assert [e["notes"] for e in entries] == ["road works"]


def test_occupancy_logs(client, world, as_user):
    h = as_user("seller")
    url = f"/schedules/{world.schedule_id}/occupancy"
    r = client.post(url, json={"passengerCount": 12, "recordedAt": "2099-01-01T09:00:00", "notes": "Caracollo"}, headers=h)
    assert r.status_code == 201, r.text
    assert r.json()["recorded_by"] is not None
    assert client.post(url, json={"passengerCount": 15, "recordedAt": "2099-01-01T10:00:00"}, headers=h).status_code == 201

    assert client.post(url, json={"notes": "no count"}, headers=h).status_code == 400
    assert client.post(url, json={"passengerCount": -1}, headers=h).status_code == 400
    assert client.post("/schedules/9999/occupancy", json={"passengerCount": 1}, headers=h).status_code == 404

    entries = client.get(url, headers=h).json()
    assert [e["passenger_count"] for e in entries] == [15, 12]
    assert client.get(url, headers=as_user("outsider")).status_code == 403
