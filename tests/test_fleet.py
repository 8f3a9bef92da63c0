def matrix(tier_id, seats, second=None):
    data = {
        "firstFloor": {
            "dimensions": {"rows": 2, "seatsPerRow": 2},
            "seats": [
                {"id": sid, "tierId": tier_id, "row": row, "column": col, "isEmpty": empty}
                for sid, row, col, empty in seats
            ],
        }
    }
    if second:
        data["secondFloor"] = second
    return data


def test_template_seats_are_copied_to_new_bus(client, world, as_user):
    h = as_user("boss")
    layout = matrix(world.tier_id, [("1A", 1, 1, False), ("1B", 1, 2, False), ("AISLE", 2, 1, True), ("2B", 2, 2, False)])
    r = client.post("/bus-templates", json={"companyId": world.company_id, "name": "Coach 2x2", "seatTemplateMatrix": layout}, headers=h)
    assert r.status_code == 201, r.text
    template = r.json()

    r = client.post("/buses", json={"companyId": world.company_id, "templateId": template["id"], "plateNumber": "new-001"}, headers=h)
    assert r.status_code == 201, r.text
    bus = r.json()
    assert bus["plate_number"] == "NEW-001"
    assert [s["floor"] for s in bus["seat_matrix"]["first_floor"]["seats"]] == ["first"] * 4

    seats = client.get(f"/buses/{bus['id']}/seats", headers=h).json()
    assert [s["seat_number"] for s in seats] == ["1A", "1B", "2B"]
    assert all(s["tier_id"] == world.tier_id for s in seats)


def test_template_rejects_foreign_tiers(client, world, as_user):
    r = client.post("/seat-tiers", json={"companyId": world.other_company_id, "name": "VIP", "basePrice": 90}, headers=as_user("root"))
    foreign_tier = r.json()["id"]
    layout = matrix(foreign_tier, [("1A", 1, 1, False)])
    r = client.post("/bus-templates", json={"companyId": world.company_id, "name": "Bad", "seatTemplateMatrix": layout}, headers=as_user("boss"))
    assert r.status_code == 404


def test_duplicate_seat_in_matrix_creates_nothing(client, world, as_user):
    h = as_user("boss")
    layout = matrix(world.tier_id, [("1A", 1, 1, False), ("1A", 1, 2, False)])
    template = client.post("/bus-templates", json={"companyId": world.company_id, "name": "Dup", "seatTemplateMatrix": layout}, headers=h).json()
    r = client.post("/buses", json={"companyId": world.company_id, "templateId": template["id"], "plateNumber": "DUP-1"}, headers=h)
    assert r.status_code == 409
    assert client.get("/buses?plate=DUP", headers=h).json()["total"] == 0


def test_plate_numbers_are_unique(client, world, as_user):
    h = as_user("boss")
    r = client.post("/buses", json={"companyId": world.company_id, "plateNumber": "abc-123"}, headers=h)
    assert r.status_code == 409
    assert r.json()["error"] == "A bus with this plate number already exists"


def test_default_seat_grid(client, world, as_user):
    h = as_user("boss")
    bus = client.post("/buses", json={"companyId": world.company_id, "plateNumber": "GRID-1"}, headers=h).json()

    r = client.post(f"/buses/{bus['id']}/seats/create-default", headers=h)
    assert r.status_code == 201, r.text
    data = r.json()
    assert data["created"] == 40
    numbers = [s["seat_number"] for s in data["seats"]]
    assert numbers[:4] == ["1A", "1B", "1C", "1D"]
    assert numbers[-1] == "10D"

    assert client.post(f"/buses/{bus['id']}/seats/create-default", headers=h).status_code == 409


def test_seat_crud(client, world, as_user):
    h = as_user("boss")
    r = client.post("/bus-seats", json={"busId": world.bus_id, "tierId": world.tier_id, "seatNumber": "a3", "row": 2, "column": 1}, headers=h)
    assert r.status_code == 201, r.text
    seat = r.json()
    assert seat["seat_number"] == "A3"

    assert client.post("/bus-seats", json={"busId": world.bus_id, "tierId": world.tier_id, "seatNumber": "A3"}, headers=h).status_code == 409

    r = client.post("/bus-seats/bulk", json={"busId": world.bus_id, "seats": [
        {"tierId": world.tier_id, "seatNumber": "B1"},
        {"tierId": world.tier_id, "seatNumber": "A1"},
    ]}, headers=h)
    assert r.status_code == 409
    assert r.json()["error"].startswith("Seat #2")

    r = client.patch(f"/bus-seats/{seat['id']}", json={"status": "maintenance"}, headers=as_user("desk"))
    assert r.json()["status"] == "maintenance"

    r = client.delete(f"/bus-seats/{seat['id']}", headers=h)
    assert r.json() == {"id": seat["id"], "deleted": True, "deactivated": False}


def test_seat_with_tickets_is_only_deactivated(client, world, as_user):
    client.post(f"/schedules/{world.schedule_id}/tickets", json={"busSeatId": world.seat_a1}, headers=as_user("seller"))
    r = client.delete(f"/bus-seats/{world.seat_a1}", headers=as_user("boss"))
    assert r.json()["deactivated"] is True
    seats = client.get(f"/buses/{world.bus_id}/seats?is_active=true", headers=as_user("boss")).json()
    assert [s["id"] for s in seats] == [world.seat_a2]


def test_maintenance_and_retirement(client, world, as_user):
    h = as_user("desk")
    r = client.patch(f"/buses/{world.bus_id}/maintenance", json={"maintenanceStatus": "retired"}, headers=h)
    assert r.status_code == 200
    assert r.json()["is_active"] is False

    r = client.patch(f"/buses/{world.bus_id}", json={"isActive": True}, headers=as_user("boss"))
    assert r.status_code == 400


def test_seat_tier_names_are_unique_per_company(client, world, as_user):
    h = as_user("boss")
    r = client.post("/seat-tiers", json={"companyId": world.company_id, "name": "Standard", "basePrice": 10}, headers=h)
    assert r.status_code == 409
    r = client.post("/seat-tiers", json={"companyId": world.company_id, "name": "Sleeper", "basePrice": 80}, headers=h)
    assert r.status_code == 201
    names = [t["name"] for t in client.get("/seat-tiers", headers=h).json()]
    assert sorted(names) == ["Sleeper", "Standard"]


def test_template_seat_numbers_are_normalized(client, world, as_user):
    h = as_user("boss")
    layout = matrix(world.tier_id, [(" a1", 1, 1, False)])
    template = client.post("/bus-templates", json={"companyId": world.company_id, "name": "Mini", "seatTemplateMatrix": layout}, headers=h).json()
    bus = client.post("/buses", json={"companyId": world.company_id, "templateId": template["id"], "plateNumber": "MINI-1"}, headers=h).json()

    assert [s["seat_number"] for s in client.get(f"/buses/{bus['id']}/seats", headers=h).json()] == ["A1"]
    r = client.post("/bus-seats", json={"busId": bus["id"], "tierId": world.tier_id, "seatNumber": "A1"}, headers=h)
    assert r.status_code == 409


def test_availability_stamps_template_matrix(client, world, as_user):
    h = as_user("boss")
    layout = matrix(world.tier_id, [("1A", 1, 1, False), ("AISLE", 1, 2, True), ("1B", 1, 3, False)])
    template = client.post("/bus-templates", json={"companyId": world.company_id, "name": "Aisle", "seatTemplateMatrix": layout}, headers=h).json()
    bus = client.post("/buses", json={"companyId": world.company_id, "templateId": template["id"], "plateNumber": "AIS-1"}, headers=h).json()
    seats = {s["seat_number"]: s["id"] for s in client.get(f"/buses/{bus['id']}/seats", headers=h).json()}

    schedule_id = world.schedule(bus_id=bus["id"])
    client.post(f"/schedules/{schedule_id}/tickets", json={"busSeatId": seats["1B"]}, headers=h)

    data = client.get(f"/schedules/{schedule_id}/availability", headers=h).json()
    first = data["seat_matrix"]["first_floor"]
    assert first["dimensions"] == {"rows": 2, "seats_per_row": 2}
    cells = {c["id"]: c for c in first["seats"]}
    assert cells["1A"]["is_available"] is True
    assert cells["AISLE"]["is_available"] is False
    assert "bus_seat_id" not in cells["AISLE"]
    assert cells["1B"]["is_booked"] is True
    assert cells["1B"]["status"] == "available"
