from busline.db.session import SessionLocal
from busline.models.company import Company


def test_company_lifecycle(client, world, as_user):
    root = as_user("root")
    r = client.post("/companies", json={"name": "  Altiplano Tours ", "taxId": "123"}, headers=root)
    assert r.status_code == 201, r.text
    company = r.json()
    assert company["name"] == "Altiplano Tours"

    assert client.post("/companies", json={"name": "Altiplano Tours"}, headers=root).status_code == 409
    assert client.post("/companies", json={"name": "Nope"}, headers=as_user("boss")).status_code == 403

    r = client.patch(f"/companies/{company['id']}/deactivate", headers=root)
    assert r.status_code == 200
    assert r.json()["active"] is False


def test_company_with_active_resources_cannot_be_deactivated(client, world, as_user):
    r = client.patch(f"/companies/{world.company_id}/deactivate", headers=as_user("root"))
    assert r.status_code == 409
    message = r.json()["error"]
    assert "active buses" in message
    assert "active drivers" in message


def test_companies_list_is_scoped(client, world, as_user):
    assert client.get("/companies", headers=as_user("root")).json()["total"] == 2
    items = client.get("/companies", headers=as_user("seller")).json()["items"]
    assert [c["id"] for c in items] == [world.company_id]


def test_branches(client, world, as_user):
    h = as_user("boss")
    r = client.post(f"/companies/{world.company_id}/branches", json={"name": "Central", "locationId": world.origin_id}, headers=h)
    assert r.status_code == 201, r.text
    branch = r.json()

    r = client.patch(f"/branches/{branch['id']}", json={"address": "Av. Peru 100"}, headers=h)
    assert r.json()["address"] == "Av. Peru 100"

    listed = client.get(f"/companies/{world.company_id}/branches", headers=as_user("seller")).json()
    assert [b["name"] for b in listed] == ["Central"]
    assert client.post(f"/companies/{world.company_id}/branches", json={"name": "X"}, headers=as_user("outsider")).status_code == 403


def test_locations(client, world, as_user):
    h = as_user("boss")
    loc = client.post("/locations", json={"name": "Potosi Terminal", "city": "Potosi"}, headers=h).json()
    assert [l["id"] for l in client.get("/locations?search=potosi", headers=h).json()] == [loc["id"]]

    assert client.patch(f"/locations/{loc['id']}/deactivate", headers=h).json()["active"] is False
    r = client.patch(f"/locations/{world.origin_id}/deactivate", headers=h)
    assert r.status_code == 409


def test_routes_and_route_schedules(client, world, as_user):
    h = as_user("boss")
    r = client.post("/routes", json={"name": "Loop", "originId": world.origin_id, "destinationId": world.origin_id, "estimatedDuration": 60}, headers=h)
    assert r.status_code == 400
    assert r.json()["error"] == "Origin and destination must be different"

    r = client.post("/routes", json={"name": "Oruro - La Paz", "originId": world.destination_id, "destinationId": world.origin_id, "estimatedDuration": 200}, headers=h)
    assert r.status_code == 201, r.text
    route = r.json()
    assert route["origin"]["city"] == "Oruro"

    r = client.post("/route-schedules", json={
        "routeId": route["id"],
        "operatingDays": ["monday", "friday", "monday"],
        "departureTime": "06:30:00",
        "estimatedArrivalTime": "09:50:00",
    }, headers=h)
    assert r.status_code == 201, r.text
    assert r.json()["operating_days"] == ["monday", "friday"]

    r = client.post("/route-schedules", json={
        "routeId": route["id"],
        "operatingDays": ["sunday"],
        "departureTime": "06:30:00",
        "estimatedArrivalTime": "09:50:00",
        "seasonStart": "2099-06-01",
        "seasonEnd": "2099-05-01",
    }, headers=h)
    assert r.status_code == 400

    r = client.post("/route-schedules", json={"routeId": route["id"], "operatingDays": ["funday"],
                                              "departureTime": "06:30:00", "estimatedArrivalTime": "09:50:00"}, headers=h)
    assert r.status_code == 400

    listed = client.get(f"/route-schedules?route_id={route['id']}", headers=h).json()
    assert len(listed) == 1


def test_drivers(client, world, as_user):
    h = as_user("boss")
    body = {"companyId": world.company_id, "fullName": "Pedro Mita", "documentId": "D-1", "licenseNumber": "L-9"}
    assert client.post("/drivers", json=body, headers=h).status_code == 409

    body["documentId"] = "D-9"
    driver = client.post("/drivers", json=body, headers=h).json()
    assert driver["active"] is True
    assert client.get(f"/drivers/{driver['id']}", headers=as_user("outsider")).status_code == 403
    assert len(client.get("/drivers?search=mita", headers=h).json()) == 1

    r = client.patch(f"/drivers/{driver['id']}", json={"active": False}, headers=h)
    assert r.json()["active"] is False


def test_customers(client, world, as_user):
    h = as_user("seller")
    r = client.post("/customers", json={"fullName": "Rosa Choque", "documentId": "C-1"}, headers=h)
    assert r.status_code == 409

    r = client.post("/customers", json={"fullName": "Rosa Choque", "documentId": "C-3", "email": "rosa@example.com"}, headers=h)
    assert r.status_code == 201
    found = client.get("/customers?search=choque", headers=h).json()
    assert found["total"] == 1
    assert found["items"][0]["email"] == "rosa@example.com"


def test_driver_assign_company(client, world, as_user):
    url = f"/drivers/{world.driver2_id}/assign-company"
    assert client.patch(url, json={"companyId": world.other_company_id}, headers=as_user("boss")).status_code == 403
    assert client.patch(url, json={"companyId": 9999}, headers=as_user("root")).status_code == 404

    r = client.patch(url, json={"companyId": world.other_company_id}, headers=as_user("root"))
    assert r.status_code == 200, r.text
    assert r.json()["company_id"] == world.other_company_id
    assert client.get(f"/drivers/{world.driver2_id}", headers=as_user("outsider")).status_code == 200
    assert client.patch(url, json={"companyId": world.company_id}, headers=as_user("seller")).status_code == 403


def test_driver_cannot_move_to_inactive_company(client, world, as_user):
    db = SessionLocal()
    db.get(Company, world.other_company_id).active = False
    db.commit()
    db.close()

    r = client.patch(f"/drivers/{world.driver2_id}/assign-company", json={"companyId": world.other_company_id}, headers=as_user("root"))
    assert r.status_code == 400
    assert client.get(f"/drivers/{world.driver2_id}", headers=as_user("boss")).json()["company_id"] == world.company_id
