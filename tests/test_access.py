from datetime import timedelta

import jwt

from busline.core.security import create_access_token


def test_health_is_public(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_missing_and_invalid_tokens(client, world):
    r = client.get("/profiles/me")
    assert r.status_code == 401
    assert r.json() == {"error": "Authentication required"}

    r = client.get("/profiles/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401

    forged = jwt.encode({"sub": "root"}, "other-secret", algorithm="HS256")
    assert client.get("/profiles/me", headers={"Authorization": f"Bearer {forged}"}).status_code == 401

    expired = create_access_token("root", expires_delta=timedelta(minutes=-5))
    assert client.get("/profiles/me", headers={"Authorization": f"Bearer {expired}"}).status_code == 401


def test_profile_is_required(client, world, as_user):
    r = client.get("/profiles/me", headers=as_user("stranger"))
    assert r.status_code == 403
    assert r.json()["error"] == "No profile is registered for this user"

    r = client.get("/profiles/me", headers=as_user("retired"))
    assert r.status_code == 403
    assert r.json()["error"] == "Profile is inactive"


def test_me_returns_caller(client, world, as_user):
    data = client.get("/profiles/me", headers=as_user("seller")).json()
    assert data["user_id"] == "seller"
    assert data["role"] == "seller"
    assert data["company_id"] == world.company_id


def test_role_guards(client, world, as_user):
    body = {"name": "Cochabamba Terminal", "city": "Cochabamba"}
    r = client.post("/locations", json=body, headers=as_user("seller"))
    assert r.status_code == 403
    assert r.headers["X-Error"] == "Forbidden"
    assert client.post("/locations", json=body, headers=as_user("boss")).status_code == 201


def test_company_isolation(client, world, as_user):
    h = as_user("outsider")
    assert client.get(f"/companies/{world.company_id}", headers=h).status_code == 403
    assert client.get(f"/buses/{world.bus_id}", headers=h).status_code == 403
    assert client.get(f"/schedules/{world.schedule_id}/availability", headers=h).status_code == 403
    r = client.post(f"/schedules/{world.schedule_id}/tickets", json={"busSeatId": world.seat_a1}, headers=h)
    assert r.status_code == 403


def test_profile_management(client, world, as_user):
    boss = as_user("boss")
    r = client.post("/profiles", json={"userId": "new-seller", "fullName": "New Seller", "companyId": world.company_id}, headers=boss)
    assert r.status_code == 201, r.text
    assert r.json()["role"] == "seller"

    r = client.post("/profiles", json={"userId": "new-seller", "fullName": "Again", "companyId": world.company_id}, headers=boss)
    assert r.status_code == 409

    r = client.post("/profiles", json={"userId": "wannabe", "fullName": "W", "role": "superadmin"}, headers=boss)
    assert r.status_code == 403

    r = client.post("/profiles", json={"userId": "nocompany", "fullName": "N", "role": "seller"}, headers=as_user("root"))
    assert r.status_code == 400

    listed = client.get("/profiles", headers=boss).json()
    assert all(p["company_id"] == world.company_id for p in listed["items"])
