from fastapi.testclient import TestClient

from tourbooking import models


def create_booking(client: TestClient, headers: dict, package_id: int, travel_date, participants: int = 1) -> dict:
    response = client.post("/bookings/", json={
        "package_id": package_id,
        "travel_date": str(travel_date),
        "participants": participants,
        "payment_method": "cbe_birr",
    }, headers=headers)
    assert response.status_code == 201
    return response.json()


def test_admin_routes_need_admin_role(client: TestClient, auth_headers):
    assert client.get("/admin/stats", headers=auth_headers).status_code == 403
    assert client.get("/admin/bookings", headers=auth_headers).status_code == 403


def test_admin_routes_need_token(client: TestClient):
    assert client.get("/admin/stats").status_code in (401, 403)


def test_system_admin_is_admin(client: TestClient, make_auth_headers, db_session):
    db_session.add(models.UserProfile(id="root", full_name="Root", role=models.UserRole.SYSTEM_ADMIN))
    db_session.commit()

    assert client.get("/admin/stats", headers=make_auth_headers("root")).status_code == 200


def test_dashboard_stats(client: TestClient, auth_headers, admin_headers, package, future_date):
    create_booking(client, auth_headers, package.id, future_date, participants=2)
    create_booking(client, auth_headers, package.id, future_date, participants=1)

    response = client.get("/admin/stats", headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == {
        "total_bookings": 2,
        "total_revenue": 30000,
        "total_packages": 1,
        "total_users": 2,
        "confirmed_bookings": 2,
        "pending_bookings": 0,
    }


def test_recent_bookings(client: TestClient, auth_headers, admin_headers, package, future_date):
    created = create_booking(client, auth_headers, package.id, future_date)

    response = client.get("/admin/bookings", headers=admin_headers)

    assert response.status_code == 200
    data = response.json()
    assert data[0]["id"] == created["id"]
    assert data[0]["user"]["full_name"] == "Abebe Kebede"
    assert data[0]["package"]["title"] == "Simien Trek"


def test_update_booking_status(client: TestClient, auth_headers, admin_headers, package, future_date, db_session):
    created = create_booking(client, auth_headers, package.id, future_date, participants=2)

    response = client.patch(
        f"/admin/bookings/{created['id']}/status", json={"status": "completed"}, headers=admin_headers
    )

    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    db_session.expire_all()
    assert db_session.get(models.Package, package.id).available_slots == 3


def test_update_booking_status_illegal_transition(client: TestClient, auth_headers, admin_headers, package, future_date):
    created = create_booking(client, auth_headers, package.id, future_date)

    response = client.patch(
        f"/admin/bookings/{created['id']}/status", json={"status": "pending"}, headers=admin_headers
    )

    assert response.status_code == 409
    assert "confirmed -> pending" in response.json()["detail"]


def test_update_booking_status_unknown_booking(client: TestClient, admin_headers):
    response = client.patch("/admin/bookings/999/status", json={"status": "cancelled"}, headers=admin_headers)

    assert response.status_code == 404


def test_toggle_package_active(client: TestClient, admin_headers, package, redis_client):
    response = client.patch(f"/admin/packages/{package.id}/toggle-active", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["active"] is False
    assert client.get(f"/packages/{package.id}").status_code == 404
    redis_client.delete.assert_called_once_with(f"package_{package.id}", "all_packages", "featured_packages")

    response = client.patch(f"/admin/packages/{package.id}/toggle-active", headers=admin_headers)
    assert response.json()["active"] is True


def test_toggle_unknown_package(client: TestClient, admin_headers):
    response = client.patch("/admin/packages/999/toggle-active", headers=admin_headers)

    assert response.status_code == 404


def test_stats_with_no_data(client: TestClient, admin_headers):
    response = client.get("/admin/stats", headers=admin_headers)

    assert response.json()["total_revenue"] == 0
    assert response.json()["total_users"] == 1
