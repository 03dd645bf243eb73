from gobus.src.db import DriverProfile, OwnerProfile


def test_owner_dashboard_lists_buses_newest_first(client, owner, bus, trip, makeBus):
    spare = makeBus(owner, "KA05MN4321")

    response = client.get("/api/owner/dashboard", headers=owner)
    assert response.status_code == 200
    data = response.json()
    assert data["owner"]["company_name"] == "Kerala Travels"
    assert [b["id"] for b in data["buses"]] == [spare["id"], bus["id"]]
    assert data["buses"][0]["trips"] == []
    assert [t["id"] for t in data["buses"][1]["trips"]] == [trip["id"]]


def test_owner_dashboard_provisions_company(client, owner, session, events):
    session.query(OwnerProfile).delete()
    session.commit()
    events.clear()

    response = client.get("/api/owner/dashboard", headers=owner)
    assert response.status_code == 200
    assert response.json()["owner"]["company_name"] == "Kerala Travels"
    assert response.json()["buses"] == []
    assert len(events) == 1
    assert events[0]["_path"] == "/api/owner/dashboard"

    client.get("/api/owner/dashboard", headers=owner)
    assert len(events) == 1


def test_owner_dashboard_is_private(client, owner, otherOwner, bus):
    response = client.get("/api/owner/dashboard", headers=otherOwner)
    assert response.json()["owner"]["company_name"] == "Rival Travels"
    assert response.json()["buses"] == []


def test_driver_dashboard(client, driver, bus, trip):
    response = client.get("/api/driver/dashboard", headers=driver["headers"])
    assert response.status_code == 200
    data = response.json()
    assert data["driver"]["id"] == driver["id"]
    assert data["driver"]["username"] == driver["username"]
    assert data["driver"]["slot_name"] == "Driver 1"
    assert data["bus"]["ref_number"] == bus["ref_number"]
    assert [t["id"] for t in data["trips"]] == [trip["id"]]

    response = client.get(
        "/api/driver/dashboard",
        headers=driver["headers"],
        params={"driverId": driver["id"]},
    )
    assert response.status_code == 200


def test_driver_dashboard_of_another_slot(client, driver):
    response = client.get(
        "/api/driver/dashboard",
        headers=driver["headers"],
        params={"driverId": driver["id"] + 1},
    )
    assert response.status_code == 403
    assert response.headers["X-Error"] == "NoPermission"


def test_driver_dashboard_without_bus(client, driver, session):
    session.query(DriverProfile).update({DriverProfile.bus_id: None})
    session.commit()

    response = client.get("/api/driver/dashboard", headers=driver["headers"])
    assert response.json()["bus"] is None
    assert response.json()["trips"] == []


def test_driver_dashboard_needs_driver_token(client, owner):
    response = client.get("/api/driver/dashboard", headers=owner)
    assert response.status_code == 401
