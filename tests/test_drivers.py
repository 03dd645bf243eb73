import re

from gobus.src.db import DriverProfile, Profile
from gobus.src.credentials import encodePassword


def createDrivers(client, owner, count=1, action=1):
    response = client.post(
        "/api/owner/drivers", headers=owner, json={"action": action, "count": count}
    )
    assert response.status_code == 201
    return response.json()


def test_bulk_create_returns_credentials_once(client, owner, bus):
    data = createDrivers(client, owner, count=3)

    assert [d["slot_name"] for d in data["drivers"]] == [
        "Driver 1",
        "Driver 2",
        "Driver 3",
    ]
    assert [c["username"] for c in data["credentials"]] == [
        "D11234",
        "D21234",
        "D31234",
    ]
    for credential in data["credentials"]:
        assert re.fullmatch(r"[1-9][0-9]{3}", credential["password"])
    assert all("password_hash" not in d for d in data["drivers"])

    listing = client.get("/api/owner/drivers", headers=owner).json()
    assert "credentials" not in listing
    assert all("password_hash" not in d for d in listing["drivers"])


def test_create_one_ignores_count(client, owner, bus):
    data = createDrivers(client, owner, count=5, action=2)
    assert len(data["drivers"]) == 1


def test_numbering_continues_from_latest_slot(client, owner, bus):
    data = createDrivers(client, owner, count=5)
    second = data["drivers"][1]["id"]
    response = client.delete(
        "/api/owner/drivers", headers=owner, params={"id": second}
    )
    assert response.status_code == 200
    assert response.json() == {"success": True}

    response = client.get("/api/owner/drivers/next", headers=owner)
    assert response.json() == {"slot_name": "Driver 6"}

    createDrivers(client, owner)
    data = createDrivers(client, owner, count=3)
    assert [c["username"] for c in data["credentials"]] == [
        "D71234",
        "D81234",
        "D91234",
    ]


def test_delete_last_slot(client, owner, bus):
    createDrivers(client, owner, count=2)
    response = client.delete(
        "/api/owner/drivers", headers=owner, params={"last": "true"}
    )
    assert response.status_code == 200

    drivers = client.get("/api/owner/drivers", headers=owner).json()["drivers"]
    assert [d["slot_name"] for d in drivers] == ["Driver 1"]
    response = client.get("/api/owner/drivers/next", headers=owner)
    assert response.json() == {"slot_name": "Driver 2"}


def test_delete_needs_id_or_last(client, owner):
    response = client.delete("/api/owner/drivers", headers=owner)
    assert response.status_code == 400
    assert response.headers["X-Error"] == "MissingParameter"

    response = client.delete(
        "/api/owner/drivers", headers=owner, params={"last": "true"}
    )
    assert response.status_code == 404


def test_owner_without_bus_gets_random_suffix(client, owner):
    data = createDrivers(client, owner, count=2)
    first, second = [c["username"] for c in data["credentials"]]
    assert re.fullmatch(r"D1[0-9]{4}", first)
    assert second == "D2" + first[2:]


def test_assign_and_unassign_bus(client, owner, bus, makeBus):
    spare = makeBus(owner, "KA05MN4321")
    driverId = createDrivers(client, owner)["drivers"][0]["id"]

    unassigned = client.get("/api/owner/drivers/unassigned_bus", headers=owner).json()
    assert sorted(b["id"] for b in unassigned) == sorted([bus["id"], spare["id"]])

    response = client.put(
        "/api/owner/drivers",
        headers=owner,
        json={"id": driverId, "bus_id": bus["id"], "name": "Ravi", "remarks": "Day"},
    )
    assert response.status_code == 200
    assert response.json()["bus_id"] == bus["id"]
    assert response.json()["name"] == "Ravi"

    listing = client.get("/api/owner/drivers", headers=owner).json()
    assert listing["drivers"][0]["bus"]["id"] == bus["id"]
    assert len(listing["buses"]) == 2
    unassigned = client.get("/api/owner/drivers/unassigned_bus", headers=owner).json()
    assert [b["id"] for b in unassigned] == [spare["id"]]

    response = client.put(
        "/api/owner/drivers", headers=owner, json={"id": driverId, "bus_id": None}
    )
    assert response.json()["bus_id"] is None
    assert response.json()["name"] == "Ravi"


def test_cannot_assign_bus_of_another_owner(client, owner, otherOwner, bus, makeBus):
    foreignBus = makeBus(otherOwner, "TN09XY0001")
    driverId = createDrivers(client, owner)["drivers"][0]["id"]
    response = client.put(
        "/api/owner/drivers",
        headers=owner,
        json={"id": driverId, "bus_id": foreignBus["id"]},
    )
    assert response.status_code == 404

    response = client.put(
        "/api/owner/drivers", headers=otherOwner, json={"id": driverId, "name": "X"}
    )
    assert response.status_code == 404


def test_driver_login(client, owner, bus):
    credential = createDrivers(client, owner)["credentials"][0]

    response = client.post(
        "/api/driver/auth",
        json={
            "username": f"  {credential['username'].lower()} ",
            "password": f" {credential['password']} ",
        },
    )
    assert response.status_code == 201
    assert response.json()["driver"]["username"] == credential["username"]
    assert response.json()["session"]["token_type"] == "bearer"

    response = client.post(
        "/api/driver/auth",
        json={"username": credential["username"], "password": "0000"},
    )
    assert response.status_code == 401
    assert response.headers["X-Error"] == "InvalidCredentials"


def test_legacy_plaintext_password_login(client, owner, bus, session):
    driverId = createDrivers(client, owner)["drivers"][0]["id"]
    driver = session.query(DriverProfile).filter(DriverProfile.id == driverId).one()
    driver.password_hash = "4455"
    session.commit()

    response = client.post(
        "/api/driver/auth", json={"username": driver.username, "password": "4455"}
    )
    assert response.status_code == 201


def test_login_without_password(client, owner, bus, session):
    driverId = createDrivers(client, owner)["drivers"][0]["id"]
    driver = session.query(DriverProfile).filter(DriverProfile.id == driverId).one()
    driver.password_hash = None
    session.commit()

    response = client.post(
        "/api/driver/auth", json={"username": driver.username, "password": "1234"}
    )
    assert response.status_code == 401
    assert response.headers["X-Error"] == "PasswordNotSet"


def test_reset_credentials_signs_the_driver_out(client, owner, driver):
    response = client.post(
        f"/api/owner/drivers/{driver['id']}/credentials", headers=owner
    )
    assert response.status_code == 200
    credentials = response.json()["credentials"]
    assert credentials["username"] == "D11234"
    assert credentials["password"] != ""

    response = client.get("/api/driver/dashboard", headers=driver["headers"])
    assert response.status_code == 401

    response = client.post(
        "/api/driver/auth",
        json={"username": "D11234", "password": credentials["password"]},
    )
    assert response.status_code == 201


def test_reset_credentials_of_legacy_slot(client, owner, bus, session):
    session.add(
        DriverProfile(
            owner_id=1,
            slot_name="Driver C",
            username="driver-c",
            password_hash=encodePassword("1111"),
        )
    )
    session.commit()
    driverId = session.query(DriverProfile.id).filter_by(username="driver-c").scalar()

    response = client.post(
        f"/api/owner/drivers/{driverId}/credentials", headers=owner
    )
    assert response.status_code == 200
    assert response.json()["driver"]["username"] == "D31234"
    assert response.json()["driver"]["slot_name"] == "Driver C"


def test_reset_credentials_rejects_unrecognized_slot(client, owner, bus, session):
    session.add(DriverProfile(owner_id=1, slot_name="Night", username="night"))
    session.commit()
    driverId = session.query(DriverProfile.id).filter_by(username="night").scalar()

    response = client.post(
        f"/api/owner/drivers/{driverId}/credentials", headers=owner
    )
    assert response.status_code == 400
    assert response.headers["X-Error"] == "InvalidValue"


def test_provisioning_locks_the_owner(client, owner, redisClient):
    createDrivers(client, owner)
    assert "lock:profile:1" in [lock.name for lock in redisClient.locks]


def ownerId(session, email: str) -> int:
    return session.query(Profile.id).filter(Profile.email_id == email).scalar()


def test_bulk_create_rolls_back_on_login_id_collision(
    client, owner, otherOwner, bus, makeBus, session
):
    makeBus(otherOwner, "KA01AB1234")
    createDrivers(client, owner, count=2)

    response = client.post(
        "/api/owner/drivers", headers=otherOwner, json={"action": 1, "count": 3}
    )
    assert response.status_code == 409
    assert response.headers["X-Error"] == "UniqueViolation"

    rivalId = ownerId(session, "rival@gobus.in")
    assert session.query(DriverProfile).filter_by(owner_id=rivalId).count() == 0
    listing = client.get("/api/owner/drivers", headers=otherOwner).json()
    assert listing["drivers"] == []


def test_reset_credentials_to_a_taken_login_id(
    client, owner, otherOwner, bus, makeBus, session
):
    createDrivers(client, owner)
    makeBus(otherOwner, "KA01AB1234")
    session.add(
        DriverProfile(
            owner_id=ownerId(session, "rival@gobus.in"),
            slot_name="Driver 1",
            username="rival-1",
            password_hash=encodePassword("1111"),
        )
    )
    session.commit()
    driverId = session.query(DriverProfile.id).filter_by(username="rival-1").scalar()

    response = client.post(
        f"/api/owner/drivers/{driverId}/credentials", headers=otherOwner
    )
    assert response.status_code == 409
    assert response.headers["X-Error"] == "UniqueViolation"

    session.expire_all()
    username = session.query(DriverProfile.username).filter_by(id=driverId).scalar()
    assert username == "rival-1"
