import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.pool import StaticPool

from gobus.src import db, openobserve, redis
from gobus.main import app

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine, "connect")
def enableForeignKeys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


db.sessionMaker.configure(bind=engine)


class LockDouble:
    def __init__(self, name):
        self.name = name
        self.held = False

    def acquire(self, blocking=True, blocking_timeout=None):
        self.held = True
        return True

    def locked(self):
        return self.held

    def owned(self):
        return self.held

    def release(self):
        self.held = False


class RedisDouble:
    def __init__(self):
        self.locks = []
        self.healthy = True

    def lock(self, name, timeout=None):
        lock = LockDouble(name)
        self.locks.append(lock)
        return lock

    def ping(self):
        if not self.healthy:
            raise ConnectionError("Connection refused")
        return True


@pytest.fixture(autouse=True)
def database():
    db.ORMbase.metadata.create_all(engine)
    yield
    db.ORMbase.metadata.drop_all(engine)


@pytest.fixture(autouse=True)
def redisClient(monkeypatch):
    client = RedisDouble()
    monkeypatch.setattr(redis, "redisClient", client)
    return client


@pytest.fixture(autouse=True)
def events(monkeypatch):
    captured = []
    monkeypatch.setattr(openobserve, "logEvent", captured.append)
    return captured


@pytest.fixture
def session():
    session = db.sessionMaker()
    yield session
    session.close()


@pytest.fixture
def client():
    return TestClient(app)


def bearer(accessToken: str) -> dict:
    return {"Authorization": f"Bearer {accessToken}"}


def signUpOwner(client, email: str, displayName: str = "Kerala Travels") -> dict:
    response = client.post(
        "/api/owner/account",
        json={"email_id": email, "password": "password", "display_name": displayName},
    )
    assert response.status_code == 201
    response = client.post(
        "/api/owner/auth", json={"email": email, "password": "password"}
    )
    assert response.status_code == 201
    return bearer(response.json()["session"]["access_token"])


def signUpCustomer(client, email: str) -> dict:
    response = client.post(
        "/api/customer/account", json={"email_id": email, "password": "password"}
    )
    assert response.status_code == 201
    response = client.post(
        "/api/customer/auth", json={"email": email, "password": "password"}
    )
    assert response.status_code == 201
    return bearer(response.json()["session"]["access_token"])


def createBus(client, headers: dict, registration: str = "KA01AB1234") -> dict:
    response = client.post(
        "/api/owner/bus",
        headers=headers,
        json={
            "registration_number": registration,
            "route_from": "Majestic",
            "route_to": "Electronic City",
        },
    )
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def owner(client):
    return signUpOwner(client, "owner@gobus.in")


@pytest.fixture
def otherOwner(client):
    return signUpOwner(client, "rival@gobus.in", "Rival Travels")


@pytest.fixture
def customer(client):
    return signUpCustomer(client, "rider@gobus.in")


@pytest.fixture
def otherCustomer(client):
    return signUpCustomer(client, "someone@gobus.in")


@pytest.fixture
def bus(client, owner):
    return createBus(client, owner)


@pytest.fixture
def makeBus(client):
    def make(headers: dict, registration: str) -> dict:
        return createBus(client, headers, registration)

    return make


@pytest.fixture
def trip(client, owner, bus):
    response = client.post(
        "/api/owner/trip",
        headers=owner,
        json={"bus_id": bus["id"], "start_time": "06:30:00", "days_of_week": [1, 2]},
    )
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def driver(client, owner, bus):
    response = client.post(
        "/api/owner/drivers", headers=owner, json={"action": 2}
    )
    assert response.status_code == 201
    credential = response.json()["credentials"][0]
    driverId = response.json()["drivers"][0]["id"]
    response = client.put(
        "/api/owner/drivers", headers=owner, json={"id": driverId, "bus_id": bus["id"]}
    )
    assert response.status_code == 200
    response = client.post(
        "/api/driver/auth",
        json={"username": credential["username"], "password": credential["password"]},
    )
    assert response.status_code == 201
    return {
        "id": driverId,
        "username": credential["username"],
        "password": credential["password"],
        "headers": bearer(response.json()["session"]["access_token"]),
    }
