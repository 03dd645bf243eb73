from argon2 import PasswordHasher

from gobus.src.argon2 import passwordHasher
from gobus.src.db import OwnerToken, Profile
from gobus.src.constants import MAX_OWNER_TOKENS


def login(client, email="owner@gobus.in", password="password", app="owner"):
    return client.post(f"/api/{app}/auth", json={"email": email, "password": password})


def test_owner_sign_up_creates_company(client):
    response = client.post(
        "/api/owner/account",
        json={
            "email_id": "Fleet@GoBus.in",
            "password": "password",
            "display_name": "Fleet Co",
        },
    )
    assert response.status_code == 201
    data = response.json()
    assert data["email_id"] == "fleet@gobus.in"
    assert data["owner"]["company_name"] == "Fleet Co"
    assert "password" not in data

    response = client.post(
        "/api/owner/account",
        json={"email_id": "fleet@gobus.in", "password": "password"},
    )
    assert response.status_code == 409


def test_owner_login_and_logout(client, owner):
    response = login(client)
    assert response.status_code == 201
    session = response.json()["session"]
    assert len(session["access_token"]) == 64
    assert response.json()["user"]["email"] == "owner@gobus.in"

    headers = {"Authorization": f"Bearer {session['access_token']}"}
    assert client.delete("/api/owner/auth", headers=headers).status_code == 204
    assert client.get("/api/owner/account", headers=headers).status_code == 401


def test_wrong_password_or_role(client, owner, customer):
    response = login(client, password="wrong-password")
    assert response.status_code == 401
    assert response.headers["X-Error"] == "InvalidCredentials"

    assert login(client, email="rider@gobus.in").status_code == 401
    assert login(client, email="owner@gobus.in", app="customer").status_code == 401


def test_tokens_are_rotated(client, owner, session):
    for _ in range(MAX_OWNER_TOKENS + 2):
        assert login(client).status_code == 201
    assert session.query(OwnerToken).count() == MAX_OWNER_TOKENS


def test_tokens_do_not_cross_roles(client, owner, customer):
    assert client.get("/api/customer/ticket", headers=owner).status_code == 401
    assert client.get("/api/owner/bus", headers=customer).status_code == 401


def test_missing_bearer_is_rejected(client):
    assert client.get("/api/owner/bus").status_code in (401, 403)


def test_update_owner_account(client, owner, events):
    response = client.patch(
        "/api/owner/account",
        headers=owner,
        json={
            "company_name": "Kerala Express",
            "address": "Edava",
            "notification_preferences": {"bus_status_updates": True},
        },
    )
    assert response.status_code == 200
    company = response.json()["owner"]
    assert company["company_name"] == "Kerala Express"
    assert company["notification_preferences"] == {
        "email_alerts": True,
        "booking_notifications": True,
        "bus_status_updates": True,
    }
    assert events[-1]["_owner_id"] == 1
    assert events[-1]["_path"] == "/api/owner/account"

    response = client.patch(
        "/api/owner/account/company",
        headers=owner,
        json={"email_id": "desk@gobus.in", "phone_number": "+910000000000"},
    )
    assert response.status_code == 200
    assert response.json()["email_id"] == "desk@gobus.in"


def test_update_owner_account_clears_optional_fields(client, owner):
    client.patch(
        "/api/owner/account",
        headers=owner,
        json={"address": "Edava", "phone_number": "+910000000000"},
    )

    response = client.patch(
        "/api/owner/account",
        headers=owner,
        json={"address": None, "phone_number": None, "company_name": None},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["phone_number"] is None
    assert data["owner"]["address"] is None
    assert data["owner"]["company_name"]


def test_change_password_revokes_other_sessions(client, owner):
    other = login(client).json()["session"]["access_token"]
    response = client.patch(
        "/api/owner/account/password",
        headers=owner,
        json={"current_password": "password", "new_password": "new-password"},
    )
    assert response.status_code == 204

    assert client.get("/api/owner/account", headers=owner).status_code == 200
    headers = {"Authorization": f"Bearer {other}"}
    assert client.get("/api/owner/account", headers=headers).status_code == 401
    assert login(client, password="new-password").status_code == 201


def test_change_password_needs_current_password(client, owner):
    response = client.patch(
        "/api/owner/account/password",
        headers=owner,
        json={"current_password": "nope", "new_password": "new-password"},
    )
    assert response.status_code == 401


def test_customer_account(client, customer):
    response = client.get("/api/customer/account", headers=customer)
    assert response.status_code == 200
    assert response.json()["email_id"] == "rider@gobus.in"
    assert client.delete("/api/customer/auth", headers=customer).status_code == 204
    assert client.get("/api/customer/account", headers=customer).status_code == 401


def test_malformed_input_is_answered_with_400(client):
    response = client.post(
        "/api/owner/account", json={"email_id": "not-an-email", "password": "x"}
    )
    assert response.status_code == 400
    assert response.headers["X-Error"] == "PydanticError"


def test_outdated_hash_is_upgraded_on_login(client, owner, session):
    profile = session.query(Profile).filter(Profile.email_id == "owner@gobus.in").one()
    profile.password = PasswordHasher(time_cost=1).hash("password")
    session.commit()

    assert login(client).status_code == 201
    session.expire_all()
    stored = session.query(Profile.password).filter(Profile.id == profile.id).scalar()
    assert not passwordHasher.check_needs_rehash(stored)
    assert passwordHasher.verify(stored, "password")
