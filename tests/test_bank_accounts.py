def createAccount(client, owner, number="000111", **extra):
    body = {
        "account_name": "Kerala Travels",
        "account_number": number,
        "ifsc_code": "sbin0001234",
        "bank_name": "State Bank of India",
    }
    body.update(extra)
    response = client.post("/api/owner/bank_account", headers=owner, json=body)
    assert response.status_code == 201
    return response.json()


def defaults(client, owner):
    accounts = client.get("/api/owner/bank_account", headers=owner).json()
    return [a["id"] for a in accounts if a["is_default"]]


def test_create_uppercases_ifsc(client, owner):
    account = createAccount(client, owner)
    assert account["ifsc_code"] == "SBIN0001234"
    assert account["is_default"] is False

    response = client.get("/api/owner/bank_account/default", headers=owner)
    assert response.status_code == 200
    assert response.json() is None


def test_invalid_ifsc_is_rejected(client, owner):
    response = client.post(
        "/api/owner/bank_account",
        headers=owner,
        json={
            "account_name": "A",
            "account_number": "1",
            "ifsc_code": "SBIN-01",
            "bank_name": "B",
        },
    )
    assert response.status_code == 400


def test_set_default_keeps_a_single_default(client, owner, redisClient):
    first = createAccount(client, owner, "1", is_default=True)
    second = createAccount(client, owner, "2")
    third = createAccount(client, owner, "3")
    assert defaults(client, owner) == [first["id"]]

    response = client.put(
        f"/api/owner/bank_account/{second['id']}/default", headers=owner
    )
    assert response.status_code == 200
    assert response.json()["is_default"] is True
    assert defaults(client, owner) == [second["id"]]
    assert "lock:profile:1" in [lock.name for lock in redisClient.locks]

    createAccount(client, owner, "4", is_default=True)
    assert len(defaults(client, owner)) == 1

    client.patch(
        "/api/owner/bank_account",
        headers=owner,
        json={"id": third["id"], "is_default": True},
    )
    assert defaults(client, owner) == [third["id"]]

    response = client.get("/api/owner/bank_account/default", headers=owner)
    assert response.json()["id"] == third["id"]


def test_default_is_per_owner(client, owner, otherOwner):
    mine = createAccount(client, owner, "1", is_default=True)
    createAccount(client, otherOwner, "2", is_default=True)
    assert defaults(client, owner) == [mine["id"]]


def test_update_and_delete(client, owner, otherOwner):
    account = createAccount(client, owner)
    response = client.patch(
        "/api/owner/bank_account",
        headers=owner,
        json={"id": account["id"], "bank_name": "Canara Bank", "ifsc_code": "cnrb0000123"},
    )
    assert response.status_code == 200
    assert response.json()["bank_name"] == "Canara Bank"
    assert response.json()["ifsc_code"] == "CNRB0000123"

    response = client.delete(
        "/api/owner/bank_account", headers=otherOwner, params={"id": account["id"]}
    )
    assert response.status_code == 404
    response = client.delete(
        "/api/owner/bank_account", headers=owner, params={"id": account["id"]}
    )
    assert response.status_code == 204
    assert client.get("/api/owner/bank_account", headers=owner).json() == []


def test_assign_account_to_bus(client, owner, bus):
    account = createAccount(client, owner)
    url = f"/api/owner/bus/{bus['id']}/bank_account"

    response = client.put(url, headers=owner, json={"bank_account_id": account["id"]})
    assert response.status_code == 200
    assert response.json()["bank_account_id"] == account["id"]

    response = client.put(url, headers=owner, json={"bank_account_id": None})
    assert response.json()["bank_account_id"] is None


def test_deleting_account_clears_bus_assignment(client, owner, bus):
    account = createAccount(client, owner)
    client.put(
        f"/api/owner/bus/{bus['id']}/bank_account",
        headers=owner,
        json={"bank_account_id": account["id"]},
    )
    client.delete(
        "/api/owner/bank_account", headers=owner, params={"id": account["id"]}
    )
    response = client.get(f"/api/owner/bus/{bus['id']}", headers=owner)
    assert response.json()["bank_account_id"] is None


def test_cannot_assign_foreign_account_or_bus(client, owner, otherOwner, bus):
    foreign = createAccount(client, otherOwner)
    response = client.put(
        f"/api/owner/bus/{bus['id']}/bank_account",
        headers=owner,
        json={"bank_account_id": foreign["id"]},
    )
    assert response.status_code == 404

    mine = createAccount(client, owner)
    response = client.put(
        f"/api/owner/bus/{bus['id']}/bank_account",
        headers=otherOwner,
        json={"bank_account_id": mine["id"]},
    )
    assert response.status_code == 404
