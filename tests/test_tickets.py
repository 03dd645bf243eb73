from datetime import datetime, timedelta, timezone

from gobus.src.db import Ticket


def book(client, customer, bus, **extra):
    body = {
        "bus_id": bus["id"],
        "from_stop": "Majestic",
        "to_stop": "Silk Board",
        "passengers": 2,
        "amount": "40.00",
    }
    body.update(extra)
    response = client.post("/api/customer/ticket", headers=customer, json=body)
    assert response.status_code == 201
    return response.json()


def verify(client, driver, code):
    return client.get(
        "/api/ticket/verify", headers=driver["headers"], params={"code": code}
    )


def test_booking_copies_bus_details(client, customer, bus):
    ticket = book(client, customer, bus)
    assert ticket["qr_code"].startswith("GOBUS-")
    assert ticket["bus_code"] == bus["ref_number"]
    assert ticket["route_name"] == "Majestic → Electronic City"
    assert ticket["status"] == 1
    assert ticket["validated_on"] is None


def test_booking_by_bus_code(client, customer, bus):
    ticket = book(client, customer, bus, bus_id=None, bus_code=bus["ref_number"])
    assert ticket["bus_id"] == bus["id"]


def test_booking_requires_a_bus(client, customer):
    response = client.post(
        "/api/customer/ticket",
        headers=customer,
        json={"from_stop": "A", "to_stop": "B", "amount": "10"},
    )
    assert response.status_code == 400
    assert response.headers["X-Error"] == "MissingParameter"


def test_booking_rejects_trip_of_another_bus(client, customer, owner, trip, makeBus):
    otherBus = makeBus(owner, "KA03EF0042")
    response = client.post(
        "/api/customer/ticket",
        headers=customer,
        json={
            "bus_id": otherBus["id"],
            "trip_id": trip["id"],
            "from_stop": "A",
            "to_stop": "B",
            "amount": "10",
        },
    )
    assert response.status_code == 404
    assert response.headers["X-Error"] == "InvalidAssociation"


def test_verify_marks_ticket_used_once(client, customer, bus, driver):
    ticket = book(client, customer, bus)

    response = verify(client, driver, ticket["qr_code"])
    assert response.status_code == 200
    assert response.json() == {
        "valid": True,
        "ticket": {
            "id": ticket["id"],
            "from_stop": "Majestic",
            "to_stop": "Silk Board",
            "passengers": 2,
            "route_name": "Majestic → Electronic City",
            "amount": "40.00",
        },
    }

    response = verify(client, driver, ticket["qr_code"])
    assert response.json() == {
        "valid": False,
        "error": "Ticket already used",
        "ticket": {"from_stop": "Majestic", "to_stop": "Silk Board", "passengers": 2},
    }

    stored = client.get(f"/api/customer/ticket/{ticket['id']}", headers=customer)
    assert stored.json()["status"] == 2
    assert stored.json()["validated_on"] is not None


def test_verify_by_code_suffix(client, customer, bus, driver):
    ticket = book(client, customer, bus)
    response = verify(client, driver, ticket["qr_code"][-8:].upper())
    assert response.json()["valid"] is True


def test_verify_unknown_code(client, driver):
    response = verify(client, driver, "GOBUS-missing")
    assert response.status_code == 200
    assert response.json() == {"valid": False, "error": "Ticket not found"}


def test_verify_ambiguous_suffix(client, customer, bus, driver, session):
    for code in ("GOBUS-aaa-1234", "GOBUS-bbb-1234"):
        session.add(
            Ticket(
                customer_id=1,
                bus_id=bus["id"],
                bus_code=bus["ref_number"],
                route_name="A → B",
                from_stop="A",
                to_stop="B",
                amount=10,
                qr_code=code,
            )
        )
    session.commit()
    assert verify(client, driver, "1234").json()["error"] == "Ticket not found"
    assert verify(client, driver, "aaa-1234").json()["valid"] is True


def test_verify_cancelled_ticket(client, customer, bus, driver):
    ticket = book(client, customer, bus)
    response = client.delete(f"/api/customer/ticket/{ticket['id']}", headers=customer)
    assert response.status_code == 200
    assert response.json()["status"] == 3

    response = verify(client, driver, ticket["qr_code"])
    assert response.json()["valid"] is False
    assert response.json()["error"] == "Ticket expired"


def test_cancel_only_active_tickets(client, customer, bus, driver):
    ticket = book(client, customer, bus)
    verify(client, driver, ticket["qr_code"])

    response = client.delete(f"/api/customer/ticket/{ticket['id']}", headers=customer)
    assert response.status_code == 409
    assert response.headers["X-Error"] == "InvalidStateTransition"


def test_tickets_of_other_owners_are_not_found(
    client, customer, otherOwner, makeBus, driver
):
    foreignBus = makeBus(otherOwner, "TN09XY0001")
    ticket = book(client, customer, foreignBus)
    response = verify(client, driver, ticket["qr_code"])
    assert response.json() == {"valid": False, "error": "Ticket not found"}


def test_customer_ticket_list_and_stats(client, customer, bus, driver):
    first = book(client, customer, bus)
    second = book(client, customer, bus)
    third = book(client, customer, bus)
    verify(client, driver, first["qr_code"])
    client.delete(f"/api/customer/ticket/{second['id']}", headers=customer)

    tickets = client.get("/api/customer/ticket", headers=customer).json()
    assert [t["id"] for t in tickets] == [third["id"], second["id"], first["id"]]

    stats = client.get("/api/customer/ticket/stats", headers=customer).json()
    assert stats == {"total": 3, "active": 1, "used": 1, "expired": 1}


def test_tickets_are_private(client, customer, otherCustomer, bus):
    ticket = book(client, customer, bus)
    response = client.get(
        f"/api/customer/ticket/{ticket['id']}", headers=otherCustomer
    )
    assert response.status_code == 404
    response = client.delete(
        f"/api/customer/ticket/{ticket['id']}", headers=otherCustomer
    )
    assert response.status_code == 404


def test_trip_stats(client, customer, bus, trip, driver, session):
    normal = book(client, customer, bus, trip_id=trip["id"], amount="25.50")
    book(client, customer, bus, trip_id=trip["id"], amount="14.25", passengers=1)
    dailyPass = book(
        client, customer, bus, trip_id=trip["id"], amount="0", ticket_type=2
    )
    unused = book(client, customer, bus, trip_id=trip["id"], amount="99")
    for ticket in (normal, dailyPass):
        verify(client, driver, ticket["qr_code"])
    assert unused["status"] == 1

    response = client.get(
        "/api/driver/trip-stats",
        headers=driver["headers"],
        params={"tripId": trip["id"]},
    )
    assert response.status_code == 200
    data = response.json()
    assert data["summary"] == {
        "totalTickets": 2,
        "normalTickets": 1,
        "normalPassengers": 2,
        "dailyPassValidations": 1,
        "totalRevenue": "25.50",
    }
    assert [t["id"] for t in data["normalTicketDetails"]] == [normal["id"]]
    assert data["normalTicketDetails"][0]["fromStop"] == "Majestic"
    assert [t["id"] for t in data["dailyPassDetails"]] == [dailyPass["id"]]

    yesterday = (datetime.now(timezone.utc) - timedelta(days=1)).date().isoformat()
    response = client.get(
        "/api/driver/trip-stats",
        headers=driver["headers"],
        params={"busId": bus["id"], "date": yesterday},
    )
    assert response.json()["summary"]["totalTickets"] == 0
    assert response.json()["summary"]["totalRevenue"] == "0.00"


def test_trip_stats_needs_trip_or_bus(client, driver):
    response = client.get("/api/driver/trip-stats", headers=driver["headers"])
    assert response.status_code == 400
    assert response.headers["X-Error"] == "MissingParameter"
