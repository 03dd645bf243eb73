def stopUrl(trip, suffix=""):
    return f"/api/owner/trip/{trip['id']}/stop{suffix}"


def addStop(client, owner, trip, name, arrival="07:00:00", **extra):
    body = {"name": name, "arrival_time": arrival}
    body.update(extra)
    return client.post(stopUrl(trip), headers=owner, json=body)


def names(response):
    return [s["name"] for s in response.json()["stops"]]


def sequences(response):
    return [s["sequence"] for s in response.json()["stops"]]


def test_stops_are_appended_in_sequence(client, owner, trip):
    for name in ("A", "B", "C"):
        response = addStop(client, owner, trip, name)
        assert response.status_code == 200
    assert names(response) == ["A", "B", "C"]
    assert sequences(response) == [1, 2, 3]


def test_blank_name_or_missing_time_is_rejected(client, owner, trip):
    response = addStop(client, owner, trip, "   ")
    assert response.status_code == 400
    assert response.headers["X-Error"] == "MissingParameter"

    response = client.post(stopUrl(trip), headers=owner, json={"name": "A"})
    assert response.status_code == 400
    assert response.headers["X-Error"] == "MissingParameter"


def test_delete_renumbers_remaining_stops(client, owner, trip):
    for name in ("A", "B", "C", "D"):
        response = addStop(client, owner, trip, name)
    stopB = response.json()["stops"][1]

    response = client.delete(stopUrl(trip, f"/{stopB['id']}"), headers=owner)
    assert response.status_code == 200
    assert names(response) == ["A", "C", "D"]
    assert sequences(response) == [1, 2, 3]

    response = addStop(client, owner, trip, "E")
    assert sequences(response) == [1, 2, 3, 4]


def test_insert_after_sequence(client, owner, trip):
    for name in ("A", "B", "C"):
        addStop(client, owner, trip, name)

    response = addStop(client, owner, trip, "First", after_sequence=0)
    assert names(response) == ["First", "A", "B", "C"]

    response = addStop(client, owner, trip, "Middle", after_sequence=2)
    assert names(response) == ["First", "A", "Middle", "B", "C"]
    assert sequences(response) == [1, 2, 3, 4, 5]

    response = addStop(client, owner, trip, "Last", after_sequence=40)
    assert names(response)[-1] == "Last"
    assert sequences(response) == [1, 2, 3, 4, 5, 6]


def test_bulk_append(client, owner, trip):
    addStop(client, owner, trip, "A")
    response = client.post(
        stopUrl(trip, "/bulk"),
        headers=owner,
        json={
            "stops": [
                {"name": "B", "arrival_time": "07:10:00"},
                {"name": "C", "arrival_time": "07:20:00"},
            ]
        },
    )
    assert response.status_code == 200
    assert names(response) == ["A", "B", "C"]
    assert sequences(response) == [1, 2, 3]


def test_bulk_append_stores_nothing_on_invalid_stop(client, owner, trip):
    response = client.post(
        stopUrl(trip, "/bulk"),
        headers=owner,
        json={
            "stops": [
                {"name": "B", "arrival_time": "07:10:00"},
                {"name": "", "arrival_time": "07:20:00"},
            ]
        },
    )
    assert response.status_code == 400
    response = client.get(f"/api/owner/trip/{trip['id']}", headers=owner)
    assert response.json()["stops"] == []


def test_replace_all_stops(client, owner, trip):
    for name in ("A", "B"):
        addStop(client, owner, trip, name)
    response = client.put(
        stopUrl(trip),
        headers=owner,
        json={
            "stops": [
                {"name": "X", "arrival_time": "08:00:00"},
                {"name": "Y", "arrival_time": "08:10:00"},
                {"name": "Z", "arrival_time": "08:20:00"},
            ]
        },
    )
    assert response.status_code == 200
    assert names(response) == ["X", "Y", "Z"]
    assert sequences(response) == [1, 2, 3]

    response = client.put(stopUrl(trip), headers=owner, json={"stops": []})
    assert response.json()["stops"] == []


def test_reorder_stops(client, owner, trip):
    for name in ("A", "B", "C"):
        response = addStop(client, owner, trip, name)
    ids = [s["id"] for s in response.json()["stops"]]

    response = client.patch(
        stopUrl(trip), headers=owner, json={"stop_ids": [ids[2], ids[0], ids[1]]}
    )
    assert response.status_code == 200
    assert names(response) == ["C", "A", "B"]
    assert sequences(response) == [1, 2, 3]

    response = client.patch(stopUrl(trip), headers=owner, json={"stop_ids": ids[:2]})
    assert response.status_code == 400
    assert response.headers["X-Error"] == "InvalidValue"


def test_update_stop_keeps_position(client, owner, trip):
    for name in ("A", "B"):
        response = addStop(client, owner, trip, name)
    stopA = response.json()["stops"][0]

    response = client.patch(
        stopUrl(trip, f"/{stopA['id']}"),
        headers=owner,
        json={"name": "Alpha", "arrival_time": "06:45:00"},
    )
    assert response.status_code == 200
    assert names(response) == ["Alpha", "B"]
    assert response.json()["stops"][0]["arrival_time"] == "06:45:00"


def test_stop_writers_lock_the_trip(client, owner, trip, redisClient):
    addStop(client, owner, trip, "A")
    assert f"lock:trip:{trip['id']}" in [lock.name for lock in redisClient.locks]


def test_deleting_a_trip_removes_its_stops(client, owner, trip, session):
    from gobus.src.db import TripStop

    addStop(client, owner, trip, "A")
    client.delete(f"/api/owner/trip/{trip['id']}", headers=owner)
    assert session.query(TripStop).count() == 0
