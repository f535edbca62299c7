from ticket_allocator.domain.exceptions import LockSaturatedError, StorageFailureError


def _initialize(client, name="Concert", total_tickets=2):
    response = client.post(
        "/initialize",
        json={"name": name, "total_tickets": total_tickets},
    )
    assert response.status_code == 201
    return response.json()["id"]


def _book(client, event_id, requester_id):
    return client.post(
        "/book",
        json={"event_id": event_id, "requester_id": requester_id},
    )


def test_booking_flow(client):
    event_id = _initialize(client)

    first = _book(client, event_id, "u1")
    assert first.status_code == 201
    assert first.json()["message"] == "Ticket booked successfully"
    assert first.json()["booking"]["status"] == "confirmed"
    assert first.json()["booking"]["queue_position"] is None

    assert _book(client, event_id, "u2").status_code == 201

    queued = _book(client, event_id, "u3")
    assert queued.status_code == 201
    assert queued.json()["message"] == "Added to waiting list at position 1"
    assert queued.json()["booking"]["status"] == "waiting"
    assert queued.json()["booking"]["queue_position"] == 1

    waitlist = client.get(f"/status/{event_id}/waitlist")
    assert waitlist.status_code == 200
    assert [entry["requester_id"] for entry in waitlist.json()] == ["u3"]

    cancel = client.post(
        "/cancel",
        json={"event_id": event_id, "requester_id": "u1"},
    )
    assert cancel.status_code == 200
    body = cancel.json()
    assert body["message"] == "Booking cancelled and next waiting requester (u3) assigned"
    assert body["cancelled_booking"]["status"] == "cancelled"
    assert body["assigned_booking"]["requester_id"] == "u3"
    assert body["assigned_booking"]["status"] == "confirmed"

    status_response = client.get(f"/status/{event_id}")
    assert status_response.status_code == 200
    assert status_response.json() == {
        "event_id": event_id,
        "name": "Concert",
        "total_tickets": 2,
        "available_tickets": 0,
        "confirmed_count": 2,
        "waiting_count": 0,
    }


def test_cancel_without_waiters(client):
    event_id = _initialize(client, total_tickets=1)
    _book(client, event_id, "u1")

    response = client.post(
        "/cancel",
        json={"event_id": event_id, "requester_id": "u1"},
    )

    assert response.status_code == 200
    assert response.json()["message"] == "Booking cancelled successfully"
    assert response.json()["assigned_booking"] is None


def test_business_errors_map_to_status_codes(client):
    event_id = _initialize(client)
    _book(client, event_id, "u1")

    duplicate = _book(client, event_id, "u1")
    assert duplicate.status_code == 409

    ghost = client.post(
        "/cancel",
        json={"event_id": event_id, "requester_id": "ghost"},
    )
    assert ghost.status_code == 404

    assert client.get("/status/unknown-event").status_code == 404
    assert _book(client, "unknown-event", "u1").status_code == 404


def test_request_validation(client):
    assert client.post("/initialize", json={"name": "Concert", "total_tickets": 0}).status_code == 422
    assert client.post("/initialize", json={"total_tickets": 5}).status_code == 422
    assert client.post("/book", json={"event_id": "", "requester_id": "u1"}).status_code == 422
    assert client.post("/cancel", json={"event_id": "abc"}).status_code == 422


def test_contention_maps_to_service_unavailable(client, allocation_engine, monkeypatch):
    def saturated(event_id, operation):
        raise LockSaturatedError(event_id, 1000)

    monkeypatch.setattr(allocation_engine.event_lock, "with_lock", saturated)

    response = _book(client, "any-event", "u1")

    assert response.status_code == 503
    assert response.headers["Retry-After"] == "1"


def test_storage_failure_is_redacted(client, allocation_engine, monkeypatch):
    def broken(event_id):
        raise StorageFailureError("password=hunter2 connection refused")

    monkeypatch.setattr(allocation_engine, "get_event_status", broken)

    response = client.get("/status/some-event")

    assert response.status_code == 500
    assert "hunter2" not in response.text


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
