from datetime import date, timedelta


def iso(days_from_today):
    return (date.today() + timedelta(days=days_from_today)).isoformat()


def create_schedule(client, headers, route_id, days_ahead=5, departure="07:30:00"):
    response = client.post("/api/v1/schedules/", headers=headers, json={
        "route_id": route_id,
        "schedule_date": iso(days_ahead),
        "departure_time": departure,
        "arrival_time": "09:00:00",
    })
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_mutations_require_actor(client, make_route):
    route = make_route()
    body = {"route_id": route.id, "schedule_date": iso(3), "departure_time": "07:30:00", "arrival_time": "09:00:00"}

    assert client.post("/api/v1/schedules/", json=body).status_code == 422
    assert client.post("/api/v1/schedules/", json=body, headers={"X-Actor-Id": ""}).status_code == 401


def test_create_approve_and_open_schedule(client, admin_headers, make_route):
    route = make_route(capacity=40)
    created = create_schedule(client, admin_headers, route.id)
    assert created["lifecycle_state"] == "pending_approval"
    assert created["available_seats"] == 40

    approved = client.post(
        f"/api/v1/schedules/{created['id']}/transition", headers=admin_headers, json={"action": "approve"}
    )
    assert approved.status_code == 200
    assert approved.json()["state"] == "approved"

    opened = client.post(
        f"/api/v1/schedules/{created['id']}/transition", headers=admin_headers, json={"action": "enable_booking"}
    )
    assert opened.status_code == 200
    schedule = opened.json()["schedule"]
    assert schedule["booking_enabled"] is True
    assert schedule["booking_deadline"] == f"{iso(4)}T19:00:00"


def test_schedule_for_today_is_rejected(client, admin_headers, make_route):
    route = make_route()

    response = client.post("/api/v1/schedules/", headers=admin_headers, json={
        "route_id": route.id,
        "schedule_date": iso(0),
        "departure_time": "07:30:00",
        "arrival_time": "09:00:00",
    })

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "invalid_date"


def test_invalid_transition_is_a_conflict(client, admin_headers, make_route):
    created = create_schedule(client, admin_headers, make_route().id)

    response = client.post(
        f"/api/v1/schedules/{created['id']}/transition", headers=admin_headers, json={"action": "disable_booking"}
    )

    assert response.status_code == 409
    assert response.json()["detail"]["error"] == "invalid_transition"


def test_enable_booking_before_approval(client, admin_headers, make_route):
    created = create_schedule(client, admin_headers, make_route().id)

    response = client.post(
        f"/api/v1/schedules/{created['id']}/transition", headers=admin_headers, json={"action": "enable_booking"}
    )

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "not_approved"


def test_bulk_create_rejects_today(client, admin_headers, make_route):
    route = make_route()

    response = client.post("/api/v1/schedules/bulk-create", headers=admin_headers, json={
        "route_ids": [route.id],
        "dates": [iso(0), iso(1)],
        "departure_time": "07:30:00",
        "arrival_time": "09:00:00",
    })

    assert response.status_code == 400
    body = response.json()
    assert body["created"] == []
    assert body["rejected_dates"] == [iso(0)]


def test_bulk_create_and_bulk_approve(client, admin_headers, make_route):
    route = make_route()
    created = client.post("/api/v1/schedules/bulk-create", headers=admin_headers, json={
        "route_ids": [route.id],
        "dates": [iso(2), iso(3)],
        "departure_time": "07:30:00",
        "arrival_time": "09:00:00",
    })
    assert created.status_code == 201
    ids = [s["id"] for s in created.json()["created"]]

    response = client.post("/api/v1/schedules/bulk-transition", headers=admin_headers, json={
        "schedule_ids": ids + [999],
        "action": "approve",
    })

    assert response.status_code == 200
    body = response.json()
    assert body["succeeded"] == ids
    assert body["failed"][0]["schedule_id"] == 999
    assert body["failed"][0]["error"] == "not_found"


def test_booking_then_disable_all_notifies_rider(client, admin_headers, notifier, make_route, make_student):
    route = make_route(capacity=2)
    student = make_student()
    schedule_id = create_schedule(client, admin_headers, route.id)["id"]
    for action in ("approve", "enable_booking"):
        client.post(f"/api/v1/schedules/{schedule_id}/transition", headers=admin_headers, json={"action": action})

    booking = client.post("/api/v1/bookings/", json={"schedule_id": schedule_id, "student_id": student.id})
    assert booking.status_code == 201
    duplicate = client.post("/api/v1/bookings/", json={"schedule_id": schedule_id, "student_id": student.id})
    assert duplicate.status_code == 409

    passengers = client.get(f"/api/v1/schedules/{schedule_id}/passengers").json()
    assert [p["student_id"] for p in passengers] == [student.id]

    response = client.post(
        f"/api/v1/schedules/{schedule_id}/transition",
        headers=admin_headers,
        json={"action": "disable_all", "notes": "Vehicle unavailable"},
    )
    assert response.status_code == 200
    assert response.json()["cancelled_bookings"] == 1
    assert response.json()["schedule"]["booked_seats"] == 0
    assert [e.student_id for e in notifier.events] == [student.id]

    assert client.get(f"/api/v1/bookings/{booking.json()['id']}").json()["status"] == "cancelled"


def test_rider_cancels_booking(client, admin_headers, make_route, make_student):
    schedule_id = create_schedule(client, admin_headers, make_route().id)["id"]
    for action in ("approve", "enable_booking"):
        client.post(f"/api/v1/schedules/{schedule_id}/transition", headers=admin_headers, json={"action": action})
    booking_id = client.post(
        "/api/v1/bookings/", json={"schedule_id": schedule_id, "student_id": make_student().id}
    ).json()["id"]

    response = client.post(f"/api/v1/bookings/{booking_id}/cancel", json={"reason": "Sick"})

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert client.get(f"/api/v1/schedules/{schedule_id}").json()["booked_seats"] == 0


def test_delete_schedule(client, admin_headers, make_route):
    schedule_id = create_schedule(client, admin_headers, make_route().id)["id"]

    assert client.delete(f"/api/v1/schedules/{schedule_id}", headers=admin_headers).status_code == 204
    assert client.get(f"/api/v1/schedules/{schedule_id}").status_code == 404


def test_calendar_endpoint(client, admin_headers, make_route):
    route = make_route(capacity=25)
    create_schedule(client, admin_headers, route.id, days_ahead=2)

    response = client.get("/api/v1/schedules/calendar", params={
        "start_date": iso(1), "end_date": iso(7), "route_filter": "all"
    })

    assert response.status_code == 200
    days = response.json()
    assert len(days) == 7
    assert days[1]["total_capacity"] == 25

    bad = client.get("/api/v1/schedules/calendar", params={
        "start_date": iso(1), "end_date": iso(7), "route_filter": "north"
    })
    assert bad.status_code == 400

    backwards = client.get("/api/v1/schedules/calendar", params={"start_date": iso(7), "end_date": iso(1)})
    assert backwards.status_code == 400
    assert backwards.json()["detail"]["error"] == "invalid_date_range"


def test_route_summary_endpoints(client, admin_headers, make_route):
    route = make_route()
    create_schedule(client, admin_headers, route.id, days_ahead=2)

    summary = client.get(f"/api/v1/schedules/routes/{route.id}/summary")
    assert summary.status_code == 200
    assert summary.json()["next_instance"]["route_id"] == route.id

    assert client.get("/api/v1/schedules/routes/999/summary").status_code == 404
    assert [s["route"]["id"] for s in client.get("/api/v1/schedules/routes/summaries").json()] == [route.id]


def test_date_policy_endpoint(client):
    today = client.get("/api/v1/schedules/date-policy", params={"date": iso(0)}).json()
    tomorrow = client.get("/api/v1/schedules/date-policy", params={"date": iso(1)}).json()

    assert today["allowed"] is False
    assert today["minimum_date"] == iso(1)
    assert tomorrow["allowed"] is True
    assert today["booking_window"] is None
    assert "the day before" in tomorrow["booking_window"]


def test_routes_listing(client, make_route):
    active = make_route()
    make_route(status="inactive")

    assert [r["id"] for r in client.get("/api/v1/routes/").json()] == [active.id]
    assert client.get("/api/v1/routes/404").status_code == 404


def test_completion_is_not_an_admin_action(client, admin_headers, make_route):
    schedule = create_schedule(client, admin_headers, make_route().id)

    single = client.post(f"/api/v1/schedules/{schedule['id']}/transition", headers=admin_headers, json={
        "action": "complete",
    })
    bulk = client.post("/api/v1/schedules/bulk-transition", headers=admin_headers, json={
        "schedule_ids": [schedule["id"]],
        "action": "complete",
    })

    assert single.status_code == 422
    assert bulk.status_code == 422
    assert client.get(f"/api/v1/schedules/{schedule['id']}").json()["lifecycle_state"] == "pending_approval"


def test_range_transition_endpoint(client, admin_headers, make_route):
    route = make_route()
    first = create_schedule(client, admin_headers, route.id, days_ahead=2)
    second = create_schedule(client, admin_headers, route.id, days_ahead=3)

    response = client.post("/api/v1/schedules/bulk-transition/range", headers=admin_headers, json={
        "route_id": route.id,
        "start_date": iso(0),
        "end_date": iso(5),
        "action": "approve",
    })

    assert response.status_code == 200
    assert response.json()["succeeded"] == [first["id"], second["id"]]

    backwards = client.post("/api/v1/schedules/bulk-transition/range", headers=admin_headers, json={
        "route_id": route.id,
        "start_date": iso(5),
        "end_date": iso(0),
        "action": "approve",
    })
    empty = client.post("/api/v1/schedules/bulk-transition/range", headers=admin_headers, json={
        "route_id": route.id,
        "start_date": iso(10),
        "end_date": iso(12),
        "action": "approve",
    })
    assert backwards.status_code == 422
    assert empty.status_code == 404
