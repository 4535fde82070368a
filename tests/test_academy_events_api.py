from datetime import timedelta

from helpers import utcnow
from models import Event, EventRegistration, Order
from sqlalchemy import select


# -------------------------------------------------
# Courses
# -------------------------------------------------
async def test_list_published_courses(client, seed):
    response = await client.get("/api/courses")
    titles = {c["title"] for c in response.json()["data"]}
    assert titles == {"Writing for Publication", "Self-Editing Basics"}

    everything = await client.get("/api/courses?published=false")
    assert len(everything.json()["data"]) == 3


async def test_free_course_enrolls_immediately(client, seed, auth):
    response = await client.post(f"/api/courses/{seed.free_course.id}/enroll", headers=auth(seed.reader))

    body = response.json()
    assert response.status_code == 200
    assert body["message"] == "Successfully enrolled in course!"
    assert body["data"]["paymentRequired"] is False
    assert body["data"]["enrollment"]["progress"] == 0

    again = await client.post(f"/api/courses/{seed.free_course.id}/enroll", headers=auth(seed.reader))
    assert again.status_code == 400
    assert again.json()["error"] == "Already enrolled in this course"


async def test_paid_course_opens_checkout(client, db, seed, auth):
    response = await client.post(
        f"/api/courses/{seed.paid_course.id}/enroll", json={"paymentMethod": "flutterwave"}, headers=auth(seed.reader)
    )

    data = response.json()["data"]
    assert response.json()["message"] == "Payment initialized. Complete payment to enroll."
    assert data["paymentRequired"] is True
    assert data["payment"]["provider"] == "flutterwave"
    assert data["payment"]["reference"] == f"COURSE-{data['order']['orderNumber']}"

    async with db() as s:
        order = (await s.execute(select(Order))).scalar_one()
    assert order.course_id == seed.paid_course.id
    assert order.payment_status == "pending"


async def test_enroll_errors(client, seed, auth):
    draft = await client.post(f"/api/courses/{seed.draft_course.id}/enroll", headers=auth(seed.reader))
    assert draft.status_code == 400
    assert draft.json()["error"] == "Course is not available for enrollment"

    missing = await client.post("/api/courses/not-a-course/enroll", headers=auth(seed.reader))
    assert missing.status_code == 404
    assert missing.json()["error"] == "Course not found"


# -------------------------------------------------
# Events
# -------------------------------------------------
async def test_list_events(client, seed, auth):
    await client.post(f"/api/events/{seed.free_event.id}/register", headers=auth(seed.reader))

    response = await client.get("/api/events?type=webinar")
    events = response.json()["data"]
    assert [e["title"] for e in events] == ["Poetry Webinar"]
    assert events[0]["registrationCount"] == 1
    assert events[0]["organizer"]["name"] == "Ngozi Admin"

    upcoming = await client.get("/api/events?upcoming=true&limit=100")
    assert len(upcoming.json()["data"]) == 4


async def test_free_event_registration(client, seed, auth):
    response = await client.post(
        f"/api/events/{seed.free_event.id}/register", json={"specialRequests": "Aisle seat"}, headers=auth(seed.reader)
    )

    body = response.json()
    assert body["message"] == "Registration successful!"
    assert body["data"]["paymentRequired"] is False
    assert body["data"]["registration"]["paymentStatus"] == "completed"
    assert body["data"]["registration"]["specialRequests"] == "Aisle seat"

    status = await client.get(f"/api/events/{seed.free_event.id}/register", headers=auth(seed.reader))
    assert status.json()["data"]["isRegistered"] is True

    again = await client.post(f"/api/events/{seed.free_event.id}/register", headers=auth(seed.reader))
    assert again.status_code == 400
    assert again.json()["error"] == "You are already registered for this event"


async def test_paid_event_registration_settles_via_callback(client, db, gateway, seed, auth):
    response = await client.post(f"/api/events/{seed.paid_event.id}/register", headers=auth(seed.reader))

    data = response.json()["data"]
    assert data["paymentRequired"] is True
    assert data["paymentReference"].startswith("EVT-")
    assert data["paymentUrl"].endswith(data["paymentReference"])
    assert data["amount"] == 2000

    gateway.paystack_charge(data["paymentReference"], 2000)
    callback = await client.get(f"/api/payment/verify/event/paystack?reference={data['paymentReference']}")
    assert callback.status_code == 302
    assert callback.headers["location"] == f"http://testserver/events/{seed.paid_event.id}?registered=true"

    async with db() as s:
        registration = (await s.execute(select(EventRegistration))).scalar_one()
    assert registration.payment_status == "completed"
    assert float(registration.amount_paid) == 2000


async def test_paid_event_gateway_failure_leaves_no_registration(client, db, gateway, seed, auth):
    gateway.fail_initialize = True
    response = await client.post(f"/api/events/{seed.paid_event.id}/register", headers=auth(seed.reader))

    assert response.status_code == 400
    async with db() as s:
        assert (await s.execute(select(EventRegistration))).first() is None


async def test_capacity_counts_active_registrations(client, seed, auth):
    first = await client.post(f"/api/events/{seed.small_event.id}/register", headers=auth(seed.other))
    assert first.status_code == 200

    full = await client.post(f"/api/events/{seed.small_event.id}/register", headers=auth(seed.reader))
    assert full.status_code == 400
    assert full.json()["error"] == "Event is fully booked"

    cancel = await client.delete(f"/api/events/{seed.small_event.id}/register", headers=auth(seed.other))
    assert cancel.json()["message"] == "Registration cancelled successfully"

    listed = await client.get("/api/events?type=masterclass")
    assert listed.json()["data"][0]["registrationCount"] == 0

    retry = await client.post(f"/api/events/{seed.small_event.id}/register", headers=auth(seed.reader))
    assert retry.status_code == 200


async def test_registration_window_rules(client, db, seed, auth):
    async with db() as s:
        event = await s.get(Event, seed.paid_event.id)
        event.registration_deadline = utcnow() - timedelta(hours=1)
        await s.commit()

    closed = await client.post(f"/api/events/{seed.paid_event.id}/register", headers=auth(seed.reader))
    assert closed.json()["error"] == "Registration deadline has passed"

    await client.post(f"/api/events/{seed.soon_event.id}/register", headers=auth(seed.reader))
    late = await client.delete(f"/api/events/{seed.soon_event.id}/register", headers=auth(seed.reader))
    assert late.status_code == 400
    assert late.json()["error"] == "Cannot cancel registration less than 24 hours before event"

    nothing = await client.delete(f"/api/events/{seed.free_event.id}/register", headers=auth(seed.reader))
    assert nothing.status_code == 404
    assert nothing.json()["error"] == "Registration not found"
