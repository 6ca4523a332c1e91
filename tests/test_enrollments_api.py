import asyncio

from conftest import auth, create_course, mint_token
from repos import enrollments as enrollments_repo
from services import enrollment_service

PAID = {"kind": "paid", "price": 40.0, "discount_price": 25.0}


def test_free_course_enrollment_is_active(client, instructor_headers, student_headers):
    course = create_course(client, instructor_headers)
    resp = client.post("/enrollments", json={"course_id": course["_id"]}, headers=student_headers)
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["status"] == "active"
    assert body["amount"] == 0
    assert body["activated_at"] is not None


def test_paid_course_waits_for_payment(client, instructor_headers, student_headers):
    course = create_course(client, instructor_headers, access=PAID)
    body = client.post("/enrollments", json={"course_id": course["_id"]}, headers=student_headers).json()
    assert body["status"] == "pending_payment"
    assert body["amount"] == 25.0

    # not active yet, so progress is refused
    resp = client.post("/progress/events", json={
        "course_id": course["_id"], "video_id": "v0", "percent": 10, "timestamp_seconds": 60,
    }, headers=student_headers)
    assert resp.status_code == 403


def test_admin_confirms_payment(client, instructor_headers, student_headers, admin_headers):
    course = create_course(client, instructor_headers, access=PAID)
    client.post("/enrollments", json={"course_id": course["_id"]}, headers=student_headers)

    resp = client.post(f"/enrollments/{course['_id']}/confirm",
                       json={"user_id": "student-1", "payment_id": "pay_123"}, headers=admin_headers)
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "active"
    assert resp.json()["payment_id"] == "pay_123"

    # confirming again is harmless
    again = client.post(f"/enrollments/{course['_id']}/confirm",
                        json={"user_id": "student-1", "payment_id": "pay_123"}, headers=admin_headers)
    assert again.status_code == 200
    assert again.json()["status"] == "active"


def test_confirm_requires_admin(client, instructor_headers, student_headers):
    course = create_course(client, instructor_headers, access=PAID)
    client.post("/enrollments", json={"course_id": course["_id"]}, headers=student_headers)
    resp = client.post(f"/enrollments/{course['_id']}/confirm",
                       json={"user_id": "student-1", "payment_id": "pay_forged"}, headers=student_headers)
    assert resp.status_code == 403


def test_confirm_without_pending_enrollment(client, instructor_headers, admin_headers):
    course = create_course(client, instructor_headers, access=PAID)
    resp = client.post(f"/enrollments/{course['_id']}/confirm",
                       json={"user_id": "student-9", "payment_id": "pay_1"}, headers=admin_headers)
    assert resp.status_code == 403
    assert resp.json()["error"] == "Not Enrolled"


def test_enrolling_twice_returns_existing(client, instructor_headers, student_headers):
    course = create_course(client, instructor_headers)
    first = client.post("/enrollments", json={"course_id": course["_id"]}, headers=student_headers).json()
    second = client.post("/enrollments", json={"course_id": course["_id"]}, headers=student_headers).json()
    assert first["created_at"] == second["created_at"]


def test_enroll_in_missing_course(client, student_headers):
    resp = client.post("/enrollments", json={"course_id": "64b7f0c2a1b2c3d4e5f60718"}, headers=student_headers)
    assert resp.status_code == 404


def test_my_courses_lists_active_only(client, instructor_headers, student_headers):
    free = create_course(client, instructor_headers, title="Free course")
    paid = create_course(client, instructor_headers, title="Paid course", access=PAID)
    client.post("/enrollments", json={"course_id": free["_id"]}, headers=student_headers)
    client.post("/enrollments", json={"course_id": paid["_id"]}, headers=student_headers)

    body = client.get("/enrollments/my-courses", headers=student_headers).json()
    assert body["user_id"] == "student-1"
    assert [c["title"] for c in body["items"]] == ["Free course"]
    assert body["items"][0]["videos_count"] == 3

    other = client.get("/enrollments/my-courses", headers=auth(mint_token("student-2"))).json()
    assert other["items"] == []


def test_enrollment_requires_token(client, instructor_headers):
    course = create_course(client, instructor_headers)
    assert client.post("/enrollments", json={"course_id": course["_id"]}).status_code == 401


def test_enroll_count_is_fresh_on_the_course(client, instructor_headers, student_headers, admin_headers):
    free = create_course(client, instructor_headers, title="Free course")
    paid = create_course(client, instructor_headers, title="Paid course", access=PAID)
    # warm both cache layers
    assert client.get(f"/courses/{free['_id']}").json()["enroll_count"] == 0
    assert client.get(f"/courses/{paid['_id']}").json()["enroll_count"] == 0

    client.post("/enrollments", json={"course_id": free["_id"]}, headers=student_headers)
    client.post("/enrollments", json={"course_id": paid["_id"]}, headers=student_headers)
    assert client.get(f"/courses/{free['_id']}").json()["enroll_count"] == 1
    assert client.get(f"/courses/{paid['_id']}").json()["enroll_count"] == 0

    client.post(f"/enrollments/{paid['_id']}/confirm",
                json={"user_id": "student-1", "payment_id": "pay_7"}, headers=admin_headers)
    assert client.get(f"/courses/{paid['_id']}").json()["enroll_count"] == 1


def test_create_enrollment_reports_only_the_insert(db):
    first, created = enrollments_repo.create_enrollment(db, user_id="u1", course_id="c1", status="active", amount=0)
    again, created_again = enrollments_repo.create_enrollment(db, user_id="u1", course_id="c1",
                                                             status="pending_payment", amount=9)
    assert created is True
    assert created_again is False
    assert again["status"] == "active"
    assert again["created_at"] == first["created_at"]


def test_racing_free_enrollments_count_once(client, db, redis, instructor_headers, monkeypatch):
    course = create_course(client, instructor_headers)
    # both requests pass the existence check before either inserts
    monkeypatch.setattr(enrollments_repo, "get_enrollment", lambda *args: None)

    a = asyncio.run(enrollment_service.enroll(db, redis, user_id="student-1", course_id=course["_id"]))
    b = asyncio.run(enrollment_service.enroll(db, redis, user_id="student-1", course_id=course["_id"]))
    assert a["status"] == b["status"] == "active"
    assert db.enrollments.count_documents({"user_id": "student-1"}) == 1
    assert db.courses.find_one({})["enroll_count"] == 1
