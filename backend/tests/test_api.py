"""
API tests: the full app wired against the in-memory Supabase fake.
"""

import datetime as dt

import pytest
from fastapi.testclient import TestClient

from fakes import USER_ID, FakeAPIError
from studyplanner.main import create_app


@pytest.fixture
def make_client(settings, db):
    clients = []

    def factory():
        async def client_factory(settings, storage):
            return db

        client = TestClient(create_app(settings, client_factory=client_factory))
        client.__enter__()
        clients.append(client)
        return client

    yield factory
    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    return make_client()


def _homework(**overrides):
    tomorrow = dt.datetime.now() + dt.timedelta(days=1)
    return {
        "subject": "Math",
        "assignment": "Problem set 3",
        "dueDate": tomorrow.replace(microsecond=0).isoformat(),
        **overrides,
    }


# ── System ───────────────────────────────────────────────

def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_state_after_startup(client):
    body = client.get("/api/study/state").json()
    assert body["userId"] == USER_ID
    assert body["loading"] is False
    assert body["error"] is None


# ── Homework ─────────────────────────────────────────────

class TestHomeworkRoutes:
    def test_crud(self, client, db):
        created = client.post("/api/study/homework", json=_homework())
        assert created.status_code == 201
        homework_id = created.json()["id"]
        assert created.json()["status"] == "Not Started"

        updated = client.patch(f"/api/study/homework/{homework_id}", json={"status": "Completed"})
        assert updated.status_code == 200
        assert updated.json()["status"] == "Completed"
        assert db.tables["homework"][0]["status"] == "Completed"

        listed = client.get("/api/study/homework").json()
        assert [hw["id"] for hw in listed] == [homework_id]

        assert client.delete(f"/api/study/homework/{homework_id}").status_code == 204
        assert client.get("/api/study/homework").json() == []

    def test_unknown_id_is_404(self, client):
        response = client.patch("/api/study/homework/missing", json={"status": "Completed"})
        assert response.status_code == 404

    def test_entity_gone_after_write_is_404(self, client, monkeypatch):
        homework_id = client.post("/api/study/homework", json=_homework()).json()["id"]
        store = client.app.state.store

        async def update_then_vanish(homework_id, update):
            store.homework = []
            return True

        monkeypatch.setattr(store, "update_homework", update_then_vanish)

        response = client.patch(f"/api/study/homework/{homework_id}", json={"status": "Completed"})

        assert response.status_code == 404

    def test_remote_failure_is_502(self, client, db):
        db.failures[("homework", "insert")] = FakeAPIError("duplicate key value")

        response = client.post("/api/study/homework", json=_homework())

        assert response.status_code == 502
        assert "duplicate key value" in response.json()["detail"]["error"]
        assert client.get("/api/study/homework").json() == []

    def test_invalid_payload_is_422(self, client, db):
        response = client.post("/api/study/homework", json={"subject": "Math"})
        assert response.status_code == 422
        assert db.calls_for("homework", "insert") == []


# ── Calendar events / grades ─────────────────────────────

class TestCalendarAndGradeRoutes:
    def test_exam_without_subject_is_rejected(self, client, db):
        response = client.post(
            "/api/study/calendar-events",
            json={"date": "2025-06-10", "eventType": "Exam"},
        )
        assert response.status_code == 422
        assert db.calls_for("calendar_events", "insert") == []

    def test_add_event(self, client):
        response = client.post(
            "/api/study/calendar-events",
            json={"date": "2025-06-10", "eventType": "Exam", "subject": "Biology"},
        )
        assert response.status_code == 201
        assert response.json()["eventType"] == "Exam"

    def test_marks_above_maximum_are_rejected(self, client):
        response = client.post("/api/study/grades", json={
            "subject": "Math", "assessmentName": "Quiz 1", "maxMarks": 10,
            "marksObtained": 12, "dateGraded": "2025-01-10",
        })
        assert response.status_code == 422

    def test_blanking_exam_subject_is_rejected(self, client, db):
        event_id = client.post(
            "/api/study/calendar-events",
            json={"date": "2025-06-10", "eventType": "Exam", "subject": "Biology"},
        ).json()["id"]

        response = client.patch(f"/api/study/calendar-events/{event_id}", json={"subject": ""})

        assert response.status_code == 422
        assert response.json()["detail"]["type"] == "InvalidInputError"
        assert db.calls_for("calendar_events", "update") == []

    def test_grade_update_beyond_maximum_is_rejected(self, client, db):
        grade_id = client.post("/api/study/grades", json={
            "subject": "Math", "assessmentName": "Quiz 1", "maxMarks": 10,
            "marksObtained": 9, "dateGraded": "2025-01-10",
        }).json()["id"]

        response = client.patch(f"/api/study/grades/{grade_id}", json={"marksObtained": 12})

        assert response.status_code == 422
        assert db.calls_for("grades", "update") == []

    def test_add_grade_fills_letter(self, client):
        response = client.post("/api/study/grades", json={
            "subject": "Math", "assessmentName": "Quiz 1", "maxMarks": 10,
            "marksObtained": 9, "dateGraded": "2025-01-10",
        })
        assert response.status_code == 201
        assert response.json()["grade"] == "A*"


# ── Timetable ────────────────────────────────────────────

class TestTimetableRoutes:
    def test_put_and_clear_slot(self, client, db):
        response = client.put("/api/study/timetable/Monday/1", json={"subject": "Math", "room": "B2"})
        assert response.status_code == 200
        assert response.json()["subject"] == "Math"
        assert response.json()["period"] == 1

        assert client.delete("/api/study/timetable/Monday/1").status_code == 204
        assert client.get("/api/study/timetable").json() == []
        assert db.tables["timetable"] == []

    def test_empty_slot_returns_null(self, client, db):
        response = client.put("/api/study/timetable/Tuesday/2", json={})
        assert response.status_code == 200
        assert response.json() is None
        assert db.calls_for("timetable", "insert") == []

    @pytest.mark.parametrize("path", ["/api/study/timetable/Sunday/1", "/api/study/timetable/Monday/9"])
    def test_out_of_grid_is_422(self, client, path):
        assert client.put(path, json={"subject": "Math"}).status_code == 422

    def test_listing_is_sorted_by_day_then_period(self, client):
        client.put("/api/study/timetable/Friday/1", json={"subject": "Art"})
        client.put("/api/study/timetable/Monday/3", json={"subject": "History"})
        client.put("/api/study/timetable/Monday/1", json={"subject": "Math"})

        listed = client.get("/api/study/timetable").json()

        assert [(e["day"], e["period"]) for e in listed] == [
            ("Monday", 1), ("Monday", 3), ("Friday", 1),
        ]


# ── Store / dashboard ────────────────────────────────────

def test_reload_failure_is_reported(client, db):
    db.failures[("grades", "select")] = FakeAPIError("permission denied for table grades")

    response = client.post("/api/study/reload")

    assert response.status_code == 502
    assert client.get("/api/study/state").json()["errorKind"] == "transient"


def test_dashboard(client):
    assert client.get("/api/dashboard/").json()["has_data"] is False

    client.post("/api/study/homework", json=_homework())
    body = client.get("/api/dashboard/").json()

    assert body["active_homework"] == 1
    assert body["overdue_homework"] == 0
    assert [item["kind"] for item in body["next_seven_days"]] == ["homework"]


# ── Auth ─────────────────────────────────────────────────

class TestAuthRoutes:
    def test_session(self, client):
        body = client.get("/api/auth/session").json()
        assert body["authenticated"] is True
        assert body["user"]["id"] == USER_ID
        assert body["user"]["full_name"] == "Test Student"

    def test_sign_out_locks_study_routes(self, client, db):
        client.post("/api/study/homework", json=_homework())

        assert client.post("/api/auth/sign-out").status_code == 200

        assert client.get("/api/study/homework").status_code == 401
        assert client.get("/api/auth/session").json()["authenticated"] is False
        assert client.get("/api/study/state").json()["homeworkCount"] == 0

    def test_signed_out_at_startup(self, make_client, db):
        db.auth.session = None
        client = make_client()

        assert client.get("/api/study/homework").status_code == 401
        assert client.get("/api/dashboard/").status_code == 401

    def test_sign_in_loads_data(self, make_client, db):
        db.auth.session = None
        db.tables["homework"] = [{
            "id": "hw-1", "user_id": USER_ID, "subject": "Math", "assignment": "Set 1",
            "due_date": "2025-03-01T23:59:00",
        }]
        client = make_client()

        response = client.post("/api/auth/sign-in", json={
            "email": "student@example.com", "password": "secret",
        })

        assert response.status_code == 200
        assert response.json()["authenticated"] is True
        assert [hw["id"] for hw in client.get("/api/study/homework").json()] == ["hw-1"]

    def test_bad_credentials_are_401(self, client, db):
        db.auth.sign_in_error = FakeAPIError("Invalid login credentials", status=400)

        response = client.post("/api/auth/sign-in", json={
            "email": "student@example.com", "password": "wrong",
        })

        assert response.status_code == 401
        assert response.json()["detail"]["type"] == "AuthenticationError"

    def test_sign_up_without_confirmation(self, client):
        response = client.post("/api/auth/sign-up", json={
            "email": "new@example.com", "password": "secret1",
        })
        assert response.status_code == 200

    def test_sign_up_short_password_is_422(self, client):
        response = client.post("/api/auth/sign-up", json={
            "email": "new@example.com", "password": "abc",
        })
        assert response.status_code == 422

    def test_google_url(self, client):
        response = client.get("/api/auth/google")
        assert response.json() == {"url": "https://accounts.example.com/o/oauth2"}
