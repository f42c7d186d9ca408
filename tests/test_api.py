"""HTTP-level tests for the data, admin, progress and auth routes."""

import json

import pytest
import yaml
from sqlalchemy.exc import IntegrityError

from courseware.database import get_db
from courseware.main import app
from courseware.models import UserType


class ConflictingSession:
    """Session stand-in whose statements hit a unique constraint, as a concurrent writer would."""

    def __init__(self):
        self.rolled_back = False
        self.committed = False

    async def execute(self, statement, *args, **kwargs):
        raise IntegrityError(str(statement), {}, Exception("UNIQUE constraint failed: course.slug"))

    async def flush(self):
        raise IntegrityError("flush", {}, Exception("UNIQUE constraint failed: course.slug"))

    async def commit(self):
        self.committed = True

    async def rollback(self):
        self.rolled_back = True


@pytest.fixture
def demo_tree(put_file):
    put_file(
        "courses/demo/chapters.json",
        {"title": "Demo Course", "chapters": [{"id": "001-intro", "title": "Intro"}, {"id": "002-next"}]},
    )
    put_file("courses/demo/001-intro/topics.json", ["001-welcome.md", "002-quiz.json"])
    put_file("courses/demo/001-intro/001-welcome.md", "Welcome text without heading.")
    put_file("courses/demo/001-intro/002-quiz.json", {"title": "Quiz", "content": ["q"]})
    put_file("courses/demo/002-next/topics.yaml", ["003-more.md"])
    put_file("courses/demo/002-next/003-more.md", "# More\n\nBody")


class TestDataRead:
    def test_index_lists_data_files(self, client, put_file):
        put_file("courses/demo/chapters.json", {"title": "Demo"})
        put_file("courses/demo/notes.txt", "skip")

        res = client.get("/data")

        assert res.status_code == 200
        assert res.json() == {"count": 1, "files": ["courses/demo/chapters.json"]}

    @pytest.mark.parametrize("path", ["courses/index.json", "index.yaml", "courses/index.yml"])
    def test_course_index_is_generated(self, client, store, put_file, path):
        put_file("courses/course-2/course.yaml", {"title": "Two"})
        put_file("courses/course-1/chapters.json", {"title": "One"})
        (store.root / "courses" / "course-ignored").mkdir()

        res = client.get(f"/data/{path}")

        assert res.status_code == 200
        assert res.json() == [{"slug": "course-1"}, {"slug": "course-2"}]

    def test_json_file_is_served_verbatim(self, client, put_file):
        raw = '{"title":   "Spacing kept"}'
        put_file("courses/demo/chapters.json", raw)

        res = client.get("/data/courses/demo/chapters.json")

        assert res.status_code == 200
        assert res.headers["content-type"].startswith("application/json")
        assert res.text == raw

    def test_yaml_twin_is_served_as_json(self, client, put_file):
        put_file("courses/demo/course.yml", {"title": "From Yaml", "chapters": []})

        res = client.get("/data/demo/chapters.json")

        assert res.status_code == 200
        assert res.json() == {"title": "From Yaml", "chapters": []}

    def test_json_wins_when_both_spellings_exist(self, client, put_file):
        put_file("courses/demo/topics.json", ["from-json.md"])
        put_file("courses/demo/topics.yaml", ["from-yaml.md"])

        assert client.get("/data/courses/demo/topics.yaml").json() == ["from-json.md"]

    def test_encoded_folder_names_are_decoded(self, client, put_file):
        put_file("courses/intro course/chapters.json", {"title": "Spaced"})

        res = client.get("/data/intro%20course/chapters.json")

        assert res.status_code == 200
        assert res.json()["title"] == "Spaced"

    @pytest.mark.parametrize(
        "path",
        ["courses/demo/missing.json", "courses/demo/..secret.json", "courses/demo/readme.md"],
    )
    def test_missing_or_unsafe_paths_are_404(self, client, path):
        res = client.get(f"/data/{path}")

        assert res.status_code == 404
        assert res.json() == {"detail": "Not Found"}


class TestDataWrite:
    def test_create_update_delete_cycle(self, client, store):
        created = client.post("/data/courses/demo/topics.json", json={"data": ["a.md"]})
        assert created.status_code == 201
        assert created.json() == {"path": "courses/demo/topics.json"}
        assert json.loads(store.read("courses/demo/topics.json")) == ["a.md"]

        duplicate = client.post("/data/courses/demo/topics.yaml", json={"data": ["x.md"]})
        assert duplicate.status_code == 409
        assert duplicate.json() == {"detail": "File already exists."}

        updated = client.put("/data/courses/demo/topics.yml", json={"data": ["b.md"]})
        assert updated.status_code == 200
        assert updated.json() == {"path": "courses/demo/topics.json"}
        assert json.loads(store.read("courses/demo/topics.json")) == ["b.md"]

        deleted = client.delete("/data/courses/demo/topics.json")
        assert deleted.status_code == 200
        assert deleted.json() == {"deleted": True}
        assert not store.exists("courses/demo/topics.json")

        assert client.delete("/data/courses/demo/topics.json").status_code == 404

    def test_yaml_create_is_written_as_yaml(self, client, store):
        res = client.post("/data/demo/course.yml", json={"data": {"title": "Yaml", "chapters": []}})

        assert res.status_code == 201
        assert res.json() == {"path": "courses/demo/chapters.yaml"}
        assert yaml.safe_load(store.read_text("courses/demo/chapters.yaml")) == {"title": "Yaml", "chapters": []}

    def test_update_of_missing_file_is_404(self, client):
        assert client.put("/data/courses/demo/topics.json", json={"data": ["a.md"]}).status_code == 404

    @pytest.mark.parametrize("body", [{}, {"data": "text"}, {"data": 3}, {"data": {}}, {"data": []}])
    def test_payload_must_be_non_empty_object_or_array(self, client, body):
        assert client.post("/data/courses/demo/topics.json", json=body).status_code == 422

    def test_unsafe_write_is_rejected(self, client, store):
        res = client.post("/data/courses/demo/..evil.json", json={"data": {"a": 1}})

        assert res.status_code == 404
        assert store.list_data_files() == []


class TestAdmin:
    def test_guest_is_unauthorized(self, client):
        assert client.get("/api/admin").status_code == 401
        assert client.post("/api/admin/sync/courses").status_code == 401

    def test_student_is_forbidden(self, client, make_user, login):
        login(make_user())

        assert client.get("/api/admin").status_code == 403
        assert client.post("/api/admin/sync/topics").status_code == 403

    def test_sync_and_overview(self, client, make_user, login, demo_tree):
        login(make_user("admin@example.com", user_type=UserType.Admin))

        courses = client.post("/api/admin/sync/courses")
        assert courses.status_code == 200
        assert courses.json() == {
            "synced": True,
            "result": {"courses_created": 1, "courses_updated": 0, "chapters_created": 2, "chapters_updated": 0},
        }
        topics = client.post("/api/admin/sync/topics")
        assert topics.json() == {"synced": True, "result": {"topics_created": 3, "topics_updated": 0}}

        overview = client.get("/api/admin").json()
        assert [u["email"] for u in overview["users"]] == ["admin@example.com"]
        assert overview["courses"][0]["title"] == "Demo Course"
        assert overview["courses"][0]["chapters_count"] == 2
        assert [(c["slug"], c["topics_count"]) for c in overview["chapters"]] == [("001-intro", 2), ("002-next", 1)]
        assert overview["chapters"][1]["title"] == "Next"
        assert [t["title"] for t in overview["topics"]] == ["Welcome.md", "Quiz", "More"]
        assert overview["topics"][0]["course_title"] == "Demo Course"

    def test_unique_key_conflict_during_sync_is_a_retryable_409(self, client, make_user, login, demo_tree):
        login(make_user("admin@example.com", user_type=UserType.Admin))
        session = ConflictingSession()

        async def _conflicting_db():
            yield session

        app.dependency_overrides[get_db] = _conflicting_db

        res = client.post("/api/admin/sync/courses")

        assert res.status_code == 409
        assert res.json() == {"detail": "Conflicting concurrent update, retry the request."}
        assert session.rolled_back is True
        assert session.committed is False

    def test_superuser_counts_as_admin(self, client, make_user, login):
        login(make_user("root@example.com", is_superuser=True))

        assert client.get("/api/admin").status_code == 200

    def test_change_user_type(self, client, make_user, login):
        login(make_user("admin@example.com", user_type=UserType.Admin))
        student = make_user("learner@example.com")

        res = client.patch(f"/api/admin/users/{student.id}", json={"user_type": "Trainer"})

        assert res.status_code == 200
        assert res.json() == {"updated": True, "user": {"id": student.id, "user_type": "Trainer"}}
        users = {u["email"]: u for u in client.get("/api/admin").json()["users"]}
        assert users["learner@example.com"]["user_type"] == "Trainer"

    def test_change_user_type_validation(self, client, make_user, login):
        login(make_user("admin@example.com", user_type=UserType.Admin))

        assert client.patch("/api/admin/users/999", json={"user_type": "Student"}).status_code == 404
        assert client.patch("/api/admin/users/1", json={"user_type": "Janitor"}).status_code == 422


class TestProgress:
    def test_guest_cannot_record_progress(self, client):
        res = client.post("/progress/completion", json={"slug": "demo", "chapter_id": "001-intro", "topics": []})

        assert res.status_code == 401

    def test_completion_and_results_feed_the_dashboard(self, client, make_user, login, demo_tree):
        login(make_user())

        done = client.post(
            "/progress/completion",
            json={"slug": "demo", "chapter_id": "001-intro", "topics": ["001-welcome.md", "002-quiz.json"]},
        )
        assert done.status_code == 200
        assert done.json() == {"updated": True}
        client.post("/progress/completion", json={"slug": "demo", "chapter_id": "001-intro", "topics": ["001-welcome.md"]})

        scored = client.post("/progress/results", json={"slug": "demo", "total_answers": 3, "correct_answers": 2})
        assert scored.json() == {"updated": True}

        dashboard = client.get("/api/dashboard")
        assert dashboard.status_code == 200
        (course,) = dashboard.json()["courses"]
        assert course["slug"] == "demo"
        assert course["title"] == "Demo Course"
        assert course["final_score"] == 67
        assert course["score"] == 2
        assert course["chapters"] == 2
        assert course["completed_chapters"] == 1
        assert course["completed_topics"] == 2
        assert course["total_topics"] == 3

    @pytest.mark.parametrize(
        "url, body",
        [
            ("/progress/completion", {"slug": "", "chapter_id": "x"}),
            ("/progress/completion", {"slug": "demo"}),
            ("/progress/results", {"slug": "demo", "total_answers": -1, "correct_answers": 0}),
            ("/progress/results", {"slug": "demo", "total_answers": 2}),
        ],
    )
    def test_invalid_progress_payloads(self, client, make_user, login, url, body):
        login(make_user())

        assert client.post(url, json=body).status_code == 422

    def test_dashboard_is_empty_without_enrollments(self, client, make_user, login):
        login(make_user())

        assert client.get("/api/dashboard").json() == {"courses": []}


class TestAuth:
    def test_guest_status(self, client):
        assert client.get("/api/auth/status").json() == {"authenticated": False, "user": None}

    def test_status_for_logged_in_user(self, client, make_user, login):
        login(make_user("learner@example.com"))

        body = client.get("/api/auth/status").json()

        assert body["authenticated"] is True
        assert body["user"]["email"] == "learner@example.com"
        assert body["user"]["user_type"] == "Student"

    def test_register_then_cookie_login(self, client):
        registered = client.post(
            "/auth/register",
            json={"email": "new@example.com", "password": "a-long-password", "username": "newbie"},
        )
        assert registered.status_code == 201
        assert registered.json()["user_type"] == "Student"

        login = client.post("/auth/jwt/login", data={"username": "new@example.com", "password": "a-long-password"})
        assert login.status_code == 204

        body = client.get("/api/auth/status").json()
        assert body["authenticated"] is True
        assert body["user"]["username"] == "newbie"


class TestDataFileAccess:
    def test_lookups_and_decoding_run_in_executor(self, client, put_file, monkeypatch):
        from courseware.background import run_sync
        from courseware.routers import data as data_router

        offloaded = []

        async def recording_run_sync(func, *args, **kwargs):
            offloaded.append(getattr(func, "__name__", repr(func)))
            return await run_sync(func, *args, **kwargs)

        monkeypatch.setattr(data_router, "run_sync", recording_run_sync)
        put_file("courses/demo/topics.yaml", ["a.md"])

        assert client.get("/data/courses/demo/topics.json").json() == ["a.md"]
        assert client.delete("/data/courses/demo/topics.json").status_code == 200

        assert offloaded == ["resolve_existing", "read", "decode_payload", "resolve_existing", "delete"]
