import fnmatch
import os

# Settings are read at import time, so the environment must be in place first.
os.environ.setdefault("MONGO_URI", "mongodb://localhost:27017/coursehub_test")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("JWT_SECRET", "test-secret-key-that-is-long-enough-0123456789")

import mongomock
import pytest
from fastapi.testclient import TestClient

from auth.jwt import create_access_token
from deps import get_db, get_redis
from main import app
from repos.enrollments import ensure_indexes as ensure_enrollment_indexes
from repos.progress import ensure_indexes as ensure_progress_indexes
from services.memory_cache import memory_cache


class FakeRedis:
    """In-memory stand-in for the few redis.asyncio calls the app makes."""

    def __init__(self):
        self._data = {}
        self._hashes = {}

    async def ping(self):
        return True

    async def get(self, key):
        return self._data.get(key)

    async def set(self, key, value, ex=None):
        self._data[key] = value
        return True

    async def delete(self, *keys):
        removed = 0
        for k in keys:
            removed += int(self._data.pop(k, None) is not None)
            removed += int(self._hashes.pop(k, None) is not None)
        return removed

    async def scan(self, cursor=0, match=None, count=None):
        keys = [k for k in self._data if match is None or fnmatch.fnmatch(k, match)]
        return 0, keys

    async def hincrby(self, name, key, amount=1):
        h = self._hashes.setdefault(name, {})
        h[key] = int(h.get(key, 0)) + amount
        return h[key]

    async def hgetall(self, name):
        return {k: str(v) for k, v in self._hashes.get(name, {}).items()}


@pytest.fixture(autouse=True)
def reset_memory_cache():
    memory_cache.clear()
    yield
    memory_cache.clear()


@pytest.fixture
def db():
    database = mongomock.MongoClient().coursehub_test
    ensure_progress_indexes(database)
    ensure_enrollment_indexes(database)
    return database


@pytest.fixture
def redis():
    return FakeRedis()


@pytest.fixture
def client(db, redis):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_redis] = lambda: redis
    yield TestClient(app)
    app.dependency_overrides.clear()


def mint_token(user_id: str = "student-1", role: str = "student") -> str:
    return create_access_token({"sub": user_id, "role": role})


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def student_headers() -> dict:
    return auth(mint_token("student-1", "student"))


@pytest.fixture
def instructor_headers() -> dict:
    return auth(mint_token("instructor-1", "instructor"))


@pytest.fixture
def admin_headers() -> dict:
    return auth(mint_token("admin-1", "admin"))


def create_course(client, headers, *, videos=3, access=None, instructor_id="instructor-1", title="Python Basics"):
    payload = {
        "title": title,
        "description": "Intro course",
        "instructor_id": instructor_id,
        "published": True,
        "videos": [
            {"video_id": f"v{i}", "title": f"Lesson {i}", "duration_seconds": 600, "url": f"https://cdn.example.com/v{i}.mp4"}
            for i in range(videos)
        ],
    }
    if access is not None:
        payload["access"] = access
    resp = client.post("/courses", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()
