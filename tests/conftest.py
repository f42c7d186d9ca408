"""Shared fixtures: a throwaway SQLite database and storage root per test."""

import json
import os

os.environ.setdefault("SECRET", "test-secret-for-courseware-suite")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./courseware-test.db")
os.environ.setdefault("APP_ENV", "testing")

import pytest
import yaml
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import NullPool

from courseware import models  # noqa: F401  registers tables on Base
from courseware.database import Base, get_db, make_engine, make_session_maker
from courseware.main import app
from courseware.models import User, UserType
from courseware.services.content_store import ContentStore
from courseware.users import current_active_user, current_optional_user
from courseware.utils import get_content_store


@pytest.fixture
def sync_db_url(tmp_path):
    url = f"sqlite:///{tmp_path / 'courseware.db'}"
    engine = create_engine(url)
    Base.metadata.create_all(engine)
    engine.dispose()
    return url


@pytest.fixture
def session_maker(sync_db_url):
    engine = make_engine(sync_db_url.replace("sqlite://", "sqlite+aiosqlite://", 1), poolclass=NullPool)
    return make_session_maker(engine)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def store(tmp_path):
    root = tmp_path / "storage"
    (root / "courses").mkdir(parents=True)
    return ContentStore(root)


@pytest.fixture
def put_file(store):
    """Write a file under the storage root; dicts/lists are encoded by extension."""

    def _put(rel_path, payload):
        target = store.root / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(payload, (dict, list)):
            if rel_path.endswith(".json"):
                payload = json.dumps(payload)
            else:
                payload = yaml.safe_dump(payload, indent=2)
        target.write_text(payload, encoding="utf-8")
        return target

    return _put


@pytest.fixture
def make_user(sync_db_url):
    def _make(email="student@example.com", user_type=UserType.Student, is_superuser=False):
        engine = create_engine(sync_db_url)
        with Session(engine, expire_on_commit=False) as session:
            user = User(
                email=email,
                username=email.split("@")[0],
                hashed_password="not-a-real-hash",
                is_active=True,
                is_superuser=is_superuser,
                is_verified=True,
                user_type=user_type,
                taken_courses=[],
            )
            session.add(user)
            session.commit()
        engine.dispose()
        return user

    return _make


@pytest.fixture
def client(session_maker, store):
    async def _get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_content_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login():
    def _login(user):
        app.dependency_overrides[current_active_user] = lambda: user
        app.dependency_overrides[current_optional_user] = lambda: user
        return user

    return _login
