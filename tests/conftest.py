import os
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

# Ensure predictable environment variables for tests before importing the app.
BASE_DIR = Path(__file__).resolve().parents[1]
TEST_DB_PATH = BASE_DIR / "test.db"

if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

os.environ.setdefault("DATABASE_URL", f"sqlite:///{TEST_DB_PATH}")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("SPACES_CDN_URL", "https://cdn.test")
os.environ.setdefault("MENTOR_REQUEST_NOTIFICATIONS_ENABLED", "false")

import app.main as main  # noqa: E402  (import after env vars are set)
from app.database import Base, SessionLocal, engine  # noqa: E402
from app.services.auth_middleware import get_current_admin, get_current_user  # noqa: E402
from app.services.image_store import ImageStore, get_image_store  # noqa: E402
from app.services.upload_progress import UploadProgressCache, get_upload_progress  # noqa: E402
from tests.factories import BUCKET, CDN_URL, FakeRedis, make_user  # noqa: E402


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture()
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def s3_client():
    return MagicMock()


@pytest.fixture()
def store(s3_client):
    return ImageStore(client=s3_client, bucket=BUCKET, cdn_url=CDN_URL, base_path="club")


@pytest.fixture()
def fake_redis():
    return FakeRedis()


@pytest.fixture()
def progress(fake_redis):
    return UploadProgressCache(client=fake_redis, ttl_seconds=60)


@pytest.fixture()
def current_user():
    return make_user()


@pytest.fixture()
def client(monkeypatch, store, progress, current_user):
    """Provide a TestClient with startup tasks patched out for isolation."""
    monkeypatch.setattr(main, "run_seed", lambda: None)

    async def _noop_async(*args, **kwargs):
        return None

    monkeypatch.setattr(main, "close_redis", _noop_async)

    main.app.dependency_overrides[get_image_store] = lambda: store
    main.app.dependency_overrides[get_upload_progress] = lambda: progress
    main.app.dependency_overrides[get_current_user] = lambda: current_user
    main.app.dependency_overrides[get_current_admin] = lambda: make_user(99, "Club Admin", is_admin=True)

    with TestClient(main.app) as test_client:
        yield test_client

    main.app.dependency_overrides.clear()
