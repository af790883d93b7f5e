# tests/conftest.py
import os
import tempfile

# Cheap bcrypt and a throwaway upload dir before shufflr.config is imported
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="shufflr-uploads-"))
os.environ.setdefault("DATABASE_PATH", os.path.join(tempfile.mkdtemp(prefix="shufflr-db-"), "shufflr.db"))

import pytest
import requests

BASE_URL = os.getenv("BASE_URL") or os.getenv("APP_BASE_URL")

ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "secret123"

# Tiny PNG payload; content is never decoded
PNG_BYTES = bytes.fromhex(
    "89504e470d0a1a0a0000000d4948445200000001000000010806000000"
    "1f15c4890000000d49444154789c6360000002000154a24f5d0000000049454e44ae426082"
)


class BaseUrlSession(requests.Session):
    def __init__(self, base_url: str):
        super().__init__()
        self._base = base_url.rstrip("/")

    def request(self, method, url, *args, **kwargs):
        # Allow relative paths like "/health"
        if not url.lower().startswith("http"):
            url = f"{self._base}/{url.lstrip('/')}"
        return super().request(method, url, *args, **kwargs)


@pytest.fixture
def app_env(tmp_path, monkeypatch):
    """Fresh SQLite file and upload directory for every test"""
    from shufflr import config
    from shufflr.db import configure_engine
    from shufflr.db_init import init_schema_and_seed

    upload_dir = tmp_path / "uploads"
    upload_dir.mkdir()
    monkeypatch.setattr(config, "UPLOAD_DIR", str(upload_dir))
    configure_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_schema_and_seed()
    return {"upload_dir": upload_dir}


@pytest.fixture
def client(app_env):
    from fastapi.testclient import TestClient
    from shufflr.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db(app_env):
    from shufflr.db import SessionLocal

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def admin_user(db):
    from shufflr.services.credentials import create_admin_user

    return create_admin_user(db, ADMIN_USERNAME, ADMIN_PASSWORD)


@pytest.fixture
def admin_client(client, admin_user):
    """TestClient carrying a valid admin session cookie"""
    resp = client.post(
        "/admin/login",
        data={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD},
        follow_redirects=False,
    )
    assert resp.status_code == 303
    return client


@pytest.fixture
def api_key(db):
    """(ApiKey, raw token) for an enabled key"""
    from shufflr.services.credentials import create_api_key

    return create_api_key(db, "test-client")


@pytest.fixture
def key_headers(api_key):
    return {"X-API-Key": api_key[1]}


@pytest.fixture
def make_image(db, app_env):
    """Write an image into the upload dir and register it"""
    from shufflr.services.images import create_image_file, set_image_enabled

    def _make(filename: str, enabled: bool = True, content: bytes = PNG_BYTES, mime_type: str = "image/png"):
        (app_env["upload_dir"] / filename).write_bytes(content)
        image = create_image_file(db, filename, len(content), mime_type)
        if not enabled:
            set_image_enabled(db, filename, False)
        return image

    return _make


@pytest.fixture
def set_settings(db):
    from shufflr.services.settings import set_setting

    def _set(**values):
        for key, value in values.items():
            set_setting(db, key, str(value))

    return _set


@pytest.fixture(scope="session")
def live_client():
    """Same suite against a running container when BASE_URL is set"""
    if not BASE_URL:
        pytest.skip("BASE_URL not set")
    return BaseUrlSession(BASE_URL)


@pytest.fixture
def png_bytes():
    return PNG_BYTES
