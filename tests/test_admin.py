"""
Tests for the admin UI flows
"""
from urllib.parse import parse_qs, urlparse

import pytest
from sqlalchemy.exc import OperationalError

from shufflr import config
from shufflr.models import ApiKey, ImageFile
from shufflr.services import credentials
from shufflr.services import images as image_service
from shufflr.services.settings import load_snapshot

from conftest import ADMIN_PASSWORD, ADMIN_USERNAME


def _flash(resp, kind):
    query = parse_qs(urlparse(resp.headers["location"]).query)
    return query.get(kind, [None])[0]


class TestSetup:
    def test_admin_redirects_to_setup_without_users(self, client):
        resp = client.get("/admin", follow_redirects=False)
        assert resp.status_code == 303
        assert resp.headers["location"] == "/admin/setup"

    def test_setup_page_renders(self, client):
        resp = client.get("/admin/setup")
        assert resp.status_code == 200
        assert "confirm_password" in resp.text

    @pytest.mark.parametrize("form, error", [
        ({"username": "", "password": "secret1", "confirm_password": "secret1"},
         "Username and password are required"),
        ({"username": "ab", "password": "secret1", "confirm_password": "secret1"},
         "Username must be at least 3 characters"),
        ({"username": "admin", "password": "12345", "confirm_password": "12345"},
         "Password must be at least 6 characters"),
        ({"username": "admin", "password": "secret1", "confirm_password": "secret2"},
         "Passwords do not match"),
    ])
    def test_setup_validation(self, client, db, form, error):
        resp = client.post("/admin/setup", data=form)
        assert resp.status_code == 200
        assert error in resp.text
        assert credentials.has_admin_users(db) is False

    def test_setup_creates_admin_once(self, client, db):
        resp = client.post(
            "/admin/setup",
            data={"username": "owner", "password": "secret1", "confirm_password": "secret1"},
            follow_redirects=False,
        )
        assert resp.status_code == 303
        assert resp.headers["location"].startswith("/admin/login")
        assert _flash(resp, "success") == "Admin account created successfully"
        assert credentials.get_admin_user_by_username(db, "owner") is not None

        again = client.get("/admin/setup", follow_redirects=False)
        assert again.status_code == 303
        assert again.headers["location"] == "/admin/login"

        resp = client.post(
            "/admin/setup",
            data={"username": "intruder", "password": "secret1", "confirm_password": "secret1"},
            follow_redirects=False,
        )
        assert resp.status_code == 303
        assert credentials.get_admin_user_by_username(db, "intruder") is None


class TestLogin:
    def test_empty_fields(self, client, admin_user):
        resp = client.post("/admin/login", data={"username": "", "password": ""})
        assert "Username and password are required" in resp.text

    @pytest.mark.parametrize("username, password", [
        (ADMIN_USERNAME, "wrong-password"),
        ("ghost", ADMIN_PASSWORD),
    ])
    def test_bad_credentials_share_one_message(self, client, admin_user, username, password):
        resp = client.post("/admin/login", data={"username": username, "password": password})
        assert resp.status_code == 200
        assert "Invalid username or password" in resp.text
        assert "shufflr-session" not in resp.headers.get("set-cookie", "")

    def test_login_sets_session_and_redirects(self, client, admin_user):
        resp = client.post(
            "/admin/login",
            data={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD},
            follow_redirects=False,
        )
        assert resp.status_code == 303
        assert resp.headers["location"] == "/admin"
        cookie = resp.headers["set-cookie"].lower()
        assert cookie.startswith("shufflr-session=")
        assert "httponly" in cookie

    def test_logout_ends_session(self, admin_client):
        assert admin_client.get("/admin", follow_redirects=False).status_code == 200

        resp = admin_client.post("/admin/logout", follow_redirects=False)
        assert resp.status_code == 303
        assert resp.headers["location"] == "/admin/login"
        assert "max-age=-1" in resp.headers["set-cookie"].lower()

        assert admin_client.get("/admin", follow_redirects=False).status_code == 303


class TestDashboard:
    def test_dashboard_counts(self, admin_client, db, make_image, api_key):
        make_image("a.png")
        make_image("b.png", enabled=False)
        other, _ = credentials.create_api_key(db, "off")
        credentials.set_api_key_enabled(db, other.id, False)
        credentials.log_api_request(api_key[0].id, 4)

        resp = admin_client.get("/admin")
        assert resp.status_code == 200
        assert "1 enabled / 2 total" in resp.text
        assert "1 active / 2 total" in resp.text
        assert "X-API-Key: YOUR_KEY" in resp.text

    def test_dashboard_shows_flash(self, admin_client):
        resp = admin_client.get("/admin", params={"success": "Welcome back"})
        assert 'class="flash success">Welcome back<' in resp.text

    def test_failed_count_shows_zero(self, admin_client, make_image, monkeypatch, caplog):
        make_image("a.png")

        def broken_count(db):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(image_service, "total_image_count", broken_count)
        resp = admin_client.get("/admin")
        assert resp.status_code == 200
        assert "1 enabled / 0 total" in resp.text
        assert any("error getting image count" in r.getMessage() for r in caplog.records)

    def test_security_headers(self, admin_client):
        resp = admin_client.get("/admin")
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert "Referrer-Policy" in resp.headers


class TestImages:
    def test_upload_and_list(self, admin_client, db, app_env, png_bytes):
        resp = admin_client.post(
            "/admin/images/upload",
            files=[
                ("images", ("cat.png", png_bytes, "image/png")),
                ("images", ("cat.png", png_bytes, "image/png")),
            ],
            follow_redirects=False,
        )
        assert resp.status_code == 303
        assert _flash(resp, "success") == "2 images uploaded successfully"
        assert (app_env["upload_dir"] / "cat.png").exists()
        assert (app_env["upload_dir"] / "cat_1.png").exists()
        assert {i.filename for i in db.query(ImageFile).all()} == {"cat.png", "cat_1.png"}

        page = admin_client.get("/admin/images")
        assert "cat_1.png" in page.text

    def test_upload_rejects_non_images(self, admin_client, db, app_env):
        resp = admin_client.post(
            "/admin/images/upload",
            files=[("images", ("notes.txt", b"hello", "text/plain"))],
            follow_redirects=False,
        )
        assert resp.status_code == 303
        assert "notes.txt: invalid file type" in _flash(resp, "error")
        assert db.query(ImageFile).count() == 0
        assert list(app_env["upload_dir"].iterdir()) == []

    def test_size_limit_applies_per_file(self, admin_client, db, app_env, png_bytes, monkeypatch):
        monkeypatch.setattr(config, "MAX_UPLOAD_BYTES", len(png_bytes))
        resp = admin_client.post(
            "/admin/images/upload",
            files=[
                ("images", ("small.png", png_bytes, "image/png")),
                ("images", ("big.png", png_bytes + b"x", "image/png")),
            ],
            follow_redirects=False,
        )
        error = _flash(resp, "error")
        assert "big.png: file too large" in error
        assert "1 files uploaded successfully" in error
        assert {i.filename for i in db.query(ImageFile).all()} == {"small.png"}
        assert not (app_env["upload_dir"] / "big.png").exists()

    def test_preview_link_is_encoded(self, admin_client, make_image):
        make_image("a#b.png")
        page = admin_client.get("/admin/images")
        assert 'href="/admin/images/serve/a%23b.png"' in page.text
        assert admin_client.get("/admin/images/serve/a%23b.png").status_code == 200

    def test_upload_without_files(self, admin_client):
        resp = admin_client.post("/admin/images/upload", data={}, follow_redirects=False)
        assert resp.status_code == 303
        assert _flash(resp, "error") == "No files selected"

    def test_toggle(self, admin_client, db, make_image):
        make_image("a.png")
        resp = admin_client.post("/admin/images/toggle", data={"filename": "a.png", "enabled": "false"},
                                 follow_redirects=False)
        assert _flash(resp, "success") == "Image disabled successfully"
        db.expire_all()
        assert db.query(ImageFile).filter_by(filename="a.png").one().enabled is False

    def test_rename(self, admin_client, db, make_image, app_env):
        make_image("old.png")
        resp = admin_client.post("/admin/images/rename",
                                 data={"old_filename": "old.png", "new_filename": "new.png"},
                                 follow_redirects=False)
        assert _flash(resp, "success") == "Image renamed successfully"
        assert (app_env["upload_dir"] / "new.png").exists()
        assert not (app_env["upload_dir"] / "old.png").exists()
        db.expire_all()
        assert db.query(ImageFile).filter_by(filename="new.png").count() == 1

    def test_rename_invalid_name(self, admin_client, make_image):
        make_image("old.png")
        resp = admin_client.post("/admin/images/rename",
                                 data={"old_filename": "old.png", "new_filename": "a/b.png"},
                                 follow_redirects=False)
        assert _flash(resp, "error") == "Invalid filename format"

    def test_delete(self, admin_client, db, make_image, app_env):
        make_image("bye.png")
        resp = admin_client.post("/admin/images/delete", data={"filename": "bye.png"}, follow_redirects=False)
        assert _flash(resp, "success") == "Image deleted successfully"
        assert not (app_env["upload_dir"] / "bye.png").exists()
        assert db.query(ImageFile).count() == 0

    def test_admin_preview_ignores_enabled_flag(self, admin_client, make_image, png_bytes):
        make_image("draft.png", enabled=False)
        resp = admin_client.get("/admin/images/serve/draft.png")
        assert resp.status_code == 200
        assert resp.content == png_bytes

    def test_preview_requires_session(self, client, admin_user, make_image):
        make_image("draft.png")
        resp = client.get("/admin/images/serve/draft.png", follow_redirects=False)
        assert resp.status_code == 303


class TestApiKeys:
    def test_create_shows_secret_once(self, admin_client, db):
        resp = admin_client.post("/admin/api-keys/new", data={"name": "website"})
        assert resp.status_code == 200
        key = db.query(ApiKey).one()
        assert key.name == "website"

        raw = resp.text.split('class="secret">', 1)[1].split("<", 1)[0]
        assert len(raw) == 64
        assert credentials.get_api_key_by_token(db, raw).id == key.id

        listing = admin_client.get("/admin/api-keys")
        assert "website" in listing.text
        assert raw not in listing.text

    @pytest.mark.parametrize("name, error", [
        ("", "API key name is required"),
        ("x" * 101, "API key name must be 100 characters or less"),
    ])
    def test_create_validation(self, admin_client, db, name, error):
        resp = admin_client.post("/admin/api-keys/new", data={"name": name})
        assert error in resp.text
        assert db.query(ApiKey).count() == 0

    def test_toggle_and_delete(self, admin_client, db, api_key):
        key, _ = api_key
        key_id = key.id
        resp = admin_client.post("/admin/api-keys/toggle", data={"id": str(key.id), "enabled": "false"},
                                 follow_redirects=False)
        assert _flash(resp, "success") == "API key disabled successfully"
        db.expire_all()
        assert credentials.get_api_key(db, key.id).enabled is False

        resp = admin_client.post("/admin/api-keys/delete", data={"id": str(key.id)}, follow_redirects=False)
        assert _flash(resp, "success") == "API key deleted successfully"
        db.expire_all()
        assert credentials.get_api_key(db, key_id) is None

    def test_invalid_key_id(self, admin_client):
        resp = admin_client.post("/admin/api-keys/delete", data={"id": "abc"}, follow_redirects=False)
        assert _flash(resp, "error") == "Invalid key ID"

    def test_regenerate(self, admin_client, db, api_key):
        key, old_raw = api_key
        resp = admin_client.post("/admin/api-keys/regenerate", data={"id": str(key.id)})
        assert resp.status_code == 200
        new_raw = resp.text.split('class="secret">', 1)[1].split("<", 1)[0]
        assert new_raw != old_raw
        db.expire_all()
        assert credentials.get_api_key_by_token(db, old_raw) is None
        assert credentials.get_api_key_by_token(db, new_raw).name == "test-client"

    def test_regenerate_missing(self, admin_client):
        resp = admin_client.post("/admin/api-keys/regenerate", data={"id": "999"}, follow_redirects=False)
        assert _flash(resp, "error") == "API key not found"


class TestSettings:
    def test_settings_form(self, admin_client):
        resp = admin_client.get("/admin/settings")
        assert resp.status_code == 200
        assert 'name="max_image_count" value="100"' in resp.text

    def test_save_settings(self, admin_client, db):
        resp = admin_client.post("/admin/settings", data={
            "default_image_count": "5",
            "max_image_count": "9",
            "cors_enabled": "true",
            "cors_origins": "",
        }, follow_redirects=False)
        assert resp.status_code == 303
        assert _flash(resp, "success") == "Settings saved successfully"
        snap = load_snapshot(db)
        assert snap.require_api_key_for_images is False
        assert snap.default_image_count == 5
        assert snap.max_image_count == 9
        assert snap.cors_origins == "*"

    def test_invalid_settings_redisplay(self, admin_client, db):
        resp = admin_client.post("/admin/settings", data={
            "default_image_count": "50",
            "max_image_count": "10",
        })
        assert resp.status_code == 200
        assert "Default image count cannot be greater than maximum image count" in resp.text
        assert 'name="default_image_count" value="50"' in resp.text
        assert load_snapshot(db).default_image_count == 20
