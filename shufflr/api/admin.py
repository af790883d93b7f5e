"""
Admin UI: setup, login, image, API key and settings management
"""
import logging
import os
from typing import List, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import FileResponse, RedirectResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import config, views
from ..auth.deps import require_admin
from ..auth.passwords import verify_admin_password
from ..auth.session import AdminIdentity, session_manager
from ..db import get_db
from ..security import get_security_headers
from ..services import credentials, images as image_service
from ..services.settings import SettingsValidationError, get_settings_snapshot, update_settings

router = APIRouter(prefix="/admin", include_in_schema=False)
logger = logging.getLogger(__name__)

MAX_KEY_NAME_LENGTH = 100
MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6


def redirect(path: str, success: Optional[str] = None, error: Optional[str] = None) -> RedirectResponse:
    params = {}
    if success:
        params["success"] = success
    if error:
        params["error"] = error
    url = f"{path}?{urlencode(params)}" if params else path
    return RedirectResponse(url=url, status_code=303, headers=get_security_headers())


def _parse_id(raw: str) -> Optional[int]:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


# ----- Dashboard -----

def _count_or_zero(label: str, fn, db: Session) -> int:
    try:
        return fn(db)
    except SQLAlchemyError as e:
        logger.error("error getting %s: %s", label, e)
        db.rollback()
        return 0


@router.get("")
def dashboard(
    request: Request,
    success: Optional[str] = None,
    error: Optional[str] = None,
    db: Session = Depends(get_db),
):
    if not credentials.has_admin_users(db):
        return redirect("/admin/setup")
    admin = require_admin(request)

    try:
        keys = credentials.list_api_keys(db)
    except SQLAlchemyError as e:
        logger.error("error getting api keys: %s", e)
        db.rollback()
        keys = []
    return views.dashboard_page(
        username=admin.username,
        enabled_images=_count_or_zero("enabled image count", image_service.enabled_image_count, db),
        total_images=_count_or_zero("image count", image_service.total_image_count, db),
        api_keys=len(keys),
        active_api_keys=sum(1 for k in keys if k.enabled),
        total_requests=_count_or_zero("request count", credentials.total_request_count, db),
        base_url=config.BASE_URL,
        success=success,
        error=error,
    )


# ----- Setup / login / logout -----

@router.get("/setup")
def setup_form(db: Session = Depends(get_db)):
    if credentials.has_admin_users(db):
        return redirect(config.LOGIN_PATH)
    return views.setup_page()


@router.post("/setup")
def setup_submit(
    username: str = Form(""),
    password: str = Form(""),
    confirm_password: str = Form(""),
    db: Session = Depends(get_db),
):
    if credentials.has_admin_users(db):
        return redirect(config.LOGIN_PATH)

    username = username.strip()
    if not username or not password:
        error = "Username and password are required"
    elif len(username) < MIN_USERNAME_LENGTH:
        error = f"Username must be at least {MIN_USERNAME_LENGTH} characters"
    elif len(password) < MIN_PASSWORD_LENGTH:
        error = f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    elif password != confirm_password:
        error = "Passwords do not match"
    else:
        try:
            credentials.create_admin_user(db, username, password)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("error creating admin user: %s", e)
            error = "Failed to create admin user"
        else:
            return redirect(config.LOGIN_PATH, success="Admin account created successfully")
    return views.setup_page(error=error, username=username)


@router.get("/login")
def login_form(success: Optional[str] = None, error: Optional[str] = None):
    return views.login_page(error=error, success=success)


@router.post("/login")
def login_submit(
    username: str = Form(""),
    password: str = Form(""),
    db: Session = Depends(get_db),
):
    username = username.strip()
    if not username or not password:
        return views.login_page(error="Username and password are required", username=username)

    try:
        user = verify_admin_password(db, username, password)
    except SQLAlchemyError as e:
        logger.error("error during login: %s", e)
        return views.login_page(error="Login failed", username=username)

    if user is None:
        logger.warning("failed admin login", extra={"component": "auth", "username": username})
        return views.login_page(error="Invalid username or password", username=username)

    response = redirect("/admin")
    session_manager.issue(response, user)
    logger.info("admin logged in", extra={"component": "auth", "username": user.username})
    return response


@router.api_route("/logout", methods=["GET", "POST"])
def logout():
    response = redirect(config.LOGIN_PATH)
    session_manager.invalidate(response)
    return response


# ----- Images -----

@router.get("/images")
def images_list(
    success: Optional[str] = None,
    error: Optional[str] = None,
    admin: AdminIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        rows = image_service.list_image_files(db)
    except SQLAlchemyError as e:
        logger.error("error getting images: %s", e)
        rows = []
        error = error or "Failed to load images"
    return views.images_page(admin.username, rows, success=success, error=error)


@router.get("/images/serve/{filename}")
def images_serve(
    filename: str,
    admin: AdminIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    name = image_service.safe_basename(filename)
    image = image_service.get_image_file(db, name) if name else None
    path = image_service.image_path(name) if name else None
    if image is None or not path or not os.path.isfile(path):
        return views.page("Not found", "<p>Image not found.</p>", username=admin.username,
                          active="images", status_code=404)
    return FileResponse(path, media_type=image.mime_type, headers=get_security_headers())


@router.get("/images/upload")
def upload_form(error: Optional[str] = None, admin: AdminIdentity = Depends(require_admin)):
    return views.upload_page(admin.username, error=error)


@router.post("/images/upload")
def upload_submit(
    images: Optional[List[UploadFile]] = File(None),
    admin: AdminIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    files = [f for f in (images or []) if f.filename]
    if not files:
        return redirect("/admin/images/upload", error="No files selected")

    uploaded, errors = [], []
    for upload in files:
        try:
            image_service.save_upload(db, upload.filename, upload.content_type, upload.file)
            uploaded.append(upload.filename)
        except image_service.ImageError as e:
            errors.append(f"{upload.filename}: {e}")
        finally:
            upload.file.close()

    if errors:
        message = "Some files failed to upload: " + ", ".join(errors)
        if uploaded:
            message += f". {len(uploaded)} files uploaded successfully."
        return redirect("/admin/images", error=message)
    return redirect("/admin/images", success=f"{len(uploaded)} images uploaded successfully")


@router.post("/images/rename")
def images_rename(
    old_filename: str = Form(""),
    new_filename: str = Form(""),
    admin: AdminIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        image_service.rename_image_file(db, old_filename, new_filename)
    except image_service.ImageError as e:
        return redirect("/admin/images", error=str(e))
    return redirect("/admin/images", success="Image renamed successfully")


@router.post("/images/delete")
def images_delete(
    filename: str = Form(""),
    admin: AdminIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if not filename:
        return redirect("/admin/images", error="Invalid filename")
    try:
        deleted = image_service.delete_image_file(db, filename)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("error deleting image %s: %s", filename, e)
        return redirect("/admin/images", error="Failed to delete from database")
    if not deleted:
        return redirect("/admin/images", error="Image not found")
    return redirect("/admin/images", success="Image deleted successfully")


@router.post("/images/toggle")
def images_toggle(
    filename: str = Form(""),
    enabled: str = Form(""),
    admin: AdminIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if not filename:
        return redirect("/admin/images", error="Invalid filename")
    flag = enabled == "true"
    try:
        found = image_service.set_image_enabled(db, image_service.safe_basename(filename), flag)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("error updating image %s: %s", filename, e)
        return redirect("/admin/images", error="Failed to update image status")
    if not found:
        return redirect("/admin/images", error="Image not found")
    return redirect("/admin/images", success=f"Image {'enabled' if flag else 'disabled'} successfully")


# ----- API keys -----

@router.get("/api-keys")
def api_keys_list(
    success: Optional[str] = None,
    error: Optional[str] = None,
    admin: AdminIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    keys = credentials.list_api_keys(db)
    rows = [(k, credentials.api_key_usage_count(db, k.id)) for k in keys]
    return views.api_keys_page(admin.username, rows, success=success, error=error)


@router.get("/api-keys/new")
def api_key_form(admin: AdminIdentity = Depends(require_admin)):
    return views.new_api_key_page(admin.username)


@router.post("/api-keys/new")
def api_key_create(
    name: str = Form(""),
    admin: AdminIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    name = name.strip()
    if not name:
        return views.new_api_key_page(admin.username, error="API key name is required")
    if len(name) > MAX_KEY_NAME_LENGTH:
        return views.new_api_key_page(
            admin.username, error=f"API key name must be {MAX_KEY_NAME_LENGTH} characters or less", name=name
        )
    try:
        key, raw = credentials.create_api_key(db, name)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("error creating API key: %s", e)
        return views.new_api_key_page(admin.username, error="Failed to create API key", name=name)
    return views.api_key_secret_page(admin.username, key.name, raw)


@router.post("/api-keys/toggle")
def api_key_toggle(
    id: str = Form(""),
    enabled: str = Form(""),
    admin: AdminIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    key_id = _parse_id(id)
    if key_id is None:
        return redirect("/admin/api-keys", error="Invalid key ID")
    flag = enabled == "true"
    try:
        found = credentials.set_api_key_enabled(db, key_id, flag)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("error updating API key %s: %s", key_id, e)
        return redirect("/admin/api-keys", error="Failed to update API key")
    if not found:
        return redirect("/admin/api-keys", error="API key not found")
    return redirect("/admin/api-keys", success=f"API key {'enabled' if flag else 'disabled'} successfully")


@router.post("/api-keys/regenerate")
def api_key_regenerate(
    id: str = Form(""),
    admin: AdminIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    key_id = _parse_id(id)
    if key_id is None:
        return redirect("/admin/api-keys", error="Invalid key ID")
    try:
        result = credentials.regenerate_api_key(db, key_id)
    except SQLAlchemyError as e:
        logger.error("error regenerating API key %s: %s", key_id, e)
        return redirect("/admin/api-keys", error="Failed to regenerate API key")
    if result is None:
        return redirect("/admin/api-keys", error="API key not found")
    key, raw = result
    return views.api_key_secret_page(admin.username, key.name, raw, regenerated=True)


@router.post("/api-keys/delete")
def api_key_delete(
    id: str = Form(""),
    admin: AdminIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    key_id = _parse_id(id)
    if key_id is None:
        return redirect("/admin/api-keys", error="Invalid key ID")
    try:
        deleted = credentials.delete_api_key(db, key_id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("error deleting API key %s: %s", key_id, e)
        return redirect("/admin/api-keys", error="Failed to delete API key")
    if not deleted:
        return redirect("/admin/api-keys", error="API key not found")
    return redirect("/admin/api-keys", success="API key deleted successfully")


# ----- Settings -----

@router.get("/settings")
def settings_form(
    success: Optional[str] = None,
    error: Optional[str] = None,
    admin: AdminIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return views.settings_page(admin.username, get_settings_snapshot(db), success=success, error=error)


@router.post("/settings")
def settings_submit(
    require_api_key_for_images: Optional[str] = Form(None),
    default_image_count: str = Form(""),
    max_image_count: str = Form(""),
    cors_enabled: Optional[str] = Form(None),
    cors_origins: str = Form(""),
    admin: AdminIdentity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    form = {
        "require_api_key_for_images": require_api_key_for_images,
        "default_image_count": default_image_count,
        "max_image_count": max_image_count,
        "cors_enabled": cors_enabled,
        "cors_origins": cors_origins,
    }
    try:
        update_settings(db, form)
    except SettingsValidationError as e:
        return views.settings_page(admin.username, get_settings_snapshot(db), error=str(e), form=form)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("error saving settings: %s", e)
        return views.settings_page(admin.username, get_settings_snapshot(db),
                                   error="Failed to save some settings", form=form)
    return redirect("/admin/settings", success="Settings saved successfully")
