import logging
from typing import Optional

from fastapi import BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import get_db
from ..metrics import record_auth_failure
from ..models.apikey import ApiKey
from ..services.credentials import get_api_key_by_token, touch_api_key_last_used
from ..services.settings import SettingsSnapshot, get_settings_snapshot
from .session import AdminIdentity, session_manager

log = logging.getLogger("shufflr.auth")


class LoginRequired(Exception):
    """Raised by the admin guard; the app turns it into a redirect to the login page"""


def extract_api_key(request: Request) -> Optional[str]:
    """X-API-Key first, then Authorization: Bearer <token>"""
    x_key = (request.headers.get("X-API-Key") or "").strip()
    if x_key:
        return x_key

    auth = request.headers.get("Authorization") or ""
    parts = auth.strip().split(None, 1)
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1].strip() or None
    return None


def verify_api_key(db: Session, raw_token: str) -> Optional[ApiKey]:
    """Enabled key matching the token, or None; store errors propagate"""
    return get_api_key_by_token(db, raw_token)


def require_admin(request: Request) -> AdminIdentity:
    identity = session_manager.resolve(request)
    if identity is None:
        record_auth_failure("admin", "missing")
        raise LoginRequired()
    request.state.admin = identity
    return identity


def require_api_key(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
) -> ApiKey:
    token = extract_api_key(request)
    if not token:
        record_auth_failure("api_key", "missing")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="API key required")

    try:
        key = verify_api_key(db, token)
    except SQLAlchemyError as e:
        log.error("AUTH: error validating API key: %s", e)
        record_auth_failure("api_key", "error")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")

    if key is None:
        log.warning("AUTH: API key not found or disabled")
        record_auth_failure("api_key", "invalid")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")

    request.state.api_key = key
    background_tasks.add_task(touch_api_key_last_used, key.id)
    return key


def api_key_policy(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    snapshot: SettingsSnapshot = Depends(get_settings_snapshot),
) -> Optional[ApiKey]:
    """Enforce the API key only while require_api_key_for_images is on"""
    if not snapshot.require_api_key_for_images:
        return None
    return require_api_key(request, background_tasks, db)
