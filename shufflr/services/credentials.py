"""
Admin users, API keys and the API request log
"""
import logging
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import session_scope
from ..models.admin_user import AdminUser
from ..models.api_request import ApiRequest
from ..models.apikey import ApiKey
from ..utils.crypto import generate_token, hash_token

logger = logging.getLogger(__name__)


# ----- Admin users -----

def create_admin_user(db: Session, username: str, password: str) -> AdminUser:
    from ..auth.passwords import hash_password

    user = AdminUser(username=username, password_hash=hash_password(password))
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("admin user created", extra={"component": "auth", "username": username})
    return user


def get_admin_user_by_username(db: Session, username: str) -> Optional[AdminUser]:
    return db.query(AdminUser).filter(AdminUser.username == username).one_or_none()


def has_admin_users(db: Session) -> bool:
    return db.query(AdminUser.id).first() is not None


# ----- API keys -----

def _new_key(db: Session, name: str) -> Tuple[ApiKey, str]:
    raw = generate_token()
    key = ApiKey(key_hash=hash_token(raw), name=name, enabled=True)
    db.add(key)
    return key, raw


def create_api_key(db: Session, name: str) -> Tuple[ApiKey, str]:
    """Create a key; the raw token is returned once and never stored"""
    key, raw = _new_key(db, name)
    db.commit()
    db.refresh(key)
    logger.info("api key created", extra={"component": "auth", "key_id": key.id})
    return key, raw


def get_api_key_by_token(db: Session, raw_token: str) -> Optional[ApiKey]:
    return (
        db.query(ApiKey)
        .filter(ApiKey.key_hash == hash_token(raw_token), ApiKey.enabled.is_(True))
        .one_or_none()
    )


def get_api_key(db: Session, key_id: int) -> Optional[ApiKey]:
    return db.get(ApiKey, key_id)


def list_api_keys(db: Session) -> List[ApiKey]:
    return db.query(ApiKey).order_by(ApiKey.created_at.desc(), ApiKey.id.desc()).all()


def set_api_key_enabled(db: Session, key_id: int, enabled: bool) -> bool:
    key = db.get(ApiKey, key_id)
    if key is None:
        return False
    key.enabled = enabled
    db.commit()
    logger.info("api key %s", "enabled" if enabled else "disabled",
                extra={"component": "auth", "key_id": key_id})
    return True


def delete_api_key(db: Session, key_id: int) -> bool:
    key = db.get(ApiKey, key_id)
    if key is None:
        return False
    db.delete(key)
    db.commit()
    logger.info("api key deleted", extra={"component": "auth", "key_id": key_id})
    return True


def regenerate_api_key(db: Session, key_id: int) -> Optional[Tuple[ApiKey, str]]:
    """Replace a key with a fresh secret under the same name, atomically"""
    old = db.get(ApiKey, key_id)
    if old is None:
        return None
    name = old.name
    try:
        db.delete(old)
        db.flush()
        key, raw = _new_key(db, name)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(key)
    logger.info("api key regenerated", extra={"component": "auth", "old_key_id": key_id, "key_id": key.id})
    return key, raw


# ----- Usage -----

def touch_api_key_last_used(key_id: int) -> None:
    """Best effort; runs after the response in its own session"""
    try:
        with session_scope() as s:
            s.query(ApiKey).filter(ApiKey.id == key_id).update(
                {ApiKey.last_used: func.now()}, synchronize_session=False
            )
    except SQLAlchemyError as e:
        logger.warning("failed to update last_used for api key %s: %s", key_id, e,
                       extra={"component": "auth"})


def log_api_request(key_id: int, image_count: int) -> None:
    """Best effort; runs after the response in its own session"""
    try:
        with session_scope() as s:
            s.add(ApiRequest(api_key_id=key_id, image_count=image_count))
    except SQLAlchemyError as e:
        logger.warning("failed to log api request for key %s: %s", key_id, e,
                       extra={"component": "api"})


def api_key_usage_count(db: Session, key_id: int) -> int:
    return db.query(func.count(ApiRequest.id)).filter(ApiRequest.api_key_id == key_id).scalar() or 0


def total_request_count(db: Session) -> int:
    return db.query(func.count(ApiRequest.id)).scalar() or 0
