"""
Admin password hashing and verification (bcrypt)
"""
from typing import Optional

import bcrypt
from sqlalchemy.orm import Session

from .. import config
from ..models.admin_user import AdminUser

# bcrypt only looks at the first 72 bytes
_MAX_PASSWORD_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_MAX_PASSWORD_BYTES]


def hash_password(plain: str) -> str:
    return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)).decode("ascii")


def check_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(_encode(plain), hashed.encode("ascii"))
    except (ValueError, TypeError, UnicodeEncodeError):
        return False


def verify_admin_password(db: Session, username: str, plaintext: str) -> Optional[AdminUser]:
    """Return the admin on a match; unknown user and wrong password both give None"""
    user = db.query(AdminUser).filter(AdminUser.username == username).one_or_none()
    if user is None:
        return None
    if not check_password(plaintext, user.password_hash):
        return None
    return user
