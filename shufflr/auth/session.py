"""
Admin sessions carried in a signed, encrypted cookie.

The cookie holds a Fernet token over {"user_id", "username"}. Fernet
authenticates the ciphertext and embeds the issue time, so tampering and
expiry are both caught at decrypt time.
"""
import base64
import binascii
import json
import logging
import os
from dataclasses import dataclass
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from fastapi import Request, Response

from .. import config

logger = logging.getLogger(__name__)

KEY_BYTES = 32


@dataclass(frozen=True)
class AdminIdentity:
    user_id: int
    username: str


def derive_key(secret: Optional[str]) -> bytes:
    """
    Turn SESSION_SECRET into a Fernet key.

    Even-length hex secrets of 32+ chars are decoded, anything else is used
    as UTF-8. The bytes are zero-padded or truncated to 32. No secret means
    a random one for this process only.
    """
    if not secret:
        logger.warning(
            "SESSION_SECRET not set; using a random key, admin sessions will not survive a restart",
            extra={"component": "auth"},
        )
        raw = os.urandom(KEY_BYTES)
    else:
        raw = None
        if len(secret) % 2 == 0 and len(secret) >= 32:
            try:
                raw = bytes.fromhex(secret)
            except ValueError:
                raw = None
        if raw is None:
            raw = secret.encode("utf-8")
    raw = raw[:KEY_BYTES].ljust(KEY_BYTES, b"\0")
    return base64.urlsafe_b64encode(raw)


class SessionManager:
    def __init__(self, secret: Optional[str] = None,
                 cookie_name: str = config.SESSION_COOKIE_NAME,
                 max_age: int = config.SESSION_MAX_AGE,
                 secure: Optional[bool] = None):
        self._fernet = Fernet(derive_key(secret))
        self.cookie_name = cookie_name
        self.max_age = max_age
        self.secure = config.SESSION_COOKIE_SECURE if secure is None else secure

    def _set_cookie(self, response: Response, value: str, max_age: int) -> None:
        response.set_cookie(
            key=self.cookie_name,
            value=value,
            max_age=max_age,
            path="/",
            httponly=True,
            samesite="lax",
            secure=self.secure,
        )

    def issue(self, response: Response, admin_user) -> str:
        payload = json.dumps({"user_id": admin_user.id, "username": admin_user.username})
        token = self._fernet.encrypt(payload.encode("utf-8")).decode("ascii")
        self._set_cookie(response, token, self.max_age)
        return token

    def decode(self, token: str) -> Optional[AdminIdentity]:
        try:
            data = json.loads(self._fernet.decrypt(token.encode("ascii"), ttl=self.max_age))
        except (InvalidToken, binascii.Error, UnicodeError, ValueError, TypeError):
            return None
        if not isinstance(data, dict):
            return None
        user_id = data.get("user_id")
        username = data.get("username")
        if isinstance(user_id, bool) or not isinstance(user_id, int) or not isinstance(username, str):
            return None
        return AdminIdentity(user_id=user_id, username=username)

    def resolve(self, request: Request) -> Optional[AdminIdentity]:
        token = request.cookies.get(self.cookie_name)
        if not token:
            return None
        return self.decode(token)

    def invalidate(self, response: Response) -> None:
        self._set_cookie(response, "", -1)


session_manager = SessionManager(config.SESSION_SECRET)
