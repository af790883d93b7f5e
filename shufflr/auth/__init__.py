# shufflr/auth/__init__.py
from .deps import (
    LoginRequired,
    api_key_policy,
    extract_api_key,
    require_admin,
    require_api_key,
    verify_api_key,
)
from .passwords import check_password, hash_password, verify_admin_password
from .session import AdminIdentity, SessionManager, derive_key, session_manager

__all__ = [
    "AdminIdentity",
    "LoginRequired",
    "SessionManager",
    "api_key_policy",
    "check_password",
    "derive_key",
    "extract_api_key",
    "hash_password",
    "require_admin",
    "require_api_key",
    "session_manager",
    "verify_admin_password",
    "verify_api_key",
]
