"""
Configuration module for Shufflr
"""

import os
from pathlib import Path


def env_bool(key: str, default: bool = False) -> bool:
    """Get boolean value from environment variable"""
    value = os.getenv(key, str(default)).lower()
    return value in ("true", "1", "yes", "on")


def _read_version_from_repo(default: str = "dev") -> str:
    try:
        # repo root: shufflr/..
        version_file = Path(__file__).resolve().parents[1] / "VERSION"
        v = version_file.read_text(encoding="utf-8").strip()
        if v:
            return v
    except OSError:
        pass
    return os.getenv("APP_VERSION", default)


def _abspath(path: str) -> str:
    return str(Path(path).expanduser().resolve())


APP_VERSION = _read_version_from_repo()

# Server configuration
PORT = os.getenv("PORT", "8080")
HOST = os.getenv("HOST", "0.0.0.0")
BASE_URL = os.getenv("BASE_URL", "http://localhost:8080")

# Storage configuration
DATABASE_PATH = _abspath(os.getenv("DATABASE_PATH", "./shufflr.db"))
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DATABASE_PATH}")
UPLOAD_DIR = _abspath(os.getenv("UPLOAD_DIR", "./uploads"))
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(32 << 20)))

# Session configuration (empty secret -> random per process, see auth.session)
SESSION_SECRET = os.getenv("SESSION_SECRET", "")
SESSION_COOKIE_NAME = "shufflr-session"
SESSION_MAX_AGE = 24 * 60 * 60
SESSION_COOKIE_SECURE: bool = env_bool("SESSION_COOKIE_SECURE", False)

# Password hashing cost
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

# Logging configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "json")
LOG_EXCLUDE_PATHS = set(p for p in os.getenv("LOG_EXCLUDE_PATHS", "/health").split(",") if p)

# Metrics
PUBLIC_METRICS: bool = env_bool("PUBLIC_METRICS", True)

# API configuration
API_PREFIX = "/api"
LOGIN_PATH = "/admin/login"

# Accepted upload content types
ALLOWED_IMAGE_TYPES = (
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
)


def validate_port(port: str) -> int:
    """Parse and range-check a listen port"""
    try:
        value = int(port)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid port: {port}")
    if value < 1 or value > 65535:
        raise ValueError(f"Invalid port: {port}")
    return value
