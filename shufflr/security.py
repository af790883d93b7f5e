"""
Response header helpers
"""
from typing import Dict

from .services.settings import SettingsSnapshot

CORS_METHODS = "GET"
CORS_PREFLIGHT_METHODS = "GET, POST, PUT, DELETE, OPTIONS"
CORS_HEADERS = "X-API-Key, Authorization"
CORS_PREFLIGHT_HEADERS = "X-API-Key, Authorization, Content-Type"
CORS_MAX_AGE = "86400"


def get_cors_headers(snapshot: SettingsSnapshot, preflight: bool = False) -> Dict[str, str]:
    """CORS headers for the public image API; empty when CORS is off"""
    if not snapshot.cors_enabled:
        return {}
    if preflight:
        return {
            "Access-Control-Allow-Origin": snapshot.cors_origins,
            "Access-Control-Allow-Methods": CORS_PREFLIGHT_METHODS,
            "Access-Control-Allow-Headers": CORS_PREFLIGHT_HEADERS,
            "Access-Control-Max-Age": CORS_MAX_AGE,
        }
    return {
        "Access-Control-Allow-Origin": snapshot.cors_origins,
        "Access-Control-Allow-Methods": CORS_METHODS,
        "Access-Control-Allow-Headers": CORS_HEADERS,
    }


def get_security_headers() -> Dict[str, str]:
    """Get security headers"""
    return {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "strict-origin-when-cross-origin",
    }
