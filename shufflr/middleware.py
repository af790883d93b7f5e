import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from . import config
from .logging_config import trace_id_var
from .metrics import record_request

logger = logging.getLogger("shufflr.access")


class TracingMiddleware(BaseHTTPMiddleware):
    """ASGI middleware for request tracing and structured logging"""

    def __init__(self, app: ASGIApp, exclude_paths=None):
        super().__init__(app)
        self.exclude_paths = set(config.LOG_EXCLUDE_PATHS if exclude_paths is None else exclude_paths)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Generate or reuse trace ID
        trace_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        token = trace_id_var.set(trace_id)

        client_ip = request.client.host if request.client else "unknown"
        path = request.url.path
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception as e:
            latency = time.time() - start_time
            logger.error(f"Request failed: {e}", extra={
                "method": request.method,
                "path": path,
                "status": 500,
                "latency_ms": round(latency * 1000, 2),
                "client_ip": client_ip,
            })
            record_request(path, 500, latency)
            trace_id_var.reset(token)
            raise

        latency = time.time() - start_time
        self._log_request(request.method, path, response.status_code,
                          round(latency * 1000, 2), client_ip)
        record_request(path, response.status_code, latency)

        response.headers["X-Request-ID"] = trace_id
        response.headers["X-App-Version"] = config.APP_VERSION
        trace_id_var.reset(token)
        return response

    def _log_request(self, method: str, path: str, status: int, latency_ms: float, client_ip: str):
        """Log HTTP request with structured data"""
        if path in self.exclude_paths:
            return

        if status >= 500:
            level = logging.ERROR
        elif status >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        logger.log(level, "HTTP Request", extra={
            "method": method,
            "path": path,
            "status": status,
            "latency_ms": latency_ms,
            "client_ip": client_ip,
        })
