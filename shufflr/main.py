import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.exc import SQLAlchemyError

from . import config
from .api.admin import router as admin_router
from .api.health import router as health_router
from .api.images import router as images_router
from .api.metrics import router as metrics_router
from .auth.deps import LoginRequired
from .db import get_engine
from .db_init import init_schema_and_seed
from .logging_config import setup_logging
from .metrics import set_build_info
from .middleware import TracingMiddleware
from .services.images import ensure_upload_dir

# Configure logging at import time
setup_logging()

logger = logging.getLogger("shufflr")


@asynccontextmanager
async def lifespan(application: FastAPI):
    get_engine()
    init_schema_and_seed()
    upload_dir = ensure_upload_dir()
    set_build_info(config.APP_VERSION)

    logger.info("Shufflr ready", extra={
        "component": "api",
        "version": config.APP_VERSION,
        "upload_dir": upload_dir,
    })
    try:
        yield
    finally:
        logger.info("Shufflr shutting down", extra={"component": "api"})


app = FastAPI(
    title="Shufflr",
    version=config.APP_VERSION,
    description="Random image service with an admin UI",
    lifespan=lifespan,
)

# Add tracing middleware
app.add_middleware(TracingMiddleware)


@app.exception_handler(LoginRequired)
async def login_required_handler(request: Request, exc: LoginRequired):
    return RedirectResponse(url=config.LOGIN_PATH, status_code=303)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("database error on %s: %s", request.url.path, exc, extra={"component": "db"})
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.include_router(images_router, prefix=config.API_PREFIX)
app.include_router(health_router)
app.include_router(admin_router)
if config.PUBLIC_METRICS:
    app.include_router(metrics_router)


@app.get("/", include_in_schema=False)
def root():
    return RedirectResponse(url="/admin", status_code=303)
