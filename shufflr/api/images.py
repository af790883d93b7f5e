"""
Public image API
"""
import logging
import os
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Response
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from ..auth.deps import api_key_policy
from ..db import get_db
from ..metrics import record_images_served
from ..models.apikey import ApiKey
from ..schemas.images import ImageRef, RandomImagesResponse
from ..security import get_cors_headers
from ..services.credentials import log_api_request
from ..services.images import enabled_image_count, get_image_file, image_path, random_image_files, safe_basename
from ..services.settings import SettingsSnapshot, get_settings_snapshot, parse_positive_int

router = APIRouter(prefix="/images", tags=["Images"])
logger = logging.getLogger(__name__)

IMAGE_CACHE_CONTROL = "public, max-age=86400"


@router.get("", response_model=RandomImagesResponse, summary="Random selection of enabled images")
def random_images(
    response: Response,
    background_tasks: BackgroundTasks,
    count: Optional[str] = Query(None),
    api_key: Optional[ApiKey] = Depends(api_key_policy),
    snapshot: SettingsSnapshot = Depends(get_settings_snapshot),
    db: Session = Depends(get_db),
):
    n = parse_positive_int(count, snapshot.default_image_count)
    if n > snapshot.max_image_count:
        raise HTTPException(
            status_code=400,
            detail=f"Requested count ({n}) exceeds maximum allowed ({snapshot.max_image_count})",
        )

    total = enabled_image_count(db)
    if n > total:
        raise HTTPException(status_code=400, detail=f"Requested count ({n}) exceeds total images ({total})")

    images = random_image_files(db, n)
    if api_key is not None:
        background_tasks.add_task(log_api_request, api_key.id, len(images))

    record_images_served("random", len(images))
    response.headers.update(get_cors_headers(snapshot))
    return RandomImagesResponse(
        images=[ImageRef(url=f"/api/images/{quote(img.filename)}", filename=img.filename) for img in images],
        count=len(images),
    )


@router.options("", include_in_schema=False)
def random_images_preflight(snapshot: SettingsSnapshot = Depends(get_settings_snapshot)):
    return Response(status_code=200, headers=get_cors_headers(snapshot, preflight=True))


@router.get("/{filename}", summary="Serve one enabled image")
def serve_image(
    filename: str,
    api_key: Optional[ApiKey] = Depends(api_key_policy),
    snapshot: SettingsSnapshot = Depends(get_settings_snapshot),
    db: Session = Depends(get_db),
):
    name = safe_basename(filename)
    if not name:
        raise HTTPException(status_code=404, detail="Image not found")

    image = get_image_file(db, name)
    if image is None or not image.enabled:
        raise HTTPException(status_code=404, detail="Image not found")

    path = image_path(name)
    if not os.path.isfile(path):
        logger.warning("image row without file: %s", name, extra={"component": "images"})
        raise HTTPException(status_code=404, detail="Image file not found")

    record_images_served("file")
    headers = {"Cache-Control": IMAGE_CACHE_CONTROL}
    headers.update(get_cors_headers(snapshot))
    return FileResponse(path, media_type=image.mime_type, headers=headers)


@router.options("/{filename}", include_in_schema=False)
def serve_image_preflight(filename: str, snapshot: SettingsSnapshot = Depends(get_settings_snapshot)):
    return Response(status_code=200, headers=get_cors_headers(snapshot, preflight=True))
