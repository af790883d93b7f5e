"""
Image catalog: files under UPLOAD_DIR plus their `image_files` rows
"""
import logging
import os
from typing import BinaryIO, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import config
from ..models.image_file import ImageFile

logger = logging.getLogger(__name__)

INVALID_FILENAME_CHARS = ('/', '\\', ':', '*', '?', '"', '<', '>', '|')
MAX_FILENAME_LENGTH = 255
_CHUNK = 64 * 1024


class ImageError(Exception):
    """An image operation failed; the message is shown to the admin"""


def ensure_upload_dir() -> str:
    os.makedirs(config.UPLOAD_DIR, exist_ok=True)
    return config.UPLOAD_DIR


def safe_basename(name: Optional[str]) -> str:
    # Browsers on Windows may send full client paths
    return os.path.basename((name or "").replace("\\", "/")).strip()


def image_path(filename: str) -> str:
    return os.path.join(config.UPLOAD_DIR, safe_basename(filename))


def is_valid_image_type(content_type: Optional[str]) -> bool:
    return (content_type or "").lower() in config.ALLOWED_IMAGE_TYPES


def is_valid_filename(filename: str) -> bool:
    if not filename or len(filename) > MAX_FILENAME_LENGTH:
        return False
    if filename in (".", ".."):
        return False
    return not any(ch in filename for ch in INVALID_FILENAME_CHARS)


def format_file_size(size: int) -> str:
    unit = 1024
    if size < unit:
        return f"{size} B"
    div, exp = unit, 0
    n = size // unit
    while n >= unit:
        div *= unit
        exp += 1
        n //= unit
    return f"{size / div:.1f} {'KMGTPE'[exp]}B"


# ----- Queries -----

def get_image_file(db: Session, filename: str) -> Optional[ImageFile]:
    return db.query(ImageFile).filter(ImageFile.filename == filename).one_or_none()


def list_image_files(db: Session) -> List[ImageFile]:
    return db.query(ImageFile).order_by(ImageFile.uploaded_at.desc(), ImageFile.id.desc()).all()


def random_image_files(db: Session, n: int) -> List[ImageFile]:
    return (
        db.query(ImageFile)
        .filter(ImageFile.enabled.is_(True))
        .order_by(func.random())
        .limit(n)
        .all()
    )


def enabled_image_count(db: Session) -> int:
    return db.query(func.count(ImageFile.id)).filter(ImageFile.enabled.is_(True)).scalar() or 0


def total_image_count(db: Session) -> int:
    return db.query(func.count(ImageFile.id)).scalar() or 0


def create_image_file(db: Session, filename: str, size: int, mime_type: str) -> ImageFile:
    image = ImageFile(filename=filename, size=size, mime_type=mime_type, enabled=True)
    db.add(image)
    db.commit()
    db.refresh(image)
    return image


def set_image_enabled(db: Session, filename: str, enabled: bool) -> bool:
    image = get_image_file(db, filename)
    if image is None:
        return False
    image.enabled = enabled
    db.commit()
    return True


# ----- File operations -----

def _unique_filename(db: Session, filename: str) -> str:
    stem, ext = os.path.splitext(filename)
    candidate = filename
    counter = 1
    while os.path.exists(image_path(candidate)) or get_image_file(db, candidate) is not None:
        candidate = f"{stem}_{counter}{ext}"
        counter += 1
    return candidate


def save_upload(db: Session, filename: str, content_type: Optional[str], stream: BinaryIO) -> ImageFile:
    """
    Store one uploaded image.

    The file is written first and the row inserted after; a failed insert
    removes the file again.
    """
    if not is_valid_image_type(content_type):
        raise ImageError("invalid file type")
    name = safe_basename(filename)
    if not is_valid_filename(name):
        raise ImageError("invalid filename")

    ensure_upload_dir()
    name = _unique_filename(db, name)
    path = image_path(name)

    size = 0
    try:
        with open(path, "xb") as dst:
            while True:
                chunk = stream.read(_CHUNK)
                if not chunk:
                    break
                size += len(chunk)
                if size > config.MAX_UPLOAD_BYTES:
                    raise ImageError("file too large")
                dst.write(chunk)
    except ImageError:
        _remove_quietly(path)
        raise
    except FileExistsError:
        raise ImageError("file already exists")
    except OSError as e:
        _remove_quietly(path)
        logger.error("failed to write upload %s: %s", name, e, extra={"component": "images"})
        raise ImageError("failed to save file")

    try:
        image = create_image_file(db, name, size, content_type.lower())
    except SQLAlchemyError as e:
        db.rollback()
        _remove_quietly(path)
        logger.error("failed to record upload %s: %s", name, e, extra={"component": "images"})
        raise ImageError("failed to save to database")

    logger.info("image uploaded", extra={"component": "images", "image": name, "size": size})
    return image


def rename_image_file(db: Session, old_filename: str, new_filename: str) -> ImageFile:
    old_name = safe_basename(old_filename)
    new_name = (new_filename or "").strip()
    if not old_name or not new_name:
        raise ImageError("Invalid filename")
    if not is_valid_filename(new_name):
        raise ImageError("Invalid filename format")

    old_path = image_path(old_name)
    new_path = image_path(new_name)
    if not os.path.exists(old_path):
        raise ImageError("Original file not found")
    if os.path.exists(new_path) or get_image_file(db, new_name) is not None:
        raise ImageError("File with new name already exists")

    image = get_image_file(db, old_name)
    if image is None:
        raise ImageError("Original file not found")

    try:
        os.rename(old_path, new_path)
    except OSError as e:
        logger.error("error renaming %s: %s", old_name, e, extra={"component": "images"})
        raise ImageError("Failed to rename file")

    try:
        image.filename = new_name
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("error updating database for rename %s: %s", old_name, e, extra={"component": "images"})
        try:
            os.rename(new_path, old_path)
        except OSError as revert_err:
            logger.error("could not revert rename of %s: %s", old_name, revert_err,
                         extra={"component": "images"})
        raise ImageError("Failed to update database")

    logger.info("image renamed", extra={"component": "images", "old": old_name, "new": new_name})
    return image


def delete_image_file(db: Session, filename: str) -> bool:
    """Delete the row, then the file; a leftover file is only logged"""
    name = safe_basename(filename)
    image = get_image_file(db, name)
    if image is None:
        return False
    db.delete(image)
    db.commit()

    try:
        os.remove(image_path(name))
    except OSError as e:
        logger.warning("image row deleted but file removal failed for %s: %s", name, e,
                       extra={"component": "images"})
    logger.info("image deleted", extra={"component": "images", "image": name})
    return True


def _remove_quietly(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("could not remove %s: %s", path, e, extra={"component": "images"})
