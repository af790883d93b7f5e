"""
Runtime settings stored in the `settings` table.

Values are strings on disk; `SettingsSnapshot` is the typed view request
handlers work with. A snapshot is loaded per request so that admin changes
apply on the very next request.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import get_db
from ..models.setting import Setting

logger = logging.getLogger(__name__)

REQUIRE_API_KEY = "require_api_key_for_images"
DEFAULT_IMAGE_COUNT = "default_image_count"
MAX_IMAGE_COUNT = "max_image_count"
CORS_ENABLED = "cors_enabled"
CORS_ORIGINS = "cors_origins"

DEFAULT_SETTINGS: Dict[str, str] = {
    REQUIRE_API_KEY: "true",
    DEFAULT_IMAGE_COUNT: "20",
    MAX_IMAGE_COUNT: "100",
    CORS_ENABLED: "true",
    CORS_ORIGINS: "*",
}


class SettingsValidationError(ValueError):
    """Raised when an admin settings form is rejected"""


@dataclass(frozen=True)
class SettingsSnapshot:
    require_api_key_for_images: bool = True
    default_image_count: int = 20
    max_image_count: int = 100
    cors_enabled: bool = True
    cors_origins: str = "*"


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    v = value.strip().lower()
    if v in ("true", "1", "yes", "on"):
        return True
    if v in ("false", "0", "no", "off"):
        return False
    return default


def parse_positive_int(value: Optional[str], default: int) -> int:
    """Absent, non-numeric or non-positive values fall back to the default"""
    try:
        n = int(value)
    except (TypeError, ValueError):
        return default
    return n if n > 0 else default


def get_setting(db: Session, key: str) -> Optional[str]:
    row = db.query(Setting).filter(Setting.key == key).one_or_none()
    return row.value if row else None


def set_setting(db: Session, key: str, value: str) -> Setting:
    row = db.query(Setting).filter(Setting.key == key).one_or_none()
    if row is None:
        row = Setting(key=key, value=value)
        db.add(row)
    else:
        row.value = value
    db.commit()
    return row


def list_settings(db: Session) -> List[Setting]:
    return db.query(Setting).order_by(Setting.key).all()


def seed_default_settings(db: Session) -> None:
    """Insert defaults for keys that are not present yet"""
    existing = {k for (k,) in db.query(Setting.key).all()}
    for key, value in DEFAULT_SETTINGS.items():
        if key not in existing:
            db.add(Setting(key=key, value=value))
    db.commit()


def snapshot_from_values(values: Mapping[str, str]) -> SettingsSnapshot:
    d = SettingsSnapshot()
    origins = (values.get(CORS_ORIGINS) or "").strip()
    return SettingsSnapshot(
        require_api_key_for_images=_parse_bool(values.get(REQUIRE_API_KEY), d.require_api_key_for_images),
        default_image_count=parse_positive_int(values.get(DEFAULT_IMAGE_COUNT), d.default_image_count),
        max_image_count=parse_positive_int(values.get(MAX_IMAGE_COUNT), d.max_image_count),
        cors_enabled=_parse_bool(values.get(CORS_ENABLED), d.cors_enabled),
        cors_origins=origins or d.cors_origins,
    )


def load_snapshot(db: Session) -> SettingsSnapshot:
    """Read every setting in one query; absent or unparsable values use defaults"""
    rows = db.query(Setting.key, Setting.value).all()
    return snapshot_from_values({k: v for k, v in rows})


def get_settings_snapshot(db: Session = Depends(get_db)) -> SettingsSnapshot:
    try:
        return load_snapshot(db)
    except SQLAlchemyError as e:
        # Defaults require an API key, so a failed read stays locked down
        logger.warning("settings read failed, using defaults: %s", e)
        db.rollback()
        return SettingsSnapshot()


def update_settings(db: Session, form: Mapping[str, Optional[str]]) -> SettingsSnapshot:
    """
    Validate and persist the admin settings form.

    Checkboxes arrive only when ticked. Blank counts fall back to the
    defaults; blank origins mean `*`.
    """
    d = SettingsSnapshot()

    def count_field(field: str, label: str, default: int) -> int:
        raw = (form.get(field) or "").strip()
        if not raw:
            return default
        try:
            n = int(raw)
        except ValueError:
            raise SettingsValidationError(f"{label} must be a positive number")
        if n <= 0:
            raise SettingsValidationError(f"{label} must be a positive number")
        return n

    default_count = count_field(DEFAULT_IMAGE_COUNT, "Default image count", d.default_image_count)
    max_count = count_field(MAX_IMAGE_COUNT, "Maximum image count", d.max_image_count)
    if default_count > max_count:
        raise SettingsValidationError("Default image count cannot be greater than maximum image count")

    origins = (form.get(CORS_ORIGINS) or "").strip() or "*"
    snapshot = SettingsSnapshot(
        require_api_key_for_images=_parse_bool(form.get(REQUIRE_API_KEY), False),
        default_image_count=default_count,
        max_image_count=max_count,
        cors_enabled=_parse_bool(form.get(CORS_ENABLED), False),
        cors_origins=origins,
    )

    values = {
        REQUIRE_API_KEY: "true" if snapshot.require_api_key_for_images else "false",
        DEFAULT_IMAGE_COUNT: str(snapshot.default_image_count),
        MAX_IMAGE_COUNT: str(snapshot.max_image_count),
        CORS_ENABLED: "true" if snapshot.cors_enabled else "false",
        CORS_ORIGINS: snapshot.cors_origins,
    }
    rows = {r.key: r for r in db.query(Setting).filter(Setting.key.in_(list(values))).all()}
    for key, value in values.items():
        if key in rows:
            rows[key].value = value
        else:
            db.add(Setting(key=key, value=value))
    db.commit()
    logger.info("settings updated", extra={"component": "admin", "settings": values})
    return snapshot
