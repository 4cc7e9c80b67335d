from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
from zoneinfo import ZoneInfo

from sqlmodel import Session, select

from profilehub.models import ProfilePhotoHistory, Setting, User
from profilehub.photo_store import PhotoStore

DEFAULT_TIMEZONE = "UTC"


def _safe_zoneinfo(name: Optional[str]) -> ZoneInfo:
    try:
        return ZoneInfo(name or DEFAULT_TIMEZONE)
    except Exception:
        return ZoneInfo(DEFAULT_TIMEZONE)


def to_display_iso(value: Optional[datetime], tz_name: Optional[str]) -> Optional[str]:
    # Stored datetimes are naive UTC
    if value is None:
        return None
    dt = value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value.astimezone(timezone.utc)
    return dt.astimezone(_safe_zoneinfo(tz_name)).isoformat()


def get_display_timezone(session: Session) -> str:
    row = session.exec(select(Setting).where(Setting.key == "general.timezone")).first()
    if not row or not row.value:
        return DEFAULT_TIMEZONE
    return str(row.value)


def photo_to_out(record: ProfilePhotoHistory, store: PhotoStore, tz: str = DEFAULT_TIMEZONE) -> Dict[str, Any]:
    return {
        "id": record.id,
        "user_id": record.user_id,
        "photo_path": record.photo_path,
        "photo_url": store.url(record.photo_path) if record.photo_path else None,
        "used_from": to_display_iso(record.used_from, tz),
        "used_until": to_display_iso(record.used_until, tz),
        "is_current": bool(record.is_current),
        "is_estimated": bool(record.is_estimated),
        "created_at": to_display_iso(record.created_at, tz),
    }


def history_to_out(records: Iterable[ProfilePhotoHistory], store: PhotoStore, tz: str = DEFAULT_TIMEZONE) -> List[Dict[str, Any]]:
    return [photo_to_out(r, store, tz) for r in records]


def user_to_out(user: User, store: PhotoStore, tz: str = DEFAULT_TIMEZONE) -> Dict[str, Any]:
    return {
        "id": user.id,
        "username": user.username,
        "name": user.name,
        "email": user.email,
        "email_verified_at": to_display_iso(user.email_verified_at, tz),
        "must_verify_email": user.email_verified_at is None,
        "avatar": user.avatar_path,
        "avatar_url": store.url(user.avatar_path) if user.avatar_path else None,
    }
