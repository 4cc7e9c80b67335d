from typing import Dict, Any
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlmodel import Session, select
from datetime import datetime, timedelta
import json
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from profilehub.db import get_session
from profilehub.auth import require_admin
from profilehub.models import Setting, User
from profilehub.audit_utils import log_event, diff_dicts
from profilehub.photo_uploads import DEFAULT_MAX_UPLOAD_KB

router = APIRouter(prefix="/admin/settings", tags=["settings"])  # mounted under /api

ALLOWED_GROUPS = {"general", "photos"}
DEFAULT_TIMEZONE = "UTC"
# One week
MAX_MIN_RETENTION_SECONDS = 7 * 24 * 3600
MAX_UPLOAD_KB_LIMIT = 10 * 1024
PHOTO_DEFAULTS = {
    "min_retention_seconds": 0,
    "max_upload_kb": DEFAULT_MAX_UPLOAD_KB,
}


def utcnow_iso() -> str:
    return datetime.utcnow().isoformat()


def _infer_type(val: Any) -> str:
    if isinstance(val, bool):
        return "bool"
    if isinstance(val, int):
        return "int"
    if isinstance(val, (dict, list)):
        return "json"
    return "string"


def _parse_value(value: str, type_: str):
    try:
        if type_ == "int":
            return int(value)
        if type_ == "bool":
            return value.lower() in ("1", "true", "yes", "on")
        if type_ == "json":
            return json.loads(value)
    except ValueError:
        # Hand-edited rows fall back to the raw string
        return value
    return value


def _serialize_value(val: Any, type_: str) -> str:
    if val is None:
        return ""
    if type_ == "json":
        return json.dumps(val)
    if type_ == "bool":
        return "true" if val else "false"
    return str(int(val)) if type_ == "int" else str(val)


def _clamp_int(raw: Any, default: int, low: int, high: int) -> int:
    try:
        v = int(raw)
    except (TypeError, ValueError):
        return default
    return max(low, min(v, high))


def _build_group_payload(session: Session, group: str) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    rows = session.exec(select(Setting).where(Setting.key.like(f"{group}.%"))).all()
    for s in rows:
        suffix = s.key.split(".", 1)[1] if "." in s.key else s.key
        data[suffix] = _parse_value(s.value, s.type)
    if group == "general" and "timezone" not in data:
        data["timezone"] = DEFAULT_TIMEZONE
    if group == "photos":
        # Clamp values in case of hand-edited rows
        data["min_retention_seconds"] = _clamp_int(
            data.get("min_retention_seconds", PHOTO_DEFAULTS["min_retention_seconds"]),
            PHOTO_DEFAULTS["min_retention_seconds"], 0, MAX_MIN_RETENTION_SECONDS,
        )
        data["max_upload_kb"] = _clamp_int(
            data.get("max_upload_kb", PHOTO_DEFAULTS["max_upload_kb"]),
            PHOTO_DEFAULTS["max_upload_kb"], 1, MAX_UPLOAD_KB_LIMIT,
        )
    return data


def _validate_photos_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    cleaned: Dict[str, Any] = {}
    for key, val in payload.items():
        if key not in PHOTO_DEFAULTS:
            raise HTTPException(status_code=400, detail=f"Unknown photos setting: {key}")
        if isinstance(val, bool):
            raise HTTPException(status_code=400, detail=f"{key} must be an integer")
        try:
            num = int(val)
        except (TypeError, ValueError):
            raise HTTPException(status_code=400, detail=f"{key} must be an integer")
        if key == "min_retention_seconds" and not 0 <= num <= MAX_MIN_RETENTION_SECONDS:
            raise HTTPException(status_code=400, detail=f"min_retention_seconds must be between 0 and {MAX_MIN_RETENTION_SECONDS}")
        if key == "max_upload_kb" and not 1 <= num <= MAX_UPLOAD_KB_LIMIT:
            raise HTTPException(status_code=400, detail=f"max_upload_kb must be between 1 and {MAX_UPLOAD_KB_LIMIT}")
        cleaned[key] = num
    return cleaned


@router.get("/{group}")
def get_settings_group(group: str, session: Session = Depends(get_session), user: User = Depends(require_admin)):
    if group not in ALLOWED_GROUPS:
        raise HTTPException(status_code=400, detail="Unknown settings group")
    return _build_group_payload(session, group)


def _upsert_setting(session: Session, key: str, val: Any, uid: int) -> None:
    s = session.exec(select(Setting).where(Setting.key == key)).first()
    if s is None:
        # New keys take their type from the submitted value
        t = _infer_type(val)
        s = Setting(key=key, value=_serialize_value(val, t), type=t, scope="global", updated_by_user_id=uid, updated_at=utcnow_iso())
    else:
        s.value = _serialize_value(val, s.type)
        s.updated_by_user_id = uid
        s.updated_at = utcnow_iso()
    session.add(s)


@router.put("/{group}")
def update_settings_group(group: str, payload: Dict[str, Any], request: Request, session: Session = Depends(get_session), user: User = Depends(require_admin)):
    if group not in ALLOWED_GROUPS:
        raise HTTPException(status_code=400, detail="Unknown settings group")

    if group == "photos":
        payload = _validate_photos_payload(payload)
    if group == "general" and "timezone" in payload:
        try:
            ZoneInfo(str(payload["timezone"]))
        except (ValueError, ZoneInfoNotFoundError):
            raise HTTPException(status_code=400, detail="timezone must be a valid IANA timezone name")

    before = _build_group_payload(session, group)
    for key, val in payload.items():
        full_key = key if key.startswith(f"{group}.") else f"{group}.{key}"
        _upsert_setting(session, full_key, val, user.id)
    session.commit()

    after = _build_group_payload(session, group)
    changes = diff_dicts(before, after)
    log_event(
        session,
        action="setting.update",
        entity_type="setting",
        entity_id=group,
        entity_name=group,
        before=before,
        after=after,
        metadata={"changed_keys": list(changes.keys()), "diff": changes},
        request=request,
        user=user,
    )
    return after


def get_photo_settings(session: Session) -> Dict[str, Any]:
    """Return photo settings with defaults applied and values clamped."""
    return _build_group_payload(session, "photos")


def get_min_retention(session: Session) -> timedelta:
    return timedelta(seconds=get_photo_settings(session)["min_retention_seconds"])
