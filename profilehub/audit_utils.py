from typing import Any, Dict, Optional, Tuple
from datetime import datetime
import json
import logging
from fastapi import Request
from sqlmodel import Session

from .models import AuditEvent, ProfilePhotoHistory, User

log = logging.getLogger("profilehub.audit")

# Any key containing one of these fragments is masked before it is stored
REDACT_KEYS = ("password", "secret", "token")
REDACTED = "***redacted***"


def utcnow_iso() -> str:
    return datetime.utcnow().isoformat()


def redact(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {
            k: REDACTED if any(rk in str(k).lower() for rk in REDACT_KEYS) else redact(v)
            for k, v in obj.items()
        }
    if isinstance(obj, (list, tuple)):
        return [redact(v) for v in obj]
    return obj


def safe_json_dumps(data: Any) -> Optional[str]:
    if data is None:
        return None
    return json.dumps(redact(data), default=str, sort_keys=True)


def diff_dicts(before: Dict[str, Any], after: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Map each key whose value changed to ``{"from": old, "to": new}``."""
    return {
        k: {"from": before.get(k), "to": after.get(k)}
        for k in sorted(set(before) | set(after))
        if before.get(k) != after.get(k)
    }


def photo_snapshot(record: Optional[ProfilePhotoHistory]) -> Optional[Dict[str, Any]]:
    if record is None:
        return None
    return {
        "id": record.id,
        "photo_path": record.photo_path,
        "is_current": record.is_current,
        "is_estimated": record.is_estimated,
        "used_from": record.used_from,
        "used_until": record.used_until,
    }


def _client_of(request: Optional[Request]) -> Tuple[Optional[str], Optional[str]]:
    if request is None:
        return None, None
    host = request.client.host if request.client else None
    return host, request.headers.get("user-agent")


def log_event(
    session: Session,
    *,
    action: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[Any] = None,
    entity_name: Optional[str] = None,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
    metadata: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
    user: Optional[User] = None,
    actor_user_id: Optional[int] = None,
    actor_username: Optional[str] = None,
) -> Optional[int]:
    """Persist an audit event in its own commit.

    Call only after the business transaction has been committed; the actor
    can be given as a ``user`` or, once the user row is gone, by id and name.
    A failed write is logged and rolled back and the event id is None.
    """
    if user is not None:
        actor_user_id = actor_user_id if actor_user_id is not None else user.id
        actor_username = actor_username or user.username
    ip, ua = _client_of(request)
    evt = AuditEvent(
        timestamp=utcnow_iso(),
        actor_user_id=actor_user_id,
        actor_username=actor_username,
        ip_address=ip,
        user_agent=ua,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        entity_name=entity_name,
        before_data=safe_json_dumps(before),
        after_data=safe_json_dumps(after),
        details=safe_json_dumps(metadata),
    )
    try:
        session.add(evt)
        session.commit()
    except Exception:
        log.warning("Audit event %s could not be written", action, exc_info=True)
        session.rollback()
        return None
    return evt.id
