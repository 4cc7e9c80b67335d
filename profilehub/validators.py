import re
from typing import Any, Dict, Optional

from profilehub.errors import ProfileValidationError

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
USERNAME_RE = re.compile(r"^[A-Za-z0-9_.-]{3,64}$")
MAX_FIELD_LENGTH = 255
MIN_PASSWORD_LENGTH = 8


def clean_name(raw: Any) -> str:
    name = raw.strip() if isinstance(raw, str) else ""
    if not name:
        raise ProfileValidationError("The name field is required.")
    if len(name) > MAX_FIELD_LENGTH:
        raise ProfileValidationError(f"The name field must not be greater than {MAX_FIELD_LENGTH} characters.")
    return name


def clean_email(raw: Any) -> str:
    email = raw.strip().lower() if isinstance(raw, str) else ""
    if not email:
        raise ProfileValidationError("The email field is required.")
    if len(email) > MAX_FIELD_LENGTH:
        raise ProfileValidationError(f"The email field must not be greater than {MAX_FIELD_LENGTH} characters.")
    if not EMAIL_RE.match(email):
        raise ProfileValidationError("The email field must be a valid email address.")
    return email


def clean_username(raw: Any) -> str:
    username = raw.strip() if isinstance(raw, str) else ""
    if not USERNAME_RE.match(username):
        raise ProfileValidationError("Username must be 3-64 characters of letters, digits, '.', '_' or '-'.")
    return username


def clean_password(raw: Any) -> str:
    password = raw if isinstance(raw, str) else ""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ProfileValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.")
    if not any(c.isalpha() for c in password) or not any(c.isdigit() for c in password):
        raise ProfileValidationError("Password must include at least one letter and one number.")
    return password


def clean_photo_id(raw: Any) -> int:
    if isinstance(raw, bool):
        raise ProfileValidationError("The photo id field is required.")
    try:
        photo_id = int(raw)
    except (TypeError, ValueError):
        raise ProfileValidationError("The photo id field is required.")
    if photo_id <= 0:
        raise ProfileValidationError("The selected photo id is invalid.")
    return photo_id


def clean_profile_fields(payload: Optional[Dict[str, Any]]) -> Dict[str, str]:
    payload = payload or {}
    return {"name": clean_name(payload.get("name")), "email": clean_email(payload.get("email"))}
