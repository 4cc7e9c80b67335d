from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, File, HTTPException, Request, UploadFile
from sqlmodel import Session

from profilehub.auth import get_current_user
from profilehub.db import get_session
from profilehub.errors import (
    PhotoAccessDenied,
    PhotoNotFoundError,
    PhotoStorageError,
    ProfileError,
    ProfileValidationError,
)
from profilehub.models import User
from profilehub.photo_store import PhotoStore, get_photo_store
from profilehub.photo_uploads import validate_photo_upload
from profilehub.presenters import get_display_timezone, history_to_out, photo_to_out, user_to_out
from profilehub.services.photo_history_service import PhotoHistoryService, PhotoResult
from profilehub.services.profile_service import ProfileService
from profilehub.settings import get_min_retention, get_photo_settings
from profilehub.user_locks import UserLockTimeout
from profilehub.validators import clean_photo_id

router = APIRouter(prefix="/settings/profile", tags=["profile"])


def _photo_service(session: Session = Depends(get_session), store: PhotoStore = Depends(get_photo_store)) -> PhotoHistoryService:
    return PhotoHistoryService(session, store, min_retention=get_min_retention(session))


def _profile_service(
    session: Session = Depends(get_session),
    store: PhotoStore = Depends(get_photo_store),
    photos: PhotoHistoryService = Depends(_photo_service),
) -> ProfileService:
    return ProfileService(session, store, photos)


def _to_http(e: Exception) -> HTTPException:
    if isinstance(e, PhotoNotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, PhotoAccessDenied):
        return HTTPException(status_code=403, detail=str(e))
    if isinstance(e, ProfileValidationError):
        return HTTPException(status_code=e.status_code, detail=str(e))
    if isinstance(e, PhotoStorageError):
        return HTTPException(status_code=502, detail=str(e))
    if isinstance(e, UserLockTimeout):
        return HTTPException(status_code=409, detail="Another photo update is in progress. Please try again.")
    return HTTPException(status_code=400, detail=str(e))


def _result_out(result: PhotoResult, user: User, photos: PhotoHistoryService) -> Dict[str, Any]:
    tz = get_display_timezone(photos.session)
    out: Dict[str, Any] = {
        "status": result.status,
        "changed": result.changed,
        "photo": photo_to_out(result.record, photos.store, tz) if result.record is not None else None,
        "user": user_to_out(user, photos.store, tz),
    }
    if result.warning:
        out["warning"] = result.warning
    return out


@router.get("")
def view_profile(request: Request, user: User = Depends(get_current_user), profiles: ProfileService = Depends(_profile_service)):
    try:
        return profiles.get_profile(user, request)
    except (ProfileError, UserLockTimeout) as e:
        raise _to_http(e)


@router.patch("")
def update_profile(payload: Dict[str, Any], request: Request, user: User = Depends(get_current_user), profiles: ProfileService = Depends(_profile_service)):
    try:
        out = profiles.update_profile(user, payload, request)
    except ProfileError as e:
        raise _to_http(e)
    return {"status": "Profile updated successfully!", "user": out}


@router.delete("")
def delete_account(
    request: Request,
    payload: Optional[Dict[str, Any]] = Body(default=None),
    user: User = Depends(get_current_user),
    profiles: ProfileService = Depends(_profile_service),
):
    password = (payload or {}).get("password")
    try:
        warning = profiles.delete_account(user, password, request)
    except (ProfileError, UserLockTimeout) as e:
        raise _to_http(e)
    out = {"status": "Your account has been deleted."}
    if warning:
        out["warning"] = warning
    return out


@router.post("/photo")
def upload_photo(
    request: Request,
    profile_photo: Optional[UploadFile] = File(None),
    user: User = Depends(get_current_user),
    photos: PhotoHistoryService = Depends(_photo_service),
):
    max_kb = get_photo_settings(photos.session)["max_upload_kb"]
    data = b""
    content_type = None
    filename = None
    if profile_photo is not None:
        # One byte past the limit is enough to reject without buffering everything
        data = profile_photo.file.read(max_kb * 1024 + 1)
        content_type = profile_photo.content_type
        filename = profile_photo.filename
    try:
        upload = validate_photo_upload(data, content_type, filename, max_kb=max_kb)
        result = photos.upload(user, upload, request)
    except (ProfileError, UserLockTimeout) as e:
        raise _to_http(e)
    return _result_out(result, user, photos)


@router.delete("/photo")
def remove_photo(request: Request, user: User = Depends(get_current_user), photos: PhotoHistoryService = Depends(_photo_service)):
    try:
        result = photos.remove(user, request)
    except (ProfileError, UserLockTimeout) as e:
        raise _to_http(e)
    return _result_out(result, user, photos)


@router.get("/photo/history")
def list_history(request: Request, user: User = Depends(get_current_user), photos: PhotoHistoryService = Depends(_photo_service)):
    try:
        records = photos.list_history(user, request)
    except (ProfileError, UserLockTimeout) as e:
        raise _to_http(e)
    tz = get_display_timezone(photos.session)
    return {
        "user": user_to_out(user, photos.store, tz),
        "photo_history": history_to_out(records, photos.store, tz),
    }


@router.post("/photo/set-current")
def set_current(payload: Dict[str, Any], request: Request, user: User = Depends(get_current_user), photos: PhotoHistoryService = Depends(_photo_service)):
    try:
        photo_id = clean_photo_id(payload.get("photo_id"))
        result = photos.set_as_current(user, photo_id, request)
    except (ProfileError, UserLockTimeout) as e:
        raise _to_http(e)
    return _result_out(result, user, photos)


@router.post("/photo/add-to-history")
def add_to_history(request: Request, user: User = Depends(get_current_user), photos: PhotoHistoryService = Depends(_photo_service)):
    try:
        result = photos.add_to_history(user, request)
    except (ProfileError, UserLockTimeout) as e:
        raise _to_http(e)
    return _result_out(result, user, photos)


@router.delete("/photo/{photo_id}")
def delete_photo(photo_id: int, request: Request, user: User = Depends(get_current_user), photos: PhotoHistoryService = Depends(_photo_service)):
    try:
        result = photos.delete_photo(user, clean_photo_id(photo_id), request)
    except (ProfileError, UserLockTimeout) as e:
        raise _to_http(e)
    return _result_out(result, user, photos)
