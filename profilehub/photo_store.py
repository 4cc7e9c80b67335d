import logging
import os
import uuid
from abc import ABC, abstractmethod
from typing import Optional

from profilehub.errors import PhotoStorageError

log = logging.getLogger("profilehub.photo_store")

PHOTO_DIR = os.getenv("PHOTO_STORAGE_DIR", os.path.join(os.path.dirname(__file__), "photos_store"))
PHOTO_PUBLIC_BASE_URL = os.getenv("PHOTO_PUBLIC_BASE_URL", "/media")
PHOTO_PREFIX = "profile-photos"

CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/pjpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/bmp": "bmp",
}


class PhotoStore(ABC):
    """Blob storage for profile photos, keyed by a relative path string."""

    @abstractmethod
    def put(self, data: bytes, content_type: str) -> str:
        ...

    @abstractmethod
    def exists(self, path: str) -> bool:
        ...

    @abstractmethod
    def delete(self, path: str) -> bool:
        ...

    @abstractmethod
    def url(self, path: str) -> str:
        ...


class LocalPhotoStore(PhotoStore):
    def __init__(self, root: str, base_url: str = PHOTO_PUBLIC_BASE_URL, prefix: str = PHOTO_PREFIX):
        self.root = os.path.abspath(root)
        self.base_url = (base_url or "").rstrip("/")
        self.prefix = prefix.strip("/")

    def _resolve(self, path: str) -> str:
        # Paths come from the database; never let one escape the store root.
        candidate = os.path.abspath(os.path.join(self.root, (path or "").lstrip("/")))
        if candidate != self.root and not candidate.startswith(self.root + os.sep):
            raise PhotoStorageError(f"Invalid photo path: {path}")
        return candidate

    def put(self, data: bytes, content_type: str) -> str:
        ext = CONTENT_TYPE_EXTENSIONS.get((content_type or "").lower(), "img")
        rel_path = f"{self.prefix}/{uuid.uuid4().hex}.{ext}"
        dest = self._resolve(rel_path)
        tmp = f"{dest}.part"
        try:
            os.makedirs(os.path.dirname(dest), exist_ok=True)
            with open(tmp, "wb") as out:
                out.write(data)
            os.replace(tmp, dest)
        except OSError as exc:
            try:
                if os.path.exists(tmp):
                    os.remove(tmp)
            except OSError:
                log.warning("Could not remove partial photo %s", tmp)
            log.error("Photo write failed for %s: %s", rel_path, exc)
            raise PhotoStorageError("Could not store the uploaded photo") from exc
        log.debug("Stored photo %s (%d bytes)", rel_path, len(data))
        return rel_path

    def exists(self, path: str) -> bool:
        if not path:
            return False
        return os.path.isfile(self._resolve(path))

    def delete(self, path: str) -> bool:
        if not path:
            return False
        target = self._resolve(path)
        try:
            os.remove(target)
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise PhotoStorageError(f"Could not delete photo {path}") from exc
        return True

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"


_default_store: Optional[PhotoStore] = None


def get_photo_store() -> PhotoStore:
    global _default_store
    if _default_store is None:
        os.makedirs(PHOTO_DIR, exist_ok=True)
        _default_store = LocalPhotoStore(PHOTO_DIR)
    return _default_store
