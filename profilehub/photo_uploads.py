from dataclasses import dataclass
from typing import Optional

from profilehub.errors import ProfileValidationError

DEFAULT_MAX_UPLOAD_KB = 2048

# Magic prefixes of the image formats accepted as profile photos.
IMAGE_SIGNATURES = (
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"BM", "image/bmp"),
)


class PhotoUploadValidationError(ProfileValidationError):
    pass


@dataclass(frozen=True)
class PhotoUpload:
    data: bytes
    content_type: str
    filename: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


def sniff_image_type(data: bytes) -> Optional[str]:
    if not data:
        return None
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    for magic, content_type in IMAGE_SIGNATURES:
        if data.startswith(magic):
            return content_type
    return None


def validate_photo_upload(
    data: Optional[bytes],
    content_type: Optional[str],
    filename: Optional[str] = None,
    max_kb: int = DEFAULT_MAX_UPLOAD_KB,
) -> PhotoUpload:
    """Validate raw upload bytes and return a normalized PhotoUpload.

    The declared content type must be image/* and the bytes must look like one
    of the supported formats; the sniffed type wins when the two disagree.
    Raises PhotoUploadValidationError with a human-readable message.
    """
    if not data:
        raise PhotoUploadValidationError("The profile photo field is required.")
    declared = (content_type or "").split(";", 1)[0].strip().lower()
    if not declared.startswith("image/"):
        raise PhotoUploadValidationError("The profile photo must be an image.")
    if len(data) > max_kb * 1024:
        raise PhotoUploadValidationError(
            f"The profile photo must not be greater than {max_kb} kilobytes.", status_code=413
        )
    sniffed = sniff_image_type(data)
    if sniffed is None:
        raise PhotoUploadValidationError("The profile photo must be an image.")
    return PhotoUpload(data=data, content_type=sniffed, filename=filename)
