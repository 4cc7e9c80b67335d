import pytest

from profilehub.photo_uploads import PhotoUploadValidationError, sniff_image_type, validate_photo_upload


def test_sniff_known_formats(png_bytes, jpeg_bytes):
    assert sniff_image_type(png_bytes) == "image/png"
    assert sniff_image_type(jpeg_bytes) == "image/jpeg"
    assert sniff_image_type(b"GIF89a....") == "image/gif"
    assert sniff_image_type(b"RIFF\x00\x00\x00\x00WEBPVP8 ") == "image/webp"
    assert sniff_image_type(b"%PDF-1.7") is None
    assert sniff_image_type(b"") is None


def test_sniffed_type_wins_over_declared(png_bytes):
    upload = validate_photo_upload(png_bytes, "image/jpeg", "me.jpg")
    assert upload.content_type == "image/png"
    assert upload.size == len(png_bytes)


@pytest.mark.parametrize(
    "data,content_type,status,message",
    [
        (b"", "image/png", 400, "The profile photo field is required."),
        (b"\x89PNG\r\n\x1a\n", "application/pdf", 400, "The profile photo must be an image."),
        (b"just text", "image/png", 400, "The profile photo must be an image."),
    ],
)
def test_invalid_uploads(data, content_type, status, message):
    with pytest.raises(PhotoUploadValidationError) as exc:
        validate_photo_upload(data, content_type)
    assert exc.value.status_code == status
    assert str(exc.value) == message


def test_size_limit(png_bytes):
    with pytest.raises(PhotoUploadValidationError) as exc:
        validate_photo_upload(png_bytes + b"\x00" * 1024, "image/png", max_kb=1)
    assert exc.value.status_code == 413
