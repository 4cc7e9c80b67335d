import pytest

from profilehub.errors import PhotoStorageError


def test_put_exists_delete(store, png_bytes):
    path = store.put(png_bytes, "image/png")

    assert path.startswith("profile-photos/") and path.endswith(".png")
    assert store.exists(path)
    assert store.url(path) == f"/media/{path}"
    assert store.delete(path) is True
    assert not store.exists(path)
    assert store.delete(path) is False


def test_paths_cannot_escape_root(store):
    with pytest.raises(PhotoStorageError):
        store.exists("../../etc/passwd")


def test_unknown_content_type_gets_generic_extension(store):
    assert store.put(b"data", "image/x-unknown").endswith(".img")
