import pytest

import config
from blobstore import LocalBlobStore, check_image
from errors import PayloadTooLargeError, UnsupportedMediaError


def test_check_image_accepts_images():
    check_image("image/png", 10)
    check_image("image/jpeg", config.MAX_UPLOAD_BYTES)


@pytest.mark.parametrize("content_type", ["text/plain", "application/pdf", "", None])
def test_check_image_rejects_other_types(content_type):
    with pytest.raises(UnsupportedMediaError):
        check_image(content_type, 10)


def test_check_image_rejects_large_files():
    with pytest.raises(PayloadTooLargeError):
        check_image("image/png", config.MAX_UPLOAD_BYTES + 1)
    with pytest.raises(PayloadTooLargeError):
        check_image("image/png", 11, max_bytes=10)


def test_store_and_discard(tmp_path):
    blobs = LocalBlobStore(tmp_path / "uploads", "/uploads/")
    url = blobs.store(b"fake-png", "image/png", "Poster.PNG")

    assert url.startswith("/uploads/")
    assert url.endswith(".png")
    stored = tmp_path / "uploads" / url.rsplit("/", 1)[-1]
    assert stored.read_bytes() == b"fake-png"

    blobs.discard(url)
    assert not stored.exists()
    blobs.discard(url)
    blobs.discard("https://elsewhere.example/poster.png")


def test_names_are_unique(tmp_path):
    blobs = LocalBlobStore(tmp_path, "/uploads")
    assert blobs.store(b"a", "image/png", "a.png") != blobs.store(b"a", "image/png", "a.png")


@pytest.mark.parametrize("original_name", ["x.html", "poster.svg", "noext", ""])
def test_extension_follows_content_type(tmp_path, original_name):
    blobs = LocalBlobStore(tmp_path, "/uploads")
    assert blobs.store(b"a", "image/png", original_name).endswith(".png")


def test_unknown_image_type_gets_no_extension(tmp_path):
    blobs = LocalBlobStore(tmp_path, "/uploads")
    url = blobs.store(b"a", "image/x-made-up", "page.html")
    assert "." not in url.rsplit("/", 1)[-1]
