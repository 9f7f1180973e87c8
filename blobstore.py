import logging
import mimetypes
import uuid
from pathlib import Path
from typing import Optional

import config
from errors import PayloadTooLargeError, UnsupportedMediaError

logger = logging.getLogger(__name__)


def check_image(content_type: Optional[str], size: int, max_bytes: int = None) -> None:
    """Reject anything that is not an image or is over the upload limit."""
    if not (content_type or "").startswith("image/"):
        raise UnsupportedMediaError()
    if size > (max_bytes or config.MAX_UPLOAD_BYTES):
        raise PayloadTooLargeError()


class LocalBlobStore:
    """Keeps uploaded files in a directory served under `url_prefix`."""

    def __init__(self, directory=None, url_prefix=None):
        self.directory = Path(directory or config.UPLOAD_DIR)
        self.url_prefix = (url_prefix or config.UPLOAD_URL_PREFIX).rstrip("/")

    def store(self, data: bytes, content_type: str, original_name: str = "") -> str:
        """Write `data` under a fresh name and return its public URL.

        The extension comes from `content_type`, never from the client's
        filename, so the file is served back with the type it was checked as.
        """
        self.directory.mkdir(parents=True, exist_ok=True)
        media_type = (content_type or "").split(";", 1)[0].strip().lower()
        filename = f"{uuid.uuid4().hex}{mimetypes.guess_extension(media_type) or ''}"
        (self.directory / filename).write_bytes(data)
        logger.info("Stored upload %s from %r (%s, %d bytes)", filename, original_name, content_type, len(data))
        return f"{self.url_prefix}/{filename}"

    def discard(self, url: str) -> None:
        if not url.startswith(self.url_prefix + "/"):
            return
        path = self.directory / Path(url).name
        try:
            path.unlink()
        except FileNotFoundError:
            pass
