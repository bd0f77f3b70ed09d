"""
Evidence photo storage.

The workflow only ever sees opaque references (``/uploads/<name>``); where
the bytes live is this module's business.  LocalPhotoStore writes into
UPLOAD_FOLDER, which the app serves back under UPLOAD_URL_PREFIX.
"""

import logging
import os
import uuid

from flask import current_app
from werkzeug.utils import secure_filename

from fieldtrack.core.exceptions import ValidationError

logger = logging.getLogger(__name__)


class LocalPhotoStore:
    """Save uploaded files to a local directory and hand back URL references."""

    def __init__(self, folder: str, url_prefix: str = "/uploads", allowed_extensions=None):
        self.folder = folder
        self.url_prefix = url_prefix.rstrip("/")
        self.allowed_extensions = frozenset(allowed_extensions or ())

    @classmethod
    def from_app(cls, app=None) -> "LocalPhotoStore":
        cfg = (app or current_app).config
        return cls(
            cfg["UPLOAD_FOLDER"],
            cfg.get("UPLOAD_URL_PREFIX", "/uploads"),
            cfg.get("ALLOWED_PHOTO_EXTENSIONS"),
        )

    def _extension(self, filename: str) -> str:
        return filename.rsplit(".", 1)[-1].lower() if "." in filename else ""

    def check(self, files) -> list:
        """Return the non-empty uploads, rejecting disallowed extensions up front."""
        uploads = [f for f in files if f and f.filename]
        for f in uploads:
            ext = self._extension(f.filename)
            if self.allowed_extensions and ext not in self.allowed_extensions:
                raise ValidationError(
                    f"File type {ext or '(none)'!r} is not allowed",
                    details={"filename": f.filename, "allowed": sorted(self.allowed_extensions)},
                )
        return uploads

    def save_all(self, files) -> list[str]:
        """Persist every upload and return their references in upload order."""
        uploads = self.check(files)
        if not uploads:
            return []
        os.makedirs(self.folder, exist_ok=True)
        refs = []
        for f in uploads:
            name = secure_filename(f"{uuid.uuid4().hex}_{f.filename}")
            f.save(os.path.join(self.folder, name))
            refs.append(f"{self.url_prefix}/{name}")
        logger.info("Stored %d evidence photo(s)", len(refs))
        return refs

    def discard(self, refs) -> None:
        """Delete files saved by save_all whose record never got committed."""
        for ref in refs:
            if not ref.startswith(f"{self.url_prefix}/"):
                continue
            name = ref[len(self.url_prefix) + 1:]
            try:
                os.remove(os.path.join(self.folder, name))
            except FileNotFoundError:
                continue
        if refs:
            logger.info("Discarded %d unused evidence photo(s)", len(refs))


def check_photo_count(total: int) -> None:
    """Reject submissions carrying more photos than MAX_PHOTOS_PER_SUBMISSION."""
    limit = current_app.config["MAX_PHOTOS_PER_SUBMISSION"]
    if total > limit:
        raise ValidationError(
            f"At most {limit} evidence photos per submission",
            details={"photos": total, "max": limit},
        )
