"""Opaque blob store for message attachments.

Attachments are encrypted by the client before upload. The server stores the
bytes as-is under a random name and hands back a handle that FILE messages
reference.
"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path, PurePath

from sqlalchemy import select
from sqlalchemy.orm import Session

from securechat.core.errors import NotFoundError, ValidationError
from securechat.core.settings import settings
from securechat.models import StoredFile, User

logger = logging.getLogger(__name__)

FILE_URL_PREFIX = "/files/"
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def file_url_for(storage_name: str) -> str:
    return f"{FILE_URL_PREFIX}{storage_name}"


def too_large_error() -> ValidationError:
    return ValidationError(f"File too large (max {settings.max_upload_bytes // (1024 * 1024)} MB)")


class FileStorageService:
    """Writes attachment blobs to ``upload_dir`` and records their metadata."""

    def __init__(self, db: Session, upload_dir: str | Path | None = None) -> None:
        self.db = db
        self.root = Path(upload_dir or settings.upload_dir).resolve()
        self.root.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _clean_filename(filename: str | None) -> str:
        cleaned = PurePath((filename or "").replace("\\", "/")).name.strip()
        if ".." in (filename or ""):
            raise ValidationError(f"Filename contains an invalid path sequence: {filename}")
        if not cleaned:
            raise ValidationError("Filename cannot be empty")
        return cleaned

    def store(
        self,
        uploader: User,
        filename: str | None,
        content_type: str | None,
        content: bytes,
    ) -> StoredFile:
        """Persist ``content`` and return its metadata row.

        Raises:
            ValidationError: bad filename, empty content or content above
                ``max_upload_bytes``
        """
        original_filename = self._clean_filename(filename)
        if not content:
            raise ValidationError("Cannot store an empty file")
        if len(content) > settings.max_upload_bytes:
            raise too_large_error()

        storage_name = uuid.uuid4().hex + PurePath(original_filename).suffix
        target = self.root / storage_name
        target.write_bytes(content)

        record = StoredFile(
            storage_name=storage_name,
            original_filename=original_filename,
            content_type=content_type or DEFAULT_CONTENT_TYPE,
            size=len(content),
            uploader_id=uploader.id,
        )
        self.db.add(record)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            target.unlink(missing_ok=True)
            raise
        self.db.refresh(record)
        logger.info(
            "User '%s' stored attachment %s (%d bytes)", uploader.username, storage_name, record.size
        )
        return record

    def resolve(self, storage_name: str) -> tuple[StoredFile, Path]:
        """Return the metadata row and on-disk path for a stored blob."""
        record = self.db.scalar(select(StoredFile).where(StoredFile.storage_name == storage_name))
        path = self.root / storage_name
        if record is None or path.parent != self.root or not path.is_file():
            raise NotFoundError("File not found")
        return record, path
