"""Attachment upload storage on local disk"""
from fastapi import UploadFile
from typing import Dict, List, Any, Optional
import logging
import os
import time
import uuid

from salesforms.config import get_settings
from salesforms.exceptions import ValidationError

logger = logging.getLogger(__name__)

UPLOAD_FIELD_NAME = "attachments"


class AttachmentStore:
    """Image-only upload store with per-file size and per-request count limits"""

    def __init__(self, upload_dir: str, max_file_size: int = 1000000, max_files: int = 5):
        self.upload_dir = upload_dir
        self.max_file_size = max_file_size
        self.max_files = max_files

    def path_for(self, filename: str) -> str:
        # Stored names never contain directories; strip any that a tampered record carries
        return os.path.join(self.upload_dir, os.path.basename(filename))

    def _stored_name(self, original_name: Optional[str]) -> str:
        ext = os.path.splitext(original_name or "")[1].lower()
        millis = int(time.time() * 1000)
        return f"{UPLOAD_FIELD_NAME}-{millis}-{uuid.uuid4().hex[:8]}{ext}"

    def _too_large(self, upload: UploadFile) -> ValidationError:
        return ValidationError(
            f"File {upload.filename} exceeds the {self.max_file_size} byte limit",
            field=UPLOAD_FIELD_NAME
        )

    async def save(self, files: List[UploadFile]) -> List[Dict[str, Any]]:
        """
        Validate and write uploaded files

        Every file is checked before any is written, so a rejected request
        leaves nothing on disk.

        Args:
            files: Uploaded file parts

        Returns:
            One {filename, mimetype, size} record per stored file

        Raises:
            ValidationError: Too many files, a non-image file, or a file over the size limit
        """
        if not files:
            return []

        if len(files) > self.max_files:
            raise ValidationError(
                f"Too many files, a maximum of {self.max_files} is allowed",
                field=UPLOAD_FIELD_NAME
            )

        accepted = []
        for upload in files:
            mimetype = upload.content_type or ""
            if not mimetype.startswith("image"):
                raise ValidationError("Please upload an image file", field=UPLOAD_FIELD_NAME)

            if upload.size is not None and upload.size > self.max_file_size:
                raise self._too_large(upload)

            # Never buffer more than one byte past the limit
            content = await upload.read(self.max_file_size + 1)
            if len(content) > self.max_file_size:
                raise self._too_large(upload)
            accepted.append((upload, mimetype, content))

        os.makedirs(self.upload_dir, exist_ok=True)

        records = []
        for upload, mimetype, content in accepted:
            filename = self._stored_name(upload.filename)
            with open(self.path_for(filename), "wb") as f:
                f.write(content)
            records.append({
                "filename": filename,
                "mimetype": mimetype,
                "size": len(content)
            })
            logger.info(f"Stored upload {upload.filename} as {filename} ({len(content)} bytes)")

        return records

    def remove(self, filename: str) -> bool:
        """
        Delete a stored file; a file that is already gone is not an error

        Returns:
            True if a file was removed
        """
        path = self.path_for(filename)
        if not os.path.exists(path):
            logger.info(f"Attachment file already absent: {filename}")
            return False

        try:
            os.remove(path)
        except OSError as e:
            logger.warning(f"Could not remove attachment file {filename}: {e}")
            return False
        return True

    def discard(self, records: List[Dict[str, Any]]) -> None:
        """Remove files stored for a request that did not complete"""
        for record in records:
            self.remove(record["filename"])


def get_attachment_store() -> AttachmentStore:
    """AttachmentStore configured from settings"""
    settings = get_settings()
    return AttachmentStore(
        settings.file_upload_path,
        max_file_size=settings.max_file_upload,
        max_files=settings.max_file_count
    )
