"""
TextLens Backend — File Storage Service
=========================================

What:  Validates uploaded images and stores them on the local filesystem.
Why:   The OCR engine reads from disk, and the Document row only keeps the
       path, so every upload goes through here before anything else runs.
How:   Checks declared MIME type, size, and actual image format (Pillow),
       then writes into date-organized directories under a UUID filename.
Who:   Called by DocumentService during the upload workflow.

Security Model:
    1. Declared MIME type:  Rejects anything but image/jpeg and image/png
    2. Size check:          Empty files and files over MAX_FILE_SIZE are rejected
    3. Content sniffing:    Pillow must recognize the bytes as the declared format
    4. UUID filename:       No user input ever reaches the filesystem path

    All checks run before a single byte is written.
"""

import io
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

import aiofiles
from PIL import Image, UnidentifiedImageError

from textlens.config import settings
from textlens.exceptions import FileStorageError, ValidationError

logger = logging.getLogger(__name__)

# ── Allowed File Types ────────────────────────────────────────────────────
# Declared MIME type → Pillow format name it must decode as
ALLOWED_MIME_TYPES = {
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "image/pjpeg": "JPEG",
    "image/png": "PNG",
}

# Pillow format name → extension used for the stored file
FORMAT_EXTENSIONS = {
    "JPEG": ".jpg",
    "PNG": ".png",
}


class FileService:
    """
    Manages upload validation and storage.

    Directory Structure:
        uploads/
        └── 2026/
            └── 10/
                └── 17/
                    ├── 3f2b9c1e0d6a4f7c9e8b1a2d3c4e5f60.jpg
                    └── 9a8b7c6d5e4f40312a1b2c3d4e5f6a7b.png

    The relative part (2026/10/17/<uuid>.jpg) is what gets stored in
    Document.file_url.
    """

    def __init__(self, storage_root: Optional[str] = None, max_file_size: Optional[int] = None):
        """
        Args:
            storage_root: Override the storage path (used in tests).
            max_file_size: Override the size limit in bytes (used in tests).
        """
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.max_file_size = max_file_size or settings.max_file_size
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("FileService initialized with storage_root=%s", self.storage_root)

    def validate_content_type(self, content_type: Optional[str]) -> str:
        """
        Check the MIME type the client declared for the upload.

        Returns: The Pillow format the content must decode as.
        Raises:  ValidationError for anything other than JPEG or PNG.
        """
        mime = (content_type or "").split(";")[0].strip().lower()
        if mime not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                message=(
                    f"File type '{mime or 'unknown'}' is not supported. "
                    "Only JPG, JPEG or PNG images are allowed."
                ),
                field="file",
                context={"content_type": mime, "allowed": sorted(ALLOWED_MIME_TYPES)},
            )
        return ALLOWED_MIME_TYPES[mime]

    def validate_size(self, size: int) -> None:
        """
        Reject empty uploads and uploads larger than the configured maximum.

        Raises:
            ValidationError with a human-readable size limit message
        """
        max_mb = self.max_file_size / (1024 * 1024)

        if size == 0:
            raise ValidationError(
                message="The uploaded file is empty.",
                field="file",
            )

        if size > self.max_file_size:
            raise ValidationError(
                message=f"File is too large. Maximum size is {max_mb:.0f}MB.",
                field="file",
                context={"max_size_mb": max_mb, "actual_size": size},
            )

    def detect_image_format(self, content: bytes, expected_format: str) -> str:
        """
        Decode the file header with Pillow and compare it with the declared type.

        What:    A renamed PDF sent as image/jpeg fails here, as does a PNG
                 declared as JPEG.
        Returns: The detected format name ("JPEG" or "PNG").
        Raises:  ValidationError if the bytes are not a readable image of
                 the declared format.
        """
        try:
            with Image.open(io.BytesIO(content)) as image:
                detected = image.format
                image.verify()
        except (
            UnidentifiedImageError,
            Image.DecompressionBombError,
            OSError,
            SyntaxError,
            ValueError,
        ) as e:
            raise ValidationError(
                message="The uploaded file is not a valid JPEG or PNG image.",
                field="file",
                context={"error_type": type(e).__name__},
            )

        if detected != expected_format:
            raise ValidationError(
                message=(
                    f"File content ({detected or 'unknown'}) does not match its declared "
                    f"type ({expected_format})."
                ),
                field="file",
                context={"detected": detected, "declared": expected_format},
            )
        return detected

    def _generate_storage_path(self, extension: str) -> Tuple[Path, str]:
        """Returns (absolute_path, relative_path) for a new YYYY/MM/DD/<uuid><ext> file."""
        now = datetime.now(timezone.utc)
        date_dir = now.strftime("%Y/%m/%d")
        unique_name = f"{uuid.uuid4().hex}{extension}"

        relative_path = f"{date_dir}/{unique_name}"
        absolute_path = self.storage_root / relative_path

        return absolute_path, relative_path

    async def store_file(self, content: bytes, extension: str) -> Tuple[str, str]:
        """
        Write validated file content to disk.

        Returns: Tuple of (absolute_path, relative_path).
        Raises:  FileStorageError if directory creation or file write fails.
        """
        absolute_path, relative_path = self._generate_storage_path(extension)

        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)

            async with aiofiles.open(absolute_path, "wb") as f:
                await f.write(content)

            logger.info("File stored: %s (%d bytes)", relative_path, len(content))
            return str(absolute_path), relative_path

        except OSError as e:
            logger.error("Failed to store file at %s: %s", absolute_path, str(e))
            raise FileStorageError(
                message="Failed to save uploaded image. Please try again.",
                context={"path": str(absolute_path), "os_error": str(e)},
            )

    async def cleanup_file(self, file_path: str) -> None:
        """
        Remove a stored file after the rest of the upload failed.

        Best-effort: a file that is already gone or cannot be removed is
        logged, never raised, so the original error reaches the client.
        """
        path = Path(file_path)
        try:
            path.unlink()
            logger.info("Cleaned up file: %s", path.name)
        except FileNotFoundError:
            logger.debug("Cleanup: file already gone: %s", path.name)
        except OSError as e:
            logger.warning("Failed to clean up file %s: %s", file_path, str(e))

    async def validate_and_store(
        self,
        filename: str,
        content_type: Optional[str],
        content: bytes,
    ) -> Tuple[str, str]:
        """
        Complete file validation and storage pipeline.

        Validation order (cheapest first):
            1. Declared MIME type
            2. Size
            3. Pillow format detection
            4. Write to disk

        Returns: Tuple of (absolute_path for OCR, relative_path for the DB).
        """
        expected_format = self.validate_content_type(content_type)
        self.validate_size(len(content))
        detected = self.detect_image_format(content, expected_format)

        logger.debug("Upload %s validated as %s", filename, detected)
        return await self.store_file(content, FORMAT_EXTENSIONS[detected])


# ── Singleton Instance ────────────────────────────────────────────────────
file_service = FileService()
