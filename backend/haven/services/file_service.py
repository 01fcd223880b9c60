"""
Handcrafted Haven Backend — Image Storage Service
=================================================

What:  Validates, stores, serves and removes uploaded images.
Why:   Product photos and profile avatars share one validation pipeline;
       only the bucket (sub-directory) and size limit differ.
How:   Checks the declared type, the size against the bucket limit, then
       opens the bytes with Pillow to confirm they really are a JPEG, PNG
       or WebP image. Files land in <storage_root>/<bucket>/ under a
       generated name and are exposed at /api/files/<bucket>/<name>.
Who:   Called by ProductService and ProfileService; the files route uses
       resolve_path() to serve stored images.

Security Model:
    1. Declared type check: fast rejection of obviously wrong uploads
    2. Size check:          per-bucket limit (5MB products, 2MB avatars)
    3. Content check:       Pillow must recognize the bytes as an allowed format
    4. Generated filename:  "<owner_id>-<uuid>.<ext>", no user-supplied path parts
    5. Path resolution:     served paths must stay inside storage_root
    6. Ownership:           a URL is only accepted or cleaned up for the
                            account whose id prefixes the stored name

Directory Structure:
    storage/
    ├── products/
    │   └── 3f1c...-a1b2c3d4....jpg
    └── avatars/
        └── 9e7d...-e5f6a7b8....png
"""

import io
import logging
import os
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import aiofiles
from PIL import Image, UnidentifiedImageError

from haven.config import settings
from haven.exceptions import FileStorageError, NotFoundError, ValidationError
from haven.services.error_messages import storage_error_message

logger = logging.getLogger(__name__)

PUBLIC_URL_PREFIX = "/api/files/"

PRODUCTS_BUCKET = "products"
AVATARS_BUCKET = "avatars"

INVALID_TYPE_MESSAGE = "Invalid file type. Only JPEG, PNG, and WebP images are allowed."
FOREIGN_IMAGE_MESSAGE = "Please upload the image from your own account."

# What: Declared content types accepted from the multipart upload
ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp"}

# What: Extensions accepted when the client sends no usable content type
ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp"}

# What: Pillow format name → extension used for the stored file
# Why from the detected format: the stored extension always matches the bytes
FORMAT_EXTENSIONS = {
    "JPEG": ".jpg",
    "PNG": ".png",
    "WEBP": ".webp",
}

FORMAT_CONTENT_TYPES = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
}

# What: Stored extension → Content-Type used when serving
EXTENSION_CONTENT_TYPES = {
    ext: FORMAT_CONTENT_TYPES[fmt] for fmt, ext in FORMAT_EXTENSIONS.items()
}

# What: Name shape produced by _generate_name (owner id, hex uuid, extension)
STORED_NAME_SUFFIX = r"-[0-9a-f]{32}\.(?:jpg|png|webp)"


@dataclass(frozen=True)
class StoredFile:
    """Result of a successful upload."""
    relative_path: str  # e.g. "products/<owner>-<uuid>.jpg"
    url: str            # e.g. "/api/files/products/<owner>-<uuid>.jpg"
    size: int
    content_type: str


class FileService:
    """
    Manages image upload, validation, serving and cleanup.

    Lifecycle of an uploaded image:
        1. Route reads the multipart upload → service calls validate_and_store()
        2. Declared type check
        3. Size check against the bucket limit
        4. Pillow content check (catches renamed files)
        5. Write to <bucket>/<owner>-<uuid>.<ext>
        6. Public URL is stored on the product or profile
        7. Replaced or deleted records call cleanup_url() (best effort)
    """

    def __init__(self, storage_root: Optional[str] = None):
        """
        Args:
            storage_root: Override the default storage path (used in tests).
                          If None, uses settings.storage_root.
        """
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("FileService initialized with storage_root=%s", self.storage_root)

    # ── Buckets ───────────────────────────────────────────────────────────

    def bucket_limits(self) -> Dict[str, int]:
        """Max upload size (bytes) per bucket; read per call so settings overrides apply."""
        return {
            PRODUCTS_BUCKET: settings.product_image_max_size,
            AVATARS_BUCKET: settings.avatar_max_size,
        }

    def _bucket_limit(self, bucket: str) -> int:
        limits = self.bucket_limits()
        if bucket not in limits:
            # Same wording a misconfigured object store would produce
            raise FileStorageError(
                message=storage_error_message(f"Bucket not found: {bucket}"),
                context={"bucket": bucket},
            )
        return min(limits[bucket], settings.max_file_size)

    # ── Validation ────────────────────────────────────────────────────────

    def validate_type(self, filename: Optional[str], content_type: Optional[str]) -> None:
        """
        Check the declared type of the upload.

        The multipart content type is trusted first; a missing or generic
        one (application/octet-stream) falls back to the filename extension.
        """
        declared = (content_type or "").split(";")[0].strip().lower()
        if declared and declared != "application/octet-stream":
            if declared in ALLOWED_CONTENT_TYPES:
                return
            raise ValidationError(
                message=INVALID_TYPE_MESSAGE,
                field="file",
                context={"content_type": declared},
            )

        ext = Path(filename or "").suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=INVALID_TYPE_MESSAGE,
                field="file",
                context={"extension": ext},
            )

    def validate_size(self, bucket: str, actual_size: int) -> None:
        """Reject empty files and files above the bucket's limit."""
        limit = self._bucket_limit(bucket)
        if actual_size == 0:
            raise ValidationError(message="Invalid file provided", field="file")
        if actual_size > limit:
            max_mb = limit / (1024 * 1024)
            raise ValidationError(
                message=f"File is too large. Maximum size is {max_mb:g}MB.",
                field="file",
                context={"max_size_bytes": limit, "actual_size": actual_size},
            )

    def detect_format(self, content: bytes) -> str:
        """
        Identify the image format from its bytes with Pillow.

        Returns:
            Pillow format name ("JPEG", "PNG" or "WEBP").
        Raises:
            ValidationError when the bytes are not an allowed image.
        """
        try:
            with Image.open(io.BytesIO(content)) as img:
                image_format = img.format
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
            logger.info("Rejected upload that is not a readable image: %s", e)
            raise ValidationError(message=INVALID_TYPE_MESSAGE, field="file")

        if image_format not in FORMAT_EXTENSIONS:
            raise ValidationError(
                message=INVALID_TYPE_MESSAGE,
                field="file",
                context={"detected_format": image_format},
            )
        return image_format

    # ── Storage ───────────────────────────────────────────────────────────

    def _generate_name(self, owner_id: str, extension: str) -> str:
        return f"{owner_id}-{uuid.uuid4().hex}{extension}"

    async def store_file(
        self, bucket: str, owner_id: str, content: bytes, extension: str
    ) -> str:
        """
        Write validated content to disk and return its relative path.

        Raises:
            FileStorageError if directory creation or the write fails.
        """
        relative_path = f"{bucket}/{self._generate_name(owner_id, extension)}"
        absolute_path = self.storage_root / relative_path

        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(absolute_path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store file at %s: %s", absolute_path, e)
            raise FileStorageError(
                message=storage_error_message(str(e)),
                context={"path": str(absolute_path), "os_error": str(e)},
            )

        logger.info("File stored: %s (%d bytes)", relative_path, len(content))
        return relative_path

    async def validate_and_store(
        self,
        bucket: str,
        owner_id: str,
        filename: Optional[str],
        content: bytes,
        content_type: Optional[str] = None,
    ) -> StoredFile:
        """
        Complete validation and storage pipeline.

        Validation order (cheapest first):
            1. Declared type
            2. Size against the bucket limit
            3. Pillow content check
            4. Write to disk
        """
        self.validate_type(filename, content_type)
        self.validate_size(bucket, len(content))
        image_format = self.detect_format(content)

        relative_path = await self.store_file(
            bucket, str(owner_id), content, FORMAT_EXTENSIONS[image_format]
        )
        return StoredFile(
            relative_path=relative_path,
            url=self.public_url(relative_path),
            size=len(content),
            content_type=FORMAT_CONTENT_TYPES[image_format],
        )

    # ── URLs & serving ────────────────────────────────────────────────────

    def public_url(self, relative_path: str) -> str:
        return f"{PUBLIC_URL_PREFIX}{relative_path}"

    def relative_path_from_url(self, url: Optional[str]) -> Optional[str]:
        """
        Map a public URL back to its storage path.

        Returns None for URLs this service did not issue (external image
        links artisans may have pasted in), which callers simply skip.
        """
        if not url:
            return None
        marker = url.find(PUBLIC_URL_PREFIX)
        if marker < 0:
            return None
        relative = url[marker + len(PUBLIC_URL_PREFIX):].split("?")[0]
        return relative or None

    def owned_relative_path(self, url: Optional[str], bucket: str, owner_id) -> Optional[str]:
        """
        Storage path behind `url` when it names a file stored for `owner_id`
        in `bucket`; None for external links and for anyone else's file.
        """
        relative = self.relative_path_from_url(url)
        if relative is None:
            return None
        folder, _, name = relative.partition("/")
        pattern = re.escape(str(owner_id)) + STORED_NAME_SUFFIX
        if folder != bucket or re.fullmatch(pattern, name) is None:
            return None
        return relative

    def check_url_owner(self, url: Optional[str], bucket: str, owner_id, field: str) -> None:
        """
        Reject a stored-image URL that was not issued to `owner_id`.

        External links pass; only /api/files/ URLs are checked.

        Raises:
            ValidationError when the URL points at another account's file.
        """
        if self.relative_path_from_url(url) is None:
            return
        if self.owned_relative_path(url, bucket, owner_id) is None:
            logger.warning("Rejected foreign image URL for %s: %s", owner_id, url)
            raise ValidationError(
                message=FOREIGN_IMAGE_MESSAGE,
                field=field,
                context={"bucket": bucket},
            )

    def resolve_path(self, relative_path: str) -> Path:
        """
        Resolve a stored file for serving.

        Raises:
            NotFoundError if the file is missing or the path escapes storage_root.
        """
        candidate = (self.storage_root / relative_path).resolve()
        if self.storage_root not in candidate.parents or not candidate.is_file():
            raise NotFoundError(resource="file", message="File not found")
        return candidate

    def media_type(self, path: Path) -> str:
        return EXTENSION_CONTENT_TYPES.get(path.suffix.lower(), "application/octet-stream")

    async def cleanup_url(self, url: Optional[str], bucket: str, owner_id) -> None:
        """
        Remove the file behind a public URL if it belongs to `owner_id`;
        best effort, never raises.
        """
        relative = self.owned_relative_path(url, bucket, owner_id)
        if relative is None:
            if self.relative_path_from_url(url) is not None:
                logger.warning("Cleanup skipped for file not owned by %s: %s", owner_id, url)
            return
        await self.cleanup_file(relative)

    async def cleanup_file(self, relative_path: str) -> None:
        """
        Remove a stored file (replaced avatar, deleted product, closed account).

        Error handling:
            Missing files are ignored; other failures are logged and swallowed
            because the database change that triggered cleanup already succeeded.
        """
        try:
            path = (self.storage_root / relative_path).resolve()
            if self.storage_root not in path.parents:
                logger.warning("Cleanup refused for path outside storage: %s", relative_path)
                return
            if path.exists():
                os.remove(path)
                logger.info("Cleaned up file: %s", relative_path)
            else:
                logger.debug("Cleanup: file already gone: %s", relative_path)
        except OSError as e:
            logger.warning("Failed to clean up file %s: %s", relative_path, e)


# ── Singleton Instance ────────────────────────────────────────────────────
file_service = FileService()
