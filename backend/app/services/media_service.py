"""
Blog Platform Backend — Media Service (Cloudinary)
==================================================

What:  Validates blog images and delegates storage to Cloudinary.
Why:   Serverless instances have no durable disk; images live on the media
       host and blogs store only the returned secure URL.
How:   Validate (extension → size → magic-byte MIME) in-process, then call the
       Cloudinary SDK in a threadpool (the SDK is synchronous).
Who:   Called by BlogService when a blog is created, updated or deleted.

Security Model (same layering as any upload endpoint):
    1. Extension check:  fast rejection of obviously wrong files
    2. Size check:       bounded by MAX_IMAGE_SIZE (2MB by default)
    3. MIME check:       python-magic inspects the header bytes, so a renamed
                         executable is rejected even with a .jpg name
    4. Storage:          the media host assigns the public id; no user input
                         reaches a path

Public ID extraction:
    Delivery URLs look like
        https://res.cloudinary.com/<cloud>/image/upload/<transforms>/v1712345678/blog_images/abc.jpg
    The public id is everything after the version segment, minus the file
    extension ("blog_images/abc"). Deleting by public id is how old images are
    removed when a blog's image is replaced or the blog is deleted.
"""

import io
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import cloudinary.uploader
from starlette.concurrency import run_in_threadpool

from app.config import Settings
from app.exceptions import ConfigurationError, MediaUploadError, ValidationError

logger = logging.getLogger(__name__)

# ── Allowed File Types ────────────────────────────────────────────────────
ALLOWED_MIME_TYPES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/gif": ".gif",
    "image/webp": ".webp",
}

ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp"}

# What: Delivery-time optimizations applied on upload
# quality auto:good, cap width at 1200px, let the CDN pick the format
BLOG_IMAGE_TRANSFORMATION = [
    {"quality": "auto:good"},
    {"width": 1200, "crop": "limit"},
    {"fetch_format": "auto"},
]

VERSION_SEGMENT = re.compile(r"^v\d+$")


@dataclass(frozen=True)
class UploadedImage:
    secure_url: str
    public_id: Optional[str]


class MediaService:
    """
    Image validation plus Cloudinary upload/delete.

    Credentials are passed per call rather than through cloudinary.config()
    so that two contexts (e.g. tests) never share global SDK state.
    """

    def __init__(self, settings: Settings):
        self._settings = settings

    @property
    def folder(self) -> str:
        return self._settings.cloudinary_folder

    def _credentials(self) -> Dict[str, Any]:
        if not self._settings.cloudinary_configured:
            raise ConfigurationError(
                message="Cloudinary configuration is missing. Check your environment variables.",
                setting="CLOUDINARY_*",
            )
        return {
            "cloud_name": self._settings.cloudinary_cloud_name,
            "api_key": self._settings.cloudinary_api_key,
            "api_secret": self._settings.cloudinary_api_secret,
            "secure": True,
        }

    # ── Validation ────────────────────────────────────────────────────────

    def validate_extension(self, filename: str) -> str:
        ext = Path(filename).suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=(
                    f"File type '{ext or filename}' is not supported. "
                    f"Allowed types: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
                ),
                field="image",
                context={"extension": ext, "allowed": sorted(ALLOWED_EXTENSIONS)},
            )
        return ext

    def validate_size(self, content_length: Optional[int], actual_size: int) -> None:
        """
        Reject empty files and files above MAX_IMAGE_SIZE.

        Checks the declared Content-Length first, then the bytes actually read
        (some clients send a wrong header).
        """
        max_bytes = self._settings.max_image_size
        max_mb = max_bytes / (1024 * 1024)

        if actual_size == 0:
            raise ValidationError(message="Uploaded image is empty", field="image")

        if (content_length and content_length > max_bytes) or actual_size > max_bytes:
            raise ValidationError(
                message=f"File size too large. Max size is {max_mb:g}MB.",
                field="image",
                context={"max_size_bytes": max_bytes, "actual_size": actual_size},
            )

    def validate_mime_type(self, content: bytes) -> str:
        """
        Detect the real content type from the header bytes.

        Raises:
            ValidationError if the detected type is not an allowed image.
        """
        import magic

        mime_type = magic.from_buffer(content[:2048], mime=True)
        if mime_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                message=(
                    f"File content type '{mime_type}' is not supported. "
                    "The file must be a valid image (PNG, JPEG, GIF or WebP)."
                ),
                field="image",
                context={"detected_mime": mime_type, "allowed": list(ALLOWED_MIME_TYPES)},
            )
        return mime_type

    def validate_image(self, filename: str, content: bytes, content_length: Optional[int] = None) -> None:
        # Cheapest checks first
        self.validate_extension(filename)
        self.validate_size(content_length, len(content))
        self.validate_mime_type(content)

    # ── Media host operations ─────────────────────────────────────────────

    async def upload(self, buffer: bytes, options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Upload raw bytes to Cloudinary.

        Returns the SDK's result dict (secure_url, public_id, width, ...).

        Raises:
            ConfigurationError: Cloudinary credentials are not configured.
            MediaUploadError:   The media host rejected or failed the upload.
        """
        params = dict(options or {})
        params.update(self._credentials())
        try:
            result = await run_in_threadpool(
                cloudinary.uploader.upload, io.BytesIO(buffer), **params
            )
        except Exception as exc:
            logger.error("Cloudinary upload failed: %s", exc)
            raise MediaUploadError(
                message="Failed to upload image to media host",
                context={"error": str(exc)},
            ) from exc

        if not result or not result.get("secure_url"):
            raise MediaUploadError(
                message="Media host returned no image URL",
                context={"result": result},
            )
        logger.info("Uploaded image %s (%d bytes)", result.get("public_id"), len(buffer))
        return result

    async def upload_blog_image(
        self,
        filename: str,
        content: bytes,
        content_length: Optional[int] = None,
    ) -> UploadedImage:
        """Validate then upload a blog cover image into the blog image folder."""
        self.validate_image(filename, content, content_length)
        result = await self.upload(
            content,
            {
                "folder": self.folder,
                "resource_type": "image",
                "transformation": BLOG_IMAGE_TRANSFORMATION,
            },
        )
        return UploadedImage(secure_url=result["secure_url"], public_id=result.get("public_id"))

    async def delete(self, public_id: Optional[str]) -> Optional[Dict[str, Any]]:
        """
        Delete an asset by public id.

        Best effort: a failed delete leaves an orphaned image on the media
        host, which must not fail the blog update/delete that triggered it.
        Returns the SDK result, or None when skipped or failed.
        """
        if not public_id:
            logger.debug("No public id provided; skipping media deletion")
            return None
        try:
            result = await run_in_threadpool(
                cloudinary.uploader.destroy, public_id, **self._credentials()
            )
        except Exception as exc:
            logger.warning("Failed to delete media %s: %s", public_id, exc)
            return None
        logger.info("Deleted media %s: %s", public_id, result)
        return result

    async def delete_by_url(self, url: Optional[str]) -> Optional[Dict[str, Any]]:
        return await self.delete(self.public_id_from_url(url))

    def public_id_from_url(self, url: Optional[str]) -> Optional[str]:
        """
        Extract the public id from a Cloudinary delivery URL.

        Returns None for empty or non-Cloudinary URLs. When the URL has a
        folder that is not the blog image folder, the folder prefix is added
        so deletes target the right asset.
        """
        if not url or "cloudinary.com" not in url:
            return None

        parts = url.split("?", 1)[0].split("/")
        if "upload" not in parts:
            logger.debug("No upload segment in media URL: %s", url)
            return None

        file_name = parts[-1].split(".", 1)[0]
        start = parts.index("upload") + 1
        # Skip transformation segments up to and including the version
        for index in range(start, len(parts) - 1):
            if VERSION_SEGMENT.match(parts[index]):
                start = index + 1
                break

        if start >= len(parts) - 1:
            return file_name

        folder_path = "/".join(parts[start:-1])
        public_id = f"{folder_path}/{file_name}"
        if self.folder in folder_path:
            return public_id
        return f"{self.folder}/{public_id}"
