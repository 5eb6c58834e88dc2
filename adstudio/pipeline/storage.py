"""
Local disk storage for uploads and finished clips.

  uploads/{uuid}.{ext}   - product photos and captured continuation frames
  videos/{job_id}.mp4    - cached provider output, served from /videos/

Files are written once and never rewritten, so no locking beyond the
filesystem's own create semantics.
"""

import base64
import binascii
import logging
import mimetypes
import os
import uuid
from typing import Optional

import httpx

from .. import config
from ..errors import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp"}
MAX_UPLOAD_BYTES = 10 * 1024 * 1024

_DATA_URL_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}


def guess_mime(path: str) -> str:
    lower = path.lower()
    if lower.endswith(".png"):
        return "image/png"
    if lower.endswith(".webp"):
        return "image/webp"
    return mimetypes.guess_type(lower)[0] or "image/jpeg"


def encode_data_uri(path: str) -> str:
    """Read an image file and return it as a base64 data URI."""
    with open(path, "rb") as f:
        data = f.read()
    return f"data:{guess_mime(path)};base64,{base64.b64encode(data).decode()}"


async def download_bytes(url: str, timeout: float = config.DOWNLOAD_TIMEOUT) -> bytes:
    """Download a public URL and return raw bytes."""
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        resp = await client.get(url)
        resp.raise_for_status()
        return resp.content


class LocalStorage:
    """Upload and video directories plus the public URLs they are served under."""

    def __init__(
        self,
        upload_dir: str = config.UPLOAD_DIR,
        video_dir: str = config.VIDEO_DIR,
        public_base_url: str = config.PUBLIC_BASE_URL,
    ):
        self.upload_dir = upload_dir
        self.video_dir = video_dir
        self.public_base_url = public_base_url.rstrip("/")

    def ensure_dirs(self) -> None:
        os.makedirs(self.upload_dir, exist_ok=True)
        os.makedirs(self.video_dir, exist_ok=True)

    # ── Uploads ──────────────────────────────────────────────────────────

    def upload_path(self, filename: str) -> str:
        """Map an upload reference to its path. Rejects anything but a bare filename."""
        if not filename or os.path.basename(filename) != filename or filename in (".", ".."):
            raise ValidationError(f"Invalid filename: {filename!r}")
        return os.path.join(self.upload_dir, filename)

    def upload_url(self, filename: str) -> str:
        return f"{self.public_base_url}/uploads/{filename}"

    def save_upload(self, data: bytes, original_name: str) -> str:
        """Store raw image bytes under a fresh UUID filename. Returns the filename."""
        ext = os.path.splitext(original_name)[1].lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError("Only JPG, PNG, WEBP images are allowed")
        if len(data) > MAX_UPLOAD_BYTES:
            raise ValidationError("Image exceeds the 10 MB upload limit")
        if not data:
            raise ValidationError("No image file provided")

        filename = f"{uuid.uuid4()}{ext}"
        os.makedirs(self.upload_dir, exist_ok=True)
        with open(os.path.join(self.upload_dir, filename), "xb") as f:
            f.write(data)
        logger.info(f"Saved upload {filename} ({len(data) // 1024} KB)")
        return filename

    def save_data_url(self, data_url: str) -> str:
        """Store a `data:image/...;base64,...` frame (captured client-side)."""
        header, sep, payload = data_url.partition(",")
        if not sep or not header.startswith("data:") or ";base64" not in header:
            raise ValidationError("image_data must be a base64 data URL")

        mime = header[len("data:"):].split(";", 1)[0].lower()
        ext = _DATA_URL_EXTENSIONS.get(mime)
        if not ext:
            raise ValidationError(f"Unsupported frame type: {mime or 'unknown'}")

        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError):
            raise ValidationError("image_data is not valid base64")

        return self.save_upload(data, f"frame{ext}")

    # ── Videos ───────────────────────────────────────────────────────────

    def video_path(self, job_id: str) -> str:
        return os.path.join(self.video_dir, f"{job_id}.mp4")

    def video_url(self, job_id: str) -> str:
        return f"{self.public_base_url}/videos/{job_id}.mp4"

    def save_video(self, job_id: str, data: bytes) -> str:
        """Write a finished clip to disk and return its public URL."""
        os.makedirs(self.video_dir, exist_ok=True)
        path = self.video_path(job_id)
        with open(path, "wb") as f:
            f.write(data)
        logger.info(f"Job {job_id}: Saved {path} ({len(data)} bytes)")
        return self.video_url(job_id)

    def find_upload(self, filename: str) -> Optional[str]:
        path = self.upload_path(filename)
        return path if os.path.isfile(path) else None
