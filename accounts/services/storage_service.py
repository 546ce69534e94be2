"""Object storage for profile images (Cloudinary-compatible upload API)."""

import hashlib
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional
from uuid import uuid4

import httpx
import structlog
from fastapi import UploadFile

from accounts.config import get_settings
from accounts.errors import UploadError
from accounts.models.user import StoredImage

logger = structlog.get_logger(__name__)

UPLOAD_CHUNK_BYTES = 64 * 1024


def sign_params(params: dict, api_secret: str) -> str:
    """Compute the upload signature: SHA-1 of sorted params plus the secret."""
    to_sign = "&".join(f"{key}={params[key]}" for key in sorted(params))
    return hashlib.sha1(f"{to_sign}{api_secret}".encode("utf-8")).hexdigest()


class StorageService:
    """Stages multipart uploads on local disk and pushes them to object storage.

    Local files are always removed once an upload has been attempted.
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = get_settings()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.storage_timeout_seconds),
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "StorageService":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def configured(self) -> bool:
        return bool(
            self.settings.storage_cloud_name
            and self.settings.storage_api_key
            and self.settings.storage_api_secret
        )

    @asynccontextmanager
    async def stage_upload(self, upload: Optional[UploadFile]) -> AsyncIterator[Optional[Path]]:
        """Write an incoming upload to the temp directory for the request's duration.

        Yields None when no file (or an empty one) was sent. The staged file is
        removed on exit whether or not it was consumed.

        Raises:
            UploadError: If the file exceeds max_upload_bytes
        """
        if upload is None or not upload.filename:
            yield None
            return

        limit = self.settings.max_upload_bytes
        temp_dir = Path(self.settings.upload_temp_dir)
        temp_dir.mkdir(parents=True, exist_ok=True)
        path = temp_dir / f"{uuid4().hex}{Path(upload.filename).suffix.lower()}"

        try:
            size = 0
            with path.open("wb") as staged:
                while True:
                    chunk = await upload.read(UPLOAD_CHUNK_BYTES)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > limit:
                        logger.info("upload_too_large", file=upload.filename, limit=limit)
                        raise UploadError(f"File exceeds maximum size of {limit} bytes")
                    staged.write(chunk)

            yield path if size else None
        finally:
            path.unlink(missing_ok=True)

    async def upload(self, local_path: Path) -> StoredImage:
        """Upload a local file and delete it afterwards.

        Args:
            local_path: Path of the staged file

        Returns:
            StoredImage with the public URL

        Raises:
            UploadError: (502) storage not configured, unreachable, rejected
                the file, or answered without a URL
        """
        local_path = Path(local_path)
        try:
            if not self.configured:
                logger.error("storage_not_configured")
                raise UploadError("Object storage is not configured", status_code=502)

            params = {
                "folder": self.settings.storage_folder,
                "timestamp": int(time.time()),
            }
            data = {
                **params,
                "api_key": self.settings.storage_api_key,
                "signature": sign_params(params, self.settings.storage_api_secret),
            }
            url = (
                f"{self.settings.storage_base_url}/"
                f"{self.settings.storage_cloud_name}/image/upload"
            )

            try:
                content = local_path.read_bytes()
            except OSError as e:
                logger.error("staged_file_unreadable", file=local_path.name, error=str(e))
                raise UploadError("Uploaded file could not be read")

            client = await self._get_client()

            try:
                response = await client.post(
                    url,
                    data=data,
                    files={"file": (local_path.name, content)},
                )
            except httpx.TimeoutException:
                logger.warning("storage_upload_timeout", file=local_path.name)
                raise UploadError("Image upload timed out", status_code=502)
            except httpx.HTTPError as e:
                logger.error("storage_upload_request_failed", error=str(e))
                raise UploadError("Image upload failed", status_code=502)

            if response.status_code >= 400:
                logger.error(
                    "storage_upload_rejected",
                    status_code=response.status_code,
                    body=response.text[:200],
                )
                raise UploadError("Image upload was rejected by storage", status_code=502)

            try:
                body = response.json()
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                body = {}

            image_url = body.get("secure_url") or body.get("url")
            if not image_url:
                logger.error("storage_upload_missing_url", keys=sorted(body))
                raise UploadError("Image upload returned no URL", status_code=502)

            logger.info("storage_upload_completed", public_id=body.get("public_id", ""))
            return StoredImage(url=image_url, public_id=body.get("public_id", ""))
        finally:
            local_path.unlink(missing_ok=True)
