"""
Blob storage for generated designs.

OutputPersister re-checks the image before storing it; the stores only move
bytes. Two stores exist:
- LocalBlobStore: files under a directory served at a public base URL
- VercelBlobStore: Vercel Blob HTTP API (public access)
"""
import asyncio
import re
import secrets
import time
from pathlib import Path
from typing import Optional, Protocol

import aiohttp

from roomstage.core.errors import OutputValidationError, UploadError
from roomstage.core.request_context import get_logger, get_request_id
from roomstage.services.output_validation_service import check_min_size, check_signature

logger = get_logger(__name__)

GENERATED_PREFIX = "generated"
BLOB_API_VERSION = "7"


class BlobStore(Protocol):
    async def store(self, data: bytes, path: str, content_type: str) -> str:
        """Store bytes at path and return the public URL"""
        ...


def sanitize_style(style: str) -> str:
    cleaned = re.sub(r"[^a-z0-9]+", "-", (style or "").lower()).strip("-")
    return cleaned or "design"


def design_filename(style: str, timestamp_ms: Optional[int] = None, token: Optional[str] = None) -> str:
    """design-<epoch ms>-<8 hex>-<sanitized style>.png, unique within the same millisecond"""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    if token is None:
        token = secrets.token_hex(4)
    return f"design-{timestamp_ms}-{token}-{sanitize_style(style)}.png"


class LocalBlobStore:
    def __init__(self, root: str, public_base_url: str):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    async def store(self, data: bytes, path: str, content_type: str) -> str:
        target = self.root / path
        target.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.get_event_loop().run_in_executor(None, target.write_bytes, data)
        return f"{self.public_base_url}/{path}"


class VercelBlobStore:
    def __init__(self, token: str, api_url: str = "https://blob.vercel-storage.com", timeout_seconds: float = 30.0):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    async def store(self, data: bytes, path: str, content_type: str) -> str:
        headers = {
            "authorization": f"Bearer {self.token}",
            "x-api-version": BLOB_API_VERSION,
            "x-content-type": content_type,
        }
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.put(f"{self.api_url}/{path}", data=data, headers=headers) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise UploadError(f"Blob API error {response.status}: {error_text[:200]}", get_request_id() or None)
                payload = await response.json()

        url = payload.get("url")
        if not url:
            raise UploadError("Blob API response has no url", get_request_id() or None)
        return url


class OutputPersister:
    """Validates and stores a generated image, returning its public URL"""

    def __init__(self, store: BlobStore):
        self.store = store

    async def persist(self, data: bytes, filename: str, min_bytes: int = 0) -> str:
        """
        Raises:
            UploadError: on any validation or storage failure
        """
        request_id = get_request_id() or None
        try:
            check_signature(data, request_id)
            check_min_size(data, min_bytes, request_id)
        except OutputValidationError as e:
            raise UploadError(f"Refusing to store invalid image: {e.message}", request_id) from e

        path = f"{GENERATED_PREFIX}/{filename}"
        try:
            url = await self.store.store(data, path, "image/png")
        except UploadError:
            raise
        except (OSError, aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise UploadError(f"Failed to store image: {e}", request_id) from e

        logger.info(f"Stored design at {path} ({len(data)} bytes)")
        return url
