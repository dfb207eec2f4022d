"""
Room photo loading from the reference the client sent
"""
import asyncio
import base64
import binascii
from pathlib import Path
from typing import List, Optional

import aiohttp

from roomstage.core.errors import ErrorCode, StagingError
from roomstage.core.request_context import get_logger, get_request_id
from roomstage.core.retry import retry_with_backoff

logger = get_logger(__name__)


class ImageSource:
    """
    Resolves an image reference to bytes.

    Accepted references:
    - http(s) URLs (downloaded, transient failures retried once)
    - data:image/...;base64, URIs
    - local public paths under one of the configured prefixes
    """

    def __init__(
        self,
        public_dir: str = "./public",
        local_prefixes: Optional[List[str]] = None,
        timeout_seconds: float = 30.0,
    ):
        self.public_dir = Path(public_dir)
        self.local_prefixes = local_prefixes if local_prefixes is not None else ["/uploads/", "/images/"]
        self.timeout_seconds = timeout_seconds

    async def load(self, image_ref: Optional[str]) -> bytes:
        request_id = get_request_id() or None
        ref = (image_ref or "").strip()

        if not ref:
            raise StagingError(ErrorCode.MISSING_IMAGE, "Image URL is required", request_id)
        if ref.startswith("blob:"):
            # Browser object URLs only exist on the client
            raise StagingError(
                ErrorCode.MISSING_IMAGE,
                "Image must be uploaded before staging (blob: URLs are not accessible)",
                request_id,
            )

        if ref.startswith(("http://", "https://")):
            return await self._fetch(ref, request_id)
        if ref.startswith("data:"):
            return self._decode_data_uri(ref, request_id)
        if any(ref.startswith(prefix) for prefix in self.local_prefixes):
            return self._read_local(ref, request_id)

        raise StagingError(ErrorCode.IMAGE_LOAD_FAILED, f"Unsupported image reference: {ref[:50]}", request_id)

    async def _fetch(self, url: str, request_id: Optional[str]) -> bytes:
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        async def _download() -> bytes:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(url) as response:
                    if response.status != 200:
                        raise StagingError(
                            ErrorCode.IMAGE_LOAD_FAILED,
                            f"Failed to fetch image: HTTP {response.status}",
                            request_id,
                        )
                    return await response.read()

        try:
            data = await retry_with_backoff(_download, retry_on=(aiohttp.ClientError, asyncio.TimeoutError))
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise StagingError(ErrorCode.IMAGE_LOAD_FAILED, f"Failed to fetch image: {e}", request_id) from e

        logger.info(f"Fetched image from {url[:50]} ({len(data)} bytes)")
        return data

    def _decode_data_uri(self, ref: str, request_id: Optional[str]) -> bytes:
        header, _, payload = ref.partition(",")
        if not header.startswith("data:image/") or not header.endswith(";base64") or not payload:
            raise StagingError(ErrorCode.IMAGE_LOAD_FAILED, "Unsupported data URI", request_id)
        try:
            return base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise StagingError(ErrorCode.IMAGE_LOAD_FAILED, f"Invalid base64 image data: {e}", request_id) from e

    def _read_local(self, ref: str, request_id: Optional[str]) -> bytes:
        root = self.public_dir.resolve()
        path = (root / ref.lstrip("/")).resolve()
        if root not in path.parents:
            raise StagingError(ErrorCode.IMAGE_LOAD_FAILED, "Image path escapes the public directory", request_id)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise StagingError(ErrorCode.IMAGE_LOAD_FAILED, f"Failed to read local image {ref}: {e}", request_id) from e

        logger.info(f"Loaded local image {ref} ({len(data)} bytes)")
        return data
