"""
OpenAI Images Edits client (fallback image provider).

The edits endpoint only produces square outputs (256, 512 or 1024), so the
input aspect ratio is not preserved on this path. It expects an RGBA image
and an alpha-convention mask of the same size.
"""
import asyncio
import base64
import io
from typing import Optional

import aiohttp
from PIL import Image

from roomstage.core.errors import ProviderError
from roomstage.core.request_context import get_logger, get_request_id

logger = get_logger(__name__)

PROVIDER_NAME = "openai"


def ensure_rgba_png(image_bytes: bytes) -> bytes:
    """The edits endpoint rejects images without an alpha channel"""
    with Image.open(io.BytesIO(image_bytes)) as img:
        if img.mode == "RGBA" and img.format == "PNG":
            return image_bytes
        buffer = io.BytesIO()
        img.convert("RGBA").save(buffer, format="PNG")
        return buffer.getvalue()


class OpenAIEditClient:
    """Client for POST /v1/images/edits"""

    name = PROVIDER_NAME

    def __init__(
        self,
        api_key: str,
        endpoint: str = "https://api.openai.com/v1/images/edits",
        size: str = "1024x1024",
        timeout_seconds: float = 60.0,
    ):
        self.api_key = api_key
        self.endpoint = endpoint
        self.size = size
        self.timeout_seconds = timeout_seconds

    async def edit(self, image_bytes: bytes, mask_bytes: bytes, prompt: str) -> bytes:
        """
        Inpaint the transparent region of the mask.

        Returns:
            Image bytes; URL results are downloaded, base64 results decoded

        Raises:
            ProviderError: on HTTP/transport errors or an empty result
        """
        request_id = get_request_id() or None

        try:
            rgba_image = await asyncio.to_thread(ensure_rgba_png, image_bytes)
        except (OSError, ValueError) as e:
            raise ProviderError(PROVIDER_NAME, f"Cannot prepare image for edit: {e}", request_id) from e

        form_data = aiohttp.FormData()
        form_data.add_field("image", rgba_image, filename="room.png", content_type="image/png")
        form_data.add_field("mask", mask_bytes, filename="mask.png", content_type="image/png")
        form_data.add_field("prompt", prompt)
        form_data.add_field("n", "1")
        form_data.add_field("size", self.size)

        headers = {"Authorization": f"Bearer {self.api_key}"}
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        logger.info(
            f"OpenAI images.edits request: image_size={len(rgba_image)} mask_size={len(mask_bytes)} "
            f"prompt_length={len(prompt)}"
        )

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.endpoint, data=form_data, headers=headers) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise ProviderError(
                            PROVIDER_NAME,
                            f"OpenAI API error {response.status}: {error_text[:200]}",
                            request_id,
                        )
                    payload = await response.json()

                output = await self._resolve_output(session, payload, request_id)
        except aiohttp.ClientError as e:
            raise ProviderError(PROVIDER_NAME, f"OpenAI request failed: {e}", request_id) from e

        logger.info(f"OpenAI edit succeeded ({len(output)} bytes)")
        return output

    async def _resolve_output(self, session: aiohttp.ClientSession, payload: dict, request_id: Optional[str]) -> bytes:
        data = payload.get("data") or []
        if not data:
            raise ProviderError(PROVIDER_NAME, "OpenAI returned no images", request_id)

        first = data[0]
        if first.get("b64_json"):
            return base64.b64decode(first["b64_json"])

        url = first.get("url")
        if not url:
            raise ProviderError(PROVIDER_NAME, "OpenAI result has neither url nor b64_json", request_id)

        async with session.get(url) as response:
            if response.status != 200:
                raise ProviderError(PROVIDER_NAME, f"Failed to download OpenAI result: {response.status}", request_id)
            return await response.read()
