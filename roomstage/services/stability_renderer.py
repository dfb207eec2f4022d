"""
Stability AI inpainting renderer (primary image provider)

Docs: https://platform.stability.ai/docs/api-reference#tag/Edit/paths/~1v2beta~1stable-image~1edit~1inpaint/post
"""
import json
from typing import Optional

import aiohttp

from roomstage.core.errors import ProviderError
from roomstage.core.request_context import get_logger, get_request_id

logger = get_logger(__name__)

PROVIDER_NAME = "stability"
MIN_RESPONSE_BYTES = 10 * 1024
OUTPUT_SIZE = "1024"


class StabilityRenderer:
    """Client for the Stability AI inpaint endpoint"""

    name = PROVIDER_NAME

    def __init__(
        self,
        api_key: str,
        endpoint: str = "https://api.stability.ai/v2beta/stable-image/edit/inpaint",
        guidance_scale: float = 7.5,
        timeout_seconds: float = 60.0,
    ):
        self.api_key = api_key
        self.endpoint = endpoint
        self.guidance_scale = guidance_scale
        self.timeout_seconds = timeout_seconds

    def _build_form(self, image_bytes: bytes, prompt: str, strength: float, mask_bytes: Optional[bytes]):
        form_data = aiohttp.FormData()
        form_data.add_field("image", image_bytes, filename="room.png", content_type="image/png")
        form_data.add_field("prompt", prompt)
        form_data.add_field("strength", str(strength))
        if self.guidance_scale > 0:
            form_data.add_field("guidance_scale", str(self.guidance_scale))
        if mask_bytes:
            form_data.add_field("mask", mask_bytes, filename="mask.png", content_type="image/png")
        form_data.add_field("output_format", "png")
        form_data.add_field("mode", "inpaint")
        form_data.add_field("width", OUTPUT_SIZE)
        form_data.add_field("height", OUTPUT_SIZE)
        return form_data

    async def render(
        self,
        image_bytes: bytes,
        prompt: str,
        strength: float,
        mask_bytes: Optional[bytes] = None,
    ) -> bytes:
        """
        Render one pass. Without a mask the whole image is re-rendered at the
        given strength.

        Returns:
            Raw image bytes as returned by the provider

        Raises:
            ProviderError: on HTTP errors, transport errors or a tiny response
        """
        request_id = get_request_id() or None
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "image/*",
        }

        logger.info(
            f"Stability request: strength={strength} guidance_scale={self.guidance_scale} "
            f"has_mask={bool(mask_bytes)} image_size={len(image_bytes)} prompt_length={len(prompt)}"
        )

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self.endpoint,
                    data=self._build_form(image_bytes, prompt, strength, mask_bytes),
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                ) as response:
                    if response.status != 200:
                        error_text = await response.text()
                        raise ProviderError(
                            PROVIDER_NAME,
                            f"Stability AI API error {response.status}: {_error_detail(error_text)}",
                            request_id,
                        )
                    output = await response.read()
        except aiohttp.ClientError as e:
            raise ProviderError(PROVIDER_NAME, f"Stability AI request failed: {e}", request_id) from e

        if len(output) < MIN_RESPONSE_BYTES:
            raise ProviderError(
                PROVIDER_NAME, f"Stability AI returned image too small: {len(output)} bytes", request_id
            )

        logger.info(f"Stability render succeeded ({len(output)} bytes)")
        return output


def _error_detail(error_text: str) -> str:
    try:
        payload = json.loads(error_text)
    except ValueError:
        return error_text[:200]
    if isinstance(payload, dict):
        return str(payload.get("message") or payload.get("errors") or payload.get("error") or error_text[:200])
    return error_text[:200]
