"""
Mock renderer for development without provider keys.

Produces a visibly different image (warm tint over the editable floor area)
so the rest of the pipeline, including no-op detection and persistence, runs
unchanged.
"""
import asyncio
import io
import time

from PIL import Image, PngImagePlugin

from roomstage.services.mask_service import build_mask

PROVIDER_NAME = "mock"
TINT_COLOR = (255, 176, 96)
TINT_OPACITY = 0.35


class MockRenderer:
    name = PROVIDER_NAME

    async def render(self, image_bytes: bytes) -> bytes:
        return await asyncio.to_thread(self._render, image_bytes)

    def _render(self, image_bytes: bytes) -> bytes:
        mask = build_mask(image_bytes, invert=True)

        with Image.open(io.BytesIO(image_bytes)) as source:
            base = source.convert("RGB")
        tint = Image.new("RGB", base.size, TINT_COLOR)
        tinted = Image.blend(base, tint, TINT_OPACITY)

        with Image.open(io.BytesIO(mask.data)) as mask_image:
            staged = Image.composite(tinted, base, mask_image.convert("L"))

        # Unique text chunk: output bytes never equal the input
        info = PngImagePlugin.PngInfo()
        info.add_text("roomstage", f"mock-{time.time_ns()}")

        buffer = io.BytesIO()
        staged.save(buffer, format="PNG", pnginfo=info)
        return buffer.getvalue()
