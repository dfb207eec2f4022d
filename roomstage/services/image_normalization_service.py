"""
Image normalization for provider uploads.

Room photos arrive in whatever shape the phone produced them: rotated through
EXIF, tens of megapixels, palette or CMYK encoded. Providers want a modest,
upright PNG, so every photo passes through normalize_image() first:

1. Decode and apply EXIF orientation (dimensions are read after this)
2. Downscale into the pixel budget, preserving aspect ratio
3. Force both dimensions even
4. Encode PNG and shrink until under the byte budget (bounded attempts)
"""
import io
import math
from dataclasses import dataclass
from typing import Tuple

from PIL import Image, ImageOps

from roomstage.core.errors import ErrorCode, StagingError
from roomstage.core.request_context import get_logger

logger = get_logger(__name__)

MAX_PIXELS = 9_437_184  # 3072 x 3072
MAX_BYTES = 4 * 1024 * 1024
SHRINK_FACTOR = 0.85
MAX_SHRINK_ATTEMPTS = 3
PNG_COMPRESSION = 6
PNG_COMPRESSION_SHRINK = 9


@dataclass
class ImageBuffer:
    """Encoded image plus its dimensions"""

    data: bytes
    width: int
    height: int
    format: str = "PNG"

    @classmethod
    def from_bytes(cls, data: bytes) -> "ImageBuffer":
        """Read dimensions and format from encoded bytes"""
        try:
            with Image.open(io.BytesIO(data)) as img:
                return cls(data=data, width=img.width, height=img.height, format=img.format or "PNG")
        except (OSError, ValueError) as e:
            raise StagingError(ErrorCode.IMAGE_NORMALIZATION_FAILED, f"Cannot decode image: {e}")

    @property
    def pixels(self) -> int:
        return self.width * self.height


def _even(value: float) -> int:
    value = int(value)
    return max(2, value - value % 2)


def compute_target_size(width: int, height: int) -> Tuple[int, int]:
    """Target dimensions: within MAX_PIXELS, aspect preserved, both even"""
    pixels = width * height
    if pixels > MAX_PIXELS:
        scale = math.sqrt(MAX_PIXELS / pixels)
        width = int(width * scale)
        height = int(height * scale)
    return _even(width), _even(height)


def _to_encodable_mode(img: Image.Image) -> Image.Image:
    """Convert palette, CMYK, grayscale and 16-bit rasters to RGB or RGBA"""
    if img.mode in ("RGB", "RGBA"):
        return img

    has_alpha = img.mode in ("LA", "PA", "RGBa", "La") or "transparency" in img.info
    if img.mode.startswith("I;16") or img.mode == "I":
        img = img.convert("I").point(lambda v: v * (1 / 256)).convert("L")

    return img.convert("RGBA" if has_alpha else "RGB")


def _encode_png(img: Image.Image, size: Tuple[int, int], compress_level: int) -> bytes:
    resized = img if img.size == size else img.resize(size, Image.Resampling.LANCZOS)
    buffer = io.BytesIO()
    resized.save(buffer, format="PNG", compress_level=compress_level)
    return buffer.getvalue()


def normalize_image(raw: bytes) -> ImageBuffer:
    """
    Normalize an arbitrary room photo into a provider-ready PNG.

    Args:
        raw: Encoded image bytes (JPEG, PNG, WebP, ...)

    Returns:
        ImageBuffer holding PNG bytes with width*height <= MAX_PIXELS and both
        dimensions even. The byte budget is best effort: after
        MAX_SHRINK_ATTEMPTS the last encoding is returned with a warning.

    Raises:
        StagingError(IMAGE_NORMALIZATION_FAILED) when the input cannot be decoded
    """
    try:
        source = Image.open(io.BytesIO(raw))
        source.load()
        oriented = ImageOps.exif_transpose(source)
        oriented = _to_encodable_mode(oriented)
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        logger.error(f"Image normalization failed: {e}")
        raise StagingError(ErrorCode.IMAGE_NORMALIZATION_FAILED, f"Cannot decode room image: {e}")

    original_size = oriented.size
    width, height = compute_target_size(*original_size)
    data = _encode_png(oriented, (width, height), PNG_COMPRESSION)

    attempts = 0
    while len(data) >= MAX_BYTES and attempts < MAX_SHRINK_ATTEMPTS:
        attempts += 1
        width = _even(width * SHRINK_FACTOR)
        height = _even(height * SHRINK_FACTOR)
        logger.info(f"PNG is {len(data)} bytes, shrinking to {width}x{height} (attempt {attempts}/{MAX_SHRINK_ATTEMPTS})")
        data = _encode_png(oriented, (width, height), PNG_COMPRESSION_SHRINK)

    if len(data) >= MAX_BYTES:
        logger.warning(f"Normalized PNG still {len(data)} bytes after {attempts} shrink attempts, continuing")

    result = ImageBuffer.from_bytes(data)
    logger.info(
        f"Normalized image {original_size[0]}x{original_size[1]} -> {result.width}x{result.height} "
        f"({len(data)} bytes)"
    )
    return result
