"""
Inpainting mask generation.

The editable region is a fixed rectangle over the floor area of a typical
room photo: the top 42% (walls, ceiling, windows) and the bottom 8% are
preserved, as are 7% on each side. The boundary is feathered with a Gaussian
blur so inpainted furniture blends into the untouched room.

Two encodings of the same logical mask exist, chosen per call:
- ALPHA: RGBA, black colour channels, alpha 255 = preserved, alpha 0 = editable
- LUMINANCE: opaque, black = preserved, white = editable
"""
import io
import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np
from PIL import Image, ImageFilter

from roomstage.core.errors import ErrorCode, StagingError
from roomstage.core.request_context import get_logger

logger = get_logger(__name__)

TOP_MARGIN = 0.42
BOTTOM_MARGIN = 0.08
SIDE_MARGIN = 0.07
FEATHER_RADIUS = 18
TARGET_COVERAGE = (0.25, 0.40)


class MaskConvention(str, Enum):
    """How 'editable' is encoded in the mask raster"""

    ALPHA = "alpha"  # transparent = editable
    LUMINANCE = "luminance"  # white = editable


@dataclass
class EditableRegion:
    """Editable rectangle in pixel coordinates (right/bottom exclusive)"""

    left: int
    top: int
    right: int
    bottom: int

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top

    @property
    def area(self) -> int:
        return max(0, self.width) * max(0, self.height)


@dataclass
class MaskStats:
    """Per-pixel coverage diagnostics"""

    editable: int
    preserved: int
    feathered: int
    total: int

    @property
    def editable_ratio(self) -> float:
        return self.editable / self.total if self.total else 0.0


@dataclass
class MaskResult:
    data: bytes
    width: int
    height: int
    convention: MaskConvention
    region: EditableRegion
    stats: MaskStats

    @property
    def coverage(self) -> float:
        """Share of the image inside the (unfeathered) editable rectangle"""
        total = self.width * self.height
        return self.region.area / total if total else 0.0


def compute_editable_region(width: int, height: int) -> EditableRegion:
    left = int(width * SIDE_MARGIN)
    top = int(height * TOP_MARGIN)
    right = width - int(width * SIDE_MARGIN)
    bottom = height - int(height * BOTTOM_MARGIN)
    return EditableRegion(left=left, top=top, right=right, bottom=bottom)


def _editable_levels(mask_image: Image.Image, convention: MaskConvention) -> np.ndarray:
    """Map a mask raster to 0 (preserved) .. 255 (editable)"""
    if convention == MaskConvention.ALPHA:
        alpha = np.asarray(mask_image.convert("RGBA").getchannel("A"), dtype=np.uint8)
        return 255 - alpha
    return np.asarray(mask_image.convert("L"), dtype=np.uint8)


def compute_mask_stats(mask_bytes: bytes, convention: MaskConvention) -> MaskStats:
    """Count fully-editable, fully-preserved and feathered pixels"""
    with Image.open(io.BytesIO(mask_bytes)) as mask_image:
        levels = _editable_levels(mask_image, convention)

    editable = int(np.count_nonzero(levels == 255))
    preserved = int(np.count_nonzero(levels == 0))
    total = int(levels.size)
    return MaskStats(editable=editable, preserved=preserved, feathered=total - editable - preserved, total=total)


def editable_map(mask_bytes: bytes, convention: MaskConvention, threshold: int = 127) -> np.ndarray:
    """Boolean editable map, for comparing masks across conventions"""
    with Image.open(io.BytesIO(mask_bytes)) as mask_image:
        return _editable_levels(mask_image, convention) > threshold


def build_mask(image_bytes: bytes, invert: bool = False, feather_radius: int = FEATHER_RADIUS) -> MaskResult:
    """
    Build the feathered inpainting mask for an image.

    Args:
        image_bytes: Encoded source image; only its dimensions are used
        invert: False for the ALPHA convention, True for LUMINANCE
        feather_radius: Gaussian blur radius in pixels (0 disables feathering)
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as source:
            width, height = source.size
    except (OSError, ValueError) as e:
        raise StagingError(ErrorCode.IMAGE_NORMALIZATION_FAILED, f"Cannot read image for masking: {e}")

    region = compute_editable_region(width, height)
    convention = MaskConvention.LUMINANCE if invert else MaskConvention.ALPHA

    # 255 = editable
    editable = np.zeros((height, width), dtype=np.uint8)
    editable[region.top : region.bottom, region.left : region.right] = 255
    raster = Image.fromarray(editable)

    if feather_radius > 0:
        raster = raster.filter(ImageFilter.GaussianBlur(radius=feather_radius))

    if convention == MaskConvention.ALPHA:
        alpha = Image.fromarray(255 - np.asarray(raster, dtype=np.uint8))
        mask_image = Image.new("RGBA", (width, height), (0, 0, 0, 255))
        mask_image.putalpha(alpha)
    else:
        mask_image = raster.convert("RGB")

    buffer = io.BytesIO()
    mask_image.save(buffer, format="PNG")
    data = buffer.getvalue()

    stats = compute_mask_stats(data, convention)
    result = MaskResult(data=data, width=width, height=height, convention=convention, region=region, stats=stats)

    low, high = TARGET_COVERAGE
    logger.info(
        f"Mask {width}x{height} ({convention.value}): region=({region.left},{region.top})-({region.right},{region.bottom}) "
        f"coverage={result.coverage:.1%} within_target={low <= result.coverage <= high} "
        f"editable={stats.editable} preserved={stats.preserved} feathered={stats.feathered}"
    )
    return result


def save_debug_artifacts(image_bytes: bytes, mask: MaskResult, directory: str, prefix: str) -> Optional[str]:
    """
    Write the mask and a mask-over-image composite for inspection.

    Returns the composite path, or None when writing failed.
    """
    try:
        os.makedirs(directory, exist_ok=True)
        mask_path = os.path.join(directory, f"{prefix}-mask.png")
        with open(mask_path, "wb") as f:
            f.write(mask.data)

        with Image.open(io.BytesIO(image_bytes)) as source:
            base = source.convert("RGBA")
        overlay = Image.new("RGBA", base.size, (255, 0, 0, 0))
        levels = Image.fromarray((editable_map(mask.data, mask.convention) * 110).astype(np.uint8))
        overlay.putalpha(levels)
        composite_path = os.path.join(directory, f"{prefix}-composite.png")
        Image.alpha_composite(base, overlay).save(composite_path)

        logger.info(f"Saved mask debug artifacts: {mask_path}, {composite_path}")
        return composite_path
    except OSError as e:
        logger.warning(f"Could not save mask debug artifacts: {e}")
        return None
