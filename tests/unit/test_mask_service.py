"""
Unit tests for inpainting mask generation
"""
import io

import numpy as np
import pytest
from PIL import Image

from factories import encode_image
from roomstage.core.errors import ErrorCode, StagingError
from roomstage.services.mask_service import (
    MaskConvention,
    build_mask,
    compute_editable_region,
    compute_mask_stats,
    editable_map,
    save_debug_artifacts,
)

# Box-blur approximation of a radius-18 Gaussian spreads about 3 * 18 px
FEATHER_SPREAD = 60


@pytest.fixture
def square_room() -> bytes:
    return encode_image(Image.new("RGB", (1000, 1000), (128, 128, 128)))


class TestEditableRegion:
    """Tests for the margin rule"""

    @pytest.mark.unit
    def test_region_for_square_image(self):
        region = compute_editable_region(1000, 1000)

        assert (region.left, region.top, region.right, region.bottom) == (70, 420, 930, 920)
        assert region.area == 860 * 500

    @pytest.mark.unit
    def test_margins_use_floor(self):
        region = compute_editable_region(333, 211)

        # 333 * 0.07 = 23.31, 211 * 0.42 = 88.62, 211 * 0.08 = 16.88
        assert (region.left, region.top, region.right, region.bottom) == (23, 88, 310, 195)


class TestBuildMask:
    """Tests for build_mask() in both conventions"""

    @pytest.mark.unit
    def test_coverage_is_forty_three_percent(self, square_room):
        mask = build_mask(square_room)

        assert mask.coverage == pytest.approx(0.43)
        assert (mask.width, mask.height) == (1000, 1000)

    @pytest.mark.unit
    def test_alpha_convention_layout(self, square_room):
        """Test that ALPHA masks are black RGBA with transparent editable pixels"""
        mask = build_mask(square_room, invert=False)
        pixels = np.asarray(Image.open(io.BytesIO(mask.data)))

        assert mask.convention == MaskConvention.ALPHA
        assert pixels.shape == (1000, 1000, 4)
        assert pixels[..., :3].max() == 0
        assert pixels[670, 500, 3] == 0  # centre of the floor
        assert pixels[100, 500, 3] == 255  # ceiling

    @pytest.mark.unit
    def test_luminance_convention_layout(self, square_room):
        """Test that LUMINANCE masks are opaque with white editable pixels"""
        mask = build_mask(square_room, invert=True)
        img = Image.open(io.BytesIO(mask.data))
        pixels = np.asarray(img.convert("L"))

        assert mask.convention == MaskConvention.LUMINANCE
        assert img.mode == "RGB"
        assert pixels[670, 500] == 255
        assert pixels[100, 500] == 0

    @pytest.mark.unit
    def test_feathering_footprint(self, square_room):
        """Test that blur moves pixels from the hard rectangle into a gradient band"""
        mask = build_mask(square_room)
        stats = mask.stats
        inner = (860 - 2 * FEATHER_SPREAD) * (500 - 2 * FEATHER_SPREAD)

        assert inner <= stats.editable <= 430_000
        assert stats.feathered > 0
        assert stats.editable + stats.preserved + stats.feathered == stats.total == 1_000_000

    @pytest.mark.unit
    def test_no_feathering_gives_hard_edges(self, square_room):
        mask = build_mask(square_room, feather_radius=0)

        assert mask.stats.editable == 430_000
        assert mask.stats.feathered == 0

    @pytest.mark.unit
    def test_conventions_describe_same_region(self, square_room):
        """Test that A and B encodings threshold to (nearly) the same editable area"""
        alpha_mask = build_mask(square_room, invert=False)
        luminance_mask = build_mask(square_room, invert=True)

        a = editable_map(alpha_mask.data, MaskConvention.ALPHA)
        b = editable_map(luminance_mask.data, MaskConvention.LUMINANCE)

        assert np.count_nonzero(a != b) / a.size < 0.005

    @pytest.mark.unit
    def test_stats_match_recomputation(self, square_room):
        mask = build_mask(square_room, invert=True)

        assert compute_mask_stats(mask.data, MaskConvention.LUMINANCE) == mask.stats

    @pytest.mark.unit
    def test_mask_matches_source_dimensions(self):
        source = encode_image(Image.new("RGB", (640, 360), (0, 0, 0)))

        mask = build_mask(source, invert=True)

        assert Image.open(io.BytesIO(mask.data)).size == (640, 360)

    @pytest.mark.unit
    def test_undecodable_source_raises(self):
        with pytest.raises(StagingError) as exc_info:
            build_mask(b"nope")

        assert exc_info.value.code == ErrorCode.IMAGE_NORMALIZATION_FAILED


class TestDebugArtifacts:
    @pytest.mark.unit
    def test_writes_mask_and_composite(self, tmp_path, room_png):
        mask = build_mask(room_png, invert=True)

        composite = save_debug_artifacts(room_png, mask, str(tmp_path), "req_1")

        assert composite is not None
        assert (tmp_path / "req_1-mask.png").exists()
        assert (tmp_path / "req_1-composite.png").exists()

    @pytest.mark.unit
    def test_write_failure_is_not_fatal(self, tmp_path, room_png):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        mask = build_mask(room_png)

        assert save_debug_artifacts(room_png, mask, str(blocker / "sub"), "req_1") is None
