"""
Unit tests for loading room photos from client references
"""
import base64

import pytest
from aiohttp import test_utils, web

from roomstage.core.errors import ErrorCode, StagingError
from roomstage.services.image_source_service import ImageSource


class TestRejectedReferences:
    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("ref", ["", "   ", None, "blob:http://localhost:3000/6d1c-4a"])
    async def test_missing_image(self, ref):
        with pytest.raises(StagingError) as exc_info:
            await ImageSource().load(ref)

        assert exc_info.value.code == ErrorCode.MISSING_IMAGE

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unsupported_scheme(self):
        with pytest.raises(StagingError) as exc_info:
            await ImageSource().load("ftp://example.com/room.png")

        assert exc_info.value.code == ErrorCode.IMAGE_LOAD_FAILED


class TestDataUri:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_decodes_base64_payload(self, room_png):
        ref = "data:image/png;base64," + base64.b64encode(room_png).decode()

        assert await ImageSource().load(ref) == room_png

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "ref",
        [
            "data:text/plain;base64,aGVsbG8=",
            "data:image/png,rawdata",
            "data:image/png;base64,",
            "data:image/png;base64,@@not base64@@",
        ],
    )
    async def test_bad_data_uri(self, ref):
        with pytest.raises(StagingError) as exc_info:
            await ImageSource().load(ref)

        assert exc_info.value.code == ErrorCode.IMAGE_LOAD_FAILED


class TestLocalPaths:
    """Tests for public-directory reads"""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_reads_upload(self, tmp_path, room_png):
        (tmp_path / "uploads").mkdir()
        (tmp_path / "uploads" / "room.png").write_bytes(room_png)

        data = await ImageSource(public_dir=str(tmp_path)).load("/uploads/room.png")

        assert data == room_png

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_path_traversal_rejected(self, tmp_path):
        with pytest.raises(StagingError) as exc_info:
            await ImageSource(public_dir=str(tmp_path)).load("/uploads/../../etc/passwd")

        assert exc_info.value.code == ErrorCode.IMAGE_LOAD_FAILED
        assert "escapes" in exc_info.value.message

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        with pytest.raises(StagingError) as exc_info:
            await ImageSource(public_dir=str(tmp_path)).load("/images/nope.png")

        assert exc_info.value.code == ErrorCode.IMAGE_LOAD_FAILED


class TestHttpFetch:
    """Tests for downloading remote images"""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_fetches_image(self, room_png):
        async def handler(request):
            return web.Response(body=room_png, content_type="image/png")

        app = web.Application()
        app.router.add_get("/room.png", handler)

        async with test_utils.TestServer(app) as server:
            data = await ImageSource().load(str(server.make_url("/room.png")))

        assert data == room_png

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_http_error_is_not_retried(self):
        hits = []

        async def handler(request):
            hits.append(request.path)
            return web.Response(status=404, text="not found")

        app = web.Application()
        app.router.add_get("/missing.png", handler)

        async with test_utils.TestServer(app) as server:
            with pytest.raises(StagingError) as exc_info:
                await ImageSource().load(str(server.make_url("/missing.png")))

        assert exc_info.value.code == ErrorCode.IMAGE_LOAD_FAILED
        assert "HTTP 404" in exc_info.value.message
        assert len(hits) == 1
