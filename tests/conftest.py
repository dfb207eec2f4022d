"""
Shared pytest fixtures and configuration for all tests
"""
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add the project root so roomstage imports without installation
sys.path.insert(0, str(Path(__file__).parent.parent))

from factories import make_noise_png, make_room_png, make_settings  # noqa: E402

from roomstage.core.config import ProviderCredentials  # noqa: E402
from roomstage.services.image_normalization_service import ImageBuffer  # noqa: E402


@pytest.fixture
def settings():
    """Default test settings (two-pass on, no keys)"""
    return make_settings()


@pytest.fixture
def room_png() -> bytes:
    return make_room_png()


@pytest.fixture
def room_image(room_png) -> ImageBuffer:
    """Normalized-looking input for the orchestrator"""
    return ImageBuffer.from_bytes(room_png)


@pytest.fixture
def noise_png() -> bytes:
    return make_noise_png(seed=1)


@pytest.fixture
def other_noise_png() -> bytes:
    return make_noise_png(seed=2)


@pytest.fixture
def stability_credentials():
    return ProviderCredentials(has_stability=True, has_gemini=False, has_openai=False)


@pytest.fixture
def mock_renderer_client():
    """Stand-in for StabilityRenderer"""
    mock = MagicMock()
    mock.name = "stability"
    mock.render = AsyncMock()
    return mock


@pytest.fixture
def mock_edit_client():
    """Stand-in for OpenAIEditClient"""
    mock = MagicMock()
    mock.name = "openai"
    mock.edit = AsyncMock()
    return mock


@pytest.fixture
def mock_planner():
    """Stand-in for StagingPlanner"""
    mock = MagicMock()
    mock.plan = AsyncMock()
    return mock
