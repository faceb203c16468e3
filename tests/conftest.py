"""Shared test fixtures and configuration."""

import pytest
import os
import io
import json
import random
from datetime import datetime
from unittest.mock import AsyncMock, Mock
from PIL import Image, UnidentifiedImageError

from imagex.core.models import GenerationRequest, GeneratedImage, ModelTier, AspectRatio
from imagex.utils.image_utils import to_data_uri


def make_data_uri(width: int, height: int, color: str = 'red', format: str = 'PNG') -> str:
    """Build a data URI holding a solid-color image of the given size."""
    image = Image.new('RGB', (width, height), color=color)
    buffer = io.BytesIO()
    image.save(buffer, format=format)
    return to_data_uri(buffer.getvalue(), f"image/{format.lower()}")


def read_png_metadata(image_bytes: bytes):
    """Read the metadata embedded in an exported PNG, or None if there is none."""
    try:
        image = Image.open(io.BytesIO(image_bytes))
    except (UnidentifiedImageError, OSError):
        return None

    text = getattr(image, 'text', None)
    if not text:
        return None
    if 'metadata_json' in text:
        return json.loads(text['metadata_json'])
    return dict(text)


@pytest.fixture
def sample_prompt():
    """Return a sample prompt for testing."""
    return "A lighthouse on a rocky coast at dawn"


@pytest.fixture
def sample_generation_request(sample_prompt):
    """Return a sample GenerationRequest for testing."""
    return GenerationRequest(
        prompt=sample_prompt,
        style="movie scene, cinematic lighting",
        tier=ModelTier.FAST,
        aspect_ratio=AspectRatio.WIDE,
        count=2
    )


@pytest.fixture
def sample_fake_image():
    """Return a fake PIL Image for testing."""
    return Image.new('RGB', (1024, 1024), color='red')


@pytest.fixture
def data_uri_factory():
    """Return a helper building solid-color image data URIs."""
    return make_data_uri


@pytest.fixture
def png_metadata_reader():
    """Return a helper reading metadata back out of exported PNG bytes."""
    return read_png_metadata


@pytest.fixture
def sample_data_uri():
    """Return a 1024x1024 PNG as a data URI."""
    return make_data_uri(1024, 1024)


@pytest.fixture
def sample_generated_image(sample_data_uri, sample_prompt):
    """Return a sample GeneratedImage for testing."""
    return GeneratedImage(
        id="image-1",
        url=sample_data_uri,
        prompt=sample_prompt,
        timestamp=datetime(2024, 1, 1, 12, 0, 0)
    )


@pytest.fixture
def mock_backend(sample_data_uri):
    """Return a mocked backend that always succeeds."""
    backend = Mock()
    backend.name = "Mock"
    backend.api_key = "test_key"
    backend.generate_image = AsyncMock(return_value=sample_data_uri)
    return backend


@pytest.fixture
def no_sleep():
    """Return an awaitable sleep replacement that returns immediately."""
    return AsyncMock(return_value=None)


@pytest.fixture
def seeded_rng():
    """Return a deterministic random source."""
    return random.Random(1234)


@pytest.fixture
def test_api_key():
    """Return a test API key."""
    return "test_gemini_key_12345"


# Skip integration tests unless explicitly requested
def pytest_collection_modifyitems(config, items):
    """Automatically skip integration tests unless RUN_INTEGRATION_TESTS is set."""
    skip_integration = pytest.mark.skip(reason="Integration tests disabled (set RUN_INTEGRATION_TESTS=true to enable)")

    for item in items:
        if "integration" in item.keywords:
            if not os.getenv("RUN_INTEGRATION_TESTS", "").lower() == "true":
                item.add_marker(skip_integration)
