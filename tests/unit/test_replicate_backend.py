"""Unit tests for Replicate backend."""

import pytest
import requests
from unittest.mock import Mock, patch
from replicate.exceptions import ModelError, ReplicateError

from imagex.backends.replicate import ReplicateBackend
from imagex.core.errors import AccessDenied, GenerationError, SafetyBlocked, TransientGenerationError
from imagex.core.models import AspectRatio, BackendRequest, ModelTier
from imagex.utils.image_utils import parse_data_uri


@pytest.fixture
def backend_request():
    return BackendRequest(
        tier=ModelTier.FAST,
        prompt="A red fox, realistic environment",
        aspect_ratio=AspectRatio.LANDSCAPE,
        seed=42
    )


def image_response(content=b"fake_png_bytes", content_type="image/png"):
    response = Mock()
    response.content = content
    response.headers = {"Content-Type": content_type}
    response.raise_for_status = Mock()
    return response


class TestReplicateBackend:
    """Tests for ReplicateBackend class."""

    @patch('imagex.backends.replicate.replicate.Client')
    def test_init_with_valid_key(self, mock_client_class):
        """Test initializing backend with valid API key."""
        backend = ReplicateBackend(api_key="test_key")

        assert backend.api_key == "test_key"
        assert backend.timeout == 30
        assert backend.model_for(ModelTier.FAST) == "black-forest-labs/flux-schnell"
        mock_client_class.assert_called_once_with(api_token="test_key")

    def test_init_without_key(self):
        """Test that initializing without API key raises ValueError."""
        with pytest.raises(ValueError, match="Replicate API key is required"):
            ReplicateBackend(api_key="")

    @patch('imagex.backends.replicate.replicate.Client')
    def test_custom_models(self, mock_client_class):
        backend = ReplicateBackend(
            api_key="test_key",
            models={ModelTier.HIGH_QUALITY: "owner/custom-model"}
        )

        assert backend.model_for(ModelTier.HIGH_QUALITY) == "owner/custom-model"
        assert backend.model_for(ModelTier.FAST) == "black-forest-labs/flux-schnell"

    @patch('imagex.backends.replicate.replicate.Client')
    def test_name_and_repr(self, mock_client_class):
        backend = ReplicateBackend(api_key="test_key")

        assert backend.name == "Replicate"
        assert repr(backend) == "ReplicateBackend(name='Replicate')"

    @patch('imagex.backends.replicate.replicate.Client')
    def test_build_input(self, mock_client_class, backend_request):
        backend = ReplicateBackend(api_key="test_key")

        assert backend.build_input(backend_request) == {
            "prompt": "A red fox, realistic environment",
            "aspect_ratio": "4:3",
            "seed": 42,
            "output_format": "png",
        }

    @pytest.mark.asyncio
    @patch('imagex.backends.replicate.requests.get')
    @patch('imagex.backends.replicate.replicate.Client')
    async def test_generate_image_success(self, mock_client_class, mock_get, backend_request):
        """Test successful image generation."""
        mock_client = Mock()
        mock_client.run.return_value = ["https://replicate.delivery/image.png"]
        mock_client_class.return_value = mock_client
        mock_get.return_value = image_response(content_type="image/webp; charset=binary")

        backend = ReplicateBackend(api_key="test_key")
        result = await backend.generate_image(backend_request)

        mime_type, data = parse_data_uri(result)
        assert mime_type == "image/webp"
        assert data == b"fake_png_bytes"
        mock_client.run.assert_called_once()
        assert mock_client.run.call_args.args[0] == "black-forest-labs/flux-schnell"
        mock_get.assert_called_once_with("https://replicate.delivery/image.png", timeout=30)

    @pytest.mark.asyncio
    @patch('imagex.backends.replicate.requests.get')
    @patch('imagex.backends.replicate.replicate.Client')
    async def test_single_url_output(self, mock_client_class, mock_get, backend_request):
        mock_client = Mock()
        mock_client.run.return_value = "https://replicate.delivery/image.png"
        mock_client_class.return_value = mock_client
        mock_get.return_value = image_response()

        result = await ReplicateBackend(api_key="test_key").generate_image(backend_request)

        assert result.startswith("data:image/png;base64,")

    @pytest.mark.asyncio
    @patch('imagex.backends.replicate.replicate.Client')
    async def test_empty_output(self, mock_client_class, backend_request):
        mock_client = Mock()
        mock_client.run.return_value = []
        mock_client_class.return_value = mock_client

        with pytest.raises(GenerationError, match="No image data found"):
            await ReplicateBackend(api_key="test_key").generate_image(backend_request)

    @pytest.mark.parametrize("message,error_class", [
        ("authentication failed", AccessDenied),
        ("Unauthorized", AccessDenied),
        ("rate limit exceeded", TransientGenerationError),
        ("some error", GenerationError),
    ])
    @pytest.mark.asyncio
    @patch('imagex.backends.replicate.replicate.Client')
    async def test_api_error_mapping(self, mock_client_class, message, error_class, backend_request):
        """Test that Replicate errors map onto the generation error taxonomy."""
        mock_client = Mock()
        mock_client.run.side_effect = ReplicateError(message)
        mock_client_class.return_value = mock_client

        with pytest.raises(error_class):
            await ReplicateBackend(api_key="test_key").generate_image(backend_request)

    @pytest.mark.asyncio
    @patch('imagex.backends.replicate.replicate.Client')
    async def test_nsfw_prediction_is_safety_blocked(self, mock_client_class, backend_request):
        """Test that a prediction failing on the NSFW filter is a safety block."""
        prediction = Mock(error="NSFW content detected. Try running it again, or try a different prompt.")
        mock_client = Mock()
        mock_client.run.side_effect = ModelError(prediction)
        mock_client_class.return_value = mock_client

        with pytest.raises(SafetyBlocked):
            await ReplicateBackend(api_key="test_key").generate_image(backend_request)

    @pytest.mark.asyncio
    @patch('imagex.backends.replicate.replicate.Client')
    async def test_failed_prediction(self, mock_client_class, backend_request):
        prediction = Mock(error="CUDA out of memory")
        mock_client = Mock()
        mock_client.run.side_effect = ModelError(prediction)
        mock_client_class.return_value = mock_client

        with pytest.raises(GenerationError, match="Replicate prediction failed") as exc_info:
            await ReplicateBackend(api_key="test_key").generate_image(backend_request)

        assert not isinstance(exc_info.value, SafetyBlocked)

    @pytest.mark.asyncio
    @patch('imagex.backends.replicate.requests.get')
    @patch('imagex.backends.replicate.replicate.Client')
    async def test_download_failure(self, mock_client_class, mock_get, backend_request):
        mock_client = Mock()
        mock_client.run.return_value = ["https://replicate.delivery/image.png"]
        mock_client_class.return_value = mock_client
        mock_get.side_effect = requests.exceptions.Timeout("timed out")

        with pytest.raises(GenerationError, match="Failed to download generated image"):
            await ReplicateBackend(api_key="test_key").generate_image(backend_request)

    @patch('imagex.backends.replicate.replicate.Client')
    def test_set_api_key_recreates_client(self, mock_client_class):
        backend = ReplicateBackend(api_key="test_key")

        backend.set_api_key("new_key")

        assert backend.api_key == "new_key"
        mock_client_class.assert_called_with(api_token="new_key")
