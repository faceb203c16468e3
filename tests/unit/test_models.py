"""Unit tests for data models."""

import json
import pytest
from pydantic import ValidationError

from imagex.core.errors import InputValidationError
from imagex.core.models import (
    AspectRatio,
    BackendRequest,
    GeneratedImage,
    GenerationOverride,
    GenerationRequest,
    ModelTier,
    OutputFormat,
    QualityMetadata,
    clamp_count,
    count_words,
)


class TestGenerationRequest:
    """Tests for GenerationRequest model."""

    def test_minimal_request(self):
        """Test creating request with only required fields."""
        request = GenerationRequest(prompt="A cat")

        assert request.prompt == "A cat"
        assert request.style == ""
        assert request.tier == ModelTier.FAST
        assert request.aspect_ratio == AspectRatio.SQUARE
        assert request.count == 1

    def test_full_request(self, sample_generation_request):
        """Test creating request with all fields."""
        assert sample_generation_request.aspect_ratio == AspectRatio.WIDE
        assert sample_generation_request.count == 2

    def test_empty_prompt_rejected(self):
        """Test that empty and whitespace prompts are rejected."""
        with pytest.raises(ValidationError, match="Please enter a prompt"):
            GenerationRequest(prompt="")

        with pytest.raises(ValidationError, match="Please enter a prompt"):
            GenerationRequest(prompt="   \n ")

    def test_prompt_word_limit_boundary(self):
        """Test that 700 words are accepted and 701 rejected."""
        GenerationRequest(prompt=" ".join(["word"] * 700))

        with pytest.raises(ValidationError, match="700 word limit"):
            GenerationRequest(prompt=" ".join(["word"] * 701))

    @pytest.mark.parametrize("count,expected", [(0, 1), (-3, 1), (1, 1), (4, 4), (9, 4)])
    def test_count_is_clamped(self, count, expected):
        """Test that count is clamped into [1, 4] rather than rejected."""
        assert GenerationRequest(prompt="test", count=count).count == expected

    def test_invalid_aspect_ratio(self):
        """Test that unknown aspect ratios are rejected."""
        with pytest.raises(ValidationError):
            GenerationRequest(prompt="test", aspect_ratio="7:5")


class TestHelpers:
    """Tests for count_words and clamp_count."""

    def test_count_words_ignores_extra_whitespace(self):
        assert count_words("  a  lighthouse\n\tat dawn ") == 4

    def test_count_words_empty(self):
        assert count_words("") == 0
        assert count_words("   ") == 0

    def test_clamp_count(self):
        assert clamp_count(2) == 2
        assert clamp_count(100) == 4
        assert clamp_count(0) == 1


class TestOutputFormat:
    """Tests for OutputFormat properties."""

    def test_mime_types(self):
        assert OutputFormat.PNG.mime_type == "image/png"
        assert OutputFormat.JPEG.mime_type == "image/jpeg"
        assert OutputFormat.WEBP.mime_type == "image/webp"

    def test_extensions(self):
        assert OutputFormat.PNG.extension == "png"
        assert OutputFormat.JPEG.extension == "jpg"
        assert OutputFormat.WEBP.extension == "webp"

    def test_only_png_is_lossless(self):
        assert OutputFormat.PNG.is_lossless
        assert not OutputFormat.JPEG.is_lossless
        assert not OutputFormat.WEBP.is_lossless


class TestGenerationOverride:
    """Tests for the structured JSON override."""

    def test_parse_full_override(self):
        """Test parsing an override with every field."""
        override = GenerationOverride.parse(json.dumps({
            "prompt": "A red fox",
            "style": "watercolor",
            "aspectRatio": "4:5",
            "count": 3
        }))

        assert override.prompt == "A red fox"
        assert override.style == "watercolor"
        assert override.aspect_ratio == AspectRatio.SOCIAL
        assert override.count == 3

    def test_parse_partial_override(self):
        """Test that missing and empty fields stay unset."""
        override = GenerationOverride.parse('{"prompt": "", "aspectRatio": "", "count": 0}')

        assert not override.prompt
        assert override.aspect_ratio is None
        assert override.count is None

    def test_count_clamped(self):
        assert GenerationOverride.parse('{"count": 12}').count == 4

    def test_malformed_json(self):
        with pytest.raises(InputValidationError, match="Invalid JSON format"):
            GenerationOverride.parse('{"prompt": "oops"')

    def test_non_object_json(self):
        with pytest.raises(InputValidationError, match="Expected an object"):
            GenerationOverride.parse('["prompt"]')

    def test_invalid_aspect_ratio(self):
        with pytest.raises(InputValidationError, match="Invalid override"):
            GenerationOverride.parse('{"aspectRatio": "2:1"}')

    def test_round_trip_from_fields(self):
        """Test that form fields render as JSON with the editor's key names."""
        override = GenerationOverride.from_fields("A cat", "cinematic", AspectRatio.WIDE, 2)
        data = json.loads(override.to_json())

        assert data == {
            "prompt": "A cat",
            "style": "cinematic",
            "aspectRatio": "16:9",
            "count": 2
        }


class TestRecords:
    """Tests for BackendRequest, QualityMetadata and GeneratedImage."""

    def test_backend_request_defaults(self):
        request = BackendRequest(
            tier=ModelTier.FAST,
            prompt="compiled",
            aspect_ratio=AspectRatio.SQUARE,
            seed=7
        )
        assert request.image_size is None

    def test_generated_image_is_immutable(self, sample_generated_image):
        with pytest.raises(ValidationError):
            sample_generated_image.prompt = "changed"

    def test_generated_image_with_metadata(self, sample_data_uri):
        metadata = QualityMetadata(
            width=1024,
            height=1024,
            size_bytes=2048,
            passed_quality_check=True,
            check_reason="Passed Quality Check"
        )
        image = GeneratedImage(id="a", url=sample_data_uri, prompt="p", metadata=metadata)

        assert image.metadata.passed_quality_check
        assert image.timestamp is not None


class TestNonNumericCount:
    """Tests for counts that cannot be turned into an integer."""

    @pytest.mark.parametrize("count", [[2], {"n": 2}, float("inf"), float("nan")])
    def test_clamp_count_raises_value_error(self, count):
        with pytest.raises(ValueError, match="Image count must be a number|NaN"):
            clamp_count(count)

    @pytest.mark.parametrize("text", ['{"count": [2]}', '{"count": {"n": 2}}', '{"count": 1e400}'])
    def test_override_rejects_count(self, text):
        with pytest.raises(InputValidationError, match="Invalid override"):
            GenerationOverride.parse(text)

    def test_request_rejects_list_count(self):
        with pytest.raises(ValidationError, match="Image count must be a number"):
            GenerationRequest(prompt="test", count=[2])
