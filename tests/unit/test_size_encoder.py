"""Unit tests for target-size encoding."""

from unittest.mock import Mock

from imagex.core.models import OutputFormat
from imagex.utils.size_encoder import (
    MAX_QUALITY,
    MIN_QUALITY,
    SEARCH_ITERATIONS,
    encode_to_target_size,
)


def sized_encoder(size_at_quality):
    """Build a fake encoder whose output length depends on quality."""
    def encode(image, output_format, quality):
        return b"x" * size_at_quality(quality)
    return Mock(side_effect=encode)


class TestEncodeToTargetSize:
    """Tests for encode_to_target_size."""

    def test_full_quality_fits(self, sample_fake_image):
        """Test that one encode at full quality is enough when it fits."""
        encoder = sized_encoder(lambda q: 1000)

        result = encode_to_target_size(sample_fake_image, OutputFormat.JPEG, 2000, encoder)

        assert len(result) == 1000
        encoder.assert_called_once_with(sample_fake_image, OutputFormat.JPEG, MAX_QUALITY)

    def test_png_ignores_target(self, sample_fake_image):
        encoder = sized_encoder(lambda q: 5000)

        result = encode_to_target_size(sample_fake_image, OutputFormat.PNG, 10, encoder)

        assert len(result) == 5000
        assert encoder.call_count == 1

    def test_zero_target_disables_search(self, sample_fake_image):
        encoder = sized_encoder(lambda q: 5000)

        encode_to_target_size(sample_fake_image, OutputFormat.WEBP, 0, encoder)

        encoder.assert_called_once_with(sample_fake_image, OutputFormat.WEBP, MAX_QUALITY)

    def test_unreachable_target_falls_back_to_minimum(self, sample_fake_image):
        """Test one full-quality try, seven search steps and a minimum-quality encode."""
        encoder = sized_encoder(lambda q: 10_000)

        result = encode_to_target_size(sample_fake_image, OutputFormat.JPEG, 100, encoder)

        assert len(result) == 10_000
        assert encoder.call_count == 1 + SEARCH_ITERATIONS + 1
        qualities = [call.args[2] for call in encoder.call_args_list]
        assert qualities[0] == MAX_QUALITY
        assert qualities[-1] == MIN_QUALITY
        assert all(MIN_QUALITY < q < MAX_QUALITY for q in qualities[1:-1])

    def test_search_keeps_best_fitting_encoding(self, sample_fake_image):
        """Test that the largest result under the target is returned."""
        encoder = sized_encoder(lambda q: int(q * 1000))

        result = encode_to_target_size(sample_fake_image, OutputFormat.JPEG, 600, encoder)

        assert len(result) <= 600
        assert len(result) > 590
        assert encoder.call_count == 1 + SEARCH_ITERATIONS

    def test_search_steps_narrow_monotonically(self, sample_fake_image):
        encoder = sized_encoder(lambda q: int(q * 1000))

        encode_to_target_size(sample_fake_image, OutputFormat.WEBP, 300, encoder)

        steps = [call.args[2] for call in encoder.call_args_list[1:]]
        assert steps[0] == (MIN_QUALITY + MAX_QUALITY) / 2
        gaps = [abs(b - a) for a, b in zip(steps, steps[1:])]
        assert gaps == sorted(gaps, reverse=True)
