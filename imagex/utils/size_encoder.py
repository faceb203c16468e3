"""Re-encode images to fit a byte budget."""

import logging
from typing import Callable
from PIL import Image

from imagex.core.models import OutputFormat
from imagex.utils.image_utils import encode_image

logger = logging.getLogger(__name__)

MIN_QUALITY = 0.05
MAX_QUALITY = 1.0
SEARCH_ITERATIONS = 7

Encoder = Callable[[Image.Image, OutputFormat, float], bytes]


def encode_to_target_size(
    image: Image.Image,
    output_format: OutputFormat,
    target_bytes: int,
    encoder: Encoder = encode_image
) -> bytes:
    """Encode an image at the highest quality that fits within target_bytes.

    Encoder quality maps monotonically but not invertibly onto output size,
    so the quality axis is binary-searched for a fixed number of steps
    (about 1/128 resolution). When nothing fits, the minimum-quality encoding
    is returned rather than failing.

    Args:
        image: Decoded image
        output_format: Target format; PNG ignores the budget
        target_bytes: Byte budget; 0 or less disables the search
        encoder: Callable taking (image, format, quality) and returning bytes

    Returns:
        Encoded image bytes
    """
    if output_format.is_lossless or target_bytes <= 0:
        return encoder(image, output_format, MAX_QUALITY)

    best = encoder(image, output_format, MAX_QUALITY)
    if len(best) <= target_bytes:
        logger.debug(f"Full quality fits target ({len(best)} <= {target_bytes} bytes)")
        return best

    low, high = MIN_QUALITY, MAX_QUALITY
    best_under_target = None

    for _ in range(SEARCH_ITERATIONS):
        quality = (low + high) / 2
        candidate = encoder(image, output_format, quality)
        if len(candidate) <= target_bytes:
            best_under_target = candidate
            low = quality
        else:
            high = quality

    if best_under_target is not None:
        logger.info(
            f"Encoded {output_format.value} at quality ~{low:.3f} "
            f"({len(best_under_target)} <= {target_bytes} bytes)"
        )
        return best_under_target

    logger.warning(
        f"Target of {target_bytes} bytes unreachable for {output_format.value}; "
        f"using minimum quality {MIN_QUALITY}"
    )
    return encoder(image, output_format, MIN_QUALITY)
