"""Automatic quality review of generated images."""

import asyncio
import logging
import math

from imagex.core.errors import DecodeError
from imagex.core.models import QualityMetadata
from imagex.utils.image_utils import decode_image

logger = logging.getLogger(__name__)

MIN_PIXELS = 1000 * 1000
MIN_DIMENSION = 512


def approximate_size(data_uri: str) -> int:
    """Estimate decoded byte size from the base64 string length."""
    return math.ceil(len(data_uri) * 3 / 4)


def review_dimensions(width: int, height: int, size_bytes: int) -> QualityMetadata:
    """Classify an image by its pixel dimensions.

    Args:
        width: Pixel width
        height: Pixel height
        size_bytes: Approximate encoded size

    Returns:
        QualityMetadata with the verdict and reason
    """
    passed = True
    reason = "Passed Quality Check"

    if width * height < MIN_PIXELS:
        passed = False
        reason = f"Low Resolution ({width}x{height})"
    elif width < MIN_DIMENSION or height < MIN_DIMENSION:
        passed = False
        reason = "Dimensions too small"

    return QualityMetadata(
        width=width,
        height=height,
        size_bytes=size_bytes,
        passed_quality_check=passed,
        check_reason=reason
    )


class QualityAuditor:
    """Reviews generated images without ever failing the batch."""

    async def audit(self, data_uri: str) -> QualityMetadata:
        """Review one generated image.

        A payload that does not decode is reported as a failed check.

        Args:
            data_uri: The generated image as a data URI

        Returns:
            QualityMetadata for the image
        """
        try:
            image = await asyncio.to_thread(decode_image, data_uri)
        except DecodeError as e:
            logger.warning(f"Quality review could not decode image: {e}")
            return QualityMetadata(
                width=0,
                height=0,
                size_bytes=0,
                passed_quality_check=False,
                check_reason="Image Load Error"
            )

        width, height = image.size
        result = review_dimensions(width, height, approximate_size(data_uri))
        logger.debug(f"Quality review {width}x{height}: {result.check_reason}")
        return result
