"""Download/export of generated images."""

import asyncio
import logging
import math
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Tuple, Union

from imagex.core.errors import DecodeError, ExportError
from imagex.core.models import GeneratedImage, OutputFormat
from imagex.utils.file_saver import FileSaver
from imagex.utils.image_utils import build_download_filename, decode_image, encode_image
from imagex.utils.size_encoder import encode_to_target_size

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024


def parse_target_mb(value: Optional[Union[str, float]]) -> int:
    """Convert a target size in megabytes into bytes.

    Empty or non-numeric input means no target (0).
    """
    if value is None:
        return 0
    try:
        megabytes = float(str(value).strip())
    except ValueError:
        return 0
    if not math.isfinite(megabytes) or megabytes <= 0:
        return 0
    return int(megabytes * BYTES_PER_MB)


def create_downloadable_image(
    generated_image: GeneratedImage,
    output_format: OutputFormat = OutputFormat.PNG,
    target_bytes: int = 0
) -> bytes:
    """Convert a generated image into download bytes.

    Args:
        generated_image: The image to export
        output_format: Output format
        target_bytes: Byte budget for lossy formats (0 = full quality)

    Returns:
        Encoded image bytes

    Raises:
        ExportError: If the image cannot be decoded
    """
    try:
        image = decode_image(generated_image.url)
    except DecodeError as e:
        raise ExportError(f"Failed to read generated image: {e}") from e

    try:
        if output_format.is_lossless:
            metadata = {
                "prompt": generated_image.prompt,
                "timestamp": generated_image.timestamp.isoformat(),
            }
            return encode_image(image, output_format, metadata=metadata)

        return encode_to_target_size(image, output_format, target_bytes)
    except (OSError, ValueError) as e:
        raise ExportError(f"Image conversion failed: {e}") from e


class ImageExporter:
    """Exports generated images through a file-save capability.

    Attributes:
        saver: Where exported files are written
    """

    def __init__(self, saver: FileSaver, clock: Callable[[], datetime] = datetime.now):
        """Initialize the exporter.

        Args:
            saver: File-save capability
            clock: Source of the timestamp used in file names
        """
        self.saver = saver
        self._clock = clock

    def prepare(
        self,
        generated_image: GeneratedImage,
        output_format: OutputFormat,
        target_mb: Optional[Union[str, float]] = None
    ) -> Tuple[bytes, str]:
        """Encode an image for download.

        Returns:
            Tuple of (image_bytes, suggested_filename)
        """
        target_bytes = parse_target_mb(target_mb)
        if target_bytes > 0 and not output_format.is_lossless:
            logger.info(f"Optimizing size to {target_mb}MB ({target_bytes} bytes)...")

        data = create_downloadable_image(generated_image, output_format, target_bytes)
        return data, build_download_filename(output_format, self._clock())

    async def export(
        self,
        generated_image: GeneratedImage,
        output_format: OutputFormat = OutputFormat.PNG,
        target_mb: Optional[Union[str, float]] = None,
        location: Optional[Union[str, Path]] = None
    ) -> Path:
        """Encode an image and save it.

        Args:
            generated_image: The image to export
            output_format: Output format
            target_mb: Optional size target in megabytes (lossy formats only)
            location: Optional user-chosen directory or file path

        Returns:
            Path of the saved file

        Raises:
            ExportError: If conversion or saving fails
        """
        data, filename = await asyncio.to_thread(
            self.prepare, generated_image, output_format, target_mb
        )

        try:
            return await asyncio.to_thread(
                self.saver.save,
                data,
                filename,
                output_format.mime_type,
                output_format.extension,
                location
            )
        except OSError as e:
            logger.error(f"Download failed: {e}")
            raise ExportError(f"Failed to save image: {e}") from e
