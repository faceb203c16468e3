"""Image utility functions for data URIs, decoding and encoding."""

import base64
import binascii
import io
import json
import re
from datetime import datetime
from typing import Optional, Dict, Any, Tuple
from PIL import Image, PngImagePlugin, UnidentifiedImageError

from imagex.core.errors import DecodeError
from imagex.core.models import OutputFormat

DEFAULT_MIME_TYPE = "image/png"

_DATA_URI = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?;base64,(?P<payload>.*)$", re.DOTALL)


def to_data_uri(data: bytes, mime_type: Optional[str] = None) -> str:
    """Wrap raw image bytes in a self-describing data URI.

    Args:
        data: Encoded image bytes
        mime_type: MIME type of the bytes (defaults to image/png)

    Returns:
        data:<mime>;base64,<payload> string
    """
    payload = base64.b64encode(data).decode("ascii")
    return f"data:{mime_type or DEFAULT_MIME_TYPE};base64,{payload}"


def parse_data_uri(uri: str) -> Tuple[str, bytes]:
    """Split a base64 data URI into its MIME type and raw bytes.

    Args:
        uri: data:<mime>;base64,<payload> string

    Returns:
        Tuple of (mime_type, image_bytes)

    Raises:
        DecodeError: If the URI is not a base64 data URI
    """
    match = _DATA_URI.match(uri or "")
    if match is None:
        raise DecodeError("Not a base64 data URI")

    try:
        data = base64.b64decode(match.group("payload"), validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Invalid base64 payload: {e}") from e

    return match.group("mime") or DEFAULT_MIME_TYPE, data


def decode_image(uri: str) -> Image.Image:
    """Decode a data URI into a fully loaded PIL Image.

    Raises:
        DecodeError: If the payload is not a readable image
    """
    _, data = parse_data_uri(uri)
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as e:
        raise DecodeError(f"Could not decode image: {e}") from e
    return image


def _flatten_onto_white(image: Image.Image) -> Image.Image:
    """Composite transparency onto a white background (JPEG has no alpha)."""
    if image.mode == 'P':
        image = image.convert('RGBA')
    if image.mode in ('RGBA', 'LA'):
        rgb_image = Image.new('RGB', image.size, (255, 255, 255))
        rgb_image.paste(image, mask=image.split()[-1])
        return rgb_image
    if image.mode != 'RGB':
        return image.convert('RGB')
    return image


def _pil_quality(quality: float) -> int:
    """Map a 0.0-1.0 quality onto Pillow's 1-100 scale."""
    return min(100, max(1, round(quality * 100)))


def encode_image(
    image: Image.Image,
    output_format: OutputFormat,
    quality: float = 1.0,
    metadata: Optional[Dict[str, Any]] = None
) -> bytes:
    """Encode an image in the requested format.

    Args:
        image: PIL Image object
        output_format: Target format
        quality: Encoder quality in [0.0, 1.0]; ignored for PNG
        metadata: Optional text metadata, embedded for PNG only

    Returns:
        Encoded image bytes
    """
    output = io.BytesIO()

    if output_format == OutputFormat.PNG:
        pnginfo = PngImagePlugin.PngInfo()
        if metadata:
            # Add each metadata field as a text chunk
            for key, value in metadata.items():
                if value is not None:
                    pnginfo.add_text(key, str(value))
            pnginfo.add_text("metadata_json", json.dumps(metadata, default=str))
        image.save(output, format="PNG", pnginfo=pnginfo)

    elif output_format == OutputFormat.JPEG:
        _flatten_onto_white(image).save(output, format="JPEG", quality=_pil_quality(quality))

    elif output_format == OutputFormat.WEBP:
        if image.mode not in ('RGB', 'RGBA'):
            image = image.convert('RGBA')
        image.save(output, format="WEBP", quality=_pil_quality(quality))

    return output.getvalue()


def build_download_filename(output_format: OutputFormat, timestamp: Optional[datetime] = None) -> str:
    """Build the suggested download filename, e.g. image-x-1700000000000.jpg."""
    moment = timestamp or datetime.now()
    return f"image-x-{int(moment.timestamp() * 1000)}.{output_format.extension}"
