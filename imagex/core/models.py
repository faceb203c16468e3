"""Core data models for prompt-driven image generation."""

import json
from datetime import datetime
from enum import Enum
from typing import Optional, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from imagex.core.errors import InputValidationError

MAX_PROMPT_WORDS = 700
MIN_BATCH_SIZE = 1
MAX_BATCH_SIZE = 4


class ModelTier(str, Enum):
    """Remote model variant to generate with."""
    FAST = "fast"
    HIGH_QUALITY = "high_quality"


class AspectRatio(str, Enum):
    """User-facing aspect ratios."""
    SQUARE = "1:1"
    PORTRAIT = "3:4"
    LANDSCAPE = "4:3"
    CLASSIC = "3:2"
    STORY = "9:16"
    WIDE = "16:9"
    SOCIAL = "4:5"


class OutputFormat(str, Enum):
    """Download formats. PNG is the lossless default."""
    PNG = "png"
    JPEG = "jpeg"
    WEBP = "webp"

    @property
    def mime_type(self) -> str:
        return f"image/{self.value}"

    @property
    def extension(self) -> str:
        return "jpg" if self is OutputFormat.JPEG else self.value

    @property
    def is_lossless(self) -> bool:
        return self is OutputFormat.PNG

    @property
    def pil_format(self) -> str:
        return self.value.upper()


def count_words(text: str) -> int:
    """Count whitespace-separated words, ignoring empty runs."""
    return len([word for word in text.strip().split() if word])


def clamp_count(count: int) -> int:
    """Clamp a requested image count into the supported batch range.

    Raises:
        ValueError: If count is not a finite number
    """
    try:
        value = int(count)
    except (TypeError, OverflowError) as e:
        raise ValueError("Image count must be a number") from e
    return min(max(MIN_BATCH_SIZE, value), MAX_BATCH_SIZE)


def validation_message(error: ValidationError) -> str:
    """Return the first human-readable message of a pydantic ValidationError."""
    first = error.errors()[0]
    ctx_error = first.get("ctx", {}).get("error")
    if ctx_error is not None:
        return str(ctx_error)
    return first["msg"]


class GenerationRequest(BaseModel):
    """Request model for a batch of generated images.

    Attributes:
        prompt: The raw text prompt describing the desired image
        style: Style descriptor appended to the prompt (may be empty)
        tier: Which remote model tier to use
        aspect_ratio: User-facing aspect ratio
        count: Number of images to generate, clamped into [1, 4]
    """

    prompt: str = Field(
        ...,
        description="Text prompt describing the desired image"
    )
    style: str = Field(
        default="",
        description="Style descriptor appended to the prompt"
    )
    tier: ModelTier = Field(
        default=ModelTier.FAST,
        description="Remote model tier"
    )
    aspect_ratio: AspectRatio = Field(
        default=AspectRatio.SQUARE,
        description="User-facing aspect ratio"
    )
    count: int = Field(
        default=1,
        description="Number of images to generate"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "prompt": "A lighthouse on a rocky coast at dawn",
                "style": "movie scene, cinematic lighting",
                "tier": "fast",
                "aspect_ratio": "16:9",
                "count": 2
            }
        }
    )

    @field_validator("prompt")
    @classmethod
    def _check_prompt(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Please enter a prompt.")
        if count_words(value) > MAX_PROMPT_WORDS:
            raise ValueError(
                f"Prompt exceeds the {MAX_PROMPT_WORDS} word limit. "
                "Please shorten your description."
            )
        return value

    @field_validator("count", mode="before")
    @classmethod
    def _clamp_count(cls, value: Any) -> int:
        return clamp_count(value)


class GenerationOverride(BaseModel):
    """Structured override of the form fields, edited as JSON.

    Falsy fields leave the corresponding form value untouched.
    """

    prompt: Optional[str] = None
    style: Optional[str] = None
    aspect_ratio: Optional[AspectRatio] = Field(default=None, alias="aspectRatio")
    count: Optional[int] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("aspect_ratio", mode="before")
    @classmethod
    def _blank_ratio(cls, value: Any) -> Any:
        return value or None

    @field_validator("count", mode="before")
    @classmethod
    def _clamp_count(cls, value: Any) -> Optional[int]:
        if value is None or value == 0:
            return None
        return clamp_count(value)

    @classmethod
    def parse(cls, text: str) -> "GenerationOverride":
        """Parse override JSON text.

        Raises:
            InputValidationError: If the text is not valid JSON or a field is invalid
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise InputValidationError(
                "Invalid JSON format. Please check your syntax."
            ) from e

        if not isinstance(data, dict):
            raise InputValidationError("Invalid JSON format. Expected an object.")

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise InputValidationError(f"Invalid override: {validation_message(e)}") from e

    @classmethod
    def from_fields(
        cls,
        prompt: str,
        style: str,
        aspect_ratio: AspectRatio,
        count: int
    ) -> "GenerationOverride":
        """Build an override mirroring the current form fields."""
        return cls(prompt=prompt, style=style, aspect_ratio=aspect_ratio, count=count)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)


class BackendRequest(BaseModel):
    """A single remote call, as sent over the wire.

    Attributes:
        tier: Remote model tier
        prompt: The compiled prompt
        aspect_ratio: Service-supported aspect ratio (already remapped)
        seed: Random seed for this batch member
        image_size: Optional output size hint for the high-quality tier
    """

    tier: ModelTier
    prompt: str
    aspect_ratio: AspectRatio
    seed: int
    image_size: Optional[str] = None


class QualityMetadata(BaseModel):
    """Result of the automatic quality review of one image."""

    width: int
    height: int
    size_bytes: int
    passed_quality_check: bool
    check_reason: str

    model_config = ConfigDict(frozen=True)


class GeneratedImage(BaseModel):
    """A generated image kept for the current session.

    Attributes:
        id: Unique identifier
        url: Data URI embedding the MIME type and base64 payload
        prompt: The raw prompt the image was generated from
        timestamp: When the record was created
        metadata: Quality review result, if the image was audited
    """

    id: str = Field(..., description="Unique identifier")
    url: str = Field(..., description="data:<mime>;base64,<payload> URI")
    prompt: str = Field(..., description="The prompt used to generate the image")
    timestamp: datetime = Field(
        default_factory=datetime.now,
        description="When the image was generated"
    )
    metadata: Optional[QualityMetadata] = Field(
        default=None,
        description="Automatic quality review result"
    )

    model_config = ConfigDict(frozen=True)
