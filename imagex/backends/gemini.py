"""Gemini image generation backend implementation."""

import base64
import logging
from typing import Optional, Dict
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from imagex.core.base_backend import BaseBackend
from imagex.core.errors import (
    AccessDenied,
    GenerationError,
    SafetyBlocked,
    TransientGenerationError,
)
from imagex.core.models import BackendRequest, ModelTier
from imagex.utils.image_utils import DEFAULT_MIME_TYPE, to_data_uri

logger = logging.getLogger(__name__)

# Finish reasons that mean the candidate was withheld by content filtering
SAFETY_FINISH_REASONS = {"SAFETY", "IMAGE_SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII"}


def _reason_name(reason) -> str:
    return getattr(reason, "name", None) or str(reason or "")


def extract_image(response) -> str:
    """Pull the first inline image out of a generate_content response.

    Safety-blocked candidates are skipped; the first inline-image part of the
    first remaining candidate is returned.

    Args:
        response: A GenerateContentResponse

    Returns:
        The image as a data URI

    Raises:
        SafetyBlocked: If the prompt or every candidate was blocked
        GenerationError: If no candidate carries image data
    """
    feedback = getattr(response, "prompt_feedback", None)
    if feedback is not None and getattr(feedback, "block_reason", None):
        raise SafetyBlocked(
            f"Image generation blocked by safety filters ({_reason_name(feedback.block_reason)})."
        )

    blocked = False
    for candidate in response.candidates or []:
        if _reason_name(candidate.finish_reason) in SAFETY_FINISH_REASONS:
            blocked = True
            continue

        content = candidate.content
        for part in (content.parts if content is not None else None) or []:
            inline = part.inline_data
            if inline is not None and inline.data:
                data = inline.data
                if isinstance(data, str):
                    data = base64.b64decode(data)
                return to_data_uri(data, inline.mime_type or DEFAULT_MIME_TYPE)

    if blocked:
        raise SafetyBlocked("Image generation blocked by safety filters.")
    raise GenerationError("No image data found.")


class GeminiBackend(BaseBackend):
    """Backend implementation using the Gemini API.

    Uses the google-genai async client, so every call suspends on the event
    loop instead of blocking it.

    Attributes:
        api_key: Gemini API key
        models: Gemini model per tier
        timeout: Request timeout in seconds
        client: google-genai Client instance
    """

    DEFAULT_MODELS = {
        ModelTier.FAST: "gemini-2.5-flash-image",
        ModelTier.HIGH_QUALITY: "gemini-3-pro-image-preview",
    }

    def __init__(
        self,
        api_key: str,
        models: Optional[Dict[ModelTier, str]] = None,
        timeout: Optional[int] = None
    ):
        """Initialize the Gemini backend.

        Args:
            api_key: Gemini API key
            models: Optional model per tier (defaults to DEFAULT_MODELS)
            timeout: Optional request timeout in seconds

        Raises:
            ValueError: If API key is empty
        """
        if not api_key:
            raise ValueError("Gemini API key is required")

        super().__init__(api_key, models)
        self.timeout = timeout
        self.client = self._create_client(api_key)
        logger.info(f"Initialized Gemini backend with models: {list(self.models.values())}")

    def _create_client(self, api_key: str) -> genai.Client:
        http_options = None
        if self.timeout:
            http_options = types.HttpOptions(timeout=self.timeout * 1000)
        return genai.Client(api_key=api_key, http_options=http_options)

    def set_api_key(self, api_key: str) -> None:
        super().set_api_key(api_key)
        self.client = self._create_client(api_key)
        logger.info("Gemini client re-created with newly selected API key")

    def build_config(self, request: BackendRequest) -> types.GenerateContentConfig:
        """Build the generation config for one request."""
        image_config_kwargs = {"aspect_ratio": request.aspect_ratio.value}
        if request.image_size:
            image_config_kwargs["image_size"] = request.image_size

        return types.GenerateContentConfig(
            response_modalities=["IMAGE"],
            seed=request.seed,
            image_config=types.ImageConfig(**image_config_kwargs),
        )

    async def generate_image(self, request: BackendRequest) -> str:
        """Generate an image using the Gemini API.

        Args:
            request: The wire-level request for one batch member

        Returns:
            The image as a data URI

        Raises:
            SafetyBlocked: If the request was blocked by safety filters
            AccessDenied: If the API key is invalid or lacks permission
            TransientGenerationError: If rate limited or the service failed
            GenerationError: If no image was returned
        """
        model = self.model_for(request.tier)
        logger.info(f"Generating with {model}, prompt: {request.prompt[:50]}...")

        try:
            response = await self.client.aio.models.generate_content(
                model=model,
                contents=request.prompt,
                config=self.build_config(request),
            )

        except genai_errors.ClientError as e:
            logger.error(f"Gemini API error: {e}")
            if e.code in (401, 403, 404):
                raise AccessDenied(f"Gemini API rejected the request ({e.code}): {e.message}") from e
            elif e.code == 429:
                raise TransientGenerationError(
                    "Rate limit exceeded. Please try again later."
                ) from e
            else:
                raise GenerationError(f"Gemini API error: {e}") from e

        except genai_errors.ServerError as e:
            logger.error(f"Gemini server error: {e}")
            raise TransientGenerationError(f"Gemini server error: {e}") from e

        image = extract_image(response)
        logger.info(f"Successfully generated image with {model}")
        return image

    @property
    def name(self) -> str:
        """Get the backend name.

        Returns:
            The string "Gemini"
        """
        return "Gemini"

    @property
    def default_models(self) -> Dict[ModelTier, str]:
        return dict(self.DEFAULT_MODELS)
