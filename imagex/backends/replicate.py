"""Replicate API backend implementation."""

import asyncio
import logging
from typing import Optional, Dict
import replicate
import requests
from replicate.exceptions import ModelError, ReplicateError

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


class ReplicateBackend(BaseBackend):
    """Backend implementation using Replicate API.

    Runs FLUX models on Replicate. The blocking client and the image download
    run in a worker thread so the event loop stays free for the other batch
    members.

    Attributes:
        api_key: Replicate API token
        models: Replicate model per tier
        timeout: Download timeout in seconds
        client: Replicate client instance
    """

    DEFAULT_MODELS = {
        ModelTier.FAST: "black-forest-labs/flux-schnell",
        ModelTier.HIGH_QUALITY: "black-forest-labs/flux-1.1-pro",
    }

    def __init__(
        self,
        api_key: str,
        models: Optional[Dict[ModelTier, str]] = None,
        timeout: int = 30
    ):
        """Initialize the Replicate backend.

        Args:
            api_key: Replicate API token
            models: Optional model per tier (defaults to DEFAULT_MODELS)
            timeout: Download timeout in seconds

        Raises:
            ValueError: If API key is empty
        """
        if not api_key:
            raise ValueError("Replicate API key is required")

        super().__init__(api_key, models)
        self.timeout = timeout
        self.client = replicate.Client(api_token=api_key)
        logger.info(f"Initialized Replicate backend with models: {list(self.models.values())}")

    def set_api_key(self, api_key: str) -> None:
        super().set_api_key(api_key)
        self.client = replicate.Client(api_token=api_key)

    def build_input(self, request: BackendRequest) -> dict:
        """Build the model input for one request."""
        return {
            "prompt": request.prompt,
            "aspect_ratio": request.aspect_ratio.value,
            "seed": request.seed,
            "output_format": "png",
        }

    def _run(self, request: BackendRequest) -> str:
        model = self.model_for(request.tier)
        input_params = self.build_input(request)

        logger.debug(f"Calling Replicate API with params: {list(input_params.keys())}")
        output = self.client.run(model, input=input_params)

        # Replicate returns either a URL or list of URLs
        if isinstance(output, list):
            if not output:
                raise GenerationError("No image data found.")
            image_url = output[0]
        else:
            image_url = output

        response = requests.get(str(image_url), timeout=self.timeout)
        response.raise_for_status()
        mime_type = response.headers.get("Content-Type", DEFAULT_MIME_TYPE).split(";")[0]

        logger.info(f"Successfully generated image ({len(response.content)} bytes)")
        return to_data_uri(response.content, mime_type)

    async def generate_image(self, request: BackendRequest) -> str:
        """Generate an image using Replicate API.

        Args:
            request: The wire-level request for one batch member

        Returns:
            The image as a data URI

        Raises:
            SafetyBlocked: If the model flagged the output as NSFW
            AccessDenied: If the API token is invalid
            TransientGenerationError: If rate limited
            GenerationError: If generation or download fails
        """
        logger.info(f"Generating text-to-image with prompt: {request.prompt[:50]}...")

        try:
            return await asyncio.to_thread(self._run, request)

        except ReplicateError as e:
            logger.error(f"Replicate API error: {e}")
            error_msg = str(e).lower()

            if "authentication" in error_msg or "unauthorized" in error_msg:
                raise AccessDenied(
                    "Invalid Replicate API token. Please check your REPLICATE_TOKEN."
                ) from e
            elif "rate limit" in error_msg:
                raise TransientGenerationError(
                    "Rate limit exceeded. Please try again later."
                ) from e
            else:
                raise GenerationError(f"Replicate API error: {e}") from e

        except ModelError as e:
            # The prediction ran but failed; safety refusals arrive here
            logger.error(f"Replicate prediction failed: {e}")
            if "nsfw" in str(e).lower():
                raise SafetyBlocked("Image generation blocked by safety filters.") from e
            raise GenerationError(f"Replicate prediction failed: {e}") from e

        except requests.exceptions.RequestException as e:
            logger.error(f"Failed to download image: {e}")
            raise GenerationError(f"Failed to download generated image: {e}") from e

    @property
    def name(self) -> str:
        """Get the backend name.

        Returns:
            The string "Replicate"
        """
        return "Replicate"

    @property
    def default_models(self) -> Dict[ModelTier, str]:
        return dict(self.DEFAULT_MODELS)
