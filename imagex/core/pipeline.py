"""Top-level generation pipeline: validate, generate, review, record."""

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Callable, List, Optional
from pydantic import ValidationError

from imagex.core.errors import InputValidationError
from imagex.core.image_generator import ImageGenerator
from imagex.core.models import (
    AspectRatio,
    GeneratedImage,
    GenerationOverride,
    GenerationRequest,
    ModelTier,
    validation_message,
)
from imagex.utils.quality_auditor import QualityAuditor

logger = logging.getLogger(__name__)


def build_request(
    prompt: str,
    style: str = "",
    tier: ModelTier = ModelTier.FAST,
    aspect_ratio: AspectRatio = AspectRatio.SQUARE,
    count: int = 1,
    override_json: Optional[str] = None
) -> GenerationRequest:
    """Validate form input, optionally overridden by structured JSON.

    Args:
        prompt: Prompt text from the form
        style: Style descriptor from the form
        tier: Selected model tier
        aspect_ratio: Selected aspect ratio
        count: Requested number of images
        override_json: JSON text whose non-empty fields replace the form values

    Returns:
        A validated GenerationRequest

    Raises:
        InputValidationError: If the override or the resulting request is invalid
    """
    if override_json is not None:
        override = GenerationOverride.parse(override_json)
        prompt = override.prompt or prompt
        style = override.style or style
        aspect_ratio = override.aspect_ratio or aspect_ratio
        count = override.count or count

    try:
        return GenerationRequest(
            prompt=prompt or "",
            style=style or "",
            tier=tier,
            aspect_ratio=aspect_ratio,
            count=count
        )
    except ValidationError as e:
        raise InputValidationError(validation_message(e)) from e


class GenerationPipeline:
    """Runs a validated request through generation and quality review.

    Attributes:
        generator: Batch orchestrator
        auditor: Quality auditor applied to every generated image
    """

    def __init__(
        self,
        generator: ImageGenerator,
        auditor: Optional[QualityAuditor] = None,
        clock: Callable[[], datetime] = datetime.now,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4())
    ):
        """Initialize the pipeline.

        Args:
            generator: Batch orchestrator to generate with
            auditor: Quality auditor (defaults to a new QualityAuditor)
            clock: Source of record timestamps
            id_factory: Source of record ids
        """
        self.generator = generator
        self.auditor = auditor or QualityAuditor()
        self._clock = clock
        self._id_factory = id_factory

    async def run(self, request: GenerationRequest) -> List[GeneratedImage]:
        """Generate and review a batch.

        Args:
            request: The validated generation request

        Returns:
            One GeneratedImage per successful batch member, in request order

        Raises:
            AccessDenied: If the credential is missing or was rejected
            BatchExhausted: If every member failed
        """
        logger.info(f"Generating {request.count} image(s) with prompt: {request.prompt[:50]}...")

        urls = await self.generator.generate_batch(
            request.prompt,
            request.style,
            request.tier,
            request.aspect_ratio,
            request.count
        )

        logger.info("Running automatic quality review...")
        reviews = await asyncio.gather(*(self.auditor.audit(url) for url in urls))

        images = [
            GeneratedImage(
                id=self._id_factory(),
                url=url,
                prompt=request.prompt,
                timestamp=self._clock(),
                metadata=review
            )
            for url, review in zip(urls, reviews)
        ]

        passed = sum(1 for image in images if image.metadata.passed_quality_check)
        logger.info(f"Quality review: {passed}/{len(images)} passed")
        return images
