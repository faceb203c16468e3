"""Session state for displayed results and history of generated images."""

import logging
from dataclasses import dataclass
from typing import List, Optional

from imagex.core.models import GeneratedImage, GenerationRequest
from imagex.core.pipeline import GenerationPipeline

logger = logging.getLogger(__name__)


@dataclass
class BatchOutcome:
    """Result of one generate call on a session.

    Attributes:
        generation: Token the batch was started with
        images: Images produced by the batch
        applied: Whether the images replaced the displayed results
    """
    generation: int
    images: List[GeneratedImage]
    applied: bool


class GenerationSession:
    """Displayed results and history for one user session.

    Each batch takes a generation token when it starts. Its results replace
    the displayed results only if no newer batch has started since, so a
    slow earlier batch cannot overwrite a newer one. Older batches are not
    cancelled; their images still go to history.
    """

    def __init__(self, pipeline: GenerationPipeline, max_history: int = 50):
        """Initialize the session.

        Args:
            pipeline: Pipeline used for every batch
            max_history: Maximum number of images to keep in history
        """
        self.pipeline = pipeline
        self.max_history = max_history
        self.generation = 0
        self.current: List[GeneratedImage] = []
        self.history: List[GeneratedImage] = []

    def begin(self) -> int:
        """Start a new batch, invalidating any batch still in flight.

        Returns:
            The new generation token
        """
        self.generation += 1
        self.current = []
        return self.generation

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    def publish(self, generation: int, images: List[GeneratedImage]) -> bool:
        """Record a finished batch.

        Args:
            generation: Token the batch was started with
            images: Images produced by the batch

        Returns:
            True if the images became the displayed results
        """
        self.history.extend(images)
        if len(self.history) > self.max_history:
            self.history = self.history[-self.max_history:]

        if not self.is_current(generation):
            logger.info(
                f"Discarding results of stale batch {generation} "
                f"(current is {self.generation})"
            )
            return False

        self.current = list(images)
        return True

    async def generate(self, request: GenerationRequest) -> BatchOutcome:
        """Run a batch and publish its results.

        Raises:
            AccessDenied: If the credential is missing or was rejected
            BatchExhausted: If every member failed
        """
        generation = self.begin()
        images = await self.pipeline.run(request)
        applied = self.publish(generation, images)
        return BatchOutcome(generation=generation, images=images, applied=applied)

    def get_by_id(self, image_id: str) -> Optional[GeneratedImage]:
        """Find an image among the displayed results or history."""
        for image in [*self.current, *reversed(self.history)]:
            if image.id == image_id:
                return image
        return None

    def get_gallery(self) -> List[GeneratedImage]:
        """Get history, most recent first."""
        return list(reversed(self.history))

    def clear_history(self) -> None:
        self.history.clear()
