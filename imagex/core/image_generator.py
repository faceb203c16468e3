"""Batch orchestration of remote image generation."""

import asyncio
import logging
import random
from typing import Awaitable, Callable, List, Optional, Union
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from imagex.core.base_backend import BaseBackend
from imagex.core.credentials import CredentialProvider
from imagex.core.errors import (
    AccessDenied,
    BatchExhausted,
    TransientGenerationError,
    is_authorization_failure,
)
from imagex.core.models import AspectRatio, BackendRequest, ModelTier, clamp_count
from imagex.utils.prompt_compiler import PromptCompiler, get_prompt_compiler, remap_aspect_ratio

logger = logging.getLogger(__name__)

# Seeds span 31 bits so identical prompts are not deduplicated by the provider
MAX_SEED = 2**31 - 1
DEFAULT_STAGGER_SECONDS = 0.4


class ImageGenerator:
    """Orchestrator for staggered, concurrent batches of generations.

    Every batch member is an independent remote call with its own seed and
    compiled prompt. A failed member is logged and skipped; the batch only
    fails when no member succeeded.

    Attributes:
        backend: The remote backend used for every call
        credentials: Optional credential capability
        compiler: Prompt compiler
        stagger_seconds: Delay between the start of consecutive calls
        high_quality_image_size: Output size hint sent for the high-quality tier
        transient_retries: Extra attempts for rate-limit/server failures
    """

    def __init__(
        self,
        backend: BaseBackend,
        credentials: Optional[CredentialProvider] = None,
        compiler: Optional[PromptCompiler] = None,
        stagger_seconds: float = DEFAULT_STAGGER_SECONDS,
        high_quality_image_size: Optional[str] = "2K",
        transient_retries: int = 0,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        """Initialize the image generator.

        Args:
            backend: The remote backend to generate with
            credentials: Optional credential capability; checked before each batch
            compiler: Prompt compiler (defaults to the global instance)
            stagger_seconds: Delay added per batch index before a call starts
            high_quality_image_size: Size hint for the high-quality tier
            transient_retries: Extra attempts for TransientGenerationError (0 = none)
            rng: Random source for seeds
            sleep: Coroutine function used for the stagger delay
        """
        self.backend = backend
        self.credentials = credentials
        self.compiler = compiler or get_prompt_compiler()
        self.stagger_seconds = stagger_seconds
        self.high_quality_image_size = high_quality_image_size
        self.transient_retries = transient_retries
        self._rng = rng or random.Random()
        self._sleep = sleep

        logger.info(
            f"Initialized ImageGenerator with backend: {backend.name}, "
            f"stagger: {stagger_seconds}s, transient retries: {transient_retries}"
        )

    def _draw_seeds(self, count: int) -> List[int]:
        """Draw count distinct seeds uniformly from [0, MAX_SEED)."""
        seeds: List[int] = []
        while len(seeds) < count:
            seed = self._rng.randrange(MAX_SEED)
            if seed not in seeds:
                seeds.append(seed)
        return seeds

    async def _ensure_credentials(self, tier: ModelTier) -> None:
        """Make sure a credential is selected before any call is issued.

        Raises:
            AccessDenied: If no credential is available
        """
        if self.credentials is None:
            return

        if tier == ModelTier.HIGH_QUALITY and not await self.credentials.has_credential():
            await self.credentials.request_credential_selection()

        credential = self.credentials.get_credential()
        if not credential:
            raise AccessDenied("API Key not available.")

        if credential != self.backend.api_key:
            self.backend.set_api_key(credential)

    async def _call_backend(self, request: BackendRequest) -> str:
        """Call the backend, retrying only transient failures."""
        result = None
        async for attempt in AsyncRetrying(
            sleep=self._sleep,
            stop=stop_after_attempt(self.transient_retries + 1),
            wait=wait_exponential(multiplier=1, min=2, max=10),
            retry=retry_if_exception_type(TransientGenerationError),
            reraise=True
        ):
            with attempt:
                result = await self.backend.generate_image(request)
        return result

    async def _generate_member(
        self,
        index: int,
        batch_size: int,
        request: BackendRequest
    ) -> Union[str, Exception]:
        """Generate one batch member after its stagger delay.

        Returns:
            The image data URI, or the exception that made this member fail
        """
        delay = index * self.stagger_seconds
        if delay > 0:
            await self._sleep(delay)

        try:
            logger.debug(f"Starting generation {index + 1}/{batch_size} (seed {request.seed})")
            return await self._call_backend(request)
        except Exception as e:
            logger.warning(f"Image generation {index + 1}/{batch_size} failed: {e}")
            return e

    async def generate_batch(
        self,
        prompt: str,
        style: str,
        tier: ModelTier,
        aspect_ratio: AspectRatio = AspectRatio.SQUARE,
        count: int = 1
    ) -> List[str]:
        """Generate a batch of images.

        Args:
            prompt: Raw user prompt
            style: Style descriptor (may be empty)
            tier: Model tier
            aspect_ratio: User-facing aspect ratio
            count: Requested number of images, clamped into [1, 4]

        Returns:
            Data URIs of the successful members, in request order

        Raises:
            AccessDenied: If the credential is missing or was rejected
            BatchExhausted: If every member failed
        """
        await self._ensure_credentials(tier)

        batch_size = clamp_count(count)
        prompts = self.compiler.compile_batch(prompt, style, tier, batch_size)
        seeds = self._draw_seeds(batch_size)
        wire_ratio = remap_aspect_ratio(aspect_ratio)
        image_size = self.high_quality_image_size if tier == ModelTier.HIGH_QUALITY else None

        logger.info(
            f"Dispatching batch of {batch_size} with {self.backend.name} "
            f"({tier.value}, {aspect_ratio.value} -> {wire_ratio.value})"
        )

        outcomes = await asyncio.gather(*(
            self._generate_member(
                index,
                batch_size,
                BackendRequest(
                    tier=tier,
                    prompt=prompts[index],
                    aspect_ratio=wire_ratio,
                    seed=seeds[index],
                    image_size=image_size
                )
            )
            for index in range(batch_size)
        ))

        images = [outcome for outcome in outcomes if isinstance(outcome, str)]
        if images:
            logger.info(f"Batch finished: {len(images)}/{batch_size} images generated")
            return images

        failures = [outcome for outcome in outcomes if isinstance(outcome, Exception)]
        logger.error(f"All {batch_size} generations failed with {self.backend.name}")

        if any(is_authorization_failure(failure) for failure in failures):
            if self.credentials is not None:
                await self.credentials.request_credential_selection()
            raise AccessDenied("Access denied. Please select a valid API Key.")

        raise BatchExhausted(
            "All image generations failed. Please check your prompt or try again.",
            failures
        )
