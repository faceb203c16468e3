"""Prompt compilation for batch image generation."""

import logging
import re
from dataclasses import dataclass
from typing import Optional, List

from imagex.core.models import AspectRatio, ModelTier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StylePreset:
    """A named style descriptor offered in the style picker."""
    id: str
    label: str
    value: str


class PromptLibrary:
    """Fixed prompt fragments and style presets."""

    STYLES = [
        StylePreset(
            id="realistic",
            label="Photorealistic",
            value="raw candid photo, shot on 35mm film, hyper-realistic, natural lighting, "
                  "film grain, unpolished, highly detailed texture, skin pores, authentic"
        ),
        StylePreset(
            id="commercial",
            label="Commercial",
            value="clean studio background, commercial lighting, advertising quality, "
                  "sharp product focus, professional color grading"
        ),
        StylePreset(
            id="editorial",
            label="Editorial",
            value="vogue aesthetic, dramatic studio lighting, fashion editorial style, "
                  "high fashion, detailed skin, magazine quality"
        ),
        StylePreset(
            id="product",
            label="Product Shot",
            value="clean background, macro details, commercial product photography, "
                  "depth of field, sharp focus"
        ),
        StylePreset(
            id="cinematic",
            label="Cinematic",
            value="movie scene, cinematic lighting, teal and orange color grading, "
                  "depth of field, anamorphic lens, atmospheric"
        ),
        StylePreset(
            id="digital",
            label="Digital Art",
            value="concept art style, octane render, vibrant colors, highly detailed, digital painting"
        ),
    ]

    QUALITY_SUFFIX = "professional photography, ultra high resolution, sharp focus"

    REALISTIC_BASELINE = "realistic environment, natural lighting"

    # Counter-steers the fast tier away from an over-smoothed, plastic look
    HUMAN_TOUCH_KEYWORDS = (
        ", masterpiece, best quality, raw photo, shot on 35mm, kodak portra 400, fujifilm, "
        "natural skin texture, visible pores, slight film grain, atmospheric lighting, candid, "
        "authentic, natural imperfections, anatomical accuracy, physically plausible, "
        "depth of field, soft natural shadows, high fidelity, micro details, no cgi, "
        "no 3d render, no plastic skin, no artificial smoothing"
    )

    VARIATION_ANGLES = [
        "cinematic front view",
        "dynamic three-quarter angle",
        "dramatic side profile",
        "low angle perspective",
        "overhead high angle",
    ]

    @classmethod
    def get_style(cls, style_id: str) -> Optional[StylePreset]:
        """Get a style preset by id or label.

        Args:
            style_id: Preset id (e.g. "cinematic") or label (e.g. "Cinematic")

        Returns:
            StylePreset if found, None otherwise
        """
        for preset in cls.STYLES:
            if style_id in (preset.id, preset.label):
                return preset
        return None

    @classmethod
    def style_value(cls, style_id: str) -> str:
        """Get the descriptor text of a preset, or an empty string."""
        preset = cls.get_style(style_id)
        return preset.value if preset else ""


# The remote service has no native 3:2 or 4:5 output
_WIRE_ASPECT_RATIOS = {
    AspectRatio.CLASSIC: AspectRatio.LANDSCAPE,
    AspectRatio.SOCIAL: AspectRatio.PORTRAIT,
}


def remap_aspect_ratio(aspect_ratio: AspectRatio) -> AspectRatio:
    """Map a user-facing aspect ratio onto one the remote service supports.

    Args:
        aspect_ratio: The ratio the user selected

    Returns:
        The ratio to send over the wire
    """
    return _WIRE_ASPECT_RATIOS.get(aspect_ratio, aspect_ratio)


_TRAILING_PUNCTUATION = re.compile(r"[.,;]+$")


class PromptCompiler:
    """Builds the final prompt string for each member of a batch."""

    def __init__(self, library: type[PromptLibrary] = PromptLibrary):
        """Initialize the prompt compiler.

        Args:
            library: Source of the fixed prompt fragments
        """
        self.library = library

    @staticmethod
    def clean_prompt(prompt: str) -> str:
        """Trim the prompt and drop a trailing run of '.', ',' or ';'."""
        return _TRAILING_PUNCTUATION.sub("", prompt.strip())

    def tier_modifier(self, tier: ModelTier) -> str:
        """Get the keywords appended for a tier (empty for high quality)."""
        if tier == ModelTier.FAST:
            return self.library.HUMAN_TOUCH_KEYWORDS
        return ""

    def variation_angle(self, batch_index: int) -> str:
        """Get the camera angle for a batch position, cycling through the list."""
        angles = self.library.VARIATION_ANGLES
        return angles[batch_index % len(angles)]

    def compile(
        self,
        prompt: str,
        style: str,
        tier: ModelTier,
        batch_index: int = 0,
        batch_size: int = 1
    ) -> str:
        """Compile the prompt sent for one batch member.

        Args:
            prompt: Raw user prompt
            style: Style descriptor (empty for the realistic baseline)
            tier: Model tier the prompt is compiled for
            batch_index: Position of this member in the batch
            batch_size: Number of images in the batch

        Returns:
            The compiled prompt
        """
        clean_prompt = self.clean_prompt(prompt)
        clean_style = style.strip()
        suffix = f"{self.library.QUALITY_SUFFIX}{self.tier_modifier(tier)}"

        if clean_style:
            compiled = f"{clean_prompt}, {clean_style}, {suffix}"
        else:
            compiled = f"{clean_prompt}, {self.library.REALISTIC_BASELINE}, {suffix}"

        if batch_size > 1:
            compiled = f"{compiled}, {self.variation_angle(batch_index)}"

        logger.debug(f"Compiled prompt {batch_index + 1}/{batch_size}: {compiled[:80]}...")
        return compiled

    def compile_batch(
        self,
        prompt: str,
        style: str,
        tier: ModelTier,
        batch_size: int
    ) -> List[str]:
        """Compile one prompt per batch member, in index order."""
        return [
            self.compile(prompt, style, tier, index, batch_size)
            for index in range(batch_size)
        ]

    def __repr__(self) -> str:
        """String representation."""
        return "PromptCompiler(styles={}, angles={})".format(
            len(self.library.STYLES),
            len(self.library.VARIATION_ANGLES)
        )


# Global prompt compiler instance
_global_compiler: Optional[PromptCompiler] = None


def get_prompt_compiler() -> PromptCompiler:
    """Get or create the global prompt compiler instance.

    Returns:
        Global PromptCompiler instance
    """
    global _global_compiler

    if _global_compiler is None:
        _global_compiler = PromptCompiler()

    return _global_compiler


def reset_prompt_compiler() -> None:
    """Reset the global prompt compiler instance (useful for testing)."""
    global _global_compiler
    _global_compiler = None
