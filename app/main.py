"""Main Gradio application for prompt-driven batch image generation."""

import logging
from typing import Optional, Tuple, List
from PIL import Image
import gradio as gr

from app.config import settings, Settings
from imagex.core.backend_factory import BackendFactory
from imagex.core.credentials import EnvCredentialProvider
from imagex.core.errors import (
    AccessDenied,
    BatchExhausted,
    DecodeError,
    ExportError,
    InputValidationError,
)
from imagex.core.image_generator import ImageGenerator
from imagex.core.models import (
    MAX_BATCH_SIZE,
    MAX_PROMPT_WORDS,
    AspectRatio,
    GeneratedImage,
    GenerationOverride,
    ModelTier,
    OutputFormat,
    count_words,
)
from imagex.core.pipeline import GenerationPipeline, build_request
from imagex.core.session import GenerationSession
from imagex.utils.exporter import ImageExporter
from imagex.utils.file_saver import DirectoryFileSaver
from imagex.utils.image_utils import decode_image
from imagex.utils.prompt_compiler import PromptLibrary

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

NO_STYLE = "None"

STYLE_CHOICES = [preset.label for preset in PromptLibrary.STYLES] + [NO_STYLE]

RATIO_CHOICES = [
    ("Square (1:1)", AspectRatio.SQUARE.value),
    ("Portrait (3:4)", AspectRatio.PORTRAIT.value),
    ("Social (4:5)", AspectRatio.SOCIAL.value),
    ("Landscape (4:3)", AspectRatio.LANDSCAPE.value),
    ("Classic (3:2)", AspectRatio.CLASSIC.value),
    ("Story (9:16)", AspectRatio.STORY.value),
    ("Wide (16:9)", AspectRatio.WIDE.value),
]

TIER_CHOICES = [
    ("Fast", ModelTier.FAST.value),
    ("High Quality", ModelTier.HIGH_QUALITY.value),
]

FORMAT_CHOICES = [
    ("PNG", OutputFormat.PNG.value),
    ("JPEG", OutputFormat.JPEG.value),
    ("WebP", OutputFormat.WEBP.value),
]

PLACEHOLDER_SIZE = (256, 256)


def create_session() -> GenerationSession:
    """Create the generation session with the configured backend.

    Returns:
        Initialized GenerationSession

    Raises:
        ValueError: If required configuration is missing
    """
    try:
        settings.validate_required_keys()

        backend = BackendFactory.create_backend(
            settings.default_backend,
            settings.backend_api_key(),
            models=settings.backend_models(),
            timeout=settings.timeout
        )
        credentials = EnvCredentialProvider(lambda: Settings().backend_api_key())

        generator = ImageGenerator(
            backend,
            credentials=credentials,
            stagger_seconds=settings.stagger_seconds,
            high_quality_image_size=settings.high_quality_image_size,
            transient_retries=settings.transient_retries
        )
        return GenerationSession(GenerationPipeline(generator), max_history=settings.max_history)

    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        raise


# Global session instance
session: Optional[GenerationSession] = None

# Global exporter for downloads
exporter = ImageExporter(DirectoryFileSaver(settings.export_dir))


def style_text(style_label: str) -> str:
    """Map a style picker label onto its descriptor ("" for None)."""
    if not style_label or style_label == NO_STYLE:
        return ""
    return PromptLibrary.style_value(style_label)


def word_count_label(prompt: str) -> str:
    """Format the live word counter."""
    words = count_words(prompt or "")
    marker = " ⚠️ over limit" if words > MAX_PROMPT_WORDS else ""
    return f"{words} / {MAX_PROMPT_WORDS} words{marker}"


def format_results(images: List[GeneratedImage]) -> str:
    """Format the quality review of displayed images."""
    if not images:
        return ""

    lines = [f"✅ Generated {len(images)} image{'s' if len(images) != 1 else ''}"]
    for index, image in enumerate(images, 1):
        review = image.metadata
        if review is None:
            lines.append(f"#{index}: not reviewed")
            continue
        icon = "✅" if review.passed_quality_check else "❌"
        size_mb = review.size_bytes / (1024 * 1024)
        lines.append(
            f"#{index}: {icon} {review.width}x{review.height}, "
            f"~{size_mb:.2f} MB - {review.check_reason}"
        )
    return "\n".join(lines)


def gallery_items(images: List[GeneratedImage]) -> List[Tuple[Image.Image, str]]:
    """Decode images for the Gradio Gallery.

    An image that cannot be decoded is shown as a gray placeholder so
    gallery positions stay aligned with the images list.
    """
    items = []
    for index, image in enumerate(images, 1):
        try:
            items.append((decode_image(image.url), f"#{index}"))
        except DecodeError as e:
            logger.warning(f"Cannot display image {image.id}: {e}")
            items.append((Image.new('RGB', PLACEHOLDER_SIZE, 'gray'), f"#{index} (unavailable)"))
    return items


def history_count_label(count: int) -> str:
    return f"📸 History: {count} image{'s' if count != 1 else ''}"


def get_history_gallery():
    """Get history formatted for gallery display.

    Returns:
        List of images for gallery (newest first), count string
    """
    if session is None:
        return [], history_count_label(0)

    images = session.get_gallery()
    items = [
        (picture, f"{caption}: {image.prompt[:60]}")
        for (picture, caption), image in zip(gallery_items(images), images)
    ]
    return items, history_count_label(len(images))


def clear_history():
    """Clear all history.

    Returns:
        Empty gallery, updated count string
    """
    if session is not None:
        session.clear_history()
        logger.info("History cleared")
    return [], history_count_label(0)


def select_image_id(images: List[GeneratedImage], index: int) -> Optional[str]:
    """Map a gallery position onto the id of the image shown there."""
    if 0 <= index < len(images):
        return images[index].id
    return None


async def generate_images(
    prompt: str,
    style_label: str,
    tier: str,
    aspect_ratio: str,
    count: int,
    json_mode: bool,
    json_text: str
) -> Tuple[list, str]:
    """Generate a batch of images from the form (or its JSON override).

    Args:
        prompt: Text description of the desired image
        style_label: Selected style preset label
        tier: Selected model tier value
        aspect_ratio: Selected aspect ratio value
        count: Number of images (1-4)
        json_mode: Whether the JSON override editor is active
        json_text: JSON override text

    Returns:
        Tuple of (gallery items, status message)
    """
    if session is None:
        return [], "❌ Error: Generator not initialized. Check your API key."

    try:
        request = build_request(
            prompt,
            style_text(style_label),
            ModelTier(tier),
            AspectRatio(aspect_ratio),
            int(count),
            override_json=json_text if json_mode else None
        )
    except InputValidationError as e:
        return [], f"❌ {e}"

    try:
        outcome = await session.generate(request)

    except AccessDenied as e:
        error_msg = f"🔑 {e}"
        logger.error(error_msg)
        return [], error_msg

    except BatchExhausted as e:
        error_msg = f"❌ {e}"
        logger.error(error_msg)
        return [], error_msg

    except Exception as e:
        error_msg = f"❌ Unexpected error: {e}"
        logger.exception(error_msg)
        return [], error_msg

    if not outcome.applied:
        logger.info(f"Batch {outcome.generation} superseded by a newer batch")

    return gallery_items(session.current), format_results(session.current)


def toggle_json_mode(
    json_mode: bool,
    prompt: str,
    style_label: str,
    aspect_ratio: str,
    count: int,
    json_text: str
):
    """Switch between the visual form and the JSON override editor.

    Entering JSON mode seeds the editor from the form; leaving it applies
    the JSON back onto the form. Invalid JSON keeps the editor open.

    Returns:
        Tuple of (json_mode, editor update, prompt, aspect_ratio, count, status)
    """
    if not json_mode:
        override = GenerationOverride.from_fields(
            prompt or "",
            style_text(style_label),
            AspectRatio(aspect_ratio),
            int(count)
        )
        return True, gr.update(value=override.to_json(), visible=True), prompt, aspect_ratio, count, ""

    try:
        override = GenerationOverride.parse(json_text)
    except InputValidationError as e:
        return (
            True, gr.update(value=json_text, visible=True), prompt, aspect_ratio, count,
            f"❌ {e} Fix syntax errors before switching back to Visual mode."
        )

    return (
        False,
        gr.update(value=json_text, visible=False),
        override.prompt or prompt,
        override.aspect_ratio.value if override.aspect_ratio else aspect_ratio,
        override.count or count,
        ""
    )


async def download_image(
    selected_id: Optional[str],
    output_format: str,
    target_mb: str,
    location: str
) -> Tuple[Optional[str], str]:
    """Export the selected image in the chosen format.

    Args:
        selected_id: Id of the image selected in the results or history
            gallery; the first displayed result is used when nothing is selected
        output_format: Output format value
        target_mb: Optional size target in MB (lossy formats only)
        location: Optional directory or file path to save to

    Returns:
        Tuple of (path of the saved file or None, status message)
    """
    if session is None:
        return None, "No image available for download"

    image = session.get_by_id(selected_id) if selected_id else None
    if image is None:
        if not session.current:
            return None, "No image available for download"
        image = session.current[0]

    try:
        path = await exporter.export(
            image,
            OutputFormat(output_format),
            target_mb,
            location.strip() if location else None
        )
    except ExportError as e:
        logger.error(f"Download failed: {e}")
        return None, "❌ Failed to download image. Security restrictions may apply."

    return str(path), f"💾 Saved {path.name}"


def create_ui():
    """Create the Gradio interface.

    Returns:
        Gradio Blocks interface
    """
    with gr.Blocks(title="Image X") as demo:
        gr.Markdown(
            """
            # Image X

            Describe a scene, pick a style and a ratio, and generate up to four variations.
            """
        )

        if session is None:
            gr.Markdown(
                """
                ## ⚠️ Configuration Error

                The application could not initialize. Please check:
                1. Your `.env` file exists and contains a valid API key
                2. For Gemini: set `GEMINI_API_KEY` (https://aistudio.google.com/apikey)
                3. For Replicate: set `DEFAULT_BACKEND=replicate` and `REPLICATE_TOKEN`
                """
            )
            return demo

        json_mode_state = gr.State(value=False)
        selected_id = gr.State(value=None)

        with gr.Row():
            with gr.Column(scale=1):
                tier_selector = gr.Radio(
                    choices=TIER_CHOICES,
                    value=ModelTier.FAST.value,
                    label="Model",
                    info="High Quality renders at 2K and requires a selected API key"
                )

                prompt_input = gr.Textbox(
                    label="Prompt",
                    placeholder="Describe the image you want to generate...",
                    lines=5
                )
                word_counter = gr.Markdown(word_count_label(""))

                json_input = gr.Code(
                    label="JSON Mode",
                    language="json",
                    visible=False,
                    value='{ "prompt": "...", "count": 1 }'
                )
                json_toggle = gr.Button("{ } Toggle JSON Mode", variant="secondary", size="sm")

                style_selector = gr.Radio(
                    choices=STYLE_CHOICES,
                    value=STYLE_CHOICES[0],
                    label="Style"
                )

                with gr.Row():
                    ratio_selector = gr.Dropdown(
                        choices=RATIO_CHOICES,
                        value=AspectRatio.SQUARE.value,
                        label="Aspect Ratio"
                    )
                    count_slider = gr.Slider(
                        minimum=1,
                        maximum=MAX_BATCH_SIZE,
                        value=1,
                        step=1,
                        label="Images"
                    )

                generate_btn = gr.Button("✨ Generate", variant="primary", size="lg")

            with gr.Column(scale=1):
                output_gallery = gr.Gallery(label="Generated Images", columns=2)
                output_info = gr.Textbox(
                    label="Quality Review",
                    lines=6,
                    interactive=False
                )

                with gr.Accordion("💾 Export Settings", open=False):
                    format_selector = gr.Radio(
                        choices=FORMAT_CHOICES,
                        value=OutputFormat.PNG.value,
                        label="Download Format"
                    )
                    target_mb_input = gr.Textbox(
                        label="Target Size (MB)",
                        placeholder="Optional, JPEG/WebP only"
                    )
                    location_input = gr.Textbox(
                        label="Save Location",
                        placeholder=f"Defaults to {settings.export_dir}"
                    )

                download_btn = gr.Button("💾 Download Selected", variant="secondary")
                download_file = gr.File(label="Download", interactive=False)

        with gr.Accordion("📸 History", open=False):
            with gr.Row():
                history_count = gr.Textbox(
                    label="",
                    value=history_count_label(0),
                    interactive=False,
                    show_label=False
                )
                clear_history_btn = gr.Button("🗑️ Clear History", variant="stop")

            history_gallery = gr.Gallery(
                label="History",
                show_label=False,
                columns=4,
                object_fit="contain",
                height="auto"
            )

        prompt_input.change(
            fn=word_count_label,
            inputs=[prompt_input],
            outputs=[word_counter]
        )

        json_toggle.click(
            fn=toggle_json_mode,
            inputs=[json_mode_state, prompt_input, style_selector, ratio_selector, count_slider, json_input],
            outputs=[json_mode_state, json_input, prompt_input, ratio_selector, count_slider, output_info]
        )

        generate_btn.click(
            fn=generate_images,
            inputs=[
                prompt_input,
                style_selector,
                tier_selector,
                ratio_selector,
                count_slider,
                json_mode_state,
                json_input
            ],
            outputs=[output_gallery, output_info]
        ).then(
            fn=lambda: None,
            outputs=[selected_id]
        ).then(
            fn=get_history_gallery,
            outputs=[history_gallery, history_count]
        )

        def handle_gallery_select(evt: gr.SelectData):
            """Remember which displayed result is selected for download."""
            return select_image_id(session.current, evt.index)

        def handle_history_select(evt: gr.SelectData):
            """Remember which history image is selected for download."""
            return select_image_id(session.get_gallery(), evt.index)

        output_gallery.select(
            fn=handle_gallery_select,
            outputs=[selected_id]
        )

        history_gallery.select(
            fn=handle_history_select,
            outputs=[selected_id]
        )

        clear_history_btn.click(
            fn=clear_history,
            outputs=[history_gallery, history_count]
        ).then(
            fn=lambda: None,
            outputs=[selected_id]
        )

        download_btn.click(
            fn=download_image,
            inputs=[selected_id, format_selector, target_mb_input, location_input],
            outputs=[download_file, output_info]
        )

    return demo


if __name__ == "__main__":
    try:
        session = create_session()
    except ValueError:
        session = None

    demo = create_ui()

    logger.info("Launching Gradio application...")
    demo.launch(
        server_name="0.0.0.0",
        server_port=7861,
        share=False
    )
