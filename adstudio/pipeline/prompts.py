"""
Prompt composition for product ad clips.

  compose()              - style base prompt + optional user text
  compose_continuation() - next segment of a chain, anchored on the previous one
  auto_prompt()          - ask the vision LLM to write the prompt from the images

Style lookup is lenient (unknown → default style) but the vision LLM is not:
if it fails we raise PromptGenerationFailed instead of inventing a prompt.
"""

import logging
from typing import Optional, Protocol, Sequence

from ..errors import PromptGenerationFailed
from ..presets import StyleConfig

logger = logging.getLogger(__name__)

GENERIC_PROMPT = (
    "Commercial advertisement for {product}. Slow orbit, dramatic lighting, "
    "premium aesthetic. Sharp focus."
)
DEFAULT_PRODUCT = "the product"


class VisionClient(Protocol):
    async def complete(self, instruction: str, image_paths: Sequence[str]) -> str:
        """Return free text for the instruction + images."""


def _product(product_name: Optional[str]) -> str:
    return (product_name or "").strip() or DEFAULT_PRODUCT


def _join(*parts: str) -> str:
    cleaned = [p.strip().rstrip(".") for p in parts if p and p.strip()]
    return ". ".join(cleaned) + "." if cleaned else ""


def compose(style: StyleConfig, custom_text: str = "", product_name: str = "") -> str:
    """Base style prompt (or the generic template) followed by the user's text."""
    base = style.base_prompt or GENERIC_PROMPT
    base = base.replace("{product}", _product(product_name))
    return _join(base, custom_text)


def compose_continuation(
    product_name: str,
    previous_prompt: str,
    segment_index: int,
    duration_hint: int,
    custom_text: str = "",
) -> str:
    """Prompt for the next segment of a chain, starting from the captured frame."""
    product = _product(product_name)
    lead = (
        f"Segment {segment_index} of an ad for {product}. The clip opens exactly on "
        f"the final frame of the previous segment and continues it as one unbroken shot"
    )
    previous = f'The previous segment showed: "{previous_prompt.strip()}"' if previous_prompt.strip() else ""
    rules = (
        "Do NOT repeat what the previous segment already showed. Transition naturally "
        f"into a new camera move or angle for this {duration_hint}-second shot, keeping "
        "lighting, colors and the product identical"
    )
    return _join(lead, previous, custom_text, rules)


# ── Vision-LLM instructions ──────────────────────────────────────────────────

_RULES = (
    "RULES: "
    "1-2 sentences MAXIMUM. "
    "One camera move, one action. "
    "Include: camera move + lighting + mood. "
    "Do NOT describe the product appearance. "
    "Do NOT use labels like 'Camera:', 'Lighting:', 'Scene:'. "
    "Do NOT say the duration. "
    "Just write the prompt as a plain sentence. "
    "Example: 'Slow orbit around the product on marble surface. Warm rim lighting, "
    "soft bokeh. Premium feel.' "
    "Output ONLY the prompt."
)


def scene_instruction(
    product_name: str,
    duration: int,
    style_hint: str = "",
    scene_number: int = 1,
    previous_prompts: Sequence[str] = (),
) -> str:
    """Instruction for a fresh clip from the product photos."""
    previous_ctx = ""
    if previous_prompts:
        lines = "\n".join(f"  Scene {i}: {p}" for i, p in enumerate(previous_prompts, start=1))
        previous_ctx = (
            f"Previous scenes already done:\n{lines}\n"
            f"Now write scene {max(scene_number, 1)}. Do NOT repeat what previous scenes "
            "already show. Use a different camera move, angle, or setting.\n"
        )

    style_ctx = f"The ad style is: {style_hint}. " if style_hint else ""
    return (
        f"Write a short video prompt for a {duration}-second ad scene for "
        f"{_product(product_name)} (shown in the attached images). "
        f"{style_ctx}{previous_ctx}{_RULES}"
    )


def continuation_instruction(
    product_name: str,
    previous_prompt: str,
    segment_number: int,
    duration: int,
    style_hint: str = "",
) -> str:
    """Instruction for the next chain segment; the first image is the captured last frame."""
    style_ctx = f"The ad style is: {style_hint}. " if style_hint else ""
    previous_ctx = f'The previous segment was: "{previous_prompt}". ' if previous_prompt else ""
    return (
        f"The first attached image is the LAST frame of segment {segment_number - 1} of a "
        f"video ad for {_product(product_name)}. Write the prompt for segment {segment_number}, "
        f"a {duration}-second shot that starts exactly from this frame. "
        f"{previous_ctx}{style_ctx}"
        "Continue the motion naturally. Do NOT repeat the previous segment's camera move "
        f"or action. {_RULES}"
    )


def _clean(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[-1]
    if text.endswith("```"):
        text = text.rsplit("```", 1)[0]
    return text.strip().strip('"').strip("'").strip()


async def auto_prompt(vision: VisionClient, image_paths: Sequence[str], instruction: str) -> str:
    """
    Delegate prompt writing to the vision LLM.

    Raises:
        PromptGenerationFailed: the LLM call failed or returned nothing usable.
    """
    try:
        text = await vision.complete(instruction, image_paths)
    except PromptGenerationFailed:
        raise
    except Exception as e:
        raise PromptGenerationFailed(f"Vision model error: {e}") from e

    prompt = _clean(text or "")
    if not prompt:
        raise PromptGenerationFailed("Vision model returned an empty prompt")

    logger.info(f"AutoPrompt: Generated → {prompt}")
    return prompt
