"""
Style Library - creative presets for product ad clips.
Users pick a style, we inject the provider model and the actual cinematic prompt.
"""

import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict

from .errors import UnknownModel, UnknownStyle

logger = logging.getLogger(__name__)


class ModelInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    price: float
    durations: tuple[int, ...] = (5, 8, 16)  # seconds the model accepts

    @property
    def provider(self) -> str:
        return provider_of(self.id)


class StyleConfig(BaseModel):
    """Immutable preset: provider model, display name, base prompt, price."""
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    id: str
    label: str
    model_id: str
    model_name: str
    price: float
    base_prompt: str = ""
    description: str = ""
    durations: tuple[int, ...] = (5, 8, 16)
    reveal: bool = False  # product appears at the end (unboxing)


MODELS = {
    "google:3@3": ModelInfo(id="google:3@3", name="Veo 3.1 Fast", price=0.80, durations=(4, 6, 8)),
    "pixverse:1@7": ModelInfo(id="pixverse:1@7", name="PixVerse v5.6", price=0.24, durations=(5, 8)),
    "vidu:4@2": ModelInfo(id="vidu:4@2", name="Vidu Q3 Turbo", price=0.13),
    "vidu:4@1": ModelInfo(id="vidu:4@1", name="Vidu Q3", price=0.05),
}


def _style(style_id: str, label: str, model_id: str, **kwargs) -> StyleConfig:
    model = MODELS[model_id]
    return StyleConfig(
        id=style_id,
        label=label,
        model_id=model.id,
        model_name=model.name,
        price=model.price,
        durations=model.durations,
        **kwargs,
    )


STYLES = {
    "cinematic": _style(
        "cinematic", "Cinematic", "google:3@3",
        description="Google Veo 3.1, best quality with native audio",
        base_prompt=(
            "Cinematic commercial for {product}. Slow dolly-in on the product resting "
            "on a dark reflective surface, dramatic rim lighting, drifting haze, "
            "shallow depth of field, premium high-end aesthetic"
        ),
    ),
    "rotating": _style(
        "rotating", "360 Rotating", "vidu:4@2",
        description="Product spin on white background",
        base_prompt=(
            "Smooth 360-degree turntable rotation of {product} on a seamless white "
            "background, soft even studio lighting, subtle floor shadow, product stays "
            "centered and in sharp focus"
        ),
    ),
    "lifestyle": _style(
        "lifestyle", "Lifestyle", "pixverse:1@7",
        description="Real-world setting, warm social media aesthetic",
        base_prompt=(
            "{product} in a warm, lived-in home setting, natural window light, a hand "
            "reaches in and uses it casually, handheld camera feel, cozy social media "
            "aesthetic"
        ),
    ),
    "tiktok": _style(
        "tiktok", "TikTok / Reels", "vidu:4@1",
        description="Fast-paced, bold colors, dynamic transitions",
        base_prompt=(
            "Fast-paced vertical ad for {product}. Quick punch-in zoom, bold saturated "
            "colors, energetic whip-pan transition, high contrast lighting, scroll-stopping "
            "social media energy"
        ),
    ),
    "unboxing": _style(
        "unboxing", "POV Unboxing", "vidu:4@2",
        description="Satisfying unboxing reveal, POV style",
        reveal=True,
        base_prompt=(
            "First-person POV unboxing. Hands open a sleek box, tissue paper folds back, "
            "and {product} is revealed at the end. Soft top light, satisfying slow "
            "movements, ASMR feel"
        ),
    ),
    "minimal": _style(
        "minimal", "Minimal Clean", "vidu:4@1",
        description="Simple surface, soft shadows, modern look",
        base_prompt=(
            "{product} on a plain pastel surface, gentle slow push-in, soft diffused "
            "light with long soft shadows, minimalist modern composition, calm mood"
        ),
    ),
}

DEFAULT_STYLE = "tiktok"


def provider_of(model_id: str) -> str:
    """'vidu:4@1' → 'vidu'."""
    return model_id.split(":", 1)[0]


def get_model(model_id: str) -> ModelInfo:
    """Strict model lookup. Raises UnknownModel."""
    model = MODELS.get(model_id)
    if not model:
        raise UnknownModel(f"Unknown model: {model_id}")
    return model


def resolve(style_or_model_id: str) -> StyleConfig:
    """
    Look up a style by name, or wrap a bare model id as a style with no base prompt.
    Raises UnknownStyle if neither matches.
    """
    style = STYLES.get(style_or_model_id)
    if style:
        return style

    model = MODELS.get(style_or_model_id)
    if model:
        return StyleConfig(
            id=model.id,
            label=model.name,
            model_id=model.id,
            model_name=model.name,
            price=model.price,
            durations=model.durations,
        )

    raise UnknownStyle(f"Unknown style: {style_or_model_id}. Available: {list(STYLES.keys())}")


def resolve_or_default(style_id: Optional[str]) -> StyleConfig:
    """Lenient lookup: unknown or empty styles fall back to DEFAULT_STYLE."""
    if not style_id:
        return STYLES[DEFAULT_STYLE]
    try:
        return resolve(style_id)
    except UnknownStyle:
        logger.warning(f"Unknown style '{style_id}', falling back to '{DEFAULT_STYLE}'")
        return STYLES[DEFAULT_STYLE]


def list_styles() -> list[StyleConfig]:
    return list(STYLES.values())


def list_models() -> list[ModelInfo]:
    return list(MODELS.values())


def clamp_duration(style: StyleConfig, requested: Optional[int]) -> int:
    """Snap a requested duration to the nearest one the style offers."""
    if not requested or requested < 1:
        return style.durations[0]
    return min(style.durations, key=lambda d: (abs(d - requested), d))
