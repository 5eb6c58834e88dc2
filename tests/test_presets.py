import pytest

from adstudio import presets
from adstudio.errors import UnknownModel, UnknownStyle, ValidationError


def test_every_style_points_at_a_catalogued_model():
    for style in presets.list_styles():
        model = presets.get_model(style.model_id)
        assert style.model_name == model.name
        assert style.price == model.price
        assert "{product}" in style.base_prompt


def test_styles_offer_their_model_durations():
    assert presets.STYLES["cinematic"].durations == (4, 6, 8)
    assert presets.STYLES["lifestyle"].durations == (5, 8)
    assert presets.resolve("google:3@3").durations == (4, 6, 8)


def test_default_style_exists():
    assert presets.DEFAULT_STYLE in presets.STYLES


def test_resolve_known_style():
    style = presets.resolve("rotating")
    assert style.id == "rotating"
    assert style.model_id == "vidu:4@2"


def test_resolve_bare_model_id_has_no_base_prompt():
    style = presets.resolve("pixverse:1@7")
    assert style.model_id == "pixverse:1@7"
    assert style.model_name == "PixVerse v5.6"
    assert style.base_prompt == ""


def test_resolve_unknown_raises():
    with pytest.raises(UnknownStyle):
        presets.resolve("vaporwave")


def test_resolve_or_default_falls_back():
    """Unknown and empty styles are lenient."""
    assert presets.resolve_or_default("vaporwave").id == presets.DEFAULT_STYLE
    assert presets.resolve_or_default("").id == presets.DEFAULT_STYLE
    assert presets.resolve_or_default(None).id == presets.DEFAULT_STYLE


def test_get_model_is_strict():
    with pytest.raises(UnknownModel) as exc:
        presets.get_model("sora:9@9")
    assert str(exc.value) == "Unknown model: sora:9@9"
    # UnknownModel is a request validation failure
    assert isinstance(exc.value, ValidationError)


def test_provider_of():
    assert presets.provider_of("vidu:4@1") == "vidu"
    assert presets.get_model("google:3@3").provider == "google"


@pytest.mark.parametrize(
    "style_id, requested, expected",
    [
        ("rotating", 8, 8),
        ("rotating", 10, 8),
        ("rotating", 13, 16),
        ("rotating", None, 5),
        ("rotating", 0, 5),
        ("cinematic", 5, 4),
        ("cinematic", 30, 8),
        ("lifestyle", 16, 8),
    ],
)
def test_clamp_duration(style_id, requested, expected):
    assert presets.clamp_duration(presets.STYLES[style_id], requested) == expected


def test_styles_are_immutable():
    style = presets.STYLES["minimal"]
    with pytest.raises(Exception):
        style.price = 0
