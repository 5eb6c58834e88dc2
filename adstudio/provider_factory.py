from typing import Callable, Dict

from . import config
from .presets import provider_of

# Each provider owns the extra fields it adds to a videoInference task.
ProviderSettingsBuilder = Callable[[dict], None]


def _google_settings(payload: dict) -> None:
    payload["fps"] = 24
    payload["providerSettings"] = {
        "google": {"generateAudio": True, "enhancePrompt": True},
    }


def _vidu_settings(payload: dict) -> None:
    payload["providerSettings"] = {"vidu": {"audio": True}}


def _pixverse_settings(payload: dict) -> None:
    payload["providerSettings"] = {"pixverse": {"thinking": "auto"}}


PROVIDER_SETTINGS: Dict[str, ProviderSettingsBuilder] = {
    "google": _google_settings,
    "vidu": _vidu_settings,
    "pixverse": _pixverse_settings,
}


def apply_provider_settings(payload: dict, model_id: str) -> dict:
    """Add model-specific options; unknown providers get the bare task."""
    builder = PROVIDER_SETTINGS.get(provider_of(model_id))
    if builder:
        builder(payload)
    return payload


class ProviderFactory:
    @staticmethod
    def get_provider(use_mock: bool = config.USE_MOCK):
        """Runware in production, the mock provider for credential-free runs."""
        if use_mock:
            from .mock_provider import MockVideoProvider
            return MockVideoProvider()

        from .runware import RunwareClient
        return RunwareClient()

    @staticmethod
    def mode(use_mock: bool = config.USE_MOCK) -> str:
        return "MOCK" if use_mock else "Runware AI"
