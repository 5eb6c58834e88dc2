"""
Vision LLM integration for auto-prompting.

Talks to any OpenAI-compatible chat-completions endpoint (Docker Model Runner
by default). Images are re-encoded to JPEG so small local models that only
understand JPEG still accept WEBP / PNG uploads.
"""

import asyncio
import base64
import logging
from io import BytesIO
from typing import Sequence

import httpx
from PIL import Image

from . import config
from .errors import PromptGenerationFailed

logger = logging.getLogger(__name__)

JPEG_QUALITY = 80
MAX_TOKENS = 300


def encode_jpeg_data_uri(path: str, quality: int = JPEG_QUALITY) -> str:
    """Decode any supported image and return it as a JPEG data URI."""
    with Image.open(path) as img:
        buf = BytesIO()
        img.convert("RGB").save(buf, format="JPEG", quality=quality)
    logger.info(f"AutoPrompt: Image {path} converted to JPEG ({buf.tell() // 1024} KB)")
    return f"data:image/jpeg;base64,{base64.b64encode(buf.getvalue()).decode()}"


class ModelRunnerClient:
    """Minimal chat-completions client with image inputs."""

    def __init__(
        self,
        url: str = config.MODEL_RUNNER_URL,
        model: str = config.MODEL_RUNNER_MODEL,
        timeout: float = config.VISION_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self.model = model
        self.timeout = timeout
        self._transport = transport

    def build_payload(self, instruction: str, image_uris: Sequence[str]) -> dict:
        content: list[dict] = [{"type": "text", "text": instruction}]
        for uri in image_uris:
            content.append({"type": "image_url", "image_url": {"url": uri}})
        return {
            "model": self.model,
            "messages": [{"role": "user", "content": content}],
            "max_tokens": MAX_TOKENS,
        }

    async def complete(self, instruction: str, image_paths: Sequence[str]) -> str:
        """
        Send the instruction plus images, return the first choice's text.

        Raises:
            PromptGenerationFailed on transport errors, non-200 responses or
            bodies without a usable choice.
        """
        image_uris = []
        for path in image_paths:
            try:
                image_uris.append(await asyncio.to_thread(encode_jpeg_data_uri, path))
            except (OSError, ValueError) as e:
                logger.warning(f"AutoPrompt: skipping unreadable image {path}: {e}")
        if not image_uris:
            raise PromptGenerationFailed("No valid images found")

        payload = self.build_payload(instruction, image_uris)
        logger.info(f"AutoPrompt: Sending {len(image_uris)} image(s) to {self.model}...")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(self.url, json=payload)
        except httpx.HTTPError as e:
            raise PromptGenerationFailed(f"Model Runner error: {e}") from e

        if resp.status_code != 200:
            raise PromptGenerationFailed(f"Model Runner {resp.status_code}: {resp.text[:500]}")

        try:
            choices = resp.json().get("choices") or []
            content = choices[0]["message"]["content"]
        except (ValueError, AttributeError, IndexError, KeyError, TypeError) as e:
            raise PromptGenerationFailed("Failed to parse model response") from e

        if not isinstance(content, str):
            raise PromptGenerationFailed("Failed to parse model response")
        return content
