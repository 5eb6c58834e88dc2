import asyncio
import json
import logging
import random
from typing import Optional

import httpx

from . import config
from .errors import ProviderError, TransportError
from .pipeline.models import ProviderResult, VideoTask
from .pipeline.storage import encode_data_uri
from .provider_factory import apply_provider_settings

logger = logging.getLogger(__name__)

# ── Retry configuration (submit only) ────────────────────────────────────────
MAX_RETRIES = 3
BASE_DELAY = 2.0       # seconds, doubles each retry: 2, 4, 8
JITTER_MAX = 1.0       # random jitter 0–1s added to each delay
RETRYABLE_STATUS_CODES = {429, 502, 503, 504}


def _parse_body(body: bytes) -> Optional[dict]:
    try:
        parsed = json.loads(body)
    except (ValueError, TypeError):
        return None
    return parsed if isinstance(parsed, dict) else None


def _first_error(parsed: dict) -> Optional[str]:
    for err in parsed.get("errors") or []:
        if isinstance(err, dict) and err.get("message"):
            return err["message"]
    return None


def _read_results(parsed: dict) -> ProviderResult:
    """Collapse a Runware `data` array into one result for our single task."""
    for item in parsed.get("data") or []:
        if not isinstance(item, dict):
            continue
        status = item.get("status", "")
        if status == "success" and item.get("videoURL"):
            return ProviderResult(status="success", video_url=item["videoURL"], cost=item.get("cost"))
        if status == "error":
            return ProviderResult(status="error", error=item.get("message") or "Unknown error")
    return ProviderResult(status="processing")


class RunwareClient:
    """
    Runware video inference over the REST task API.

    submit() starts an async `videoInference` task, poll() asks for its
    `getResponse`, download() fetches the finished mp4.
    """

    def __init__(
        self,
        api_key: str = config.RUNWARE_API_KEY,
        api_url: str = config.RUNWARE_API_URL,
        transport: httpx.AsyncBaseTransport | None = None,
        base_delay: float = BASE_DELAY,
        jitter: float = JITTER_MAX,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self._transport = transport
        self._base_delay = base_delay
        self._jitter = jitter

    @property
    def has_key(self) -> bool:
        return bool(self.api_key)

    def _headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def build_payload(self, task: VideoTask) -> list[dict]:
        frame_images = [
            {"inputImage": encode_data_uri(frame.path), "frame": frame.role.value}
            for frame in task.frames
        ]
        payload = {
            "taskType": "videoInference",
            "taskUUID": task.task_uuid,
            "positivePrompt": task.prompt,
            "model": task.model_id,
            "width": task.width,
            "height": task.height,
            "duration": task.duration,
            "deliveryMethod": "async",
            "outputFormat": "mp4",
            "numberResults": 1,
            "includeCost": True,
            "outputQuality": 85,
            "frameImages": frame_images,
        }
        apply_provider_settings(payload, task.model_id)
        return [payload]

    async def _post_with_backoff(self, body: list[dict], timeout: float) -> httpx.Response:
        """
        POST with exponential backoff on retryable errors (429, 5xx, network).

        Uses: base_delay * 2^attempt + random jitter
        """
        async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
            for attempt in range(MAX_RETRIES + 1):
                try:
                    response = await client.post(self.api_url, headers=self._headers(), json=body)
                except httpx.TransportError as e:
                    if attempt >= MAX_RETRIES:
                        raise TransportError(f"Runware API error: {e}") from e
                    delay = self._base_delay * (2 ** attempt) + random.uniform(0, self._jitter)
                    logger.warning(
                        f"Runware request error on attempt {attempt + 1}/{MAX_RETRIES + 1}: {e}, "
                        f"retrying in {delay:.1f}s"
                    )
                    await asyncio.sleep(delay)
                    continue

                if response.status_code not in RETRYABLE_STATUS_CODES or attempt >= MAX_RETRIES:
                    return response

                retry_after = response.headers.get("Retry-After")
                if retry_after and retry_after.isdigit():
                    delay = int(retry_after)
                else:
                    delay = self._base_delay * (2 ** attempt) + random.uniform(0, self._jitter)
                logger.warning(
                    f"Runware {response.status_code} on attempt {attempt + 1}/{MAX_RETRIES + 1}, "
                    f"retrying in {delay:.1f}s"
                )
                await asyncio.sleep(delay)

        raise TransportError(f"Request to {self.api_url} failed after {MAX_RETRIES + 1} attempts")

    async def submit(self, task: VideoTask) -> ProviderResult:
        """
        Start a task. Returns a success result when Runware answers synchronously,
        otherwise a processing result to be polled by task.task_uuid.

        Raises:
            ProviderError:  missing key, non-200 or explicit error in the response.
            TransportError: network failure after all retries.
        """
        if not self.api_key:
            raise ProviderError("RUNWARE_API_KEY not set")

        body = await asyncio.to_thread(self.build_payload, task)
        logger.info(f"Calling Runware ({task.model_id}) task={task.task_uuid}...")

        response = await self._post_with_backoff(body, timeout=config.SUBMIT_TIMEOUT)
        logger.info(f"Runware submit [{response.status_code}]: {response.text[:500]}")

        if response.status_code != 200:
            raise ProviderError(f"Runware API {response.status_code}: {response.text[:500]}")

        parsed = _parse_body(response.content)
        if parsed is None:
            raise ProviderError("Failed to parse response")

        message = _first_error(parsed)
        if message:
            raise ProviderError(message)

        result = _read_results(parsed)
        if result.failed:
            raise ProviderError(result.error or "Unknown error")
        return result

    async def poll(self, task_uuid: str) -> ProviderResult:
        """
        One status check. Unparsable bodies count as still processing.

        Raises:
            TransportError: the request itself failed (caller retries next interval).
        """
        body = [{"taskType": "getResponse", "taskUUID": task_uuid}]
        try:
            async with httpx.AsyncClient(timeout=config.POLL_TIMEOUT, transport=self._transport) as client:
                response = await client.post(self.api_url, headers=self._headers(), json=body)
        except httpx.TransportError as e:
            raise TransportError(f"Poll error: {e}") from e

        logger.info(f"Runware poll [{response.status_code}]: {response.text[:300]}")

        parsed = _parse_body(response.content)
        if parsed is None:
            return ProviderResult(status="processing")

        message = _first_error(parsed)
        if message:
            return ProviderResult(status="error", error=message)
        return _read_results(parsed)

    async def download(self, url: str) -> bytes:
        try:
            async with httpx.AsyncClient(
                timeout=config.DOWNLOAD_TIMEOUT, transport=self._transport, follow_redirects=True
            ) as client:
                resp = await client.get(url)
                resp.raise_for_status()
                return resp.content
        except httpx.HTTPError as e:
            raise TransportError(f"Download failed: {e}") from e
