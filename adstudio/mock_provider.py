import asyncio
import logging
import time

import httpx

from .errors import TransportError
from .pipeline.models import ProviderResult, VideoTask
from .pipeline.storage import download_bytes

logger = logging.getLogger(__name__)

SAMPLE_VIDEO_URL = "https://www.w3schools.com/html/mov_bbb.mp4"
MAX_TRACKED_TASKS = 256  # oldest renders are forgotten past this


class MockVideoProvider:
    """
    Stand-in for Runware when USE_MOCK is set.
    Every task "renders" for a few seconds and then returns a sample clip.
    """

    def __init__(
        self,
        render_seconds: float = 5.0,
        video_url: str = SAMPLE_VIDEO_URL,
        max_tracked: int = MAX_TRACKED_TASKS,
    ):
        self.render_seconds = render_seconds
        self.video_url = video_url
        self.max_tracked = max_tracked
        self._started: dict[str, float] = {}

    @property
    def has_key(self) -> bool:
        return True

    async def submit(self, task: VideoTask) -> ProviderResult:
        logger.info(
            f"Mock generation: Model={task.model_id}, Frames={len(task.frames)}, Prompt={task.prompt}"
        )
        # abandoned tasks are evicted oldest first
        while len(self._started) >= self.max_tracked:
            self._started.pop(next(iter(self._started)))
        self._started[task.task_uuid] = time.monotonic()
        await asyncio.sleep(0)
        return ProviderResult(status="processing")

    async def poll(self, task_uuid: str) -> ProviderResult:
        started = self._started.get(task_uuid)
        if started is None:
            return ProviderResult(status="error", error=f"Unknown task {task_uuid}")
        if time.monotonic() - started < self.render_seconds:
            return ProviderResult(status="processing")
        self._started.pop(task_uuid, None)
        return ProviderResult(status="success", video_url=self.video_url)

    async def download(self, url: str) -> bytes:
        try:
            return await download_bytes(url)
        except httpx.HTTPError as e:
            raise TransportError(f"Download failed: {e}") from e
