"""
GenerationService - turns generation requests into tracked provider jobs.

Per job, as its own asyncio task:
  1. Submit:   frames + prompt + model options → provider task
  2. Shortcut: a synchronous success skips polling
  3. Poll:     every poll_interval, up to max_poll_attempts
               - provider error   → failed, stop polling
               - success + URL    → finalize
               - transport errors → ignored, try again next interval
  4. Finalize: cache the mp4 locally; if that fails keep the remote URL
  5. Timeout:  budget exhausted → failed

Everything that can be wrong with a request is checked before the first Job
is created. Everything that goes wrong afterwards lands on the Job record.
"""

import asyncio
import logging
import time
from typing import Optional, Protocol, Sequence

from .. import config, metrics, presets
from ..errors import (
    AdStudioError,
    ImageNotFound,
    JobStateError,
    PromptGenerationFailed,
    ProviderError,
    ProviderTimeout,
    TransportError,
    ValidationError,
)
from ..presets import StyleConfig
from . import prompts
from .frames import ensure_exists, resolve_continuation_frames, resolve_frames
from .job_store import JobStore
from .models import (
    AutoPromptRequest,
    ChainResponse,
    ChainSegment,
    Frame,
    GenerateRequest,
    GenerateResponse,
    Job,
    JobStatus,
    ProviderResult,
    VideoTask,
)
from .storage import LocalStorage

logger = logging.getLogger(__name__)

MAX_VIDEOS = 4
DEFAULT_AUTO_PROMPT_DURATION = 4

# Aspect ratio presets (720p)
RATIO_SIZES = {
    "9:16": (720, 1280),
    "16:9": (1280, 720),
    "1:1": (720, 720),
}
DEFAULT_RATIO = "9:16"


class VideoProvider(Protocol):
    async def submit(self, task: VideoTask) -> ProviderResult:
        """Start a task; may already contain the finished result."""

    async def poll(self, task_uuid: str) -> ProviderResult:
        """Current state of a task. Raises TransportError on network failure."""

    async def download(self, url: str) -> bytes:
        """Fetch a finished video. Raises TransportError on failure."""


def normalize_ratio(ratio: Optional[str]) -> str:
    return ratio if ratio in RATIO_SIZES else DEFAULT_RATIO


def clamp_count(count: Optional[int]) -> int:
    return max(1, min(MAX_VIDEOS, count or 1))


class GenerationService:
    """
    Usage:
        service = GenerationService(InMemoryJobStore(), RunwareClient(), ModelRunnerClient())
        response = await service.generate(GenerateRequest(filenames=[...], style="rotating"))
        job = service.get_job(response.job_ids[0])
    """

    def __init__(
        self,
        store: JobStore,
        provider: VideoProvider,
        vision: Optional[prompts.VisionClient] = None,
        storage: Optional[LocalStorage] = None,
        poll_interval: float = config.POLL_INTERVAL_SECONDS,
        max_poll_attempts: int = config.MAX_POLL_ATTEMPTS,
    ):
        self.store = store
        self.provider = provider
        self.vision = vision
        self.storage = storage or LocalStorage()
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts
        self._tasks: dict[str, asyncio.Task] = {}

    # ── Reads ────────────────────────────────────────────────────────────

    def get_job(self, job_id: str) -> Job:
        return self.store.get(job_id)

    def list_jobs(self) -> list[Job]:
        return sorted(self.store.list(), key=lambda j: j.created_at, reverse=True)

    # ── Submission ───────────────────────────────────────────────────────

    def _select_style(self, request: GenerateRequest) -> StyleConfig:
        style = presets.resolve_or_default(request.style)
        if request.model:
            model = presets.get_model(request.model)
            style = style.model_copy(update={
                "model_id": model.id,
                "model_name": model.name,
                "price": model.price,
                "durations": model.durations,
            })
        return style

    def _upload_paths(self, filenames: Sequence[str]) -> list[str]:
        paths = [self.storage.upload_path(name) for name in filenames]
        ensure_exists(paths)
        return paths

    async def generate(self, request: GenerateRequest) -> GenerateResponse:
        """
        Validate, resolve frames and prompt, create the Jobs and start them.

        Raises (before any Job exists):
            ValidationError / UnknownModel: bad input.
            ImageNotFound:                 a referenced upload is missing.
        """
        metrics.inc_counter("requests.generate")

        style = self._select_style(request)
        ratio = normalize_ratio(request.ratio)
        duration = presets.clamp_duration(style, request.duration)

        if request.is_continuation:
            frames, prompt = self._plan_continuation(request, style, duration)
            count = 1
        else:
            frames, prompt = self._plan_generation(request, style)
            count = clamp_count(request.count)

        width, height = RATIO_SIZES[ratio]
        job_ids = []
        for _ in range(count):
            job = self.store.create(Job(
                prompt=prompt,
                style=style.id,
                model=style.model_name,
                model_id=style.model_id,
                ratio=ratio,
                duration=duration,
                is_continuation=request.is_continuation,
                image_paths=tuple(frame.path for frame in frames),
            ))
            job_ids.append(job.id)
            metrics.inc_counter("jobs.created")
            logger.info(f"Job {job.id}: Model={job.model} Images={len(frames)} Style={style.id}")
            logger.info(f"Job {job.id}: Prompt={prompt}")
            self._start(job.id, frames, width, height)

        return GenerateResponse(
            job_ids=job_ids,
            style=style.id,
            model=style.model_name,
            duration=duration,
            ratio=ratio,
            price_per_video=style.price,
            estimated_cost=round(style.price * count, 2),
        )

    def _plan_generation(self, request: GenerateRequest, style: StyleConfig) -> tuple[list[Frame], str]:
        if not request.filenames:
            raise ValidationError("filenames is required")
        paths = self._upload_paths(request.filenames)
        frames = resolve_frames(paths, reveal=style.reveal)
        prompt = prompts.compose(style, request.custom_prompt, request.product_name)
        return frames, prompt

    def _plan_continuation(
        self, request: GenerateRequest, style: StyleConfig, duration: int
    ) -> tuple[list[Frame], str]:
        if not request.last_frame_filename:
            raise ValidationError("last_frame_filename is required for continuations")

        captured = self._upload_paths([request.last_frame_filename])[0]
        originals = self._upload_paths(request.original_filenames or request.filenames)
        anchor = originals[0] if originals else None

        frames = resolve_continuation_frames(captured, anchor, duration)
        prompt = prompts.compose_continuation(
            request.product_name,
            request.previous_prompt,
            request.segment_number,
            duration,
            custom_text=request.custom_prompt,
        )
        return frames, prompt

    # ── Background lifecycle ─────────────────────────────────────────────

    def _start(self, job_id: str, frames: list[Frame], width: int, height: int) -> None:
        task = asyncio.create_task(self._run_job(job_id, frames, width, height), name=f"job-{job_id}")
        self._tasks[job_id] = task
        task.add_done_callback(lambda _t: self._tasks.pop(job_id, None))

    async def _run_job(self, job_id: str, frames: list[Frame], width: int, height: int) -> None:
        started = time.monotonic()
        metrics.add_gauge("active_jobs", 1)
        try:
            job = self.store.get(job_id)
            task = VideoTask(
                prompt=job.prompt,
                model_id=job.model_id,
                width=width,
                height=height,
                duration=job.duration,
                frames=frames,
            )
            self.store.mutate(job_id, lambda j: setattr(j, "task_uuid", task.task_uuid))

            result = await self.provider.submit(task)
            if result.failed:
                raise ProviderError(result.error or "Unknown error")
            if not result.succeeded:
                logger.info(f"Job {job_id}: Async, polling...")
                result = await self._poll(job_id, task.task_uuid)

            await self._finalize(job_id, result.video_url)

        except asyncio.CancelledError:
            self._fail(job_id, "Cancelled")
            raise
        except AdStudioError as e:
            self._fail(job_id, str(e))
        except Exception as e:
            logger.error(f"Job {job_id}: unexpected error: {e}", exc_info=True)
            self._fail(job_id, str(e) or type(e).__name__)
        finally:
            metrics.add_gauge("active_jobs", -1)
            metrics.record_latency("job_duration", time.monotonic() - started)

    async def _poll(self, job_id: str, task_uuid: str) -> ProviderResult:
        for attempt in range(1, self.max_poll_attempts + 1):
            await asyncio.sleep(self.poll_interval)
            try:
                result = await self.provider.poll(task_uuid)
            except TransportError as e:
                logger.warning(f"Job {job_id}: Poll #{attempt} error: {e}")
                continue

            if result.failed:
                raise ProviderError(result.error or "Unknown error")
            if result.succeeded:
                return result

        raise ProviderTimeout("Timed out waiting for video")

    async def _finalize(self, job_id: str, remote_url: str) -> None:
        logger.info(f"Job {job_id}: Done! Downloading {remote_url}")
        try:
            data = await self.provider.download(remote_url)
            video_url = await asyncio.to_thread(self.storage.save_video, job_id, data)
        except (TransportError, OSError) as e:
            logger.warning(f"Job {job_id}: Download failed: {e}, using remote URL")
            metrics.inc_counter("jobs.download_fallback")
            video_url = remote_url
        self._complete(job_id, video_url)

    def _complete(self, job_id: str, video_url: str) -> None:
        try:
            self.store.mutate(job_id, lambda j: j.mark_completed(video_url))
        except JobStateError as e:
            logger.warning(f"Job {job_id}: ignoring completion: {e}")
            return
        metrics.inc_counter("jobs.completed")

    def _fail(self, job_id: str, error: str) -> None:
        try:
            self.store.mutate(job_id, lambda j: j.mark_failed(error))
        except JobStateError as e:
            logger.warning(f"Job {job_id}: ignoring failure '{error}': {e}")
            return
        logger.error(f"Job {job_id} FAILED: {error}")
        metrics.inc_counter("jobs.failed")
        metrics.record_error("job", job_id, error)

    # ── Task control ─────────────────────────────────────────────────────

    def is_running(self, job_id: str) -> bool:
        task = self._tasks.get(job_id)
        return task is not None and not task.done()

    async def wait(self, job_id: str) -> Job:
        """Block until the job's background task has finished."""
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.wait({task})
        return self.store.get(job_id)

    async def cancel(self, job_id: str) -> Job:
        """Stop a job's background task. A cancelled job ends failed with 'Cancelled'."""
        self.store.get(job_id)
        task = self._tasks.get(job_id)
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})
        if not self.store.get(job_id).is_terminal:
            self._fail(job_id, "Cancelled")
        return self.store.get(job_id)

    async def shutdown(self) -> None:
        """Cancel every in-flight job and wait for the tasks to unwind."""
        tasks = [t for t in self._tasks.values() if not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Cancelled {len(tasks)} in-flight job(s)")

    # ── Auto prompt ──────────────────────────────────────────────────────

    async def auto_prompt(self, request: AutoPromptRequest) -> str:
        """
        Ask the vision LLM for a prompt.

        Raises:
            ValidationError:         no usable images.
            ImageNotFound:           continuation frame missing.
            PromptGenerationFailed:  the LLM call failed. There is no fallback.
        """
        metrics.inc_counter("requests.auto_prompt")
        style = presets.resolve_or_default(request.style)
        duration = request.duration if request.duration >= 1 else DEFAULT_AUTO_PROMPT_DURATION
        style_hint = f"{style.label} ({style.description})" if style.description else style.label

        # Missing product photos are skipped, not fatal
        product_paths = [
            path for path in (self.storage.find_upload(name) for name in request.all_filenames())
            if path
        ]

        if request.is_continuation:
            if not request.frame_filename:
                raise ValidationError("frame_filename is required for continuation prompts")
            frame_path = self.storage.find_upload(request.frame_filename)
            if not frame_path:
                raise ImageNotFound(request.frame_filename)
            paths = [frame_path] + product_paths[:1]
            instruction = prompts.continuation_instruction(
                request.product_name,
                request.previous_prompt,
                max(request.segment_number, 2),
                duration,
                style_hint,
            )
        else:
            if not request.all_filenames():
                raise ValidationError("filenames is required")
            if not product_paths:
                raise ValidationError("No valid images found")
            paths = product_paths
            instruction = prompts.scene_instruction(
                request.product_name,
                duration,
                style_hint,
                request.scene_number,
                request.previous_prompts,
            )

        if self.vision is None:
            raise PromptGenerationFailed("No vision model configured")

        logger.info(
            f"AutoPrompt: {len(paths)} image(s), scene {request.scene_number}/{request.total_scenes}, "
            f"continuation={request.is_continuation}"
        )
        return await prompts.auto_prompt(self.vision, paths, instruction)

    # ── Chains ───────────────────────────────────────────────────────────

    def build_chain(self, job_ids: Sequence[str]) -> ChainResponse:
        """Aggregate completed jobs, in the given order, into chain segments."""
        if not job_ids:
            raise ValidationError("job_ids is required")

        segments = []
        for job_id in job_ids:
            job = self.store.get(job_id)
            if job.status != JobStatus.COMPLETED:
                raise ValidationError(f"Job {job_id} is {job.status.value}, not completed")
            segments.append(ChainSegment.from_job(job))

        return ChainResponse(
            segments=segments,
            total_duration=sum(s.duration for s in segments),
        )
