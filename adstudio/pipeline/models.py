"""
Pydantic models and enums for the generation pipeline.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..errors import JobStateError


# ── Job Status ───────────────────────────────────────────────────────────────

class JobStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


# ── Frames ───────────────────────────────────────────────────────────────────

class FrameRole(str, Enum):
    FIRST = "first"
    LAST = "last"


class Frame(BaseModel):
    """A reference image and the end of the clip it anchors."""
    model_config = ConfigDict(frozen=True)

    path: str
    role: FrameRole


# ── Job ──────────────────────────────────────────────────────────────────────

def new_job_id() -> str:
    return uuid.uuid4().hex


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class Job(BaseModel):
    """
    One asynchronous request to the video provider for a single clip.

    Created by the orchestrator, mutated only by the background task that
    drives it, read by any number of status queries.
    """
    model_config = ConfigDict(protected_namespaces=())

    id: str = Field(default_factory=new_job_id)
    status: JobStatus = JobStatus.PROCESSING
    prompt: str
    style: str
    model: str
    model_id: str
    ratio: str
    duration: int
    created_at: str = Field(default_factory=utc_now_iso)
    video_url: Optional[str] = None
    error: Optional[str] = None
    is_continuation: bool = False

    # internal, not serialized
    image_paths: tuple[str, ...] = Field(default=(), exclude=True, frozen=True)
    task_uuid: Optional[str] = Field(default=None, exclude=True)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def mark_completed(self, video_url: str) -> None:
        if self.is_terminal:
            raise JobStateError(f"Job {self.id} is already {self.status.value}")
        if not video_url:
            raise ValueError("video_url is required to complete a job")
        self.status = JobStatus.COMPLETED
        self.video_url = video_url
        self.error = None

    def mark_failed(self, error: str) -> None:
        if self.is_terminal:
            raise JobStateError(f"Job {self.id} is already {self.status.value}")
        self.status = JobStatus.FAILED
        self.error = error or "Unknown error"
        self.video_url = None

    def status_view(self) -> dict:
        return {
            "id": self.id,
            "status": self.status.value,
            "video_url": self.video_url or "",
            "error": self.error or "",
        }


# ── Provider task ────────────────────────────────────────────────────────────

class VideoTask(BaseModel):
    """Everything a provider needs to start one clip."""
    model_config = ConfigDict(protected_namespaces=())

    task_uuid: str = Field(default_factory=lambda: str(uuid.uuid4()))
    prompt: str
    model_id: str
    width: int
    height: int
    duration: int
    frames: list[Frame] = Field(default_factory=list)


class ProviderResult(BaseModel):
    """Normalised answer to a submit or poll call."""
    status: str = "processing"  # processing | success | error
    video_url: Optional[str] = None
    error: Optional[str] = None
    cost: Optional[float] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "success" and bool(self.video_url)

    @property
    def failed(self) -> bool:
        return self.status == "error"


# ── Chain ────────────────────────────────────────────────────────────────────

class ChainSegment(BaseModel):
    job_id: str
    video_url: str
    prompt: str
    style: str
    duration: int

    @classmethod
    def from_job(cls, job: Job) -> "ChainSegment":
        return cls(
            job_id=job.id,
            video_url=job.video_url or "",
            prompt=job.prompt,
            style=job.style,
            duration=job.duration,
        )


# ── API Request Models ───────────────────────────────────────────────────────

class GenerateRequest(BaseModel):
    """Start one or more clips, or one continuation segment."""
    filenames: list[str] = Field(default_factory=list)
    style: str = ""
    model: Optional[str] = Field(None, description="Explicit model id, e.g. 'vidu:4@1'")
    ratio: str = "9:16"
    custom_prompt: str = ""
    product_name: str = ""
    count: int = 1
    duration: Optional[int] = None

    # continuation
    is_continuation: bool = False
    last_frame_filename: Optional[str] = None
    original_filenames: list[str] = Field(default_factory=list)
    previous_prompt: str = ""
    segment_number: int = 2


class AutoPromptRequest(BaseModel):
    """Ask the vision LLM to write a prompt from the uploaded images."""
    filenames: list[str] = Field(default_factory=list)
    filename: Optional[str] = None
    style: str = ""
    duration: int = 0
    product_name: str = ""
    scene_number: int = 1
    total_scenes: int = 1
    previous_prompts: list[str] = Field(default_factory=list)

    # continuation
    is_continuation: bool = False
    frame_filename: Optional[str] = None
    previous_prompt: str = ""
    segment_number: int = 2

    def all_filenames(self) -> list[str]:
        names = list(self.filenames)
        if self.filename and self.filename not in names:
            names.insert(0, self.filename)
        return names


class UploadFrameRequest(BaseModel):
    image_data: str = Field(..., description="data:image/...;base64,... captured frame")


class ChainRequest(BaseModel):
    job_ids: list[str]


# ── API Response Models ──────────────────────────────────────────────────────

class GenerateResponse(BaseModel):
    job_ids: list[str]
    status: str = JobStatus.PROCESSING.value
    message: str = "Video generation started"
    style: str
    model: str
    duration: int
    ratio: str
    price_per_video: float
    estimated_cost: float


class JobStatusResponse(BaseModel):
    id: str
    status: JobStatus
    video_url: str = ""
    error: str = ""


class ChainResponse(BaseModel):
    segments: list[ChainSegment]
    total_duration: int
