"""
Product Video Generation Pipeline

Orchestration for turning product photos into short ad clips:
  Frames  - pick first/last reference images (reveal + continuation rules)
  Prompts - style prompt, continuation prompt, or vision-LLM auto prompt
  Jobs    - in-memory store, one background task per job: submit → poll → finalize
"""

from .job_store import InMemoryJobStore, JobStore
from .models import Job, JobStatus
from .orchestrator import GenerationService
from .routes import api_router

__all__ = [
    "GenerationService",
    "InMemoryJobStore",
    "JobStore",
    "Job",
    "JobStatus",
    "api_router",
]
