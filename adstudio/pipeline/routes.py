"""
FastAPI routes for product video generation.

  POST /api/upload              - store a product photo
  POST /api/upload-frame        - store a captured last frame (data URL)
  POST /api/generate            - start 1-4 clips, or one continuation segment
  POST /api/auto-prompt         - vision LLM writes the prompt
  GET  /api/status/{id}         - poll one job
  GET  /api/jobs                - every job, newest first
  POST /api/jobs/{id}/cancel    - stop a running job
  POST /api/chain               - aggregate completed jobs into a chain
  GET  /api/styles, /api/models - capability discovery
"""

import logging
from typing import Optional

from fastapi import APIRouter, File, HTTPException, UploadFile

from .. import presets
from ..errors import (
    ImageNotFound,
    JobNotFound,
    PromptGenerationFailed,
    ValidationError,
)
from .models import (
    AutoPromptRequest,
    ChainRequest,
    ChainResponse,
    GenerateRequest,
    GenerateResponse,
    JobStatusResponse,
    UploadFrameRequest,
)
from .orchestrator import GenerationService

logger = logging.getLogger(__name__)

api_router = APIRouter(prefix="/api", tags=["generation"])

# Set by main.py during lifespan
_service: Optional[GenerationService] = None


def set_service(service: Optional[GenerationService]):
    global _service
    _service = service


def get_service() -> GenerationService:
    if _service is None:
        raise HTTPException(status_code=503, detail="Generation service not initialized")
    return _service


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, (ValidationError, ImageNotFound)):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, JobNotFound):
        return HTTPException(status_code=404, detail="Job not found")
    if isinstance(e, PromptGenerationFailed):
        return HTTPException(status_code=502, detail=str(e))
    logger.error(f"Unhandled error: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=str(e))


# ── Uploads ──────────────────────────────────────────────────────────────────

@api_router.post("/upload")
async def upload_image(image: UploadFile = File(...)):
    service = get_service()
    try:
        data = await image.read()
        filename = service.storage.save_upload(data, image.filename or "")
    except Exception as e:
        raise _http_error(e)
    return {
        "message": "Image uploaded successfully",
        "filename": filename,
        "image_url": service.storage.upload_url(filename),
    }


@api_router.post("/upload-frame")
async def upload_frame(request: UploadFrameRequest):
    """Store the last frame of a finished clip as the start of the next segment."""
    service = get_service()
    try:
        filename = service.storage.save_data_url(request.image_data)
    except Exception as e:
        raise _http_error(e)
    return {
        "message": "Frame uploaded successfully",
        "filename": filename,
        "image_url": service.storage.upload_url(filename),
    }


# ── Generation ───────────────────────────────────────────────────────────────

@api_router.post("/generate", response_model=GenerateResponse)
async def generate(request: GenerateRequest):
    """Start generation. Returns immediately; poll /api/status/{id} for results."""
    try:
        return await get_service().generate(request)
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e)


@api_router.post("/auto-prompt")
async def auto_prompt(request: AutoPromptRequest):
    try:
        prompt = await get_service().auto_prompt(request)
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e)
    return {"prompt": prompt}


# ── Job state ────────────────────────────────────────────────────────────────

@api_router.get("/status/{job_id}", response_model=JobStatusResponse)
async def job_status(job_id: str):
    try:
        job = get_service().get_job(job_id)
    except JobNotFound as e:
        raise _http_error(e)
    return job.status_view()


@api_router.get("/jobs")
async def list_jobs():
    return [job.model_dump(mode="json") for job in get_service().list_jobs()]


@api_router.post("/jobs/{job_id}/cancel", response_model=JobStatusResponse)
async def cancel_job(job_id: str):
    try:
        job = await get_service().cancel(job_id)
    except JobNotFound as e:
        raise _http_error(e)
    return job.status_view()


@api_router.post("/chain", response_model=ChainResponse)
async def build_chain(request: ChainRequest):
    try:
        return get_service().build_chain(request.job_ids)
    except HTTPException:
        raise
    except Exception as e:
        raise _http_error(e)


# ── Capabilities ─────────────────────────────────────────────────────────────

@api_router.get("/styles")
async def list_styles():
    return [
        {
            "value": style.id,
            "label": style.label,
            "model": style.model_name,
            "model_id": style.model_id,
            "price": style.price,
            "description": style.description,
            "durations": list(style.durations),
            "default": style.id == presets.DEFAULT_STYLE,
        }
        for style in presets.list_styles()
    ]


@api_router.get("/models")
async def list_models():
    return [model.model_dump() for model in presets.list_models()]
