import logging
import os
import time
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from . import config, metrics
from .model_runner import ModelRunnerClient
from .pipeline import GenerationService, InMemoryJobStore, api_router
from .pipeline.routes import set_service
from .pipeline.storage import LocalStorage
from .provider_factory import ProviderFactory

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

storage = LocalStorage()
storage.ensure_dirs()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    metrics.set_gauge("start_time", time.time())
    provider = ProviderFactory.get_provider()
    if not config.USE_MOCK and not config.RUNWARE_API_KEY:
        logger.error("RUNWARE_API_KEY is not set, every job will fail until it is (or set USE_MOCK=true)")

    service = GenerationService(
        store=InMemoryJobStore(),
        provider=provider,
        vision=ModelRunnerClient(),
        storage=storage,
    )
    set_service(service)
    app.state.service = service

    logger.info("Product Video AI backend")
    logger.info(f"  Mode:     {ProviderFactory.mode()}")
    logger.info(f"  Server:   {config.PUBLIC_BASE_URL}")
    logger.info(f"  Frontend: {', '.join(config.CORS_ORIGINS)}")
    yield

    # Shutdown
    logger.info("Shutting down, cancelling in-flight jobs...")
    await service.shutdown()
    set_service(None)


app = FastAPI(title="Product Video AI", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
    allow_credentials=True,
)
app.include_router(api_router)
app.mount("/uploads", StaticFiles(directory=storage.upload_dir), name="uploads")
app.mount("/videos", StaticFiles(directory=storage.video_dir), name="videos")


@app.get("/health")
def health_check():
    """Verify the backend is running and the provider is configured."""
    return {
        "status": "ok",
        "mode": ProviderFactory.mode(),
        "has_key": bool(config.RUNWARE_API_KEY),
    }


@app.get("/metrics")
def metrics_endpoint():
    """Return a snapshot of all generation metrics."""
    return metrics.get_snapshot()


def run():
    port = int(os.environ.get("PORT", config.PORT))
    uvicorn.run("adstudio.main:app", host="0.0.0.0", port=port)


if __name__ == "__main__":
    run()
