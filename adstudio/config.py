"""Service configuration - provider credentials, local paths, polling budget."""

import os

from dotenv import load_dotenv

load_dotenv()

# ---------------------------------------------------------------------------
# Video provider (Runware)
# ---------------------------------------------------------------------------
RUNWARE_API_KEY = os.getenv("RUNWARE_API_KEY", "")
RUNWARE_API_URL = os.getenv("RUNWARE_API_URL", "https://api.runware.ai/v1")
USE_MOCK = os.getenv("USE_MOCK", "false").lower() in ("1", "true", "yes")

# ---------------------------------------------------------------------------
# Vision LLM (OpenAI-compatible Model Runner)
# ---------------------------------------------------------------------------
MODEL_RUNNER_URL = os.getenv(
    "MODEL_RUNNER_URL",
    "http://localhost:12434/engines/llama.cpp/v1/chat/completions",
)
MODEL_RUNNER_MODEL = os.getenv("MODEL_RUNNER_MODEL", "ai/gemma3:4B-Q4_K_M")

# ---------------------------------------------------------------------------
# Local storage + public URLs
# ---------------------------------------------------------------------------
UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
VIDEO_DIR = os.getenv("VIDEO_DIR", "videos")
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:8080").rstrip("/")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]
PORT = int(os.getenv("PORT", "8080"))

# ---------------------------------------------------------------------------
# Job polling budget: 120 x 5s ≈ 10 minutes per job
# ---------------------------------------------------------------------------
POLL_INTERVAL_SECONDS = float(os.getenv("POLL_INTERVAL_SECONDS", "5"))
MAX_POLL_ATTEMPTS = int(os.getenv("MAX_POLL_ATTEMPTS", "120"))

# HTTP timeouts (seconds)
SUBMIT_TIMEOUT = 30
POLL_TIMEOUT = 60
DOWNLOAD_TIMEOUT = 120
VISION_TIMEOUT = 60
