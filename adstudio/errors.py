"""
Error taxonomy for the generation pipeline.

Errors raised before a Job exists propagate to the request that caused them.
Errors raised after a Job exists are recorded on the Job (status=failed) and
are only observed through status polling.
"""


class AdStudioError(Exception):
    """Base class for every pipeline error."""


# ── Request-time errors ──────────────────────────────────────────────────────

class ValidationError(AdStudioError, ValueError):
    """Bad or missing input. The request is rejected and no Job is created."""


class UnknownModel(ValidationError):
    """An explicit model id that is not in the catalogue."""


class UnknownStyle(AdStudioError, LookupError):
    """Style name not in the registry. Callers fall back to the default style."""


class ResourceNotFound(AdStudioError, LookupError):
    """A referenced image or job does not exist."""


class ImageNotFound(ResourceNotFound):
    def __init__(self, filename: str):
        super().__init__(f"Image not found: {filename}")
        self.filename = filename


class JobNotFound(ResourceNotFound):
    def __init__(self, job_id: str):
        super().__init__(f"Job not found: {job_id}")
        self.job_id = job_id


class PromptGenerationFailed(AdStudioError, RuntimeError):
    """The vision LLM could not produce a prompt. Never silently replaced."""


# ── Job-time errors ──────────────────────────────────────────────────────────

class ProviderError(AdStudioError, RuntimeError):
    """The video provider reported an explicit failure."""


class ProviderTimeout(AdStudioError, TimeoutError):
    """The poll budget ran out before the provider reached a terminal state."""


class TransportError(AdStudioError, ConnectionError):
    """Network-level failure talking to a provider. Retried where possible."""


class JobStateError(AdStudioError, RuntimeError):
    """Attempted to move a Job out of a terminal state."""
