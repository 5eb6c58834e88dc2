"""Scripted stand-ins for the video provider and the vision LLM."""

from adstudio.errors import TransportError
from adstudio.pipeline.models import ProviderResult

REMOTE_URL = "https://cdn.example.com/clip.mp4"


class StubProvider:
    """
    submit() returns `submit_result` (processing by default); each poll() pops
    the next scripted item, repeating the last one once the script runs out.
    Exceptions in the script are raised instead of returned.
    """

    def __init__(self, poll_script=None, submit_result=None, download_error=None, video_bytes=b"mp4-bytes"):
        self.poll_script = list(poll_script or [ProviderResult(status="processing")])
        self.submit_result = submit_result or ProviderResult(status="processing")
        self.download_error = download_error
        self.video_bytes = video_bytes
        self.submitted = []
        self.polls = 0
        self.downloads = []

    async def submit(self, task):
        self.submitted.append(task)
        if isinstance(self.submit_result, Exception):
            raise self.submit_result
        return self.submit_result

    async def poll(self, task_uuid):
        index = min(self.polls, len(self.poll_script) - 1)
        self.polls += 1
        item = self.poll_script[index]
        if isinstance(item, Exception):
            raise item
        return item

    async def download(self, url):
        self.downloads.append(url)
        if self.download_error:
            raise self.download_error
        return self.video_bytes


def success(url=REMOTE_URL):
    return ProviderResult(status="success", video_url=url)


def processing():
    return ProviderResult(status="processing")


def error(message):
    return ProviderResult(status="error", error=message)


def transport_error():
    return TransportError("Poll error: connection reset")


class StubVision:
    def __init__(self, reply="Slow orbit on marble. Warm rim light.", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    async def complete(self, instruction, image_paths):
        self.calls.append((instruction, list(image_paths)))
        if self.error:
            raise self.error
        return self.reply
