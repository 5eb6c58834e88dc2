import asyncio
import json
import os
import threading

import httpx
import pytest
from PIL import Image

from adstudio.errors import PromptGenerationFailed
from adstudio.model_runner import ModelRunnerClient, encode_jpeg_data_uri


def _client(handler):
    return ModelRunnerClient(
        url="http://runner.test/v1/chat/completions",
        model="ai/gemma3",
        transport=httpx.MockTransport(handler),
    )


def _reply(text):
    return {"choices": [{"message": {"role": "assistant", "content": text}}]}


def test_webp_is_reencoded_as_jpeg(tmp_path):
    path = tmp_path / "product.webp"
    Image.new("RGBA", (8, 8), (0, 128, 255, 200)).save(path, format="WEBP")
    assert encode_jpeg_data_uri(str(path)).startswith("data:image/jpeg;base64,")


def test_complete_sends_text_then_images(storage, make_image):
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200, json=_reply("Slow orbit. Warm light."))

    paths = [storage.upload_path(make_image("a.png")), storage.upload_path(make_image("b.png"))]
    text = asyncio.run(_client(handler).complete("Write a prompt", paths))

    assert text == "Slow orbit. Warm light."
    [payload] = seen
    assert payload["model"] == "ai/gemma3"
    content = payload["messages"][0]["content"]
    assert content[0] == {"type": "text", "text": "Write a prompt"}
    assert [c["type"] for c in content[1:]] == ["image_url", "image_url"]
    assert content[1]["image_url"]["url"].startswith("data:image/jpeg;base64,")


def test_unreadable_images_are_skipped(storage, make_image):
    broken = os.path.join(storage.upload_dir, "broken.png")
    with open(broken, "wb") as f:
        f.write(b"not an image")
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200, json=_reply("ok"))

    asyncio.run(_client(handler).complete("x", [broken, storage.upload_path(make_image())]))
    assert len(seen[0]["messages"][0]["content"]) == 2


def test_no_readable_images(storage):
    broken = os.path.join(storage.upload_dir, "broken.png")
    with open(broken, "wb") as f:
        f.write(b"not an image")
    client = _client(lambda request: httpx.Response(200, json=_reply("ok")))
    with pytest.raises(PromptGenerationFailed, match="No valid images found"):
        asyncio.run(client.complete("x", [broken]))


def test_non_200_fails(storage, make_image):
    client = _client(lambda request: httpx.Response(500, text="model not loaded"))
    with pytest.raises(PromptGenerationFailed, match="Model Runner 500"):
        asyncio.run(client.complete("x", [storage.upload_path(make_image())]))


def test_malformed_body_fails(storage, make_image):
    client = _client(lambda request: httpx.Response(200, json={"choices": []}))
    with pytest.raises(PromptGenerationFailed, match="Failed to parse model response"):
        asyncio.run(client.complete("x", [storage.upload_path(make_image())]))


def test_connection_error_fails(storage, make_image):
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(PromptGenerationFailed, match="Model Runner error"):
        asyncio.run(_client(handler).complete("x", [storage.upload_path(make_image())]))


def test_images_are_encoded_off_the_event_loop(storage, make_image, monkeypatch):
    threads = []

    def fake_encode(path):
        threads.append(threading.current_thread())
        return "data:image/jpeg;base64,AAAA"

    monkeypatch.setattr("adstudio.model_runner.encode_jpeg_data_uri", fake_encode)
    client = _client(lambda request: httpx.Response(200, json=_reply("ok")))
    asyncio.run(client.complete("x", [storage.upload_path(make_image())]))

    assert len(threads) == 1
    assert threads[0] is not threading.main_thread()
