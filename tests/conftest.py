import os

import pytest
from PIL import Image

from adstudio import metrics
from adstudio.pipeline.storage import LocalStorage


@pytest.fixture(autouse=True)
def clean_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def storage(tmp_path):
    store = LocalStorage(
        upload_dir=str(tmp_path / "uploads"),
        video_dir=str(tmp_path / "videos"),
        public_base_url="http://testserver",
    )
    store.ensure_dirs()
    return store


@pytest.fixture
def make_image(storage):
    """Write a small real PNG into the upload dir and return its filename."""
    def _make(name: str = "product.png", color=(200, 40, 40)) -> str:
        Image.new("RGB", (16, 16), color).save(os.path.join(storage.upload_dir, name))
        return name
    return _make
