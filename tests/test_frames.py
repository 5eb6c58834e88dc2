import os

import pytest

from adstudio.errors import ImageNotFound, ValidationError
from adstudio.pipeline.frames import resolve_continuation_frames, resolve_frames
from adstudio.pipeline.models import FrameRole


@pytest.fixture
def images(storage, make_image):
    names = [make_image(f"img{i}.png") for i in range(4)]
    return [storage.upload_path(name) for name in names]


def test_many_images_keep_first_and_last(images):
    frames = resolve_frames(images)
    assert [(f.path, f.role) for f in frames] == [
        (images[0], FrameRole.FIRST),
        (images[-1], FrameRole.LAST),
    ]


def test_two_images_become_first_and_last(images):
    frames = resolve_frames(images[:2], reveal=True)
    assert [f.role for f in frames] == [FrameRole.FIRST, FrameRole.LAST]


def test_single_image_opens_the_clip(images):
    frames = resolve_frames(images[:1])
    assert len(frames) == 1
    assert frames[0].role == FrameRole.FIRST


def test_single_image_closes_a_reveal_clip(images):
    """Unboxing-style clips reveal the product at the end."""
    frames = resolve_frames(images[:1], reveal=True)
    assert len(frames) == 1
    assert frames[0].role == FrameRole.LAST


def test_no_images_rejected():
    with pytest.raises(ValidationError):
        resolve_frames([])


def test_missing_image_reports_filename(storage):
    missing = os.path.join(storage.upload_dir, "ghost.png")
    with pytest.raises(ImageNotFound) as exc:
        resolve_frames([missing])
    assert exc.value.filename == "ghost.png"


def test_short_continuation_skips_anchor(images):
    frames = resolve_continuation_frames(images[0], images[1], duration=5)
    assert [(f.path, f.role) for f in frames] == [(images[0], FrameRole.FIRST)]


def test_long_continuation_appends_anchor(images):
    frames = resolve_continuation_frames(images[0], images[1], duration=6)
    assert [(f.path, f.role) for f in frames] == [
        (images[0], FrameRole.FIRST),
        (images[1], FrameRole.LAST),
    ]


def test_continuation_without_anchor(images):
    frames = resolve_continuation_frames(images[0], None, duration=8)
    assert len(frames) == 1


def test_continuation_requires_captured_frame(images):
    with pytest.raises(ValidationError):
        resolve_continuation_frames(None, images[1], duration=8)
