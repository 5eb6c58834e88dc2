"""
Frame resolution - decide which reference images open and close a clip.

Providers accept a start/end frame pair at most, so any longer list is
reduced to its first and last image. Reveal styles (unboxing) put a lone
image at the END of the clip, everything else at the start.

Continuations always open on the captured last frame of the previous
segment; the original product shot is appended as a closing anchor only when
the clip is long enough for the motion to travel back to it.
"""

import logging
import os
from typing import Optional, Sequence

from ..errors import ImageNotFound, ValidationError
from .models import Frame, FrameRole

logger = logging.getLogger(__name__)

MAX_FRAMES = 2
ANCHOR_MIN_DURATION = 6  # seconds


def ensure_exists(paths: Sequence[str]) -> None:
    """Raise ImageNotFound for the first path that is not a readable file."""
    for path in paths:
        if not os.path.isfile(path):
            raise ImageNotFound(os.path.basename(path))


def clamp_paths(paths: Sequence[str]) -> list[str]:
    """Keep the first and last image when more than two are supplied."""
    if len(paths) > MAX_FRAMES:
        logger.info(f"Clamped {len(paths)} images → 2 (first + last)")
        return [paths[0], paths[-1]]
    return list(paths)


def resolve_frames(paths: Sequence[str], reveal: bool = False) -> list[Frame]:
    """
    Assign frame roles to the source images of a normal generation.

    Args:
        paths:  Ordered image paths (earliest first).
        reveal: True for styles whose product appears at the end.

    Returns:
        One or two frames, in submission order.
    """
    if not paths:
        raise ValidationError("At least one image is required")

    ensure_exists(paths)
    kept = clamp_paths(paths)

    if len(kept) == 1:
        role = FrameRole.LAST if reveal else FrameRole.FIRST
        return [Frame(path=kept[0], role=role)]

    return [
        Frame(path=kept[0], role=FrameRole.FIRST),
        Frame(path=kept[-1], role=FrameRole.LAST),
    ]


def resolve_continuation_frames(
    captured_frame: Optional[str],
    anchor: Optional[str],
    duration: int,
) -> list[Frame]:
    """
    Frames for a continuation segment.

    The captured frame always opens the clip. The anchor closes it only if
    `duration` reaches ANCHOR_MIN_DURATION.
    """
    if not captured_frame:
        raise ValidationError("last_frame_filename is required for continuations")

    ensure_exists([captured_frame])
    frames = [Frame(path=captured_frame, role=FrameRole.FIRST)]

    if anchor and duration >= ANCHOR_MIN_DURATION:
        ensure_exists([anchor])
        frames.append(Frame(path=anchor, role=FrameRole.LAST))
    elif anchor:
        logger.info(f"Continuation of {duration}s is below {ANCHOR_MIN_DURATION}s, skipping anchor frame")

    return frames
