"""
Video input for command line stabilization.

Frames are decoded with OpenCV and converted through rgb_to_gray, the same
luminance path used for RGBA frames handed over by a host application.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

import cv2
import numpy as np

from vstab.core.image import GrayscaleImage, rgb_to_gray


@dataclass
class VideoInfo:
    """Frame size, rate and length reported by the container."""
    width: int
    height: int
    fps: float
    frame_count: int


@contextmanager
def _capture(path: str | Path) -> Iterator[cv2.VideoCapture]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Video file not found: {path}")

    cap = cv2.VideoCapture(str(path))
    try:
        if not cap.isOpened():
            raise RuntimeError(f"Failed to open video: {path}")
        yield cap
    finally:
        cap.release()


def probe_video(path: str | Path) -> VideoInfo:
    """
    Read the stream properties of a video file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        RuntimeError: If OpenCV cannot open it
    """
    with _capture(path) as cap:
        return VideoInfo(
            width=int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            height=int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            fps=float(cap.get(cv2.CAP_PROP_FPS)),
            frame_count=int(cap.get(cv2.CAP_PROP_FRAME_COUNT)),
        )


def bgr_to_gray(frame: np.ndarray) -> GrayscaleImage:
    """Convert an OpenCV BGR frame to a GrayscaleImage."""
    h, w = frame.shape[:2]
    return rgb_to_gray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGBA), w, h)


def read_gray_frames(
    path: str | Path,
    first_frame: int = 1,
    last_frame: int | None = None,
) -> Iterator[GrayscaleImage]:
    """
    Decode a frame range as GrayscaleImage.

    Args:
        path: Video file
        first_frame: First frame to yield (1-indexed)
        last_frame: Last frame to yield, inclusive (None = end of stream)

    Yields:
        One GrayscaleImage per decoded frame
    """
    with _capture(path) as cap:
        if first_frame > 1:
            cap.set(cv2.CAP_PROP_POS_FRAMES, first_frame - 1)

        remaining = None if last_frame is None else last_frame - max(first_frame, 1) + 1
        while remaining is None or remaining > 0:
            ok, frame = cap.read()
            if not ok:
                break
            yield bgr_to_gray(frame)
            if remaining is not None:
                remaining -= 1
