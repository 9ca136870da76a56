"""
End-to-end stabilization of a frame sequence.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Sequence

from vstab.core.config import StabilizationMethod, StabilizationParams
from vstab.core.image import GrayscaleImage
from vstab.tracking.analyzer import ProgressCallback, analyze_motion
from vstab.tracking.stabilizer import (
    Correction,
    MotionData,
    clamp_corrections,
    compute_correction,
    smooth_motion,
)

logger = logging.getLogger(__name__)


@dataclass
class StabilizationResult:
    """Raw motion, smoothed motion and per-pair corrections for one clip."""
    raw: MotionData
    smoothed: MotionData
    corrections: list[Correction] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.corrections)

    def to_dict(self) -> dict:
        return {
            "raw": self.raw.to_dict(),
            "smoothed": self.smoothed.to_dict(),
            "corrections": [list(c) for c in self.corrections],
        }


def stabilize(
    frames: Sequence[GrayscaleImage],
    params: StabilizationParams | None = None,
    *,
    clamp_to_crop: bool = False,
    workers: int | None = None,
    cancel_event: threading.Event | None = None,
    progress: ProgressCallback | None = None,
) -> StabilizationResult:
    """
    Analyze, smooth and correct a clip.

    Args:
        frames: Ordered grayscale frames
        params: Stabilization settings
        clamp_to_crop: Limit translations to the crop border
        workers: Thread pool size for motion analysis
        cancel_event: Cooperative cancellation between frame pairs
        progress: Called as progress(done, total) during analysis

    Returns:
        StabilizationResult
    """
    params = params or StabilizationParams()
    frames = list(frames)

    raw = analyze_motion(
        frames, params, workers=workers, cancel_event=cancel_event, progress=progress
    )
    smoothed = smooth_motion(raw, params)
    corrections = compute_correction(raw, smoothed)

    if params.method is StabilizationMethod.TRANSLATION:
        corrections = [(dx, dy, 0.0) for dx, dy, _ in corrections]

    if clamp_to_crop and frames:
        corrections = clamp_corrections(corrections, frames[0].width, frames[0].height, params)

    logger.info(
        "Stabilized %d frames (%s, smoothness=%.1f)",
        len(frames), params.method.value, params.smoothness,
    )
    return StabilizationResult(raw=raw, smoothed=smoothed, corrections=corrections)
