"""
Camera path smoothing and stabilization corrections.

This module holds the per-pair motion container, the Gaussian path
smoother that separates intended camera movement from shake, and the
correction generator that maps each frame's actual path onto the smoothed
one.
"""

import math
from dataclasses import dataclass, field
from typing import Any

import numpy as np
from scipy.ndimage import gaussian_filter1d

from vstab.core.config import MIN_SMOOTHNESS, StabilizationParams

Correction = tuple[float, float, float]


def _as_channel(values) -> np.ndarray:
    return np.asarray(values, dtype=np.float64).ravel().copy()


@dataclass
class MotionData:
    """
    Per-pair camera motion.

    Index i describes the transform from frame i to frame i + 1.
    The three channels always have the same length; length 0 means no
    motion estimate is available.

    Attributes:
        dx: Horizontal translation per pair (pixels)
        dy: Vertical translation per pair (pixels)
        rotation: In-plane rotation per pair (radians)
    """
    dx: np.ndarray = field(default_factory=lambda: np.zeros(0))
    dy: np.ndarray = field(default_factory=lambda: np.zeros(0))
    rotation: np.ndarray = field(default_factory=lambda: np.zeros(0))

    def __post_init__(self):
        self.dx = _as_channel(self.dx)
        self.dy = _as_channel(self.dy)
        self.rotation = _as_channel(self.rotation)
        if not (len(self.dx) == len(self.dy) == len(self.rotation)):
            raise ValueError(
                f"Motion channels differ in length: dx={len(self.dx)}, "
                f"dy={len(self.dy)}, rotation={len(self.rotation)}"
            )

    @classmethod
    def zeros(cls, length: int) -> "MotionData":
        """Motion data of the given length with every entry zero."""
        return cls(np.zeros(length), np.zeros(length), np.zeros(length))

    def __len__(self) -> int:
        return len(self.dx)

    @property
    def is_empty(self) -> bool:
        return len(self.dx) == 0

    def copy(self) -> "MotionData":
        return MotionData(self.dx, self.dy, self.rotation)

    def channels(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        return (self.dx, self.dy, self.rotation)

    def trajectory(self) -> np.ndarray:
        """
        Integrate the deltas into an absolute camera path.

        Returns:
            (N + 1, 3) array of cumulative (x, y, rotation), starting at 0
        """
        path = np.zeros((len(self) + 1, 3))
        path[1:] = np.cumsum(np.column_stack(self.channels()), axis=0)
        return path

    @classmethod
    def from_trajectory(cls, path: np.ndarray) -> "MotionData":
        """Differentiate an (N + 1, 3) path back into N per-pair deltas."""
        path = np.asarray(path, dtype=np.float64).reshape(-1, 3)
        if len(path) < 2:
            return cls.zeros(0)
        deltas = np.diff(path, axis=0)
        return cls(deltas[:, 0], deltas[:, 1], deltas[:, 2])

    def to_dict(self) -> dict[str, list[float]]:
        return {
            "dx": self.dx.tolist(),
            "dy": self.dy.tolist(),
            "rotation": self.rotation.tolist(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MotionData":
        return cls(data.get("dx", []), data.get("dy", []), data.get("rotation", []))


def gaussian_smooth_path(path: np.ndarray, sigma: float) -> np.ndarray:
    """
    Gaussian low-pass filter along the first axis.

    The kernel radius is ceil(3 * sigma) and the path ends are held
    (edge-clamped). Sigma below MIN_SMOOTHNESS returns a copy.
    """
    path = np.asarray(path, dtype=np.float64)
    if sigma < MIN_SMOOTHNESS or len(path) == 0:
        return path.copy()
    radius = int(math.ceil(3.0 * sigma))
    return gaussian_filter1d(path, sigma=sigma, axis=0, mode="nearest", radius=radius)


def smooth_motion(raw: MotionData, params: StabilizationParams) -> MotionData:
    """
    Compute the intended (smooth) camera motion from raw motion.

    The raw deltas are integrated into a camera path, each channel of the
    path is Gaussian filtered, and the filtered path is differentiated back
    into per-pair deltas. Smoothing the path rather than the deltas keeps
    deliberate long moves such as pans while removing jitter.

    Args:
        raw: Raw per-pair motion
        params: Settings; smoothness is the Gaussian sigma in frames

    Returns:
        Smoothed MotionData of the same length. With smoothness below
        MIN_SMOOTHNESS the input is returned unchanged (as a copy).
    """
    if raw.is_empty:
        return MotionData.zeros(0)
    if not params.smoothing_enabled:
        return raw.copy()

    smooth_path = gaussian_smooth_path(raw.trajectory(), params.smoothness)
    return MotionData.from_trajectory(smooth_path)


def compute_correction(raw: MotionData, smooth: MotionData) -> list[Correction]:
    """
    Per-pair corrective transforms moving the actual path onto the smooth one.

    Args:
        raw: Raw per-pair motion
        smooth: Smoothed per-pair motion

    Returns:
        List of (dx, dy, rotation) = smooth - raw, truncated to the shorter input
    """
    n = min(len(raw), len(smooth))
    ddx = smooth.dx[:n] - raw.dx[:n]
    ddy = smooth.dy[:n] - raw.dy[:n]
    drot = smooth.rotation[:n] - raw.rotation[:n]
    return [(float(a), float(b), float(c)) for a, b, c in zip(ddx, ddy, drot)]


def crop_window(width: int, height: int, params: StabilizationParams) -> tuple[int, int, int, int]:
    """
    Centered region kept after cropping away the correction border.

    Returns:
        (x, y, w, h) of the kept region in pixels
    """
    w = max(1, int(round(width * params.crop_ratio)))
    h = max(1, int(round(height * params.crop_ratio)))
    return ((width - w) // 2, (height - h) // 2, w, h)


def clamp_corrections(
    corrections: list[Correction],
    width: int,
    height: int,
    params: StabilizationParams,
) -> list[Correction]:
    """
    Limit translations to what the crop border can hide.

    The border a frame exposes is the accumulated correction up to that
    frame, not the per-pair delta. The deltas are integrated into an
    offset path, the path is clamped to the crop margin, and the clamped
    path is differenced back into per-pair corrections.

    Args:
        corrections: (dx, dy, rotation) triplets
        width: Frame width in pixels
        height: Frame height in pixels
        params: Settings providing crop_ratio

    Returns:
        Corrections whose running sums of dx and dy stay within
        (1 - crop_ratio) * size / 2. Rotation is passed through.
    """
    if not corrections:
        return []

    margin_x = (1.0 - params.crop_ratio) * width / 2.0
    margin_y = (1.0 - params.crop_ratio) * height / 2.0

    deltas = np.asarray(corrections, dtype=np.float64).reshape(-1, 3)
    offsets = np.cumsum(deltas[:, :2], axis=0)
    offsets[:, 0] = np.clip(offsets[:, 0], -margin_x, margin_x)
    offsets[:, 1] = np.clip(offsets[:, 1], -margin_y, margin_y)
    clamped = np.diff(offsets, axis=0, prepend=np.zeros((1, 2)))

    return [
        (float(dx), float(dy), float(rot))
        for (dx, dy), rot in zip(clamped, deltas[:, 2])
    ]
