"""
vstab - Video Stabilization Engine
==================================

Estimates per-frame camera motion from grayscale frames, separates
intended camera movement from shake, and emits per-frame corrections.

Main modules:
- vstab.core: Grayscale images, pyramids, gradients and configuration
- vstab.tracking: Point tracking, motion analysis and smoothing
- vstab.pipeline: Whole-clip stabilization

Quick start:
    >>> from vstab import StabilizationParams, stabilize
    >>> result = stabilize(gray_frames, StabilizationParams(smoothness=15))
    >>> for dx, dy, rotation in result.corrections:
    ...     warp(frame, dx, dy, rotation)
"""

__version__ = "0.1.0"

# Convenience imports
from vstab.core import GrayscaleImage, StabilizationMethod, StabilizationParams, rgb_to_gray
from vstab.tracking import (
    MotionData,
    PointTracker,
    analyze_motion,
    compute_correction,
    smooth_motion,
)
from vstab.pipeline import StabilizationResult, stabilize

__all__ = [
    "__version__",
    "GrayscaleImage",
    "StabilizationMethod",
    "StabilizationParams",
    "rgb_to_gray",
    "MotionData",
    "PointTracker",
    "analyze_motion",
    "compute_correction",
    "smooth_motion",
    "StabilizationResult",
    "stabilize",
]
