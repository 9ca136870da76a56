"""
Tracking module - Point tracking, motion analysis and stabilization.

This module provides:
- PointTracker: Pyramidal Lucas-Kanade point tracking with loss detection
- PlanarTracker: Homography tracking of a four-corner region
- analyze_motion: Raw per-pair camera motion for a clip
- smooth_motion / compute_correction: Path smoothing and corrections
- Motion data file I/O utilities

Example:
    >>> from vstab.tracking import analyze_motion, smooth_motion, compute_correction
    >>> raw = analyze_motion(frames, params)
    >>> smooth = smooth_motion(raw, params)
    >>> corrections = compute_correction(raw, smooth)
"""

from vstab.tracking.tracker import PointTracker, TrackPoint, TrackingStats
from vstab.tracking.planar import PlanarRegion, PlanarTracker
from vstab.tracking.factory import create_tracker
from vstab.tracking.stabilizer import (
    MotionData,
    smooth_motion,
    compute_correction,
    crop_window,
    clamp_corrections,
)
from vstab.tracking.analyzer import (
    AnalysisCancelled,
    analyze_motion,
    estimate_pair_motion,
    estimate_rotation,
)
from vstab.tracking.motion_io import (
    read_motion_file,
    write_motion_file,
    write_corrections_csv,
    read_corrections_csv,
    parse_motion_line,
)

__all__ = [
    "PointTracker",
    "TrackPoint",
    "TrackingStats",
    "PlanarRegion",
    "PlanarTracker",
    "create_tracker",
    "MotionData",
    "smooth_motion",
    "compute_correction",
    "crop_window",
    "clamp_corrections",
    "AnalysisCancelled",
    "analyze_motion",
    "estimate_pair_motion",
    "estimate_rotation",
    "read_motion_file",
    "write_motion_file",
    "write_corrections_csv",
    "read_corrections_csv",
    "parse_motion_line",
]
