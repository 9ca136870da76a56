"""
Core module - Images, pyramids, configuration and shared protocols.
"""

from vstab.core.image import GrayscaleImage, rgb_to_gray
from vstab.core.pyramid import ImagePyramid, build_pyramid, compute_gradients
from vstab.core.config import (
    MIN_SMOOTHNESS,
    StabilizationMethod,
    StabilizationParams,
    load_params,
    save_params,
    params_from_env,
)
from vstab.core.base import TrackerBackend, TrackerKind

__all__ = [
    "GrayscaleImage",
    "rgb_to_gray",
    "ImagePyramid",
    "build_pyramid",
    "compute_gradients",
    "MIN_SMOOTHNESS",
    "StabilizationMethod",
    "StabilizationParams",
    "load_params",
    "save_params",
    "params_from_env",
    "TrackerBackend",
    "TrackerKind",
]
