"""
Base protocols shared by the tracking backends.

This module defines the capability interface that every tracker backend
implements, and the closed set of backend kinds.
"""

from enum import Enum
from typing import Any, Protocol, runtime_checkable

from vstab.core.image import GrayscaleImage


class TrackerKind(str, Enum):
    """Available tracker backends."""
    POINT = "point"    # sparse pyramidal Lucas-Kanade
    PLANAR = "planar"  # homography over a tracked point grid


@runtime_checkable
class TrackerBackend(Protocol):
    """Protocol for objects that track features between two frames."""

    def add_feature(self, x: float, y: float) -> int:
        """Seed a feature; returns its index."""
        ...

    def advance(self, prev: GrayscaleImage, curr: GrayscaleImage) -> Any:
        """Track every live feature from prev to curr."""
        ...

    def results(self) -> list:
        """Current tracking results as TrackPoint snapshots."""
        ...
