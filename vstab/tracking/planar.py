"""
Planar region tracking.

A PlanarTracker follows a four-corner region by tracking a grid of points
inside it with a PointTracker and fitting a homography to the surviving
matches with RANSAC.
"""

import logging
from dataclasses import dataclass, field

import cv2
import numpy as np

from vstab.core.image import GrayscaleImage
from vstab.tracking.tracker import PointTracker, TrackingStats, TrackPoint

logger = logging.getLogger(__name__)


@dataclass
class PlanarRegion:
    """A planar region given by 4 corners (top-left, top-right, bottom-right, bottom-left)."""
    corners: np.ndarray = field(default_factory=lambda: np.zeros((4, 2)))

    def __post_init__(self):
        self.corners = np.asarray(self.corners, dtype=np.float64).reshape(-1, 2)
        if self.corners.shape != (4, 2):
            raise ValueError(f"A planar region needs 4 corners, got {len(self.corners)}")

    def grid(self, size: int) -> np.ndarray:
        """Cell-centered (size*size, 2) grid interpolated bilinearly across the quad."""
        tl, tr, br, bl = self.corners
        cells = (np.arange(size) + 0.5) / size
        u, v = np.meshgrid(cells, cells)
        u = u.ravel()[:, None]
        v = v.ravel()[:, None]
        top = tl + (tr - tl) * u
        bottom = bl + (br - bl) * u
        return top + (bottom - top) * v


class PlanarTracker:
    """
    Track a planar region through a homography.

    Example:
        >>> region = PlanarRegion([[10, 10], [110, 10], [110, 110], [10, 110]])
        >>> tracker = PlanarTracker(region)
        >>> tracker.advance(prev_gray, curr_gray)
        >>> h = tracker.homography()
    """

    def __init__(
        self,
        region: PlanarRegion,
        grid_size: int = 8,
        ransac_threshold: float = 3.0,
        point_tracker: PointTracker | None = None,
    ):
        """
        Initialize the planar tracker.

        Args:
            region: Region to follow
            grid_size: Points per side seeded inside the region
            ransac_threshold: Reprojection error (pixels) for RANSAC inliers
            point_tracker: Tracker used for the grid (a default one when None)
        """
        self.region = region
        self.ransac_threshold = ransac_threshold
        self.point_tracker = point_tracker or PointTracker()

        self._initial_corners = region.corners.copy()
        seeds = region.grid(grid_size)
        self.point_tracker.add_points(seeds)
        self._initial_points = seeds.copy()
        self._homography = np.eye(3)

    def add_feature(self, x: float, y: float) -> int:
        """
        Seed an extra point that contributes to the homography fit.

        (x, y) is in the current frame. It is mapped back through the
        inverse of the current homography so the fit keeps pairing
        initial-frame points with current ones.
        """
        current = np.array([[[x, y]]], dtype=np.float64)
        initial = cv2.perspectiveTransform(current, np.linalg.inv(self._homography))
        idx = self.point_tracker.add_point(x, y)
        self._initial_points = np.vstack([self._initial_points, initial.reshape(1, 2)])
        return idx

    def _matches(self) -> tuple[np.ndarray, np.ndarray]:
        active = ~self.point_tracker.lost
        return self._initial_points[active], self.point_tracker.positions[active]

    def advance(self, prev: GrayscaleImage, curr: GrayscaleImage) -> TrackingStats:
        """
        Track the region from prev to curr.

        The region keeps its previous corners when fewer than 4 grid points
        survive or no homography can be fitted.
        """
        stats = self.point_tracker.track_frame(prev, curr)
        src, dst = self._matches()
        if len(src) < 4:
            logger.debug("Planar region kept: only %d matches", len(src))
            return stats

        h, _ = cv2.findHomography(
            src.astype(np.float32),
            dst.astype(np.float32),
            cv2.RANSAC,
            self.ransac_threshold,
        )
        if h is None or not np.isfinite(h).all():
            logger.debug("Planar region kept: homography fit failed")
            return stats

        self._homography = h
        corners = self._initial_corners.reshape(-1, 1, 2).astype(np.float32)
        self.region.corners = cv2.perspectiveTransform(corners, h).reshape(4, 2).astype(np.float64)
        return stats

    def homography(self) -> np.ndarray:
        """Homography from the initial region to the current one (identity before any fit)."""
        return self._homography.copy()

    def results(self) -> list[TrackPoint]:
        """Current region corners."""
        return [TrackPoint(x=float(x), y=float(y)) for x, y in self.region.corners]
