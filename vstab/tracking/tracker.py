"""
Feature point tracking using pyramidal Lucas-Kanade optical flow.

This module provides the PointTracker class which advances a set of seeded
points from one frame to the next and flags the points it can no longer
trust. Loss is reported as data on each point, never as an exception.
"""

import logging
from dataclasses import dataclass

import numpy as np
from scipy.ndimage import map_coordinates

from vstab.core.config import StabilizationParams
from vstab.core.image import GrayscaleImage
from vstab.core.pyramid import ImagePyramid, compute_gradients

logger = logging.getLogger(__name__)

# Matrices with a smaller determinant are treated as singular
_DET_EPSILON = 1e-12


@dataclass(frozen=True)
class TrackPoint:
    """Snapshot of one tracked point."""
    x: float
    y: float
    lost: bool = False
    confidence: float = 1.0
    residual: float = 0.0
    min_eigenvalue: float = 0.0

    @property
    def position(self) -> tuple[float, float]:
        return (self.x, self.y)


@dataclass
class TrackingStats:
    """Statistics from a tracking update."""
    tracked: int
    lost: int
    newly_lost: int
    total: int

    def to_dict(self) -> dict[str, int]:
        """Convert to dictionary."""
        return {
            "tracked": self.tracked,
            "lost": self.lost,
            "newly_lost": self.newly_lost,
            "total": self.total,
        }


def _sample(image: np.ndarray, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
    """Bilinear sampling at float coordinates, replicating edge pixels outside the image."""
    coords = np.stack([ys.ravel(), xs.ravel()])
    values = map_coordinates(
        image, coords, output=np.float64, order=1, mode="nearest", prefilter=False
    )
    return values.reshape(xs.shape)


def _min_eigenvalue(gxx: np.ndarray, gxy: np.ndarray, gyy: np.ndarray) -> np.ndarray:
    """Smallest eigenvalue of each symmetric 2x2 matrix [[gxx, gxy], [gxy, gyy]]."""
    half_trace = (gxx + gyy) * 0.5
    spread = np.sqrt(((gxx - gyy) * 0.5) ** 2 + gxy ** 2)
    return half_trace - spread


class PointTracker:
    """
    Pyramidal Lucas-Kanade point tracker.

    Points are stored as parallel arrays (positions, lost flags,
    confidences, residuals) and advanced together on every call to
    track_frame(). A point is Active until it is marked Lost; a Lost point
    is never revived, callers re-seed instead.

    A point is marked Lost when, at the finest pyramid level:
        - the gradient matrix of its window is near singular
          (textureless or edge-only region),
        - the mean absolute intensity residual exceeds max_residual,
        - it moved farther than max_displacement pixels,
        - or it left the image.

    Attributes:
        pyramid_levels: Number of pyramid levels searched coarse-to-fine
        window_size: Side of the square integration window (odd)
        max_iterations: Iteration cap per pyramid level
        epsilon: Convergence threshold on the update length (pixels)
        max_residual: Mean absolute intensity error above which a point is lost
        min_eigenvalue: Minimum eigenvalue of the window-normalized gradient matrix
        max_displacement: Largest per-frame move accepted (pixels)

    Example:
        >>> tracker = PointTracker(pyramid_levels=3)
        >>> tracker.add_point(32.0, 32.0)
        >>> stats = tracker.track_frame(prev_gray, curr_gray)
        >>> print(f"{stats.tracked} tracked, {stats.lost} lost")
    """

    def __init__(
        self,
        pyramid_levels: int = 3,
        window_size: int = 21,
        max_iterations: int = 30,
        epsilon: float = 0.01,
        max_residual: float = 0.1,
        min_eigenvalue: float = 1e-5,
        max_displacement: float = 21.0,
    ):
        """
        Initialize the tracker.

        Args:
            pyramid_levels: Number of pyramid levels (1 = no pyramid)
            window_size: Integration window side in pixels, odd and >= 3
            max_iterations: Maximum Gauss-Newton iterations per level
            epsilon: Stop iterating once the update is shorter than this
            max_residual: Loss threshold on the final mean absolute residual
            min_eigenvalue: Loss threshold on gradient matrix conditioning
            max_displacement: Loss threshold on the distance moved
        """
        if window_size < 3 or window_size % 2 == 0:
            raise ValueError(f"window_size must be odd and >= 3, got {window_size}")

        self.pyramid_levels = max(int(pyramid_levels), 1)
        self.window_size = int(window_size)
        self.max_iterations = max(int(max_iterations), 1)
        self.epsilon = float(epsilon)
        self.max_residual = float(max_residual)
        self.min_eigenvalue = float(min_eigenvalue)
        self.max_displacement = float(max_displacement)

        # Structure of arrays, one row per point
        self._positions = np.empty((0, 2), dtype=np.float64)
        self._lost = np.empty(0, dtype=bool)
        self._confidence = np.empty(0, dtype=np.float64)
        self._residual = np.empty(0, dtype=np.float64)
        self._eigen = np.empty(0, dtype=np.float64)

    @classmethod
    def from_params(cls, params: StabilizationParams) -> "PointTracker":
        """Create a tracker using the tunables held in StabilizationParams."""
        return cls(
            pyramid_levels=params.pyramid_levels,
            window_size=params.window_size,
            max_iterations=params.max_iterations,
            epsilon=params.epsilon,
            max_residual=params.max_residual,
            min_eigenvalue=params.min_eigenvalue,
            max_displacement=params.max_displacement,
        )

    def add_point(self, x: float, y: float) -> int:
        """
        Seed a new Active point.

        Returns:
            Index of the new point
        """
        return int(self.add_points(np.array([[x, y]], dtype=np.float64))[0])

    def add_points(self, points: np.ndarray) -> np.ndarray:
        """
        Seed a batch of Active points.

        Args:
            points: (N, 2) array of x, y coordinates

        Returns:
            Indices of the new points
        """
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        start = len(self._lost)
        n = len(pts)
        self._positions = np.vstack([self._positions, pts])
        self._lost = np.concatenate([self._lost, np.zeros(n, dtype=bool)])
        self._confidence = np.concatenate([self._confidence, np.ones(n)])
        self._residual = np.concatenate([self._residual, np.zeros(n)])
        self._eigen = np.concatenate([self._eigen, np.zeros(n)])
        return np.arange(start, start + n)

    # Capability interface shared with PlanarTracker
    def add_feature(self, x: float, y: float) -> int:
        return self.add_point(x, y)

    def advance(self, prev: GrayscaleImage, curr: GrayscaleImage) -> TrackingStats:
        return self.track_frame(prev, curr)

    def results(self) -> list[TrackPoint]:
        return self.points

    @property
    def points(self) -> list[TrackPoint]:
        """Snapshots of every point, in seeding order."""
        return [
            TrackPoint(
                x=float(self._positions[i, 0]),
                y=float(self._positions[i, 1]),
                lost=bool(self._lost[i]),
                confidence=float(self._confidence[i]),
                residual=float(self._residual[i]),
                min_eigenvalue=float(self._eigen[i]),
            )
            for i in range(len(self._lost))
        ]

    @property
    def positions(self) -> np.ndarray:
        """(N, 2) copy of current positions."""
        return self._positions.copy()

    @property
    def lost(self) -> np.ndarray:
        """Boolean mask of Lost points."""
        return self._lost.copy()

    def active_points(self) -> list[TrackPoint]:
        """Snapshots of the points that are still Active."""
        return [p for p in self.points if not p.lost]

    def mark_lost(self, index: int) -> None:
        """Mark a point Lost by hand."""
        self._lost[index] = True
        self._confidence[index] = 0.0

    def reset(self) -> None:
        """Drop all points."""
        self._positions = np.empty((0, 2), dtype=np.float64)
        self._lost = np.empty(0, dtype=bool)
        self._confidence = np.empty(0, dtype=np.float64)
        self._residual = np.empty(0, dtype=np.float64)
        self._eigen = np.empty(0, dtype=np.float64)

    def __len__(self) -> int:
        return len(self._lost)

    def _window_offsets(self) -> tuple[np.ndarray, np.ndarray]:
        half = self.window_size // 2
        steps = np.arange(-half, half + 1, dtype=np.float64)
        ox, oy = np.meshgrid(steps, steps)
        return ox.ravel(), oy.ravel()

    def _refine(
        self,
        curr: np.ndarray,
        xs: np.ndarray,
        ys: np.ndarray,
        template: np.ndarray,
        ix: np.ndarray,
        iy: np.ndarray,
        gxx: np.ndarray,
        gxy: np.ndarray,
        gyy: np.ndarray,
        guess: np.ndarray,
        solvable: np.ndarray,
    ) -> np.ndarray:
        """Iterate the normal-equation solve at one level, returning the residual motion."""
        det = gxx * gyy - gxy * gxy
        d = np.zeros_like(guess)
        running = solvable.copy()
        eps2 = self.epsilon * self.epsilon

        for _ in range(self.max_iterations):
            rows = np.flatnonzero(running)
            if rows.size == 0:
                break

            shift = guess[rows] + d[rows]
            warped = _sample(curr, xs[rows] + shift[:, 0:1], ys[rows] + shift[:, 1:2])
            diff = template[rows] - warped
            bx = (diff * ix[rows]).sum(axis=1)
            by = (diff * iy[rows]).sum(axis=1)

            step_x = (gyy[rows] * bx - gxy[rows] * by) / det[rows]
            step_y = (gxx[rows] * by - gxy[rows] * bx) / det[rows]
            d[rows, 0] += step_x
            d[rows, 1] += step_y

            converged = step_x * step_x + step_y * step_y < eps2
            running[rows[converged]] = False

        return d

    def track_frame(self, prev: GrayscaleImage, curr: GrayscaleImage) -> TrackingStats:
        """
        Advance every Active point from prev to curr.

        Args:
            prev: Frame the current positions refer to
            curr: Next frame

        Returns:
            TrackingStats for this update

        Raises:
            ValueError: If the frames differ in size
        """
        if (prev.width, prev.height) != (curr.width, curr.height):
            raise ValueError(
                f"Frame size mismatch: {prev.width}x{prev.height} vs {curr.width}x{curr.height}"
            )

        idx = np.flatnonzero(~self._lost)
        total = len(self._lost)
        if idx.size == 0:
            return TrackingStats(tracked=0, lost=total, newly_lost=0, total=total)

        prev_pyr = ImagePyramid.build(prev, self.pyramid_levels)
        curr_pyr = ImagePyramid.build(curr, self.pyramid_levels)

        start = self._positions[idx]
        guess = np.zeros_like(start)
        ox, oy = self._window_offsets()
        area = float(ox.size)

        solvable = np.zeros(idx.size, dtype=bool)
        eigen = np.zeros(idx.size)
        residual = np.full(idx.size, np.inf)

        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            for level in reversed(range(len(prev_pyr))):
                scale = 1.0 / (1 << level)
                prev_px = prev_pyr[level].pixels
                curr_px = curr_pyr[level].pixels
                grad_x, grad_y = compute_gradients(prev_pyr[level])

                centers = start * scale
                xs = centers[:, 0:1] + ox
                ys = centers[:, 1:2] + oy

                template = _sample(prev_px, xs, ys)
                ix = _sample(grad_x, xs, ys)
                iy = _sample(grad_y, xs, ys)

                gxx = (ix * ix).sum(axis=1)
                gxy = (ix * iy).sum(axis=1)
                gyy = (iy * iy).sum(axis=1)

                eigen = _min_eigenvalue(gxx, gxy, gyy) / area
                det = gxx * gyy - gxy * gxy
                solvable = (eigen >= self.min_eigenvalue) & (det > _DET_EPSILON)

                d = self._refine(
                    curr_px, xs, ys, template, ix, iy, gxx, gxy, gyy, guess, solvable
                )

                if level > 0:
                    guess = 2.0 * (guess + d)
                else:
                    guess = guess + d
                    shift = guess
                    warped = _sample(curr_px, xs + shift[:, 0:1], ys + shift[:, 1:2])
                    residual = np.abs(template - warped).mean(axis=1)

        new_pos = start + guess
        h, w = prev.height, prev.width
        finite = np.isfinite(new_pos).all(axis=1) & np.isfinite(residual)
        in_bounds = (
            (new_pos[:, 0] >= 0) & (new_pos[:, 0] <= w - 1) &
            (new_pos[:, 1] >= 0) & (new_pos[:, 1] <= h - 1)
        )
        moved = np.hypot(guess[:, 0], guess[:, 1])

        keep = (
            solvable & finite & in_bounds &
            (residual <= self.max_residual) &
            (moved <= self.max_displacement)
        )

        kept = idx[keep]
        dropped = idx[~keep]

        self._positions[kept] = new_pos[keep]
        self._residual[kept] = residual[keep]
        self._confidence[kept] = np.clip(1.0 - residual[keep] / self.max_residual, 0.0, 1.0)
        self._eigen[idx] = np.where(np.isfinite(eigen), eigen, 0.0)

        self._lost[dropped] = True
        self._confidence[dropped] = 0.0
        self._residual[dropped] = np.where(np.isfinite(residual[~keep]), residual[~keep], np.inf)

        tracked = int(np.count_nonzero(~self._lost))
        stats = TrackingStats(
            tracked=tracked,
            lost=total - tracked,
            newly_lost=int(dropped.size),
            total=total,
        )
        logger.debug(
            "Tracked %d/%d points (%d newly lost)", stats.tracked, stats.total, stats.newly_lost
        )
        return stats
