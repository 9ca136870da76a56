"""
Per-frame camera motion estimation.

analyze_motion() seeds a regular point grid on every adjacent frame pair,
tracks it once, and averages the displacement of the surviving points into
one raw motion sample per pair. Pairs are independent and run on a thread
pool.
"""

import logging
import math
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Sequence

import numpy as np

from vstab.core.config import StabilizationMethod, StabilizationParams
from vstab.core.image import GrayscaleImage
from vstab.tracking.stabilizer import MotionData
from vstab.tracking.tracker import PointTracker

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class AnalysisCancelled(RuntimeError):
    """Raised when motion analysis is cancelled between frame pairs."""


def seed_grid(width: int, height: int, spacing: int) -> np.ndarray:
    """
    Regular seed grid inset from the border by the spacing.

    Returns:
        (N, 2) array of x, y coordinates; empty when the frame is too small
    """
    xs = np.arange(spacing, max(width - spacing, 0), spacing, dtype=np.float64)
    ys = np.arange(spacing, max(height - spacing, 0), spacing, dtype=np.float64)
    if xs.size == 0 or ys.size == 0:
        return np.empty((0, 2), dtype=np.float64)
    gx, gy = np.meshgrid(xs, ys)
    return np.column_stack([gx.ravel(), gy.ravel()])


def estimate_rotation(src: np.ndarray, dst: np.ndarray) -> float:
    """
    Least-squares in-plane rotation (radians) taking src onto dst.

    Both point sets are centered on their centroids first, so translation
    does not bias the angle. Fewer than 2 points give 0.
    """
    src = np.asarray(src, dtype=np.float64).reshape(-1, 2)
    dst = np.asarray(dst, dtype=np.float64).reshape(-1, 2)
    if len(src) < 2:
        return 0.0

    a = src - src.mean(axis=0)
    b = dst - dst.mean(axis=0)
    cross = np.sum(a[:, 0] * b[:, 1] - a[:, 1] * b[:, 0])
    dot = np.sum(a[:, 0] * b[:, 0] + a[:, 1] * b[:, 1])
    if cross == 0 and dot == 0:
        return 0.0
    return float(math.atan2(cross, dot))


def estimate_pair_motion(
    prev: GrayscaleImage,
    curr: GrayscaleImage,
    params: StabilizationParams | None = None,
) -> tuple[float, float, float, int]:
    """
    Estimate the camera motion between two frames.

    Args:
        prev: Earlier frame
        curr: Later frame
        params: Tracking and analysis settings

    Returns:
        Tuple of (dx, dy, rotation, survivors). A pair with no surviving
        points reports zero motion.
    """
    params = params or StabilizationParams()
    tracker = PointTracker.from_params(params)
    seeds = seed_grid(prev.width, prev.height, params.grid_spacing)
    if len(seeds) == 0:
        return 0.0, 0.0, 0.0, 0

    tracker.add_points(seeds)
    tracker.track_frame(prev, curr)

    alive = ~tracker.lost
    survivors = int(np.count_nonzero(alive))
    if survivors == 0:
        return 0.0, 0.0, 0.0, 0

    src = seeds[alive]
    dst = tracker.positions[alive]
    dx, dy = (dst - src).mean(axis=0)

    rotation = 0.0
    if params.method is not StabilizationMethod.TRANSLATION:
        rotation = estimate_rotation(src, dst)

    return float(dx), float(dy), rotation, survivors


def _check_frames(frames: Sequence[GrayscaleImage]) -> None:
    if not frames:
        return
    size = (frames[0].width, frames[0].height)
    for i, frame in enumerate(frames):
        if (frame.width, frame.height) != size:
            raise ValueError(
                f"Frame {i} is {frame.width}x{frame.height}, expected {size[0]}x{size[1]}"
            )


def analyze_motion(
    frames: Sequence[GrayscaleImage],
    params: StabilizationParams | None = None,
    *,
    workers: int | None = None,
    cancel_event: threading.Event | None = None,
    progress: ProgressCallback | None = None,
) -> MotionData:
    """
    Estimate raw per-pair camera motion for a whole clip.

    Args:
        frames: Ordered grayscale frames, all the same size
        params: Tracking and analysis settings
        workers: Thread pool size (default: CPU count; 1 runs inline)
        cancel_event: Checked between pairs; when set, analysis stops
        progress: Called as progress(done, total) after each pair

    Returns:
        MotionData with one entry per adjacent frame pair (empty for
        fewer than 2 frames)

    Raises:
        ValueError: If the frames differ in size
        AnalysisCancelled: If cancel_event was set before all pairs finished
    """
    params = params or StabilizationParams()
    frames = list(frames)
    _check_frames(frames)

    n = len(frames) - 1
    if n < 1:
        return MotionData.zeros(0)

    motion = MotionData.zeros(n)
    survivors = [0] * n
    done = 0
    lock = threading.Lock()

    def run_pair(i: int) -> None:
        nonlocal done
        if cancel_event is not None and cancel_event.is_set():
            return
        dx, dy, rot, alive = estimate_pair_motion(frames[i], frames[i + 1], params)
        motion.dx[i] = dx
        motion.dy[i] = dy
        motion.rotation[i] = rot
        survivors[i] = alive
        logger.debug("Pair %d: %d points survived, dx=%.3f dy=%.3f rot=%.5f", i, alive, dx, dy, rot)
        # progress sees strictly increasing counts
        with lock:
            done += 1
            if progress is not None:
                progress(done, n)

    workers = workers or os.cpu_count() or 1
    if workers <= 1 or n == 1:
        for i in range(n):
            run_pair(i)
    else:
        with ThreadPoolExecutor(max_workers=min(workers, n)) as pool:
            # list() re-raises worker exceptions here
            list(pool.map(run_pair, range(n)))

    if cancel_event is not None and cancel_event.is_set() and done < n:
        raise AnalysisCancelled(f"Motion analysis cancelled after {done} of {n} frame pairs")

    empty = [i for i, alive in enumerate(survivors) if alive == 0]
    if empty:
        logger.warning("%d of %d frame pairs had no trackable points; using zero motion", len(empty), n)
    logger.info("Analyzed %d frame pairs", n)
    return motion
