"""
Tracker factory for the closed set of tracking backends.
"""

from vstab.core.base import TrackerBackend, TrackerKind
from vstab.core.config import StabilizationParams
from vstab.tracking.planar import PlanarRegion, PlanarTracker
from vstab.tracking.tracker import PointTracker


def create_tracker(
    kind: TrackerKind | str = TrackerKind.POINT,
    params: StabilizationParams | None = None,
    region: PlanarRegion | None = None,
    **kwargs,
) -> TrackerBackend:
    """
    Create a tracker backend.

    Args:
        kind: Backend kind ('point' or 'planar')
        params: Tracker tunables (defaults when None)
        region: Region to follow, required for the planar backend
        **kwargs: Extra PlanarTracker options (grid_size, ransac_threshold)

    Returns:
        A PointTracker or PlanarTracker

    Raises:
        ValueError: If the kind is unknown or a planar tracker has no region
    """
    try:
        kind = TrackerKind(kind)
    except ValueError:
        supported = [k.value for k in TrackerKind]
        raise ValueError(f"Unsupported tracker: {kind}. Supported trackers: {supported}") from None

    params = params or StabilizationParams()
    point_tracker = PointTracker.from_params(params)

    if kind is TrackerKind.POINT:
        return point_tracker

    if region is None:
        raise ValueError("A planar tracker needs a region")
    return PlanarTracker(region, point_tracker=point_tracker, **kwargs)
