"""
Chainage resolution module for pychainage.

The kilometreage reported with each telemetry record is the nearest posted km
marker, which is coarse and can jump where the track was realigned. This
module replaces it with a chainage measured along the journey itself: the
first point is anchored to the nearest track geometry reference point, and
every following point adds (or subtracts) the great-circle distance travelled
since the previous fix.
"""

import logging
from dataclasses import replace
from typing import List

import numpy as np

from pychainage.models import Direction, GeoPoint, Journey
from pychainage.utilities.geodesy import path_distances
from pychainage.utilities.track_geometry import TrackGeometry

logger = logging.getLogger(__name__)


def journey_direction(journey: Journey) -> Direction:
    """
    Direction of travel from the first and last nominal km posts.

    A positive net change is INCREASING; zero or negative is DECREASING.
    """
    km_post = journey.points["km_post"].to_numpy(dtype=float)
    if km_post[-1] - km_post[0] > 0:
        return Direction.INCREASING
    return Direction.DECREASING


def resolve_chainage(journey: Journey, geometry: TrackGeometry) -> Journey:
    """
    Compute the along-track chainage of every point in a journey.

    Parameters
    ----------
    journey : Journey
        A journey from :func:`segment_journeys` (at least one point).
    geometry : TrackGeometry
        The corridor geometry used to anchor the first point.

    Returns
    -------
    Journey
        A new journey whose points frame gains ``chainage_km`` and
        ``direction`` columns, with ``direction`` also set on the journey.
        The input journey is not modified.

    Notes
    -----
    1. The direction comes from :func:`journey_direction` and is the same for
       every point of the journey.
    2. The first point takes the nominal kilometreage of the reference point
       nearest to its GPS fix.
    3. Each following point adds (increasing) or subtracts (decreasing) the
       haversine distance from its predecessor, in km, so the chainage is
       monotonic in the journey's direction.
    """
    points = journey.points.copy()
    direction = journey_direction(journey)
    sign = 1.0 if direction is Direction.INCREASING else -1.0

    lats = points["lat"].to_numpy(dtype=float)
    lons = points["lon"].to_numpy(dtype=float)
    anchor = geometry.find_nearest(GeoPoint(lats[0], lons[0])).km_post

    steps_km = path_distances(lats, lons) / 1000.0
    points["chainage_km"] = anchor + sign * np.concatenate(([0.0], np.cumsum(steps_km)))
    points["direction"] = direction.value

    return replace(journey, points=points, direction=direction)


def resolve_journeys(journeys: List[Journey], geometry: TrackGeometry) -> List[Journey]:
    """Apply :func:`resolve_chainage` to every journey."""
    resolved = [resolve_chainage(journey, geometry) for journey in journeys]
    increasing = sum(1 for j in resolved if j.direction is Direction.INCREASING)
    logger.debug("Resolved chainage for %d journeys (%d increasing, %d decreasing)",
                 len(resolved), increasing, len(resolved) - increasing)
    return resolved
