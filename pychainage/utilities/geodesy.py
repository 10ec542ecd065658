"""
Geodesy module for pychainage.

This module provides great-circle distance calculations used throughout the
chainage pipeline: building the virtual kilometreage of a track geometry,
accumulating the along-track distance of a journey, and detecting GPS
discontinuities while segmenting raw telemetry.

All distances use the haversine formula on a sphere with a fixed mean Earth
radius. The functions accept scalars or numpy arrays and broadcast like any
other numpy ufunc expression.
"""

from typing import Union

import numpy as np

from pychainage.models import GeoPoint

# Mean radius of the Earth (metres)
EARTH_RADIUS_M = 6371000.0

ArrayLike = Union[float, np.ndarray]


def haversine(lat1: ArrayLike, lon1: ArrayLike,
              lat2: ArrayLike, lon2: ArrayLike) -> ArrayLike:
    """
    Great-circle distance in metres between (lat1, lon1) and (lat2, lon2).

    Parameters
    ----------
    lat1, lon1 : float or np.ndarray
        Latitude and longitude of the first location(s) in decimal degrees.
    lat2, lon2 : float or np.ndarray
        Latitude and longitude of the second location(s) in decimal degrees.

    Returns
    -------
    float or np.ndarray
        Distance(s) in metres. Scalars in, scalar out; arrays broadcast.

    Examples
    --------
    >>> from pychainage.utilities.geodesy import haversine
    >>> # one degree of longitude east of the Sydney Harbour Bridge, about 92.3 km
    >>> d = haversine(-33.8519, 151.2108, -33.8519, 152.2108)

    Notes
    -----
    The arc length is computed with ``atan2(sqrt(a), sqrt(1 - a))`` rather than
    ``asin(sqrt(a))`` so that nearly antipodal points stay numerically stable.
    """
    phi1 = np.radians(lat1)
    phi2 = np.radians(lat2)
    half_dphi = np.radians(np.subtract(lat2, lat1)) / 2.0
    half_dlambda = np.radians(np.subtract(lon2, lon1)) / 2.0

    a = np.sin(half_dphi) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin(half_dlambda) ** 2
    # rounding can push a marginally outside [0, 1]
    a = np.clip(a, 0.0, 1.0)
    arc = 2.0 * np.arctan2(np.sqrt(a), np.sqrt(1.0 - a))

    result = EARTH_RADIUS_M * arc
    if np.ndim(result) == 0:
        return float(result)
    return result


def distance(a: GeoPoint, b: GeoPoint) -> float:
    """Haversine distance in metres between two GeoPoints."""
    return haversine(a.lat, a.lon, b.lat, b.lon)


def path_distances(lats: np.ndarray, lons: np.ndarray) -> np.ndarray:
    """
    Point-to-point distances along a polyline.

    Parameters
    ----------
    lats, lons : np.ndarray
        Ordered coordinates of the polyline (decimal degrees).

    Returns
    -------
    np.ndarray
        Array of length ``len(lats) - 1`` where element ``i`` is the distance in
        metres from point ``i`` to point ``i + 1``. Empty for fewer than two points.
    """
    lats = np.asarray(lats, dtype=float)
    lons = np.asarray(lons, dtype=float)
    if lats.size < 2:
        return np.zeros(0, dtype=float)
    return np.asarray(haversine(lats[:-1], lons[:-1], lats[1:], lons[1:]), dtype=float)
