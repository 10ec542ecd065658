"""
Utilities module for the pychainage library.

This module provides great-circle distances, the track geometry model, corridor
settings and visualization tools.
"""

from pychainage.utilities.geodesy import EARTH_RADIUS_M, distance, haversine, path_distances
from pychainage.utilities.track_geometry import TrackGeometry
from pychainage.utilities.config import CorridorSettings

# Import visualization submodule
from pychainage.utilities import visualization

__all__ = [
    # Geodesy
    'EARTH_RADIUS_M',
    'distance',
    'haversine',
    'path_distances',
    # Geometry and settings
    'TrackGeometry',
    'CorridorSettings',
    # Visualization module
    'visualization',
]
