"""
Reconstructing module for the pychainage library.

This module puts journeys onto the corridor's fixed chainage grid and averages
them into speed profiles per direction and power-to-weight band.
"""

from pychainage.reconstructing.resampling import (
    chainage_grid,
    resample_journey,
    resample_journeys,
    resample_profile,
    resampled_to_frame,
)
from pychainage.reconstructing.aggregation import (
    average_speed,
    average_speed_profiles,
    profiles_to_frame,
)

__all__ = [
    'chainage_grid',
    'resample_journey',
    'resample_journeys',
    'resample_profile',
    'resampled_to_frame',
    'average_speed',
    'average_speed_profiles',
    'profiles_to_frame',
]
