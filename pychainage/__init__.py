"""
pychainage - A Python library for turning raw train telemetry into average speed profiles.

pychainage takes GPS telemetry recorded by trains on a rail corridor and
produces, for each direction of travel and power-to-weight band, the average
speed at fixed chainage intervals along the corridor.

Components
----------
- **preprocessing**: Raw point handling (validation, filtering, journey segmentation,
  chainage resolution, geometry annotation)
- **reconstructing**: Grid products (resampling onto the chainage grid, average speed aggregation)
- **utilities**: Shared building blocks (geodesy, track geometry, corridor settings, visualization)
- **pipeline**: ``process_corridor``, which runs every stage in order

Quick Start
-----------
```python
import pandas as pd
import pychainage as pyc

points = pd.read_csv('telemetry.csv')
geometry_rows = pd.read_csv('geometry.csv')

settings = pyc.CorridorSettings(
    start_km=5.0, end_km=70.0, interval=50.0,
    power_to_weight_bands=((0.0, 2.0), (2.0, 4.0)),
)

result = pyc.process_corridor(points, geometry_rows, settings, excluded_trains=['9X01'])

result.resampled_frame().to_csv('resampled.csv', index=False)
result.profiles_frame().to_csv('average_speed.csv', index=False)

pyc.utilities.visualization.profile_plt(result.profiles, geometry=result.geometry)
```
"""

import logging

from pychainage._version import __version__, __version_info__
from pychainage import preprocessing, reconstructing, utilities
from pychainage.models import (
    AverageSpeedProfile,
    Direction,
    GeoPoint,
    Journey,
    ResampledJourney,
    TrackReferencePoint,
)
from pychainage.pipeline import CorridorResult, process_corridor
from pychainage.utilities.config import CorridorSettings
from pychainage.utilities.track_geometry import TrackGeometry

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    '__version__',
    '__version_info__',
    'preprocessing',
    'reconstructing',
    'utilities',
    # Records
    'AverageSpeedProfile',
    'Direction',
    'GeoPoint',
    'Journey',
    'ResampledJourney',
    'TrackReferencePoint',
    # Pipeline
    'CorridorResult',
    'CorridorSettings',
    'TrackGeometry',
    'process_corridor',
]
