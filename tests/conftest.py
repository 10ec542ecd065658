"""
Shared fixtures: a synthetic corridor running due north along a meridian.

Along a meridian the haversine distance between two points is exactly
``R * dlat``, so a kilometre of chainage is exactly ``KM_DEG`` degrees of
latitude and expected chainages can be written down directly.
"""

import math

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from pychainage.models import Direction, ResampledJourney
from pychainage.utilities.geodesy import EARTH_RADIUS_M
from pychainage.utilities.track_geometry import TrackGeometry

LAT0 = -34.0
LON = 150.0
KM_DEG = 180.0 / (math.pi * EARTH_RADIUS_M / 1000.0)
T0 = pd.Timestamp("2017-03-01 06:00:00")


def lat_at(km):
    return LAT0 + np.asarray(km, dtype=float) * KM_DEG


def make_geometry_rows(first_km=0, last_km=80, loops=(), tsrs=()):
    """One reference row per kilometre; ``loops``/``tsrs`` are km posts to flag."""
    km = np.arange(first_km, last_km + 1, dtype=float)
    frame = pd.DataFrame({
        "name": [f"KM{int(k)}" for k in km],
        "lat": lat_at(km),
        "lon": LON,
        "elevation": 100.0,
        "km_post": km,
        "loop": ["loop" if k in loops else "" for k in km],
    })
    if tsrs:
        frame["is_tsr"] = [k in tsrs for k in km]
        frame["tsr_speed"] = [40.0 if k in tsrs else 0.0 for k in km]
    return frame


def make_run(train_id, loco_id, start_km, end_km, speed, start_time=T0,
             step_km=0.5, power_to_weight=1.5):
    """Raw points of a train running at constant speed between two km posts."""
    sign = 1.0 if end_km > start_km else -1.0
    count = int(round(abs(end_km - start_km) / step_km)) + 1
    km = start_km + sign * step_km * np.arange(count)
    elapsed_h = step_km * np.arange(count) / speed
    return pd.DataFrame({
        "train_id": train_id,
        "loco_id": loco_id,
        "time": start_time + pd.to_timedelta(elapsed_h * 3600.0, unit="s"),
        "lat": lat_at(km),
        "lon": LON,
        "speed": float(speed),
        "km_post": np.round(km),
        "power_to_weight": power_to_weight,
    })


def make_resampled(speed, chainage=None, is_loop=None, is_tsr=None,
                   power_to_weight=1.5, direction=Direction.INCREASING, train_id="T"):
    """A ResampledJourney built directly from arrays."""
    speed = np.asarray(speed, dtype=float)
    n = len(speed)
    chainage = np.arange(n, dtype=float) if chainage is None else np.asarray(chainage, dtype=float)
    frame = pd.DataFrame({
        "train_id": train_id,
        "loco_id": "L",
        "time": pd.Timestamp(2000, 1, 1),
        "chainage_km": chainage,
        "speed": speed,
        "is_loop": np.zeros(n, dtype=bool) if is_loop is None else np.asarray(is_loop, dtype=bool),
        "is_tsr": np.zeros(n, dtype=bool) if is_tsr is None else np.asarray(is_tsr, dtype=bool),
        "tsr_speed": 0.0,
    })
    return ResampledJourney(train_id, "L", direction, power_to_weight, frame)


@pytest.fixture
def geometry_rows():
    return make_geometry_rows()


@pytest.fixture
def geometry(geometry_rows):
    return TrackGeometry.build(geometry_rows)


@pytest.fixture
def looped_geometry():
    return TrackGeometry.build(make_geometry_rows(loops=(30.0,), tsrs=(50.0,)))


@pytest.fixture
def raw_points():
    """Two northbound trains at 60 and 40 km/h and one southbound at 45 km/h."""
    return pd.concat([
        make_run("1A01", "L100", 1.0, 70.0, 60.0),
        make_run("1A02", "L200", 1.0, 70.0, 40.0, start_time=T0 + pd.Timedelta(hours=1)),
        make_run("2B01", "L300", 70.0, 1.0, 45.0, start_time=T0 + pd.Timedelta(hours=2)),
    ], ignore_index=True)
