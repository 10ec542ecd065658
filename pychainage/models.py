"""
Record model for pychainage.

Raw telemetry and every intermediate product of the pipeline are carried as
pandas DataFrames with fixed column names; the small value types below tie
those frames to the journey they belong to.

Raw point columns
-----------------
- ``train_id``: train identifier
- ``loco_id``: locomotive identifier
- ``time``: timestamp of the record
- ``lat``, ``lon``: GPS fix (WGS84 decimal degrees)
- ``speed``: instantaneous speed (km/h)
- ``km_post``: nominal track kilometreage reported with the fix
- ``power_to_weight``: power-to-weight ratio of the consist

Journey points add ``chainage_km``, ``direction``, ``is_loop``, ``is_tsr`` and
``tsr_speed``. Resampled points carry ``train_id``, ``loco_id``, ``time``,
``chainage_km``, ``speed``, ``is_loop``, ``is_tsr`` and ``tsr_speed``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional, Tuple

import numpy as np
import pandas as pd

RAW_COLUMNS = (
    "train_id", "loco_id", "time", "lat", "lon", "speed", "km_post", "power_to_weight",
)
NUMERIC_COLUMNS = ("lat", "lon", "speed", "km_post", "power_to_weight")
SORT_COLUMNS = ["train_id", "loco_id", "time", "km_post"]
GEOMETRY_ATTRIBUTES = ("is_loop", "is_tsr", "tsr_speed")
RESAMPLED_COLUMNS = (
    "train_id", "loco_id", "time", "chainage_km", "speed", "is_loop", "is_tsr", "tsr_speed",
)

# Timestamp assigned to grid locations outside the observed range of a journey
SENTINEL_TIME = pd.Timestamp(2000, 1, 1)


class Direction(str, Enum):
    """Direction of travel relative to the corridor kilometreage."""

    INCREASING = "increasing"
    DECREASING = "decreasing"
    UNKNOWN = "unknown"


class GeoPoint(NamedTuple):
    """A WGS84 location in decimal degrees."""

    lat: float
    lon: float


class TrackReferencePoint(NamedTuple):
    """One row of a corridor's track geometry table."""

    corridor_id: int
    name: str
    location: GeoPoint
    elevation: float
    km_post: float
    virtual_km: float
    is_loop: bool
    is_tsr: bool = False
    tsr_speed: float = 0.0


@dataclass
class Journey:
    """
    One continuous run of a single train/locomotive pair.

    ``points`` holds the journey's records in time order. Pipeline stages do not
    modify a Journey in place; they return a new one with an enriched frame.
    """

    train_id: str
    loco_id: str
    points: pd.DataFrame
    direction: Direction = Direction.UNKNOWN
    included: bool = True

    def __len__(self) -> int:
        return len(self.points)

    @property
    def power_to_weight(self) -> float:
        return float(self.points["power_to_weight"].iloc[0])

    @property
    def chainage(self) -> np.ndarray:
        return self.points["chainage_km"].to_numpy(dtype=float)


@dataclass
class ResampledJourney:
    """A journey resampled onto the corridor's fixed chainage grid."""

    train_id: str
    loco_id: str
    direction: Direction
    power_to_weight: float
    points: pd.DataFrame

    def __len__(self) -> int:
        return len(self.points)

    @property
    def chainage(self) -> np.ndarray:
        return self.points["chainage_km"].to_numpy(dtype=float)

    @property
    def speed(self) -> np.ndarray:
        return self.points["speed"].to_numpy(dtype=float)


@dataclass
class AverageSpeedProfile:
    """Average speed per grid location for one direction and power-to-weight band."""

    direction: Direction
    band: Tuple[float, float]
    chainage_km: np.ndarray
    average_speed: np.ndarray
    sample_count: Optional[np.ndarray] = None

    def __post_init__(self):
        if self.sample_count is None:
            self.sample_count = np.zeros(len(self.chainage_km), dtype=int)

    def __len__(self) -> int:
        return len(self.chainage_km)

    def to_frame(self) -> pd.DataFrame:
        lower, upper = self.band
        return pd.DataFrame({
            "direction": self.direction.value,
            "band_lower": lower,
            "band_upper": upper,
            "chainage_km": self.chainage_km,
            "average_speed": self.average_speed,
            "sample_count": self.sample_count,
        })
