"""
Corridor configuration for pychainage.

``CorridorSettings`` gathers every threshold the pipeline needs into a single
immutable object that is passed explicitly to each stage. Nothing in the
library reads configuration from module-level state.
"""

import math
from datetime import datetime
from typing import Any, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class CorridorSettings(BaseModel):
    """
    Processing parameters for one rail corridor.

    Parameters
    ----------
    start_km, end_km : float
        Corridor window covered by the resampling grid (km).
    interval : float, default=50.0
        Resampling interval (metres).
    distance_threshold : float, default=4000.0
        Largest step between consecutive points before a journey is treated as
        a GPS discontinuity (metres).
    time_threshold : float, default=600.0
        Time gap that separates two journeys of the same train (minutes).
    minimum_journey_distance : float, default=40000.0
        Shortest journey kept by the segmenter (metres).
    loop_boundary_threshold : float, default=2.0
        Distance either side of a loop considered inside its boundary (km).
    tsr_window_boundary : float, default=1.0
        Distance either side of a TSR considered inside its boundary (km).
    loop_speed_threshold : float, default=0.5
        Fraction of the simulated speed a train must exceed inside a loop
        boundary for its sample to be averaged.
    date_range, latitude, longitude : tuple, optional
        Inclusive bounding box applied to raw points before segmentation.
    power_to_weight_bands : tuple of (lower, upper)
        Bands averaged separately; each band is the half-open range (lower, upper].

    Examples
    --------
    >>> from pychainage.utilities.config import CorridorSettings
    >>> settings = CorridorSettings(start_km=5.0, end_km=70.0, interval=50.0,
    ...                             power_to_weight_bands=((0.0, 2.0), (2.0, 4.0)))
    >>> settings.interval_km
    0.05
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    # corridor window
    start_km: float
    end_km: float
    interval: float = Field(default=50.0, gt=0)

    # segmentation
    distance_threshold: float = Field(default=4000.0, gt=0)
    time_threshold: float = Field(default=600.0, gt=0)
    minimum_journey_distance: float = Field(default=40000.0, ge=0)

    # aggregation
    loop_boundary_threshold: float = Field(default=2.0, ge=0)
    tsr_window_boundary: float = Field(default=1.0, ge=0)
    loop_speed_threshold: float = Field(default=0.5, ge=0)
    power_to_weight_bands: Tuple[Tuple[float, float], ...] = ((0.0, math.inf),)

    # ingestion-side filtering
    date_range: Optional[Tuple[datetime, datetime]] = None
    latitude: Optional[Tuple[float, float]] = None
    longitude: Optional[Tuple[float, float]] = None

    @field_validator("date_range", "latitude", "longitude")
    @classmethod
    def _ordered_range(cls, v, info):
        if v is not None and v[0] > v[1]:
            raise ValueError(f"{info.field_name} must be given as (minimum, maximum)")
        return v

    @field_validator("power_to_weight_bands")
    @classmethod
    def _valid_bands(cls, v):
        if not v:
            raise ValueError("at least one power-to-weight band is required")
        for lower, upper in v:
            if not lower < upper:
                raise ValueError(f"power-to-weight band ({lower}, {upper}] is empty")
        return v

    @model_validator(mode="after")
    def _window(self):
        if not self.start_km < self.end_km:
            raise ValueError("start_km must be smaller than end_km")
        return self

    @property
    def interval_km(self) -> float:
        return self.interval / 1000.0

    @property
    def aggregation_thresholds(self) -> dict:
        """Keyword arguments accepted by the aggregation functions."""
        return {
            "loop_boundary_threshold": self.loop_boundary_threshold,
            "tsr_window_boundary": self.tsr_window_boundary,
            "loop_speed_threshold": self.loop_speed_threshold,
        }

    @property
    def segmentation_thresholds(self) -> dict:
        """Keyword arguments accepted by the journey segmenter."""
        return {
            "distance_threshold": self.distance_threshold,
            "time_threshold": self.time_threshold,
            "minimum_journey_distance": self.minimum_journey_distance,
        }

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "CorridorSettings":
        """Build settings from a plain mapping, e.g. a parsed configuration file."""
        return cls.model_validate(dict(mapping))
