"""
Corridor processing pipeline for pychainage.

``process_corridor`` runs every stage in order on one corridor's data:

1. validate the raw points and the track geometry
2. drop excluded trains and points outside the configured bounding box
3. sort and segment the points into journeys
4. resolve chainage and annotate loop/TSR attributes
5. resample every journey onto the corridor grid
6. average the resampled journeys per direction and power-to-weight band
7. hand the result to the report sink, if one is given

Structural problems (empty input, empty geometry) stop the run with a
``ValueError``; problems with individual journeys only remove those journeys.
"""

import logging
import warnings
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Mapping, Optional, Tuple, Union

import numpy as np
import pandas as pd
import polars as pl

from pychainage.models import AverageSpeedProfile, Direction, Journey, ResampledJourney
from pychainage.preprocessing.annotation import annotate_journeys
from pychainage.preprocessing.chainage import resolve_journeys
from pychainage.preprocessing.filtration import (
    _from_pandas_preserve,
    _to_pandas_preserve,
    exclude_trains,
    within_bounds,
)
from pychainage.preprocessing.segmentation import segment_journeys
from pychainage.preprocessing.validation import sort_points, validate_geometry_rows, validate_points
from pychainage.reconstructing.aggregation import average_speed_profiles, profiles_to_frame
from pychainage.reconstructing.resampling import (
    chainage_grid,
    resample_journeys,
    resample_profile,
    resampled_to_frame,
)
from pychainage.utilities.config import CorridorSettings
from pychainage.utilities.track_geometry import TrackGeometry

logger = logging.getLogger(__name__)

FrameLike = Union[pd.DataFrame, pl.DataFrame]


@dataclass
class CorridorResult:
    """Everything produced by one run of :func:`process_corridor`."""

    settings: CorridorSettings
    geometry: TrackGeometry
    journeys: List[Journey]
    resampled: List[ResampledJourney]
    profiles: List[AverageSpeedProfile]
    simulated: Mapping[Direction, ResampledJourney] = field(default_factory=dict)
    as_polars: bool = False

    def resampled_frame(self, direction: Optional[Direction] = None) -> FrameLike:
        """Resampled journeys as one long frame, in the input's frame type."""
        return _from_pandas_preserve(resampled_to_frame(self.resampled, direction), self.as_polars)

    def profiles_frame(self) -> FrameLike:
        """Average speed profiles as one long frame, in the input's frame type."""
        return _from_pandas_preserve(profiles_to_frame(self.profiles), self.as_polars)

    def profile(self, direction: Direction, band: Tuple[float, float]) -> AverageSpeedProfile:
        """The profile for one direction and band."""
        for p in self.profiles:
            if p.direction is direction and p.band == tuple(band):
                return p
        raise KeyError(f"No {direction.value} profile for band {tuple(band)}")


def _prepare_simulated(
    simulated: Optional[Mapping[Direction, Union[ResampledJourney, FrameLike]]],
    settings: CorridorSettings,
    geometry: TrackGeometry
) -> dict:
    prepared = {}
    for direction, run in (simulated or {}).items():
        direction = Direction(direction)
        if isinstance(run, ResampledJourney):
            prepared[direction] = run
        else:
            prepared[direction] = resample_profile(
                run, direction, settings.start_km, settings.end_km, settings.interval, geometry=geometry)
    return prepared


def process_corridor(
    points: FrameLike,
    geometry: Union[TrackGeometry, FrameLike],
    settings: CorridorSettings,
    excluded_trains: Iterable[str] = (),
    simulated: Optional[Mapping[Direction, Union[ResampledJourney, FrameLike]]] = None,
    restrictions: Optional[Union[FrameLike, Iterable[Tuple[float, float, float]]]] = None,
    sink: Optional[Callable[[CorridorResult], object]] = None,
    verbose: bool = False
) -> CorridorResult:
    """
    Turn raw telemetry into resampled journeys and average speed profiles.

    Parameters
    ----------
    points : pd.DataFrame or pl.DataFrame
        Raw telemetry points (see :mod:`pychainage.models` for the columns).
    geometry : TrackGeometry or DataFrame
        Corridor geometry, or the geometry table to build it from.
    settings : CorridorSettings
        Corridor window, thresholds, bands and ingestion bounding box.
    excluded_trains : iterable of str, optional
        Train ids removed before segmentation.
    simulated : mapping of Direction to ResampledJourney or DataFrame, optional
        Simulated reference run per direction, used by the loop rule. A
        DataFrame (``chainage_km``, ``speed``) is put on the grid with
        :func:`resample_profile`.
    restrictions : DataFrame or iterable of (start_km, end_km, speed), optional
        Temporary speed restrictions applied to the geometry for this run.
    sink : callable, optional
        Called with the :class:`CorridorResult` once it is complete (e.g. to
        write a spreadsheet). A failing sink is reported as a warning and does
        not affect the returned result.
    verbose : bool, default=False
        Show a progress bar while resampling.

    Returns
    -------
    CorridorResult

    Raises
    ------
    ValueError
        If the points or geometry are empty or malformed, or no points remain
        after filtering.

    Examples
    --------
    >>> import pychainage as pyc
    >>> settings = pyc.CorridorSettings(start_km=5.0, end_km=70.0, interval=50.0,
    ...                                 power_to_weight_bands=((0.0, 2.0), (2.0, 4.0)))
    >>> result = pyc.process_corridor(points, geometry_rows, settings,
    ...                               excluded_trains=['9X01'])
    >>> result.profiles_frame().to_csv('average_speed.csv', index=False)
    """
    if not isinstance(geometry, TrackGeometry):
        geometry = TrackGeometry.build(validate_geometry_rows(geometry))
    if len(geometry) == 0:
        raise ValueError("Track geometry is empty; chainage cannot be resolved without it.")
    if restrictions is not None:
        geometry = geometry.with_speed_restrictions(restrictions)

    pdf, was_polars = _to_pandas_preserve(points)
    pdf = validate_points(pdf)
    read = len(pdf)

    pdf = exclude_trains(pdf, excluded_trains)
    pdf = within_bounds(pdf, date_range=settings.date_range,
                        latitude=settings.latitude, longitude=settings.longitude)
    if len(pdf) == 0:
        raise ValueError(f"None of the {read} raw points remain after exclusion and bounding-box filtering.")
    logger.info("Kept %d of %d raw points after filtering", len(pdf), read)

    journeys = segment_journeys(sort_points(pdf), **settings.segmentation_thresholds)
    if not journeys:
        warnings.warn("No journeys survived segmentation; check the time, distance and minimum journey thresholds.")

    journeys = resolve_journeys(journeys, geometry)
    journeys = annotate_journeys(journeys, geometry)

    resampled = resample_journeys(journeys, geometry, settings.start_km, settings.end_km,
                                  settings.interval, verbose=verbose)

    simulated_runs = _prepare_simulated(simulated, settings, geometry)
    grids = {
        direction: chainage_grid(settings.start_km, settings.end_km, settings.interval, direction)
        for direction in (Direction.INCREASING, Direction.DECREASING)
    }
    for direction, run in simulated_runs.items():
        if not np.array_equal(run.chainage, grids[direction]):
            raise ValueError(f"Simulated {direction.value} run is not on the corridor grid.")

    profiles = average_speed_profiles(resampled, settings.power_to_weight_bands,
                                      simulated=simulated_runs, grids=grids,
                                      **settings.aggregation_thresholds)

    result = CorridorResult(
        settings=settings,
        geometry=geometry,
        journeys=journeys,
        resampled=resampled,
        profiles=profiles,
        simulated=simulated_runs,
        as_polars=was_polars,
    )

    if sink is not None:
        try:
            sink(result)
        except Exception as exc:
            logger.exception("Report sink failed")
            warnings.warn(f"Report sink failed ({exc!r}); the computed result is returned unchanged.")
    return result
