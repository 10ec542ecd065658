"""
Journey resampling module for pychainage.

Raw telemetry arrives at irregular intervals, so two journeys never share the
same chainage values. This module resamples every journey onto one fixed
chainage grid for the corridor (``start_km`` to ``end_km`` every ``interval``
metres), which is what allows journeys to be averaged position by position.

For each grid location the journey's speed is linearly interpolated between
the nearest recorded points below and above it, the time at that location is
reconstructed from the recorded timestamps and the interpolated speed, and the
loop/TSR attributes of the track geometry are attached.

Grid locations outside the chainage range a journey actually covered are kept
(so every journey has the same length) with a speed of 0 and a sentinel time
of 2000-01-01.
"""

import logging
from typing import Dict, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
import polars as pl
from scipy.interpolate import interp1d
from tqdm import tqdm

from pychainage.models import (
    GEOMETRY_ATTRIBUTES,
    RESAMPLED_COLUMNS,
    SENTINEL_TIME,
    Direction,
    Journey,
    ResampledJourney,
)
from pychainage.preprocessing.validation import utc_datetime64
from pychainage.utilities.track_geometry import TrackGeometry

logger = logging.getLogger(__name__)

_SENTINEL_NS = np.datetime64(SENTINEL_TIME.to_datetime64(), "ns")
_NS_PER_HOUR = 3600.0 * 1e9


def chainage_grid(start_km: float, end_km: float, interval: float,
                  direction: Direction) -> np.ndarray:
    """
    Fixed chainage grid for one direction of travel.

    Parameters
    ----------
    start_km, end_km : float
        Corridor window (km), ``start_km < end_km``.
    interval : float
        Grid spacing in metres.
    direction : Direction
        INCREASING walks up from ``start_km`` while the location is below
        ``end_km``; DECREASING walks down from ``end_km`` while the location
        is above ``start_km``.

    Returns
    -------
    np.ndarray
        Grid locations in km, in the order the journey travels them.

    Notes
    -----
    Locations are computed as ``start + i * step`` rather than by repeated
    addition, so every call with the same arguments returns bit-identical
    values and journeys can be aligned by position.
    """
    if interval <= 0:
        raise ValueError("interval must be positive")
    if not start_km < end_km:
        raise ValueError("start_km must be smaller than end_km")
    if direction is Direction.UNKNOWN:
        raise ValueError("A chainage grid needs a known direction of travel.")

    step = interval / 1000.0
    # the small tolerance keeps float noise in the division from adding a location at end_km
    count = int(np.ceil((end_km - start_km) / step - 1e-9))
    offsets = step * np.arange(count, dtype=float)
    if direction is Direction.INCREASING:
        return start_km + offsets
    return end_km - offsets


def bracket_indices(chainage: np.ndarray, grid: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Indices of the recorded points bracketing each grid location.

    Parameters
    ----------
    chainage : np.ndarray
        Chainage of the journey's recorded points, in journey order.
    grid : np.ndarray
        Grid locations.

    Returns
    -------
    lower, greater : np.ndarray
        For each grid location ``k``, ``lower`` is the index of the point with
        the greatest chainage strictly below ``k`` and ``greater`` the index of
        the point with the smallest chainage strictly above ``k``; -1 where no
        such point exists. Among points with equal chainage the first in
        journey order is used. A point whose chainage equals ``k`` exactly is
        returned as both bounds.
    """
    n = len(chainage)
    if n == 0:
        missing = np.full(len(grid), -1, dtype=np.intp)
        return missing, missing.copy()

    # Stable sort keeps equal chainages in journey order, so the leftmost
    # position of a run of equal values maps back to its first occurrence
    order = np.argsort(chainage, kind="stable")
    sorted_ch = chainage[order]

    left = np.searchsorted(sorted_ch, grid, side="left")    # first position >= k
    right = np.searchsorted(sorted_ch, grid, side="right")  # first position > k

    has_lower = left > 0
    lower_pos = np.where(has_lower, left - 1, 0)
    lower_first = np.searchsorted(sorted_ch, sorted_ch[lower_pos], side="left")
    lower = np.where(has_lower, order[lower_first], -1)

    has_greater = right < n
    greater = np.where(has_greater, order[np.minimum(right, n - 1)], -1)

    exact = right > left
    hit = order[np.minimum(left, n - 1)]
    lower = np.where(exact, hit, lower)
    greater = np.where(exact, hit, greater)
    return lower.astype(np.intp), greater.astype(np.intp)


def _linear(target: np.ndarray, x0: np.ndarray, x1: np.ndarray,
            y0: np.ndarray, y1: np.ndarray) -> np.ndarray:
    """Linear interpolation; the mean of y0 and y1 where x0 == x1."""
    dx = x1 - x0
    flat = dx == 0
    with np.errstate(divide="ignore", invalid="ignore"):
        interpolated = y0 + (target - x0) * (y1 - y0) / np.where(flat, 1.0, dx)
    return np.where(flat, (y0 + y1) / 2.0, interpolated)


def _reconstruct_times(grid: np.ndarray, lower: np.ndarray, greater: np.ndarray,
                       valid: np.ndarray, speed: np.ndarray,
                       recorded: np.ndarray) -> np.ndarray:
    """
    Time at each grid location.

    Entering a new bracketing pair seeds the clock from the lower point's
    recorded time; staying within the same pair advances it by the time needed
    to cover the grid step at the interpolated speed (km / km/h = hours). A
    zero speed leaves the clock where it is.
    """
    times = np.full(len(grid), _SENTINEL_NS, dtype="datetime64[ns]")
    clock = None
    previous_pair = None
    for i in range(len(grid)):
        if not valid[i]:
            previous_pair = None
            continue
        pair = (lower[i], greater[i])
        if pair != previous_pair:
            clock = recorded[lower[i]]
        elif speed[i] != 0:
            hours = abs(grid[i] - grid[i - 1]) / speed[i]
            clock = clock + np.timedelta64(int(round(hours * _NS_PER_HOUR)), "ns")
        times[i] = clock
        previous_pair = pair
    return times


def _localize_times(times: np.ndarray, valid: np.ndarray, tz) -> pd.Series:
    """
    Reconstructed UTC times back in the journey's own timezone.

    Naive journeys are returned unchanged. For timezone-aware journeys the
    sentinel is 2000-01-01 midnight in that timezone.
    """
    out = pd.Series(times)
    if tz is None:
        return out
    out = out.dt.tz_localize("UTC").dt.tz_convert(tz)
    return out.where(valid, SENTINEL_TIME.tz_localize(tz))


def _resample(journey: Journey, grid: np.ndarray, attributes: pd.DataFrame) -> ResampledJourney:
    points = journey.points
    if "chainage_km" not in points.columns:
        raise ValueError("Journey chainage has not been resolved; call resolve_chainage() first.")

    chainage = points["chainage_km"].to_numpy(dtype=float)
    speeds = points["speed"].to_numpy(dtype=float)
    tz = pd.to_datetime(points["time"]).dt.tz
    recorded = utc_datetime64(points["time"])

    lower, greater = bracket_indices(chainage, grid)
    valid = (lower >= 0) & (greater >= 0)
    lo = np.where(valid, lower, 0)
    hi = np.where(valid, greater, 0)

    speed = _linear(grid, chainage[lo], chainage[hi], speeds[lo], speeds[hi])
    speed = np.where(valid, speed, 0.0)
    times = _localize_times(_reconstruct_times(grid, lower, greater, valid, speed, recorded), valid, tz)

    frame = pd.DataFrame({
        "train_id": journey.train_id,
        "loco_id": journey.loco_id,
        "time": times,
        "chainage_km": grid,
        "speed": speed,
    })
    for col in GEOMETRY_ATTRIBUTES:
        frame[col] = attributes[col].to_numpy()

    return ResampledJourney(
        train_id=journey.train_id,
        loco_id=journey.loco_id,
        direction=journey.direction,
        power_to_weight=journey.power_to_weight,
        points=frame[list(RESAMPLED_COLUMNS)],
    )


def resample_journey(
    journey: Journey,
    geometry: TrackGeometry,
    start_km: float,
    end_km: float,
    interval: float = 50.0
) -> ResampledJourney:
    """
    Resample one resolved journey onto the corridor chainage grid.

    Parameters
    ----------
    journey : Journey
        A journey with ``chainage_km`` resolved and a known direction.
    geometry : TrackGeometry
        Corridor geometry; each grid location takes the loop/TSR attributes of
        the reference point nearest to it by chainage.
    start_km, end_km : float
        Corridor window (km).
    interval : float, default=50.0
        Grid spacing (metres).

    Returns
    -------
    ResampledJourney
        One row per grid location with ``train_id``, ``loco_id``, ``time``,
        ``chainage_km``, ``speed``, ``is_loop``, ``is_tsr`` and ``tsr_speed``.

    Raises
    ------
    ValueError
        If the journey's chainage is unresolved or its direction is UNKNOWN.

    Examples
    --------
    >>> import pychainage as pyc
    >>> resampled = pyc.reconstructing.resample_journey(
    ...     journey, geometry, start_km=5.0, end_km=70.0, interval=50.0
    ... )
    >>> resampled.points[['chainage_km', 'speed', 'time']].head()

    Notes
    -----
    **Interpolation:** with ``(X0, Y0)`` the lower point's chainage and speed
    and ``(X1, Y1)`` the greater point's, the speed at ``k`` is
    ``Y0 + (k - X0) * (Y1 - Y0) / (X1 - X0)``, or ``(Y0 + Y1) / 2`` when
    ``X1 == X0``. A recorded point lying exactly on ``k`` is used for both
    bounds, so its recorded speed is reproduced.

    **Boundaries:** if either bound is missing the location lies outside the
    journey; speed is 0 and time is 2000-01-01.

    **Time:** see :func:`_reconstruct_times`. Timezone-aware journeys keep their timezone;
    the clock runs in UTC so daylight-saving changes do not distort it.
    """
    grid = chainage_grid(start_km, end_km, interval, journey.direction)
    return _resample(journey, grid, geometry.attributes_at(grid))


def resample_journeys(
    journeys: List[Journey],
    geometry: TrackGeometry,
    start_km: float,
    end_km: float,
    interval: float = 50.0,
    verbose: bool = False
) -> List[ResampledJourney]:
    """
    Resample every journey onto the corridor grid of its direction.

    The grid and its geometry attributes are computed once per direction and
    shared by all journeys travelling that way. Pass ``verbose=True`` to show a
    progress bar.
    """
    cache: Dict[Direction, Tuple[np.ndarray, pd.DataFrame]] = {}
    iterator = tqdm(journeys, desc="resampling journeys") if verbose else journeys

    resampled = []
    for journey in iterator:
        if journey.direction not in cache:
            grid = chainage_grid(start_km, end_km, interval, journey.direction)
            cache[journey.direction] = (grid, geometry.attributes_at(grid))
        grid, attributes = cache[journey.direction]
        resampled.append(_resample(journey, grid, attributes))

    logger.info("Resampled %d journeys onto a %.3f km grid from %.3f to %.3f km",
                len(resampled), interval / 1000.0, start_km, end_km)
    return resampled


def resampled_to_frame(journeys: List[ResampledJourney],
                       direction: Optional[Direction] = None) -> pd.DataFrame:
    """
    Stack resampled journeys into one long DataFrame for reporting.

    Adds ``journey`` (position in the list), ``direction`` and
    ``power_to_weight`` columns. When ``direction`` is given only journeys
    travelling that way are included.
    """
    frames = []
    for number, journey in enumerate(journeys):
        if direction is not None and journey.direction is not direction:
            continue
        frame = journey.points.copy()
        frame.insert(0, "journey", number)
        frame["direction"] = journey.direction.value
        frame["power_to_weight"] = journey.power_to_weight
        frames.append(frame)
    if not frames:
        return pd.DataFrame(columns=["journey", *RESAMPLED_COLUMNS, "direction", "power_to_weight"])
    return pd.concat(frames, ignore_index=True)


def resample_profile(
    df: Union[pd.DataFrame, pl.DataFrame],
    direction: Direction,
    start_km: float,
    end_km: float,
    interval: float = 50.0,
    geometry: Optional[TrackGeometry] = None,
    name: str = 'simulated'
) -> ResampledJourney:
    """
    Put a reference speed profile (e.g. a simulated run) on the corridor grid.

    Parameters
    ----------
    df : pd.DataFrame or pl.DataFrame
        Speed-vs-chainage table with ``chainage_km`` and ``speed`` columns, in
        any order. At least two rows are required.
    direction : Direction
        Direction of travel of the profile; selects the grid.
    start_km, end_km, interval : float
        Corridor grid (see :func:`chainage_grid`).
    geometry : TrackGeometry, optional
        When given, loop/TSR attributes are attached as for journeys.
    name : str, default='simulated'
        Used as both train and locomotive id of the result.

    Returns
    -------
    ResampledJourney
        Aligned with every journey resampled in ``direction``. Grid locations
        outside the profile's chainage range get a speed of 0, like journeys.
        ``power_to_weight`` is NaN and times are the sentinel.
    """
    pdf = df.to_pandas() if isinstance(df, pl.DataFrame) else df
    if len(pdf) < 2:
        raise ValueError("A reference profile needs at least two points.")

    profile = pdf[["chainage_km", "speed"]].astype(float).sort_values("chainage_km", kind="mergesort")
    profile = profile.drop_duplicates(subset="chainage_km", keep="first")

    grid = chainage_grid(start_km, end_km, interval, direction)
    speed = interp1d(profile["chainage_km"].to_numpy(), profile["speed"].to_numpy(),
                     kind="linear", bounds_error=False, fill_value=0.0)(grid)

    frame = pd.DataFrame({
        "train_id": name,
        "loco_id": name,
        "time": np.full(len(grid), _SENTINEL_NS, dtype="datetime64[ns]"),
        "chainage_km": grid,
        "speed": speed,
    })
    if geometry is not None:
        attributes = geometry.attributes_at(grid)
        for col in GEOMETRY_ATTRIBUTES:
            frame[col] = attributes[col].to_numpy()
    else:
        frame["is_loop"] = False
        frame["is_tsr"] = False
        frame["tsr_speed"] = 0.0

    return ResampledJourney(
        train_id=name,
        loco_id=name,
        direction=direction,
        power_to_weight=float("nan"),
        points=frame[list(RESAMPLED_COLUMNS)],
    )
