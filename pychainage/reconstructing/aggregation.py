"""
Average speed aggregation module for pychainage.

Resampled journeys share the corridor grid, so the speed at grid index ``i``
of every journey refers to the same chainage. This module averages those
speeds per direction and power-to-weight band, after removing samples that
would not reflect normal running:

- **TSR rule:** a temporary speed restriction within ``tsr_window_boundary``
  km of the location invalidates the sample.
- **Loop rule:** near a loop (within ``loop_boundary_threshold`` km) a train
  may slow down to cross another train. The sample is kept only if the train
  still ran faster than ``loop_speed_threshold`` times the simulated speed
  at that location.

Locations with no usable sample report an average speed of 0.
"""

import logging
import warnings
from typing import Iterable, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from pychainage.models import AverageSpeedProfile, Direction, ResampledJourney

logger = logging.getLogger(__name__)

# slack on window edges so float noise in grid values does not drop an edge location
_WINDOW_TOLERANCE = 1e-9


def window_bounds(chainage: np.ndarray, half_width: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Index range of the points within ``half_width`` km of each point.

    Parameters
    ----------
    chainage : np.ndarray
        A journey's resampled chainage, monotonic (increasing or decreasing).
    half_width : float
        Half width of the window (km).

    Returns
    -------
    first, last : np.ndarray
        Inclusive index bounds for every position. Edges are matched with a
        tolerance of 1e-9 km. Lookups that fall beyond
        either end of the array are clamped to that end, so the window never
        extends past the journey's own grid.
    """
    chainage = np.asarray(chainage, dtype=float)
    n = len(chainage)
    if n == 0:
        empty = np.zeros(0, dtype=np.intp)
        return empty, empty.copy()

    descending = n > 1 and chainage[0] > chainage[-1]
    ascending = chainage[::-1] if descending else chainage

    reach = half_width + _WINDOW_TOLERANCE
    first = np.searchsorted(ascending, chainage - reach, side="left")
    last = np.searchsorted(ascending, chainage + reach, side="right") - 1
    first = np.clip(first, 0, n - 1)
    last = np.clip(last, 0, n - 1)

    if descending:
        # map positions in the reversed array back to journey order
        first, last = n - 1 - last, n - 1 - first
    return first.astype(np.intp), last.astype(np.intp)


def flagged_within(flags: np.ndarray, first: np.ndarray, last: np.ndarray) -> np.ndarray:
    """True at each position whose window [first, last] contains a set flag."""
    counts = np.concatenate(([0], np.cumsum(np.asarray(flags, dtype=bool), dtype=np.int64)))
    return counts[last + 1] - counts[first] > 0


def in_band(power_to_weight: float, band: Tuple[float, float]) -> bool:
    """True if ``power_to_weight`` lies in the half-open band (lower, upper]."""
    lower, upper = band
    return lower < power_to_weight <= upper


def _reference_chainage(journeys: Sequence[ResampledJourney], direction: Direction,
                        simulated: Optional[ResampledJourney],
                        grid: Optional[np.ndarray]) -> np.ndarray:
    if grid is not None:
        return np.asarray(grid, dtype=float)
    for journey in journeys:
        if journey.direction is direction:
            return journey.chainage
    if simulated is not None:
        return simulated.chainage
    raise ValueError(f"No {direction.value} journeys, simulated journey or grid to aggregate over.")


def average_speed(
    journeys: Sequence[ResampledJourney],
    direction: Direction,
    band: Tuple[float, float],
    simulated: Optional[ResampledJourney] = None,
    loop_boundary_threshold: float = 2.0,
    tsr_window_boundary: float = 1.0,
    loop_speed_threshold: float = 0.5,
    grid: Optional[np.ndarray] = None
) -> AverageSpeedProfile:
    """
    Average speed at each grid location for one direction and band.

    Parameters
    ----------
    journeys : sequence of ResampledJourney
        Resampled journeys; those travelling another way or outside the band
        are ignored.
    direction : Direction
        Direction of travel to average.
    band : tuple of float
        Power-to-weight band (lower, upper]; ``lower < ptw <= upper``.
    simulated : ResampledJourney, optional
        Reference (simulated) run in the same direction on the same grid.
        Without it every sample inside a loop window is excluded.
    loop_boundary_threshold : float, default=2.0
        Distance either side of a loop treated as inside it (km).
    tsr_window_boundary : float, default=1.0
        Distance either side of a TSR treated as inside it (km).
    loop_speed_threshold : float, default=0.5
        Fraction of the simulated speed a train must exceed inside a loop window.
    grid : np.ndarray, optional
        Grid locations. Only needed to size the result when no journey of this
        direction and no simulated journey is given.

    Returns
    -------
    AverageSpeedProfile
        ``average_speed[i]`` is the mean of the included positive speeds at
        index ``i`` (0 when there are none); ``sample_count[i]`` is the number
        of speeds averaged.

    Raises
    ------
    ValueError
        If journeys (or the simulated journey) do not share the grid length,
        or the grid cannot be determined.

    Examples
    --------
    >>> import pychainage as pyc
    >>> from pychainage.models import Direction
    >>> profile = pyc.reconstructing.average_speed(
    ...     resampled, Direction.INCREASING, band=(0.0, 2.0),
    ...     simulated=simulated_run, loop_speed_threshold=0.5,
    ... )
    >>> profile.to_frame().head()

    Notes
    -----
    Rules are evaluated at each journey's own chainage ``k`` at index ``i``.
    Window lookups search the journey's resampled grid and are clamped to its
    ends (see :func:`window_bounds`).

    1. A TSR anywhere in ``k +/- tsr_window_boundary`` excludes the sample.
    2. Otherwise a loop anywhere in ``k +/- loop_boundary_threshold`` keeps the
       sample only if ``speed > simulated_speed[i] * loop_speed_threshold``.
    3. Otherwise the sample is kept.
    """
    chainage = _reference_chainage(journeys, direction, simulated, grid)
    n = len(chainage)

    candidates = [j for j in journeys if j.direction is direction and in_band(j.power_to_weight, band)]
    for journey in candidates:
        if len(journey) != n:
            raise ValueError(
                f"Journey {journey.train_id}/{journey.loco_id} has {len(journey)} grid points, expected {n}; "
                "all journeys must be resampled onto the same grid.")
    if simulated is not None and len(simulated) != n:
        raise ValueError(f"Simulated journey has {len(simulated)} grid points, expected {n}.")

    if not candidates:
        return AverageSpeedProfile(direction, tuple(band), chainage.copy(), np.zeros(n), np.zeros(n, dtype=int))

    sim_speed = simulated.speed if simulated is not None else None
    speeds = np.vstack([j.speed for j in candidates])
    include = np.zeros_like(speeds, dtype=bool)

    for row, journey in enumerate(candidates):
        points = journey.points
        own = journey.chainage

        first, last = window_bounds(own, tsr_window_boundary)
        near_tsr = flagged_within(points["is_tsr"].to_numpy(dtype=bool), first, last)

        first, last = window_bounds(own, loop_boundary_threshold)
        near_loop = flagged_within(points["is_loop"].to_numpy(dtype=bool), first, last)

        if sim_speed is not None:
            fast_enough = speeds[row] > sim_speed * loop_speed_threshold
        else:
            fast_enough = np.zeros(n, dtype=bool)

        include[row] = ~near_tsr & (~near_loop | fast_enough)

    usable = include & (speeds > 0)
    count = usable.sum(axis=0)
    total = np.where(usable, speeds, 0.0).sum(axis=0)
    mean = np.where(count > 0, total / np.maximum(count, 1), 0.0)

    logger.debug("Averaged %d %s journeys in band (%s, %s]: %d of %d locations have samples",
                 len(candidates), direction.value, band[0], band[1], int((count > 0).sum()), n)
    return AverageSpeedProfile(direction, tuple(band), chainage.copy(), mean, count.astype(int))


def average_speed_profiles(
    journeys: Sequence[ResampledJourney],
    bands: Iterable[Tuple[float, float]],
    simulated: Optional[Mapping[Direction, ResampledJourney]] = None,
    grids: Optional[Mapping[Direction, np.ndarray]] = None,
    loop_boundary_threshold: float = 2.0,
    tsr_window_boundary: float = 1.0,
    loop_speed_threshold: float = 0.5
) -> List[AverageSpeedProfile]:
    """
    Average speed profiles for both directions and every band.

    Parameters
    ----------
    journeys : sequence of ResampledJourney
        All resampled journeys of the corridor.
    bands : iterable of (lower, upper)
        Power-to-weight bands.
    simulated : mapping of Direction to ResampledJourney, optional
        Simulated reference run per direction.
    grids : mapping of Direction to np.ndarray, optional
        Grid per direction. A direction with no journeys, no simulated run and
        no grid is skipped.
    loop_boundary_threshold, tsr_window_boundary, loop_speed_threshold : float
        See :func:`average_speed`.

    Returns
    -------
    list of AverageSpeedProfile
        Ordered by direction (increasing first), then by band.
    """
    simulated = simulated or {}
    grids = grids or {}
    bands = [tuple(b) for b in bands]

    profiles = []
    for direction in (Direction.INCREASING, Direction.DECREASING):
        sim = simulated.get(direction)
        grid = grids.get(direction)
        if grid is None and sim is None and not any(j.direction is direction for j in journeys):
            logger.debug("No %s journeys to aggregate", direction.value)
            continue
        for band in bands:
            profile = average_speed(
                journeys, direction, band, simulated=sim, grid=grid,
                loop_boundary_threshold=loop_boundary_threshold,
                tsr_window_boundary=tsr_window_boundary,
                loop_speed_threshold=loop_speed_threshold,
            )
            if profile.sample_count.sum() == 0:
                warnings.warn(f"No usable samples for {direction.value} journeys in power-to-weight band "
                              f"({band[0]}, {band[1]}]; the average speed is 0 everywhere.")
            profiles.append(profile)
    return profiles


def profiles_to_frame(profiles: Sequence[AverageSpeedProfile]) -> pd.DataFrame:
    """Stack profiles into one long DataFrame for reporting."""
    if not profiles:
        return pd.DataFrame(columns=["direction", "band_lower", "band_upper",
                                     "chainage_km", "average_speed", "sample_count"])
    return pd.concat([p.to_frame() for p in profiles], ignore_index=True)
