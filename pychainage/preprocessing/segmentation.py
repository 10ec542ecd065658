"""
Journey segmentation module for pychainage.

This module groups chronologically sorted raw telemetry into per-train
journeys. A journey is one continuous run of a single train/locomotive pair:
it ends when the next record belongs to another train or locomotive, or when
the time since the previous record reaches the time threshold.

Journeys are then screened:
- a single step longer than the distance threshold is a GPS discontinuity and
  invalidates the whole journey
- journeys shorter than the minimum journey distance are dropped
"""

import logging
from typing import List, Union

import numpy as np
import pandas as pd
import polars as pl

from pychainage.models import Journey
from pychainage.preprocessing.validation import is_sorted, utc_datetime64
from pychainage.utilities.geodesy import path_distances

logger = logging.getLogger(__name__)


def segment_journeys(
    df: Union[pd.DataFrame, pl.DataFrame],
    distance_threshold: float = 4000,
    time_threshold: float = 600,
    minimum_journey_distance: float = 40000
) -> List[Journey]:
    """
    Split sorted raw points into journeys and keep the valid ones.

    Parameters
    ----------
    df : pd.DataFrame or pl.DataFrame
        Raw points sorted by (train_id, loco_id, time, km_post); see
        :func:`pychainage.preprocessing.sort_points`. Must contain the
        ``train_id``, ``loco_id``, ``time``, ``lat``, ``lon`` and ``km_post`` columns.
    distance_threshold : float, default=4000
        Maximum distance in metres between consecutive points of a journey.
        A longer step marks the journey as a GPS discontinuity and the journey
        is discarded once it closes.
    time_threshold : float, default=600
        Time gap in minutes that starts a new journey. Points strictly closer
        in time than this (and with the same train and locomotive) stay together.
    minimum_journey_distance : float, default=40000
        Minimum total point-to-point distance in metres for a journey to be kept.

    Returns
    -------
    list of Journey
        Included journeys in input order. Each journey's ``points`` frame is a
        copy of its rows with a fresh index; ``direction`` is still UNKNOWN.

    Raises
    ------
    ValueError
        If the input is empty or not sorted in segmentation order.

    Examples
    --------
    >>> import pychainage as pyc
    >>> points = pyc.preprocessing.sort_points(raw)
    >>> journeys = pyc.preprocessing.segment_journeys(
    ...     points,
    ...     time_threshold=600,             # 10 hours
    ...     minimum_journey_distance=40000  # 40 km
    ... )
    >>> print(f"{len(journeys)} journeys kept")

    Notes
    -----
    **Algorithm:**
    1. Compare each point with its predecessor: same train, same locomotive and
       a time gap below ``time_threshold`` joins it to the current journey
    2. Every other point starts a new journey (split index)
    3. Within each journey, sum the haversine steps and flag any step longer
       than ``distance_threshold``
    4. Keep journeys that are not flagged and whose distance is at least
       ``minimum_journey_distance``

    The distance to a point that starts a new journey is never added to either
    journey. A single-point journey has zero distance, so it is excluded by the
    minimum-distance rule unless that rule is disabled with 0.
    """
    pdf = df.to_pandas() if isinstance(df, pl.DataFrame) else df
    n = len(pdf)
    if n == 0:
        raise ValueError("Cannot segment an empty set of points.")
    if not is_sorted(pdf):
        raise ValueError("Points must be sorted by (train_id, loco_id, time, km_post) before segmentation; "
                         "use pychainage.preprocessing.sort_points().")

    trains = pdf["train_id"].astype(str).to_numpy()
    locos = pdf["loco_id"].astype(str).to_numpy()
    times = utc_datetime64(pdf["time"])

    # Elapsed minutes and geodesic step from each point to the next (length n-1)
    gap_minutes = np.diff(times) / np.timedelta64(1, "m")
    steps = path_distances(pdf["lat"].to_numpy(dtype=float), pdf["lon"].to_numpy(dtype=float))

    same_unit = (trains[1:] == trains[:-1]) & (locos[1:] == locos[:-1])
    joins = same_unit & (gap_minutes < time_threshold)

    # Add 1 because point i+1 is the one that starts the new journey
    split_indices = np.flatnonzero(~joins) + 1
    boundaries = np.concatenate(([0], split_indices, [n]))

    journeys = []
    discontinuous = 0
    too_short = 0
    for start, end in zip(boundaries[:-1], boundaries[1:]):
        # steps[start:end-1] are the steps inside this journey
        journey_steps = steps[start:end - 1]
        journey_distance = float(journey_steps.sum())

        if np.any(journey_steps > distance_threshold):
            discontinuous += 1
            continue
        if journey_distance < minimum_journey_distance:
            too_short += 1
            continue

        points = pdf.iloc[start:end].copy().reset_index(drop=True)
        journeys.append(Journey(
            train_id=str(trains[start]),
            loco_id=str(locos[start]),
            points=points,
        ))

    logger.info(
        "Segmented %d points into %d journeys (%d kept, %d discontinuous, %d too short)",
        n, len(boundaries) - 1, len(journeys), discontinuous, too_short,
    )
    return journeys
