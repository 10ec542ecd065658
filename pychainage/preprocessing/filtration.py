"""
Raw point filtration module for pychainage.

Telemetry extracts usually cover more than the corridor being studied: other
lines, other dates, and trains that are known to be unrepresentative (work
trains, test runs). The functions here trim the raw points before
segmentation:

- ``within_bounds``: keep points inside a date range and a latitude/longitude box
- ``exclude_trains``: drop every point of the listed train ids

Both accept pandas or polars DataFrames and return the same type they receive.
"""

from datetime import datetime
from typing import Iterable, Optional, Tuple, Union

import numpy as np
import pandas as pd
import polars as pl

# ========== DataFrame Type Preservation Helpers ==========
# These helpers let the filters work with both pandas and polars DataFrames
# while returning the same type as the input


def _to_pandas_preserve(df: Union[pd.DataFrame, pl.DataFrame]) -> Tuple[pd.DataFrame, bool]:
    """
    Convert input DataFrame to pandas and track original type.

    Returns: (pandas_df, was_polars_flag)
    """
    if isinstance(df, pl.DataFrame):
        return df.to_pandas(), True
    return df.copy(), False


def _from_pandas_preserve(pdf: pd.DataFrame, was_polars: bool) -> Union[pd.DataFrame, pl.DataFrame]:
    """
    Convert pandas DataFrame back to original type if needed.

    If was_polars=True, converts back to polars. Otherwise returns pandas.
    """
    return pl.from_pandas(pdf) if was_polars else pdf


def within_bounds(
    df: Union[pd.DataFrame, pl.DataFrame],
    date_range: Optional[Tuple[datetime, datetime]] = None,
    latitude: Optional[Tuple[float, float]] = None,
    longitude: Optional[Tuple[float, float]] = None,
    time_col: str = 'time',
    lat_col: str = 'lat',
    lon_col: str = 'lon'
) -> Union[pd.DataFrame, pl.DataFrame]:
    """
    Keep only the raw points inside a date range and a geographic box.

    Parameters
    ----------
    df : pd.DataFrame or pl.DataFrame
        Raw telemetry points.
    date_range : tuple of datetime, optional
        Inclusive (start, end) range for ``time_col``. None disables the check.
        Naive bounds against timezone-aware times are taken in that timezone.
    latitude : tuple of float, optional
        Inclusive (minimum, maximum) latitude. None disables the check.
    longitude : tuple of float, optional
        Inclusive (minimum, maximum) longitude. None disables the check.
    time_col, lat_col, lon_col : str
        Column names.

    Returns
    -------
    pd.DataFrame or pl.DataFrame
        The points that passed every enabled check, same type as the input,
        index reset.

    Examples
    --------
    >>> from datetime import datetime
    >>> import pychainage as pyc
    >>> corridor = pyc.preprocessing.within_bounds(
    ...     points,
    ...     date_range=(datetime(2017, 1, 1), datetime(2017, 3, 31)),
    ...     latitude=(-34.5, -32.5),
    ...     longitude=(150.0, 152.0),
    ... )
    """
    pdf, was_polars = _to_pandas_preserve(df)
    keep = np.ones(len(pdf), dtype=bool)

    if date_range is not None:
        times = pd.to_datetime(pdf[time_col])
        start, end = pd.Timestamp(date_range[0]), pd.Timestamp(date_range[1])
        if times.dt.tz is not None:
            # naive bounds are read as wall-clock times in the points' timezone
            start = start.tz_localize(times.dt.tz) if start.tzinfo is None else start
            end = end.tz_localize(times.dt.tz) if end.tzinfo is None else end
        keep &= ((times >= start) & (times <= end)).to_numpy()

    if latitude is not None:
        lats = pdf[lat_col].to_numpy(dtype=float)
        keep &= (lats >= latitude[0]) & (lats <= latitude[1])

    if longitude is not None:
        lons = pdf[lon_col].to_numpy(dtype=float)
        keep &= (lons >= longitude[0]) & (lons <= longitude[1])

    out = pdf.loc[keep].reset_index(drop=True)
    return _from_pandas_preserve(out, was_polars)


def exclude_trains(
    df: Union[pd.DataFrame, pl.DataFrame],
    train_ids: Iterable[str],
    train_col: str = 'train_id'
) -> Union[pd.DataFrame, pl.DataFrame]:
    """
    Drop every point belonging to one of ``train_ids``.

    Ids are compared as strings, so ``"4A12"`` and an integer-typed column
    holding the same text both match.

    Parameters
    ----------
    df : pd.DataFrame or pl.DataFrame
        Raw telemetry points.
    train_ids : iterable of str
        Train ids to remove. An empty iterable returns the input unchanged
        (as a copy).
    train_col : str, default='train_id'
        Name of the train id column.

    Returns
    -------
    pd.DataFrame or pl.DataFrame
        Same type as the input, index reset.
    """
    pdf, was_polars = _to_pandas_preserve(df)
    excluded = {str(t) for t in train_ids}
    if excluded:
        pdf = pdf.loc[~pdf[train_col].astype(str).isin(excluded)].reset_index(drop=True)
    return _from_pandas_preserve(pdf, was_polars)
