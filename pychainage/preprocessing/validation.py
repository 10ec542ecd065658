"""
Input validation module for pychainage.

The pipeline assumes it receives well-formed raw points and geometry rows. The
ingestion side is a separate collaborator, so these checks are the boundary
where malformed upstream data is rejected: a missing column, an empty value or
a field that does not parse as a number or date raises ``ValueError`` naming
the offending column. Nothing is silently replaced with a default, since a
zero kilometreage or speed would corrupt every downstream average.
"""

from typing import Iterable, Union

import numpy as np
import pandas as pd
import polars as pl

from pychainage.models import NUMERIC_COLUMNS, RAW_COLUMNS, SORT_COLUMNS
from pychainage.utilities.track_geometry import parse_tsr_flag

GEOMETRY_COLUMNS = ("name", "lat", "lon", "elevation", "km_post", "loop")
GEOMETRY_NUMERIC_COLUMNS = ("lat", "lon", "elevation", "km_post")


def _require_columns(pdf: pd.DataFrame, columns: Iterable[str], what: str) -> None:
    missing = [c for c in columns if c not in pdf.columns]
    if missing:
        raise ValueError(f"{what} is missing required columns: {missing}")


def _coerce_numeric(pdf: pd.DataFrame, columns: Iterable[str], what: str) -> None:
    for col in columns:
        try:
            pdf[col] = pd.to_numeric(pdf[col], errors="raise").astype(float)
        except (ValueError, TypeError) as exc:
            raise ValueError(f"{what} column '{col}' contains a value that is not a number: {exc}") from exc


def _reject_nulls(pdf: pd.DataFrame, columns: Iterable[str], what: str) -> None:
    for col in columns:
        nulls = pdf[col].isna()
        if nulls.any():
            first = int(nulls.to_numpy().nonzero()[0][0])
            raise ValueError(f"{what} column '{col}' has {int(nulls.sum())} empty value(s), first at row {first}")


def validate_points(df: Union[pd.DataFrame, pl.DataFrame]) -> pd.DataFrame:
    """
    Check raw telemetry points and return them as a clean pandas DataFrame.

    Parameters
    ----------
    df : pd.DataFrame or pl.DataFrame
        Raw points with the columns listed in :data:`pychainage.models.RAW_COLUMNS`.
        Extra columns are kept.

    Returns
    -------
    pd.DataFrame
        A copy with ``train_id``/``loco_id`` as strings, ``time`` as datetime64
        (keeping any timezone) and the numeric columns as float. The row order is unchanged.

    Raises
    ------
    ValueError
        If the frame is empty, a required column is missing, a value is empty,
        or a numeric/date field cannot be parsed.
    """
    pdf = df.to_pandas() if isinstance(df, pl.DataFrame) else df.copy()
    if len(pdf) == 0:
        raise ValueError("No raw points supplied: the input is empty.")
    _require_columns(pdf, RAW_COLUMNS, "Raw points")
    _reject_nulls(pdf, RAW_COLUMNS, "Raw points")
    _coerce_numeric(pdf, NUMERIC_COLUMNS, "Raw points")

    try:
        pdf["time"] = pd.to_datetime(pdf["time"], errors="raise")
    except (ValueError, TypeError) as exc:
        raise ValueError(f"Raw points column 'time' contains a value that is not a date: {exc}") from exc

    pdf["train_id"] = pdf["train_id"].astype(str)
    pdf["loco_id"] = pdf["loco_id"].astype(str)
    return pdf.reset_index(drop=True)


def validate_geometry_rows(rows: Union[pd.DataFrame, pl.DataFrame]) -> pd.DataFrame:
    """
    Check a track geometry table before it is built into a TrackGeometry.

    The ``loop`` column may be empty (no loop); every other required column
    must be present and parse. When present, ``is_tsr`` must hold true/false
    flags (see :func:`pychainage.utilities.track_geometry.parse_tsr_flag`) and
    ``tsr_speed`` numbers; empty cells in either mean no restriction.

    Raises
    ------
    ValueError
        If the table is empty, a column is missing, a numeric field is invalid
        or an ``is_tsr`` value is not a true/false flag.
    """
    pdf = rows.to_pandas() if isinstance(rows, pl.DataFrame) else rows.copy()
    if len(pdf) == 0:
        raise ValueError("No track geometry supplied: the geometry table is empty.")
    _require_columns(pdf, GEOMETRY_COLUMNS, "Track geometry")
    _reject_nulls(pdf, GEOMETRY_NUMERIC_COLUMNS, "Track geometry")
    _coerce_numeric(pdf, GEOMETRY_NUMERIC_COLUMNS, "Track geometry")
    if "is_tsr" in pdf.columns:
        for row, value in enumerate(pdf["is_tsr"]):
            try:
                parse_tsr_flag(value)
            except ValueError as exc:
                raise ValueError(f"Track geometry column 'is_tsr' row {row}: {exc}") from exc
    if "tsr_speed" in pdf.columns:
        _coerce_numeric(pdf, ["tsr_speed"], "Track geometry")
        pdf["tsr_speed"] = pdf["tsr_speed"].fillna(0.0)
    return pdf.reset_index(drop=True)


def utc_datetime64(times: pd.Series) -> np.ndarray:
    """
    Timestamps as naive UTC ``datetime64[ns]`` values for arithmetic.

    Timezone-aware input is converted to UTC first, so elapsed times are
    correct across daylight-saving changes; naive input is used as it is.
    """
    times = pd.to_datetime(times)
    if times.dt.tz is not None:
        times = times.dt.tz_convert("UTC").dt.tz_localize(None)
    return times.to_numpy(dtype="datetime64[ns]")


def is_sorted(pdf: pd.DataFrame) -> bool:
    """True if ``pdf`` is ordered by (train_id, loco_id, time, km_post)."""
    if len(pdf) < 2:
        return True
    keys = pdf[SORT_COLUMNS].reset_index(drop=True)
    ordered = keys.sort_values(SORT_COLUMNS, kind="mergesort").reset_index(drop=True)
    return keys.equals(ordered)


def sort_points(df: Union[pd.DataFrame, pl.DataFrame]) -> pd.DataFrame:
    """
    Sort raw points into segmentation order: train, loco, time, then km post.

    A stable sort is used so that records with identical keys keep their
    delivery order.
    """
    pdf = df.to_pandas() if isinstance(df, pl.DataFrame) else df
    return pdf.sort_values(SORT_COLUMNS, kind="mergesort").reset_index(drop=True)
