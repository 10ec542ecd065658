"""
Geometry annotation module for pychainage.

Copies the loop and temporary speed restriction (TSR) attributes of the track
geometry onto journey or resampled points. Each point is matched to the
reference point whose nominal kilometreage is closest to the point's chainage.
"""

from dataclasses import replace
from typing import List

import pandas as pd

from pychainage.models import GEOMETRY_ATTRIBUTES, Journey
from pychainage.utilities.track_geometry import TrackGeometry


def annotate_frame(df: pd.DataFrame, geometry: TrackGeometry,
                   chainage_col: str = 'chainage_km') -> pd.DataFrame:
    """
    Return a copy of ``df`` with ``is_loop``, ``is_tsr`` and ``tsr_speed`` columns.

    Parameters
    ----------
    df : pd.DataFrame
        Points with a chainage column (journey points or resampled points).
    geometry : TrackGeometry
        Corridor geometry supplying the attributes.
    chainage_col : str, default='chainage_km'
        Name of the chainage column.

    Returns
    -------
    pd.DataFrame
        Existing attribute columns are overwritten.
    """
    if chainage_col not in df.columns:
        raise ValueError(f"Column '{chainage_col}' not found; resolve chainage before annotating.")
    out = df.copy()
    attributes = geometry.attributes_at(out[chainage_col].to_numpy(dtype=float))
    for col in GEOMETRY_ATTRIBUTES:
        out[col] = attributes[col].to_numpy()
    return out


def annotate_journey(journey: Journey, geometry: TrackGeometry) -> Journey:
    """Annotate every point of a resolved journey; returns a new Journey."""
    return replace(journey, points=annotate_frame(journey.points, geometry))


def annotate_journeys(journeys: List[Journey], geometry: TrackGeometry) -> List[Journey]:
    return [annotate_journey(journey, geometry) for journey in journeys]
