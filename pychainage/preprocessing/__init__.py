"""
Raw point preprocessing module for pychainage.

This module provides the stages that turn raw telemetry into annotated journeys:
- Validation: Reject malformed points and geometry rows, sort points
- Filtering: Bounding-box and excluded-train filters
- Segmentation: Split sorted points into journeys
- Chainage: Along-track chainage and direction of each journey
- Annotation: Loop/TSR attributes from the track geometry
"""

# Validation
from pychainage.preprocessing.validation import (
    is_sorted,
    sort_points,
    validate_geometry_rows,
    validate_points,
)

# Filtering
from pychainage.preprocessing.filtration import exclude_trains, within_bounds

# Segmentation
from pychainage.preprocessing.segmentation import segment_journeys

# Chainage
from pychainage.preprocessing.chainage import journey_direction, resolve_chainage, resolve_journeys

# Annotation
from pychainage.preprocessing.annotation import annotate_frame, annotate_journey, annotate_journeys

__all__ = [
    # Validation
    'is_sorted',
    'sort_points',
    'validate_geometry_rows',
    'validate_points',
    # Filtering
    'exclude_trains',
    'within_bounds',
    # Segmentation
    'segment_journeys',
    # Chainage
    'journey_direction',
    'resolve_chainage',
    'resolve_journeys',
    # Annotation
    'annotate_frame',
    'annotate_journey',
    'annotate_journeys',
]
