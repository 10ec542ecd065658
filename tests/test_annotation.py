"""
Tests for loop/TSR annotation.
"""

import pandas as pd
import pytest

from pychainage.models import Journey
from pychainage.preprocessing.annotation import annotate_frame, annotate_journey, annotate_journeys
from pychainage.preprocessing.chainage import resolve_chainage

from conftest import make_run


class TestAnnotateFrame:
    """Tests for annotate_frame."""

    def test_attributes_from_nearest_km_post(self, looped_geometry):
        frame = pd.DataFrame({"chainage_km": [29.6, 30.4, 30.6, 49.9, 10.0]})
        out = annotate_frame(frame, looped_geometry)
        assert out["is_loop"].tolist() == [True, True, False, False, False]
        assert out["is_tsr"].tolist() == [False, False, False, True, False]
        assert out["tsr_speed"].tolist() == [0.0, 0.0, 0.0, 40.0, 0.0]

    def test_overwrites_existing_attributes(self, looped_geometry):
        frame = pd.DataFrame({"chainage_km": [30.0], "is_loop": [False]})
        assert bool(annotate_frame(frame, looped_geometry)["is_loop"].iloc[0])

    def test_custom_column(self, looped_geometry):
        frame = pd.DataFrame({"km": [30.0]})
        assert bool(annotate_frame(frame, looped_geometry, chainage_col="km")["is_loop"].iloc[0])

    def test_missing_chainage_raises(self, looped_geometry):
        with pytest.raises(ValueError, match="resolve chainage"):
            annotate_frame(pd.DataFrame({"speed": [1.0]}), looped_geometry)


class TestAnnotateJourney:
    """Tests for annotating whole journeys."""

    def test_journey_points_annotated(self, looped_geometry):
        points = make_run("1A01", "L100", 25.0, 55.0, 60.0, step_km=0.4)
        journey = resolve_chainage(Journey("1A01", "L100", points), looped_geometry)
        annotated = annotate_journey(journey, looped_geometry)
        assert annotated.points["is_loop"].sum() == 2  # 29.8 and 30.2
        assert annotated.points["is_tsr"].sum() == 2  # 49.8 and 50.2
        assert "is_loop" not in journey.points.columns

    def test_annotate_journeys(self, looped_geometry):
        points = make_run("1A01", "L100", 25.0, 35.0, 60.0)
        journey = resolve_chainage(Journey("1A01", "L100", points), looped_geometry)
        assert len(annotate_journeys([journey, journey], looped_geometry)) == 2
