"""
Tests for chainage resolution.
"""

import numpy as np
import pandas as pd
from numpy.testing import assert_allclose

from pychainage.models import Direction, Journey
from pychainage.preprocessing.chainage import journey_direction, resolve_chainage, resolve_journeys

from conftest import make_run


def _journey(start_km, end_km, speed=60.0, step_km=0.5):
    points = make_run("1A01", "L100", start_km, end_km, speed, step_km=step_km)
    return Journey("1A01", "L100", points)


class TestDirection:
    """Tests for journey_direction."""

    def test_increasing(self):
        assert journey_direction(_journey(1.0, 10.0)) is Direction.INCREASING

    def test_decreasing(self):
        assert journey_direction(_journey(10.0, 1.0)) is Direction.DECREASING

    def test_no_net_change_is_decreasing(self):
        journey = _journey(1.0, 10.0)
        journey.points["km_post"] = 5.0
        assert journey_direction(journey) is Direction.DECREASING


class TestResolveChainage:
    """Tests for resolve_chainage."""

    def test_increasing_chainage(self, geometry):
        resolved = resolve_chainage(_journey(1.0, 20.0), geometry)
        assert resolved.direction is Direction.INCREASING
        assert_allclose(resolved.chainage, np.arange(1.0, 20.25, 0.5), atol=1e-9)
        assert np.all(np.diff(resolved.chainage) > 0)
        assert set(resolved.points["direction"]) == {"increasing"}

    def test_decreasing_chainage(self, geometry):
        resolved = resolve_chainage(_journey(20.0, 1.0), geometry)
        assert resolved.direction is Direction.DECREASING
        assert resolved.chainage[0] == 20.0
        assert np.all(np.diff(resolved.chainage) < 0)

    def test_anchor_is_nearest_reference_point(self, geometry):
        # first fix at 1.3 km lies nearest the 1 km reference point
        resolved = resolve_chainage(_journey(1.3, 10.3), geometry)
        assert resolved.chainage[0] == 1.0
        assert_allclose(resolved.chainage[-1], 10.0, atol=1e-9)

    def test_uses_travelled_distance_not_km_post(self, geometry):
        journey = _journey(1.0, 5.0)
        journey.points["km_post"] = [1, 1, 1, 1, 1, 1, 1, 1, 9]
        resolved = resolve_chainage(journey, geometry)
        assert_allclose(resolved.chainage[-1], 5.0, atol=1e-9)

    def test_input_not_modified(self, geometry):
        journey = _journey(1.0, 5.0)
        resolve_chainage(journey, geometry)
        assert "chainage_km" not in journey.points.columns
        assert journey.direction is Direction.UNKNOWN

    def test_resolve_journeys(self, geometry):
        journeys = [_journey(1.0, 5.0), _journey(5.0, 1.0)]
        resolved = resolve_journeys(journeys, geometry)
        assert [j.direction for j in resolved] == [Direction.INCREASING, Direction.DECREASING]
        assert all(isinstance(j.points, pd.DataFrame) for j in resolved)
