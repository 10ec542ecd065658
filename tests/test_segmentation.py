"""
Tests for journey segmentation.
"""

import logging

import numpy as np
import pandas as pd
import pytest

from pychainage.models import Direction
from pychainage.preprocessing.segmentation import segment_journeys
from pychainage.preprocessing.validation import sort_points
from pychainage.utilities.geodesy import path_distances

from conftest import LON, T0, lat_at, make_run


def _three_points(gap_minutes, train_ids=("A", "A", "A"), loco_ids=("L", "L", "L")):
    """Three points 1 km apart; the last follows the second after ``gap_minutes``."""
    times = [T0, T0 + pd.Timedelta(minutes=1), T0 + pd.Timedelta(minutes=1 + gap_minutes)]
    return pd.DataFrame({
        "train_id": list(train_ids),
        "loco_id": list(loco_ids),
        "time": times,
        "lat": lat_at([1.0, 2.0, 3.0]),
        "lon": LON,
        "speed": 60.0,
        "km_post": [1.0, 2.0, 3.0],
        "power_to_weight": 1.5,
    })


class TestSplitting:
    """Tests for where journeys start and end."""

    def test_gap_below_threshold_joins(self):
        journeys = segment_journeys(_three_points(599), minimum_journey_distance=0)
        assert len(journeys) == 1
        assert len(journeys[0]) == 3

    def test_gap_at_threshold_splits(self):
        journeys = segment_journeys(_three_points(600), minimum_journey_distance=0)
        assert [len(j) for j in journeys] == [2, 1]

    def test_new_train_splits(self):
        points = _three_points(1, train_ids=("A", "A", "B"))
        journeys = segment_journeys(points, minimum_journey_distance=0)
        assert [(j.train_id, len(j)) for j in journeys] == [("A", 2), ("B", 1)]

    def test_new_loco_splits(self):
        points = _three_points(1, loco_ids=("L1", "L1", "L2"))
        journeys = segment_journeys(points, minimum_journey_distance=0)
        assert [j.loco_id for j in journeys] == ["L1", "L2"]

    def test_timezone_aware_times(self):
        points = _three_points(599)
        points["time"] = points["time"].dt.tz_localize("Australia/Sydney")
        journeys = segment_journeys(points, minimum_journey_distance=0)
        assert len(journeys) == 1
        assert journeys[0].points["time"].iloc[0] == T0.tz_localize("Australia/Sydney")

    def test_journey_fields(self):
        journeys = segment_journeys(_three_points(1), minimum_journey_distance=0)
        journey = journeys[0]
        assert journey.direction is Direction.UNKNOWN
        assert journey.included
        assert journey.points.index.tolist() == [0, 1, 2]
        assert journey.power_to_weight == 1.5

    def test_distance_across_split_not_counted(self):
        # the second train starts 100 km away from where the first ended
        points = sort_points(pd.concat([
            make_run("A", "L", 1.0, 45.0, 60.0),
            make_run("B", "L", 145.0, 190.0, 60.0),
        ], ignore_index=True))
        journeys = segment_journeys(points)
        assert [j.train_id for j in journeys] == ["A", "B"]


class TestScreening:
    """Tests for discontinuity and minimum-distance screening."""

    def test_step_equal_to_threshold_kept(self):
        points = _three_points(1)
        longest = path_distances(points["lat"].to_numpy(), points["lon"].to_numpy()).max()
        journeys = segment_journeys(points, distance_threshold=longest, minimum_journey_distance=0)
        assert len(journeys) == 1

    def test_step_above_threshold_discards_journey(self):
        points = _three_points(1)
        longest = path_distances(points["lat"].to_numpy(), points["lon"].to_numpy()).max()
        journeys = segment_journeys(points, distance_threshold=longest - 1.0, minimum_journey_distance=0)
        assert journeys == []

    def test_minimum_distance_is_inclusive(self):
        points = _three_points(1)
        total = float(path_distances(points["lat"].to_numpy(), points["lon"].to_numpy()).sum())
        assert len(segment_journeys(points, minimum_journey_distance=total)) == 1
        assert segment_journeys(points, minimum_journey_distance=np.nextafter(total, np.inf)) == []

    def test_one_metre_short_is_dropped(self):
        points = _three_points(1)
        total = float(path_distances(points["lat"].to_numpy(), points["lon"].to_numpy()).sum())
        assert segment_journeys(points, minimum_journey_distance=total + 1.0) == []

    def test_default_minimum_drops_short_runs(self):
        points = sort_points(pd.concat([
            make_run("A", "L", 1.0, 50.0, 60.0),
            make_run("B", "L", 1.0, 30.0, 60.0),
        ], ignore_index=True))
        assert [j.train_id for j in segment_journeys(points)] == ["A"]

    def test_logs_summary(self, caplog):
        caplog.set_level(logging.INFO, logger="pychainage")
        segment_journeys(_three_points(600), minimum_journey_distance=0)
        assert "into 2 journeys" in caplog.text


class TestInputChecks:
    """Tests for rejected input."""

    def test_empty_raises(self):
        with pytest.raises(ValueError, match="empty"):
            segment_journeys(_three_points(1).iloc[0:0])

    def test_unsorted_raises(self):
        with pytest.raises(ValueError, match="sorted"):
            segment_journeys(_three_points(1).iloc[::-1])
