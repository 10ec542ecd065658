"""
Tests for corridor settings.
"""

import math
from datetime import datetime

import pytest
from pydantic import ValidationError

from pychainage.utilities.config import CorridorSettings


class TestCorridorSettings:
    """Tests for defaults and validation of CorridorSettings."""

    def test_defaults(self):
        settings = CorridorSettings(start_km=5.0, end_km=70.0)
        assert settings.interval == 50.0
        assert settings.distance_threshold == 4000.0
        assert settings.time_threshold == 600.0
        assert settings.minimum_journey_distance == 40000.0
        assert settings.loop_boundary_threshold == 2.0
        assert settings.tsr_window_boundary == 1.0
        assert settings.loop_speed_threshold == 0.5
        assert settings.power_to_weight_bands == ((0.0, math.inf),)

    def test_interval_km(self):
        assert CorridorSettings(start_km=0, end_km=1, interval=250).interval_km == 0.25

    def test_threshold_groups(self):
        settings = CorridorSettings(start_km=0, end_km=1, loop_speed_threshold=0.7)
        assert settings.aggregation_thresholds["loop_speed_threshold"] == 0.7
        assert set(settings.segmentation_thresholds) == {
            "distance_threshold", "time_threshold", "minimum_journey_distance",
        }

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            CorridorSettings(start_km=0, end_km=1, intervall=50)

    def test_window_must_be_ordered(self):
        with pytest.raises(ValidationError, match="start_km"):
            CorridorSettings(start_km=10, end_km=10)

    def test_interval_must_be_positive(self):
        with pytest.raises(ValidationError):
            CorridorSettings(start_km=0, end_km=1, interval=0)

    @pytest.mark.parametrize("bands", [(), ((2.0, 2.0),), ((3.0, 1.0),)])
    def test_invalid_bands(self, bands):
        with pytest.raises(ValidationError):
            CorridorSettings(start_km=0, end_km=1, power_to_weight_bands=bands)

    def test_reversed_bounding_box_rejected(self):
        with pytest.raises(ValidationError, match="latitude"):
            CorridorSettings(start_km=0, end_km=1, latitude=(-32.0, -34.0))

    def test_date_range(self):
        settings = CorridorSettings(start_km=0, end_km=1,
                                    date_range=(datetime(2017, 1, 1), datetime(2017, 3, 31)))
        assert settings.date_range[0].year == 2017

    def test_frozen(self):
        settings = CorridorSettings(start_km=0, end_km=1)
        with pytest.raises(ValidationError):
            settings.interval = 100.0

    def test_from_mapping(self):
        settings = CorridorSettings.from_mapping({
            "start_km": 5, "end_km": 70, "power_to_weight_bands": [[0, 2], [2, 4]],
        })
        assert settings.power_to_weight_bands == ((0.0, 2.0), (2.0, 4.0))
