"""
Tests for great-circle distance utilities.
"""

import math

import numpy as np
import pytest
from numpy.testing import assert_allclose

from pychainage.models import GeoPoint
from pychainage.utilities.geodesy import EARTH_RADIUS_M, distance, haversine, path_distances


class TestHaversine:
    """Tests for the haversine distance."""

    def test_same_point_is_zero(self):
        assert haversine(-33.8688, 151.2093, -33.8688, 151.2093) == 0.0

    def test_symmetric(self):
        d1 = haversine(-33.8688, 151.2093, -37.8136, 144.9631)
        d2 = haversine(-37.8136, 144.9631, -33.8688, 151.2093)
        assert d1 == pytest.approx(d2, rel=1e-12)

    def test_sydney_to_melbourne(self):
        """Sydney to Melbourne is about 713 km along the great circle."""
        d = haversine(-33.8688, 151.2093, -37.8136, 144.9631)
        assert_allclose(d, 713_000.0, rtol=0.01)

    def test_one_degree_east_of_harbour_bridge(self):
        lat = -33.8519
        d = haversine(lat, 151.2108, lat, 152.2108)
        along_parallel = EARTH_RADIUS_M * math.cos(math.radians(lat)) * math.radians(1.0)
        assert_allclose(d, along_parallel, rtol=0.01)

    def test_one_degree_of_latitude(self):
        d = haversine(-34.0, 150.0, -33.0, 150.0)
        assert_allclose(d, EARTH_RADIUS_M * math.pi / 180.0, rtol=1e-12)

    def test_scalar_returns_float(self):
        assert isinstance(haversine(0.0, 0.0, 0.0, 1.0), float)

    def test_broadcasts_over_arrays(self):
        lats = np.array([-34.0, -33.0, -32.0])
        d = haversine(lats, 150.0, -34.0, 150.0)
        assert d.shape == (3,)
        assert d[0] == 0.0
        assert_allclose(d[2], 2 * d[1], rtol=1e-9)

    def test_antipodal_points(self):
        d = haversine(0.0, 0.0, 0.0, 180.0)
        assert_allclose(d, math.pi * EARTH_RADIUS_M, rtol=1e-12)


class TestDistanceHelpers:
    """Tests for GeoPoint and polyline helpers."""

    def test_distance_between_geopoints(self):
        a = GeoPoint(-33.8688, 151.2093)
        b = GeoPoint(-37.8136, 144.9631)
        assert distance(a, b) == haversine(a.lat, a.lon, b.lat, b.lon)

    def test_path_distances_length(self):
        lats = np.array([-34.0, -33.9, -33.8, -33.7])
        lons = np.full(4, 150.0)
        steps = path_distances(lats, lons)
        assert steps.shape == (3,)
        assert_allclose(steps, EARTH_RADIUS_M * math.radians(0.1), rtol=1e-9)

    @pytest.mark.parametrize("lats", [[], [-34.0]])
    def test_path_distances_short_input(self, lats):
        assert path_distances(np.array(lats), np.array(lats)).size == 0
