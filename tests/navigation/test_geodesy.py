"""Tests for great-circle geodesy primitives."""

import pytest

from navplan.navigation.geodesy import (
    LatLongAlt,
    bearing_distance_to_coordinates,
    course_to_distance_from,
    great_circle_distance,
    great_circle_heading,
    great_circle_intersection_distance,
    leg_distances,
)


class TestHeadingAndDistance:
    """Test course and distance between two points."""

    def test_heading_cardinal_directions(self):
        """Test headings along the equator and a meridian."""
        origin = LatLongAlt(0.0, 0.0)
        assert great_circle_heading(origin, LatLongAlt(1.0, 0.0)) == pytest.approx(0.0)
        assert great_circle_heading(origin, LatLongAlt(0.0, 1.0)) == pytest.approx(90.0)
        assert great_circle_heading(origin, LatLongAlt(-1.0, 0.0)) == pytest.approx(180.0)
        assert great_circle_heading(origin, LatLongAlt(0.0, -1.0)) == pytest.approx(270.0)

    def test_heading_is_normalized(self):
        """Test heading stays within [0, 360)."""
        heading = great_circle_heading(LatLongAlt(10.0, 10.0), LatLongAlt(11.0, 9.0))
        assert 0.0 <= heading < 360.0
        assert heading > 270.0

    def test_one_degree_of_latitude_is_sixty_miles(self):
        """Test a degree of arc is about 60 NM."""
        distance = great_circle_distance(LatLongAlt(0.0, 0.0), LatLongAlt(1.0, 0.0))
        assert distance == pytest.approx(60.04, abs=0.01)

    def test_distance_to_self_is_zero(self):
        """Test zero distance between identical points."""
        point = LatLongAlt(40.6398, -73.7789)
        assert great_circle_distance(point, point) == 0.0

    def test_jfk_to_boston(self):
        """Test a known city-pair distance."""
        kjfk = LatLongAlt(40.6398, -73.7789)
        kbos = LatLongAlt(42.3656, -71.0096)
        distance = great_circle_distance(kjfk, kbos)
        assert distance == pytest.approx(162.0, abs=2.0)


class TestProjection:
    """Test bearing/distance projection."""

    def test_project_east_along_equator(self):
        """Test 60 NM east from the origin is about one degree of longitude."""
        point = bearing_distance_to_coordinates(90.0, 60.0, 0.0, 0.0)
        assert point.lat == pytest.approx(0.0, abs=1e-9)
        assert point.long == pytest.approx(1.0, abs=0.01)

    def test_project_then_measure(self):
        """Test projected point lies at the requested distance and course."""
        start = LatLongAlt(41.0, -73.0)
        point = bearing_distance_to_coordinates(45.0, 25.0, start.lat, start.long)

        assert great_circle_distance(start, point) == pytest.approx(25.0, abs=1e-6)
        assert great_circle_heading(start, point) == pytest.approx(45.0, abs=1e-3)

    def test_longitude_is_normalized(self):
        """Test projection across the antimeridian wraps longitude."""
        point = bearing_distance_to_coordinates(90.0, 120.0, 0.0, 179.5)
        assert -180.0 <= point.long < 180.0
        assert point.long < 0.0


class TestIntersection:
    """Test course intercept solutions."""

    def test_intercept_meridian(self):
        """Test flying west intercepts a north-south line through a navaid."""
        navaid = LatLongAlt(41.0, -73.0)
        start = bearing_distance_to_coordinates(90.0, 10.0, navaid.lat, navaid.long)

        distance = great_circle_intersection_distance(start, 270.0, navaid, 0.0)
        assert distance == pytest.approx(10.0, abs=0.05)

    def test_intercept_accepts_reciprocal_line(self):
        """Test the line through the navaid is used in both directions."""
        navaid = LatLongAlt(41.0, -73.0)
        start = bearing_distance_to_coordinates(90.0, 10.0, navaid.lat, navaid.long)

        distance = great_circle_intersection_distance(start, 270.0, navaid, 180.0)
        assert distance == pytest.approx(10.0, abs=0.05)

    def test_start_on_navaid(self):
        """Test zero distance when starting on the navaid."""
        navaid = LatLongAlt(41.0, -73.0)
        assert great_circle_intersection_distance(navaid, 90.0, navaid, 0.0) == 0.0


class TestCourseToDistance:
    """Test course-until-distance solutions."""

    def test_fly_outbound_to_dme(self):
        """Test flying outbound from 10 NM to the 20 NM arc."""
        navaid = LatLongAlt(41.0, -73.0)
        start = bearing_distance_to_coordinates(0.0, 10.0, navaid.lat, navaid.long)

        distance = course_to_distance_from(start, 0.0, navaid, 20.0)
        assert distance == pytest.approx(10.0, abs=0.01)

    def test_fly_inbound_reaches_near_side_first(self):
        """Test flying toward the navaid stops at the near crossing."""
        navaid = LatLongAlt(41.0, -73.0)
        start = bearing_distance_to_coordinates(0.0, 30.0, navaid.lat, navaid.long)

        distance = course_to_distance_from(start, 180.0, navaid, 10.0)
        assert distance == pytest.approx(20.0, abs=0.01)

    def test_unreachable_distance(self):
        """Test a course passing wide of the arc has no solution."""
        navaid = LatLongAlt(41.0, -73.0)
        start = bearing_distance_to_coordinates(90.0, 30.0, navaid.lat, navaid.long)

        assert course_to_distance_from(start, 0.0, navaid, 5.0) is None


class TestLegDistances:
    """Test vectorized leg computation."""

    def test_matches_scalar_functions(self):
        """Test vectorized results equal the scalar ones."""
        starts = [LatLongAlt(0.0, 0.0), LatLongAlt(40.6398, -73.7789)]
        ends = [LatLongAlt(1.0, 1.0), LatLongAlt(42.3656, -71.0096)]

        bearings, distances = leg_distances(starts, ends)

        for i, (start, end) in enumerate(zip(starts, ends)):
            assert bearings[i] == pytest.approx(great_circle_heading(start, end))
            assert distances[i] == pytest.approx(great_circle_distance(start, end))

    def test_empty(self):
        """Test no legs gives empty arrays."""
        bearings, distances = leg_distances([], [])
        assert len(bearings) == 0
        assert len(distances) == 0

    def test_length_mismatch(self):
        """Test mismatched inputs are rejected."""
        with pytest.raises(ValueError):
            leg_distances([LatLongAlt(0.0, 0.0)], [])
