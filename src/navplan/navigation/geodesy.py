"""Great-circle geodesy primitives.

This module provides the spherical-earth navigation math used by the flight
plan: initial course and distance between two points, projection of a point
along a course, and the two spherical-triangle solutions needed to terminate
procedure legs on an intercept or on a distance from a navaid.

All angles are in degrees true, all distances in nautical miles.

Typical usage:
    from navplan.navigation.geodesy import LatLongAlt, great_circle_distance

    kjfk = LatLongAlt(40.6398, -73.7789)
    kbos = LatLongAlt(42.3656, -71.0096)
    distance_nm = great_circle_distance(kjfk, kbos)
"""

import math
from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

EARTH_RADIUS_NM = 3440.065
METERS_PER_NM = 1852.0


@dataclass
class LatLongAlt:
    """Geographic position.

    Attributes:
        lat: Latitude in decimal degrees (north positive)
        long: Longitude in decimal degrees (east positive)
        alt: Altitude in feet MSL

    Examples:
        >>> kjfk = LatLongAlt(40.6398, -73.7789)
    """

    lat: float = 0.0
    long: float = 0.0
    alt: float = 0.0


def great_circle_heading(start: LatLongAlt, end: LatLongAlt) -> float:
    """Calculate the initial great-circle course from start to end.

    Args:
        start: Starting position
        end: Ending position

    Returns:
        Initial true course in degrees, normalized to [0, 360)
    """
    lat1, lon1 = math.radians(start.lat), math.radians(start.long)
    lat2, lon2 = math.radians(end.lat), math.radians(end.long)

    dlon = lon2 - lon1
    y = math.sin(dlon) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(dlon)

    return math.degrees(math.atan2(y, x)) % 360.0


def great_circle_distance(start: LatLongAlt, end: LatLongAlt) -> float:
    """Calculate great circle distance between two positions.

    Uses the Haversine formula for accuracy over large distances.

    Args:
        start: First position
        end: Second position

    Returns:
        Distance in nautical miles
    """
    return _angular_distance(start, end) * EARTH_RADIUS_NM


def bearing_distance_to_coordinates(
    bearing: float, distance_nm: float, lat: float, lon: float
) -> LatLongAlt:
    """Project a position along a great circle.

    Args:
        bearing: Initial true course in degrees
        distance_nm: Distance to travel in nautical miles
        lat: Starting latitude in degrees
        lon: Starting longitude in degrees

    Returns:
        Projected position (altitude 0)

    Examples:
        >>> point = bearing_distance_to_coordinates(90, 60, 0, 0)
        >>> round(point.long, 1)
        1.0
    """
    lat1, lon1 = math.radians(lat), math.radians(lon)
    brg = math.radians(bearing)
    delta = distance_nm / EARTH_RADIUS_NM

    sin_lat2 = math.sin(lat1) * math.cos(delta) + math.cos(lat1) * math.sin(delta) * math.cos(brg)
    lat2 = math.asin(max(-1.0, min(1.0, sin_lat2)))
    lon2 = lon1 + math.atan2(
        math.sin(brg) * math.sin(delta) * math.cos(lat1),
        math.cos(delta) - math.sin(lat1) * math.sin(lat2),
    )

    # Normalize longitude to [-180, 180)
    lon2_deg = (math.degrees(lon2) + 540.0) % 360.0 - 180.0
    return LatLongAlt(math.degrees(lat2), lon2_deg)


def great_circle_intersection_distance(
    start: LatLongAlt, course: float, other: LatLongAlt, other_course: float
) -> float | None:
    """Distance from start to where its course crosses a line through other.

    Solves the spherical triangle formed by the two points and the
    intersection of the great circle leaving ``start`` on ``course`` with the
    great circle through ``other`` on ``other_course``. The second great
    circle is treated as a line, so an intersection found on its reciprocal
    side is accepted.

    Args:
        start: Position the first course leaves from
        course: True course from start in degrees
        other: Position on the line to intercept
        other_course: True course of the line through other in degrees

    Returns:
        Distance in nautical miles from start to the intersection ahead of
        start, or None when the courses never meet ahead of start.
    """
    delta12 = _angular_distance(start, other)
    if delta12 == 0.0:
        return 0.0

    theta12 = math.radians(great_circle_heading(start, other))
    theta21 = math.radians(great_circle_heading(other, start))
    theta13 = math.radians(course)

    for line_course in (other_course, other_course + 180.0):
        theta23 = math.radians(line_course)

        alpha1 = theta13 - theta12
        alpha2 = theta21 - theta23

        sin_a1 = math.sin(alpha1)
        sin_a2 = math.sin(alpha2)
        if abs(sin_a1) < 1e-12 and abs(sin_a2) < 1e-12:
            return None
        if sin_a1 * sin_a2 < 0:
            continue

        cos_a3 = -math.cos(alpha1) * math.cos(alpha2) + sin_a1 * sin_a2 * math.cos(delta12)
        alpha3 = math.acos(max(-1.0, min(1.0, cos_a3)))
        delta13 = math.atan2(
            math.sin(delta12) * sin_a1 * sin_a2,
            math.cos(alpha2) + math.cos(alpha1) * math.cos(alpha3),
        )
        if delta13 < 0:
            continue

        return delta13 * EARTH_RADIUS_NM

    return None


def course_to_distance_from(
    start: LatLongAlt, course: float, origin: LatLongAlt, target_nm: float
) -> float | None:
    """Distance to fly along a course until reaching a distance from origin.

    Solves the spherical triangle start / origin / terminator with the law of
    cosines: cos(d) = cos(b)cos(x) + sin(b)sin(x)cos(A), where b is the
    distance from start to origin, A the angle at start between the course and
    the bearing to origin, and d the target distance.

    Args:
        start: Position the course leaves from
        course: True course in degrees
        origin: Reference navaid position
        target_nm: Required distance from origin in nautical miles

    Returns:
        Smallest non-negative travel distance in nautical miles, or None when
        the course never reaches that distance from origin.
    """
    b = _angular_distance(start, origin)
    d = target_nm / EARTH_RADIUS_NM
    angle = math.radians(course - great_circle_heading(start, origin))

    p = math.cos(b)
    q = math.sin(b) * math.cos(angle)
    r = math.hypot(p, q)
    ratio = math.cos(d) / r
    if ratio > 1.0 or ratio < -1.0:
        return None

    phi = math.atan2(q, p)
    spread = math.acos(ratio)
    candidates = sorted(x for x in (phi - spread, phi + spread) if x >= -1e-12)
    if not candidates:
        return None

    return max(0.0, candidates[0]) * EARTH_RADIUS_NM


def leg_distances(
    from_coords: list[LatLongAlt], to_coords: list[LatLongAlt]
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """Calculate bearings and distances for many legs at once.

    Args:
        from_coords: Leg start positions
        to_coords: Leg end positions (same length as from_coords)

    Returns:
        Tuple of (bearings in degrees [0, 360), distances in nautical miles)

    Raises:
        ValueError: If the two lists differ in length
    """
    if len(from_coords) != len(to_coords):
        raise ValueError("Leg start and end lists must have the same length")

    lat1 = np.radians([c.lat for c in from_coords])
    lon1 = np.radians([c.long for c in from_coords])
    lat2 = np.radians([c.lat for c in to_coords])
    lon2 = np.radians([c.long for c in to_coords])

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = np.sin(dlat / 2) ** 2 + np.cos(lat1) * np.cos(lat2) * np.sin(dlon / 2) ** 2
    distances = 2 * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0))) * EARTH_RADIUS_NM

    y = np.sin(dlon) * np.cos(lat2)
    x = np.cos(lat1) * np.sin(lat2) - np.sin(lat1) * np.cos(lat2) * np.cos(dlon)
    bearings = np.degrees(np.arctan2(y, x)) % 360.0

    return bearings, distances


def _angular_distance(start: LatLongAlt, end: LatLongAlt) -> float:
    """Central angle between two positions in radians (Haversine)."""
    lat1, lon1 = math.radians(start.lat), math.radians(start.long)
    lat2, lon2 = math.radians(end.lat), math.radians(end.long)

    dlat = lat2 - lat1
    dlon = lon2 - lon1
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * math.asin(math.sqrt(min(1.0, a)))
