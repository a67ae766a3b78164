"""Flight plan waypoint definitions.

This module provides the Waypoint class and the closed set of kind-specific
info payloads a waypoint can carry: facility infos (airport, intersection,
VOR, NDB, user) and the marker infos inserted by the pilot or by procedures
(discontinuity, vectors, altitude turn, radius fix, bearing/distance fix).

Typical usage:
    from navplan.navigation.waypoint import Waypoint, WaypointType, IntersectionInfo

    fix = Waypoint(
        ident="MERIT",
        type=WaypointType.INTERSECTION,
        infos=IntersectionInfo(ident="MERIT", coordinates=LatLongAlt(41.38, -73.13)),
    )
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from navplan.navigation.geodesy import LatLongAlt
from navplan.navigation.procedures import Approach, Arrival, Departure, OneWayRunway, Runway


class WaypointType(Enum):
    """Waypoint kind tag.

    Facility kinds use the first character of the facility ICAO; marker kinds
    use short tags of their own.

    Attributes:
        AIRPORT: Airport reference point
        INTERSECTION: Named intersection or synthesized procedure fix
        VOR: VHF Omnidirectional Range
        NDB: Non-Directional Beacon
        USER: User waypoint or any other facility kind
        DISCONTINUITY: Flight plan discontinuity marker
        VECTORS: Vectors instruction marker
        ALTITUDE_TURN: Altitude instruction with optional tracks
        RADIUS_FIX: Radius about a reference fix
        BEARING_DISTANCE: Bearing and distance from a reference fix
    """

    AIRPORT = "A"
    INTERSECTION = "W"
    VOR = "V"
    NDB = "N"
    USER = "U"
    DISCONTINUITY = "D"
    VECTORS = "VEC"
    ALTITUDE_TURN = "ALT"
    RADIUS_FIX = "R"
    BEARING_DISTANCE = "BD"

    @classmethod
    def from_icao(cls, icao: str) -> "WaypointType":
        """Get the facility kind encoded in an ICAO prefix.

        Args:
            icao: Facility ICAO (first character is the kind prefix)

        Returns:
            Matching facility kind, USER for unknown prefixes
        """
        prefix = icao[:1]
        if prefix in ("A", "W", "V", "N"):
            return cls(prefix)
        return cls.USER


@dataclass
class WaypointInfo:
    """Base waypoint info payload.

    Attributes:
        ident: Display identifier
        coordinates: Geographic position, None for coordinate-less markers
        svg_elements: Opaque handles attached by display consumers, never
            serialized
    """

    ident: str = ""
    coordinates: LatLongAlt | None = None
    svg_elements: Any = field(default=None, repr=False, compare=False)


@dataclass
class AirportInfo(WaypointInfo):
    """Airport payload with the published procedure catalog.

    Attributes:
        departures: Published departures (SIDs)
        arrivals: Published arrivals (STARs)
        approaches: Published approaches
        runways: Two-way runways as published
        one_way_runways: Runway ends, sorted by number then L, C, R
    """

    departures: list[Departure] = field(default_factory=list)
    arrivals: list[Arrival] = field(default_factory=list)
    approaches: list[Approach] = field(default_factory=list)
    runways: list[Runway] = field(default_factory=list)
    one_way_runways: list[OneWayRunway] = field(default_factory=list)


@dataclass
class IntersectionInfo(WaypointInfo):
    """Intersection payload."""


@dataclass
class VORInfo(WaypointInfo):
    """VOR payload."""


@dataclass
class NDBInfo(WaypointInfo):
    """NDB payload."""


@dataclass
class DiscontinuityInfo(WaypointInfo):
    """Flight plan discontinuity marker."""

    is_discontinuity: bool = True


@dataclass
class VectorsInfo(WaypointInfo):
    """Vectors instruction marker."""

    is_vectors: bool = True


@dataclass
class AltitudeTurnInfo(WaypointInfo):
    """Altitude instruction with optional inbound and outbound tracks.

    Attributes:
        altitude: Target altitude in feet MSL
        has_inbound_track: Whether an inbound track is specified
        inbound_track: Inbound track in degrees
        has_outbound_track: Whether an outbound track is specified
        outbound_track: Outbound track in degrees
    """

    altitude: float = 0.0
    has_inbound_track: bool = False
    inbound_track: float = 0.0
    has_outbound_track: bool = False
    outbound_track: float = 0.0


@dataclass
class RadiusFixInfo(WaypointInfo):
    """Radius about a reference fix.

    Attributes:
        radius: Radius in nautical miles around the reference fix
        reference_fix: The fix the radius is centered on
    """

    radius: float = 0.0
    reference_fix: "Waypoint | None" = None


@dataclass
class BearingDistanceInfo(WaypointInfo):
    """Bearing and distance from a reference fix.

    Attributes:
        bearing: Bearing in degrees from the reference fix
        distance: Distance in nautical miles along the bearing
        reference_fix: The fix the bearing/distance is measured from
    """

    bearing: float = 0.0
    distance: float = 0.0
    reference_fix: "Waypoint | None" = None


INFO_TYPES: dict[WaypointType, type[WaypointInfo]] = {
    WaypointType.AIRPORT: AirportInfo,
    WaypointType.INTERSECTION: IntersectionInfo,
    WaypointType.VOR: VORInfo,
    WaypointType.NDB: NDBInfo,
    WaypointType.USER: WaypointInfo,
    WaypointType.DISCONTINUITY: DiscontinuityInfo,
    WaypointType.VECTORS: VectorsInfo,
    WaypointType.ALTITUDE_TURN: AltitudeTurnInfo,
    WaypointType.RADIUS_FIX: RadiusFixInfo,
    WaypointType.BEARING_DISTANCE: BearingDistanceInfo,
}

# Markers whose own coordinates never serve as a geometric reference
MARKER_TYPES = frozenset(
    {
        WaypointType.DISCONTINUITY,
        WaypointType.VECTORS,
        WaypointType.ALTITUDE_TURN,
        WaypointType.RADIUS_FIX,
    }
)


@dataclass(eq=False)
class Waypoint:
    """Flight plan waypoint.

    A waypoint pairs an identity and kind tag with a kind-specific info
    payload. The three ``*_in_fp`` fields are written by the flight plan
    whenever its structure changes.

    Attributes:
        ident: Display identifier (e.g., "KJFK", "MERIT", "ABC10")
        type: Waypoint kind tag
        infos: Kind-specific payload
        icao: Facility ICAO, empty for synthesized and marker waypoints
        bearing_in_fp: True course from the previous waypoint in degrees
        distance_in_fp: Distance from the previous waypoint in nautical miles
        cumulative_distance_in_fp: Distance from the start of the plan

    Examples:
        >>> wpt = Waypoint(
        ...     ident="KJFK",
        ...     type=WaypointType.AIRPORT,
        ...     infos=AirportInfo(ident="KJFK", coordinates=LatLongAlt(40.64, -73.78)),
        ...     icao="A      KJFK ",
        ... )
    """

    ident: str
    type: WaypointType
    infos: WaypointInfo = field(default_factory=WaypointInfo)
    icao: str = ""
    bearing_in_fp: float = 0.0
    distance_in_fp: float = 0.0
    cumulative_distance_in_fp: float = 0.0

    @property
    def coordinates(self) -> LatLongAlt | None:
        """Get the waypoint position, None for coordinate-less markers."""
        if self.type in MARKER_TYPES:
            return None
        return self.infos.coordinates

    @property
    def is_airport(self) -> bool:
        """Check if this waypoint is an airport."""
        return self.type is WaypointType.AIRPORT

    @property
    def is_marker(self) -> bool:
        """Check if this waypoint is a coordinate-less marker."""
        return self.type in MARKER_TYPES

    def __str__(self) -> str:
        """Return string representation of waypoint.

        Returns:
            String with identifier and kind tag
        """
        return f"{self.ident or '-----'} ({self.type.value})"


def make_facility_waypoint(
    ident: str, waypoint_type: WaypointType, coordinates: LatLongAlt, icao: str = ""
) -> Waypoint:
    """Create a facility waypoint with a matching info payload.

    Args:
        ident: Display identifier
        waypoint_type: Facility kind
        coordinates: Facility position
        icao: Facility ICAO, if any

    Returns:
        New waypoint whose info class matches the kind tag
    """
    info_cls = INFO_TYPES[waypoint_type]
    return Waypoint(
        ident=ident,
        type=waypoint_type,
        infos=info_cls(ident=ident, coordinates=coordinates),
        icao=icao,
    )
