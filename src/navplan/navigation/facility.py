"""Facility records and facility lookup.

This module provides the facility record returned by the simulator's
facility database, the lookup contract the flight plan depends on, an
in-memory facility database implementing it, and the mapping from a raw
facility record to a flight plan waypoint.

Typical usage:
    db = FacilityDatabase()
    db.add_facility(parse_facility(raw_kjfk))

    record = await db.get_facility("A      KJFK ", timeout_ms=1000)
    waypoint = to_waypoint(record)
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from navplan.navigation.geodesy import LatLongAlt, great_circle_distance
from navplan.navigation.procedures import (
    Approach,
    Arrival,
    Departure,
    Runway,
    ident_from_icao,
    runway_sort_key,
)
from navplan.navigation.waypoint import INFO_TYPES, AirportInfo, Waypoint, WaypointType

logger = logging.getLogger(__name__)


class FacilityLookupError(Exception):
    """Raised when a facility cannot be resolved or the lookup times out."""


def format_icao(kind: str, ident: str, region: str = "", airport: str = "") -> str:
    """Build a 12-character facility ICAO.

    Args:
        kind: Facility kind prefix ("A", "V", "N", "W", ...)
        ident: Facility identifier (up to 5 characters)
        region: Two-letter region code
        airport: Owning airport for terminal fixes

    Returns:
        ICAO string laid out as kind(1) region(2) airport(4) ident(5)

    Examples:
        >>> format_icao("A", "KJFK")
        'A      KJFK '
    """
    return f"{kind:1.1}{region:2.2}{airport:4.4}{ident:5.5}"


@dataclass
class FacilityRecord:
    """Raw facility record from the facility database.

    Attributes:
        icao: 12-character facility ICAO, first character is the kind prefix
        lat: Latitude in degrees
        lon: Longitude in degrees
        name: Facility name
        departures: Published departures (airports only)
        arrivals: Published arrivals (airports only)
        approaches: Published approaches (airports only)
        runways: Runways (airports only)
    """

    icao: str
    lat: float
    lon: float
    name: str = ""
    departures: list[Departure] = field(default_factory=list)
    arrivals: list[Arrival] = field(default_factory=list)
    approaches: list[Approach] = field(default_factory=list)
    runways: list[Runway] = field(default_factory=list)

    @property
    def ident(self) -> str:
        """Get the facility identifier."""
        return ident_from_icao(self.icao)

    @property
    def kind(self) -> WaypointType:
        """Get the waypoint kind encoded in the ICAO prefix."""
        return WaypointType.from_icao(self.icao)

    @property
    def coordinates(self) -> LatLongAlt:
        """Get the facility position."""
        return LatLongAlt(self.lat, self.lon)


_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _snake_keys(value: Any) -> Any:
    """Recursively convert camelCase dictionary keys to snake_case."""
    if isinstance(value, dict):
        return {_CAMEL_BOUNDARY.sub("_", key).lower(): _snake_keys(v) for key, v in value.items()}
    if isinstance(value, list):
        return [_snake_keys(item) for item in value]
    return value


def parse_facility(raw: dict[str, Any]) -> FacilityRecord:
    """Parse a raw facility record.

    Accepts both the simulator's camelCase layout (``runwayTransitions``,
    ``commonLegs``, ``fixIcao``...) and snake_case keys.

    Args:
        raw: Raw facility dictionary

    Returns:
        Parsed facility record

    Raises:
        FacilityLookupError: If the record has no icao or position
    """
    data = _snake_keys(raw)

    try:
        icao = data["icao"]
        lat = float(data["lat"])
        lon = float(data["lon"])
    except (KeyError, TypeError, ValueError) as e:
        raise FacilityLookupError(f"Invalid facility record: {e}") from e

    return FacilityRecord(
        icao=icao,
        lat=lat,
        lon=lon,
        name=data.get("name", ""),
        departures=[Departure.from_dict(d) for d in data.get("departures") or []],
        arrivals=[Arrival.from_dict(a) for a in data.get("arrivals") or []],
        approaches=[Approach.from_dict(a) for a in data.get("approaches") or []],
        runways=[Runway.from_dict(r) for r in data.get("runways") or []],
    )


def to_waypoint(facility: FacilityRecord) -> Waypoint:
    """Map a facility record to a flight plan waypoint.

    Airports carry their procedure catalog and their runway ends sorted by
    number then L, C, R. Other facilities carry only their position.

    Args:
        facility: Facility record to map

    Returns:
        Waypoint typed by the ICAO kind prefix
    """
    waypoint_type = facility.kind
    ident = facility.ident

    if waypoint_type is WaypointType.AIRPORT:
        one_way_runways = [end for runway in facility.runways for end in runway.split_if_two_ways()]
        one_way_runways.sort(key=runway_sort_key)

        infos = AirportInfo(
            ident=ident,
            coordinates=facility.coordinates,
            departures=facility.departures,
            arrivals=facility.arrivals,
            approaches=facility.approaches,
            runways=facility.runways,
            one_way_runways=one_way_runways,
        )
    else:
        infos = INFO_TYPES[waypoint_type](ident=ident, coordinates=facility.coordinates)

    return Waypoint(ident=ident, type=waypoint_type, infos=infos, icao=facility.icao)


class FacilityLoader(ABC):
    """Abstract facility lookup service.

    Implementations resolve a facility ICAO to its raw record, typically by
    asking the simulator. Lookups are asynchronous and may time out.
    """

    @abstractmethod
    async def get_facility(
        self, icao: str, timeout_ms: int | None = None
    ) -> FacilityRecord | None:
        """Resolve a facility ICAO.

        Args:
            icao: Facility ICAO to resolve
            timeout_ms: Optional lookup timeout in milliseconds

        Returns:
            Facility record, or None if no facility matches

        Raises:
            FacilityLookupError: If the lookup fails or times out
        """
        pass


class FacilityDatabase(FacilityLoader):
    """In-memory facility database.

    Stores facility records keyed by ICAO and resolves lookups either by full
    ICAO or by bare identifier.

    Attributes:
        facilities: Dictionary mapping ICAO to facility record
        default_timeout_ms: Timeout applied when a lookup gives none

    Examples:
        >>> db = FacilityDatabase()
        >>> db.add_facility(FacilityRecord("A      KJFK ", 40.6398, -73.7789))
        >>> record = await db.get_facility("KJFK")
    """

    def __init__(self, default_timeout_ms: int | None = None) -> None:
        """Initialize empty facility database.

        Args:
            default_timeout_ms: Timeout for lookups that do not specify one
        """
        self.facilities: dict[str, FacilityRecord] = {}
        self.default_timeout_ms = default_timeout_ms
        logger.info("Initialized facility database")

    def add_facility(self, facility: FacilityRecord) -> None:
        """Add a facility to the database.

        Args:
            facility: Facility to add

        Note:
            If a facility with the same ICAO exists, it will be replaced.
        """
        self.facilities[facility.icao] = facility
        logger.debug("Added facility: %s", facility.icao)

    def find_facility(self, icao: str) -> FacilityRecord | None:
        """Find a facility by ICAO or bare identifier.

        Args:
            icao: Full facility ICAO, or a bare identifier such as "KJFK"

        Returns:
            Facility record if found, None otherwise. A bare identifier that
            matches several facilities resolves to the first one added.
        """
        if not icao or not icao.strip():
            return None

        facility = self.facilities.get(icao)
        if facility is not None:
            return facility

        ident = ident_from_icao(icao)
        for candidate in self.facilities.values():
            if candidate.ident == ident:
                return candidate
        return None

    def find_facilities_near(self, position: LatLongAlt, radius_nm: float) -> list[FacilityRecord]:
        """Find facilities within radius of position.

        Args:
            position: Center position to search from
            radius_nm: Search radius in nautical miles

        Returns:
            Facilities within radius, sorted by distance (closest first)
        """
        results = []
        for facility in self.facilities.values():
            distance_nm = great_circle_distance(position, facility.coordinates)
            if distance_nm <= radius_nm:
                results.append((distance_nm, facility))

        results.sort(key=lambda x: x[0])
        return [facility for _, facility in results]

    async def get_facility(
        self, icao: str, timeout_ms: int | None = None
    ) -> FacilityRecord | None:
        """Resolve a facility ICAO.

        Args:
            icao: Facility ICAO or bare identifier
            timeout_ms: Lookup timeout in milliseconds, defaults to
                default_timeout_ms

        Returns:
            Facility record, or None if no facility matches

        Raises:
            FacilityLookupError: If the lookup times out
        """
        timeout_ms = timeout_ms if timeout_ms is not None else self.default_timeout_ms
        timeout = timeout_ms / 1000.0 if timeout_ms is not None else None

        try:
            return await asyncio.wait_for(self._fetch(icao), timeout)
        except asyncio.TimeoutError as e:
            raise FacilityLookupError(f"Facility lookup timed out: {icao!r}") from e

    async def _fetch(self, icao: str) -> FacilityRecord | None:
        """Fetch a facility record.

        Subclasses backed by a remote service override this; the in-memory
        database answers immediately.
        """
        return self.find_facility(icao)

    def count(self) -> int:
        """Return total number of facilities in database.

        Returns:
            Number of facilities
        """
        return len(self.facilities)

    def clear(self) -> None:
        """Remove all facilities from database."""
        self.facilities.clear()
        logger.info("Cleared facility database")
