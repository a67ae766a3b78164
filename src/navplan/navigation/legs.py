"""Procedure leg decoding.

This module turns the abstract legs of a published procedure into concrete
flight plan waypoints. Each decodable leg produces exactly one waypoint whose
position is either looked up (fix legs) or computed with great-circle math
from the previous waypoint and the leg's reference navaid.

Typical usage:
    procedure = LegsProcedure(legs, origin_waypoint, facility_loader)
    async for waypoint in procedure:
        plan.add_waypoint(waypoint, index)
"""

import logging
import math
from collections.abc import AsyncIterator

from navplan.navigation.facility import (
    FacilityLoader,
    FacilityLookupError,
    FacilityRecord,
    to_waypoint,
)
from navplan.navigation.geodesy import (
    LatLongAlt,
    bearing_distance_to_coordinates,
    course_to_distance_from,
    great_circle_distance,
    great_circle_intersection_distance,
)
from navplan.navigation.procedures import LegType, ProcedureLeg
from navplan.navigation.waypoint import IntersectionInfo, Waypoint, WaypointType

logger = logging.getLogger(__name__)

EXACT_FIX_LEGS = frozenset({LegType.IF, LegType.RF, LegType.TF})


class ProcedureDecodeError(ValueError):
    """Raised when a leg starts from a waypoint without a position."""


class LegsProcedure:
    """Lazy sequence of waypoints decoded from procedure legs.

    The procedure walks its legs in order. Legs of unsupported types are
    skipped without producing a waypoint. Each produced waypoint becomes the
    previous fix for the next leg. The sequence is finite and is restarted by
    constructing a new LegsProcedure.

    Attributes:
        legs: Legs to decode
        previous_fix: Last produced waypoint, initially the anchor
        current_index: Index of the next leg to decode

    Examples:
        >>> procedure = LegsProcedure(legs, origin, facility_db)
        >>> while procedure.has_next():
        ...     waypoint = await procedure.get_next()
    """

    def __init__(
        self,
        legs: list[ProcedureLeg],
        starting_point: Waypoint,
        facility_loader: FacilityLoader,
        timeout_ms: int | None = None,
    ) -> None:
        """Initialize the procedure.

        Args:
            legs: Legs to decode, in flying order
            starting_point: Anchor waypoint the first leg starts from
            facility_loader: Facility lookup service
            timeout_ms: Timeout passed to every facility lookup
        """
        self.legs = legs
        self.previous_fix = starting_point
        self.current_index = 0
        self._facility_loader = facility_loader
        self._timeout_ms = timeout_ms

    def has_next(self) -> bool:
        """Check whether any legs remain.

        Returns:
            True if there is at least one leg left to look at. The remaining
            legs may all turn out to be unsupported, in which case get_next
            returns None.
        """
        return self.current_index < len(self.legs)

    async def get_next(self) -> Waypoint | None:
        """Decode the next supported leg.

        Returns:
            The decoded waypoint, or None once the legs are exhausted

        Raises:
            FacilityLookupError: If a leg's reference navaid cannot be resolved
        """
        while self.has_next():
            leg = self.legs[self.current_index]
            next_leg = (
                self.legs[self.current_index + 1]
                if self.current_index + 1 < len(self.legs)
                else None
            )
            self.current_index += 1

            waypoint = await self._map_leg(leg, next_leg)
            if waypoint is None:
                logger.debug("Skipping unsupported leg type %s", leg.type)
                continue

            self.previous_fix = waypoint
            return waypoint

        return None

    def __aiter__(self) -> AsyncIterator[Waypoint]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Waypoint]:
        while True:
            waypoint = await self.get_next()
            if waypoint is None:
                return
            yield waypoint

    async def _map_leg(self, leg: ProcedureLeg, next_leg: ProcedureLeg | None) -> Waypoint | None:
        """Dispatch a leg to its decoder by leg type."""
        if leg.type == LegType.CD:
            return await self.map_heading_until_distance_from_origin(leg, self.previous_fix)
        if leg.type == LegType.CF:
            return await self.map_origin_radial_for_distance(leg, self.previous_fix)
        if leg.type == LegType.CI:
            if next_leg is None:
                return None
            return await self.map_heading_to_intercept(leg, self.previous_fix, next_leg)
        if leg.type == LegType.FC:
            return await self.map_bearing_and_distance_from_origin(leg)
        if leg.type in EXACT_FIX_LEGS:
            return await self.map_exact_fix(leg)
        return None

    async def map_heading_until_distance_from_origin(
        self, leg: ProcedureLeg, previous: Waypoint
    ) -> Waypoint:
        """Map a course-until-distance-from-origin (CD) leg.

        Flies the leg course from the previous fix until the aircraft is the
        leg distance from the origin navaid.

        Args:
            leg: Leg to map
            previous: Previously decoded waypoint

        Returns:
            Synthesized intersection named after the origin and DME distance
        """
        origin = await self._get_origin(leg.origin_icao)
        start = self._position_of(previous)
        target_nm = leg.distance_nm

        travel_nm = course_to_distance_from(start, leg.course, origin.coordinates, target_nm)
        if travel_nm is None:
            logger.warning(
                "Course %.0f from %s never reaches %.1f NM from %s, terminating at start",
                leg.course,
                previous.ident,
                target_nm,
                origin.ident,
            )
            travel_nm = 0.0

        coordinates = bearing_distance_to_coordinates(leg.course, travel_nm, start.lat, start.long)
        return self._synthesize(f"{origin.ident}{math.trunc(target_nm)}", coordinates)

    async def map_bearing_and_distance_from_origin(self, leg: ProcedureLeg) -> Waypoint:
        """Map a bearing/distance from origin (FC) leg.

        Args:
            leg: Leg to map

        Returns:
            Synthesized intersection named after the origin and distance
        """
        origin = await self._get_origin(leg.origin_icao)
        distance_nm = leg.distance_nm

        coordinates = bearing_distance_to_coordinates(
            leg.course, distance_nm, origin.lat, origin.lon
        )
        return self._synthesize(f"{origin.ident}{math.trunc(distance_nm)}", coordinates)

    async def map_origin_radial_for_distance(
        self, leg: ProcedureLeg, previous: Waypoint
    ) -> Waypoint:
        """Map a course to fix / radial for distance (CF) leg.

        A leg naming its fix is mapped as an exact fix. Otherwise the previous
        fix is projected along the leg course for the leg distance.

        Args:
            leg: Leg to map
            previous: Previously decoded waypoint

        Returns:
            The fix waypoint, or a synthesized intersection named after the
            origin and the distance from it
        """
        if leg.fix_icao.strip():
            return await self.map_exact_fix(leg)

        origin = await self._get_origin(leg.origin_icao)
        start = self._position_of(previous)

        coordinates = bearing_distance_to_coordinates(
            leg.course, leg.distance_nm, start.lat, start.long
        )
        distance_from_origin = great_circle_distance(origin.coordinates, coordinates)
        return self._synthesize(f"{origin.ident}{math.trunc(distance_from_origin)}", coordinates)

    async def map_heading_to_intercept(
        self, leg: ProcedureLeg, previous: Waypoint, next_leg: ProcedureLeg
    ) -> Waypoint:
        """Map a heading to intercept (CI) leg.

        Solves the spherical triangle formed by the previous fix, the next
        leg's origin and the intercept point, then projects the previous fix
        along the leg course to the intercept.

        Args:
            leg: Leg to map
            previous: Previously decoded waypoint
            next_leg: The leg whose course is intercepted

        Returns:
            Synthesized intersection named T<course><next origin ident>
        """
        next_origin = await self._get_origin(next_leg.origin_icao)
        start = self._position_of(previous)

        leg_distance = great_circle_intersection_distance(
            start, leg.course, next_origin.coordinates, next_leg.course
        )
        if leg_distance is None:
            leg_distance = great_circle_distance(start, next_origin.coordinates)
            logger.warning(
                "Course %.0f from %s does not intercept %.0f through %s, using %.1f NM",
                leg.course,
                previous.ident,
                next_leg.course,
                next_origin.ident,
                leg_distance,
            )

        coordinates = bearing_distance_to_coordinates(
            leg.course, leg_distance, start.lat, start.long
        )
        return self._synthesize(f"T{_format_course(leg.course)}{next_origin.ident}", coordinates)

    async def map_exact_fix(self, leg: ProcedureLeg) -> Waypoint:
        """Map an exact fix (IF, TF, RF) leg.

        The fix is looked up; when it cannot be found, it is synthesized from
        the leg's theta/rho polar offset from the origin navaid.

        Args:
            leg: Leg to map

        Returns:
            The fix waypoint, or a synthesized intersection named after the
            origin and rho
        """
        facility = None
        if leg.fix_icao.strip():
            try:
                facility = await self._facility_loader.get_facility(leg.fix_icao, self._timeout_ms)
            except FacilityLookupError as e:
                logger.warning("Fix lookup failed, using polar offset: %s", e)

        if facility is not None:
            return to_waypoint(facility)

        origin = await self._get_origin(leg.origin_icao)
        rho_nm = leg.rho_nm
        coordinates = bearing_distance_to_coordinates(leg.theta, rho_nm, origin.lat, origin.lon)
        return self._synthesize(f"{origin.ident}{math.trunc(rho_nm)}", coordinates)

    async def _get_origin(self, icao: str) -> FacilityRecord:
        """Resolve a leg's reference navaid.

        Raises:
            FacilityLookupError: If the navaid is unknown or the lookup fails
        """
        facility = await self._facility_loader.get_facility(icao, self._timeout_ms)
        if facility is None:
            raise FacilityLookupError(f"Procedure origin not found: {icao!r}")
        return facility

    @staticmethod
    def _position_of(waypoint: Waypoint) -> LatLongAlt:
        coordinates = waypoint.coordinates
        if coordinates is None:
            raise ProcedureDecodeError(f"Waypoint {waypoint.ident!r} has no position")
        return coordinates

    @staticmethod
    def _synthesize(ident: str, coordinates: LatLongAlt) -> Waypoint:
        return Waypoint(
            ident=ident,
            type=WaypointType.INTERSECTION,
            infos=IntersectionInfo(ident=ident, coordinates=coordinates),
        )


def _format_course(course: float) -> str:
    """Format a course without a trailing .0 (270.0 -> "270")."""
    if float(course).is_integer():
        return str(int(course))
    return str(course)

