"""Managed flight plan.

This module provides the flight plan container used by the navigation
computer: an ordered waypoint sequence split into departure, enroute, arrival
and approach segments, with the active waypoint, direct-to and procedure
selection state, and the assembly of published procedures into the plan.

Segment boundaries are kept consistent by add_waypoint and remove_waypoint
only; every other mutation (markers, procedure builds) goes through them.

Typical usage:
    from navplan.navigation.flight_plan import ManagedFlightPlan

    plan = ManagedFlightPlan(facility_loader=facility_db)
    plan.add_waypoint(kjfk_waypoint, 0)
    plan.add_waypoint(kbos_waypoint)

    plan.procedure_details.departure_index = 0
    await plan.build_departure()
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TypeVar

from navplan.navigation.facility import FacilityLoader
from navplan.navigation.geodesy import LatLongAlt, bearing_distance_to_coordinates, leg_distances
from navplan.navigation.legs import LegsProcedure
from navplan.navigation.procedures import ProcedureLeg
from navplan.navigation.waypoint import (
    AltitudeTurnInfo,
    BearingDistanceInfo,
    DiscontinuityInfo,
    RadiusFixInfo,
    VectorsInfo,
    Waypoint,
    WaypointType,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FlightPlanError(Exception):
    """Raised when a flight plan operation cannot be carried out."""


class ProcedureSelectionError(FlightPlanError, ValueError):
    """Raised when a procedure selection index is out of range."""


class SegmentType(Enum):
    """Flight plan segment, in plan order.

    Attributes:
        DEPARTURE: Origin and departure procedure
        ENROUTE: Enroute waypoints
        ARRIVAL: Arrival procedure
        APPROACH: Approach procedure and destination
    """

    DEPARTURE = 0
    ENROUTE = 1
    ARRIVAL = 2
    APPROACH = 3


@dataclass
class ProcedureDetails:
    """Procedure selections of a flight plan.

    Every index refers into the origin or destination airport's procedure
    catalog; -1 means nothing is selected.

    Attributes:
        origin_runway_index: Selected runway at the origin
        departure_index: Departure in the origin catalog
        departure_runway_index: Runway transition of the departure
        departure_transition_index: Enroute transition of the departure
        arrival_index: Arrival in the destination catalog
        arrival_transition_index: Enroute transition of the arrival
        arrival_runway_index: Runway transition of the arrival
        approach_index: Approach in the destination catalog
        approach_transition_index: Transition of the approach
    """

    origin_runway_index: int = -1
    departure_index: int = -1
    departure_runway_index: int = -1
    departure_transition_index: int = -1
    arrival_index: int = -1
    arrival_transition_index: int = -1
    arrival_runway_index: int = -1
    approach_index: int = -1
    approach_transition_index: int = -1

    @property
    def approach_selected(self) -> bool:
        """Check if an approach is selected."""
        return self.approach_index != -1


@dataclass
class DirectTo:
    """Direct-to state of a flight plan.

    Attributes:
        is_active: Whether direct-to is active
        waypoint_is_in_flight_plan: True when the target is a plan waypoint
            addressed by waypoint_index, False when it is the external
            waypoint
        waypoint_index: Index of the target in the plan
        waypoint: External target waypoint
        origin: Position direct-to was activated from
    """

    is_active: bool = False
    waypoint_is_in_flight_plan: bool = False
    waypoint_index: int = 0
    waypoint: Waypoint | None = None
    origin: Waypoint | None = None

    def activate_from_waypoint(self, waypoint: Waypoint, origin: Waypoint | None = None) -> None:
        """Activate direct-to an external waypoint.

        Args:
            waypoint: Waypoint to fly direct to
            origin: Position direct-to starts from
        """
        self.is_active = True
        self.waypoint_is_in_flight_plan = False
        self.waypoint = waypoint
        self.origin = origin

    def activate_from_index(self, index: int, origin: Waypoint | None = None) -> None:
        """Activate direct-to a waypoint already in the flight plan.

        Args:
            index: Index of the waypoint in the flight plan
            origin: Position direct-to starts from
        """
        self.is_active = True
        self.waypoint_is_in_flight_plan = True
        self.waypoint_index = index
        self.origin = origin

    def cancel(self) -> None:
        """Cancel direct-to."""
        self.is_active = False
        self.waypoint_is_in_flight_plan = False
        self.waypoint = None
        self.origin = None


@dataclass
class FlightPlanSegment:
    """Read-only view of a flight plan segment.

    Attributes:
        offset: Index in the plan where the segment starts
        waypoints: Waypoints of the segment
    """

    offset: int
    waypoints: list[Waypoint] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.waypoints)


class ManagedFlightPlan:
    """Flight plan with segment bookkeeping.

    The waypoint list is the single source of truth. Four segment start
    indices partition it:

        0 <= departure_start <= enroute_start <= arrival_start
          <= approach_start <= length

    The departure view is [0, enroute_start), so it includes the origin;
    departure_start is 1 when the plan has an origin and 0 otherwise. Every
    structural change recomputes each waypoint's bearing, distance and
    cumulative distance.

    Attributes:
        departure_start: Index of the first departure procedure waypoint
        enroute_start: Index where the enroute segment starts
        arrival_start: Index where the arrival segment starts
        approach_start: Index where the approach segment starts
        cruise_altitude: Cruise altitude in feet
        active_waypoint_index: Index of the waypoint being flown to
        procedure_details: Selected procedures
        direct_to: Direct-to state
        lookup_timeout_ms: Timeout applied to facility lookups during builds

    Examples:
        >>> plan = ManagedFlightPlan()
        >>> plan.add_waypoint(origin, 0)
        >>> plan.has_origin
        True
    """

    def __init__(
        self, facility_loader: FacilityLoader | None = None, lookup_timeout_ms: int | None = None
    ) -> None:
        """Initialize an empty flight plan.

        Args:
            facility_loader: Facility lookup used by procedure builds
            lookup_timeout_ms: Timeout applied to facility lookups
        """
        self._waypoints: list[Waypoint] = []
        self._facility_loader = facility_loader
        self.lookup_timeout_ms = lookup_timeout_ms

        self._has_origin = False
        self._has_destination = False

        self.departure_start = 0
        self.enroute_start = 0
        self.arrival_start = 0
        self.approach_start = 0

        self.cruise_altitude = 0.0
        self.active_waypoint_index = 0

        self.procedure_details = ProcedureDetails()
        self.direct_to = DirectTo()

    @property
    def length(self) -> int:
        """Get the number of waypoints in the plan."""
        return len(self._waypoints)

    def __len__(self) -> int:
        return len(self._waypoints)

    @property
    def waypoints(self) -> list[Waypoint]:
        """Get a copy of the waypoint list."""
        return list(self._waypoints)

    @property
    def departure(self) -> FlightPlanSegment:
        """Get the departure segment, origin included."""
        return FlightPlanSegment(0, self._waypoints[0 : self.enroute_start])

    @property
    def enroute(self) -> FlightPlanSegment:
        """Get the enroute segment."""
        return FlightPlanSegment(
            self.enroute_start, self._waypoints[self.enroute_start : self.arrival_start]
        )

    @property
    def arrival(self) -> FlightPlanSegment:
        """Get the arrival segment."""
        return FlightPlanSegment(
            self.arrival_start, self._waypoints[self.arrival_start : self.approach_start]
        )

    @property
    def approach(self) -> FlightPlanSegment:
        """Get the approach segment, destination included."""
        return FlightPlanSegment(self.approach_start, self._waypoints[self.approach_start :])

    @property
    def has_origin(self) -> bool:
        """Check if the plan starts at an origin airport."""
        return self._has_origin

    @property
    def has_destination(self) -> bool:
        """Check if the plan ends at a destination airport."""
        return self._has_destination

    @property
    def origin_airfield(self) -> Waypoint | None:
        """Get the origin airport, if any."""
        return self._waypoints[0] if self._has_origin and self._waypoints else None

    @property
    def destination_airfield(self) -> Waypoint | None:
        """Get the destination airport, if any."""
        return self._waypoints[-1] if self._has_destination and self._waypoints else None

    @property
    def active_waypoint(self) -> Waypoint | None:
        """Get the waypoint currently being flown to."""
        return self.get_waypoint(self.active_waypoint_index)

    @property
    def facility_loader(self) -> FacilityLoader | None:
        """Get the facility lookup used by procedure builds."""
        return self._facility_loader

    def set_facility_loader(self, facility_loader: FacilityLoader | None) -> None:
        """Attach the facility lookup used by procedure builds.

        Args:
            facility_loader: Facility lookup service
        """
        self._facility_loader = facility_loader

    def clear_plan(self) -> None:
        """Reset the plan to its empty state."""
        self._waypoints = []

        self._has_origin = False
        self._has_destination = False

        self.departure_start = 0
        self.enroute_start = 0
        self.arrival_start = 0
        self.approach_start = 0

        self.cruise_altitude = 0.0
        self.active_waypoint_index = 0

        self.procedure_details = ProcedureDetails()
        self.direct_to = DirectTo()
        logger.debug("Cleared flight plan")

    def get_waypoint(self, index: int) -> Waypoint | None:
        """Get a waypoint by index.

        Args:
            index: Index of the waypoint

        Returns:
            The waypoint, or None when index is out of range
        """
        if 0 <= index < len(self._waypoints):
            return self._waypoints[index]
        return None

    def add_waypoint(
        self,
        waypoint: Waypoint,
        index: int | None = None,
        segment: SegmentType | None = None,
    ) -> int:
        """Insert a waypoint.

        An airport inserted first becomes the origin; an airport appended
        last (after at least one other waypoint) becomes the destination.
        Otherwise every segment start at or after the insertion index moves
        up one. When segment is given, an insertion exactly at the start of
        that segment (or of an earlier one) joins that segment instead of
        pushing its start.

        Args:
            waypoint: Waypoint to insert
            index: Index to insert at; omitted or out of range appends
            segment: Segment the waypoint joins

        Returns:
            Index the waypoint was inserted at
        """
        if index is None or index < 0 or index >= len(self._waypoints):
            self._waypoints.append(waypoint)
            index = len(self._waypoints) - 1
        else:
            self._waypoints.insert(index, waypoint)

        self._shift_segment_indexes(waypoint, index, segment)
        self._reflow_distances()

        logger.debug("Added waypoint %s at %d", waypoint, index)
        return index

    def remove_waypoint(self, index: int | None = None) -> Waypoint | None:
        """Remove a waypoint.

        Args:
            index: Index to remove; omitted or out of range removes the last
                waypoint

        Returns:
            The removed waypoint, or None if the plan is empty
        """
        if not self._waypoints:
            return None

        previous_length = len(self._waypoints)
        if index is None or index < 0 or index >= previous_length:
            index = previous_length - 1

        waypoint = self._waypoints.pop(index)

        self._unshift_segment_indexes(waypoint, index, previous_length)
        self._reflow_distances()

        logger.debug("Removed waypoint %s at %d", waypoint, index)
        return waypoint

    def _shift_segment_indexes(
        self, waypoint: Waypoint, index: int, segment: SegmentType | None
    ) -> None:
        """Move segment starts up after an insertion."""
        length = len(self._waypoints)

        if index == 0 and waypoint.is_airport:
            self._has_origin = True
            self.departure_start = 1
            self.enroute_start = max(self.departure_start, self.enroute_start + 1)
            self.arrival_start = max(self.enroute_start, self.arrival_start + 1)
            self.approach_start = max(self.arrival_start, self.approach_start + 1)
        elif index == length - 1 and length > 1 and waypoint.is_airport:
            self._has_destination = True
        else:
            if self._pushes(index, self.enroute_start, SegmentType.ENROUTE, segment):
                self.enroute_start += 1
            arrival = self.arrival_start
            if self._pushes(index, arrival, SegmentType.ARRIVAL, segment):
                arrival += 1
            self.arrival_start = max(self.enroute_start, arrival)
            approach = self.approach_start
            if self._pushes(index, approach, SegmentType.APPROACH, segment):
                approach += 1
            self.approach_start = max(self.arrival_start, approach)

        if length > 1 and index <= self.active_waypoint_index:
            self.active_waypoint_index += 1
        self.active_waypoint_index = min(self.active_waypoint_index, max(length - 1, 0))

        direct_to = self.direct_to
        if direct_to.is_active and direct_to.waypoint_is_in_flight_plan:
            if direct_to.waypoint_index >= index:
                direct_to.waypoint_index += 1

    @staticmethod
    def _pushes(
        index: int, start: int, boundary: SegmentType, segment: SegmentType | None
    ) -> bool:
        """Whether an insertion at index moves the start of a segment."""
        if index < start:
            return True
        if index == start:
            return segment is None or boundary.value > segment.value
        return False

    def _unshift_segment_indexes(
        self, waypoint: Waypoint, index: int, previous_length: int
    ) -> None:
        """Move segment starts down after a removal."""
        length = len(self._waypoints)

        if index == 0 and waypoint.is_airport:
            self._has_origin = False
            self.departure_start = 0
            self.enroute_start = max(0, self.enroute_start - 1)
            self.arrival_start = max(self.enroute_start, self.arrival_start - 1)
            self.approach_start = max(self.arrival_start, self.approach_start - 1)
        elif index == previous_length - 1 and previous_length > 1 and waypoint.is_airport:
            self._has_destination = False
        else:
            if index < self.approach_start:
                self.approach_start -= 1
            if index < self.arrival_start:
                self.arrival_start -= 1
            if index < self.enroute_start:
                self.enroute_start -= 1
            self.enroute_start = max(self.departure_start, self.enroute_start)
            self.arrival_start = max(self.enroute_start, self.arrival_start)
            self.approach_start = max(self.arrival_start, self.approach_start)

        # A removed destination leaves no shift, so starts may overhang the end
        self.departure_start = min(self.departure_start, length)
        self.enroute_start = min(self.enroute_start, length)
        self.arrival_start = min(self.arrival_start, length)
        self.approach_start = min(self.approach_start, length)

        if index < self.active_waypoint_index:
            self.active_waypoint_index -= 1
        self.active_waypoint_index = min(self.active_waypoint_index, max(length - 1, 0))

        direct_to = self.direct_to
        if direct_to.is_active and direct_to.waypoint_is_in_flight_plan:
            if index < direct_to.waypoint_index:
                direct_to.waypoint_index -= 1

    def _reflow_distances(self) -> None:
        """Recalculate every waypoint's bearing and distance in the plan.

        With an approach selected, the last approach waypoint is measured to
        the destination, and the destination from the waypoint before it:
        runway and marker waypoints at the end of an approach have no usable
        position. Coordinate-less markers get a zero leg and are skipped as
        references.
        """
        waypoints = self._waypoints
        count = len(waypoints)
        approach_selected = self.procedure_details.approach_selected and count >= 3

        legs: list[tuple[int, LatLongAlt, LatLongAlt]] = []
        for i in range(1, count):
            current_index = i
            previous_index = i - 1
            if approach_selected and i == count - 2:
                current_index = i + 1
            elif approach_selected and i == count - 1:
                previous_index = i - 2

            if waypoints[i].is_marker:
                continue

            current = waypoints[current_index].coordinates or waypoints[i].coordinates
            previous = self._previous_position(previous_index)
            if current is None or previous is None:
                continue

            legs.append((i, previous, current))

        bearings, distances = leg_distances([leg[1] for leg in legs], [leg[2] for leg in legs])
        computed = {
            leg[0]: (float(bearing), float(distance))
            for leg, bearing, distance in zip(legs, bearings, distances)
        }

        cumulative_distance = 0.0
        for i, waypoint in enumerate(waypoints):
            bearing, distance = computed.get(i, (0.0, 0.0))
            waypoint.bearing_in_fp = bearing
            waypoint.distance_in_fp = distance

            cumulative_distance += distance
            waypoint.cumulative_distance_in_fp = cumulative_distance

    def _previous_position(self, index: int) -> LatLongAlt | None:
        """Position of the nearest positioned waypoint at or before index."""
        for i in range(index, -1, -1):
            coordinates = self._waypoints[i].coordinates
            if coordinates is not None:
                return coordinates
        return None

    def add_discontinuity(self, index: int | None = None) -> int:
        """Add a discontinuity.

        Args:
            index: Index to insert at; omitted or out of range appends

        Returns:
            Index the discontinuity was inserted at
        """
        waypoint = Waypoint(ident="", type=WaypointType.DISCONTINUITY, infos=DiscontinuityInfo())
        return self.add_waypoint(waypoint, index)

    def add_vectors(self, index: int | None = None) -> int:
        """Add a vectors instruction.

        Args:
            index: Index to insert at; omitted or out of range appends

        Returns:
            Index the vectors instruction was inserted at
        """
        waypoint = Waypoint(ident="", type=WaypointType.VECTORS, infos=VectorsInfo())
        return self.add_waypoint(waypoint, index)

    def add_bearing_and_distance(
        self, bearing: float, distance: float, reference: Waypoint, index: int | None = None
    ) -> int:
        """Add a bearing/distance waypoint.

        Args:
            bearing: Bearing in degrees from the reference fix
            distance: Distance in nautical miles along the bearing
            reference: Reference fix; must have a position
            index: Index to insert at; omitted or out of range appends

        Returns:
            Index the waypoint was inserted at

        Raises:
            FlightPlanError: If the reference fix has no position
        """
        if reference.coordinates is None:
            raise FlightPlanError(f"Reference fix {reference.ident!r} has no position")

        origin = reference.coordinates
        coordinates = bearing_distance_to_coordinates(bearing, distance, origin.lat, origin.long)
        infos = BearingDistanceInfo(
            coordinates=coordinates, bearing=bearing, distance=distance, reference_fix=reference
        )
        waypoint = Waypoint(ident="", type=WaypointType.BEARING_DISTANCE, infos=infos)
        return self.add_waypoint(waypoint, index)

    def add_altitude_turn(
        self,
        altitude: float,
        has_inbound: bool,
        has_outbound: bool,
        inbound_track: float,
        outbound_track: float,
        index: int | None = None,
    ) -> int:
        """Add an altitude instruction with optional tracks.

        Args:
            altitude: Altitude to target in feet
            has_inbound: Whether the instruction has an inbound track
            has_outbound: Whether the instruction has an outbound track
            inbound_track: Inbound track in degrees
            outbound_track: Outbound track in degrees
            index: Index to insert at; omitted or out of range appends

        Returns:
            Index the instruction was inserted at
        """
        infos = AltitudeTurnInfo(
            altitude=altitude,
            has_inbound_track=has_inbound,
            inbound_track=inbound_track,
            has_outbound_track=has_outbound,
            outbound_track=outbound_track,
        )
        waypoint = Waypoint(ident="", type=WaypointType.ALTITUDE_TURN, infos=infos)
        return self.add_waypoint(waypoint, index)

    def add_radius(self, radius: float, reference: Waypoint, index: int | None = None) -> int:
        """Add a radius about a reference fix.

        Args:
            radius: Radius in nautical miles
            reference: Reference fix
            index: Index to insert at; omitted or out of range appends

        Returns:
            Index the waypoint was inserted at
        """
        infos = RadiusFixInfo(radius=radius, reference_fix=reference)
        waypoint = Waypoint(ident="", type=WaypointType.RADIUS_FIX, infos=infos)
        return self.add_waypoint(waypoint, index)

    def copy(self) -> "ManagedFlightPlan":
        """Copy the flight plan.

        Waypoints are copied so each plan keeps its own leg distances; their
        info payloads are shared. Procedure selections and direct-to state are
        copied.

        Returns:
            The copied flight plan
        """
        plan = ManagedFlightPlan(self._facility_loader, self.lookup_timeout_ms)
        plan._waypoints = [replace(waypoint) for waypoint in self._waypoints]
        plan._has_origin = self._has_origin
        plan._has_destination = self._has_destination
        plan.departure_start = self.departure_start
        plan.enroute_start = self.enroute_start
        plan.arrival_start = self.arrival_start
        plan.approach_start = self.approach_start
        plan.cruise_altitude = self.cruise_altitude
        plan.active_waypoint_index = self.active_waypoint_index
        plan.procedure_details = replace(self.procedure_details)
        plan.direct_to = replace(self.direct_to)
        return plan

    def reverse(self) -> None:
        """Reverse the flight plan.

        Segment starts are recomputed from the waypoint kinds: the reversed
        plan has no procedures, so every non-airport waypoint is enroute.
        Procedure selections and direct-to are cleared and the first leg
        becomes active.
        """
        self._waypoints.reverse()
        self.procedure_details = ProcedureDetails()
        self.direct_to = DirectTo()
        self._recompute_segments()
        self.active_waypoint_index = 0
        self._reflow_distances()

    def _recompute_segments(self) -> None:
        """Derive origin, destination and segment starts from waypoint kinds."""
        length = len(self._waypoints)
        self._has_origin = length > 0 and self._waypoints[0].is_airport
        self._has_destination = length > 1 and self._waypoints[-1].is_airport

        self.departure_start = 1 if self._has_origin else 0
        self.enroute_start = self.departure_start
        end = length - 1 if self._has_destination else length
        self.arrival_start = max(self.enroute_start, end)
        self.approach_start = self.arrival_start

    async def build_departure(self) -> int:
        """Build the selected departure into the departure segment.

        Legs are assembled as runway transition, common legs, then enroute
        transition, and decoded from the origin.

        Returns:
            Number of waypoints inserted

        Raises:
            FlightPlanError: If the plan has no origin or no facility loader
            ProcedureSelectionError: If a selection index is out of range
            FacilityLookupError: If a procedure navaid cannot be resolved
        """
        if not self._has_origin:
            raise FlightPlanError("Cannot build a departure without an origin")

        origin = self._waypoints[0]
        details = self.procedure_details
        legs: list[ProcedureLeg] = []

        if details.departure_index != -1:
            departure = _select(origin.infos.departures, details.departure_index, "departure")
            if details.departure_runway_index != -1:
                runway_transition = _select(
                    departure.runway_transitions,
                    details.departure_runway_index,
                    "departure runway transition",
                )
                legs.extend(runway_transition.legs)
            legs.extend(departure.common_legs)
            if details.departure_transition_index != -1:
                transition = _select(
                    departure.en_route_transitions,
                    details.departure_transition_index,
                    "departure enroute transition",
                )
                legs.extend(transition.legs)

        facility_loader = self._require_facility_loader()
        self._remove_range(self.departure_start, self.enroute_start)
        return await self._insert_procedure(
            legs, origin, self.departure_start, SegmentType.DEPARTURE, facility_loader
        )

    async def build_arrival(self) -> int:
        """Build the selected arrival into the arrival segment.

        Legs are assembled as enroute transition, common legs, then runway
        transition, and decoded from the destination.

        Returns:
            Number of waypoints inserted

        Raises:
            FlightPlanError: If the plan has no destination or no facility
                loader
            ProcedureSelectionError: If a selection index is out of range
            FacilityLookupError: If a procedure navaid cannot be resolved
        """
        if not self._has_destination:
            raise FlightPlanError("Cannot build an arrival without a destination")

        destination = self._waypoints[-1]
        details = self.procedure_details
        legs: list[ProcedureLeg] = []

        if details.arrival_index != -1:
            arrival = _select(destination.infos.arrivals, details.arrival_index, "arrival")
            if details.arrival_transition_index != -1:
                transition = _select(
                    arrival.en_route_transitions,
                    details.arrival_transition_index,
                    "arrival enroute transition",
                )
                legs.extend(transition.legs)
            legs.extend(arrival.common_legs)
            if details.arrival_runway_index != -1:
                runway_transition = _select(
                    arrival.runway_transitions,
                    details.arrival_runway_index,
                    "arrival runway transition",
                )
                legs.extend(runway_transition.legs)

        facility_loader = self._require_facility_loader()
        self._remove_range(self.arrival_start, self.approach_start)
        return await self._insert_procedure(
            legs, destination, self.arrival_start, SegmentType.ARRIVAL, facility_loader
        )

    async def build_approach(self) -> int:
        """Build the selected approach into the approach segment.

        Legs are assembled as approach transition, then final legs, and
        decoded from the destination. The destination stays last.

        Returns:
            Number of waypoints inserted

        Raises:
            FlightPlanError: If the plan has no destination or no facility
                loader
            ProcedureSelectionError: If a selection index is out of range
            FacilityLookupError: If a procedure navaid cannot be resolved
        """
        if not self._has_destination:
            raise FlightPlanError("Cannot build an approach without a destination")

        destination = self._waypoints[-1]
        details = self.procedure_details
        legs: list[ProcedureLeg] = []

        if details.approach_index != -1:
            approach = _select(destination.infos.approaches, details.approach_index, "approach")
            if details.approach_transition_index != -1:
                transition = _select(
                    approach.transitions,
                    details.approach_transition_index,
                    "approach transition",
                )
                legs.extend(transition.legs)
            legs.extend(approach.final_legs)

        facility_loader = self._require_facility_loader()
        self._remove_range(self.approach_start, len(self._waypoints) - 1)
        return await self._insert_procedure(
            legs, destination, self.approach_start, SegmentType.APPROACH, facility_loader
        )

    def _require_facility_loader(self) -> FacilityLoader:
        if self._facility_loader is None:
            raise FlightPlanError("No facility loader attached to the flight plan")
        return self._facility_loader

    def _remove_range(self, start: int, end: int) -> None:
        """Remove the waypoints in [start, end)."""
        for _ in range(max(0, end - start)):
            self.remove_waypoint(start)

    async def _insert_procedure(
        self,
        legs: list[ProcedureLeg],
        anchor: Waypoint,
        start: int,
        segment: SegmentType,
        facility_loader: FacilityLoader,
    ) -> int:
        """Decode legs from an anchor and insert them from start on."""
        procedure = LegsProcedure(legs, anchor, facility_loader, self.lookup_timeout_ms)

        index = start
        async for waypoint in procedure:
            self.add_waypoint(waypoint, index, segment)
            index += 1

        logger.info(
            "Built %s segment from %s: %d waypoints",
            segment.name.lower(),
            anchor.ident,
            index - start,
        )
        return index - start


def _select(items: list[T], index: int, label: str) -> T:
    """Get a catalog entry by selection index."""
    if not 0 <= index < len(items):
        raise ProcedureSelectionError(f"No {label} at index {index} (have {len(items)})")
    return items[index]
