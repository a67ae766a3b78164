"""Flight plan manager.

This module provides the editing workflow of the navigation computer on top
of ManagedFlightPlan: setting the origin and destination from facility
ICAOs, selecting procedures and rebuilding the affected segments, direct-to,
plan copies, persistence, and pushing the plan to the simulator mirror.

Every mutating call holds the manager lock for its whole duration, so two
edits never interleave across their await points. Each completed mutation
publishes a FlightPlanChangedEvent.

Typical usage:
    manager = FlightPlanManager(facility_db, mirror=InMemoryPlanMirror())
    await manager.set_origin("A      KJFK ")
    await manager.set_destination("A      KBOS ")
    await manager.set_departure_proc_index(0)
"""

import asyncio
import re
from dataclasses import replace
from typing import Any

from navplan.core.config import ConfigLoader
from navplan.core.event_bus import (
    ActiveWaypointChangedEvent,
    DirectToChangedEvent,
    Event,
    EventBus,
    FlightPlanChangedEvent,
)
from navplan.core.logging_system import LoggerMixin
from navplan.navigation.facility import FacilityLoader, FacilityLookupError, to_waypoint
from navplan.navigation.flight_plan import (
    FlightPlanError,
    ManagedFlightPlan,
    ProcedureDetails,
    ProcedureSelectionError,
    SegmentType,
)
from navplan.navigation.geodesy import LatLongAlt
from navplan.navigation.gps import SimulatorPlanMirror, sync_to_mirror
from navplan.navigation.procedures import Departure
from navplan.navigation.serialization import copy_sanitized, flight_plan_from_object
from navplan.navigation.waypoint import Waypoint, WaypointType, make_facility_waypoint

_RUNWAY_DESIGNATION = re.compile(r"^\s*0*(\d+)\s*([LRC]?)")


class FlightPlanManager(LoggerMixin):
    """Owner of the flight plans and their editing workflow.

    The manager keeps a fixed list of plans; the current one is edited and
    pushed to the simulator mirror.

    Attributes:
        config: Navigation computer settings

    Examples:
        >>> manager = FlightPlanManager(facility_db)
        >>> await manager.set_origin("KJFK")
        >>> manager.current_plan.has_origin
        True
    """

    def __init__(
        self,
        facility_loader: FacilityLoader,
        mirror: SimulatorPlanMirror | None = None,
        event_bus: EventBus | None = None,
        config: ConfigLoader | None = None,
    ) -> None:
        """Initialize the manager with empty plans.

        Args:
            facility_loader: Facility lookup service
            mirror: Simulator plan mirror to push to
            event_bus: Bus change events are published on
            config: Settings, defaults when omitted
        """
        self.attach_logger("flight_plan_manager")

        self.config = config if config is not None else ConfigLoader.defaults()
        self._facility_loader = facility_loader
        self._mirror = mirror
        self._event_bus = event_bus
        self._lock = asyncio.Lock()

        self._lookup_timeout_ms = self.config.get("facility_lookup.timeout_ms")
        self._sync_on_change = bool(self.config.get("gps.sync_on_change", True))

        plan_count = max(1, int(self.config.get("flight_plan.plan_count", 2)))
        self._flight_plans = [self._new_plan() for _ in range(plan_count)]
        self._current_index = 0

        self.log_info("Initialized flight plan manager with %d plans", plan_count)

    def _new_plan(self) -> ManagedFlightPlan:
        plan = ManagedFlightPlan(self._facility_loader, self._lookup_timeout_ms)
        plan.cruise_altitude = float(self.config.get("flight_plan.default_cruise_altitude_ft", 0))
        return plan

    @property
    def current_plan(self) -> ManagedFlightPlan:
        """Get the plan being edited."""
        return self._flight_plans[self._current_index]

    @property
    def current_plan_index(self) -> int:
        """Get the index of the plan being edited."""
        return self._current_index

    @property
    def plan_count(self) -> int:
        """Get the number of plans."""
        return len(self._flight_plans)

    def get_flight_plan(self, index: int) -> ManagedFlightPlan | None:
        """Get a plan by index.

        Args:
            index: Plan index

        Returns:
            The plan, or None when index is out of range
        """
        if 0 <= index < len(self._flight_plans):
            return self._flight_plans[index]
        return None

    def find_waypoint_index(self, icao: str) -> int:
        """Find a facility in the current plan.

        Args:
            icao: Facility ICAO

        Returns:
            Index of the first waypoint with that ICAO, -1 if absent
        """
        for i, waypoint in enumerate(self.current_plan.waypoints):
            if waypoint.icao and waypoint.icao == icao:
                return i
        return -1

    async def _lookup(self, icao: str) -> Waypoint:
        facility = await self._facility_loader.get_facility(icao, self._lookup_timeout_ms)
        if facility is None:
            raise FacilityLookupError(f"Facility not found: {icao!r}")
        return to_waypoint(facility)

    async def set_current_flight_plan_index(self, index: int) -> None:
        """Switch the plan being edited.

        Args:
            index: Plan index

        Raises:
            FlightPlanError: If index is out of range
        """
        async with self._lock:
            if not 0 <= index < len(self._flight_plans):
                raise FlightPlanError(f"No flight plan at index {index}")
            self._current_index = index
            await self._changed("set_current_flight_plan_index")

    async def set_origin(self, icao: str) -> None:
        """Set the origin airport.

        A previous origin is replaced along with its departure.

        Args:
            icao: Airport ICAO

        Raises:
            FacilityLookupError: If the airport cannot be resolved
            FlightPlanError: If the facility is not an airport
        """
        async with self._lock:
            waypoint = await self._lookup(icao)
            if not waypoint.is_airport:
                raise FlightPlanError(f"Origin must be an airport: {waypoint}")

            plan = self.current_plan
            if plan.has_origin:
                self._reset_departure(plan)
                for _ in range(plan.enroute_start):
                    plan.remove_waypoint(0)

            plan.add_waypoint(waypoint, 0)
            self.log_info("Origin set to %s", waypoint.ident)
            await self._changed("set_origin")

    async def set_destination(self, icao: str) -> None:
        """Set the destination airport.

        A previous destination is replaced along with its arrival and
        approach.

        Args:
            icao: Airport ICAO

        Raises:
            FacilityLookupError: If the airport cannot be resolved
            FlightPlanError: If the facility is not an airport or the plan is
                empty
        """
        async with self._lock:
            waypoint = await self._lookup(icao)
            if not waypoint.is_airport:
                raise FlightPlanError(f"Destination must be an airport: {waypoint}")

            plan = self.current_plan
            if plan.length == 0:
                raise FlightPlanError("Cannot set a destination on an empty flight plan")

            if plan.has_destination:
                self._reset_arrival(plan)
                self._reset_approach(plan)
                for _ in range(plan.length - plan.arrival_start):
                    plan.remove_waypoint()

            plan.add_waypoint(waypoint)
            self.log_info("Destination set to %s", waypoint.ident)
            await self._changed("set_destination")

    async def add_waypoint(self, icao: str, index: int | None = None) -> int:
        """Add a facility to the enroute part of the plan.

        Args:
            icao: Facility ICAO
            index: Index to insert at; by default before the arrival, or at
                the end when there is no destination

        Returns:
            Index the waypoint was inserted at

        Raises:
            FacilityLookupError: If the facility cannot be resolved
        """
        async with self._lock:
            waypoint = await self._lookup(icao)
            inserted = self._insert_enroute(waypoint, index)
            await self._changed("add_waypoint")
            return inserted

    async def add_user_waypoint(
        self, ident: str, lat: float, lon: float, index: int | None = None
    ) -> int:
        """Add a user waypoint to the enroute part of the plan.

        Args:
            ident: Waypoint identifier
            lat: Latitude in degrees
            lon: Longitude in degrees
            index: Index to insert at, defaulting as for add_waypoint

        Returns:
            Index the waypoint was inserted at
        """
        async with self._lock:
            waypoint = make_facility_waypoint(ident, WaypointType.USER, LatLongAlt(lat, lon))
            inserted = self._insert_enroute(waypoint, index)
            await self._changed("add_user_waypoint")
            return inserted

    def _insert_enroute(self, waypoint: Waypoint, index: int | None) -> int:
        plan = self.current_plan
        if index is None and plan.has_destination:
            index = plan.arrival_start
        return plan.add_waypoint(waypoint, index, SegmentType.ENROUTE)

    async def remove_waypoint(self, index: int) -> Waypoint | None:
        """Remove a waypoint from the current plan.

        Args:
            index: Index to remove

        Returns:
            The removed waypoint, None if the plan was empty
        """
        async with self._lock:
            waypoint = self.current_plan.remove_waypoint(index)
            await self._changed("remove_waypoint")
            return waypoint

    async def set_origin_runway_index(self, index: int) -> None:
        """Select the origin runway and rebuild the departure.

        The departure's runway transition follows the selected runway.

        Args:
            index: Index into the origin's runway ends, -1 for none
        """
        async with self._lock:
            plan = self.current_plan
            previous = replace(plan.procedure_details)

            plan.procedure_details.origin_runway_index = index
            self._follow_origin_runway(plan, previous)
            await self._rebuild(plan, SegmentType.DEPARTURE, "set_origin_runway_index", previous)

    async def set_departure_proc_index(self, index: int) -> None:
        """Select a departure and rebuild the departure segment.

        The enroute transition is reset; the runway transition follows the
        selected origin runway.

        Args:
            index: Index into the origin's departures, -1 for none
        """
        async with self._lock:
            plan = self.current_plan
            details = plan.procedure_details
            previous = replace(details)

            details.departure_index = index
            details.departure_transition_index = -1
            self._follow_origin_runway(plan, previous)
            await self._rebuild(plan, SegmentType.DEPARTURE, "set_departure_proc_index", previous)

    async def set_departure_runway_index(self, index: int) -> None:
        """Select the departure runway transition and rebuild.

        Args:
            index: Index into the departure's runway transitions
        """
        async with self._lock:
            plan = self.current_plan
            previous = replace(plan.procedure_details)
            plan.procedure_details.departure_runway_index = index
            await self._rebuild(plan, SegmentType.DEPARTURE, "set_departure_runway_index", previous)

    async def set_departure_enroute_transition_index(self, index: int) -> None:
        """Select the departure enroute transition and rebuild.

        Args:
            index: Index into the departure's enroute transitions
        """
        async with self._lock:
            plan = self.current_plan
            previous = replace(plan.procedure_details)
            plan.procedure_details.departure_transition_index = index
            await self._rebuild(
                plan, SegmentType.DEPARTURE, "set_departure_enroute_transition_index", previous
            )

    async def set_arrival_proc_index(self, index: int) -> None:
        """Select an arrival and rebuild the arrival segment.

        Args:
            index: Index into the destination's arrivals, -1 for none
        """
        async with self._lock:
            plan = self.current_plan
            details = plan.procedure_details
            previous = replace(details)

            details.arrival_index = index
            details.arrival_transition_index = -1
            details.arrival_runway_index = -1
            await self._rebuild(plan, SegmentType.ARRIVAL, "set_arrival_proc_index", previous)

    async def set_arrival_enroute_transition_index(self, index: int) -> None:
        """Select the arrival enroute transition and rebuild.

        Args:
            index: Index into the arrival's enroute transitions
        """
        async with self._lock:
            plan = self.current_plan
            previous = replace(plan.procedure_details)
            plan.procedure_details.arrival_transition_index = index
            await self._rebuild(
                plan, SegmentType.ARRIVAL, "set_arrival_enroute_transition_index", previous
            )

    async def set_arrival_runway_index(self, index: int) -> None:
        """Select the arrival runway transition and rebuild.

        Args:
            index: Index into the arrival's runway transitions
        """
        async with self._lock:
            plan = self.current_plan
            previous = replace(plan.procedure_details)
            plan.procedure_details.arrival_runway_index = index
            await self._rebuild(plan, SegmentType.ARRIVAL, "set_arrival_runway_index", previous)

    async def set_approach_index(self, index: int) -> None:
        """Select an approach and rebuild the approach segment.

        Args:
            index: Index into the destination's approaches, -1 for none
        """
        async with self._lock:
            plan = self.current_plan
            details = plan.procedure_details
            previous = replace(details)

            details.approach_index = index
            details.approach_transition_index = -1
            await self._rebuild(plan, SegmentType.APPROACH, "set_approach_index", previous)

    async def set_approach_transition_index(self, index: int) -> None:
        """Select the approach transition and rebuild.

        Args:
            index: Index into the approach's transitions
        """
        async with self._lock:
            plan = self.current_plan
            previous = replace(plan.procedure_details)
            plan.procedure_details.approach_transition_index = index
            await self._rebuild(
                plan, SegmentType.APPROACH, "set_approach_transition_index", previous
            )

    async def _rebuild(
        self,
        plan: ManagedFlightPlan,
        segment: SegmentType,
        reason: str,
        previous: ProcedureDetails | None = None,
    ) -> None:
        """Rebuild a procedure segment, restoring selections it rejects.

        Selection and precondition errors are raised before the plan is
        touched. Any other failure leaves the segment partially rebuilt, so the
        change is still published and mirrored before the error propagates.
        """
        builders = {
            SegmentType.DEPARTURE: plan.build_departure,
            SegmentType.ARRIVAL: plan.build_arrival,
            SegmentType.APPROACH: plan.build_approach,
        }

        try:
            count = await builders[segment]()
        except FlightPlanError:
            if previous is not None:
                plan.procedure_details = previous
            raise
        except Exception:
            if previous is not None:
                plan.procedure_details = previous
            self.log_error("Rebuilding %s failed, segment left partial", segment.name.lower())
            await self._changed(reason)
            raise

        self.log_info("Rebuilt %s: %d waypoints", segment.name.lower(), count)
        await self._changed(reason)

    def _follow_origin_runway(
        self, plan: ManagedFlightPlan, previous: ProcedureDetails
    ) -> None:
        """Select the departure runway transition matching the origin runway."""
        try:
            plan.procedure_details.departure_runway_index = self._matching_departure_runway(plan)
        except ProcedureSelectionError:
            plan.procedure_details = previous
            raise

    def _matching_departure_runway(self, plan: ManagedFlightPlan) -> int:
        """Index of the departure runway transition for the origin runway."""
        details = plan.procedure_details
        origin = plan.origin_airfield
        if origin is None or details.departure_index == -1 or details.origin_runway_index == -1:
            return -1

        runways = origin.infos.one_way_runways
        if not 0 <= details.origin_runway_index < len(runways):
            raise ProcedureSelectionError(
                f"No origin runway at index {details.origin_runway_index}"
            )
        if not 0 <= details.departure_index < len(origin.infos.departures):
            return -1

        departure: Departure = origin.infos.departures[details.departure_index]
        name = _runway_transition_name(runways[details.origin_runway_index].designation)
        for i, transition in enumerate(departure.runway_transitions):
            if transition.name == name:
                return i
        return -1

    def _reset_departure(self, plan: ManagedFlightPlan) -> None:
        details = plan.procedure_details
        details.origin_runway_index = -1
        details.departure_index = -1
        details.departure_runway_index = -1
        details.departure_transition_index = -1

    def _reset_arrival(self, plan: ManagedFlightPlan) -> None:
        details = plan.procedure_details
        details.arrival_index = -1
        details.arrival_runway_index = -1
        details.arrival_transition_index = -1

    def _reset_approach(self, plan: ManagedFlightPlan) -> None:
        details = plan.procedure_details
        details.approach_index = -1
        details.approach_transition_index = -1

    async def activate_direct_to(self, icao: str, position: LatLongAlt | None = None) -> None:
        """Activate direct-to a facility.

        A facility already in the plan is flown to by index.

        Args:
            icao: Facility ICAO
            position: Aircraft position direct-to starts from

        Raises:
            FacilityLookupError: If the facility cannot be resolved
        """
        async with self._lock:
            plan = self.current_plan
            origin = _position_waypoint(position)

            index = self.find_waypoint_index(icao)
            if index != -1:
                self._activate_in_plan(plan, index, origin)
                ident = plan.get_waypoint(index).ident
            else:
                waypoint = await self._lookup(icao)
                plan.direct_to.activate_from_waypoint(waypoint, origin)
                ident = waypoint.ident

            self.log_info("Direct-to %s", ident)
            self._publish(DirectToChangedEvent(is_active=True, ident=ident))
            await self._changed("activate_direct_to")

    async def activate_direct_to_index(
        self, index: int, position: LatLongAlt | None = None
    ) -> None:
        """Activate direct-to a waypoint of the current plan.

        Args:
            index: Index of the waypoint
            position: Aircraft position direct-to starts from

        Raises:
            FlightPlanError: If index is out of range
        """
        async with self._lock:
            plan = self.current_plan
            waypoint = plan.get_waypoint(index)
            if waypoint is None:
                raise FlightPlanError(f"No waypoint at index {index}")

            self._activate_in_plan(plan, index, _position_waypoint(position))
            self.log_info("Direct-to %s", waypoint.ident)
            self._publish(DirectToChangedEvent(is_active=True, ident=waypoint.ident))
            await self._changed("activate_direct_to_index")

    def _activate_in_plan(
        self, plan: ManagedFlightPlan, index: int, origin: Waypoint | None
    ) -> None:
        plan.direct_to.activate_from_index(index, origin)
        plan.active_waypoint_index = index

    async def cancel_direct_to(self) -> None:
        """Cancel direct-to."""
        async with self._lock:
            self.current_plan.direct_to.cancel()
            self._publish(DirectToChangedEvent(is_active=False))
            await self._changed("cancel_direct_to")

    async def set_active_waypoint_index(self, index: int) -> None:
        """Set the waypoint being flown to.

        Args:
            index: Index of the waypoint

        Raises:
            FlightPlanError: If index is out of range
        """
        async with self._lock:
            plan = self.current_plan
            waypoint = plan.get_waypoint(index)
            if waypoint is None:
                raise FlightPlanError(f"No waypoint at index {index}")

            plan.active_waypoint_index = index
            self._publish(ActiveWaypointChangedEvent(index=index, ident=waypoint.ident))
            await self._changed("set_active_waypoint_index")

    async def set_cruise_altitude(self, altitude_ft: float) -> None:
        """Set the cruise altitude of the current plan.

        Args:
            altitude_ft: Cruise altitude in feet
        """
        async with self._lock:
            self.current_plan.cruise_altitude = altitude_ft
            await self._changed("set_cruise_altitude")

    async def clear_flight_plan(self) -> None:
        """Empty the current plan."""
        async with self._lock:
            plan = self.current_plan
            plan.clear_plan()
            plan.cruise_altitude = float(
                self.config.get("flight_plan.default_cruise_altitude_ft", 0)
            )
            await self._changed("clear_flight_plan")

    async def reverse_flight_plan(self) -> None:
        """Reverse the current plan for the return trip."""
        async with self._lock:
            self.current_plan.reverse()
            await self._changed("reverse_flight_plan")

    async def copy_current_to(self, index: int) -> None:
        """Copy the current plan over another plan slot.

        Args:
            index: Destination plan index

        Raises:
            FlightPlanError: If index is out of range
        """
        async with self._lock:
            if not 0 <= index < len(self._flight_plans):
                raise FlightPlanError(f"No flight plan at index {index}")
            self._flight_plans[index] = self.current_plan.copy()
            self.log_debug("Copied plan %d to %d", self._current_index, index)

    def serialize(self) -> dict[str, Any]:
        """Serialize every plan.

        Returns:
            Dictionary with the current plan index and the sanitized plans
        """
        return {
            "current_index": self._current_index,
            "plans": [copy_sanitized(plan) for plan in self._flight_plans],
        }

    async def load_serialized(self, data: dict[str, Any]) -> None:
        """Replace every plan with serialized ones.

        Args:
            data: Dictionary produced by serialize

        Raises:
            SerializationError: If a plan cannot be reconstructed
            FlightPlanError: If there are no plans or the current index is
                out of range
        """
        async with self._lock:
            plans = [
                flight_plan_from_object(p, self._facility_loader) for p in data.get("plans", [])
            ]
            current_index = int(data.get("current_index", 0))
            if not plans or not 0 <= current_index < len(plans):
                raise FlightPlanError("Serialized flight plans have no valid current plan")

            for plan in plans:
                plan.lookup_timeout_ms = self._lookup_timeout_ms

            self._flight_plans = plans
            self._current_index = current_index
            self.log_info("Loaded %d flight plans", len(plans))
            await self._changed("load_serialized")

    async def sync_to_gps(self) -> int:
        """Push the current plan to the simulator mirror.

        Returns:
            Number of waypoints pushed, 0 without a mirror
        """
        async with self._lock:
            return await self._sync()

    async def _sync(self) -> int:
        if self._mirror is None:
            self.log_debug("No simulator mirror attached, skipping sync")
            return 0
        return await sync_to_mirror(self.current_plan, self._mirror)

    async def _changed(self, reason: str) -> None:
        plan = self.current_plan
        self._publish(
            FlightPlanChangedEvent(
                plan_index=self._current_index, reason=reason, length=plan.length
            )
        )
        if self._sync_on_change:
            await self._sync()

    def _publish(self, event: Event) -> None:
        if self._event_bus is not None:
            self._event_bus.publish(event)


def _position_waypoint(position: LatLongAlt | None) -> Waypoint | None:
    if position is None:
        return None
    return make_facility_waypoint("PPOS", WaypointType.USER, position)


def _runway_transition_name(designation: str) -> str:
    """Runway transition name for a runway end ("04L" -> "RW4L")."""
    match = _RUNWAY_DESIGNATION.match(designation)
    if not match:
        return ""
    return f"RW{int(match.group(1))}{match.group(2)}"
