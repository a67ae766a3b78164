"""Simulator flight plan mirror.

The simulator keeps its own waypoint-by-index copy of the flight plan. This
module provides the outbound contract for that copy, an in-memory
implementation, and the push that replaces the mirror's content with the
current plan. The mirror is never read back as an authority.

Typical usage:
    mirror = InMemoryPlanMirror()
    await sync_to_mirror(plan, mirror)
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from navplan.navigation.flight_plan import ManagedFlightPlan

logger = logging.getLogger(__name__)


class SimulatorPlanMirror(ABC):
    """Abstract simulator flight plan mirror.

    Implementations forward each call to the simulator's native flight plan
    store.
    """

    @abstractmethod
    async def clear(self) -> None:
        """Remove every waypoint from the mirror."""
        pass

    @abstractmethod
    async def add_waypoint_by_identifier(self, icao: str, index: int) -> None:
        """Insert a database waypoint.

        Args:
            icao: Facility ICAO of the waypoint
            index: Index to insert at
        """
        pass

    @abstractmethod
    async def add_user_waypoint(self, lat: float, lon: float, index: int, ident: str = "") -> None:
        """Insert a user waypoint.

        Args:
            lat: Latitude in degrees
            lon: Longitude in degrees
            index: Index to insert at
            ident: Optional identifier
        """
        pass

    @abstractmethod
    async def delete_waypoint(self, index: int) -> None:
        """Delete the waypoint at an index.

        Args:
            index: Index of the waypoint to delete
        """
        pass

    @abstractmethod
    async def set_active_waypoint(self, index: int) -> None:
        """Set the active waypoint.

        Args:
            index: Index of the waypoint to fly to
        """
        pass


@dataclass
class MirroredWaypoint:
    """Waypoint as held by the in-memory mirror.

    Attributes:
        ident: Waypoint identifier
        icao: Facility ICAO, empty for user waypoints
        lat: Latitude for user waypoints
        lon: Longitude for user waypoints
    """

    ident: str
    icao: str = ""
    lat: float | None = None
    lon: float | None = None


class InMemoryPlanMirror(SimulatorPlanMirror):
    """Mirror that records the pushed plan in memory.

    Useful when no simulator is attached, and for inspecting what a push
    would send.

    Attributes:
        waypoints: Mirrored waypoints in plan order
        active_waypoint_index: Last active index pushed
    """

    def __init__(self) -> None:
        """Initialize an empty mirror."""
        self.waypoints: list[MirroredWaypoint] = []
        self.active_waypoint_index = 0

    async def clear(self) -> None:
        """Remove every waypoint from the mirror."""
        # Always delete index 0, which shifts the rest down one
        for _ in range(len(self.waypoints)):
            await self.delete_waypoint(0)

    async def add_waypoint_by_identifier(self, icao: str, index: int) -> None:
        """Insert a database waypoint."""
        ident = icao[7:12].strip() if len(icao) > 7 else icao.strip()
        self.waypoints.insert(index, MirroredWaypoint(ident=ident, icao=icao))

    async def add_user_waypoint(self, lat: float, lon: float, index: int, ident: str = "") -> None:
        """Insert a user waypoint."""
        self.waypoints.insert(index, MirroredWaypoint(ident=ident, lat=lat, lon=lon))

    async def delete_waypoint(self, index: int) -> None:
        """Delete the waypoint at an index, ignoring out-of-range indices."""
        if 0 <= index < len(self.waypoints):
            del self.waypoints[index]

    async def set_active_waypoint(self, index: int) -> None:
        """Set the active waypoint."""
        self.active_waypoint_index = index

    def idents(self) -> list[str]:
        """Get the mirrored waypoint identifiers in order.

        Returns:
            List of identifiers
        """
        return [waypoint.ident for waypoint in self.waypoints]


async def sync_to_mirror(plan: "ManagedFlightPlan", mirror: SimulatorPlanMirror) -> int:
    """Replace the mirror's content with the plan.

    Waypoints with a facility ICAO are pushed by identifier, positioned
    waypoints without one as user waypoints. Coordinate-less markers have no
    simulator counterpart and are not pushed.

    Args:
        plan: Flight plan to push
        mirror: Mirror to overwrite

    Returns:
        Number of waypoints pushed
    """
    await mirror.clear()

    index = 0
    active_index = 0
    for plan_index, waypoint in enumerate(plan.waypoints):
        if plan_index == plan.active_waypoint_index:
            active_index = index

        if waypoint.icao and waypoint.icao.strip():
            await mirror.add_waypoint_by_identifier(waypoint.icao, index)
        elif waypoint.coordinates is not None:
            coordinates = waypoint.coordinates
            await mirror.add_user_waypoint(coordinates.lat, coordinates.long, index, waypoint.ident)
        else:
            continue
        index += 1

    # Markers are not mirrored, so the active index is remapped
    await mirror.set_active_waypoint(active_index)
    logger.info("GPS Plan: %s", " ".join(w.ident for w in plan.waypoints if not w.is_marker))
    return index
