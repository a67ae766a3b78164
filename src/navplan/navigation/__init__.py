"""Flight plan sequencing and procedure expansion.

This package provides the managed flight plan of a navigation computer:
the waypoint model, the published procedure catalog, the leg decoder that
turns procedures into waypoints, facility lookup, the simulator mirror and
the manager driving them.

Typical usage:
    from navplan.navigation import FacilityDatabase, FlightPlanManager

    db = FacilityDatabase()
    manager = FlightPlanManager(db)
    await manager.set_origin("A      KJFK ")
"""

from navplan.navigation.facility import (
    FacilityDatabase,
    FacilityLoader,
    FacilityLookupError,
    FacilityRecord,
    parse_facility,
)
from navplan.navigation.flight_plan import (
    DirectTo,
    FlightPlanError,
    FlightPlanSegment,
    ManagedFlightPlan,
    ProcedureDetails,
    ProcedureSelectionError,
    SegmentType,
)
from navplan.navigation.flight_plan_manager import FlightPlanManager
from navplan.navigation.geodesy import LatLongAlt
from navplan.navigation.gps import InMemoryPlanMirror, SimulatorPlanMirror, sync_to_mirror
from navplan.navigation.legs import LegsProcedure
from navplan.navigation.procedures import LegType, ProcedureLeg
from navplan.navigation.serialization import copy_sanitized, flight_plan_from_object
from navplan.navigation.waypoint import Waypoint, WaypointType

__all__ = [
    "DirectTo",
    "FacilityDatabase",
    "FacilityLoader",
    "FacilityLookupError",
    "FacilityRecord",
    "FlightPlanError",
    "FlightPlanManager",
    "FlightPlanSegment",
    "InMemoryPlanMirror",
    "LatLongAlt",
    "LegType",
    "LegsProcedure",
    "ManagedFlightPlan",
    "ProcedureDetails",
    "ProcedureLeg",
    "ProcedureSelectionError",
    "SegmentType",
    "SimulatorPlanMirror",
    "Waypoint",
    "WaypointType",
    "copy_sanitized",
    "flight_plan_from_object",
    "parse_facility",
    "sync_to_mirror",
]
