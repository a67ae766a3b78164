"""Flight plan serialization.

Converts a flight plan to a plain dictionary (JSON/YAML friendly) and back.
Display handles and service references are stripped on the way out; info
payload classes are re-attached from each waypoint's kind tag on the way in.

Typical usage:
    data = copy_sanitized(plan)
    restored = flight_plan_from_object(data, facility_loader=facility_db)
"""

import dataclasses
from enum import Enum
from typing import Any

from navplan.navigation.facility import FacilityLoader
from navplan.navigation.flight_plan import DirectTo, ManagedFlightPlan, ProcedureDetails
from navplan.navigation.geodesy import LatLongAlt
from navplan.navigation.procedures import Approach, Arrival, Departure, OneWayRunway, Runway
from navplan.navigation.waypoint import (
    INFO_TYPES,
    AirportInfo,
    Waypoint,
    WaypointInfo,
    WaypointType,
)

# Attributes that refer to display or service objects, never serialized
STRIPPED_KEYS = frozenset({"instrument", "svg_elements", "facility_loader", "_facility_loader"})

_PLAN_FIELDS = (
    "departure_start",
    "enroute_start",
    "arrival_start",
    "approach_start",
    "cruise_altitude",
    "active_waypoint_index",
)


class SerializationError(ValueError):
    """Raised when a serialized flight plan cannot be reconstructed."""


def _sanitize(value: Any) -> Any:
    """Recursively convert a value to plain data."""
    if isinstance(value, Enum):
        return value.value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: _sanitize(getattr(value, f.name))
            for f in dataclasses.fields(value)
            if f.name not in STRIPPED_KEYS
        }
    if isinstance(value, dict):
        return {k: _sanitize(v) for k, v in value.items() if k not in STRIPPED_KEYS}
    if isinstance(value, (list, tuple)):
        return [_sanitize(item) for item in value]
    return value


def copy_sanitized(plan: ManagedFlightPlan) -> dict[str, Any]:
    """Copy a flight plan into plain data.

    The plan is not modified.

    Args:
        plan: Flight plan to copy

    Returns:
        Dictionary of waypoints, segment starts, procedure selections and
        direct-to state; enums are replaced by their tags
    """
    data: dict[str, Any] = {
        "waypoints": [_sanitize(waypoint) for waypoint in plan.waypoints],
        "has_origin": plan.has_origin,
        "has_destination": plan.has_destination,
    }
    for name in _PLAN_FIELDS:
        data[name] = getattr(plan, name)

    data["procedure_details"] = _sanitize(plan.procedure_details)
    data["direct_to"] = _sanitize(plan.direct_to)
    return data


def waypoint_from_object(data: dict[str, Any]) -> Waypoint:
    """Rebuild a waypoint from its sanitized form.

    Args:
        data: Sanitized waypoint dictionary

    Returns:
        Waypoint whose info payload class matches its kind tag

    Raises:
        SerializationError: If the kind tag is unknown
    """
    try:
        waypoint_type = WaypointType(data["type"])
    except (KeyError, ValueError) as e:
        raise SerializationError(f"Unknown waypoint kind: {data.get('type')!r}") from e

    return Waypoint(
        ident=data.get("ident", ""),
        type=waypoint_type,
        infos=_info_from_object(waypoint_type, data.get("infos") or {}),
        icao=data.get("icao", ""),
        bearing_in_fp=data.get("bearing_in_fp", 0.0),
        distance_in_fp=data.get("distance_in_fp", 0.0),
        cumulative_distance_in_fp=data.get("cumulative_distance_in_fp", 0.0),
    )


def _info_from_object(waypoint_type: WaypointType, data: dict[str, Any]) -> WaypointInfo:
    info_cls = INFO_TYPES[waypoint_type]
    names = {f.name for f in dataclasses.fields(info_cls)} - STRIPPED_KEYS
    values = {key: value for key, value in data.items() if key in names}

    coordinates = values.get("coordinates")
    if coordinates is not None:
        values["coordinates"] = LatLongAlt(**coordinates)

    reference_fix = values.get("reference_fix")
    if reference_fix is not None:
        values["reference_fix"] = waypoint_from_object(reference_fix)

    if info_cls is AirportInfo:
        values["departures"] = [Departure.from_dict(d) for d in values.get("departures", [])]
        values["arrivals"] = [Arrival.from_dict(a) for a in values.get("arrivals", [])]
        values["approaches"] = [Approach.from_dict(a) for a in values.get("approaches", [])]
        values["runways"] = [Runway.from_dict(r) for r in values.get("runways", [])]
        values["one_way_runways"] = [
            OneWayRunway.from_dict(r) for r in values.get("one_way_runways", [])
        ]

    return info_cls(**values)


def flight_plan_from_object(
    data: dict[str, Any], facility_loader: FacilityLoader | None = None
) -> ManagedFlightPlan:
    """Rebuild a flight plan from its sanitized form.

    Segment starts are taken as stored; derived distances are recomputed.

    Args:
        data: Dictionary produced by copy_sanitized
        facility_loader: Facility lookup to attach to the rebuilt plan

    Returns:
        Reconstructed flight plan

    Raises:
        SerializationError: If a waypoint kind is unknown or the stored
            segment starts are inconsistent with the waypoints
    """
    plan = ManagedFlightPlan(facility_loader)
    plan._waypoints = [waypoint_from_object(w) for w in data.get("waypoints", [])]
    plan._has_origin = bool(data.get("has_origin", False))
    plan._has_destination = bool(data.get("has_destination", False))

    for name in _PLAN_FIELDS:
        if name in data:
            setattr(plan, name, data[name])

    starts = [
        plan.departure_start,
        plan.enroute_start,
        plan.arrival_start,
        plan.approach_start,
        plan.length,
    ]
    if starts[0] < 0 or starts != sorted(starts):
        raise SerializationError(
            f"Inconsistent segment starts {starts[:4]} for {plan.length} waypoints"
        )

    plan.procedure_details = ProcedureDetails(**data.get("procedure_details", {}))

    direct_to = dict(data.get("direct_to") or {})
    for key in ("waypoint", "origin"):
        if direct_to.get(key) is not None:
            direct_to[key] = waypoint_from_object(direct_to[key])
    plan.direct_to = DirectTo(**direct_to)

    plan._reflow_distances()
    return plan
