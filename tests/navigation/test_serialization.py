"""Tests for flight plan serialization."""

import asyncio
import json

import pytest

from navplan.navigation.facility import to_waypoint
from navplan.navigation.flight_plan import ManagedFlightPlan
from navplan.navigation.serialization import (
    SerializationError,
    copy_sanitized,
    flight_plan_from_object,
    waypoint_from_object,
)
from navplan.navigation.waypoint import (
    AirportInfo,
    BearingDistanceInfo,
    WaypointType,
)


@pytest.fixture
def built_plan(facility_db):
    """KJFK to KBOS with a departure, a marker and direct-to active."""
    plan = ManagedFlightPlan(facility_loader=facility_db)
    plan.add_waypoint(to_waypoint(facility_db.find_facility("KJFK")), 0)
    plan.add_waypoint(to_waypoint(facility_db.find_facility("KBOS")))
    plan.procedure_details.departure_index = 0
    plan.procedure_details.departure_runway_index = 0
    asyncio.run(plan.build_departure())

    plan.add_discontinuity(plan.enroute_start)
    plan.add_bearing_and_distance(
        45.0, 8.0, to_waypoint(facility_db.find_facility("ABC")), plan.arrival_start
    )
    plan.cruise_altitude = 24000.0
    plan.active_waypoint_index = 2
    plan.direct_to.activate_from_waypoint(to_waypoint(facility_db.find_facility("COATE")))
    return plan


class TestCopySanitized:
    """Test conversion to plain data."""

    def test_plain_data(self, built_plan):
        """Test the output is JSON serializable."""
        data = copy_sanitized(built_plan)
        text = json.dumps(data)

        assert "svg_elements" not in text
        assert "instrument" not in text
        assert "facility_loader" not in text

    def test_fields(self, built_plan):
        """Test plan state and enum tags are carried."""
        data = copy_sanitized(built_plan)

        assert len(data["waypoints"]) == built_plan.length
        assert data["waypoints"][0]["type"] == WaypointType.AIRPORT.value
        assert data["has_origin"] and data["has_destination"]
        assert data["enroute_start"] == built_plan.enroute_start
        assert data["procedure_details"]["departure_runway_index"] == 0
        assert data["direct_to"]["is_active"]
        assert data["direct_to"]["waypoint"]["ident"] == "COATE"

    def test_source_unchanged(self, built_plan):
        """Test copying does not modify the plan."""
        before = [(w.ident, w.distance_in_fp) for w in built_plan.waypoints]
        copy_sanitized(built_plan)

        assert [(w.ident, w.distance_in_fp) for w in built_plan.waypoints] == before
        assert built_plan.facility_loader is not None


class TestFlightPlanFromObject:
    """Test reconstruction from plain data."""

    def test_round_trip_through_json(self, built_plan, facility_db):
        """Test a plan survives JSON text with the same structure."""
        data = json.loads(json.dumps(copy_sanitized(built_plan)))
        restored = flight_plan_from_object(data, facility_loader=facility_db)

        assert [w.ident for w in restored.waypoints] == [w.ident for w in built_plan.waypoints]
        assert [w.type for w in restored.waypoints] == [w.type for w in built_plan.waypoints]
        for name in ("departure_start", "enroute_start", "arrival_start", "approach_start"):
            assert getattr(restored, name) == getattr(built_plan, name)
        assert restored.has_origin and restored.has_destination
        assert restored.cruise_altitude == 24000.0
        assert restored.active_waypoint_index == 2
        assert restored.procedure_details == built_plan.procedure_details
        assert restored.facility_loader is facility_db

    def test_info_classes_restored(self, built_plan):
        """Test info payloads are rebuilt from the kind tag."""
        restored = flight_plan_from_object(copy_sanitized(built_plan))

        origin = restored.origin_airfield
        assert isinstance(origin.infos, AirportInfo)
        assert origin.infos.departures[0].name == "MERIT4"
        assert origin.infos.departures[0].runway_transitions[0].name == "RW4L"
        assert [r.designation for r in origin.infos.one_way_runways] == ["04L", "22R"]

        bearing_distance = next(
            w for w in restored.waypoints if w.type is WaypointType.BEARING_DISTANCE
        )
        assert isinstance(bearing_distance.infos, BearingDistanceInfo)
        assert bearing_distance.infos.reference_fix.ident == "ABC"
        assert bearing_distance.coordinates is not None

    def test_distances_recomputed(self, built_plan):
        """Test derived distances are recomputed, not trusted."""
        data = copy_sanitized(built_plan)
        for waypoint in data["waypoints"]:
            waypoint["distance_in_fp"] = 9999.0

        restored = flight_plan_from_object(data)

        expected = [w.distance_in_fp for w in built_plan.waypoints]
        assert [w.distance_in_fp for w in restored.waypoints] == pytest.approx(expected)

    def test_direct_to_restored(self, built_plan):
        """Test an external direct-to target is rebuilt as a waypoint."""
        restored = flight_plan_from_object(copy_sanitized(built_plan))

        assert restored.direct_to.is_active
        assert not restored.direct_to.waypoint_is_in_flight_plan
        assert restored.direct_to.waypoint.ident == "COATE"
        assert restored.direct_to.waypoint.type is WaypointType.INTERSECTION

    def test_restored_plan_is_editable(self, built_plan, facility_db):
        """Test boundary bookkeeping continues on a restored plan."""
        restored = flight_plan_from_object(copy_sanitized(built_plan), facility_db)

        restored.procedure_details.departure_runway_index = -1
        asyncio.run(restored.build_departure())

        assert [w.ident for w in restored.waypoints] == ["KJFK", "COATE", "KBOS"]
        assert restored.has_destination
        assert restored.enroute_start == 2

    def test_empty_plan(self):
        """Test an empty plan round-trips to an empty plan."""
        restored = flight_plan_from_object(copy_sanitized(ManagedFlightPlan()))
        assert restored.length == 0
        assert not restored.has_origin

    def test_unknown_kind(self):
        """Test an unknown kind tag is rejected."""
        with pytest.raises(SerializationError):
            waypoint_from_object({"ident": "X", "type": 99})
        with pytest.raises(SerializationError):
            waypoint_from_object({"ident": "X"})

    def test_inconsistent_starts(self, built_plan):
        """Test segment starts past the end are rejected."""
        data = copy_sanitized(built_plan)
        data["approach_start"] = len(data["waypoints"]) + 1

        with pytest.raises(SerializationError):
            flight_plan_from_object(data)

    def test_serialization_error_is_value_error(self):
        """Test callers catching ValueError also see decode failures."""
        with pytest.raises(ValueError):
            waypoint_from_object({"type": "airport"})
