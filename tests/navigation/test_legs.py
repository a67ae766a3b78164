"""Tests for procedure leg decoding."""

import asyncio

import pytest

from navplan.navigation.facility import (
    FacilityDatabase,
    FacilityLookupError,
    FacilityRecord,
    format_icao,
    to_waypoint,
)
from navplan.navigation.geodesy import (
    LatLongAlt,
    bearing_distance_to_coordinates,
    great_circle_distance,
)
from navplan.navigation.legs import LegsProcedure, ProcedureDecodeError
from navplan.navigation.procedures import LegType, ProcedureLeg
from navplan.navigation.waypoint import (
    DiscontinuityInfo,
    Waypoint,
    WaypointType,
    make_facility_waypoint,
)

KJFK = format_icao("A", "KJFK")
ABC = format_icao("V", "ABC", "K6")
MERIT = format_icao("W", "MERIT", "K6")
UNKNOWN_FIX = format_icao("W", "NOPE", "K6")

ABC_POSITION = LatLongAlt(41.0, -73.0)


def decode_all(procedure: LegsProcedure) -> list[Waypoint]:
    """Run a procedure to completion."""

    async def collect():
        return [waypoint async for waypoint in procedure]

    return asyncio.run(collect())


@pytest.fixture
def anchor(facility_db) -> Waypoint:
    """KJFK as the procedure anchor."""
    return to_waypoint(facility_db.find_facility(KJFK))


class TestExactFix:
    """Test IF, TF and RF legs."""

    def test_known_fix_is_looked_up(self, facility_db, anchor):
        """Test a known fix maps to its facility record."""
        legs = [ProcedureLeg(type=LegType.TF, fix_icao=MERIT, origin_icao=ABC)]
        waypoints = decode_all(LegsProcedure(legs, anchor, facility_db))

        assert len(waypoints) == 1
        assert waypoints[0].ident == "MERIT"
        assert waypoints[0].icao == MERIT
        assert waypoints[0].type is WaypointType.INTERSECTION

    def test_unknown_fix_uses_polar_offset(self, facility_db, anchor):
        """Test an unknown fix is placed at theta/rho from the origin."""
        legs = [
            ProcedureLeg(
                type=LegType.TF, fix_icao=UNKNOWN_FIX, origin_icao=ABC, theta=90.0, rho=18520.0
            )
        ]
        waypoint = decode_all(LegsProcedure(legs, anchor, facility_db))[0]

        assert waypoint.ident == "ABC10"
        assert waypoint.type is WaypointType.INTERSECTION
        assert great_circle_distance(ABC_POSITION, waypoint.coordinates) == pytest.approx(10.0)

    def test_lookup_failure_falls_back(self, anchor):
        """Test a failing fix lookup falls back to the polar offset."""

        class FlakyDatabase(FacilityDatabase):
            async def _fetch(self, icao):
                if icao == MERIT:
                    raise FacilityLookupError("simulator busy")
                return self.find_facility(icao)

        db = FlakyDatabase()
        db.add_facility(FacilityRecord(icao=ABC, lat=41.0, lon=-73.0))
        legs = [
            ProcedureLeg(type=LegType.IF, fix_icao=MERIT, origin_icao=ABC, theta=0.0, rho=9260.0)
        ]
        waypoint = decode_all(LegsProcedure(legs, anchor, db))[0]

        assert waypoint.ident == "ABC5"

    def test_unknown_origin_raises(self, facility_db, anchor):
        """Test a fallback without a resolvable origin fails the decode."""
        legs = [ProcedureLeg(type=LegType.TF, fix_icao=UNKNOWN_FIX, origin_icao=UNKNOWN_FIX)]
        procedure = LegsProcedure(legs, anchor, facility_db)

        with pytest.raises(FacilityLookupError):
            asyncio.run(procedure.get_next())


class TestComputedLegs:
    """Test legs whose terminator is computed."""

    def test_five_leg_procedure(self, facility_db, anchor):
        """Test decoding IF, TF, CF, CI and CD legs in sequence."""
        legs = [
            ProcedureLeg(type=LegType.IF, fix_icao=KJFK),
            ProcedureLeg(
                type=LegType.TF, fix_icao=UNKNOWN_FIX, origin_icao=ABC, theta=90.0, rho=18520.0
            ),
            ProcedureLeg(type=LegType.CF, origin_icao=ABC, course=0.0, distance=18520.0),
            ProcedureLeg(type=LegType.CI, origin_icao=ABC, course=270.0),
            ProcedureLeg(type=LegType.CD, origin_icao=ABC, course=0.0, distance=37040.0),
        ]
        waypoints = decode_all(LegsProcedure(legs, anchor, facility_db))

        assert [w.ident for w in waypoints] == ["KJFK", "ABC10", "ABC14", "T270ABC", "ABC20"]

        intercept = waypoints[3].coordinates
        assert intercept.long == pytest.approx(ABC_POSITION.long, abs=0.01)

        dme_fix = waypoints[4].coordinates
        assert great_circle_distance(ABC_POSITION, dme_fix) == pytest.approx(20.0, abs=0.05)

    def test_bearing_distance_from_origin(self, facility_db, anchor):
        """Test an FC leg projects from the origin navaid."""
        legs = [ProcedureLeg(type=LegType.FC, origin_icao=ABC, course=180.0, distance=27780.0)]
        waypoint = decode_all(LegsProcedure(legs, anchor, facility_db))[0]

        assert waypoint.ident == "ABC15"
        assert waypoint.coordinates.lat < ABC_POSITION.lat
        assert great_circle_distance(ABC_POSITION, waypoint.coordinates) == pytest.approx(15.0)

    def test_course_to_named_fix(self, facility_db, anchor):
        """Test a CF leg naming its fix is decoded as that fix."""
        legs = [ProcedureLeg(type=LegType.CF, fix_icao=MERIT, origin_icao=ABC, course=10.0)]
        waypoint = decode_all(LegsProcedure(legs, anchor, facility_db))[0]
        assert waypoint.ident == "MERIT"

    def test_unreachable_distance_terminates_at_start(self, facility_db):
        """Test a CD leg that never reaches its distance ends where it starts."""
        position = bearing_distance_to_coordinates(90.0, 30.0, 41.0, -73.0)
        start = make_facility_waypoint("START", WaypointType.USER, position)
        legs = [ProcedureLeg(type=LegType.CD, origin_icao=ABC, course=0.0, distance=9260.0)]
        waypoint = decode_all(LegsProcedure(legs, start, facility_db))[0]

        assert waypoint.ident == "ABC5"
        assert great_circle_distance(start.coordinates, waypoint.coordinates) == pytest.approx(0.0)


class TestSequencing:
    """Test procedure iteration."""

    def test_unsupported_legs_are_skipped(self, facility_db, anchor):
        """Test unsupported leg types produce no waypoint."""
        legs = [
            ProcedureLeg(type=LegType.VA, course=44.0),
            ProcedureLeg(type=LegType.TF, fix_icao=MERIT),
            ProcedureLeg(type=LegType.HM, fix_icao=MERIT),
        ]
        procedure = LegsProcedure(legs, anchor, facility_db)

        async def run():
            first = await procedure.get_next()
            second = await procedure.get_next()
            return first, second

        first, second = asyncio.run(run())

        assert first.ident == "MERIT"
        assert second is None
        assert not procedure.has_next()

    def test_trailing_intercept_is_skipped(self, facility_db, anchor):
        """Test an intercept leg with nothing to intercept is dropped."""
        legs = [ProcedureLeg(type=LegType.CI, origin_icao=ABC, course=270.0)]
        assert decode_all(LegsProcedure(legs, anchor, facility_db)) == []

    def test_previous_fix_advances(self, facility_db, anchor):
        """Test each produced waypoint becomes the previous fix."""
        legs = [ProcedureLeg(type=LegType.TF, fix_icao=MERIT)]
        procedure = LegsProcedure(legs, anchor, facility_db)
        assert procedure.previous_fix is anchor

        waypoints = decode_all(procedure)
        assert procedure.previous_fix is waypoints[0]

    def test_empty_procedure(self, facility_db, anchor):
        """Test a procedure without legs is exhausted immediately."""
        procedure = LegsProcedure([], anchor, facility_db)
        assert not procedure.has_next()
        assert asyncio.run(procedure.get_next()) is None

    def test_previous_fix_without_position(self, facility_db):
        """Test a computed leg cannot start from a marker."""
        marker = Waypoint("", WaypointType.DISCONTINUITY, DiscontinuityInfo())
        legs = [ProcedureLeg(type=LegType.CF, origin_icao=ABC, course=0.0, distance=1852.0)]

        with pytest.raises(ProcedureDecodeError):
            asyncio.run(LegsProcedure(legs, marker, facility_db).get_next())
