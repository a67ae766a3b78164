"""Pytest configuration and fixtures for all tests."""

import pytest

from navplan.core.logging_system import initialize_logging, shutdown_logging
from navplan.navigation.facility import FacilityDatabase, FacilityRecord, format_icao
from navplan.navigation.geodesy import LatLongAlt
from navplan.navigation.procedures import (
    Approach,
    ApproachTransition,
    Arrival,
    Departure,
    EnRouteTransition,
    LegType,
    ProcedureLeg,
    Runway,
    RunwayTransition,
)
from navplan.navigation.waypoint import WaypointType, make_facility_waypoint

KJFK = format_icao("A", "KJFK")
KBOS = format_icao("A", "KBOS")
ABC = format_icao("V", "ABC", "K6")
MERIT = format_icao("W", "MERIT", "K6")
COATE = format_icao("W", "COATE", "K6")
BOSOX = format_icao("W", "BOSOX", "K6")


@pytest.fixture(scope="session", autouse=True)
def isolated_logging(tmp_path_factory):
    """Send log output to a temporary directory for the whole session."""
    log_dir = tmp_path_factory.mktemp("logs")
    config_file = log_dir / "logging.yaml"
    config_file.write_text(
        f"log_dir: {log_dir.as_posix()}\n"
        "combined_log:\n  enabled: true\n  filename: navplan.log\n"
        "console:\n  enabled: false\n"
    )

    initialize_logging(config_file, use_platform_dir=False)
    yield
    shutdown_logging()


def departure_catalog() -> list[Departure]:
    """MERIT4 departure: two runway legs, one common leg, one transition leg."""
    return [
        Departure(
            name="MERIT4",
            runway_transitions=[
                RunwayTransition(
                    runway_number=4,
                    runway_designation=1,
                    legs=[
                        ProcedureLeg(
                            type=LegType.FC, origin_icao=ABC, course=90.0, distance=18520.0
                        ),
                        ProcedureLeg(type=LegType.TF, fix_icao=MERIT, origin_icao=ABC),
                    ],
                )
            ],
            common_legs=[ProcedureLeg(type=LegType.TF, fix_icao=COATE, origin_icao=ABC)],
            en_route_transitions=[
                EnRouteTransition(
                    name="BOSOX",
                    legs=[ProcedureLeg(type=LegType.TF, fix_icao=BOSOX, origin_icao=ABC)],
                )
            ],
        )
    ]


def arrival_catalog() -> list[Arrival]:
    """ROBUC1 arrival with a single common leg."""
    return [
        Arrival(
            name="ROBUC1",
            common_legs=[ProcedureLeg(type=LegType.TF, fix_icao=BOSOX, origin_icao=ABC)],
        )
    ]


def approach_catalog() -> list[Approach]:
    """ILS 04R: a COATE transition and two final legs."""
    return [
        Approach(
            name="ILS 04R",
            transitions=[
                ApproachTransition(legs=[ProcedureLeg(type=LegType.IF, fix_icao=COATE)]),
            ],
            final_legs=[
                ProcedureLeg(type=LegType.IF, fix_icao=BOSOX),
                ProcedureLeg(type=LegType.TF, fix_icao=MERIT),
            ],
            runway="04R",
        )
    ]


@pytest.fixture
def facility_db() -> FacilityDatabase:
    """Facility database with two airports and a few navaids."""
    db = FacilityDatabase()
    db.add_facility(
        FacilityRecord(
            icao=KJFK,
            lat=40.6398,
            lon=-73.7789,
            name="John F Kennedy Intl",
            departures=departure_catalog(),
            runways=[
                Runway(
                    "04L-22R", direction=44.0, latitude=40.64, longitude=-73.78, length=3460.0
                )
            ],
        )
    )
    db.add_facility(
        FacilityRecord(
            icao=KBOS,
            lat=42.3656,
            lon=-71.0096,
            name="Boston Logan Intl",
            arrivals=arrival_catalog(),
            approaches=approach_catalog(),
        )
    )
    db.add_facility(FacilityRecord(icao=ABC, lat=41.0, lon=-73.0, name="ABC VOR"))
    db.add_facility(FacilityRecord(icao=MERIT, lat=41.38, lon=-73.13))
    db.add_facility(FacilityRecord(icao=COATE, lat=41.5, lon=-72.5))
    db.add_facility(FacilityRecord(icao=BOSOX, lat=42.0, lon=-71.5))
    return db


@pytest.fixture
def make_user_waypoint():
    """Factory for user waypoints at a position."""

    def _make(ident: str, lat: float, lon: float):
        return make_facility_waypoint(ident, WaypointType.USER, LatLongAlt(lat, lon))

    return _make


@pytest.fixture
def make_airport_waypoint():
    """Factory for bare airport waypoints at a position."""

    def _make(ident: str, lat: float, lon: float):
        return make_facility_waypoint(
            ident, WaypointType.AIRPORT, LatLongAlt(lat, lon), format_icao("A", ident)
        )

    return _make
