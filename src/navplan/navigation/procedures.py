"""Published terminal procedure catalog.

This module provides the data model for the procedures published at an
airport (departures, arrivals, approaches and their transitions), the raw
procedure legs they are made of, and the airport runways.

Leg types follow the ARINC 424 path-terminator numbering used by the
simulator facility records.

Typical usage:
    from navplan.navigation.procedures import Departure, LegType, ProcedureLeg

    leg = ProcedureLeg(type=LegType.TF, fix_icao="WK6    MERIT")
    departure = Departure(name="MERIT4", common_legs=[leg])
"""

import re
from dataclasses import dataclass, field, fields
from enum import IntEnum
from typing import Any

from navplan.navigation.geodesy import METERS_PER_NM, bearing_distance_to_coordinates


class LegType(IntEnum):
    """ARINC 424 path terminator codes.

    Only IF, TF, RF, CF, FC, CI and CD legs are decoded into waypoints; the
    remaining codes are known but skipped by the leg decoder.
    """

    AF = 1
    CA = 2
    CD = 3
    CF = 4
    CI = 5
    CR = 6
    DF = 7
    FA = 8
    FC = 9
    FD = 10
    FM = 11
    HA = 12
    HF = 13
    HM = 14
    IF = 15
    PI = 16
    RF = 17
    TF = 18
    VA = 19
    VD = 20
    VI = 21
    VM = 22
    VR = 23


def _from_fields(cls: type, data: dict[str, Any]) -> dict[str, Any]:
    """Keep only the keys of data that are fields of the dataclass cls."""
    names = {f.name for f in fields(cls)}
    return {key: value for key, value in data.items() if key in names}


@dataclass
class ProcedureLeg:
    """One leg of a published procedure.

    Attributes:
        type: Path terminator code (see LegType)
        fix_icao: ICAO of the fix terminating the leg, blank if none
        origin_icao: ICAO of the recommended navaid the leg refers to
        course: Course in degrees
        distance: Leg distance in meters
        rho: Distance from the origin navaid in meters
        theta: Bearing from the origin navaid in degrees
        turn_direction: 0 none, 1 left, 2 right, 3 either
        alt_desc: Altitude descriptor code
        altitude1: First altitude constraint in meters
        altitude2: Second altitude constraint in meters
    """

    type: int
    fix_icao: str = ""
    origin_icao: str = ""
    course: float = 0.0
    distance: float = 0.0
    rho: float = 0.0
    theta: float = 0.0
    turn_direction: int = 0
    alt_desc: int = 0
    altitude1: float = 0.0
    altitude2: float = 0.0

    @property
    def distance_nm(self) -> float:
        """Get the leg distance in nautical miles."""
        return self.distance / METERS_PER_NM

    @property
    def rho_nm(self) -> float:
        """Get the distance from the origin navaid in nautical miles."""
        return self.rho / METERS_PER_NM

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProcedureLeg":
        """Create a leg from a dictionary of its fields."""
        return cls(**_from_fields(cls, data))


def _legs(data: dict[str, Any], key: str) -> list[ProcedureLeg]:
    return [ProcedureLeg.from_dict(leg) for leg in data.get(key) or []]


@dataclass
class RunwayTransition:
    """Runway-specific leg group of a departure or arrival.

    Attributes:
        runway_number: Runway number (e.g., 4 for runway 04L)
        runway_designation: 0 none, 1 left, 2 right, 3 center
        legs: Legs of the transition
        name: Display name (e.g., "RW4L")
    """

    runway_number: int = 0
    runway_designation: int = 0
    legs: list[ProcedureLeg] = field(default_factory=list)
    name: str = ""

    def __post_init__(self) -> None:
        if not self.name:
            self.name = generate_runway_transition_name(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RunwayTransition":
        """Create a runway transition from a dictionary of its fields."""
        values = _from_fields(cls, data)
        values["legs"] = _legs(data, "legs")
        return cls(**values)


@dataclass
class EnRouteTransition:
    """Enroute transition of a departure or arrival.

    Attributes:
        legs: Legs of the transition
        name: Transition name
    """

    legs: list[ProcedureLeg] = field(default_factory=list)
    name: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EnRouteTransition":
        """Create an enroute transition from a dictionary of its fields."""
        return cls(legs=_legs(data, "legs"), name=data.get("name", ""))


@dataclass
class Departure:
    """Published departure (SID).

    Attributes:
        name: Procedure name
        runway_transitions: Runway-specific leg groups flown first
        common_legs: Legs common to all runways
        en_route_transitions: Enroute transitions flown last
    """

    name: str = ""
    runway_transitions: list[RunwayTransition] = field(default_factory=list)
    common_legs: list[ProcedureLeg] = field(default_factory=list)
    en_route_transitions: list[EnRouteTransition] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Departure":
        """Create a departure from a dictionary of its fields."""
        return cls(
            name=data.get("name", ""),
            runway_transitions=[
                RunwayTransition.from_dict(t) for t in data.get("runway_transitions") or []
            ],
            common_legs=_legs(data, "common_legs"),
            en_route_transitions=[
                EnRouteTransition.from_dict(t) for t in data.get("en_route_transitions") or []
            ],
        )


@dataclass
class Arrival:
    """Published arrival (STAR).

    Attributes:
        name: Procedure name
        en_route_transitions: Enroute transitions flown first
        common_legs: Legs common to all transitions
        runway_transitions: Runway-specific leg groups flown last
    """

    name: str = ""
    en_route_transitions: list[EnRouteTransition] = field(default_factory=list)
    common_legs: list[ProcedureLeg] = field(default_factory=list)
    runway_transitions: list[RunwayTransition] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Arrival":
        """Create an arrival from a dictionary of its fields."""
        return cls(
            name=data.get("name", ""),
            en_route_transitions=[
                EnRouteTransition.from_dict(t) for t in data.get("en_route_transitions") or []
            ],
            common_legs=_legs(data, "common_legs"),
            runway_transitions=[
                RunwayTransition.from_dict(t) for t in data.get("runway_transitions") or []
            ],
        )


@dataclass
class ApproachTransition:
    """Approach transition (feeder route onto the final approach).

    Attributes:
        legs: Legs of the transition
        name: Transition name, the ident of its first fix
    """

    legs: list[ProcedureLeg] = field(default_factory=list)
    name: str = ""

    def __post_init__(self) -> None:
        if not self.name and self.legs:
            self.name = ident_from_icao(self.legs[0].fix_icao)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ApproachTransition":
        """Create an approach transition from a dictionary of its fields."""
        return cls(legs=_legs(data, "legs"), name=data.get("name", ""))


@dataclass
class Approach:
    """Published instrument approach.

    Attributes:
        name: Procedure name (e.g., "ILS 04R")
        transitions: Available approach transitions
        final_legs: Legs of the final approach
        runway: Runway the approach serves
    """

    name: str = ""
    transitions: list[ApproachTransition] = field(default_factory=list)
    final_legs: list[ProcedureLeg] = field(default_factory=list)
    runway: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Approach":
        """Create an approach from a dictionary of its fields."""
        return cls(
            name=data.get("name", ""),
            transitions=[ApproachTransition.from_dict(t) for t in data.get("transitions") or []],
            final_legs=_legs(data, "final_legs"),
            runway=data.get("runway", ""),
        )


@dataclass
class OneWayRunway:
    """One landing/takeoff direction of a runway.

    Attributes:
        designation: Runway end designation (e.g., "04L")
        direction: Runway heading in degrees
        latitude: Threshold latitude
        longitude: Threshold longitude
        length: Runway length in meters
        width: Runway width in meters
        elevation: Runway elevation in meters
    """

    designation: str
    direction: float = 0.0
    latitude: float = 0.0
    longitude: float = 0.0
    length: float = 0.0
    width: float = 0.0
    elevation: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OneWayRunway":
        """Create a runway end from a dictionary of its fields."""
        return cls(**_from_fields(cls, data))


@dataclass
class Runway:
    """Runway as published, covering both directions.

    Attributes:
        designation: Runway designation (e.g., "04L-22R", or "18" for a
            one-way strip)
        direction: Heading of the primary end in degrees
        latitude: Runway center latitude
        longitude: Runway center longitude
        length: Runway length in meters
        width: Runway width in meters
        elevation: Runway elevation in meters
    """

    designation: str
    direction: float = 0.0
    latitude: float = 0.0
    longitude: float = 0.0
    length: float = 0.0
    width: float = 0.0
    elevation: float = 0.0

    def split_if_two_ways(self) -> list[OneWayRunway]:
        """Split the runway into its one-way ends.

        Each end's threshold is half the runway length from the center,
        against the end's landing direction.

        Returns:
            One entry per runway end
        """
        ends = [part.strip() for part in self.designation.split("-") if part.strip()]
        half_length_nm = self.length / 2 / METERS_PER_NM
        runways = []

        for i, designation in enumerate(ends):
            direction = (self.direction + 180.0 * i) % 360.0
            threshold = bearing_distance_to_coordinates(
                (direction + 180.0) % 360.0, half_length_nm, self.latitude, self.longitude
            )
            runways.append(
                OneWayRunway(
                    designation=designation,
                    direction=direction,
                    latitude=threshold.lat,
                    longitude=threshold.long,
                    length=self.length,
                    width=self.width,
                    elevation=self.elevation,
                )
            )

        return runways

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Runway":
        """Create a runway from a dictionary of its fields."""
        return cls(**_from_fields(cls, data))


_RUNWAY_NUMBER = re.compile(r"^\s*(\d+)")
_SIDE_ORDER = {"L": 1, "C": 2, "R": 3}


def runway_sort_key(runway: OneWayRunway) -> tuple[int, int]:
    """Sort key ordering runways by number, then L, C and R.

    Args:
        runway: Runway end to order

    Returns:
        Tuple of (runway number, side rank)
    """
    match = _RUNWAY_NUMBER.match(runway.designation)
    number = int(match.group(1)) if match else 0

    side = 0
    for letter, rank in _SIDE_ORDER.items():
        if letter in runway.designation:
            side = rank
            break

    return number, side


def generate_runway_transition_name(transition: RunwayTransition) -> str:
    """Generate a runway transition name from its runway data.

    Args:
        transition: Runway transition to name

    Returns:
        Name such as "RW4L"
    """
    name = f"RW{transition.runway_number}"
    suffix = {1: "L", 2: "R", 3: "C"}.get(transition.runway_designation)
    if suffix:
        name += suffix
    return name


def ident_from_icao(icao: str) -> str:
    """Extract the display identifier from a facility ICAO.

    Facility ICAOs are 12 characters: kind (1), region (2), airport (4),
    ident (5). Shorter strings are treated as a bare identifier.

    Args:
        icao: Facility ICAO

    Returns:
        Identifier with padding removed
    """
    if len(icao) > 7:
        return icao[7:12].strip()
    return icao.strip()
