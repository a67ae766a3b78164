"""Tests for the simulator plan mirror."""

import asyncio

from navplan.navigation.facility import to_waypoint
from navplan.navigation.flight_plan import ManagedFlightPlan
from navplan.navigation.gps import InMemoryPlanMirror, MirroredWaypoint, sync_to_mirror


class TestInMemoryPlanMirror:
    """Test the in-memory mirror."""

    def test_insert_and_delete(self):
        """Test index-based edits."""
        mirror = InMemoryPlanMirror()

        async def edit():
            await mirror.add_waypoint_by_identifier("A      KJFK ", 0)
            await mirror.add_user_waypoint(41.0, -73.0, 1, "USR01")
            await mirror.add_waypoint_by_identifier("WK6    MERIT", 1)
            await mirror.delete_waypoint(0)
            await mirror.delete_waypoint(99)

        asyncio.run(edit())

        assert mirror.idents() == ["MERIT", "USR01"]
        assert mirror.waypoints[1] == MirroredWaypoint(ident="USR01", lat=41.0, lon=-73.0)

    def test_clear(self):
        """Test clear empties the mirror."""
        mirror = InMemoryPlanMirror()

        async def edit():
            for i in range(3):
                await mirror.add_user_waypoint(0.0, float(i), i)
            await mirror.clear()

        asyncio.run(edit())
        assert mirror.waypoints == []


class TestSyncToMirror:
    """Test pushing a plan to the mirror."""

    def test_full_push(self, facility_db, make_user_waypoint):
        """Test every waypoint is pushed and markers are skipped."""
        plan = ManagedFlightPlan()
        plan.add_waypoint(to_waypoint(facility_db.find_facility("KJFK")))
        plan.add_waypoint(make_user_waypoint("USR01", 41.2, -72.9))
        plan.add_discontinuity()
        plan.add_waypoint(to_waypoint(facility_db.find_facility("MERIT")))
        plan.add_waypoint(to_waypoint(facility_db.find_facility("KBOS")))
        plan.active_waypoint_index = 3

        mirror = InMemoryPlanMirror()
        asyncio.run(mirror.add_user_waypoint(0.0, 0.0, 0, "STALE"))

        pushed = asyncio.run(sync_to_mirror(plan, mirror))

        assert pushed == 4
        assert mirror.idents() == ["KJFK", "USR01", "MERIT", "KBOS"]
        assert mirror.waypoints[0].icao == "A      KJFK "
        assert mirror.waypoints[1].lat == 41.2
        # MERIT is at plan index 3 but mirror index 2
        assert mirror.active_waypoint_index == 2

    def test_empty_plan(self):
        """Test an empty plan clears the mirror."""
        mirror = InMemoryPlanMirror()
        asyncio.run(mirror.add_user_waypoint(0.0, 0.0, 0, "STALE"))

        assert asyncio.run(sync_to_mirror(ManagedFlightPlan(), mirror)) == 0
        assert mirror.waypoints == []
        assert mirror.active_waypoint_index == 0
