"""Beacon-based indoor navigation core.

This package contains the reusable components of an indoor wayfinding
system that guides a user between named beacons on a floorplan:
- utils: Angle and horizontal-plane geometry helpers, logging setup
- positioning: Triangulation / multilateration from beacon sightings
- coords: Map <-> tracking frame transform and the calibration context
- calibration: Beacon-measurement calibration state machine and fitting
- floorplan: In-memory floorplan model and a reference room-graph planner
- navigation: Waypoint progress engine, events, destination matching
- narration: Deterministic narration text and optional AI descriptions
- session: One navigation session wiring the above together
"""

__version__ = "0.1.0"
