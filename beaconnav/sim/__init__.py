"""
Simulation utilities for generating synthetic tracking data from a known floorplan.

This package provides forward models that turn a ground-truth map pose into
what the live tracking source, the calibration pointing step and the beacon
sensor would report, so demos and tests can drive the navigation core
without a device.

Modules:
    scenes: Reference three-room floorplan
    tracking: True transforms, tracking samples, sightings and a walking device
"""

from beaconnav.sim.scenes import demo_floorplan
from beaconnav.sim.tracking import (
    SimulatedWalker,
    measure_beacons,
    sample_at,
    simulate_sightings,
    tracking_heading,
    true_transform,
)

__all__ = [
    "demo_floorplan",
    "SimulatedWalker",
    "measure_beacons",
    "sample_at",
    "simulate_sightings",
    "tracking_heading",
    "true_transform",
]
