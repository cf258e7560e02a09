"""
Synthetic tracking frames, sightings and calibration measurements.

A simulated device moves in the map frame; a known "true" map ↔ tracking
transform converts its pose into what a tracking source would report. The
forward models here are the inverses of the conversions done by the
navigation core:

    tracking position  = R(θ)(p_map − u), height kept
    tracking direction = R(θ) d_map
    sighting direction = rotate_direction(d_map, −heading)   (device frame)
"""

import math
from typing import Iterable, List, Optional, Sequence

import numpy as np

from beaconnav.calibration.types import BeaconMeasurement, CalibrationData
from beaconnav.coords.context import CalibrationContext
from beaconnav.coords.transforms import CoordinateTransform
from beaconnav.floorplan.types import Beacon
from beaconnav.navigation.interfaces import TrackingSource
from beaconnav.navigation.types import TrackingQuality, TrackingSample
from beaconnav.positioning.types import BeaconSighting
from beaconnav.utils.geometry import (
    as_vec2,
    as_vec3,
    bearing,
    heading_vector,
    horizontal,
    lift,
    rotate_2d,
    rotate_direction,
    unit,
)


def true_transform(user_position_map, heading: float,
                   beacons: Sequence[Beacon]) -> CoordinateTransform:
    """
    Transform holding an exact calibration, used as ground truth.

    The stored measurements are noise-free, ranged pointings at `beacons`
    (at least three) from the tracking origin.
    """
    u = as_vec2(user_position_map)
    measurements = []
    for beacon in beacons:
        target = lift(rotate_2d(beacon.floor_position - u, heading), beacon.position[1])
        measurements.append(BeaconMeasurement(
            beacon.id, beacon.position, target, distance=float(np.linalg.norm(target)),
        ))
    return CoordinateTransform(CalibrationContext(CalibrationData(
        user_position_map=u, heading_map_to_tracking=heading,
        measurements=tuple(measurements), confidence=1.0, residual_error=0.0,
    )))


def tracking_heading(transform: CoordinateTransform, map_heading: float) -> float:
    """Tracking-frame bearing of a map-frame bearing."""
    d = transform.map_direction_to_tracking(heading_vector(map_heading))
    return bearing(np.zeros(2), horizontal(d))


def sample_at(transform: CoordinateTransform, position_map, map_heading: float,
              timestamp: float = 0.0,
              quality: TrackingQuality = TrackingQuality.NORMAL) -> TrackingSample:
    """Tracking sample for a device at a map pose."""
    p = as_vec3(position_map)
    return TrackingSample(
        position=transform.map_to_tracking(p, height=p[1]),
        heading=tracking_heading(transform, map_heading),
        quality=quality,
        timestamp=timestamp,
    )


def measure_beacons(transform: CoordinateTransform, observer_map, beacons: Iterable[Beacon],
                    rng: Optional[np.random.Generator] = None,
                    bearing_noise: float = 0.0, with_range: bool = False,
                    confidence: float = 0.95) -> List[BeaconMeasurement]:
    """
    Calibration measurements taken by pointing at beacons.

    Args:
        transform: True map ↔ tracking transform.
        observer_map: Device position in the map frame (3,).
        beacons: Beacons pointed at.
        rng: Random generator for bearing noise.
        bearing_noise: Standard deviation of the pointing error, radians.
        with_range: Also record the true distance.
        confidence: Confidence stored with each measurement.
    """
    observer = as_vec3(observer_map)
    observer_tracking = transform.map_to_tracking(observer, height=observer[1])
    measurements = []
    for beacon in beacons:
        target = transform.map_to_tracking(beacon.position, height=beacon.position[1])
        direction = unit(target - observer_tracking)
        if rng is not None and bearing_noise > 0:
            direction = rotate_direction(direction, rng.normal(0.0, bearing_noise))
        measurements.append(BeaconMeasurement(
            beacon_id=beacon.id,
            map_position=beacon.position,
            observed_direction_local=direction,
            distance=float(np.linalg.norm(target - observer_tracking)) if with_range else None,
            confidence=confidence,
            observer_position=observer_tracking,
        ))
    return measurements


def simulate_sightings(position_map, heading: float, beacons: Iterable[Beacon],
                       rng: Optional[np.random.Generator] = None,
                       bearing_noise: float = 0.0, range_noise: float = 0.0,
                       with_range: bool = True, confidence: float = 0.9,
                       timestamp: float = 0.0) -> List[BeaconSighting]:
    """
    Device-frame sightings of beacons from a map pose.

    Directions are horizontal; the device frame is the map frame rotated by
    `heading` about the vertical axis.
    """
    p = horizontal(position_map)
    sightings = []
    for beacon in beacons:
        offset = beacon.floor_position - p
        d_map = lift(unit(offset))
        local = rotate_direction(d_map, -heading)
        if rng is not None and bearing_noise > 0:
            local = rotate_direction(local, rng.normal(0.0, bearing_noise))
        distance = None
        if with_range:
            distance = float(np.linalg.norm(offset))
            if rng is not None and range_noise > 0:
                distance = max(0.05, distance + rng.normal(0.0, range_noise))
        sightings.append(BeaconSighting(
            beacon_id=beacon.id, beacon_position=beacon.position,
            direction_local=local, distance=distance,
            confidence=confidence, timestamp=timestamp,
        ))
    return sightings


class SimulatedWalker(TrackingSource):
    """
    Device walking through map-frame targets at constant speed.

    Each step() moves the device toward the next target and faces it;
    latest_sample() reports the pose through the true transform.

    Args:
        transform: True map ↔ tracking transform.
        start: Initial map position (3,).
        targets: Map positions to visit in order.
        speed: Walking speed, m/s.
        rng: Random generator for position noise.
        position_noise: Standard deviation of horizontal position noise, meters.
    """

    def __init__(self, transform: CoordinateTransform, start, targets: Sequence = (),
                 speed: float = 1.2, rng: Optional[np.random.Generator] = None,
                 position_noise: float = 0.0):
        self.transform = transform
        self.position = as_vec3(start)
        self.targets = [as_vec3(t) for t in targets]
        self.speed = speed
        self.rng = rng
        self.position_noise = position_noise
        self.heading = 0.0
        self.time = 0.0
        self.available = True

    @property
    def finished(self) -> bool:
        return not self.targets

    def step(self, dt: float) -> None:
        self.time += dt
        remaining = self.speed * dt
        while self.targets and remaining > 0:
            target = self.targets[0]
            offset = horizontal(target) - horizontal(self.position)
            distance = float(np.linalg.norm(offset))
            if distance > 1e-9:
                self.heading = math.atan2(offset[0], offset[1])
            if distance <= remaining:
                self.position = np.array([target[0], self.position[1], target[2]])
                self.targets.pop(0)
                remaining -= distance
            else:
                move = offset / distance * remaining
                self.position = self.position + np.array([move[0], 0.0, move[1]])
                remaining = 0.0

    def latest_sample(self) -> Optional[TrackingSample]:
        if not self.available:
            return None
        position = self.position
        if self.rng is not None and self.position_noise > 0:
            noise = self.rng.normal(0.0, self.position_noise, size=2)
            position = position + np.array([noise[0], 0.0, noise[1]])
        return sample_at(self.transform, position, self.heading, self.time)
