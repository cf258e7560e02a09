"""
Calibrate, then walk to a spoken destination on the demo floorplan.

The simulated user stands in the lobby, waits for tracking to settle,
points the phone at each calibration beacon the app asks for, then names a
destination and walks the planned route. A NavigationSession runs the tick
loop; every announcement is printed as it would be spoken.

The true map ↔ tracking transform is only known to the simulator. The app
starts from a slightly stale calibration of an earlier visit (used to aim
at beacons) and must recover the true one from the pointing measurements.

Usage:
    python demos/example_navigation.py
    python demos/example_navigation.py --destination coffee --noise-deg 2
    python demos/example_navigation.py --destination "conference room b" --output nav.png
"""

import argparse
import asyncio
import time
from pathlib import Path

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
from tqdm import tqdm

from beaconnav.calibration import Completed, MeasuringBeacon, WaitingForTracking
from beaconnav.config import BeaconNavConfig
from beaconnav.floorplan import RoomGraphPlanner
from beaconnav.navigation import (
    ArrivalEvent,
    DoorwayEvent,
    MatchAmbiguous,
    MatchNotFound,
    Navigating,
    OffRouteEvent,
)
from beaconnav.session import NavigationSession
from beaconnav.sim import SimulatedWalker, demo_floorplan, measure_beacons, sample_at, true_transform
from beaconnav.utils.log import setup_logging

TRUE_ORIGIN = (2.0, 2.5)
TRUE_HEADING = 0.6
START = np.array([2.5, 1.2, 3.0])
ROOM_COLORS = {"lobby": "tab:blue", "kitchen": "tab:orange", "conference": "tab:green"}


def calibrate(session, truth, prior, rng, noise):
    """Feed tracking frames and point at every candidate beacon."""
    engine = session.calibration_engine(prior)

    for frame in range(300):
        if not isinstance(engine.state, WaitingForTracking):
            break
        engine.update_tracking(sample_at(truth, START, 0.0, timestamp=frame / 30.0))
    print(f"Tracking: {engine.tracking_message} (room: {engine.current_room_id})")

    while isinstance(engine.state, MeasuringBeacon):
        beacon = engine.current_candidate.beacon
        measurement = measure_beacons(truth, START, [beacon], rng=rng,
                                      bearing_noise=noise, with_range=True)[0]
        alignment = engine.update_alignment(measurement.observer_position,
                                            measurement.observed_direction_local)
        if engine.confirm_measurement(measurement.distance):
            status = "confirmed"
        else:
            engine.skip_beacon()
            status = "skipped"
        print(f"  Point at {beacon.name:<16} alignment {alignment:.3f}  {status}")

    return engine.state


async def walk(session, walker, destination, speedup):
    """Start navigation by name and walk the route while the session ticks."""
    result = session.start_named(destination, walker.position)
    if isinstance(result, MatchAmbiguous):
        print(f"'{destination}' is ambiguous: {', '.join(result.names)}")
        return None
    if isinstance(result, MatchNotFound):
        print(f"No destination matches '{destination}'")
        return None
    if not isinstance(session.state, Navigating):
        print(f"Navigation failed: {session.state}")
        return None

    path = session.engine.path
    walker.targets = [w.position for w in path.waypoints[1:]]
    interval = session.config.navigation.tick_interval
    trajectory = [walker.position.copy()]

    with tqdm(total=round(path.total_distance, 1), unit="m", desc="Walking", leave=False) as bar:
        while session.running:
            walker.step(interval * speedup)
            trajectory.append(walker.position.copy())
            progress = session.engine.progress
            if progress is not None:
                bar.n = round(path.total_distance - progress.total_distance_remaining, 1)
                bar.refresh()
            await asyncio.sleep(interval)
    await session.wait_closed()
    return path, np.array(trajectory)


def plot_walk(floorplan, path, trajectory, marks, output_file):
    """Floorplan, planned route, walked trajectory and announcement points."""
    fig, ax = plt.subplots(figsize=(9, 8))

    for beacon in floorplan.beacons:
        x, _, z = beacon.position
        color = ROOM_COLORS.get(beacon.room_id, "gray")
        marker = "x" if beacon.is_obstacle else "o"
        ax.scatter(x, z, color=color, marker=marker, s=40)
        ax.annotate(beacon.name, (x, z), fontsize=7, xytext=(3, 3), textcoords="offset points")
    for doorway in floorplan.doorways:
        ax.scatter(doorway.position[0], doorway.position[2], color="black", marker="s", s=60)

    route = np.array([w.position for w in path.waypoints])
    ax.plot(route[:, 0], route[:, 2], "k--", linewidth=1, label="Planned route")
    ax.plot(trajectory[:, 0], trajectory[:, 2], "r-", linewidth=2, alpha=0.7, label="Walked")

    styles = {ArrivalEvent: ("g", "^", "Arrival"), DoorwayEvent: ("m", "D", "Doorway"),
              OffRouteEvent: ("r", "X", "Off route")}
    labelled = set()
    for event, position in marks:
        color, marker, label = styles[type(event)]
        ax.scatter(position[0], position[2], color=color, marker=marker, s=90, zorder=5,
                   label=label if label not in labelled else None)
        labelled.add(label)

    ax.set_xlabel("x (m)")
    ax.set_ylabel("z (m)")
    ax.set_title(f"Route to {path.destination.name}")
    ax.set_aspect("equal")
    ax.grid(True, alpha=0.3)
    ax.legend(loc="upper right")
    plt.tight_layout()

    Path(output_file).parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(output_file, dpi=150, bbox_inches="tight")
    print(f"\n✓ Figure saved: {output_file}")
    return fig


def main():
    """Run the calibration and navigation walk-through."""
    parser = argparse.ArgumentParser(
        description="Calibrate and navigate on the demo floorplan",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python demos/example_navigation.py
  python demos/example_navigation.py --destination "fridge" --speedup 4
  python demos/example_navigation.py --preset cautious --noise-deg 3
        """,
    )
    parser.add_argument("--destination", type=str, default="coffee machine",
                        help="Spoken destination name (default: 'coffee machine')")
    parser.add_argument("--preset", type=str, default="simulation",
                        help="Configuration preset (default: simulation)")
    parser.add_argument("--noise-deg", type=float, default=1.0,
                        help="Pointing error during calibration, degrees (default: 1)")
    parser.add_argument("--speedup", type=float, default=2.0,
                        help="Simulated walking time per wall-clock second (default: 2)")
    parser.add_argument("--seed", type=int, default=7, help="Random seed")
    parser.add_argument("--log-level", type=str, default="WARNING",
                        help="beaconnav log level (default: WARNING)")
    parser.add_argument("--output", type=str, default="demos/figs/navigation_walk.png",
                        help="Output file for the figure")
    args = parser.parse_args()

    setup_logging(args.log_level)
    rng = np.random.default_rng(args.seed)
    overall_start = time.time()

    floorplan = demo_floorplan()
    lobby = floorplan.beacons_in_room("lobby")[:3]
    truth = true_transform(TRUE_ORIGIN, TRUE_HEADING, lobby)
    prior = true_transform(np.add(TRUE_ORIGIN, 0.1), TRUE_HEADING + 0.05, lobby)

    walker = SimulatedWalker(truth, START, rng=rng, position_noise=0.02)
    session = NavigationSession(
        floorplan, RoomGraphPlanner(floorplan), walker,
        config=BeaconNavConfig.preset(args.preset),
        narrator=lambda text: tqdm.write(f"🔊 {text}"),
    )

    print("\n" + "=" * 70)
    print("Step 1: Calibration")
    print("=" * 70)
    state = calibrate(session, truth, prior, rng, np.radians(args.noise_deg))
    if not isinstance(state, Completed):
        print(f"Calibration failed: {state.display_message}")
        return
    calibration = state.calibration
    print(f"\nHeading: {np.degrees(calibration.heading_map_to_tracking):.2f}° "
          f"(true {np.degrees(TRUE_HEADING):.2f}°)")
    print(f"Origin:  {np.round(calibration.user_position_map, 3)} (true {TRUE_ORIGIN})")
    print(f"Quality: {calibration.quality.value}, confidence {calibration.confidence:.3f}")

    print("\n" + "=" * 70)
    print(f"Step 2: Navigate to '{args.destination}'")
    print("=" * 70)
    marks = []
    for event_type in (ArrivalEvent, DoorwayEvent, OffRouteEvent):
        session.events.subscribe(lambda e: marks.append((e, walker.position.copy())), event_type)
    asyncio.run(session.announce_current_location())
    outcome = asyncio.run(walk(session, walker, args.destination, args.speedup))
    if outcome is None:
        return
    path, trajectory = outcome

    final_error = np.linalg.norm(trajectory[-1][[0, 2]] - path.destination.position[[0, 2]])
    print(f"\nFinal state: {session.state.name}")
    print(f"Distance to destination: {final_error:.2f} m")

    plot_walk(floorplan, path, trajectory, marks, args.output)

    print("\n" + "=" * 70)
    print(f"Total execution time: {time.time() - overall_start:.2f} seconds")
    print("=" * 70)


if __name__ == "__main__":
    main()
