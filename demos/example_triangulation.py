"""
Beacon-sighting positioning on the demo floorplan.

Compares bearing-only sightings with range-weighted sightings as the
pointing error grows, then smooths a noisy walk through the lobby with the
KalmanPositionFilter.

Usage:
    python demos/example_triangulation.py
    python demos/example_triangulation.py --trials 500 --range-noise 0.3
    python demos/example_triangulation.py --output figs/triangulation.png
"""

import argparse
import time
from pathlib import Path
from typing import Dict, List

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
from tqdm import tqdm

from beaconnav.errors import PositioningError
from beaconnav.positioning import KalmanPositionFilter, TriangulationSolver
from beaconnav.sim import demo_floorplan, simulate_sightings
from beaconnav.utils.log import setup_logging

NOISE_LEVELS_DEG = [0.5, 1.0, 2.0, 4.0, 8.0]
LOBBY_BOUNDS = ((0.5, 5.5), (0.5, 5.5))


def random_positions(rng: np.random.Generator, n: int) -> np.ndarray:
    """Uniform horizontal positions inside the lobby."""
    (x0, x1), (z0, z1) = LOBBY_BOUNDS
    return np.column_stack([rng.uniform(x0, x1, n), rng.uniform(z0, z1, n)])


def run_noise_sweep(beacons, trials: int, range_noise: float,
                    rng: np.random.Generator) -> Dict[str, Dict[str, List[float]]]:
    """
    Position error per noise level for both methods.

    Returns:
        {"Bearing only": {"rmse": [...], "failures": [...]},
         "Range weighted": {...}}
    """
    solver = TriangulationSolver()
    results = {name: {"rmse": [], "failures": []} for name in ("Bearing only", "Range weighted")}

    for noise_deg in NOISE_LEVELS_DEG:
        noise = np.radians(noise_deg)
        errors = {name: [] for name in results}
        failures = {name: 0 for name in results}

        for truth in tqdm(random_positions(rng, trials), desc=f"  {noise_deg:>4}°", leave=False, unit="pt"):
            heading = rng.uniform(-np.pi, np.pi)
            position = (truth[0], 1.2, truth[1])
            for name, with_range in (("Bearing only", False), ("Range weighted", True)):
                sightings = simulate_sightings(position, heading, beacons, rng=rng,
                                               bearing_noise=noise, range_noise=range_noise,
                                               with_range=with_range)
                try:
                    estimate = solver.estimate(sightings, heading, now=0.0)
                except PositioningError:
                    failures[name] += 1
                    continue
                errors[name].append(np.linalg.norm(estimate.position - truth))

        for name in results:
            e = np.array(errors[name])
            rmse = float(np.sqrt(np.mean(e ** 2))) if len(e) else float("nan")
            results[name]["rmse"].append(rmse)
            results[name]["failures"].append(failures[name] / trials)
            print(f"  {name:<16} noise {noise_deg:>4.1f}°  RMSE {rmse:.3f} m  "
                  f"failures {failures[name]}/{trials}")

    return results


def run_filtered_walk(beacons, rng: np.random.Generator, noise_deg: float):
    """Raw and Kalman-smoothed estimates along a loop through the lobby."""
    solver = TriangulationSolver()
    smoother = KalmanPositionFilter()

    t = np.linspace(0.0, 2.0 * np.pi, 120)
    truth = np.column_stack([3.0 + 1.8 * np.cos(t), 3.0 + 1.8 * np.sin(t)])
    headings = np.arctan2(-np.sin(t), np.cos(t))
    visited, raw, smoothed = [], [], []

    for k, (p, heading) in enumerate(zip(truth, headings)):
        sightings = simulate_sightings((p[0], 1.2, p[1]), heading, beacons, rng=rng,
                                       bearing_noise=np.radians(noise_deg), with_range=False,
                                       timestamp=k * 0.2)
        try:
            estimate = solver.estimate(sightings, heading, now=k * 0.2)
        except PositioningError:
            continue
        visited.append(p)
        raw.append(estimate.position)
        smoothed.append(smoother.update(estimate).position)

    return np.array(visited), np.array(raw), np.array(smoothed)


def plot_results(beacons, results, walk, output_file: str):
    """Error curves and the smoothed walk."""
    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(14, 6))
    fig.suptitle("Beacon Sighting Positioning", fontsize=14, fontweight="bold")

    for name, color in (("Bearing only", "tab:blue"), ("Range weighted", "tab:red")):
        ax1.plot(NOISE_LEVELS_DEG, results[name]["rmse"], "o-", color=color, label=name)
    ax1.set_xlabel("Pointing error σ (deg)")
    ax1.set_ylabel("Position RMSE (m)")
    ax1.set_title("Error vs pointing noise")
    ax1.grid(True, alpha=0.3)
    ax1.legend()

    truth, raw, smoothed = walk
    ax2.plot(truth[:, 0], truth[:, 1], "k-", linewidth=2, label="Truth")
    ax2.scatter(raw[:, 0], raw[:, 1], s=10, color="tab:gray", alpha=0.6, label="Raw estimates")
    ax2.plot(smoothed[:, 0], smoothed[:, 1], "g-", linewidth=1.5, label="Kalman smoothed")
    positions = np.array([b.floor_position for b in beacons])
    ax2.scatter(positions[:, 0], positions[:, 1], marker="^", s=120, color="tab:orange",
                label="Beacons", zorder=5)
    ax2.set_xlabel("x (m)")
    ax2.set_ylabel("z (m)")
    ax2.set_title("Walk through the lobby")
    ax2.set_aspect("equal")
    ax2.grid(True, alpha=0.3)
    ax2.legend()

    plt.tight_layout()
    Path(output_file).parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(output_file, dpi=150, bbox_inches="tight")
    print(f"\n✓ Figure saved: {output_file}")
    return fig


def main():
    """Run the positioning comparison."""
    parser = argparse.ArgumentParser(
        description="Beacon sighting positioning on the demo floorplan",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--trials", type=int, default=200,
                        help="Random positions per noise level (default: 200)")
    parser.add_argument("--range-noise", type=float, default=0.15,
                        help="Range noise σ for range-weighted sightings, meters (default: 0.15)")
    parser.add_argument("--walk-noise", type=float, default=3.0,
                        help="Pointing error σ during the walk, degrees (default: 3)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument("--output", type=str, default="demos/figs/triangulation.png",
                        help="Output file for the figure")
    args = parser.parse_args()

    setup_logging("WARNING")
    rng = np.random.default_rng(args.seed)
    overall_start = time.time()

    floorplan = demo_floorplan()
    beacons = [b for b in floorplan.beacons_in_room("lobby") if not b.is_obstacle]

    print("\n" + "=" * 70)
    print("Noise sweep: bearing only vs range weighted")
    print("=" * 70)
    results = run_noise_sweep(beacons, args.trials, args.range_noise, rng)

    print("\n" + "=" * 70)
    print("Kalman-smoothed walk")
    print("=" * 70)
    walk = run_filtered_walk(beacons, rng, args.walk_noise)
    truth, raw, smoothed = walk
    raw_rmse = np.sqrt(np.mean(np.sum((raw - truth) ** 2, axis=1)))
    smooth_rmse = np.sqrt(np.mean(np.sum((smoothed - truth) ** 2, axis=1)))
    print(f"  Raw RMSE:      {raw_rmse:.3f} m")
    print(f"  Smoothed RMSE: {smooth_rmse:.3f} m")

    plot_results(beacons, results, walk, args.output)

    print("\n" + "=" * 70)
    print(f"Total execution time: {time.time() - overall_start:.2f} seconds")
    print("=" * 70)


if __name__ == "__main__":
    main()
