"""Origin rebasing and sub-level switching along a simulated flight.

This example demonstrates the per-frame control loop of a georeference:
    1. Declare a few georeferenced sub-levels around a start location
    2. Fly a viewer along a long path, feeding its engine position to tick()
    3. Sub-levels activate when the viewer enters their load radius
    4. The floating origin is rebased whenever the viewer strays too far
    5. Visualize the path, rebase events and sub-level radii

Can run with:
    - Default preset: python -m demos.example_origin_rebasing
    - Dense campus preset: python -m demos.example_origin_rebasing --preset campus
    - Custom settings: python -m demos.example_origin_rebasing --config my_config.json

The JSON file holds GeoreferenceConfig.to_dict() keys; any key left out
keeps the preset's value.
"""

import argparse
import json
from pathlib import Path
from typing import Dict, List, Tuple

import matplotlib.pyplot as plt
import numpy as np

from georef.reference_frame import (
    GeodeticPosition,
    Georeference,
    GeoreferenceConfig,
    SubLevel,
    SubLevelStreamer,
    WorldOriginShifter,
)

# Sub-level layouts as (identifier, east [m], north [m], load radius [m])
PRESETS: Dict[str, Dict] = {
    "flyover": {
        "levels": [
            ("trailhead", 0.0, 0.0, 1500.0),
            ("ridge", 35000.0, 8000.0, 3000.0),
            ("lake", 70000.0, -12000.0, 2500.0),
        ],
        "waypoints": [(0.0, 0.0), (35000.0, 8000.0), (70000.0, -12000.0), (90000.0, 20000.0)],
        "threshold_m": 10000.0,
    },
    "campus": {
        "levels": [
            ("north_hall", 0.0, 400.0, 300.0),
            ("library", 250.0, 200.0, 300.0),
            ("stadium", 900.0, -300.0, 350.0),
        ],
        "waypoints": [(0.0, 0.0), (0.0, 600.0), (300.0, 200.0), (1000.0, -400.0), (1600.0, 0.0)],
        "threshold_m": 400.0,
    },
}


class PrintingStreamer(SubLevelStreamer):
    """Streamer stand-in that logs requests instead of loading content."""

    def load_sub_level(self, level: SubLevel) -> None:
        print(f"    load   -> {level.identifier}")

    def unload_sub_level(self, level: SubLevel) -> None:
        print(f"    unload -> {level.identifier}")


class RecordingShifter(WorldOriginShifter):
    """Tracks the accumulated world shift the engine would apply."""

    def __init__(self) -> None:
        self.total = np.zeros(3)
        self.count = 0

    def shift_world_origin(self, delta: np.ndarray) -> None:
        self.total += delta
        self.count += 1


def build_config(preset: Dict, units_per_meter: float) -> GeoreferenceConfig:
    """Place the preset's sub-levels relative to the default origin."""
    base = GeoreferenceConfig(engine_units_per_meter=units_per_meter)
    anchor = Georeference(base)

    levels = []
    for identifier, east, north, radius in preset["levels"]:
        ecef = anchor.transform_georeferenced_to_ecef([east, north, 0.0])
        origin = GeodeticPosition.from_array(anchor.transform_ecef_to_geodetic(ecef))
        levels.append(SubLevel(identifier, origin, load_radius=radius))

    return base.with_changes(
        sub_levels=tuple(levels),
        max_world_origin_distance_from_viewer=preset["threshold_m"] * units_per_meter,
    )


def interpolate_path(waypoints: List[Tuple[float, float]], n_steps: int) -> np.ndarray:
    """Evenly spaced points along a polyline in the start location's ENU frame."""
    points = np.array([[e, n, 150.0] for e, n in waypoints])
    seg_lengths = np.linalg.norm(np.diff(points, axis=0), axis=1)
    stations = np.concatenate([[0.0], np.cumsum(seg_lengths)])
    s = np.linspace(0.0, stations[-1], n_steps)
    return np.column_stack([np.interp(s, stations, points[:, k]) for k in range(3)])


def run_simulation(config: GeoreferenceConfig, waypoints, n_steps: int, plot: bool = True) -> None:
    """Fly the viewer along the path and report what the georeference did."""
    print("=" * 70)
    print("Origin Rebasing & Sub-Level Switching")
    print("=" * 70)
    print(f"\n  Sub-levels: {[level.identifier for level in config.sub_levels]}")
    print(f"  Rebase threshold: {config.max_world_origin_distance_from_viewer:,.0f} engine units")
    print(f"  Engine units per meter: {config.engine_units_per_meter:g}")

    # Path is fixed in the start location's ENU frame
    start = Georeference(config)
    path_enu = interpolate_path(waypoints, n_steps)
    path_ecef = np.array([start.transform_georeferenced_to_ecef(p) for p in path_enu])

    shifter = RecordingShifter()
    georeference = Georeference(
        config, world_origin_shifter=shifter, sub_level_streamer=PrintingStreamer()
    )
    georeference.initialize()

    print("\n" + "-" * 70)
    print("Flying...")
    rebase_steps = []
    switch_steps = []
    engine_distance = np.zeros(n_steps)
    max_error_m = 0.0

    for k, ecef in enumerate(path_ecef):
        viewer = georeference.transform_ecef_to_engine(ecef)
        engine_distance[k] = np.linalg.norm(viewer) / config.engine_units_per_meter

        result = georeference.tick(viewer)
        if result.switched_sub_level:
            active = georeference.sub_levels.active_level
            name = active.identifier if active is not None else "persistent level"
            print(f"  step {k:4d}: sub-level -> {name}")
            switch_steps.append(k)
        if result.rebased:
            origin = georeference.origin
            print(
                f"  step {k:4d}: rebased, origin = "
                f"({origin.longitude:.5f}°, {origin.latitude:.5f}°, {origin.height:.1f} m)"
            )
            rebase_steps.append(k)

        # The viewer's world point must survive any origin change
        recovered = georeference.transform_engine_to_ecef(georeference.transform_ecef_to_engine(ecef))
        max_error_m = max(max_error_m, float(np.linalg.norm(recovered - ecef)))

    print("\n" + "-" * 70)
    print("Summary:")
    print(f"  • Steps: {n_steps}")
    print(f"  • Rebases: {len(rebase_steps)} (world shifts: {shifter.count})")
    print(f"  • Sub-level transitions: {georeference.sub_levels.transition_count}")
    print(f"  • Final sub-level states: {georeference.sub_levels.sub_level_states()}")
    print(f"  • Max engine distance from floating origin: {engine_distance.max():,.1f} m")
    print(f"  • Max round-trip error: {max_error_m:.2e} m")

    if plot:
        plot_results(config, start, path_enu, rebase_steps, switch_steps, engine_distance)


def plot_results(config, start, path_enu, rebase_steps, switch_steps, engine_distance) -> None:
    print("\n" + "-" * 70)
    print("Generating plots...")

    fig, axes = plt.subplots(1, 2, figsize=(16, 7))

    ax1 = axes[0]
    path_km = path_enu / 1000.0
    ax1.plot(path_km[:, 0], path_km[:, 1], "b-", linewidth=2, label="Viewer Path", alpha=0.8)
    if rebase_steps:
        ax1.scatter(
            path_km[rebase_steps, 0], path_km[rebase_steps, 1],
            c="red", marker="x", s=80, zorder=5, label="Rebase",
        )
    if switch_steps:
        ax1.scatter(
            path_km[switch_steps, 0], path_km[switch_steps, 1],
            c="magenta", marker="o", s=60, zorder=5, label="Sub-level Switch",
        )
    for level in config.sub_levels:
        center = start.transform_ecef_to_georeferenced(
            start.transform_geodetic_to_ecef(level.origin.to_array())
        ) / 1000.0
        circle = plt.Circle(
            (center[0], center[1]), level.load_radius / 1000.0,
            color="green", fill=False, linestyle="--", alpha=0.7,
        )
        ax1.add_patch(circle)
        ax1.annotate(level.identifier, (center[0], center[1]), fontsize=9, ha="center")

    ax1.set_xlabel("East [km]", fontsize=12)
    ax1.set_ylabel("North [km]", fontsize=12)
    ax1.set_title("Viewer Path and Sub-Levels", fontsize=14, fontweight="bold")
    ax1.legend(fontsize=10)
    ax1.grid(True, alpha=0.3)
    ax1.axis("equal")

    ax2 = axes[1]
    threshold_m = config.max_world_origin_distance_from_viewer / config.engine_units_per_meter
    ax2.plot(engine_distance, "b-", linewidth=2, label="Distance from Floating Origin")
    ax2.axhline(threshold_m, color="red", linestyle=":", linewidth=1.5, label="Rebase Threshold")
    for k in rebase_steps:
        ax2.axvline(k, color="red", linestyle=":", alpha=0.3, linewidth=1)

    ax2.set_xlabel("Step", fontsize=12)
    ax2.set_ylabel("Distance [m]", fontsize=12)
    ax2.set_title("Viewer Distance in the Engine Frame", fontsize=14, fontweight="bold")
    ax2.legend(fontsize=10)
    ax2.grid(True, alpha=0.3)

    plt.tight_layout()

    figs_dir = Path("demos/figs")
    figs_dir.mkdir(parents=True, exist_ok=True)
    output_file = figs_dir / "origin_rebasing.png"
    plt.savefig(output_file, dpi=150, bbox_inches="tight")
    print(f"\n[OK] Saved figure: {output_file}")

    plt.show()


def main():
    """Main entry point with CLI argument parsing."""
    parser = argparse.ArgumentParser(
        description="Origin rebasing and sub-level switching demo",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Long flight with three distant sub-levels (default)
  python -m demos.example_origin_rebasing

  # Short walk across a campus of overlapping sub-levels
  python -m demos.example_origin_rebasing --preset campus

  # Override settings from a JSON file
  python -m demos.example_origin_rebasing --config my_config.json
        """,
    )
    parser.add_argument("--preset", choices=sorted(PRESETS), default="flyover", help="Scenario preset")
    parser.add_argument("--config", type=str, default=None, help="JSON file with configuration overrides")
    parser.add_argument("--steps", type=int, default=600, help="Number of simulation steps")
    parser.add_argument("--units-per-meter", type=float, default=100.0, help="Engine units per meter")
    parser.add_argument("--no-plot", action="store_true", help="Skip the matplotlib figure")

    args = parser.parse_args()

    preset = PRESETS[args.preset]
    config = build_config(preset, args.units_per_meter)

    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            print(f"Error: Config file not found at '{args.config}'")
            return
        with open(config_path, "r") as f:
            overrides = json.load(f)
        config = GeoreferenceConfig.from_dict({**config.to_dict(), **overrides})

    run_simulation(config, preset["waypoints"], args.steps, plot=not args.no_plot)


if __name__ == "__main__":
    main()
