#!/usr/bin/env python3
"""
Demonstration script for the optical ray tracing system.
Traces one of the preset setups, prints diagnostics, shows the sensor image
and the 3D scene.
"""

import argparse
import logging

import numpy as np

from analysis import (collimation_percentage, circle_of_confusion, intersect_paths_with_plane,
                      plot_sensor_image, plot_spot_diagram, rms_spot_radius)
from optical_elements import Detector, ThinLens
from ray_sources import PATTERN_KINDS, MAX_RAY_COUNT, PatternConfig
from ray_tracer import trace_rays
from sensor import SensorMode
from setups import SETUPS, build_setup

def parse_wavelength(value: str):
    """'white' or a wavelength in nm."""
    if value == 'white':
        return value
    try:
        return float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a number of nm or 'white', got {value!r}")

def print_diagnostics(setup, result):
    """Setup-specific figures of merit."""
    counts = ", ".join(f"{k}={v}" for k, v in sorted(result.outcome_counts.items()))
    print(f"  outcomes: {counts or 'none'}")

    if setup.key == 'two-lens-system':
        dirs = [r.direction for r in result.final_rays()]
        print(f"  collimation: {collimation_percentage(dirs):.1f}%")

    detector = setup.first_of(Detector)
    if detector is None:
        return
    print(f"  detector hits: {len(result.hits)} ({result.sensor.hit_count} on grid, "
          f"{result.sensor.dropped_count} outside)")

    lens = setup.first_of(ThinLens)
    if lens is not None and setup.imaging:
        so = abs((np.asarray(setup.object_center) - lens.frame.origin) @ lens.frame.axis)
        d = abs((detector.frame.origin - lens.frame.origin) @ lens.frame.axis)
        print(f"  circle of confusion: {circle_of_confusion(lens.focal_length, so, d, lens.radius):.3f}")

def main():
    parser = argparse.ArgumentParser(description="Optical ray tracing demonstration")
    parser.add_argument("--setup", choices=sorted(SETUPS), default="camera-sensor",
                        help="Preset optical setup")
    parser.add_argument("--pattern", choices=PATTERN_KINDS, default="line",
                        help="Laser ray pattern")
    parser.add_argument("--wavelength", type=parse_wavelength, default=532.0,
                        help="Wavelength in nm, or 'white'")
    parser.add_argument("--n-rays", type=int, default=100,
                        help=f"Rays per wavelength (1-{MAX_RAY_COUNT})")
    parser.add_argument("--beam-size", type=float, default=1.0, help="Beam diameter")
    parser.add_argument("--grid", type=int, default=64, help="Sensor grid size")
    parser.add_argument("--mode", choices=[m.value for m in SensorMode],
                        default=None, help="Sensor output mode (default: the setup's own)")
    parser.add_argument("--background", choices=("white", "black"), default="white",
                        help="Scene background")
    parser.add_argument("--seed", type=int, default=None, help="Seed for the disc pattern")
    parser.add_argument("--spots", action="store_true", default=False,
                        help="Show a spot diagram on the detector plane")
    parser.add_argument("--no-3d", action="store_true", default=False,
                        help="Skip the PyVista scene")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format="%(levelname)s %(name)s: %(message)s")

    print("Creating optical system...")
    pattern = PatternConfig(kind=args.pattern, ray_count=args.n_rays,
                            wavelength=args.wavelength, beam_size=args.beam_size)
    setup = build_setup(args.setup, pattern, grid_size=args.grid)
    rng = np.random.default_rng(args.seed)

    seed_rays = setup.seed_rays(rng)
    print(f"Tracing {len(seed_rays)} rays through {setup.name}...")
    result = trace_rays(setup.elements, seed_rays, imaging=setup.imaging, grid_size=setup.grid_size)
    print_diagnostics(setup, result)

    mode = SensorMode(args.mode) if args.mode else setup.sensor_mode
    image = setup.render(result, mode)
    detector = setup.first_of(Detector)
    if detector is not None:
        plot_sensor_image(image, title=f"{setup.name} ({mode.value})")
        if args.spots:
            xy = intersect_paths_with_plane([p.points for p in result.paths], detector.frame)
            print(f"  rms spot radius: {rms_spot_radius(xy):.4f}")
            plot_spot_diagram(xy, title_prefix=setup.name)

    if not args.no_3d:
        print("Creating visualizations...")
        # pyvista is only needed for the 3D scene
        from visualization import create_optical_scene
        lines = result.polylines(white_light=setup.white_light, background=args.background)
        plotter = create_optical_scene(setup.elements, lines,
                                       title=f"{setup.name} | {len(seed_rays)} rays",
                                       sensor_image=image if detector is not None else None,
                                       background=args.background)
        plotter.show()

    print("Demo completed!")

if __name__ == "__main__":
    main()
