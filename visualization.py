#!/usr/bin/env python3
"""
3D visualization utilities using PyVista for optical ray tracing.
Handles element outlines, ray path rendering and the sensor image plane.
"""

import numpy as np
import pyvista as pv
from typing import List, Optional, Sequence, Tuple

from optical_elements import OpticalElement, Detector
from ray_tracer import Polyline

ELEMENT_COLORS = {
    'thin-lens': '#22dd22',
    'mirror': 'silver',
    'spherical-mirror': 'silver',
    'grating': '#aaaaee',
    'reflective-grating': '#ddddff',
    'optical-slit': '#444444',
    'aperture': '#444444',
    'detector': '#555555',
}

def polyline_to_polydata(line: Polyline) -> pv.PolyData:
    """Convert one traced polyline to PyVista line geometry."""
    return pv.lines_from_points(np.asarray(line.points, dtype=float), close=False)

def element_to_polydata(element: OpticalElement, n: int = 64) -> pv.PolyData:
    """Outline of an element as a closed PyVista polyline."""
    return pv.lines_from_points(element.outline_points(n), close=False)

def add_ray_paths(plotter: pv.Plotter, lines: Sequence[Polyline],
                  line_width: float = 2.0, opacity: float = 0.5):
    """Add traced polylines, each in its own color."""
    for line in lines:
        if len(line.points) > 1:
            plotter.add_mesh(polyline_to_polydata(line), color=line.color,
                             line_width=line_width, opacity=opacity)

def add_elements(plotter: pv.Plotter, elements: Sequence[OpticalElement], line_width: float = 3.0):
    """Add element outlines with a label at each element position."""
    for el in elements:
        plotter.add_mesh(element_to_polydata(el), color=ELEMENT_COLORS.get(el.kind, 'gray'),
                         line_width=line_width)
    if elements:
        plotter.add_point_labels(np.array([el.frame.origin for el in elements]),
                                 [el.name for el in elements], font_size=10, point_size=1)

def make_sensor_grid(image: np.ndarray, detector: Detector) -> pv.StructuredGrid:
    """
    Place a rendered (H, W, 3) sensor image on the detector plane as a
    structured grid with per-cell RGB colors.
    """
    rows, cols = image.shape[:2]
    f = detector.frame
    # pixel column c sits at local z = -(c / cols - 0.5) * width
    zs = -(np.arange(cols + 1) / cols - 0.5) * detector.width
    ys = -(np.arange(rows + 1) / rows - 0.5) * detector.height
    Z, Y = np.meshgrid(zs, ys)
    pts = (f.origin[None, None, :]
           + Y[..., None] * f.up[None, None, :]
           + Z[..., None] * f.side[None, None, :])
    grid = pv.StructuredGrid(pts[..., 0], pts[..., 1], pts[..., 2])
    # VTK cell order: row index fastest
    grid.cell_data['RGB'] = image.transpose(1, 0, 2).reshape(-1, 3)
    return grid

def add_sensor_image(plotter: pv.Plotter, image: np.ndarray, detector: Detector, opacity: float = 1.0):
    """Show the sensor image on the detector plane."""
    plotter.add_mesh(make_sensor_grid(image, detector), scalars='RGB', rgb=True,
                     opacity=opacity, lighting=False, show_edges=False)

def create_optical_scene(elements: Sequence[OpticalElement],
                         lines: List[Polyline],
                         title: str = "Optical Ray Tracing",
                         sensor_image: Optional[np.ndarray] = None,
                         background: str = 'white',
                         window_size: Tuple[int, int] = (900, 700),
                         off_screen: bool = False) -> pv.Plotter:
    """
    Create complete optical visualization scene.

    Parameters:
    - elements: optical elements, drawn as outlines
    - lines: traced polylines
    - title: plot title
    - sensor_image: rendered sensor image, drawn on the first detector
    - background: 'white' or 'black'
    - window_size: plotter window size

    Returns configured PyVista plotter.
    """
    p = pv.Plotter(window_size=window_size, off_screen=off_screen)
    p.set_background(background)

    # Add title
    p.add_title(title, font_size=12)

    add_elements(p, elements)
    add_ray_paths(p, lines)

    if sensor_image is not None:
        detector = next((el for el in elements if isinstance(el, Detector)), None)
        if detector is not None:
            add_sensor_image(p, sensor_image, detector)

    # Add coordinate axes and grid
    p.add_axes(interactive=True)
    p.enable_parallel_projection()  # Orthographic view
    p.show_grid()

    return p
