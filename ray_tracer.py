#!/usr/bin/env python3
"""
Ray tracing engine for optical simulations.
Sweeps a population of ray paths through an ordered list of optical elements,
forking paths at gratings, terminating them at stops and detectors, and
feeding detector hits to a SensorAccumulator.
"""

import logging
import numpy as np
from collections import Counter
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple
from concurrent.futures import ThreadPoolExecutor, as_completed

from color_science import RGB, wavelength_to_color
from optical_elements import OpticalElement, Detector, Miss, Redirect, Split, Absorb
from ray_sources import Ray
from sensor import SensorAccumulator, SensorMode

logger = logging.getLogger(__name__)

DEFAULT_GRID_SIZE = 64
EXTENSION_LENGTH = 25.0

@dataclass
class ActivePath:
    """
    Propagation state of one ray lineage.

    seed_ray is the ray the lineage started from; points is the polyline so
    far. split_index is the index in points where the lineage last forked.
    """
    ray: Ray
    seed_ray: Ray
    points: List[np.ndarray]
    terminated: bool = False
    has_split: bool = False
    split_index: Optional[int] = None

    @staticmethod
    def from_seed(ray: Ray) -> "ActivePath":
        return ActivePath(ray=ray, seed_ray=ray, points=[ray.origin])

@dataclass
class DetectorHit:
    """A ray absorbed by a detector."""
    point: np.ndarray
    pixel: Tuple[int, int]
    wavelength_nm: float
    color: Optional[RGB]
    detector: str
    on_grid: bool

@dataclass
class Polyline:
    """Ordered points with a display color."""
    points: np.ndarray
    color: RGB
    diffraction_order: Optional[int] = None

@dataclass
class TraceResult:
    """Everything one trace produces."""
    paths: List[ActivePath]
    hits: List[DetectorHit]
    sensor: SensorAccumulator
    seed_count: int
    outcome_counts: Counter = field(default_factory=Counter)

    def image(self, mode=SensorMode.DEMOSAICED) -> np.ndarray:
        return self.sensor.render(mode)

    def polylines(self, white_light: bool = False, background: str = 'white') -> List[Polyline]:
        return build_polylines(self.paths, white_light=white_light, background=background)

    def final_rays(self) -> List[Ray]:
        """Rays of the paths that left the system without being absorbed."""
        return [p.ray for p in self.paths if not p.terminated]

def _advance(path: ActivePath, element: OpticalElement, outcome, sensor: SensorAccumulator,
             hits: List[DetectorHit]) -> List[ActivePath]:
    """Apply one element outcome to a path; returns the paths for the next round."""
    if isinstance(outcome, Miss):
        return [path]
    if isinstance(outcome, Redirect):
        path.points.append(outcome.ray.origin)
        path.ray = outcome.ray
        return [path]
    if isinstance(outcome, Split):
        split_at = len(path.points)
        return [ActivePath(ray=child, seed_ray=path.seed_ray,
                           points=path.points + [child.origin],
                           has_split=True, split_index=split_at)
                for child in outcome.rays]
    if isinstance(outcome, Absorb):
        path.points.append(outcome.point)
        path.terminated = True
        if isinstance(element, Detector):
            px, py = element.pixel_coordinates(outcome.point, sensor.width, sensor.height)
            on_grid = sensor.add_hit(px, py, outcome.wavelength_nm, outcome.color)
            hits.append(DetectorHit(point=outcome.point, pixel=(px, py),
                                    wavelength_nm=outcome.wavelength_nm, color=outcome.color,
                                    detector=element.name, on_grid=on_grid))
        return [path]
    raise TypeError(f"{element.name} returned an unsupported outcome {outcome!r}")

def trace_rays(elements: Sequence[OpticalElement],
               seed_rays: Sequence[Ray],
               imaging: bool = False,
               sensor: Optional[SensorAccumulator] = None,
               grid_size: int = DEFAULT_GRID_SIZE,
               extension_length: float = EXTENSION_LENGTH) -> TraceResult:
    """
    Trace seed rays through elements in the given order.

    One round per element: every live path meets that element once. There
    is no revisiting of earlier elements. Paths still alive at the end are
    extended by extension_length along their final direction for display.

    imaging selects the thin-lens imaging model for every lens (seed rays
    leaving resolved object points); otherwise lenses act paraxially.

    The sensor, if given, is reset first. Elements are validated before
    any ray moves, so configuration errors surface as ValueError up front.
    """
    for element in elements:
        element.validate()
    if sensor is None:
        sensor = SensorAccumulator(grid_size)
    else:
        sensor.reset()

    active = [ActivePath.from_seed(r) for r in seed_rays]
    hits: List[DetectorHit] = []
    counts: Counter = Counter()

    for element in elements:
        next_active: List[ActivePath] = []
        for path in active:
            if path.terminated:
                next_active.append(path)
                continue
            outcome = element.interact(path.ray, path.seed_ray, imaging=imaging)
            counts[type(outcome).__name__] += 1
            next_active.extend(_advance(path, element, outcome, sensor, hits))
        active = next_active
        logger.debug("%s: %d paths after round", element.name, len(active))

    for path in active:
        if not path.terminated:
            path.points.append(path.ray.point_at(extension_length))

    logger.debug("Traced %d seed rays into %d paths, %d detector hits (%d on grid)",
                 len(seed_rays), len(active), len(hits), sensor.hit_count)
    return TraceResult(paths=active, hits=hits, sensor=sensor,
                       seed_count=len(seed_rays), outcome_counts=counts)

def trace_many(jobs: Sequence[Tuple[Sequence[OpticalElement], Sequence[Ray], bool]],
               grid_size: int = DEFAULT_GRID_SIZE,
               workers: Optional[int] = None) -> List[TraceResult]:
    """
    Run independent traces concurrently, each with its own sensor.

    jobs holds (elements, seed_rays, imaging) triples. Elements must not be
    reconfigured while the traces run.
    """
    results: List[Optional[TraceResult]] = [None] * len(jobs)
    with ThreadPoolExecutor(max_workers=workers) as ex:
        futs = {ex.submit(trace_rays, elements, rays, imaging, SensorAccumulator(grid_size)): i
                for i, (elements, rays, imaging) in enumerate(jobs)}
        for f in as_completed(futs):
            results[futs[f]] = f.result()
    return results

def _white_color(background: str) -> RGB:
    return (1.0, 1.0, 1.0) if background == 'black' else (0.0, 0.0, 0.0)

def build_polylines(paths: Sequence[ActivePath], white_light: bool = False,
                    background: str = 'white') -> List[Polyline]:
    """
    Display polylines for traced paths.

    In white-light mode a path that went through a grating is drawn in two
    parts: before the split in the neutral color, after it in the color of
    its wavelength (order 0 stays neutral).
    """
    neutral = _white_color(background)
    lines: List[Polyline] = []
    for path in paths:
        pts = np.asarray(path.points)
        ray = path.ray
        order = ray.diffraction_order
        if ray.color is not None:
            lines.append(Polyline(pts, ray.color, order))
            continue
        if white_light and path.has_split and path.split_index is not None:
            i = path.split_index
            pre, post = pts[:i + 1], pts[i:]
            if len(pre) > 1:
                lines.append(Polyline(pre, neutral, None))
            if len(post) > 1:
                color = neutral if order == 0 else wavelength_to_color(ray.wavelength_nm)
                lines.append(Polyline(post, color, order))
            continue
        color = neutral if white_light else wavelength_to_color(ray.wavelength_nm)
        lines.append(Polyline(pts, color, order))
    return lines
