#!/usr/bin/env python3
"""
Preset optical setups.

Each preset builds a fresh Setup: an ordered element list plus either a laser
pattern or an image object. The positions and parameters reproduce the
interactive lab setups (centimetre units, beam travelling +x).
"""

import logging
import numpy as np
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Tuple, Union

from math_utils import normalize, reflect, yaw_normal
from optical_elements import (OpticalElement, ThinLens, FlatMirror, SphericalMirror,
                              TransmissiveGrating, ReflectiveGrating, Slit, Aperture, Detector)
from ray_sources import (PatternConfig, Ray, generate_pattern_rays,
                         object_samples_from_image, object_cone_rays)
from ray_tracer import TraceResult, trace_rays, DEFAULT_GRID_SIZE
from sensor import SensorAccumulator, SensorMode

logger = logging.getLogger(__name__)

@dataclass
class Setup:
    """A named element arrangement with its light source."""
    key: str
    name: str
    elements: List[OpticalElement]
    pattern: Optional[PatternConfig] = None
    object_image: Optional[np.ndarray] = None
    object_center: Tuple[float, float, float] = (-10.0, 0.0, 0.0)
    object_normal: Tuple[float, float, float] = (1.0, 0.0, 0.0)
    object_size: Tuple[float, float] = (4.0, 4.0)
    object_step: int = 25
    imaging: bool = False
    grid_size: int = DEFAULT_GRID_SIZE
    sensor_mode: SensorMode = SensorMode.DEMOSAICED

    @property
    def white_light(self) -> bool:
        return self.pattern is not None and self.pattern.is_white

    def element(self, name: str) -> OpticalElement:
        for el in self.elements:
            if el.name == name:
                return el
        raise KeyError(f"{self.key} has no element named {name!r}")

    def first_of(self, cls) -> Optional[OpticalElement]:
        return next((el for el in self.elements if isinstance(el, cls)), None)

    def seed_rays(self, rng: Optional[np.random.Generator] = None) -> List[Ray]:
        """Object-point cones for an image object, laser pattern rays otherwise."""
        if self.object_image is None:
            if self.pattern is None:
                raise ValueError(f"{self.key}: setup has neither a pattern nor an image object.")
            return generate_pattern_rays(self.pattern, rng)

        lens = self.first_of(ThinLens)
        if lens is None:
            raise ValueError(f"{self.key}: an image object needs a thin lens to aim at.")
        width, height = self.object_size
        samples = object_samples_from_image(self.object_image, self.object_center,
                                            self.object_normal, width, height, self.object_step)
        if not samples:
            logger.warning("%s: image object has no opaque samples, nothing to trace", self.key)
        return object_cone_rays(samples, lens.frame, lens.radius)

    def trace(self, rng: Optional[np.random.Generator] = None,
              sensor: Optional[SensorAccumulator] = None) -> TraceResult:
        return trace_rays(self.elements, self.seed_rays(rng), imaging=self.imaging,
                          sensor=sensor, grid_size=self.grid_size)

    def render(self, result: TraceResult,
               mode: Optional[Union[SensorMode, str]] = None) -> np.ndarray:
        """Sensor image of result, in this setup's sensor mode unless mode is given."""
        return result.image(self.sensor_mode if mode is None else mode)

# =========================
# Image object
# =========================

COLOR_CHART = (
    (0.45, 0.32, 0.26), (0.76, 0.58, 0.50), (0.36, 0.48, 0.61), (0.35, 0.42, 0.26),
    (0.51, 0.50, 0.69), (0.38, 0.74, 0.67), (0.85, 0.48, 0.18), (0.29, 0.36, 0.65),
    (0.76, 0.33, 0.38), (0.36, 0.24, 0.42), (0.62, 0.74, 0.25), (0.89, 0.63, 0.18),
    (0.17, 0.24, 0.59), (0.27, 0.58, 0.29), (0.69, 0.19, 0.22), (0.93, 0.78, 0.13),
)

def color_chart_image(size: int = 200, patches: int = 4, border: int = 4) -> np.ndarray:
    """
    Synthetic (size, size, 3) uint8 color checker: patches x patches colored
    squares separated by black borders.
    """
    img = np.zeros((size, size, 3), dtype=np.uint8)
    cell = size // patches
    for i in range(patches):
        for j in range(patches):
            rgb = COLOR_CHART[(i * patches + j) % len(COLOR_CHART)]
            y0, x0 = i * cell + border, j * cell + border
            img[y0:(i + 1) * cell - border, x0:(j + 1) * cell - border] = np.round(np.array(rgb) * 255)
    return img

# =========================
# Czerny-Turner layout
# =========================

def czerny_turner_elements(lines_per_mm: float = 1000.0,
                           collimating_angle_deg: float = -20.0,
                           grating_distance: float = 10.0,
                           focusing_distance: float = 10.0,
                           focusing_angle_deg: float = 10.0,
                           deviation_deg: float = 30.0,
                           center_wavelength_nm: float = 550.0,
                           slit_position: Tuple[float, float, float] = (-10.0, 0.0, 0.0),
                           detector_width: float = 0.5,
                           wavelength_range_nm: float = 300.0) -> List[OpticalElement]:
    """
    Crossed Czerny-Turner spectrometer: slit, collimating mirror, reflective
    grating, focusing mirror and detector.

    The grating incidence angle alpha and diffraction angle beta follow from
    the fixed deviation angle phi = beta + alpha at the center wavelength.
    The focusing length Lf spreads wavelength_range_nm over detector_width;
    the collimating length is Lc = Lf cos(alpha) / cos(beta).
    """
    phi = np.radians(deviation_deg)
    arg = center_wavelength_nm * lines_per_mm * 1e-6 / (2 * np.cos(phi / 2))
    if abs(arg) > 1:
        raise ValueError(f"No grating angle for {lines_per_mm} l/mm at {center_wavelength_nm} nm.")
    alpha = np.arcsin(arg) - phi / 2
    beta = phi - alpha
    lf = detector_width * np.cos(beta) / (lines_per_mm * wavelength_range_nm * 1e-7)
    lc = lf * np.cos(alpha) / np.cos(beta)

    slit_pos = np.asarray(slit_position, dtype=float)
    slit = Slit(name='slit1', position=slit_pos, normal=(1.0, 0.0, 0.0),
                slit_width=0.005, slit_height=1.2)

    collimating_pos = slit_pos + np.array([lc, 0.0, 0.0])
    collimating = SphericalMirror(name='collimating_mirror', position=collimating_pos,
                                  normal=yaw_normal(-90.0 - collimating_angle_deg), radius=-2 * lc)

    two_a = np.radians(2 * collimating_angle_deg)
    grating_pos = collimating_pos - grating_distance * np.array([np.cos(two_a), 0.0, np.sin(two_a)])
    grating_angle_deg = np.degrees(alpha) + 2 * collimating_angle_deg
    grating = ReflectiveGrating(name='grating', position=grating_pos,
                                normal=yaw_normal(90.0 - grating_angle_deg),
                                lines_per_mm=lines_per_mm, line_orientation='vertical')

    beam = np.radians(grating_angle_deg + np.degrees(beta))
    focusing_pos = grating_pos + focusing_distance * np.array([np.cos(beam), 0.0, np.sin(beam)])
    focusing_normal = yaw_normal(-90.0 - focusing_angle_deg)
    focusing = SphericalMirror(name='focusing_mirror', position=focusing_pos,
                               normal=focusing_normal, radius=-2 * lf)

    incident = normalize(focusing_pos - grating_pos)
    detector_pos = focusing_pos + reflect(incident, focusing_normal) * lf
    detector = Detector(name='detector1', position=detector_pos,
                        normal=normalize(focusing_pos - detector_pos))

    logger.debug("Czerny-Turner: alpha=%.2f deg beta=%.2f deg Lc=%.2f Lf=%.2f",
                 np.degrees(alpha), np.degrees(beta), lc, lf)
    return [slit, collimating, grating, focusing, detector]

# =========================
# Presets
# =========================

def _single_lens(pattern: PatternConfig) -> Setup:
    return Setup('single-lens', 'Single Convex Lens',
                 [ThinLens(name='lens1', position=(0.0, 0.0, 0.0), focal_length=4.0)], pattern)

def _two_lens_system(pattern: PatternConfig) -> Setup:
    return Setup('two-lens-system', 'Two Lens System',
                 [ThinLens(name='lens1', position=(-4.0, 0.0, 0.0), focal_length=4.0),
                  ThinLens(name='lens2', position=(4.0, 0.0, 0.0), focal_length=4.0)], pattern)

def _flat_mirror(pattern: PatternConfig) -> Setup:
    return Setup('flat-mirror', 'Flat Mirror',
                 [FlatMirror(name='mirror1', position=(0.0, 0.0, 0.0), normal=yaw_normal(-45.0))],
                 pattern)

def _spherical_mirror(pattern: PatternConfig) -> Setup:
    return Setup('spherical-mirror', 'Spherical Mirror',
                 [SphericalMirror(name='spherical_mirror_1', position=(5.0, 0.0, 0.0),
                                  normal=yaw_normal(-45.0), radius=-10.0)], pattern)

def _camera_sensor(pattern: PatternConfig) -> Setup:
    return Setup('camera-sensor', 'Camera Sensor',
                 [ThinLens(name='lens1', position=(0.0, 0.0, 0.0), focal_length=5.0),
                  Detector(name='detector1', position=(8.0, 0.0, 0.0))], pattern)

def _camera_image_object(pattern: PatternConfig) -> Setup:
    # object at 2f, detector on the conjugate plane
    return Setup('camera-image-object', 'Camera with Image Object',
                 [ThinLens(name='lens1', position=(0.0, 0.0, 0.0), focal_length=5.0),
                  Detector(name='detector1', position=(10.0, 0.0, 0.0))],
                 object_image=color_chart_image(), imaging=True)

def _aperture(pattern: PatternConfig) -> Setup:
    return Setup('aperture', 'Circular Aperture',
                 [Aperture(name='aperture1', position=(0.0, 0.0, 0.0), diameter=1.0)], pattern)

def _optical_slit(pattern: PatternConfig) -> Setup:
    return Setup('optical-slit', 'Optical Slit',
                 [Slit(name='slit1', position=(0.0, 0.0, 0.0), slit_width=0.005, slit_height=1.2)],
                 pattern)

def _diffraction_grating(pattern: PatternConfig) -> Setup:
    return Setup('diffraction-grating', 'Transmissive Grating',
                 [TransmissiveGrating(name='grating1', position=(0.0, 0.0, 0.0),
                                      lines_per_mm=600.0, line_orientation='horizontal')], pattern)

def _reflective_grating(pattern: PatternConfig) -> Setup:
    return Setup('reflective-grating', 'Reflective Grating',
                 [ReflectiveGrating(name='reflective_grating_1', position=(0.0, 0.0, 0.0),
                                    normal=yaw_normal(-90.0), lines_per_mm=600.0,
                                    line_orientation='vertical')], pattern)

def _czerny_turner(pattern: PatternConfig) -> Setup:
    pattern = replace(pattern, source_position=(-12.0, 0.0, 0.0))
    return Setup('czerny-turner', 'Czerny-Turner Spectrometer', czerny_turner_elements(), pattern)

SETUPS: Dict[str, Callable[[PatternConfig], Setup]] = {
    'single-lens': _single_lens,
    'two-lens-system': _two_lens_system,
    'flat-mirror': _flat_mirror,
    'spherical-mirror': _spherical_mirror,
    'camera-sensor': _camera_sensor,
    'camera-image-object': _camera_image_object,
    'aperture': _aperture,
    'optical-slit': _optical_slit,
    'diffraction-grating': _diffraction_grating,
    'reflective-grating': _reflective_grating,
    'czerny-turner': _czerny_turner,
}

def build_setup(key: str, pattern: Optional[PatternConfig] = None,
                grid_size: int = DEFAULT_GRID_SIZE) -> Setup:
    """Fresh Setup for a preset key; pattern defaults to a 532 nm line."""
    try:
        builder = SETUPS[key]
    except KeyError:
        raise ValueError(f"Unknown setup {key!r}; expected one of {sorted(SETUPS)}.")
    setup = builder(pattern if pattern is not None else PatternConfig())
    setup.grid_size = grid_size
    return setup

def trace_setup(key: str, pattern: Optional[PatternConfig] = None,
                rng: Optional[np.random.Generator] = None,
                grid_size: int = DEFAULT_GRID_SIZE) -> Tuple[Setup, TraceResult]:
    """Build a preset and trace it once."""
    setup = build_setup(key, pattern, grid_size)
    result = setup.trace(rng)
    logger.info("%s: %d seed rays, %d paths, %d detector hits",
                setup.name, result.seed_count, len(result.paths), len(result.hits))
    return setup, result
