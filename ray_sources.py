#!/usr/bin/env python3
"""
Ray source generation for optical simulations.
Includes the Ray value type, laser beam patterns (line, ring, cross, disc,
silhouettes) and object-point ray cones for imaging setups.
"""

import logging
import numpy as np
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union
from math_utils import normalize
from geometry import Frame

logger = logging.getLogger(__name__)

DEFAULT_WAVELENGTH_NM = 532.0
OBJECT_RAY_WAVELENGTH_NM = 555.0
WHITE_LIGHT_WAVELENGTHS = (450.0, 532.0, 650.0)
MAX_RAY_COUNT = 2000
PATTERN_KINDS = ('line', 'radial', 'cross', 'disc', 'heart', 'star', 'smile')

@dataclass(frozen=True, eq=False)
class Ray:
    """
    A ray with origin, unit direction and wavelength.

    color overrides the wavelength-derived color everywhere downstream and is
    set for rays leaving a resolved image-object point. diffraction_order is
    set only by gratings. Rays are immutable; derive a new one instead.
    """
    origin: np.ndarray
    direction: np.ndarray
    wavelength_nm: float = DEFAULT_WAVELENGTH_NM
    color: Optional[Tuple[float, float, float]] = None
    diffraction_order: Optional[int] = None

    def __post_init__(self):
        origin = np.array(self.origin, dtype=np.float64)
        direction = normalize(np.array(self.direction, dtype=np.float64))
        origin.setflags(write=False)
        direction.setflags(write=False)
        object.__setattr__(self, 'origin', origin)
        object.__setattr__(self, 'direction', direction)
        if self.color is not None:
            object.__setattr__(self, 'color', tuple(float(c) for c in self.color))

    def derive(self, origin: np.ndarray, direction: np.ndarray,
               diffraction_order: Optional[int] = None) -> "Ray":
        """New ray carrying this ray's wavelength and color."""
        order = self.diffraction_order if diffraction_order is None else diffraction_order
        return Ray(origin=origin, direction=direction, wavelength_nm=self.wavelength_nm,
                   color=self.color, diffraction_order=order)

    def point_at(self, t: float) -> np.ndarray:
        return self.origin + t * self.direction

@dataclass
class PatternConfig:
    """Laser source configuration for a spectral (non-imaging) trace."""
    kind: str = 'line'
    ray_count: int = 100
    wavelength: Union[float, str] = DEFAULT_WAVELENGTH_NM  # nm or 'white'
    beam_size: float = 1.0
    source_position: Sequence[float] = (-9.75, 0.0, 0.0)
    direction: Sequence[float] = (1.0, 0.0, 0.0)

    def __post_init__(self):
        self.validate()

    def validate(self):
        if self.kind not in PATTERN_KINDS:
            raise ValueError(f"Unknown ray pattern {self.kind!r}; expected one of {PATTERN_KINDS}.")
        if not 1 <= int(self.ray_count) <= MAX_RAY_COUNT:
            raise ValueError(f"ray_count must be in [1, {MAX_RAY_COUNT}], got {self.ray_count}.")
        if self.beam_size <= 0:
            raise ValueError("beam_size must be > 0.")
        if isinstance(self.wavelength, str):
            if self.wavelength != 'white':
                raise ValueError(f"wavelength must be a number or 'white', got {self.wavelength!r}.")
        elif self.wavelength <= 0:
            raise ValueError("wavelength must be > 0 nm.")

    @property
    def is_white(self) -> bool:
        return self.wavelength == 'white'

    @property
    def wavelengths(self) -> Tuple[float, ...]:
        return WHITE_LIGHT_WAVELENGTHS if self.is_white else (float(self.wavelength),)

# =========================
# Transverse offset patterns
# =========================

def line_offsets(n: int, beam_size: float) -> np.ndarray:
    """Evenly spaced offsets along local y."""
    if n == 1:
        ys = np.zeros(1)
    else:
        ys = -beam_size / 2 + beam_size * (np.arange(n) / (n - 1))
    return np.stack([ys, np.zeros(n)], axis=-1)

def ring_offsets(n: int, beam_size: float) -> np.ndarray:
    """Angularly spaced offsets on a ring of diameter beam_size."""
    angles = np.arange(n) / n * 2 * np.pi
    r = beam_size / 2
    return np.stack([np.sin(angles) * r, np.cos(angles) * r], axis=-1)

def cross_offsets(n: int, beam_size: float) -> np.ndarray:
    """Two perpendicular line arrays of n // 2 rays each."""
    half = n // 2
    if half == 0:
        return np.empty((0, 2))
    if half == 1:
        arm = np.zeros(1)
    else:
        arm = -beam_size / 2 + beam_size * (np.arange(half) / (half - 1))
    vertical = np.stack([arm, np.zeros(half)], axis=-1)
    horizontal = np.stack([np.zeros(half), arm], axis=-1)
    return np.concatenate([vertical, horizontal])

def disc_offsets(n: int, beam_size: float, rng: np.random.Generator) -> np.ndarray:
    """Uniform samples over a disc: r = R*sqrt(u), theta = 2*pi*u."""
    r = (beam_size / 2) * np.sqrt(rng.random(n))
    theta = rng.random(n) * 2 * np.pi
    return np.stack([r * np.sin(theta), r * np.cos(theta)], axis=-1)

def heart_offsets(n: int, beam_size: float) -> np.ndarray:
    """Classic heart curve, scaled to fit the beam."""
    t = np.arange(n) / n * 2 * np.pi
    x = 16 * np.sin(t) ** 3
    y = 13 * np.cos(t) - 5 * np.cos(2 * t) - 2 * np.cos(3 * t) - np.cos(4 * t)
    scale = (beam_size / 2) / 17.0
    return np.stack([y * scale, x * scale], axis=-1)

def star_offsets(n: int, beam_size: float, points: int = 5, inner_ratio: float = 0.4) -> np.ndarray:
    """Outline of a star polygon, sampled at even steps of the perimeter parameter."""
    outer = beam_size / 2
    radii = np.where(np.arange(2 * points) % 2 == 0, outer, outer * inner_ratio)
    angles = np.arange(2 * points) * np.pi / points
    verts = np.stack([radii * np.cos(angles), radii * np.sin(angles)], axis=-1)
    s = np.arange(n) / n * (2 * points)
    i = np.floor(s).astype(int)
    frac = (s - i)[:, None]
    a = verts[i % (2 * points)]
    b = verts[(i + 1) % (2 * points)]
    return a + frac * (b - a)

def smile_offsets(n: int, beam_size: float) -> np.ndarray:
    """Smiley face: outline, two eyes and a mouth arc."""
    R = beam_size / 2
    n_face = max(1, int(round(n * 0.6)))
    n_mouth = max(1, int(round(n * 0.2)))
    n_eye_l = max(1, (n - n_face - n_mouth) // 2)
    n_eye_r = max(1, n - n_face - n_mouth - n_eye_l)

    def arc(count, cy, cz, radius, start, stop, closed):
        if closed:
            t = start + (stop - start) * np.arange(count) / count
        else:
            t = np.linspace(start, stop, count)
        return np.stack([cy + radius * np.sin(t), cz + radius * np.cos(t)], axis=-1)

    face = arc(n_face, 0.0, 0.0, R, 0.0, 2 * np.pi, True)
    mouth = arc(n_mouth, 0.0, 0.0, 0.6 * R, np.deg2rad(200), np.deg2rad(340), False)
    eye_l = arc(n_eye_l, 0.35 * R, -0.35 * R, 0.1 * R, 0.0, 2 * np.pi, True)
    eye_r = arc(n_eye_r, 0.35 * R, 0.35 * R, 0.1 * R, 0.0, 2 * np.pi, True)
    return np.concatenate([face, mouth, eye_l, eye_r])[:n]

def pattern_offsets(kind: str, n: int, beam_size: float,
                    rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """(N, 2) array of transverse (y, z) offsets for a pattern kind."""
    if kind == 'line':
        return line_offsets(n, beam_size)
    if kind == 'radial':
        return ring_offsets(n, beam_size)
    if kind == 'cross':
        return cross_offsets(n, beam_size)
    if kind == 'disc':
        if rng is None:
            rng = np.random.default_rng()
        return disc_offsets(n, beam_size, rng)
    if kind == 'heart':
        return heart_offsets(n, beam_size)
    if kind == 'star':
        return star_offsets(n, beam_size)
    if kind == 'smile':
        return smile_offsets(n, beam_size)
    raise ValueError(f"Unknown ray pattern {kind!r}.")

def generate_pattern_rays(config: PatternConfig,
                          rng: Optional[np.random.Generator] = None) -> List[Ray]:
    """
    Seed rays for a laser source.

    Each wavelength (three of them in white-light mode) gets a full copy of
    the pattern. All rays are parallel to config.direction and start in the
    plane through config.source_position normal to it. The disc pattern is
    the only random one; pass a seeded rng for reproducible output.
    """
    config.validate()
    frame = Frame.facing(config.source_position, config.direction)
    rays: List[Ray] = []
    for wl in config.wavelengths:
        offsets = pattern_offsets(config.kind, int(config.ray_count), config.beam_size, rng)
        for dy, dz in offsets:
            p = frame.origin + dy * frame.up + dz * frame.side
            rays.append(Ray(origin=p, direction=frame.axis, wavelength_nm=wl))
    logger.debug("Generated %d %s rays at %s nm", len(rays), config.kind, config.wavelengths)
    return rays

# =========================
# Object-plane sources for imaging setups
# =========================

@dataclass
class ObjectSample:
    """A resolved point on an image object: world position and RGB in [0, 1]."""
    position: np.ndarray
    color: Tuple[float, float, float]

def object_samples_from_image(image: np.ndarray,
                              center: Sequence[float],
                              normal: Sequence[float] = (1.0, 0.0, 0.0),
                              width: float = 4.0,
                              height: float = 4.0,
                              step: int = 25) -> List[ObjectSample]:
    """
    Sample every step-th pixel of an (H, W, 3|4) image on a plane.

    Integer images are scaled by 1/255. Fully transparent pixels are skipped.
    Image x runs along -side of the plane frame and image y runs downward.
    """
    img = np.asarray(image)
    if img.ndim != 3 or img.shape[2] not in (3, 4):
        raise ValueError(f"Expected an (H, W, 3|4) image, got shape {img.shape}.")
    if step < 1:
        raise ValueError("step must be >= 1.")
    if np.issubdtype(img.dtype, np.integer):
        img = img.astype(float) / 255.0
    frame = Frame.facing(center, normal)
    h, w = img.shape[:2]
    samples: List[ObjectSample] = []
    for py in range(0, h, step):
        for px in range(0, w, step):
            pixel = img[py, px]
            alpha = pixel[3] if img.shape[2] == 4 else 1.0
            if alpha <= 0:
                continue
            local_x = (px / w - 0.5) * width
            local_y = -(py / h - 0.5) * height
            pos = frame.origin - local_x * frame.side + local_y * frame.up
            samples.append(ObjectSample(position=pos, color=(float(pixel[0]), float(pixel[1]), float(pixel[2]))))
    return samples

def object_cone_rays(samples: Sequence[ObjectSample],
                     lens_frame: Frame,
                     lens_radius: float,
                     wavelength_nm: float = OBJECT_RAY_WAVELENGTH_NM) -> List[Ray]:
    """
    Five rays per object point: the chief ray through the lens center plus
    four marginal rays toward the top, bottom and both sides of the aperture.
    """
    center = lens_frame.origin
    targets = [
        center,
        center + lens_radius * lens_frame.up,
        center - lens_radius * lens_frame.up,
        center + lens_radius * lens_frame.side,
        center - lens_radius * lens_frame.side,
    ]
    rays: List[Ray] = []
    for s in samples:
        origin = np.asarray(s.position, dtype=float)
        for target in targets:
            rays.append(Ray(origin=origin, direction=target - origin,
                            wavelength_nm=wavelength_nm, color=s.color))
    logger.debug("Generated %d object rays from %d samples", len(rays), len(samples))
    return rays
