#!/usr/bin/env python3
"""
Optical elements and their ray interaction models.

Every element owns a local frame (see geometry.Frame) and implements
interact(ray, seed_ray, imaging) returning one of four outcomes:

- Miss: ray unaffected, the path continues to the next element
- Redirect: ray re-emitted from the hit point with a new direction
- Split: ray replaced by several rays (grating diffraction orders)
- Absorb: path terminates at the hit point (plates, detectors)

Lenses and the spherical mirror use paraxial (thin element) models;
gratings use the scalar grating equation d*sin(theta_m) = m*lambda.
"""

import numpy as np
from dataclasses import dataclass
from typing import ClassVar, List, Optional, Sequence, Tuple, Union

from geometry import Frame, intersect_plane, inside_rect, inside_disc, WORLD_UP
from math_utils import normalize, reflect, rotate_about_axis, EPS
from ray_sources import Ray

DIFFRACTION_ORDERS = (-1, 0, 1)
LINE_ORIENTATIONS = ('horizontal', 'vertical')
LENS_EDGE_TOLERANCE = 1e-6
FOCAL_PLANE_TOLERANCE = 1e-6

# =========================
# Interaction outcomes
# =========================

@dataclass(frozen=True)
class Miss:
    """Ray does not interact; the path continues unchanged."""

MISS = Miss()

@dataclass(frozen=True, eq=False)
class Redirect:
    """Path continues with ray, which starts at the hit point."""
    ray: Ray

@dataclass(frozen=True, eq=False)
class Split:
    """Path forks into one path per child ray."""
    rays: Tuple[Ray, ...]

@dataclass(frozen=True, eq=False)
class Absorb:
    """Path terminates at point."""
    point: np.ndarray
    wavelength_nm: float
    color: Optional[Tuple[float, float, float]] = None

Outcome = Union[Miss, Redirect, Split, Absorb]

# =========================
# Base classes
# =========================

@dataclass(eq=False)
class OpticalElement:
    """
    Base class of all elements.

    position, normal and up may be changed between traces; the frame is
    rebuilt from them on every access. normal is the element's optical axis
    (local x), up fixes the transverse axes.
    """
    name: str = ''
    position: Sequence[float] = (0.0, 0.0, 0.0)
    normal: Sequence[float] = (1.0, 0.0, 0.0)
    up: Sequence[float] = tuple(WORLD_UP)

    kind: ClassVar[str] = 'element'

    def __post_init__(self):
        if not self.name:
            self.name = self.kind
        self.validate()

    @property
    def frame(self) -> Frame:
        return Frame.facing(self.position, self.normal, self.up)

    def validate(self):
        """Raise ValueError for an unusable configuration."""
        if not np.any(np.asarray(self.normal, dtype=float)):
            raise ValueError(f"{self.name}: normal must be a non-zero vector.")

    def interact(self, ray: Ray, seed_ray: Ray, imaging: bool = False) -> Outcome:
        raise NotImplementedError

    def outline_points(self, n: int = 64) -> np.ndarray:
        """Closed world-space outline of the element, for display."""
        raise NotImplementedError

    def _local_hit(self, ray: Ray) -> Optional[Tuple[np.ndarray, float, float]]:
        """Forward plane hit as (world point, local y, local z), or None."""
        frame = self.frame
        hit = intersect_plane(ray.origin, ray.direction, frame)
        if hit is None:
            return None
        _, p = hit
        local = frame.to_local(p)
        return p, local[1], local[2]

    def _rect_outline(self, width: float, height: float) -> np.ndarray:
        f = self.frame
        corners = [(-height / 2, -width / 2), (height / 2, -width / 2),
                   (height / 2, width / 2), (-height / 2, width / 2), (-height / 2, -width / 2)]
        return np.array([f.origin + y * f.up + z * f.side for y, z in corners])

    def _circle_outline(self, radius: float, n: int) -> np.ndarray:
        f = self.frame
        t = np.linspace(0.0, 2 * np.pi, n + 1)
        return np.array([f.origin + radius * (np.sin(a) * f.up + np.cos(a) * f.side) for a in t])

@dataclass(eq=False)
class RectangularElement(OpticalElement):
    """Element bounded by a width x height rectangle (width along local z)."""
    width: float = 5.0
    height: float = 5.0

    def validate(self):
        super().validate()
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"{self.name}: width and height must be > 0.")

    def outline_points(self, n: int = 64) -> np.ndarray:
        return self._rect_outline(self.width, self.height)

# =========================
# Lenses
# =========================

@dataclass(eq=False)
class ThinLens(OpticalElement):
    """
    Ideal thin lens of the given focal length and aperture radius.

    Paraxial mode deflects each transverse direction component by -h/f,
    where h is the hit height. Imaging mode sends the ray to the conjugate
    image point of the seed ray's origin.
    """
    focal_length: float = 4.0
    radius: float = 3.5

    kind: ClassVar[str] = 'thin-lens'

    def validate(self):
        super().validate()
        if self.focal_length == 0 or not np.isfinite(self.focal_length):
            raise ValueError(f"{self.name}: focal_length must be finite and non-zero.")
        if self.radius <= 0:
            raise ValueError(f"{self.name}: radius must be > 0.")

    def interact(self, ray: Ray, seed_ray: Ray, imaging: bool = False) -> Outcome:
        frame = self.frame
        d = ray.direction
        dx = d @ frame.axis
        if dx == 0:
            return MISS
        hit = intersect_plane(ray.origin, d, frame)
        if hit is None:
            return MISS
        _, p = hit
        local = frame.to_local(p)
        hy, hz = local[1], local[2]
        if np.hypot(hy, hz) > self.radius + LENS_EDGE_TOLERANCE:
            return MISS

        if imaging:
            new_dir = self._imaging_direction(frame, p, seed_ray.origin, dx, d)
        else:
            dl = frame.vector_to_local(d)
            f = self.focal_length
            new_dir = frame.vector_to_world(np.array([dl[0], dl[1] - hy / f, dl[2] - hz / f]))
        return Redirect(ray.derive(p, new_dir))

    def image_distance(self, object_distance: float) -> Optional[float]:
        """Gaussian lens equation 1/si = 1/f - 1/so; None at the focal plane."""
        if abs(object_distance - self.focal_length) < FOCAL_PLANE_TOLERANCE or abs(object_distance) < EPS:
            return None
        return 1.0 / (1.0 / self.focal_length - 1.0 / object_distance)

    def _imaging_direction(self, frame: Frame, p: np.ndarray, object_point: np.ndarray,
                           dx: float, incident: np.ndarray) -> np.ndarray:
        rel = object_point - frame.origin
        so = abs(rel @ frame.axis)
        si = self.image_distance(so)
        if si is None:
            # object at the focal plane (or on the lens): undeviated chief-ray direction
            toward_center = frame.origin - object_point
            if np.linalg.norm(toward_center) < EPS:
                return incident
            return normalize(toward_center)

        magnification = -si / so
        transverse = rel - (rel @ frame.axis) * frame.axis
        image_point = frame.origin + np.sign(dx) * si * frame.axis + magnification * transverse
        if si > 0:
            return image_point - p
        # virtual image: aim away from the image point rather than at it,
        # so the ray diverges as if it came from there
        return p - image_point

    def outline_points(self, n: int = 64) -> np.ndarray:
        return self._circle_outline(self.radius, n)

# =========================
# Mirrors
# =========================

@dataclass(eq=False)
class FlatMirror(RectangularElement):
    """Plane mirror; reflects d' = d - 2(d.n)n."""

    kind: ClassVar[str] = 'mirror'

    def interact(self, ray: Ray, seed_ray: Ray, imaging: bool = False) -> Outcome:
        hit = self._local_hit(ray)
        if hit is None:
            return MISS
        p, y, z = hit
        if not inside_rect(y, z, self.width, self.height):
            return MISS
        return Redirect(ray.derive(p, reflect(ray.direction, self.frame.axis)))

@dataclass(eq=False)
class SphericalMirror(RectangularElement):
    """
    Paraxial spherical mirror.

    The surface is treated as flat for intersection; focusing is applied as a
    correction -displacement/f added to the reflected direction, with
    f = -radius/2 (negative radius = concave, converging).
    """
    radius: float = -10.0

    kind: ClassVar[str] = 'spherical-mirror'

    def validate(self):
        super().validate()
        if self.radius == 0 or not np.isfinite(self.radius):
            raise ValueError(f"{self.name}: radius of curvature must be finite and non-zero.")

    @property
    def focal_length(self) -> float:
        return -self.radius / 2

    def interact(self, ray: Ray, seed_ray: Ray, imaging: bool = False) -> Outcome:
        hit = self._local_hit(ray)
        if hit is None:
            return MISS
        p, y, z = hit
        if not inside_rect(y, z, self.width, self.height):
            return MISS
        frame = self.frame
        reflected = reflect(ray.direction, frame.axis)
        correction = (p - frame.origin) * (-1.0 / self.focal_length)
        return Redirect(ray.derive(p, normalize(reflected + correction)))

# =========================
# Gratings
# =========================

def grating_spacing_nm(lines_per_mm: float) -> float:
    """Groove spacing d in nm."""
    return 1e6 / lines_per_mm

def diffraction_angle(order: int, wavelength_nm: float, lines_per_mm: float) -> Optional[float]:
    """theta_m from sin(theta_m) = m*lambda/d, or None for an evanescent order."""
    s = order * wavelength_nm / grating_spacing_nm(lines_per_mm)
    if abs(s) > 1:
        return None
    return float(np.arcsin(s))

@dataclass(eq=False)
class _GratingBase(RectangularElement):
    lines_per_mm: float = 600.0
    line_orientation: str = 'horizontal'

    def validate(self):
        super().validate()
        if not self.lines_per_mm > 0:
            raise ValueError(f"{self.name}: lines_per_mm must be > 0, got {self.lines_per_mm}.")
        if self.line_orientation not in LINE_ORIENTATIONS:
            raise ValueError(f"{self.name}: line_orientation must be one of {LINE_ORIENTATIONS}.")

@dataclass(eq=False)
class TransmissiveGrating(_GratingBase):
    """
    Transmission grating emitting orders -1, 0, +1.

    Horizontal lines disperse in the (axis, up) plane, vertical lines in the
    (axis, side) plane. Each order is the incident direction rotated by
    theta_m within that plane.
    """
    kind: ClassVar[str] = 'grating'

    def interact(self, ray: Ray, seed_ray: Ray, imaging: bool = False) -> Outcome:
        hit = self._local_hit(ray)
        if hit is None:
            return MISS
        p, y, z = hit
        if not inside_rect(y, z, self.width, self.height):
            return MISS

        frame = self.frame
        dl = frame.vector_to_local(ray.direction)
        # index of the in-plane transverse component
        k = 1 if self.line_orientation == 'horizontal' else 2
        rho = np.hypot(dl[0], dl[k])
        base_angle = np.arctan2(dl[k], dl[0])

        children: List[Ray] = []
        for m in DIFFRACTION_ORDERS:
            if m == 0:
                children.append(ray.derive(p, ray.direction, diffraction_order=0))
                continue
            theta = diffraction_angle(m, ray.wavelength_nm, self.lines_per_mm)
            if theta is None:
                continue
            new_local = dl.copy()
            new_local[0] = rho * np.cos(base_angle + theta)
            new_local[k] = rho * np.sin(base_angle + theta)
            children.append(ray.derive(p, frame.vector_to_world(new_local), diffraction_order=m))
        if not children:
            return MISS
        return Split(tuple(children))

@dataclass(eq=False)
class ReflectiveGrating(_GratingBase):
    """
    Reflection grating. Only rays arriving at the front face (against the
    normal) interact. Order m is the mirror reflection rotated by theta_m
    about reflected x dispersion_axis.
    """
    line_orientation: str = 'vertical'

    kind: ClassVar[str] = 'reflective-grating'

    def dispersion_axis(self, frame: Frame) -> np.ndarray:
        return frame.side if self.line_orientation == 'vertical' else frame.up

    def interact(self, ray: Ray, seed_ray: Ray, imaging: bool = False) -> Outcome:
        frame = self.frame
        if ray.direction @ frame.axis >= 0:
            return MISS
        hit = self._local_hit(ray)
        if hit is None:
            return MISS
        p, y, z = hit
        if not inside_rect(y, z, self.width, self.height):
            return MISS

        reflected = reflect(ray.direction, frame.axis)
        rotation_axis = normalize(np.cross(reflected, self.dispersion_axis(frame)))
        children: List[Ray] = []
        for m in DIFFRACTION_ORDERS:
            if m == 0:
                children.append(ray.derive(p, reflected, diffraction_order=0))
                continue
            theta = diffraction_angle(m, ray.wavelength_nm, self.lines_per_mm)
            if theta is None:
                continue
            children.append(ray.derive(p, rotate_about_axis(reflected, rotation_axis, theta),
                                       diffraction_order=m))
        if not children:
            return MISS
        return Split(tuple(children))

# =========================
# Stops and detector
# =========================

@dataclass(eq=False)
class _Plate(OpticalElement):
    """Opaque square plate with an opening; subclasses define the opening."""
    plate_size: float = 5.0

    def validate(self):
        super().validate()
        if self.plate_size <= 0:
            raise ValueError(f"{self.name}: plate_size must be > 0.")

    def is_open(self, y: float, z: float) -> bool:
        raise NotImplementedError

    def interact(self, ray: Ray, seed_ray: Ray, imaging: bool = False) -> Outcome:
        hit = self._local_hit(ray)
        if hit is None:
            return MISS
        p, y, z = hit
        if self.is_open(y, z):
            return Redirect(ray.derive(p, ray.direction))
        if inside_rect(y, z, self.plate_size, self.plate_size):
            return Absorb(p, ray.wavelength_nm, ray.color)
        return MISS

    def outline_points(self, n: int = 64) -> np.ndarray:
        return self._rect_outline(self.plate_size, self.plate_size)

@dataclass(eq=False)
class Slit(_Plate):
    """Rectangular opening; boundary points count as open."""
    slit_width: float = 0.2
    slit_height: float = 1.2

    kind: ClassVar[str] = 'optical-slit'

    def validate(self):
        super().validate()
        if self.slit_width <= 0 or self.slit_height <= 0:
            raise ValueError(f"{self.name}: slit_width and slit_height must be > 0.")

    def is_open(self, y: float, z: float) -> bool:
        return inside_rect(y, z, self.slit_width, self.slit_height)

@dataclass(eq=False)
class Aperture(_Plate):
    """Circular opening; boundary points count as open."""
    diameter: float = 1.0

    kind: ClassVar[str] = 'aperture'

    def validate(self):
        super().validate()
        if self.diameter <= 0:
            raise ValueError(f"{self.name}: diameter must be > 0.")

    def is_open(self, y: float, z: float) -> bool:
        return inside_disc(y, z, self.diameter / 2)

    def outline_points(self, n: int = 64) -> np.ndarray:
        return self._circle_outline(self.diameter / 2, n)

@dataclass(eq=False)
class Detector(RectangularElement):
    """
    Image sensor plane. Absorbs every forward hit on its plane; hits beyond
    width x height fall outside the pixel grid and are dropped later.
    """
    kind: ClassVar[str] = 'detector'

    def interact(self, ray: Ray, seed_ray: Ray, imaging: bool = False) -> Outcome:
        hit = intersect_plane(ray.origin, ray.direction, self.frame)
        if hit is None:
            return MISS
        return Absorb(hit[1], ray.wavelength_nm, ray.color)

    def pixel_coordinates(self, point: np.ndarray, cols: int, rows: int) -> Tuple[int, int]:
        """
        Integer (px, py) of a world point on a cols x rows grid.
        Row 0 is the top edge; columns run toward -side.
        """
        local = self.frame.to_local(point)
        px = int(np.floor((-local[2] / self.width + 0.5) * cols))
        py = int(np.floor((-local[1] / self.height + 0.5) * rows))
        return px, py
