#!/usr/bin/env python3
"""
Geometric primitives for optical elements.
Local coordinate frames and ray-plane intersection.
"""

import numpy as np
from dataclasses import dataclass
from typing import Optional, Tuple
from math_utils import normalize, orthonormal_frame_from_axis, plane_hit_distance_nb, HIT_EPS

WORLD_UP = np.array([0.0, 1.0, 0.0])

@dataclass(frozen=True)
class Frame:
    """
    Right-handed local frame of an element.

    axis is local x (optical axis / plate normal), up is local y and
    side is local z = axis x up. Transverse coordinates are (y, z).
    """
    origin: np.ndarray
    axis: np.ndarray
    up: np.ndarray
    side: np.ndarray

    @staticmethod
    def facing(position, normal, up=WORLD_UP) -> "Frame":
        """Build a frame at position whose local x points along normal."""
        x = normalize(np.asarray(normal, dtype=float))
        if not np.any(x):
            raise ValueError("Element normal must be a non-zero vector.")
        up = np.asarray(up, dtype=float)
        z = np.cross(x, up)
        if np.linalg.norm(z) < 1e-9:
            # normal parallel to up: any transverse axis will do
            z, _, _ = orthonormal_frame_from_axis(x)
        z = normalize(z)
        y = normalize(np.cross(z, x))
        return Frame(origin=np.asarray(position, dtype=float), axis=x, up=y, side=z)

    def to_local(self, point: np.ndarray) -> np.ndarray:
        """World point -> local (x, y, z)."""
        rel = np.asarray(point, dtype=float) - self.origin
        return np.array([rel @ self.axis, rel @ self.up, rel @ self.side])

    def vector_to_local(self, v: np.ndarray) -> np.ndarray:
        """World direction -> local components."""
        return np.array([v @ self.axis, v @ self.up, v @ self.side])

    def vector_to_world(self, v_local: np.ndarray) -> np.ndarray:
        """Local direction components -> world direction."""
        return v_local[0] * self.axis + v_local[1] * self.up + v_local[2] * self.side

    def to_world(self, p_local: np.ndarray) -> np.ndarray:
        """Local point -> world point."""
        return self.origin + self.vector_to_world(np.asarray(p_local, dtype=float))

def intersect_plane(origin: np.ndarray, direction: np.ndarray,
                    frame: Frame) -> Optional[Tuple[float, np.ndarray]]:
    """
    Intersect a ray with the plane through frame.origin normal to frame.axis.

    Returns (t, point) for a forward hit (t > HIT_EPS), otherwise None.
    Rays parallel to the plane never hit.
    """
    t = plane_hit_distance_nb(origin, direction, frame.origin, frame.axis)
    if t <= HIT_EPS:
        return None
    return t, origin + t * direction

def inside_rect(y: float, z: float, width: float, height: float) -> bool:
    """Inclusive rectangle test; width spans local z, height spans local y."""
    return abs(z) <= width / 2 and abs(y) <= height / 2

def inside_disc(y: float, z: float, radius: float) -> bool:
    """Inclusive disc test."""
    return np.hypot(y, z) <= radius
