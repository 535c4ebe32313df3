#!/usr/bin/env python3
"""
Mathematical utilities for ray tracing operations.
Includes vector operations, normalization, reflection and axis-angle rotation.
"""

import numpy as np
import numba as nb
from typing import Tuple

EPS = 1e-7
HIT_EPS = 1e-6  # minimum forward distance for a plane hit

# =========================
# Numba-accelerated functions
# =========================

@nb.njit(cache=True, fastmath=True)
def _normalize3(v):
    """Fast 3D vector normalization with Numba."""
    n = np.sqrt(v[0]*v[0] + v[1]*v[1] + v[2]*v[2])
    if n > 0.0:
        return v / n
    return v

@nb.njit(cache=True, fastmath=True)
def reflect_nb(I, N):
    """Numba-accelerated reflection calculation."""
    N = _normalize3(N)
    dotIN = I[0]*N[0] + I[1]*N[1] + I[2]*N[2]
    R = np.array((I[0] - 2.0*dotIN*N[0],
                  I[1] - 2.0*dotIN*N[1],
                  I[2] - 2.0*dotIN*N[2]))
    return _normalize3(R)

@nb.njit(cache=True, fastmath=True)
def rotate_about_axis_nb(v, k, angle):
    """
    Numba-accelerated Rodrigues rotation of v about unit axis k.
    A zero axis leaves v unchanged.
    """
    kn = np.sqrt(k[0]*k[0] + k[1]*k[1] + k[2]*k[2])
    if kn == 0.0:
        return v.copy()
    k0 = k[0] / kn
    k1 = k[1] / kn
    k2 = k[2] / kn
    c = np.cos(angle)
    s = np.sin(angle)
    kdotv = k0*v[0] + k1*v[1] + k2*v[2]
    # cross(k, v)
    x0 = k1*v[2] - k2*v[1]
    x1 = k2*v[0] - k0*v[2]
    x2 = k0*v[1] - k1*v[0]
    return np.array((v[0]*c + x0*s + k0*kdotv*(1.0 - c),
                     v[1]*c + x1*s + k1*kdotv*(1.0 - c),
                     v[2]*c + x2*s + k2*kdotv*(1.0 - c)))

@nb.njit(cache=True)
def plane_hit_distance_nb(o, d, p0, n):
    """
    Distance t along d from o to the plane through p0 with normal n.
    Returns -1.0 when the ray is parallel to the plane.
    """
    denom = d[0]*n[0] + d[1]*n[1] + d[2]*n[2]
    if denom == 0.0:
        return -1.0
    return ((p0[0] - o[0])*n[0] + (p0[1] - o[1])*n[1] + (p0[2] - o[2])*n[2]) / denom

# =========================
# Standard Python functions
# =========================

def normalize(v: np.ndarray) -> np.ndarray:
    """Normalize a vector to unit length."""
    n = np.linalg.norm(v)
    return v / n if n > 0 else v

def reflect(I: np.ndarray, N: np.ndarray) -> np.ndarray:
    """Reflect incident ray I off surface with normal N."""
    return reflect_nb(np.array(I, dtype=np.float64), np.array(N, dtype=np.float64))

def rotate_about_axis(v: np.ndarray, axis: np.ndarray, angle: float) -> np.ndarray:
    """Rotate v by angle (radians) about axis, right-hand rule."""
    return rotate_about_axis_nb(np.array(v, dtype=np.float64),
                                np.array(axis, dtype=np.float64),
                                float(angle))

def orthonormal_frame_from_axis(axis: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Return unit vectors (u, v, w) with w || axis and u x v = w."""
    w = normalize(np.asarray(axis, dtype=float))
    # pick a vector not parallel to w
    a = np.array([1.0, 0.0, 0.0]) if abs(w[0]) < 0.9 else np.array([0.0, 1.0, 0.0])
    u = normalize(np.cross(a, w))
    v = normalize(np.cross(w, u))
    return u, v, w

def yaw_normal(rotation_y_deg: float) -> np.ndarray:
    """
    Normal of a plate whose front face starts along +z and is then yawed
    about the world y axis by rotation_y_deg.
    """
    r = np.deg2rad(rotation_y_deg)
    return np.array([np.sin(r), 0.0, np.cos(r)])
