#!/usr/bin/env python3
"""
Analysis utilities for ray tracing results.
Includes plane crossings of ray paths, spot fitting, collimation and focus
diagnostics, and matplotlib plots of sensor images and spot diagrams.
"""

import numpy as np
import matplotlib.pyplot as plt
from typing import Optional, Sequence, Dict

from geometry import Frame

def intersect_path_with_plane(path: np.ndarray, point, normal) -> Optional[np.ndarray]:
    """Find the first crossing of a polyline with the plane through point normal to normal."""
    n = np.asarray(normal, dtype=float)
    s = (np.asarray(path, dtype=float) - np.asarray(point, dtype=float)) @ n
    ds = s[1:] - s[:-1]
    # Find segments that cross the plane
    crosses = np.where(s[:-1] * s[1:] <= 0)[0]
    for i in crosses:
        if ds[i] == 0:
            continue
        t = -s[i] / ds[i]
        if 0.0 <= t <= 1.0:
            return path[i] + t * (path[i+1] - path[i])
    return None

def intersect_paths_with_plane(paths: Sequence[np.ndarray], frame: Frame) -> np.ndarray:
    """Local (y, z) crossings of many polylines with a frame's plane."""
    pts = []
    for path in paths:
        p = intersect_path_with_plane(path, frame.origin, frame.axis)
        if p is not None:
            local = frame.to_local(p)
            pts.append([local[1], local[2]])
    return np.asarray(pts, dtype=float) if pts else np.empty((0, 2), dtype=float)

def axis_crossing(origin: np.ndarray, direction: np.ndarray, frame: Frame) -> Optional[float]:
    """
    Axial coordinate where a ray meets the frame's optical axis in its
    meridional plane, or None for a ray parallel to the axis.
    """
    o = frame.to_local(origin)
    d = frame.vector_to_local(np.asarray(direction, dtype=float))
    h = np.hypot(o[1], o[2])
    if h == 0:
        return float(o[0])
    # rate of change of the signed height along the meridional direction
    radial = (o[1] * d[1] + o[2] * d[2]) / h
    if radial == 0 or d[0] == 0:
        return None
    t = -h / radial
    return float(o[0] + t * d[0])

def fit_gaussian_2d(xy: np.ndarray) -> Dict:
    """
    Fit 2D Gaussian to point distribution.
    Returns parameters: mu, Sigma, beam radii, rotation angle.
    """
    if xy.size == 0:
        return {}

    mu = xy.mean(axis=0)
    X = xy - mu
    # Sample covariance matrix
    Sigma = (X.T @ X) / max(1, xy.shape[0]-1)

    # Eigendecomposition for principal axes
    evals, evecs = np.linalg.eigh(Sigma)
    idx = np.argsort(evals)[::-1]
    evals = evals[idx]
    evecs = evecs[:, idx]

    sigmas = np.sqrt(np.maximum(evals, 0.0))
    w = np.sqrt(2.0) * sigmas  # 1/e^2 radii

    # Rotation angle of major axis
    angle = np.degrees(np.arctan2(evecs[1, 0], evecs[0, 0]))

    return {
        'mu': mu,
        'Sigma': Sigma,
        'eigvals': evals,
        'eigvecs': evecs,
        'sigmas': sigmas,
        'w': w,
        'angle_deg': angle,
    }

def rms_spot_radius(xy: np.ndarray) -> float:
    """RMS distance of spot points from their centroid."""
    xy = np.asarray(xy, dtype=float)
    if xy.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.sum((xy - xy.mean(axis=0)) ** 2, axis=1))))

def collimation_percentage(directions: Sequence[np.ndarray], axis=(0.0, 1.0, 0.0)) -> float:
    """
    How parallel a set of emergent rays is, in percent.

    Uses the population standard deviation sigma of the direction components
    along a transverse axis: max(0, 100 * (1 - 20 * sigma)). Fewer than two
    rays count as fully collimated.
    """
    if len(directions) < 2:
        return 100.0
    comps = np.asarray(directions, dtype=float) @ np.asarray(axis, dtype=float)
    return float(max(0.0, 100.0 * (1.0 - comps.std() * 20.0)))

def circle_of_confusion(focal_length: float, object_distance: float,
                        detector_distance: float, aperture_radius: float) -> float:
    """
    Blur radius on a detector for a point object, thin-lens geometry.

    The image forms at si = 1/(1/f - 1/so); a cone of half-width
    aperture_radius converging to (or diverging from) it is cut by the
    detector at detector_distance behind the lens. An object at the focal
    plane gives a collimated beam of radius aperture_radius.
    """
    if focal_length == 0:
        raise ValueError("focal_length must be non-zero.")
    if object_distance <= 0:
        raise ValueError("object_distance must be > 0.")
    if aperture_radius < 0:
        raise ValueError("aperture_radius must be >= 0.")
    if np.isclose(object_distance, focal_length):
        return float(aperture_radius)
    si = 1.0 / (1.0 / focal_length - 1.0 / object_distance)
    return float(aperture_radius * abs(detector_distance - si) / abs(si))

def plot_sensor_image(image: np.ndarray, title: str = "Sensor", ax=None, show: bool = True):
    """Show a rendered (H, W, 3) sensor image."""
    if ax is None:
        fig, ax = plt.subplots(figsize=(5, 5))
    ax.imshow(image, interpolation='nearest')
    ax.set_title(title)
    ax.set_xticks([])
    ax.set_yticks([])
    if show:
        plt.tight_layout()
        plt.show()
    return ax

def plot_spot_diagram(xy: np.ndarray, title_prefix: str = "", fit: bool = True, show: bool = True):
    """
    Scatter plot of hit points in detector-local (y, z) coordinates with an
    optional 1/e^2 ellipse of the Gaussian fit.
    """
    fig, ax = plt.subplots(figsize=(6.5, 5.5))
    if xy.size == 0:
        ax.set_title(f"{title_prefix}: no hits")
        if show:
            plt.show()
        return ax

    ax.scatter(xy[:, 1], xy[:, 0], s=6, alpha=0.7, color='blue')

    txt = ""
    if fit:
        pars = fit_gaussian_2d(xy)
        if pars:
            mu = pars['mu']
            w = pars['w']
            t = np.linspace(0, 2*np.pi, 200)
            ca, sa = np.cos(np.radians(pars['angle_deg'])), np.sin(np.radians(pars['angle_deg']))
            R = np.array([[ca, -sa], [sa, ca]])
            ell = (R @ np.vstack((w[0]*np.cos(t), w[1]*np.sin(t)))).T + mu
            ax.plot(ell[:, 1], ell[:, 0], 'r-', lw=2, label='1/e² contour')
            txt = f"rms={rms_spot_radius(xy):.3g}"
            ax.legend()

    ax.set_title(f"{title_prefix} {txt}")
    ax.set_xlabel('z (local)')
    ax.set_ylabel('y (local)')
    ax.set_aspect('equal', adjustable='box')
    ax.grid(True, alpha=0.3)
    if show:
        plt.tight_layout()
        plt.show()
    return ax
