#!/usr/bin/env python3
"""
Color science helpers: wavelength to display color and the spectral
response of the R/G/B filters of a Bayer color-filter-array sensor.
"""

import numpy as np
from typing import Tuple

RGB = Tuple[float, float, float]

VISIBLE_MIN_NM = 380.0
VISIBLE_MAX_NM = 780.0

# (peak nm, width nm) of the Gaussian filter curves
FILTER_CURVES = {
    'R': (600.0, 50.0),
    'G': (540.0, 50.0),
    'B': (450.0, 50.0),
}

def _hue_ramp(wl: float) -> RGB:
    """Piecewise-linear base color over the six visible bands."""
    if 380 <= wl < 440:
        return (-(wl - 440) / (440 - 380), 0.0, 1.0)
    if 440 <= wl < 490:
        return (0.0, (wl - 440) / (490 - 440), 1.0)
    if 490 <= wl < 510:
        return (0.0, 1.0, -(wl - 510) / (510 - 490))
    if 510 <= wl < 580:
        return ((wl - 510) / (580 - 510), 1.0, 0.0)
    if 580 <= wl < 645:
        return (1.0, -(wl - 645) / (645 - 580), 0.0)
    if 645 <= wl <= 780:
        return (1.0, 0.0, 0.0)
    return (0.0, 0.0, 0.0)

def _intensity_falloff(wl: float) -> float:
    """Dim the violet and deep-red ends where the eye is less sensitive."""
    if 380 <= wl < 420:
        return 0.3 + 0.7 * (wl - 380) / (420 - 380)
    if 420 <= wl < 701:
        return 1.0
    if 701 <= wl <= 780:
        return 0.3 + 0.7 * (780 - wl) / (780 - 701)
    return 0.0

def wavelength_to_color(wavelength_nm: float) -> RGB:
    """
    Convert a wavelength in nanometers to an RGB triple in [0, 1].

    Intended for true-color visualization and the demosaiced sensor output.
    Wavelengths outside 380-780 nm map to black.
    """
    wl = float(wavelength_nm)
    factor = _intensity_falloff(wl)
    r, g, b = _hue_ramp(wl)
    return (r * factor, g * factor, b * factor)

def filter_response(wavelength_nm: float, channel: str) -> float:
    """Gaussian transmission of the sensor's R, G or B filter at wavelength_nm."""
    try:
        peak, width = FILTER_CURVES[channel]
    except KeyError:
        raise ValueError(f"Unknown filter channel {channel!r}; expected one of R, G, B.")
    return float(np.exp(-(wavelength_nm - peak) ** 2 / (2.0 * width ** 2)))

def filter_rgb(wavelength_nm: float) -> RGB:
    """Response of all three filters, in R, G, B order."""
    return (filter_response(wavelength_nm, 'R'),
            filter_response(wavelength_nm, 'G'),
            filter_response(wavelength_nm, 'B'))
