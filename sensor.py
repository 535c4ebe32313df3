#!/usr/bin/env python3
"""
Sensor simulation: accumulation of detector hits and the final pixel image.

Two parallel RGB grids are kept. The filtered grid holds the response of a
Bayer color filter array (Gaussian R/G/B filter curves) and feeds the
grayscale and Bayer outputs; the true-color grid holds display colors and
feeds the demosaiced output. Rays with an explicit color add that color to
both grids.
"""

import logging
from enum import Enum
from typing import Callable, Optional, Tuple, Union

import numpy as np

from color_science import RGB, filter_rgb, wavelength_to_color

logger = logging.getLogger(__name__)

Resolver = Callable[[float], RGB]

class SensorMode(str, Enum):
    GRAYSCALE = 'grayscale'
    BAYER = 'bayer'
    DEMOSAICED = 'demosaiced'

def _to_byte(values: np.ndarray, peak: float) -> np.ndarray:
    """Scale to [0, 255] by peak, rounding half up."""
    return np.floor(255.0 * values / peak + 0.5)

class SensorAccumulator:
    """
    W x H accumulation grids plus one running maximum per grid.

    Both grids only ever grow within a trace; reset() clears them. The running
    maximum is the largest single channel value seen in any cell.
    """

    def __init__(self, width: int = 64, height: Optional[int] = None):
        height = width if height is None else height
        if width < 1 or height < 1:
            raise ValueError("Sensor grid dimensions must be >= 1.")
        self.width = int(width)
        self.height = int(height)
        self.filtered = np.zeros((self.height, self.width, 3))
        self.true_color = np.zeros((self.height, self.width, 3))
        self.filtered_max = 0.0
        self.true_color_max = 0.0
        self.hit_count = 0
        self.dropped_count = 0

    @property
    def shape(self) -> Tuple[int, int]:
        return self.height, self.width

    def reset(self):
        self.filtered.fill(0.0)
        self.true_color.fill(0.0)
        self.filtered_max = 0.0
        self.true_color_max = 0.0
        self.hit_count = 0
        self.dropped_count = 0

    @staticmethod
    def _accumulate(grid: np.ndarray, running_max: float, px: int, py: int,
                    wavelength_nm: float, color: Optional[RGB], resolver: Resolver) -> float:
        """Add one hit to grid; returns the updated running maximum."""
        rgb = color if color is not None else resolver(wavelength_nm)
        cell = grid[py, px]
        cell += rgb
        return max(running_max, float(cell.max()))

    def add_hit(self, px: int, py: int, wavelength_nm: float,
                color: Optional[RGB] = None) -> bool:
        """
        Accumulate a hit at pixel (px, py). Returns False, without touching
        the grids, when the pixel lies outside the sensor.
        """
        if not (0 <= px < self.width and 0 <= py < self.height):
            self.dropped_count += 1
            return False
        self.filtered_max = self._accumulate(self.filtered, self.filtered_max, px, py,
                                             wavelength_nm, color, filter_rgb)
        self.true_color_max = self._accumulate(self.true_color, self.true_color_max, px, py,
                                               wavelength_nm, color, wavelength_to_color)
        self.hit_count += 1
        return True

    def render(self, mode: Union[SensorMode, str] = SensorMode.DEMOSAICED) -> np.ndarray:
        """
        Final (H, W, 3) uint8 image.

        grayscale: mean of the normalized filtered channels.
        bayer: one filtered channel per pixel, G R / B G repeating from the top-left.
        demosaiced: the normalized true-color grid.
        A grid that received no hits renders black.
        """
        try:
            mode = SensorMode(mode)
        except ValueError:
            raise ValueError(f"Unknown sensor mode {mode!r}; expected one of "
                             f"{[m.value for m in SensorMode]}.")
        logger.debug("Rendering %s image from %d hits (%d dropped off grid)",
                     mode.value, self.hit_count, self.dropped_count)

        image = np.zeros((self.height, self.width, 3), dtype=np.uint8)
        if mode is SensorMode.DEMOSAICED:
            if self.true_color_max > 0:
                image[:] = _to_byte(self.true_color, self.true_color_max)
            return image

        if self.filtered_max <= 0:
            return image
        scaled = _to_byte(self.filtered, self.filtered_max)

        if mode is SensorMode.GRAYSCALE:
            gray = np.floor(scaled.sum(axis=-1) / 3.0 + 0.5)
            image[:] = gray[..., None]
            return image

        rows = np.arange(self.height)[:, None] % 2
        cols = np.arange(self.width)[None, :] % 2
        green = (rows == cols)
        red = (rows == 0) & (cols == 1)
        blue = (rows == 1) & (cols == 0)
        image[..., 0] = np.where(red, scaled[..., 0], 0)
        image[..., 1] = np.where(green, scaled[..., 1], 0)
        image[..., 2] = np.where(blue, scaled[..., 2], 0)
        return image
