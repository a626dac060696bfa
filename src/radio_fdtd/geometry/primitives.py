"""
Region primitives for painting material and source maps.

All primitives live in cell-index coordinates: the cell with index (i, j)
is the point (x=i, y=j). A primitive rasterizes to a per-cell weight in
[0, 1] and a boolean footprint.

Circles use the smoothed-volume falloff of a sphere seen from above:

    f(t) = exp(-(1.5·t)^6),    t = distance / radius

A cell belongs to the footprint when the column volume 0.2·f(t) exceeds
1e-6, which is a soft-edged disc of radius about 1.012·r. The falloff does
not depend on how high the sphere sits.

Example:
    >>> circle = Circle(center=(64.0, 64.0), radius=8.0)
    >>> mask = circle.footprint((128, 128))
    >>> mask[64, 64]
    True
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np
from numpy.typing import NDArray

# Smallest radius a circle is clamped to, in cells
MIN_RADIUS = 1e-3

COLUMN_VOLUME_SCALE = 0.2
FOOTPRINT_THRESHOLD = 1e-6
FALLOFF_SHARPNESS = 1.5
FALLOFF_POWER = 6


def falloff(t: NDArray[np.floating] | float) -> NDArray[np.floating]:
    """Smoothed-volume falloff f(t) = exp(-(1.5·t)^6), monotone decreasing in t."""
    t = np.abs(np.asarray(t, dtype=np.float64))
    return np.exp(-((FALLOFF_SHARPNESS * t) ** FALLOFF_POWER))


def column_volume(t: NDArray[np.floating] | float) -> NDArray[np.floating]:
    """Sphere column volume above a cell at normalized distance t."""
    return COLUMN_VOLUME_SCALE * falloff(t)


def footprint_radius(radius: float) -> float:
    """Radius at which the column volume drops to the footprint threshold."""
    t_max = np.log(COLUMN_VOLUME_SCALE / FOOTPRINT_THRESHOLD) ** (1.0 / FALLOFF_POWER)
    return float(radius * t_max / FALLOFF_SHARPNESS)


def _cell_coords(shape: tuple[int, int]) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    nx, ny = shape
    x = np.arange(nx, dtype=np.float64)[:, None]
    y = np.arange(ny, dtype=np.float64)[None, :]
    return x, y


class Shape(ABC):
    """Base class for regions the geometry editor can paint."""

    @abstractmethod
    def weights(self, shape: tuple[int, int]) -> NDArray[np.float64]:
        """Per-cell weight in [0, 1] over a grid of the given shape."""
        pass

    @abstractmethod
    def footprint(self, shape: tuple[int, int]) -> NDArray[np.bool_]:
        """Boolean mask of the cells the region covers."""
        pass


class Rectangle(Shape):
    """Axis-aligned rectangle, inclusive on all four edges.

    Args:
        xmin, xmax: Inclusive x extent in cells
        ymin, ymax: Inclusive y extent in cells

    Example:
        >>> rect = Rectangle(xmin=10, xmax=20, ymin=5, ymax=5)
        >>> int(rect.footprint((32, 32)).sum())
        11
    """

    def __init__(self, xmin: float, xmax: float, ymin: float, ymax: float):
        if xmax < xmin or ymax < ymin:
            raise ValueError(
                f"Rectangle bounds must satisfy min <= max, got "
                f"x=[{xmin}, {xmax}], y=[{ymin}, {ymax}]"
            )
        self.xmin = float(xmin)
        self.xmax = float(xmax)
        self.ymin = float(ymin)
        self.ymax = float(ymax)

    def footprint(self, shape: tuple[int, int]) -> NDArray[np.bool_]:
        x, y = _cell_coords(shape)
        return (x >= self.xmin) & (x <= self.xmax) & (y >= self.ymin) & (y <= self.ymax)

    def weights(self, shape: tuple[int, int]) -> NDArray[np.float64]:
        return self.footprint(shape).astype(np.float64)

    def __repr__(self) -> str:
        return (
            f"Rectangle(xmin={self.xmin}, xmax={self.xmax}, "
            f"ymin={self.ymin}, ymax={self.ymax})"
        )


class Circle(Shape):
    """Disc rasterized through the smoothed-volume falloff.

    Radii at or below zero are clamped to MIN_RADIUS rather than rejected,
    since interactive resizing routinely drives them there.

    Args:
        center: (x, y) centre in cells
        radius: Radius in cells
    """

    def __init__(self, center: tuple[float, float], radius: float):
        self.center = (float(center[0]), float(center[1]))
        self.radius = max(float(radius), MIN_RADIUS)

    def distances(self, shape: tuple[int, int]) -> NDArray[np.float64]:
        """Normalized distance t of every cell from the centre."""
        x, y = _cell_coords(shape)
        d = np.sqrt((x - self.center[0]) ** 2 + (y - self.center[1]) ** 2)
        return d / self.radius

    def weights(self, shape: tuple[int, int]) -> NDArray[np.float64]:
        return falloff(self.distances(shape))

    def footprint(self, shape: tuple[int, int]) -> NDArray[np.bool_]:
        return column_volume(self.distances(shape)) > FOOTPRINT_THRESHOLD

    def __repr__(self) -> str:
        return f"Circle(center={self.center}, radius={self.radius})"
