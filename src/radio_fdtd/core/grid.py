"""
Uniform grid for the 2D TM solver.

The solver works on a single uniform Cartesian grid. Cells are addressed by
integer indices (i, j); the cell with index (i, j) sits at the point
(x=i, y=j) in cell-index coordinates, which is the frame every geometry
primitive uses.

The interaction layer instead places obstacles and sources in normalized
scene coordinates spanning [-1, 1] on both axes. UniformGrid converts
between the two frames.

Example:
    >>> grid = UniformGrid(shape=(256, 256), resolution=0.03)
    >>> grid.scene_to_cell((0.0, 0.0))
    (127.5, 127.5)
    >>> grid.physical_extent()
    (7.68, 7.68)
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray


@dataclass
class UniformGrid:
    """Uniform grid with equal cell spacing on both axes.

    Args:
        shape: Grid dimensions (nx, ny) in cells
        resolution: Cell spacing in meters

    Attributes:
        shape: Grid dimensions tuple
        x_coords: 1D array of cell center x-coordinates in meters
        y_coords: 1D array of cell center y-coordinates in meters
        num_cells: Total number of cells

    Example:
        >>> grid = UniformGrid(shape=(100, 100), resolution=1e-2)
        >>> grid.num_cells
        10000
    """

    shape: tuple[int, int]
    resolution: float

    def __post_init__(self):
        if len(self.shape) != 2:
            raise ValueError(f"shape must have two dimensions, got {self.shape}")
        nx, ny = self.shape
        if nx < 3 or ny < 3:
            raise ValueError(f"Grid must be at least 3x3 cells, got {self.shape}")
        if self.resolution <= 0:
            raise ValueError(f"resolution must be positive, got {self.resolution}")
        self.shape = (int(nx), int(ny))

        self._x_coords = np.arange(nx) * self.resolution + self.resolution / 2
        self._y_coords = np.arange(ny) * self.resolution + self.resolution / 2

    @property
    def nx(self) -> int:
        return self.shape[0]

    @property
    def ny(self) -> int:
        return self.shape[1]

    @property
    def num_cells(self) -> int:
        return self.shape[0] * self.shape[1]

    @property
    def x_coords(self) -> NDArray[np.float64]:
        """Cell center x-coordinates."""
        return self._x_coords

    @property
    def y_coords(self) -> NDArray[np.float64]:
        """Cell center y-coordinates."""
        return self._y_coords

    def physical_extent(self) -> tuple[float, float]:
        """Get physical domain size in meters.

        Returns:
            Tuple (Lx, Ly) of domain dimensions
        """
        return (self.shape[0] * self.resolution, self.shape[1] * self.resolution)

    def scene_to_cell(self, point: tuple[float, float]) -> tuple[float, float]:
        """Convert a point in scene coordinates to cell-index coordinates.

        Scene coordinate -1 maps to the outer edge of cell 0 and +1 to the
        outer edge of the last cell, so cell centres sit half a cell inside.
        """
        sx, sy = point
        return (
            (sx + 1.0) * 0.5 * self.shape[0] - 0.5,
            (sy + 1.0) * 0.5 * self.shape[1] - 0.5,
        )

    def cell_to_scene(self, point: tuple[float, float]) -> tuple[float, float]:
        """Inverse of scene_to_cell."""
        cx, cy = point
        return (
            (cx + 0.5) / (0.5 * self.shape[0]) - 1.0,
            (cy + 0.5) / (0.5 * self.shape[1]) - 1.0,
        )

    def scene_radius_to_cells(self, radius: float) -> float:
        """Convert a scene-space radius to a radius in cells."""
        return radius * 0.5 * min(self.shape)
