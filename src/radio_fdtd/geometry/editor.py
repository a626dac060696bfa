"""
Geometry editing between solver steps.

The editor owns writes to the material flag (field grid) and the
dielectric map (accessory grid). Each edit is a full pass: it reads the
current buffer, writes every channel of the next buffer with the covered
cells replaced, and swaps.

Material flag:
    1.0 = vacuum (field propagates), 0.0 = PEC (Ez forced to zero)

Dielectric map:
    Relative permittivity, 1.0 for vacuum, strictly positive.

Example:
    >>> editor = GeometryEditor(store, fields, accessory)
    >>> editor.write_region(Rectangle(10, 20, 10, 20), MaterialProperty.PEC, 0.0)
    >>> editor.move_obstacle((40, 40), (42, 40), 6.0, 6.0, paint_value=0.0)
"""

from __future__ import annotations

from enum import Enum

import numpy as np
from numpy.typing import NDArray

from radio_fdtd.core.buffers import DIELECTRIC, MATERIAL, BufferPair, GridBufferStore
from radio_fdtd.geometry.primitives import Circle, Shape

PEC = 0.0
VACUUM = 1.0


class MaterialProperty(Enum):
    """Which per-cell property an edit writes."""

    PEC = "pec"
    DIELECTRIC = "dielectric"


class GeometryEditor:
    """Paints material and dielectric regions into the double-buffered grids.

    Args:
        store: Buffer store owning both pairs
        fields: Field grid pair (material flag in its MATERIAL channel)
        accessory: Accessory grid pair (permittivity in its DIELECTRIC channel)
    """

    def __init__(self, store: GridBufferStore, fields: BufferPair, accessory: BufferPair):
        self.store = store
        self.fields = fields
        self.accessory = accessory

    @property
    def shape(self) -> tuple[int, int]:
        return self.store.shape

    def _target(self, prop: MaterialProperty) -> tuple[BufferPair, int]:
        if prop is MaterialProperty.PEC:
            return self.fields, MATERIAL
        if prop is MaterialProperty.DIELECTRIC:
            return self.accessory, DIELECTRIC
        raise ValueError(f"Unknown material property: {prop}")

    @staticmethod
    def _validate(prop: MaterialProperty, value: float) -> float:
        value = float(value)
        if prop is MaterialProperty.PEC and value not in (PEC, VACUUM):
            raise ValueError(f"Material flag must be 0.0 (PEC) or 1.0 (vacuum), got {value}")
        if prop is MaterialProperty.DIELECTRIC and value <= 0:
            raise ValueError(f"Dielectric value must be positive, got {value}")
        return value

    def _paint(self, mask: NDArray[np.bool_], prop: MaterialProperty, value: float) -> int:
        """Run one pass that sets the masked cells of one channel to value."""
        pair, channel = self._target(prop)
        backend = self.store.backend

        view = self.store.bind(pair)
        out = backend.copy(view.array)
        out[channel] = backend.where(backend.asarray(mask), value, out[channel])

        pair.write_target()[...] = out
        self.store.swap(pair)
        return int(np.count_nonzero(mask))

    def write_region(self, shape: Shape, prop: MaterialProperty, value: float) -> int:
        """Overwrite a property inside a region.

        Args:
            shape: Rectangle (inclusive edges) or Circle (falloff footprint)
            prop: MaterialProperty.PEC or MaterialProperty.DIELECTRIC
            value: New value for covered cells

        Returns:
            Number of cells written
        """
        value = self._validate(prop, value)
        return self._paint(shape.footprint(self.shape), prop, value)

    def move_obstacle(
        self,
        old_center: tuple[float, float],
        new_center: tuple[float, float],
        old_radius: float,
        new_radius: float,
        paint_value: float,
        prop: MaterialProperty = MaterialProperty.PEC,
    ) -> int:
        """Paint the union of an obstacle's old and new footprints.

        Cells covered by either disc take paint_value. Cells outside both
        are left alone, so this is a repaint rather than an erase.

        Returns:
            Number of cells written
        """
        value = self._validate(prop, paint_value)
        old = Circle(old_center, old_radius).footprint(self.shape)
        new = Circle(new_center, new_radius).footprint(self.shape)
        return self._paint(old | new, prop, value)

    def initialize_to_vacuum(self) -> None:
        """Set material=1.0 and dielectric=1.0 on every cell."""
        everywhere = np.ones(self.shape, dtype=bool)
        self._paint(everywhere, MaterialProperty.PEC, VACUUM)
        self._paint(everywhere, MaterialProperty.DIELECTRIC, 1.0)

    def material_map(self) -> NDArray[np.float32]:
        """Host copy of the material flag."""
        return self.store.backend.to_numpy(self.fields.current[MATERIAL])

    def dielectric_map(self) -> NDArray[np.float32]:
        """Host copy of the relative permittivity."""
        return self.store.backend.to_numpy(self.accessory.current[DIELECTRIC])
