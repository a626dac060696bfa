"""
Continuous-wave source injection.

Sources live in a persistent amplitude map held in the accessory grid. Each
call to update_persistent_map first decays the whole map by a persistence
factor and then max-holds a new disc-shaped source into it, so a source
dragged around with persistence 1.0 leaves a trail of emitters, while
persistence 0.0 keeps only the latest one.

Injection adds amplitude·sin(phase) of the map to Ez using one global
phase. The per-cell phase offset written alongside the amplitude is kept
for inspection and does not shift the injected signal.

Example:
    >>> injector = SourceInjector(store, fields, accessory)
    >>> injector.update_persistent_map((128, 128), radius=2.5, amplitude=0.1)
    >>> injector.apply_to_field(current_phase=0.6)
    >>> injector.clear()
"""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import NDArray

from radio_fdtd.core.buffers import SOURCE_AMPLITUDE, SOURCE_PHASE, BufferPair, GridBufferStore
from radio_fdtd.core.kernels import inject_source
from radio_fdtd.geometry.primitives import MIN_RADIUS, Circle


class SourceInjector:
    """Maintains the source map and injects it into the field grid.

    Args:
        store: Buffer store owning both pairs
        fields: Field grid pair
        accessory: Accessory grid pair holding amplitude and phase offset
    """

    def __init__(self, store: GridBufferStore, fields: BufferPair, accessory: BufferPair):
        self.store = store
        self.fields = fields
        self.accessory = accessory

    def update_persistent_map(
        self,
        center: tuple[float, float],
        radius: float,
        amplitude: float,
        phase_offset: float = 0.0,
        persist_factor: float = 0.0,
    ) -> None:
        """Decay the map and max-hold a new source into it.

        Args:
            center: Source centre in cells
            radius: Source radius in cells (clamped to MIN_RADIUS)
            amplitude: Peak amplitude of the new source
            phase_offset: Stored where the new source exceeds the decayed map
            persist_factor: Multiplier applied to the existing map, clamped
                to [0, 1]
        """
        persist = min(max(float(persist_factor), 0.0), 1.0)
        backend = self.store.backend

        circle = Circle(center, radius)
        new_amp = np.where(
            circle.footprint(self.store.shape),
            circle.weights(self.store.shape) * float(amplitude),
            0.0,
        )
        new_amp = backend.asarray(new_amp)

        view = self.store.bind(self.accessory)
        out = backend.copy(view.array)
        decayed = out[SOURCE_AMPLITUDE] * persist
        wins = new_amp > decayed
        out[SOURCE_AMPLITUDE] = backend.maximum(decayed, new_amp)
        out[SOURCE_PHASE] = backend.where(wins, float(phase_offset), out[SOURCE_PHASE])

        self.accessory.write_target()[...] = out
        self.store.swap(self.accessory)

    def apply_to_field(self, current_phase: float) -> None:
        """Add amplitude·sin(current_phase) to Ez on every cell."""
        backend = self.store.backend
        fields = self.store.bind(self.fields)
        accessory = self.store.bind(self.accessory)
        out = inject_source(fields.array, accessory.array, current_phase, backend)
        self.fields.write_target()[...] = out
        self.store.swap(self.fields)

    def clear(self) -> None:
        """Remove every source (a zero-amplitude update with zero persistence)."""
        self.update_persistent_map((0.0, 0.0), MIN_RADIUS, amplitude=0.0, persist_factor=0.0)

    def add_line_source(
        self,
        start: tuple[float, float],
        stop: tuple[float, float],
        radius: float,
        amplitude: float,
    ) -> int:
        """Replace the map with sources spaced one cell apart along a segment.

        Returns:
            Number of sources placed
        """
        self.clear()
        length = math.hypot(stop[0] - start[0], stop[1] - start[1])
        count = int(math.ceil(length)) + 1
        for k in range(count):
            s = k / (count - 1) if count > 1 else 0.0
            point = (
                start[0] + s * (stop[0] - start[0]),
                start[1] + s * (stop[1] - start[1]),
            )
            self.update_persistent_map(point, radius, amplitude, persist_factor=1.0)
        return count

    def amplitude_map(self) -> NDArray[np.float32]:
        """Host copy of the stored source amplitudes."""
        return self.store.backend.to_numpy(self.accessory.current[SOURCE_AMPLITUDE])

    def phase_map(self) -> NDArray[np.float32]:
        """Host copy of the stored phase offsets."""
        return self.store.backend.to_numpy(self.accessory.current[SOURCE_PHASE])
