"""Double-buffered grid storage.

Every grid in the solver is a pair of equally sized buffers. A pass reads
from the current buffer and writes the next one; swapping flips a single
index bit so the freshly written buffer becomes current. Contents are never
copied by a swap.

Layout:
    Each buffer is a float32 array of shape (channels, nx, ny). Channel
    indices for the three roles used by the solver are defined here so that
    every module agrees on them.

Example:
    >>> from radio_fdtd.core.backend import get_backend
    >>> store = GridBufferStore(shape=(64, 64), backend=get_backend("python"))
    >>> fields = store.allocate("fields", FIELD_CHANNELS)
    >>> view = store.bind(fields)
    >>> out = fields.write_target()
    >>> out[...] = view.array
    >>> store.swap(fields) is fields
    True
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from radio_fdtd.errors import InitializationError, StaleHandleError

# Field grid channels
EZ = 0
HX = 1
HY = 2
MATERIAL = 3
FIELD_CHANNELS = 4

# Accessory grid channels
SOURCE_AMPLITUDE = 0
SOURCE_PHASE = 1
DIELECTRIC = 2
ACCESSORY_CHANNELS = 3

# History grid holds the field values only (no material flag)
HISTORY_CHANNELS = 3

Slot = Literal["current", "previous"]


@dataclass(eq=False)
class BufferPair:
    """Two buffer slots plus the index of the current one.

    Attributes:
        role: Name of the grid ("fields", "accessory", "history")
        slots: The two backing arrays
        index: Which slot is current (0 or 1)
        generation: Incremented on every swap; invalidates read handles
    """

    role: str
    slots: tuple[Any, Any]
    index: int = 0
    generation: int = 0

    @property
    def current(self):
        """Buffer holding the committed state."""
        return self.slots[self.index]

    @property
    def next(self):
        """Buffer the next pass writes into."""
        return self.slots[1 - self.index]

    @property
    def channels(self) -> int:
        return int(self.slots[0].shape[0])

    def write_target(self):
        """Return the next buffer for the single writer of a pass."""
        return self.next

    def swap(self) -> BufferPair:
        self.index = 1 - self.index
        self.generation += 1
        return self


@dataclass(eq=False)
class ReadHandle:
    """Read-only access to one slot of a pair, valid until the next swap."""

    pair: BufferPair
    slot_index: int
    generation: int
    _view: Any = field(repr=False)

    @property
    def valid(self) -> bool:
        return self.pair.generation == self.generation

    @property
    def array(self):
        """The bound buffer (read-only view on the NumPy backend).

        Raises:
            StaleHandleError: If the pair has been swapped since binding
        """
        if not self.valid:
            raise StaleHandleError(
                f"ReadHandle for '{self.pair.role}' used after swap "
                f"(bound at generation {self.generation}, "
                f"pair is at {self.pair.generation})"
            )
        return self._view

    def __getitem__(self, key):
        return self.array[key]


class GridBufferStore:
    """Owner of every double-buffered grid in a simulation.

    All pairs share the shape given at construction.

    Args:
        shape: Grid dimensions (nx, ny) in cells
        backend: Array backend used for allocation

    Example:
        >>> store = GridBufferStore(shape=(256, 256), backend=backend)
        >>> fields = store.allocate("fields", FIELD_CHANNELS)
    """

    def __init__(self, shape: tuple[int, int], backend):
        self.shape = (int(shape[0]), int(shape[1]))
        self.backend = backend
        self._pairs: dict[str, BufferPair] = {}

    def allocate(self, role: str, channel_count: int, fill: float = 0.0) -> BufferPair:
        """Allocate a buffer pair sized to the store's grid.

        Args:
            role: Unique name of the grid
            channel_count: Number of float channels per cell
            fill: Initial value of every channel in both slots

        Returns:
            The new BufferPair

        Raises:
            InitializationError: If the buffers cannot be allocated
            ValueError: If the role is already allocated
        """
        if role in self._pairs:
            raise ValueError(f"Buffer role '{role}' already allocated")
        if channel_count < 1:
            raise ValueError(f"channel_count must be >= 1, got {channel_count}")

        buffer_shape = (channel_count,) + self.shape
        try:
            first = self.backend.zeros(buffer_shape)
            second = self.backend.zeros(buffer_shape)
        except (MemoryError, RuntimeError) as e:
            raise InitializationError(
                f"Could not allocate '{role}' buffers of shape {buffer_shape}: {e}"
            ) from e

        if fill != 0.0:
            first[...] = fill
            second[...] = fill

        pair = BufferPair(role=role, slots=(first, second))
        self._pairs[role] = pair
        return pair

    def get(self, role: str) -> BufferPair:
        """Look up a pair by role."""
        if role not in self._pairs:
            raise KeyError(f"Buffer role '{role}' not allocated")
        return self._pairs[role]

    @property
    def roles(self) -> list[str]:
        return list(self._pairs)

    def swap(self, pair: BufferPair) -> BufferPair:
        """Exchange current and next of a pair in O(1).

        Every ReadHandle previously issued for the pair becomes stale.
        """
        return pair.swap()

    def bind(self, pair: BufferPair, slot: Slot = "current") -> ReadHandle:
        """Expose one slot of a pair read-only for a kernel invocation.

        Args:
            pair: Pair to bind
            slot: "current" for the committed buffer, or "previous" for the
                buffer swapped out by the most recent swap

        Returns:
            ReadHandle valid until the pair is swapped again
        """
        if slot == "current":
            index = pair.index
        elif slot == "previous":
            index = 1 - pair.index
        else:
            raise ValueError(f"Unknown slot '{slot}'. Valid slots: current, previous")

        view = self.backend.readonly(pair.slots[index])
        return ReadHandle(pair=pair, slot_index=index, generation=pair.generation, _view=view)

    def memory_usage_mb(self) -> float:
        """Total size of all allocated buffers in MB."""
        nx, ny = self.shape
        total_channels = sum(2 * pair.channels for pair in self._pairs.values())
        return total_channels * nx * ny * 4 / (1024**2)
