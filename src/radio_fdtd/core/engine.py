"""
Field update engine: sequences the leapfrog passes over the buffer pairs.

One leapfrog step is three passes, always in this order:

    H_UPDATE         read fields, write Hx/Hy into fields.next, swap
    E_UPDATE         read fields (+ accessory, + history.previous), write
                     Ez with boundary correction into fields.next, swap
    HISTORY_CAPTURE  copy Ez/Hx/Hy of fields.current into history.next, swap

After a capture the history pair's current slot holds E^n and its previous
slot E^{n-1}, which is what the second-order boundary reads on the next E
pass. Calling a pass out of order raises RuntimeError.
"""

from __future__ import annotations

from enum import Enum

from radio_fdtd.core.buffers import EZ, HX, HY, MATERIAL, BufferPair, GridBufferStore
from radio_fdtd.core.config import UpdateCoefficients
from radio_fdtd.core.kernels import e_update, h_update


class UpdatePhase(Enum):
    H_UPDATE = "h_update"
    E_UPDATE = "e_update"
    HISTORY_CAPTURE = "history_capture"


_NEXT_PHASE = {
    UpdatePhase.HISTORY_CAPTURE: UpdatePhase.H_UPDATE,
    UpdatePhase.H_UPDATE: UpdatePhase.E_UPDATE,
    UpdatePhase.E_UPDATE: UpdatePhase.HISTORY_CAPTURE,
}


class FieldUpdateEngine:
    """Runs the H, E and history passes with the configured boundary.

    Args:
        store: Buffer store owning all pairs
        fields: Field grid pair
        accessory: Accessory grid pair (dielectric map)
        history: History grid pair
        coeffs: Immutable update coefficients
        boundary: ABCFirstOrder or ABCSecondOrder, already initialized
    """

    def __init__(
        self,
        store: GridBufferStore,
        fields: BufferPair,
        accessory: BufferPair,
        history: BufferPair,
        coeffs: UpdateCoefficients,
        boundary,
    ):
        self.store = store
        self.fields = fields
        self.accessory = accessory
        self.history = history
        self.coeffs = coeffs
        self.boundary = boundary
        self._last_phase = UpdatePhase.HISTORY_CAPTURE
        self._step_count = 0

    @property
    def step_count(self) -> int:
        """Completed leapfrog steps (one per history capture)."""
        return self._step_count

    @property
    def next_phase(self) -> UpdatePhase:
        return _NEXT_PHASE[self._last_phase]

    def _enter(self, phase: UpdatePhase) -> None:
        expected = self.next_phase
        if phase is not expected:
            raise RuntimeError(
                f"Update phase {phase.name} called out of order; expected {expected.name}"
            )

    def update_h(self) -> None:
        """H pass: advance Hx and Hy from the current Ez."""
        self._enter(UpdatePhase.H_UPDATE)
        view = self.store.bind(self.fields)
        out = h_update(view.array, self.coeffs, self.store.backend)
        self.fields.write_target()[...] = out
        self.store.swap(self.fields)
        self._last_phase = UpdatePhase.H_UPDATE

    def update_e(self) -> None:
        """E pass: advance Ez, apply the boundary, then enforce PEC cells."""
        self._enter(UpdatePhase.E_UPDATE)
        backend = self.store.backend
        fields = self.store.bind(self.fields).array
        accessory = self.store.bind(self.accessory).array
        previous = None
        if self.boundary.requires_history:
            previous = self.store.bind(self.history, "previous").array

        ez_new = e_update(fields, accessory, self.coeffs, backend)
        ez_new = self.boundary.apply(ez_new, fields, previous)

        out = backend.copy(fields)
        out[EZ] = ez_new * fields[MATERIAL]
        self.fields.write_target()[...] = out
        self.store.swap(self.fields)
        self._last_phase = UpdatePhase.E_UPDATE

    def capture_history(self) -> None:
        """Copy the freshly updated field values into the history pair."""
        self._enter(UpdatePhase.HISTORY_CAPTURE)
        fields = self.store.bind(self.fields).array
        target = self.history.write_target()
        target[0] = fields[EZ]
        target[1] = fields[HX]
        target[2] = fields[HY]
        self.store.swap(self.history)
        self._last_phase = UpdatePhase.HISTORY_CAPTURE
        self._step_count += 1

    def leapfrog_step(self) -> None:
        """One full H, E, history sequence."""
        self.update_h()
        self.update_e()
        self.capture_history()

    def reset(self) -> None:
        """Return to the start of a step sequence."""
        self._last_phase = UpdatePhase.HISTORY_CAPTURE
        self._step_count = 0
        self.boundary.reset()
