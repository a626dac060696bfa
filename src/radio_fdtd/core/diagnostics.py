"""Probes and energy bookkeeping for TMSolver runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import NamedTuple

import numpy as np
from numpy.typing import NDArray

# |change| at or below this many percent counts as conserved
STABLE_BAND_PERCENT = 1.0


@dataclass
class Probe:
    """Ez time series at one cell.

    Args:
        name: Identifier for this probe
        position: Grid coordinates (i, j)
    """

    name: str
    position: tuple[int, int]
    data: list[float] = field(default_factory=list)

    def record(self, value: float) -> None:
        self.data.append(value)

    def get_data(self) -> NDArray[np.floating]:
        """Samples so far as a float32 array."""
        return np.asarray(self.data, dtype=np.float32)

    def clear(self) -> None:
        self.data.clear()


class EnergySample(NamedTuple):
    step: int
    time: float
    energy: float


class EnergyLog:
    """Energy samples taken every `interval` steps while enabled."""

    def __init__(self):
        self.enabled = False
        self.interval = 1
        self.samples: list[EnergySample] = []

    def due(self, step: int) -> bool:
        return self.enabled and step % self.interval == 0

    def add(self, step: int, time: float, energy: float) -> None:
        self.samples.append(EnergySample(step, time, energy))

    def clear(self) -> None:
        self.samples.clear()
        self.enabled = False

    def summary(self) -> dict:
        """Summarize the samples; see TMSolver.energy_report for the keys.

        Raises:
            ValueError: If there are no samples
        """
        if not self.samples:
            raise ValueError(
                "No energy history recorded. Enable tracking with "
                "run(track_energy=True) or enable_energy_tracking()."
            )

        energies = np.fromiter((s.energy for s in self.samples), dtype=np.float64)
        first, last = energies[0], energies[-1]
        if first > 0:
            change = float((last - first) / first * 100)
        else:
            change = 0.0 if last == 0 else float("inf")

        if abs(change) <= STABLE_BAND_PERCENT:
            status = "stable"
        else:
            status = "growing" if change > 0 else "decaying"

        return {
            "initial_energy": float(first),
            "final_energy": float(last),
            "max_energy": float(energies.max()),
            "min_energy": float(energies.min()),
            "energy_change_percent": change,
            "conservation_status": status,
            "n_samples": len(energies),
        }
