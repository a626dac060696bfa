"""
2D TM-mode FDTD electromagnetic solver.

Ez, Hx and Hy are advanced with a leapfrog scheme on double-buffered grids
that also carry a per-cell PEC flag, a relative permittivity map and a
persistent source map. The outer edges use Mur absorbing boundaries.

Discretization, with Ez on nodes and H on the edges between them:
    Ez[i, j]  at (i, j)
    Hx[i, j]  at (i, j + 1/2)
    Hy[i, j]  at (i + 1/2, j)

    H  <- H  - che · ∇×Ez          che = dt / (ε0·dx)
    Ez <- Ez + ceh / εr · ∇×H      ceh = dt / (μ0·dx)

The scheme is stable for C = 2·c·dt/dx ≤ 1.

Example:
    >>> solver = TMSolver(SimulationConfig(shape=(128, 128)))
    >>> solver.sources.update_persistent_map((64, 64), radius=2.0, amplitude=0.1)
    >>> solver.add_probe("center", (64, 64))
    >>> solver.run(200, track_energy=True)
    >>> solver.energy_report()["conservation_status"]
"""

from __future__ import annotations

import math
import time as time_module
import warnings
from collections.abc import Callable
from typing import Literal

import numpy as np
from numpy.typing import NDArray

from radio_fdtd.boundaries import make_boundary
from radio_fdtd.core.backend import get_backend
from radio_fdtd.core.buffers import (
    ACCESSORY_CHANNELS,
    DIELECTRIC,
    EZ,
    FIELD_CHANNELS,
    HISTORY_CHANNELS,
    HX,
    HY,
    MATERIAL,
    GridBufferStore,
)
from radio_fdtd.core.config import (
    EPSILON_0,
    MU_0,
    SimulationConfig,
    UpdateCoefficients,
)
from radio_fdtd.core.diagnostics import EnergyLog, EnergySample, Probe
from radio_fdtd.core.engine import FieldUpdateEngine
from radio_fdtd.core.grid import UniformGrid
from radio_fdtd.core.sources import SourceInjector
from radio_fdtd.errors import InitializationError
from radio_fdtd.geometry import GeometryEditor

FieldName = Literal["ez", "hx", "hy", "material"]

_FIELD_CHANNEL = {"ez": EZ, "hx": HX, "hy": HY, "material": MATERIAL}


class TMSolver:
    """Interactive 2D TM-mode FDTD solver.

    Owns the buffer store, the geometry editor, the source injector, the
    boundary condition and the update engine, and exposes a step/run API
    with probes, snapshots and energy diagnostics.

    Args:
        config: Simulation configuration (default: SimulationConfig())
        boundary: Boundary condition instance (default: the Mur boundary of
            config.boundary_order on all four edges)
        warn_energy_growth: If True, emit a warning after run() when the
            total energy grew beyond energy_growth_threshold
        energy_growth_threshold: Fractional growth that triggers the
            warning (default: 0.01 = 1%)

    Attributes:
        config: The SimulationConfig
        coeffs: Derived UpdateCoefficients
        grid: UniformGrid with the cell size as resolution
        backend: Array backend executing the kernels
        store: GridBufferStore with the "fields", "accessory" and "history" pairs
        geometry: GeometryEditor
        sources: SourceInjector
        boundary: ABCFirstOrder or ABCSecondOrder
        engine: FieldUpdateEngine
        dt: Timestep in seconds
        dx: Cell size in meters
        probes: Registered Ez probes by name

    Raises:
        InitializationError: If the backend or the buffers are unusable
    """

    def __init__(
        self,
        config: SimulationConfig | None = None,
        boundary=None,
        warn_energy_growth: bool = False,
        energy_growth_threshold: float = 0.01,
    ):
        self.config = config if config is not None else SimulationConfig()
        self.coeffs = UpdateCoefficients.from_config(self.config)
        self.shape = self.config.shape
        self.grid = UniformGrid(shape=self.shape, resolution=self.coeffs.dx)
        self.dt = self.coeffs.dt
        self.dx = self.coeffs.dx

        try:
            self.backend = get_backend(self.config.backend)
        except (ImportError, RuntimeError) as e:
            raise InitializationError(f"Backend '{self.config.backend}' unusable: {e}") from e

        self.store = GridBufferStore(self.shape, self.backend)
        self.fields = self.store.allocate("fields", FIELD_CHANNELS)
        self.accessory = self.store.allocate("accessory", ACCESSORY_CHANNELS)
        self.history = self.store.allocate("history", HISTORY_CHANNELS)

        self.geometry = GeometryEditor(self.store, self.fields, self.accessory)
        self.sources = SourceInjector(self.store, self.fields, self.accessory)

        self.boundary = boundary if boundary is not None else make_boundary(self.config.boundary_order)
        self.boundary.initialize(self.shape, self.coeffs)
        self.engine = FieldUpdateEngine(
            self.store, self.fields, self.accessory, self.history, self.coeffs, self.boundary
        )

        self.geometry.initialize_to_vacuum()

        self.probes: dict[str, Probe] = {}
        self._time = 0.0

        self._snapshots: list[tuple[float, NDArray[np.floating]]] = []
        self._snapshot_interval: int | None = None

        self._energy = EnergyLog()
        self._warn_energy_growth = warn_energy_growth
        self._energy_growth_threshold = energy_growth_threshold

    @property
    def time(self) -> float:
        """Simulated time in seconds."""
        return self._time

    @property
    def step_count(self) -> int:
        """Number of leapfrog steps completed."""
        return self.engine.step_count

    @property
    def using_gpu(self) -> bool:
        """True if the kernels run on the PyTorch backend."""
        return self.backend.name == "gpu"

    @property
    def impedance(self) -> float:
        """Free-space wave impedance sqrt(μ0/ε0)."""
        return math.sqrt(MU_0 / EPSILON_0)

    # ------------------------------------------------------------------
    # Field access
    # ------------------------------------------------------------------

    def get_field(self, name: FieldName) -> NDArray[np.float32]:
        """Host copy of one channel of the committed field grid."""
        if name not in _FIELD_CHANNEL:
            raise ValueError(f"Unknown field '{name}'. Valid fields: ez, hx, hy, material")
        return self.backend.to_numpy(self.fields.current[_FIELD_CHANNEL[name]])

    def get_dielectric(self) -> NDArray[np.float32]:
        """Host copy of the relative permittivity map."""
        return self.backend.to_numpy(self.accessory.current[DIELECTRIC])

    def set_field(self, name: Literal["ez", "hx", "hy"], values: NDArray[np.floating]) -> None:
        """Replace one field channel, e.g. to start from an initial pulse.

        The write is a full pass: every other channel is carried over.
        Material is owned by the geometry editor and cannot be set here.
        """
        if name not in ("ez", "hx", "hy"):
            raise ValueError(f"Unknown field '{name}'. Valid fields: ez, hx, hy")
        values = np.asarray(values)
        if values.shape != self.shape:
            raise ValueError(f"Field shape {values.shape} doesn't match solver shape {self.shape}")

        view = self.store.bind(self.fields)
        out = self.backend.copy(view.array)
        out[_FIELD_CHANNEL[name]] = self.backend.asarray(values)
        if name == "ez":
            out[EZ] = out[EZ] * out[MATERIAL]
        self.fields.write_target()[...] = out
        self.store.swap(self.fields)

    # ------------------------------------------------------------------
    # Probes and snapshots
    # ------------------------------------------------------------------

    def add_probe(self, name: str, position: tuple[int, int]) -> None:
        """Record Ez at cell `position` after every step under `name`."""
        if name in self.probes:
            raise ValueError(f"Probe '{name}' already exists")
        i, j = (int(v) for v in position)
        nx, ny = self.shape
        if not (0 <= i < nx and 0 <= j < ny):
            raise ValueError(f"Probe position {position} outside grid {self.shape}")
        self.probes[name] = Probe(name=name, position=(i, j))

    def get_probe_data(self, name: str | None = None) -> dict[str, NDArray[np.floating]]:
        """Ez series of one probe, or of all probes when name is None.

        Raises:
            KeyError: If the named probe does not exist
        """
        names = list(self.probes) if name is None else [name]
        missing = [n for n in names if n not in self.probes]
        if missing:
            raise KeyError(f"Probe '{missing[0]}' not found")
        return {n: self.probes[n].get_data() for n in names}

    def enable_snapshots(self, interval: int) -> None:
        """Keep an in-memory Ez copy every `interval` steps."""
        if interval < 1:
            raise ValueError(f"Snapshot interval must be >= 1, got {interval}")
        self._snapshot_interval = interval

    def get_snapshots(self) -> list[tuple[float, NDArray[np.floating]]]:
        """(time, Ez) pairs saved so far."""
        return list(self._snapshots)

    def _sample(self) -> None:
        step = self.engine.step_count

        if self.probes:
            ez = self.fields.current[EZ]
            for probe in self.probes.values():
                probe.record(float(ez[probe.position]))

        if self._snapshot_interval and step % self._snapshot_interval == 0:
            self._snapshots.append((self._time, self.get_field("ez")))

        if self._energy.due(step):
            self._energy.add(step, self._time, self.compute_energy())

    # ------------------------------------------------------------------
    # Time stepping
    # ------------------------------------------------------------------

    def step(self) -> None:
        """Advance the simulation by one leapfrog step (H, E, history)."""
        self.engine.leapfrog_step()
        self._time += self.dt
        self._sample()

    def run(
        self,
        n_steps: int,
        track_energy: bool = False,
        energy_sample_interval: int = 1,
        output_file: str | None = None,
        callback: Callable[[int], None] | None = None,
        snapshot_interval: int | None = None,
        progress: bool = False,
    ) -> None:
        """Run a number of leapfrog steps.

        Args:
            n_steps: Steps to run
            track_energy: Sample the total energy during the run
            energy_sample_interval: Steps between energy samples
            output_file: Stream probes (and frames) to this HDF5 file
            callback: Called with the step index after every step
            snapshot_interval: Store Ez in output_file every N steps
            progress: Show a tqdm progress bar
        """
        if track_energy:
            self.enable_energy_tracking(energy_sample_interval)
        else:
            self._energy.enabled = False

        writer = None
        if output_file:
            from radio_fdtd.io import HDF5FrameWriter

            writer = HDF5FrameWriter(output_file, self)

        steps = range(n_steps)
        if progress:
            from tqdm import tqdm

            steps = tqdm(steps, desc="TM simulation", unit="step")

        started = time_module.perf_counter()
        try:
            for i in steps:
                self.step()
                last = self.step_count - 1
                if writer is not None:
                    writer.write_timestep(
                        last, save_frame=bool(snapshot_interval) and i % snapshot_interval == 0
                    )
                if callback is not None:
                    callback(last)
            self.check_energy_growth(stacklevel=3)
        finally:
            if writer is not None:
                writer.finalize(
                    runtime=time_module.perf_counter() - started, backend=self.backend.name
                )

    # ------------------------------------------------------------------
    # Energy diagnostics
    # ------------------------------------------------------------------

    def enable_energy_tracking(self, sample_interval: int = 1) -> None:
        """Sample the energy every `sample_interval` steps from now on.

        An empty history gets the current energy as its first sample.
        """
        self._energy.enabled = True
        self._energy.interval = max(1, sample_interval)
        if not self._energy.samples:
            self._energy.add(self.step_count, self._time, self.compute_energy())

    def check_energy_growth(self, stacklevel: int = 2) -> bool:
        """Emit a UserWarning if the sampled energy grew past the threshold.

        Does nothing unless the solver was built with warn_energy_growth=True.

        Returns:
            True if a warning was emitted
        """
        if not self._warn_energy_growth or len(self._energy.samples) < 2:
            return False
        report = self._energy.summary()
        limit = self._energy_growth_threshold * 100
        if report["energy_change_percent"] <= limit:
            return False
        warnings.warn(
            f"Energy growth detected: {report['energy_change_percent']:.2f}% "
            f"over {report['n_samples']} samples (limit {limit:.1f}%)",
            UserWarning,
            stacklevel=stacklevel,
        )
        return True

    def compute_energy(self) -> float:
        """Electromagnetic energy per unit length in z, in J/m.

        W = ½·ε0·Σ(εr·Ez² + (Hx² + Hy²)/η²)·dx²

        The η² division undoes the scaling of the stored H channels.
        """
        fields = self.backend.to_numpy(self.fields.current).astype(np.float64)
        eps = self.get_dielectric().astype(np.float64)

        electric = np.sum(eps * fields[EZ] ** 2)
        magnetic = np.sum(fields[HX] ** 2 + fields[HY] ** 2) * (EPSILON_0 / MU_0)
        return float(0.5 * EPSILON_0 * (electric + magnetic) * self.dx**2)

    def get_energy_history(self) -> list[EnergySample]:
        """(step, time, energy) samples, oldest first."""
        return list(self._energy.samples)

    def energy_report(self) -> dict:
        """Summary of the energy samples.

        Returns:
            Dict with initial_energy, final_energy, max_energy, min_energy,
            energy_change_percent, n_samples and conservation_status, which
            is "stable" within ±1%, else "growing" or "decaying"

        Raises:
            ValueError: If no energy history has been recorded
        """
        return self._energy.summary()

    # ------------------------------------------------------------------
    # Reset
    # ------------------------------------------------------------------

    def reset_fields(self) -> None:
        """Zero Ez, Hx, Hy and the history; geometry and sources are kept."""
        view = self.store.bind(self.fields)
        out = self.backend.copy(view.array)
        out[EZ] = 0.0
        out[HX] = 0.0
        out[HY] = 0.0
        self.fields.write_target()[...] = out
        self.store.swap(self.fields)

        for slot in self.history.slots:
            slot[...] = 0.0
        self.engine.reset()

    def reset(self) -> None:
        """Reset to the initial state: zero fields, no sources, vacuum geometry."""
        self.reset_fields()
        self.sources.clear()
        self.geometry.initialize_to_vacuum()
        self._time = 0.0
        self._snapshots.clear()
        self._energy.clear()
        for probe in self.probes.values():
            probe.clear()

    def memory_usage_mb(self) -> float:
        return self.store.memory_usage_mb()
