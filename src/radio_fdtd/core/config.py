"""
Simulation configuration and derived update coefficients.

Physical model:
    2D TM mode (Ez, Hx, Hy) in free space with a relative permittivity map.
    Cell size is a fixed fraction of the excitation wavelength:

        dx = c / (f0 · cells_per_wavelength)

    The Courant number is defined as C = 2·c·dt/dx and must satisfy
    0 < C ≤ 1, so the default C = 1.0 gives dt = dx/(2c).

Coefficients:
    ceh = dt/(μ0·dx)    applied to the curl of H in the E update
    che = dt/(ε0·dx)    applied to the differences of Ez in the H update

Example:
    >>> config = SimulationConfig(shape=(256, 256), frequency=1e9)
    >>> coeffs = UpdateCoefficients.from_config(config)
    >>> round(coeffs.mur1, 4)
    -0.3333
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass

# Physical constants
MU_0 = 4.0 * math.pi * 1e-7
EPSILON_0 = 8.854e-12
SPEED_OF_LIGHT = 3e8
IMPEDANCE_FREE_SPACE = 377.0

# Phase increment and source amplitude bounds used by the scheduler
MIN_PHASE_INCREMENT = 0.1
MAX_PHASE_INCREMENT = 2.0
MIN_SOURCE_AMPLITUDE = 0.01
MAX_SOURCE_AMPLITUDE = 2.0


@dataclass(frozen=True)
class SimulationConfig:
    """Construction-time parameters of a simulation.

    Args:
        shape: Grid dimensions (nx, ny) in cells (default: 256x256)
        frequency: Excitation frequency f0 in Hz (default: 1 GHz)
        cells_per_wavelength: Cells per free-space wavelength (default: 10)
        courant: Courant number C = 2·c·dt/dx, 0 < C ≤ 1 (default: 1.0)
        loss_factor: Grid-wide damping applied to Ez each E step (default: 0.990)
        boundary_order: Mur boundary order, 1 or 2 (default: 2)
        persist_default: Initial persistence factor of the source map
        phase_increment: Phase advance per tick in radians. None selects
            two leapfrog steps of the excitation frequency, 2·2π·f0·dt.
        source_amplitude: Default amplitude of the interactive source
        max_tick_seconds: Ticks whose elapsed time exceeds this are skipped
        backend: "auto", "gpu" or "python"

    Raises:
        ValueError: If any value is out of range
    """

    shape: tuple[int, int] = (256, 256)
    frequency: float = 1e9
    cells_per_wavelength: float = 10.0
    courant: float = 1.0
    loss_factor: float = 0.990
    boundary_order: int = 2
    persist_default: float = 0.0
    phase_increment: float | None = None
    source_amplitude: float = 0.1
    max_tick_seconds: float = 1.0
    backend: str = "auto"

    def __post_init__(self):
        if len(self.shape) != 2 or min(self.shape) < 3:
            raise ValueError(f"shape must be two dimensions of at least 3 cells, got {self.shape}")
        if self.frequency <= 0:
            raise ValueError(f"frequency must be positive, got {self.frequency}")
        if self.cells_per_wavelength <= 0:
            raise ValueError(
                f"cells_per_wavelength must be positive, got {self.cells_per_wavelength}"
            )
        if not 0.0 < self.courant <= 1.0:
            raise ValueError(
                f"Courant number must satisfy 0 < C <= 1 for stability, got {self.courant}"
            )
        if not 0.0 < self.loss_factor <= 1.0:
            raise ValueError(f"loss_factor must be in (0, 1], got {self.loss_factor}")
        if self.boundary_order not in (1, 2):
            raise ValueError(f"boundary_order must be 1 or 2, got {self.boundary_order}")
        if not 0.0 <= self.persist_default <= 1.0:
            raise ValueError(f"persist_default must be in [0, 1], got {self.persist_default}")
        if self.max_tick_seconds <= 0:
            raise ValueError(f"max_tick_seconds must be positive, got {self.max_tick_seconds}")
        if self.backend not in ("auto", "gpu", "python"):
            raise ValueError(
                f"Unknown backend '{self.backend}'. Valid backends: auto, gpu, python"
            )

    @property
    def wavelength(self) -> float:
        """Free-space wavelength at the excitation frequency in meters."""
        return SPEED_OF_LIGHT / self.frequency

    @property
    def dx(self) -> float:
        """Cell size in meters."""
        return self.wavelength / self.cells_per_wavelength

    @property
    def dt(self) -> float:
        """Timestep in seconds."""
        return self.courant * self.dx / (2.0 * SPEED_OF_LIGHT)

    def default_phase_increment(self) -> float:
        """Phase advance per tick for two leapfrog steps at f0."""
        return 2.0 * 2.0 * math.pi * self.frequency * self.dt

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class UpdateCoefficients:
    """Immutable coefficients passed into every kernel call.

    Attributes:
        dx: Cell size in meters
        dt: Timestep in seconds
        ceh: E-from-H coefficient dt/(μ0·dx)
        chxe: Hx-from-E coefficient dt/(ε0·dx)
        chye: Hy-from-E coefficient dt/(ε0·dx)
        loss_factor: Damping applied to Ez each E step
        mur1: First-order Mur coefficient (c·dt − dx)/(c·dt + dx)
        mur2a: Second-order Mur coefficient (dx − c·dt)/(dx + c·dt)
        mur2b: Second-order Mur coefficient 2dx/(dx + c·dt)
        mur2c: Second-order Mur coefficient dx(c·dt)²/(2dx²(dx + c·dt))
    """

    dx: float
    dt: float
    ceh: float
    chxe: float
    chye: float
    loss_factor: float
    mur1: float
    mur2a: float
    mur2b: float
    mur2c: float

    @property
    def che(self) -> float:
        return self.chxe

    @classmethod
    def from_config(cls, config: SimulationConfig) -> UpdateCoefficients:
        """Derive every coefficient from a configuration."""
        dx = config.dx
        dt = config.dt
        cdt = SPEED_OF_LIGHT * dt
        che = dt / (EPSILON_0 * dx)
        return cls(
            dx=dx,
            dt=dt,
            ceh=dt / (MU_0 * dx),
            chxe=che,
            chye=che,
            loss_factor=config.loss_factor,
            mur1=(cdt - dx) / (cdt + dx),
            mur2a=(dx - cdt) / (dx + cdt),
            mur2b=2.0 * dx / (dx + cdt),
            mur2c=dx * cdt**2 / (2.0 * dx**2 * (dx + cdt)),
        )

    def to_dict(self) -> dict:
        return asdict(self)
