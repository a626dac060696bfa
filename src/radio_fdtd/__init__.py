"""
Radio FDTD - interactive 2D TM-mode electromagnetic FDTD solver.

Main exports:
- TMSolver: Ez/Hx/Hy leapfrog solver on double-buffered grids
- StepScheduler: Per-tick orchestration for interactive use
- SimulationConfig: Construction-time parameters
- GeometryEditor, Rectangle, Circle: PEC and dielectric region editing
- SourceInjector: Persistent continuous-wave source map
- ABCFirstOrder, ABCSecondOrder: Mur absorbing boundaries
"""

from radio_fdtd.boundaries import ABCFirstOrder, ABCSecondOrder, Edge, make_boundary
from radio_fdtd.core.backend import get_gpu_info, has_gpu_support
from radio_fdtd.core.buffers import BufferPair, GridBufferStore, ReadHandle
from radio_fdtd.core.config import SimulationConfig, UpdateCoefficients
from radio_fdtd.core.diagnostics import Probe
from radio_fdtd.core.engine import FieldUpdateEngine, UpdatePhase
from radio_fdtd.core.grid import UniformGrid
from radio_fdtd.core.scheduler import (
    Frame,
    MaterialMode,
    Obstacle,
    OutputChannel,
    SchedulerState,
    StepScheduler,
    compute_normals,
)
from radio_fdtd.core.solver import TMSolver
from radio_fdtd.core.sources import SourceInjector
from radio_fdtd.errors import InitializationError, RadioFDTDError, StaleHandleError
from radio_fdtd.geometry import Circle, GeometryEditor, MaterialProperty, Rectangle

# Submodules for more specific imports
from . import geometry, io

__version__ = "0.1.0"

__all__ = [
    # Solver
    "TMSolver",
    "Probe",
    "SimulationConfig",
    "UpdateCoefficients",
    "UniformGrid",
    # Scheduling
    "StepScheduler",
    "SchedulerState",
    "MaterialMode",
    "OutputChannel",
    "Obstacle",
    "Frame",
    "compute_normals",
    # Components
    "GridBufferStore",
    "BufferPair",
    "ReadHandle",
    "FieldUpdateEngine",
    "UpdatePhase",
    "SourceInjector",
    "GeometryEditor",
    "MaterialProperty",
    "Rectangle",
    "Circle",
    # Boundaries
    "ABCFirstOrder",
    "ABCSecondOrder",
    "Edge",
    "make_boundary",
    # Errors
    "RadioFDTDError",
    "InitializationError",
    "StaleHandleError",
    # GPU
    "has_gpu_support",
    "get_gpu_info",
    # Submodules
    "geometry",
    "io",
]
