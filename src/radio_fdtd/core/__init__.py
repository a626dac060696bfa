"""Core solver components: buffers, backends, configuration and kernels."""

from radio_fdtd.core.backend import get_backend, get_gpu_info, has_gpu_support
from radio_fdtd.core.buffers import BufferPair, GridBufferStore, ReadHandle
from radio_fdtd.core.config import SimulationConfig, UpdateCoefficients
from radio_fdtd.core.grid import UniformGrid

__all__ = [
    "BufferPair",
    "GridBufferStore",
    "ReadHandle",
    "SimulationConfig",
    "UpdateCoefficients",
    "UniformGrid",
    "get_backend",
    "get_gpu_info",
    "has_gpu_support",
]
