"""I/O for solver results."""

from radio_fdtd.io.hdf5 import HDF5FrameReader, HDF5FrameWriter

__all__ = [
    "HDF5FrameWriter",
    "HDF5FrameReader",
]
