"""HDF5 files of TM solver results.

One file holds one run. Layout:

    /metadata       creation time, package version, backend, runtime
    /grid           shape, resolution, extent
    /simulation     timestep, Courant number, frequency, boundary order
    /coefficients   the derived update coefficients
    /materials      material flag and permittivity maps at finalize
    /fields/<ch>    (n_frames, nx, ny) frame stacks, one per channel,
                    with the matching step numbers in /fields/<ch>_steps
    /probes/<name>  Ez time series

Files are for analysis and plotting. The solver cannot resume from them.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

import h5py
import numpy as np
from numpy.typing import NDArray

if TYPE_CHECKING:
    from radio_fdtd.core.scheduler import Frame
    from radio_fdtd.core.solver import TMSolver


def _append(dataset: h5py.Dataset, values) -> None:
    """Grow a dataset by one row along axis 0 and store values there."""
    n = dataset.shape[0]
    dataset.resize(n + 1, axis=0)
    dataset[n] = values


class HDF5FrameWriter:
    """Streams probe samples and field frames of a running solver to disk.

    Frame stacks are created lazily, so a file only contains the channels
    that were actually written.

    Example:
        >>> with HDF5FrameWriter("results.h5", solver) as writer:
        ...     for step in range(200):
        ...         solver.step()
        ...         writer.write_timestep(step, save_frame=step % 10 == 0)
    """

    def __init__(
        self,
        filename: str | Path,
        solver: TMSolver,
        compression: str | None = "gzip",
        compression_level: int = 4,
    ):
        """Open the file and write the static run description.

        Args:
            filename: Output path; an existing file is overwritten
            solver: Solver whose output is recorded
            compression: 'gzip', 'lzf' or None
            compression_level: gzip level 0-9, ignored for other filters
        """
        self.filename = Path(filename)
        self.solver = solver
        self._filter = {
            "compression": compression,
            "compression_opts": compression_level if compression == "gzip" else None,
        }
        self._closed = False

        self.file = h5py.File(self.filename, "w")
        try:
            self._write_header()
            self.file.create_group("fields")
            self._create_probe_series()
        except Exception:
            self.file.close()
            raise

    def _write_header(self):
        from radio_fdtd import __version__

        solver = self.solver
        config = solver.config

        groups = {
            "metadata": {
                "created_at": datetime.now(timezone.utc).isoformat(),
                "solver_version": __version__,
                "backend": solver.backend.name,
            },
            "grid": {
                "shape": list(solver.shape),
                "resolution": solver.dx,
                "extent": list(solver.grid.physical_extent()),
            },
            "simulation": {
                "timestep": solver.dt,
                "courant": config.courant,
                "frequency": config.frequency,
                "cells_per_wavelength": config.cells_per_wavelength,
                "loss_factor": config.loss_factor,
                "boundary_order": config.boundary_order,
            },
            "coefficients": solver.coeffs.to_dict(),
        }
        for group_name, attrs in groups.items():
            group = self.file.create_group(group_name)
            group.attrs.update(attrs)

    def _create_probe_series(self):
        group = self.file.create_group("probes")
        for name, probe in self.solver.probes.items():
            series = group.create_dataset(
                name, shape=(0,), maxshape=(None,), dtype=np.float32, chunks=True, **self._filter
            )
            series.attrs["position"] = list(probe.position)
            series.attrs["units"] = "V/m"

    def _stack(self, channel: str) -> tuple[h5py.Dataset, h5py.Dataset]:
        fields = self.file["fields"]
        if channel not in fields:
            nx, ny = self.solver.shape
            fields.create_dataset(
                channel,
                shape=(0, nx, ny),
                maxshape=(None, nx, ny),
                dtype=np.float32,
                chunks=(1, nx, ny),
                **self._filter,
            )
            fields.create_dataset(
                f"{channel}_steps", shape=(0,), maxshape=(None,), dtype=np.int64, chunks=True
            )
        return fields[channel], fields[f"{channel}_steps"]

    def _store(self, channel: str, values: NDArray[np.floating], step: int) -> None:
        frames, steps = self._stack(channel)
        _append(frames, values)
        _append(steps, step)

    def sync_probes(self):
        """Copy probe samples recorded since the last sync."""
        group = self.file["probes"]
        for name, probe in self.solver.probes.items():
            samples = probe.get_data()
            series = group[name]
            written = series.shape[0]
            if len(samples) > written:
                series.resize((len(samples),))
                series[written:] = samples[written:]

    def write_timestep(self, step: int, save_frame: bool = False):
        """Record the solver state after a step.

        Args:
            step: Step number stored alongside a saved frame
            save_frame: Also store the full Ez field
        """
        self.sync_probes()
        if save_frame:
            self._store("ez", self.solver.get_field("ez"), step)

    def write_frame(self, frame: Frame):
        """Store a frame published by the scheduler under its channel, keyed by tick."""
        self._store(frame.channel.value, frame.field, frame.tick)

    def finalize(self, runtime: float | None = None, **extra_metadata):
        """Store run totals and the final material maps, then close.

        Calling it again after the file is closed does nothing.

        Args:
            runtime: Wall-clock runtime in seconds
            **extra_metadata: Extra attributes for /metadata
        """
        if self._closed:
            return
        solver = self.solver

        self.file["simulation"].attrs.update(
            {"num_steps": solver.step_count, "total_time": solver.time}
        )

        materials = self.file.create_group("materials")
        materials.create_dataset(
            "material", data=solver.get_field("material").astype(np.uint8), **self._filter
        )
        materials.create_dataset("dielectric", data=solver.get_dielectric(), **self._filter)

        meta = self.file["metadata"].attrs
        if runtime is not None:
            meta["total_runtime_seconds"] = runtime
        meta.update(extra_metadata)

        self.file.close()
        self._closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.finalize()


class HDF5FrameReader:
    """Read access to files written by HDF5FrameWriter.

    Example:
        >>> with HDF5FrameReader("results.h5") as reader:
        ...     ez = reader.load_frame(0)
        ...     trace = reader.load_probe("center")
    """

    def __init__(self, filename: str | Path):
        self.filename = Path(filename)
        self.file = h5py.File(self.filename, "r")

    def _read(self, path: str) -> NDArray | None:
        return self.file[path][()] if path in self.file else None

    def get_metadata(self) -> dict[str, Any]:
        """Attributes of every header group, plus per-probe attributes under "probes"."""
        metadata = {
            group: dict(self.file[group].attrs)
            for group in ("metadata", "grid", "simulation", "coefficients")
            if group in self.file
        }
        if "probes" in self.file:
            metadata["probes"] = {
                name: dict(series.attrs) for name, series in self.file["probes"].items()
            }
        return metadata

    def get_channels(self) -> list[str]:
        """Channels with stored frames."""
        fields = self.file.get("fields", {})
        return [name for name in fields if not name.endswith("_steps")]

    def get_num_frames(self, channel: str = "ez") -> int:
        path = f"fields/{channel}"
        return self.file[path].shape[0] if path in self.file else 0

    def load_frame(self, index: int, channel: str = "ez") -> NDArray[np.floating]:
        """One stored (nx, ny) frame of a channel.

        Raises:
            ValueError: If the channel was never written
        """
        path = f"fields/{channel}"
        if path not in self.file:
            raise ValueError(f"No '{channel}' frames in file")
        return self.file[path][index]

    def frame_steps(self, channel: str = "ez") -> NDArray[np.int64]:
        """Step (or tick) number of every stored frame."""
        steps = self._read(f"fields/{channel}_steps")
        return np.zeros(0, dtype=np.int64) if steps is None else steps

    def load_probe(self, probe_name: str) -> NDArray[np.floating]:
        """Ez time series of a probe.

        Raises:
            KeyError: If no probe of that name was recorded
        """
        series = self._read(f"probes/{probe_name}")
        if series is None:
            raise KeyError(
                f"Probe '{probe_name}' not found. Available: {self.get_probe_names()}"
            )
        return series

    def get_probe_names(self) -> list[str]:
        return list(self.file["probes"]) if "probes" in self.file else []

    def load_material(self) -> NDArray[np.uint8] | None:
        """Material flag map (1 = vacuum, 0 = PEC), or None if absent."""
        return self._read("materials/material")

    def load_dielectric(self) -> NDArray[np.floating] | None:
        """Relative permittivity map, or None if absent."""
        return self._read("materials/dielectric")

    def close(self):
        if self.file:
            self.file.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
