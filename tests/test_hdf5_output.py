"""Tests for HDF5 output format."""

import h5py
import numpy as np
import pytest

from radio_fdtd import MaterialProperty, OutputChannel, Rectangle, SimulationConfig, StepScheduler, TMSolver
from radio_fdtd.io import HDF5FrameReader, HDF5FrameWriter


@pytest.fixture
def solver():
    solver = TMSolver(SimulationConfig(shape=(16, 16), backend="python"))
    solver.add_probe("center", (8, 8))
    solver.sources.update_persistent_map((8, 8), radius=1.5, amplitude=0.5)
    solver.sources.apply_to_field(1.0)
    return solver


def test_hdf5_writer_basic(solver, tmp_path):
    """Test basic HDF5 writer functionality."""
    output_path = tmp_path / "run.h5"
    writer = HDF5FrameWriter(output_path, solver)

    for step in range(10):
        solver.step()
        writer.write_timestep(step, save_frame=(step % 5 == 0))

    writer.finalize(runtime=1.5)

    assert output_path.exists()

    with h5py.File(output_path, "r") as f:
        for group in ("metadata", "grid", "simulation", "coefficients", "probes", "fields"):
            assert group in f

        assert list(f["grid"].attrs["shape"]) == [16, 16]
        assert f["grid"].attrs["resolution"] == pytest.approx(solver.dx)
        assert f["simulation"].attrs["boundary_order"] == 2
        assert f["simulation"].attrs["num_steps"] == 10
        assert f["coefficients"].attrs["mur1"] == pytest.approx(-1 / 3)
        assert f["metadata"].attrs["total_runtime_seconds"] == pytest.approx(1.5)

        assert "position" in f["probes/center"].attrs
        assert f["probes/center"].shape == (10,)
        assert f["fields/ez"].shape == (2, 16, 16)
        assert list(f["fields/ez_steps"][:]) == [0, 5]


def test_hdf5_reader(solver, tmp_path):
    """Test HDF5 reader functionality."""
    output_path = tmp_path / "run.h5"
    solver.geometry.write_region(Rectangle(0, 2, 0, 2), MaterialProperty.PEC, 0.0)
    solver.geometry.write_region(Rectangle(10, 12, 10, 12), MaterialProperty.DIELECTRIC, 2.5)
    solver.run(20, output_file=str(output_path), snapshot_interval=10)

    with HDF5FrameReader(output_path) as reader:
        metadata = reader.get_metadata()
        assert metadata["grid"]["shape"].tolist() == [16, 16]
        assert "center" in metadata["probes"]

        assert reader.get_probe_names() == ["center"]
        probe = reader.load_probe("center")
        np.testing.assert_allclose(probe, solver.get_probe_data("center")["center"])

        assert reader.get_channels() == ["ez"]
        assert reader.get_num_frames() == 2
        assert reader.load_frame(0).shape == (16, 16)
        assert list(reader.frame_steps()) == [0, 10]

        material = reader.load_material()
        assert material.dtype == np.uint8
        assert material[1, 1] == 0
        assert material[8, 8] == 1
        assert reader.load_dielectric()[11, 11] == pytest.approx(2.5)


def test_reader_missing_probe(solver, tmp_path):
    output_path = tmp_path / "run.h5"
    solver.run(2, output_file=str(output_path))

    with HDF5FrameReader(output_path) as reader:
        with pytest.raises(KeyError, match="Available"):
            reader.load_probe("missing")
        with pytest.raises(ValueError):
            reader.load_frame(0, channel="hx")
        assert reader.get_num_frames("hx") == 0
        assert len(reader.frame_steps("hx")) == 0


def test_write_scheduler_frames(tmp_path):
    """Frames published by the scheduler are stored under their channel."""
    scheduler = StepScheduler(config=SimulationConfig(shape=(16, 16), backend="python"))
    scheduler.set_source(position=(0.0, 0.0), amplitude=0.5)
    scheduler.set_source_enabled(True)
    scheduler.set_channel(OutputChannel.HY)
    scheduler.start()

    output_path = tmp_path / "frames.h5"
    with HDF5FrameWriter(output_path, scheduler.solver) as writer:
        for _ in range(3):
            writer.write_frame(scheduler.tick(0.01))

    with HDF5FrameReader(output_path) as reader:
        assert reader.get_channels() == ["hy"]
        assert reader.get_num_frames("hy") == 3
        assert list(reader.frame_steps("hy")) == [1, 2, 3]
        np.testing.assert_allclose(reader.load_frame(2, "hy"), scheduler.last_frame.field)


def test_finalize_is_idempotent(solver, tmp_path):
    writer = HDF5FrameWriter(tmp_path / "run.h5", solver)
    writer.finalize()
    writer.finalize()
    assert writer._closed


def test_uncompressed_output(solver, tmp_path):
    output_path = tmp_path / "raw.h5"
    writer = HDF5FrameWriter(output_path, solver, compression=None)
    solver.step()
    writer.write_timestep(0, save_frame=True)
    writer.finalize()

    with h5py.File(output_path, "r") as f:
        assert f["fields/ez"].compression is None


def test_failed_setup_closes_file(solver, tmp_path, monkeypatch):
    def broken(self):
        raise RuntimeError("cannot create probe series")

    monkeypatch.setattr(HDF5FrameWriter, "_create_probe_series", broken)
    output_path = tmp_path / "broken.h5"
    with pytest.raises(RuntimeError, match="probe series"):
        HDF5FrameWriter(output_path, solver)

    # a file still held open by the failed writer could not be truncated
    with h5py.File(output_path, "w") as f:
        assert "grid" not in f
