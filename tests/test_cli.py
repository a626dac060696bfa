"""Tests for the radio-fdtd command-line tool."""

import h5py
import numpy as np
import pytest
from click.testing import CliRunner

from radio_fdtd.cli.progress import format_time
from radio_fdtd.cli.run import build_scheduler, main


@pytest.fixture
def runner():
    return CliRunner()


def test_format_time():
    assert format_time(5) == "5s"
    assert format_time(83) == "1m 23s"
    assert format_time(8100) == "2h 15m"


def test_dry_run(runner):
    result = runner.invoke(main, ["--size", "16", "--backend", "python", "--dry-run"])
    assert result.exit_code == 0, result.output
    assert "Dry run" in result.output
    assert "16 × 16" in result.output


def test_small_run_with_output(runner, tmp_path):
    output = tmp_path / "run.h5"
    result = runner.invoke(
        main,
        [
            "--size", "24",
            "--ticks", "6",
            "--backend", "python",
            "--source", "0.0", "0.0",
            "--amplitude", "0.5",
            "--pec-rect", "0", "3", "0", "23",
            "--probe", "mid", "12", "12",
            "--snapshot-interval", "2",
            "-o", str(output),
        ],
    )
    assert result.exit_code == 0, result.output
    assert "Run complete" in result.output
    assert output.exists()

    with h5py.File(output, "r") as f:
        assert f["probes/mid"].shape == (12,)
        assert f["fields/ez"].shape[0] == 3
        assert f["simulation"].attrs["num_steps"] == 12
        assert np.all(f["materials/material"][0:4, :] == 0)
        assert f["metadata"].attrs["ticks"] == 6


def test_invalid_courant_exits_with_error(runner):
    result = runner.invoke(main, ["--size", "16", "--courant", "1.5", "--backend", "python"])
    assert result.exit_code == 1
    assert "Courant" in result.output


def test_invalid_boundary_order_rejected(runner):
    result = runner.invoke(main, ["--boundary-order", "3", "--dry-run"])
    assert result.exit_code != 0


def test_version(runner):
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output


def test_build_scheduler_geometry():
    scheduler = build_scheduler(
        size=32,
        frequency=1e9,
        courant=1.0,
        boundary_order=1,
        backend="python",
        source=(0.5, 0.5),
        amplitude=0.3,
        persist=True,
        pec_rects=((0, 1, 0, 1),),
        obstacles=((0.0, 0.0, 0.1),),
        dielectrics=((-0.5, -0.5, 0.1, 4.0),),
        channel="hx",
        probes=(("p", 5, 5),),
    )
    solver = scheduler.solver
    material = solver.get_field("material")
    eps = solver.get_dielectric()
    center = tuple(round(v) for v in solver.grid.scene_to_cell((0.0, 0.0)))
    corner = tuple(round(v) for v in solver.grid.scene_to_cell((-0.5, -0.5)))

    assert material[0, 0] == 0.0
    assert material[center] == 0.0
    assert eps[corner] == pytest.approx(4.0)
    assert scheduler.source_enabled
    assert scheduler.persist
    assert scheduler.source_amplitude == pytest.approx(0.3)
    assert scheduler.channel.value == "hx"
    assert "p" in solver.probes
    assert solver.boundary.order == 1
