"""Command-line tool for headless solver runs.

The radio-fdtd CLI builds a scenario from options (grid, source, PEC and
dielectric regions), drives it through the step scheduler with a progress
display, and optionally stores published frames and probe series in HDF5.
"""

import sys
import time
from pathlib import Path

import click
from rich.console import Console

from radio_fdtd.core.config import SimulationConfig
from radio_fdtd.core.scheduler import OutputChannel, StepScheduler
from radio_fdtd.core.solver import TMSolver
from radio_fdtd.errors import RadioFDTDError
from radio_fdtd.geometry import Circle, MaterialProperty, Rectangle

from .progress import SimulationProgress, format_time, print_simulation_info

console = Console()


def build_scheduler(
    size: int,
    frequency: float,
    courant: float,
    boundary_order: int,
    backend: str,
    source: tuple[float, float] | None,
    amplitude: float,
    persist: bool,
    pec_rects: tuple[tuple[int, int, int, int], ...],
    obstacles: tuple[tuple[float, float, float], ...],
    dielectrics: tuple[tuple[float, float, float, float], ...],
    channel: str,
    probes: tuple[tuple[str, int, int], ...],
) -> StepScheduler:
    """Create a scheduler with the requested geometry, source and probes."""
    config = SimulationConfig(
        shape=(size, size),
        frequency=frequency,
        courant=courant,
        boundary_order=boundary_order,
        source_amplitude=amplitude,
        backend=backend,
    )
    solver = TMSolver(config)
    scheduler = StepScheduler(solver=solver)
    grid = solver.grid

    for xmin, xmax, ymin, ymax in pec_rects:
        solver.geometry.write_region(Rectangle(xmin, xmax, ymin, ymax), MaterialProperty.PEC, 0.0)
    for x, y, r in obstacles:
        circle = Circle(grid.scene_to_cell((x, y)), grid.scene_radius_to_cells(r))
        solver.geometry.write_region(circle, MaterialProperty.PEC, 0.0)
    for x, y, r, eps in dielectrics:
        circle = Circle(grid.scene_to_cell((x, y)), grid.scene_radius_to_cells(r))
        solver.geometry.write_region(circle, MaterialProperty.DIELECTRIC, eps)

    for name, i, j in probes:
        solver.add_probe(name, (i, j))

    if source is not None:
        scheduler.set_source(position=source, amplitude=amplitude)
        scheduler.set_persistence(persist)
        scheduler.set_source_enabled(True)

    scheduler.set_channel(OutputChannel(channel))
    return scheduler


@click.command()
@click.option("--size", "-n", type=click.IntRange(min=8), default=256, show_default=True,
              help="Grid size in cells along each axis")
@click.option("--ticks", type=click.IntRange(min=1), default=200, show_default=True,
              help="Number of scheduler ticks (two leapfrog steps each)")
@click.option("--frequency", type=float, default=1e9, show_default=True,
              help="Excitation frequency in Hz")
@click.option("--courant", type=float, default=1.0, show_default=True,
              help="Courant number 2·c·dt/dx, 0 < C <= 1")
@click.option("--boundary-order", type=click.Choice(["1", "2"]), default="2", show_default=True,
              help="Mur absorbing boundary order")
@click.option("--source", type=(float, float), default=None,
              help="Source position in scene coordinates [-1, 1]")
@click.option("--amplitude", type=float, default=0.1, show_default=True,
              help="Source amplitude")
@click.option("--persist", is_flag=True, help="Keep earlier source positions in the map")
@click.option("--pec-rect", "pec_rects", type=(int, int, int, int), multiple=True,
              help="PEC rectangle XMIN XMAX YMIN YMAX in cells (inclusive)")
@click.option("--obstacle", "obstacles", type=(float, float, float), multiple=True,
              help="PEC disc X Y RADIUS in scene coordinates")
@click.option("--dielectric", "dielectrics", type=(float, float, float, float), multiple=True,
              help="Dielectric disc X Y RADIUS EPSILON in scene coordinates")
@click.option("--probe", "probes", type=(str, int, int), multiple=True,
              help="Ez probe NAME I J")
@click.option("--channel", type=click.Choice(["ez", "hx", "hy"]), default="ez", show_default=True,
              help="Published output channel")
@click.option("--output", "-o", type=click.Path(path_type=Path),
              help="HDF5 output file (default: no file)")
@click.option("--snapshot-interval", type=click.IntRange(min=1),
              help="Store the published frame every N ticks")
@click.option("--backend", type=click.Choice(["auto", "gpu", "python"]), default="auto",
              show_default=True, help="Array backend")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output with debug info")
@click.option("--dry-run", is_flag=True, help="Build the scenario without stepping")
@click.version_option(version="0.1.0", prog_name="radio-fdtd")
def main(
    size: int,
    ticks: int,
    frequency: float,
    courant: float,
    boundary_order: str,
    source: tuple[float, float] | None,
    amplitude: float,
    persist: bool,
    pec_rects: tuple,
    obstacles: tuple,
    dielectrics: tuple,
    probes: tuple,
    channel: str,
    output: Path | None,
    snapshot_interval: int | None,
    backend: str,
    verbose: bool,
    dry_run: bool,
):
    """Run a headless 2D TM-mode FDTD scenario.

    Example:

    \b
        radio-fdtd --size 128 --ticks 300 --source 0.0 0.0 \\
            --obstacle 0.4 0.0 0.1 --probe center 64 64 -o run.h5
    """
    console.print("\n[bold]Radio FDTD run[/bold]", style="blue")
    console.print("─" * 60)

    try:
        scheduler = build_scheduler(
            size=size,
            frequency=frequency,
            courant=courant,
            boundary_order=int(boundary_order),
            backend=backend,
            source=source,
            amplitude=amplitude,
            persist=persist,
            pec_rects=pec_rects,
            obstacles=obstacles,
            dielectrics=dielectrics,
            channel=channel,
            probes=probes,
        )
    except (ValueError, RadioFDTDError) as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            console.print_exception()
        sys.exit(1)

    solver = scheduler.solver
    print_simulation_info(console, solver, output, ticks)

    if dry_run:
        console.print("[yellow]Dry run - simulation not executed[/yellow]")
        return

    writer = None
    if output is not None:
        from radio_fdtd.io import HDF5FrameWriter

        writer = HDF5FrameWriter(output, solver)

    start_time = time.time()
    progress = SimulationProgress(console, solver, ticks)
    solver.enable_energy_tracking(sample_interval=max(1, ticks // 50))
    scheduler.start()

    try:
        for tick in range(ticks):
            frame = scheduler.tick(0.0)
            if writer is not None:
                writer.write_timestep(solver.step_count - 1)
                if snapshot_interval and tick % snapshot_interval == 0:
                    writer.write_frame(frame)
            progress.update(tick, frame)
    except KeyboardInterrupt:
        progress.finish()
        console.print("\n[yellow]Interrupted by user[/yellow]")
        if writer is not None:
            writer.finalize(runtime=time.time() - start_time, backend=solver.backend.name)
        sys.exit(130)
    except Exception as e:
        progress.finish()
        console.print(f"\n[bold red]Simulation Error:[/bold red] {e}")
        if verbose:
            console.print_exception()
        if writer is not None:
            writer.finalize(runtime=time.time() - start_time, backend=solver.backend.name)
        sys.exit(1)
    finally:
        progress.finish()

    runtime = time.time() - start_time
    if writer is not None:
        writer.finalize(runtime=runtime, backend=solver.backend.name, ticks=ticks)

    console.print("─" * 60)
    console.print("✓ [bold green]Run complete![/bold green]")
    if output is not None:
        if output.exists():
            console.print(f"  Output: {output} ({output.stat().st_size / 1e6:.1f} MB)")
        else:
            console.print(f"  Output: {output}")
    console.print(f"  Runtime: {format_time(runtime)}")
    if runtime > 0:
        throughput = solver.step_count * solver.grid.num_cells / runtime / 1e6
        console.print(f"  Average throughput: {throughput:.1f} Mcells/s")
    report = solver.energy_report()
    console.print(
        f"  Final energy: {report['final_energy']:.3e} J/m "
        f"(peak {report['max_energy']:.3e}, {report['conservation_status']})"
    )

    if verbose:
        peak = float(abs(scheduler.last_frame.field).max()) if scheduler.last_frame else 0.0
        console.print(f"  Peak |{channel}|: {peak:.3e}")
        console.print("\n[dim]Results can be analyzed with HDF5 tools (h5py, HDFView)[/dim]")


if __name__ == "__main__":
    main()
