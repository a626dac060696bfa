"""Terminal display for headless radio-fdtd runs.

The live display is a single rich progress row per run:

    ⠋ Ticking ━━━━━━━━━━━━━━  42%  0:00:03 • 0:00:04   38.2 tick/s | 5.0 Mcells/s | peak |ez| 1.2e-02 | 0.21 GB

Ticks drive the bar; each tick is STEPS_PER_TICK leapfrog steps, which is
what the throughput figure counts.
"""

import time
from typing import TYPE_CHECKING

import numpy as np
import psutil
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)
from rich.table import Table

if TYPE_CHECKING:
    from radio_fdtd.core.scheduler import Frame
    from radio_fdtd.core.solver import TMSolver


STEPS_PER_TICK = 2


def format_time(seconds: float) -> str:
    """Format a duration as "5s", "1m 23s" or "2h 15m"."""
    minutes, secs = divmod(int(round(seconds)), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes:02d}m"
    if minutes:
        return f"{minutes}m {secs:02d}s"
    return f"{secs}s"


class SimulationProgress:
    """Live progress row for a run of scheduler ticks.

    Besides the bar it reports tick rate, cell-update throughput, the peak
    magnitude of the last published frame and resident memory from psutil.

    Example:
        >>> with SimulationProgress(console, solver, num_ticks) as progress:
        ...     for tick in range(num_ticks):
        ...         progress.update(tick, scheduler.tick(0.0))
    """

    def __init__(
        self, console: Console, solver: "TMSolver", num_ticks: int, update_interval: float = 0.1
    ):
        """Create and start the display.

        Args:
            console: Rich console to render on
            solver: Solver being driven, for grid size
            num_ticks: Total number of ticks in the run
            update_interval: Minimum seconds between refreshes
        """
        self.solver = solver
        self.num_ticks = num_ticks
        self.update_interval = update_interval

        self._process = psutil.Process()
        self._started = time.perf_counter()
        self._last_refresh = float("-inf")
        self._finished = False
        self.peak_rss_gb = 0.0

        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]Ticking"),
            BarColumn(),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            TextColumn("•"),
            TimeRemainingColumn(),
            TextColumn("[dim]{task.fields[stats]}"),
            console=console,
        )
        self.task = self.progress.add_task("ticks", total=num_ticks, stats="")
        self.progress.start()

    def _stats(self, ticks_done: int, frame: "Frame | None") -> str:
        elapsed = max(time.perf_counter() - self._started, 1e-9)
        cells = ticks_done * STEPS_PER_TICK * self.solver.grid.num_cells
        rss_gb = self._process.memory_info().rss / (1024**3)
        self.peak_rss_gb = max(self.peak_rss_gb, rss_gb)

        parts = [f"{ticks_done / elapsed:.1f} tick/s", f"{cells / elapsed / 1e6:.1f} Mcells/s"]
        if frame is not None:
            peak = float(np.abs(frame.field).max())
            parts.append(f"peak |{frame.channel.value}| {peak:.1e}")
        parts.append(f"{rss_gb:.2f} GB")
        return " | ".join(parts)

    def update(self, tick: int, frame: "Frame | None" = None):
        """Advance the bar to tick + 1, refreshing at most every update_interval.

        The final tick always refreshes so the bar ends at 100%.
        """
        now = time.perf_counter()
        last_tick = tick + 1 >= self.num_ticks
        if now - self._last_refresh < self.update_interval and not last_tick:
            return
        self.progress.update(self.task, completed=tick + 1, stats=self._stats(tick + 1, frame))
        self._last_refresh = now

    def finish(self):
        """Stop the live display; later calls do nothing."""
        if not self._finished:
            self.progress.stop()
            self._finished = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.finish()


def print_simulation_info(console: Console, solver: "TMSolver", output_path, num_ticks: int):
    """Print a two-column table of run parameters.

    Args:
        console: Rich console
        solver: Configured solver
        output_path: HDF5 output path, or None
        num_ticks: Ticks the run will take
    """
    config = solver.config
    nx, ny = solver.shape
    num_steps = num_ticks * STEPS_PER_TICK

    rows = [
        ("Grid", f"{nx} × {ny} ({solver.grid.num_cells / 1e3:.1f}k cells)"),
        ("Cell size", f"{solver.dx * 1e3:.2f} mm ({config.cells_per_wavelength:g} per λ)"),
        ("Frequency", f"{config.frequency / 1e9:.3g} GHz"),
        ("Timestep", f"{solver.dt:.2e} s (Courant {config.courant:g})"),
        ("Duration", f"{num_ticks} ticks = {num_steps} steps ({num_steps * solver.dt:.2e} s)"),
        ("Boundary", f"Mur order {solver.boundary.order}"),
        ("Loss factor", f"{config.loss_factor:g} per E step"),
        ("Backend", solver.backend.name),
        ("Buffers", f"{solver.memory_usage_mb():.1f} MB"),
        ("Output", str(output_path) if output_path else "none"),
    ]

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Parameter", style="cyan")
    table.add_column("Value")
    for name, value in rows:
        table.add_row(name, value)

    console.print(table)
    console.print()
