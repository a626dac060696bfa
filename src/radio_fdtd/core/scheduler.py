"""
Per-tick orchestration for interactive use.

A tick is one display frame. While stepping it runs, in order:

    1. repaint both tracked obstacles (when writing is enabled)
    1b. advance an active join
    2. advance the global source phase
    3. update the source map and inject it (when the source is on)
    4-6. H update, E update (+ boundary), history capture, twice
    7. publish the selected output channel with its surface normals

Obstacles and the interactive source are positioned in normalized scene
coordinates spanning [-1, 1] on both axes; the scheduler converts them to
cells before handing them to the geometry editor and the source injector.

States:
    IDLE      nothing has happened since construction or reset
    EDITING   ticks apply edits and publish frames, fields do not advance
    STEPPING  full ticks
    PAUSED    ticks are ignored; step_once() runs exactly one full tick

Example:
    >>> scheduler = StepScheduler(config=SimulationConfig(shape=(128, 128)))
    >>> scheduler.set_source_enabled(True)
    >>> scheduler.start()
    >>> frame = scheduler.tick(1 / 60)
    >>> frame.field.shape, frame.normals.shape
    ((128, 128), (128, 128, 3))
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

import numpy as np
from numpy.typing import NDArray

from radio_fdtd.core.config import (
    IMPEDANCE_FREE_SPACE,
    MAX_PHASE_INCREMENT,
    MAX_SOURCE_AMPLITUDE,
    MIN_PHASE_INCREMENT,
    MIN_SOURCE_AMPLITUDE,
    SimulationConfig,
)
from radio_fdtd.core.solver import TMSolver
from radio_fdtd.geometry import PEC, VACUUM, MaterialProperty

# Scene-space sizes
MIN_SCENE_RADIUS = 0.001
DEFAULT_OBSTACLE_RADIUS = 0.125
SOURCE_SCENE_RADIUS = 0.02
LINE_SOURCE_SCENE_RADIUS = 0.02

# Join walk
JOIN_STEP_FRACTION = 0.4
JOIN_SNAP_DISTANCE = 0.1
JOIN_END_DISTANCE = 0.005

# Dielectric values painted by the two obstacles
DIELECTRIC_OBSTACLE_1 = 1.0
DIELECTRIC_OBSTACLE_2 = 3.0


class SchedulerState(Enum):
    IDLE = "idle"
    EDITING = "editing"
    STEPPING = "stepping"
    PAUSED = "paused"


class MaterialMode(Enum):
    """What the tracked obstacles write when writing is enabled."""

    PEC = "pec"
    DIELECTRIC = "dielectric"
    LINE_SOURCE = "line_source"


class OutputChannel(Enum):
    E = "ez"
    HX = "hx"
    HY = "hy"


@dataclass
class Obstacle:
    """A tracked sphere in scene coordinates.

    The painted position is the one used for the last repaint, so the next
    repaint covers the union of where the obstacle was and where it is.
    """

    center: tuple[float, float]
    radius: float = DEFAULT_OBSTACLE_RADIUS
    painted_center: tuple[float, float] | None = None
    painted_radius: float | None = None

    def __post_init__(self):
        self.radius = max(float(self.radius), MIN_SCENE_RADIUS)
        self.center = _clamp_center(self.center, self.radius)
        if self.painted_center is None:
            self.painted_center = self.center
        if self.painted_radius is None:
            self.painted_radius = self.radius

    def mark_painted(self) -> None:
        self.painted_center = self.center
        self.painted_radius = self.radius


@dataclass(frozen=True)
class Frame:
    """Published output of one tick.

    Attributes:
        field: Read-only (nx, ny) array of the selected channel
        normals: (nx, ny, 3) unit surface normals of the field as a height map
        channel: Which channel was published
        tick: Number of full ticks completed
        phase: Global source phase after the tick
    """

    field: NDArray[np.float32]
    normals: NDArray[np.float32]
    channel: OutputChannel
    tick: int
    phase: float


def _clamp_center(center: tuple[float, float], radius: float) -> tuple[float, float]:
    limit = max(0.0, 1.0 - radius)
    return (
        min(max(float(center[0]), -limit), limit),
        min(max(float(center[1]), -limit), limit),
    )


def compute_normals(height: NDArray[np.floating]) -> NDArray[np.float32]:
    """Unit normals of a scalar field viewed as a height map.

    normal = normalize(cross((0, h(x, y+1) - h, δ), (δ, h(x+1, y) - h, 0)))

    with δ = 1/nx. Differences past the last row or column are zero.

    Args:
        height: (nx, ny) array

    Returns:
        (nx, ny, 3) float32 array
    """
    h = np.asarray(height, dtype=np.float64)
    delta = 1.0 / h.shape[0]

    a = np.zeros_like(h)
    a[:, :-1] = h[:, 1:] - h[:, :-1]
    b = np.zeros_like(h)
    b[:-1, :] = h[1:, :] - h[:-1, :]

    normals = np.stack(
        [-delta * b, np.full_like(h, delta * delta), -a * delta],
        axis=-1,
    )
    normals /= np.linalg.norm(normals, axis=-1, keepdims=True)
    return normals.astype(np.float32)


class StepScheduler:
    """Sequences edits, source injection and field updates once per tick.

    Args:
        solver: Solver to drive (default: a new TMSolver built from config)
        config: Configuration used when no solver is given

    Raises:
        ValueError: If both solver and config are given
    """

    def __init__(self, solver: TMSolver | None = None, config: SimulationConfig | None = None):
        if solver is not None and config is not None:
            raise ValueError("Provide either a solver or a config, not both")
        self.solver = solver if solver is not None else TMSolver(config)
        self.config = self.solver.config
        self.grid = self.solver.grid

        self.state = SchedulerState.IDLE
        self.write_enabled = False
        self.mode = MaterialMode.PEC
        self.channel = OutputChannel.E

        self.obstacles = self._default_obstacles()

        self.source_enabled = False
        self.source_position: tuple[float, float] = (0.8, 0.8)
        self.source_amplitude = self.config.source_amplitude
        self.persist = self.config.persist_default > 0.0
        self.line_source_active = False

        self.phase = 0.0
        self.phase_increment = self.config.phase_increment
        if self.phase_increment is None:
            self.phase_increment = self.config.default_phase_increment()
        self.phase_increment = self._clamp_phase_increment(self.phase_increment)

        self._join_active = False
        self._join_moves_second = True
        self._tick_count = 0
        self._skipped_ticks = 0
        self.last_frame: Frame | None = None

    @staticmethod
    def _default_obstacles() -> list[Obstacle]:
        return [Obstacle(center=(-0.4, 0.2)), Obstacle(center=(0.4, 0.2))]

    @staticmethod
    def _clamp_phase_increment(value: float) -> float:
        return min(max(float(value), MIN_PHASE_INCREMENT), MAX_PHASE_INCREMENT)

    @property
    def tick_count(self) -> int:
        """Number of full ticks completed since the last reset."""
        return self._tick_count

    @property
    def skipped_ticks(self) -> int:
        return self._skipped_ticks

    @property
    def join_active(self) -> bool:
        return self._join_active

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin stepping from IDLE, EDITING or PAUSED."""
        self.state = SchedulerState.STEPPING

    def pause(self) -> None:
        if self.state in (SchedulerState.IDLE, SchedulerState.EDITING):
            raise RuntimeError(f"Cannot pause while {self.state.name}; call start() first")
        self.state = SchedulerState.PAUSED

    def resume(self) -> None:
        if self.state is not SchedulerState.PAUSED:
            raise RuntimeError(f"Cannot resume while {self.state.name}; scheduler is not paused")
        self.state = SchedulerState.STEPPING

    def edit(self) -> None:
        """Stop advancing the fields but keep applying edits each tick."""
        self.state = SchedulerState.EDITING

    def enable_write(self) -> None:
        """Let the tracked obstacles paint the grid.

        In LINE_SOURCE mode this instead lays a line of persistent sources
        between the two obstacles and switches persistence on, so the line
        survives later source updates. The line radiates on every stepping
        tick, whether or not the interactive source is enabled.
        """
        self.write_enabled = True
        if self.state is SchedulerState.IDLE:
            self.state = SchedulerState.EDITING
        if self.mode is MaterialMode.LINE_SOURCE:
            self._lay_line_source()

    def disable_write(self) -> None:
        self.write_enabled = False

    def toggle_write(self) -> bool:
        if self.write_enabled:
            self.disable_write()
        else:
            self.enable_write()
        return self.write_enabled

    # ------------------------------------------------------------------
    # Interaction inputs
    # ------------------------------------------------------------------

    def set_mode(self, mode: MaterialMode) -> None:
        self.mode = MaterialMode(mode)

    def set_channel(self, channel: OutputChannel) -> None:
        self.channel = OutputChannel(channel)

    def set_obstacle(
        self,
        index: int,
        center: tuple[float, float] | None = None,
        radius: float | None = None,
    ) -> Obstacle:
        """Move or resize one of the two tracked obstacles.

        Radii are clamped to MIN_SCENE_RADIUS and centres to keep the sphere
        inside the domain. The grid is repainted on the next tick.
        """
        obstacle = self.obstacles[index]
        if radius is not None:
            obstacle.radius = max(float(radius), MIN_SCENE_RADIUS)
        if center is not None:
            obstacle.center = center
        obstacle.center = _clamp_center(obstacle.center, obstacle.radius)
        return obstacle

    def reset_obstacles(self) -> None:
        """Return both obstacles to their default size, keeping their positions."""
        for index in range(len(self.obstacles)):
            self.set_obstacle(index, radius=DEFAULT_OBSTACLE_RADIUS)

    def set_source(self, position: tuple[float, float] | None = None, amplitude: float | None = None) -> None:
        """Move the interactive source or change its amplitude."""
        if position is not None:
            self.source_position = _clamp_center(position, 0.0)
        if amplitude is not None:
            self.source_amplitude = min(
                max(float(amplitude), MIN_SOURCE_AMPLITUDE), MAX_SOURCE_AMPLITUDE
            )

    def set_source_enabled(self, enabled: bool) -> None:
        """Switch the source; switching on restarts the phase at zero."""
        if enabled and not self.source_enabled:
            self.phase = 0.0
        self.source_enabled = bool(enabled)

    def toggle_source(self) -> bool:
        self.set_source_enabled(not self.source_enabled)
        return self.source_enabled

    def set_persistence(self, persist: bool) -> None:
        self.persist = bool(persist)

    def set_phase_increment(self, value: float) -> float:
        self.phase_increment = self._clamp_phase_increment(value)
        return self.phase_increment

    def join(self, move_second: bool = True) -> None:
        """Walk one obstacle toward the other over the following ticks.

        Args:
            move_second: Move obstacle 2 toward obstacle 1 (default), or
                obstacle 1 toward obstacle 2
        """
        self._join_active = True
        self._join_moves_second = move_second

    def cancel_join(self) -> None:
        self._join_active = False

    def clear_sources(self) -> None:
        """Remove every source from the map."""
        self.solver.sources.clear()
        self.line_source_active = False

    def clear_geometry(self) -> None:
        """Disable writing and restore vacuum everywhere."""
        self.disable_write()
        self.solver.geometry.initialize_to_vacuum()

    def reset_fields(self) -> None:
        """Zero the fields and history, keeping geometry and sources."""
        self.solver.reset_fields()

    def reset(self) -> None:
        """Clear fields, history, sources and geometry; back to IDLE.

        Calling it twice leaves the same state as calling it once.
        """
        self.solver.reset()
        self.write_enabled = False
        self.line_source_active = False
        self._join_active = False
        self.phase = 0.0
        self._tick_count = 0
        self.last_frame = None
        for obstacle in self.obstacles:
            obstacle.mark_painted()
        self.state = SchedulerState.IDLE

    # ------------------------------------------------------------------
    # Ticking
    # ------------------------------------------------------------------

    def tick(self, elapsed: float) -> Frame | None:
        """Process one display frame.

        Args:
            elapsed: Wall-clock seconds since the previous frame

        Returns:
            The published Frame, or None when nothing was published (IDLE,
            PAUSED, or the tick was skipped for an oversized interval)
        """
        if elapsed > self.config.max_tick_seconds:
            self._skipped_ticks += 1
            return None
        if self.state is SchedulerState.STEPPING:
            return self._run_tick()
        if self.state is SchedulerState.EDITING:
            self._apply_edits()
            return self._publish()
        return None

    def step_once(self) -> Frame:
        """Pause and run exactly one full tick."""
        self.state = SchedulerState.PAUSED
        return self._run_tick()

    def _run_tick(self) -> Frame:
        self._apply_edits()

        self.phase += self.phase_increment
        if self.source_enabled:
            cx, cy = self.grid.scene_to_cell(self.source_position)
            self.solver.sources.update_persistent_map(
                (cx, cy),
                self.grid.scene_radius_to_cells(SOURCE_SCENE_RADIUS),
                self.source_amplitude,
                phase_offset=0.0,
                persist_factor=1.0 if self.persist else 0.0,
            )
        if self.source_enabled or self.line_source_active:
            self.solver.sources.apply_to_field(self.phase)

        self.solver.step()
        self.solver.step()

        self._tick_count += 1
        return self._publish()

    def _apply_edits(self) -> None:
        if self.write_enabled and self.mode is not MaterialMode.LINE_SOURCE:
            if self.mode is MaterialMode.PEC:
                prop = MaterialProperty.PEC
                values = (VACUUM, PEC)
            else:
                prop = MaterialProperty.DIELECTRIC
                values = (DIELECTRIC_OBSTACLE_1, DIELECTRIC_OBSTACLE_2)
            for obstacle, value in zip(self.obstacles, values):
                self.solver.geometry.move_obstacle(
                    self.grid.scene_to_cell(obstacle.painted_center),
                    self.grid.scene_to_cell(obstacle.center),
                    self.grid.scene_radius_to_cells(obstacle.painted_radius),
                    self.grid.scene_radius_to_cells(obstacle.radius),
                    paint_value=value,
                    prop=prop,
                )

        for obstacle in self.obstacles:
            obstacle.mark_painted()

        if self._join_active and self.mode is not MaterialMode.LINE_SOURCE:
            self._advance_join()

    def _advance_join(self) -> None:
        if self._join_moves_second:
            mover, target = self.obstacles[1], self.obstacles[0]
        else:
            mover, target = self.obstacles[0], self.obstacles[1]

        dx = target.center[0] - mover.center[0]
        dy = target.center[1] - mover.center[1]
        distance = math.hypot(dx, dy)
        if distance < JOIN_END_DISTANCE:
            self._join_active = False
            return

        step = JOIN_STEP_FRACTION * mover.radius
        if distance < JOIN_SNAP_DISTANCE:
            step = distance
        step = min(step, distance)
        mover.center = (
            mover.center[0] + step * dx / distance,
            mover.center[1] + step * dy / distance,
        )

    def _lay_line_source(self) -> int:
        first, second = self.obstacles
        count = self.solver.sources.add_line_source(
            self.grid.scene_to_cell(first.center),
            self.grid.scene_to_cell(second.center),
            radius=self.grid.scene_radius_to_cells(LINE_SOURCE_SCENE_RADIUS),
            amplitude=MIN_SOURCE_AMPLITUDE,
        )
        self.persist = True
        self.line_source_active = True
        return count

    def _publish(self) -> Frame:
        values = self.solver.get_field(self.channel.value)
        if self.channel is not OutputChannel.E:
            values = values / IMPEDANCE_FREE_SPACE
        values = values.astype(np.float32, copy=False)
        values.flags.writeable = False

        frame = Frame(
            field=values,
            normals=compute_normals(values),
            channel=self.channel,
            tick=self._tick_count,
            phase=self.phase,
        )
        self.last_frame = frame
        return frame
