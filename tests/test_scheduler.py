"""
Unit tests for the step scheduler.

Tests verify:
- State transitions and the errors raised for invalid ones
- Ticks advance two leapfrog steps and publish a read-only frame
- Oversized tick intervals are skipped
- Obstacle painting, joins, material modes and line sources
- Source switching, clamping and persistence
- Reset is idempotent
"""

import numpy as np
import pytest

from radio_fdtd import (
    Frame,
    MaterialMode,
    Obstacle,
    OutputChannel,
    SchedulerState,
    SimulationConfig,
    StepScheduler,
    TMSolver,
    compute_normals,
)
from radio_fdtd.core.config import (
    MAX_PHASE_INCREMENT,
    MAX_SOURCE_AMPLITUDE,
    MIN_PHASE_INCREMENT,
    MIN_SOURCE_AMPLITUDE,
)
from radio_fdtd.core.scheduler import DEFAULT_OBSTACLE_RADIUS, MIN_SCENE_RADIUS

# =============================================================================
# Test Fixtures
# =============================================================================


@pytest.fixture
def scheduler():
    return StepScheduler(config=SimulationConfig(shape=(64, 64), backend="python"))


@pytest.fixture
def running(scheduler):
    scheduler.set_source(position=(0.1, 0.1), amplitude=0.5)
    scheduler.set_source_enabled(True)
    scheduler.start()
    return scheduler


# =============================================================================
# State Transition Tests
# =============================================================================


class TestStateTransitions:
    def test_initial_state(self, scheduler):
        assert scheduler.state is SchedulerState.IDLE
        assert scheduler.tick_count == 0
        assert scheduler.last_frame is None

    def test_idle_tick_does_nothing(self, scheduler):
        assert scheduler.tick(0.01) is None
        assert scheduler.solver.step_count == 0

    def test_start_pause_resume(self, scheduler):
        scheduler.start()
        assert scheduler.state is SchedulerState.STEPPING
        scheduler.pause()
        assert scheduler.state is SchedulerState.PAUSED
        scheduler.resume()
        assert scheduler.state is SchedulerState.STEPPING

    def test_pause_from_idle_rejected(self, scheduler):
        with pytest.raises(RuntimeError, match="IDLE"):
            scheduler.pause()

    def test_pause_from_editing_rejected(self, scheduler):
        scheduler.edit()
        with pytest.raises(RuntimeError):
            scheduler.pause()

    def test_resume_when_not_paused_rejected(self, scheduler):
        scheduler.start()
        with pytest.raises(RuntimeError, match="not paused"):
            scheduler.resume()

    def test_enable_write_from_idle_enters_editing(self, scheduler):
        scheduler.enable_write()
        assert scheduler.state is SchedulerState.EDITING
        assert scheduler.write_enabled

    def test_enable_write_keeps_stepping(self, scheduler):
        scheduler.start()
        scheduler.enable_write()
        assert scheduler.state is SchedulerState.STEPPING

    def test_toggle_write(self, scheduler):
        assert scheduler.toggle_write() is True
        assert scheduler.toggle_write() is False

    def test_paused_tick_is_ignored(self, running):
        running.pause()
        assert running.tick(0.01) is None
        assert running.solver.step_count == 0

    def test_rejects_solver_and_config(self):
        config = SimulationConfig(shape=(16, 16), backend="python")
        with pytest.raises(ValueError):
            StepScheduler(solver=TMSolver(config), config=config)


# =============================================================================
# Tick Tests
# =============================================================================


class TestTick:
    def test_tick_runs_two_steps(self, running):
        frame = running.tick(1 / 60)
        assert running.solver.step_count == 2
        assert running.tick_count == 1
        assert frame.tick == 1

    def test_frame_contents(self, running):
        frame = running.tick(1 / 60)
        assert isinstance(frame, Frame)
        assert frame.field.shape == (64, 64)
        assert frame.field.dtype == np.float32
        assert frame.normals.shape == (64, 64, 3)
        assert frame.channel is OutputChannel.E
        assert running.last_frame is frame

    def test_frame_is_read_only(self, running):
        frame = running.tick(1 / 60)
        with pytest.raises(ValueError):
            frame.field[0, 0] = 1.0

    def test_source_excites_field(self, running):
        for _ in range(5):
            frame = running.tick(1 / 60)
        assert np.abs(frame.field).max() > 0

    def test_oversized_interval_skipped(self, running):
        assert running.tick(1.5) is None
        assert running.skipped_ticks == 1
        assert running.solver.step_count == 0
        assert running.phase == 0.0

    def test_phase_advances_per_tick(self, running):
        running.tick(0.01)
        running.tick(0.01)
        assert running.phase == pytest.approx(2 * running.phase_increment)

    def test_step_once_forces_pause(self, running):
        frame = running.step_once()
        assert running.state is SchedulerState.PAUSED
        assert running.solver.step_count == 2
        assert frame is not None
        assert running.tick(0.01) is None

    def test_h_channel_scaled_by_impedance(self, running):
        for _ in range(5):
            running.tick(0.01)
        running.set_channel(OutputChannel.HX)
        running.pause()
        frame = running.step_once()
        hx = running.solver.get_field("hx")
        np.testing.assert_allclose(frame.field, hx / 377.0, rtol=1e-6)
        assert frame.channel is OutputChannel.HX

    def test_editing_does_not_advance_fields(self, scheduler):
        scheduler.enable_write()
        frame = scheduler.tick(0.01)
        assert frame is not None
        assert scheduler.solver.step_count == 0
        assert scheduler.tick_count == 0
        assert np.any(scheduler.solver.get_field("material") == 0.0)


# =============================================================================
# Normals Tests
# =============================================================================


class TestNormals:
    def test_flat_field_points_up(self):
        normals = compute_normals(np.zeros((16, 16)))
        np.testing.assert_allclose(normals[..., 0], 0.0)
        np.testing.assert_allclose(normals[..., 1], 1.0)
        np.testing.assert_allclose(normals[..., 2], 0.0)

    def test_unit_length(self):
        rng = np.random.default_rng(5)
        normals = compute_normals(rng.standard_normal((16, 16)) * 0.01)
        np.testing.assert_allclose(np.linalg.norm(normals, axis=-1), 1.0, rtol=1e-5)

    def test_slope_tilts_normal(self):
        h = np.tile(np.arange(16, dtype=np.float64)[:, None] * 0.01, (1, 16))
        normals = compute_normals(h)
        assert normals[4, 4, 0] < 0
        assert normals[4, 4, 2] == pytest.approx(0.0, abs=1e-6)


# =============================================================================
# Obstacle and Material Tests
# =============================================================================


class TestObstacles:
    def test_default_obstacles(self, scheduler):
        first, second = scheduler.obstacles
        assert first.center == pytest.approx((-0.4, 0.2))
        assert second.center == pytest.approx((0.4, 0.2))
        assert first.radius == DEFAULT_OBSTACLE_RADIUS

    def test_radius_clamped(self, scheduler):
        obstacle = scheduler.set_obstacle(0, radius=-1.0)
        assert obstacle.radius == MIN_SCENE_RADIUS

    def test_center_kept_inside_domain(self, scheduler):
        obstacle = scheduler.set_obstacle(0, center=(5.0, -5.0), radius=0.2)
        assert obstacle.center == pytest.approx((0.8, -0.8))

    def test_obstacle_dataclass_clamps(self):
        obstacle = Obstacle(center=(2.0, 0.0), radius=0.0)
        assert obstacle.radius == MIN_SCENE_RADIUS
        assert obstacle.center[0] <= 1.0
        assert obstacle.painted_center == obstacle.center

    def test_reset_obstacles(self, scheduler):
        scheduler.set_obstacle(1, radius=0.3)
        scheduler.reset_obstacles()
        assert all(o.radius == DEFAULT_OBSTACLE_RADIUS for o in scheduler.obstacles)

    def test_pec_mode_paints_second_obstacle_only(self, scheduler):
        scheduler.enable_write()
        scheduler.tick(0.01)
        material = scheduler.solver.get_field("material")
        grid = scheduler.grid
        i1, j1 = (round(v) for v in grid.scene_to_cell((-0.4, 0.2)))
        i2, j2 = (round(v) for v in grid.scene_to_cell((0.4, 0.2)))
        assert material[i1, j1] == 1.0
        assert material[i2, j2] == 0.0

    def test_moving_obstacle_leaves_trail(self, scheduler):
        scheduler.enable_write()
        scheduler.tick(0.01)
        scheduler.set_obstacle(1, center=(0.4, -0.4))
        scheduler.tick(0.01)

        material = scheduler.solver.get_field("material")
        grid = scheduler.grid
        old = tuple(round(v) for v in grid.scene_to_cell((0.4, 0.2)))
        new = tuple(round(v) for v in grid.scene_to_cell((0.4, -0.4)))
        assert material[old] == 0.0
        assert material[new] == 0.0

    def test_dielectric_mode(self, scheduler):
        scheduler.set_mode(MaterialMode.DIELECTRIC)
        scheduler.enable_write()
        scheduler.tick(0.01)
        eps = scheduler.solver.get_dielectric()
        grid = scheduler.grid
        i2, j2 = (round(v) for v in grid.scene_to_cell((0.4, 0.2)))
        assert eps[i2, j2] == pytest.approx(3.0)
        assert np.all(scheduler.solver.get_field("material") == 1.0)

    def test_line_source_mode(self, scheduler):
        scheduler.set_mode(MaterialMode.LINE_SOURCE)
        scheduler.enable_write()
        amp = scheduler.solver.sources.amplitude_map()
        grid = scheduler.grid
        x_start = round(grid.scene_to_cell((-0.4, 0.2))[0])
        x_stop = round(grid.scene_to_cell((0.4, 0.2))[0])
        row = round(grid.scene_to_cell((0.0, 0.2))[1])

        assert np.all(amp[x_start : x_stop + 1, row] > 0)
        assert amp.max() <= MIN_SOURCE_AMPLITUDE * (1 + 1e-6)
        assert np.all(amp[:, 5] == 0.0)
        assert np.all(scheduler.solver.get_field("material") == 1.0)

    def test_line_source_radiates_without_interactive_source(self, scheduler):
        scheduler.set_mode(MaterialMode.LINE_SOURCE)
        scheduler.enable_write()
        laid = int(np.count_nonzero(scheduler.solver.sources.amplitude_map()))
        assert scheduler.persist

        scheduler.start()
        for _ in range(10):
            scheduler.tick(0.01)

        assert np.count_nonzero(scheduler.solver.sources.amplitude_map()) == laid
        assert np.abs(scheduler.solver.get_field("ez")).max() > 0.0

    def test_line_source_survives_interactive_source(self, scheduler):
        scheduler.set_mode(MaterialMode.LINE_SOURCE)
        scheduler.enable_write()
        line = scheduler.solver.sources.amplitude_map() > 0
        scheduler.set_source_enabled(True)
        scheduler.start()
        scheduler.tick(0.01)

        assert np.all(scheduler.solver.sources.amplitude_map()[line] > 0)

    def test_clear_sources_stops_line_source(self, scheduler):
        scheduler.set_mode(MaterialMode.LINE_SOURCE)
        scheduler.enable_write()
        scheduler.clear_sources()
        scheduler.start()
        for _ in range(5):
            scheduler.tick(0.01)

        assert not scheduler.line_source_active
        assert np.all(scheduler.solver.get_field("ez") == 0.0)

    def test_clear_geometry(self, scheduler):
        scheduler.enable_write()
        scheduler.tick(0.01)
        scheduler.clear_geometry()
        assert not scheduler.write_enabled
        assert np.all(scheduler.solver.get_field("material") == 1.0)


class TestJoin:
    def test_join_moves_second_to_first(self, scheduler):
        scheduler.join()
        assert scheduler.join_active
        for _ in range(100):
            scheduler.edit()
            scheduler.tick(0.01)
            if not scheduler.join_active:
                break
        assert not scheduler.join_active
        assert scheduler.obstacles[1].center == pytest.approx(scheduler.obstacles[0].center)

    def test_join_moves_first_when_requested(self, scheduler):
        scheduler.join(move_second=False)
        scheduler.edit()
        scheduler.tick(0.01)
        assert scheduler.obstacles[0].center[0] > -0.4
        assert scheduler.obstacles[1].center == pytest.approx((0.4, 0.2))

    def test_join_step_size(self, scheduler):
        scheduler.join()
        scheduler.edit()
        scheduler.tick(0.01)
        expected = 0.4 - 0.4 * DEFAULT_OBSTACLE_RADIUS
        assert scheduler.obstacles[1].center[0] == pytest.approx(expected)

    def test_no_join_walk_in_line_source_mode(self, scheduler):
        scheduler.set_mode(MaterialMode.LINE_SOURCE)
        scheduler.join()
        scheduler.edit()
        scheduler.tick(0.01)
        assert scheduler.obstacles[1].center == pytest.approx((0.4, 0.2))

    def test_cancel_join(self, scheduler):
        scheduler.join()
        scheduler.cancel_join()
        scheduler.edit()
        scheduler.tick(0.01)
        assert scheduler.obstacles[1].center == pytest.approx((0.4, 0.2))


# =============================================================================
# Source Tests
# =============================================================================


class TestSourceControls:
    def test_enabling_source_resets_phase(self, running):
        running.tick(0.01)
        assert running.phase > 0
        running.toggle_source()
        running.tick(0.01)
        assert running.toggle_source() is True
        assert running.phase == 0.0

    def test_amplitude_clamped(self, scheduler):
        scheduler.set_source(amplitude=10.0)
        assert scheduler.source_amplitude == MAX_SOURCE_AMPLITUDE
        scheduler.set_source(amplitude=0.0)
        assert scheduler.source_amplitude == MIN_SOURCE_AMPLITUDE

    def test_phase_increment_clamped(self, scheduler):
        assert scheduler.set_phase_increment(5.0) == MAX_PHASE_INCREMENT
        assert scheduler.set_phase_increment(0.0) == MIN_PHASE_INCREMENT

    def test_default_phase_increment(self, scheduler):
        assert scheduler.phase_increment == pytest.approx(2 * np.pi / 10)

    def test_configured_phase_increment(self):
        config = SimulationConfig(shape=(16, 16), phase_increment=0.5, backend="python")
        assert StepScheduler(config=config).phase_increment == pytest.approx(0.5)

    def test_source_position_clamped(self, scheduler):
        scheduler.set_source(position=(3.0, -2.0))
        assert scheduler.source_position == (1.0, -1.0)

    def test_persistence_keeps_old_positions(self, running):
        running.set_persistence(True)
        running.tick(0.01)
        running.set_source(position=(-0.5, -0.5))
        running.tick(0.01)
        amp = running.solver.sources.amplitude_map()
        assert np.count_nonzero(amp) > 0
        old = tuple(round(v) for v in running.grid.scene_to_cell((0.1, 0.1)))
        assert amp[old] > 0

    def test_without_persistence_only_latest(self, running):
        running.tick(0.01)
        running.set_source(position=(-0.5, -0.5))
        running.tick(0.01)
        amp = running.solver.sources.amplitude_map()
        old = tuple(round(v) for v in running.grid.scene_to_cell((0.1, 0.1)))
        assert amp[old] == 0.0

    def test_clear_sources(self, running):
        running.tick(0.01)
        running.clear_sources()
        assert np.all(running.solver.sources.amplitude_map() == 0.0)


# =============================================================================
# Reset Tests
# =============================================================================


class TestReset:
    def test_reset_returns_to_idle(self, running):
        running.enable_write()
        for _ in range(3):
            running.tick(0.01)
        running.reset()

        assert running.state is SchedulerState.IDLE
        assert running.tick_count == 0
        assert running.phase == 0.0
        assert not running.write_enabled
        assert running.solver.step_count == 0
        assert np.all(running.solver.get_field("ez") == 0.0)
        assert np.all(running.solver.get_field("material") == 1.0)

    def test_reset_is_idempotent(self, running):
        for _ in range(3):
            running.tick(0.01)
        running.reset()
        first = (
            running.state,
            running.solver.get_field("ez").copy(),
            running.solver.sources.amplitude_map().copy(),
            running.solver.get_field("material").copy(),
        )
        running.reset()
        assert running.state is first[0]
        np.testing.assert_array_equal(running.solver.get_field("ez"), first[1])
        np.testing.assert_array_equal(running.solver.sources.amplitude_map(), first[2])
        np.testing.assert_array_equal(running.solver.get_field("material"), first[3])

    def test_reset_fields_keeps_geometry(self, scheduler):
        scheduler.enable_write()
        scheduler.tick(0.01)
        scheduler.reset_fields()
        assert np.any(scheduler.solver.get_field("material") == 0.0)
