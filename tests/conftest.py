"""Pytest configuration and shared fixtures for the radio-fdtd test suite."""

import numpy as np
import pytest

from radio_fdtd import SimulationConfig, TMSolver


def gaussian_pulse(shape, center, sigma):
    """Gaussian Ez distribution centred on a cell."""
    x = np.arange(shape[0])[:, None]
    y = np.arange(shape[1])[None, :]
    r2 = (x - center[0]) ** 2 + (y - center[1]) ** 2
    return np.exp(-r2 / (2 * sigma**2)).astype(np.float32)


def ricker_pulse(shape, center, sigma):
    """Zero-mean Mexican hat pulse, so no static component is left behind."""
    x = np.arange(shape[0])[:, None]
    y = np.arange(shape[1])[None, :]
    r2 = (x - center[0]) ** 2 + (y - center[1]) ** 2
    return ((1 - r2 / (2 * sigma**2)) * np.exp(-r2 / (2 * sigma**2))).astype(np.float32)


@pytest.fixture
def small_config():
    """Small NumPy-backed configuration for fast tests."""
    return SimulationConfig(shape=(32, 32), backend="python")


@pytest.fixture
def small_solver(small_config):
    return TMSolver(small_config)


@pytest.fixture
def lossless_config():
    """Configuration without grid-wide damping, for propagation tests."""
    return SimulationConfig(shape=(64, 64), loss_factor=1.0, backend="python")


@pytest.fixture
def make_gaussian():
    """Factory for Gaussian initial Ez distributions."""
    return gaussian_pulse


@pytest.fixture
def make_ricker():
    """Factory for zero-mean initial Ez distributions."""
    return ricker_pulse
