"""Pytest configuration and fixtures for hanyut tests."""

import pytest
import numpy as np


@pytest.fixture(scope="session")
def random_seed():
    """Set random seed for reproducibility."""
    np.random.seed(42)
    return 42


@pytest.fixture
def rng():
    """Seeded random generator."""
    return np.random.default_rng(42)


@pytest.fixture
def uniform_flow():
    """Uniform eastward flow of 1 grid unit/s on a 20x20 periodic grid."""
    from hanyut import uniform_flow_fields
    return uniform_flow_fields((20, 20), 1.0, 0.0, (0.0, 10.0))


@pytest.fixture
def uniform_flow_3d():
    """Uniform flow on a 10x10x4 periodic grid with weak downward w."""
    from hanyut import uniform_flow_fields
    return uniform_flow_fields((10, 10, 4), 0.5, 0.25, (0.0, 4.0), w=0.1)


@pytest.fixture
def small_basin():
    """Create a small basin for quick tests."""
    from hanyut import BasinSystem
    return BasinSystem(nx=20, ny=20, nr=4, dx=1000.0, dy=1000.0, H=100.0, U0=0.3)


@pytest.fixture
def ring():
    """Ring of two 4x4 tiles."""
    from hanyut import TileRing
    return TileRing(2, 4, 4)


@pytest.fixture
def mesh_flow(ring):
    """Uniform westward flow of 0.1 grid unit/s on a ring of two tiles."""
    from hanyut import UVMeshArrays
    u, v = ring.exchange_uv(np.full((2, 4, 4), -0.1), np.zeros((2, 4, 4)))
    return UVMeshArrays(u, u, v, v, (0.0, 5.0), ring.update_location)


@pytest.fixture
def monthly_source():
    """Twelve constant monthly snapshots on a 6x6 grid, u equal to the month."""
    from hanyut import ArrayClimatology
    u = {m: np.full((6, 6), float(m)) for m in range(1, 13)}
    v = {m: np.zeros((6, 6)) for m in range(1, 13)}
    return ArrayClimatology(u, v)


@pytest.fixture
def tiny_config():
    """Minimal scenario configuration for end-to-end runs."""
    from hanyut import ConfigManager
    config = ConfigManager.get_default_config('case1')
    config.update({
        'scenario_name': 'Tiny Test',
        'nx': 10,
        'ny': 10,
        'n_particles': 4,
        'total_time_days': 0.1,
        'advance_interval_days': 0.05,
    })
    return config
