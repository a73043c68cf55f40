"""
hanyut: Lagrangian Displacements of Individuals Through Gridded Ocean Flows

A Python library for computing the trajectories of many individuals (water
parcels, floats, larvae, plastics) carried by velocity fields that are
known on a staggered C-grid at discrete snapshot times.

Velocities are interpolated at each individual's position:
    - bilinearly in the horizontal on the staggered u, v (and w) points
    - linearly in time between two bracketing snapshots
    - linearly in the vertical between adjacent levels

Features:
    - Single-tile (doubly periodic) and multi-tile (halo-padded) grids, 2D and 3D
    - Numba JIT compiled interpolation kernels
    - Pluggable integrators (SciPy solve_ivp, single system or ensemble)
    - Trajectory record tables in pandas, with lon/lat and tracer columns
    - Periodic snapshot refresher for monthly climatologies, with time reversal
    - Reseeding of individuals with collision-free IDs
    - CF-compliant NetCDF trajectory output

Example:
    >>> import numpy as np
    >>> from hanyut import flow_fields, Individuals
    >>> u, v = np.ones((20, 20)), np.zeros((20, 20))
    >>> F = flow_fields(u, v, period=(0.0, 10.0))
    >>> I = Individuals(F, np.array([[5.0, 5.0]]))
    >>> I.advance()
    >>> I.position
    array([[15.,  5.]])

License: MIT
"""

__version__ = "0.1.0"
__license__ = "MIT"

from .core.errors import (
    HanyutError,
    ConfigurationError,
    DomainError,
    NumericalError,
    MissingDataError,
)
from .core.config import MONTH, SimulationConfig, IndividualsOptions
from .core.flowfields import (
    FlowKind,
    UVArrays,
    UVWArrays,
    UVMeshArrays,
    UVWMeshArrays,
    flow_fields,
)
from .core.interpolation import velocity
from .core.integrators import default_solver, ensemble_solver, make_integrator
from .core.postprocess import TracerPostprocessor, default_postprocessor
from .core.individuals import Individuals
from .core.mesh import TileRing
from .core.refresh import ArrayClimatology, NetCDFClimatology, FlowFieldRefresher
from .core.solver import DisplacementSolver, SimulationResult
from .core.analytic import BasinSystem, uniform_flow_fields
from .core.diagnostics import compute_all_diagnostics
from .io.config_manager import ConfigManager
from .io.data_handler import DataHandler

__all__ = [
    # Errors
    "HanyutError",
    "ConfigurationError",
    "DomainError",
    "NumericalError",
    "MissingDataError",
    # Configuration
    "MONTH",
    "SimulationConfig",
    "IndividualsOptions",
    # Flow fields
    "FlowKind",
    "UVArrays",
    "UVWArrays",
    "UVMeshArrays",
    "UVWMeshArrays",
    "flow_fields",
    "velocity",
    # Individuals
    "Individuals",
    "default_solver",
    "ensemble_solver",
    "make_integrator",
    "TracerPostprocessor",
    "default_postprocessor",
    # Refreshing
    "TileRing",
    "ArrayClimatology",
    "NetCDFClimatology",
    "FlowFieldRefresher",
    # Driver
    "DisplacementSolver",
    "SimulationResult",
    "BasinSystem",
    "uniform_flow_fields",
    "compute_all_diagnostics",
    # IO
    "ConfigManager",
    "DataHandler",
]
