"""Core components for Lagrangian displacements on staggered flow fields."""

from .errors import (
    HanyutError,
    ConfigurationError,
    DomainError,
    NumericalError,
    MissingDataError,
)
from .config import MONTH, SimulationConfig, IndividualsOptions
from .flowfields import (
    FlowKind,
    FlowField,
    UVArrays,
    UVWArrays,
    UVMeshArrays,
    UVWMeshArrays,
    flow_fields,
    to_c_grid,
)
from .interpolation import velocity, speed, interpolate_scalar
from .integrators import (
    DisplacementProblem,
    Trajectory,
    EnsembleSolution,
    default_solver,
    ensemble_solver,
    make_integrator,
)
from .postprocess import (
    Postprocessor,
    TracerPostprocessor,
    default_postprocessor,
)
from .individuals import Individuals, great_circle
from .mesh import TileConnectivity, TileRing
from .refresh import (
    VelocitySource,
    ArrayClimatology,
    NetCDFClimatology,
    FlowFieldRefresher,
    mask_missing,
)
from .solver import DisplacementSolver, SimulationResult
from .analytic import BasinSystem, uniform_flow_fields
from .diagnostics import compute_all_diagnostics

__all__ = [
    "HanyutError",
    "ConfigurationError",
    "DomainError",
    "NumericalError",
    "MissingDataError",
    "MONTH",
    "SimulationConfig",
    "IndividualsOptions",
    "FlowKind",
    "FlowField",
    "UVArrays",
    "UVWArrays",
    "UVMeshArrays",
    "UVWMeshArrays",
    "flow_fields",
    "to_c_grid",
    "velocity",
    "speed",
    "interpolate_scalar",
    "DisplacementProblem",
    "Trajectory",
    "EnsembleSolution",
    "default_solver",
    "ensemble_solver",
    "make_integrator",
    "Postprocessor",
    "TracerPostprocessor",
    "default_postprocessor",
    "Individuals",
    "great_circle",
    "TileConnectivity",
    "TileRing",
    "VelocitySource",
    "ArrayClimatology",
    "NetCDFClimatology",
    "FlowFieldRefresher",
    "mask_missing",
    "DisplacementSolver",
    "SimulationResult",
    "BasinSystem",
    "uniform_flow_fields",
    "compute_all_diagnostics",
]
