"""
Integrator Adapters.

Wraps scipy.integrate.solve_ivp behind a uniform contract:

    integrator(problem) -> Trajectory | EnsembleSolution

`default_solver` integrates the whole population as one ODE system.
`ensemble_solver` integrates each individual independently, which keeps
error control per trajectory. Both sample the solution at the span endpoints
(plus optional `saveat` times).
"""

import functools
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
from scipy.integrate import solve_ivp

from .config import SimulationConfig
from .errors import NumericalError
from .flowfields import FlowField


@dataclass
class DisplacementProblem:
    """
    Initial-value problem for a population of individuals.

    Attributes:
        velocity: velocity(position, flow, t) -> rate of each position column
        u0: Initial positions, shape (n, d)
        tspan: Integration span (t_start, t_end) [s]
        flow: FlowField passed to the velocity function
    """
    velocity: Callable
    u0: np.ndarray
    tspan: Tuple[float, float]
    flow: FlowField

    def __post_init__(self):
        self.u0 = np.atleast_2d(np.asarray(self.u0, dtype=np.float64))
        self.tspan = (float(self.tspan[0]), float(self.tspan[1]))

    @property
    def n_individuals(self) -> int:
        return self.u0.shape[0]


@dataclass
class Trajectory:
    """
    Sampled solution of one ODE system.

    Attributes:
        t: Sample times, shape (ns,)
        y: Sampled positions, shape (ns, n, d)
    """
    t: np.ndarray
    y: np.ndarray

    def __len__(self) -> int:
        return self.y.shape[1]

    def samples(self) -> Tuple[np.ndarray, np.ndarray]:
        return self.t, self.y

    def final_positions(self) -> np.ndarray:
        return self.y[-1].copy()

    def split(self) -> List['Trajectory']:
        """One single-individual Trajectory per individual."""
        return [Trajectory(self.t, self.y[:, i:i + 1, :]) for i in range(len(self))]


@dataclass
class EnsembleSolution:
    """Independent single-individual trajectories sharing sample times."""
    members: List[Trajectory]

    def __len__(self) -> int:
        return len(self.members)

    def samples(self) -> Tuple[np.ndarray, np.ndarray]:
        t = self.members[0].t
        for m in self.members[1:]:
            if m.t.shape != t.shape or not np.allclose(m.t, t):
                raise NumericalError("ensemble members were sampled at different times")
        return t, np.concatenate([m.y for m in self.members], axis=1)

    def final_positions(self) -> np.ndarray:
        return np.concatenate([m.y[-1] for m in self.members], axis=0)

    def split(self) -> List[Trajectory]:
        return list(self.members)


def _sample_times(tspan: Tuple[float, float], saveat: Optional[Sequence[float]]) -> np.ndarray:
    t0, t1 = tspan
    times = [t0, t1]
    if saveat is not None:
        lo, hi = min(t0, t1), max(t0, t1)
        times += [float(s) for s in saveat if lo < s < hi]
    times = np.unique(times)
    return times if t1 >= t0 else times[::-1]


def _integrate(
    velocity: Callable,
    y0: np.ndarray,
    tspan: Tuple[float, float],
    flow: FlowField,
    t_eval: np.ndarray,
    method: str,
    rtol: float,
    atol: float
) -> np.ndarray:
    """Integrate positions y0 (n, d); return samples (ns, n, d)."""
    n, d = y0.shape

    if tspan[0] == tspan[1]:
        return np.repeat(y0[np.newaxis], len(t_eval), axis=0)

    def rhs(t, y):
        pos = y.reshape(n, d)
        return np.concatenate([velocity(pos[i], flow, t) for i in range(n)])

    # A non-finite first rate stalls the initial step-size selection of solve_ivp
    if not np.all(np.isfinite(rhs(tspan[0], y0.ravel()))):
        raise NumericalError(f"non-finite velocity at the start of {tspan}")

    sol = solve_ivp(
        rhs, tspan, y0.ravel(),
        method=method, t_eval=t_eval, rtol=rtol, atol=atol
    )

    if not sol.success:
        raise NumericalError(f"integration failed over {tspan}: {sol.message}")
    if sol.y.shape[1] != len(t_eval) or not np.all(np.isfinite(sol.y)):
        raise NumericalError(f"integration over {tspan} produced non-finite output")

    return sol.y.T.reshape(len(t_eval), n, d)


def default_solver(
    problem: DisplacementProblem,
    method: str = "RK45",
    rtol: float = 1e-8,
    atol: float = 1e-8,
    saveat: Optional[Sequence[float]] = None
) -> Trajectory:
    """
    Integrate the population as a single ODE system.

    Args:
        problem: DisplacementProblem
        method: solve_ivp method
        rtol, atol: Error tolerances
        saveat: Extra sample times inside the span

    Returns:
        Trajectory sampled at the span endpoints (and `saveat`)
    """
    t_eval = _sample_times(problem.tspan, saveat)
    y = _integrate(problem.velocity, problem.u0, problem.tspan, problem.flow,
                   t_eval, method, rtol, atol)
    return Trajectory(t_eval, y)


def ensemble_solver(
    problem: DisplacementProblem,
    method: str = "RK45",
    rtol: float = 1e-8,
    atol: float = 1e-8,
    saveat: Optional[Sequence[float]] = None
) -> EnsembleSolution:
    """Integrate each individual of the population independently."""
    t_eval = _sample_times(problem.tspan, saveat)
    members = []
    for i in range(problem.n_individuals):
        y = _integrate(problem.velocity, problem.u0[i:i + 1], problem.tspan,
                       problem.flow, t_eval, method, rtol, atol)
        members.append(Trajectory(t_eval, y))
    return EnsembleSolution(members)


def make_integrator(config: SimulationConfig, ensemble: bool = True) -> Callable:
    """Integrator using the method and tolerances of `config`."""
    solver = ensemble_solver if ensemble else default_solver
    return functools.partial(solver, method=config.method, rtol=config.rtol, atol=config.atol)
