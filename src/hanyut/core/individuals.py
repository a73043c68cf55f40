"""
Individuals: State Container for Lagrangian Displacements.

Holds the current positions of a population of individuals, their stable
IDs, the trajectory record table and the collaborators used to move them:

    flow         FlowField (velocity snapshots bracketing flow.T)
    velocity     velocity(position, flow, t) -> rate
    integrator   integrator(problem) -> Trajectory | EnsembleSolution
    postprocess  postprocess(solution, flow, diagnostics, ids, span) -> rows
    diagnostics  free-form dict (grid coordinates, tracer buffers, ...)
    metadata     free-form dict

Calling `advance` integrates velocities over a time span, appends the new
rows to the record table and moves the individuals to their final
positions. Nothing is committed unless the whole call succeeds.
"""

from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from tqdm import tqdm

from .config import IndividualsOptions, SimulationConfig
from .errors import ConfigurationError
from .flowfields import FlowField
from .integrators import (
    DisplacementProblem,
    EnsembleSolution,
    default_solver,
    ensemble_solver,
)
from .interpolation import speed, velocity
from .postprocess import default_postprocessor


class Individuals:
    """
    Population of individuals displaced through a FlowField.

    Attributes:
        flow: Active FlowField
        position: Positions, shape (n, d) with d the variant's column count
        ids: Integer IDs, shape (n,)
        record: Trajectory record table (one row per ID and time)
        velocity: Velocity function
        integrator: Integrator
        postprocess: Postprocessor
        diagnostics: Auxiliary state shared with the postprocessor
        metadata: Free-form metadata

    Example:
        >>> F = flow_fields(u, v, period=(0.0, 10.0))
        >>> I = Individuals(F, np.array([[5.0, 5.0]]))
        >>> I.advance()
        >>> I.record
    """

    def __init__(
        self,
        flow: FlowField,
        positions: np.ndarray,
        options: Optional[IndividualsOptions] = None
    ):
        """
        Args:
            flow: FlowField the individuals move through
            positions: Initial positions, shape (n, d); one position of
                length d is accepted for a single individual
            options: Optional overrides of the variant defaults
        """
        options = options or IndividualsOptions()
        d = flow.kind.position_dims

        position = np.array(positions, dtype=np.float64)
        if position.ndim == 1:
            position = position.reshape(1, -1)
        if position.ndim != 2 or position.shape[1] != d or position.shape[0] == 0:
            raise ConfigurationError(
                f"{type(flow).__name__} expects positions of shape (n, {d}), "
                f"got {np.shape(positions)}"
            )
        n = position.shape[0]

        if options.ids is None:
            ids = np.arange(1, n + 1, dtype=np.int64)
        else:
            ids = np.array(options.ids, dtype=np.int64).ravel()
        if len(ids) != n:
            raise ConfigurationError(f"{len(ids)} IDs for {n} positions")
        if len(np.unique(ids)) != n:
            raise ConfigurationError("IDs must be unique")

        self.flow = flow
        self.position = position
        self.ids = ids
        self.velocity = options.velocity or velocity
        self.integrator = options.integrator or (default_solver if n == 1 else ensemble_solver)
        self.postprocess = options.postprocess or default_postprocessor(flow)
        self.diagnostics: Dict[str, Any] = options.diagnostics
        self.metadata: Dict[str, Any] = options.metadata

        if options.record is not None:
            self.record = options.record
        else:
            self.record = _empty_record(self.postprocess.columns(self.diagnostics))

    # -------------------------------------------------------------------------
    # Integration
    # -------------------------------------------------------------------------

    def advance(
        self,
        span: Optional[Tuple[float, float]] = None,
        config: Optional[SimulationConfig] = None
    ) -> None:
        """
        Displace the individuals over `span` (default: `flow.T`).

        The integrator is run from the current positions, its output is
        postprocessed into record rows, the first n rows (the start states,
        already known) are dropped, and positions are replaced by the final
        states (re-mapped by the location update of mesh flow fields).

        Args:
            span: (t_start, t_end) [s]
            config: Run settings; a `batch_size` switches to batched
                integration of speed-sorted chunks
        """
        span = self._span(span)

        if config is not None and config.batch_size is not None:
            solution = self._integrate_batched(span, config)
        else:
            problem = DisplacementProblem(self.velocity, self.position.copy(), span, self.flow)
            solution = self.integrator(problem)

        rows = self.postprocess(solution, self.flow, self.diagnostics, self.ids, span)

        final = np.asarray(solution.final_positions(), dtype=np.float64)
        if final.shape != self.position.shape:
            raise ConfigurationError(
                f"integrator returned {final.shape} final positions, "
                f"expected {self.position.shape}"
            )
        if self.flow.kind.is_mesh:
            for p in final:
                self.flow.update_location(p)

        self._commit(rows, final)

    def _span(self, span: Optional[Tuple[float, float]]) -> Tuple[float, float]:
        if span is None:
            return self.flow.T
        span = tuple(float(s) for s in np.asarray(span, dtype=np.float64).ravel())
        if len(span) != 2:
            raise ConfigurationError(f"span must hold two times, got {span}")
        return span

    def _integrate_batched(
        self,
        span: Tuple[float, float],
        config: SimulationConfig
    ) -> EnsembleSolution:
        """
        Integrate speed-sorted chunks of `config.batch_size` individuals.

        Sorting by speed only groups similar trajectories; results are merged
        back into the original individual order.
        """
        n = len(self)
        speeds = np.array([speed(p, self.flow, span[0]) for p in self.position])
        order = np.argsort(speeds, kind="stable")
        chunks = [order[i:i + config.batch_size] for i in range(0, n, config.batch_size)]

        members = [None] * n
        for idx in tqdm(chunks, desc="      Batches", disable=not config.show_progress,
                        ncols=70, unit="batch"):
            problem = DisplacementProblem(self.velocity, self.position[idx].copy(), span, self.flow)
            parts = self.integrator(problem).split()
            for i, part in zip(idx, parts):
                members[i] = part

        return EnsembleSolution(members)

    def _commit(self, rows: pd.DataFrame, final: np.ndarray) -> None:
        # Start states are known already; only later samples are recorded
        new_rows = rows.iloc[len(self.ids):]

        columns = list(self.record.columns)
        if columns:
            missing = [c for c in columns if c not in new_rows.columns]
            if missing:
                raise ConfigurationError(f"postprocessor does not provide columns {missing}")
            new_rows = new_rows[columns]

        if self.record.empty:
            self.record = new_rows.reset_index(drop=True)
        else:
            self.record = pd.concat([self.record, new_rows], ignore_index=True)
        self.position = final

    def swap_flow(self, flow: FlowField) -> None:
        """Replace the FlowField (same variant) between advance calls."""
        if flow.kind is not self.flow.kind:
            raise ConfigurationError(
                f"cannot replace {type(self.flow).__name__} by {type(flow).__name__}"
            )
        self.flow = flow

    # -------------------------------------------------------------------------
    # Reseeding
    # -------------------------------------------------------------------------

    def reseed(
        self,
        fraction: float,
        candidates: np.ndarray,
        rng: Optional[np.random.Generator] = None
    ) -> np.ndarray:
        """
        Move a random fraction of the individuals to random candidate positions.

        round(fraction * n) destination individuals and as many candidate
        positions are drawn independently, with replacement. Reseeded
        individuals get fresh IDs above every ID issued so far (live or
        recorded).

        Args:
            fraction: Fraction of the population to reseed
            candidates: Candidate positions, shape (m, d)
            rng: Random generator

        Returns:
            Indices of the reseeded individuals
        """
        n = len(self)
        n_reset = int(round(fraction * n))
        if n_reset <= 0:
            return np.empty(0, dtype=np.int64)

        candidates = np.asarray(candidates, dtype=np.float64)
        if candidates.ndim != 2 or candidates.shape[1] != self.position.shape[1] or len(candidates) == 0:
            raise ConfigurationError(
                f"candidates must have shape (m, {self.position.shape[1]}), "
                f"got {candidates.shape}"
            )

        rng = rng if rng is not None else np.random.default_rng()
        k_reset = rng.integers(0, n, n_reset)
        l_reset = rng.integers(0, len(candidates), n_reset)

        self.position[k_reset] = candidates[l_reset]
        m = self.max_id()
        self.ids[k_reset] = np.arange(1, n_reset + 1) + m
        return k_reset

    def max_id(self) -> int:
        """Largest ID issued so far, including IDs only found in the record."""
        m = int(self.ids.max())
        if not self.record.empty:
            m = max(m, int(self.record["ID"].max()))
        return m

    # -------------------------------------------------------------------------
    # Summaries
    # -------------------------------------------------------------------------

    def size(self) -> Tuple[int, ...]:
        """Shape of the position array."""
        return self.position.shape

    def __len__(self) -> int:
        return self.position.shape[0]

    def diff_endpoints(self) -> pd.DataFrame:
        """
        Displacement between the first and last recorded positions of each ID.

        Returns:
            DataFrame with columns ID, nrow, dx, dy [grid units]
        """
        grouped = self.record.groupby("ID", sort=True)
        out = grouped.agg(
            nrow=("x", "size"),
            x1=("x", "first"), x2=("x", "last"),
            y1=("y", "first"), y2=("y", "last"),
        ).reset_index()
        out["dx"] = out["x2"] - out["x1"]
        out["dy"] = out["y2"] - out["y1"]
        return out[["ID", "nrow", "dx", "dy"]]

    def great_circle_distance(self) -> pd.DataFrame:
        """
        Great-circle distance between the first and last recorded lon/lat.

        Returns:
            DataFrame with columns ID, lo1, lo2, la1, la2 [degrees] and
            gcd [radians]
        """
        if "lon" not in self.record.columns or "lat" not in self.record.columns:
            raise ConfigurationError("record has no lon/lat columns")

        grouped = self.record.groupby("ID", sort=True)
        out = grouped.agg(
            lo1=("lon", "first"), lo2=("lon", "last"),
            la1=("lat", "first"), la2=("lat", "last"),
        ).reset_index()
        out["gcd"] = great_circle(out["lo1"], out["lo2"], out["la1"], out["la2"])
        return out

    def similar(self) -> 'Individuals':
        """Copy with the same collaborators and positions, and an empty record."""
        options = IndividualsOptions(
            ids=self.ids.copy(),
            velocity=self.velocity,
            integrator=self.integrator,
            postprocess=self.postprocess,
            record=self.record.iloc[0:0].copy(),
            diagnostics=self.diagnostics,
            metadata=self.metadata,
        )
        return Individuals(self.flow, self.position.copy(), options)

    def __repr__(self) -> str:
        ids = f"({self.ids.min()}, {self.ids.max()})"
        return (
            f"Individuals(position={self.position.shape}, "
            f"record={self.record.shape} {list(self.record.columns)}, "
            f"ids={ids}, flow={type(self.flow).__name__}{self.flow.T}, "
            f"integrator={getattr(self.integrator, '__name__', self.integrator)}, "
            f"postprocess={self.postprocess!r})"
        )


def _empty_record(columns: Sequence[str]) -> pd.DataFrame:
    dtypes = {"ID": np.int64, "fid": np.int64}
    return pd.DataFrame({c: pd.Series(dtype=dtypes.get(c, np.float64)) for c in columns})


def great_circle(lon1, lon2, lat1, lat2) -> np.ndarray:
    """
    Great-circle angle [radians] between points given in degrees.

        acos(sin(la1) sin(la2) + cos(la1) cos(la2) cos(lo1 - lo2))
    """
    lo1, lo2, la1, la2 = (np.radians(np.asarray(a, dtype=np.float64))
                          for a in (lon1, lon2, lat1, lat2))
    c = np.sin(la1) * np.sin(la2) + np.cos(la1) * np.cos(la2) * np.cos(lo1 - lo2)
    return np.arccos(np.clip(c, -1.0, 1.0))
