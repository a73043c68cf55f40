"""
Postprocessing of Integrator Output into Record Rows.

Each FlowField variant has a Postprocessor that turns a Trajectory or
EnsembleSolution into a DataFrame with one row per (ID, sample time):

    ID, x, y[, z][, fid], t[, lon, lat][, tracers ...]

Rows are time-major and sorted by ID within each sample time, so the first
`n` rows always hold the state at the start of the span.
"""

from abc import ABC
from typing import Any, Dict, List, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .errors import ConfigurationError
from .flowfields import FlowField, FlowKind
from .integrators import EnsembleSolution, Trajectory
from .interpolation import interpolate_scalar


Solution = Union[Trajectory, EnsembleSolution]


class Postprocessor(ABC):
    """
    Converts raw integrator output into record rows.

    Attributes:
        kind: FlowField variant handled
        coordinates: Names of the position columns
    """
    kind: FlowKind
    coordinates: Tuple[str, ...]

    def columns(self, diagnostics: Dict[str, Any]) -> List[str]:
        """Columns of the rows produced under `diagnostics`."""
        cols = ["ID", *self.coordinates, "t"]
        if _has_grid_coordinates(diagnostics):
            cols += ["lon", "lat"]
        return cols

    def __call__(
        self,
        solution: Solution,
        flow: FlowField,
        diagnostics: Dict[str, Any],
        ids: Sequence[int],
        span: Tuple[float, float]
    ) -> pd.DataFrame:
        if flow.kind is not self.kind:
            raise ConfigurationError(
                f"{type(self).__name__} cannot process {type(flow).__name__} output"
            )

        t, y = solution.samples()
        ids = np.asarray(ids, dtype=np.int64)
        ns, n, _ = y.shape
        if len(ids) != n:
            raise ConfigurationError(f"{len(ids)} IDs for {n} trajectories")

        order = np.argsort(ids, kind="stable")
        y = y[:, order, :]

        data = {"ID": np.tile(ids[order], ns)}
        for c, name in enumerate(self.coordinates):
            data[name] = y[:, :, c].ravel()
        if "fid" in data:
            data["fid"] = np.rint(data["fid"]).astype(np.int64)
        data["t"] = np.repeat(t, n)

        df = pd.DataFrame(data)
        if _has_grid_coordinates(diagnostics):
            add_lonlat(df, diagnostics["XC"], diagnostics["YC"], self.kind, self.coordinates)
        return df

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class XYPostprocessor(Postprocessor):
    kind = FlowKind.UV_ARRAY
    coordinates = ("x", "y")


class XYZPostprocessor(Postprocessor):
    kind = FlowKind.UVW_ARRAY
    coordinates = ("x", "y", "z")


class MeshPostprocessor(Postprocessor):
    kind = FlowKind.UV_MESH
    coordinates = ("x", "y", "fid")


class MeshXYZPostprocessor(Postprocessor):
    kind = FlowKind.UVW_MESH
    coordinates = ("x", "y", "z", "fid")


_DEFAULTS = {
    FlowKind.UV_ARRAY: XYPostprocessor,
    FlowKind.UVW_ARRAY: XYZPostprocessor,
    FlowKind.UV_MESH: MeshPostprocessor,
    FlowKind.UVW_MESH: MeshXYZPostprocessor,
}


def default_postprocessor(flow: FlowField) -> Postprocessor:
    """Postprocessor matching the variant of `flow`."""
    return _DEFAULTS[flow.kind]()


def _has_grid_coordinates(diagnostics: Dict[str, Any]) -> bool:
    return "XC" in diagnostics and "YC" in diagnostics


def _positions(df: pd.DataFrame, coordinates: Sequence[str]) -> np.ndarray:
    return df[list(coordinates)].to_numpy(dtype=np.float64)


def add_lonlat(
    df: pd.DataFrame,
    XC: np.ndarray,
    YC: np.ndarray,
    kind: FlowKind,
    coordinates: Sequence[str]
) -> pd.DataFrame:
    """
    Add longitude/latitude columns by interpolating cell-centre coordinates.

    XC, YC follow the layout of the FlowField variant (halo included for
    mesh variants).
    """
    pos = _positions(df, coordinates)
    df["lon"] = [interpolate_scalar(XC, p, kind) for p in pos]
    df["lat"] = [interpolate_scalar(YC, p, kind) for p in pos]
    return df


class TracerPostprocessor(Postprocessor):
    """
    Adds interpolated tracer values (e.g. temperature, salinity) to the rows
    of another postprocessor.

    Tracer snapshots are read from `diagnostics["tracers"][name]` as a
    (snapshot0, snapshot1) pair bracketing `flow.T` and interpolated in space
    and time at each recorded position. When `diagnostics["mask"]` holds a
    wet-cell mask (1 wet, 0 land), values are renormalised by the
    interpolated mask so land cells do not dilute coastal values.

    Args:
        base: Postprocessor of the FlowField variant
        tracers: Tracer names
        surface: Also record surface values (`<name>_surface`, 3D variants)
        year: Also record elapsed time in years
    """

    def __init__(
        self,
        base: Postprocessor,
        tracers: Sequence[str],
        surface: bool = False,
        year: bool = False
    ):
        self.base = base
        self.kind = base.kind
        self.coordinates = base.coordinates
        self.tracers = tuple(tracers)
        self.surface = surface and base.kind.is_3d
        self.year = year

    def columns(self, diagnostics: Dict[str, Any]) -> List[str]:
        cols = self.base.columns(diagnostics)
        for name in self.tracers:
            cols.append(name)
            if self.surface:
                cols.append(f"{name}_surface")
        if self.year:
            cols.append("year")
        return cols

    def __call__(self, solution, flow, diagnostics, ids, span) -> pd.DataFrame:
        df = self.base(solution, flow, diagnostics, ids, span)
        snapshots = diagnostics.get("tracers", {})
        missing = [name for name in self.tracers if name not in snapshots]
        if missing:
            raise ConfigurationError(f"no tracer snapshots for {missing}")

        pos = _positions(df, self.coordinates)
        weights = np.array([flow.time_weight(t) for t in df["t"]])
        mask = diagnostics.get("mask")

        for name in self.tracers:
            s0, s1 = snapshots[name]
            df[name] = self._interpolate(s0, s1, mask, pos, weights)
            if self.surface:
                top = pos.copy()
                top[:, 2] = 0.5
                df[f"{name}_surface"] = self._interpolate(s0, s1, mask, top, weights)

        if self.year:
            df["year"] = df["t"] / 86400.0 / 365.0
        return df

    def _interpolate(self, s0, s1, mask, pos, weights) -> np.ndarray:
        values = np.array([
            (1.0 - a) * interpolate_scalar(s0, p, self.kind) +
            a * interpolate_scalar(s1, p, self.kind)
            for p, a in zip(pos, weights)
        ])
        if mask is None:
            return values
        wet = np.array([interpolate_scalar(mask, p, self.kind) for p in pos])
        out = np.full_like(values, np.nan)
        ok = wet > 0.0
        out[ok] = values[ok] / wet[ok]
        return out

    def __repr__(self) -> str:
        return f"TracerPostprocessor({self.base!r}, tracers={self.tracers})"
