"""
Flow Field Refresher for Periodic Snapshot Sequences.

Replaces the snapshots of a FlowField once the current time leaves its
bracket. Snapshots are spaced `dt = config.snapshot_interval` apart and
centred on multiples of dt, so for the bracket index

    m = floor((t + dt/2) / dt)

the bracket is [m dt - dt/2, (m+1) dt - dt/2] and it is served by snapshots
m and m+1, wrapped into the climatological cycle 1..period (0 -> period).
With reversed time, velocities are negated and snapshot indices are
mirrored as period + 1 - m.

Loaded snapshots are:
    - masked (non-finite values -> 0.0)
    - rescaled by the inverse grid spacing (m/s -> grid units/s)
    - halo-exchanged (mesh variants)
    - for 3D flows, w is converted to nr + 1 interfaces of -w / drc[k] with
      zero flux through the surface and the floor

Snapshots are cached per month in two slots and shared by reference between
consecutive FlowFields.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, NamedTuple, Optional, Sequence, Tuple, Union

import netCDF4 as nc
import numpy as np

from .config import SimulationConfig
from .errors import ConfigurationError, MissingDataError
from .flowfields import FlowField, _readonly
from .mesh import TileConnectivity

logger = logging.getLogger(__name__)


# =============================================================================
# VELOCITY SOURCES
# =============================================================================

class VelocitySource(ABC):
    """
    Pull interface for gridded snapshot data.

    Months are 1-based. Arrays use the tile layout of the flow they feed:
    (nx, ny[, nr]) for single-tile grids, (nt, nx, ny[, nr]) for tiled grids
    (no halo). Land or missing cells may hold NaN.
    """

    @abstractmethod
    def read_velocities(self, month: int) -> Tuple[np.ndarray, np.ndarray]:
        """Horizontal velocity (u, v) [m/s] at faces."""

    def read_vertical_velocity(self, month: int) -> np.ndarray:
        """Vertical velocity [m/s, positive up] at the top of each level."""
        raise ConfigurationError(f"{type(self).__name__} provides no vertical velocity")

    def read_tracer(self, name: str, month: int) -> np.ndarray:
        """Cell-centred tracer field."""
        raise ConfigurationError(f"{type(self).__name__} provides no tracer '{name}'")


def _by_month(data: Union[Mapping[int, np.ndarray], Sequence[np.ndarray]]) -> Dict[int, np.ndarray]:
    if isinstance(data, Mapping):
        return {int(m): np.asarray(a, dtype=np.float64) for m, a in data.items()}
    return {m + 1: np.asarray(a, dtype=np.float64) for m, a in enumerate(data)}


class ArrayClimatology(VelocitySource):
    """
    In-memory monthly snapshots.

    Args:
        u, v: Per-month arrays, as a {month: array} mapping or a sequence
            whose first entry is month 1
        w: Optional per-month vertical velocity
        tracers: Optional {name: per-month arrays}
    """

    def __init__(self, u, v, w=None, tracers: Optional[Dict[str, Any]] = None):
        self.u = _by_month(u)
        self.v = _by_month(v)
        self.w = _by_month(w) if w is not None else None
        self.tracers = {name: _by_month(s) for name, s in (tracers or {}).items()}

        if set(self.u) != set(self.v):
            raise ConfigurationError("u and v must cover the same months")

    @property
    def months(self) -> Tuple[int, ...]:
        return tuple(sorted(self.u))

    def _get(self, data: Dict[int, np.ndarray], month: int, name: str) -> np.ndarray:
        if month not in data:
            raise ConfigurationError(f"no {name} snapshot for month {month}")
        return data[month]

    def read_velocities(self, month: int) -> Tuple[np.ndarray, np.ndarray]:
        return self._get(self.u, month, "u"), self._get(self.v, month, "v")

    def read_vertical_velocity(self, month: int) -> np.ndarray:
        if self.w is None:
            return super().read_vertical_velocity(month)
        return self._get(self.w, month, "w")

    def read_tracer(self, name: str, month: int) -> np.ndarray:
        if name not in self.tracers:
            return super().read_tracer(name, month)
        return self._get(self.tracers[name], month, name)


class NetCDFClimatology(VelocitySource):
    """
    Monthly snapshots stored in a netCDF file, time as the first dimension.

    Args:
        filepath: Path to the netCDF file
        u_name, v_name: Horizontal velocity variable names
        w_name: Optional vertical velocity variable name
        tracer_names: {tracer: variable name}
    """

    def __init__(
        self,
        filepath: str,
        u_name: str = "u",
        v_name: str = "v",
        w_name: Optional[str] = None,
        tracer_names: Optional[Dict[str, str]] = None
    ):
        self.filepath = filepath
        self.u_name = u_name
        self.v_name = v_name
        self.w_name = w_name
        self.tracer_names = dict(tracer_names or {})

    def _read(self, name: str, month: int) -> np.ndarray:
        with nc.Dataset(self.filepath, 'r') as ds:
            if name not in ds.variables:
                raise ConfigurationError(f"{self.filepath} has no variable '{name}'")
            var = ds.variables[name]
            if not 1 <= month <= var.shape[0]:
                raise ConfigurationError(
                    f"month {month} outside the {var.shape[0]} records of '{name}'"
                )
            data = var[month - 1]
        return np.ma.filled(np.ma.asarray(data, dtype=np.float64), np.nan)

    def read_velocities(self, month: int) -> Tuple[np.ndarray, np.ndarray]:
        return self._read(self.u_name, month), self._read(self.v_name, month)

    def read_vertical_velocity(self, month: int) -> np.ndarray:
        if self.w_name is None:
            return super().read_vertical_velocity(month)
        return self._read(self.w_name, month)

    def read_tracer(self, name: str, month: int) -> np.ndarray:
        if name not in self.tracer_names:
            return super().read_tracer(name, month)
        return self._read(self.tracer_names[name], month)


# =============================================================================
# REFRESHER
# =============================================================================

class Snapshot(NamedTuple):
    """Velocity and tracer fields of one month, ready for interpolation."""
    month: int
    u: np.ndarray
    v: np.ndarray
    w: Optional[np.ndarray]
    tracers: Dict[str, np.ndarray]


def mask_missing(
    field: np.ndarray,
    name: str = "field",
    strict: bool = False
) -> np.ndarray:
    """
    Replace non-finite values by 0.0.

    Raises:
        MissingDataError: `strict` is set and `field` holds non-finite values
    """
    field = np.array(field, dtype=np.float64)
    bad = ~np.isfinite(field)
    n_bad = int(bad.sum())
    if n_bad:
        if strict:
            raise MissingDataError(f"{n_bad} missing values in {name}")
        logger.debug("masked %d missing values in %s", n_bad, name)
        field[bad] = 0.0
    return field


def _scale(field: np.ndarray, factor) -> np.ndarray:
    factor = np.asarray(factor, dtype=np.float64)
    while factor.ndim and factor.ndim < field.ndim:
        factor = factor[..., np.newaxis]
    return field * factor


class FlowFieldRefresher:
    """
    Loads the snapshots bracketing a time into a FlowField.

    Attributes:
        source: VelocitySource
        inverse_dx: 1 / grid spacing in x [1/m] (scalar or per cell)
        inverse_dy: 1 / grid spacing in y [1/m] (scalar or per cell)
        config: SimulationConfig (snapshot interval, period, reversal)
        connectivity: Halo exchange provider (mesh variants)
        drc: Level spacing [m] per level (3D variants)
        level: Level selected for 2D flows fed by 3D sources
        tracers: Tracer names loaded into aux["tracers"]

    Example:
        >>> R = FlowFieldRefresher(ArrayClimatology(u, v), 1e-4, 1e-4, config)
        >>> F = R.refresh(F, aux, t=0.0)
        >>> F.T
        (-1314000.0, 1314000.0)
    """

    def __init__(
        self,
        source: VelocitySource,
        inverse_dx,
        inverse_dy,
        config: Optional[SimulationConfig] = None,
        connectivity: Optional[TileConnectivity] = None,
        drc: Optional[Sequence[float]] = None,
        level: Optional[int] = None,
        tracers: Sequence[str] = ()
    ):
        self.source = source
        self.inverse_dx = inverse_dx
        self.inverse_dy = inverse_dy
        self.config = config or SimulationConfig()
        self.connectivity = connectivity
        self.drc = None if drc is None else np.asarray(drc, dtype=np.float64)
        self.level = level
        self.tracers = tuple(tracers)
        self._cache: Dict[Tuple[int, str], Snapshot] = {}

    @property
    def dt(self) -> float:
        return self.config.snapshot_interval

    # -------------------------------------------------------------------------
    # Bracket arithmetic
    # -------------------------------------------------------------------------

    def bracket_index(self, t: float) -> int:
        """Index m of the bracket containing t."""
        return int(np.floor((t + self.dt / 2.0) / self.dt))

    def wrap_month(self, m: int) -> int:
        """Map a snapshot index onto 1..period (0 -> period), mirrored if reversed."""
        period = self.config.period
        m = m % period
        if m == 0:
            m = period
        if self.config.reverse_time:
            m = period + 1 - m
        return m

    def months(self, t: float) -> Tuple[int, int]:
        """Months (m0, m1) of the snapshots bracketing t."""
        m = self.bracket_index(t)
        return self.wrap_month(m), self.wrap_month(m + 1)

    def bracket(self, t: float) -> Tuple[float, float]:
        """Bracket (t0, t1) [s] containing t."""
        m = self.bracket_index(t)
        return m * self.dt - self.dt / 2.0, (m + 1) * self.dt - self.dt / 2.0

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def refresh(self, flow: FlowField, aux: Optional[Dict[str, Any]], t: float) -> FlowField:
        """
        Return a FlowField of the same variant as `flow` holding the snapshots
        that bracket `t`.

        Tracer snapshot pairs are stored in `aux["tracers"]`. `flow` itself
        is not modified.
        """
        m0, m1 = self.months(t)
        T = self.bracket(t)
        kind = flow.kind
        if kind.is_mesh and self.connectivity is None:
            raise ConfigurationError(f"{type(flow).__name__} refresh requires a connectivity provider")
        if kind.is_3d and self.drc is None:
            raise ConfigurationError(f"{type(flow).__name__} refresh requires level spacings drc")

        s0 = self._snapshot(m0, kind.is_3d, kind.is_mesh)
        s1 = self._snapshot(m1, kind.is_3d, kind.is_mesh)
        self._cache = {
            key: s for key, s in self._cache.items() if s is s0 or s is s1
        }

        if aux is not None and self.tracers:
            aux.setdefault("tracers", {})
            for name in self.tracers:
                aux["tracers"][name] = (s0.tracers[name], s1.tracers[name])

        logger.debug("refreshed %s at t=%.1f: months (%d, %d), T=%s",
                     type(flow).__name__, t, m0, m1, T)
        return flow.with_snapshots(s0.u, s1.u, s0.v, s1.v, T, w0=s0.w, w1=s1.w)

    def _snapshot(self, month: int, is_3d: bool, is_mesh: bool) -> Snapshot:
        key = (month, f"{int(is_3d)}{int(is_mesh)}")
        if key not in self._cache:
            self._cache[key] = self._load(month, is_3d, is_mesh)
        return self._cache[key]

    def _load(self, month: int, is_3d: bool, is_mesh: bool) -> Snapshot:
        strict = self.config.strict_missing
        factor = self.config.velocity_factor

        u, v = self.source.read_velocities(month)
        u = mask_missing(factor * np.asarray(u, dtype=np.float64), f"u (month {month})", strict)
        v = mask_missing(factor * np.asarray(v, dtype=np.float64), f"v (month {month})", strict)
        u = self._select_level(u, is_3d, is_mesh)
        v = self._select_level(v, is_3d, is_mesh)
        u = _scale(u, self.inverse_dx)
        v = _scale(v, self.inverse_dy)
        if is_mesh:
            u, v = self.connectivity.exchange_uv(u, v)

        w = None
        if is_3d:
            w = self._load_w(month, u.shape[-1], is_mesh)

        tracers = {}
        for name in self.tracers:
            s = mask_missing(self.source.read_tracer(name, month), f"{name} (month {month})", strict)
            s = self._select_level(s, is_3d, is_mesh)
            if is_mesh:
                s = self.connectivity.exchange(s)
            tracers[name] = _readonly(s)

        return Snapshot(month, _readonly(u), _readonly(v),
                        None if w is None else _readonly(w), tracers)

    def _select_level(self, field: np.ndarray, is_3d: bool, is_mesh: bool) -> np.ndarray:
        horizontal = 3 if is_mesh else 2
        if is_3d or field.ndim == horizontal:
            return field
        if self.level is None:
            raise ConfigurationError(
                f"3D source field {field.shape} for a 2D flow requires `level`"
            )
        return field[..., self.level]

    def _load_w(self, month: int, nr: int, is_mesh: bool) -> np.ndarray:
        if len(self.drc) != nr:
            raise ConfigurationError(f"{len(self.drc)} level spacings for {nr} levels")

        w = self.source.read_vertical_velocity(month)
        w = mask_missing(self.config.velocity_factor * np.asarray(w, dtype=np.float64),
                         f"w (month {month})", self.config.strict_missing)
        if w.shape[-1] != nr:
            raise ConfigurationError(f"w has {w.shape[-1]} levels, expected {nr}")
        if is_mesh:
            w = self.connectivity.exchange(w)

        # z increases downward: w > 0 (upward) moves individuals to lower z
        out = np.zeros(w.shape[:-1] + (nr + 1,))
        out[..., :nr] = -w / self.drc
        out[..., 0] = 0.0
        out[..., nr] = 0.0
        return out
