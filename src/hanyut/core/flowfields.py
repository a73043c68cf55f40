"""
Flow Field Containers on a Staggered C-Grid.

A FlowField holds two time-bracketing snapshots of the velocity components
plus the bracket T = (t0, t1) in seconds. Velocities are expected in grid
index units per second.

Staggering (0-based continuous index coordinates, cell i spans [i, i+1]):
    - tracer / cell centre:  (i + 1/2, j + 1/2)
    - u[i, j]:               (i,       j + 1/2)
    - v[i, j]:               (i + 1/2, j      )
    - level k centre:        z = k + 1/2
    - w[..., k] interface:   z = k   (nr + 1 interfaces for nr levels)

Variants:
    UVArrays       u, v (nx, ny)                      position (x, y)
    UVWArrays      u, v (nx, ny, nr), w (.., nr + 1)  position (x, y, z)
    UVMeshArrays   u, v (nt, nx+2, ny+2)              position (x, y, fid)
    UVWMeshArrays  u, v (nt, nx+2, ny+2, nr)          position (x, y, z, fid)

Array variants are doubly periodic. Mesh variants store every tile with a
one-cell halo and carry the location-update capability that re-maps a
position onto its neighbouring tile once it leaves the current one.
"""

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Callable, ClassVar, Optional, Tuple, Union

import numpy as np

from .errors import ConfigurationError


class FlowKind(Enum):
    """Tag of each FlowField variant."""
    UV_ARRAY = "uv_array"
    UVW_ARRAY = "uvw_array"
    UV_MESH = "uv_mesh"
    UVW_MESH = "uvw_mesh"

    @property
    def is_mesh(self) -> bool:
        return self in (FlowKind.UV_MESH, FlowKind.UVW_MESH)

    @property
    def is_3d(self) -> bool:
        return self in (FlowKind.UVW_ARRAY, FlowKind.UVW_MESH)

    @property
    def spatial_dims(self) -> int:
        """Number of integrated coordinates (x, y and possibly z)."""
        return 3 if self.is_3d else 2

    @property
    def position_dims(self) -> int:
        """Number of position columns, tile id included."""
        return self.spatial_dims + (1 if self.is_mesh else 0)


def _readonly(array) -> np.ndarray:
    arr = np.asarray(array, dtype=np.float64).view()
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class FlowField:
    """
    Two velocity snapshots bracketing the interval T.

    Attributes:
        u0, u1: Zonal (x) velocity at t0 and t1 [grid units / s]
        v0, v1: Meridional (y) velocity at t0 and t1 [grid units / s]
        T: Bracket (t0, t1) [s], t0 < t1
    """
    u0: np.ndarray
    u1: np.ndarray
    v0: np.ndarray
    v1: np.ndarray
    T: Tuple[float, float]

    kind: ClassVar[FlowKind]
    array_ndim: ClassVar[int]
    _arrays: ClassVar[Tuple[str, ...]] = ("u0", "u1", "v0", "v1")

    def __post_init__(self):
        for name in self._arrays:
            object.__setattr__(self, name, _readonly(getattr(self, name)))

        bracket = np.asarray(self.T, dtype=np.float64).ravel()
        if bracket.size != 2:
            raise ConfigurationError(f"T must hold two times, got {bracket.size}")
        if not bracket[0] < bracket[1]:
            raise ConfigurationError(f"T must satisfy t0 < t1, got {tuple(bracket)}")
        object.__setattr__(self, "T", (float(bracket[0]), float(bracket[1])))

        self._check_shapes()

    def _check_shapes(self):
        shape = self.u0.shape
        if self.u0.ndim != self.array_ndim:
            raise ConfigurationError(
                f"{type(self).__name__} expects {self.array_ndim}D arrays, "
                f"got shape {shape}"
            )
        for name in ("u1", "v0", "v1"):
            if getattr(self, name).shape != shape:
                raise ConfigurationError(
                    f"inconsistent array sizes: u0 {shape} vs "
                    f"{name} {getattr(self, name).shape}"
                )

    @property
    def dt(self) -> float:
        """Bracket width t1 - t0 [s]."""
        return self.T[1] - self.T[0]

    def time_weight(self, t: float) -> float:
        """
        Linear interpolation weight of snapshot 1, (t - t0) / (t1 - t0).

        Times outside T extrapolate linearly from the two snapshots.
        """
        return (t - self.T[0]) / (self.T[1] - self.T[0])

    def with_snapshots(self, u0, u1, v0, v1, T, w0=None, w1=None) -> 'FlowField':
        """Return a new FlowField of the same variant holding new snapshots."""
        return dataclasses.replace(self, u0=u0, u1=u1, v0=v0, v1=v1, T=T)


@dataclass(frozen=True, eq=False)
class UVArrays(FlowField):
    """Single-tile, doubly periodic, 2D velocity snapshots."""
    kind: ClassVar[FlowKind] = FlowKind.UV_ARRAY
    array_ndim: ClassVar[int] = 2

    @property
    def grid_shape(self) -> Tuple[int, int]:
        return self.u0.shape


def _check_w(field: FlowField):
    expected = field.u0.shape[:-1] + (field.u0.shape[-1] + 1,)
    for name in ("w0", "w1"):
        shape = getattr(field, name).shape
        if shape != expected:
            raise ConfigurationError(
                f"inconsistent array sizes: {name} {shape}, expected {expected} "
                "(one more level than u)"
            )


@dataclass(frozen=True, eq=False)
class UVWArrays(FlowField):
    """Single-tile, doubly periodic, 3D velocity snapshots."""
    w0: np.ndarray = None
    w1: np.ndarray = None

    kind: ClassVar[FlowKind] = FlowKind.UVW_ARRAY
    array_ndim: ClassVar[int] = 3
    _arrays: ClassVar[Tuple[str, ...]] = ("u0", "u1", "v0", "v1", "w0", "w1")

    def _check_shapes(self):
        super()._check_shapes()
        _check_w(self)

    @property
    def grid_shape(self) -> Tuple[int, int]:
        return self.u0.shape[:2]

    @property
    def n_levels(self) -> int:
        return self.u0.shape[2]

    def with_snapshots(self, u0, u1, v0, v1, T, w0=None, w1=None) -> 'UVWArrays':
        return dataclasses.replace(self, u0=u0, u1=u1, v0=v0, v1=v1, w0=w0, w1=w1, T=T)


@dataclass(frozen=True, eq=False)
class UVMeshArrays(FlowField):
    """
    Multi-tile 2D velocity snapshots with a one-cell halo.

    Attributes:
        update_location: Callable mapping a position (x, y, fid) in place
            onto the tile that contains it
    """
    update_location: Callable = None

    kind: ClassVar[FlowKind] = FlowKind.UV_MESH
    array_ndim: ClassVar[int] = 3

    def _check_shapes(self):
        super()._check_shapes()
        if min(self.u0.shape[1:3]) < 3:
            raise ConfigurationError("mesh tiles need at least one interior cell plus halo")
        if not callable(self.update_location):
            raise ConfigurationError("mesh flow fields require an update_location callable")

    @property
    def n_tiles(self) -> int:
        return self.u0.shape[0]

    @property
    def tile_shape(self) -> Tuple[int, int]:
        """Interior (halo excluded) tile size (nx, ny)."""
        return self.u0.shape[1] - 2, self.u0.shape[2] - 2


@dataclass(frozen=True, eq=False)
class UVWMeshArrays(FlowField):
    """Multi-tile 3D velocity snapshots with a one-cell horizontal halo."""
    w0: np.ndarray = None
    w1: np.ndarray = None
    update_location: Callable = None

    kind: ClassVar[FlowKind] = FlowKind.UVW_MESH
    array_ndim: ClassVar[int] = 4
    _arrays: ClassVar[Tuple[str, ...]] = ("u0", "u1", "v0", "v1", "w0", "w1")

    def _check_shapes(self):
        super()._check_shapes()
        _check_w(self)
        if min(self.u0.shape[1:3]) < 3:
            raise ConfigurationError("mesh tiles need at least one interior cell plus halo")
        if not callable(self.update_location):
            raise ConfigurationError("mesh flow fields require an update_location callable")

    @property
    def n_tiles(self) -> int:
        return self.u0.shape[0]

    @property
    def tile_shape(self) -> Tuple[int, int]:
        return self.u0.shape[1] - 2, self.u0.shape[2] - 2

    @property
    def n_levels(self) -> int:
        return self.u0.shape[3]

    def with_snapshots(self, u0, u1, v0, v1, T, w0=None, w1=None) -> 'UVWMeshArrays':
        return dataclasses.replace(self, u0=u0, u1=u1, v0=v0, v1=v1, w0=w0, w1=w1, T=T)


def to_c_grid(x: np.ndarray, axis: int) -> np.ndarray:
    """
    Move a cell-centred field onto the faces normal to `axis`.

    Face i is the average of centres i-1 and i (periodic wraparound).
    """
    x = np.asarray(x, dtype=np.float64)
    return 0.5 * (np.roll(x, 1, axis=axis) + x)


def centers_to_interfaces(w: np.ndarray) -> np.ndarray:
    """
    Move a level-centred vertical velocity onto the nr + 1 level interfaces.

    Interior interfaces average the two adjacent levels; the surface and
    floor interfaces carry no flux.
    """
    w = np.asarray(w, dtype=np.float64)
    out = np.zeros(w.shape[:-1] + (w.shape[-1] + 1,))
    out[..., 1:-1] = 0.5 * (w[..., :-1] + w[..., 1:])
    return out


def _pair(x) -> Tuple[np.ndarray, np.ndarray]:
    if isinstance(x, (tuple, list)) and len(x) == 2:
        return x[0], x[1]
    return x, x


def flow_fields(
    u: Union[np.ndarray, Tuple[np.ndarray, np.ndarray]],
    v: Union[np.ndarray, Tuple[np.ndarray, np.ndarray]],
    period: Tuple[float, float],
    w: Optional[Union[np.ndarray, Tuple[np.ndarray, np.ndarray]]] = None,
    gridtype: str = "c_grid",
    update_location: Optional[Callable] = None
) -> FlowField:
    """
    Build the FlowField variant matching the supplied arrays.

    Args:
        u, v: One array (steady flow) or a (snapshot0, snapshot1) pair
        period: Bracket (t0, t1) [s]
        w: Optional vertical velocity, array or pair
        gridtype: "c_grid" if u, v (and w) are already staggered,
            "centered" if they are given at cell centres
        update_location: Location-update capability; selects a mesh variant

    Returns:
        UVArrays, UVWArrays, UVMeshArrays or UVWMeshArrays

    Example:
        >>> F = flow_fields(u, v, period=(0.0, 10.0))
        >>> F = flow_fields((u0, u1), (v0, v1), (0.0, 86400.0), w=(w0, w1))
    """
    if gridtype not in ("c_grid", "centered"):
        raise ConfigurationError(f"unknown gridtype: {gridtype}")

    u0, u1 = _pair(u)
    v0, v1 = _pair(v)
    w0, w1 = _pair(w) if w is not None else (None, None)

    if gridtype == "centered":
        xaxis = 1 if update_location is not None else 0
        u0, u1 = to_c_grid(u0, axis=xaxis), to_c_grid(u1, axis=xaxis)
        v0, v1 = to_c_grid(v0, axis=xaxis + 1), to_c_grid(v1, axis=xaxis + 1)
        if w0 is not None:
            w0, w1 = centers_to_interfaces(w0), centers_to_interfaces(w1)

    if update_location is not None:
        if w0 is not None:
            return UVWMeshArrays(u0, u1, v0, v1, period, w0, w1, update_location)
        return UVMeshArrays(u0, u1, v0, v1, period, update_location)
    if w0 is not None:
        return UVWArrays(u0, u1, v0, v1, period, w0, w1)
    return UVArrays(u0, u1, v0, v1, period)
