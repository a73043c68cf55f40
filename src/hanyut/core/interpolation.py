"""
Velocity Interpolation on Staggered Flow Fields.

Computes the velocity of an individual at a continuous grid-index position:
    - bilinear in the horizontal, using the four neighbours of the
      staggered location of each component
    - linear in time between the two bracketing snapshots,
      a = (t - t0) / (t1 - t0)
    - linear in the vertical between adjacent levels, with level indices
      clamped to the first and last level (no extrapolation)

Array-backed fields wrap around periodically in both directions. Mesh-backed
fields are read on the tile given by the last position column. A lookup past
the one-cell halo is re-read on the tile the location-update capability maps
the position to (same orientation assumed); if that fails too, DomainError
is raised.

Kernels are compiled with Numba.
"""

from typing import Callable, Dict, Tuple

import numpy as np
from numba import njit

from .errors import DomainError
from .flowfields import FlowField, FlowKind


# =============================================================================
# NUMBA KERNELS
# =============================================================================

@njit(cache=True)
def _wrap(i: int, n: int) -> int:
    return ((i % n) + n) % n


@njit(cache=True)
def _bilinear_periodic(f: np.ndarray, xi: float, eta: float) -> float:
    """
    Bilinear interpolation of a periodic 2D array at index coordinates.

    Node layout:
        (i, j+1) --- (i+1, j+1)
           |    p       |
        (i, j) ----- (i+1, j)
    """
    nx, ny = f.shape
    fi = np.floor(xi)
    fj = np.floor(eta)
    a = xi - fi
    b = eta - fj
    i0 = _wrap(int(fi), nx)
    j0 = _wrap(int(fj), ny)
    i1 = _wrap(i0 + 1, nx)
    j1 = _wrap(j0 + 1, ny)
    return (
        (1.0 - a) * (1.0 - b) * f[i0, j0] +
        a * (1.0 - b) * f[i1, j0] +
        (1.0 - a) * b * f[i0, j1] +
        a * b * f[i1, j1]
    )


@njit(cache=True)
def _bilinear_periodic_level(f: np.ndarray, xi: float, eta: float, k: int) -> float:
    nx = f.shape[0]
    ny = f.shape[1]
    fi = np.floor(xi)
    fj = np.floor(eta)
    a = xi - fi
    b = eta - fj
    i0 = _wrap(int(fi), nx)
    j0 = _wrap(int(fj), ny)
    i1 = _wrap(i0 + 1, nx)
    j1 = _wrap(j0 + 1, ny)
    return (
        (1.0 - a) * (1.0 - b) * f[i0, j0, k] +
        a * (1.0 - b) * f[i1, j0, k] +
        (1.0 - a) * b * f[i0, j1, k] +
        a * b * f[i1, j1, k]
    )


@njit(cache=True)
def _level_pair(zeta: float, nz: int) -> Tuple[int, int, float]:
    """Bracketing levels of `zeta`, both clamped to [0, nz - 1]."""
    fk = np.floor(zeta)
    c = zeta - fk
    k1 = int(fk)
    k2 = k1 + 1
    k1 = min(max(k1, 0), nz - 1)
    k2 = min(max(k2, 0), nz - 1)
    return k1, k2, c


@njit(cache=True)
def _trilinear_periodic(f: np.ndarray, xi: float, eta: float, zeta: float) -> float:
    k1, k2, c = _level_pair(zeta, f.shape[2])
    return (
        (1.0 - c) * _bilinear_periodic_level(f, xi, eta, k1) +
        c * _bilinear_periodic_level(f, xi, eta, k2)
    )


@njit(cache=True)
def _halo_cell(c: float, n: int) -> Tuple[int, float]:
    """
    Lower array index and fractional offset of coordinate `c` on an axis of
    `n` points that starts with one halo point (array index = c + 1).

    Returns index -1 when `c` falls outside the halo.
    """
    p = c + 1.0
    if not (p >= 0.0 and p <= n - 1.0):
        return -1, 0.0
    i = int(np.floor(p))
    if i >= n - 1:
        i = n - 2
    return i, p - i


@njit(cache=True)
def _bilinear_halo(f: np.ndarray, xi: float, eta: float) -> float:
    i, a = _halo_cell(xi, f.shape[0])
    j, b = _halo_cell(eta, f.shape[1])
    if i < 0 or j < 0:
        return np.nan
    return (
        (1.0 - a) * (1.0 - b) * f[i, j] +
        a * (1.0 - b) * f[i + 1, j] +
        (1.0 - a) * b * f[i, j + 1] +
        a * b * f[i + 1, j + 1]
    )


@njit(cache=True)
def _bilinear_halo_level(f: np.ndarray, xi: float, eta: float, k: int) -> float:
    i, a = _halo_cell(xi, f.shape[0])
    j, b = _halo_cell(eta, f.shape[1])
    if i < 0 or j < 0:
        return np.nan
    return (
        (1.0 - a) * (1.0 - b) * f[i, j, k] +
        a * (1.0 - b) * f[i + 1, j, k] +
        (1.0 - a) * b * f[i, j + 1, k] +
        a * b * f[i + 1, j + 1, k]
    )


@njit(cache=True)
def _trilinear_halo(f: np.ndarray, xi: float, eta: float, zeta: float) -> float:
    k1, k2, c = _level_pair(zeta, f.shape[2])
    return (
        (1.0 - c) * _bilinear_halo_level(f, xi, eta, k1) +
        c * _bilinear_halo_level(f, xi, eta, k2)
    )


# =============================================================================
# VELOCITY PER VARIANT
# =============================================================================

def _tile(position: np.ndarray, n_tiles: int) -> int:
    fid = int(round(position[-1]))
    if not 0 <= fid < n_tiles:
        raise DomainError(f"tile id {position[-1]} outside [0, {n_tiles - 1}]")
    return fid


def _uv_array(p: np.ndarray, F: FlowField, a: float) -> np.ndarray:
    x, y = p[0], p[1]
    du = np.zeros(2)
    du[0] = ((1.0 - a) * _bilinear_periodic(F.u0, x, y - 0.5) +
             a * _bilinear_periodic(F.u1, x, y - 0.5))
    du[1] = ((1.0 - a) * _bilinear_periodic(F.v0, x - 0.5, y) +
             a * _bilinear_periodic(F.v1, x - 0.5, y))
    return du


def _uvw_array(p: np.ndarray, F: FlowField, a: float) -> np.ndarray:
    x, y, z = p[0], p[1], p[2]
    du = np.zeros(3)
    du[0] = ((1.0 - a) * _trilinear_periodic(F.u0, x, y - 0.5, z - 0.5) +
             a * _trilinear_periodic(F.u1, x, y - 0.5, z - 0.5))
    du[1] = ((1.0 - a) * _trilinear_periodic(F.v0, x - 0.5, y, z - 0.5) +
             a * _trilinear_periodic(F.v1, x - 0.5, y, z - 0.5))
    du[2] = ((1.0 - a) * _trilinear_periodic(F.w0, x - 0.5, y - 0.5, z) +
             a * _trilinear_periodic(F.w1, x - 0.5, y - 0.5, z))
    return du


def _uv_mesh(p: np.ndarray, F: FlowField, a: float) -> np.ndarray:
    f = _tile(p, F.n_tiles)
    x, y = p[0], p[1]
    du = np.zeros(3)
    du[0] = ((1.0 - a) * _bilinear_halo(F.u0[f], x, y - 0.5) +
             a * _bilinear_halo(F.u1[f], x, y - 0.5))
    du[1] = ((1.0 - a) * _bilinear_halo(F.v0[f], x - 0.5, y) +
             a * _bilinear_halo(F.v1[f], x - 0.5, y))
    return du


def _uvw_mesh(p: np.ndarray, F: FlowField, a: float) -> np.ndarray:
    f = _tile(p, F.n_tiles)
    x, y, z = p[0], p[1], p[2]
    du = np.zeros(4)
    du[0] = ((1.0 - a) * _trilinear_halo(F.u0[f], x, y - 0.5, z - 0.5) +
             a * _trilinear_halo(F.u1[f], x, y - 0.5, z - 0.5))
    du[1] = ((1.0 - a) * _trilinear_halo(F.v0[f], x - 0.5, y, z - 0.5) +
             a * _trilinear_halo(F.v1[f], x - 0.5, y, z - 0.5))
    du[2] = ((1.0 - a) * _trilinear_halo(F.w0[f], x - 0.5, y - 0.5, z) +
             a * _trilinear_halo(F.w1[f], x - 0.5, y - 0.5, z))
    return du


_VELOCITY: Dict[FlowKind, Callable[[np.ndarray, FlowField, float], np.ndarray]] = {
    FlowKind.UV_ARRAY: _uv_array,
    FlowKind.UVW_ARRAY: _uvw_array,
    FlowKind.UV_MESH: _uv_mesh,
    FlowKind.UVW_MESH: _uvw_mesh,
}


def velocity(position: np.ndarray, flow: FlowField, t: float) -> np.ndarray:
    """
    Velocity of an individual at `position` and time `t`.

    Args:
        position: Grid-index position (x, y[, z][, fid])
        flow: FlowField bracketing `t`
        t: Time [s]

    Returns:
        Rate of change of each position column [grid units / s];
        the tile-id rate is zero.

    Raises:
        DomainError: position is non-finite or outside the resolvable
            range of its tile
    """
    p = np.asarray(position, dtype=np.float64)
    if p.shape != (flow.kind.position_dims,):
        raise DomainError(
            f"position {p.tolist()} does not match {type(flow).__name__} "
            f"({flow.kind.position_dims} columns)"
        )
    if not np.all(np.isfinite(p)):
        raise DomainError(f"non-finite position {p.tolist()}")

    a = flow.time_weight(t)
    du = _VELOCITY[flow.kind](p, flow, a)

    if flow.kind.is_mesh and not np.all(np.isfinite(du)):
        # Past the halo: read the equivalent point on the neighbouring tile.
        # The caller's position is left untouched.
        q = p.copy()
        flow.update_location(q)
        du = _VELOCITY[flow.kind](q, flow, a)

    if not np.all(np.isfinite(du)):
        raise DomainError(f"position {p.tolist()} outside resolvable tile range")
    return du


def speed(position: np.ndarray, flow: FlowField, t: float) -> float:
    """Magnitude of the spatial velocity components at `position`."""
    du = velocity(position, flow, t)
    return float(np.sqrt(np.sum(du[:flow.kind.spatial_dims] ** 2)))


# =============================================================================
# SCALAR FIELDS
# =============================================================================

def interpolate_scalar(
    field: np.ndarray,
    position: np.ndarray,
    kind: FlowKind,
    offset: Tuple[float, float, float] = (0.5, 0.5, 0.5)
) -> float:
    """
    Interpolate a gridded scalar at a position.

    The field must use the layout of the FlowField variant: (nx, ny[, nr])
    for array variants, (nt, nx+2, ny+2[, nr]) for mesh variants. A 2D field
    under a 3D variant is read without vertical interpolation.

    Args:
        field: Gridded scalar (e.g. longitude, temperature, land mask)
        position: Grid-index position (x, y[, z][, fid])
        kind: FlowField variant the position belongs to
        offset: Staggering of the field; cell centres by default

    Returns:
        Interpolated value (NaN outside the halo of mesh tiles)
    """
    field = np.asarray(field, dtype=np.float64)
    x = float(position[0]) - offset[0]
    y = float(position[1]) - offset[1]
    if kind.is_mesh:
        tile = field[int(round(position[-1]))]
        if kind.is_3d and tile.ndim == 3:
            return float(_trilinear_halo(tile, x, y, float(position[2]) - offset[2]))
        return float(_bilinear_halo(tile, x, y))
    if kind.is_3d and field.ndim == 3:
        return float(_trilinear_periodic(field, x, y, float(position[2]) - offset[2]))
    return float(_bilinear_periodic(field, x, y))
