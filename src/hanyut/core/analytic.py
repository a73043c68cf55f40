"""
Idealised Flow Fields for a Recirculating Basin.

Implements Bell's incompressible recirculation on a doubly periodic C-grid
and packages it as every FlowField variant:

    u = -(U0/2) sin²(πx/Lx) sin(2πy/Ly)
    v =  (U0/2) sin²(πy/Ly) sin(2πx/Lx)

Properties:
    - Incompressible: ∇·v = 0
    - Periodic over (Lx, Ly), so it can be laid on periodic arrays and on a
      zonal ring of tiles
    - Single gyre with stagnant corners

The 3D version decays the horizontal flow with depth and adds a weak
overturning w that vanishes at the surface and the floor. Monthly
climatologies modulate the amplitude seasonally and carry idealised
temperature and salinity fields.

References:
    Bell, J. B., Colella, P., & Glaz, H. M. (1989). J. Comput. Phys., 85(2), 257-283.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np
from numba import njit

from .flowfields import FlowField, UVArrays, UVMeshArrays, UVWArrays, UVWMeshArrays
from .mesh import TileRing
from .refresh import ArrayClimatology


@njit(cache=True)
def _bell_velocity(x: float, y: float, Lx: float, Ly: float, U0: float) -> Tuple[float, float]:
    """Bell's velocity (u, v) [m/s] at (x, y) [m]."""
    pi = np.pi
    x_norm = pi * x / Lx
    y_norm = pi * y / Ly
    u = -0.5 * U0 * np.sin(x_norm)**2 * np.sin(2 * y_norm)
    v = 0.5 * U0 * np.sin(y_norm)**2 * np.sin(2 * x_norm)
    return u, v


@njit(cache=True)
def _bell_faces(nx: int, ny: int, dx: float, dy: float, U0: float) -> Tuple[np.ndarray, np.ndarray]:
    """u at (i, j+1/2) and v at (i+1/2, j) faces [m/s]."""
    Lx = nx * dx
    Ly = ny * dy
    u = np.zeros((nx, ny), dtype=np.float64)
    v = np.zeros((nx, ny), dtype=np.float64)
    for i in range(nx):
        for j in range(ny):
            u[i, j], _ = _bell_velocity(i * dx, (j + 0.5) * dy, Lx, Ly, U0)
            _, v[i, j] = _bell_velocity((i + 0.5) * dx, j * dy, Lx, Ly, U0)
    return u, v


@dataclass
class BasinSystem:
    """
    Periodic basin with Bell's recirculation.

    Attributes:
        nx, ny: Number of cells in x and y
        nr: Number of levels (3D flows)
        dx, dy: Cell size [m]
        H: Depth [m]
        U0: Maximum velocity [m/s]
        W0: Overturning vertical velocity amplitude [m/s]
        seasonal_amplitude: Relative seasonal modulation of U0
        lon0, lat0: South-west corner [degrees]
        dlon, dlat: Cell size [degrees]

    Example:
        >>> basin = BasinSystem(nx=50, ny=50, dx=1000.0, dy=1000.0, U0=0.3)
        >>> F = basin.flow_fields_2d((0.0, 86400.0))
    """
    nx: int = 50
    ny: int = 50
    nr: int = 5
    dx: float = 1000.0   # [m]
    dy: float = 1000.0   # [m]
    H: float = 100.0     # [m]
    U0: float = 0.3      # [m/s]
    W0: float = 1e-5     # [m/s]
    seasonal_amplitude: float = 0.5
    lon0: float = 100.0
    lat0: float = -10.0
    dlon: float = 0.01
    dlat: float = 0.01

    @property
    def Lx(self) -> float:
        return self.nx * self.dx

    @property
    def Ly(self) -> float:
        return self.ny * self.dy

    @property
    def T_circ(self) -> float:
        """Circulation timescale πL/U₀ [s]."""
        return np.pi * self.Lx / self.U0

    @property
    def T_circ_days(self) -> float:
        return self.T_circ / 86400.0

    @property
    def drc(self) -> np.ndarray:
        """Level spacing [m]."""
        return np.full(self.nr, self.H / self.nr)

    def __repr__(self) -> str:
        return (
            f"BasinSystem({self.nx}x{self.ny}x{self.nr} cells, "
            f"Lx={self.Lx/1e3:.1f} km, Ly={self.Ly/1e3:.1f} km, "
            f"H={self.H:.0f} m, U0={self.U0:.2f} m/s, "
            f"T_circ={self.T_circ_days:.1f} days)"
        )

    def describe(self) -> str:
        """Return detailed description of the basin."""
        return f"""
Recirculating Basin
===================
Grid:
  {self.nx} x {self.ny} cells, {self.nr} levels
  dx = {self.dx/1e3:.2f} km, dy = {self.dy/1e3:.2f} km, H = {self.H:.1f} m
  lon {self.lon0:.2f} .. {self.lon0 + self.nx * self.dlon:.2f}
  lat {self.lat0:.2f} .. {self.lat0 + self.ny * self.dlat:.2f}

Flow:
  U₀ = {self.U0:.3f} m/s, W₀ = {self.W0:.1e} m/s
  T_circ = {self.T_circ_days:.2f} days
  Seasonal amplitude = {self.seasonal_amplitude:.2f}
"""

    # -------------------------------------------------------------------------
    # Gridded fields in physical units
    # -------------------------------------------------------------------------

    def face_velocities(self, scale: float = 1.0) -> Tuple[np.ndarray, np.ndarray]:
        """Surface u, v at cell faces [m/s], shape (nx, ny)."""
        return _bell_faces(self.nx, self.ny, self.dx, self.dy, scale * self.U0)

    def depth_profile(self) -> np.ndarray:
        """Decay of the horizontal flow at each level centre."""
        z = (np.arange(self.nr) + 0.5) / self.nr
        return np.exp(-z)

    def face_velocities_3d(self, scale: float = 1.0) -> Tuple[np.ndarray, np.ndarray]:
        """u, v [m/s], shape (nx, ny, nr)."""
        u, v = self.face_velocities(scale)
        profile = self.depth_profile()
        return u[:, :, None] * profile, v[:, :, None] * profile

    def vertical_velocity(self, scale: float = 1.0) -> np.ndarray:
        """
        Upward velocity [m/s] at the top of each level, shape (nx, ny, nr).

        Upwelling in the gyre centre, downwelling along the rim, zero at
        the surface.
        """
        x = (np.arange(self.nx) + 0.5) / self.nx
        y = (np.arange(self.ny) + 0.5) / self.ny
        pattern = np.cos(2 * np.pi * x)[:, None] * np.cos(2 * np.pi * y)[None, :]
        top = np.arange(self.nr) / self.nr
        return -scale * self.W0 * pattern[:, :, None] * np.sin(np.pi * top)

    def grid_coordinates(self) -> Tuple[np.ndarray, np.ndarray]:
        """Cell-centre longitude and latitude [degrees], shape (nx, ny)."""
        lon = self.lon0 + (np.arange(self.nx) + 0.5) * self.dlon
        lat = self.lat0 + (np.arange(self.ny) + 0.5) * self.dlat
        XC, YC = np.meshgrid(lon, lat, indexing='ij')
        return XC, YC

    def temperature(self, month: int = 1) -> np.ndarray:
        """Idealised potential temperature [°C], shape (nx, ny, nr)."""
        y = (np.arange(self.ny) + 0.5) / self.ny
        z = (np.arange(self.nr) + 0.5) / self.nr
        season = 2.0 * np.cos(2 * np.pi * (month - 1) / 12.0)
        surface = 28.0 - 4.0 * y + season
        return np.broadcast_to(
            surface[None, :, None] - 15.0 * z[None, None, :], (self.nx, self.ny, self.nr)
        ).copy()

    def salinity(self, month: int = 1) -> np.ndarray:
        """Idealised salinity [psu], shape (nx, ny, nr)."""
        x = (np.arange(self.nx) + 0.5) / self.nx
        z = (np.arange(self.nr) + 0.5) / self.nr
        field = 34.0 + 0.5 * np.sin(2 * np.pi * x)[:, None, None] + 0.8 * z[None, None, :]
        return np.broadcast_to(field, (self.nx, self.ny, self.nr)).copy()

    def seasonal_scale(self, month: int) -> float:
        return 1.0 + self.seasonal_amplitude * np.cos(2 * np.pi * (month - 1) / 12.0)

    # -------------------------------------------------------------------------
    # FlowFields (grid units / s)
    # -------------------------------------------------------------------------

    def flow_fields_2d(self, period: Tuple[float, float]) -> UVArrays:
        """Steady surface flow as UVArrays."""
        u, v = self.face_velocities()
        return UVArrays(u / self.dx, u / self.dx, v / self.dy, v / self.dy, period)

    def flow_fields_3d(self, period: Tuple[float, float]) -> UVWArrays:
        """Steady 3D flow as UVWArrays (w zero at surface and floor)."""
        u, v = self.face_velocities_3d()
        w = np.zeros((self.nx, self.ny, self.nr + 1))
        w[:, :, :self.nr] = -self.vertical_velocity() / self.drc
        w[:, :, 0] = 0.0
        u, v = u / self.dx, v / self.dy
        return UVWArrays(u, u, v, v, period, w, w)

    def tile_ring(self, n_tiles: int) -> TileRing:
        """Split the basin zonally into `n_tiles` tiles."""
        if self.nx % n_tiles:
            raise ValueError(f"nx={self.nx} is not divisible by {n_tiles} tiles")
        return TileRing(n_tiles, self.nx // n_tiles, self.ny)

    def to_tiles(self, field: np.ndarray, n_tiles: int) -> np.ndarray:
        """Reshape (nx, ny, ...) into (n_tiles, nx / n_tiles, ny, ...)."""
        return field.reshape((n_tiles, self.nx // n_tiles) + field.shape[1:])

    def mesh_flow_fields(self, period: Tuple[float, float], n_tiles: int,
                         three_d: bool = False) -> FlowField:
        """Steady flow on a ring of tiles (UVMeshArrays or UVWMeshArrays)."""
        ring = self.tile_ring(n_tiles)
        if three_d:
            F = self.flow_fields_3d(period)
        else:
            F = self.flow_fields_2d(period)
        u, v = ring.exchange_uv(self.to_tiles(F.u0, n_tiles), self.to_tiles(F.v0, n_tiles))
        if three_d:
            w = ring.exchange(self.to_tiles(F.w0, n_tiles))
            return UVWMeshArrays(u, u, v, v, period, w, w, ring.update_location)
        return UVMeshArrays(u, u, v, v, period, ring.update_location)

    def mesh_grid_coordinates(self, n_tiles: int) -> Tuple[np.ndarray, np.ndarray]:
        """Halo-padded tile longitude and latitude."""
        ring = self.tile_ring(n_tiles)
        XC, YC = self.grid_coordinates()
        return (ring.exchange(self.to_tiles(XC, n_tiles)),
                ring.exchange(self.to_tiles(YC, n_tiles)))

    def climatology(self, period: int = 12, three_d: bool = False,
                    n_tiles: Optional[int] = None) -> ArrayClimatology:
        """
        Monthly snapshots in physical units [m/s], as read from model output.

        Tracers "THETA" and "SALT" are included. With `n_tiles`, fields use
        the tiled layout (n_tiles, nx / n_tiles, ny, ...).
        """
        u, v, w = {}, {}, {}
        tracers: Dict[str, Dict[int, np.ndarray]] = {"THETA": {}, "SALT": {}}
        for m in range(1, period + 1):
            s = self.seasonal_scale(m)
            if three_d:
                u[m], v[m] = self.face_velocities_3d(s)
                w[m] = self.vertical_velocity(s)
            else:
                u[m], v[m] = self.face_velocities(s)
            tracers["THETA"][m] = self.temperature(m)
            tracers["SALT"][m] = self.salinity(m)

        if n_tiles is not None:
            def tile(d):
                return {m: self.to_tiles(a, n_tiles) for m, a in d.items()}
            u, v, w = tile(u), tile(v), tile(w)
            tracers = {name: tile(s) for name, s in tracers.items()}

        return ArrayClimatology(u, v, w if three_d else None, tracers)


def uniform_flow_fields(
    shape: Tuple[int, ...],
    u: float,
    v: float,
    period: Tuple[float, float],
    w: Optional[float] = None
) -> FlowField:
    """
    Spatially uniform flow [grid units / s] on periodic arrays.

    Example:
        >>> F = uniform_flow_fields((20, 20), 1.0, 0.0, (0.0, 10.0))
    """
    U = np.full(shape, float(u))
    V = np.full(shape, float(v))
    if w is None:
        return UVArrays(U, U, V, V, period)
    W = np.full(tuple(shape[:-1]) + (shape[-1] + 1,), float(w))
    W[..., 0] = 0.0
    W[..., -1] = 0.0
    return UVWArrays(U, U, V, V, period, W, W)
