"""
Tile Connectivity for Mesh-Backed Flow Fields.

The connectivity provider supplies the two capabilities the core needs for
multi-tile grids:
    - exchange: pad every tile with a one-cell halo taken from its neighbours
    - update_location: re-map a position that left its tile onto the
      neighbouring tile

TileRing is a reference provider: nt equally sized tiles joined west to east
in a ring (a zonally periodic channel split into tiles), each tile periodic
in the north-south direction.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .errors import ConfigurationError, DomainError


class TileConnectivity(ABC):
    """Interface of a grid connectivity provider."""

    @abstractmethod
    def exchange(self, field: np.ndarray) -> np.ndarray:
        """Return `field` (nt, nx, ny, ...) padded to (nt, nx+2, ny+2, ...)."""

    def exchange_uv(self, u: np.ndarray, v: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Halo exchange of a vector field; scalar exchange unless overridden."""
        return self.exchange(u), self.exchange(v)

    @abstractmethod
    def update_location(self, position: np.ndarray) -> None:
        """Re-map `position` (x, y[, z], fid) in place onto its tile."""


@dataclass(frozen=True)
class TileRing(TileConnectivity):
    """
    Ring of `n_tiles` tiles of `nx` by `ny` cells.

    Tile f borders tile f-1 to the west and tile f+1 to the east
    (indices modulo n_tiles).
    """
    n_tiles: int
    nx: int
    ny: int

    def __post_init__(self):
        if self.n_tiles < 1 or self.nx < 1 or self.ny < 1:
            raise ConfigurationError(
                f"invalid tile ring ({self.n_tiles} tiles of {self.nx}x{self.ny})"
            )

    @property
    def tile_shape(self) -> Tuple[int, int]:
        return self.nx, self.ny

    def exchange(self, field: np.ndarray) -> np.ndarray:
        field = np.asarray(field, dtype=np.float64)
        if field.shape[:3] != (self.n_tiles, self.nx, self.ny):
            raise ConfigurationError(
                f"field shape {field.shape} does not match tile ring "
                f"({self.n_tiles}, {self.nx}, {self.ny})"
            )

        out = np.zeros((self.n_tiles, self.nx + 2, self.ny + 2) + field.shape[3:])
        out[:, 1:-1, 1:-1] = field
        # West halo from the last column of tile f-1, east from the first of f+1
        out[:, 0, 1:-1] = np.roll(field, 1, axis=0)[:, -1]
        out[:, -1, 1:-1] = np.roll(field, -1, axis=0)[:, 0]
        # North-south periodic, corners included
        out[:, :, 0] = out[:, :, -2]
        out[:, :, -1] = out[:, :, 1]
        return out

    def update_location(self, position: np.ndarray) -> None:
        if not np.all(np.isfinite(position)):
            raise DomainError(f"non-finite position {np.asarray(position).tolist()}")

        shift, x = divmod(float(position[0]), float(self.nx))
        fid = int(round(position[-1])) + int(shift)

        position[0] = x
        position[1] = float(position[1]) % self.ny
        position[-1] = fid % self.n_tiles
