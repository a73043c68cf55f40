"""
Simulation and constructor configuration.

All run-wide switches (time reversal, batch size, population size, tolerances)
live on an explicit SimulationConfig that is handed to `advance`, the
refresher and the driver.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Callable, Dict, Optional

import numpy as np
import pandas as pd

from .errors import ConfigurationError

# One synthetic month [s]
MONTH = 86400.0 * 365.0 / 12.0


@dataclass
class SimulationConfig:
    """
    Run-wide settings.

    Attributes:
        n_particles: Population size used by the drivers
        batch_size: Chunk size for batched integration (None = no batching)
        reverse_time: Negate velocities and mirror snapshot indices
        snapshot_interval: Spacing between velocity snapshots [s]
        period: Number of snapshots in one climatological cycle
        advance_interval: Longest span of a single advance call [s]
        reseed_fraction: Fraction of individuals reseeded per bracket
        method: scipy.integrate.solve_ivp method name
        rtol: Relative tolerance
        atol: Absolute tolerance
        strict_missing: Raise MissingDataError instead of masking NaNs
        seed: Seed for the reseeding random generator
        show_progress: Display tqdm progress bars
    """
    n_particles: int = 100
    batch_size: Optional[int] = None
    reverse_time: bool = False
    snapshot_interval: float = MONTH
    period: int = 12
    advance_interval: Optional[float] = None
    reseed_fraction: float = 0.0
    method: str = "RK45"
    rtol: float = 1e-8
    atol: float = 1e-8
    strict_missing: bool = False
    seed: Optional[int] = None
    show_progress: bool = False

    def __post_init__(self):
        if self.n_particles < 1:
            raise ConfigurationError(f"n_particles must be >= 1, got {self.n_particles}")
        if self.batch_size is not None and self.batch_size < 1:
            raise ConfigurationError(f"batch_size must be >= 1, got {self.batch_size}")
        if not self.snapshot_interval > 0:
            raise ConfigurationError("snapshot_interval must be positive")
        if self.period < 1:
            raise ConfigurationError(f"period must be >= 1, got {self.period}")
        if self.advance_interval is not None and not self.advance_interval > 0:
            raise ConfigurationError("advance_interval must be positive")
        if not 0.0 <= self.reseed_fraction <= 1.0:
            raise ConfigurationError("reseed_fraction must lie in [0, 1]")
        if self.rtol <= 0 or self.atol <= 0:
            raise ConfigurationError("rtol and atol must be positive")

    @property
    def velocity_factor(self) -> float:
        return -1.0 if self.reverse_time else 1.0

    def rng(self) -> np.random.Generator:
        return np.random.default_rng(self.seed)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'SimulationConfig':
        """Build from a flat mapping, ignoring unrelated keys."""
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in config.items() if k in names})


@dataclass
class IndividualsOptions:
    """
    Optional fields of the Individuals constructor.

    Every field defaults to None, meaning a default chosen from the
    FlowField variant (IDs 1..n, the C-grid velocity function, a single or
    ensemble solver depending on population size, the variant's
    postprocessor and an empty record table with its columns).
    """
    ids: Optional[np.ndarray] = None
    velocity: Optional[Callable] = None
    integrator: Optional[Callable] = None
    postprocess: Optional[Callable] = None
    record: Optional[pd.DataFrame] = None
    diagnostics: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        for name in ("velocity", "integrator", "postprocess"):
            value = getattr(self, name)
            if value is not None and not callable(value):
                raise ConfigurationError(f"{name} must be callable")
        if self.record is not None and not isinstance(self.record, pd.DataFrame):
            raise ConfigurationError("record must be a pandas DataFrame")
