"""
Displacement Driver.

Owns the time loop around a population of Individuals:

    for each snapshot bracket:
        refresh the FlowField (when a refresher is attached)
        advance in sub-spans of at most `advance_interval`
        reseed a fraction of the population (optional)

Brackets are visited by integer index so that floating-point bracket edges
never cause a window to be skipped or visited twice. Time always runs
forward here; reversed trajectories are obtained through the refresher,
which negates velocities and mirrors the snapshot sequence.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
from tqdm import tqdm

from .config import SimulationConfig
from .errors import ConfigurationError
from .individuals import Individuals
from .refresh import FlowFieldRefresher

logger = logging.getLogger(__name__)


@dataclass
class Window:
    """One visited bracket: time span and the snapshot months used."""
    t0: float
    t1: float
    months: Optional[Tuple[int, int]] = None
    index: Optional[int] = None
    n_reseeded: int = 0


@dataclass
class SimulationResult:
    """
    Container for simulation output data.

    Attributes:
        record: Trajectory record table
        individuals: Individuals in their final state
        windows: Visited brackets
        config: SimulationConfig used
        diagnostics: Dictionary of computed diagnostics
    """
    record: pd.DataFrame
    individuals: Individuals
    windows: List[Window]
    config: SimulationConfig
    diagnostics: Dict[str, Any] = field(default_factory=dict)

    @property
    def t_start(self) -> float:
        return self.windows[0].t0 if self.windows else float("nan")

    @property
    def t_end(self) -> float:
        return self.windows[-1].t1 if self.windows else float("nan")


class DisplacementSolver:
    """
    Drives `advance`, `refresh` and `reseed` over a time interval.

    Attributes:
        config: SimulationConfig
        refresher: Optional FlowFieldRefresher; without one the FlowField of
            the individuals is used as is over the whole interval

    Example:
        >>> solver = DisplacementSolver(SimulationConfig(advance_interval=86400.0))
        >>> result = solver.solve(individuals, 0.0, 10 * 86400.0)
    """

    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        refresher: Optional[FlowFieldRefresher] = None
    ):
        self.config = config or SimulationConfig()
        self.refresher = refresher

    def _windows(self, t_start: float, t_end: float) -> List[Window]:
        if self.refresher is None:
            return [Window(t_start, t_end)]

        windows = []
        R = self.refresher
        for m in range(R.bracket_index(t_start), R.bracket_index(t_end) + 1):
            mid = m * R.dt
            b0, b1 = R.bracket(mid)
            lo, hi = max(t_start, b0), min(t_end, b1)
            if lo < hi:
                windows.append(Window(lo, hi, R.months(mid), m))
        return windows

    def _sub_spans(self, t0: float, t1: float) -> List[Tuple[float, float]]:
        step = self.config.advance_interval
        if step is None:
            return [(t0, t1)]
        edges = list(np.arange(t0, t1, step)) + [t1]
        if len(edges) > 2 and edges[-1] - edges[-2] < 1e-9 * step:
            edges.pop(-2)
        return list(zip(edges[:-1], edges[1:]))

    def solve(
        self,
        individuals: Individuals,
        t_start: float,
        t_end: float,
        candidates: Optional[np.ndarray] = None,
        verbose: bool = True
    ) -> SimulationResult:
        """
        Displace `individuals` from t_start to t_end.

        Args:
            individuals: Population to displace (modified in place)
            t_start: Start time [s]
            t_end: End time [s], > t_start
            candidates: Positions used for reseeding
            verbose: Print progress information

        Returns:
            SimulationResult
        """
        if not t_end > t_start:
            raise ConfigurationError(f"t_end must exceed t_start, got ({t_start}, {t_end})")

        config = self.config
        reseeding = config.reseed_fraction > 0.0 and candidates is not None
        rng = config.rng()

        windows = self._windows(t_start, t_end)

        if verbose:
            print(f"[1/3] Preparing {len(individuals)} individuals "
                  f"({type(individuals.flow).__name__})...")
            print(f"      Interval: {t_start/86400:.2f} to {t_end/86400:.2f} days, "
                  f"{len(windows)} window(s)")
            if self.refresher is not None:
                print(f"      Snapshot interval: {config.snapshot_interval/86400:.2f} days"
                      f"{', reversed' if config.reverse_time else ''}")
            print("[2/3] Advancing...")

        iterator = tqdm(
            enumerate(windows),
            total=len(windows),
            desc="      Advancing",
            disable=not verbose,
            ncols=70,
            unit="window"
        )

        for n, window in iterator:
            if self.refresher is not None:
                mid = window.index * self.refresher.dt
                flow = self.refresher.refresh(individuals.flow, individuals.diagnostics, mid)
                individuals.swap_flow(flow)

            for span in self._sub_spans(window.t0, window.t1):
                individuals.advance(span, config)

            if reseeding and n < len(windows) - 1:
                reset = individuals.reseed(config.reseed_fraction, candidates, rng)
                window.n_reseeded = len(reset)

            logger.debug("window %d: [%.1f, %.1f] months=%s reseeded=%d",
                         n, window.t0, window.t1, window.months, window.n_reseeded)

        if verbose:
            print("[3/3] Simulation complete!")
            print(f"      Record rows: {len(individuals.record):,}")

        return SimulationResult(
            record=individuals.record,
            individuals=individuals,
            windows=windows,
            config=config,
        )
