"""Simulation logger for displacement runs."""

import logging
import numpy as np
from pathlib import Path
from datetime import datetime
from typing import Dict, Any, List


class SimulationLogger:
    """Logger for displacement simulations."""

    def __init__(
        self,
        scenario_name: str,
        log_dir: str = "logs",
        verbose: bool = True
    ):
        """
        Initialize simulation logger.

        Args:
            scenario_name: Scenario name (for log filename)
            log_dir: Directory for log files
            verbose: Print messages to console
        """
        self.scenario_name = scenario_name
        self.log_dir = Path(log_dir)
        self.verbose = verbose

        self.log_dir.mkdir(parents=True, exist_ok=True)

        clean_name = scenario_name.lower().replace(' ', '_').replace('-', '_')
        self.log_file = self.log_dir / f"{clean_name}.log"

        self.logger = self._setup_logger()
        self.warnings: List[str] = []
        self.errors: List[str] = []

    def _setup_logger(self) -> logging.Logger:
        """Configure Python logging; library debug messages go to the same file."""
        logger = logging.getLogger(f"hanyut_{self.scenario_name}")
        logger.setLevel(logging.DEBUG)
        for old in logger.handlers:
            old.close()
        logger.handlers = []

        handler = logging.FileHandler(self.log_file, mode='w')
        handler.setLevel(logging.DEBUG)

        formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)

        logger.addHandler(handler)

        library = logging.getLogger("hanyut")
        library.setLevel(logging.DEBUG)
        library.handlers = [h for h in library.handlers
                            if not isinstance(h, logging.FileHandler)]
        library.addHandler(handler)
        self._handler = handler
        return logger

    def info(self, msg: str):
        """Log informational message."""
        self.logger.info(msg)

    def warning(self, msg: str):
        """Log warning message."""
        self.logger.warning(msg)
        self.warnings.append(msg)

        if self.verbose:
            print(f"  WARNING: {msg}")

    def error(self, msg: str):
        """Log error message."""
        self.logger.error(msg)
        self.errors.append(msg)

        if self.verbose:
            print(f"  ERROR: {msg}")

    def log_config(self, config: Dict[str, Any]):
        """Log scenario configuration."""
        self.info("=" * 70)
        self.info("LAGRANGIAN DISPLACEMENT SIMULATION")
        self.info(f"Scenario: {self.scenario_name}")
        self.info("=" * 70)
        self.info("")

        self.info("GRID:")
        self.info(f"  nx × ny × nr = {config.get('nx', '?')} × {config.get('ny', '?')} "
                  f"× {config.get('nr', '?')}")
        self.info(f"  dx = {config.get('dx', '?')} m, dy = {config.get('dy', '?')} m")
        if str(config.get('flow', '')).endswith('mesh'):
            self.info(f"  Tiles = {config.get('n_tiles', '?')}")

        self.info("")
        self.info("SIMULATION PARAMETERS:")
        self.info(f"  Flow = {config.get('flow', '?')}"
                  f"{' (monthly climatology)' if config.get('climatology') else ''}")
        self.info(f"  Individuals = {config.get('n_particles', '?')}")
        self.info(f"  Total time = {config.get('total_time_days', 0):.2f} days")
        self.info(f"  Advance interval = {config.get('advance_interval_days', '?')} days")
        self.info(f"  Reverse time = {config.get('reverse_time', False)}")
        self.info(f"  Reseed fraction = {config.get('reseed_fraction', 0.0)}")
        self.info(f"  Solver = {config.get('method', 'RK45')} "
                  f"(rtol={config.get('rtol', '?')}, atol={config.get('atol', '?')})")

        self.info("=" * 70)

    def log_flow_fields(self, flow):
        """Log the active FlowField."""
        self.info("")
        self.info("FLOW FIELDS:")
        self.info(f"  Variant = {type(flow).__name__}")
        self.info(f"  Array shape = {flow.u0.shape}")
        self.info(f"  Bracket = ({flow.T[0]:.1f}, {flow.T[1]:.1f}) s")
        umax = float(np.max(np.hypot(flow.u0, flow.v0)))
        self.info(f"  Max speed (snapshot 0) = {umax:.3e} grid units/s")

    def log_diagnostics(self, diagnostics: Dict[str, Any]):
        """Log diagnostic metrics."""
        self.info("")
        self.info("=" * 70)
        self.info("DISPLACEMENT DIAGNOSTICS")
        self.info("=" * 70)

        self.info("")
        self.info("POPULATION:")
        self.info(f"  Individuals: {diagnostics.get('n_individuals', 0)}")
        self.info(f"  Distinct IDs: {diagnostics.get('n_ids', 0)}")
        self.info(f"  Records: {diagnostics.get('n_records', 0)}")
        self.info(f"  Reseeded: {diagnostics.get('n_reseeded', 0)}")

        self.info("")
        self.info("TRANSPORT:")
        self.info(f"  Mean displacement: {diagnostics.get('displacement_mean', np.nan):.4f} grid units")
        self.info(f"  Max displacement: {diagnostics.get('displacement_max', np.nan):.4f} grid units")
        if 'gcd_mean_km' in diagnostics:
            self.info(f"  Mean great-circle distance: {diagnostics['gcd_mean_km']:.2f} km")

        self.info("")
        self.info("SPREADING:")
        self.info(f"  Hull spreading ratio: {diagnostics.get('hull_area_ratio', np.nan):.2f}")

        self.info("=" * 70)

    def log_timing(self, timing: Dict[str, float]):
        """Log timing breakdown."""
        self.info("")
        self.info("=" * 70)
        self.info("TIMING")
        self.info("=" * 70)

        for key, value in sorted(timing.items()):
            if key != 'total':
                self.info(f"  {key}: {value:.3f} s")

        self.info(f"  {'-' * 40}")
        total = timing.get('total', sum(timing.values()))
        self.info(f"  TOTAL: {total:.3f} s")

        self.info("=" * 70)

    def finalize(self):
        """Write final summary and release the log file."""
        self.info("")
        self.info("=" * 70)
        self.info("SUMMARY")
        self.info("=" * 70)

        if self.errors:
            self.info(f"ERRORS: {len(self.errors)}")
            for i, err in enumerate(self.errors, 1):
                self.info(f"  {i}. {err}")
        else:
            self.info("ERRORS: None")

        if self.warnings:
            self.info(f"WARNINGS: {len(self.warnings)}")
            for i, warn in enumerate(self.warnings, 1):
                self.info(f"  {i}. {warn}")
        else:
            self.info("WARNINGS: None")

        self.info("")
        self.info(f"Log file: {self.log_file}")
        self.info(f"Completed: {datetime.now().isoformat()}")
        self.info("=" * 70)

        logging.getLogger("hanyut").removeHandler(self._handler)
        self._handler.close()
