#!/usr/bin/env python
"""
Command Line Interface for hanyut Lagrangian Displacements.

Usage:
    hanyut case1              # Recirculating basin, surface drift
    hanyut case2              # Recirculating basin, 3D drift
    hanyut case3              # Tiled ring, monthly climatology with reseeding
    hanyut case4              # Tiled ring, 3D climatology backward in time
    hanyut --all              # Run all cases
    hanyut --config path.txt  # Custom config
"""

import argparse
import dataclasses
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import numpy as np

from .core.analytic import BasinSystem
from .core.config import IndividualsOptions, SimulationConfig
from .core.diagnostics import compute_all_diagnostics
from .core.errors import ConfigurationError
from .core.flowfields import FlowField, FlowKind
from .core.individuals import Individuals
from .core.integrators import make_integrator
from .core.postprocess import TracerPostprocessor, default_postprocessor
from .core.refresh import FlowFieldRefresher
from .core.solver import DisplacementSolver
from .io.config_manager import ConfigManager
from .io.data_handler import DataHandler
from .utils.logger import SimulationLogger
from .utils.timer import Timer


def print_header():
    """Print ASCII art header."""
    print("\n" + "=" * 70)
    print(" " * 10 + "hanyut: Lagrangian Displacements in Gridded Ocean Flows")
    print(" " * 25 + "Version 0.1.0")
    print("=" * 70)
    print("\n  Staggered C-Grid Interpolation | SciPy Integrators | Numba Kernels")
    print("  License: MIT")
    print("=" * 70 + "\n")


def normalize_scenario_name(scenario_name: str) -> str:
    """Convert scenario name to clean filename format."""
    clean = scenario_name.lower()
    clean = clean.replace(' - ', '_')
    clean = clean.replace('-', '_')
    clean = clean.replace(' ', '_')

    while '__' in clean:
        clean = clean.replace('__', '_')

    clean = clean.rstrip('_')
    return clean


def simulation_config(config: Dict[str, Any]) -> SimulationConfig:
    """SimulationConfig from a flat scenario configuration."""
    days = config.get('advance_interval_days')
    return dataclasses.replace(
        SimulationConfig.from_dict(config),
        snapshot_interval=config.get('snapshot_interval_days', 365.0 / 12.0) * 86400.0,
        advance_interval=None if days is None else days * 86400.0,
    )


def _tracer_names(config: Dict[str, Any]) -> Tuple[str, ...]:
    tracers = config.get('tracers')
    if not tracers or str(tracers).lower() == 'none':
        return ()
    return tuple(name.strip() for name in str(tracers).split(',') if name.strip())


def initial_positions(
    basin: BasinSystem,
    kind: FlowKind,
    n: int,
    rng: np.random.Generator,
    n_tiles: int = 1
) -> np.ndarray:
    """Positions drawn uniformly over the grid, in the column layout of `kind`."""
    nx = basin.nx // n_tiles if kind.is_mesh else basin.nx
    columns = [rng.uniform(0.0, nx, n), rng.uniform(0.0, basin.ny, n)]
    if kind.is_3d:
        columns.append(rng.uniform(0.5, basin.nr - 0.5, n))
    if kind.is_mesh:
        columns.append(rng.integers(0, n_tiles, n).astype(np.float64))
    return np.column_stack(columns)


def build_scenario(
    config: Dict[str, Any],
    sim: SimulationConfig
) -> Tuple[Individuals, Optional[FlowFieldRefresher], np.ndarray, BasinSystem]:
    """
    Assemble FlowField, refresher and Individuals of a scenario.

    Returns:
        (individuals, refresher or None, reseeding candidates, basin)
    """
    ConfigManager.validate_config(config)
    kind = FlowKind(config['flow'])
    n_tiles = int(config.get('n_tiles', 1)) if kind.is_mesh else 1

    basin = BasinSystem(
        nx=config['nx'],
        ny=config['ny'],
        nr=config.get('nr', 5),
        dx=config.get('dx', 1000.0),
        dy=config.get('dy', 1000.0),
        H=config.get('H', 100.0),
        U0=config['U0'],
        W0=config.get('W0', 1e-5),
        seasonal_amplitude=config.get('seasonal_amplitude', 0.5),
    )

    t_start = config.get('t_start_days', 0.0) * 86400.0
    t_end = t_start + config['total_time_days'] * 86400.0
    period = (t_start, t_end)

    if kind.is_mesh:
        flow: FlowField = basin.mesh_flow_fields(period, n_tiles, three_d=kind.is_3d)
    elif kind.is_3d:
        flow = basin.flow_fields_3d(period)
    else:
        flow = basin.flow_fields_2d(period)

    tracers = _tracer_names(config)
    refresher = None
    if config.get('climatology', False):
        refresher = FlowFieldRefresher(
            basin.climatology(sim.period, three_d=True,
                              n_tiles=n_tiles if kind.is_mesh else None),
            inverse_dx=1.0 / basin.dx,
            inverse_dy=1.0 / basin.dy,
            config=sim,
            connectivity=basin.tile_ring(n_tiles) if kind.is_mesh else None,
            drc=basin.drc,
            level=config.get('level', 0),
            tracers=tracers,
        )
    elif tracers:
        raise ConfigurationError("tracer columns require a climatology source")

    diagnostics: Dict[str, Any] = {}
    if config.get('lonlat', True):
        if kind.is_mesh:
            diagnostics['XC'], diagnostics['YC'] = basin.mesh_grid_coordinates(n_tiles)
        else:
            diagnostics['XC'], diagnostics['YC'] = basin.grid_coordinates()

    postprocess = default_postprocessor(flow)
    if tracers:
        postprocess = TracerPostprocessor(
            postprocess, tracers,
            surface=config.get('surface_tracers', False),
            year=True,
        )
    if refresher is not None:
        flow = refresher.refresh(flow, diagnostics, t_start)

    rng = sim.rng()
    positions = initial_positions(basin, kind, sim.n_particles, rng, n_tiles)
    candidates = initial_positions(basin, kind, 10 * sim.n_particles, rng, n_tiles)

    options = IndividualsOptions(
        integrator=make_integrator(sim, ensemble=config.get('ensemble', True)),
        postprocess=postprocess,
        diagnostics=diagnostics,
        metadata={'scenario_name': config.get('scenario_name', 'simulation')},
    )
    return Individuals(flow, positions, options), refresher, candidates, basin


def run_scenario(
    config: dict,
    output_dir: str = "outputs",
    verbose: bool = True
):
    """Run a complete displacement simulation scenario."""

    scenario_name = config.get('scenario_name', 'simulation')
    clean_name = normalize_scenario_name(scenario_name)

    if verbose:
        print(f"\n{'=' * 70}")
        print(f"SCENARIO: {scenario_name}")
        print(f"{'=' * 70}")

    logger = SimulationLogger(clean_name, "logs", verbose)
    timer = Timer()
    timer.start("total")

    try:
        # [1/6] Build flow fields and individuals
        with timer.time_section("setup"):
            if verbose:
                print("\n[1/6] Building flow fields and individuals...")

            sim = simulation_config(config)
            logger.log_config(config)
            individuals, refresher, candidates, basin = build_scenario(config, sim)
            logger.log_flow_fields(individuals.flow)

            if verbose:
                print(f"      {basin}")
                print(f"      {type(individuals.flow).__name__}, "
                      f"{len(individuals)} individuals")

        # [2/6] Run simulation
        with timer.time_section("simulation"):
            if verbose:
                print("\n[2/6] Displacing individuals...")

            t_start = config.get('t_start_days', 0.0) * 86400.0
            t_end = t_start + config['total_time_days'] * 86400.0
            solver = DisplacementSolver(sim, refresher)
            result = solver.solve(
                individuals, t_start, t_end,
                candidates=candidates if sim.reseed_fraction > 0 else None,
                verbose=verbose
            )

        # [3/6] Compute diagnostics
        with timer.time_section("diagnostics"):
            if verbose:
                print("\n[3/6] Computing diagnostics...")

            diagnostics = compute_all_diagnostics(result, verbose=verbose)
            logger.log_diagnostics(diagnostics)

        # [4/6] Save CSV data
        with timer.time_section("csv_save"):
            if verbose:
                print("\n[4/6] Saving CSV data...")

            csv_dir = Path(output_dir) / "csv"
            csv_dir.mkdir(parents=True, exist_ok=True)

            record_file = csv_dir / f"{clean_name}_record.csv"
            DataHandler.save_record_csv(str(record_file), result.record)

            diag_file = csv_dir / f"{clean_name}_diagnostics.csv"
            DataHandler.save_diagnostics_csv(str(diag_file), diagnostics)

            if verbose:
                print(f"      Saved: {record_file}")
                print(f"      Saved: {diag_file}")

        # [5/6] Save NetCDF
        with timer.time_section("netcdf_save"):
            if config.get('save_netcdf', True):
                if verbose:
                    print("\n[5/6] Saving NetCDF data...")

                nc_dir = Path(output_dir) / "netcdf"
                nc_dir.mkdir(parents=True, exist_ok=True)

                nc_file = nc_dir / f"{clean_name}.nc"
                DataHandler.save_netcdf(str(nc_file), result.record, diagnostics, config)

                if verbose:
                    print(f"      Saved: {nc_file}")
            elif verbose:
                print("\n[5/6] Skipping NetCDF output")

        # [6/6] Summary
        timer.stop("total")
        logger.log_timing(timer.get_times())

        if verbose:
            total_time = timer.times.get('total', 0)
            print(f"\n{'=' * 70}")
            print("[6/6] SIMULATION COMPLETED")
            print(f"{'=' * 70}")
            print(f"  Records: {diagnostics.get('n_records', 0):,}")
            print(f"  Mean displacement: {diagnostics.get('displacement_mean', 0):.3f} grid units")
            print(f"  Total time: {total_time:.2f} s")
            print(f"{'=' * 70}\n")

        return result, diagnostics

    except Exception as e:
        logger.error(f"Simulation failed: {str(e)}")

        if verbose:
            print(f"\n{'=' * 70}")
            print(f"SIMULATION FAILED: {str(e)}")
            print(f"{'=' * 70}\n")

        raise

    finally:
        logger.finalize()


def main(argv=None):
    """Main entry point for command-line interface."""
    parser = argparse.ArgumentParser(
        description='hanyut: Lagrangian Displacements in Gridded Ocean Flows',
        epilog='Example: hanyut case1'
    )

    parser.add_argument(
        'case',
        nargs='?',
        choices=['case1', 'case2', 'case3', 'case4'],
        help='Test case to run (case1-4)'
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        help='Path to custom configuration file'
    )

    parser.add_argument(
        '--all', '-a',
        action='store_true',
        help='Run all test cases sequentially'
    )

    parser.add_argument(
        '--output-dir', '-o',
        type=str,
        default='outputs',
        help='Output directory for results (default: outputs)'
    )

    parser.add_argument(
        '--quiet', '-q',
        action='store_true',
        help='Quiet mode (minimal output)'
    )

    parser.add_argument(
        '--no-netcdf',
        action='store_true',
        help='Skip NetCDF output'
    )

    args = parser.parse_args(argv)
    verbose = not args.quiet

    if verbose:
        print_header()

    # Custom config
    if args.config:
        config = ConfigManager.load(args.config)
        if args.no_netcdf:
            config['save_netcdf'] = False
        run_scenario(config, args.output_dir, verbose)

    # All cases
    elif args.all:
        for case_num in range(1, 5):
            config = ConfigManager.get_default_config(f'case{case_num}')
            if args.no_netcdf:
                config['save_netcdf'] = False
            run_scenario(config, args.output_dir, verbose)

    # Single case
    elif args.case:
        config = ConfigManager.get_default_config(args.case)
        if args.no_netcdf:
            config['save_netcdf'] = False
        run_scenario(config, args.output_dir, verbose)

    else:
        parser.print_help()
        sys.exit(0)


if __name__ == '__main__':
    main()
