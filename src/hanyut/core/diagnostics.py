"""
Lagrangian Diagnostics of a Displacement Run.
==============================================

Summaries computed from the record table:

1. DISPLACEMENT between the first and last recorded position of each ID
   (grid units), i.e. the net transport of individuals
2. GREAT-CIRCLE DISTANCE between first and last recorded lon/lat, when
   grid coordinates were attached
3. SPREADING of the population, measured by the convex hull of the initial
   and final positions (hull area ratio > 1 for dispersing populations)
4. RESEEDING statistics (IDs issued, individuals reseeded per window)

References:
    - LaCasce, J. H. (2008). Statistics from Lagrangian observations.
      Prog. Oceanogr. 77(1), 1-29.
"""

from typing import Any, Dict

import numpy as np
import pandas as pd
from scipy.spatial import ConvexHull, QhullError


# Earth radius [km]
EARTH_RADIUS = 6371.0


# =============================================================================
# DISPLACEMENT
# =============================================================================

def compute_displacement_statistics(endpoints: pd.DataFrame) -> Dict[str, float]:
    """
    Statistics of the net displacement of each ID.

    Args:
        endpoints: Output of `Individuals.diff_endpoints` (ID, nrow, dx, dy)

    Returns:
        Dictionary with displacement metrics [grid units]
    """
    if endpoints.empty:
        return {
            'displacement_mean': 0.0,
            'displacement_std': 0.0,
            'displacement_max': 0.0,
            'dx_mean': 0.0,
            'dy_mean': 0.0,
            'n_trajectories': 0,
        }

    d = np.hypot(endpoints['dx'].to_numpy(), endpoints['dy'].to_numpy())
    return {
        'displacement_mean': float(np.mean(d)),
        'displacement_std': float(np.std(d)),
        'displacement_max': float(np.max(d)),
        'dx_mean': float(endpoints['dx'].mean()),
        'dy_mean': float(endpoints['dy'].mean()),
        'n_trajectories': int(len(endpoints)),
    }


# =============================================================================
# GREAT-CIRCLE DISTANCE
# =============================================================================

def compute_great_circle_statistics(gcd: pd.DataFrame) -> Dict[str, float]:
    """
    Statistics of the great-circle distance travelled by each ID.

    Args:
        gcd: Output of `Individuals.great_circle_distance`

    Returns:
        Dictionary with distances in radians and kilometres
    """
    if gcd.empty:
        return {'gcd_mean': 0.0, 'gcd_max': 0.0, 'gcd_mean_km': 0.0, 'gcd_max_km': 0.0}

    g = gcd['gcd'].to_numpy()
    return {
        'gcd_mean': float(np.mean(g)),
        'gcd_max': float(np.max(g)),
        'gcd_mean_km': float(np.mean(g) * EARTH_RADIUS),
        'gcd_max_km': float(np.max(g) * EARTH_RADIUS),
    }


# =============================================================================
# SPREADING
# =============================================================================

def _hull_area(x: np.ndarray, y: np.ndarray) -> float:
    """Convex hull area of a point cloud (0 for degenerate clouds)."""
    if len(x) < 3:
        return 0.0
    try:
        return float(ConvexHull(np.column_stack([x, y])).volume)  # In 2D, volume = area
    except QhullError:
        # Collinear or coincident points
        return 0.0


def compute_spreading(record: pd.DataFrame) -> Dict[str, float]:
    """
    Convex hull area of the positions at the first and last recorded time.

    Args:
        record: Record table (columns ID, x, y, ..., t)

    Returns:
        Dictionary with hull areas [grid units²] and their ratio
    """
    if record.empty:
        return {'hull_area_initial': 0.0, 'hull_area_final': 0.0, 'hull_area_ratio': 1.0}

    t = record['t'].to_numpy()
    first = record[t == t.min()]
    last = record[t == t.max()]

    a0 = _hull_area(first['x'].to_numpy(), first['y'].to_numpy())
    a1 = _hull_area(last['x'].to_numpy(), last['y'].to_numpy())

    return {
        'hull_area_initial': a0,
        'hull_area_final': a1,
        'hull_area_ratio': a1 / a0 if a0 > 1e-15 else 1.0,
    }


# =============================================================================
# COMBINED
# =============================================================================

def compute_all_diagnostics(result, verbose: bool = True) -> Dict[str, Any]:
    """
    Compute all diagnostics of a SimulationResult.

    Args:
        result: SimulationResult
        verbose: Print summary

    Returns:
        Dictionary with all diagnostics (also stored on `result.diagnostics`)
    """
    individuals = result.individuals
    record = result.record
    diagnostics: Dict[str, Any] = {}

    diagnostics['n_individuals'] = len(individuals)
    diagnostics['n_records'] = int(len(record))
    diagnostics['n_ids'] = int(record['ID'].nunique()) if not record.empty else 0
    diagnostics['n_windows'] = len(result.windows)
    diagnostics['n_reseeded'] = int(sum(w.n_reseeded for w in result.windows))
    diagnostics['max_id'] = individuals.max_id()
    diagnostics['duration_days'] = float((result.t_end - result.t_start) / 86400.0)

    diagnostics.update(compute_displacement_statistics(individuals.diff_endpoints()))

    if {'lon', 'lat'} <= set(record.columns):
        diagnostics.update(compute_great_circle_statistics(individuals.great_circle_distance()))

    diagnostics.update(compute_spreading(record))

    if 'z' in record.columns and not record.empty:
        diagnostics['z_mean_final'] = float(record.loc[record['t'] == record['t'].max(), 'z'].mean())

    result.diagnostics = diagnostics

    if verbose:
        print("\n" + "=" * 60)
        print("DISPLACEMENT DIAGNOSTICS")
        print("=" * 60)
        print(f"Individuals: {diagnostics['n_individuals']}, "
              f"trajectories: {diagnostics['n_trajectories']}, "
              f"records: {diagnostics['n_records']:,}")
        print(f"Windows: {diagnostics['n_windows']}, reseeded: {diagnostics['n_reseeded']}")
        print(f"Mean displacement: {diagnostics['displacement_mean']:.3f} grid units "
              f"(max {diagnostics['displacement_max']:.3f})")
        if 'gcd_mean_km' in diagnostics:
            print(f"Mean great-circle distance: {diagnostics['gcd_mean_km']:.2f} km")
        print(f"Hull area ratio: {diagnostics['hull_area_ratio']:.3f}")
        print("=" * 60)

    return diagnostics
