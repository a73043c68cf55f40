"""
Data Handler for Displacement Simulations.

Saves results to:
    - CSV: Record table and diagnostic metrics
    - NetCDF: CF-1.8 trajectory file (incomplete multidimensional array
      representation, one row per ID)

Coordinate convention:
    - x, y: Continuous grid index (cell i spans [i, i+1])
    - z: Continuous level index, positive downward from the surface
    - lon, lat: Degrees east / north, when grid coordinates were attached
"""

import numpy as np
import pandas as pd
from netCDF4 import Dataset
from pathlib import Path
from datetime import datetime
from typing import Dict, Any, Optional

from .. import __version__


class DataHandler:
    """Handle saving simulation data to various formats."""

    _INTEGER_COLUMNS = ("ID", "fid")

    @staticmethod
    def save_record_csv(filepath: str, record: pd.DataFrame):
        """
        Save the record table to CSV.

        Args:
            filepath: Output file path
            record: Record table (one row per ID and time)
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        record.to_csv(filepath, index=False, float_format='%.10e')

    @staticmethod
    def load_record_csv(filepath: str) -> pd.DataFrame:
        """Load a record table saved by `save_record_csv`."""
        df = pd.read_csv(filepath)
        for col in DataHandler._INTEGER_COLUMNS:
            if col in df.columns:
                df[col] = df[col].astype(np.int64)
        return df

    @staticmethod
    def save_diagnostics_csv(filepath: str, diagnostics: Dict[str, Any]):
        """
        Save diagnostic metrics to CSV.

        Args:
            filepath: Output file path
            diagnostics: Dictionary of metrics
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        rows = []
        for key, value in sorted(diagnostics.items()):
            if isinstance(value, (int, float, bool, np.integer, np.floating)):
                rows.append({
                    'Metric': key,
                    'Value': value,
                    'Units': DataHandler._get_metric_units(key),
                })

        df = pd.DataFrame(rows, columns=['Metric', 'Value', 'Units'])
        df.to_csv(filepath, index=False)

    @staticmethod
    def _get_metric_units(metric_name: str) -> str:
        """Get units for a metric."""
        units_map = {
            'n_individuals': 'count',
            'n_records': 'count',
            'n_ids': 'count',
            'n_windows': 'count',
            'n_reseeded': 'count',
            'n_trajectories': 'count',
            'max_id': 'dimensionless',
            'duration_days': 'days',
            'displacement_mean': 'grid units',
            'displacement_std': 'grid units',
            'displacement_max': 'grid units',
            'dx_mean': 'grid units',
            'dy_mean': 'grid units',
            'gcd_mean': 'radians',
            'gcd_max': 'radians',
            'gcd_mean_km': 'km',
            'gcd_max_km': 'km',
            'hull_area_initial': 'grid units²',
            'hull_area_final': 'grid units²',
            'hull_area_ratio': 'dimensionless',
            'z_mean_final': 'levels',
        }
        return units_map.get(metric_name, 'unknown')

    _VARIABLE_ATTRS = {
        'x': ('1', 'zonal grid index position'),
        'y': ('1', 'meridional grid index position'),
        'z': ('1', 'vertical level index position (positive down)'),
        'fid': ('1', 'tile index'),
        'lon': ('degrees_east', 'longitude'),
        'lat': ('degrees_north', 'latitude'),
        'THETA': ('degC', 'potential temperature'),
        'SALT': ('1e-3', 'salinity'),
        'year': ('year', 'elapsed time in years'),
    }

    @staticmethod
    def save_netcdf(
        filepath: str,
        record: pd.DataFrame,
        diagnostics: Optional[Dict[str, Any]] = None,
        config: Optional[Dict[str, Any]] = None
    ):
        """
        Save the record table as a CF-1.8 trajectory file.

        Every ID becomes one trajectory; observations are the sorted
        distinct recorded times. Times at which an ID was not recorded
        (e.g. before it was reseeded) hold the fill value.

        Args:
            filepath: Output file path
            record: Record table
            diagnostics: Optional diagnostics, stored as scalar variables
            config: Optional configuration dictionary
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        ids = np.sort(record['ID'].unique())
        times = np.sort(record['t'].unique())
        n_traj = len(ids)
        n_obs = len(times)

        def grid(column: str) -> np.ndarray:
            table = record.pivot_table(index='ID', columns='t', values=column, aggfunc='last')
            return table.reindex(index=ids, columns=times).to_numpy(dtype=np.float64)

        with Dataset(filepath, 'w', format='NETCDF4') as nc:
            # ================================================================
            # DIMENSIONS
            # ================================================================
            nc.createDimension('trajectory', n_traj)
            nc.createDimension('obs', n_obs)

            # ================================================================
            # TRAJECTORY IDENTIFIERS
            # ================================================================
            nc_id = nc.createVariable('trajectory', 'i8', ('trajectory',))
            nc_id[:] = ids
            nc_id.long_name = 'individual identifier'
            nc_id.cf_role = 'trajectory_id'

            nc_n = nc.createVariable('rowSize', 'i4', ('trajectory',))
            nc_n[:] = record.groupby('ID').size().reindex(ids).to_numpy()
            nc_n.long_name = 'number of observations for this trajectory'

            # ================================================================
            # TIME
            # ================================================================
            present = ~np.isnan(grid('x'))
            nc_time = nc.createVariable(
                'time', 'f8', ('trajectory', 'obs'), zlib=True, fill_value=np.nan
            )
            nc_time[:] = np.where(present, times[np.newaxis, :], np.nan)
            nc_time.units = 'seconds since simulation start'
            nc_time.long_name = 'time'
            nc_time.standard_name = 'time'
            nc_time.axis = 'T'
            nc_time.calendar = 'none'

            # ================================================================
            # OBSERVATIONS
            # ================================================================
            for column in record.columns:
                if column in ('ID', 't'):
                    continue
                units, long_name = DataHandler._VARIABLE_ATTRS.get(column, ('1', column))
                var = nc.createVariable(
                    column, 'f8', ('trajectory', 'obs'), zlib=True, fill_value=np.nan
                )
                var[:] = grid(column)
                var.units = units
                var.long_name = long_name
                var.coordinates = 'time trajectory'

            # ================================================================
            # DIAGNOSTICS (as scalar variables)
            # ================================================================
            if diagnostics:
                for key, value in diagnostics.items():
                    if isinstance(value, (int, float, np.integer, np.floating)):
                        nc_var = nc.createVariable(f'diag_{key}', 'f8')
                        nc_var[()] = float(value)
                        nc_var.long_name = key.replace('_', ' ')
                        nc_var.units = DataHandler._get_metric_units(key)

            # ================================================================
            # GLOBAL ATTRIBUTES
            # ================================================================
            nc.title = 'Lagrangian displacements of individuals'
            nc.institution = 'hanyut'
            nc.source = f'hanyut v{__version__}'
            nc.history = f'Created {datetime.now().isoformat()}'
            nc.Conventions = 'CF-1.8'
            nc.featureType = 'trajectory'

            if config:
                nc.scenario_name = str(config.get('scenario_name', 'unknown'))
                for key in ('flow', 'n_particles', 'total_time_days', 'reverse_time',
                            'reseed_fraction', 'n_tiles', 'nx', 'ny', 'nr'):
                    if config.get(key) is not None:
                        value = config[key]
                        nc.setncattr(key, int(value) if isinstance(value, bool) else value)

            nc.n_trajectories = n_traj
            nc.n_obs = n_obs
            nc.license = 'MIT'
