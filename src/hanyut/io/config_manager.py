"""
Configuration Manager for Displacement Scenarios.

Configurations are flat `key = value` text files; lines starting with `#`
are comments. Values are parsed as bool (true/false), None (none), int,
float, or kept as strings.

Built-in scenarios:
    case1  Recirculating basin, surface drift (UVArrays)
    case2  Recirculating basin, 3D drift (UVWArrays)
    case3  Tiled ring, monthly climatology with reseeding (UVMeshArrays)
    case4  Tiled ring, 3D climatology run backward in time (UVWMeshArrays)
"""

from pathlib import Path
from typing import Any, Dict


class ConfigManager:
    """Load, save and validate scenario configurations."""

    REQUIRED_KEYS = (
        'scenario_name',
        'flow',
        'nx',
        'ny',
        'U0',
        'n_particles',
        'total_time_days',
    )

    FLOW_TYPES = ('uv_array', 'uvw_array', 'uv_mesh', 'uvw_mesh')

    _BASE = {
        'nx': 40,
        'ny': 40,
        'nr': 5,
        'dx': 1000.0,
        'dy': 1000.0,
        'H': 100.0,
        'U0': 0.3,
        'W0': 1e-5,
        'seasonal_amplitude': 0.5,
        'n_tiles': 4,
        'climatology': False,
        'level': 0,
        'n_particles': 100,
        'batch_size': None,
        'ensemble': True,
        't_start_days': 0.0,
        'total_time_days': 10.0,
        'advance_interval_days': 1.0,
        'snapshot_interval_days': 365.0 / 12.0,
        'period': 12,
        'reverse_time': False,
        'reseed_fraction': 0.0,
        'seed': 42,
        'method': 'RK45',
        'rtol': 1e-8,
        'atol': 1e-8,
        'strict_missing': False,
        'lonlat': True,
        'tracers': 'none',
        'surface_tracers': False,
        'save_netcdf': True,
    }

    _CASES = {
        'case1': {
            'scenario_name': 'Case 1 - Recirculating Basin Surface Drift',
            'flow': 'uv_array',
            'U0': 0.3,
            'total_time_days': 10.0,
        },
        'case2': {
            'scenario_name': 'Case 2 - Recirculating Basin 3D Drift',
            'flow': 'uvw_array',
            'U0': 0.3,
            'W0': 2e-5,
            'total_time_days': 10.0,
        },
        'case3': {
            'scenario_name': 'Case 3 - Tiled Ring Monthly Climatology',
            'flow': 'uv_mesh',
            'climatology': True,
            'dx': 50000.0,
            'dy': 50000.0,
            'U0': 0.05,
            'n_particles': 50,
            'batch_size': 10,
            'total_time_days': 365.0,
            'advance_interval_days': 5.0,
            'reseed_fraction': 0.1,
            'tracers': 'THETA,SALT',
        },
        'case4': {
            'scenario_name': 'Case 4 - Tiled Ring 3D Backward Climatology',
            'flow': 'uvw_mesh',
            'climatology': True,
            'dx': 50000.0,
            'dy': 50000.0,
            'H': 1000.0,
            'U0': 0.05,
            'W0': 1e-6,
            'n_particles': 50,
            'total_time_days': 365.0,
            'advance_interval_days': 5.0,
            'reverse_time': True,
            'tracers': 'THETA,SALT',
            'surface_tracers': True,
        },
    }

    @staticmethod
    def _parse_value(value: str) -> Any:
        value = value.strip()
        lowered = value.lower()
        if lowered in ('true', 'yes'):
            return True
        if lowered in ('false', 'no'):
            return False
        if lowered == 'none':
            return None
        try:
            return int(value)
        except ValueError:
            pass
        try:
            return float(value)
        except ValueError:
            return value

    @staticmethod
    def load(config_path: str) -> Dict[str, Any]:
        """
        Load configuration from a text file.

        Args:
            config_path: Path to configuration file

        Returns:
            Configuration dictionary
        """
        config = {}
        with open(config_path, 'r') as f:
            for line in f:
                line = line.split('#', 1)[0].strip()
                if not line or '=' not in line:
                    continue
                key, value = line.split('=', 1)
                config[key.strip()] = ConfigManager._parse_value(value)
        return config

    @staticmethod
    def save(config: Dict[str, Any], config_path: str):
        """
        Save configuration to a text file.

        Args:
            config: Configuration dictionary
            config_path: Output path
        """
        path = Path(config_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            f.write("# hanyut configuration\n")
            for key, value in config.items():
                if isinstance(value, bool):
                    value = 'true' if value else 'false'
                elif value is None:
                    value = 'none'
                f.write(f"{key} = {value}\n")

    @staticmethod
    def get_default_config(case: str) -> Dict[str, Any]:
        """
        Get the configuration of a built-in scenario.

        Args:
            case: 'case1' to 'case4'

        Returns:
            Configuration dictionary
        """
        if case not in ConfigManager._CASES:
            raise ValueError(
                f"Unknown case: {case}. Choose from {sorted(ConfigManager._CASES)}"
            )
        config = dict(ConfigManager._BASE)
        config.update(ConfigManager._CASES[case])
        return config

    @staticmethod
    def validate_config(config: Dict[str, Any]) -> bool:
        """
        Validate a configuration.

        Raises:
            ValueError: Missing keys or unknown flow type
        """
        missing = [key for key in ConfigManager.REQUIRED_KEYS if key not in config]
        if missing:
            raise ValueError(f"Missing required config keys: {missing}")
        if config['flow'] not in ConfigManager.FLOW_TYPES:
            raise ValueError(
                f"Unknown flow type: {config['flow']}. Choose from {ConfigManager.FLOW_TYPES}"
            )
        if config['U0'] <= 0:
            raise ValueError("U0 must be positive")
        return True
