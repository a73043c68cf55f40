"""
Tests for hanyut input/output and utilities.

Run with: pytest tests/ -v
"""

import logging
import tempfile
from pathlib import Path

import numpy as np
import pandas as pd
import pytest
from netCDF4 import Dataset

from hanyut import (
    ConfigManager,
    ConfigurationError,
    DataHandler,
    FlowFieldRefresher,
    NetCDFClimatology,
    SimulationConfig,
    uniform_flow_fields,
)
from hanyut.utils.logger import SimulationLogger
from hanyut.utils.timer import Timer


@pytest.fixture
def record():
    """Record table with an ID that joins late (reseeded)."""
    return pd.DataFrame({
        'ID': np.array([1, 2, 1, 2, 3], dtype=np.int64),
        'x': [1.0, 2.0, 1.5, 2.5, 7.0],
        'y': [1.0, 2.0, 1.0, 2.0, 7.0],
        'fid': np.array([0, 1, 0, 1, 1], dtype=np.int64),
        't': [0.0, 0.0, 10.0, 10.0, 10.0],
    })


class TestConfigManager:
    """Test configuration file handling."""

    def test_load_config(self):
        """Test loading configuration from file."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.txt', delete=False) as f:
            f.write("# Test config\n")
            f.write("scenario_name = My Test\n")
            f.write("flow = uv_mesh\n")
            f.write("nx = 40   # cells\n")
            f.write("U0 = 0.3\n")
            f.write("reverse_time = true\n")
            f.write("batch_size = none\n")
            f.write("\n")
            config_path = f.name

        config = ConfigManager.load(config_path)

        assert config['scenario_name'] == 'My Test'
        assert config['flow'] == 'uv_mesh'
        assert config['nx'] == 40
        assert config['U0'] == 0.3
        assert config['reverse_time'] is True
        assert config['batch_size'] is None

        Path(config_path).unlink()

    def test_save_config(self, tmp_path):
        """Test saving and reloading configuration."""
        config = {'U0': 0.3, 'climatology': True, 'batch_size': None, 'method': 'RK45'}
        path = tmp_path / "sub" / "config.txt"

        ConfigManager.save(config, str(path))
        loaded = ConfigManager.load(str(path))

        assert loaded == config

    def test_default_config(self):
        """Test a built-in scenario."""
        config = ConfigManager.get_default_config('case1')
        assert config['flow'] == 'uv_array'
        assert config['nx'] == 40
        assert ConfigManager.validate_config(config)

    def test_all_default_configs(self):
        """Test all 4 default configurations."""
        flows = []
        for case in ['case1', 'case2', 'case3', 'case4']:
            config = ConfigManager.get_default_config(case)
            assert ConfigManager.validate_config(config)
            assert config['U0'] > 0
            flows.append(config['flow'])
        assert flows == ['uv_array', 'uvw_array', 'uv_mesh', 'uvw_mesh']

    def test_defaults_are_copies(self):
        """Test that editing a returned config does not leak."""
        config = ConfigManager.get_default_config('case3')
        config['nx'] = 1
        assert ConfigManager.get_default_config('case3')['nx'] == 40

    def test_unknown_case(self):
        """Test unknown scenario names."""
        with pytest.raises(ValueError):
            ConfigManager.get_default_config('case9')

    def test_validate_config_missing_param(self):
        """Test validation fails with missing parameter."""
        with pytest.raises(ValueError):
            ConfigManager.validate_config({'nx': 40})

    def test_validate_config_bad_values(self):
        """Test validation of flow type and velocity scale."""
        config = ConfigManager.get_default_config('case1')
        config['flow'] = 'uv_grid'
        with pytest.raises(ValueError):
            ConfigManager.validate_config(config)

        config = ConfigManager.get_default_config('case1')
        config['U0'] = 0.0
        with pytest.raises(ValueError):
            ConfigManager.validate_config(config)


class TestDataHandler:
    """Test data saving functionality."""

    def test_record_csv_round_trip(self, tmp_path, record):
        """Test saving and loading the record table."""
        path = tmp_path / "csv" / "record.csv"
        DataHandler.save_record_csv(str(path), record)
        loaded = DataHandler.load_record_csv(str(path))

        assert list(loaded.columns) == list(record.columns)
        assert loaded['ID'].dtype == np.int64
        assert loaded['fid'].dtype == np.int64
        assert np.allclose(loaded['x'], record['x'])

    def test_save_diagnostics_csv(self, tmp_path):
        """Test diagnostics CSV saving."""
        diagnostics = {
            'n_records': 12,
            'displacement_mean': np.float64(1.5),
            'hull_area_ratio': 2.0,
            'custom_metric': 3.0,
            'not_a_number': [1, 2],
        }
        path = tmp_path / "diag.csv"
        DataHandler.save_diagnostics_csv(str(path), diagnostics)

        df = pd.read_csv(path)
        assert list(df.columns) == ['Metric', 'Value', 'Units']
        assert len(df) == 4
        units = dict(zip(df['Metric'], df['Units']))
        assert units['n_records'] == 'count'
        assert units['displacement_mean'] == 'grid units'
        assert units['custom_metric'] == 'unknown'

    def test_save_netcdf(self, tmp_path, record):
        """Test CF trajectory output."""
        path = tmp_path / "run.nc"
        diagnostics = {'n_records': 5, 'displacement_mean': 0.5}
        config = {'scenario_name': 'Test', 'flow': 'uv_mesh', 'reverse_time': False}

        DataHandler.save_netcdf(str(path), record, diagnostics, config)

        with Dataset(path, 'r') as nc:
            assert nc.featureType == 'trajectory'
            assert nc.Conventions == 'CF-1.8'
            assert nc.scenario_name == 'Test'
            assert nc.flow == 'uv_mesh'
            assert nc.dimensions['trajectory'].size == 3
            assert nc.dimensions['obs'].size == 2

            assert list(nc.variables['trajectory'][:]) == [1, 2, 3]
            assert nc.variables['trajectory'].cf_role == 'trajectory_id'
            assert list(nc.variables['rowSize'][:]) == [2, 2, 1]

            time = np.ma.filled(nc.variables['time'][:], np.nan)
            assert time[0, 1] == 10.0
            assert np.isnan(time[2, 0])

            x = np.ma.filled(nc.variables['x'][:], np.nan)
            assert x[1, 1] == 2.5
            assert np.isnan(x[2, 0])
            assert nc.variables['x'].units == '1'
            assert 'fid' in nc.variables

            assert float(nc.variables['diag_n_records'][()]) == 5.0


class TestNetCDFClimatology:
    """Test monthly snapshots read from netCDF files."""

    @pytest.fixture
    def climatology_file(self, tmp_path):
        path = tmp_path / "clim.nc"
        with Dataset(path, 'w') as nc:
            nc.createDimension('month', 12)
            nc.createDimension('x', 4)
            nc.createDimension('y', 3)
            u = nc.createVariable('UVEL', 'f8', ('month', 'x', 'y'), fill_value=-999.0)
            v = nc.createVariable('VVEL', 'f8', ('month', 'x', 'y'))
            theta = nc.createVariable('THETA', 'f8', ('month', 'x', 'y'))
            for m in range(12):
                u[m] = np.full((4, 3), m + 1.0)
                v[m] = np.zeros((4, 3))
                theta[m] = np.full((4, 3), 20.0 + m)
            u[0, 0, 0] = np.ma.masked
        return str(path)

    def test_read_velocities(self, climatology_file):
        """Test reading one month."""
        source = NetCDFClimatology(climatology_file, 'UVEL', 'VVEL', tracer_names={'THETA': 'THETA'})
        u, v = source.read_velocities(2)
        assert u.shape == (4, 3)
        assert np.allclose(u, 2.0)
        assert np.allclose(v, 0.0)
        assert np.allclose(source.read_tracer('THETA', 12), 31.0)

    def test_masked_values_become_nan(self, climatology_file):
        """Test that fill values are returned as NaN."""
        u, _ = NetCDFClimatology(climatology_file, 'UVEL', 'VVEL').read_velocities(1)
        assert np.isnan(u[0, 0])
        assert u[1, 1] == 1.0

    def test_refresh_from_file(self, climatology_file):
        """Test a refresher fed from netCDF."""
        source = NetCDFClimatology(climatology_file, 'UVEL', 'VVEL')
        R = FlowFieldRefresher(source, 1.0, 1.0, SimulationConfig(snapshot_interval=10.0))
        F = R.refresh(uniform_flow_fields((4, 3), 0.0, 0.0, (0.0, 1.0)), {}, 10.0)
        assert F.u0[0, 0] == 0.0
        assert np.allclose(F.u1, 2.0)

    def test_missing_variables(self, climatology_file):
        """Test errors for absent variables and months."""
        source = NetCDFClimatology(climatology_file, 'U', 'VVEL')
        with pytest.raises(ConfigurationError):
            source.read_velocities(1)

        source = NetCDFClimatology(climatology_file, 'UVEL', 'VVEL')
        with pytest.raises(ConfigurationError):
            source.read_velocities(13)
        with pytest.raises(ConfigurationError):
            source.read_vertical_velocity(1)
        with pytest.raises(ConfigurationError):
            source.read_tracer('SALT', 1)


class TestTimer:
    """Test wall-clock timing."""

    def test_start_stop(self):
        """Test a single timing."""
        timer = Timer()
        timer.start("a")
        elapsed = timer.stop("a")
        assert elapsed >= 0.0
        assert timer.get_times()["a"] == elapsed

    def test_stop_without_start(self):
        """Test stopping an unknown timer."""
        with pytest.raises(KeyError):
            Timer().stop("missing")

    def test_time_section_accumulates(self):
        """Test that repeated sections add up."""
        timer = Timer()
        with timer.time_section("loop"):
            pass
        first = timer.times["loop"]
        with timer.time_section("loop"):
            pass
        assert timer.times["loop"] >= first

    def test_time_section_on_error(self):
        """Test that sections are closed when the block raises."""
        timer = Timer()
        with pytest.raises(RuntimeError):
            with timer.time_section("fail"):
                raise RuntimeError("boom")
        assert "fail" in timer.times


class TestSimulationLogger:
    """Test the simulation log file."""

    def test_log_file(self, tmp_path):
        """Test messages, warnings and the final summary."""
        sim_logger = SimulationLogger("unit test", str(tmp_path), verbose=False)
        sim_logger.log_config(ConfigManager.get_default_config('case3'))
        sim_logger.log_flow_fields(uniform_flow_fields((4, 4), 1.0, 0.0, (0.0, 1.0)))
        sim_logger.log_diagnostics({'n_individuals': 3, 'displacement_mean': 1.0})
        sim_logger.log_timing({'setup': 0.1, 'total': 0.5})
        sim_logger.warning("check this")
        sim_logger.finalize()

        text = (tmp_path / "unit_test.log").read_text()
        assert "LAGRANGIAN DISPLACEMENT SIMULATION" in text
        assert "Tiles = 4" in text
        assert "UVArrays" in text
        assert "WARNINGS: 1" in text
        assert "ERRORS: None" in text
        assert sim_logger.warnings == ["check this"]

    def test_library_messages_captured(self, tmp_path):
        """Test that library debug messages reach the scenario log."""
        sim_logger = SimulationLogger("library", str(tmp_path), verbose=False)
        logging.getLogger("hanyut.core.refresh").debug("refreshed snapshots")
        sim_logger.finalize()

        logging.getLogger("hanyut.core.refresh").debug("after finalize")
        text = (tmp_path / "library.log").read_text()
        assert "refreshed snapshots" in text
        assert "after finalize" not in text


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
