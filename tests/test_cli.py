"""
End-to-end tests of the hanyut command line scenarios.

Run with: pytest tests/ -v
"""

import numpy as np
import pandas as pd
import pytest
from netCDF4 import Dataset

from hanyut import ConfigManager, ConfigurationError, FlowKind, BasinSystem
from hanyut.cli import (
    build_scenario,
    initial_positions,
    main,
    normalize_scenario_name,
    run_scenario,
    simulation_config,
)


class TestHelpers:
    """Test CLI helper functions."""

    def test_normalize_scenario_name(self):
        """Test filename normalisation."""
        assert normalize_scenario_name('Case 1 - Recirculating Basin') == 'case_1_recirculating_basin'
        assert normalize_scenario_name('A--B ') == 'a_b'

    def test_simulation_config(self, tiny_config):
        """Test conversion of day-based settings to seconds."""
        sim = simulation_config(tiny_config)
        assert sim.n_particles == 4
        assert sim.advance_interval == pytest.approx(0.05 * 86400.0)
        assert sim.snapshot_interval == pytest.approx(365.0 / 12.0 * 86400.0)

    def test_initial_positions(self, rng):
        """Test position columns per variant."""
        basin = BasinSystem(nx=8, ny=6, nr=3)
        p = initial_positions(basin, FlowKind.UVW_MESH, 50, rng, n_tiles=2)
        assert p.shape == (50, 4)
        assert p[:, 0].max() < 4.0
        assert p[:, 1].max() < 6.0
        assert set(np.unique(p[:, 3])) <= {0.0, 1.0}
        assert np.all((p[:, 2] >= 0.5) & (p[:, 2] <= 2.5))

    def test_tracers_need_climatology(self, tiny_config):
        """Test that tracer columns without snapshots are rejected."""
        tiny_config['tracers'] = 'THETA'
        with pytest.raises(ConfigurationError):
            build_scenario(tiny_config, simulation_config(tiny_config))


class TestRunScenario:
    """Test complete scenario runs."""

    def test_array_scenario(self, tiny_config, tmp_path, monkeypatch):
        """Test a short surface drift run with CSV and NetCDF output."""
        monkeypatch.chdir(tmp_path)
        result, diagnostics = run_scenario(tiny_config, str(tmp_path / "out"), verbose=False)

        # Two advances of four individuals, start states not recorded
        assert len(result.record) == 2 * 4
        assert diagnostics['n_ids'] == 4
        assert 'gcd_mean_km' in diagnostics

        record_file = tmp_path / "out" / "csv" / "tiny_test_record.csv"
        assert record_file.exists()
        df = pd.read_csv(record_file)
        assert list(df.columns) == ['ID', 'x', 'y', 't', 'lon', 'lat']

        assert (tmp_path / "out" / "csv" / "tiny_test_diagnostics.csv").exists()
        assert (tmp_path / "logs" / "tiny_test.log").exists()

        with Dataset(tmp_path / "out" / "netcdf" / "tiny_test.nc", 'r') as nc:
            assert nc.dimensions['trajectory'].size == 4
            assert nc.dimensions['obs'].size == 2

    def test_mesh_climatology_scenario(self, tmp_path, monkeypatch):
        """Test a tiled climatology run with tracers, batching and two brackets."""
        monkeypatch.chdir(tmp_path)
        config = ConfigManager.get_default_config('case3')
        config.update({
            'scenario_name': 'Tiny Mesh',
            'nx': 8,
            'ny': 8,
            'n_tiles': 2,
            'n_particles': 3,
            'batch_size': 2,
            'total_time_days': 40.0,
            'save_netcdf': False,
        })

        result, diagnostics = run_scenario(config, str(tmp_path / "out"), verbose=False)

        assert diagnostics['n_windows'] == 2
        assert {'THETA', 'SALT', 'year', 'fid', 'lon', 'lat'} <= set(result.record.columns)
        assert result.individuals.position.shape == (3, 3)
        assert np.all(result.individuals.position[:, 0] >= 0.0)
        assert np.all(result.individuals.position[:, 0] < 4.0)
        assert not (tmp_path / "out" / "netcdf").exists()

    def test_failure_is_logged(self, tiny_config, tmp_path, monkeypatch):
        """Test that errors are logged and re-raised."""
        monkeypatch.chdir(tmp_path)
        tiny_config['flow'] = 'uv_grid'
        with pytest.raises(ValueError):
            run_scenario(tiny_config, str(tmp_path / "out"), verbose=False)
        text = (tmp_path / "logs" / "tiny_test.log").read_text()
        assert "Simulation failed" in text


class TestMain:
    """Test the argument parser entry point."""

    def test_custom_config(self, tiny_config, tmp_path, monkeypatch):
        """Test running a configuration file."""
        monkeypatch.chdir(tmp_path)
        config_path = tmp_path / "tiny.txt"
        ConfigManager.save(tiny_config, str(config_path))

        main(['--config', str(config_path), '--quiet', '--no-netcdf', '-o', str(tmp_path / "out")])

        assert (tmp_path / "out" / "csv" / "tiny_test_record.csv").exists()
        assert not (tmp_path / "out" / "netcdf").exists()

    def test_no_arguments(self, capsys):
        """Test that help is printed without a case."""
        with pytest.raises(SystemExit) as exc:
            main([])
        assert exc.value.code == 0
        assert 'usage' in capsys.readouterr().out.lower()


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
