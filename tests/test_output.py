"""Tests for cohort_biomass.output: trajectory tables, CSV and YAML summaries."""

import numpy as np
import pytest
import yaml

from cohort_biomass.config import apply_overrides, default_config
from cohort_biomass.model import run_cohort_simulation
from cohort_biomass.output import (
    TRAJECTORY_COLUMNS,
    read_trajectory_csv,
    save_outputs,
    summarize,
    trajectory_table,
    write_summary_yaml,
    write_trajectory_csv,
)


@pytest.fixture(scope="module")
def short_run_config():
    return apply_overrides(default_config(), {'simulation': {'t_end': 30.0}})


@pytest.fixture(scope="module")
def short_run(short_run_config):
    return run_cohort_simulation(short_run_config)


class TestTrajectoryTable:
    def test_columns(self, short_run):
        table = trajectory_table(short_run)
        assert list(table) == TRAJECTORY_COLUMNS
        assert all(len(v) == short_run.n_samples for v in table.values())

    def test_unit_scale_applies_to_biomass_not_time(self, short_run):
        table = trajectory_table(short_run, unit_scale=10.0)
        np.testing.assert_allclose(table['t'], short_run.t)
        np.testing.assert_allclose(table['B'], short_run.B * 10.0)
        np.testing.assert_allclose(table['ANPP'], short_run.ANPP * 10.0)

    def test_missing_diagnostics_become_nan(self, short_run):
        stripped = type(short_run)(t=short_run.t, B=short_run.B,
                                   D_wood=short_run.D_wood, params=short_run.params)
        table = trajectory_table(stripped)
        assert np.all(np.isnan(table['M_AGE']))


class TestCSV:
    def test_write_and_read(self, short_run, tmp_path):
        path = write_trajectory_csv(short_run, tmp_path / "traj.csv", unit_scale=10.0)
        assert path.exists()
        columns = read_trajectory_csv(path)
        assert list(columns) == TRAJECTORY_COLUMNS
        np.testing.assert_allclose(columns['B'], short_run.B * 10.0, rtol=1e-5)
        np.testing.assert_allclose(columns['t'], short_run.t)

    def test_header_row(self, short_run, tmp_path):
        path = write_trajectory_csv(short_run, tmp_path / "traj.csv")
        header = path.read_text().splitlines()[0]
        assert header == ",".join(TRAJECTORY_COLUMNS)


class TestSummary:
    def test_summary_values(self, short_run):
        summary = summarize(short_run, unit_scale=10.0)
        assert summary['species'] == 'acer_saccharum'
        assert summary['peak_B'] == pytest.approx(short_run.peak_B * 10.0)
        assert summary['final_B'] == pytest.approx(short_run.B[-1] * 10.0)
        assert summary['t_end'] == 30.0
        assert summary['n_clamp_events'] == 0

    def test_summary_yaml_includes_config(self, short_run, short_run_config, tmp_path):
        path = write_summary_yaml(short_run, tmp_path / "summary.yaml", 10.0, short_run_config)
        with open(path) as f:
            doc = yaml.safe_load(f)
        assert doc['summary']['solver'] == 'RK45'
        assert doc['config']['simulation']['t_end'] == 30.0
        assert len(doc['config_hash']) == 64

    def test_summary_yaml_without_config(self, short_run, tmp_path):
        path = write_summary_yaml(short_run, tmp_path / "summary.yaml")
        with open(path) as f:
            doc = yaml.safe_load(f)
        assert set(doc) == {'summary'}


class TestSaveOutputs:
    def test_writes_enabled_outputs(self, short_run, short_run_config, tmp_path):
        config = apply_overrides(short_run_config, {'output': {'directory': str(tmp_path)}})
        written = save_outputs(short_run, config)
        assert set(written) == {'csv', 'summary'}
        assert (tmp_path / "acer_saccharum_trajectory.csv").exists()
        assert (tmp_path / "acer_saccharum_summary.yaml").exists()

    def test_creates_missing_directory_with_warning(self, short_run, short_run_config, tmp_path):
        target = tmp_path / "new" / "dir"
        config = apply_overrides(short_run_config, {
            'output': {'directory': str(target), 'write_summary': False},
        })
        with pytest.warns(UserWarning, match="does not exist"):
            written = save_outputs(short_run, config)
        assert target.is_dir()
        assert set(written) == {'csv'}

    def test_plot_output(self, short_run, short_run_config, tmp_path):
        config = apply_overrides(short_run_config, {
            'output': {'directory': str(tmp_path), 'write_csv': False,
                       'write_summary': False, 'make_plots': True},
        })
        written = save_outputs(short_run, config)
        assert written['plot'].exists()
