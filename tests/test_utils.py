"""Tests for cohort_biomass.utils and the run_cohort command-line helpers."""

import importlib.util
import logging
from pathlib import Path

import pytest

from cohort_biomass.utils import config_hash, timer

SCRIPTS_DIR = Path(__file__).resolve().parents[1] / "scripts"


def _load_script(name):
    spec = importlib.util.spec_from_file_location(name, SCRIPTS_DIR / f"{name}.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class TestUtils:
    def test_config_hash_stable(self):
        assert config_hash("a: 1\n") == config_hash("a: 1\n")
        assert config_hash("a: 1\n") != config_hash("a: 2\n")
        assert len(config_hash("")) == 64

    def test_timer_logs(self, caplog):
        with caplog.at_level(logging.INFO, logger="cohort_biomass.utils"):
            with timer("integration"):
                pass
        assert any("[integration]" in rec.message for rec in caplog.records)


class TestParseOverrides:
    @pytest.fixture(scope="class")
    def run_cohort(self):
        return _load_script("run_cohort")

    def test_typed_values(self, run_cohort):
        overrides = run_cohort.parse_overrides([
            "cohort.k_decomp=0.5",
            "simulation.solver=rk4",
            "output.make_plots=true",
            "simulation.parallel_workers=3",
        ])
        assert overrides == {
            'cohort': {'k_decomp': 0.5},
            'simulation': {'solver': 'rk4', 'parallel_workers': 3},
            'output': {'make_plots': True},
        }

    def test_list_value(self, run_cohort):
        overrides = run_cohort.parse_overrides(["competition.schedule_times=[0, 50]"])
        assert overrides['competition']['schedule_times'] == [0, 50]

    @pytest.mark.parametrize("item", ["k_decomp=0.5", "cohort.k_decomp", "nosection"])
    def test_malformed(self, run_cohort, item):
        with pytest.raises(ValueError, match="section.key=value"):
            run_cohort.parse_overrides([item])
