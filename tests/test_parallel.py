"""Tests for running independent cohort scenarios on a thread pool.

Verifies that:
  1. parallel_workers=1 (serial) works unchanged
  2. parallel_workers>1 completes without errors
  3. parallel and serial produce identical trajectories, in input order
  4. Config accepts the parallel_workers field
"""

import numpy as np
import pytest

from cohort_biomass.config import apply_overrides, default_config, species_config
from cohort_biomass.errors import InvalidParameter
from cohort_biomass.model import run_scenarios


# ─── Helpers ──────────────────────────────────────────────────────────

def _sweep_configs(levels=(0.0, 20.0, 40.0, 50.0), t_end=60.0):
    """Same cohort under several constant competitor levels."""
    base = apply_overrides(default_config(), {'simulation': {'t_end': t_end}})
    return [apply_overrides(base, {'competition': {'B_other': level}}) for level in levels]


# ─── Tests ────────────────────────────────────────────────────────────

class TestParallelConfig:
    """Config accepts parallel_workers."""

    def test_default_is_serial(self):
        assert default_config().simulation.parallel_workers == 1

    def test_set_parallel_workers(self):
        cfg = apply_overrides(default_config(), {'simulation': {'parallel_workers': 4}})
        assert cfg.simulation.parallel_workers == 4


class TestParallelExecution:
    """Parallel path runs without errors and matches serial."""

    def test_empty(self):
        assert run_scenarios([]) == []

    def test_serial(self):
        results = run_scenarios(_sweep_configs(), parallel_workers=1)
        assert len(results) == 4
        assert all(r.n_samples == 61 for r in results)

    def test_parallel_matches_serial(self):
        """Runs share no mutable state, so threading changes nothing."""
        configs = _sweep_configs()
        serial = run_scenarios(configs, parallel_workers=1)
        parallel = run_scenarios(configs, parallel_workers=4)
        for s, p in zip(serial, parallel):
            np.testing.assert_array_equal(s.B, p.B)
            np.testing.assert_array_equal(s.D_wood, p.D_wood)

    def test_results_in_input_order(self):
        levels = (50.0, 0.0, 40.0)
        results = run_scenarios(_sweep_configs(levels), parallel_workers=3)
        assert [r.B_other[0] for r in results] == list(levels)
        # More competition past the growing space → less biomass
        assert results[0].B[-1] < results[2].B[-1] < results[1].B[-1]

    def test_workers_from_config(self):
        configs = [
            apply_overrides(cfg, {'simulation': {'parallel_workers': 2}})
            for cfg in _sweep_configs((0.0, 45.0))
        ]
        results = run_scenarios(configs)
        assert len(results) == 2

    def test_mixed_species(self):
        window = {'simulation': {'t_end': 70.0}}
        results = run_scenarios(
            [species_config('acer_saccharum', window), species_config('short_lived', window)],
            parallel_workers=2,
        )
        assert [r.species for r in results] == ['acer_saccharum', 'short_lived']
        assert results[1].B[-1] < results[0].B[-1]

    def test_invalid_worker_count(self):
        with pytest.raises(InvalidParameter, match="parallel_workers"):
            run_scenarios(_sweep_configs(), parallel_workers=0)


class TestParallelWithMoreWorkers:
    """Test with workers > scenarios to verify no issues."""

    def test_more_workers_than_scenarios(self):
        results = run_scenarios(_sweep_configs((0.0, 45.0)), parallel_workers=8)
        assert len(results) == 2
        assert all(np.all(r.B >= 0) for r in results)
