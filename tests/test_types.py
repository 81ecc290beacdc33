"""Tests for cohort_biomass.types: state, parameters, competitor signals."""

import dataclasses

import numpy as np
import pytest

from cohort_biomass.errors import IntegrationError, InvalidParameter
from cohort_biomass.types import (
    MAX_EXP_ARG,
    CohortFluxes,
    CohortParameters,
    CohortState,
    ConstantCompetitor,
    Pool,
    ScheduledCompetitor,
    make_competitor_signal,
)


def _params(**overrides) -> CohortParameters:
    values = dict(ANPP_MAX=7.45, B_MAX=23.0, B_MAX_site=60.0,
                  max_age=400.0, k_decomp=2.9)
    values.update(overrides)
    return CohortParameters(**values)


# ── Errors ────────────────────────────────────────────────────────────

class TestErrors:
    def test_invalid_parameter_is_value_error(self):
        assert issubclass(InvalidParameter, ValueError)

    def test_integration_error_is_runtime_error(self):
        assert issubclass(IntegrationError, RuntimeError)


# ── State ─────────────────────────────────────────────────────────────

class TestCohortState:
    def test_defaults_empty(self):
        state = CohortState()
        assert state.B == 0.0
        assert state.D_wood == 0.0

    def test_array_layout_follows_pool_index(self):
        y = CohortState(B=3.0, D_wood=1.5).as_array()
        assert y[Pool.BIOMASS] == 3.0
        assert y[Pool.DEAD_WOOD] == 1.5
        assert y.dtype == np.float64

    def test_from_array(self):
        state = CohortState.from_array(np.array([4.0, 0.25]))
        assert state == CohortState(B=4.0, D_wood=0.25)

    def test_age_is_simulated_time(self):
        assert CohortState.age(37.5) == 37.5

    @pytest.mark.parametrize("B, D_wood", [
        (-0.1, 0.0), (0.0, -1e-9), (np.nan, 0.0), (0.0, np.inf),
    ])
    def test_validate_rejects(self, B, D_wood):
        with pytest.raises(InvalidParameter):
            CohortState(B=B, D_wood=D_wood).validate()

    def test_zero_state_valid(self):
        CohortState(B=0.0, D_wood=0.0).validate()  # should not raise


# ── Parameters ────────────────────────────────────────────────────────

class TestCohortParameters:
    def test_default_shape_parameters(self):
        p = _params()
        assert (p.r, p.y0, p.d) == (0.08, 0.01, 10.0)

    def test_frozen(self):
        p = _params()
        with pytest.raises(dataclasses.FrozenInstanceError):
            p.B_MAX = 30.0

    def test_valid(self):
        _params().validate()  # should not raise

    def test_growing_space(self):
        assert _params().growing_space == pytest.approx(37.0)

    @pytest.mark.parametrize("overrides, match", [
        ({'ANPP_MAX': -1.0}, 'ANPP_MAX'),
        ({'B_MAX': 0.0}, 'B_MAX must'),
        ({'B_MAX_site': 22.0}, 'B_MAX_site'),
        ({'max_age': -5.0}, 'max_age'),
        ({'r': 0.0}, 'r must'),
        ({'y0': 0.0}, 'y0'),
        ({'y0': 1.5}, 'y0'),
        ({'d': 0.0}, 'd must'),
        ({'d': MAX_EXP_ARG + 1.0}, 'exp'),
        ({'k_decomp': -0.1}, 'k_decomp'),
        ({'max_age': np.inf}, 'finite'),
    ])
    def test_validate_rejects(self, overrides, match):
        with pytest.raises(InvalidParameter, match=match):
            _params(**overrides).validate()

    def test_zero_decomposition_allowed(self):
        _params(k_decomp=0.0).validate()  # should not raise


# ── Fluxes ────────────────────────────────────────────────────────────

class TestCohortFluxes:
    def test_rates_from_terms(self):
        f = CohortFluxes(B_POT=23.0, B_AP=0.5, ANPP=5.0, M_BIO=1.0,
                         M_AGE=0.5, decomposition=0.75)
        assert f.dB_dt == pytest.approx(3.5)
        assert f.dD_wood_dt == pytest.approx(0.75)

    def test_array_terms(self):
        f = CohortFluxes(B_POT=np.full(2, 23.0), B_AP=np.zeros(2),
                         ANPP=np.array([1.0, 2.0]), M_BIO=np.array([0.5, 0.5]),
                         M_AGE=np.zeros(2), decomposition=np.array([0.1, 0.2]))
        np.testing.assert_allclose(f.dB_dt, [0.5, 1.5])
        np.testing.assert_allclose(f.dD_wood_dt, [0.4, 0.3])


# ── Competitor signals ────────────────────────────────────────────────

class TestCompetitorSignal:
    def test_none_is_zero(self):
        signal = make_competitor_signal(None)
        assert isinstance(signal, ConstantCompetitor)
        assert signal(0.0) == 0.0
        assert signal(500.0) == 0.0

    def test_constant(self):
        signal = make_competitor_signal(40)
        assert signal(0.0) == 40.0
        assert signal(123.0) == 40.0

    @pytest.mark.parametrize("value", [-1.0, np.nan, np.inf])
    def test_constant_rejects(self, value):
        with pytest.raises(InvalidParameter, match="B_other"):
            make_competitor_signal(value)

    def test_callable_passes_through(self):
        def ramp(t):
            return 0.1 * t
        assert make_competitor_signal(ramp) is ramp

    def test_schedule_interpolates(self):
        signal = make_competitor_signal(([0.0, 50.0, 100.0], [0.0, 20.0, 50.0]))
        assert isinstance(signal, ScheduledCompetitor)
        assert signal(25.0) == pytest.approx(10.0)
        assert signal(75.0) == pytest.approx(35.0)

    def test_schedule_held_outside_range(self):
        signal = ScheduledCompetitor([10.0, 20.0], [5.0, 15.0])
        assert signal(0.0) == pytest.approx(5.0)
        assert signal(1000.0) == pytest.approx(15.0)

    def test_schedule_order_independent(self):
        signal = ScheduledCompetitor([0.0, 100.0], [0.0, 50.0])
        ts = [80.0, 10.0, 55.0, 10.0]
        assert [signal(t) for t in ts] == [signal(t) for t in ts]
        assert signal(10.0) == pytest.approx(5.0)

    @pytest.mark.parametrize("times, values, match", [
        ([0.0, 10.0], [1.0], 'equal-length'),
        ([], [], 'equal-length'),
        ([0.0, 0.0], [1.0, 2.0], 'strictly increasing'),
        ([0.0, 10.0], [1.0, -2.0], '>= 0'),
        ([0.0, 10.0], [1.0, np.nan], '>= 0'),
    ])
    def test_schedule_rejects(self, times, values, match):
        with pytest.raises(InvalidParameter, match=match):
            ScheduledCompetitor(times, values)
