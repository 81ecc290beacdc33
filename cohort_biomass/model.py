"""Cohort biomass model and integration driver.

  - CohortBiomassModel: validated parameters + competitor signal, exposing
    the derivative in the shapes integrators expect
  - integrate_cohort: runs a scipy adaptive solver or a fixed-step
    RK4/Euler scheme and enforces the zero boundary on both pools
  - run_cohort_simulation: config → CohortSimResult
  - run_scenarios: independent runs, optionally on a thread pool

Zero-boundary policy: a pool that would go negative is clamped to zero.
Fixed-step schemes clamp after every step. Adaptive schemes stop at the
zero crossing (terminal event), set the pool to zero, and freeze it for
the remainder of the run. Trial stages are evaluated at the state
projected onto y >= 0. The derivative itself never branches on its
output.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple, Union

import numpy as np
from scipy.integrate import solve_ivp

from cohort_biomass.config import (
    ADAPTIVE_SOLVERS,
    FIXED_STEP_SOLVERS,
    SimulationConfig,
    cohort_parameters,
    competitor_input,
    initial_state,
    validate_config,
)
from cohort_biomass.dynamics import cohort_derivative, cohort_fluxes
from cohort_biomass.errors import IntegrationError, InvalidParameter
from cohort_biomass.types import (
    CohortFluxes,
    CohortParameters,
    CohortState,
    CompetitorInput,
    Pool,
    make_competitor_signal,
)

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════
# MODEL
# ═══════════════════════════════════════════════════════════════════════

class CohortBiomassModel:
    """One species-age cohort: parameters, competitor input, derivative.

    Parameters are validated once here; derivative calls do no checking.
    The instance holds no evolving state, so one model may serve many
    concurrent integrations.

    Example:
        >>> params = CohortParameters(ANPP_MAX=7.45, B_MAX=23.0,
        ...                           B_MAX_site=60.0, max_age=400.0,
        ...                           k_decomp=2.9)
        >>> model = CohortBiomassModel(params, competitor=0.0)
        >>> dB, dD = model.derivative(CohortState(B=0.5), t=0.0)
    """

    def __init__(self, params: CohortParameters, competitor: CompetitorInput = None):
        params.validate()
        self.params = params
        self.B_other = make_competitor_signal(competitor)

    def derivative(self, state: Union[CohortState, Sequence[float]], t: float) -> Tuple[float, float]:
        """(dB/dt, dD_wood/dt) at simulated time ``t``."""
        if not isinstance(state, CohortState):
            state = CohortState.from_array(state)
        return cohort_derivative(t, state.B, state.D_wood, self.params, self.B_other(t))

    def rhs(self, t: float, y: np.ndarray) -> np.ndarray:
        """``fun(t, y)`` for scipy.integrate.solve_ivp."""
        dB, dD = cohort_derivative(
            t, y[Pool.BIOMASS], y[Pool.DEAD_WOOD], self.params, self.B_other(t)
        )
        return np.array([dB, dD], dtype=np.float64)

    def fluxes(self, t, B, D_wood) -> CohortFluxes:
        """Every intermediate term; ``t`` may be an array aligned with B, D_wood."""
        t = np.asarray(t, dtype=np.float64)
        if t.ndim == 0:
            B_other = self.B_other(float(t))
        else:
            B_other = np.array([self.B_other(ti) for ti in t], dtype=np.float64)
        return cohort_fluxes(t, B, D_wood, self.params, B_other)


# ═══════════════════════════════════════════════════════════════════════
# RESULTS
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class CohortSimResult:
    """Sampled trajectory of one cohort plus per-sample diagnostics."""
    t: np.ndarray
    B: np.ndarray
    D_wood: np.ndarray
    params: CohortParameters
    solver: str = 'RK45'
    species: str = ''

    # Diagnostics at each sample time
    B_other: Optional[np.ndarray] = None
    ANPP: Optional[np.ndarray] = None
    M_BIO: Optional[np.ndarray] = None
    M_AGE: Optional[np.ndarray] = None
    decomposition: Optional[np.ndarray] = None

    # Integration bookkeeping
    n_rhs_evals: int = 0
    clamp_events: List[Tuple[float, str]] = field(default_factory=list)

    @property
    def n_samples(self) -> int:
        return len(self.t)

    @property
    def peak_B(self) -> float:
        return float(np.max(self.B))

    @property
    def peak_time(self) -> float:
        return float(self.t[int(np.argmax(self.B))])

    @property
    def final_state(self) -> CohortState:
        return CohortState(B=float(self.B[-1]), D_wood=float(self.D_wood[-1]))

    def state_at(self, t: float) -> CohortState:
        """Linearly interpolated state at ``t`` within the sampled window."""
        return CohortState(
            B=float(np.interp(t, self.t, self.B)),
            D_wood=float(np.interp(t, self.t, self.D_wood)),
        )


# ═══════════════════════════════════════════════════════════════════════
# INTEGRATION
# ═══════════════════════════════════════════════════════════════════════

def sample_times(t_start: float, t_end: float, interval: float) -> np.ndarray:
    """Regular sampling grid from t_start to t_end inclusive."""
    n = int(np.floor((t_end - t_start) / interval + 1e-9))
    ts = t_start + interval * np.arange(n + 1, dtype=np.float64)
    if ts[-1] < t_end - 1e-9 * max(1.0, abs(t_end)):
        ts = np.append(ts, t_end)
    return np.minimum(ts, t_end)


def _zero_crossing(pool: Pool) -> Callable[[float, np.ndarray], float]:
    def event(t, y):
        return y[pool]
    event.terminal = True
    event.direction = -1
    return event


def _bounded_rhs(model: CohortBiomassModel, frozen: Optional[np.ndarray] = None):
    """Wrap model.rhs for the driver.

    Trial stages may probe slightly negative states; the derivative is
    evaluated at the state projected onto y >= 0. Frozen pools are held
    at zero with zero rate.
    """
    if frozen is None:
        frozen = np.zeros(len(Pool), dtype=bool)

    def rhs(t, y):
        dydt = model.rhs(t, np.where(frozen, 0.0, np.maximum(y, 0.0)))
        dydt[frozen] = 0.0
        return dydt
    return rhs


def _integrate_adaptive(
    model: CohortBiomassModel,
    y0: np.ndarray,
    t_span: Tuple[float, float],
    t_eval: np.ndarray,
    method: str,
    rtol: float,
    atol: float,
    max_step: float,
) -> Tuple[np.ndarray, int, List[Tuple[float, str]]]:
    t0, t_end = t_span
    y = y0.copy()
    frozen = np.zeros(len(Pool), dtype=bool)
    segments = []
    clamp_events: List[Tuple[float, str]] = []
    n_evals = 0

    while True:
        # Pools sitting at zero and still heading down are clamped up front,
        # otherwise the crossing event would fire on a zero-length step.
        rates = _bounded_rhs(model, frozen)(t0, y)
        n_evals += 1
        for pool in Pool:
            if not frozen[pool] and y[pool] <= 0.0 and rates[pool] < 0.0:
                y[pool] = 0.0
                frozen[pool] = True
                clamp_events.append((float(t0), pool.name))
                logger.debug("clamped %s at zero, t=%.4f", pool.name, t0)

        live = [pool for pool in Pool if not frozen[pool]]
        sol = solve_ivp(
            _bounded_rhs(model, frozen),
            (t0, t_end),
            y,
            method=method,
            rtol=rtol,
            atol=atol,
            max_step=max_step,
            dense_output=True,
            events=[_zero_crossing(pool) for pool in live] or None,
        )
        if sol.status == -1:
            raise IntegrationError(f"{method} failed at t={sol.t[-1]:.4f}: {sol.message}")
        n_evals += sol.nfev
        segments.append((t0, sol.sol))
        logger.debug("solver segment [%.4f, %.4f], %d evaluations",
                     t0, sol.t[-1], sol.nfev)

        if sol.status != 1:
            break

        t0 = float(sol.t[-1])
        y = sol.y[:, -1].copy()
        for ev_idx, pool in enumerate(live):
            if sol.t_events[ev_idx].size > 0:
                y[pool] = 0.0
                frozen[pool] = True
                clamp_events.append((t0, pool.name))
                logger.debug("clamped %s at zero, t=%.4f", pool.name, t0)
        if t0 >= t_end:
            break

    starts = np.array([s for s, _ in segments])
    idx = np.searchsorted(starts, t_eval, side='right') - 1
    ys = np.empty((len(t_eval), len(Pool)), dtype=np.float64)
    for k, (ti, si) in enumerate(zip(t_eval, idx)):
        ys[k] = segments[max(si, 0)][1](ti)
    return np.maximum(ys, 0.0), n_evals, clamp_events


def _rk4_step(f, t, y, h):
    k1 = f(t, y)
    k2 = f(t + 0.5 * h, y + 0.5 * h * k1)
    k3 = f(t + 0.5 * h, y + 0.5 * h * k2)
    k4 = f(t + h, y + h * k3)
    return y + (h / 6.0) * (k1 + 2.0 * k2 + 2.0 * k3 + k4)


def _euler_step(f, t, y, h):
    return y + h * f(t, y)


_STEPPERS = {'rk4': (_rk4_step, 4), 'euler': (_euler_step, 1)}


def _integrate_fixed_step(
    model: CohortBiomassModel,
    y0: np.ndarray,
    t_span: Tuple[float, float],
    t_eval: np.ndarray,
    method: str,
    step: float,
) -> Tuple[np.ndarray, int, List[Tuple[float, str]]]:
    t0, t_end = t_span
    stepper, evals_per_step = _STEPPERS[method]
    rhs = _bounded_rhs(model)
    n_steps = max(1, int(np.ceil((t_end - t0) / step - 1e-9)))
    ts = np.linspace(t0, t_end, n_steps + 1)
    h = ts[1] - ts[0]

    ys = np.empty((n_steps + 1, len(Pool)), dtype=np.float64)
    ys[0] = y0
    clamp_events: List[Tuple[float, str]] = []
    clamped = np.zeros(len(Pool), dtype=bool)
    for i in range(n_steps):
        y_next = stepper(rhs, ts[i], ys[i], h)
        negative = y_next < 0.0
        if negative.any():
            for pool in Pool:
                if negative[pool] and not clamped[pool]:
                    clamped[pool] = True
                    clamp_events.append((float(ts[i + 1]), pool.name))
                    logger.debug("clamped %s at zero, t=%.4f", pool.name, ts[i + 1])
            y_next = np.maximum(y_next, 0.0)
        ys[i + 1] = y_next

    sampled = np.column_stack([
        np.interp(t_eval, ts, ys[:, pool]) for pool in Pool
    ])
    return sampled, n_steps * evals_per_step, clamp_events


def integrate_cohort(
    model: CohortBiomassModel,
    state: Union[CohortState, Sequence[float]],
    t_span: Tuple[float, float],
    t_eval: Optional[Sequence[float]] = None,
    method: str = 'RK45',
    rtol: float = 1.0e-6,
    atol: float = 1.0e-8,
    max_step: float = np.inf,
    fixed_step: float = 0.05,
    species: str = '',
) -> CohortSimResult:
    """Integrate one cohort over ``t_span`` and sample it at ``t_eval``.

    Args:
        model: CohortBiomassModel (already validated).
        state: Initial CohortState, or [B, D_wood].
        t_span: (t_start, t_end); t_start is the cohort age at the start.
        t_eval: Sample times within t_span (default: yearly grid).
        method: scipy solve_ivp method name, or 'rk4' / 'euler'.
        rtol, atol, max_step: Adaptive solver controls.
        fixed_step: Step size for 'rk4' / 'euler'.
        species: Label carried into the result.

    Returns:
        CohortSimResult with non-negative B and D_wood at every sample.

    Raises:
        InvalidParameter: Bad method, span, sample times or initial state.
        IntegrationError: The adaptive solver failed.
    """
    if not isinstance(state, CohortState):
        state = CohortState.from_array(state)
    state.validate()

    t0, t_end = float(t_span[0]), float(t_span[1])
    if t0 < 0 or t_end <= t0:
        raise InvalidParameter(f"t_span must satisfy 0 <= t_start < t_end, got {t_span}")
    if t_eval is None:
        t_eval = sample_times(t0, t_end, 1.0)
    t_eval = np.asarray(t_eval, dtype=np.float64)
    if t_eval.ndim != 1 or t_eval.size == 0:
        raise InvalidParameter("t_eval must be a non-empty 1-D sequence")
    if np.any(np.diff(t_eval) < 0):
        raise InvalidParameter("t_eval must be sorted")
    if t_eval[0] < t0 or t_eval[-1] > t_end:
        raise InvalidParameter(f"t_eval must lie within t_span {t_span}")

    y0 = state.as_array()
    if method in ADAPTIVE_SOLVERS:
        ys, n_evals, clamp_events = _integrate_adaptive(
            model, y0, (t0, t_end), t_eval, method, rtol, atol, max_step)
    elif method in FIXED_STEP_SOLVERS:
        if fixed_step <= 0:
            raise InvalidParameter(f"fixed_step must be > 0, got {fixed_step}")
        ys, n_evals, clamp_events = _integrate_fixed_step(
            model, y0, (t0, t_end), t_eval, method, fixed_step)
    else:
        raise InvalidParameter(
            f"unknown method '{method}', expected one of "
            f"{sorted(ADAPTIVE_SOLVERS | FIXED_STEP_SOLVERS)}"
        )

    B = ys[:, Pool.BIOMASS]
    D_wood = ys[:, Pool.DEAD_WOOD]
    flux = model.fluxes(t_eval, B, D_wood)
    B_other = np.array([model.B_other(ti) for ti in t_eval], dtype=np.float64)

    return CohortSimResult(
        t=t_eval,
        B=B,
        D_wood=D_wood,
        params=model.params,
        solver=method,
        species=species,
        B_other=B_other,
        ANPP=np.asarray(flux.ANPP, dtype=np.float64),
        M_BIO=np.asarray(flux.M_BIO, dtype=np.float64),
        M_AGE=np.asarray(flux.M_AGE, dtype=np.float64),
        decomposition=np.asarray(flux.decomposition, dtype=np.float64),
        n_rhs_evals=n_evals,
        clamp_events=clamp_events,
    )


# ═══════════════════════════════════════════════════════════════════════
# CONFIG-DRIVEN RUNS
# ═══════════════════════════════════════════════════════════════════════

def build_model(config: SimulationConfig) -> CohortBiomassModel:
    """CohortBiomassModel for a config's cohort, site and competition."""
    return CohortBiomassModel(cohort_parameters(config), competitor_input(config))


def run_cohort_simulation(config: SimulationConfig) -> CohortSimResult:
    """Validate ``config``, integrate its cohort, and return the trajectory.

    Raises:
        InvalidParameter: If the configuration is invalid.
        IntegrationError: If the solver fails.
    """
    validate_config(config)
    sim = config.simulation
    model = build_model(config)
    t_eval = sample_times(sim.t_start, sim.t_end, sim.output_interval)

    logger.info(
        "running %s: t=[%g, %g], solver=%s, B0=%g, D0=%g",
        config.cohort.species, sim.t_start, sim.t_end, sim.solver,
        config.initial.B, config.initial.D_wood,
    )
    result = integrate_cohort(
        model,
        initial_state(config),
        (sim.t_start, sim.t_end),
        t_eval=t_eval,
        method=sim.solver,
        rtol=sim.rtol,
        atol=sim.atol,
        max_step=sim.max_step,
        fixed_step=sim.fixed_step,
        species=config.cohort.species,
    )
    logger.info(
        "finished %s: peak B=%.3f at t=%g, final B=%.3f, D_wood=%.3f, %d evaluations",
        config.cohort.species, result.peak_B, result.peak_time,
        result.B[-1], result.D_wood[-1], result.n_rhs_evals,
    )
    return result


def run_scenarios(
    configs: Sequence[SimulationConfig],
    parallel_workers: Optional[int] = None,
) -> List[CohortSimResult]:
    """Run independent configurations; results come back in input order.

    Args:
        configs: Configurations to run. Nothing mutable is shared between them.
        parallel_workers: Thread count; defaults to the first config's
            ``simulation.parallel_workers``. 1 runs serially.
    """
    if len(configs) == 0:
        return []
    if parallel_workers is None:
        parallel_workers = configs[0].simulation.parallel_workers
    if parallel_workers < 1:
        raise InvalidParameter(f"parallel_workers must be >= 1, got {parallel_workers}")

    if parallel_workers == 1 or len(configs) == 1:
        return [run_cohort_simulation(cfg) for cfg in configs]

    logger.info("running %d scenarios on %d threads", len(configs), parallel_workers)
    with ThreadPoolExecutor(max_workers=parallel_workers) as pool:
        futures = [pool.submit(run_cohort_simulation, cfg) for cfg in configs]
        return [future.result() for future in futures]
