"""Biomass dynamics of a single species-age cohort.

Right-hand side of the coupled ODE system

    dB/dt      = ANPP − M_BIO − M_AGE
    dD_wood/dt = M_BIO + M_AGE − k_decomp · D_wood

with, evaluated in this order every call:

  1. B_POT = B_MAX − max(0, B_other − (B_MAX_site − B_MAX))   (floored > 0)
  2. B_AP  = B / B_POT
  3. ANPP  = ANPP_MAX · e · B_AP · exp(−B_AP)
  4. M_BIO = ANPP_MAX · y0 / (y0 + (1 − y0) · exp(−(r/y0) · B_AP))
  5. M_AGE = B · (exp(d · t/max_age) − 1) / (exp(d) − 1)
  6. dB/dt
  7. dD_wood/dt

Every function is pure and broadcasts over NumPy arrays, so the same code
serves the integrator (scalars) and the curve plots (arrays). Nothing here
clamps the state: the zero boundary belongs to the integration driver.

References:
  - Scheller & Mladenoff (2004), Ecological Modelling 180:211–229
    (LANDIS-II biomass succession: ANPP, biomass and age mortality)
"""

from __future__ import annotations

from typing import Tuple

import numpy as np

from cohort_biomass.types import (
    MAX_EXP_ARG,
    POTENTIAL_BIOMASS_FLOOR,
    CohortFluxes,
    CohortParameters,
)


# ═══════════════════════════════════════════════════════════════════════
# AUXILIARY FUNCTIONS
# ═══════════════════════════════════════════════════════════════════════

def potential_biomass(B_MAX, B_MAX_site, B_other):
    """Competition-adjusted potential biomass B_POT.

    Competitors only reduce B_POT once their biomass exceeds the site's
    remaining growing space (B_MAX_site − B_MAX); beyond that the penalty
    is one-for-one.

    Args:
        B_MAX: Species maximum biomass (mass/area).
        B_MAX_site: Site maximum biomass (mass/area).
        B_other: Biomass of co-occurring cohorts (mass/area).

    Returns:
        B_POT, never below POTENTIAL_BIOMASS_FLOOR.
    """
    crowding = np.maximum(0.0, B_other - (B_MAX_site - B_MAX))
    return np.maximum(B_MAX - crowding, POTENTIAL_BIOMASS_FLOOR)


def biomass_ratio(B, B_POT):
    """Actual-to-potential biomass ratio B_AP. Not clamped to [0, 1]."""
    return B / B_POT


def anpp(B_AP, ANPP_MAX):
    """Actual ANPP, peaked at B_AP = 1 where it equals ANPP_MAX.

    Written as B_AP · exp(1 − B_AP) rather than e · B_AP · exp(−B_AP) so
    the peak value is exact in floating point.
    """
    return ANPP_MAX * B_AP * np.exp(1.0 - B_AP)


def biomass_mortality(B_AP, ANPP_MAX, r, y0):
    """Crowding mortality: logistic in B_AP from ~y0·ANPP_MAX up to ANPP_MAX."""
    return ANPP_MAX * y0 / (y0 + (1.0 - y0) * np.exp(-(r / y0) * B_AP))


def age_mortality(B, t, max_age, d):
    """Age-related mortality of standing biomass B at cohort age t.

    Zero at t = 0, exactly B at t = max_age, rising exponentially in the
    fraction of lifespan elapsed. The exponent is clamped at MAX_EXP_ARG
    so cohorts far past max_age saturate instead of overflowing.

    Args:
        B: Living biomass (mass/area).
        t: Cohort age, i.e. simulated time since establishment.
        max_age: Species longevity.
        d: Curvature of the age-mortality curve.

    Returns:
        M_AGE (mass/area/time).
    """
    exponent = np.minimum(d * (t / max_age), MAX_EXP_ARG)
    return B * (np.expm1(exponent) / np.expm1(d))


def decomposition(D_wood, k_decomp):
    """First-order loss from the dead-wood pool."""
    return k_decomp * D_wood


# ═══════════════════════════════════════════════════════════════════════
# DERIVATIVE
# ═══════════════════════════════════════════════════════════════════════

def cohort_fluxes(t, B, D_wood, params: CohortParameters, B_other=0.0) -> CohortFluxes:
    """Evaluate every term of the cohort ODE at (t, B, D_wood).

    Args:
        t: Simulated time (= cohort age).
        B: Living aboveground biomass.
        D_wood: Dead woody biomass.
        params: Validated CohortParameters.
        B_other: Competitor biomass at time t (already evaluated).

    Returns:
        CohortFluxes; ``dB_dt`` and ``dD_wood_dt`` give the rates.
    """
    B_POT = potential_biomass(params.B_MAX, params.B_MAX_site, B_other)
    B_AP = biomass_ratio(B, B_POT)
    return CohortFluxes(
        B_POT=B_POT,
        B_AP=B_AP,
        ANPP=anpp(B_AP, params.ANPP_MAX),
        M_BIO=biomass_mortality(B_AP, params.ANPP_MAX, params.r, params.y0),
        M_AGE=age_mortality(B, t, params.max_age, params.d),
        decomposition=decomposition(D_wood, params.k_decomp),
    )


def cohort_derivative(
    t: float,
    B: float,
    D_wood: float,
    params: CohortParameters,
    B_other: float = 0.0,
) -> Tuple[float, float]:
    """Rates of change (dB/dt, dD_wood/dt) of one cohort.

    Pure: no hidden state, safe to call at any t, in any order, from any
    thread. ``params`` must already have been validated.
    """
    B_POT = potential_biomass(params.B_MAX, params.B_MAX_site, B_other)
    B_AP = biomass_ratio(B, B_POT)
    growth = anpp(B_AP, params.ANPP_MAX)
    m_bio = biomass_mortality(B_AP, params.ANPP_MAX, params.r, params.y0)
    m_age = age_mortality(B, t, params.max_age, params.d)
    dB_dt = growth - m_bio - m_age
    dD_dt = m_bio + m_age - decomposition(D_wood, params.k_decomp)
    return dB_dt, dD_dt
