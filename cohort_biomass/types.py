"""Core data types for cohort-biomass simulations.

This module is the SINGLE SOURCE OF TRUTH for:
  - Pool: index of each pool in the integrator's state vector
  - CohortState: living (B) and dead woody (D_wood) biomass of one cohort
  - CohortParameters: fixed species/site parameters for one run
  - CohortFluxes: every intermediate term of one derivative evaluation
  - Competitor signals: constant / callable / piecewise-linear B_other(t)

Cohort age is NOT stored anywhere: the cohort is established at t = 0,
so age is always the simulated time itself.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import IntEnum
from typing import Callable, Sequence, Tuple, Union

import numpy as np

from cohort_biomass.errors import InvalidParameter


# ═══════════════════════════════════════════════════════════════════════
# CONSTANTS
# ═══════════════════════════════════════════════════════════════════════

POTENTIAL_BIOMASS_FLOOR = 1.0e-6   # Lower bound on B_POT (mass/area)
MAX_EXP_ARG = 700.0                # exp(709.78) overflows float64

# Default shape parameters
DEFAULT_R = 0.08
DEFAULT_Y0 = 0.01
DEFAULT_D = 10.0


# ═══════════════════════════════════════════════════════════════════════
# ENUMERATIONS
# ═══════════════════════════════════════════════════════════════════════

class Pool(IntEnum):
    """Position of each biomass pool in the state vector ``y``."""
    BIOMASS = 0     # Living aboveground biomass B
    DEAD_WOOD = 1   # Dead woody biomass D_wood


# ═══════════════════════════════════════════════════════════════════════
# STATE
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class CohortState:
    """Biomass pools of one species-age cohort (mass/area).

    Mutated only by the integration driver; discarded when the run ends.
    """
    B: float = 0.0
    D_wood: float = 0.0

    def as_array(self) -> np.ndarray:
        return np.array([self.B, self.D_wood], dtype=np.float64)

    @classmethod
    def from_array(cls, y: Sequence[float]) -> 'CohortState':
        return cls(B=float(y[Pool.BIOMASS]), D_wood=float(y[Pool.DEAD_WOOD]))

    @staticmethod
    def age(t: float) -> float:
        """Cohort age at simulated time ``t`` (establishment at t = 0)."""
        return t

    def validate(self) -> None:
        for name in ('B', 'D_wood'):
            value = getattr(self, name)
            if not np.isfinite(value) or value < 0:
                raise InvalidParameter(
                    f"initial {name} must be finite and >= 0, got {value}"
                )


# ═══════════════════════════════════════════════════════════════════════
# PARAMETERS
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CohortParameters:
    """Species and site parameters, immutable for one simulation run.

    Units: biomass in mass/area, rates in mass/area/time, ages in time.

    Constraints (checked by ``validate()``, raised as InvalidParameter):
      ANPP_MAX >= 0, B_MAX > 0, B_MAX_site >= B_MAX, max_age > 0,
      r > 0, 0 < y0 < 1, 0 < d <= MAX_EXP_ARG, k_decomp >= 0.
    """
    ANPP_MAX: float          # Max aboveground NPP (mass/area/time)
    B_MAX: float             # Species max biomass on an uncrowded site
    B_MAX_site: float        # Site carrying capacity, all cohorts
    max_age: float           # Species longevity (time)
    k_decomp: float          # Dead-wood decay constant (1/time)
    r: float = DEFAULT_R     # Biomass-mortality growth-shape parameter
    y0: float = DEFAULT_Y0   # Biomass-mortality fraction at B_AP = 0
    d: float = DEFAULT_D     # Age-mortality curvature

    def validate(self) -> None:
        """Check every constraint. Raises InvalidParameter on the first failure."""
        for name, value in asdict(self).items():
            if not np.isfinite(value):
                raise InvalidParameter(f"{name} must be finite, got {value}")
        if self.ANPP_MAX < 0:
            raise InvalidParameter(f"ANPP_MAX must be >= 0, got {self.ANPP_MAX}")
        if self.B_MAX <= 0:
            raise InvalidParameter(f"B_MAX must be > 0, got {self.B_MAX}")
        if self.B_MAX_site < self.B_MAX:
            raise InvalidParameter(
                f"B_MAX_site ({self.B_MAX_site}) must be >= B_MAX ({self.B_MAX})"
            )
        if self.max_age <= 0:
            raise InvalidParameter(f"max_age must be > 0, got {self.max_age}")
        if self.r <= 0:
            raise InvalidParameter(f"r must be > 0, got {self.r}")
        if not (0.0 < self.y0 < 1.0):
            raise InvalidParameter(f"y0 must be in (0, 1), got {self.y0}")
        if self.d <= 0:
            raise InvalidParameter(f"d must be > 0, got {self.d}")
        if self.d > MAX_EXP_ARG:
            raise InvalidParameter(
                f"d must be <= {MAX_EXP_ARG} to keep exp(d) finite, got {self.d}"
            )
        if self.k_decomp < 0:
            raise InvalidParameter(f"k_decomp must be >= 0, got {self.k_decomp}")

    @property
    def growing_space(self) -> float:
        """Site biomass not claimed by this species' own maximum."""
        return self.B_MAX_site - self.B_MAX


# ═══════════════════════════════════════════════════════════════════════
# FLUXES
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class CohortFluxes:
    """All terms of one derivative evaluation (scalars or aligned arrays)."""
    B_POT: Union[float, np.ndarray]
    B_AP: Union[float, np.ndarray]
    ANPP: Union[float, np.ndarray]
    M_BIO: Union[float, np.ndarray]
    M_AGE: Union[float, np.ndarray]
    decomposition: Union[float, np.ndarray]

    @property
    def dB_dt(self):
        return self.ANPP - self.M_BIO - self.M_AGE

    @property
    def dD_wood_dt(self):
        return self.M_BIO + self.M_AGE - self.decomposition


# ═══════════════════════════════════════════════════════════════════════
# COMPETITOR SIGNAL
# ═══════════════════════════════════════════════════════════════════════

CompetitorInput = Union[
    float,
    Callable[[float], float],
    Tuple[Sequence[float], Sequence[float]],
    None,
]


class ConstantCompetitor:
    """B_other(t) = value for all t."""

    def __init__(self, value: float):
        self.value = float(value)

    def __call__(self, t):
        return self.value

    def __repr__(self) -> str:
        return f"ConstantCompetitor({self.value})"


class ScheduledCompetitor:
    """Piecewise-linear B_other(t) through (times, values).

    Held constant at the first/last value outside the schedule's range.
    Evaluation is stateless, so out-of-order probes are safe.
    """

    def __init__(self, times: Sequence[float], values: Sequence[float]):
        times = np.asarray(times, dtype=np.float64)
        values = np.asarray(values, dtype=np.float64)
        if times.ndim != 1 or times.shape != values.shape or len(times) == 0:
            raise InvalidParameter(
                f"competitor schedule needs equal-length, non-empty 1-D times "
                f"and values, got shapes {times.shape} and {values.shape}"
            )
        if np.any(np.diff(times) <= 0):
            raise InvalidParameter("competitor schedule times must be strictly increasing")
        if np.any(values < 0) or not np.all(np.isfinite(values)):
            raise InvalidParameter("competitor schedule values must be finite and >= 0")
        self.times = times
        self.values = values

    def __call__(self, t):
        return np.interp(t, self.times, self.values)

    def __repr__(self) -> str:
        return f"ScheduledCompetitor(n_points={len(self.times)})"


def make_competitor_signal(competitor: CompetitorInput = None) -> Callable[[float], float]:
    """Normalise a competitor input into a callable ``B_other(t)``.

    Accepts None (no competitors), a non-negative constant, a
    ``(times, values)`` schedule, or any callable of time.

    Raises:
        InvalidParameter: constant or schedule values are negative.
    """
    if competitor is None:
        return ConstantCompetitor(0.0)
    if callable(competitor):
        return competitor
    if isinstance(competitor, tuple) and len(competitor) == 2:
        return ScheduledCompetitor(*competitor)
    value = float(competitor)
    if not np.isfinite(value) or value < 0:
        raise InvalidParameter(f"B_other must be finite and >= 0, got {value}")
    return ConstantCompetitor(value)
