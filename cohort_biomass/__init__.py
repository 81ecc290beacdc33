"""cohort-biomass: Biomass dynamics of a single forest species-age cohort.

Coupled ODE model of living aboveground biomass and dead woody biomass:
  - Growth (ANPP) peaked in the actual-to-potential biomass ratio
  - Crowding mortality, logistic in the same ratio
  - Age mortality, exponential in the fraction of lifespan elapsed
  - First-order decomposition of dead wood
  - Competition from other cohorts through an exogenous B_other(t)
"""

__version__ = "0.1.0"

from cohort_biomass.errors import IntegrationError, InvalidParameter  # noqa: F401
from cohort_biomass.types import CohortParameters, CohortState  # noqa: F401
from cohort_biomass.dynamics import cohort_derivative  # noqa: F401
from cohort_biomass.model import (  # noqa: F401
    CohortBiomassModel,
    CohortSimResult,
    integrate_cohort,
    run_cohort_simulation,
    run_scenarios,
)
