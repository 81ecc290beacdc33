"""Exception types for cohort-biomass simulations."""


class InvalidParameter(ValueError):
    """A parameter or configuration value violates its constraints.

    Raised once, before any integration begins. Not recoverable inside the
    model: the caller must correct the configuration and rebuild.
    """


class IntegrationError(RuntimeError):
    """The ODE solver reported failure for a simulation run."""
