"""Cohort-biomass visualization library.

Modules:
  - style: Dark theme colours and helpers
  - trajectories: Biomass trajectories, response curves, comparisons (5 plots)
"""

from cohort_biomass.viz.style import (  # noqa: F401
    ACCENT_COLORS,
    DARK_BG,
    DARK_PANEL,
    FLUX_COLORS,
    GRID_COLOR,
    POOL_COLORS,
    TEXT_COLOR,
    apply_dark_theme,
    dark_figure,
    dark_legend,
    save_figure,
)

from cohort_biomass.viz.trajectories import (  # noqa: F401
    plot_biomass_trajectory,
    plot_flux_curves,
    plot_age_mortality_curve,
    plot_species_comparison,
    plot_competition_effect,
)
