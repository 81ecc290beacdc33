#!/usr/bin/env python3
"""Regenerate the reference cohort-biomass figures.

  1. A. saccharum trajectory, 200 years (living + dead woody biomass)
  2. ANPP and biomass mortality vs B_AP, for several r
  3. Age-mortality curve for several d
  4. Long-lived vs short-lived species over 70 years
  5. Competition: B_other = 0 / 200 / 400 (reporting units) over 150 years

Usage:
    python scripts/reproduce_figures.py --output-dir results/figures
"""

import argparse
import logging
from pathlib import Path

from cohort_biomass.config import species_config
from cohort_biomass.model import run_cohort_simulation, run_scenarios
from cohort_biomass.utils import setup_logging
from cohort_biomass.viz import (
    plot_age_mortality_curve,
    plot_biomass_trajectory,
    plot_competition_effect,
    plot_flux_curves,
    plot_species_comparison,
)

logger = logging.getLogger("reproduce_figures")

COMPETITION_LEVELS = (0.0, 20.0, 40.0)   # model units


def main():
    parser = argparse.ArgumentParser(description="Regenerate reference figures.")
    parser.add_argument("--output-dir", type=str, default="results/figures")
    parser.add_argument("--workers", type=int, default=1)
    args = parser.parse_args()

    setup_logging(logging.INFO)
    out = Path(args.output_dir)
    out.mkdir(parents=True, exist_ok=True)

    base = species_config('acer_saccharum')
    scale = base.output.unit_scale

    result = run_cohort_simulation(base)
    plot_biomass_trajectory(result, unit_scale=scale,
                            save_path=str(out / "fig_trajectory.png"))

    plot_flux_curves(r_values=(0.04, 0.08, 0.16),
                     save_path=str(out / "fig_flux_curves.png"))
    plot_age_mortality_curve(d_values=(5.0, 10.0, 20.0),
                             save_path=str(out / "fig_age_mortality.png"))

    window = {'simulation': {'t_end': 70.0}}
    names = ('acer_saccharum', 'short_lived')
    species_runs = run_scenarios(
        [species_config(name, window) for name in names],
        parallel_workers=args.workers,
    )
    plot_species_comparison(dict(zip(names, species_runs)), unit_scale=scale,
                            save_path=str(out / "fig_species.png"))

    competition_runs = run_scenarios(
        [species_config('acer_saccharum', {'simulation': {'t_end': 150.0},
                                           'competition': {'B_other': level}})
         for level in COMPETITION_LEVELS],
        parallel_workers=args.workers,
    )
    plot_competition_effect(dict(zip(COMPETITION_LEVELS, competition_runs)),
                            unit_scale=scale,
                            save_path=str(out / "fig_competition.png"))

    logger.info("figures written to %s", out)


if __name__ == "__main__":
    main()
