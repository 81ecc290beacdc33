#!/usr/bin/env python3
"""Run cohort-biomass simulations from YAML configuration files.

Loads the base config, applies each scenario override in turn, integrates
the cohort, and writes the trajectory CSV / summary YAML / figure that
the ``output`` section enables.

Usage:
    python scripts/run_cohort.py
    python scripts/run_cohort.py --scenario configs/scenarios/short_lived.yaml
    python scripts/run_cohort.py --scenario configs/scenarios/*.yaml --workers 4
    python scripts/run_cohort.py --set cohort.k_decomp=0.5 --set simulation.solver=rk4

References:
    - cohort_biomass/config.py: load_config, SimulationConfig
    - cohort_biomass/model.py: run_scenarios
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

import yaml

from cohort_biomass.config import load_config
from cohort_biomass.errors import IntegrationError, InvalidParameter
from cohort_biomass.model import run_scenarios
from cohort_biomass.output import save_outputs, summarize
from cohort_biomass.utils import setup_logging, timer

PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_BASE = PROJECT_ROOT / "configs" / "base.yaml"

logger = logging.getLogger("run_cohort")


def parse_overrides(assignments: List[str]) -> Dict[str, Any]:
    """Turn ``section.key=value`` strings into a nested override dict.

    Values are parsed as YAML scalars, so numbers and booleans keep their type.
    """
    overrides: Dict[str, Any] = {}
    for item in assignments:
        if '=' not in item or '.' not in item.split('=', 1)[0]:
            raise ValueError(f"override must look like section.key=value, got '{item}'")
        dotted, raw = item.split('=', 1)
        section, key = dotted.split('.', 1)
        overrides.setdefault(section, {})[key] = yaml.safe_load(raw)
    return overrides


def main():
    parser = argparse.ArgumentParser(
        description="Integrate a single-cohort biomass model from YAML config files.",
        epilog="Example: python scripts/run_cohort.py --scenario configs/scenarios/short_lived.yaml",
    )
    parser.add_argument(
        "--base-config", type=str, default=str(DEFAULT_BASE),
        help="Base config YAML (default: configs/base.yaml)",
    )
    parser.add_argument(
        "--scenario", nargs="*", default=[],
        help="Scenario override YAML file(s); one run per file",
    )
    parser.add_argument(
        "--set", dest="overrides", action="append", default=[],
        help="Parameter override section.key=value (repeatable)",
    )
    parser.add_argument(
        "--output-dir", type=str, default=None,
        help="Override output directory (default: from YAML)",
    )
    parser.add_argument(
        "--workers", type=int, default=None,
        help="Threads for multiple scenarios (default: from YAML)",
    )
    parser.add_argument(
        "--plot", action="store_true",
        help="Also save a trajectory figure per run",
    )
    parser.add_argument(
        "--quiet", action="store_true",
        help="Only log warnings and errors",
    )
    args = parser.parse_args()

    setup_logging(logging.WARNING if args.quiet else logging.INFO)

    try:
        overrides = parse_overrides(args.overrides)
        if args.output_dir is not None:
            overrides.setdefault('output', {})['directory'] = args.output_dir
        if args.plot:
            overrides.setdefault('output', {})['make_plots'] = True

        scenario_paths = args.scenario or [None]
        configs = [
            load_config(args.base_config, scenario_path=path, sweep_overrides=overrides)
            for path in scenario_paths
        ]

        with timer(f"{len(configs)} run(s)"):
            results = run_scenarios(configs, parallel_workers=args.workers)
    except (FileNotFoundError, ValueError, IntegrationError) as e:
        # InvalidParameter is a ValueError
        kind = 'invalid parameter' if isinstance(e, InvalidParameter) else type(e).__name__
        logger.error("%s: %s", kind, e)
        return 1

    for config, result in zip(configs, results):
        written = save_outputs(result, config)
        summary = summarize(result, config.output.unit_scale)
        logger.info(
            "%s: peak B %.1f at t=%g, final B %.1f, final D_wood %.1f",
            summary['species'], summary['peak_B'], summary['peak_time'],
            summary['final_B'], summary['final_D_wood'],
        )
        for kind, path in written.items():
            logger.info("  wrote %s: %s", kind, path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
