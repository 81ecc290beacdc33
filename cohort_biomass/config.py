"""Configuration system for cohort-biomass simulations.

Hierarchical YAML configuration with deep-merge support:
  base.yaml → scenario override → sweep overrides

Units: the model integrates in "model units" of mass/area (the reference
initial biomass of 5 is entered as 5 · 0.1 = 0.5). ``output.unit_scale``
converts model units back to reporting units for tables and figures.

Reference species presets (``SPECIES_PRESETS``):
  - acer_saccharum: long-lived, ANPP_MAX 7.45, max_age 400
  - short_lived:    pioneer,    ANPP_MAX 5.77, max_age 70
"""

from __future__ import annotations

import copy
import dataclasses
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np
import yaml

from cohort_biomass.errors import InvalidParameter
from cohort_biomass.types import (
    DEFAULT_D,
    DEFAULT_R,
    DEFAULT_Y0,
    CohortParameters,
    CohortState,
    make_competitor_signal,
)


ADAPTIVE_SOLVERS = {"RK45", "RK23", "DOP853", "LSODA", "Radau", "BDF"}
FIXED_STEP_SOLVERS = {"rk4", "euler"}
VALID_SOLVERS = ADAPTIVE_SOLVERS | FIXED_STEP_SOLVERS


# ═══════════════════════════════════════════════════════════════════════
# CONFIGURATION DATACLASSES
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class SimulationSection:
    """Integration window and solver control."""
    t_start: float = 0.0           # Cohort establishment (age 0)
    t_end: float = 200.0           # Years
    output_interval: float = 1.0   # Sampling interval of the trajectory (yr)
    solver: str = 'RK45'           # scipy method name, or 'rk4' / 'euler'
    rtol: float = 1.0e-6
    atol: float = 1.0e-8
    max_step: float = 1.0          # Adaptive solvers: largest step (yr)
    fixed_step: float = 0.05       # Fixed-step solvers: step size (yr)
    parallel_workers: int = 1      # Threads for scenario sweeps


@dataclass
class CohortSection:
    """Species parameters (default: Acer saccharum, model units)."""
    species: str = 'acer_saccharum'
    ANPP_MAX: float = 7.45         # Max ANPP (mass/area/yr)
    B_MAX: float = 23.0            # Species max biomass (mass/area)
    max_age: float = 400.0         # Longevity (yr)
    r: float = DEFAULT_R           # Biomass-mortality shape
    y0: float = DEFAULT_Y0         # Biomass-mortality fraction at B_AP = 0
    d: float = DEFAULT_D           # Age-mortality curvature
    k_decomp: float = 2.9          # Dead-wood decay (yr⁻¹)


@dataclass
class SiteSection:
    """Site carrying capacity."""
    B_MAX_site: float = 60.0       # Max total biomass of all cohorts (mass/area)


@dataclass
class CompetitionSection:
    """Exogenous biomass of co-occurring cohorts.

    If ``schedule_times`` is given, B_other(t) is piecewise-linear through
    (schedule_times, schedule_values) and ``B_other`` is ignored.
    """
    B_other: float = 0.0
    schedule_times: Optional[List[float]] = None
    schedule_values: Optional[List[float]] = None


@dataclass
class InitialSection:
    """Initial cohort state at establishment."""
    B: float = 0.5                 # 5 reporting units × 0.1
    D_wood: float = 0.0


@dataclass
class OutputSection:
    """Output control."""
    directory: str = "results/"
    unit_scale: float = 10.0       # Reporting units per model unit
    write_csv: bool = True
    write_summary: bool = True
    make_plots: bool = False


@dataclass
class SimulationConfig:
    """Complete simulation configuration.

    Load from YAML via `load_config()`. Sections map 1:1 to YAML top-level keys.
    """
    simulation: SimulationSection = field(default_factory=SimulationSection)
    cohort: CohortSection = field(default_factory=CohortSection)
    site: SiteSection = field(default_factory=SiteSection)
    competition: CompetitionSection = field(default_factory=CompetitionSection)
    initial: InitialSection = field(default_factory=InitialSection)
    output: OutputSection = field(default_factory=OutputSection)


SECTION_MAP = {
    'simulation': SimulationSection,
    'cohort': CohortSection,
    'site': SiteSection,
    'competition': CompetitionSection,
    'initial': InitialSection,
    'output': OutputSection,
}


# ═══════════════════════════════════════════════════════════════════════
# SPECIES PRESETS
# ═══════════════════════════════════════════════════════════════════════

SPECIES_PRESETS: Dict[str, Dict[str, Any]] = {
    'acer_saccharum': {
        'cohort': {
            'species': 'acer_saccharum',
            'ANPP_MAX': 7.45, 'B_MAX': 23.0, 'max_age': 400.0,
        },
    },
    'short_lived': {
        'cohort': {
            'species': 'short_lived',
            'ANPP_MAX': 5.77, 'B_MAX': 15.0, 'max_age': 70.0,
        },
    },
}


# ═══════════════════════════════════════════════════════════════════════
# YAML LOADING & MERGING
# ═══════════════════════════════════════════════════════════════════════

def deep_merge(base: Dict, override: Dict) -> Dict:
    """Recursively merge override into base. Modifies base in place.

    - Dict values are merged recursively
    - Non-dict values are replaced
    - Keys in override but not base are added

    Args:
        base: Base dictionary (modified in place).
        override: Override dictionary.

    Returns:
        The merged base dictionary.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _dict_to_section(section_cls, data: Dict) -> Any:
    """Convert a dict to a dataclass, ignoring unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(section_cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}
    return section_cls(**filtered)


def _yaml_to_config(data: Dict) -> SimulationConfig:
    """Convert a merged YAML dict to a SimulationConfig."""
    sections = {}
    for key, cls in SECTION_MAP.items():
        if key in data and isinstance(data[key], dict):
            sections[key] = _dict_to_section(cls, data[key])
        else:
            sections[key] = cls()
    return SimulationConfig(**sections)


def config_to_dict(config: SimulationConfig) -> Dict[str, Any]:
    """Plain nested dict of a config, suitable for ``yaml.safe_dump``."""
    return dataclasses.asdict(config)


def apply_overrides(config: SimulationConfig, overrides: Dict) -> SimulationConfig:
    """Return a new, validated config with ``overrides`` deep-merged in."""
    merged = deep_merge(copy.deepcopy(config_to_dict(config)), overrides)
    new_config = _yaml_to_config(merged)
    validate_config(new_config)
    return new_config


# ═══════════════════════════════════════════════════════════════════════
# VALIDATION
# ═══════════════════════════════════════════════════════════════════════

def cohort_parameters(config: SimulationConfig) -> CohortParameters:
    """Assemble the immutable CohortParameters of a config (not validated)."""
    c = config.cohort
    return CohortParameters(
        ANPP_MAX=float(c.ANPP_MAX),
        B_MAX=float(c.B_MAX),
        B_MAX_site=float(config.site.B_MAX_site),
        max_age=float(c.max_age),
        k_decomp=float(c.k_decomp),
        r=float(c.r),
        y0=float(c.y0),
        d=float(c.d),
    )


def initial_state(config: SimulationConfig) -> CohortState:
    return CohortState(B=float(config.initial.B), D_wood=float(config.initial.D_wood))


def competitor_input(config: SimulationConfig):
    """Constant B_other, or a (times, values) schedule if one is configured."""
    comp = config.competition
    if comp.schedule_times is not None or comp.schedule_values is not None:
        return (comp.schedule_times or [], comp.schedule_values or [])
    return comp.B_other


def validate_config(config: SimulationConfig) -> None:
    """Validate configuration constraints. Raises InvalidParameter on failure.

    Checks:
      - Cohort/site parameters (via CohortParameters.validate)
      - Initial state is finite and non-negative
      - Competitor constant or schedule is well-formed and non-negative
      - Integration window, sampling interval and solver settings
      - Output unit scale
    """
    cohort_parameters(config).validate()
    initial_state(config).validate()
    make_competitor_signal(competitor_input(config))

    sim = config.simulation
    if sim.t_start < 0:
        raise InvalidParameter(
            f"simulation.t_start must be >= 0 (cohort age), got {sim.t_start}"
        )
    if sim.t_end <= sim.t_start:
        raise InvalidParameter(
            f"simulation.t_end ({sim.t_end}) must be > t_start ({sim.t_start})"
        )
    if sim.output_interval <= 0:
        raise InvalidParameter(
            f"simulation.output_interval must be > 0, got {sim.output_interval}"
        )
    if sim.solver not in VALID_SOLVERS:
        raise InvalidParameter(
            f"simulation.solver must be one of {sorted(VALID_SOLVERS)}, "
            f"got '{sim.solver}'"
        )
    if sim.rtol <= 0 or sim.atol <= 0:
        raise InvalidParameter(
            f"simulation.rtol and atol must be > 0, got {sim.rtol}, {sim.atol}"
        )
    if sim.max_step <= 0:
        raise InvalidParameter(f"simulation.max_step must be > 0, got {sim.max_step}")
    if sim.fixed_step <= 0:
        raise InvalidParameter(
            f"simulation.fixed_step must be > 0, got {sim.fixed_step}"
        )
    if sim.parallel_workers < 1:
        raise InvalidParameter(
            f"simulation.parallel_workers must be >= 1, got {sim.parallel_workers}"
        )

    if not np.isfinite(config.output.unit_scale) or config.output.unit_scale <= 0:
        raise InvalidParameter(
            f"output.unit_scale must be > 0, got {config.output.unit_scale}"
        )


def _read_yaml(path: Path) -> Dict:
    with open(path) as f:
        return yaml.safe_load(f) or {}


def load_config(
    base_path: Union[str, Path],
    scenario_path: Optional[Union[str, Path]] = None,
    sweep_overrides: Optional[Dict] = None,
) -> SimulationConfig:
    """Load and merge hierarchical YAML configuration.

    Merge order: base → scenario → sweep overrides.
    Each layer overrides only the fields it specifies.

    Args:
        base_path: Path to base configuration YAML.
        scenario_path: Optional scenario override YAML.
        sweep_overrides: Optional dict of parameter sweep overrides.

    Returns:
        Validated SimulationConfig.

    Raises:
        FileNotFoundError: If base_path doesn't exist.
        InvalidParameter: If validation fails.
    """
    base_path = Path(base_path)
    if not base_path.exists():
        raise FileNotFoundError(f"Config file not found: {base_path}")

    config_dict = _read_yaml(base_path)

    if scenario_path is not None:
        scenario_path = Path(scenario_path)
        if scenario_path.exists():
            deep_merge(config_dict, _read_yaml(scenario_path))
        else:
            warnings.warn(
                f"scenario override '{scenario_path}' does not exist; "
                f"using base configuration only.",
                UserWarning,
                stacklevel=2,
            )

    if sweep_overrides is not None:
        deep_merge(config_dict, sweep_overrides)

    config = _yaml_to_config(config_dict)
    validate_config(config)
    return config


def default_config() -> SimulationConfig:
    """Return a SimulationConfig with all default values (A. saccharum)."""
    config = SimulationConfig()
    validate_config(config)
    return config


def species_config(name: str, overrides: Optional[Dict] = None) -> SimulationConfig:
    """Default config with a species preset (and optional overrides) applied.

    Raises:
        KeyError: If ``name`` is not in SPECIES_PRESETS.
    """
    if name not in SPECIES_PRESETS:
        raise KeyError(
            f"unknown species preset '{name}', expected one of "
            f"{sorted(SPECIES_PRESETS)}"
        )
    merged = copy.deepcopy(SPECIES_PRESETS[name])
    if overrides:
        deep_merge(merged, overrides)
    return apply_overrides(SimulationConfig(), merged)
