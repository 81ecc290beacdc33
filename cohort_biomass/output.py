"""Tabulation and export of cohort trajectories.

All biomass quantities are multiplied by ``unit_scale`` on the way out,
converting model units to reporting units (rates keep their time unit).
"""

from __future__ import annotations

import csv
import warnings
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np
import yaml

from cohort_biomass.config import SimulationConfig, config_to_dict
from cohort_biomass.model import CohortSimResult
from cohort_biomass.utils import config_hash

TRAJECTORY_COLUMNS = [
    't', 'B', 'D_wood', 'B_other', 'ANPP', 'M_BIO', 'M_AGE', 'decomposition',
]


def trajectory_table(result: CohortSimResult, unit_scale: float = 1.0) -> Dict[str, np.ndarray]:
    """Column dict of the sampled trajectory, in reporting units."""
    table = {'t': np.asarray(result.t, dtype=np.float64)}
    for name in TRAJECTORY_COLUMNS[1:]:
        values = getattr(result, name)
        if values is None:
            values = np.full(result.n_samples, np.nan)
        table[name] = np.asarray(values, dtype=np.float64) * unit_scale
    return table


def write_trajectory_csv(
    result: CohortSimResult,
    path: Union[str, Path],
    unit_scale: float = 1.0,
) -> Path:
    """Write the trajectory table as CSV (one row per sample time)."""
    path = Path(path)
    table = trajectory_table(result, unit_scale)
    with open(path, 'w', newline='') as f:
        writer = csv.writer(f)
        writer.writerow(TRAJECTORY_COLUMNS)
        for i in range(result.n_samples):
            writer.writerow([f"{table[c][i]:.6g}" for c in TRAJECTORY_COLUMNS])
    return path


def read_trajectory_csv(path: Union[str, Path]) -> Dict[str, np.ndarray]:
    """Read a CSV written by ``write_trajectory_csv`` back into columns."""
    columns: Dict[str, List[float]] = {}
    with open(path, newline='') as f:
        reader = csv.DictReader(f)
        for row in reader:
            for key, value in row.items():
                columns.setdefault(key, []).append(float(value))
    return {k: np.array(v, dtype=np.float64) for k, v in columns.items()}


def summarize(result: CohortSimResult, unit_scale: float = 1.0) -> Dict[str, Any]:
    """Scalar summary of a run, in reporting units."""
    final = result.final_state
    return {
        'species': result.species,
        'solver': result.solver,
        't_start': float(result.t[0]),
        't_end': float(result.t[-1]),
        'peak_B': result.peak_B * unit_scale,
        'peak_time': result.peak_time,
        'final_B': final.B * unit_scale,
        'final_D_wood': final.D_wood * unit_scale,
        'mean_D_wood': float(np.mean(result.D_wood)) * unit_scale,
        'n_rhs_evals': int(result.n_rhs_evals),
        'n_clamp_events': len(result.clamp_events),
    }


def write_summary_yaml(
    result: CohortSimResult,
    path: Union[str, Path],
    unit_scale: float = 1.0,
    config: Optional[SimulationConfig] = None,
) -> Path:
    """Write the run summary (and the config that produced it) as YAML."""
    path = Path(path)
    doc = {'summary': summarize(result, unit_scale)}
    if config is not None:
        config_dict = config_to_dict(config)
        doc['config'] = config_dict
        doc['config_hash'] = config_hash(yaml.safe_dump(config_dict, sort_keys=True))
    with open(path, 'w') as f:
        yaml.safe_dump(doc, f, sort_keys=False)
    return path


def save_outputs(result: CohortSimResult, config: SimulationConfig) -> Dict[str, Path]:
    """Write the outputs enabled in ``config.output``; returns written paths."""
    out = config.output
    directory = Path(out.directory)
    if not directory.exists():
        warnings.warn(
            f"output.directory '{directory}' does not exist; creating it.",
            UserWarning,
            stacklevel=2,
        )
        directory.mkdir(parents=True, exist_ok=True)

    stem = result.species or 'cohort'
    written: Dict[str, Path] = {}
    if out.write_csv:
        written['csv'] = write_trajectory_csv(
            result, directory / f"{stem}_trajectory.csv", out.unit_scale)
    if out.write_summary:
        written['summary'] = write_summary_yaml(
            result, directory / f"{stem}_summary.yaml", out.unit_scale, config)
    if out.make_plots:
        from cohort_biomass.viz.trajectories import plot_biomass_trajectory
        path = directory / f"{stem}_trajectory.png"
        plot_biomass_trajectory(result, unit_scale=out.unit_scale, save_path=str(path))
        written['plot'] = path
    return written
