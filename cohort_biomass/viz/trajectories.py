"""Cohort trajectory and response-curve figures.

Every function:
  - Returns a matplotlib Figure
  - Has an optional ``save_path`` parameter (saves PNG when given)
  - Uses the shared dark theme from ``cohort_biomass.viz.style``

Biomass axes are shown in reporting units (``unit_scale`` × model units).

matplotlib backend is forced to Agg (no display) on import.
"""

from __future__ import annotations

import matplotlib
matplotlib.use('Agg')

from typing import Dict, Mapping, Optional, Sequence, TYPE_CHECKING

import matplotlib.pyplot as plt
import numpy as np

from cohort_biomass.dynamics import age_mortality, anpp, biomass_mortality
from cohort_biomass.types import DEFAULT_D, DEFAULT_R, DEFAULT_Y0
from cohort_biomass.viz.style import (
    ACCENT_COLORS,
    FLUX_COLORS,
    POOL_COLORS,
    dark_figure,
    dark_legend,
    save_figure,
)

if TYPE_CHECKING:
    from cohort_biomass.model import CohortSimResult


# ═══════════════════════════════════════════════════════════════════════
# 1. BIOMASS TRAJECTORY
# ═══════════════════════════════════════════════════════════════════════

def plot_biomass_trajectory(
    result: 'CohortSimResult',
    unit_scale: float = 1.0,
    show_dead_wood: bool = True,
    save_path: Optional[str] = None,
) -> plt.Figure:
    """Living and dead woody biomass over time for one cohort.

    Args:
        result: CohortSimResult.
        unit_scale: Reporting units per model unit.
        show_dead_wood: Also draw D_wood.
        save_path: Optional path to save the figure.

    Returns:
        matplotlib Figure.
    """
    fig, ax = dark_figure()
    ax.plot(result.t, result.B * unit_scale, color=POOL_COLORS['B'],
            linewidth=2.5, label='Living biomass', zorder=3)
    if show_dead_wood:
        ax.plot(result.t, result.D_wood * unit_scale, color=POOL_COLORS['D_wood'],
                linewidth=2.0, linestyle='--', label='Dead woody biomass')
    ax.axvline(result.params.max_age, color=ACCENT_COLORS[2], linestyle=':',
               linewidth=1.2, alpha=0.7, label=f'max age ({result.params.max_age:g})')

    ax.set_xlabel('Cohort age (yr)', fontsize=12)
    ax.set_ylabel('Biomass', fontsize=12)
    title = 'Cohort Biomass'
    if result.species:
        title += f': {result.species}'
    ax.set_title(title, fontsize=14)
    ax.set_xlim(result.t[0], result.t[-1])
    ax.set_ylim(bottom=0)
    dark_legend(ax)

    if save_path:
        save_figure(fig, save_path)
    return fig


# ═══════════════════════════════════════════════════════════════════════
# 2. GROWTH AND MORTALITY VS BIOMASS RATIO
# ═══════════════════════════════════════════════════════════════════════

def plot_flux_curves(
    ANPP_MAX: float = 1.0,
    r: float = DEFAULT_R,
    y0: float = DEFAULT_Y0,
    B_AP_max: float = 3.0,
    r_values: Optional[Sequence[float]] = None,
    save_path: Optional[str] = None,
) -> plt.Figure:
    """ANPP and biomass mortality as functions of B_AP.

    With ``r_values`` the mortality curve is drawn once per r, showing how
    the shape parameter moves the onset of crowding mortality.
    """
    B_AP = np.linspace(0.0, B_AP_max, 301)
    fig, ax = dark_figure()

    ax.plot(B_AP, anpp(B_AP, ANPP_MAX), color=FLUX_COLORS['ANPP'],
            linewidth=2.5, label='ANPP')
    if r_values is None:
        ax.plot(B_AP, biomass_mortality(B_AP, ANPP_MAX, r, y0),
                color=FLUX_COLORS['M_BIO'], linewidth=2.0, label=f'M_BIO (r={r:g})')
    else:
        for i, r_i in enumerate(r_values):
            ax.plot(B_AP, biomass_mortality(B_AP, ANPP_MAX, r_i, y0),
                    color=ACCENT_COLORS[i % len(ACCENT_COLORS)], linewidth=1.8,
                    label=f'M_BIO (r={r_i:g})')
    ax.axvline(1.0, color=ACCENT_COLORS[2], linestyle=':', linewidth=1.2, alpha=0.7)

    ax.set_xlabel('B_AP (actual / potential biomass)', fontsize=12)
    ax.set_ylabel('Rate (fraction of ANPP_MAX)' if ANPP_MAX == 1.0 else 'Rate', fontsize=12)
    ax.set_title('Growth and Biomass Mortality', fontsize=14)
    ax.set_xlim(0, B_AP_max)
    ax.set_ylim(bottom=0)
    dark_legend(ax)

    if save_path:
        save_figure(fig, save_path)
    return fig


# ═══════════════════════════════════════════════════════════════════════
# 3. AGE MORTALITY
# ═══════════════════════════════════════════════════════════════════════

def plot_age_mortality_curve(
    d_values: Sequence[float] = (DEFAULT_D,),
    save_path: Optional[str] = None,
) -> plt.Figure:
    """Fraction of standing biomass removed per year vs fraction of lifespan."""
    age_frac = np.linspace(0.0, 1.0, 201)
    fig, ax = dark_figure()
    for i, d in enumerate(d_values):
        ax.plot(age_frac, age_mortality(1.0, age_frac, 1.0, d),
                color=ACCENT_COLORS[i % len(ACCENT_COLORS)], linewidth=2.0,
                label=f'd = {d:g}')
    ax.set_xlabel('Age / max age', fontsize=12)
    ax.set_ylabel('M_AGE / B', fontsize=12)
    ax.set_title('Age-Related Mortality', fontsize=14)
    ax.set_xlim(0, 1)
    ax.set_ylim(0, 1.05)
    dark_legend(ax)

    if save_path:
        save_figure(fig, save_path)
    return fig


# ═══════════════════════════════════════════════════════════════════════
# 4. SPECIES COMPARISON
# ═══════════════════════════════════════════════════════════════════════

def plot_species_comparison(
    results: Mapping[str, 'CohortSimResult'],
    unit_scale: float = 1.0,
    save_path: Optional[str] = None,
) -> plt.Figure:
    """Living biomass of several species over the same window."""
    fig, ax = dark_figure()
    for i, (name, result) in enumerate(results.items()):
        ax.plot(result.t, result.B * unit_scale,
                color=ACCENT_COLORS[i % len(ACCENT_COLORS)], linewidth=2.2,
                label=f'{name} (max age {result.params.max_age:g})')
    ax.set_xlabel('Cohort age (yr)', fontsize=12)
    ax.set_ylabel('Living biomass', fontsize=12)
    ax.set_title('Species Comparison', fontsize=14)
    ax.set_ylim(bottom=0)
    dark_legend(ax)

    if save_path:
        save_figure(fig, save_path)
    return fig


# ═══════════════════════════════════════════════════════════════════════
# 5. COMPETITION EFFECT
# ═══════════════════════════════════════════════════════════════════════

def plot_competition_effect(
    results: Dict[float, 'CohortSimResult'],
    unit_scale: float = 1.0,
    save_path: Optional[str] = None,
) -> plt.Figure:
    """Living biomass under different constant competitor biomass levels.

    Args:
        results: Mapping B_other (model units) → CohortSimResult.
    """
    fig, ax = dark_figure()
    for i, (B_other, result) in enumerate(sorted(results.items(), key=lambda kv: kv[0])):
        ax.plot(result.t, result.B * unit_scale,
                color=ACCENT_COLORS[i % len(ACCENT_COLORS)], linewidth=2.2,
                label=f'B_other = {B_other * unit_scale:g}')
    ax.set_xlabel('Cohort age (yr)', fontsize=12)
    ax.set_ylabel('Living biomass', fontsize=12)
    ax.set_title('Effect of Competition', fontsize=14)
    ax.set_ylim(bottom=0)
    dark_legend(ax)

    if save_path:
        save_figure(fig, save_path)
    return fig
