"""
Orbit Plots
===========
Static figures of a finished orbit simulation: the trajectory in its orbital
plane, r(tau), and the drift of the four-velocity norm.

Figures use a small serif style (``setup_orbit_style``). Nothing here feeds
back into the simulation.
"""

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.patches import Circle
import matplotlib.gridspec as gridspec
from typing import Optional

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from experiments.orbit_simulation import (
    OrbitOutcome, SimulationResult, key_radii, to_cartesian
)


# Line and marker colours, keyed by what they draw (Wong colour-blind palette)
PALETTE = {
    'trajectory': '#0072B2',
    'start': '#009E73',
    'ergosphere': '#D55E00',
    'drift': '#CC79A7',
    'horizon': 'black',
}

OUTCOME_COLORS = {
    OrbitOutcome.COMPLETED: '#009E73',
    OrbitOutcome.HORIZON_CROSSED: '#D55E00',
    OrbitOutcome.NUMERIC_OVERFLOW: '#999999',
    OrbitOutcome.POLAR_AXIS: '#E69F00',
}

# two-column journal page width (inches)
FIGURE_WIDTH = 7.0
PANEL_WIDTH = FIGURE_WIDTH / 2

# Only what the panels below depend on: serif text matching the mathtext
# labels, and tight cropping on save.
ORBIT_RC = {
    'font.family': 'serif',
    'mathtext.fontset': 'stix',
    'font.size': 9,
    'legend.fontsize': 7,
    'legend.frameon': False,
    'savefig.dpi': 300,
    'savefig.bbox': 'tight',
}


def setup_orbit_style():
    """Apply ORBIT_RC to matplotlib's global rcParams."""
    plt.rcParams.update(ORBIT_RC)


def plot_orbit_plane(result: SimulationResult, ax: Optional[plt.Axes] = None,
                     show_radii: bool = True) -> plt.Axes:
    """
    Trajectory projected on the equatorial (x, z) plane of the y-up
    rendering convention, with the horizon (and static limit for Kerr).
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=(PANEL_WIDTH, 4))

    x, _, z = to_cartesian(result.r, result.theta, result.phi)
    finite = np.isfinite(x) & np.isfinite(z)
    x, z = x[finite], z[finite]

    ax.plot(x, z, color=PALETTE['trajectory'], lw=1.0)

    if show_radii:
        radii = key_radii(result.config)
        ax.add_patch(Circle((0, 0), radii['r_horizon'], color=PALETTE['horizon'], zorder=10))
        if 'r_ergosphere' in radii:
            ax.add_patch(Circle((0, 0), radii['r_ergosphere'], fill=False,
                                color=PALETTE['ergosphere'], ls='--', lw=1.2))

    if x.size:
        ax.plot(x[0], z[0], 'o', color=PALETTE['start'], ms=6, label='Start', zorder=5)
        ax.plot(x[-1], z[-1], 's', color=OUTCOME_COLORS[result.outcome], ms=6,
                label=f'End ({result.outcome.name.lower()})', zorder=5)

    ax.set_xlabel(r'$x$')
    ax.set_ylabel(r'$z$')
    ax.set_aspect('equal')
    ax.legend()
    return ax


def plot_radius_history(result: SimulationResult, ax: Optional[plt.Axes] = None) -> plt.Axes:
    """r(tau) with the horizon marked."""
    if ax is None:
        fig, ax = plt.subplots(figsize=(PANEL_WIDTH, 3))

    ax.plot(result.tau, result.r, color=PALETTE['trajectory'])
    ax.axhline(key_radii(result.config)['r_horizon'], color=PALETTE['horizon'], ls='-', lw=1.0,
               label=r'$r_h$')
    ax.set_xlabel(r'$\tau$')
    ax.set_ylabel(r'$r$')
    ax.legend()
    return ax


def plot_norm_drift(result: SimulationResult, ax: Optional[plt.Axes] = None) -> plt.Axes:
    """|g_ab U^a U^b - 1| on a log axis; Euler drift is not corrected."""
    if ax is None:
        fig, ax = plt.subplots(figsize=(PANEL_WIDTH, 3))

    drift = np.abs(result.norm_squared - result.config.target_norm_squared)
    # floor keeps the exact initial value visible on the log scale
    ax.semilogy(result.tau, np.maximum(drift, 1e-16), color=PALETTE['drift'])
    ax.set_xlabel(r'$\tau$')
    ax.set_ylabel(r'$|g_{ab}U^aU^b - 1|$')
    return ax


def create_orbit_figure(result: SimulationResult,
                        save_path: Optional[str] = None) -> plt.Figure:
    """Three-panel summary: orbit plane, r(tau), norm drift."""
    setup_orbit_style()
    fig = plt.figure(figsize=(FIGURE_WIDTH, 3.2))
    gs = gridspec.GridSpec(2, 2, width_ratios=[1.2, 1], figure=fig)

    plot_orbit_plane(result, ax=fig.add_subplot(gs[:, 0]))
    plot_radius_history(result, ax=fig.add_subplot(gs[0, 1]))
    plot_norm_drift(result, ax=fig.add_subplot(gs[1, 1]))

    fig.tight_layout()
    if save_path is not None:
        fig.savefig(save_path)
    return fig
