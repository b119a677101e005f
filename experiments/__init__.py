"""
Relativistic Orbit Experiments
==============================
Driving loop, diagnostics and figures for test-particle orbits around
Schwarzschild and Kerr black holes.

Modules:
--------
- orbit_simulation: Configuration, tick loop, outcome classification,
  DOP853 reference solution
- orbit_plots: Orbit-plane, r(tau) and norm-drift figures
- run_orbit_study: Command-line runner with CSV/JSON export

Usage:
------
Quick start with command line:
    python experiments/run_orbit_study.py --circular --r0 10

Or import modules directly:
    from experiments import SimulationConfig, run_orbit
    from experiments.orbit_plots import create_orbit_figure
"""

from .orbit_simulation import (
    SuperluminalWarning,
    HorizonApproachWarning,
    OrbitOutcome,
    SimulationConfig,
    SimulationResult,
    initial_state,
    classify_state,
    run_orbit,
    reference_trajectory,
    reference_deviation,
    to_cartesian,
    key_radii,
)

from .run_orbit_study import (
    generate_run_id,
    history_to_csv,
    run_metadata,
)

__all__ = [
    # Simulation
    'SuperluminalWarning',
    'HorizonApproachWarning',
    'OrbitOutcome',
    'SimulationConfig',
    'SimulationResult',
    'initial_state',
    'classify_state',
    'run_orbit',
    'reference_trajectory',
    'reference_deviation',
    'to_cartesian',
    'key_radii',
    # Export
    'generate_run_id',
    'history_to_csv',
    'run_metadata',
]
