"""
Relativistic Orbit Study
========================
Command-line runner: integrate one orbit, export its history and metadata,
and optionally plot it and measure the Euler error against a DOP853
reference solution.

Usage:
    python experiments/run_orbit_study.py --circular --r0 10
    python experiments/run_orbit_study.py --variant kerr --spin 0.4 --r0 8 --u-phi 0.03
    python experiments/run_orbit_study.py --r0 6 --u-r -0.1 --ticks 5000 --plot
"""

import argparse
import csv
import json
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Optional

import numpy as np

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from experiments.orbit_simulation import (
    SimulationConfig, SimulationResult, reference_deviation, run_orbit
)


HISTORY_COLUMNS = ['tau', 't', 'r', 'theta', 'phi',
                   'u_t', 'u_r', 'u_theta', 'u_phi', 'norm_squared', 'speed']


# =============================================================================
# EXPORT
# =============================================================================

def generate_run_id(prefix: str = "orbit") -> str:
    """Generate unique run identifier."""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"{prefix}_{timestamp}"


def history_to_csv(result: SimulationResult, filepath: str):
    """Write the recorded history, one row per recorded tick."""
    Path(filepath).parent.mkdir(parents=True, exist_ok=True)
    data = result.to_dict()

    with open(filepath, 'w', newline='') as f:
        writer = csv.writer(f)
        writer.writerow(HISTORY_COLUMNS)
        for i in range(len(result.tau)):
            writer.writerow([f"{data[col][i]:.17g}" for col in HISTORY_COLUMNS])


def run_metadata(result: SimulationResult, run_id: str,
                 deviation: Optional[dict] = None) -> dict:
    """JSON-serialisable summary of a run."""
    meta = {
        'run_id': run_id,
        'timestamp': datetime.now().isoformat(),
        'config': asdict(result.config),
        'outcome': result.outcome.name,
        'ticks_completed': result.ticks_completed,
        'tau_final': float(result.tau[-1]),
        'r_final': float(result.r[-1]),
        'r_min': float(np.nanmin(result.r)),
        'norm_drift': result.norm_drift,
        'max_speed': result.max_speed,
        'superluminal': result.superluminal,
    }
    if deviation is not None:
        meta['reference_deviation'] = deviation
    return meta


# =============================================================================
# CLI
# =============================================================================

def build_config(args) -> SimulationConfig:
    integration = dict(
        step_size=args.step_size,
        sub_steps=args.sub_steps,
        n_ticks=args.ticks,
        record_every=args.record_every,
        horizon_margin=args.horizon_margin,
    )
    a = args.spin if args.variant == 'kerr' else None

    if args.circular:
        return SimulationConfig.circular(rs=args.rs, r0=args.r0, a=a,
                                         prograde=not args.retrograde,
                                         variant=args.variant, **integration)
    return SimulationConfig(
        variant=args.variant, rs=args.rs, a=a,
        r0=args.r0, theta0=args.theta0, phi0=0.0,
        u_r0=args.u_r, u_theta0=args.u_theta, u_phi0=args.u_phi,
        **integration
    )


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Integrate a test-particle orbit around a Schwarzschild or Kerr black hole'
    )
    parser.add_argument('--variant', choices=['schwarzschild', 'kerr'],
                        default='schwarzschild', help='Metric')
    parser.add_argument('--rs', type=float, default=1.0, help='Schwarzschild radius (2M)')
    parser.add_argument('--spin', type=float, default=0.0, help='Kerr spin parameter a')
    parser.add_argument('--r0', type=float, default=10.0, help='Initial radius')
    parser.add_argument('--theta0', type=float, default=np.pi/2, help='Initial polar angle')
    parser.add_argument('--u-r', type=float, default=0.0, help='Initial U^r')
    parser.add_argument('--u-theta', type=float, default=0.0, help='Initial U^theta')
    parser.add_argument('--u-phi', type=float, default=0.0, help='Initial U^phi')
    parser.add_argument('--circular', action='store_true',
                        help='Start on the equatorial circular orbit at r0')
    parser.add_argument('--retrograde', action='store_true',
                        help='Retrograde circular orbit (with --circular)')
    parser.add_argument('--step-size', type=float, default=0.01, help='Euler step')
    parser.add_argument('--sub-steps', type=int, default=10, help='Euler steps per tick')
    parser.add_argument('--ticks', type=int, default=2000, help='Number of ticks')
    parser.add_argument('--record-every', type=int, default=1, help='Record every N ticks')
    parser.add_argument('--horizon-margin', type=float, default=0.0,
                        help='Stop at r <= r_h + margin')
    parser.add_argument('--reference', action='store_true',
                        help='Compare against a DOP853 reference solution')
    parser.add_argument('--plot', action='store_true', help='Save a summary figure')
    parser.add_argument('--output', '-o', type=str, default=None, help='Output directory')
    parser.add_argument('--quiet', '-q', action='store_true', help='Suppress output')

    args = parser.parse_args(argv)
    verbose = not args.quiet

    config = build_config(args)
    result = run_orbit(config, verbose=verbose)

    deviation = None
    if args.reference:
        deviation = reference_deviation(result)
        if verbose:
            print(f"  Max |r - r_ref|:     {deviation['r']:.3e}")
            print(f"  Max |phi - phi_ref|: {deviation['phi']:.3e}")

    run_id = generate_run_id()
    output_dir = Path(args.output) if args.output else Path('results') / run_id
    output_dir.mkdir(parents=True, exist_ok=True)

    history_to_csv(result, str(output_dir / f"{run_id}_history.csv"))
    with open(output_dir / f"{run_id}_metadata.json", 'w') as f:
        json.dump(run_metadata(result, run_id, deviation), f, indent=2, default=float)

    if args.plot:
        from experiments.orbit_plots import create_orbit_figure
        create_orbit_figure(result, save_path=str(output_dir / f"{run_id}_orbit.pdf"))

    if verbose:
        print(f"\n  Results saved to: {output_dir}")

    return result


if __name__ == "__main__":
    main()
