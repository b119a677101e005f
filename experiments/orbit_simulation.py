"""
Orbit Simulation Module
=======================
Driving loop for a single test particle: builds the initial state, calls the
geodesic integrator once per tick, and decides when the run has to stop.

The integrator itself never raises on horizon crossing or overflow. This
module is where those conditions are detected and classified:

1. NUMERIC_OVERFLOW - NaN/Inf propagated into the state
2. HORIZON_CROSSED  - r fell to the horizon (plus margin)
3. POLAR_AXIS       - theta left (0, pi)
4. COMPLETED        - all requested ticks ran

Superluminal local speeds and close horizon approaches are reported with
RuntimeWarning subclasses, once per run.
"""

import warnings
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Dict, List, Optional

import numpy as np
from scipy.integrate import solve_ivp

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from spacetime_utils import (
    MetricParameters, MetricVariant, assemble_four_velocity, check_domain,
    check_state_finite, christoffel_symbols, circular_orbit_velocity,
    ergosphere_radius, horizon_radius, local_speed, vector_norm_squared
)
from geodesic_integrator import OrbitState, advance
from unit_system import (
    angular_momentum_to_spin, schwarzschild_radius,
    velocity_to_geometrized
)


# =============================================================================
# WARNINGS AND OUTCOMES
# =============================================================================

class SuperluminalWarning(RuntimeWarning):
    """Local 3-speed reached c: the four-velocity is no longer timelike."""
    pass


class HorizonApproachWarning(RuntimeWarning):
    """Trajectory came within the warning band around the horizon."""
    pass


class OrbitOutcome(Enum):
    """Why a run stopped."""
    COMPLETED = auto()
    HORIZON_CROSSED = auto()
    NUMERIC_OVERFLOW = auto()
    POLAR_AXIS = auto()


# =============================================================================
# SIMULATION CONFIGURATION
# =============================================================================

@dataclass
class SimulationConfig:
    """Configuration for one orbit (natural units, rs = 2M)."""
    # Central mass
    variant: str = 'schwarzschild'
    rs: float = 1.0
    a: Optional[float] = None

    # Initial position (t, r, theta, phi)
    t0: float = 0.0
    r0: float = 10.0
    theta0: float = np.pi / 2
    phi0: float = 0.0

    # Initial spatial four-velocity (U^r, U^theta, U^phi); U^t is solved for
    u_r0: float = 0.0
    u_theta0: float = 0.0
    u_phi0: float = 0.0
    target_norm_squared: float = 1.0
    root: str = 'future'

    # Integration
    step_size: float = 0.01
    sub_steps: int = 10
    n_ticks: int = 1000
    record_every: int = 1

    # Termination and diagnostics
    horizon_margin: float = 0.0
    horizon_warning_factor: float = 1.1   # warn once r < factor * r_horizon
    superluminal_threshold: float = 1.0

    def metric_parameters(self) -> MetricParameters:
        """Raises ConfigurationError for an unknown variant or missing spin."""
        return MetricParameters(rs=self.rs, r=self.r0, theta=self.theta0,
                                variant=self.variant, a=self.a)

    @property
    def r_horizon(self) -> float:
        return horizon_radius(self.metric_parameters())

    @property
    def tau_per_tick(self) -> float:
        return self.step_size * self.sub_steps

    @classmethod
    def from_si(cls, mass_kg: float, r_m: float,
                v_radial: float = 0.0, v_tangential: float = 0.0,
                angular_momentum: Optional[float] = None,
                **kwargs) -> 'SimulationConfig':
        """
        Build a configuration from SI inputs.

        Lengths stay in metres (geometrized units, c = G = 1). The spatial
        four-velocity is seeded as U^r = v_r/c and U^phi = v_t/(c r); U^t is
        then fixed by the norm constraint. A non-None angular_momentum (kg m^2/s)
        selects the Kerr metric with a = J/(M c).
        """
        rs = schwarzschild_radius(mass_kg)
        if angular_momentum is not None:
            kwargs.setdefault('variant', 'kerr')
            kwargs['a'] = angular_momentum_to_spin(angular_momentum, mass_kg)
        return cls(
            rs=rs,
            r0=r_m,
            u_r0=velocity_to_geometrized(v_radial),
            u_phi0=velocity_to_geometrized(v_tangential) / r_m,
            **kwargs
        )

    @classmethod
    def circular(cls, rs: float = 1.0, r0: float = 10.0, a: Optional[float] = None,
                 prograde: bool = True, **kwargs) -> 'SimulationConfig':
        """Equatorial circular orbit at r0."""
        variant = kwargs.pop('variant', 'kerr' if a is not None else 'schwarzschild')
        params = MetricParameters(rs=rs, r=r0, theta=np.pi/2, variant=variant, a=a)
        u = circular_orbit_velocity(params, prograde=prograde)
        return cls(variant=variant, rs=rs, a=a, r0=r0, theta0=np.pi/2,
                   u_phi0=u[3], **kwargs)


@dataclass
class SimulationResult:
    """Recorded history of a run."""
    config: SimulationConfig
    outcome: OrbitOutcome = OrbitOutcome.COMPLETED
    ticks_completed: int = 0
    tau: np.ndarray = field(default_factory=lambda: np.zeros(0))
    coordinates: np.ndarray = field(default_factory=lambda: np.zeros((0, 4)))
    velocities: np.ndarray = field(default_factory=lambda: np.zeros((0, 4)))
    norm_squared: np.ndarray = field(default_factory=lambda: np.zeros(0))
    speed: np.ndarray = field(default_factory=lambda: np.zeros(0))
    final_state: Optional[OrbitState] = None
    superluminal: bool = False

    @property
    def t(self) -> np.ndarray:
        return self.coordinates[:, 0]

    @property
    def r(self) -> np.ndarray:
        return self.coordinates[:, 1]

    @property
    def theta(self) -> np.ndarray:
        return self.coordinates[:, 2]

    @property
    def phi(self) -> np.ndarray:
        return self.coordinates[:, 3]

    @property
    def norm_drift(self) -> float:
        """max |g_ab U^a U^b - target| over the finite part of the history."""
        drift = np.abs(self.norm_squared - self.config.target_norm_squared)
        drift = drift[np.isfinite(drift)]
        return float(drift.max()) if drift.size else np.nan

    @property
    def max_speed(self) -> float:
        finite = self.speed[np.isfinite(self.speed)]
        return float(finite.max()) if finite.size else np.nan

    def to_dict(self) -> Dict[str, np.ndarray]:
        """Flat arrays keyed by name, for plotting and export."""
        return {
            'tau': self.tau,
            't': self.t,
            'r': self.r,
            'theta': self.theta,
            'phi': self.phi,
            'u_t': self.velocities[:, 0],
            'u_r': self.velocities[:, 1],
            'u_theta': self.velocities[:, 2],
            'u_phi': self.velocities[:, 3],
            'norm_squared': self.norm_squared,
            'speed': self.speed,
        }


# =============================================================================
# DRIVING LOOP
# =============================================================================

def initial_state(config: SimulationConfig) -> OrbitState:
    """
    Position and unit-norm four-velocity at tau = 0.

    Raises DomainError if the start point is outside the domain or the
    spatial velocity admits no timelike four-velocity.
    """
    params = config.metric_parameters()
    check_domain(params)
    spatial = (config.u_r0, config.u_theta0, config.u_phi0)
    velocity = assemble_four_velocity(spatial, params, config.target_norm_squared,
                                      root=config.root)
    coordinates = (config.t0, config.r0, config.theta0, config.phi0)
    return OrbitState.create(coordinates, velocity, params)


def classify_state(state: OrbitState, config: SimulationConfig,
                   r_horizon: Optional[float] = None) -> Optional[OrbitOutcome]:
    """Terminal outcome for this state, or None if the run can continue."""
    if not check_state_finite(state.coordinates, state.velocity):
        return OrbitOutcome.NUMERIC_OVERFLOW
    if r_horizon is None:
        r_horizon = horizon_radius(state.params)
    if state.r <= r_horizon + config.horizon_margin or state.r <= 0:
        return OrbitOutcome.HORIZON_CROSSED
    if not 0.0 < state.theta < np.pi:
        return OrbitOutcome.POLAR_AXIS
    return None


def run_orbit(config: SimulationConfig, verbose: bool = False) -> SimulationResult:
    """
    Integrate one orbit for up to config.n_ticks ticks.

    Every config.record_every ticks the state, squared norm and local speed
    are recorded; the terminal state is always recorded.
    """
    if config.record_every < 1:
        raise ValueError(f"record_every must be >= 1, got {config.record_every}")

    state = initial_state(config)
    r_horizon = horizon_radius(state.params)
    r_warn = config.horizon_warning_factor * r_horizon

    tau_hist: List[float] = []
    x_hist: List[np.ndarray] = []
    u_hist: List[np.ndarray] = []
    n2_hist: List[float] = []
    v_hist: List[float] = []

    def record(s, tau):
        tau_hist.append(tau)
        x_hist.append(s.coordinates)
        u_hist.append(s.velocity)
        with np.errstate(all='ignore'):
            n2_hist.append(vector_norm_squared(s.velocity, s.params))
            v_hist.append(local_speed(s.velocity, s.params))

    record(state, 0.0)
    tau = 0.0
    outcome = OrbitOutcome.COMPLETED
    ticks = 0
    warned_speed = False
    warned_horizon = False

    for tick in range(1, config.n_ticks + 1):
        state = advance(state, config.step_size, config.sub_steps)
        tau += config.tau_per_tick
        ticks = tick

        terminal = classify_state(state, config, r_horizon)
        if terminal is not None:
            outcome = terminal
            record(state, tau)
            break

        with np.errstate(all='ignore'):
            speed = local_speed(state.velocity, state.params)
        if not warned_speed and speed >= config.superluminal_threshold:
            warnings.warn(
                f"Local speed {speed:.4f}c >= {config.superluminal_threshold}c at "
                f"tau={tau:.4f}, r={state.r:.4f}. Four-velocity is no longer timelike; "
                f"reduce step_size or sub_steps.",
                SuperluminalWarning,
                stacklevel=2,
            )
            warned_speed = True
        if not warned_horizon and state.r < r_warn:
            warnings.warn(
                f"Trajectory approaching horizon: r={state.r:.6f} < "
                f"{config.horizon_warning_factor} * r_h ({r_horizon:.6f}) at tau={tau:.4f}",
                HorizonApproachWarning,
                stacklevel=2,
            )
            warned_horizon = True

        if tick % config.record_every == 0 or tick == config.n_ticks:
            record(state, tau)

    result = SimulationResult(
        config=config,
        outcome=outcome,
        ticks_completed=ticks,
        tau=np.array(tau_hist),
        coordinates=np.array(x_hist),
        velocities=np.array(u_hist),
        norm_squared=np.array(n2_hist),
        speed=np.array(v_hist),
        final_state=state,
        superluminal=warned_speed,
    )

    if verbose:
        print(f"\n{'ORBIT SIMULATION':^65}")
        print("-"*65)
        print(f"  Metric:              {state.params.variant.value}"
              f" (rs={config.rs:g}{'' if config.a is None else f', a={config.a:g}'})")
        print(f"  Ticks:               {ticks} x {config.sub_steps} sub-steps"
              f" of {config.step_size:g}")
        print(f"  Outcome:             {outcome.name}")
        print(f"  r: start={config.r0:.4f}, end={result.r[-1]:.4f},"
              f" min={np.nanmin(result.r):.4f}")
        print(f"  Norm drift:          {result.norm_drift:.3e}")
        print(f"  Max local speed:     {result.max_speed:.4f}c")

    return result


# =============================================================================
# REFERENCE SOLUTION
# =============================================================================

def reference_trajectory(config: SimulationConfig, tau_end: float,
                         t_eval: Optional[np.ndarray] = None,
                         rtol: float = 1e-10, atol: float = 1e-12) -> Dict[str, np.ndarray]:
    """
    High-order (DOP853) solution of the same geodesic, with the connection
    re-evaluated continuously. Used only to measure the Euler error.

    Returns dict with 'tau', 'coordinates' (N, 4), 'velocities' (N, 4),
    'success', 'horizon_hit'.
    """
    state0 = initial_state(config)
    base = state0.params
    r_stop = horizon_radius(base) + config.horizon_margin

    def rhs(tau, y):
        x = y[:4]
        u = y[4:]
        gamma = christoffel_symbols(base.at(x[1], x[2]))
        du = -np.einsum('abc,b,c->a', gamma, u, u)
        return np.concatenate((u, du))

    def horizon_event(tau, y):
        return y[1] - r_stop - 1e-9
    horizon_event.terminal = True
    horizon_event.direction = -1

    y0 = np.concatenate((state0.coordinates, state0.velocity))
    sol = solve_ivp(rhs, (0.0, tau_end), y0, method='DOP853',
                    t_eval=t_eval, rtol=rtol, atol=atol,
                    events=horizon_event)

    return {
        'tau': sol.t,
        'coordinates': sol.y[:4].T,
        'velocities': sol.y[4:].T,
        'success': sol.success,
        'horizon_hit': sol.status == 1,
    }


def reference_deviation(result: SimulationResult, rtol: float = 1e-10,
                        atol: float = 1e-12) -> Dict[str, float]:
    """
    Max absolute deviation of the recorded Euler history from the reference
    solution, per coordinate, over the recorded taus.
    """
    tau = result.tau
    ref = reference_trajectory(result.config, float(tau[-1]), t_eval=tau,
                               rtol=rtol, atol=atol)
    n = len(ref['tau'])
    diff = np.abs(result.coordinates[:n] - ref['coordinates'])
    return {
        't': float(np.max(diff[:, 0])),
        'r': float(np.max(diff[:, 1])),
        'theta': float(np.max(diff[:, 2])),
        'phi': float(np.max(diff[:, 3])),
        'n_compared': n,
    }


# =============================================================================
# COORDINATE MAPPING FOR RENDERING
# =============================================================================

def to_cartesian(r, theta, phi):
    """
    (r, theta, phi) -> (x, y, z) in the y-up rendering convention:
        x = r sin(theta) cos(phi)
        y = r cos(theta)
        z = r sin(theta) sin(phi)
    """
    r = np.asarray(r, dtype=float)
    theta = np.asarray(theta, dtype=float)
    phi = np.asarray(phi, dtype=float)
    sin_th = np.sin(theta)
    return r*sin_th*np.cos(phi), r*np.cos(theta), r*sin_th*np.sin(phi)


def key_radii(config: SimulationConfig) -> Dict[str, float]:
    """Horizon and equatorial static limit for plot annotations."""
    params = MetricParameters(rs=config.rs, r=config.r0, theta=np.pi/2,
                              variant=config.variant, a=config.a)
    radii = {'r_horizon': horizon_radius(params)}
    if params.variant is MetricVariant.KERR:
        radii['r_ergosphere'] = ergosphere_radius(params)
    return radii
