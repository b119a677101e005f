"""
Geodesic Integrator
===================
Explicit (forward) Euler integration of the geodesic equation

    dx^a/dtau = U^a
    dU^a/dtau = -Gamma^a_{bc} U^b U^c

for one simulation tick, split into `sub_steps` Euler steps of `step_size`
each (total affine-parameter advance step_size * sub_steps per call).

Per call, everything is evaluated from the pre-step state:
- coordinates advance with the start-of-call velocity
- the Christoffel symbols are computed once at the pre-step (r, theta)
  and held fixed while the velocity is sub-stepped

This costs one tensor evaluation per tick. Shrinking step_size * sub_steps
recovers first-order convergence to the true geodesic.

No normalization is applied: the drift of g_ab U^a U^b away from +1 is an
observable of the run. Horizon crossing and overflow raise nothing; NaN/Inf
show up in the returned state and the driving loop decides what to do.
"""

from dataclasses import dataclass
from numbers import Integral
from typing import Tuple

import numpy as np

from spacetime_utils import (
    ConfigurationError, MetricParameters, christoffel_symbols
)


def _check_step_arguments(step_size, sub_steps):
    if not np.isfinite(step_size):
        raise ConfigurationError(f"step_size must be finite, got {step_size}")
    if not isinstance(sub_steps, Integral) or isinstance(sub_steps, bool):
        raise ConfigurationError(f"sub_steps must be an integer, got {sub_steps!r}")
    if sub_steps < 0:
        raise ConfigurationError(f"sub_steps must be non-negative, got {sub_steps}")


def _as_four_vector(values, name):
    v = np.array(values, dtype=float)
    if v.shape != (4,):
        raise ValueError(f"{name} must have 4 components, got shape {v.shape}")
    return v


def step_coordinates(coordinates, velocity, step_size: float,
                     sub_steps: int = 1) -> np.ndarray:
    """
    Advance (t, r, theta, phi) by sub_steps Euler steps: x <- x + h U.

    U is the velocity at the start of the call for every sub-step.
    """
    _check_step_arguments(step_size, sub_steps)
    x = _as_four_vector(coordinates, 'coordinates')
    u = _as_four_vector(velocity, 'velocity')

    with np.errstate(all='ignore'):
        for _ in range(sub_steps):
            x = x + step_size * u
    return x


def step_velocity(velocity, params: MetricParameters, step_size: float,
                  sub_steps: int = 1) -> np.ndarray:
    """
    Advance U by sub_steps Euler steps of the geodesic equation:

        U^a <- U^a - h Gamma^a_{bc} U^b U^c

    params fixes the geometry and the pre-step (r, theta) at which Gamma is
    evaluated; Gamma is not re-evaluated between sub-steps.
    """
    _check_step_arguments(step_size, sub_steps)
    u = _as_four_vector(velocity, 'velocity')

    with np.errstate(all='ignore'):
        gamma = christoffel_symbols(params)
        for _ in range(sub_steps):
            u = u - step_size * np.einsum('abc,b,c->a', gamma, u, u)
    return u


def step(coordinates, velocity, params: MetricParameters, step_size: float,
         sub_steps: int = 1) -> Tuple[np.ndarray, np.ndarray]:
    """One tick: new (coordinates, velocity), both computed from the pre-step values."""
    new_coordinates = step_coordinates(coordinates, velocity, step_size, sub_steps)
    new_velocity = step_velocity(velocity, params, step_size, sub_steps)
    return new_coordinates, new_velocity


# =============================================================================
# CALLER-OWNED STATE
# =============================================================================

@dataclass(frozen=True)
class OrbitState:
    """
    State of one test particle: position, four-velocity and the metric
    parameters evaluated at that position.

    Each body is an independent value; advance() returns a new state.
    """
    coordinates: np.ndarray
    velocity: np.ndarray
    params: MetricParameters

    @classmethod
    def create(cls, coordinates, velocity, params: MetricParameters) -> 'OrbitState':
        """State whose params are moved to the (r, theta) of coordinates."""
        x = _as_four_vector(coordinates, 'coordinates')
        u = _as_four_vector(velocity, 'velocity')
        return cls(coordinates=x, velocity=u, params=params.at(x[1], x[2]))

    @property
    def t(self) -> float:
        return float(self.coordinates[0])

    @property
    def r(self) -> float:
        return float(self.coordinates[1])

    @property
    def theta(self) -> float:
        return float(self.coordinates[2])

    @property
    def phi(self) -> float:
        return float(self.coordinates[3])


def advance(state: OrbitState, step_size: float, sub_steps: int = 1) -> OrbitState:
    """Advance a state by one tick and re-anchor its params at the new position."""
    coordinates, velocity = step(state.coordinates, state.velocity, state.params,
                                 step_size, sub_steps)
    return OrbitState(
        coordinates=coordinates,
        velocity=velocity,
        params=state.params.at(coordinates[1], coordinates[2]),
    )
