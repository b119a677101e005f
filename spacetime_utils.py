"""
Spacetime Utilities
===================
Shared geometry for relativistic orbit simulations around Schwarzschild and
Kerr black holes.

Includes: metric parameters, metric tensors, Christoffel symbols, Lorentzian
vector norms, the time-component solver for four-velocities, domain checks,
and a handful of orbit helpers (horizon, circular orbits, local speed).

Conventions
-----------
- Coordinates (t, r, theta, phi), theta measured from the north pole
- Natural units (c = G = 1), rs = 2M
- Signature (+, -, -, -) for BOTH metrics: massive particles have
  g_{ab} U^a U^b = +1
- Christoffel arrays are indexed gamma[a, b, c] = Gamma^a_{bc}

References:
- Boyer & Lindquist (1967), J. Math. Phys. 8, 265
- Chandrasekhar (1983), The Mathematical Theory of Black Holes
- Bardeen, Press & Teukolsky (1972), ApJ 178, 347
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Sequence, Tuple

import numpy as np


# =============================================================================
# ERRORS
# =============================================================================

class DomainError(ValueError):
    """Raised when a point or vector lies outside the mathematically valid region."""
    pass


class ConfigurationError(ValueError):
    """Raised when parameters are malformed at the point they are constructed."""
    pass


class PhysicsValidationError(Exception):
    """Raised when a physical constraint is violated beyond tolerance."""
    pass


# =============================================================================
# METRIC PARAMETERS
# =============================================================================

class MetricVariant(Enum):
    """Supported spacetimes."""
    SCHWARZSCHILD = 'schwarzschild'
    KERR = 'kerr'

    @classmethod
    def coerce(cls, value):
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise ConfigurationError(
            f"Unsupported metric variant {value!r}. "
            f"Expected one of: {', '.join(v.value for v in cls)}"
        )


@dataclass(frozen=True)
class MetricParameters:
    """
    Point in spacetime plus the geometry it lives in.

    Only the configuration is validated here (variant tag, mass sign, spin
    presence). Whether (r, theta) lies in the valid region is a separate
    question answered by check_domain(), so that an integrator can keep
    producing states after a trajectory leaves the domain.
    """
    rs: float
    r: float
    theta: float
    variant: MetricVariant = MetricVariant.SCHWARZSCHILD
    a: Optional[float] = None

    def __post_init__(self):
        variant = MetricVariant.coerce(self.variant)
        object.__setattr__(self, 'variant', variant)

        if not np.isfinite(self.rs) or self.rs < 0:
            raise ConfigurationError(
                f"Schwarzschild radius must be finite and non-negative, got rs={self.rs}"
            )

        if variant is MetricVariant.KERR:
            if self.a is None:
                raise ConfigurationError("Kerr metric requires a spin parameter 'a'")
            if not np.isfinite(self.a):
                raise ConfigurationError(f"Spin parameter must be finite, got a={self.a}")
            object.__setattr__(self, 'a', float(self.a))
        elif self.a not in (None, 0, 0.0):
            raise ConfigurationError(
                f"Schwarzschild metric takes no spin, got a={self.a}. "
                f"Use variant='kerr' for a rotating mass."
            )

    @classmethod
    def from_mass(cls, mass, r, theta, variant=MetricVariant.SCHWARZSCHILD, a=None):
        """Build parameters from a geometrized mass M (rs = 2M)."""
        return cls(rs=2.0 * mass, r=r, theta=theta, variant=variant, a=a)

    @property
    def mass(self) -> float:
        return 0.5 * self.rs

    @property
    def spin(self) -> float:
        """Spin parameter, 0 for Schwarzschild."""
        return self.a if self.variant is MetricVariant.KERR else 0.0

    def at(self, r, theta) -> 'MetricParameters':
        """Same geometry evaluated at a new (r, theta)."""
        return replace(self, r=float(r), theta=float(theta))


def _position(params):
    """(rs, r, theta, a) as float64 so singular points give inf/nan rather than ZeroDivisionError."""
    return (np.float64(params.rs), np.float64(params.r),
            np.float64(params.theta), np.float64(params.spin))


def _kerr_sigma_delta(rs, r, theta, a):
    Sigma = r*r + (a*np.cos(theta))**2
    Delta = r*r - rs*r + a*a
    return Sigma, Delta


# =============================================================================
# METRIC TENSOR
# =============================================================================

def schwarzschild_metric(params: MetricParameters) -> np.ndarray:
    """Schwarzschild metric, diag(1 - rs/r, -1/(1 - rs/r), -r^2, -r^2 sin^2 theta)."""
    rs, r, th, _ = _position(params)
    f = 1.0 - rs / r

    g = np.zeros((4, 4))
    g[0, 0] = f
    g[1, 1] = -1.0 / f
    g[2, 2] = -r*r
    g[3, 3] = -(r * np.sin(th))**2
    return g


def kerr_metric(params: MetricParameters) -> np.ndarray:
    """
    Kerr metric in Boyer-Lindquist coordinates, (+,-,-,-) signature.

    With Sigma = r^2 + a^2 cos^2 theta and Delta = r^2 - rs r + a^2:
        g_tt = 1 - rs r / Sigma
        g_rr = -Sigma / Delta
        g_thth = -Sigma
        g_phiphi = -(r^2 + a^2 + rs r a^2 sin^2 theta / Sigma) sin^2 theta
        g_tphi = g_phit = rs r a sin^2 theta / Sigma   (frame dragging)

    Reduces to schwarzschild_metric() for a = 0.
    """
    rs, r, th, a = _position(params)
    Sigma, Delta = _kerr_sigma_delta(rs, r, th, a)
    sin2 = np.sin(th)**2

    g = np.zeros((4, 4))
    g[0, 0] = 1.0 - rs*r / Sigma
    g[1, 1] = -Sigma / Delta
    g[2, 2] = -Sigma
    g[3, 3] = -(r*r + a*a + rs*r*a*a*sin2 / Sigma) * sin2
    g[0, 3] = rs*r*a*sin2 / Sigma
    g[3, 0] = g[0, 3]
    return g


def metric_tensor(params: MetricParameters) -> np.ndarray:
    """Metric tensor g_{ab} at params, dispatched on the metric variant."""
    if params.variant is MetricVariant.SCHWARZSCHILD:
        return schwarzschild_metric(params)
    elif params.variant is MetricVariant.KERR:
        return kerr_metric(params)
    raise ConfigurationError(f"Unsupported metric variant {params.variant!r}")


# =============================================================================
# CHRISTOFFEL SYMBOLS
# =============================================================================

_LOWER_B, _LOWER_C = np.tril_indices(4, -1)


def _symmetrize_lower(gamma):
    """Mirror the canonical b < c half onto c > b: Gamma^a_{cb} = Gamma^a_{bc}."""
    gamma[:, _LOWER_B, _LOWER_C] = gamma[:, _LOWER_C, _LOWER_B]
    return gamma


def schwarzschild_christoffel(params: MetricParameters) -> np.ndarray:
    """
    Christoffel symbols of the Schwarzschild metric.

    Nine independent components; only the b <= c half is written and the
    symmetrisation pass fills the rest.
    """
    rs, r, th, _ = _position(params)
    r_minus_rs = r - rs
    sin_th = np.sin(th)
    cos_th = np.cos(th)

    gamma = np.zeros((4, 4, 4))
    gamma[0, 0, 1] = rs / (2*r*r_minus_rs)              # t t r
    gamma[1, 0, 0] = rs*r_minus_rs / (2*r**3)           # r t t
    gamma[1, 1, 1] = -rs / (2*r*r_minus_rs)             # r r r
    gamma[1, 2, 2] = -r_minus_rs                        # r th th
    gamma[1, 3, 3] = -r_minus_rs * sin_th**2            # r ph ph
    gamma[2, 1, 2] = 1.0 / r                            # th r th
    gamma[2, 3, 3] = -sin_th*cos_th                     # th ph ph
    gamma[3, 1, 3] = 1.0 / r                            # ph r ph
    gamma[3, 2, 3] = cos_th / sin_th                    # ph th ph

    return _symmetrize_lower(gamma)


def kerr_christoffel(params: MetricParameters) -> np.ndarray:
    """
    Christoffel symbols of the Kerr metric in Boyer-Lindquist coordinates.

    Twenty independent components. The connection does not change under
    g -> -g, so the usual (-+++) expressions apply unchanged.

    Diverges at Delta = 0 (horizons), Sigma = 0 (ring singularity) and
    sin(theta) = 0 (polar axis).
    """
    rs, r, th, a = _position(params)
    M = 0.5 * rs
    s = np.sin(th)
    c = np.cos(th)
    s2 = s*s
    c2 = c*c
    r2 = r*r
    a2 = a*a

    Sigma, Delta = _kerr_sigma_delta(rs, r, th, a)
    Sigma2 = Sigma*Sigma
    Sigma3 = Sigma2*Sigma
    D = r2 - a2*c2
    A = (r2 + a2)*Sigma + 2*M*r*a2*s2

    gamma = np.zeros((4, 4, 4))

    # Gamma^t
    gamma[0, 0, 1] = M*(r2 + a2)*D / (Sigma2*Delta)
    gamma[0, 0, 2] = -2*M*a2*r*s*c / Sigma2
    gamma[0, 1, 3] = M*a*s2*(a2*c2*(a2 - r2) - r2*(a2 + 3*r2)) / (Sigma2*Delta)
    gamma[0, 2, 3] = 2*M*a**3*r*s**3*c / Sigma2

    # Gamma^r
    gamma[1, 0, 0] = M*Delta*D / Sigma3
    gamma[1, 0, 3] = -M*a*Delta*s2*D / Sigma3
    gamma[1, 1, 1] = (r*a2*s2 - M*D) / (Sigma*Delta)
    gamma[1, 1, 2] = -a2*s*c / Sigma
    gamma[1, 2, 2] = -r*Delta / Sigma
    gamma[1, 3, 3] = Delta*s2*(-r*Sigma2 + M*a2*s2*D) / Sigma3

    # Gamma^theta
    gamma[2, 0, 0] = -2*M*a2*r*s*c / Sigma3
    gamma[2, 0, 3] = 2*M*a*r*(r2 + a2)*s*c / Sigma3
    gamma[2, 1, 1] = a2*s*c / (Sigma*Delta)
    gamma[2, 1, 2] = r / Sigma
    gamma[2, 2, 2] = -a2*s*c / Sigma
    gamma[2, 3, 3] = -s*c*(A*Sigma + 2*M*r*a2*s2*(r2 + a2)) / Sigma3

    # Gamma^phi
    gamma[3, 0, 1] = M*a*D / (Sigma2*Delta)
    gamma[3, 0, 2] = -2*M*a*r*(c/s) / Sigma2
    gamma[3, 1, 3] = (r*Sigma*(Sigma - 2*M*r) - M*a2*s2*D) / (Sigma2*Delta)
    gamma[3, 2, 3] = (c/s)*(Sigma2 + 2*M*r*a2*s2) / Sigma2

    return _symmetrize_lower(gamma)


def christoffel_symbols(params: MetricParameters) -> np.ndarray:
    """Connection coefficients Gamma^a_{bc} at params, dispatched on the metric variant."""
    if params.variant is MetricVariant.SCHWARZSCHILD:
        return schwarzschild_christoffel(params)
    elif params.variant is MetricVariant.KERR:
        return kerr_christoffel(params)
    raise ConfigurationError(f"Unsupported metric variant {params.variant!r}")


# =============================================================================
# DOMAIN CHECKS
# =============================================================================

def horizon_radius(params: MetricParameters) -> float:
    """
    Outer event horizon.

    Schwarzschild: r = rs. Kerr: r+ = M + sqrt(M^2 - a^2); for |a| > M there is
    no horizon and 0 is returned.
    """
    if params.variant is MetricVariant.SCHWARZSCHILD:
        return params.rs
    M = params.mass
    disc = M*M - params.a**2
    if disc < 0:
        return 0.0
    return M + np.sqrt(disc)


def ergosphere_radius(params: MetricParameters) -> float:
    """Static limit r_erg = M + sqrt(M^2 - a^2 cos^2 theta). Equals rs at the equator."""
    M = params.mass
    a = params.spin
    disc = M*M - (a*np.cos(params.theta))**2
    if disc < 0:
        return 0.0
    return M + np.sqrt(disc)


def check_domain(params: MetricParameters) -> None:
    """
    Raise DomainError when (r, theta) is outside the region where the
    coordinates (and hence the metric and connection) are valid.
    """
    r, th = params.r, params.theta

    if not (np.isfinite(r) and np.isfinite(th)):
        raise DomainError(f"Non-finite position: r={r}, theta={th}")
    if r <= 0:
        raise DomainError(f"r must be positive, got r={r}")
    if not 0.0 < th < np.pi:
        raise DomainError(
            f"theta={th} is on or beyond the polar axis; theta must lie in (0, pi)"
        )

    if params.variant is MetricVariant.SCHWARZSCHILD:
        if r <= params.rs:
            raise DomainError(
                f"r={r:.6g} is inside or at the horizon rs={params.rs:.6g}"
            )
        return

    Sigma, Delta = _kerr_sigma_delta(params.rs, r, th, params.a)
    if Sigma == 0:
        raise DomainError(f"Sigma = 0 at r={r}, theta={th} (ring singularity)")
    r_plus = horizon_radius(params)
    if Delta <= 0 or r <= r_plus:
        raise DomainError(
            f"r={r:.6g} is inside or at the horizon r+={r_plus:.6g} "
            f"(Delta={Delta:.3e}). Boyer-Lindquist coordinates invalid."
        )


def in_domain(params: MetricParameters) -> bool:
    try:
        check_domain(params)
    except DomainError:
        return False
    return True


def check_state_finite(coordinates, velocity) -> bool:
    """False once overflow or NaN has propagated into the state."""
    return bool(np.all(np.isfinite(coordinates)) and np.all(np.isfinite(velocity)))


# =============================================================================
# VECTOR NORMS
# =============================================================================

def norm_squared(vector, metric: np.ndarray) -> float:
    """
    Lorentzian squared norm g_{ab} v^a v^b.

    Full double sum, so the Kerr g_tphi cross term is included.
    """
    v = np.asarray(vector, dtype=float)
    return float(np.einsum('ab,a,b->', metric, v, v))


def norm(vector, metric: np.ndarray) -> float:
    """
    Lorentzian norm sqrt(g_{ab} v^a v^b) of a timelike vector.

    Raises DomainError for a negative squared norm (spacelike under +---).
    """
    n2 = norm_squared(vector, metric)
    if n2 < 0:
        raise DomainError(
            f"Squared norm {n2:.6e} < 0: vector is spacelike, norm undefined"
        )
    return float(np.sqrt(n2))


def vector_norm_squared(vector, params: MetricParameters) -> float:
    """norm_squared() with the metric built from params."""
    return norm_squared(vector, metric_tensor(params))


def vector_norm(vector, params: MetricParameters) -> float:
    """norm() with the metric built from params."""
    return norm(vector, metric_tensor(params))


# =============================================================================
# TIME COMPONENT OF THE FOUR-VELOCITY
# =============================================================================

def solve_time_velocity(spatial: Sequence[float], params: MetricParameters,
                        target_norm_squared: float = 1.0) -> Tuple[float, float]:
    """
    Solve g_{ab} U^a U^b = target for U^t given (U^r, U^theta, U^phi).

    The constraint is quadratic in U^t:
        g_tt (U^t)^2 + 2 K U^t + S - target = 0
    with S = g_{ij} U^i U^j (spatial block) and K = g_{ti} U^i (zero for
    Schwarzschild, g_tphi U^phi for Kerr).

    Returns
    -------
    (root1, root2) : tuple of float
        (-K + sqrt(disc)) / g_tt and (-K - sqrt(disc)) / g_tt. Picking the
        physical one is left to the caller (see assemble_four_velocity).

    Raises
    ------
    DomainError
        Outside the valid region, on the stationary-limit surface (g_tt = 0),
        or when the discriminant is negative, i.e. the spatial velocity is
        too large for any timelike four-velocity to exist at this point.
    """
    check_domain(params)
    u = np.asarray(spatial, dtype=float)
    if u.shape != (3,):
        raise ValueError(f"Expected 3 spatial components, got shape {u.shape}")

    g = metric_tensor(params)
    g_tt = g[0, 0]
    S = float(np.einsum('ij,i,j->', g[1:, 1:], u, u))
    K = float(np.dot(g[0, 1:], u))

    if g_tt == 0:
        raise DomainError(
            f"g_tt = 0 at r={params.r:.6g}, theta={params.theta:.6g} "
            f"(stationary limit); U^t is not determined by the norm constraint"
        )

    disc = K*K - g_tt*(S - target_norm_squared)
    if disc < 0:
        raise DomainError(
            f"No real U^t: discriminant = {disc:.3e} < 0 at r={params.r:.6g}. "
            f"Spatial velocity {tuple(u)} is superluminal at this point."
        )

    sqrt_disc = np.sqrt(disc)
    return (-K + sqrt_disc) / g_tt, (-K - sqrt_disc) / g_tt


def assemble_four_velocity(spatial: Sequence[float], params: MetricParameters,
                           target_norm_squared: float = 1.0,
                           root: str = 'future') -> np.ndarray:
    """
    Full four-velocity (U^t, U^r, U^theta, U^phi) from its spatial part.

    root : 'future' picks the larger U^t (future-directed under +---),
           'first' / 'second' return the roots in solve_time_velocity order.
    """
    root1, root2 = solve_time_velocity(spatial, params, target_norm_squared)
    if root == 'future':
        u_t = max(root1, root2)
    elif root == 'first':
        u_t = root1
    elif root == 'second':
        u_t = root2
    else:
        raise ConfigurationError(
            f"Unknown root policy {root!r}; expected 'future', 'first' or 'second'"
        )
    return np.concatenate(([u_t], np.asarray(spatial, dtype=float)))


# =============================================================================
# ORBIT HELPERS
# =============================================================================

def frame_dragging_omega(params: MetricParameters) -> float:
    """Frame-dragging angular velocity omega = -g_tphi/g_phiphi (ZAMO angular velocity)."""
    g = metric_tensor(params)
    return -g[0, 3] / g[3, 3]


def local_speed(velocity, params: MetricParameters) -> float:
    """
    3-speed of the particle as measured by the zero-angular-momentum observer.

    For Schwarzschild this is the static observer. Values >= 1 mean the
    four-velocity is no longer timelike (superluminal); inf is returned when
    the measured time component vanishes.
    """
    u = np.asarray(velocity, dtype=float)
    g = metric_tensor(params)
    omega = -g[0, 3] / g[3, 3]

    # lapse^2 = g_tt - g_tphi^2 / g_phiphi
    alpha2 = g[0, 0] - g[0, 3]**2 / g[3, 3]
    spatial2 = -(g[1, 1]*u[1]**2 + g[2, 2]*u[2]**2 + g[3, 3]*(u[3] - omega*u[0])**2)
    time2 = alpha2 * u[0]**2
    if time2 <= 0:
        return np.inf
    return float(np.sqrt(max(spatial2, 0.0) / time2))


def circular_orbit_velocity(params: MetricParameters, prograde: bool = True) -> np.ndarray:
    """
    Four-velocity of an equatorial circular geodesic at params.r.

    Omega = dphi/dt = +/- sqrt(M) / (r^{3/2} +/- a sqrt(M))
    U^t = 1 / sqrt(g_tt + 2 g_tphi Omega + g_phiphi Omega^2)

    Raises DomainError off the equator or inside the photon orbit where no
    timelike circular orbit exists.
    """
    check_domain(params)
    if not np.isclose(params.theta, np.pi/2):
        raise DomainError(
            f"Circular orbits are only built in the equatorial plane, got theta={params.theta}"
        )

    M = params.mass
    a = params.spin
    r = params.r
    sign = 1.0 if prograde else -1.0
    omega = sign*np.sqrt(M) / (r**1.5 + sign*a*np.sqrt(M))

    g = metric_tensor(params)
    denom = g[0, 0] + 2*g[0, 3]*omega + g[3, 3]*omega**2
    if denom <= 0:
        raise DomainError(
            f"No timelike circular orbit at r={r:.6g} (inside the photon orbit)"
        )
    u_t = 1.0 / np.sqrt(denom)
    return np.array([u_t, 0.0, 0.0, omega*u_t])


# =============================================================================
# PHYSICAL VALIDITY VERIFICATION
# =============================================================================

def verify_normalization(velocity, params: MetricParameters, target: float = 1.0,
                         tol: float = 1e-6, raise_on_violation: bool = False,
                         label: str = "") -> Tuple[bool, float]:
    """
    Verify g_{ab} U^a U^b = target (default +1, timelike under +---).

    Returns (is_valid, norm_value). The integrator never renormalises, so
    this is how callers observe the accumulated drift.
    """
    value = vector_norm_squared(velocity, params)
    residual = abs(value - target)
    is_valid = bool(residual < tol)

    if raise_on_violation and not is_valid:
        raise PhysicsValidationError(
            f"4-velocity normalization violation{' (' + label + ')' if label else ''}: "
            f"g_ab U^a U^b = {value:.9f} (expected {target}, residual={residual:.3e})"
        )

    return is_valid, value
