"""
Unit System
===========
Dimensional-analysis conversion between SI and natural (Planck) units.

A unit is an exponent vector over one of two bases:

    SI      (s, m, kg, A, K)
    NATURAL (c, G, hbar, epsilon_0, k_B)

The two are related by fixed 5x5 change-of-basis matrices. Converting a value
multiplies by a product of the physical constants raised to the unit's
natural-basis exponents:

    natural -> SI:  value * prod C_i^{p_i}
    SI -> natural:  value * prod C_i^{-p_i}

Also provides the geometrized (c = G = 1) helpers used to turn masses,
velocities and angular momenta into the lengths the metric code expects.
"""

import re
from dataclasses import dataclass
from enum import Enum
from fractions import Fraction
from typing import Dict, Sequence, Tuple, Union

import numpy as np
from scipy import constants as sc

from spacetime_utils import ConfigurationError


# =============================================================================
# BASES AND CONSTANTS
# =============================================================================

class UnitBasis(Enum):
    SI = 'si'
    NATURAL = 'natural'


SI_SYMBOLS = ('s', 'm', 'kg', 'A', 'K')
NATURAL_SYMBOLS = ('c', 'G', 'hbar', 'epsilon_0', 'k_B')

_SYMBOL_ALIASES = {
    UnitBasis.SI: {s: i for i, s in enumerate(SI_SYMBOLS)},
    UnitBasis.NATURAL: {
        'c': 0,
        'G': 1,
        'hbar': 2, 'h': 2,
        'epsilon_0': 3, 'eps0': 3, 'e': 3,
        'k_B': 4, 'kB': 4, 'k': 4,
    },
}

# SI magnitudes of (c, G, hbar, epsilon_0, k_B), CODATA via scipy
DIMENSIONAL_CONSTANTS = (sc.c, sc.G, sc.hbar, sc.epsilon_0, sc.k)

# Columns are the SI dimensions of c, G, hbar, epsilon_0, k_B:
#   c = m s^-1, G = m^3 kg^-1 s^-2, hbar = kg m^2 s^-1,
#   epsilon_0 = A^2 s^4 kg^-1 m^-3, k_B = kg m^2 s^-2 K^-1
NATURAL_TO_SI = np.array([
    [-1, -2, -1,  4, -2],
    [ 1,  3,  2, -3,  2],
    [ 0, -1,  1, -1,  1],
    [ 0,  0,  0,  2,  0],
    [ 0,  0,  0,  0, -1],
], dtype=float)

# Inverse of NATURAL_TO_SI; column j gives the Planck unit of SI base unit j
SI_TO_NATURAL = np.array([
    [-2.5, -1.5,  0.5,  3.0,  2.5],
    [ 0.5,  0.5, -0.5, -0.5, -0.5],
    [ 0.5,  0.5,  0.5,  0.0,  0.5],
    [ 0.0,  0.0,  0.0,  0.5,  0.0],
    [ 0.0,  0.0,  0.0,  0.0, -1.0],
])
NATURAL_TO_SI.setflags(write=False)
SI_TO_NATURAL.setflags(write=False)

# Solar mass (kg)
SOLAR_MASS = 1.9891e30


# =============================================================================
# UNIT VECTORS
# =============================================================================

@dataclass(frozen=True)
class UnitVector5:
    """Exponents of a unit over a 5-symbol basis. Never mutated after construction."""
    exponents: Tuple[float, float, float, float, float]
    basis: UnitBasis = UnitBasis.SI

    def __post_init__(self):
        exps = tuple(float(e) for e in self.exponents)
        if len(exps) != 5:
            raise ConfigurationError(f"A unit vector needs 5 exponents, got {len(exps)}")
        object.__setattr__(self, 'exponents', exps)
        if not isinstance(self.basis, UnitBasis):
            try:
                object.__setattr__(self, 'basis', UnitBasis(self.basis))
            except ValueError:
                raise ConfigurationError(f"Unknown unit basis {self.basis!r}") from None

    @classmethod
    def from_si(cls, powers: Dict[str, float]) -> 'UnitVector5':
        """e.g. UnitVector5.from_si({'m': 1, 's': -1}) for a velocity."""
        return cls(_exponents_from_mapping(powers, UnitBasis.SI), UnitBasis.SI)

    @classmethod
    def from_natural(cls, powers: Dict[str, float]) -> 'UnitVector5':
        """e.g. UnitVector5.from_natural({'c': 1}) for a velocity."""
        return cls(_exponents_from_mapping(powers, UnitBasis.NATURAL), UnitBasis.NATURAL)

    def as_array(self) -> np.ndarray:
        return np.array(self.exponents)

    def to_basis(self, basis: UnitBasis) -> 'UnitVector5':
        """Same unit expressed over the other basis."""
        if basis is self.basis:
            return self
        matrix = SI_TO_NATURAL if basis is UnitBasis.NATURAL else NATURAL_TO_SI
        return UnitVector5(tuple(matrix @ self.as_array()), basis)

    def __str__(self):
        symbols = SI_SYMBOLS if self.basis is UnitBasis.SI else NATURAL_SYMBOLS
        parts = []
        for sym, exp in zip(symbols, self.exponents):
            if exp == 0:
                continue
            exp_str = str(Fraction(exp).limit_denominator(64))
            parts.append(sym if exp_str == '1' else f"{sym}^{exp_str}")
        return ' '.join(parts) if parts else '1'


def _exponents_from_mapping(powers, basis):
    aliases = _SYMBOL_ALIASES[basis]
    exps = [0.0] * 5
    for symbol, power in powers.items():
        if symbol not in aliases:
            raise ConfigurationError(
                f"Unrecognized {basis.value} unit symbol {symbol!r}. "
                f"Known symbols: {', '.join(sorted(aliases))}"
            )
        exps[aliases[symbol]] += float(power)
    return tuple(exps)


def parse_unit(text: str, basis: UnitBasis = UnitBasis.SI) -> UnitVector5:
    """
    Parse a product of powers such as "kg m^2 s^-2" or "c^-1.5 G^1/2 hbar^1/2".

    Factors are separated by whitespace or '*'; exponents follow '^' or '**'
    and may be fractions. Repeated symbols accumulate.
    """
    powers: Dict[str, float] = {}
    # whitespace on either side of a caret belongs to the power
    tokens = re.sub(r'\s*\^\s*', '^', text.replace('**', '^')).replace('*', ' ').split()
    for token in tokens:
        if token == '1':
            continue
        if '^' in token:
            symbol, _, exp_text = token.partition('^')
            try:
                exp = float(Fraction(exp_text.strip('()')))
            except (ValueError, ZeroDivisionError):
                raise ConfigurationError(
                    f"Bad exponent {exp_text!r} in unit {text!r}"
                ) from None
        else:
            symbol, exp = token, 1.0
        powers[symbol] = powers.get(symbol, 0.0) + exp
    return UnitVector5(_exponents_from_mapping(powers, basis), basis)


def si_unit(text: str) -> UnitVector5:
    return parse_unit(text, UnitBasis.SI)


def natural_unit(text: str) -> UnitVector5:
    return parse_unit(text, UnitBasis.NATURAL)


# =============================================================================
# CONVERSION
# =============================================================================

class ConversionDirection(Enum):
    SI_TO_NATURAL = 'si_to_natural'
    NATURAL_TO_SI = 'natural_to_si'

    @classmethod
    def coerce(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ConfigurationError(f"Unknown conversion direction {value!r}") from None


class UnitSystem:
    """
    Converts values between SI and natural units over a fixed constant table.

    Parameters
    ----------
    constants : sequence of 5 floats
        SI magnitudes of (c, G, hbar, epsilon_0, k_B).
    """

    def __init__(self, constants: Sequence[float] = DIMENSIONAL_CONSTANTS):
        values = np.array(constants, dtype=float)
        if values.shape != (5,) or np.any(values <= 0) or not np.all(np.isfinite(values)):
            raise ConfigurationError(
                f"Expected 5 positive finite constants (c, G, hbar, epsilon_0, k_B), got {constants}"
            )
        values.setflags(write=False)
        self.constants = values
        self._log_constants = np.log(values)

    @staticmethod
    def natural_exponents(unit: UnitVector5) -> np.ndarray:
        """Exponents over (c, G, hbar, epsilon_0, k_B)."""
        return unit.to_basis(UnitBasis.NATURAL).as_array()

    @staticmethod
    def si_exponents(unit: UnitVector5) -> np.ndarray:
        """Exponents over (s, m, kg, A, K)."""
        return unit.to_basis(UnitBasis.SI).as_array()

    def _factor(self, unit: UnitVector5, sign: float) -> float:
        # exp(sum p_i log C_i): single powers such as hbar^5.5 under/overflow
        # even when the product is representable
        return float(np.exp(sign * np.dot(self.natural_exponents(unit), self._log_constants)))

    def scale(self, unit: UnitVector5) -> float:
        """SI size of one natural unit of this dimension: prod C_i^{p_i}."""
        return self._factor(unit, 1.0)

    def convert(self, value, unit: UnitVector5,
                direction: Union[ConversionDirection, str]) -> float:
        direction = ConversionDirection.coerce(direction)
        if not isinstance(unit, UnitVector5):
            raise ConfigurationError(f"Expected a UnitVector5, got {type(unit).__name__}")
        sign = 1.0 if direction is ConversionDirection.NATURAL_TO_SI else -1.0
        return value * self._factor(unit, sign)

    def to_natural(self, value, unit: UnitVector5):
        return self.convert(value, unit, ConversionDirection.SI_TO_NATURAL)

    def to_si(self, value, unit: UnitVector5):
        return self.convert(value, unit, ConversionDirection.NATURAL_TO_SI)


# =============================================================================
# GEOMETRIZED UNITS (c = G = 1, lengths in metres)
# =============================================================================

def solar_mass_to_si(value):
    """Solar masses -> kg."""
    return value * SOLAR_MASS


def si_mass_to_geometrized(value):
    """kg -> metres: M G / c^2."""
    return value * sc.G / sc.c**2


def solar_mass_to_geometrized(value):
    """Solar masses -> metres (1 solar mass ~ 1477 m)."""
    return si_mass_to_geometrized(solar_mass_to_si(value))


def velocity_to_geometrized(value):
    """m/s -> fraction of c. Also applies to angular velocity times radius."""
    return value / sc.c


def velocity_to_si(value):
    """Fraction of c -> m/s."""
    return value * sc.c


def angular_momentum_to_spin(angular_momentum, mass_kg):
    """Kerr spin parameter a = J / (M c) in metres."""
    return angular_momentum / (mass_kg * sc.c)


def schwarzschild_radius(mass_kg):
    """rs = 2 G M / c^2 in metres."""
    return 2.0 * si_mass_to_geometrized(mass_kg)
