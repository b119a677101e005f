"""
Unit Tests for SI <-> Natural Unit Conversion
=============================================
Change-of-basis matrices, unit parsing, Planck-scale values and the
geometrized (c = G = 1) helpers.
"""

import numpy as np
import pytest
from scipy import constants as sc
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from spacetime_utils import ConfigurationError
from unit_system import (
    NATURAL_TO_SI, SI_TO_NATURAL, SOLAR_MASS, ConversionDirection, UnitBasis,
    UnitSystem, UnitVector5, angular_momentum_to_spin, natural_unit, parse_unit,
    schwarzschild_radius, si_unit, solar_mass_to_geometrized,
    velocity_to_geometrized, velocity_to_si
)


UNITS = {
    'length': 'm',
    'time': 's',
    'mass': 'kg',
    'velocity': 'm s^-1',
    'acceleration': 'm s^-2',
    'energy': 'kg m^2 s^-2',
    'charge': 'A s',
    'temperature': 'K',
    'angular_momentum': 'kg m^2 s^-1',
    'density': 'kg m^-3',
}


@pytest.fixture
def units():
    return UnitSystem()


class TestBasisMatrices:

    def test_matrices_are_inverse(self):
        np.testing.assert_allclose(SI_TO_NATURAL @ NATURAL_TO_SI, np.eye(5), atol=1e-14)
        np.testing.assert_allclose(NATURAL_TO_SI @ SI_TO_NATURAL, np.eye(5), atol=1e-14)

    def test_matrices_read_only(self):
        with pytest.raises(ValueError):
            SI_TO_NATURAL[0, 0] = 1.0

    def test_constants_have_expected_dimensions(self):
        """Natural basis vector e_i maps to the SI dimensions of constant i."""
        assert natural_unit('c').to_basis(UnitBasis.SI) == si_unit('m s^-1')
        assert natural_unit('G').to_basis(UnitBasis.SI) == si_unit('m^3 kg^-1 s^-2')
        assert natural_unit('hbar').to_basis(UnitBasis.SI) == si_unit('kg m^2 s^-1')
        assert natural_unit('k_B').to_basis(UnitBasis.SI) == si_unit('kg m^2 s^-2 K^-1')


class TestParsing:

    def test_parse_energy(self):
        assert si_unit('kg m^2 s^-2').exponents == (-2.0, 2.0, 1.0, 0.0, 0.0)

    @pytest.mark.parametrize("text", ['kg*m**2*s**-2', 'kg m ^2 s^-2', 'kg m^ 2 s^ -2',
                                      'kg m ^ 2 s ^ -2', 'm kg m s^-2 m^0'])
    def test_equivalent_spellings(self, text):
        assert si_unit(text) == si_unit('kg m^2 s^-2')

    def test_fractional_exponents(self):
        u = natural_unit('c^-3/2 G^1/2 hbar^0.5')
        assert u.exponents == (-1.5, 0.5, 0.5, 0.0, 0.0)

    def test_dimensionless(self):
        assert si_unit('1').exponents == (0.0,)*5
        assert str(si_unit('1')) == '1'

    def test_aliases(self):
        assert natural_unit('kB eps0 h') == natural_unit('k_B epsilon_0 hbar')

    @pytest.mark.parametrize("text", ['furlong', 'm^x', 'c G'])
    def test_unknown_symbol(self, text):
        with pytest.raises(ConfigurationError):
            si_unit(text)

    def test_from_mapping(self):
        assert UnitVector5.from_si({'m': 1, 's': -1}) == si_unit('m s^-1')
        with pytest.raises(ConfigurationError):
            UnitVector5.from_natural({'m': 1})

    def test_wrong_length(self):
        with pytest.raises(ConfigurationError):
            UnitVector5((1, 2, 3))

    def test_str(self):
        assert str(si_unit('m s^-1')) == 's^-1 m'
        assert str(natural_unit('c^-3/2 G^1/2')) == 'c^-3/2 G^1/2'


class TestConversion:

    def test_speed_of_light_is_one(self, units):
        assert units.to_natural(sc.c, si_unit('m s^-1')) == pytest.approx(1.0, rel=1e-12)

    def test_planck_length(self, units):
        assert units.to_si(1.0, si_unit('m')) == pytest.approx(1.616255e-35, rel=1e-5)

    def test_planck_mass(self, units):
        assert units.to_si(1.0, si_unit('kg')) == pytest.approx(2.176434e-8, rel=1e-5)

    def test_planck_time(self, units):
        assert units.scale(si_unit('s')) == pytest.approx(5.391247e-44, rel=1e-5)

    @pytest.mark.parametrize("name", sorted(UNITS))
    def test_round_trip(self, units, name):
        unit = si_unit(UNITS[name])
        value = 3.7e5
        back = units.to_si(units.to_natural(value, unit), unit)
        assert back == pytest.approx(value, rel=1e-9)

    def test_scale_with_large_exponents(self, units):
        """Natural exponents (-14.5, 2.5, 5.5, -1, -2): factor ~ 1e-278."""
        unit = si_unit('s^4 m^3 kg^2 A^-2 K^2')
        np.testing.assert_allclose(units.natural_exponents(unit), [-14.5, 2.5, 5.5, -1.0, -2.0])
        scale = units.scale(unit)
        assert scale > 0
        assert np.log10(scale) == pytest.approx(-278.4534, abs=1e-3)

    @pytest.mark.parametrize("unit", [
        si_unit('s^4 m^3 kg^2 A^-2 K^2'),
        si_unit('s^-3 m^-4 kg^3 A^2 K^-3'),
        natural_unit('c^-7 G^3/2 hbar^4 epsilon_0^-2 k_B^3'),
        natural_unit('hbar^-4.5 c^6'),
    ], ids=str)
    def test_round_trip_large_exponents(self, units, unit):
        value = 2.5
        back = units.to_si(units.to_natural(value, unit), unit)
        assert np.isfinite(back)
        assert back == pytest.approx(value, rel=1e-9)

    def test_round_trip_random_units(self, units):
        """Every unit whose factor fits comfortably in a double survives the round trip."""
        rng = np.random.default_rng(1234)
        log10_constants = np.log10(units.constants)
        checked = 0
        for _ in range(2000):
            exps = rng.integers(-8, 9, size=5) / 2.0
            unit = UnitVector5(tuple(exps), UnitBasis.SI)
            if abs(np.dot(units.natural_exponents(unit), log10_constants)) > 290:
                continue
            back = units.to_si(units.to_natural(1.7, unit), unit)
            assert back == pytest.approx(1.7, rel=1e-9), str(unit)
            checked += 1
        assert checked > 500

    def test_natural_basis_unit(self, units):
        """A unit given over the natural basis converts the same way."""
        velocity = natural_unit('c')
        assert units.to_si(0.5, velocity) == pytest.approx(0.5 * sc.c)

    def test_array_values(self, units):
        out = units.to_natural(np.array([1.0, 2.0]) * sc.c, si_unit('m s^-1'))
        np.testing.assert_allclose(out, [1.0, 2.0])

    @pytest.mark.parametrize("direction", ['si_to_natural', 'SI_TO_NATURAL',
                                           ConversionDirection.SI_TO_NATURAL])
    def test_direction_coercion(self, units, direction):
        assert units.convert(sc.c, si_unit('m s^-1'), direction) == pytest.approx(1.0)

    def test_bad_direction(self, units):
        with pytest.raises(ConfigurationError):
            units.convert(1.0, si_unit('m'), 'sideways')

    def test_bad_unit_type(self, units):
        with pytest.raises(ConfigurationError):
            units.convert(1.0, 'm', 'si_to_natural')

    @pytest.mark.parametrize("constants", [(1, 2, 3), (1, 2, 3, 4, -5), (1, 2, 3, 4, np.nan)])
    def test_bad_constants(self, constants):
        with pytest.raises(ConfigurationError):
            UnitSystem(constants)


class TestGeometrized:

    def test_solar_mass_in_metres(self):
        assert solar_mass_to_geometrized(1.0) == pytest.approx(1477.13754, abs=0.5)

    def test_schwarzschild_radius_of_sun(self):
        assert schwarzschild_radius(SOLAR_MASS) == pytest.approx(2954.3, rel=1e-3)

    def test_velocity(self):
        assert velocity_to_geometrized(sc.c / 2) == pytest.approx(0.5)
        assert velocity_to_si(velocity_to_geometrized(1234.5)) == pytest.approx(1234.5)

    def test_spin_parameter(self):
        """a = J / (M c) in metres."""
        J = 0.5 * SOLAR_MASS * sc.c * 1000.0
        assert angular_momentum_to_spin(J, SOLAR_MASS) == pytest.approx(500.0)
