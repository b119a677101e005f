"""
Unit Tests for the Metric Tensor
================================
Schwarzschild and Kerr components, their limits, parameter validation and
the domain checks that guard the coordinate singularities.
"""

import numpy as np
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from spacetime_utils import (
    ConfigurationError, DomainError, MetricParameters, MetricVariant,
    check_domain, ergosphere_radius, horizon_radius, in_domain,
    kerr_metric, metric_tensor, schwarzschild_metric
)


RS = 1.0
POINTS = [(3.0, 0.7), (5.0, np.pi/2), (10.0, 2.2)]


def kerr(r, theta, a, rs=RS):
    return MetricParameters(rs=rs, r=r, theta=theta, variant='kerr', a=a)


def schwarzschild(r, theta, rs=RS):
    return MetricParameters(rs=rs, r=r, theta=theta)


class TestSchwarzschildMetric:

    def test_known_components(self):
        """rs=1, r=2, theta=3: diag(1/2, -2, -4, -4 sin^2 3)."""
        g = metric_tensor(schwarzschild(2.0, 3.0))
        expected = np.diag([0.5, -2.0, -4.0, -4.0*np.sin(3.0)**2])
        np.testing.assert_allclose(g, expected, rtol=1e-14)

    @pytest.mark.parametrize("r,theta", POINTS)
    def test_diagonal_and_symmetric(self, r, theta):
        g = schwarzschild_metric(schwarzschild(r, theta))
        np.testing.assert_array_equal(g, g.T)
        np.testing.assert_array_equal(g - np.diag(np.diag(g)), 0.0)

    @pytest.mark.parametrize("r,theta", POINTS)
    def test_signature(self, r, theta):
        """Outside the horizon: one positive, three negative."""
        d = np.diag(metric_tensor(schwarzschild(r, theta)))
        assert d[0] > 0
        assert np.all(d[1:] < 0)

    def test_flat_limit(self):
        """rs = 0 gives Minkowski in spherical coordinates."""
        r, th = 4.0, 1.1
        g = metric_tensor(schwarzschild(r, th, rs=0.0))
        expected = np.diag([1.0, -1.0, -r*r, -(r*np.sin(th))**2])
        np.testing.assert_allclose(g, expected, rtol=1e-14)

    def test_g_rr_grows_toward_horizon(self):
        radii = [1.5, 1.1, 1.01, 1.001]
        g_rr = [abs(metric_tensor(schwarzschild(r, np.pi/2))[1, 1]) for r in radii]
        assert all(b > a for a, b in zip(g_rr, g_rr[1:]))
        assert g_rr[-1] > 500

    def test_singular_point_gives_non_finite_not_exception(self):
        g = metric_tensor(schwarzschild(RS, np.pi/2))
        assert not np.isfinite(g[1, 1])


class TestKerrMetric:

    @pytest.mark.parametrize("r,theta", POINTS)
    def test_zero_spin_matches_schwarzschild(self, r, theta):
        np.testing.assert_allclose(
            kerr_metric(kerr(r, theta, 0.0)),
            schwarzschild_metric(schwarzschild(r, theta)),
            rtol=1e-14, atol=1e-15
        )

    @pytest.mark.parametrize("r,theta", POINTS)
    @pytest.mark.parametrize("a", [0.2, 0.45, -0.3])
    def test_symmetric(self, r, theta, a):
        g = kerr_metric(kerr(r, theta, a))
        np.testing.assert_array_equal(g, g.T)

    def test_frame_dragging_term_is_t_phi(self):
        """Only the (t, phi) off-diagonal pair is non-zero."""
        r, th, a = 4.0, 1.0, 0.4
        g = metric_tensor(kerr(r, th, a))
        Sigma = r*r + (a*np.cos(th))**2
        assert g[0, 3] == pytest.approx(RS*r*a*np.sin(th)**2 / Sigma, rel=1e-14)
        assert g[3, 0] == g[0, 3]
        off = g - np.diag(np.diag(g))
        off[0, 3] = off[3, 0] = 0.0
        np.testing.assert_array_equal(off, 0.0)

    def test_spin_sign_flips_cross_term_only(self):
        g_pro = metric_tensor(kerr(4.0, 1.0, 0.4))
        g_retro = metric_tensor(kerr(4.0, 1.0, -0.4))
        assert g_retro[0, 3] == pytest.approx(-g_pro[0, 3])
        np.testing.assert_allclose(np.diag(g_retro), np.diag(g_pro))

    def test_known_equatorial_components(self):
        """rs=2 (M=1), a=0.5, r=4, theta=pi/2."""
        r, a = 4.0, 0.5
        g = metric_tensor(kerr(r, np.pi/2, a, rs=2.0))
        Delta = r*r - 2.0*r + a*a
        assert g[0, 0] == pytest.approx(1 - 2.0/r)
        assert g[1, 1] == pytest.approx(-r*r/Delta)
        assert g[2, 2] == pytest.approx(-r*r)
        assert g[3, 3] == pytest.approx(-(r*r + a*a + 2.0*a*a/r))
        assert g[0, 3] == pytest.approx(2.0*a/r)


class TestMetricParameters:

    def test_variant_strings_are_coerced(self):
        p = MetricParameters(rs=1.0, r=5.0, theta=1.0, variant='KERR', a=0.1)
        assert p.variant is MetricVariant.KERR

    def test_unknown_variant(self):
        with pytest.raises(ConfigurationError, match="Unsupported metric variant"):
            MetricParameters(rs=1.0, r=5.0, theta=1.0, variant='reissner-nordstrom')

    def test_kerr_requires_spin(self):
        with pytest.raises(ConfigurationError):
            MetricParameters(rs=1.0, r=5.0, theta=1.0, variant='kerr')

    def test_schwarzschild_rejects_spin(self):
        with pytest.raises(ConfigurationError):
            MetricParameters(rs=1.0, r=5.0, theta=1.0, a=0.3)

    @pytest.mark.parametrize("rs", [-1.0, np.nan, np.inf])
    def test_bad_rs(self, rs):
        with pytest.raises(ConfigurationError):
            MetricParameters(rs=rs, r=5.0, theta=1.0)

    def test_out_of_domain_position_is_accepted(self):
        """Construction only checks the configuration, not (r, theta)."""
        p = MetricParameters(rs=1.0, r=0.5, theta=1.0)
        assert not in_domain(p)

    def test_from_mass_and_at(self):
        p = MetricParameters.from_mass(2.0, r=10.0, theta=1.0)
        assert p.rs == 4.0 and p.mass == 2.0 and p.spin == 0.0
        q = p.at(12.0, 0.5)
        assert (q.r, q.theta, q.rs) == (12.0, 0.5, 4.0)
        assert p.r == 10.0


class TestDomain:

    @pytest.mark.parametrize("r,theta", [
        (0.0, 1.0),       # origin
        (-2.0, 1.0),      # negative radius
        (5.0, 0.0),       # north pole
        (5.0, np.pi),     # south pole
        (5.0, 4.0),       # theta out of range
        (0.9, 1.0),       # inside horizon
        (1.0, 1.0),       # at horizon
        (np.nan, 1.0),
    ])
    def test_schwarzschild_rejects(self, r, theta):
        with pytest.raises(DomainError):
            check_domain(schwarzschild(r, theta))

    def test_schwarzschild_accepts_just_outside(self):
        check_domain(schwarzschild(1.0001, np.pi/2))

    def test_kerr_horizon(self):
        """rs=2 (M=1), a=0.6: r+ = 1.8."""
        p = kerr(3.0, np.pi/2, 0.6, rs=2.0)
        assert horizon_radius(p) == pytest.approx(1.8)
        assert in_domain(p.at(1.81, np.pi/2))
        for r in (1.79, 1.5, 0.5):
            with pytest.raises(DomainError):
                check_domain(p.at(r, np.pi/2))

    def test_naked_singularity_has_no_horizon(self):
        p = kerr(3.0, np.pi/2, 1.5, rs=2.0)
        assert horizon_radius(p) == 0.0

    def test_ergosphere(self):
        p = kerr(3.0, np.pi/2, 0.6, rs=2.0)
        assert ergosphere_radius(p) == pytest.approx(2.0)
        polar = p.at(3.0, 0.01)
        assert ergosphere_radius(polar) == pytest.approx(1.8, abs=1e-3)
