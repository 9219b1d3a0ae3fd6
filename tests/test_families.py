"""
Test link functions, families and distributions.
"""

import pytest
import numpy as np
from scipy import stats

from posglm._core.links import get_link
from posglm._core.families import Gamma, InverseGaussian, Gaussian, get_family
from posglm.distributions import (
    dgamma, pgamma, dinvgauss, pinvgauss, frozen, density_table
)


LINKS = ['identity', 'log', 'inverse', '1/mu^2']


class TestLinks:
    """Test link functions."""

    @pytest.mark.parametrize('name', LINKS)
    def test_linkinv_inverts_linkfun(self, name):
        """linkinv(linkfun(mu)) == mu."""
        link = get_link(name)
        mu = np.array([0.2, 1.0, 3.5, 10.0])
        np.testing.assert_allclose(link.linkinv(link.linkfun(mu)), mu, rtol=1e-12)

    @pytest.mark.parametrize('name', LINKS)
    def test_mu_eta_is_derivative(self, name):
        """mu_eta matches a central finite difference of linkinv."""
        link = get_link(name)
        eta = link.linkfun(np.array([0.5, 1.0, 2.0, 4.0]))
        h = 1e-6
        numeric = (link.linkinv(eta + h) - link.linkinv(eta - h)) / (2 * h)
        np.testing.assert_allclose(link.mu_eta(eta), numeric, rtol=1e-5)

    def test_valideta(self):
        """inverse needs eta != 0, 1/mu^2 needs eta > 0."""
        assert not get_link('inverse').valideta(np.array([1.0, 0.0]))
        assert get_link('inverse').valideta(np.array([1.0, -2.0]))
        assert not get_link('1/mu^2').valideta(np.array([1.0, -0.1]))
        assert get_link('1/mu^2').valideta(np.array([0.5, 2.0]))

    def test_log_link_clamped(self):
        """linkinv stays positive for very negative eta."""
        link = get_link('log')
        assert np.all(link.linkinv(np.array([-1000.0])) > 0)

    def test_alias_and_unknown(self):
        """Link aliases resolve; unknown names raise."""
        assert get_link('inverse_squared').name == '1/mu^2'
        with pytest.raises(ValueError):
            get_link('probit')


class TestFamilies:
    """Test family resolution and R formulas."""

    def test_default_links(self):
        """Canonical links as in R."""
        assert Gamma().link.name == 'inverse'
        assert InverseGaussian().link.name == '1/mu^2'
        assert Gaussian().link.name == 'identity'

    def test_get_family_names(self):
        """Names and aliases resolve."""
        assert get_family('gamma', 'log').name == 'gamma'
        assert get_family('inverse.gaussian').name == 'inverse_gaussian'
        assert get_family('Inverse_Gaussian', 'log').link.name == 'log'

    def test_get_family_instance(self):
        """An instance is returned as is, or rebuilt with a new link."""
        fam = Gamma('log')
        assert get_family(fam) is fam
        assert get_family(fam, 'identity').link.name == 'identity'

    def test_invalid(self):
        """Unknown family and disallowed link raise."""
        with pytest.raises(ValueError, match="Unknown family"):
            get_family('poisson')
        with pytest.raises(ValueError, match="not available"):
            Gamma('1/mu^2')

    def test_variance(self):
        """V(mu) = mu^2 and mu^3."""
        mu = np.array([0.5, 2.0])
        np.testing.assert_allclose(Gamma().variance(mu), mu ** 2)
        np.testing.assert_allclose(InverseGaussian().variance(mu), mu ** 3)

    def test_gamma_dev_resids(self):
        """Gamma unit deviance 2(-log(y/mu) + (y-mu)/mu)."""
        y = np.array([1.0, 2.0, 0.5])
        mu = np.array([1.5, 1.5, 1.5])
        wt = np.array([1.0, 2.0, 1.0])
        expected = 2 * wt * (-np.log(y / mu) + (y - mu) / mu)
        np.testing.assert_allclose(Gamma().dev_resids(y, mu, wt), expected)

    def test_inverse_gaussian_dev_resids(self):
        """Inverse Gaussian unit deviance (y-mu)^2 / (y mu^2)."""
        y = np.array([1.0, 2.0, 0.5])
        mu = np.array([1.5, 1.0, 0.8])
        wt = np.ones(3)
        expected = (y - mu) ** 2 / (y * mu ** 2)
        np.testing.assert_allclose(InverseGaussian().dev_resids(y, mu, wt), expected)

    def test_deviance_zero_at_saturation(self):
        """Deviance vanishes when mu == y."""
        y = np.array([0.3, 1.0, 7.0])
        for fam in (Gamma(), InverseGaussian(), Gaussian()):
            np.testing.assert_allclose(fam.dev_resids(y, y, np.ones(3)), 0.0, atol=1e-14)

    @pytest.mark.parametrize('family', [Gamma('log'), InverseGaussian('log')])
    def test_aic_is_minus_twice_loglik(self, family):
        """aic = -2 loglik at phi = D/n, plus 2 for the dispersion."""
        rng = np.random.default_rng(0)
        y = rng.gamma(4.0, 0.5, 30)
        mu = np.full(30, y.mean())
        wt = np.ones(30)
        dev = np.sum(family.dev_resids(y, mu, wt))
        expected = -2 * np.sum(family.logpdf(y, mu, dev / 30)) + 2
        assert family.aic(y, mu, wt, dev) == pytest.approx(expected, rel=1e-10)

    def test_initialize_rejects_nonpositive(self):
        """Gamma and inverse Gaussian need y > 0."""
        y = np.array([1.0, 0.0, 2.0])
        with pytest.raises(ValueError, match="non-positive"):
            Gamma().initialize(y, np.ones(3))
        with pytest.raises(ValueError, match="non-positive"):
            InverseGaussian().initialize(y, np.ones(3))
        # zero-weight observations are ignored
        Gamma().initialize(y, np.array([1.0, 0.0, 1.0]))

    def test_validmu(self):
        """Positive families need mu > 0."""
        assert Gamma().validmu(np.array([0.1, 2.0]))
        assert not Gamma().validmu(np.array([0.1, -2.0]))
        assert Gaussian().validmu(np.array([-1.0, 2.0]))


class TestDistributions:
    """Test mean/dispersion parametrizations."""

    def test_gamma_moments(self):
        """Gamma(mu, phi) has mean mu and variance phi mu^2."""
        dist = frozen('gamma', 3.0, 0.2)
        assert dist.mean() == pytest.approx(3.0)
        assert dist.var() == pytest.approx(0.2 * 9.0)

    def test_invgauss_moments(self):
        """IG(mu, phi) has mean mu and variance phi mu^3."""
        dist = frozen('inverse_gaussian', 2.0, 0.1)
        assert dist.mean() == pytest.approx(2.0)
        assert dist.var() == pytest.approx(0.1 * 8.0)

    def test_invgauss_density_formula(self):
        """Density matches the closed form."""
        y, mu, phi = np.array([0.5, 1.0, 3.0]), 1.5, 0.4
        expected = (2 * np.pi * phi * y ** 3) ** -0.5 * np.exp(
            -(y - mu) ** 2 / (2 * phi * mu ** 2 * y)
        )
        np.testing.assert_allclose(dinvgauss(y, mu, phi), expected, rtol=1e-10)

    def test_gamma_functions(self):
        """dgamma/pgamma agree with scipy's shape/scale form."""
        y = np.array([0.5, 1.0, 3.0])
        ref = stats.gamma(a=1 / 0.5, scale=2.0 * 0.5)
        np.testing.assert_allclose(dgamma(y, 2.0, 0.5), ref.pdf(y))
        np.testing.assert_allclose(pgamma(y, 2.0, 0.5), ref.cdf(y))
        assert 0 < pinvgauss(1.0, 1.0, 0.5) < 1

    def test_frozen_rejects_bad_dispersion(self):
        """Dispersion must be positive."""
        with pytest.raises(ValueError):
            frozen('gamma', 1.0, 0.0)
        with pytest.raises(ValueError):
            frozen('weibull', 1.0, 1.0)

    def test_density_table(self):
        """Long table, one curve per (mu, phi) pair."""
        table = density_table('gamma', means=[1, 2], dispersions=[0.5, 1.0])
        assert list(table.columns) == ['y', 'density', 'mu', 'dispersion']
        assert len(table.groupby(['mu', 'dispersion'])) == 4
        assert (table['density'] >= 0).all()
        assert (table['y'] > 0).all()

    def test_density_table_invalid(self):
        """Only gamma and inverse Gaussian, positive means."""
        with pytest.raises(ValueError):
            density_table('gaussian', [1], [1])
        with pytest.raises(ValueError):
            density_table('gamma', [-1], [1])
