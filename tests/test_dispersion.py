"""
Test dispersion estimators.
"""

import pytest
import numpy as np
from scipy.special import digamma

from posglm import glm
from posglm._core.dispersion import (
    pearson_dispersion,
    deviance_dispersion,
    ml_dispersion,
    estimate_dispersion,
)


@pytest.fixture
def gamma_fit(gamma_data):
    x, y = gamma_data
    return glm(y, x, family='gamma', link='log')


@pytest.fixture
def invgauss_fit(invgauss_data):
    x, y = invgauss_data
    return glm(y, x, family='inverse_gaussian', link='log')


class TestDispersion:
    """Test Pearson, deviance and ML estimators."""

    def test_pearson(self, gamma_fit):
        """Sum of squared Pearson residuals over residual df."""
        result = gamma_fit._result
        r = (result.y - result.fitted_values) / result.fitted_values
        expected = np.sum(r ** 2) / result.df_residual
        assert pearson_dispersion(result) == pytest.approx(expected)
        assert gamma_fit.pearson_dispersion == pytest.approx(expected)

    def test_deviance(self, gamma_fit):
        """Mean deviance."""
        result = gamma_fit._result
        assert deviance_dispersion(result) == pytest.approx(
            result.deviance / result.df_residual
        )

    def test_gamma_ml_solves_score_equation(self, gamma_fit):
        """phi = 1/alpha with log(alpha) - digamma(alpha) = D / (2n)."""
        result = gamma_fit._result
        alpha = 1.0 / ml_dispersion(result)
        n = len(result.y)
        assert np.log(alpha) - digamma(alpha) == pytest.approx(result.deviance / (2 * n), rel=1e-8)

    def test_gamma_ml_near_truth(self, gamma_fit):
        """The simulated dispersion is 0.25."""
        assert ml_dispersion(gamma_fit._result) == pytest.approx(0.25, abs=0.08)

    def test_invgauss_ml(self, invgauss_fit):
        """Inverse Gaussian ML estimate is D / n."""
        result = invgauss_fit._result
        assert ml_dispersion(result) == pytest.approx(result.deviance / len(result.y))

    def test_dispatch(self, gamma_fit):
        """estimate_dispersion selects by name."""
        result = gamma_fit._result
        assert estimate_dispersion(result, 'pearson') == pearson_dispersion(result)
        assert estimate_dispersion(result, 'deviance') == deviance_dispersion(result)
        assert estimate_dispersion(result, 'ml') == ml_dispersion(result)
        with pytest.raises(ValueError, match="Unknown dispersion method"):
            estimate_dispersion(result, 'huber')

    def test_no_residual_df(self, grouped_gamma):
        """A saturated model has no residual df: NaN dispersion."""
        df = grouped_gamma.groupby('g', as_index=False)['y'].mean()
        model = glm('y', ['g'], data=df, family='gamma', link='log')
        assert model.df_residual == 0
        assert np.isnan(pearson_dispersion(model._result))
        assert np.isnan(deviance_dispersion(model._result))
