"""
Test the linear model used as the log-scale baseline.
"""

import pytest
import numpy as np

from posglm import lm, LinearModel


COEF_TOL = 1e-10      # Coefficient tolerance
STAT_TOL = 1e-8       # Statistics tolerance (R², AIC, etc.)


@pytest.fixture
def xy():
    rng = np.random.default_rng(11)
    X = rng.normal(size=(80, 2))
    y = 1.0 + X @ np.array([0.5, -2.0]) + rng.normal(scale=0.3, size=80)
    return X, y


def test_matches_lstsq(xy):
    """Coefficients, residuals and R² agree with a direct least-squares solve."""
    X, y = xy
    model = lm(y, X)
    Xf = np.column_stack([np.ones(len(y)), X])
    beta, *_ = np.linalg.lstsq(Xf, y, rcond=None)
    np.testing.assert_allclose(model.coefficients, beta, rtol=COEF_TOL, atol=COEF_TOL)
    resid = y - Xf @ beta
    np.testing.assert_allclose(model.residuals, resid, rtol=1e-8, atol=1e-10)

    tss = np.sum((y - y.mean()) ** 2)
    r2 = 1 - np.sum(resid ** 2) / tss
    assert model.r_squared == pytest.approx(r2, rel=STAT_TOL)
    assert model.df_residual == 77
    assert model.sigma == pytest.approx(np.sqrt(np.sum(resid ** 2) / 77), rel=STAT_TOL)


def test_standard_errors(xy):
    """SE from sigma² (X'X)⁻¹."""
    X, y = xy
    model = lm(y, X)
    Xf = np.column_stack([np.ones(len(y)), X])
    cov = np.linalg.inv(Xf.T @ Xf) * model.sigma ** 2
    np.testing.assert_allclose(model.std_errors, np.sqrt(np.diag(cov)), rtol=1e-8)


def test_aic_matches_r_loglik(xy):
    """AIC as R's AIC(lm): -2 logLik + 2 (p + 1)."""
    X, y = xy
    model = lm(y, X)
    n = len(y)
    rss = np.sum(model.residuals ** 2)
    loglik = -n / 2 * (np.log(2 * np.pi) + 1 - np.log(n) + np.log(rss))
    assert model.loglik == pytest.approx(loglik, rel=STAT_TOL)
    assert model.aic == pytest.approx(-2 * loglik + 2 * 4, rel=STAT_TOL)


def test_categorical_terms(lime):
    """Treatment coded factor with interaction on the log scale."""
    data = lime.assign(logFoliage=np.log(lime['Foliage']))
    model = lm('logFoliage', ['Origin', 'logDBH', 'Origin:logDBH'], data=data)
    assert model.var_names == [
        'Intercept', 'OriginNatural', 'OriginPlanted', 'logDBH',
        'OriginNatural:logDBH', 'OriginPlanted:logDBH',
    ]
    assert isinstance(model, LinearModel)
    table = model.coef_table()
    assert list(table.columns) == ['Estimate', 'Std. Error', 't value', 'Pr(>|t|)']
    ci = model.conf_int()
    assert np.all(ci['lower'] < model.coefficients)
    assert np.all(ci['upper'] > model.coefficients)


def test_predict(lime):
    """Predictions on the training data are the fitted values."""
    data = lime.assign(logFoliage=np.log(lime['Foliage']))
    model = lm('logFoliage', ['Origin', 'logDBH'], data=data)
    np.testing.assert_allclose(model.predict(data), model.fitted_values, rtol=1e-10)


def test_weights_equal_replication(xy):
    """Integer weights behave like repeated rows for the coefficients."""
    X, y = xy
    w = np.ones(len(y))
    w[:10] = 2.0
    weighted = lm(y, X, weights=w)
    repeated = lm(np.concatenate([y, y[:10]]), np.vstack([X, X[:10]]))
    np.testing.assert_allclose(weighted.coefficients, repeated.coefficients, rtol=1e-10)


def test_zero_weight_drops_row(xy):
    """A zero-weight row leaves the likelihood and R² as if it were absent."""
    X, y = xy
    w = np.ones(len(y))
    w[0] = 0.0
    weighted = lm(y, X, weights=w)
    dropped = lm(y[1:], X[1:])
    assert weighted.n_obs == len(y) - 1
    assert np.isfinite(weighted.aic)
    assert weighted.aic == pytest.approx(dropped.aic, rel=STAT_TOL)
    assert weighted.loglik == pytest.approx(dropped.loglik, rel=STAT_TOL)
    assert weighted.r_squared == pytest.approx(dropped.r_squared, rel=STAT_TOL)
    assert weighted.adj_r_squared == pytest.approx(dropped.adj_r_squared, rel=STAT_TOL)
    np.testing.assert_allclose(weighted.coefficients, dropped.coefficients, rtol=COEF_TOL)

def test_summary_and_errors(xy, capsys):
    """summary() prints and returns the text; y as a column needs data."""
    X, y = xy
    text = lm(y, X).summary()
    assert 'Residual standard error' in text
    assert 'Multiple R-squared' in capsys.readouterr().out
    with pytest.raises(ValueError, match="Must provide data"):
        lm('y', X)
