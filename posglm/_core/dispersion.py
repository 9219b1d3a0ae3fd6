"""
Dispersion parameter estimators.

pearson   - Pearson statistic / residual df (R's summary.glm default)
deviance  - mean deviance, deviance / residual df
ml        - maximum likelihood given the fitted means
"""

import numpy as np
from scipy.optimize import brentq
from scipy.special import digamma


def pearson_dispersion(result) -> float:
    """Pearson estimator: Σ w (y - μ)² / V(μ) / df_residual."""
    if result.df_residual <= 0:
        return np.nan
    family = result.family
    w = result.prior_weights
    ok = w > 0
    mu = result.fitted_values
    chi2 = np.sum(w[ok] * (result.y[ok] - mu[ok]) ** 2 / family.variance(mu[ok]))
    return float(chi2 / result.df_residual)


def deviance_dispersion(result) -> float:
    """Mean deviance estimator: D / df_residual."""
    if result.df_residual <= 0:
        return np.nan
    return float(result.deviance / result.df_residual)


def _gamma_shape_ml(deviance: float, n: float) -> float:
    """Solve log(α) - ψ(α) = D / (2n) for the gamma shape α."""
    target = deviance / (2.0 * n)
    if target <= 0:
        raise ValueError("ML dispersion undefined for a zero deviance")

    def score(alpha):
        return np.log(alpha) - digamma(alpha) - target

    # log(α) - ψ(α) ≈ 1/(2α) for large α and ≈ 1/α for small α
    lower = min(1e-8, 0.1 / target)
    upper = max(1.0, 1.0 / target)
    while score(upper) > 0:
        upper *= 10.0
    return brentq(score, lower, upper, xtol=1e-12, maxiter=500)


def ml_dispersion(result) -> float:
    """
    Maximum likelihood estimator of φ given the fitted means.

    Gamma: φ = 1/α where log(α) - ψ(α) = D / (2 Σw) (MASS::gamma.shape).
    Inverse Gaussian and Gaussian: φ = D / Σw.
    """
    n = float(np.sum(result.prior_weights))
    if result.family.name == 'gamma':
        return float(1.0 / _gamma_shape_ml(result.deviance, n))
    return float(result.deviance / n)


_ESTIMATORS = {
    'pearson': pearson_dispersion,
    'deviance': deviance_dispersion,
    'ml': ml_dispersion,
}


def estimate_dispersion(result, method: str = 'pearson') -> float:
    """
    Estimate the dispersion parameter φ.

    Parameters
    ----------
    result : IRLSResult
        Fitted GLM
    method : str
        'pearson', 'deviance' or 'ml'

    Returns
    -------
    float
    """
    try:
        estimator = _ESTIMATORS[method]
    except KeyError:
        raise ValueError(
            f"Unknown dispersion method: {method!r}\n"
            f"Valid options: 'pearson', 'deviance', 'ml'"
        ) from None
    return estimator(result)


__all__ = [
    "pearson_dispersion",
    "deviance_dispersion",
    "ml_dispersion",
    "estimate_dispersion",
]
