"""
GLM diagnostics: residuals, leverage and influence.

Residual definitions follow R (residuals.glm, rstandard.glm,
cooks.distance.glm) and statmod::qresid for quantile residuals.
Every function takes a fitted ``GLM``.
"""

import numpy as np
import pandas as pd
from scipy import stats
from typing import Optional

RESIDUAL_TYPES = ('response', 'pearson', 'deviance', 'working', 'quantile')


def _dispersion_per_obs(model, dispersion):
    phi = model.pearson_dispersion if dispersion is None else dispersion
    w = model.prior_weights
    with np.errstate(divide='ignore'):
        return np.where(w > 0, phi / np.where(w > 0, w, 1.0), np.nan)


def quantile_residuals(model, dispersion: Optional[float] = None) -> np.ndarray:
    """
    Quantile residuals Φ⁻¹(F(y; μ, φ)).

    Exactly standard normal under the model (up to estimation of μ and
    φ), for any continuous family.

    Parameters
    ----------
    model : GLM
        Fitted model
    dispersion : float, optional
        Dispersion φ (default: Pearson estimate)

    Returns
    -------
    ndarray
        NaN for observations with zero prior weight
    """
    y = model.y_values
    mu = model.fitted_values
    phi = _dispersion_per_obs(model, dispersion)
    ok = ~np.isnan(phi)

    res = np.full(len(y), np.nan)
    if not np.any(ok):
        return res
    cdf = model.family.cdf(y[ok], mu[ok], phi[ok])
    sf = model.family.sf(y[ok], mu[ok], phi[ok])
    # lower tail from the CDF, upper tail from the survival function
    res[ok] = np.where(cdf < 0.5, stats.norm.ppf(cdf), stats.norm.isf(sf))
    return res


def residuals(model, type: str = 'deviance') -> np.ndarray:
    """
    GLM residuals.

    Parameters
    ----------
    model : GLM
        Fitted model
    type : str
        'response', 'pearson', 'deviance', 'working' or 'quantile'

    Returns
    -------
    ndarray
    """
    y = model.y_values
    mu = model.fitted_values
    wt = model.prior_weights
    family = model.family

    if type == 'response':
        return y - mu
    if type == 'pearson':
        return (y - mu) * np.sqrt(wt) / np.sqrt(family.variance(mu))
    if type == 'deviance':
        d = np.maximum(family.dev_resids(y, mu, wt), 0.0)
        return np.sign(y - mu) * np.sqrt(d)
    if type == 'working':
        return model.working_residuals.copy()
    if type == 'quantile':
        return quantile_residuals(model)
    raise ValueError(
        f"Unknown residual type: {type!r}\n"
        f"Valid options: {', '.join(repr(t) for t in RESIDUAL_TYPES)}"
    )


def hat_values(model) -> np.ndarray:
    """Diagonal of the hat matrix W½X(X'WX)⁻¹X'W½ at convergence."""
    w = model.working_weights
    active = ~np.isnan(model.coefficients)
    Xw = np.sqrt(w)[:, np.newaxis] * model.model_matrix[:, active]
    if Xw.shape[1] == 0:
        return np.zeros(len(w))
    Q, _ = np.linalg.qr(Xw)
    return np.sum(Q ** 2, axis=1)


def standardized_residuals(model, type: str = 'deviance') -> np.ndarray:
    """
    Standardized residuals r / √(φ(1 - h)).

    Quantile residuals are already on the N(0, 1) scale and are
    divided by √(1 - h) only.
    """
    if type not in ('deviance', 'pearson', 'quantile'):
        raise ValueError(
            f"Unknown standardized residual type: {type!r}\n"
            f"Valid options: 'deviance', 'pearson', 'quantile'"
        )
    r = residuals(model, type)
    h = hat_values(model)
    scale = 1.0 if type == 'quantile' else model.dispersion
    with np.errstate(divide='ignore', invalid='ignore'):
        return r / np.sqrt(scale * (1 - h))


def cooks_distance(model) -> np.ndarray:
    """Cook's distance (r_P / (1 - h))² h / (φ p)."""
    r = residuals(model, 'pearson')
    h = hat_values(model)
    with np.errstate(divide='ignore', invalid='ignore'):
        return (r / (1 - h)) ** 2 * h / (model.dispersion * model.rank)


def working_response(model) -> np.ndarray:
    """
    Working response z = η + (y - μ) / (dμ/dη).

    Plotted against η it should look linear when the link is right.
    """
    return model.linear_predictors + model.working_residuals


def influence_measures(model, resid_threshold: float = 3.0) -> pd.DataFrame:
    """
    Leverage, Cook's distance and outlier flags per observation.

    Flags
    -----
    high_leverage : h > 3p/n
    influential : Cook's D above the median of F(p, n - p)
    outlier : |standardized deviance residual| > resid_threshold
    """
    n = model.n_obs
    p = model.rank
    h = hat_values(model)
    cooks = cooks_distance(model)
    rstd = standardized_residuals(model, 'deviance')

    frame = pd.DataFrame({
        'hat': h,
        'cooks_distance': cooks,
        'std_residual': rstd,
    }, index=model.index)
    frame['high_leverage'] = h > 3 * p / n
    if n > p:
        frame['influential'] = stats.f.cdf(cooks, p, n - p) > 0.5
    else:
        frame['influential'] = False
    frame['outlier'] = np.abs(rstd) > resid_threshold
    frame['flagged'] = frame[['high_leverage', 'influential', 'outlier']].any(axis=1)
    return frame


def diagnostic_frame(model) -> pd.DataFrame:
    """All per-observation diagnostics in one DataFrame."""
    return pd.DataFrame({
        'y': model.y_values,
        'fitted': model.fitted_values,
        'eta': model.linear_predictors,
        'working_response': working_response(model),
        'response_resid': residuals(model, 'response'),
        'pearson_resid': residuals(model, 'pearson'),
        'deviance_resid': residuals(model, 'deviance'),
        'quantile_resid': quantile_residuals(model),
        'std_deviance_resid': standardized_residuals(model, 'deviance'),
        'hat': hat_values(model),
        'cooks_distance': cooks_distance(model),
    }, index=model.index)


__all__ = [
    "RESIDUAL_TYPES",
    "residuals",
    "quantile_residuals",
    "hat_values",
    "standardized_residuals",
    "cooks_distance",
    "working_response",
    "influence_measures",
    "diagnostic_frame",
]
