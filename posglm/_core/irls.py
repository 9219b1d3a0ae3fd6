"""
Generalized linear models via IRLS.

Replicates R's glm.fit() (src/library/stats/R/glm.R), including its
starting values, step halving and convergence criterion:

    |dev - dev_old| / (|dev| + 0.1) < epsilon
"""

import warnings
import numpy as np
from dataclasses import dataclass
from typing import Optional

from .families import Family
from .lm_solver import fit_linear_model
from .._logging import get_logger
from .._utils import check_array, check_vector, check_weights, check_offset

log = get_logger(__name__)


class GLMConvergenceWarning(UserWarning):
    """IRLS stopped without meeting the convergence criterion."""


@dataclass
class IRLSResult:
    """Results from IRLS fitting."""
    coef: np.ndarray               # Coefficients (NaN for aliased)
    fitted_values: np.ndarray      # Fitted values (μ)
    linear_predictors: np.ndarray  # Linear predictors (η, includes offset)
    working_residuals: np.ndarray  # (y - μ) / (dμ/dη)
    working_weights: np.ndarray    # IRLS weights of the final WLS step
    prior_weights: np.ndarray      # User weights
    offset: np.ndarray             # Offset

    rank: int                      # Rank of design matrix
    df_residual: int               # Residual degrees of freedom
    df_null: int                   # Null degrees of freedom

    deviance: float                # Deviance
    null_deviance: float           # Null deviance
    aic: float                     # AIC

    converged: bool                # Did IRLS converge?
    boundary: bool                 # Hit boundary during fitting?
    iterations: int                # Number of IRLS iterations

    qr_R: np.ndarray               # R of the final weighted QR
    qr_pivot: np.ndarray           # Pivot (1-indexed)

    y: np.ndarray
    family: Family


def _linear_predictor(X_full, coef, offset):
    valid = ~np.isnan(coef)
    return X_full[:, valid] @ coef[valid] + offset


def irls(
    X: np.ndarray,
    y: np.ndarray,
    family: Family,
    weights: Optional[np.ndarray] = None,
    offset: Optional[np.ndarray] = None,
    start: Optional[np.ndarray] = None,
    mustart: Optional[np.ndarray] = None,
    maxit: int = 25,
    epsilon: float = 1e-8,
    singular_ok: bool = True,
    backend=None,
    null_refit: bool = True,
) -> IRLSResult:
    """
    Fit generalized linear model by iteratively reweighted least squares.

    Parameters
    ----------
    X : ndarray, shape (n, p)
        Design matrix (WITHOUT intercept; an intercept is always fitted)
    y : ndarray, shape (n,)
        Response vector
    family : Family
        GLM family with its link
    weights : ndarray, shape (n,), optional
        Prior weights
    offset : ndarray, shape (n,), optional
        Offset term (on the linear predictor scale)
    start : ndarray, shape (p + 1,), optional
        Starting values for coefficients (intercept first)
    mustart : ndarray, shape (n,), optional
        Starting values for the mean
    maxit : int, default=25
        Maximum IRLS iterations
    epsilon : float, default=1e-8
        Convergence tolerance
    singular_ok : bool, default=True
        If False, raise error on singular fit
    backend : Backend, optional
        Computational backend for the WLS steps
    null_refit : bool, default=True
        With a non-zero offset, refit the intercept-only model for the null
        deviance. That inner fit passes False, since its own deviance is
        the null deviance.

    Returns
    -------
    result : IRLSResult

    Raises
    ------
    ValueError
        Invalid input or no valid starting values
    RuntimeError
        Step halving could not find a valid step
    """
    y = check_vector(y, name='y')
    n = len(y)
    X = check_array(np.asarray(X, dtype=np.float64).reshape(n, -1), name='X')
    weights = check_weights(weights, n)
    offset = check_offset(offset, n)
    if maxit < 1:
        raise ValueError(f"maxit must be >= 1, got {maxit}")
    if epsilon <= 0:
        raise ValueError(f"epsilon must be positive, got {epsilon}")

    if backend is None:
        from .._backends import get_backend
        backend = get_backend('cpu')

    X_full = np.column_stack([np.ones(n), X])
    nvars = X_full.shape[1]
    tol = min(1e-7, epsilon / 1000)

    if mustart is None:
        mustart = family.initialize(y, weights)
    else:
        family.initialize(y, weights)
        mustart = check_vector(mustart, name='mustart')

    coefold = None
    if start is not None:
        start = check_vector(start, name='start')
        if len(start) != nvars:
            raise ValueError(
                f"length of 'start' should equal {nvars} and correspond to "
                f"initial coefs for the intercept and {nvars - 1} columns of X"
            )
        coefold = start.copy()
        eta = X_full @ start + offset
    else:
        eta = family.linkfun(mustart)
    mu = family.linkinv(eta)

    if not (family.validmu(mu) and family.valideta(eta)):
        raise ValueError("cannot find valid starting values: please specify some")

    devold = np.sum(family.dev_resids(y, mu, weights))
    boundary = conv = False
    coef = start.copy() if start is not None else np.full(nvars, np.nan)
    fit = None
    w = np.zeros(n)
    good = weights > 0
    iteration = 0

    for iteration in range(1, maxit + 1):
        good = weights > 0
        varmu = family.variance(mu)[good]
        if np.any(np.isnan(varmu)):
            raise ValueError("NAs in V(mu)")
        if np.any(varmu == 0):
            raise ValueError("0s in V(mu)")
        mu_eta_val = family.mu_eta(eta)
        if np.any(np.isnan(mu_eta_val[good])):
            raise ValueError("NAs in d(mu)/d(eta)")

        good = (weights > 0) & (mu_eta_val != 0)
        if not np.any(good):
            conv = False
            warnings.warn(
                f"no observations informative at iteration {iteration}",
                GLMConvergenceWarning
            )
            break

        z = (eta - offset)[good] + (y - mu)[good] / mu_eta_val[good]
        w_sq = weights[good] * mu_eta_val[good] ** 2 / family.variance(mu)[good]

        fit = fit_linear_model(
            X[good], z, weights=w_sq, tol=tol,
            singular_ok=singular_ok, backend=backend
        )
        w = np.zeros(n)
        w[good] = w_sq

        start = fit.coef.copy()
        if np.any(~np.isfinite(start[~np.isnan(start)])):
            conv = False
            warnings.warn(
                f"non-finite coefficients at iteration {iteration}",
                GLMConvergenceWarning
            )
            break

        eta = _linear_predictor(X_full, start, offset)
        mu = family.linkinv(eta)
        dev = np.sum(family.dev_resids(y, mu, weights))

        # Step halving: non-finite deviance
        if not np.isfinite(dev):
            if coefold is None:
                raise ValueError(
                    "no valid set of coefficients has been found: "
                    "please supply starting values"
                )
            warnings.warn("step size truncated due to divergence", GLMConvergenceWarning)
            ii = 1
            while not np.isfinite(dev):
                if ii > maxit:
                    raise RuntimeError("inner loop 1; cannot correct step size")
                ii += 1
                start = (start + coefold) / 2
                eta = _linear_predictor(X_full, start, offset)
                mu = family.linkinv(eta)
                dev = np.sum(family.dev_resids(y, mu, weights))
            boundary = True

        # Step halving: invalid eta or mu
        if not (family.valideta(eta) and family.validmu(mu)):
            if coefold is None:
                raise ValueError(
                    "no valid set of coefficients has been found: "
                    "please supply starting values"
                )
            warnings.warn("step size truncated: out of bounds", GLMConvergenceWarning)
            ii = 1
            while not (family.valideta(eta) and family.validmu(mu)):
                if ii > maxit:
                    raise RuntimeError("inner loop 2; cannot correct step size")
                ii += 1
                start = (start + coefold) / 2
                eta = _linear_predictor(X_full, start, offset)
                mu = family.linkinv(eta)
            boundary = True
            dev = np.sum(family.dev_resids(y, mu, weights))

        log.debug("irls iteration", iteration=iteration, deviance=float(dev))

        if abs(dev - devold) / (abs(dev) + 0.1) < epsilon:
            conv = True
            coef = start
            break

        devold = dev
        coef = coefold = start

    if not conv:
        warnings.warn("glm.fit: algorithm did not converge", GLMConvergenceWarning)
        log.warning(
            "glm did not converge",
            family=family.name,
            link=family.link.name,
            iterations=iteration,
        )
    if boundary:
        warnings.warn("glm.fit: algorithm stopped at boundary value", GLMConvergenceWarning)

    residuals = (y - mu) / family.mu_eta(eta)
    dev = float(np.sum(family.dev_resids(y, mu, weights)))

    n_ok = n - int(np.sum(weights == 0))
    rank = fit.rank if fit is not None else 0

    # Null deviance
    if not null_refit:
        null_deviance = dev
    elif np.any(offset != 0):
        null_fit = irls(
            np.empty((n, 0)), y, family, weights=weights, offset=offset,
            mustart=mu, maxit=maxit, epsilon=epsilon, backend=backend,
            null_refit=False
        )
        null_deviance = null_fit.deviance
    else:
        wtdmu = np.sum(weights * y) / np.sum(weights)
        null_deviance = float(np.sum(family.dev_resids(y, np.full(n, wtdmu), weights)))

    aic = float(family.aic(y, mu, weights, dev) + 2 * rank)

    if fit is not None:
        qr_R, qr_pivot = fit.qr_R, fit.qr_pivot
    else:
        qr_R = np.zeros((nvars, nvars))
        qr_pivot = np.arange(1, nvars + 1)

    log.debug(
        "irls finished",
        family=family.name,
        link=family.link.name,
        converged=conv,
        iterations=iteration,
        deviance=dev,
    )

    return IRLSResult(
        coef=np.asarray(coef, dtype=np.float64),
        fitted_values=mu,
        linear_predictors=eta,
        working_residuals=residuals,
        working_weights=w,
        prior_weights=weights,
        offset=offset,
        rank=rank,
        df_residual=n_ok - rank,
        df_null=n_ok - 1,
        deviance=dev,
        null_deviance=null_deviance,
        aic=aic,
        converged=conv,
        boundary=boundary,
        iterations=iteration,
        qr_R=qr_R,
        qr_pivot=qr_pivot,
        y=y,
        family=family,
    )
