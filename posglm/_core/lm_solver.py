"""
Weighted least-squares solver.

Delegates to backend for actual computation.
"""

import numpy as np
from typing import Optional


def fit_linear_model(
    X: np.ndarray,
    y: np.ndarray,
    weights: Optional[np.ndarray] = None,
    offset: Optional[np.ndarray] = None,
    tol: Optional[float] = None,
    singular_ok: bool = True,
    backend=None,
):
    """
    Fit (weighted) linear model via backend.

    This is just a thin wrapper - backends do all the work. IRLS calls
    it once per iteration with the working response and working weights.

    Parameters
    ----------
    X : ndarray, shape (n, p)
        Design matrix (WITHOUT intercept)
    y : ndarray, shape (n,)
        Response vector
    weights : ndarray, optional
        Observation weights
    offset : ndarray, optional
        Offset term
    tol : float, optional
        Rank determination tolerance
    singular_ok : bool
        Allow singular fits
    backend : Backend, optional
        Computational backend

    Returns
    -------
    result : LinearModelResult (from backend)
        Fitted model
    """
    if backend is None:
        from .._backends import get_backend
        backend = get_backend('cpu')

    return backend.fit_linear_model(
        X, y,
        weights=weights,
        offset=offset,
        tol=tol,
        singular_ok=singular_ok
    )


def unscaled_covariance(qr_R: np.ndarray, qr_pivot: np.ndarray, rank: int, p: int) -> np.ndarray:
    """
    (X'WX)⁻¹ from a pivoted QR, with NaN rows/columns for aliased terms.

    Parameters
    ----------
    qr_R : ndarray, shape (p, p)
        R factor; the leading rank x rank block belongs to the kept columns
    qr_pivot : ndarray
        1-indexed pivot (kept columns first)
    rank : int
        Numerical rank
    p : int
        Number of coefficients (including intercept)
    """
    cov = np.full((p, p), np.nan)
    if rank == 0:
        return cov
    R = qr_R[:rank, :rank]
    R_inv = np.linalg.inv(R)
    active = R_inv @ R_inv.T
    pivot = np.asarray(qr_pivot[:rank]) - 1
    cov[np.ix_(pivot, pivot)] = active
    return cov
