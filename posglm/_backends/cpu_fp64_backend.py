"""
CPU backend using NumPy + SciPy.

This is the reference implementation validated against R.
"""

import numpy as np
from scipy.linalg import qr, solve_triangular
from typing import Optional, List, Tuple

from .base import CPUBackend, LinearModelResult, DEFAULT_TOL


def sequential_rank_columns(X: np.ndarray, tol: float) -> Tuple[List[int], List[int]]:
    """
    Split columns into kept and aliased ones, left to right.

    Mirrors R's dqrdc2 limited pivoting: a column is aliased when the
    norm left after projecting out the kept columns falls below
    ``tol`` times its original norm. Aliased columns move to the end.
    """
    n, p = X.shape
    basis = np.empty((n, 0), dtype=np.float64)
    kept, aliased = [], []
    for j in range(p):
        x = X[:, j]
        norm = np.linalg.norm(x)
        if norm == 0.0:
            aliased.append(j)
            continue
        v = x - basis @ (basis.T @ x)
        # second pass of Gram-Schmidt for stability
        v = v - basis @ (basis.T @ v)
        v_norm = np.linalg.norm(v)
        if v_norm < tol * norm:
            aliased.append(j)
        else:
            kept.append(j)
            basis = np.column_stack([basis, v / v_norm])
    return kept, aliased


class CPUBackendFP64(CPUBackend):
    """
    CPU backend using NumPy + SciPy.

    Reference implementation for R compatibility.
    Always uses FP64 precision.
    """

    def __init__(self):
        self.name = "cpu_fp64"
        self.precision = "fp64"

    def fit_linear_model(
        self,
        X: np.ndarray,
        y: np.ndarray,
        weights: Optional[np.ndarray] = None,
        offset: Optional[np.ndarray] = None,
        tol: Optional[float] = None,
        singular_ok: bool = True
    ) -> LinearModelResult:
        """
        Fit linear model using NumPy/LAPACK.

        Complete implementation - all computation stays in NumPy.
        """
        X = np.asarray(X, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        n = len(y)
        if X.ndim == 1:
            X = X.reshape(n, -1)

        # Adjust for offset
        y_work = y - offset if offset is not None else y.copy()

        # Add intercept
        X_full = np.column_stack([np.ones(n), X])
        p = X_full.shape[1]

        # Handle weights
        if weights is not None:
            weights = np.asarray(weights, dtype=np.float64)
            good = weights > 0
            if not np.any(good):
                raise ValueError("All weights are zero")

            w_sqrt = np.sqrt(weights[good])
            X_work = X_full[good, :] * w_sqrt[:, np.newaxis]
            y_work = y_work[good] * w_sqrt
            n_good = int(np.sum(good))
        else:
            X_work = X_full
            n_good = n

        if tol is None:
            tol = DEFAULT_TOL

        kept, aliased = sequential_rank_columns(X_work, tol)
        rank = len(kept)

        self.check_rank(rank, p, singular_ok)

        coef = np.full(p, np.nan, dtype=np.float64)
        R_full = np.zeros((p, p), dtype=np.float64)

        if rank > 0:
            Q, R = qr(X_work[:, kept], mode='economic')
            coef[kept] = solve_triangular(R, Q.T @ y_work, lower=False)
            R_full[:rank, :rank] = R

        # Fitted values on the original (unweighted) scale
        valid_coef = ~np.isnan(coef)
        if np.any(valid_coef):
            fitted = X_full[:, valid_coef] @ coef[valid_coef]
        else:
            fitted = np.zeros(n, dtype=np.float64)

        if offset is not None:
            fitted = fitted + offset

        residuals = y - fitted

        return LinearModelResult(
            coef=coef,
            residuals=residuals,
            fitted_values=fitted,
            rank=rank,
            df_residual=n_good - rank,
            qr_R=R_full,
            qr_pivot=self.r_pivot(kept, aliased),
            qr_tol=tol
        )

    def library_version(self) -> str:
        import scipy
        return f'NumPy {np.__version__}, SciPy {scipy.__version__}'
