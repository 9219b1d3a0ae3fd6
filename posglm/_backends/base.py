"""
Abstract base classes for backends.

Defines the interface all backends must implement, plus the pieces of
the weighted least-squares step they share: the singular-fit check, the
R-style pivot and the device report.
"""

from abc import ABC, abstractmethod
import numpy as np
from typing import List, Optional
from dataclasses import dataclass


# R's default tolerance for lm.fit / dqrdc2
DEFAULT_TOL = 1e-7


@dataclass
class LinearModelResult:
    """Complete weighted least-squares results."""
    coef: np.ndarray
    residuals: np.ndarray
    fitted_values: np.ndarray
    rank: int
    df_residual: int
    qr_R: np.ndarray
    qr_pivot: np.ndarray
    qr_tol: float


class BackendBase(ABC):
    """Abstract base class for all backends."""

    name: str = "base"
    precision: str = "fp64"
    kind: str = "base"

    @abstractmethod
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
        Weighted least-squares step of one IRLS iteration.

        Backends keep the whole computation in their native arrays and
        convert only at entry and exit. Zero-weight rows are dropped
        before rank detection; the intercept column is added here.

        Parameters
        ----------
        X : ndarray, shape (n, p)
            Design matrix (WITHOUT intercept)
        y : ndarray, shape (n,)
            Working response
        weights : ndarray, optional
            Working weights
        offset : ndarray, optional
            Offset subtracted from the response
        tol : float, optional
            Relative tolerance for rank determination (default 1e-7)
        singular_ok : bool
            Allow aliased columns

        Returns
        -------
        LinearModelResult
            Coefficients (NaN where aliased), R factor and 1-indexed pivot,
            all as numpy arrays
        """
        pass

    @abstractmethod
    def library_version(self) -> str:
        """Numeric library (and version) doing the work."""
        pass

    def get_device_info(self) -> dict:
        """Get backend information."""
        return {
            'backend': self.kind,
            'precision': self.precision,
            'library': self.library_version(),
        }

    @staticmethod
    def check_rank(rank: int, p: int, singular_ok: bool):
        """Raise for a rank-deficient fit when aliasing is not allowed."""
        if not singular_ok and rank < p:
            raise ValueError(f"Singular fit: rank {rank} < {p} columns")

    @staticmethod
    def r_pivot(kept: List[int], aliased: List[int]) -> np.ndarray:
        """Pivot as R reports it: 1-indexed, kept columns first."""
        return np.array(kept + aliased, dtype=np.int64) + 1

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name!r})"


class CPUBackend(BackendBase):
    """CPU backend base class (always FP64)."""

    kind = "cpu"
    device = "cpu"


class GPUBackendFP64(BackendBase):
    """GPU backend base class for FP64; reports its torch device."""

    kind = "gpu"

    def get_device_info(self) -> dict:
        info = super().get_device_info()
        info['device'] = str(self.device)
        return info
