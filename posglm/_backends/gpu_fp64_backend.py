"""
GPU backend using PyTorch with FP64 precision.

For data center GPUs: A100, H100, V100. IRLS needs double precision
for R-compatible convergence, so there is no FP32 GLM backend.
"""

import numpy as np
import warnings
from typing import Optional

from .base import GPUBackendFP64, LinearModelResult, DEFAULT_TOL


class PyTorchBackendFP64(GPUBackendFP64):
    """
    PyTorch GPU backend with FP64 precision.

    Same algorithm as the CPU backend: sequential rank detection
    followed by an economic QR of the kept columns.
    """

    def __init__(self, device: Optional[str] = None):
        """Initialize PyTorch FP64 backend."""
        self.name = "pytorch_fp64"
        self.precision = "fp64"

        try:
            import torch
            self.torch = torch
        except ImportError:
            raise ImportError(
                "PyTorch required for GPU backend. "
                "Install: pip install 'posglm[gpu]'"
            )

        if device == 'mps':
            raise RuntimeError(
                "FP64 not supported on Apple Metal. "
                "Use backend='cpu'."
            )

        if device is None:
            if torch.cuda.is_available():
                device = 'cuda'
            else:
                warnings.warn("No CUDA GPU available, using CPU")
                device = 'cpu'

        self.device = torch.device(device)

    def _sequential_rank_columns(self, X, tol):
        """Torch version of cpu_fp64_backend.sequential_rank_columns."""
        torch = self.torch
        n, p = X.shape
        basis = torch.empty((n, 0), dtype=torch.float64, device=self.device)
        kept, aliased = [], []
        for j in range(p):
            x = X[:, j]
            norm = torch.linalg.norm(x)
            if float(norm.item()) == 0.0:
                aliased.append(j)
                continue
            v = x - basis @ (basis.T @ x)
            v = v - basis @ (basis.T @ v)
            v_norm = torch.linalg.norm(v)
            if float(v_norm.item()) < tol * float(norm.item()):
                aliased.append(j)
            else:
                kept.append(j)
                basis = torch.cat([basis, (v / v_norm).unsqueeze(1)], dim=1)
        return kept, aliased

    def fit_linear_model(
        self,
        X: np.ndarray,
        y: np.ndarray,
        weights: Optional[np.ndarray] = None,
        offset: Optional[np.ndarray] = None,
        tol: Optional[float] = None,
        singular_ok: bool = True
    ) -> LinearModelResult:
        """Fit linear model on GPU with FP64 precision."""
        torch = self.torch
        y = np.asarray(y, dtype=np.float64)
        n = len(y)
        X = np.asarray(X, dtype=np.float64).reshape(n, -1)

        y_gpu = torch.from_numpy(y).to(self.device)
        X_full_gpu = torch.cat([
            torch.ones(n, 1, dtype=torch.float64, device=self.device),
            torch.from_numpy(np.ascontiguousarray(X)).to(self.device)
        ], dim=1)
        p = X_full_gpu.shape[1]

        if offset is not None:
            offset_gpu = torch.from_numpy(np.asarray(offset, dtype=np.float64)).to(self.device)
            y_work = y_gpu - offset_gpu
        else:
            y_work = y_gpu.clone()

        if weights is not None:
            weights_gpu = torch.from_numpy(np.asarray(weights, dtype=np.float64)).to(self.device)
            good = weights_gpu > 0
            n_good = int(torch.sum(good).item())

            if n_good == 0:
                raise ValueError("All weights are zero")

            w_sqrt = torch.sqrt(weights_gpu[good])
            X_work = X_full_gpu[good, :] * w_sqrt.unsqueeze(1)
            y_work = y_work[good] * w_sqrt
        else:
            X_work = X_full_gpu
            n_good = n

        if tol is None:
            tol = DEFAULT_TOL

        kept, aliased = self._sequential_rank_columns(X_work, tol)
        rank = len(kept)

        self.check_rank(rank, p, singular_ok)

        coef = torch.full((p,), float('nan'), dtype=torch.float64, device=self.device)
        R_full = np.zeros((p, p), dtype=np.float64)

        if rank > 0:
            kept_idx = torch.tensor(kept, dtype=torch.int64, device=self.device)
            Q, R = torch.linalg.qr(X_work[:, kept_idx], mode='reduced')
            coef_active = torch.linalg.solve_triangular(
                R,
                (Q.T @ y_work).unsqueeze(1),
                upper=True
            ).squeeze(1)
            coef[kept_idx] = coef_active
            R_full[:rank, :rank] = R.cpu().numpy()

        valid_coef = ~torch.isnan(coef)
        if torch.any(valid_coef):
            fitted = X_full_gpu[:, valid_coef] @ coef[valid_coef]
        else:
            fitted = torch.zeros(n, dtype=torch.float64, device=self.device)

        if offset is not None:
            fitted = fitted + offset_gpu

        residuals = y_gpu - fitted

        return LinearModelResult(
            coef=coef.cpu().numpy(),
            residuals=residuals.cpu().numpy(),
            fitted_values=fitted.cpu().numpy(),
            rank=rank,
            df_residual=n_good - rank,
            qr_R=R_full,
            qr_pivot=self.r_pivot(kept, aliased),
            qr_tol=tol
        )

    def library_version(self) -> str:
        return f'PyTorch {self.torch.__version__}'
