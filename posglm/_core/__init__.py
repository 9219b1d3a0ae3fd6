"""
Core algorithms (backend-agnostic).
"""

from .links import Link, get_link
from .families import Family, Gaussian, Gamma, InverseGaussian, get_family
from .lm_solver import fit_linear_model, unscaled_covariance
from .irls import irls, IRLSResult, GLMConvergenceWarning
from .dispersion import estimate_dispersion

__all__ = [
    "Link",
    "get_link",
    "Family",
    "Gaussian",
    "Gamma",
    "InverseGaussian",
    "get_family",
    "fit_linear_model",
    "unscaled_covariance",
    "irls",
    "IRLSResult",
    "GLMConvergenceWarning",
    "estimate_dispersion",
]
