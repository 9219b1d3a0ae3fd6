"""
posglm: gamma and inverse Gaussian GLMs for positive continuous data,
with R-compatible numerics.

Copyright (C) 2024 SGCX
Licensed under GPL-3.0
"""

__version__ = "1.0.0"

# Import main user-facing API
from .glm import glm, GLM
from .lm import lm, LinearModel
from ._core.families import Gamma, InverseGaussian, Gaussian, get_family
from ._core.irls import GLMConvergenceWarning
from .inference import anova, compare_links, compare_models, LinkComparison
from .diagnostics import (
    residuals,
    quantile_residuals,
    hat_values,
    standardized_residuals,
    cooks_distance,
    influence_measures,
)
from .descriptive import summarize, mean_variance, mean_variance_slope, suggest_family
from .datasets import load_lime, load_perm, simulate_lime, simulate_perm

# Import backend utilities (for advanced users)
from ._backends import get_backend, list_available_backends

__all__ = [
    'glm',
    'GLM',
    'lm',
    'LinearModel',
    'Gamma',
    'InverseGaussian',
    'Gaussian',
    'get_family',
    'GLMConvergenceWarning',
    'anova',
    'compare_links',
    'compare_models',
    'LinkComparison',
    'residuals',
    'quantile_residuals',
    'hat_values',
    'standardized_residuals',
    'cooks_distance',
    'influence_measures',
    'summarize',
    'mean_variance',
    'mean_variance_slope',
    'suggest_family',
    'load_lime',
    'load_perm',
    'simulate_lime',
    'simulate_perm',
    'get_backend',
    'list_available_backends',
]
