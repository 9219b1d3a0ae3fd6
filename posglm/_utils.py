"""
Utility functions.
"""

import numpy as np


def check_array(X, name='X', dtype=np.float64):
    """Validate array input."""
    X = np.asarray(X, dtype=dtype)
    if X.ndim != 2:
        raise ValueError(f"{name} must be 2-dimensional")
    if not np.all(np.isfinite(X)):
        raise ValueError(f"{name} contains NaN or Inf")
    return X


def check_vector(y, name='y', dtype=np.float64):
    """Validate vector input."""
    y = np.asarray(y, dtype=dtype)
    if y.ndim != 1:
        raise ValueError(f"{name} must be 1-dimensional")
    if not np.all(np.isfinite(y)):
        raise ValueError(f"{name} contains NaN or Inf")
    return y


def check_weights(weights, n, name='weights'):
    """Validate prior weights (defaults to ones)."""
    if weights is None:
        return np.ones(n, dtype=np.float64)
    weights = check_vector(weights, name=name)
    if len(weights) != n:
        raise ValueError(f"{name} has length {len(weights)}, expected {n}")
    if np.any(weights < 0):
        raise ValueError(f"negative values not allowed in {name}")
    return weights


def check_offset(offset, n, name='offset'):
    """Validate offset vector (defaults to zeros)."""
    if offset is None:
        return np.zeros(n, dtype=np.float64)
    offset = check_vector(offset, name=name)
    if len(offset) != n:
        raise ValueError(f"{name} has length {len(offset)}, expected {n}")
    return offset


def signif_stars(p):
    """R significance code for a p-value."""
    if p is None or np.isnan(p):
        return ''
    if p < 0.001:
        return '***'
    if p < 0.01:
        return '**'
    if p < 0.05:
        return '*'
    if p < 0.1:
        return '.'
    return ''


def format_pvalue(p):
    """Format a p-value the way R's summary tables do."""
    if p is None or np.isnan(p):
        return 'NA'
    return f"{p:.4f}" if p >= 0.0001 else "<.0001"
