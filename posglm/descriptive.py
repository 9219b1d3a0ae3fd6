"""
Descriptive statistics for positive continuous responses.

The mean-variance relationship is the main tool for picking a family:
if Var(y) ∝ μ^ξ, then log Var = a + ξ log μ, and

    ξ ≈ 0  -> gaussian
    ξ ≈ 1  -> poisson
    ξ ≈ 2  -> gamma
    ξ ≈ 3  -> inverse Gaussian
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import Optional, Sequence, Union

VARIANCE_POWERS = {
    0: 'gaussian',
    1: 'poisson',
    2: 'gamma',
    3: 'inverse_gaussian',
}


def _quartile(q):
    def f(x):
        return x.quantile(q)
    f.__name__ = f'q{int(q * 100)}'
    return f


def summarize(
    data: pd.DataFrame,
    response: str,
    by: Optional[Union[str, Sequence[str]]] = None,
) -> pd.DataFrame:
    """
    Numerical summary of a response, optionally by group.

    Returns
    -------
    DataFrame
        count, mean, sd, variance, min, q25, median, q75, max, cv
    """
    if response not in data.columns:
        raise ValueError(f"Unknown column: {response!r}")

    aggs = ['count', 'mean', 'std', 'var', 'min',
            _quartile(0.25), 'median', _quartile(0.75), 'max']
    if by is None:
        table = data.groupby(lambda _: 'all')[response].agg(aggs)
    else:
        table = data.groupby(by, observed=True)[response].agg(aggs)

    table = table.rename(columns={'std': 'sd', 'var': 'variance'})
    table['count'] = table['count'].astype(int)
    table['cv'] = table['sd'] / table['mean']
    return table


def bin_covariate(series: pd.Series, n_bins: int = 5) -> pd.Series:
    """
    Quantile bins of a continuous covariate.

    Used to form groups for a mean-variance plot when there is no
    natural grouping (e.g. foliage biomass by DBH).
    """
    if n_bins < 2:
        raise ValueError(f"n_bins must be >= 2, got {n_bins}")
    return pd.qcut(series, q=n_bins, duplicates='drop')


def mean_variance(
    data: pd.DataFrame,
    response: str,
    by: Union[str, Sequence[str]],
) -> pd.DataFrame:
    """
    Group means and variances, with their logs.

    Groups with fewer than two observations or zero variance are
    dropped (their log variance is undefined).
    """
    grouped = data.groupby(by, observed=True)[response]
    table = pd.DataFrame({
        'n': grouped.count(),
        'mean': grouped.mean(),
        'variance': grouped.var(),
    })
    table = table[(table['n'] >= 2) & (table['variance'] > 0)].copy()
    table['log_mean'] = np.log(table['mean'])
    table['log_variance'] = np.log(table['variance'])
    return table


@dataclass
class MeanVarianceFit:
    """Least-squares line log Var = intercept + slope log μ."""
    slope: float
    intercept: float
    suggested_family: str
    n_groups: int


def suggest_family(slope: float) -> str:
    """Family whose variance power is nearest to ``slope``."""
    if not np.isfinite(slope):
        raise ValueError(f"slope must be finite, got {slope}")
    power = min(VARIANCE_POWERS, key=lambda p: abs(p - slope))
    return VARIANCE_POWERS[power]


def mean_variance_slope(table: pd.DataFrame) -> MeanVarianceFit:
    """
    Fit log variance on log mean across groups.

    Parameters
    ----------
    table : DataFrame
        Output of ``mean_variance``

    Returns
    -------
    MeanVarianceFit
    """
    if len(table) < 2:
        raise ValueError("need at least two groups to estimate a mean-variance slope")
    slope, intercept = np.polyfit(table['log_mean'], table['log_variance'], 1)
    return MeanVarianceFit(
        slope=float(slope),
        intercept=float(intercept),
        suggested_family=suggest_family(slope),
        n_groups=len(table),
    )


__all__ = [
    "VARIANCE_POWERS",
    "summarize",
    "bin_covariate",
    "mean_variance",
    "MeanVarianceFit",
    "mean_variance_slope",
    "suggest_family",
]
