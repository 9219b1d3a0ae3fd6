"""
Matplotlib figures for exploring positive data and checking GLM fits.

Every function returns a ``Figure``; the caller saves or closes it.
"""

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from matplotlib.figure import Figure
from scipy import stats
from typing import Optional, Sequence

from . import diagnostics
from .descriptive import mean_variance_slope
from .distributions import density_table


def _new_axes(figsize=(7, 5)):
    fig, ax = plt.subplots(figsize=figsize)
    ax.grid(True, alpha=0.3)
    return fig, ax


def scatter_by_group(
    data: pd.DataFrame,
    x: str,
    y: str,
    group: Optional[str] = None,
    logx: bool = False,
    logy: bool = False,
    title: Optional[str] = None,
) -> Figure:
    """
    Scatter plot of ``y`` against ``x``, one colour per group.

    Parameters
    ----------
    data : DataFrame
    x, y : str
        Column names
    group : str, optional
        Categorical column used for colours and the legend
    logx, logy : bool
        Log-scale axes
    title : str, optional
    """
    fig, ax = _new_axes()
    if group is None:
        ax.scatter(data[x], data[y], s=18, alpha=0.6, c='steelblue', edgecolors='none')
    else:
        for level, sub in data.groupby(group, observed=True):
            ax.scatter(sub[x], sub[y], s=18, alpha=0.6, edgecolors='none', label=str(level))
        ax.legend(title=group, loc='best')
    if logx:
        ax.set_xscale('log')
    if logy:
        ax.set_yscale('log')
    ax.set_xlabel(f"{x} (log scale)" if logx else x)
    ax.set_ylabel(f"{y} (log scale)" if logy else y)
    ax.set_title(title or f"{y} against {x}")
    fig.tight_layout()
    return fig


def boxplot_by_group(
    data: pd.DataFrame,
    y: str,
    group: str,
    title: Optional[str] = None,
) -> Figure:
    """Boxplots of ``y`` for each level of ``group``."""
    fig, ax = _new_axes()
    grouped = data.groupby(group, observed=True)[y]
    labels = [str(level) for level in grouped.groups]
    ax.boxplot([values.to_numpy() for _, values in grouped], tick_labels=labels)
    ax.set_xlabel(group)
    ax.set_ylabel(y)
    ax.set_title(title or f"{y} by {group}")
    fig.tight_layout()
    return fig


def mean_variance_plot(table: pd.DataFrame, title: Optional[str] = None) -> Figure:
    """
    Log group variance against log group mean with the fitted line.

    Parameters
    ----------
    table : DataFrame
        Output of ``descriptive.mean_variance``
    """
    fit = mean_variance_slope(table)
    fig, ax = _new_axes()
    ax.scatter(table['log_mean'], table['log_variance'], s=30, c='steelblue')
    xs = np.linspace(table['log_mean'].min(), table['log_mean'].max(), 50)
    ax.plot(xs, fit.intercept + fit.slope * xs, 'r--', linewidth=2,
            label=f"slope = {fit.slope:.2f} ({fit.suggested_family})")
    ax.set_xlabel('log(group mean)')
    ax.set_ylabel('log(group variance)')
    ax.set_title(title or 'Mean-variance relationship')
    ax.legend(loc='lower right')
    fig.tight_layout()
    return fig


def density_plot(
    family: str,
    means: Sequence[float],
    dispersions: Sequence[float],
    grid: Optional[np.ndarray] = None,
    title: Optional[str] = None,
) -> Figure:
    """
    Density curves for every combination of mean and dispersion.

    One panel per dispersion, one curve per mean.
    """
    table = density_table(family, means, dispersions, grid)
    disps = list(dict.fromkeys(table['dispersion']))
    fig, axes = plt.subplots(1, len(disps), figsize=(4.5 * len(disps), 4), sharey=False)
    axes = np.atleast_1d(axes)
    for ax, phi in zip(axes, disps):
        sub = table[table['dispersion'] == phi]
        for mu, curve in sub.groupby('mu', sort=False):
            ax.plot(curve['y'], curve['density'], label=f"μ = {mu:g}")
        ax.set_title(f"φ = {phi:g}")
        ax.set_xlabel('y')
        ax.grid(True, alpha=0.3)
        ax.legend(loc='upper right')
    axes[0].set_ylabel('density')
    fig.suptitle(title or f"{family} densities")
    fig.tight_layout()
    return fig


def _residuals_vs_fitted(ax, model, type):
    r = diagnostics.residuals(model, type)
    ax.scatter(model.fitted_values, r, s=14, alpha=0.6, c='steelblue', edgecolors='none')
    ax.axhline(0.0, color='red', linestyle='--', linewidth=1)
    ax.set_xlabel('Fitted values')
    ax.set_ylabel(f"{type.capitalize()} residuals")
    ax.set_title('Residuals vs fitted')
    ax.grid(True, alpha=0.3)


def _qq(ax, model, type):
    r = diagnostics.residuals(model, type)
    r = np.sort(r[np.isfinite(r)])
    q = stats.norm.ppf((np.arange(1, len(r) + 1) - 0.5) / len(r))
    ax.scatter(q, r, s=14, alpha=0.6, c='steelblue', edgecolors='none')
    lo, hi = q.min(), q.max()
    ax.plot([lo, hi], [lo, hi], 'r--', linewidth=1)
    ax.set_xlabel('Theoretical quantiles')
    ax.set_ylabel(f"{type.capitalize()} residuals")
    ax.set_title('Normal Q-Q')
    ax.grid(True, alpha=0.3)


def _working_response(ax, model):
    z = diagnostics.working_response(model)
    eta = model.linear_predictors
    ax.scatter(eta, z, s=14, alpha=0.6, c='steelblue', edgecolors='none')
    lo, hi = np.nanmin(eta), np.nanmax(eta)
    ax.plot([lo, hi], [lo, hi], 'r--', linewidth=1)
    ax.set_xlabel('Linear predictor')
    ax.set_ylabel('Working response')
    ax.set_title(f"Link check ({model.link})")
    ax.grid(True, alpha=0.3)


def _cooks(ax, model):
    d = diagnostics.cooks_distance(model)
    idx = np.arange(1, len(d) + 1)
    ax.vlines(idx, 0, d, color='steelblue', linewidth=1)
    if model.n_obs > model.rank:
        ax.axhline(stats.f.ppf(0.5, model.rank, model.n_obs - model.rank),
                   color='red', linestyle='--', linewidth=1, label='F median')
        ax.legend(loc='upper right')
    ax.set_xlabel('Observation')
    ax.set_ylabel("Cook's distance")
    ax.set_title("Cook's distance")
    ax.grid(True, alpha=0.3)


def residuals_vs_fitted(model, type: str = 'quantile') -> Figure:
    """Residuals against fitted values, quantile residuals by default."""
    fig, ax = plt.subplots(figsize=(7, 5))
    _residuals_vs_fitted(ax, model, type)
    fig.tight_layout()
    return fig


def qq_plot(model, type: str = 'quantile') -> Figure:
    """Normal Q-Q plot of residuals."""
    fig, ax = plt.subplots(figsize=(7, 5))
    _qq(ax, model, type)
    fig.tight_layout()
    return fig


def working_response_plot(model) -> Figure:
    """Working response against linear predictor; should be linear."""
    fig, ax = plt.subplots(figsize=(7, 5))
    _working_response(ax, model)
    fig.tight_layout()
    return fig


def cooks_distance_plot(model) -> Figure:
    """Cook's distance per observation."""
    fig, ax = plt.subplots(figsize=(7, 5))
    _cooks(ax, model)
    fig.tight_layout()
    return fig


def diagnostic_panel(model, title: Optional[str] = None) -> Figure:
    """
    2x2 diagnostic panel.

    Quantile residuals vs fitted, Q-Q plot of quantile residuals,
    working response vs linear predictor, Cook's distance.
    """
    fig, axes = plt.subplots(2, 2, figsize=(11, 9))
    _residuals_vs_fitted(axes[0, 0], model, 'quantile')
    _qq(axes[0, 1], model, 'quantile')
    _working_response(axes[1, 0], model)
    _cooks(axes[1, 1], model)
    fig.suptitle(title or f"{model.family.name} GLM, {model.link} link")
    fig.tight_layout()
    return fig


__all__ = [
    "scatter_by_group",
    "boxplot_by_group",
    "mean_variance_plot",
    "density_plot",
    "residuals_vs_fitted",
    "qq_plot",
    "working_response_plot",
    "cooks_distance_plot",
    "diagnostic_panel",
]
