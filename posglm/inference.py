"""
Model comparison: analysis of deviance and link selection.
"""

import warnings
import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence
from scipy import stats

from ._core.families import get_family
from ._core.irls import GLMConvergenceWarning
from ._logging import get_logger
from .glm import GLM

log = get_logger(__name__)

TESTS = ('F', 'Chisq', None)


def _test_columns(table, dispersion, df_scale, test):
    dev = table['Deviance'].to_numpy(dtype=np.float64)
    df = table['Df'].to_numpy(dtype=np.float64)
    with np.errstate(invalid='ignore', divide='ignore'):
        if test == 'F':
            f = (dev / df) / dispersion
            table['F'] = f
            table['Pr(>F)'] = stats.f.sf(f, df, df_scale)
        elif test == 'Chisq':
            table['Pr(>Chi)'] = stats.chi2.sf(dev / dispersion, df)
    return table


def _sequential_anova(model: GLM, test):
    if model.design is not None:
        labels = list(model.terms)
    else:
        labels = ['X'] if model.X_values.shape[1] else []
    fits = [model.update(labels[:k]) for k in range(1, len(labels))] if model.design is not None else []
    if labels:
        fits.append(model)

    rows = [{
        'Df': np.nan,
        'Deviance': np.nan,
        'Resid. Df': model.df_null,
        'Resid. Dev': model.null_deviance,
    }]
    prev_df, prev_dev = model.df_null, model.null_deviance
    for fit in fits:
        rows.append({
            'Df': prev_df - fit.df_residual,
            'Deviance': prev_dev - fit.deviance,
            'Resid. Df': fit.df_residual,
            'Resid. Dev': fit.deviance,
        })
        prev_df, prev_dev = fit.df_residual, fit.deviance

    table = pd.DataFrame(rows, index=['NULL'] + list(labels))
    return _test_columns(table, model.pearson_dispersion, model.df_residual, test)


def anova(*models: GLM, test: Optional[str] = 'F') -> pd.DataFrame:
    """
    Analysis of deviance (like R's anova.glm).

    With one model, terms are added sequentially in the order given.
    With several nested models, each row compares a model to the one
    before it. The dispersion is the Pearson estimate of the largest
    model (smallest residual df), whatever method that model reports.

    Parameters
    ----------
    *models : GLM
        One model, or several nested models with the same family and data
    test : str or None
        'F' (dispersion estimated), 'Chisq', or None

    Returns
    -------
    DataFrame
        Columns 'Df', 'Deviance', 'Resid. Df', 'Resid. Dev' plus
        'F', 'Pr(>F)' or 'Pr(>Chi)'
    """
    if test not in TESTS:
        raise ValueError(f"test must be 'F', 'Chisq' or None, got {test!r}")
    if not models:
        raise ValueError("anova() needs at least one model")

    if len(models) == 1:
        return _sequential_anova(models[0], test)

    first = models[0]
    for m in models[1:]:
        if m.family.name != first.family.name:
            raise ValueError("models must use the same family")
        if m.n_obs != first.n_obs:
            raise ValueError("models were not all fitted to the same size of dataset")

    largest = min(models, key=lambda m: m.df_residual)
    rows = []
    for i, m in enumerate(models):
        row = {
            'Df': np.nan,
            'Deviance': np.nan,
            'Resid. Df': m.df_residual,
            'Resid. Dev': m.deviance,
        }
        if i > 0:
            prev = models[i - 1]
            row['Df'] = prev.df_residual - m.df_residual
            row['Deviance'] = prev.deviance - m.deviance
        rows.append(row)

    table = pd.DataFrame(rows, index=[f"Model {i + 1}" for i in range(len(models))])
    return _test_columns(table, largest.pearson_dispersion, largest.df_residual, test)


@dataclass
class LinkComparison:
    """Fits of one model under several links."""
    table: pd.DataFrame
    models: Dict[str, Optional[GLM]] = field(default_factory=dict)

    @property
    def converged(self) -> Dict[str, GLM]:
        """Models that fitted and converged."""
        return {k: m for k, m in self.models.items() if m is not None and m.converged}

    def best(self) -> Optional[GLM]:
        """Converged model with the smallest AIC."""
        fitted = self.converged
        if not fitted:
            return None
        return min(fitted.values(), key=lambda m: m.aic)


def compare_links(
    y,
    X,
    data=None,
    family='gamma',
    links: Sequence[str] = ('log', 'inverse', 'identity'),
    **kwargs
) -> LinkComparison:
    """
    Fit the same model under several links.

    A link whose fit fails (no valid starting values, step halving
    exhausted, ...) or does not converge is reported in the table
    rather than raised: those outcomes are part of choosing a link.

    Parameters
    ----------
    y, X, data
        As for ``glm``
    family : str
        GLM family
    links : sequence of str
        Links to try
    **kwargs
        Passed to ``GLM``

    Returns
    -------
    LinkComparison
    """
    # Invalid family/link combinations are user errors, not fit failures
    families = {link: get_family(family, link) for link in links}

    rows, models = [], {}
    for link, fam in families.items():
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always', GLMConvergenceWarning)
            try:
                model = GLM(y=y, X=X, data=data, family=fam, **kwargs)
            except (ValueError, RuntimeError, FloatingPointError, np.linalg.LinAlgError) as e:
                log.info("link fit failed", family=fam.name, link=link, error=str(e))
                models[link] = None
                rows.append({
                    'link': link,
                    'status': 'failed',
                    'converged': False,
                    'boundary': False,
                    'iterations': np.nan,
                    'deviance': np.nan,
                    'aic': np.nan,
                    'message': str(e),
                })
                continue

        messages = sorted({str(w.message) for w in caught
                           if issubclass(w.category, GLMConvergenceWarning)})
        models[link] = model
        rows.append({
            'link': link,
            'status': 'converged' if model.converged else 'not converged',
            'converged': model.converged,
            'boundary': model.boundary,
            'iterations': model.iterations,
            'deviance': model.deviance,
            'aic': model.aic,
            'message': '; '.join(messages),
        })

    table = pd.DataFrame(rows).set_index('link')
    return LinkComparison(table=table, models=models)


def compare_models(models: Dict[str, object]) -> pd.DataFrame:
    """
    Side-by-side fit statistics.

    Parameters
    ----------
    models : dict of name -> GLM or LinearModel

    Returns
    -------
    DataFrame
        family, link, df (parameters incl. dispersion), deviance, AIC, BIC,
        dispersion, converged
    """
    rows = []
    for name, m in models.items():
        family = getattr(m, 'family', None)
        n = m.n_obs
        k = m.rank + 1
        if family is not None:
            deviance, dispersion, converged = m.deviance, m.dispersion, m.converged
            aic = m.aic
        else:
            deviance = float(np.sum(m.residuals ** 2))
            dispersion, converged = m.sigma ** 2, True
            aic = m.aic
        rows.append({
            'model': name,
            'family': family.name if family is not None else 'gaussian (lm)',
            'link': family.link.name if family is not None else 'identity',
            'df': k,
            'deviance': deviance,
            'aic': aic,
            'bic': aic - 2 * k + np.log(n) * k,
            'dispersion': dispersion,
            'converged': converged,
        })
    return pd.DataFrame(rows).set_index('model')


__all__ = [
    "anova",
    "compare_links",
    "compare_models",
    "LinkComparison",
]
