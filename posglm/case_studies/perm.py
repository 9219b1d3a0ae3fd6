"""
Permeability of building-material sheets.

Three machines, nine days, three sheets per machine and day. The
response is positive and very right skewed with variance growing fast
in the mean, which points at the inverse Gaussian family. The main
model is an inverse Gaussian GLM with log link on machine and day.
"""

import pandas as pd
from typing import Optional

from .. import plots
from .._logging import get_logger
from ..config import FitControl
from ..descriptive import mean_variance, mean_variance_slope, summarize
from ..diagnostics import influence_measures
from ..glm import glm
from ..inference import anova, compare_links, compare_models
from .base import (
    CaseStudy,
    comparison_narrative,
    fit_options,
    influence_narrative,
    levels,
    link_narrative,
    percent_change,
)

log = get_logger(__name__)

TERMS = ['Mach', 'Day']
LINKS = ('log', '1/mu^2', 'inverse', 'identity')


def run_perm(
    data: pd.DataFrame,
    control: Optional[FitControl] = None,
    dispersion_method: str = 'pearson',
) -> CaseStudy:
    """
    Run the permeability case study.

    Parameters
    ----------
    data : DataFrame
        Output of ``load_perm`` or ``simulate_perm``
    control : FitControl, optional
        IRLS settings
    dispersion_method : str
        Dispersion estimator used for inference

    Returns
    -------
    CaseStudy
    """
    control = control or FitControl()
    options = fit_options(control, dispersion_method)
    study = CaseStudy(title='Permeability of sheet metal')
    log.info("running case study", study='perm', rows=len(data))

    perm = data.copy()

    # Exploration
    study.text(
        f"The data record the permeability (s) of {len(perm)} sheets made on "
        f"{perm['Mach'].nunique()} machines over {perm['Day'].nunique()} days.",
        title='Data',
    )
    study.table(summarize(perm, 'Perm', by='Mach'), title='Permeability by machine')
    study.table(summarize(perm, 'Perm', by='Day'), title='Permeability by day')
    study.figure(plots.boxplot_by_group(perm, 'Perm', 'Mach'))
    study.figure(plots.boxplot_by_group(perm, 'Perm', 'Day'))

    mv = mean_variance(perm, 'Perm', by=['Day', 'Mach'])
    mv_fit = mean_variance_slope(mv)
    study.figure(plots.mean_variance_plot(mv, title='Permeability: variance against mean over day x machine cells'),
                 title='Mean-variance relationship')
    study.text(
        f"Across {mv_fit.n_groups} day-by-machine cells the slope of log variance "
        f"on log mean is {mv_fit.slope:.2f}, closest to the "
        f"{mv_fit.suggested_family} variance function. With three sheets per "
        f"cell the slope is noisy; gamma (V(μ) = μ²) and inverse Gaussian "
        f"(V(μ) = μ³) are both candidates."
    )
    study.figure(
        plots.density_plot('inverse_gaussian', means=[1, 2, 4], dispersions=[0.1, 0.5]),
        title='Inverse Gaussian densities',
        caption='For a fixed mean, a larger dispersion gives a sharper peak and a longer right tail.',
    )

    # Link selection
    comparison = compare_links('Perm', TERMS, data=perm, family='inverse_gaussian',
                               links=LINKS, **options)
    study.models['links'] = comparison
    study.table(comparison.table, title='Link selection: inverse Gaussian GLM, Perm ~ Mach + Day')
    study.text(link_narrative(comparison, 'inverse Gaussian'))

    model = comparison.models.get('log')
    if model is None:
        model = glm('Perm', TERMS, data=perm, family='inverse_gaussian', link='log', **options)
    study.models['inverse_gaussian_log'] = model
    study.main = 'inverse_gaussian_log'
    log.info("fitted main model", study='perm', aic=model.aic, converged=model.converged)

    # Inference
    study.table(model.coef_table(), title='Inverse Gaussian GLM with log link')
    study.table(anova(model, test='F'), title='Sequential analysis of deviance')
    study.table(model.dispersion_estimates().to_frame(), title='Dispersion estimates')
    study.text(
        f"Residual deviance {model.deviance:.5f} on {model.df_residual} df; "
        f"{dispersion_method} dispersion φ = {model.dispersion:.6f}; AIC {model.aic:.2f}."
    )

    # Diagnostics
    study.figure(plots.diagnostic_panel(model), title='Diagnostics')
    flags = influence_measures(model)
    study.text(influence_narrative(flags))

    # Interpretation
    effects = model.exp_coef()
    study.table(effects, title='Multiplicative effects exp(β)')
    machines = [name for name in model.var_names if name.startswith('Mach')]
    reference = levels(perm['Mach'])[0]
    sentences = [
        f"machine {name[len('Mach'):]} gives permeability "
        f"{percent_change(effects.loc[name, 'ratio'])} than machine {reference} "
        f"(95% CI {effects.loc[name, 'lower']:.2f} to {effects.loc[name, 'upper']:.2f} times)"
        for name in machines
    ]
    study.text(
        "Holding day fixed, " + "; ".join(sentences) + ".",
        title='Interpretation',
    )

    # Alternative family
    gamma = glm('Perm', TERMS, data=perm, family='gamma', link='log', **options)
    study.models['gamma_log'] = gamma
    table = compare_models({'inverse Gaussian (log)': model, 'gamma (log)': gamma})
    study.table(table, title='Model comparison')
    study.text(comparison_narrative(table))
    return study


__all__ = ["run_perm"]
