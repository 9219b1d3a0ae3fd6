"""
Containers for a case study and helpers shared by the narratives.
"""

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from matplotlib.figure import Figure
from typing import Any, Dict, List, Optional

SECTION_KINDS = ('text', 'table', 'figure')


@dataclass
class Section:
    """One block of a case study: a paragraph, a table or a figure."""
    kind: str
    title: Optional[str]
    content: Any
    caption: Optional[str] = None

    def __post_init__(self):
        if self.kind not in SECTION_KINDS:
            raise ValueError(
                f"Unknown section kind: {self.kind!r}\n"
                f"Valid options: {', '.join(repr(k) for k in SECTION_KINDS)}"
            )


@dataclass
class CaseStudy:
    """
    Ordered narrative of one analysis.

    Attributes
    ----------
    title : str
    sections : list of Section
        In reading order
    models : dict
        Fitted models by name, for further use after the report
    main : str, optional
        Key of the model the narrative is built on
    """
    title: str
    sections: List[Section] = field(default_factory=list)
    models: Dict[str, Any] = field(default_factory=dict)
    main: Optional[str] = None

    @property
    def main_model(self):
        return self.models.get(self.main) if self.main else None

    def text(self, content: str, title: Optional[str] = None):
        self.sections.append(Section('text', title, content))

    def table(self, content: pd.DataFrame, title: Optional[str] = None,
              caption: Optional[str] = None):
        self.sections.append(Section('table', title, content, caption))

    def figure(self, content: Figure, title: Optional[str] = None,
               caption: Optional[str] = None):
        self.sections.append(Section('figure', title, content, caption))

    @property
    def figures(self) -> List[Figure]:
        return [s.content for s in self.sections if s.kind == 'figure']

    def close(self):
        """Release all matplotlib figures."""
        for fig in self.figures:
            plt.close(fig)


def fit_options(control, dispersion_method: str) -> dict:
    """Keyword arguments for ``GLM`` from a ``FitControl``."""
    return dict(
        maxit=control.maxit,
        epsilon=control.epsilon,
        backend=control.backend,
        dispersion_method=dispersion_method,
    )


def link_narrative(comparison, family_label: str) -> str:
    """Describe which links converged and which did not."""
    table = comparison.table
    parts = []
    ok = table.index[table['status'] == 'converged'].tolist()
    if ok:
        parts.append(
            f"The {family_label} model converged with the "
            f"{', '.join(ok)} link{'s' if len(ok) > 1 else ''}."
        )
    for link, row in table[table['status'] != 'converged'].iterrows():
        if row['status'] == 'failed':
            parts.append(
                f"With the {link} link the fit failed: {row['message']}. "
                f"This link does not keep the means positive, and IRLS could "
                f"not find coefficients giving a valid mean for every observation."
            )
        else:
            parts.append(
                f"With the {link} link IRLS did not converge in "
                f"{int(row['iterations'])} iterations"
                f"{' and stopped at the boundary of the parameter space' if row['boundary'] else ''}. "
                f"Its estimates should not be used."
            )
    best = comparison.best()
    if best is not None:
        parts.append(
            f"Among the converged fits the {best.link} link has the smallest "
            f"AIC ({best.aic:.2f})."
        )
    return ' '.join(parts)


def influence_narrative(flags: pd.DataFrame) -> str:
    """Summarize the flags from ``influence_measures``."""
    n = len(flags)
    return (
        f"Of {n} observations, {int(flags['high_leverage'].sum())} have high "
        f"leverage (h > 3p/n), {int(flags['influential'].sum())} have a Cook's "
        f"distance above the median of the F(p, n - p) distribution and "
        f"{int(flags['outlier'].sum())} have a standardized residual beyond ±3."
    )


def comparison_narrative(table: pd.DataFrame, aic_column: str = 'aic') -> str:
    """Name the model with the smallest AIC."""
    aic = table[aic_column].astype(float)
    if aic.isna().all():
        return "No model has a finite AIC."
    best = aic.idxmin()
    return f"The smallest AIC ({aic[best]:.2f}) belongs to the {best} model."


def levels(series: pd.Series) -> list:
    """Levels in model order: categorical order, otherwise sorted."""
    if isinstance(series.dtype, pd.CategoricalDtype):
        return list(series.cat.categories)
    return sorted(series.unique())


def percent_change(ratio: float) -> str:
    """'12.3% higher' / '4.5% lower' for a multiplicative effect."""
    change = 100 * (ratio - 1)
    if np.isnan(change):
        return 'not estimable'
    return f"{abs(change):.1f}% {'higher' if change >= 0 else 'lower'}"


__all__ = [
    "Section",
    "CaseStudy",
]
