"""
Model matrices from DataFrames.

Builds R-style model matrices (treatment contrasts, ``a:b`` interactions)
so models can be specified by column names::

    build_design(lime, ['Origin', 'logDBH', 'Origin:logDBH'])

The intercept is never included; backends always add it.
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from pandas.api.types import is_bool_dtype, is_numeric_dtype


def _is_categorical(series: pd.Series) -> bool:
    if isinstance(series.dtype, pd.CategoricalDtype):
        return True
    if is_bool_dtype(series):
        return True
    return not is_numeric_dtype(series)


def _levels_of(series: pd.Series) -> list:
    # categories absent from the data are dropped; the rest keep their order
    if isinstance(series.dtype, pd.CategoricalDtype):
        return list(series.cat.remove_unused_categories().cat.categories)
    return sorted(series.dropna().unique().tolist())


def _split_term(term: str) -> List[str]:
    parts = [p.strip() for p in term.split(':')]
    if not term.strip() or any(not p for p in parts):
        raise ValueError(f"Malformed term: {term!r}")
    return parts


@dataclass
class Design:
    """Encoded model matrix plus what is needed to re-encode new data."""
    X: np.ndarray
    column_names: List[str]
    terms: List[str]
    term_columns: Dict[str, List[int]]
    levels: Dict[str, list] = field(default_factory=dict)

    @property
    def variables(self) -> List[str]:
        """Data columns referenced by the terms, in first-use order."""
        seen = []
        for term in self.terms:
            for var in _split_term(term):
                if var not in seen:
                    seen.append(var)
        return seen

    def transform(self, newdata: pd.DataFrame) -> np.ndarray:
        """
        Encode new data with the levels learned at build time.

        Parameters
        ----------
        newdata : DataFrame
            Must contain every variable used by the terms

        Returns
        -------
        ndarray, shape (len(newdata), len(column_names))
        """
        X, _, _ = _encode(newdata, self.terms, self.levels)
        return X


def _block(data: pd.DataFrame, var: str, levels: Dict[str, list]):
    """Columns and names contributed by a single variable."""
    series = data[var]
    if series.isna().any():
        raise ValueError(f"column {var!r} contains missing values")

    if var in levels:
        var_levels = levels[var]
        values = series.astype(object).to_numpy()
        unseen = set(values.tolist()) - set(var_levels)
        if unseen:
            raise ValueError(
                f"column {var!r} has levels not seen when the model was built: "
                f"{sorted(map(str, unseen))}"
            )
        contrast_levels = var_levels[1:]
        cols = np.column_stack(
            [(values == lev).astype(np.float64) for lev in contrast_levels]
        ) if contrast_levels else np.empty((len(series), 0))
        names = [f"{var}{lev}" for lev in contrast_levels]
        return cols, names

    values = series.to_numpy(dtype=np.float64)
    if not np.all(np.isfinite(values)):
        raise ValueError(f"column {var!r} contains NaN or Inf")
    return values.reshape(-1, 1), [var]


def _encode(data: pd.DataFrame, terms: Sequence[str], levels: Dict[str, list]):
    n = len(data)
    blocks, names = [], []
    term_columns = {}
    col = 0
    for term in terms:
        parts = _split_term(term)
        missing = [p for p in parts if p not in data.columns]
        if missing:
            raise ValueError(f"Unknown column(s) in term {term!r}: {missing}")

        cols, cnames = np.ones((n, 1)), ['']
        for var in parts:
            b_cols, b_names = _block(data, var, levels)
            # row-wise product of every column pair, earlier factor varying fastest
            cols = np.column_stack([
                cols[:, i] * b_cols[:, j]
                for j in range(b_cols.shape[1]) for i in range(cols.shape[1])
            ]) if b_cols.shape[1] else np.empty((n, 0))
            cnames = [
                f"{cnames[i]}:{b_names[j]}" if cnames[i] else b_names[j]
                for j in range(len(b_names)) for i in range(len(cnames))
            ]

        blocks.append(cols)
        names.extend(cnames)
        term_columns[term] = list(range(col, col + len(cnames)))
        col += len(cnames)

    X = np.column_stack(blocks) if blocks else np.empty((n, 0))
    return X.reshape(n, col), names, term_columns


def build_design(data: pd.DataFrame, terms: Sequence[str]) -> Design:
    """
    Build a model matrix (without intercept) from column terms.

    Parameters
    ----------
    data : DataFrame
        Dataset
    terms : list of str
        Column names; ``'a:b'`` denotes an interaction. Categorical
        columns (category, object, bool) are treatment coded with the
        first level as reference.

    Returns
    -------
    Design

    Examples
    --------
    >>> design = build_design(perm, ['Mach', 'Day'])
    >>> design.column_names[:2]
    ['MachB', 'MachC']
    """
    if isinstance(terms, str):
        terms = [terms]
    terms = list(terms)
    if len(set(terms)) != len(terms):
        raise ValueError(f"Duplicate terms: {terms}")

    levels = {}
    for term in terms:
        for var in _split_term(term):
            if var in data.columns and var not in levels and _is_categorical(data[var]):
                levels[var] = _levels_of(data[var])

    X, names, term_columns = _encode(data, terms, levels)
    return Design(
        X=X,
        column_names=names,
        terms=terms,
        term_columns=term_columns,
        levels=levels,
    )


__all__ = ["Design", "build_design"]
