"""
Case-study datasets: loading, validation and simulation.

The loaders read CSV files with the columns described in ``schemas``.
The simulators generate synthetic data with the same columns and a
known generating model, for demos and tests when the real files are
not at hand.
"""

from pathlib import Path
from typing import Dict, Union

import numpy as np
import pandas as pd

from ._logging import get_logger
from .schemas import (
    LIME_ORIGINS,
    PERM_DAYS,
    PERM_MACHINES,
    LimeSchema,
    PermSchema,
)

log = get_logger(__name__)

# Log-linear foliage model used by simulate_lime:
# log μ = a[origin] + b[origin] log(DBH)
LIME_INTERCEPTS = {"Coppice": -4.63, "Natural": -4.31, "Planted": -6.16}
LIME_SLOPES = {"Coppice": 1.84, "Natural": 1.64, "Planted": 2.42}
LIME_DISPERSION = 0.30

PERM_BASELINE = 45.0
PERM_MACHINE_EFFECTS = {"A": 0.0, "B": -0.25, "C": 0.10}
PERM_DISPERSION = 0.001


def _read_csv(path: Union[str, Path]) -> pd.DataFrame:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")
    return pd.read_csv(path)


def _as_lime(df: pd.DataFrame) -> pd.DataFrame:
    df = LimeSchema.validate(df)
    df["Origin"] = pd.Categorical(df["Origin"], categories=LIME_ORIGINS)
    return df


def _as_perm(df: pd.DataFrame) -> pd.DataFrame:
    df = PermSchema.validate(df)
    df["Day"] = pd.Categorical(df["Day"], categories=PERM_DAYS)
    df["Mach"] = pd.Categorical(df["Mach"], categories=PERM_MACHINES)
    return df


def load_lime(path: Union[str, Path]) -> pd.DataFrame:
    """
    Load and validate the lime tree data.

    Parameters
    ----------
    path : str or Path
        CSV with columns Foliage, DBH, Age, Origin

    Returns
    -------
    DataFrame
        Origin is categorical with levels Coppice, Natural, Planted

    Raises
    ------
    FileNotFoundError
        If the file does not exist
    pandera.errors.SchemaError
        If the data violate ``LimeSchema``
    """
    df = _as_lime(_read_csv(path))
    log.info("loaded lime data", path=str(path), rows=len(df))
    return df


def load_perm(path: Union[str, Path]) -> pd.DataFrame:
    """
    Load and validate the permeability data.

    Parameters
    ----------
    path : str or Path
        CSV with columns Day, Mach, Perm

    Returns
    -------
    DataFrame
        Day (levels 1-9) and Mach (levels A, B, C) are categorical
    """
    df = _as_perm(_read_csv(path))
    log.info("loaded perm data", path=str(path), rows=len(df))
    return df


def simulate_lime(n: int = 385, seed: int = 0) -> pd.DataFrame:
    """
    Simulate lime tree data from a gamma GLM with log link.

    Foliage ~ Gamma(μ, φ = 0.3) with log μ linear in log(DBH) and an
    origin-specific intercept and slope.

    Parameters
    ----------
    n : int
        Number of trees
    seed : int
        Random seed

    Returns
    -------
    DataFrame
        Same columns and types as ``load_lime``
    """
    if n < len(LIME_ORIGINS):
        raise ValueError(f"n must be at least {len(LIME_ORIGINS)}, got {n}")
    rng = np.random.default_rng(seed)

    # every origin appears at least once
    origin = np.concatenate([
        np.array(LIME_ORIGINS),
        rng.choice(LIME_ORIGINS, size=n - len(LIME_ORIGINS), p=[0.4, 0.25, 0.35]),
    ])
    rng.shuffle(origin)

    age = np.maximum(np.round(rng.gamma(shape=4.0, scale=10.0, size=n)), 2.0)
    dbh = np.round(np.exp(0.9 * np.log(age) - 0.4 + rng.normal(0.0, 0.35, size=n)), 2)
    dbh = np.maximum(dbh, 0.5)

    a = np.array([LIME_INTERCEPTS[o] for o in origin])
    b = np.array([LIME_SLOPES[o] for o in origin])
    mu = np.exp(a + b * np.log(dbh))
    foliage = rng.gamma(shape=1.0 / LIME_DISPERSION, scale=mu * LIME_DISPERSION)

    df = pd.DataFrame({
        "Foliage": foliage,
        "DBH": dbh,
        "Age": age,
        "Origin": origin,
    })
    return _as_lime(df)


def simulate_perm(replicates: int = 3, seed: int = 0) -> pd.DataFrame:
    """
    Simulate permeability data from an inverse Gaussian GLM with log link.

    Perm ~ IG(μ, φ = 0.001) with log μ = log 45 + machine + day effects,
    ``replicates`` sheets per machine and day.

    Returns
    -------
    DataFrame
        Same columns and types as ``load_perm``
    """
    if replicates < 1:
        raise ValueError(f"replicates must be >= 1, got {replicates}")
    rng = np.random.default_rng(seed)
    day_effects = dict(zip(PERM_DAYS, rng.normal(0.0, 0.15, size=len(PERM_DAYS))))

    rows = [
        (day, mach)
        for day in PERM_DAYS
        for mach in PERM_MACHINES
        for _ in range(replicates)
    ]
    day = np.array([r[0] for r in rows])
    mach = np.array([r[1] for r in rows])
    mu = PERM_BASELINE * np.exp(
        np.array([PERM_MACHINE_EFFECTS[m] for m in mach])
        + np.array([day_effects[d] for d in day])
    )
    perm = rng.wald(mean=mu, scale=1.0 / PERM_DISPERSION)

    df = pd.DataFrame({"Day": day, "Mach": mach, "Perm": perm})
    return _as_perm(df)


def write_example_data(directory: Union[str, Path], seed: int = 0) -> Dict[str, Path]:
    """
    Write simulated ``lime.csv`` and ``perm.csv`` into ``directory``.

    Returns
    -------
    dict
        {'lime': path, 'perm': path}
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    paths = {"lime": directory / "lime.csv", "perm": directory / "perm.csv"}
    simulate_lime(seed=seed).to_csv(paths["lime"], index=False)
    simulate_perm(seed=seed).to_csv(paths["perm"], index=False)
    log.info("wrote example data", directory=str(directory), seed=seed)
    return paths


__all__ = [
    "load_lime",
    "load_perm",
    "simulate_lime",
    "simulate_perm",
    "write_example_data",
]
