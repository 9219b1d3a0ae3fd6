"""Pytest configuration and shared fixtures."""

import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from posglm.datasets import simulate_lime, simulate_perm


@pytest.fixture(scope="session")
def lime() -> pd.DataFrame:
    """Simulated lime trees with log(DBH) added."""
    df = simulate_lime(n=200, seed=1)
    df["logDBH"] = np.log(df["DBH"])
    return df


@pytest.fixture(scope="session")
def perm() -> pd.DataFrame:
    """Simulated permeability data (81 sheets)."""
    return simulate_perm(seed=1)


@pytest.fixture
def gamma_data():
    """Gamma response with log-linear mean in one covariate."""
    rng = np.random.default_rng(42)
    n = 150
    x = rng.uniform(0.0, 2.0, n)
    mu = np.exp(0.5 + 0.8 * x)
    phi = 0.25
    y = rng.gamma(shape=1.0 / phi, scale=mu * phi)
    return x, y


@pytest.fixture
def invgauss_data():
    """Inverse Gaussian response with log-linear mean in one covariate."""
    rng = np.random.default_rng(7)
    n = 150
    x = rng.uniform(0.0, 1.0, n)
    mu = np.exp(1.0 + 0.5 * x)
    phi = 0.05
    y = rng.wald(mean=mu, scale=1.0 / phi)
    return x, y


@pytest.fixture
def grouped_gamma() -> pd.DataFrame:
    """Gamma response in four groups, for saturated factor models."""
    rng = np.random.default_rng(3)
    groups = np.repeat(["a", "b", "c", "d"], 25)
    means = {"a": 1.0, "b": 2.5, "c": 4.0, "d": 0.5}
    mu = np.array([means[g] for g in groups])
    y = rng.gamma(shape=5.0, scale=mu / 5.0)
    return pd.DataFrame({"y": y, "g": groups})
