"""
GLM family objects.

Replicates R's gaussian(), Gamma() and inverse.gaussian() families:
variance functions, deviance residuals and AIC.
"""

import numpy as np
from abc import ABC, abstractmethod
from typing import Optional, Tuple

from .links import get_link
from ..distributions import frozen


class Family(ABC):
    """Base class for GLM families."""

    default_link: str = 'identity'
    allowed_links: Tuple[str, ...] = ()

    def __init__(self, link=None):
        link = get_link(link if link is not None else self.default_link)
        if self.allowed_links and link.name not in self.allowed_links:
            raise ValueError(
                f"link {link.name!r} not available for {self.name} family; "
                f"available links are {', '.join(repr(k) for k in self.allowed_links)}"
            )
        self.link = link

    @property
    @abstractmethod
    def name(self) -> str:
        """Family name."""
        pass

    # Link delegation

    def linkfun(self, mu: np.ndarray) -> np.ndarray:
        return self.link.linkfun(mu)

    def linkinv(self, eta: np.ndarray) -> np.ndarray:
        return self.link.linkinv(eta)

    def mu_eta(self, eta: np.ndarray) -> np.ndarray:
        return self.link.mu_eta(eta)

    def valideta(self, eta: np.ndarray) -> bool:
        return self.link.valideta(eta)

    @abstractmethod
    def variance(self, mu: np.ndarray) -> np.ndarray:
        """Variance function: V(μ)"""
        pass

    @abstractmethod
    def dev_resids(
        self,
        y: np.ndarray,
        mu: np.ndarray,
        wt: np.ndarray
    ) -> np.ndarray:
        """Unit deviances times prior weights."""
        pass

    @abstractmethod
    def aic(
        self,
        y: np.ndarray,
        mu: np.ndarray,
        wt: np.ndarray,
        dev: float
    ) -> float:
        """-2 log-likelihood (+2 for an estimated dispersion), as R's family$aic."""
        pass

    def validmu(self, mu: np.ndarray) -> bool:
        """Check if μ values are valid."""
        return bool(np.all(np.isfinite(mu)))

    def initialize(self, y: np.ndarray, weights: np.ndarray) -> np.ndarray:
        """Validate the response and return starting values for μ."""
        return y.copy()

    def cdf(self, y, mu, dispersion: float) -> np.ndarray:
        """CDF of y given mean μ and dispersion φ."""
        return frozen(self.name, mu, dispersion).cdf(y)

    def sf(self, y, mu, dispersion: float) -> np.ndarray:
        """Survival function of y given mean μ and dispersion φ."""
        return frozen(self.name, mu, dispersion).sf(y)

    def logpdf(self, y, mu, dispersion: float) -> np.ndarray:
        """Log density of y given mean μ and dispersion φ."""
        return frozen(self.name, mu, dispersion).logpdf(y)

    def __repr__(self):
        return f"{type(self).__name__}(link={self.link.name!r})"


class _PositiveFamily(Family):
    """Families defined on y > 0."""

    def validmu(self, mu):
        return bool(np.all(np.isfinite(mu)) and np.all(mu > 0))

    def initialize(self, y, weights):
        if np.any(y[weights > 0] <= 0):
            raise ValueError(
                f"non-positive values not allowed for the '{self.name}' family"
            )
        return y.copy()


class Gaussian(Family):
    """Gaussian family (default identity link)."""

    default_link = 'identity'
    allowed_links = ('identity', 'log', 'inverse')

    @property
    def name(self) -> str:
        return "gaussian"

    def variance(self, mu):
        return np.ones_like(mu, dtype=np.float64)

    def dev_resids(self, y, mu, wt):
        return wt * (y - mu) ** 2

    def aic(self, y, mu, wt, dev):
        nobs = len(y)
        return nobs * (np.log(2 * np.pi * dev / nobs) + 1) + 2


class Gamma(_PositiveFamily):
    """
    Gamma family (default inverse link).

    V(μ) = μ². The dispersion φ is the squared coefficient of variation.
    """

    default_link = 'inverse'
    allowed_links = ('inverse', 'identity', 'log')

    @property
    def name(self) -> str:
        return "gamma"

    def variance(self, mu):
        return mu ** 2

    def dev_resids(self, y, mu, wt):
        ratio = np.where(y == 0, 1.0, y / mu)
        return -2 * wt * (np.log(ratio) - (y - mu) / mu)

    def aic(self, y, mu, wt, dev):
        n = np.sum(wt)
        disp = dev / n
        if disp <= 0:
            return -np.inf
        return -2 * np.sum(self.logpdf(y, mu, disp) * wt) + 2


class InverseGaussian(_PositiveFamily):
    """
    Inverse Gaussian family (default 1/mu^2 link).

    V(μ) = μ³.
    """

    default_link = '1/mu^2'
    allowed_links = ('1/mu^2', 'inverse', 'identity', 'log')

    @property
    def name(self) -> str:
        return "inverse_gaussian"

    def variance(self, mu):
        return mu ** 3

    def dev_resids(self, y, mu, wt):
        return wt * ((y - mu) ** 2) / (y * mu ** 2)

    def aic(self, y, mu, wt, dev):
        n = np.sum(wt)
        disp = dev / n
        if disp <= 0:
            return -np.inf
        return n * (np.log(disp * 2 * np.pi) + 1) + 3 * np.sum(np.log(y) * wt) + 2


_FAMILIES = {
    'gaussian': Gaussian,
    'gamma': Gamma,
    'inverse_gaussian': InverseGaussian,
    'inverse.gaussian': InverseGaussian,
}


def get_family(family, link: Optional[object] = None) -> Family:
    """
    Resolve a family by name.

    Parameters
    ----------
    family : str or Family
        'gaussian', 'gamma' or 'inverse_gaussian' (alias 'inverse.gaussian')
    link : str or Link, optional
        Link function (default: the family's canonical link)

    Returns
    -------
    Family
    """
    if isinstance(family, Family):
        if link is not None and get_link(link).name != family.link.name:
            return type(family)(link)
        return family
    try:
        cls = _FAMILIES[str(family).lower()]
    except KeyError:
        raise ValueError(
            f"Unknown family: {family!r}\n"
            f"Valid options: 'gaussian', 'gamma', 'inverse_gaussian'"
        ) from None
    return cls(link)


__all__ = ["Family", "Gaussian", "Gamma", "InverseGaussian", "get_family"]
