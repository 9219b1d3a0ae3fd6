"""
GLM link functions.

Replicates R's make.link() for the links used with positive
continuous responses.
"""

import numpy as np
from abc import ABC, abstractmethod


EPS = np.finfo(np.float64).eps


class Link(ABC):
    """Base class for link functions."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Link name (R spelling)."""
        pass

    @abstractmethod
    def linkfun(self, mu: np.ndarray) -> np.ndarray:
        """Link function: η = g(μ)"""
        pass

    @abstractmethod
    def linkinv(self, eta: np.ndarray) -> np.ndarray:
        """Inverse link: μ = g⁻¹(η)"""
        pass

    @abstractmethod
    def mu_eta(self, eta: np.ndarray) -> np.ndarray:
        """Derivative: dμ/dη"""
        pass

    def valideta(self, eta: np.ndarray) -> bool:
        """Check if η values are valid."""
        return True

    def __repr__(self):
        return f"Link({self.name!r})"


class IdentityLink(Link):

    @property
    def name(self) -> str:
        return "identity"

    def linkfun(self, mu):
        return np.asarray(mu, dtype=np.float64)

    def linkinv(self, eta):
        return np.asarray(eta, dtype=np.float64)

    def mu_eta(self, eta):
        return np.ones_like(eta, dtype=np.float64)


class LogLink(Link):
    """Log link, clamped at machine epsilon as in R."""

    @property
    def name(self) -> str:
        return "log"

    def linkfun(self, mu):
        return np.log(mu)

    def linkinv(self, eta):
        return np.maximum(np.exp(eta), EPS)

    def mu_eta(self, eta):
        return np.maximum(np.exp(eta), EPS)


class InverseLink(Link):
    """Inverse link: η = 1/μ (canonical for the gamma family)."""

    @property
    def name(self) -> str:
        return "inverse"

    def linkfun(self, mu):
        return 1.0 / mu

    def linkinv(self, eta):
        return 1.0 / eta

    def mu_eta(self, eta):
        return -1.0 / (eta ** 2)

    def valideta(self, eta):
        return bool(np.all(np.isfinite(eta)) and np.all(eta != 0))


class InverseSquaredLink(Link):
    """Inverse-squared link: η = 1/μ² (canonical for the inverse Gaussian)."""

    @property
    def name(self) -> str:
        return "1/mu^2"

    def linkfun(self, mu):
        return 1.0 / mu ** 2

    def linkinv(self, eta):
        return 1.0 / np.sqrt(eta)

    def mu_eta(self, eta):
        return -1.0 / (2.0 * eta ** 1.5)

    def valideta(self, eta):
        return bool(np.all(np.isfinite(eta)) and np.all(eta > 0))


_LINKS = {
    'identity': IdentityLink,
    'log': LogLink,
    'inverse': InverseLink,
    '1/mu^2': InverseSquaredLink,
    'inverse_squared': InverseSquaredLink,
}


def get_link(link) -> Link:
    """
    Resolve a link by name.

    Parameters
    ----------
    link : str or Link
        'identity', 'log', 'inverse', or '1/mu^2' (alias 'inverse_squared')

    Returns
    -------
    Link
    """
    if isinstance(link, Link):
        return link
    try:
        return _LINKS[link]()
    except (KeyError, TypeError):
        raise ValueError(
            f"Unknown link: {link!r}\n"
            f"Valid options: {', '.join(repr(k) for k in _LINKS)}"
        ) from None


__all__ = [
    "Link",
    "IdentityLink",
    "LogLink",
    "InverseLink",
    "InverseSquaredLink",
    "get_link",
]
