"""
Worked analyses of positive continuous responses.

run_lime  - foliage biomass of lime trees (gamma GLM)
run_perm  - permeability of sheet metal (inverse Gaussian GLM)
"""

from .base import CaseStudy, Section
from .lime import run_lime
from .perm import run_perm

__all__ = [
    "CaseStudy",
    "Section",
    "run_lime",
    "run_perm",
]
