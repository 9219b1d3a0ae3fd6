"""
Pandera schemas for the case-study datasets.
"""

import pandera.pandas as pa
from pandera.typing import Series

LIME_ORIGINS = ["Coppice", "Natural", "Planted"]
PERM_MACHINES = ["A", "B", "C"]
PERM_DAYS = list(range(1, 10))


class LimeSchema(pa.DataFrameModel):
    """
    Small-leaved lime trees.

    One row per tree: foliage biomass against trunk size, age and how
    the tree originated.
    """

    Foliage: Series[float] = pa.Field(
        gt=0.0,
        description="Foliage biomass (kg, oven dried)",
    )
    DBH: Series[float] = pa.Field(
        gt=0.0,
        description="Trunk diameter at breast height (cm)",
    )
    Age: Series[float] = pa.Field(
        gt=0.0,
        description="Tree age (years)",
    )
    Origin: Series[str] = pa.Field(
        isin=LIME_ORIGINS,
        description="Coppice, Natural or Planted",
    )

    class Config:
        """Schema configuration."""

        name = "LimeSchema"
        strict = False  # Allow extra columns
        coerce = True


class PermSchema(pa.DataFrameModel):
    """
    Sheet-metal permeability.

    Three replicate measurements per machine and day.
    """

    Day: Series[int] = pa.Field(
        ge=1,
        le=9,
        description="Day of measurement (1-9)",
    )
    Mach: Series[str] = pa.Field(
        isin=PERM_MACHINES,
        description="Machine (A, B or C)",
    )
    Perm: Series[float] = pa.Field(
        gt=0.0,
        description="Permeability (s)",
    )

    class Config:
        """Schema configuration."""

        name = "PermSchema"
        strict = False
        coerce = True


__all__ = [
    "LIME_ORIGINS",
    "PERM_MACHINES",
    "PERM_DAYS",
    "LimeSchema",
    "PermSchema",
]
