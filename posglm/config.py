"""
Typed analysis configuration.

Configuration is read from YAML; string values may reference
environment variables as ${VAR} or ${VAR:default}.

Example
-------
data:
  lime: ${POSGLM_DATA:data}/lime.csv
  perm: ${POSGLM_DATA:data}/perm.csv
  simulate_missing: true
  seed: 1
fit:
  maxit: 25
  epsilon: 1.0e-8
  backend: cpu
report:
  output_dir: reports
  filename: positive_glms.html
dispersion_method: pearson
log_level: INFO
"""

import os
import re
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

BACKENDS = ('auto', 'cpu', 'gpu', 'pytorch')
DISPERSION_METHODS = ('pearson', 'deviance', 'ml')
LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


class DataConfig(BaseModel):
    """Input files for the two case studies."""

    model_config = ConfigDict(frozen=True)

    lime: Optional[Path] = Field(default=None, description="Lime tree CSV")
    perm: Optional[Path] = Field(default=None, description="Permeability CSV")
    simulate_missing: bool = Field(
        default=True,
        description="Use simulated data when a file is not configured or missing",
    )
    seed: int = Field(default=0, description="Seed for simulated data")


class FitControl(BaseModel):
    """IRLS settings passed to every GLM fit."""

    model_config = ConfigDict(frozen=True)

    maxit: int = Field(default=25, ge=1, description="Maximum IRLS iterations")
    epsilon: float = Field(default=1e-8, gt=0, description="Convergence tolerance")
    backend: str = Field(default='auto', description="Computational backend")

    @field_validator('backend')
    @classmethod
    def validate_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in BACKENDS:
            raise ValueError(f"backend must be one of {BACKENDS}, got {v!r}")
        return v


class ReportConfig(BaseModel):
    """Where and how the HTML report is written."""

    model_config = ConfigDict(frozen=True)

    output_dir: Path = Field(default=Path('reports'))
    filename: str = Field(default='positive_glms.html')
    dpi: int = Field(default=110, ge=50, le=600)
    save_figures: bool = Field(
        default=False,
        description="Also write each figure as a PNG next to the report",
    )

    @property
    def path(self) -> Path:
        return self.output_dir / self.filename


class AnalysisConfig(BaseModel):
    """Complete configuration of a report run."""

    model_config = ConfigDict(frozen=True)

    data: DataConfig = Field(default_factory=DataConfig)
    fit: FitControl = Field(default_factory=FitControl)
    report: ReportConfig = Field(default_factory=ReportConfig)
    dispersion_method: str = Field(default='pearson')
    log_level: str = Field(default='INFO')

    @field_validator('dispersion_method')
    @classmethod
    def validate_dispersion_method(cls, v: str) -> str:
        if v not in DISPERSION_METHODS:
            raise ValueError(
                f"dispersion_method must be one of {DISPERSION_METHODS}, got {v!r}"
            )
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {LOG_LEVELS}, got {v!r}")
        return v


def _interpolate_env_vars(value: str) -> str:
    """Replace ${VAR} and ${VAR:default} with environment values."""
    pattern = r"\$\{([^}:]+)(?::([^}]*))?\}"

    def replacer(match):
        default = match.group(2)
        return os.environ.get(match.group(1), default if default is not None else "")

    return re.sub(pattern, replacer, value)


def _process_config_values(obj: Any) -> Any:
    if isinstance(obj, str):
        return _interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _process_config_values(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_process_config_values(item) for item in obj]
    return obj


def load_config(path: Optional[Union[str, Path]] = None) -> AnalysisConfig:
    """
    Load configuration from YAML.

    Parameters
    ----------
    path : str or Path, optional
        YAML file; without one, all defaults are used

    Returns
    -------
    AnalysisConfig

    Raises
    ------
    FileNotFoundError
        If ``path`` does not exist
    pydantic.ValidationError
        If a value is invalid
    """
    if path is None:
        return AnalysisConfig()
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    with path.open(encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config file must contain a mapping, got {type(raw).__name__}")
    return AnalysisConfig.model_validate(_process_config_values(raw))


__all__ = [
    "DataConfig",
    "FitControl",
    "ReportConfig",
    "AnalysisConfig",
    "load_config",
]
