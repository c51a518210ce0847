# spatial_gompertz_jax/energy/__init__.py
from __future__ import annotations

from .base import EnergyTerm
from .gmrf import GMRFEnergy, gmrf_neg_log_density, gmrf_neg_log_density_columns
from .objective import (
    ObjectiveCFG,
    JNLLComponents,
    ObjectiveReport,
    SpatialGompertzObjective,
)

__all__ = [
    "EnergyTerm",
    "GMRFEnergy",
    "gmrf_neg_log_density",
    "gmrf_neg_log_density_columns",
    "ObjectiveCFG",
    "JNLLComponents",
    "ObjectiveReport",
    "SpatialGompertzObjective",
]
