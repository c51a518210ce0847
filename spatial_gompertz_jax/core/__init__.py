# spatial_gompertz_jax/core/__init__.py
from .data import SpatioTemporalData
from .params import GompertzParams, parameter_bounds, FIXED_EFFECTS, RANDOM_EFFECTS

__all__ = [
    "SpatioTemporalData",
    "GompertzParams",
    "parameter_bounds",
    "FIXED_EFFECTS",
    "RANDOM_EFFECTS",
]
