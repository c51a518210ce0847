# spatial_gompertz_jax/models/__init__.py
from .fields import ScaledFields, scale_fields
from .gompertz import (
    check_ordering,
    propagate_grid,
    propagate_sequential,
    log_expected_counts,
)

__all__ = [
    "ScaledFields",
    "scale_fields",
    "check_ordering",
    "propagate_grid",
    "propagate_sequential",
    "log_expected_counts",
]
