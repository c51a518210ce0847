# spatial_gompertz_jax/spde/__init__.py
"""
SPDE layer: basis matrices, sparse precision, factorisation and the
Matern conversions of the SPDE parameters.
"""
from .basis import SPDEBasis, SparsityPattern
from .precision import SparsePrecision, build_precision, spde_coefficients
from .factor import PrecisionFactor, factorize, sparse_logdet
from .matern import (
    ADREPORT_QUANTITIES,
    MaternSummary,
    spatial_range,
    marginal_sd,
    matern_summary,
    derived_sensitivities,
)

__all__ = [
    "SPDEBasis",
    "SparsityPattern",
    "SparsePrecision",
    "build_precision",
    "spde_coefficients",
    "PrecisionFactor",
    "factorize",
    "sparse_logdet",
    "ADREPORT_QUANTITIES",
    "MaternSummary",
    "spatial_range",
    "marginal_sd",
    "matern_summary",
    "derived_sensitivities",
]
