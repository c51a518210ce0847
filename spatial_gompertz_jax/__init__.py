# spatial_gompertz_jax/__init__.py
"""
spatial-gompertz-jax: joint negative log-likelihood of a spatiotemporal
Gompertz population model with SPDE/GMRF random fields, written in JAX
so that gradients with respect to every fixed and random effect come
for free.

Layout:
  - core/         data view and parameter pytree
  - spde/         basis matrices, sparse precision, factorisation, Matern summaries
  - models/       field scaling and the Gompertz state equation
  - likelihoods/  observation models (registry)
  - energy/       GMRF energy and the aggregated objective
"""
from .errors import InvalidInputError, UnknownLikelihoodError, NumericDegeneracyError
from .core import SpatioTemporalData, GompertzParams, parameter_bounds
from .spde import SPDEBasis, build_precision, factorize, derived_sensitivities
from .energy import (
    ObjectiveCFG,
    JNLLComponents,
    ObjectiveReport,
    SpatialGompertzObjective,
)

__version__ = "0.1.0"

__all__ = [
    "InvalidInputError",
    "UnknownLikelihoodError",
    "NumericDegeneracyError",
    "SpatioTemporalData",
    "GompertzParams",
    "parameter_bounds",
    "SPDEBasis",
    "build_precision",
    "factorize",
    "derived_sensitivities",
    "ObjectiveCFG",
    "JNLLComponents",
    "ObjectiveReport",
    "SpatialGompertzObjective",
]
