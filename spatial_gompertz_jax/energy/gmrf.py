# spatial_gompertz_jax/energy/gmrf.py
"""
Zero-mean GMRF negative log-density

    -log p(x | Q) = 0.5 (x^T Q x - log det Q) + (n / 2) log(2 pi)

The normalising constant matches the TMB `GMRF` density so objective
values are comparable with fits made there.
"""
from __future__ import annotations

from dataclasses import dataclass

import jax
import jax.numpy as jnp

from .base import EnergyTerm
from ..spde.factor import PrecisionFactor, factorize
from ..spde.precision import SparsePrecision


def gmrf_neg_log_density(factor: PrecisionFactor, x: jnp.ndarray) -> jnp.ndarray:
    """Negative log-density of one vector x (n,) under an already factorised Q."""
    n = factor.precision.n
    quad = factor.precision.quad_form(x)
    return 0.5 * (quad - factor.safe_logdet) + 0.5 * n * jnp.log(2.0 * jnp.pi)


def gmrf_neg_log_density_columns(factor: PrecisionFactor, X: jnp.ndarray) -> jnp.ndarray:
    """
    Per-column negative log-densities of X (n, T), all sharing one factorisation.

    Returns shape (T,).
    """
    return jax.vmap(lambda x: gmrf_neg_log_density(factor, x), in_axes=1)(X)


@dataclass(frozen=True)
class GMRFEnergy(EnergyTerm):
    """
    Independent-columns GMRF energy.

    E(Q, x) for x of shape (n,), or the sum over columns for x of shape
    (n, T). Q is factorised once per call.
    """

    def __call__(self, Q: SparsePrecision, x: jnp.ndarray) -> jnp.ndarray:
        factor = factorize(Q)
        if x.ndim == 1:
            return gmrf_neg_log_density(factor, x)
        return jnp.sum(gmrf_neg_log_density_columns(factor, x))


__all__ = [
    "GMRFEnergy",
    "gmrf_neg_log_density",
    "gmrf_neg_log_density_columns",
]
