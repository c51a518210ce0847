# spatial_gompertz_jax/spde/matern.py
"""
SPDE-to-Matern parameter conversions (Lindgren, Rue & Lindstrom 2011).

For the alpha = 2 SPDE in two dimensions (Matern smoothness nu = 1):

    range          = sqrt(8 nu) / kappa
    marginal SD    = 1 / sqrt(4 pi tau^2 kappa^2)

These are reporting quantities only. They enter interval estimates through
their sensitivity to the log-scale parameters, so `derived_sensitivities`
returns the Jacobian alongside the values.
"""
from __future__ import annotations

from typing import NamedTuple

import jax
import jax.numpy as jnp

# Quantities an external caller should report with delta-method errors.
ADREPORT_QUANTITIES = ("spatial_range", "sigma_e", "sigma_o")


def spatial_range(log_kappa) -> jnp.ndarray:
    """Distance at which correlation drops to about 0.13."""
    return jnp.sqrt(8.0) / jnp.exp(log_kappa)


def marginal_sd(log_tau, log_kappa) -> jnp.ndarray:
    return 1.0 / jnp.sqrt(4.0 * jnp.pi * jnp.exp(2.0 * log_tau) * jnp.exp(2.0 * log_kappa))


class MaternSummary(NamedTuple):
    spatial_range: jnp.ndarray
    sigma_e: jnp.ndarray
    sigma_o: jnp.ndarray


def matern_summary(log_kappa, log_tau_e, log_tau_o) -> MaternSummary:
    return MaternSummary(
        spatial_range=spatial_range(log_kappa),
        sigma_e=marginal_sd(log_tau_e, log_kappa),
        sigma_o=marginal_sd(log_tau_o, log_kappa),
    )


def _summary_vector(theta: jnp.ndarray) -> jnp.ndarray:
    log_kappa, log_tau_e, log_tau_o = theta[0], theta[1], theta[2]
    return jnp.stack(matern_summary(log_kappa, log_tau_e, log_tau_o))


def derived_sensitivities(log_kappa, log_tau_e, log_tau_o):
    """
    Values and Jacobian of (range, SigmaE, SigmaO).

    Returns
    -------
    values : (3,) in ADREPORT_QUANTITIES order
    jac    : (3, 3), jac[i, j] = d value_i / d theta_j with
             theta = (log_kappa, log_tau_e, log_tau_o)
    """
    theta = jnp.stack([
        jnp.asarray(log_kappa),
        jnp.asarray(log_tau_e),
        jnp.asarray(log_tau_o),
    ]).astype(jnp.result_type(float))
    values = _summary_vector(theta)
    jac = jax.jacfwd(_summary_vector)(theta)
    return values, jac


__all__ = [
    "ADREPORT_QUANTITIES",
    "MaternSummary",
    "spatial_range",
    "marginal_sd",
    "matern_summary",
    "derived_sensitivities",
]
