# spatial_gompertz_jax/models/fields.py
"""
Scaling of the raw GMRF draws into physical fields.

The GMRF priors are placed on unit-precision-scaled inputs; dividing by
tau turns them into the carrying-capacity field Omega and the process
error Epsilon on the log-density scale.
"""
from __future__ import annotations

from typing import NamedTuple

import jax.numpy as jnp

from ..core.params import GompertzParams


class ScaledFields(NamedTuple):
    eta_x: jnp.ndarray        # (n_x,)  covariate drift X_xp @ alpha
    omega_x: jnp.ndarray      # (n_x,)  carrying-capacity offset
    epsilon_xt: jnp.ndarray   # (n_x, n_t) process error
    equil_x: jnp.ndarray      # (n_x,)  equilibrium log-density


def scale_fields(params: GompertzParams, covariates: jnp.ndarray) -> ScaledFields:
    """
    eta_x   = X_xp @ alpha
    omega_x = omega_input / exp(log_tau_o)
    eps_xt  = epsilon_input / exp(log_tau_e)
    equil_x = (eta_x + omega_x) / (1 - rho)
    """
    eta_x = covariates @ params.alpha
    omega_x = params.omega_input / jnp.exp(params.log_tau_o)
    epsilon_xt = params.epsilon_input / jnp.exp(params.log_tau_e)
    equil_x = (eta_x + omega_x) / (1.0 - params.rho)
    return ScaledFields(
        eta_x=eta_x,
        omega_x=omega_x,
        epsilon_xt=epsilon_xt,
        equil_x=equil_x,
    )


__all__ = ["ScaledFields", "scale_fields"]
