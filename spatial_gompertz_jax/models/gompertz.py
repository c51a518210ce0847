# spatial_gompertz_jax/models/gompertz.py
"""
Gompertz state equation on the log scale.

    log_chat(s, 0) = phi + equil(s) + eps(s, 0)
    log_chat(s, t) = rho * log_chat(s, t-1) + (eta(s) + omega(s)) + eps(s, t)

Two ways to run it over the observations:

- "keyed": the recursion runs over the whole (site, time) grid and every
  observation reads its own cell. The previous state is always the same
  site at t-1, whatever order the observations come in.
- "sequential": the previous state is the previous observation in the
  array. Only valid when each t > 0 observation directly follows the same
  site at t-1 (see `check_ordering`). Kept to reproduce fits made with
  the positional recursion.

Both give the same numbers when the ordering holds.
"""
from __future__ import annotations

from typing import Literal

import numpy as np
import jax.numpy as jnp
from jax import lax

from .fields import ScaledFields

Ordering = Literal["keyed", "sequential"]


def check_ordering(site, time) -> np.ndarray:
    """
    Indices of observations that break the positional recursion.

    Observation i (time > 0) is fine only if observation i-1 is the same
    site at time - 1. An empty result means the sequence is safe for
    `ordering="sequential"`.
    """
    site = np.asarray(site)
    time = np.asarray(time)
    later = time > 0
    prev_ok = np.zeros(time.shape, dtype=bool)
    prev_ok[1:] = (site[1:] == site[:-1]) & (time[1:] == time[:-1] + 1)
    return np.flatnonzero(later & ~prev_ok)


def propagate_grid(fields: ScaledFields, phi, rho) -> jnp.ndarray:
    """log_chat for every (site, time) cell, shape (n_x, n_t)."""
    eps = fields.epsilon_xt
    init = phi + fields.equil_x + eps[:, 0]
    drift = fields.eta_x + fields.omega_x

    def step(prev, eps_t):
        cur = rho * prev + drift + eps_t
        return cur, cur

    _, rest = lax.scan(step, init, eps[:, 1:].T)
    return jnp.concatenate([init[:, None], rest.T], axis=1)


def propagate_sequential(fields: ScaledFields, phi, rho, site, time) -> jnp.ndarray:
    """Positional recursion over the observation array, shape (n_i,)."""
    eps = fields.epsilon_xt
    drift = fields.eta_x + fields.omega_x

    def step(prev, obs):
        s, t = obs
        first = phi + fields.equil_x[s] + eps[s, t]
        later = rho * prev + drift[s] + eps[s, t]
        cur = jnp.where(t == 0, first, later)
        return cur, cur

    carry0 = jnp.zeros((), dtype=fields.equil_x.dtype)
    _, log_chat_i = lax.scan(step, carry0, (site, time))
    return log_chat_i


def log_expected_counts(
    fields: ScaledFields,
    phi,
    rho,
    site,
    time,
    ordering: Ordering = "keyed",
) -> jnp.ndarray:
    """Per-observation log expected count, shape (n_i,)."""
    if ordering == "keyed":
        grid = propagate_grid(fields, phi, rho)
        return grid[site, time]
    if ordering == "sequential":
        return propagate_sequential(fields, phi, rho, site, time)
    raise ValueError(f"Unknown ordering: {ordering}. Use 'keyed' or 'sequential'")


__all__ = [
    "check_ordering",
    "propagate_grid",
    "propagate_sequential",
    "log_expected_counts",
]
