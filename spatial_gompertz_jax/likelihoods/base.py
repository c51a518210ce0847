# spatial_gompertz_jax/likelihoods/base.py
from __future__ import annotations

import numbers
from typing import Union

import numpy as np
import jax.numpy as jnp

from ..errors import UnknownLikelihoodError

_LIKELIHOOD_REGISTRY = {}

# Integer observation-model flags used by the original analysis scripts.
_MODEL_FLAGS = {
    0: "poisson",
    1: "poisson_lognormal",
}


def register(name, likelihood):
    """
    Register a likelihood object under a string key.
    """
    if name in _LIKELIHOOD_REGISTRY:
        raise KeyError(f"Likelihood '{name}' already registered.")
    _LIKELIHOOD_REGISTRY[name] = likelihood


def get(name: Union[str, int]):
    """
    Retrieve a likelihood by name or integer flag (0=Poisson, 1=Poisson-lognormal).
    """
    if isinstance(name, (bool, np.bool_)):
        raise UnknownLikelihoodError(f"Unknown likelihood flag {name!r}.")
    if isinstance(name, numbers.Integral):
        name = int(name)
        if name not in _MODEL_FLAGS:
            raise UnknownLikelihoodError(
                f"Unknown likelihood flag {name}. "
                f"Available: {_MODEL_FLAGS}"
            )
        name = _MODEL_FLAGS[name]
    try:
        return _LIKELIHOOD_REGISTRY[name]
    except (KeyError, TypeError):
        raise UnknownLikelihoodError(
            f"Unknown likelihood '{name}'. "
            f"Available: {list(_LIKELIHOOD_REGISTRY.keys())}"
        ) from None


def available():
    return list(_LIKELIHOOD_REGISTRY.keys())


def masked_neg_loglik(likelihood, y, f, theta_z):
    """
    Per-observation negative log-likelihood with NaN counts contributing 0.

    Missing entries are swapped for a harmless placeholder before the
    likelihood is evaluated so neither the value nor the gradient sees NaN.
    """
    observed = ~jnp.isnan(y)
    y_safe = jnp.where(observed, y, 1.0)
    nll = likelihood.neg_loglik_1d(y_safe, f, theta_z)
    return jnp.where(observed, nll, 0.0)
