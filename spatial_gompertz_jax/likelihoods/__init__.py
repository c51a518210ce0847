# spatial_gompertz_jax/likelihoods/__init__.py

from .base import register, get, available, masked_neg_loglik

from .poisson import poisson
from .poisson_lognormal import poisson_lognormal

# --------------------------------------------------
# Registry
# --------------------------------------------------
register("poisson", poisson)
register("poisson_lognormal", poisson_lognormal)

__all__ = [
    "get",
    "available",
    "masked_neg_loglik",
    "poisson",
    "poisson_lognormal",
]
