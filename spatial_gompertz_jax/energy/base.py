# spatial_gompertz_jax/energy/base.py
from __future__ import annotations

from typing import Protocol, runtime_checkable
import jax.numpy as jnp


@runtime_checkable
class EnergyTerm(Protocol):
    """
    Protocol for energy terms (negative log-densities).

    Design principles
    -----------------
    - An EnergyTerm represents a scalar-valued negative log-density.
    - It MUST be callable and return a scalar `jnp.ndarray` with shape ().
    - It MUST be side-effect free and deterministic.

    Canonical conventions
    ---------------------
    * GMRFEnergy:
        E(Q, x) -> scalar              (x of shape (n,) or (n, T))

    * SpatialGompertzObjective:
        E(params) -> scalar            (data and basis bound at construction)

    External optimisers MUST treat EnergyTerm as a black box.
    """

    def __call__(self, *args, **kwargs) -> jnp.ndarray:
        """
        Compute energy.

        Returns
        -------
        jnp.ndarray
            Scalar energy (shape ()).
        """
        ...
