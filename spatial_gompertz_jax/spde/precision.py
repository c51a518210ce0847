# spatial_gompertz_jax/spde/precision.py
"""
Sparse SPDE precision matrix

    Q(kappa) = kappa^4 G0 + 2 kappa^2 G1 + G2

Q only ever exists as values on the basis pattern; products with Q are
gathers plus a segment sum, so no dense n x n intermediate is formed and
JAX differentiates through them directly.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import numpy as np
import scipy.sparse as sp
import jax
import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class

from .basis import SPDEBasis, SparsityPattern


def spde_coefficients(log_kappa) -> Tuple[jnp.ndarray, jnp.ndarray]:
    """(kappa^2, kappa^4) from log kappa."""
    kappa2 = jnp.exp(2.0 * log_kappa)
    kappa4 = kappa2 * kappa2
    return kappa2, kappa4


@register_pytree_node_class
@dataclass(frozen=True)
class SparsePrecision:
    """Symmetric sparse precision matrix stored on a fixed pattern."""
    values: jnp.ndarray
    pattern: SparsityPattern

    @property
    def n(self) -> int:
        return self.pattern.n

    def matvec(self, x: jnp.ndarray) -> jnp.ndarray:
        rows, cols = self.pattern.rows, self.pattern.cols
        return jax.ops.segment_sum(
            self.values * x[cols], rows, num_segments=self.pattern.n
        )

    def quad_form(self, x: jnp.ndarray) -> jnp.ndarray:
        """x^T Q x for a single vector x of length n."""
        rows, cols = self.pattern.rows, self.pattern.cols
        return jnp.sum(x[rows] * self.values * x[cols])

    def to_scipy(self) -> sp.csc_matrix:
        p = self.pattern
        return sp.csc_matrix(
            (np.asarray(self.values, dtype=float), (p.rows, p.cols)),
            shape=(p.n, p.n),
        )

    def todense(self) -> jnp.ndarray:
        """Dense copy. For tests and small diagnostics only."""
        p = self.pattern
        return jnp.zeros((p.n, p.n), dtype=self.values.dtype).at[p.rows, p.cols].add(self.values)

    # ---- pytree protocol ----
    def tree_flatten(self):
        return (self.values,), self.pattern

    @classmethod
    def tree_unflatten(cls, aux_data, children):
        return cls(values=children[0], pattern=aux_data)


def build_precision(basis: SPDEBasis, log_kappa) -> SparsePrecision:
    """Assemble Q = kappa^4 G0 + 2 kappa^2 G1 + G2 on the basis pattern."""
    kappa2, kappa4 = spde_coefficients(log_kappa)
    values = kappa4 * basis.g0 + 2.0 * kappa2 * basis.g1 + basis.g2
    return SparsePrecision(values=values, pattern=basis.pattern)


__all__ = ["SparsePrecision", "build_precision", "spde_coefficients"]
