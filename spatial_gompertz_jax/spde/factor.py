# spatial_gompertz_jax/spde/factor.py
"""
Sparse factorisation of the SPDE precision matrix.

One factorisation per objective evaluation:

    factor = factorize(Q)          # log det Q, computed once
    gmrf_neg_log_density(factor, omega)
    gmrf_neg_log_density(factor, epsilon[:, t])   for every t

The factorisation itself runs on the host (scipy SuperLU in symmetric
mode with no pivoting, i.e. a sparse LDL^T that only succeeds for
positive-definite input) behind `jax.pure_callback`. The log-determinant
is a `jax.custom_vjp` function:

    d log det Q / d Q_ij = (Q^{-1})_ji

so its cotangent is the selected inverse of Q on the sparsity pattern.
When differentiating, the forward rule computes log det Q and the selected
inverse from the same factorisation, by the Takahashi recursion over the
factor L (cost sum_j |L_j|^2, no dense columns of Q^{-1}).

Degenerate Q (non-finite values, failed or non-positive pivots) gives a
NaN log-determinant and a zero cotangent; callers test `factor.ok`.

NOTE: custom_vjp supports reverse mode only; forward-over-reverse
Hessians of the objective are not available.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache, partial
from typing import Optional

import numpy as np
import scipy.sparse as sp
from scipy.sparse.linalg import splu, SuperLU
import jax
import jax.numpy as jnp
from jax.tree_util import register_pytree_node_class

from .basis import SparsityPattern
from .precision import SparsePrecision

logger = logging.getLogger(__name__)

# Columns solved per block when the selected inverse falls back to solves.
SELINV_BLOCK = 256


def sparse_factor(pattern: SparsityPattern, values: np.ndarray) -> Optional[SuperLU]:
    """
    Factorise Q = P^T L D L^T P on the host.

    Returns None when Q is not numerically positive definite.
    """
    values = np.asarray(values, dtype=np.float64)
    if not np.all(np.isfinite(values)):
        logger.warning("precision matrix has non-finite entries; treating as degenerate")
        return None

    Q = sp.csc_matrix((values, (pattern.rows, pattern.cols)), shape=(pattern.n, pattern.n))
    try:
        lu = splu(
            Q,
            permc_spec="MMD_AT_PLUS_A",
            diag_pivot_thresh=0.0,
            options={"SymmetricMode": True},
        )
    except RuntimeError as exc:
        logger.warning("sparse factorisation failed: %s", exc)
        return None

    pivots = lu.U.diagonal()
    if not np.array_equal(lu.perm_r, lu.perm_c):
        logger.warning("sparse factorisation pivoted off the diagonal; Q is not positive definite")
        return None
    if not np.all(np.isfinite(pivots)) or pivots.min() <= pivots.max() * pattern.n * np.finfo(float).eps:
        logger.warning(
            "precision matrix is numerically singular (pivot range [%.3g, %.3g])",
            float(pivots.min()), float(pivots.max()),
        )
        return None

    logger.debug("factorised Q: n=%d nnz(L+U)=%d", pattern.n, lu.L.nnz + lu.U.nnz)
    return lu


def _logdet(lu: SuperLU) -> float:
    # Unit-diagonal L and matching row/column permutations: det Q = prod(U_ii).
    return float(np.sum(np.log(lu.U.diagonal())))


def _selected_inverse_solves(lu: SuperLU, pattern: SparsityPattern, block: int = SELINV_BLOCK) -> np.ndarray:
    """Entries of Q^{-1} at the pattern positions, via blocked column solves. O(n nnz(L))."""
    n = pattern.n
    rows, cols = pattern.rows, pattern.cols
    out = np.zeros(pattern.nnz, dtype=np.float64)
    for start in range(0, n, block):
        stop = min(start + block, n)
        rhs = np.zeros((n, stop - start))
        rhs[np.arange(start, stop), np.arange(stop - start)] = 1.0
        Z = lu.solve(rhs)
        mask = (cols >= start) & (cols < stop)
        out[mask] = Z[rows[mask], cols[mask] - start]
    return out


def _takahashi(lu: SuperLU, pattern: SparsityPattern) -> Optional[np.ndarray]:
    """
    Entries of Q^{-1} at the pattern positions by the Takahashi recursion.

    With P Q P^T = L D L^T and Z = (P Q P^T)^{-1}, for j = n-1 ... 0:

        Z_ij = -sum_{k > j} L_kj Z_ik        (i > j, L_ij != 0)
        Z_jj = 1 / d_j - sum_{k > j} L_kj Z_kj

    Only entries on the structure of L are formed, so the cost is
    sum_j |L_j|^2 rather than n solves. Returns None if the stored
    structure of L is not closed under the recursion.
    """
    n = pattern.n
    L = sp.tril(sp.csc_matrix(lu.L), k=-1, format="csc")
    L.sort_indices()
    d = lu.U.diagonal()
    indptr, indices, lval = L.indptr, L.indices, L.data

    # (col, row) keys of the strictly lower entries, ascending in csc order
    keys = np.repeat(np.arange(n, dtype=np.int64), np.diff(indptr)) * n + indices

    def locate(k, i):
        want = np.asarray(k, dtype=np.int64) * n + i
        if want.size == 0:
            return np.zeros(0, dtype=np.int64)
        if keys.size == 0:
            return None
        pos = np.minimum(np.searchsorted(keys, want), keys.size - 1)
        if not np.array_equal(keys[pos], want):
            return None
        return pos

    z = np.zeros(L.nnz)
    zdiag = np.zeros(n)
    for j in range(n - 1, -1, -1):
        lo, hi = indptr[j], indptr[j + 1]
        if lo == hi:
            zdiag[j] = 1.0 / d[j]
            continue
        r = indices[lo:hi]
        lj = lval[lo:hi]
        m = hi - lo
        S = np.diag(zdiag[r])
        if m > 1:
            a, b = np.triu_indices(m, 1)
            pos = locate(r[a], r[b])
            if pos is None:
                return None
            S[a, b] = z[pos]
            S[b, a] = z[pos]
        zcol = -(S @ lj)
        z[lo:hi] = zcol
        zdiag[j] = 1.0 / d[j] - lj @ zcol

    # Q_ab sits at (perm[a], perm[b]) of the factorised matrix.
    perm = lu.perm_r
    pa, pb = perm[pattern.rows], perm[pattern.cols]
    hi_, lo_ = np.maximum(pa, pb), np.minimum(pa, pb)
    out = np.empty(pattern.nnz, dtype=np.float64)
    on_diag = hi_ == lo_
    out[on_diag] = zdiag[hi_[on_diag]]
    pos = locate(lo_[~on_diag], hi_[~on_diag])
    if pos is None:
        return None
    out[~on_diag] = z[pos]
    return out


def selected_inverse(lu: SuperLU, pattern: SparsityPattern, block: int = SELINV_BLOCK) -> np.ndarray:
    """Entries of Q^{-1} at the pattern positions."""
    out = _takahashi(lu, pattern)
    if out is None:
        logger.debug("factor structure not closed; selected inverse by column solves")
        out = _selected_inverse_solves(lu, pattern, block)
    return out


def _host_logdet(pattern, values):
    lu = sparse_factor(pattern, values)
    val = np.nan if lu is None else _logdet(lu)
    return np.asarray(val, dtype=values.dtype)


def _host_logdet_and_selinv(pattern, values):
    lu = sparse_factor(pattern, values)
    if lu is None:
        return (
            np.asarray(np.nan, dtype=values.dtype),
            np.zeros(values.shape, dtype=values.dtype),
        )
    return (
        np.asarray(_logdet(lu), dtype=values.dtype),
        selected_inverse(lu, pattern).astype(values.dtype),
    )


@lru_cache(maxsize=32)
def _logdet_fn(pattern: SparsityPattern):
    """custom_vjp log-determinant specialised to one sparsity pattern."""

    @jax.custom_vjp
    def logdet(values):
        out = jax.ShapeDtypeStruct((), values.dtype)
        return jax.pure_callback(
            partial(_host_logdet, pattern), out, values, vmap_method="sequential"
        )

    def logdet_fwd(values):
        out = (
            jax.ShapeDtypeStruct((), values.dtype),
            jax.ShapeDtypeStruct(values.shape, values.dtype),
        )
        val, selinv = jax.pure_callback(
            partial(_host_logdet_and_selinv, pattern), out, values, vmap_method="sequential"
        )
        return val, selinv

    def logdet_bwd(selinv, g):
        return (g * selinv,)

    logdet.defvjp(logdet_fwd, logdet_bwd)
    return logdet


def sparse_logdet(Q: SparsePrecision) -> jnp.ndarray:
    """log det Q (NaN if Q is not positive definite). Differentiable in Q.values."""
    return _logdet_fn(Q.pattern)(Q.values)


@register_pytree_node_class
@dataclass(frozen=True)
class PrecisionFactor:
    """
    Result of factorising Q once for an evaluation.

    precision: the factorised Q
    logdet:    log det Q, NaN when degenerate
    """
    precision: SparsePrecision
    logdet: jnp.ndarray

    @property
    def ok(self) -> jnp.ndarray:
        return jnp.isfinite(self.logdet)

    @property
    def safe_logdet(self) -> jnp.ndarray:
        """log det Q with the degenerate case replaced by 0 (no NaN leakage)."""
        return jnp.where(self.ok, self.logdet, 0.0)

    # ---- pytree protocol ----
    def tree_flatten(self):
        return (self.precision, self.logdet), None

    @classmethod
    def tree_unflatten(cls, aux_data, children):
        return cls(precision=children[0], logdet=children[1])


def factorize(Q: SparsePrecision) -> PrecisionFactor:
    return PrecisionFactor(precision=Q, logdet=sparse_logdet(Q))


__all__ = [
    "PrecisionFactor",
    "factorize",
    "sparse_logdet",
    "sparse_factor",
    "selected_inverse",
]
