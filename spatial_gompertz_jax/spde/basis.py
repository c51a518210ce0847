# spatial_gompertz_jax/spde/basis.py
"""
SPDE basis matrices G0, G1, G2 on a shared sparsity pattern.

The matrices come from the (external) mesh generator and are constant for
a whole optimisation run: build the basis once and reuse it for every
objective call. Values are stored on the union pattern in canonical
row-major order so every evaluation walks the entries in the same order.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
import scipy.sparse as sp
import jax.numpy as jnp

from ..errors import InvalidInputError

logger = logging.getLogger(__name__)


class SparsityPattern:
    """
    Static (rows, cols) layout of an n x n sparse matrix.

    Hashes by identity so it can ride along as pytree aux data and key
    per-pattern caches.
    """

    __slots__ = ("rows", "cols", "n", "__weakref__")

    def __init__(self, rows: np.ndarray, cols: np.ndarray, n: int):
        self.rows = np.asarray(rows, dtype=np.int32)
        self.cols = np.asarray(cols, dtype=np.int32)
        self.n = int(n)

    @property
    def nnz(self) -> int:
        return int(self.rows.shape[0])

    @classmethod
    def from_csr(cls, M: sp.csr_matrix) -> SparsityPattern:
        M = sp.csr_matrix(M)
        M.sum_duplicates()
        M.sort_indices()
        rows = np.repeat(np.arange(M.shape[0]), np.diff(M.indptr))
        return cls(rows, M.indices.copy(), M.shape[0])

    def gather(self, M) -> np.ndarray:
        """Values of M at the pattern positions (zeros where M has no entry)."""
        M = sp.csr_matrix(M)
        return np.asarray(M[self.rows, self.cols], dtype=float).ravel()

    def __repr__(self) -> str:
        return f"SparsityPattern(n={self.n}, nnz={self.nnz})"


def _as_sparse(name: str, M) -> sp.csr_matrix:
    if sp.issparse(M):
        M = sp.csr_matrix(M, dtype=float)
    else:
        M = np.asarray(M, dtype=float)
        if M.ndim != 2:
            raise InvalidInputError(f"{name} must be a 2-D matrix, got shape {M.shape}")
        M = sp.csr_matrix(M)
    if M.shape[0] != M.shape[1]:
        raise InvalidInputError(f"{name} must be square, got shape {M.shape}")
    if M.nnz and not np.all(np.isfinite(M.data)):
        raise InvalidInputError(f"{name} has non-finite entries")
    return M


def _check_symmetric(name: str, M: sp.csr_matrix, rtol: float) -> None:
    if M.nnz == 0:
        return
    scale = max(1.0, float(abs(M).max()))
    asym = abs(M - M.T)
    if asym.nnz and float(asym.max()) > rtol * scale:
        raise InvalidInputError(f"{name} is not symmetric (max |G - G^T| = {float(asym.max()):.3g})")


@dataclass(frozen=True)
class SPDEBasis:
    """
    Values of G0, G1, G2 on one sparsity pattern.

    g0, g1, g2: (nnz,) arrays aligned with `pattern.rows` / `pattern.cols`.
    """
    g0: jnp.ndarray
    g1: jnp.ndarray
    g2: jnp.ndarray
    pattern: SparsityPattern

    @classmethod
    def from_matrices(cls, G0, G1, G2, *, rtol: float = 1e-10) -> SPDEBasis:
        """
        Build the basis from scipy sparse (or dense) matrices.

        The union pattern always contains the diagonal, which a positive
        definite Q needs.

        Raises
        ------
        InvalidInputError
            If the matrices are not square, differ in size, contain
            non-finite values or are not symmetric.
        """
        mats = [_as_sparse(name, M) for name, M in (("G0", G0), ("G1", G1), ("G2", G2))]
        n = mats[0].shape[0]
        for name, M in zip(("G1", "G2"), mats[1:]):
            if M.shape != (n, n):
                raise InvalidInputError(f"{name} has shape {M.shape}, expected {(n, n)}")
        for name, M in zip(("G0", "G1", "G2"), mats):
            _check_symmetric(name, M, rtol)

        union = abs(mats[0]) + abs(mats[1]) + abs(mats[2]) + sp.identity(n, format="csr")
        pattern = SparsityPattern.from_csr(union)
        g0, g1, g2 = (pattern.gather(M) for M in mats)
        logger.debug("SPDE basis: n=%d nnz=%d", n, pattern.nnz)
        return cls(
            g0=jnp.asarray(g0),
            g1=jnp.asarray(g1),
            g2=jnp.asarray(g2),
            pattern=pattern,
        )

    @property
    def n(self) -> int:
        return self.pattern.n


__all__ = ["SparsityPattern", "SPDEBasis"]
