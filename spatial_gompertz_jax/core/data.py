# spatial_gompertz_jax/core/data.py
"""
Data view layer.

Observations are immutable inputs to one objective evaluation; parameters
are the only thing an external optimiser varies. All index validation
happens here, at construction, so the traced objective never has to
check ranges.

Missing observations are encoded as NaN counts. They are kept in the
sequence because the state recursion still runs through them.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

import numpy as np
import jax.numpy as jnp

from ..errors import InvalidInputError

logger = logging.getLogger(__name__)


def _as_index_vector(name: str, values) -> np.ndarray:
    arr = np.asarray(values)
    if arr.ndim != 1:
        raise InvalidInputError(f"{name} must be 1-D, got shape {arr.shape}")
    if arr.size and not np.issubdtype(arr.dtype, np.integer):
        if not np.all(np.isfinite(arr)) or np.any(arr != np.round(arr)):
            raise InvalidInputError(f"{name} must contain integer indices")
    return arr.astype(np.int32)


@dataclass(frozen=True)
class SpatioTemporalData:
    """
    Count observations on an SPDE mesh over discrete time steps.

    - site: vertex index per observation (n_i,)
    - time: time-step index per observation (n_i,)
    - counts: observed value per observation (n_i,), NaN = missing
    - covariates: design matrix X_xp (n_x, n_p)

    Use `from_arrays` to build a validated instance.
    """
    site: jnp.ndarray
    time: jnp.ndarray
    counts: jnp.ndarray
    covariates: jnp.ndarray
    n_x: int
    n_t: int

    @classmethod
    def from_arrays(
        cls,
        site,
        time,
        counts,
        covariates,
        *,
        n_x: Optional[int] = None,
        n_t: Optional[int] = None,
        n_i: Optional[int] = None,
        n_p: Optional[int] = None,
    ) -> SpatioTemporalData:
        """
        Validate raw arrays and build the data view.

        Sizes that are not given are inferred: n_x from the covariate rows,
        n_t from the largest time index, n_i from the observation vectors,
        n_p from the covariate columns. Sizes that are given must agree.

        Raises
        ------
        InvalidInputError
            On shape mismatch, out-of-range indices or negative counts.
        """
        site = _as_index_vector("site", site)
        time = _as_index_vector("time", time)
        counts = np.asarray(counts, dtype=float)
        X = np.asarray(covariates, dtype=float)

        if counts.ndim != 1:
            raise InvalidInputError(f"counts must be 1-D, got shape {counts.shape}")
        if not (site.shape[0] == time.shape[0] == counts.shape[0]):
            raise InvalidInputError(
                "site, time and counts must have the same length, got "
                f"{site.shape[0]}, {time.shape[0]}, {counts.shape[0]}"
            )
        if n_i is not None and n_i != counts.shape[0]:
            raise InvalidInputError(f"n_i={n_i} but {counts.shape[0]} observations supplied")

        if X.ndim == 1:
            X = X[:, None]
        if X.ndim != 2:
            raise InvalidInputError(f"covariates must be 2-D (n_x, n_p), got shape {X.shape}")
        if n_x is None:
            n_x = X.shape[0]
        if X.shape[0] != n_x:
            raise InvalidInputError(f"covariates have {X.shape[0]} rows but n_x={n_x}")
        if n_p is not None and X.shape[1] != n_p:
            raise InvalidInputError(f"covariates have {X.shape[1]} columns but n_p={n_p}")
        if not np.all(np.isfinite(X)):
            raise InvalidInputError("covariates must be finite")

        if n_t is None:
            n_t = int(time.max()) + 1 if time.size else 1

        if site.size:
            bad = np.flatnonzero((site < 0) | (site >= n_x))
            if bad.size:
                raise InvalidInputError(
                    f"site index out of range [0, {n_x}) at observations {bad[:10].tolist()}"
                )
            bad = np.flatnonzero((time < 0) | (time >= n_t))
            if bad.size:
                raise InvalidInputError(
                    f"time index out of range [0, {n_t}) at observations {bad[:10].tolist()}"
                )

        observed = ~np.isnan(counts)
        if np.any(np.isinf(counts)):
            raise InvalidInputError("counts must be finite or NaN (missing)")
        if np.any(counts[observed] < 0):
            raise InvalidInputError("counts must be non-negative")

        logger.debug(
            "data: n_i=%d n_x=%d n_t=%d n_p=%d missing=%d",
            counts.shape[0], n_x, n_t, X.shape[1], int((~observed).sum()),
        )
        return cls(
            site=jnp.asarray(site),
            time=jnp.asarray(time),
            counts=jnp.asarray(counts),
            covariates=jnp.asarray(X),
            n_x=int(n_x),
            n_t=int(n_t),
        )

    @property
    def n_i(self) -> int:
        return int(self.counts.shape[0])

    @property
    def n_p(self) -> int:
        return int(self.covariates.shape[1])

    @property
    def observed(self) -> jnp.ndarray:
        """Boolean mask, False where the count is the missing sentinel."""
        return ~jnp.isnan(self.counts)

    def select(self, idx: Union[np.ndarray, slice, list]) -> SpatioTemporalData:
        """
        Create a view with a subset (or permutation) of the observations.

        Mesh and time sizes are kept, so indices stay valid.
        """
        idx = np.asarray(idx) if not isinstance(idx, slice) else idx
        return SpatioTemporalData(
            site=self.site[idx],
            time=self.time[idx],
            counts=self.counts[idx],
            covariates=self.covariates,
            n_x=self.n_x,
            n_t=self.n_t,
        )

    def sorted(self) -> SpatioTemporalData:
        """Observations reordered by site, then time (stable)."""
        order = np.lexsort((np.asarray(self.time), np.asarray(self.site)))
        return self.select(order)

    def __len__(self) -> int:
        return self.n_i


__all__ = ["SpatioTemporalData"]
