# spatial_gompertz_jax/errors.py
"""
Error taxonomy.

InvalidInputError       -> bad data / dimensions / flags, raised at the boundary
UnknownLikelihoodError  -> model-selection flag not in the registry
NumericDegeneracyError  -> precision matrix could not be factorised

Missing observations are not errors; see likelihoods.
"""
from __future__ import annotations


class InvalidInputError(ValueError):
    """Input rejected before any likelihood computation."""


class UnknownLikelihoodError(InvalidInputError, KeyError):
    """Unknown observation model name or flag."""

    def __str__(self) -> str:
        # KeyError quotes its message; keep it readable.
        return str(self.args[0]) if self.args else ""


class NumericDegeneracyError(FloatingPointError):
    """Sparse factorisation of Q failed (near-singular or non-finite)."""


__all__ = [
    "InvalidInputError",
    "UnknownLikelihoodError",
    "NumericDegeneracyError",
]
