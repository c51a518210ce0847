# spatial_gompertz_jax/energy/objective.py
"""
Joint negative log-likelihood of the spatial Gompertz model.

    jnll = GMRF(Q)(omega_input)                       component 0
         + sum_t GMRF(Q)(epsilon_input[:, t])         component 1
         - sum_i log p(c_i | log_chat_i, theta_z)     component 2

This is a MODEL ENERGY for an external optimiser: it exposes the value,
its gradient with respect to every fixed and random effect (through JAX),
and a diagnostics report. It does not optimise anything itself.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Literal, NamedTuple, Tuple, Union

import numpy as np
import jax
import jax.numpy as jnp

from .base import EnergyTerm
from .gmrf import gmrf_neg_log_density, gmrf_neg_log_density_columns
from ..core.data import SpatioTemporalData
from ..core.params import GompertzParams
from ..errors import InvalidInputError, NumericDegeneracyError
from ..likelihoods import get as get_likelihood, masked_neg_loglik
from ..models.fields import scale_fields
from ..models.gompertz import check_ordering, log_expected_counts
from ..spde.basis import SPDEBasis
from ..spde.factor import factorize
from ..spde.matern import matern_summary, derived_sensitivities
from ..spde.precision import build_precision

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ObjectiveCFG:
    """Configuration for the joint negative log-likelihood."""

    # "poisson" / "poisson_lognormal", or the integer flags 0 / 1
    model: Union[str, int] = "poisson"

    # "keyed" = recursion on (site, time); "sequential" = previous array element
    ordering: Literal["keyed", "sequential"] = "keyed"

    # Returned instead of jnll when Q cannot be factorised
    degenerate_penalty: float = 1e10
    on_degenerate: Literal["penalty", "raise"] = "penalty"

    # Check parameter shapes / observation ordering before evaluating
    validate: bool = True
    jit: bool = True


class JNLLComponents(NamedTuple):
    omega: jnp.ndarray          # GMRF term for the carrying-capacity field
    epsilon: jnp.ndarray        # GMRF terms for the process-error columns
    observations: jnp.ndarray   # observation negative log-likelihood

    def total(self) -> jnp.ndarray:
        return self.omega + self.epsilon + self.observations


@dataclass(frozen=True)
class ObjectiveReport:
    """Diagnostics for one evaluation, all at the given parameters."""
    jnll: jnp.ndarray
    jnll_comp: jnp.ndarray          # (3,), GMRF entries NaN when degenerate
    spatial_range: jnp.ndarray
    sigma_e: jnp.ndarray
    sigma_o: jnp.ndarray
    rho: jnp.ndarray
    theta_z: jnp.ndarray
    epsilon_xt: jnp.ndarray         # (n_x, n_t)
    omega_x: jnp.ndarray            # (n_x,)
    equil_x: jnp.ndarray            # (n_x,)
    eta_x: jnp.ndarray              # (n_x,)
    log_chat_i: jnp.ndarray         # (n_i,)
    jnll_i: jnp.ndarray             # (n_i,)
    site: jnp.ndarray
    time: jnp.ndarray
    counts: jnp.ndarray
    params: GompertzParams
    degenerate: bool

    def as_dict(self) -> Dict[str, Any]:
        out = {}
        for name in self.__dataclass_fields__:
            val = getattr(self, name)
            if name == "params":
                out.update({k: np.asarray(v) for k, v in val.fixed_effects().items()})
                out.update({k: np.asarray(v) for k, v in val.random_effects().items()})
            elif name == "degenerate":
                out[name] = bool(val)
            else:
                out[name] = np.asarray(val)
        return out


class SpatialGompertzObjective(EnergyTerm):
    """
    Data-bound objective E(params) for the spatial Gompertz model.

    The data and SPDE basis are fixed at construction (validated once);
    each call builds Q(kappa), factorises it once and reuses the
    factorisation for the omega term and every epsilon column.
    """

    def __init__(
        self,
        data: SpatioTemporalData,
        basis: SPDEBasis,
        cfg: ObjectiveCFG = ObjectiveCFG(),
    ):
        if basis.n != data.n_x:
            raise InvalidInputError(
                f"SPDE basis has {basis.n} vertices but data has n_x={data.n_x}"
            )
        if cfg.ordering not in ("keyed", "sequential"):
            raise InvalidInputError(f"Unknown ordering: {cfg.ordering}. Use 'keyed' or 'sequential'")
        if cfg.on_degenerate not in ("penalty", "raise"):
            raise InvalidInputError(
                f"Unknown on_degenerate: {cfg.on_degenerate}. Use 'penalty' or 'raise'"
            )
        # Raises UnknownLikelihoodError for flags outside the registry.
        self.likelihood = get_likelihood(cfg.model)

        if cfg.ordering == "sequential" and cfg.validate:
            bad = check_ordering(data.site, data.time)
            if bad.size:
                raise InvalidInputError(
                    "observations are not ordered for the sequential recursion: "
                    f"observations {bad[:10].tolist()} are not preceded by the same "
                    "site at the previous time step (sort by site then time, or use "
                    "ordering='keyed')"
                )

        self.data = data
        self.basis = basis
        self.cfg = cfg

        wrap = jax.jit if cfg.jit else (lambda f: f)
        self._evaluate = wrap(self._evaluate_impl)
        self._value = wrap(self._value_impl)
        self._value_and_grad = wrap(jax.value_and_grad(self._value_and_ok, has_aux=True))

        logger.debug(
            "objective: model=%s ordering=%s n_i=%d n_x=%d n_t=%d nnz(Q)=%d",
            cfg.model, cfg.ordering, data.n_i, data.n_x, data.n_t, basis.pattern.nnz,
        )

    # ------------------------------------------------------------------
    # validation
    # ------------------------------------------------------------------
    def check_params(self, params: GompertzParams) -> None:
        """Shape checks; shapes are static so this also works under tracing."""
        d = self.data
        expected = {
            "alpha": (d.n_p,),
            "phi": (),
            "log_tau_e": (),
            "log_tau_o": (),
            "log_kappa": (),
            "rho": (),
            "epsilon_input": (d.n_x, d.n_t),
            "omega_input": (d.n_x,),
        }
        for name, shape in expected.items():
            got = jnp.shape(getattr(params, name))
            if got != shape:
                raise InvalidInputError(f"{name} has shape {got}, expected {shape}")
        theta_shape = jnp.shape(params.theta_z)
        if len(theta_shape) != 1 or theta_shape[0] < self.likelihood.n_theta:
            raise InvalidInputError(
                f"theta_z has shape {theta_shape}; model '{self.cfg.model}' "
                f"needs at least {self.likelihood.n_theta} entries"
            )

    # ------------------------------------------------------------------
    # pure evaluation
    # ------------------------------------------------------------------
    def _evaluate_impl(self, params: GompertzParams):
        d = self.data

        Q = build_precision(self.basis, params.log_kappa)
        factor = factorize(Q)

        jnll_omega = gmrf_neg_log_density(factor, params.omega_input)
        jnll_eps = jnp.sum(gmrf_neg_log_density_columns(factor, params.epsilon_input))

        fields = scale_fields(params, d.covariates)
        log_chat_i = log_expected_counts(
            fields, params.phi, params.rho, d.site, d.time, ordering=self.cfg.ordering
        )
        jnll_i = masked_neg_loglik(self.likelihood, d.counts, log_chat_i, params.theta_z)

        comps = JNLLComponents(
            omega=jnll_omega,
            epsilon=jnll_eps,
            observations=jnp.sum(jnll_i),
        )
        jnll = jnp.where(factor.ok, comps.total(), self.cfg.degenerate_penalty)
        # The GMRF terms have no value without log det Q.
        comps = comps._replace(
            omega=jnp.where(factor.ok, comps.omega, jnp.nan),
            epsilon=jnp.where(factor.ok, comps.epsilon, jnp.nan),
        )
        extras = {
            "fields": fields,
            "log_chat_i": log_chat_i,
            "jnll_i": jnll_i,
            "ok": factor.ok,
        }
        return jnll, comps, extras

    def _value_impl(self, params: GompertzParams) -> jnp.ndarray:
        return self._evaluate_impl(params)[0]

    def _value_and_ok(self, params: GompertzParams):
        jnll, _, extras = self._evaluate_impl(params)
        return jnll, extras["ok"]

    def _raise_if_degenerate(self, ok) -> None:
        if self.cfg.on_degenerate != "raise":
            return
        try:
            degenerate = not bool(ok)
        except jax.errors.ConcretizationTypeError:
            # Traced by an outer transformation; the penalty value stands.
            return
        if degenerate:
            raise NumericDegeneracyError(
                "precision matrix Q is not numerically positive definite "
                "(log_kappa too small or too large?)"
            )

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    def __call__(self, params: GompertzParams) -> jnp.ndarray:
        if self.cfg.validate:
            self.check_params(params)
        if self.cfg.on_degenerate == "raise":
            jnll, _, extras = self._evaluate(params)
            self._raise_if_degenerate(extras["ok"])
            return jnll
        return self._value(params)

    def components(self, params: GompertzParams) -> JNLLComponents:
        if self.cfg.validate:
            self.check_params(params)
        _, comps, extras = self._evaluate(params)
        self._raise_if_degenerate(extras["ok"])
        return comps

    def value_and_grad(self, params: GompertzParams) -> Tuple[jnp.ndarray, GompertzParams]:
        """(jnll, d jnll / d params) with the gradient as a GompertzParams."""
        if self.cfg.validate:
            self.check_params(params)
        (val, ok), grad = self._value_and_grad(params)
        self._raise_if_degenerate(ok)
        return val, grad

    def grad(self, params: GompertzParams) -> GompertzParams:
        return self.value_and_grad(params)[1]

    def report(self, params: GompertzParams) -> ObjectiveReport:
        if self.cfg.validate:
            self.check_params(params)
        jnll, comps, extras = self._evaluate(params)
        self._raise_if_degenerate(extras["ok"])
        fields = extras["fields"]
        summary = matern_summary(params.log_kappa, params.log_tau_e, params.log_tau_o)
        degenerate = not bool(extras["ok"])
        if degenerate:
            logger.warning("objective evaluated at a degenerate precision matrix; jnll is the penalty")
        return ObjectiveReport(
            jnll=jnll,
            jnll_comp=jnp.stack([comps.omega, comps.epsilon, comps.observations]),
            spatial_range=summary.spatial_range,
            sigma_e=summary.sigma_e,
            sigma_o=summary.sigma_o,
            rho=params.rho,
            theta_z=params.theta_z,
            epsilon_xt=fields.epsilon_xt,
            omega_x=fields.omega_x,
            equil_x=fields.equil_x,
            eta_x=fields.eta_x,
            log_chat_i=extras["log_chat_i"],
            jnll_i=extras["jnll_i"],
            site=self.data.site,
            time=self.data.time,
            counts=self.data.counts,
            params=params,
            degenerate=degenerate,
        )

    def sensitivities(self, params: GompertzParams):
        """Values and Jacobian of (range, SigmaE, SigmaO); see spde.matern."""
        return derived_sensitivities(params.log_kappa, params.log_tau_e, params.log_tau_o)


__all__ = [
    "ObjectiveCFG",
    "JNLLComponents",
    "ObjectiveReport",
    "SpatialGompertzObjective",
]
