# spatial_gompertz_jax/core/params.py
from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Callable, Tuple

import jax.numpy as jnp
from jax.flatten_util import ravel_pytree
from jax.tree_util import register_pytree_node_class

FIXED_EFFECTS = (
    "alpha",
    "phi",
    "log_tau_e",
    "log_tau_o",
    "log_kappa",
    "rho",
    "theta_z",
)
RANDOM_EFFECTS = ("epsilon_input", "omega_input")

# Box bounds used by the original nlminb fits.
RHO_BOUND = 0.999
FIXED_BOUND = 1000.0


@register_pytree_node_class
@dataclass(frozen=True)
class GompertzParams:
    """
    Full parameter set of the spatial Gompertz model as a pytree.

    Fixed effects
        alpha      : (n_p,) coefficients of the Gompertz drift field
        phi        : offset of the first time step from equilibrium
        log_tau_e  : log inverse-SD of the process-error field Epsilon
        log_tau_o  : log inverse-SD of the carrying-capacity field Omega
        log_kappa  : log SPDE decay, controls spatial range
        rho        : autocorrelation (density dependence)
        theta_z    : observation-model nuisance parameters

    Random effects (raw, unscaled GMRF draws)
        epsilon_input : (n_x, n_t)
        omega_input   : (n_x,)

    Gradients of the objective come back as a GompertzParams.
    """

    alpha: jnp.ndarray = field(default_factory=lambda: jnp.zeros(1))
    phi: jnp.ndarray = field(default_factory=lambda: jnp.array(0.0))
    log_tau_e: jnp.ndarray = field(default_factory=lambda: jnp.array(1.0))
    log_tau_o: jnp.ndarray = field(default_factory=lambda: jnp.array(1.0))
    log_kappa: jnp.ndarray = field(default_factory=lambda: jnp.array(0.0))
    rho: jnp.ndarray = field(default_factory=lambda: jnp.array(0.5))
    theta_z: jnp.ndarray = field(default_factory=lambda: jnp.zeros(2))
    epsilon_input: jnp.ndarray = field(default_factory=lambda: jnp.zeros((1, 1)))
    omega_input: jnp.ndarray = field(default_factory=lambda: jnp.zeros(1))

    @classmethod
    def initial(cls, n_x: int, n_t: int, n_p: int = 1, n_theta: int = 2, **overrides) -> GompertzParams:
        """
        Starting values sized for a problem; random effects start at zero.

        Any field may be overridden by keyword.
        """
        params = cls(
            alpha=jnp.zeros(n_p),
            theta_z=jnp.zeros(n_theta),
            epsilon_input=jnp.zeros((n_x, n_t)),
            omega_input=jnp.zeros(n_x),
        )
        return params.replace(**overrides) if overrides else params

    def replace(self, **changes) -> GompertzParams:
        changes = {k: jnp.asarray(v) for k, v in changes.items()}
        return replace(self, **changes)

    def fixed_effects(self) -> dict:
        return {name: getattr(self, name) for name in FIXED_EFFECTS}

    def random_effects(self) -> dict:
        return {name: getattr(self, name) for name in RANDOM_EFFECTS}

    def ravel(self) -> Tuple[jnp.ndarray, Callable[[jnp.ndarray], GompertzParams]]:
        """Flat vector view for optimisers that want 1-D arrays."""
        return ravel_pytree(self)

    # ---- pytree protocol ----
    def tree_flatten(self):
        children = (
            self.alpha,
            self.phi,
            self.log_tau_e,
            self.log_tau_o,
            self.log_kappa,
            self.rho,
            self.theta_z,
            self.epsilon_input,
            self.omega_input,
        )
        aux_data = None
        return children, aux_data

    @classmethod
    def tree_unflatten(cls, aux_data, children):
        return cls(
            alpha=children[0],
            phi=children[1],
            log_tau_e=children[2],
            log_tau_o=children[3],
            log_kappa=children[4],
            rho=children[5],
            theta_z=children[6],
            epsilon_input=children[7],
            omega_input=children[8],
        )


def parameter_bounds(params: GompertzParams) -> Tuple[GompertzParams, GompertzParams]:
    """
    Lower and upper box bounds shaped like `params`.

    rho is kept inside (-1, 1) so the equilibrium (eta + omega) / (1 - rho)
    stays finite; the other fixed effects get wide finite bounds and the
    random effects are unbounded.
    """
    def full(x, v):
        return jnp.full(jnp.shape(x), v)

    lower = GompertzParams(
        alpha=full(params.alpha, -FIXED_BOUND),
        phi=full(params.phi, -FIXED_BOUND),
        log_tau_e=full(params.log_tau_e, -FIXED_BOUND),
        log_tau_o=full(params.log_tau_o, -FIXED_BOUND),
        log_kappa=full(params.log_kappa, -FIXED_BOUND),
        rho=full(params.rho, -RHO_BOUND),
        theta_z=full(params.theta_z, -FIXED_BOUND),
        epsilon_input=full(params.epsilon_input, -jnp.inf),
        omega_input=full(params.omega_input, -jnp.inf),
    )
    upper = GompertzParams(
        alpha=full(params.alpha, FIXED_BOUND),
        phi=full(params.phi, FIXED_BOUND),
        log_tau_e=full(params.log_tau_e, FIXED_BOUND),
        log_tau_o=full(params.log_tau_o, FIXED_BOUND),
        log_kappa=full(params.log_kappa, FIXED_BOUND),
        rho=full(params.rho, RHO_BOUND),
        theta_z=full(params.theta_z, FIXED_BOUND),
        epsilon_input=full(params.epsilon_input, jnp.inf),
        omega_input=full(params.omega_input, jnp.inf),
    )
    return lower, upper


__all__ = [
    "GompertzParams",
    "parameter_bounds",
    "FIXED_EFFECTS",
    "RANDOM_EFFECTS",
]
