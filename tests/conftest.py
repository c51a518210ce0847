import jax

jax.config.update("jax_enable_x64", True)

import numpy as np
import scipy.sparse as sp
import pytest

from spatial_gompertz_jax.core.data import SpatioTemporalData
from spatial_gompertz_jax.core.params import GompertzParams
from spatial_gompertz_jax.spde.basis import SPDEBasis


def chain_fem(n, h=1.0):
    """Lumped mass C and stiffness G of linear elements on a 1-D chain."""
    c = np.full(n, h)
    c[0] = c[-1] = h / 2.0
    main = np.full(n, 2.0 / h)
    main[0] = main[-1] = 1.0 / h
    off = np.full(n - 1, -1.0 / h)
    C = sp.diags(c, format="csr")
    G = sp.diags([off, main, off], [-1, 0, 1], format="csr")
    return C, G


def chain_matrices(n, h=1.0):
    C, G = chain_fem(n, h)
    G2 = G @ sp.diags(1.0 / C.diagonal()) @ G
    return C, G, sp.csr_matrix(G2)


@pytest.fixture
def chain_basis():
    def make(n=5, h=1.0):
        return SPDEBasis.from_matrices(*chain_matrices(n, h))
    return make


@pytest.fixture
def singular_basis():
    def make(n=5):
        _, G = chain_fem(n)
        Z = sp.csr_matrix((n, n))
        return SPDEBasis.from_matrices(Z, Z, G)
    return make


@pytest.fixture
def panel_data():
    """Every site observed at every time, sorted by site then time."""
    def make(n_x=4, n_t=3, seed=0, n_p=1):
        rng = np.random.default_rng(seed)
        site = np.repeat(np.arange(n_x), n_t)
        time = np.tile(np.arange(n_t), n_x)
        counts = rng.poisson(3.0, size=n_x * n_t).astype(float)
        X = np.ones((n_x, n_p))
        return SpatioTemporalData.from_arrays(site, time, counts, X)
    return make


@pytest.fixture
def random_params():
    def make(n_x=4, n_t=3, n_p=1, seed=1, **overrides):
        rng = np.random.default_rng(seed)
        params = GompertzParams.initial(
            n_x=n_x,
            n_t=n_t,
            n_p=n_p,
            alpha=np.full(n_p, 0.4),
            phi=0.2,
            log_tau_e=0.3,
            log_tau_o=-0.2,
            log_kappa=-0.5,
            rho=0.4,
            theta_z=np.array([-0.5, 0.7]),
            epsilon_input=rng.normal(size=(n_x, n_t)),
            omega_input=rng.normal(size=n_x),
        )
        return params.replace(**overrides) if overrides else params
    return make
