import numpy as np
import jax.numpy as jnp

from spatial_gompertz_jax.core.params import GompertzParams
from spatial_gompertz_jax.models import scale_fields
from spatial_gompertz_jax.spde.matern import (
    ADREPORT_QUANTITIES,
    derived_sensitivities,
    marginal_sd,
    matern_summary,
    spatial_range,
)


def test_scale_fields_formulas():
    X = jnp.array([[1.0, 0.5], [1.0, -1.0], [1.0, 2.0]])
    params = GompertzParams.initial(
        n_x=3, n_t=2, n_p=2,
        alpha=jnp.array([0.3, 0.2]),
        log_tau_e=0.5,
        log_tau_o=-0.4,
        rho=0.6,
        epsilon_input=jnp.arange(6.0).reshape(3, 2),
        omega_input=jnp.array([1.0, -2.0, 0.5]),
    )
    f = scale_fields(params, X)

    eta = np.asarray(X) @ np.array([0.3, 0.2])
    omega = np.array([1.0, -2.0, 0.5]) / np.exp(-0.4)
    np.testing.assert_allclose(np.asarray(f.eta_x), eta)
    np.testing.assert_allclose(np.asarray(f.omega_x), omega)
    np.testing.assert_allclose(np.asarray(f.epsilon_xt), np.arange(6.0).reshape(3, 2) / np.exp(0.5))
    np.testing.assert_allclose(np.asarray(f.equil_x), (eta + omega) / (1 - 0.6))


def test_matern_conversions():
    np.testing.assert_allclose(float(spatial_range(0.0)), np.sqrt(8.0))
    np.testing.assert_allclose(float(spatial_range(np.log(2.0))), np.sqrt(8.0) / 2.0)
    np.testing.assert_allclose(float(marginal_sd(0.0, 0.0)), 1.0 / np.sqrt(4 * np.pi))

    lk, lte, lto = -0.7, 1.1, 0.2
    expected_e = 1 / np.sqrt(4 * np.pi * np.exp(2 * lte) * np.exp(2 * lk))
    expected_o = 1 / np.sqrt(4 * np.pi * np.exp(2 * lto) * np.exp(2 * lk))
    s = matern_summary(lk, lte, lto)
    np.testing.assert_allclose(float(s.sigma_e), expected_e, rtol=1e-12)
    np.testing.assert_allclose(float(s.sigma_o), expected_o, rtol=1e-12)


def test_matern_summary_is_bit_reproducible():
    args = (jnp.array(-0.31), jnp.array(0.77), jnp.array(-1.4))
    a = matern_summary(*args)
    b = matern_summary(*args)
    for x, y in zip(a, b):
        assert jnp.array_equal(x, y)


def test_derived_sensitivities():
    values, jac = derived_sensitivities(0.2, 0.5, -0.3)
    assert ADREPORT_QUANTITIES == ("spatial_range", "sigma_e", "sigma_o")
    assert values.shape == (3,)
    assert jac.shape == (3, 3)

    rng, sig_e, sig_o = np.asarray(values)
    # range = sqrt(8) exp(-log_kappa); sd = (4 pi)^-1/2 exp(-log_tau - log_kappa)
    np.testing.assert_allclose(np.asarray(jac[0]), [-rng, 0.0, 0.0], atol=1e-12)
    np.testing.assert_allclose(np.asarray(jac[1]), [-sig_e, -sig_e, 0.0], atol=1e-12)
    np.testing.assert_allclose(np.asarray(jac[2]), [-sig_o, 0.0, -sig_o], atol=1e-12)
