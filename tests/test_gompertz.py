import numpy as np
import jax.numpy as jnp

from spatial_gompertz_jax.core.data import SpatioTemporalData
from spatial_gompertz_jax.core.params import GompertzParams
from spatial_gompertz_jax.models import (
    check_ordering,
    log_expected_counts,
    propagate_grid,
    scale_fields,
)


def _log_chat(params, data, ordering="keyed"):
    fields = scale_fields(params, data.covariates)
    return log_expected_counts(fields, params.phi, params.rho, data.site, data.time, ordering=ordering)


def test_single_site_single_step_is_offset():
    data = SpatioTemporalData.from_arrays([0], [0], [3.0], np.zeros((1, 1)))
    params = GompertzParams.initial(n_x=1, n_t=1, n_p=1, phi=0.37, rho=0.0)
    for ordering in ("keyed", "sequential"):
        log_chat = _log_chat(params, data, ordering)
        assert float(log_chat[0]) == 0.37


def test_two_by_two_scenario():
    data = SpatioTemporalData.from_arrays(
        site=[0, 0, 1, 1],
        time=[0, 1, 0, 1],
        counts=[2.0, 3.0, 1.0, 0.0],
        covariates=np.ones((2, 1)),
    )
    params = GompertzParams.initial(n_x=2, n_t=2, n_p=1, alpha=[0.5], phi=0.1, rho=0.3)
    log_chat = np.asarray(_log_chat(params, data))

    first = 0.1 + 0.5 / (1 - 0.3)
    second = 0.3 * first + 0.5
    np.testing.assert_allclose(log_chat, [first, second, first, second], rtol=1e-12)
    np.testing.assert_allclose(log_chat[:2], [0.8143, 0.7443], atol=1e-4)


def test_keyed_and_sequential_agree_on_sorted_input(panel_data, random_params):
    data = panel_data(n_x=4, n_t=3)
    params = random_params(n_x=4, n_t=3)
    keyed = _log_chat(params, data, "keyed")
    sequential = _log_chat(params, data, "sequential")
    np.testing.assert_allclose(np.asarray(keyed), np.asarray(sequential), rtol=1e-12, atol=1e-12)


def test_grid_recursion(random_params):
    params = random_params(n_x=3, n_t=4)
    X = jnp.ones((3, 1))
    f = scale_fields(params, X)
    grid = np.asarray(propagate_grid(f, params.phi, params.rho))

    assert grid.shape == (3, 4)
    np.testing.assert_allclose(grid[:, 0], np.asarray(params.phi + f.equil_x + f.epsilon_xt[:, 0]))
    for t in range(1, 4):
        expected = float(params.rho) * grid[:, t - 1] + np.asarray(f.eta_x + f.omega_x + f.epsilon_xt[:, t])
        np.testing.assert_allclose(grid[:, t], expected, rtol=1e-12)


def test_missing_row_does_not_break_recursion(random_params):
    params = random_params(n_x=2, n_t=3)
    X = np.ones((2, 1))
    with_missing = SpatioTemporalData.from_arrays(
        site=[0, 0, 0, 1],
        time=[0, 1, 2, 0],
        counts=[4.0, np.nan, 2.0, 1.0],
        covariates=X,
    )
    without = SpatioTemporalData.from_arrays(
        site=[0, 0, 1],
        time=[0, 2, 0],
        counts=[4.0, 2.0, 1.0],
        covariates=X,
        n_t=3,
    )
    a = np.asarray(_log_chat(params, with_missing))
    b = np.asarray(_log_chat(params, without))
    assert np.isfinite(a[1])
    assert a[2] == b[1]
    assert a[0] == b[0] and a[3] == b[2]


def test_check_ordering_detects_out_of_order(panel_data):
    data = panel_data(n_x=3, n_t=3)
    assert check_ordering(data.site, data.time).size == 0

    perm = np.array([1, 0, 2, 3, 4, 5, 6, 7, 8])
    shuffled = data.select(perm)
    bad = check_ordering(shuffled.site, shuffled.time)
    assert bad.size > 0
    assert 0 in bad

    assert check_ordering(shuffled.sorted().site, shuffled.sorted().time).size == 0


def test_sequential_recursion_depends_on_order(panel_data, random_params):
    data = panel_data(n_x=3, n_t=3)
    params = random_params(n_x=3, n_t=3)
    perm = np.array([0, 3, 1, 4, 2, 5, 6, 7, 8])  # interleave sites 0 and 1
    shuffled = data.select(perm)

    base = np.asarray(_log_chat(params, data, "sequential"))
    moved = np.asarray(_log_chat(params, shuffled, "sequential"))
    # same (site, time) labels, different positional predecessors
    assert not np.allclose(moved, base[perm])

    keyed = np.asarray(_log_chat(params, shuffled, "keyed"))
    np.testing.assert_allclose(keyed, base[perm], rtol=1e-12, atol=1e-12)
