# spatial_gompertz_jax/likelihoods/poisson_lognormal.py
"""
Poisson-lognormal (delta-lognormal) observation model.

Bulmer, M. G. 1974. On fitting the Poisson lognormal distribution to
species-abundance data. Biometrics, 30: 101-110.

With mean exp(f) and cluster size c, a sample is non-zero with the
encounter probability

    q = 1 - exp(-exp(f) / c)

(the Poisson probability that at least one cluster is encountered) and a
non-zero sample is lognormal with location f - log q, so the overall mean
stays exp(f) up to the lognormal bias factor exp(sd^2 / 2):

    log p(0)     = log(1 - q)
    log p(y > 0) = log q + log N(log y; f - log q, sd) - log y
"""
import jax.numpy as jnp


def lognormal_logpdf(y, loc, log_sd):
    """log density of a lognormal at y > 0 (normal density of log y, minus log y)."""
    log_y = jnp.log(y)
    z = (log_y - loc) / jnp.exp(log_sd)
    return -0.5 * z * z - log_sd - 0.5 * jnp.log(2.0 * jnp.pi) - log_y


class PoissonLognormalLikelihood:
    """
    theta_z = (log_sd, log_cluster_size)
    """

    n_theta = 2

    @staticmethod
    def neg_loglik_1d(y, f, theta_z):
        log_sd = theta_z[0]
        log_clustersize = theta_z[1]

        log_notencounter = -jnp.exp(f) / jnp.exp(log_clustersize)
        log_encounter = jnp.log(-jnp.expm1(log_notencounter))

        positive = y != 0
        y_pos = jnp.where(positive, y, 1.0)
        ll_pos = log_encounter + lognormal_logpdf(y_pos, f - log_encounter, log_sd)
        return -jnp.where(positive, ll_pos, log_notencounter)


poisson_lognormal = PoissonLognormalLikelihood()
