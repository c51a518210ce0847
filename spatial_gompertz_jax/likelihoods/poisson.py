# spatial_gompertz_jax/likelihoods/poisson.py
import jax.numpy as jnp
import jax.scipy.special as jsp


class PoissonLikelihood:
    """
    Poisson likelihood with log link:
        p(y | f) = Poisson(y; exp(f))
    """

    n_theta = 0

    @staticmethod
    def neg_loglik_1d(y, f, theta_z=None):
        rate = jnp.exp(f)
        return rate - y * f + jsp.gammaln(y + 1.0)


poisson = PoissonLikelihood()
