"""Hamiltonian systems encapsulating energy functions and their derivatives."""

import numpy as np
from nutmeg.autodiff import autodiff_fallback
from nutmeg.matrices import MassMatrix


class EuclideanMetricSystem(object):
    r"""Hamiltonian system with a Euclidean metric on the position space.

    Here Euclidean metric is defined to mean a metric with a fixed positive
    definite matrix representation \(M\). The momentum variables are taken to
    be independent of the position variables and with a zero-mean Gaussian
    marginal distribution with covariance specified by \(M\), so that the joint
    log density on position-momentum pairs is

    \[ \log \pi(q, p) = \ell(q) - \frac{1}{2} p^T M^{-1} p \]

    where \(q\) and \(p\) are the position and momentum variables respectively
    and \(\ell(q)\) is the log (unnormalized) density of the target
    distribution with respect to the Lebesgue measure.
    """

    def __init__(self, log_dens, mass_matrix=None, grad_log_dens=None):
        """
        Args:
            log_dens (Callable[[array], float]): Function which given a
                position array returns the logarithm of an unnormalized
                probability density on the position space with respect to the
                Lebesgue measure. May return `-inf` for positions outside the
                support of the target distribution.
            mass_matrix (None or array or MassMatrix): Matrix representation of
                metric on position space and covariance of Gaussian marginal
                distribution on momentum vector. If `None` is passed (the
                default), an identity matrix sized to the first position array
                seen will be used. A 1D array specifies the diagonal of a
                diagonal matrix and a 2D array a dense positive definite
                matrix.
            grad_log_dens (None or Callable[[array], array]): Function which
                given a position array returns the derivative of `log_dens`
                with respect to the position array argument. If `None` is
                passed (the default) an automatic differentiation fallback will
                be used to attempt to construct the derivative of `log_dens`
                automatically.
        """
        self._log_dens = log_dens
        self._grad_log_dens = autodiff_fallback(
            grad_log_dens, log_dens, 'grad_log_dens')
        if mass_matrix is None or isinstance(mass_matrix, MassMatrix):
            self._mass_matrix = mass_matrix
        else:
            self._mass_matrix = MassMatrix(mass_matrix)

    def mass_matrix(self, pos):
        """Mass matrix, constructing an identity of matching size if unset."""
        if self._mass_matrix is None:
            self._mass_matrix = MassMatrix.identity(np.size(pos))
        return self._mass_matrix

    def log_dens(self, pos):
        return self._log_dens(pos)

    def grad_log_dens(self, pos):
        return np.asarray(self._grad_log_dens(pos), dtype=np.float64)

    def velocity(self, pos, mom):
        """Time derivative of position, `M^{-1} @ mom`."""
        return self.mass_matrix(pos).inv @ mom

    def joint_log_dens(self, pos, mom):
        """Log of joint density on position and momentum.

        Equal to the target log density minus the kinetic energy. Non-finite
        values of the target log density are passed through unchanged.

        Args:
            pos (array): Position to evaluate at.
            mom (array): Momentum to evaluate at.

        Returns:
            float: Joint log density value.
        """
        return self.log_dens(pos) - 0.5 * mom @ self.velocity(pos, mom)

    def sample_momentum(self, pos, rng):
        """Sample a momentum from its marginal Gaussian distribution.

        Args:
            pos (array): Position, used only to determine the dimension.
            rng (numpy.random.Generator): Numpy random number generator.

        Returns:
            mom (array): Momentum with distribution `N(0, M)`.
        """
        return self.mass_matrix(pos).chol @ rng.standard_normal(np.shape(pos))
