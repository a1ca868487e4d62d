"""Methods for adaptively setting the integrator step size."""

from collections import namedtuple
from math import exp, log
import numpy as np
from nutmeg.errors import AdaptationError

LOG_2 = log(2.)


AdaptationState = namedtuple('AdaptationState', [
    'iter', 'step_size', 'smoothed_step_size', 'adapt_stat_error',
    'log_step_size_reg_target', 'tree_depth'])
AdaptationState.__doc__ = """State of step size adaptation between transitions.

Instances are immutable and a new instance is returned by each update, with
the state threaded explicitly from one chain iteration to the next.

Attributes:
    iter (int): Number of chain iterations completed.
    step_size (float): Current integrator step size.
    smoothed_step_size (float): Running (smoothed) step size estimate used
        once adaptation has finished.
    adapt_stat_error (float): Running average of the difference between the
        target and observed acceptance statistic.
    log_step_size_reg_target (float): Value the logarithm of the step size is
        regularized towards, `log(10 * init_step_size)`.
    tree_depth (int): Tree depth reached in the most recent iteration.
"""


def find_reasonable_step_size(pos, system, integrator, rng, init_step_size=1.,
                              max_iters=100):
    """Find initial step size by coarse search using single step statistics.

    Implementation of 'Algorithm 4: Heuristic for choosing an initial value of
    epsilon' in [1]. A momentum is sampled and a single leapfrog step taken
    from the given position. If the acceptance ratio of the step is greater
    than 0.5 the step size is repeatedly doubled, otherwise repeatedly halved,
    re-stepping from the same position and momentum each time, until the
    acceptance ratio crosses 0.5. The test is evaluated on the change in the
    joint log density to avoid overflow of the ratio.

    Args:
        pos (array): Position to search from.
        system (nutmeg.systems.EuclideanMetricSystem): Hamiltonian system.
        integrator (nutmeg.integrators.LeapfrogIntegrator): Integrator to
            take steps with.
        rng (numpy.random.Generator): Numpy random number generator.
        init_step_size (float): Step size to start search from.
        max_iters (int): Maximum number of doublings or halvings to try before
            raising an `AdaptationError`.

    Returns:
        float: Step size found.

    References:

      1. Hoffman, M.D. and Gelman, A., 2014. The No-U-turn sampler:
         adaptively setting path lengths in Hamiltonian Monte Carlo.
         Journal of Machine Learning Research, 15(1), pp.1593-1623.
    """
    mom = system.sample_momentum(pos, rng)
    h_init = system.joint_log_dens(pos, mom)
    if not np.isfinite(h_init):
        raise AdaptationError(
            f'Joint log density evaluating to {h_init} at initial state.')

    def log_accept_ratio(step_size):
        pos_p, mom_p = integrator.step(pos, mom, step_size)
        return system.joint_log_dens(pos_p, mom_p) - h_init

    step_size = init_step_size
    log_ratio = log_accept_ratio(step_size)
    a = 1 if log_ratio > -LOG_2 else -1
    for _ in range(max_iters):
        if not a * log_ratio >= -a * LOG_2:
            return step_size
        step_size *= 2.**a
        log_ratio = log_accept_ratio(step_size)
    raise AdaptationError(
        f'Could not find reasonable initial step size in {max_iters} '
        f'iterations (final step size {step_size}). A very large final step '
        f'size may indicate that the target distribution is improper such '
        f'that the log density is flat in one or more directions while a very '
        f'small final step size may indicate that the density function is '
        f'insufficiently smooth at the point initialized at.')


class DualAveragingStepSizeAdapter(object):
    """Dual averaging integrator step size adapter.

    Implementation of the dual averaging step size adaptation algorithm
    described in [1], a modified version of the stochastic optimisation scheme
    of [2]. During the first `n_adapt_iter` chain iterations the step size is
    updated after each transition to control the average acceptance
    probability statistic of the transition to be close to a target value.
    After adaptation the step size is fixed to the smoothed estimate, with the
    step size used in each transition jittered uniformly by up to 10% either
    side of it to avoid resonances with periodic dynamics.

    References:

      1. Hoffman, M.D. and Gelman, A., 2014. The No-U-turn sampler:
         adaptively setting path lengths in Hamiltonian Monte Carlo.
         Journal of Machine Learning Research, 15(1), pp.1593-1623.
      2. Nesterov, Y., 2009. Primal-dual subgradient methods for convex
         problems. Mathematical programming 120(1), pp.221-259.
    """

    def __init__(self, n_adapt_iter=50, adapt_stat_target=0.5,
                 log_step_size_reg_coefficient=0.05, iter_decay_coeff=0.75,
                 iter_offset=10, init_step_size=1., find_init_step_size=True,
                 max_init_step_size_iters=100):
        """
        Args:
            n_adapt_iter (int): Number of initial chain iterations to adapt the
                step size over. Zero disables adaptation.
            adapt_stat_target (float): Target value for the average acceptance
                probability statistic, in the interval (0, 1).
            log_step_size_reg_coefficient (float): Coefficient controlling
                amount of regularisation of the logarithm of the step size
                towards `log(10 * init_step_size)`. Defaults to 0.05 as
                recommended in Hoffman and Gelman (2014).
            iter_decay_coeff (float): Coefficient controlling exponent of
                decay in schedule weighting stochastic updates to smoothed log
                step size estimate. Should be in the interval (0.5, 1].
                Defaults to 0.75 as recommended in Hoffman and Gelman (2014).
            iter_offset (int): Offset used for the iteration based weighting of
                the adaptation statistic error estimate. Defaults to 10 as
                recommended in Hoffman and Gelman (2014).
            init_step_size (float): Initial step size, or starting point of
                search for one if `find_init_step_size` is `True`.
            find_init_step_size (bool): Whether to search for a reasonable
                initial step size using `find_reasonable_step_size`.
            max_init_step_size_iters (int): Maximum number of iterations to use
                in initial step size search.
        """
        if n_adapt_iter < 0:
            raise ValueError('n_adapt_iter must be non-negative.')
        if not 0 < adapt_stat_target < 1:
            raise ValueError('adapt_stat_target must be in (0, 1).')
        if not init_step_size > 0:
            raise ValueError('init_step_size must be positive.')
        self.n_adapt_iter = n_adapt_iter
        self.adapt_stat_target = adapt_stat_target
        self.log_step_size_reg_coefficient = log_step_size_reg_coefficient
        self.iter_decay_coeff = iter_decay_coeff
        self.iter_offset = iter_offset
        self.init_step_size = init_step_size
        self.find_init_step_size = find_init_step_size
        self.max_init_step_size_iters = max_init_step_size_iters

    def initialize(self, pos, system, integrator, rng):
        """Initialize adapter state prior to the first chain iteration.

        Args:
            pos (array): Initial chain position.
            system (nutmeg.systems.EuclideanMetricSystem): Hamiltonian system.
            integrator (nutmeg.integrators.LeapfrogIntegrator): Integrator
                used by the transition being adapted.
            rng (numpy.random.Generator): Numpy random number generator.

        Returns:
            AdaptationState: Initial adapter state.
        """
        if self.find_init_step_size:
            step_size = find_reasonable_step_size(
                pos, system, integrator, rng, self.init_step_size,
                self.max_init_step_size_iters)
        else:
            step_size = self.init_step_size
        # smoothed estimate starts at one unless adaptation is disabled
        smoothed_step_size = step_size if 1 > self.n_adapt_iter else 1.
        return AdaptationState(
            iter=0, step_size=step_size, smoothed_step_size=smoothed_step_size,
            adapt_stat_error=0., log_step_size_reg_target=log(10 * step_size),
            tree_depth=0)

    def is_adapting(self, adapt_state):
        """Whether the next chain iteration is within the adaptation period."""
        return adapt_state.iter + 1 <= self.n_adapt_iter

    def sample_step_size(self, adapt_state, rng):
        """Step size to use for the next chain iteration.

        Args:
            adapt_state (AdaptationState): Current adapter state.
            rng (numpy.random.Generator): Numpy random number generator.

        Returns:
            float: Current step size while adapting, otherwise the smoothed
                step size jittered uniformly within 10% either side.
        """
        if self.is_adapting(adapt_state):
            return adapt_state.step_size
        return rng.uniform(
            0.9 * adapt_state.smoothed_step_size,
            1.1 * adapt_state.smoothed_step_size)

    def update(self, adapt_state, trans_stats):
        """Update adapter state after a chain transition.

        Args:
            adapt_state (AdaptationState): Adapter state prior to transition.
            trans_stats (Dict[str, numeric]): Statistics of transition, which
                must include `sum_accept_prob`, `n_accept_prob` and
                `tree_depth` entries.

        Returns:
            AdaptationState: New adapter state.
        """
        iteration = adapt_state.iter + 1
        if iteration > self.n_adapt_iter:
            return adapt_state._replace(
                iter=iteration, step_size=adapt_state.smoothed_step_size,
                tree_depth=trans_stats['tree_depth'])
        error_weight = 1 / (iteration + self.iter_offset)
        adapt_stat = (
            trans_stats['sum_accept_prob'] / trans_stats['n_accept_prob'])
        adapt_stat_error = (
            (1 - error_weight) * adapt_state.adapt_stat_error +
            error_weight * (self.adapt_stat_target - adapt_stat))
        log_step_size = adapt_state.log_step_size_reg_target - (
            adapt_stat_error * iteration**0.5 /
            self.log_step_size_reg_coefficient)
        smoothing_weight = iteration**(-self.iter_decay_coeff)
        smoothed_step_size = exp(
            smoothing_weight * log_step_size +
            (1 - smoothing_weight) * log(adapt_state.smoothed_step_size))
        return adapt_state._replace(
            iter=iteration, step_size=exp(log_step_size),
            smoothed_step_size=smoothed_step_size,
            adapt_stat_error=adapt_stat_error,
            tree_depth=trans_stats['tree_depth'])
