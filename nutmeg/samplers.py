"""No-U-turn sampler for drawing Markov chains from a target distribution."""

from collections import namedtuple
import logging
import numpy as np
from nutmeg.adapters import DualAveragingStepSizeAdapter
from nutmeg.integrators import LeapfrogIntegrator
from nutmeg.progressbars import ProgressBar, DummyProgressBar
from nutmeg.systems import EuclideanMetricSystem
from nutmeg.transitions import SliceNoUTurnTransition

logger = logging.getLogger(__name__)


ChainOutput = namedtuple(
    'ChainOutput', ['final_pos', 'traces', 'statistics', 'adapt_state'])


class NoUTurnSampler(object):
    """No-U-turn sampler with dual averaging step size adaptation.

    Implementation of 'Algorithm 6: No-U-Turn Sampler with Dual Averaging' in
    [1] for a target distribution specified by a log density function and its
    gradient, with a fixed mass matrix defining the metric. Each iteration
    independently resamples a momentum, expands a trajectory by recursive
    doubling until a U-turn is detected and slice samples the next position
    from the trajectory, while the integrator step size is adapted over an
    initial set of iterations to control the average acceptance probability.

    References:

      1. Hoffman, M.D. and Gelman, A., 2014. The No-U-turn sampler:
         adaptively setting path lengths in Hamiltonian Monte Carlo.
         Journal of Machine Learning Research, 15(1), pp.1593-1623.
    """

    def __init__(self, system, rng, n_adapt_iter=50, adapt_stat_target=0.5,
                 max_tree_depth=10, init_step_size=1.,
                 find_init_step_size=True, display_progress=True,
                 max_delta_h=1000.):
        """
        Args:
            system (nutmeg.systems.EuclideanMetricSystem or
                    Callable[[array], float]): Hamiltonian system defining the
                target distribution and mass matrix. A bare log density
                function may be passed instead, in which case a system with an
                identity mass matrix and automatically differentiated gradient
                is constructed.
            rng (numpy.random.Generator): Numpy random number generator.
            n_adapt_iter (int): Number of initial chain iterations to adapt the
                step size over.
            adapt_stat_target (float): Target average acceptance probability.
            max_tree_depth (int): Maximum depth to expand trajectory binary
                tree to in each iteration.
            init_step_size (float): Initial step size, or starting point of the
                search for one if `find_init_step_size` is `True`.
            find_init_step_size (bool): Whether to search for a reasonable
                initial step size before the first iteration.
            display_progress (bool): Whether to display a progress bar with
                running means of the step size and tree depth while sampling a
                chain.
            max_delta_h (float): Maximum amount the joint log density of a
                state may fall below the log slice threshold before the state
                is flagged as divergent.
        """
        if not isinstance(system, EuclideanMetricSystem):
            system = EuclideanMetricSystem(system)
        self.system = system
        self.rng = rng
        self.integrator = LeapfrogIntegrator(system)
        self.transition = SliceNoUTurnTransition(
            system, self.integrator, max_tree_depth=max_tree_depth,
            max_delta_h=max_delta_h)
        self.adapter = DualAveragingStepSizeAdapter(
            n_adapt_iter=n_adapt_iter, adapt_stat_target=adapt_stat_target,
            init_step_size=init_step_size,
            find_init_step_size=find_init_step_size)
        self.display_progress = display_progress

    def sample_step(self, pos, adapt_state=None):
        """Perform a single chain iteration.

        Args:
            pos (array): Current chain position.
            adapt_state (None or nutmeg.adapters.AdaptationState): Adapter
                state returned by the previous iteration, or `None` on the
                first iteration in which case the adapter state is initialized
                (searching for an initial step size if configured to).

        Returns:
            pos (array): Next chain position.
            adapt_state (nutmeg.adapters.AdaptationState): Updated adapter
                state to pass to the next iteration.
            trans_stats (Dict[str, numeric]): Statistics of the transition.
        """
        pos = np.atleast_1d(np.asarray(pos, dtype=np.float64))
        if adapt_state is None:
            adapt_state = self.adapter.initialize(
                pos, self.system, self.integrator, self.rng)
        step_size = self.adapter.sample_step_size(adapt_state, self.rng)
        pos, trans_stats = self.transition.sample(pos, step_size, self.rng)
        adapt_state = self.adapter.update(adapt_state, trans_stats)
        logger.debug(
            f'n: {adapt_state.iter} j: {adapt_state.tree_depth} '
            f'e: {adapt_state.step_size}')
        return pos, adapt_state, trans_stats

    def sample_chain(self, init_pos, n_iter, adapt_state=None):
        """Sample a Markov chain from a given initial position.

        Args:
            init_pos (array): Initial chain position.
            n_iter (int): Number of chain iterations to perform.
            adapt_state (None or nutmeg.adapters.AdaptationState): Adapter
                state to continue a previous chain from. If `None` (the
                default) adaptation starts afresh.

        Returns:
            ChainOutput: Named tuple with fields

              * `final_pos`: final chain position,
              * `traces`: dictionary with key `pos` and value an array of
                shape `(n_iter, dim)` of the chain positions,
              * `statistics`: dictionary of arrays of length `n_iter`
                containing the per-iteration `step_size`, `tree_depth` and
                `accept_stat` values,
              * `adapt_state`: final adapter state.
        """
        if n_iter < 1:
            raise ValueError('n_iter must be positive.')
        pos = np.atleast_1d(np.asarray(init_pos, dtype=np.float64))
        pos_trace = np.empty((n_iter,) + pos.shape)
        statistics = {
            'step_size': np.full(n_iter, np.nan),
            'tree_depth': np.full(n_iter, -1, dtype=np.int64),
            'accept_stat': np.full(n_iter, np.nan),
        }
        progress_bar_class = (
            ProgressBar if self.display_progress else DummyProgressBar)
        with progress_bar_class(range(n_iter), 'Sampling') as progress_bar:
            for i, iter_dict in progress_bar:
                pos, adapt_state, trans_stats = self.sample_step(
                    pos, adapt_state)
                pos_trace[i] = pos
                statistics['step_size'][i] = adapt_state.step_size
                statistics['tree_depth'][i] = adapt_state.tree_depth
                statistics['accept_stat'][i] = trans_stats['accept_stat']
                iter_dict['step_size'] = adapt_state.step_size
                iter_dict['tree_depth'] = adapt_state.tree_depth
        return ChainOutput(
            final_pos=pos, traces={'pos': pos_trace}, statistics=statistics,
            adapt_state=adapt_state)
