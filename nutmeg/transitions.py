"""No-U-turn Markov transition kernel with slice sampling of the next state."""

from collections import namedtuple
import logging
from warnings import warn
import numpy as np
from nutmeg.errors import SliceThresholdWarning, MaxTreeDepthWarning

logger = logging.getLogger(__name__)


def no_u_turn_criterion(valid, pos_minus, mom_minus, pos_plus, mom_plus,
                        mass_matrix_inv):
    """No-U-turn continuation criterion for Euclidean metrics [1].

    Signals that trajectory expansion should stop when either of the
    velocities at the terminal states of the trajectory has a negative dot
    product with the vector from the position of the negative terminal state to
    the position of the positive terminal state, corresponding to further
    evolution of the trajectory reducing the distance between the terminal
    state positions.

    Args:
        valid (int): Validity of trajectory so far. If zero the criterion
            always signals to stop irrespective of the terminal states.
        pos_minus (array): Position of negative terminal state.
        mom_minus (array): Momentum of negative terminal state.
        pos_plus (array): Position of positive terminal state.
        mom_plus (array): Momentum of positive terminal state.
        mass_matrix_inv (array): Inverse of mass matrix, mapping momentums to
            velocities.

    Returns:
        int: 1 if trajectory expansion may continue, 0 if it should stop.

    References:

      1. Hoffman, M.D. and Gelman, A., 2014. The No-U-turn sampler:
         adaptively setting path lengths in Hamiltonian Monte Carlo.
         Journal of Machine Learning Research, 15(1), pp.1593-1623.
    """
    if valid == 0:
        return 0
    pos_diff = pos_plus - pos_minus
    if (pos_diff @ (mass_matrix_inv @ mom_minus) < 0 or
            pos_diff @ (mass_matrix_inv @ mom_plus) < 0):
        return 0
    return 1


_SubTree = namedtuple('_SubTree', [
    'pos_minus', 'mom_minus', 'pos_plus', 'mom_plus', 'proposal', 'n_slice',
    'valid', 'sum_accept_prob', 'n_accept_prob'])


class SliceNoUTurnTransition(object):
    """No-U-turn integration transition with slice sampling of new state.

    In each transition a momentum is independently sampled, a log slice
    threshold is drawn below the joint log density of the current state and a
    binary tree of states is recursively computed by integrating randomly
    forward and backward in time by a number of steps equal to the previous
    tree size, until the no-U-turn criterion signals that the trajectory has
    started to double back or the maximum tree depth is reached. The next chain
    position is chosen from the states lying in the slice using a progressive
    sampling scheme biased towards states further from the current state.

    This corresponds to the transition in 'Algorithm 6: No-U-Turn Sampler with
    Dual Averaging' in [1], with the step size supplied by the caller.

    Only the terminal states, a single running proposal and scalar counters are
    kept at each level of the recursion, so memory use does not grow with the
    number of integrator steps.

    References:

      1. Hoffman, M.D. and Gelman, A., 2014. The No-U-turn sampler:
         adaptively setting path lengths in Hamiltonian Monte Carlo.
         Journal of Machine Learning Research, 15(1), pp.1593-1623.
    """

    def __init__(self, system, integrator, max_tree_depth=10,
                 max_delta_h=1000.):
        """
        Args:
            system (nutmeg.systems.EuclideanMetricSystem): Hamiltonian system
                to be simulated.
            integrator (nutmeg.integrators.LeapfrogIntegrator): Symplectic
                integrator for the system.
            max_tree_depth (int): Maximum depth to expand trajectory binary
                tree to. At most `max_tree_depth + 1` subtrees are built in
                each transition.
            max_delta_h (float): Maximum amount the joint log density of a
                state may fall below the log slice threshold before the state
                is flagged as divergent.
        """
        if max_tree_depth < 0:
            raise ValueError('max_tree_depth must be non-negative.')
        if max_delta_h <= 0:
            raise ValueError('max_delta_h must be positive.')
        self.system = system
        self.integrator = integrator
        self.max_tree_depth = max_tree_depth
        self.max_delta_h = max_delta_h

    def _new_leaf(self, pos, mom, log_u, h_init):
        h = self.system.joint_log_dens(pos, mom)
        valid = int(np.isfinite(h) and h > log_u - self.max_delta_h)
        if not valid:
            logger.info(
                f'Divergent leapfrog step: joint log density {h} with log '
                f'slice threshold {log_u}.')
        delta_h = h - h_init
        accept_prob = 0. if np.isnan(delta_h) else np.exp(min(0., delta_h))
        return _SubTree(
            pos_minus=pos, mom_minus=mom, pos_plus=pos, mom_plus=mom,
            proposal=pos, n_slice=int(h >= log_u), valid=valid,
            sum_accept_prob=accept_prob, n_accept_prob=1)

    def build_tree(self, pos, mom, log_u, direction, depth, step_size, h_init,
                   rng):
        """Recursively build a trajectory subtree of a given depth.

        Args:
            pos (array): Position of terminal state to extend trajectory from.
            mom (array): Momentum of terminal state to extend trajectory from.
            log_u (float): Logarithm of slice threshold.
            direction (int): Integration direction, -1 (backward) or +1
                (forward).
            depth (int): Depth of subtree to build, with the subtree spanning
                `2**depth` integrator steps.
            step_size (float): Integrator step size.
            h_init (float): Joint log density at the position and momentum the
                transition started from, used to compute the average acceptance
                probability statistic.
            rng (numpy.random.Generator): Numpy random number generator.

        Returns:
            _SubTree: Terminal states, proposal, number of states in slice,
                validity flag and acceptance probability statistics of the
                subtree.
        """
        if depth == 0:
            pos, mom = self.integrator.step(pos, mom, direction * step_size)
            return self._new_leaf(pos, mom, log_u, h_init)
        inner = self.build_tree(
            pos, mom, log_u, direction, depth - 1, step_size, h_init, rng)
        if not inner.valid:
            return inner
        if direction == -1:
            pos, mom = inner.pos_minus, inner.mom_minus
        else:
            pos, mom = inner.pos_plus, inner.mom_plus
        outer = self.build_tree(
            pos, mom, log_u, direction, depth - 1, step_size, h_init, rng)
        neg_subtree = outer if direction == -1 else inner
        pos_subtree = inner if direction == -1 else outer
        n_slice = inner.n_slice + outer.n_slice
        proposal = (
            outer.proposal if rng.uniform() < outer.n_slice / max(n_slice, 1)
            else inner.proposal)
        valid = inner.valid * outer.valid * no_u_turn_criterion(
            1, neg_subtree.pos_minus, neg_subtree.mom_minus,
            pos_subtree.pos_plus, pos_subtree.mom_plus,
            self.system.mass_matrix(pos).inv)
        return _SubTree(
            pos_minus=neg_subtree.pos_minus, mom_minus=neg_subtree.mom_minus,
            pos_plus=pos_subtree.pos_plus, mom_plus=pos_subtree.mom_plus,
            proposal=proposal, n_slice=n_slice, valid=valid,
            sum_accept_prob=inner.sum_accept_prob + outer.sum_accept_prob,
            n_accept_prob=inner.n_accept_prob + outer.n_accept_prob)

    def _sample_log_slice(self, h_init, rng):
        log_u = h_init - rng.exponential()
        if not np.isfinite(log_u):
            warn(f'Sampled log slice threshold {log_u} is not finite.',
                 SliceThresholdWarning)
            log_u = np.log(rng.uniform(0, 1e5))
        return log_u

    def sample(self, pos, step_size, rng):
        """Sample a new position by expanding a no-U-turn trajectory.

        Args:
            pos (array): Current chain position.
            step_size (float): Integrator step size to use for transition.
            rng (numpy.random.Generator): Numpy random number generator.

        Returns:
            pos (array): Next chain position.
            trans_stats (Dict[str, numeric]): Statistics computed during the
                transition. `sum_accept_prob` and `n_accept_prob` are the
                accumulated acceptance probabilities and their count over the
                last subtree built, `accept_stat` their ratio and `tree_depth`
                the number of subtrees built.
        """
        mom = self.system.sample_momentum(pos, rng)
        h_init = self.system.joint_log_dens(pos, mom)
        log_u = self._sample_log_slice(h_init, rng)
        mass_matrix_inv = self.system.mass_matrix(pos).inv
        pos_minus, mom_minus = pos, mom
        pos_plus, mom_plus = pos, mom
        depth, n_slice, valid = 0, 1, 1
        while valid == 1:
            direction = 2 * (rng.uniform() < 0.5) - 1
            if direction == -1:
                tree = self.build_tree(
                    pos_minus, mom_minus, log_u, direction, depth, step_size,
                    h_init, rng)
                pos_minus, mom_minus = tree.pos_minus, tree.mom_minus
            else:
                tree = self.build_tree(
                    pos_plus, mom_plus, log_u, direction, depth, step_size,
                    h_init, rng)
                pos_plus, mom_plus = tree.pos_plus, tree.mom_plus
            tree_valid = tree.valid if np.isfinite(tree.valid) else 0
            # progressively sample, biasing towards the new subtree proposal
            if tree_valid == 1 and rng.uniform() < tree.n_slice / n_slice:
                pos = tree.proposal
            n_slice += tree.n_slice
            valid = no_u_turn_criterion(
                tree_valid, pos_minus, mom_minus, pos_plus, mom_plus,
                mass_matrix_inv)
            depth += 1
            if depth > self.max_tree_depth:
                warn(f'Reached maximum tree depth {self.max_tree_depth}.',
                     MaxTreeDepthWarning)
                break
        return pos, {
            'sum_accept_prob': tree.sum_accept_prob,
            'n_accept_prob': tree.n_accept_prob,
            'accept_stat': tree.sum_accept_prob / tree.n_accept_prob,
            'tree_depth': depth,
        }
