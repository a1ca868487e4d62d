import numpy as np
import pytest

from nutmeg import integrators, systems, transitions
from nutmeg.errors import MaxTreeDepthWarning, SliceThresholdWarning

SEED = 3046987125


@pytest.fixture
def rng():
    return np.random.default_rng(SEED)


class CountingGradient:
    def __init__(self, grad):
        self.grad = grad
        self.n_call = 0

    def __call__(self, pos):
        self.n_call += 1
        return self.grad(pos)


@pytest.fixture
def grad_log_dens():
    return CountingGradient(lambda q: -q)


@pytest.fixture
def system(grad_log_dens):
    return systems.EuclideanMetricSystem(
        lambda q: -0.5 * np.sum(q**2), grad_log_dens=grad_log_dens
    )


@pytest.fixture
def flat_system():
    return systems.EuclideanMetricSystem(
        lambda q: 0.0, grad_log_dens=lambda q: np.zeros_like(q)
    )


@pytest.fixture
def transition(system):
    return transitions.SliceNoUTurnTransition(
        system, integrators.LeapfrogIntegrator(system)
    )


class TestNoUTurnCriterion:
    @pytest.mark.parametrize("sign_minus", (-1, 1))
    @pytest.mark.parametrize("sign_plus", (-1, 1))
    def test_invalid_always_stops(self, sign_minus, sign_plus):
        assert (
            transitions.no_u_turn_criterion(
                0,
                np.zeros(2),
                sign_minus * np.ones(2),
                np.ones(2),
                sign_plus * np.ones(2),
                np.identity(2),
            )
            == 0
        )

    def test_moving_apart_continues(self):
        assert (
            transitions.no_u_turn_criterion(
                1, np.zeros(2), np.ones(2), np.ones(2), np.ones(2), np.identity(2)
            )
            == 1
        )

    @pytest.mark.parametrize(
        "mom_minus, mom_plus", [([-1.0, -1.0], [1.0, 1.0]), ([1.0, 1.0], [-1.0, -1.0])]
    )
    def test_doubling_back_stops(self, mom_minus, mom_plus):
        assert (
            transitions.no_u_turn_criterion(
                1,
                np.zeros(2),
                np.array(mom_minus),
                np.ones(2),
                np.array(mom_plus),
                np.identity(2),
            )
            == 0
        )

    def test_uses_mass_matrix_metric(self):
        pos_minus, pos_plus = np.zeros(2), np.array([1.0, 0.0])
        mom = np.array([1.0, -2.0])
        assert (
            transitions.no_u_turn_criterion(
                1, pos_minus, mom, pos_plus, mom, np.identity(2)
            )
            == 1
        )
        mass_matrix_inv = np.array([[1.0, 1.0], [1.0, 4.0]])
        assert (
            transitions.no_u_turn_criterion(
                1, pos_minus, mom, pos_plus, mom, mass_matrix_inv
            )
            == 0
        )


class TestBuildTree:
    def test_zero_step_size_leaf(self, transition, system, rng):
        pos, mom = np.array([0.3, -1.2]), np.array([0.7, 0.1])
        h_init = system.joint_log_dens(pos, mom)
        tree = transition.build_tree(pos, mom, h_init - 1.0, 1, 0, 0.0, h_init, rng)
        assert tree.sum_accept_prob == 1
        assert tree.n_accept_prob == 1
        assert tree.n_slice == 1
        assert tree.valid == 1
        assert np.array_equal(tree.proposal, pos)
        assert np.array_equal(tree.pos_minus, tree.pos_plus)
        assert np.array_equal(tree.mom_minus, mom)

    def test_nan_joint_log_dens_leaf_has_zero_accept_prob(self, rng):
        system = systems.EuclideanMetricSystem(
            lambda q: np.nan, grad_log_dens=lambda q: np.zeros_like(q)
        )
        transition = transitions.SliceNoUTurnTransition(
            system, integrators.LeapfrogIntegrator(system)
        )
        pos, mom = np.array([0.3, -1.2]), np.array([0.7, 0.1])
        tree = transition.build_tree(pos, mom, -1.0, 1, 0, 0.1, 0.0, rng)
        assert tree.sum_accept_prob == 0
        assert tree.n_accept_prob == 1
        assert tree.n_slice == 0
        assert tree.valid == 0

    @pytest.mark.parametrize("depth", (0, 1, 2, 3, 4))
    @pytest.mark.parametrize("direction", (-1, 1))
    def test_subtree_size_bounded(self, transition, system, rng, depth, direction):
        pos, mom = np.array([0.3, -1.2]), np.array([0.7, 0.1])
        h_init = system.joint_log_dens(pos, mom)
        tree = transition.build_tree(
            pos, mom, h_init - 0.5, direction, depth, 0.1, h_init, rng
        )
        assert 0 <= tree.n_slice <= 2**depth
        assert 1 <= tree.n_accept_prob <= 2**depth
        assert 0 <= tree.sum_accept_prob <= tree.n_accept_prob
        if tree.valid:
            assert tree.n_accept_prob == 2**depth

    @pytest.mark.parametrize("direction", (-1, 1))
    def test_boundary_matches_leapfrog_steps(
        self, transition, system, rng, direction
    ):
        pos, mom = np.array([0.3, -1.2]), np.array([0.7, 0.1])
        h_init = system.joint_log_dens(pos, mom)
        step_size = 0.05
        tree = transition.build_tree(
            pos, mom, h_init - 10.0, direction, 2, step_size, h_init, rng
        )
        assert tree.valid == 1
        integrator = transition.integrator
        states = [(pos, mom)]
        for _ in range(4):
            states.append(integrator.step(*states[-1], direction * step_size))
        far_pos, far_mom = states[-1]
        near_pos, near_mom = states[1]
        if direction == 1:
            assert np.allclose(tree.pos_plus, far_pos)
            assert np.allclose(tree.mom_plus, far_mom)
            assert np.allclose(tree.pos_minus, near_pos)
        else:
            assert np.allclose(tree.pos_minus, far_pos)
            assert np.allclose(tree.mom_minus, far_mom)
            assert np.allclose(tree.pos_plus, near_pos)
        assert any(np.allclose(tree.proposal, s[0]) for s in states[1:])

    def test_divergent_subtree_not_expanded(
        self, transition, system, grad_log_dens, rng
    ):
        pos, mom = np.array([0.3, -1.2]), np.array([0.7, 0.1])
        h_init = system.joint_log_dens(pos, mom)
        log_u = h_init + 2 * transition.max_delta_h
        tree = transition.build_tree(pos, mom, log_u, 1, 3, 0.1, h_init, rng)
        assert tree.valid == 0
        assert tree.n_slice == 0
        assert tree.n_accept_prob == 1
        # a single leapfrog step evaluates the gradient twice
        assert grad_log_dens.n_call == 2

    def test_non_finite_leaf_invalid(self, rng):
        system = systems.EuclideanMetricSystem(
            lambda q: -np.inf if q[0] > 0 else -0.5 * q @ q,
            grad_log_dens=lambda q: -q,
        )
        transition = transitions.SliceNoUTurnTransition(
            system, integrators.LeapfrogIntegrator(system)
        )
        pos, mom = np.array([-0.01]), np.array([1.0])
        h_init = system.joint_log_dens(pos, mom)
        tree = transition.build_tree(pos, mom, h_init - 1, 1, 0, 0.5, h_init, rng)
        assert tree.valid == 0
        assert tree.n_slice == 0
        assert tree.sum_accept_prob == 0


class TestSample:
    def test_sample_returns_stats(self, transition, rng):
        pos = np.array([0.5, -0.5])
        new_pos, stats = transition.sample(pos, 0.3, rng)
        assert new_pos.shape == pos.shape
        assert 1 <= stats["tree_depth"] <= transition.max_tree_depth + 1
        assert 0 <= stats["accept_stat"] <= 1
        assert stats["accept_stat"] == (
            stats["sum_accept_prob"] / stats["n_accept_prob"]
        )

    def test_max_tree_depth_warning(self, flat_system, rng):
        max_tree_depth = 3
        transition = transitions.SliceNoUTurnTransition(
            flat_system,
            integrators.LeapfrogIntegrator(flat_system),
            max_tree_depth=max_tree_depth,
        )
        pos = np.zeros(2)
        with pytest.warns(MaxTreeDepthWarning):
            new_pos, stats = transition.sample(pos, 0.1, rng)
        assert stats["tree_depth"] == max_tree_depth + 1
        assert np.all(np.isfinite(new_pos))

    def test_depth_never_exceeds_bound(self, transition, rng):
        pos = np.array([0.5, -0.5])
        for _ in range(50):
            pos, stats = transition.sample(pos, 0.01, rng)
            assert stats["tree_depth"] <= transition.max_tree_depth + 1

    def test_non_finite_slice_warning(self, rng):
        system = systems.EuclideanMetricSystem(
            lambda q: -np.inf, grad_log_dens=lambda q: np.zeros_like(q)
        )
        transition = transitions.SliceNoUTurnTransition(
            system, integrators.LeapfrogIntegrator(system)
        )
        pos = np.array([1.0, 2.0])
        with pytest.warns(SliceThresholdWarning):
            new_pos, stats = transition.sample(pos, 0.1, rng)
        assert np.array_equal(new_pos, pos)
        assert stats["tree_depth"] == 1
        assert stats["accept_stat"] == 0

    def test_negative_max_tree_depth_raises(self, system):
        with pytest.raises(ValueError):
            transitions.SliceNoUTurnTransition(
                system, integrators.LeapfrogIntegrator(system), max_tree_depth=-1
            )

    def test_zero_max_tree_depth_builds_single_subtree(self, system, rng):
        transition = transitions.SliceNoUTurnTransition(
            system, integrators.LeapfrogIntegrator(system), max_tree_depth=0
        )
        pos = np.array([0.5, -0.5])
        with pytest.warns(MaxTreeDepthWarning):
            new_pos, stats = transition.sample(pos, 0.1, rng)
        assert stats["tree_depth"] == 1
        assert stats["n_accept_prob"] == 1
        assert np.all(np.isfinite(new_pos))
