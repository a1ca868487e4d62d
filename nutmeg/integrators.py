"""Symplectic integrator for simulation of Hamiltonian dynamics."""


class LeapfrogIntegrator(object):
    r"""
    Leapfrog integrator for Hamiltonian systems with a Euclidean metric.

    Each step consists of a half step update to the momentum using the gradient
    of the target log density, a full step update to the position using the
    velocity \(M^{-1} p\) and a final momentum half step, i.e. for a signed
    time step \(\delta t\)

    \[ p_{1/2} = p + \frac{\delta t}{2} \nabla \ell(q) \]
    \[ q' = q + \delta t M^{-1} p_{1/2} \]
    \[ p' = p_{1/2} + \frac{\delta t}{2} \nabla \ell(q') \]

    The step is time-reversible and volume preserving, with a step of
    \(-\delta t\) from \((q', p')\) recovering \((q, p)\).
    """

    def __init__(self, system):
        """
        Args:
            system (nutmeg.systems.EuclideanMetricSystem): Hamiltonian system
                to integrate the dynamics of.
        """
        self.system = system

    def step(self, pos, mom, dt):
        """Perform a single integrator step from a position-momentum pair.

        Arrays passed in are not modified.

        Args:
            pos (array): Position to step from.
            mom (array): Momentum to step from.
            dt (float): Integrator time step, the step size multiplied by the
                integration direction. May be positive, negative or zero.

        Returns:
            pos (array): Stepped position.
            mom (array): Stepped momentum.
        """
        mom = mom + 0.5 * dt * self.system.grad_log_dens(pos)
        pos = pos + dt * self.system.velocity(pos, mom)
        mom = mom + 0.5 * dt * self.system.grad_log_dens(pos)
        return pos, mom
