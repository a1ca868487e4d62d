# -*- coding: utf-8 -*-
""" No-U-turn Hamiltonian Monte Carlo sampler with step size adaptation. """

__license__ = 'MIT'

import nutmeg.adapters
import nutmeg.autodiff
import nutmeg.errors
import nutmeg.integrators
import nutmeg.matrices
import nutmeg.progressbars
import nutmeg.samplers
import nutmeg.systems
import nutmeg.transitions
