"""Mass matrix representation with cached triangular factor and inverse."""

import numpy as np
import numpy.linalg as nla
import scipy.linalg as sla
from nutmeg.errors import LinAlgError


def _read_only(array):
    array = np.array(array, dtype=np.float64)
    array.flags.writeable = False
    return array


class MassMatrix(object):
    r"""Symmetric positive definite mass matrix.

    The mass matrix \(M\) defines the covariance of the Gaussian marginal
    distribution on the momentum variables and so the metric on the position
    space. Sampling momenta requires a lower-triangular factor \(L\) with
    \(M = L L^T\) and evaluating the kinetic energy and the position update of
    the leapfrog integrator requires the inverse \(M^{-1}\). Either may be
    passed in precomputed, otherwise each is computed on first access and
    cached. All arrays are read-only after construction.
    """

    def __init__(self, array, chol=None, inv=None):
        """
        Args:
            array (array): Either a 2D array specifying a dense symmetric
                positive definite matrix or a 1D array of strictly positive
                values specifying the diagonal of a diagonal matrix.
            chol (None or array): Optional precomputed lower-triangular
                Cholesky factor of the matrix such that
                `array == chol @ chol.T`.
            inv (None or array): Optional precomputed inverse of the matrix.
        """
        array = np.asarray(array, dtype=np.float64)
        if array.ndim == 1:
            if not np.all(array > 0):
                raise ValueError('Diagonal values must all be positive.')
            array = np.diag(array)
        elif array.ndim != 2 or array.shape[0] != array.shape[1]:
            raise ValueError(
                'Mass matrix must be specified by a 1D array (diagonal) or a '
                'square 2D array.')
        if not np.allclose(array, array.T):
            raise ValueError('Mass matrix must be symmetric.')
        self._array = _read_only(array)
        chol = None if chol is None else np.asarray(chol, dtype=np.float64)
        inv = None if inv is None else np.asarray(inv, dtype=np.float64)
        for name, value in (('chol', chol), ('inv', inv)):
            if value is not None and np.shape(value) != array.shape:
                raise ValueError(
                    f'Shape of {name} {np.shape(value)} does not match shape '
                    f'of mass matrix {array.shape}.')
        if chol is not None and not np.allclose(chol @ chol.T, array):
            raise ValueError(
                'chol does not factorise the mass matrix as '
                '`chol @ chol.T`.')
        if inv is not None and not np.allclose(
                array @ inv, np.identity(array.shape[0])):
            raise ValueError('inv is not the inverse of the mass matrix.')
        self._chol = None if chol is None else _read_only(chol)
        self._inv = None if inv is None else _read_only(inv)

    @classmethod
    def identity(cls, dim):
        """Construct identity mass matrix of size `dim`."""
        eye = np.identity(dim)
        return cls(eye, chol=eye, inv=eye)

    @property
    def array(self):
        """Dense array representation of matrix."""
        return self._array

    @property
    def dim(self):
        """Dimension of position and momentum spaces matrix acts on."""
        return self._array.shape[0]

    @property
    def chol(self):
        """Lower-triangular Cholesky factor `L` such that `array = L @ L.T`."""
        if self._chol is None:
            try:
                self._chol = _read_only(sla.cholesky(self._array, lower=True))
            except nla.LinAlgError as e:
                raise LinAlgError('Cholesky factorisation failed.') from e
        return self._chol

    @property
    def inv(self):
        """Inverse of matrix as a dense array."""
        if self._inv is None:
            self._inv = _read_only(
                sla.cho_solve((self.chol, True), np.identity(self.dim)))
        return self._inv
