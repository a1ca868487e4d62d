"""Automatic differentation fallback for constructing gradient functions."""

AUTOGRAD_AVAILABLE = True
try:
    from autograd import grad
except ImportError:
    AUTOGRAD_AVAILABLE = False


def autodiff_fallback(grad_func, func, name):
    """Generate gradient function automatically if not provided.

    Uses automatic differentiation to generate a function computing the
    gradient of a scalar-valued function if an alternative implementation of
    the gradient has not been provided. The function being differentiated must
    be written using `autograd.numpy` operations.

    Args:
        grad_func (None or Callable[[array], array]): Either a callable
            implementing the required gradient or `None` if none was provided.
        func (Callable[[array], float]): Function to differentiate.
        name (str): Name of gradient function to use in error message.

    Returns:
        Callable[[array], array]: `grad_func` value if not `None` otherwise
            generated gradient of `func`.
    """
    if grad_func is not None:
        return grad_func
    elif AUTOGRAD_AVAILABLE:
        return grad(func)
    else:
        raise ValueError(
            f'Autograd not available therefore {name} must be provided.')
