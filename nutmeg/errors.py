"""Exception and warning types."""


class Error(RuntimeError):
    """Base class for errors."""


class LinAlgError(Error):
    """Error raised when a matrix operation raises a linear algebra error."""


class AdaptationError(Error):
    """Error raised when adaptation of transition parameters fails."""


class SamplerWarning(UserWarning):
    """Base class for non-fatal warnings emitted while sampling a chain."""


class SliceThresholdWarning(SamplerWarning):
    """Warning emitted when the sampled log slice threshold is not finite."""


class MaxTreeDepthWarning(SamplerWarning):
    """Warning emitted when trajectory tree expansion hits the depth limit."""
