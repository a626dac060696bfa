"""Exception types raised by the solver."""


class RadioFDTDError(Exception):
    """Base class for solver errors."""

    pass


class InitializationError(RadioFDTDError):
    """Raised when grids cannot be allocated or the backend is unusable.

    The solver cannot step without its buffers, so this is always fatal and
    surfaces from the constructor before any stepping begins.
    """

    pass


class StaleHandleError(RadioFDTDError):
    """Raised when a ReadHandle is used after its buffer pair was swapped."""

    pass
