"""
Small helpers shared by troxia modules: wall-clock timing and soft validation.
"""

from time import perf_counter
import warnings
from typing import Type
from .config import config


class Timer:
    """
    Wall-clock timer used as a context manager.

    Parameters
    ----------
    name : str, optional
        Label of the printed line (default "Operation")
    verbose : bool, optional
        Print "<name>: <seconds> s" on exit (default True). Library code
        uses verbose=False and logs ``elapsed`` instead.

    Examples
    --------
    >>> with Timer("Propagation"):
    ...     final_state = propagator.propagate(86400.0)
    Propagation: 0.123456 s
    >>> with Timer(verbose=False) as timer:
    ...     equations.compile()
    >>> timer.elapsed
    """

    def __init__(self, name="Operation", verbose=True):
        self.name = name
        self.verbose = verbose
        self.elapsed = None
        self._started = None

    def __enter__(self):
        self._started = perf_counter()
        return self

    def __exit__(self, *exc_info):
        self.elapsed = perf_counter() - self._started
        if self.verbose:
            print(f"{self.name}: {self.elapsed:.6f} s")


def validation_error(message: str, error_class: Type[Exception] = ValueError):
    """
    Report a suspicious but usable input.

    Raises ``error_class(message)`` when config.STRICT_VALIDATION is set,
    otherwise emits a UserWarning with the same message and returns.
    Only soft checks, such as an initial position inside the central body,
    go through here; fatal errors are raised directly.

    Parameters
    ----------
    message : str
    error_class : Type[Exception], optional
        Raised in strict mode (default ValueError)
    """
    if config.STRICT_VALIDATION:
        raise error_class(message)
    warnings.warn(message, UserWarning, stacklevel=2)
