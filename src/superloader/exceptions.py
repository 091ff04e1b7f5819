"""
Superloader-specific runtime exceptions.
"""

from __future__ import annotations


class SuperLoaderError(RuntimeError):
    """
    Base class for errors raised by a loader.
    """


class ContractViolation(SuperLoaderError):
    """
    Signal that a caller or a fetch function broke the loader contract.

    Notes
    -----
    Contract violations are fatal and never retried by the loader.
    """


class InvalidKeyError(ContractViolation, ValueError):
    """
    Raised when ``load`` receives a ``None`` key.
    """


class ResultLengthError(ContractViolation):
    """
    Raised when a fetch function returns the wrong number of results.

    Parameters
    ----------
    expected : int
        Number of keys passed to the fetch function.
    received : int
        Number of results returned.
    """

    def __init__(self, *, expected: int, received: int) -> None:
        self.expected = expected
        self.received = received
        super().__init__(
            f"Fetch function returned {received} result(s) for {expected} key(s); "
            "it must return one result per key, in key order"
        )


class WindowDispatchError(ContractViolation):
    """
    Raised when a batch window is dispatched more than once.
    """
