"""
Tagged per-key outcomes produced by a fetch function.

A fetch function returns one element per key. Each element is either a plain
value, an explicit ``Success``, a ``Failure`` marker, or an exception instance.
``as_outcome`` folds all of these into ``Success | Failure``.
"""

from __future__ import annotations

import typing as t
from dataclasses import dataclass

V = t.TypeVar(name="V")


@dataclass(frozen=True, slots=True)
class Success(t.Generic[V]):
    """A successfully loaded value."""

    value: V


@dataclass(frozen=True, slots=True)
class Failure:
    """
    Failure marker for a single key.

    Parameters
    ----------
    error : BaseException
        Error delivered to every request waiting on the key.
    """

    error: BaseException

    def unwrap(self) -> t.NoReturn:
        """
        Re-raise the carried error.

        Raises
        ------
        BaseException
            The carried error.
        """
        raise self.error


Outcome = Success[t.Any] | Failure


def is_failure(*, value: t.Any) -> bool:
    """
    Tell whether a fetch result element marks a failure.

    Parameters
    ----------
    value : typing.Any
        One element returned by a fetch function.

    Returns
    -------
    bool
        ``True`` for ``Failure`` markers and exception instances.
    """
    return isinstance(value, (Failure, BaseException))


def as_outcome(*, value: t.Any) -> Outcome:
    """
    Normalize one fetch result element into a tagged outcome.

    Parameters
    ----------
    value : typing.Any
        One element returned by a fetch function.

    Returns
    -------
    Outcome
        ``Failure`` for failure markers and exception instances, ``Success``
        otherwise.
    """
    if isinstance(value, (Success, Failure)):
        return value
    if isinstance(value, BaseException):
        return Failure(error=value)
    return Success(value=value)
