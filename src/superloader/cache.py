"""
In-memory cache store for loaded values, plus key normalization.
"""

from __future__ import annotations

import typing as t
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """
    Cached successful result for one normalized key.

    Parameters
    ----------
    key : typing.Hashable
        Normalized cache key.
    value : typing.Any
        Loaded value.
    """

    key: t.Hashable
    value: t.Any


@t.runtime_checkable
class CacheStore(t.Protocol):
    """
    Mapping contract for pluggable cache stores.

    Keys passed to a store are already normalized by the loader.
    """

    def get(self, key: t.Hashable) -> CacheEntry | None: ...

    def set(self, key: t.Hashable, value: t.Any) -> None: ...

    def delete(self, key: t.Hashable) -> None: ...

    def clear(self) -> None: ...

    def __len__(self) -> int: ...


class InMemoryCacheStore:
    """
    Dict-backed cache store, scoped to a single loader.
    """

    def __init__(self) -> None:
        self._entries: dict[t.Hashable, CacheEntry] = {}

    def get(self, key: t.Hashable) -> CacheEntry | None:
        """
        Look up one entry.

        Parameters
        ----------
        key : typing.Hashable
            Normalized key.

        Returns
        -------
        CacheEntry | None
            Entry when present.
        """
        return self._entries.get(key)

    def set(self, key: t.Hashable, value: t.Any) -> None:
        """
        Insert or replace one entry.

        Parameters
        ----------
        key : typing.Hashable
            Normalized key.
        value : typing.Any
            Value to cache.
        """
        self._entries[key] = CacheEntry(key=key, value=value)

    def delete(self, key: t.Hashable) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries


def default_key_fn(key: t.Any) -> t.Hashable:
    """
    Derive the default cache key for a loader key.

    Parameters
    ----------
    key : typing.Any
        Key passed to ``load``.

    Returns
    -------
    typing.Hashable
        Canonical form tagged with the key's type, so ``1``, ``True`` and
        ``1.0`` stay distinct while structurally-equal containers collapse to
        one entry.
    """
    return _canonical(value=key)


def _canonical(*, value: t.Any) -> t.Hashable:
    """
    Build a hashable, order-independent form of a value.

    Parameters
    ----------
    value : typing.Any
        Value to canonicalize.

    Returns
    -------
    typing.Hashable
        ``(type name, payload)`` tuple.
    """
    type_name = type(value).__qualname__
    if isinstance(value, t.Mapping):
        pairs = [(_canonical(value=k), _canonical(value=v)) for k, v in value.items()]
        return type_name, tuple(sorted(pairs, key=lambda pair: repr(pair[0])))
    if isinstance(value, (set, frozenset)):
        members = [_canonical(value=item) for item in value]
        return type_name, tuple(sorted(members, key=repr))
    if isinstance(value, (list, tuple)):
        return type_name, tuple(_canonical(value=item) for item in value)
    try:
        hash(value)
    except TypeError:
        # Unhashable objects without a known structure fall back to their repr.
        return type_name, repr(value)
    return type_name, value
