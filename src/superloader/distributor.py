"""
Fan fetch results back out to the requests that asked for them.
"""

from __future__ import annotations

import asyncio
import typing as t

import structlog

from superloader.cache import CacheStore
from superloader.exceptions import ResultLengthError
from superloader.outcome import Failure, as_outcome
from superloader.window import BatchWindow, PendingRequest

log = structlog.get_logger(__name__)


class ResultDistributor:
    """
    Own dispatched windows until every key is settled.

    Parameters
    ----------
    cache_store : CacheStore
        Store receiving successful results.
    cache_enabled : bool
        If ``False``, nothing is written to the store and in-flight keys are
        not shared across windows.
    name : str
        Loader name for log events.
    """

    def __init__(self, *, cache_store: CacheStore, cache_enabled: bool, name: str) -> None:
        self._cache_store = cache_store
        self._cache_enabled = cache_enabled
        self._name = name
        self._inflight: dict[t.Hashable, BatchWindow] = {}

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    def accept(self, *, window: BatchWindow) -> None:
        """
        Take ownership of a dispatched window's keys.

        Parameters
        ----------
        window : BatchWindow
            Window being dispatched.
        """
        if not self._cache_enabled:
            return
        for key in window.keys:
            self._inflight[key] = window

    def attach(
        self,
        *,
        key: t.Any,
        normalized_key: t.Hashable,
        loop: asyncio.AbstractEventLoop,
    ) -> asyncio.Future[t.Any] | None:
        """
        Join a request to a fetch already in flight for the same key.

        Parameters
        ----------
        key : typing.Any
            Key as passed to ``load``.
        normalized_key : typing.Hashable
            Key after ``key_fn``.
        loop : asyncio.AbstractEventLoop
            Running loop used to create the future.

        Returns
        -------
        asyncio.Future[typing.Any] | None
            Future for the in-flight result, or ``None`` if the key is not in
            flight.
        """
        window = self._inflight.get(normalized_key)
        if window is None:
            return None
        future: asyncio.Future[t.Any] = loop.create_future()
        window.add(key=key, normalized_key=normalized_key, future=future)
        log.debug(
            event="Joined in-flight fetch",
            loader=self._name,
            window_id=window.window_id,
            key=normalized_key,
        )
        return future

    def forget(self, *, normalized_key: t.Hashable) -> None:
        """
        Stop tracking an in-flight key so its result is not cached.

        Parameters
        ----------
        normalized_key : typing.Hashable
            Key being cleared.
        """
        window = self._inflight.pop(normalized_key, None)
        if window is not None:
            window.uncacheable.add(normalized_key)

    def forget_all(self) -> None:
        for key, window in self._inflight.items():
            window.uncacheable.add(key)
        self._inflight.clear()

    def resolve(
        self,
        *,
        window: BatchWindow,
        keys: t.Sequence[t.Hashable],
        results: t.Sequence[t.Any],
    ) -> None:
        """
        Settle a chunk from the fetch function's results.

        Parameters
        ----------
        window : BatchWindow
            Window the chunk belongs to.
        keys : typing.Sequence[typing.Hashable]
            Normalized keys of the chunk, in fetch order.
        results : typing.Sequence[typing.Any]
            One result per key, in the same order.
        """
        if len(results) != len(keys):
            error = ResultLengthError(expected=len(keys), received=len(results))
            log.error(
                event="Fetch function broke the result contract",
                loader=self._name,
                window_id=window.window_id,
                expected=error.expected,
                received=error.received,
            )
            self.reject(window=window, keys=keys, error=error)
            return

        failed_count = 0
        for key, result in zip(keys, results):
            outcome = as_outcome(value=result)
            cacheable = key not in window.uncacheable
            requests = self._settle(window=window, key=key)
            if isinstance(outcome, Failure):
                failed_count += 1
                # Failures leave the cache untouched, including entries primed mid-fetch.
                self._fail(requests=requests, error=outcome.error)
                continue
            if cacheable and self._cache_enabled:
                self._cache_store.set(key, outcome.value)
            for request in requests:
                if not request.future.done():
                    request.future.set_result(outcome.value)
        log.debug(
            event="Distributed chunk results",
            loader=self._name,
            window_id=window.window_id,
            key_count=len(keys),
            failed_count=failed_count,
        )

    def reject(
        self,
        *,
        window: BatchWindow,
        keys: t.Sequence[t.Hashable],
        error: BaseException,
    ) -> None:
        """
        Fail every request of a chunk with the same error.

        Parameters
        ----------
        window : BatchWindow
            Window the chunk belongs to.
        keys : typing.Sequence[typing.Hashable]
            Normalized keys of the chunk.
        error : BaseException
            Error attached to every pending future.
        """
        for key in keys:
            self._fail(requests=self._settle(window=window, key=key), error=error)

    def _settle(self, *, window: BatchWindow, key: t.Hashable) -> list[PendingRequest]:
        """
        Detach a key's requests from the window and the in-flight index.

        Parameters
        ----------
        window : BatchWindow
            Window owning the key.
        key : typing.Hashable
            Normalized key.

        Returns
        -------
        list[PendingRequest]
            Requests waiting on the key.
        """
        if self._inflight.get(key) is window:
            del self._inflight[key]
        return window.groups.pop(key, [])

    def _fail(self, *, requests: list[PendingRequest], error: BaseException) -> None:
        for request in requests:
            if not request.future.done():
                request.future.set_exception(error)
