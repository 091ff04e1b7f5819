"""
Request-coalescing loader.

Every ``load`` miss issued during one pass of the event loop lands in the same
batch window; the window is fetched once (split into chunks when it is larger
than ``chunk_size``) and each caller receives the outcome for its own key.
Successful results are cached per normalized key.
"""

from __future__ import annotations

import asyncio
import typing as t

import structlog

from superloader.chunking import ChunkDispatcher
from superloader.config import LoaderConfig
from superloader.distributor import ResultDistributor
from superloader.exceptions import ContractViolation, InvalidKeyError, SuperLoaderError
from superloader.logging import logging_context
from superloader.outcome import Failure, Success, is_failure
from superloader.window import BatchWindow, WindowScheduler

log = structlog.get_logger(__name__)


class SuperLoader:
    """
    Coalesce key lookups into batched fetch calls and cache their results.

    Parameters
    ----------
    config : LoaderConfig
        Immutable loader configuration.

    Notes
    -----
    All state is owned by the instance; loaders with different configurations
    can share one event loop. ``load`` and ``load_many`` must be called while
    that loop is running.
    """

    def __init__(self, *, config: LoaderConfig) -> None:
        self._config = config
        self._name = config.name
        self._key_fn = config.key_fn
        self._cache_enabled = config.cache
        self._cache_store = config.cache_store

        self._distributor = ResultDistributor(
            cache_store=self._cache_store,
            cache_enabled=self._cache_enabled,
            name=self._name,
        )
        self._dispatcher = ChunkDispatcher(
            fetch_fn=config.fetch_fn,
            distributor=self._distributor,
            chunk_size=config.chunk_size,
            policy=config.chunk_policy,
            name=self._name,
        )
        self._scheduler = WindowScheduler(on_dispatch=self._on_window_closed, name=self._name)
        self._dispatch_tasks: set[asyncio.Task[None]] = set()

        log.debug(
            event="Initialized loader",
            loader=self._name,
            chunk_size=config.chunk_size,
            chunk_policy=str(object=config.chunk_policy),
            cache_enabled=self._cache_enabled,
            cache_store=type(self._cache_store).__name__,
        )

    @property
    def config(self) -> LoaderConfig:
        return self._config

    @property
    def pending_count(self) -> int:
        """
        Number of requests waiting in the open window.

        Returns
        -------
        int
            ``0`` when no window is open.
        """
        window = self._scheduler.open_window
        return window.request_count if window is not None else 0

    def _normalize(self, *, key: t.Any) -> t.Hashable:
        """
        Validate a key and derive its cache key.

        Parameters
        ----------
        key : typing.Any
            Key passed by the caller.

        Returns
        -------
        typing.Hashable
            Normalized key.

        Raises
        ------
        InvalidKeyError
            If ``key`` is ``None``.
        """
        if key is None:
            raise InvalidKeyError(f"{self._name}: load() requires a key, got None")
        return self._key_fn(key)

    def load(self, key: t.Any) -> asyncio.Future[t.Any]:
        """
        Request the value for one key.

        Parameters
        ----------
        key : typing.Any
            Key to load. Must not be ``None``.

        Returns
        -------
        asyncio.Future[typing.Any]
            Future resolving to the value, or failing with the key's error.
            Cached keys return an already completed future.

        Raises
        ------
        InvalidKeyError
            If ``key`` is ``None``.
        RuntimeError
            If no event loop is running.
        """
        normalized_key = self._normalize(key=key)
        loop = asyncio.get_running_loop()

        if self._cache_enabled:
            entry = self._cache_store.get(normalized_key)
            if entry is not None:
                future: asyncio.Future[t.Any] = loop.create_future()
                future.set_result(entry.value)
                return future
            inflight = self._distributor.attach(
                key=key,
                normalized_key=normalized_key,
                loop=loop,
            )
            if inflight is not None:
                return inflight

        return self._scheduler.enqueue(key=key, normalized_key=normalized_key, loop=loop)

    def load_many(self, keys: t.Iterable[t.Any]) -> asyncio.Future[list[t.Any]]:
        """
        Request the values for many keys at once.

        Parameters
        ----------
        keys : typing.Iterable[typing.Any]
            Keys to load. Order and duplicates are preserved.

        Returns
        -------
        asyncio.Future[list[typing.Any]]
            Future resolving to one element per key. A key that failed is
            represented by a ``Failure`` marker at its position instead of
            failing the whole call.

        Raises
        ------
        InvalidKeyError
            If any key is ``None``. No key is enqueued in that case.
        """
        keys = list(keys)
        for key in keys:
            if key is None:
                raise InvalidKeyError(f"{self._name}: load_many() received a None key")
        futures = [self.load(key) for key in keys]
        return asyncio.ensure_future(self._collect(futures=futures))

    @staticmethod
    async def _collect(*, futures: list[asyncio.Future[t.Any]]) -> list[t.Any]:
        """
        Await every future, turning errors into ``Failure`` markers.

        Parameters
        ----------
        futures : list[asyncio.Future[typing.Any]]
            Futures returned by ``load``.

        Returns
        -------
        list[typing.Any]
            Values and ``Failure`` markers, in input order.
        """
        if not futures:
            return []
        results = await asyncio.gather(*futures, return_exceptions=True)
        return [
            Failure(error=result) if isinstance(result, BaseException) else result
            for result in results
        ]

    def clear(self, key: t.Any) -> "SuperLoader":
        """
        Drop the cached value for one key.

        A fetch already in flight for the key still settles its callers, but its
        result is not written back to the cache.

        Parameters
        ----------
        key : typing.Any
            Key to forget.

        Returns
        -------
        SuperLoader
            This loader.
        """
        normalized_key = self._normalize(key=key)
        self._cache_store.delete(normalized_key)
        self._distributor.forget(normalized_key=normalized_key)
        log.debug(event="Cleared cache key", loader=self._name, key=normalized_key)
        return self

    def clear_all(self) -> "SuperLoader":
        """
        Drop every cached value.

        Returns
        -------
        SuperLoader
            This loader.
        """
        self._cache_store.clear()
        self._distributor.forget_all()
        log.debug(event="Cleared cache", loader=self._name)
        return self

    def prime(self, key: t.Any, value: t.Any, overwrite: bool = False) -> "SuperLoader":
        """
        Seed the cache without calling the fetch function.

        Parameters
        ----------
        key : typing.Any
            Key to seed.
        value : typing.Any
            Value to cache.
        overwrite : bool, optional
            If ``False``, an existing entry is kept.

        Returns
        -------
        SuperLoader
            This loader.

        Raises
        ------
        ContractViolation
            If ``value`` is a failure marker or an exception.
        """
        normalized_key = self._normalize(key=key)
        if is_failure(value=value):
            raise ContractViolation(f"{self._name}: failures cannot be primed into the cache")
        if isinstance(value, Success):
            value = value.value
        if not self._cache_enabled:
            log.debug(event="Ignored prime with cache disabled", loader=self._name)
            return self
        if not overwrite and self._cache_store.get(normalized_key) is not None:
            return self
        self._cache_store.set(normalized_key, value)
        log.debug(
            event="Primed cache key",
            loader=self._name,
            key=normalized_key,
            overwrite=overwrite,
        )
        return self

    async def flush(self) -> None:
        """
        Dispatch the open window now and wait for every dispatch to settle.
        """
        self._scheduler.flush_now()
        while self._dispatch_tasks:
            # Dispatch errors are already delivered to the affected futures.
            await asyncio.gather(*list(self._dispatch_tasks), return_exceptions=True)

    def _on_window_closed(self, window: BatchWindow) -> None:
        """
        Hand a closed window to the distributor and start its dispatch.

        Parameters
        ----------
        window : BatchWindow
            Window closed by the scheduler.
        """
        self._distributor.accept(window=window)
        task = asyncio.get_running_loop().create_task(
            self._run_dispatch(window=window),
            name=f"superloader_dispatch_{self._name}_{window.window_id}",
        )
        self._dispatch_tasks.add(task)
        task.add_done_callback(self._on_dispatch_task_done)

    async def _run_dispatch(self, *, window: BatchWindow) -> None:
        """
        Dispatch a window and fail anything left unsettled.

        Parameters
        ----------
        window : BatchWindow
            Window to dispatch.
        """
        with logging_context(loader=self._name, window_id=window.window_id):
            try:
                await self._dispatcher.dispatch(window=window)
            except Exception as e:
                log.error(
                    event="Dispatch failed",
                    loader=self._name,
                    window_id=window.window_id,
                    error=str(object=e),
                )
                self._distributor.reject(window=window, keys=list(window.groups), error=e)
                raise
            finally:
                self._fail_unsettled(window=window)

    def _fail_unsettled(self, *, window: BatchWindow) -> None:
        """
        Fail requests whose key never received a result.

        Parameters
        ----------
        window : BatchWindow
            Dispatched window.
        """
        missing = list(window.groups)
        if not missing:
            return
        log.error(
            event="Unsettled keys after dispatch",
            loader=self._name,
            window_id=window.window_id,
            missing_count=len(missing),
        )
        error = SuperLoaderError(f"No result delivered for {len(missing)} key(s)")
        self._distributor.reject(window=window, keys=missing, error=error)

    def _on_dispatch_task_done(self, task: asyncio.Task[None]) -> None:
        """
        Cleanup callback for background dispatch tasks.

        Parameters
        ----------
        task : asyncio.Task[None]
            Completed task.
        """
        self._dispatch_tasks.discard(task)
        try:
            _ = task.exception()
        except asyncio.CancelledError:
            pass

    def __repr__(self) -> str:
        return (
            f"SuperLoader(name={self._name!r}, chunk_size={self._config.chunk_size}, "
            f"cache={self._cache_enabled}, cached={len(self._cache_store)}, "
            f"pending={self.pending_count}, inflight={self._distributor.inflight_count})"
        )
