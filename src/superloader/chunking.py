"""
Split a window into bounded fetch calls and run them.
"""

from __future__ import annotations

import asyncio
import inspect
import math
import typing as t

import structlog

from superloader.config import ChunkPolicy, FetchFn
from superloader.distributor import ResultDistributor
from superloader.exceptions import ContractViolation
from superloader.window import BatchWindow

log = structlog.get_logger(__name__)


def split_chunks(
    *,
    keys: t.Sequence[t.Hashable],
    chunk_size: int | None,
) -> list[list[t.Hashable]]:
    """
    Split keys into contiguous chunks, preserving order.

    Parameters
    ----------
    keys : typing.Sequence[typing.Hashable]
        Ordered keys of one window.
    chunk_size : int | None
        Maximum keys per chunk. ``None`` keeps every key in one chunk.

    Returns
    -------
    list[list[typing.Hashable]]
        ``ceil(len(keys) / chunk_size)`` chunks.
    """
    if not keys:
        return []
    if chunk_size is None or len(keys) <= chunk_size:
        return [list(keys)]
    chunk_count = math.ceil(len(keys) / chunk_size)
    return [list(keys[i * chunk_size : (i + 1) * chunk_size]) for i in range(chunk_count)]


class ChunkDispatcher:
    """
    Invoke the fetch function once per chunk of a window.

    Parameters
    ----------
    fetch_fn : FetchFn
        Batch fetch function, sync or async.
    distributor : ResultDistributor
        Receives each chunk's results or failure.
    chunk_size : int | None
        Maximum keys per fetch call.
    policy : ChunkPolicy
        ``concurrent`` gathers all chunks, ``sequential`` awaits them in order.
    name : str
        Loader name for log events.

    Notes
    -----
    A chunk that fails only fails its own keys, whatever the policy.
    """

    def __init__(
        self,
        *,
        fetch_fn: FetchFn,
        distributor: ResultDistributor,
        chunk_size: int | None,
        policy: ChunkPolicy,
        name: str,
    ) -> None:
        self._fetch_fn = fetch_fn
        self._distributor = distributor
        self._chunk_size = chunk_size
        self._policy = policy
        self._name = name

    async def dispatch(self, *, window: BatchWindow) -> None:
        """
        Fetch and settle every key of a window.

        Parameters
        ----------
        window : BatchWindow
            Closed window to dispatch.
        """
        chunks = split_chunks(keys=window.keys, chunk_size=self._chunk_size)
        log.info(
            event="Dispatching batch window",
            loader=self._name,
            window_id=window.window_id,
            key_count=len(window.keys),
            request_count=window.request_count,
            chunk_count=len(chunks),
            policy=str(object=self._policy),
        )
        if self._policy is ChunkPolicy.sequential or len(chunks) == 1:
            for index, chunk in enumerate(chunks):
                await self._dispatch_chunk(window=window, keys=chunk, index=index)
            return
        await asyncio.gather(
            *(
                self._dispatch_chunk(window=window, keys=chunk, index=index)
                for index, chunk in enumerate(chunks)
            )
        )

    async def _dispatch_chunk(
        self,
        *,
        window: BatchWindow,
        keys: list[t.Hashable],
        index: int,
    ) -> None:
        """
        Run one fetch call and hand its outcome to the distributor.

        Parameters
        ----------
        window : BatchWindow
            Window the chunk belongs to.
        keys : list[typing.Hashable]
            Normalized keys of the chunk.
        index : int
            Chunk position within the window.
        """
        try:
            results = self._fetch_fn(window.original_keys(keys=keys))
            if inspect.isawaitable(results):
                results = await results
        except Exception as e:
            log.error(
                event="Fetch function failed",
                loader=self._name,
                window_id=window.window_id,
                chunk_index=index,
                key_count=len(keys),
                error=str(object=e),
            )
            self._distributor.reject(window=window, keys=keys, error=e)
            return
        if isinstance(results, (str, bytes, t.Mapping)) or not isinstance(results, t.Iterable):
            error = ContractViolation(
                f"Fetch function must return a sequence of results, got {type(results).__name__}"
            )
            log.error(
                event="Fetch function broke the result contract",
                loader=self._name,
                window_id=window.window_id,
                chunk_index=index,
                result_type=type(results).__name__,
            )
            self._distributor.reject(window=window, keys=keys, error=error)
            return
        log.debug(
            event="Fetched chunk",
            loader=self._name,
            window_id=window.window_id,
            chunk_index=index,
            key_count=len(keys),
        )
        self._distributor.resolve(window=window, keys=keys, results=list(results))
