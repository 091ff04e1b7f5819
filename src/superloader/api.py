"""
Main endpoint for users.
Exposes a `create_loader` function that validates a configuration and returns
a SuperLoader bound to it.
"""

import typing as t

from superloader.cache import CacheStore
from superloader.config import ChunkPolicy, FetchFn, KeyFn, LoaderConfig
from superloader.loader import SuperLoader


def create_loader(
    fetch_fn: FetchFn,
    *,
    key_fn: KeyFn | None = None,
    chunk_size: int | None = None,
    cache: bool = True,
    cache_store: CacheStore | None = None,
    chunk_policy: ChunkPolicy | str = ChunkPolicy.concurrent,
    name: str = "loader",
) -> SuperLoader:
    """
    Build a loader that coalesces ``load`` calls into batched ``fetch_fn`` calls.<br>
    Every ``load`` issued before the event loop gets back to its ready queue is fetched in the same call.<br>
    Results are cached per key so a key is only fetched once until it is cleared.

    Parameters
    ----------
    fetch_fn : FetchFn
        Sync or async function receiving a list of keys and returning one result per key, in the same order.<br>
        A result may be a value, a ``Success``, a ``Failure`` marker or an exception instance.
    key_fn : KeyFn | None, optional
        Derives the cache and dedup key from a loader key.<br>
        Defaults to the key itself, or a canonical JSON string for unhashable keys.
    chunk_size : int | None, optional
        Maximum number of keys per ``fetch_fn`` call. ``None`` fetches each window in one call.
    cache : bool, optional
        If ``False``, every window is fetched again; duplicates are still merged within a window.
    cache_store : CacheStore | None, optional
        Store for cached values. Defaults to a new in-memory store owned by the loader.
    chunk_policy : ChunkPolicy | str, optional
        ``"concurrent"`` runs the chunks of one window together, ``"sequential"`` one after another.
    name : str, optional
        Loader name bound to log events.

    Returns
    -------
    SuperLoader
        Configured loader.

    Raises
    ------
    pydantic.ValidationError
        If the configuration is invalid.
    """
    config = LoaderConfig(
        fetch_fn=fetch_fn,
        key_fn=key_fn,
        chunk_size=chunk_size,
        cache=cache,
        cache_store=cache_store,
        chunk_policy=t.cast(ChunkPolicy, chunk_policy),
        name=name,
    )
    return SuperLoader(config=config)
