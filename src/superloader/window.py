"""
Batch window accumulation and end-of-iteration scheduling.

A window collects every ``load`` miss issued before the event loop gets back to
its ready queue. The flush callback is queued with ``loop.call_soon`` when the
window opens, so it runs after all callbacks and task steps already scheduled.
"""

from __future__ import annotations

import asyncio
import itertools
import typing as t
from dataclasses import dataclass, field

import structlog

from superloader.exceptions import WindowDispatchError

log = structlog.get_logger(__name__)


@dataclass(slots=True)
class PendingRequest:
    """A single ``load`` call waiting on its window."""

    key: t.Any
    normalized_key: t.Hashable
    future: asyncio.Future[t.Any]
    position: int


@dataclass(slots=True)
class BatchWindow:
    """
    Requests coalesced into one dispatch.

    ``keys`` holds each normalized key once, in first-seen order. ``groups``
    maps a normalized key to every request attached to it.
    """

    window_id: int = 0
    keys: list[t.Hashable] = field(default_factory=list)
    originals: dict[t.Hashable, t.Any] = field(default_factory=dict)
    groups: dict[t.Hashable, list[PendingRequest]] = field(default_factory=dict)
    request_count: int = 0
    dispatched: bool = False
    # Keys cleared while the window was in flight; their results are not cached.
    uncacheable: set[t.Hashable] = field(default_factory=set)

    def add(
        self,
        *,
        key: t.Any,
        normalized_key: t.Hashable,
        future: asyncio.Future[t.Any],
    ) -> PendingRequest:
        """
        Attach a request to the window.

        Parameters
        ----------
        key : typing.Any
            Key as passed to ``load``.
        normalized_key : typing.Hashable
            Key after ``key_fn``.
        future : asyncio.Future[typing.Any]
            Future handed back to the caller.

        Returns
        -------
        PendingRequest
            The attached request.
        """
        request = PendingRequest(
            key=key,
            normalized_key=normalized_key,
            future=future,
            position=self.request_count,
        )
        self.request_count += 1
        group = self.groups.get(normalized_key)
        if group is None:
            self.keys.append(normalized_key)
            self.originals[normalized_key] = key
            self.groups[normalized_key] = [request]
        else:
            group.append(request)
        return request

    def original_keys(self, *, keys: t.Sequence[t.Hashable]) -> list[t.Any]:
        """
        Map normalized keys back to the first-seen keys passed to ``load``.

        Parameters
        ----------
        keys : typing.Sequence[typing.Hashable]
            Normalized keys of this window.

        Returns
        -------
        list[typing.Any]
            Keys to pass to the fetch function.
        """
        return [self.originals[key] for key in keys]


class WindowScheduler:
    """
    Hold the single open window of a loader and close it once per iteration.

    Parameters
    ----------
    on_dispatch : typing.Callable[[BatchWindow], None]
        Called synchronously with each closed window.
    name : str
        Loader name for log events.
    """

    def __init__(self, *, on_dispatch: t.Callable[[BatchWindow], None], name: str) -> None:
        self._on_dispatch = on_dispatch
        self._name = name
        self._open_window: BatchWindow | None = None
        self._flush_handle: asyncio.Handle | None = None
        self._window_ids = itertools.count(start=1)

    @property
    def open_window(self) -> BatchWindow | None:
        return self._open_window

    def enqueue(
        self,
        *,
        key: t.Any,
        normalized_key: t.Hashable,
        loop: asyncio.AbstractEventLoop,
    ) -> asyncio.Future[t.Any]:
        """
        Add a cache miss to the open window, opening one if needed.

        Parameters
        ----------
        key : typing.Any
            Key as passed to ``load``.
        normalized_key : typing.Hashable
            Key after ``key_fn``.
        loop : asyncio.AbstractEventLoop
            Running loop used to create the future and schedule the flush.

        Returns
        -------
        asyncio.Future[typing.Any]
            Future resolved once the window is dispatched and settled.
        """
        window = self._open_window
        if window is None:
            window = BatchWindow(window_id=next(self._window_ids))
            self._open_window = window
            self._flush_handle = loop.call_soon(self._close_window, window)
            log.debug(
                event="Opened batch window",
                loader=self._name,
                window_id=window.window_id,
            )
        future: asyncio.Future[t.Any] = loop.create_future()
        window.add(key=key, normalized_key=normalized_key, future=future)
        return future

    def flush_now(self) -> BatchWindow | None:
        """
        Close the open window immediately instead of waiting for the loop.

        Returns
        -------
        BatchWindow | None
            The dispatched window, or ``None`` when no window was open.
        """
        window = self._open_window
        if window is None:
            return None
        if self._flush_handle is not None:
            self._flush_handle.cancel()
        self._close_window(window)
        return window

    def _close_window(self, window: BatchWindow) -> None:
        """
        Mark a window dispatched and hand it over.

        Parameters
        ----------
        window : BatchWindow
            Window to close.

        Raises
        ------
        WindowDispatchError
            If the window was already dispatched.
        """
        if window.dispatched:
            raise WindowDispatchError(f"Batch window {window.window_id} was already dispatched")
        window.dispatched = True
        if self._open_window is window:
            self._open_window = None
            self._flush_handle = None
        log.debug(
            event="Closed batch window",
            loader=self._name,
            window_id=window.window_id,
            key_count=len(window.keys),
            request_count=window.request_count,
        )
        self._on_dispatch(window)
