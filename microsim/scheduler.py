"""
Streaming scheduler for per-component telemetry subscriptions.

Every subscription runs its own cadence loop as an asyncio task:

1. fetch ``(sample, interval_ms)`` from the configuration bridge;
2. put the sample on the subscription's bounded queue (blocks while the
   subscriber lags, nothing is dropped);
3. advance the target time by ``interval_ms`` from the *previous target*
   and sleep until it, so slow evaluation or delivery does not accumulate
   drift;
4. repeat until the subscriber goes away.

A fetch failure ends the subscription: the error is delivered to the
subscriber as a terminal :class:`~microsim.errors.StreamError`.  A subscriber
disconnect is not an error; the loop is cancelled and logs at debug level.

Subscriptions are independent of each other; there is no ordering between
samples of different subscriptions.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from microsim.errors import MicrosimError, StreamError

if TYPE_CHECKING:
    from microsim.bridge import ConfigBridge
    from microsim.models import ComponentData

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE: int = 128
"""Samples buffered per subscription before the cadence loop blocks."""


class Subscription:
    """Consumer side of one telemetry stream.

    Iterate with ``async for`` to receive samples.  Iteration ends by
    raising :class:`StreamError` when the producer fails.  Call
    :meth:`close` (or leave the ``async with`` block) when the subscriber
    disconnects.

    Args:
        component_id: Component whose telemetry is streamed.
        queue: Bounded queue shared with the cadence loop.
    """

    def __init__(
        self,
        component_id: int,
        queue: asyncio.Queue[ComponentData | StreamError],
    ) -> None:
        self.component_id = component_id
        self._queue = queue
        self._task: asyncio.Task[None] | None = None
        self.closed = False
        self._failed = False

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> ComponentData:
        if self._failed or (self.closed and self._queue.empty()):
            raise StopAsyncIteration
        item = await self._queue.get()
        if isinstance(item, StreamError):
            self._failed = True
            raise item
        return item

    async def __aenter__(self) -> Subscription:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Stop the cadence loop and wait for it to finish."""
        self.closed = True
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


class StreamScheduler:
    """Starts and tracks cadence loops for telemetry subscriptions.

    Args:
        bridge: Configuration bridge providing samples and intervals.
        buffer_size: Capacity of each subscription's delivery queue.
    """

    def __init__(
        self, bridge: ConfigBridge, *, buffer_size: int = DEFAULT_BUFFER_SIZE
    ) -> None:
        self._bridge = bridge
        self._buffer_size = buffer_size
        self._subscriptions: set[Subscription] = set()

    @property
    def active_count(self) -> int:
        """Number of subscriptions whose cadence loop is still running."""
        return len(self._subscriptions)

    def subscribe(self, component_id: int) -> Subscription:
        """Open a subscription and start its cadence loop.

        Must be called from within the running event loop.
        """
        queue: asyncio.Queue[ComponentData | StreamError] = asyncio.Queue(
            maxsize=self._buffer_size
        )
        subscription = Subscription(component_id, queue)
        task = asyncio.create_task(
            self._cadence_loop(subscription, queue),
            name=f"stream-component-{component_id}",
        )
        subscription._task = task
        self._subscriptions.add(subscription)
        task.add_done_callback(lambda _t: self._subscriptions.discard(subscription))
        logger.debug("Opened telemetry stream for component %d", component_id)
        return subscription

    async def close(self) -> None:
        """Close every open subscription."""
        for subscription in list(self._subscriptions):
            await subscription.close()

    async def _cadence_loop(
        self,
        subscription: Subscription,
        queue: asyncio.Queue[ComponentData | StreamError],
    ) -> None:
        component_id = subscription.component_id
        loop = asyncio.get_running_loop()
        target = loop.time()
        try:
            while not subscription.closed:
                try:
                    sample, interval_ms = self._bridge.get_component_data(component_id)
                except MicrosimError as exc:
                    logger.error(
                        "stream_component_data(component_id=%d): %s",
                        component_id,
                        exc,
                    )
                    await queue.put(StreamError(component_id, exc))
                    return

                await queue.put(sample)

                target += interval_ms / 1000.0
                await asyncio.sleep(max(0.0, target - loop.time()))
        except asyncio.CancelledError:
            logger.debug(
                "stream_component_data(component_id=%d): subscriber disconnected",
                component_id,
            )
            raise
        logger.debug(
            "stream_component_data(component_id=%d): stream closed", component_id
        )
