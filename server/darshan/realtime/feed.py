"""In-process change feed: table-scoped publish/subscribe over asyncio queues."""

import asyncio
from typing import Dict, Optional, Set

from ..core.config import settings
from ..core.observability import get_logger, metrics_collector
from .events import ChangeEvent, RowPredicate

logger = get_logger(__name__)

# Marks the end of a channel's stream
_CLOSED = object()


class FeedChannel:
    """
    One subscriber's view of the feed.

    Events matching ``table`` and ``predicate`` are queued in publish order.
    Iterating the channel yields them until the channel is closed, either by
    its owner or by the feed when the subscriber falls behind.
    """

    def __init__(
        self,
        feed: "ChangeFeed",
        table: str,
        predicate: Optional[RowPredicate],
        queue_size: int,
    ):
        self.table = table
        self.predicate = predicate
        self._feed = feed
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._closed = False
        self.dropped = False

    @property
    def closed(self) -> bool:
        return self._closed

    def matches(self, event: ChangeEvent) -> bool:
        if event.table != self.table:
            return False
        return self.predicate is None or bool(self.predicate(event.record))

    def offer(self, event: ChangeEvent) -> bool:
        """Queue ``event`` without waiting; False when the buffer is full."""
        if self._closed:
            return False
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            return False
        return True

    def close(self) -> None:
        """Release the channel. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._feed._release(self)
        # Pending events are discarded so the end marker always fits
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSED)

    async def get(self) -> Optional[ChangeEvent]:
        """Next event, or None once the channel is closed."""
        if self._closed and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            # Keep the marker for any other waiter
            self._queue.put_nowait(_CLOSED)
            return None
        return item

    def __aiter__(self):
        return self

    async def __anext__(self) -> ChangeEvent:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event


class ChangeFeed:
    """
    Fan-out of committed store mutations to interested subscribers.

    Publishing never blocks: a subscriber whose buffer is full is dropped
    and its channel closed, so delivery is at-most-once per subscriber.
    """

    def __init__(self, queue_size: Optional[int] = None):
        self.queue_size = queue_size or settings.realtime_queue_size
        self._channels: Dict[str, Set[FeedChannel]] = {}

    async def subscribe(self, table: str, predicate: Optional[RowPredicate] = None) -> FeedChannel:
        """
        Open a channel for ``table`` rows accepted by ``predicate``.

        Returns once the channel is registered, which is the point from
        which it is guaranteed to see every later publish.
        """
        channel = FeedChannel(self, table, predicate, self.queue_size)
        self._channels.setdefault(table, set()).add(channel)
        logger.debug(
            "Feed channel opened",
            table=table,
            predicate=getattr(predicate, "__name__", None),
        )
        # Let the caller observe the registration as an acknowledgement
        await asyncio.sleep(0)
        return channel

    def publish(self, event: ChangeEvent) -> int:
        """
        Deliver ``event`` to every matching channel.

        Returns:
            int: Number of channels the event was queued on
        """
        metrics_collector.record_feed_event(event.table, event.event_type.value)

        delivered = 0
        for channel in list(self._channels.get(event.table, ())):
            if not channel.matches(event):
                continue
            if channel.offer(event):
                delivered += 1
                continue

            logger.warning(
                "Dropping slow feed subscriber",
                table=event.table,
                queue_size=self.queue_size,
            )
            metrics_collector.record_dropped_subscriber(event.table)
            channel.dropped = True
            channel.close()

        return delivered

    def subscriber_count(self, table: Optional[str] = None) -> int:
        if table is not None:
            return len(self._channels.get(table, ()))
        return sum(len(channels) for channels in self._channels.values())

    def _release(self, channel: FeedChannel) -> None:
        channels = self._channels.get(channel.table)
        if channels is None:
            return
        channels.discard(channel)
        if not channels:
            del self._channels[channel.table]
