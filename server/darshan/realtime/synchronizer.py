"""
Realtime synchronizer.

A Subscription combines an initial pull of current rows with the live
change feed and hands both to one consumer-owned merge target. The
pull and the feed race; the target's last-write-wins merge makes the
result independent of which arrives first.
"""

import asyncio
import inspect
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Protocol, Sequence

from sqlalchemy.exc import DBAPIError, OperationalError

from ..core.config import settings
from ..core.exceptions import UpstreamServiceError
from ..core.observability import get_logger, metrics_collector
from .events import ChangeEvent, MergeOutcome, Row, RowPredicate
from .feed import ChangeFeed, FeedChannel

logger = get_logger(__name__)

# Errors worth another initial pull attempt
TRANSIENT_ERRORS = (OperationalError, DBAPIError, ConnectionError, TimeoutError, UpstreamServiceError)

PullFunction = Callable[[], Awaitable[Sequence[Row]]]
EventHandler = Callable[[MergeOutcome, Optional[ChangeEvent]], Any]


class SubscriptionState(str, Enum):
    INITIALIZING = "initializing"
    LIVE = "live"
    CLOSED = "closed"


class MergeTarget(Protocol):
    """State container a subscription feeds."""

    def apply_change(self, event: ChangeEvent) -> MergeOutcome:
        ...

    def apply_snapshot(self, rows: Sequence[Row]) -> List[MergeOutcome]:
        ...


class Subscription:
    """
    One live view of a filtered table.

    Lifecycle: ``initializing`` until the feed acknowledges the channel,
    then ``live``; ``stop()`` moves it to ``closed`` from any state.
    Handlers registered with ``on_event`` run after every live merge, in
    feed order, with the merge outcome and the event. The initial pull
    notifies once, with event None, if it changed any state.
    """

    def __init__(
        self,
        feed: ChangeFeed,
        table: str,
        target: MergeTarget,
        pull: PullFunction,
        predicate: Optional[RowPredicate] = None,
        retry_attempts: Optional[int] = None,
        retry_backoff_seconds: Optional[float] = None,
    ):
        self.feed = feed
        self.table = table
        self.target = target
        self.predicate = predicate
        self._pull = pull
        self.retry_attempts = retry_attempts or settings.store_retry_attempts
        self.retry_backoff_seconds = (
            settings.store_retry_backoff_seconds
            if retry_backoff_seconds is None
            else retry_backoff_seconds
        )

        self._state = SubscriptionState.INITIALIZING
        self._handlers: List[EventHandler] = []
        self._channel: Optional[FeedChannel] = None
        self._feed_task: Optional[asyncio.Task] = None
        self._pull_task: Optional[asyncio.Task] = None
        self._live = asyncio.Event()
        self._closed = asyncio.Event()
        self._started = False
        self.pull_error: Optional[BaseException] = None
        self.pull_discarded = False

        self._log = logger.with_context(
            table=table,
            predicate=getattr(predicate, "__name__", None),
        )

    @property
    def state(self) -> SubscriptionState:
        return self._state

    @property
    def is_closed(self) -> bool:
        return self._state is SubscriptionState.CLOSED

    def on_event(self, handler: EventHandler) -> EventHandler:
        """Register ``handler``; usable as a decorator."""
        self._handlers.append(handler)
        return handler

    async def start(self) -> "Subscription":
        """Start the initial pull and open the feed channel concurrently."""
        if self._started:
            raise RuntimeError("Subscription already started; create a new one to resubscribe")
        self._started = True

        metrics_collector.subscription_opened(self.table)
        self._pull_task = asyncio.create_task(self._run_initial_pull())
        self._feed_task = asyncio.create_task(self._run_feed())
        self._log.info("Subscription starting")
        return self

    async def stop(self) -> None:
        """Close the subscription and release its channel. Idempotent."""
        if self._state is SubscriptionState.CLOSED:
            return
        self._close()

        # An in-flight pull is left to finish; its result is discarded
        feed_task = self._feed_task
        if feed_task is not None and feed_task is not asyncio.current_task():
            await asyncio.gather(feed_task, return_exceptions=True)
        self._log.info("Subscription stopped")

    async def wait_live(self, timeout: Optional[float] = None) -> bool:
        """Wait until the feed acknowledged the channel; False on timeout or close."""
        try:
            await asyncio.wait_for(self._live.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return self._state is SubscriptionState.LIVE

    async def wait_closed(self) -> None:
        """Wait until the subscription is stopped or dropped by the feed."""
        await self._closed.wait()

    async def wait_pulled(self) -> None:
        """Wait for the initial pull to finish, whatever its fate."""
        if self._pull_task is not None:
            await asyncio.gather(self._pull_task, return_exceptions=True)

    def _close(self) -> None:
        if self._state is SubscriptionState.CLOSED:
            return
        self._state = SubscriptionState.CLOSED
        self._live.set()
        self._closed.set()
        if self._channel is not None:
            self._channel.close()
        if self._started:
            metrics_collector.subscription_closed(self.table)

    async def _run_feed(self) -> None:
        channel = await self.feed.subscribe(self.table, self.predicate)
        if self._state is SubscriptionState.CLOSED:
            channel.close()
            return

        self._channel = channel
        self._state = SubscriptionState.LIVE
        self._live.set()
        self._log.info("Subscription live")

        async for event in channel:
            if self._state is SubscriptionState.CLOSED:
                break
            outcome = self.target.apply_change(event)
            await self._notify(outcome, event)

        if channel.dropped and self._state is not SubscriptionState.CLOSED:
            self._log.warning("Subscription closed after falling behind the feed")
            self._close()

    async def _run_initial_pull(self) -> None:
        rows = None
        for attempt in range(1, self.retry_attempts + 1):
            try:
                rows = await self._pull()
                break
            except TRANSIENT_ERRORS as e:
                self.pull_error = e
                self._log.warning(
                    "Initial pull failed",
                    attempt=attempt,
                    attempts=self.retry_attempts,
                    error=str(e),
                )
                if attempt < self.retry_attempts and self._state is not SubscriptionState.CLOSED:
                    await asyncio.sleep(self.retry_backoff_seconds)
                else:
                    break
            except Exception as e:
                self.pull_error = e
                self._log.error("Initial pull failed permanently", error=str(e), exc_info=True)
                return

        if rows is None:
            self._log.error("Initial pull abandoned; continuing on the live feed only")
            return

        self.pull_error = None
        if self._state is SubscriptionState.CLOSED:
            self.pull_discarded = True
            self._log.info("Discarding initial pull that completed after stop", rows=len(rows))
            return

        outcomes = self.target.apply_snapshot(rows)
        self._log.info("Initial pull merged", rows=len(rows))
        # One notification per snapshot, and none when it changed nothing
        changed = next((outcome for outcome in outcomes if outcome.changed_state), None)
        if changed is not None:
            await self._notify(changed, None)

    async def _notify(self, outcome: MergeOutcome, event: Optional[ChangeEvent]) -> None:
        for handler in list(self._handlers):
            if self._state is SubscriptionState.CLOSED:
                return
            try:
                result = handler(outcome, event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self._log.error("Subscription handler failed", error=str(e), exc_info=True)


class RealtimeSynchronizer:
    """Factory for subscriptions sharing one feed and retry policy."""

    def __init__(
        self,
        feed: ChangeFeed,
        retry_attempts: Optional[int] = None,
        retry_backoff_seconds: Optional[float] = None,
    ):
        self.feed = feed
        self.retry_attempts = retry_attempts
        self.retry_backoff_seconds = retry_backoff_seconds

    def subscription(
        self,
        table: str,
        target: MergeTarget,
        pull: PullFunction,
        predicate: Optional[RowPredicate] = None,
    ) -> Subscription:
        return Subscription(
            self.feed,
            table,
            target,
            pull,
            predicate=predicate,
            retry_attempts=self.retry_attempts,
            retry_backoff_seconds=self.retry_backoff_seconds,
        )

    async def subscribe(
        self,
        table: str,
        target: MergeTarget,
        pull: PullFunction,
        predicate: Optional[RowPredicate] = None,
    ) -> Subscription:
        """Create and start a subscription."""
        return await self.subscription(table, target, pull, predicate).start()
