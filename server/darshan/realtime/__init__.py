"""Change feed and subscriptions that keep in-memory views in sync with the store."""

from .events import ChangeEvent, EventType, MergeOutcome, column_equals
from .feed import ChangeFeed, FeedChannel
from .synchronizer import RealtimeSynchronizer, Subscription, SubscriptionState

__all__ = [
    "ChangeEvent",
    "ChangeFeed",
    "EventType",
    "FeedChannel",
    "MergeOutcome",
    "RealtimeSynchronizer",
    "Subscription",
    "SubscriptionState",
    "column_equals",
]
