"""
Realtime change feed.

This package delivers row-level changes from the table backend:
- The change feed fans out each committed write to the joined channels
- Subscribers open named, filtered channels and close them on teardown
- Delivery is at-least-once; consumers deduplicate by row identity
"""

from realtime.change_feed import ChangeFeed, ChannelBinding
from realtime.filters import RowFilter
from realtime.subscriber import (
    ChangeFeedSubscriber,
    SubscriptionHandle,
    SubscriptionState,
)

__all__ = [
    "ChangeFeed",
    "ChannelBinding",
    "RowFilter",
    "ChangeFeedSubscriber",
    "SubscriptionHandle",
    "SubscriptionState",
]
