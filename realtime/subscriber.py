"""
Change feed subscriber: named channels over the realtime connection.

Every screen or service that reacts to backend changes opens one channel here
and must close it when it goes away. A channel is filtered to one table, one
operation (or all of them) and optionally one row predicate, and delivers
each matching event to exactly one callback.

Design decisions:
- Channel names are unique among open channels in the process
- Handles are context managers so teardown happens on every exit path
- Unsubscribe is idempotent
- A closed handle drops anything the transport still hands it
- Retrying and resuming belong to the transport; this layer just keeps
  delivering whatever arrives, duplicates included
"""

import logging
from enum import Enum
from typing import Callable, Optional, Union

from backoffice.errors import ChannelInUseError, RealtimeError, UnknownTableError
from backoffice.models import ChangeEvent, Operation
from realtime.change_feed import ChannelBinding, ChangeFeed
from realtime.filters import RowFilter

logger = logging.getLogger("realtime")


# Type alias for change event callbacks
ChangeCallback = Callable[[ChangeEvent], None]


class SubscriptionState(str, Enum):
    """Lifecycle of one channel."""
    PENDING = "pending"   # Join sent, not confirmed yet
    ACTIVE = "active"     # Confirmed, receiving events
    CLOSED = "closed"     # Unsubscribed or torn down with the connection


class SubscriptionHandle:
    """
    One open channel.

    Returned by `ChangeFeedSubscriber.subscribe`; use it to tear the channel
    down, directly or as a context manager:

        with subscriber.subscribe("orders_changes", "orders", Operation.INSERT, callback=on_insert):
            ...
    """

    def __init__(
        self,
        subscriber: "ChangeFeedSubscriber",
        channel_name: str,
        table: str,
        event_filter: Operation,
        row_filter: Optional[RowFilter],
        callback: ChangeCallback,
    ):
        self._subscriber = subscriber
        self.channel_name = channel_name
        self.table = table
        self.event_filter = event_filter
        self.row_filter = row_filter
        self.callback = callback
        self.state = SubscriptionState.PENDING
        self.delivered_count = 0

    @property
    def is_active(self) -> bool:
        return self.state is SubscriptionState.ACTIVE

    @property
    def is_closed(self) -> bool:
        return self.state is SubscriptionState.CLOSED

    def deliver(self, event: ChangeEvent) -> bool:
        """
        Hand one event to the callback.

        Called by the transport. Events reaching a handle that is not active
        are dropped.

        Returns:
            True if the callback was invoked
        """
        if self.state is not SubscriptionState.ACTIVE:
            logger.debug(f"Dropping {event} for {self.state.value} channel '{self.channel_name}'")
            return False
        self.delivered_count += 1
        self.callback(event)
        return True

    def unsubscribe(self) -> bool:
        return self._subscriber.unsubscribe(self)

    def _activate(self) -> None:
        if self.state is SubscriptionState.PENDING:
            self.state = SubscriptionState.ACTIVE
            logger.info(f"Channel '{self.channel_name}' active")

    def _close(self) -> None:
        self.state = SubscriptionState.CLOSED

    def __enter__(self) -> "SubscriptionHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unsubscribe()

    def __repr__(self) -> str:
        filter_text = f", filter={self.row_filter}" if self.row_filter else ""
        return (
            f"SubscriptionHandle({self.channel_name!r}, {self.event_filter.value} "
            f"{self.table}{filter_text}, {self.state.value})"
        )


class ChangeFeedSubscriber:
    """
    Opens and closes named channels on a change feed.

    Example:
        subscriber = ChangeFeedSubscriber(feed)
        handle = subscriber.subscribe(
            "order_notifications",
            table="orders",
            event_filter=Operation.INSERT,
            row_filter="source=eq.website",
            callback=store.on_change_event,
        )
        ...
        subscriber.unsubscribe(handle)
    """

    def __init__(self, feed: ChangeFeed):
        self.feed = feed
        self._channels: dict[str, SubscriptionHandle] = {}

    def subscribe(
        self,
        channel_name: str,
        table: str,
        event_filter: Union[Operation, str] = Operation.ALL,
        row_filter: Optional[Union[RowFilter, str]] = None,
        callback: Optional[ChangeCallback] = None,
    ) -> SubscriptionHandle:
        """
        Open a channel.

        Args:
            channel_name: Name unique among this process's open channels
            table: Backend table to watch
            event_filter: INSERT, UPDATE, DELETE or "*" for all
            row_filter: Optional "column=eq.value" predicate
            callback: Called with each matching ChangeEvent

        Returns:
            Handle for teardown

        Raises:
            ChannelInUseError: If the channel name is already open
            UnknownTableError: If the table does not exist
            InvalidFilterError: If the row filter is not an equality predicate
        """
        if callback is None:
            raise ValueError("A callback is required")
        if channel_name in self._channels:
            raise ChannelInUseError(channel_name)
        if not self.feed.has_table(table):
            raise UnknownTableError(table)

        event_filter = Operation(event_filter)
        if isinstance(row_filter, str):
            row_filter = RowFilter.parse(row_filter)

        handle = SubscriptionHandle(self, channel_name, table, event_filter, row_filter, callback)
        binding = ChannelBinding(
            channel_name=channel_name,
            table=table,
            event_filter=event_filter,
            row_filter=row_filter,
            deliver=handle.deliver,
            on_confirm=handle._activate,
            on_close=lambda: self._forget(handle),
        )

        self.feed.join(binding)
        self._channels[channel_name] = handle

        if not handle.is_active:
            logger.info(f"Channel '{channel_name}' pending until the connection resumes")
        return handle

    def unsubscribe(self, handle: SubscriptionHandle) -> bool:
        """
        Close a channel. Calling it again is a no-op.

        Returns:
            True if this call closed the channel, False if it was already closed
        """
        if handle.is_closed:
            return False
        handle._close()
        if self._channels.get(handle.channel_name) is handle:
            del self._channels[handle.channel_name]
        try:
            self.feed.leave(handle.channel_name)
        except RealtimeError as e:
            logger.warning(f"Leaving channel '{handle.channel_name}' failed: {e}")
        logger.info(f"Channel '{handle.channel_name}' closed")
        return True

    def unsubscribe_all(self) -> int:
        """Close every open channel. Returns how many were closed."""
        return sum(1 for handle in list(self._channels.values()) if self.unsubscribe(handle))

    def get_channel(self, channel_name: str) -> Optional[SubscriptionHandle]:
        return self._channels.get(channel_name)

    def get_open_channels(self) -> list[str]:
        return list(self._channels)

    def _forget(self, handle: SubscriptionHandle) -> None:
        # Connection teardown closed the channel underneath us
        handle._close()
        if self._channels.get(handle.channel_name) is handle:
            del self._channels[handle.channel_name]
        logger.info(f"Channel '{handle.channel_name}' closed with the connection")
