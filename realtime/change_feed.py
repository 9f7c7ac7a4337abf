"""
In-process change feed: the realtime endpoint of the table backend.

The hosted backend pushes row mutations to clients over a managed connection.
This module plays that role inside the process so the rest of the code can be
exercised end to end: the table store publishes one ChangeEvent per write, and
the feed fans it out to every joined channel whose filters match.

Design decisions:
- Synchronous delivery in commit order, per channel
- Filtering happens on the feed side (table, operation, row filter), like the
  hosted backend does it
- Channel joins are confirmed by the feed; while disconnected, joins stay
  unconfirmed and published events are queued
- On resume the feed re-sends the last event each channel already received
  before flushing the queue, so subscribers see at-least-once delivery
- One failing callback never stops delivery to the other channels
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from backoffice.errors import RealtimeError
from backoffice.models import ChangeEvent, Operation
from realtime.filters import RowFilter

logger = logging.getLogger("change_feed")


@dataclass
class ChannelBinding:
    """
    The feed's view of one joined channel.

    Attributes:
        channel_name: Unique channel name
        table: Table whose mutations this channel receives
        event_filter: Operation to receive, or Operation.ALL
        row_filter: Optional equality predicate on the row
        deliver: Called with each matching event
        on_confirm: Called once the join is confirmed
        on_close: Called if the connection is torn down under the channel
    """
    channel_name: str
    table: str
    event_filter: Operation
    row_filter: Optional[RowFilter]
    deliver: Callable[[ChangeEvent], object]
    on_confirm: Optional[Callable[[], None]] = None
    on_close: Optional[Callable[[], None]] = None
    confirmed: bool = False
    last_delivered: Optional[ChangeEvent] = field(default=None, repr=False)

    def wants(self, event: ChangeEvent) -> bool:
        if event.table != self.table:
            return False
        if not self.event_filter.matches(event.operation):
            return False
        if self.row_filter is not None and not self.row_filter.matches(event.row):
            return False
        return True


class ChangeFeed:
    """
    Pub/sub hub for row-level change events.

    Example:
        feed = ChangeFeed()
        feed.register_tables(["orders"])
        feed.join(ChannelBinding("orders_changes", "orders", Operation.INSERT, None, print))
        feed.publish(ChangeEvent(operation=Operation.INSERT, table="orders", new_row={"id": 1}))
    """

    def __init__(self):
        self._tables: set[str] = set()
        self._bindings: dict[str, ChannelBinding] = {}
        self._backlog: list[ChangeEvent] = []
        self._connected = True
        self._closed = False

    # =========================================================================
    # Tables and connection state
    # =========================================================================

    def register_tables(self, tables: Iterable[str]) -> None:
        self._tables.update(tables)

    def has_table(self, table: str) -> bool:
        return table in self._tables

    @property
    def connected(self) -> bool:
        return self._connected and not self._closed

    @property
    def closed(self) -> bool:
        return self._closed

    def disconnect(self) -> None:
        """Simulate a dropped connection. Events published now are queued."""
        if self._closed:
            return
        self._connected = False
        logger.warning("Realtime connection lost")

    def resume(self, redeliver: bool = True) -> int:
        """
        Simulate the transport reconnecting on its own.

        Confirms joins made while offline, re-sends each channel's last
        delivered event when `redeliver` is set, then flushes queued events in
        publish order.

        Returns:
            Number of deliveries made while resuming
        """
        if self._closed or self._connected:
            return 0
        self._connected = True
        logger.info("Realtime connection resumed")

        for binding in list(self._bindings.values()):
            self._confirm(binding)

        deliveries = 0
        if redeliver:
            for binding in list(self._bindings.values()):
                if binding.last_delivered is not None:
                    deliveries += self._deliver(binding, binding.last_delivered)

        backlog, self._backlog = self._backlog, []
        for event in backlog:
            deliveries += self._fan_out(event)
        return deliveries

    def close(self) -> None:
        """Tear down the connection and every channel on it."""
        if self._closed:
            return
        self._closed = True
        bindings = list(self._bindings.values())
        self._bindings.clear()
        self._backlog.clear()
        for binding in bindings:
            if binding.on_close is not None:
                binding.on_close()
        logger.info(f"Realtime connection closed ({len(bindings)} channels)")

    # =========================================================================
    # Channels
    # =========================================================================

    def join(self, binding: ChannelBinding) -> bool:
        """
        Join a channel.

        Returns:
            True if the join was confirmed immediately, False if it will be
            confirmed when the connection resumes

        Raises:
            RealtimeError: If the connection is closed or the name is taken
        """
        if self._closed:
            raise RealtimeError("Realtime connection is closed")
        if binding.channel_name in self._bindings:
            raise RealtimeError(f"Channel already joined: {binding.channel_name}")

        self._bindings[binding.channel_name] = binding
        logger.debug(f"Joined channel '{binding.channel_name}' on {binding.table}")

        if self._connected:
            self._confirm(binding)
        return binding.confirmed

    def leave(self, channel_name: str) -> bool:
        """
        Leave a channel.

        Returns:
            True if the channel was joined, False otherwise
        """
        binding = self._bindings.pop(channel_name, None)
        if binding is None:
            return False
        logger.debug(f"Left channel '{channel_name}'")
        return True

    def get_channel_count(self) -> int:
        return len(self._bindings)

    def _confirm(self, binding: ChannelBinding) -> None:
        if binding.confirmed:
            return
        binding.confirmed = True
        if binding.on_confirm is not None:
            binding.on_confirm()

    # =========================================================================
    # Publishing
    # =========================================================================

    def publish(self, event: ChangeEvent) -> int:
        """
        Publish a change event to every matching channel.

        Returns:
            Number of channels the event was delivered to (0 if queued)
        """
        if self._closed:
            logger.warning(f"Dropping {event}: connection closed")
            return 0
        if not self._connected:
            self._backlog.append(event)
            logger.debug(f"Queued {event} until the connection resumes")
            return 0
        return self._fan_out(event)

    def _fan_out(self, event: ChangeEvent) -> int:
        delivered = 0
        for binding in list(self._bindings.values()):
            if binding.confirmed and binding.wants(event):
                delivered += self._deliver(binding, event)
        if delivered == 0:
            logger.debug(f"No channels for {event}")
        return delivered

    def _deliver(self, binding: ChannelBinding, event: ChangeEvent) -> int:
        # The channel may have left while an earlier callback ran
        if self._bindings.get(binding.channel_name) is not binding:
            return 0
        binding.last_delivered = event
        try:
            binding.deliver(event)
        except Exception as e:
            logger.error(f"Channel '{binding.channel_name}' callback raised for {event}: {e}")
        return 1
