"""
Exception types shared by the data-access and realtime layers.
"""


class RealtimeError(Exception):
    """Base class for change feed subscription errors."""


class ChannelInUseError(RealtimeError):
    """A channel with this name is already open in this process."""

    def __init__(self, channel_name: str):
        super().__init__(f"Channel already subscribed: {channel_name}")
        self.channel_name = channel_name


class UnknownTableError(RealtimeError, KeyError):
    """The named table does not exist on the backend."""

    def __init__(self, table: str):
        super().__init__(f"Unknown table: {table}")
        self.table = table

    def __str__(self) -> str:
        return self.args[0]


class InvalidFilterError(RealtimeError, ValueError):
    """A row filter string is not a simple equality predicate."""


class AlertPlaybackError(Exception):
    """An audible alert could not be played."""
