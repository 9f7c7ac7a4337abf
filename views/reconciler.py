"""
View reconciler: keeps a screen's view model in step with backend changes.

Each screen owns a ViewState (a mutable cell holding its current data) and
registers one ViewReconciler for one table and event filter. When a change
event arrives the reconciler applies the screen's strategy:

- ReloadStrategy: throw the view model away and fetch it again. Always
  correct, and the only option when the view joins other tables.
- PatchStrategy: overwrite scalar fields of the matching loaded row from the
  event's new_row. No round trip, but only valid when the event row carries
  every field the view needs.
- PrependStrategy: put INSERTed rows on top of the loaded list, for views
  that show plain rows newest first.

Design decisions:
- Callbacks read the ViewState cell at call time, never a captured snapshot
- A reload requested while another is running is folded into one follow-up
  fetch; whichever fetch finishes last is what the view shows
- After unmount the view is dead: finishing fetches and patches are no-ops
- Patches are plain last-value overwrites, so a redelivered UPDATE is harmless
"""

import logging
from typing import Any, Callable, Generic, Iterable, Optional, TypeVar, Union

from backoffice.models import ChangeEvent, Operation
from realtime.filters import RowFilter
from realtime.subscriber import ChangeFeedSubscriber, SubscriptionHandle

logger = logging.getLogger("view_reconciler")

T = TypeVar("T")


class ViewState(Generic[T]):
    """
    The current view model of one screen.

    Attributes:
        data: Latest loaded (or patched) view model
        alive: False once the screen is torn down
        loading: True while a fetch is running
        error: Message of the last failed fetch, if the latest one failed
        load_count: Number of fetches applied so far
    """

    def __init__(self, name: str, loader: Callable[[], T], initial: T):
        self.name = name
        self.loader = loader
        self.data: T = initial
        self.alive = True
        self.loading = False
        self.error: Optional[str] = None
        self.load_count = 0

        self._reloading = False
        self._reload_requested = False

    def reload(self) -> bool:
        """
        Fetch the view model again and replace the current one.

        Returns:
            True if at least one fetch was applied by this call
        """
        if not self.alive:
            return False
        if self._reloading:
            self._reload_requested = True
            return False

        applied = False
        self._reloading = True
        self.loading = True
        try:
            while True:
                self._reload_requested = False
                try:
                    data = self.loader()
                except Exception as e:
                    logger.error(f"Error loading {self.name}: {e}")
                    self.error = str(e)
                else:
                    if not self.alive:
                        logger.debug(f"Discarding fetch for unmounted view {self.name}")
                        return applied
                    self.data = data
                    self.error = None
                    self.load_count += 1
                    applied = True

                if not (self._reload_requested and self.alive):
                    break
        finally:
            self._reloading = False
            self.loading = False
        return applied

    def patch_row(self, row_id: Any, changes: dict[str, Any], key: str = "id") -> bool:
        """
        Overwrite fields of one loaded row in place.

        Returns:
            True if a row with that id was loaded
        """
        if not self.alive:
            return False
        found = False
        patched = []
        for row in self.data:
            if row.get(key) == row_id:
                row = {**row, **changes}
                found = True
            patched.append(row)
        if found:
            self.data = patched
        return found

    def prepend_row(self, row: dict[str, Any], key: str = "id") -> bool:
        """
        Put a row at the top of the loaded list.

        Returns:
            False if the view is dead or a row with the same id is loaded
        """
        if not self.alive:
            return False
        row_id = row.get(key)
        if row_id is not None and any(r.get(key) == row_id for r in self.data):
            return False
        self.data = [dict(row)] + list(self.data)
        return True

    def remove_row(self, row_id: Any, key: str = "id") -> bool:
        if not self.alive:
            return False
        remaining = [row for row in self.data if row.get(key) != row_id]
        removed = len(remaining) != len(self.data)
        self.data = remaining
        return removed

    def dispose(self) -> None:
        self.alive = False


class ReloadStrategy:
    """Re-fetch the whole view model on every event."""

    name = "reload"

    def __init__(self, on_event: Optional[Callable[[ChangeEvent], None]] = None):
        self.on_event = on_event

    def apply(self, view: ViewState, event: ChangeEvent) -> None:
        if self.on_event is not None:
            self.on_event(event)
        logger.debug(f"{view.name}: reloading after {event}")
        view.reload()


class PatchStrategy:
    """
    Overwrite scalar fields of the matching row from the event.

    INSERT events are ignored (the row is not loaded yet); DELETE removes the
    row; UPDATE copies `fields` from new_row onto the loaded row with the same
    key. Rows that are not loaded are left alone.
    """

    name = "patch"

    SCALAR_TYPES = (str, int, float, bool, type(None))

    def __init__(self, fields: Iterable[str], key: str = "id"):
        self.fields = tuple(fields)
        self.key = key
        if not self.fields:
            raise ValueError("PatchStrategy needs at least one field")

    def apply(self, view: ViewState, event: ChangeEvent) -> None:
        if event.operation is Operation.DELETE:
            view.remove_row(event.old_row.get(self.key), key=self.key)
            return
        if event.operation is not Operation.UPDATE:
            logger.debug(f"{view.name}: patch ignores {event}")
            return

        missing = [f for f in self.fields if f not in event.new_row]
        if missing:
            logger.warning(f"{view.name}: {event} lacks {missing}, patch skipped")
            return

        changes = {f: event.new_row[f] for f in self.fields}
        non_scalar = [f for f, value in changes.items() if not isinstance(value, self.SCALAR_TYPES)]
        if non_scalar:
            logger.warning(f"{view.name}: non-scalar fields {non_scalar} in {event}, patch skipped")
            return

        if not view.patch_row(event.new_row.get(self.key), changes, key=self.key):
            logger.debug(f"{view.name}: row {event.row_id} not loaded, nothing to patch")


class PrependStrategy:
    """
    Put INSERTed rows at the top of the view without a round trip.

    A row that is already loaded is left alone, so a redelivered INSERT shows
    once and `on_new` runs once. UPDATE and DELETE events are ignored.
    """

    name = "prepend"

    def __init__(self, key: str = "id", on_new: Optional[Callable[[dict[str, Any]], None]] = None):
        self.key = key
        self.on_new = on_new

    def apply(self, view: ViewState, event: ChangeEvent) -> None:
        if event.operation is not Operation.INSERT:
            logger.debug(f"{view.name}: prepend ignores {event}")
            return
        if not view.prepend_row(event.new_row, key=self.key):
            logger.debug(f"{view.name}: row {event.row_id} already shown")
            return
        if self.on_new is not None:
            self.on_new(event.new_row)


Strategy = Union[ReloadStrategy, PatchStrategy, PrependStrategy]


class ViewReconciler:
    """
    Binds one view to one change feed channel with one strategy.

    Example:
        view = ViewState("orders", load_orders, initial=[])
        reconciler = ViewReconciler(
            subscriber, "orders_changes", "orders", Operation.INSERT,
            view, ReloadStrategy(),
        )
        with reconciler:
            ...  # view.data follows the orders table
    """

    def __init__(
        self,
        subscriber: ChangeFeedSubscriber,
        channel_name: str,
        table: str,
        event_filter: Operation,
        view: ViewState,
        strategy: Strategy,
        row_filter: Optional[Union[RowFilter, str]] = None,
    ):
        self.subscriber = subscriber
        self.channel_name = channel_name
        self.table = table
        self.event_filter = event_filter
        self.view = view
        self.strategy = strategy
        self.row_filter = row_filter

        self._handle: Optional[SubscriptionHandle] = None

    @property
    def mounted(self) -> bool:
        return self._handle is not None and not self._handle.is_closed

    def mount(self) -> None:
        """Load the view and open its channel."""
        if self.mounted:
            logger.warning(f"{self.view.name} already mounted")
            return

        self.view.alive = True
        self.view.reload()
        try:
            self._handle = self.subscriber.subscribe(
                self.channel_name,
                table=self.table,
                event_filter=self.event_filter,
                row_filter=self.row_filter,
                callback=self._on_change,
            )
        except Exception:
            self.view.dispose()
            raise

    def unmount(self) -> None:
        """Close the channel and kill the view. Safe to call more than once."""
        if self._handle is not None:
            self._handle.unsubscribe()
            self._handle = None
        self.view.dispose()

    def _on_change(self, event: ChangeEvent) -> None:
        self.strategy.apply(self.view, event)

    def __enter__(self) -> "ViewReconciler":
        self.mount()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unmount()
