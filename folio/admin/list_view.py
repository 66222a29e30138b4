"""
Entity List View - client-side mirror of one table for the admin panel.

The view holds one collection and shows one of two partitions over it:
active rows (deleted_at is None) or soft-deleted rows. It is fed from three
directions:

  - fetches      : wholesale replacement, on mount and when a filter changes
  - push events  : incremental insert/replace/remove from the live channel
  - user actions : repository call first, then the same local patch a push
                   event would apply

Every local change is "set these fields to these values" (or "drop this id"),
so the optimistic patch and the push event for the same write commute, and
replaying either is harmless.
"""

import dataclasses
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from folio.errors import AuthError, ConflictError, FolioError, NotFoundError, StoreError, ValidationError
from folio.models import ChangeEvent
from folio.realtime.subscription import RealtimeSubscription

logger = logging.getLogger(__name__)


def alert_message(exc: FolioError) -> str:
    """Operator-facing text for an error raised by a repository call."""
    if isinstance(exc, ValidationError):
        return f"{exc.field}: {exc}" if exc.field else str(exc)
    if isinstance(exc, ConflictError):
        return f"A record with this {exc.field or 'value'} already exists."
    if isinstance(exc, NotFoundError):
        return "Not found."
    if isinstance(exc, AuthError):
        return "Your session is no longer valid. Please sign in again."
    if isinstance(exc, StoreError):
        return "The server could not complete the request. Please try again."
    return str(exc)


class EntityListView:
    """
    Generic list view. Subclasses set `default_repository`, `route` and,
    where rows are manually ordered, `order_key`.
    """

    default_repository = None
    route = ''
    title = ''
    order_key: Optional[str] = None

    def __init__(
        self,
        repository=None,
        alert: Optional[Callable[[str], None]] = None,
        subscription_factory: Callable = RealtimeSubscription,
        actor: Optional[str] = None,
    ):
        self.repository = repository or self.default_repository
        self.actor = actor
        self.collection: List[Any] = []
        self.show_deleted = False
        self.status_filter: Optional[str] = None
        self.is_loading = True
        self.alerts: List[str] = []
        self.mounted = False

        self._alert = alert
        self._subscription_factory = subscription_factory
        self._subscription = None
        self._issued = 0

    def __repr__(self):
        return f"{type(self).__name__}({self.table!r}, rows={len(self.collection)})"

    def __enter__(self):
        self.mount()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.unmount()
        return False

    @property
    def table(self) -> str:
        return self.repository.table

    @property
    def soft_delete(self) -> bool:
        return self.repository.schema.soft_delete

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def mount(self):
        """Fetch the initial snapshot, then open the live channel."""
        self.mounted = True
        self.refresh()
        self._subscription = self._subscription_factory(
            self.table,
            on_insert=self.on_insert,
            on_update=self.on_update,
            on_delete=self.on_delete,
        )
        self._subscription.activate()

    def unmount(self):
        """Close the live channel before the view goes away."""
        self.mounted = False
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.deactivate()

    @property
    def live(self) -> bool:
        return self._subscription is not None and self._subscription.subscribed

    def poll(self, timeout: float = 0.0) -> int:
        if self._subscription is None:
            return 0
        return self._subscription.poll(timeout)

    # =========================================================================
    # FETCHING
    # =========================================================================

    def list_options(self) -> Dict[str, Any]:
        return {'include_deleted': self.show_deleted, 'status': self.status_filter}

    def begin_fetch(self) -> int:
        """Issue a new request ticket; older tickets become stale."""
        self._issued += 1
        return self._issued

    def apply_snapshot(self, ticket: int, rows: List[Any]) -> bool:
        """Replace the collection, unless a newer fetch has been issued since."""
        if ticket != self._issued:
            logger.debug(f"{self.table}: dropped stale snapshot #{ticket} (latest #{self._issued})")
            return False
        self.collection = list(rows)
        self.is_loading = False
        return True

    def refresh(self) -> bool:
        ticket = self.begin_fetch()
        try:
            rows = self.repository.list(**self.list_options())
        except FolioError as e:
            if ticket == self._issued:
                self.is_loading = False
            self.report(e)
            return False
        return self.apply_snapshot(ticket, rows)

    def set_show_deleted(self, show_deleted: bool) -> bool:
        """Switch partitions. Re-queries rather than filtering locally."""
        if not self.soft_delete or show_deleted == self.show_deleted:
            return False
        self.show_deleted = show_deleted
        return self.refresh()

    def set_status_filter(self, status: Optional[str]) -> bool:
        statuses = self.repository.schema.statuses
        if status is not None and status not in statuses:
            self.report(ValidationError(f"Unknown status {status!r}", field='status'))
            return False
        if status == self.status_filter:
            return False
        self.status_filter = status
        return self.refresh()

    # =========================================================================
    # PARTITIONS
    # =========================================================================

    def _ordered(self, rows: List[Any]) -> List[Any]:
        if self.order_key:
            return sorted(rows, key=lambda row: getattr(row, self.order_key))
        return rows

    @property
    def active(self) -> List[Any]:
        return self._ordered([row for row in self.collection if row.deleted_at is None])

    @property
    def deleted(self) -> List[Any]:
        return self._ordered([row for row in self.collection if row.deleted_at is not None])

    @property
    def visible(self) -> List[Any]:
        return self.deleted if self.show_deleted else self.active

    def find(self, row_id) -> Optional[Any]:
        index = self._index(row_id)
        return None if index is None else self.collection[index]

    def _index(self, row_id) -> Optional[int]:
        for index, row in enumerate(self.collection):
            if row.id == row_id:
                return index
        return None

    # =========================================================================
    # RECONCILIATION
    # =========================================================================

    def matches(self, row) -> bool:
        """Would the store return this row for the view's current fetch?"""
        if not self.show_deleted and row.deleted_at is not None:
            return False
        if self.status_filter is not None and getattr(row, 'status', None) != self.status_filter:
            return False
        return True

    def reconcile(self, row):
        """Bring the collection in line with one row's latest known state."""
        index = self._index(row.id)
        if not self.matches(row):
            if index is not None:
                del self.collection[index]
        elif index is None:
            self.collection.insert(0, row)
        else:
            self.collection[index] = row

    def remove(self, row_id):
        index = self._index(row_id)
        if index is not None:
            del self.collection[index]

    def on_insert(self, row):
        if self._index(row.id) is not None:
            logger.debug(f"{self.table}: INSERT for known id {row.id} skipped")
            return
        if self.matches(row):
            self.collection.insert(0, row)

    def on_update(self, row, old=None):
        self.reconcile(row)

    def on_delete(self, old):
        self.remove(old.id)

    def apply_event(self, event: ChangeEvent):
        """Apply one change event the way the live channel would."""
        if event.event_type == 'INSERT' and event.new is not None:
            self.on_insert(event.new)
        elif event.event_type == 'UPDATE' and event.new is not None:
            self.on_update(event.new, event.old)
        elif event.event_type == 'DELETE' and event.old is not None:
            self.on_delete(event.old)

    def patch(self, row_id, **values):
        """Set fields on the local copy of a row, then reconcile it."""
        row = self.find(row_id)
        if row is None:
            return
        self.reconcile(dataclasses.replace(row, **values))

    # =========================================================================
    # USER ACTIONS
    # =========================================================================

    def report(self, exc: FolioError):
        message = alert_message(exc)
        logger.warning(f"{self.table}: {type(exc).__name__}: {exc}")
        self.alerts.append(message)
        if self._alert is not None:
            self._alert(message)

    def perform(self, operation: Callable, *args) -> bool:
        """Run a repository call; on failure alert and leave local state alone."""
        try:
            operation(*args)
        except FolioError as e:
            self.report(e)
            return False
        return True

    def delete(self, row_id) -> bool:
        if not self.perform(self.repository.delete, row_id, self.actor):
            return False
        if self.soft_delete:
            row = self.find(row_id)
            if row is not None and row.deleted_at is None:
                self.patch(row_id, deleted_at=datetime.now(timezone.utc), deleted_by=self.actor)
        else:
            self.remove(row_id)
        return True

    def restore(self, row_id) -> bool:
        if not self.perform(self.repository.restore, row_id):
            return False
        self.patch(row_id, deleted_at=None, deleted_by=None)
        return True

    def toggle_publish(self, row_id, published: bool) -> bool:
        if not self.perform(self.repository.toggle_publish, row_id, published):
            return False
        self.patch(row_id, published=bool(published))
        return True

    def toggle_featured(self, row_id, featured: bool) -> bool:
        if not self.perform(self.repository.toggle_featured, row_id, featured):
            return False
        self.patch(row_id, featured=bool(featured))
        return True
