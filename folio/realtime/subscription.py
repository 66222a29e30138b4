"""
Realtime Subscription
Ties one table's live-update channel to the lifetime of its owner (an admin
view): activate on mount, deactivate on unmount.

Every event goes to on_change first, then to the handler for its type:
    on_insert(new)  on_update(new, old)  on_delete(old)
Events are neither buffered nor de-duplicated, so handlers must tolerate
seeing the same change twice.
"""

import logging
from typing import Callable, Optional

import psycopg2

from folio.bus.events import EventBus, EVENT_CHANGE, EVENT_INSERT, EVENT_UPDATE, EVENT_DELETE
from folio.errors import FolioError
from folio.models import ChangeEvent
from folio.realtime.channel import Channel

logger = logging.getLogger(__name__)


class RealtimeSubscription:

    def __init__(
        self,
        table: str,
        on_insert: Optional[Callable] = None,
        on_update: Optional[Callable] = None,
        on_delete: Optional[Callable] = None,
        on_change: Optional[Callable] = None,
        enabled: bool = True,
        channel_factory: Callable = Channel,
    ):
        self.table = table
        self._enabled = enabled
        self._active = False
        self._channel = None
        self._channel_factory = channel_factory

        self._bus = EventBus()
        if on_change:
            self._bus.on(EVENT_CHANGE, lambda data: on_change(data['event']))
        if on_insert:
            self._bus.on(EVENT_INSERT, lambda data: on_insert(data['event'].new))
        if on_update:
            self._bus.on(EVENT_UPDATE, lambda data: on_update(data['event'].new, data['event'].old))
        if on_delete:
            self._bus.on(EVENT_DELETE, lambda data: on_delete(data['event'].old))

    def __repr__(self):
        return f"RealtimeSubscription({self.table!r}, subscribed={self.subscribed})"

    def __enter__(self):
        self.activate()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.deactivate()
        return False

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def subscribed(self) -> bool:
        return self._channel is not None and self._channel.is_open

    @property
    def channel(self):
        return self._channel

    def activate(self) -> bool:
        """Open the channel if enabled and not already open. Returns subscribed state."""
        self._active = True
        if self._enabled and self._channel is None:
            self._open()
        return self.subscribed

    def deactivate(self):
        self._active = False
        self.unsubscribe()

    def set_enabled(self, enabled: bool):
        if enabled == self._enabled:
            return
        self._enabled = enabled
        if not enabled:
            self.unsubscribe()
        elif self._active and self._channel is None:
            self._open()

    def unsubscribe(self):
        """Close the current channel now. A no-op when nothing is open."""
        channel, self._channel = self._channel, None
        if channel is not None:
            channel.unsubscribe()

    def poll(self, timeout: float = 0.0) -> int:
        if self._channel is None:
            return 0
        return self._channel.poll(timeout)

    def dispatch(self, event: ChangeEvent):
        """Route one change event to the registered handlers."""
        data = {'event': event}
        self._bus.emit(EVENT_CHANGE, data)
        if event.event_type == EVENT_INSERT and event.new is not None:
            self._bus.emit(EVENT_INSERT, data)
        elif event.event_type == EVENT_UPDATE and event.new is not None:
            self._bus.emit(EVENT_UPDATE, data)
        elif event.event_type == EVENT_DELETE and event.old is not None:
            self._bus.emit(EVENT_DELETE, data)

    def _open(self):
        try:
            self._channel = self._channel_factory(self.table, self.dispatch).subscribe()
        except (psycopg2.Error, FolioError, OSError) as e:
            # Live updates are optional; the owner keeps its fetched snapshot.
            logger.error(f"Live updates for {self.table} unavailable: {e}")
            self._channel = None
