"""
Live-Update Channel
One LISTEN registration on the store's change feed for a single table.

The store publishes every row change on the '<table>_changes' notification
channel as JSON: {"eventType", "table", "new", "old"} (see
migrations/001_schema.sql). Rows too large for a notification arrive as
{"id": ...} with "truncated": true and are re-read before delivery.
"""

import json
import logging
import select
from typing import Callable, Iterable, Optional

import psycopg2
from psycopg2 import sql

from folio.db.connection import get_client, get_db_cursor
from folio.models import ChangeEvent, EVENT_TYPES, TABLE_MODELS, from_row

logger = logging.getLogger(__name__)


def channel_name(table: str) -> str:
    return f"{table}_changes"


class Channel:
    """
    Handle for one open subscription. Lifecycle is closed -> open -> closed;
    a closed handle cannot be reopened, subscribe again through a new Channel.
    """

    def __init__(self, table: str, callback: Callable[[ChangeEvent], None],
                 model=None, connect: Optional[Callable] = None):
        self.table = table
        self.name = channel_name(table)
        self._callback = callback
        self._model = model or TABLE_MODELS.get(table)
        self._connect = connect
        self._conn = None
        self._closed = False

    def __repr__(self):
        state = 'open' if self.is_open else 'closed'
        return f"Channel({self.name!r}, {state})"

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def fileno(self) -> int:
        return self._conn.fileno()

    def subscribe(self) -> 'Channel':
        """Open the channel. Calling it on an open channel is a no-op."""
        if self._closed:
            raise RuntimeError(f"{self.name} was closed; open a new channel instead")
        if self._conn is not None:
            return self

        connect = self._connect or get_client().listen_connection
        conn = connect()
        try:
            with conn.cursor() as cur:
                cur.execute(sql.SQL("LISTEN {}").format(sql.Identifier(self.name)))
        except psycopg2.Error:
            conn.close()
            raise
        self._conn = conn
        logger.info(f"Channel {self.name} open")
        return self

    def unsubscribe(self):
        """Close the channel. Closing an already closed channel is a no-op."""
        self._closed = True
        conn, self._conn = self._conn, None
        if conn is None:
            return
        try:
            with conn.cursor() as cur:
                cur.execute(sql.SQL("UNLISTEN {}").format(sql.Identifier(self.name)))
        except psycopg2.Error as e:
            logger.warning(f"UNLISTEN {self.name} failed: {e}")
        finally:
            conn.close()
        logger.info(f"Channel {self.name} closed")

    def poll(self, timeout: float = 0.0) -> int:
        """
        Deliver pending notifications to the callback, waiting up to
        `timeout` seconds for the first one. Returns the number delivered.
        """
        if self._conn is None:
            return 0
        if timeout > 0:
            ready, _, _ = select.select([self._conn], [], [], timeout)
            if not ready:
                return 0

        try:
            self._conn.poll()
        except psycopg2.Error as e:
            logger.error(f"Channel {self.name} lost its connection: {e}")
            self.unsubscribe()
            return 0

        delivered = 0
        while self._conn is not None and self._conn.notifies:
            notify = self._conn.notifies.pop(0)
            event = self.decode(notify.payload)
            if event is None:
                continue
            self._callback(event)
            delivered += 1
        return delivered

    def decode(self, payload: str) -> Optional[ChangeEvent]:
        """Turn a notification payload into a ChangeEvent; None if unusable."""
        try:
            data = json.loads(payload)
        except ValueError:
            logger.error(f"Channel {self.name} dropped non-JSON payload: {payload[:80]!r}")
            return None

        event_type = data.get('eventType')
        if event_type not in EVENT_TYPES:
            logger.error(f"Channel {self.name} dropped payload with eventType={event_type!r}")
            return None

        new, old = data.get('new'), data.get('old')
        if data.get('truncated') and new is not None:
            row_id = new.get('id')
            new = self._reload(row_id)
            if new is None:
                # Never deliver an id-only stub
                logger.error(f"Channel {self.name} dropped truncated {event_type} for row {row_id}")
                return None

        if self._model is not None:
            new, old = from_row(self._model, new), from_row(self._model, old)
        return ChangeEvent(event_type=event_type, table=data.get('table', self.table), new=new, old=old)

    def _reload(self, row_id):
        try:
            with get_db_cursor() as cur:
                cur.execute(
                    sql.SQL("SELECT * FROM {} WHERE id = %s").format(sql.Identifier(self.table)),
                    (row_id,),
                )
                row = cur.fetchone()
        except psycopg2.Error as e:
            logger.error(f"Channel {self.name} could not reload row {row_id}: {e}")
            return None
        return dict(row) if row else None


def wait_for_changes(channels: Iterable[Channel], timeout: float = 0.0) -> int:
    """Block up to `timeout` seconds on several channels; deliver what is ready."""
    open_channels = [c for c in channels if c.is_open]
    if not open_channels:
        return 0
    ready, _, _ = select.select(open_channels, [], [], timeout)
    return sum(channel.poll() for channel in ready)
