"""
Generic Repository - one instance per content table.
Sole reader/writer of its table. Callers never build queries; they pass
filters and field dicts, and get model instances or typed errors back.

Column and table names in the SQL below come from an EntitySchema and every
caller-supplied key is checked against its allowlist before it reaches a query.
"""

import logging
import re
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Pattern, Tuple

import psycopg2

from folio.db.connection import get_db_cursor
from folio.errors import NotFoundError, ValidationError, translate_store_error
from folio.logging_config import log_call
from folio.models import from_row
from folio.realtime.channel import Channel

logger = logging.getLogger(__name__)

SLUG_RE = re.compile(r'^[a-z0-9]+(?:-[a-z0-9]+)*$')
EMAIL_RE = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')


@dataclass(frozen=True)
class EntitySchema:
    """Everything the generic repository needs to know about one table."""
    table: str
    model: type
    columns: FrozenSet[str]
    required: Tuple[str, ...] = ()
    unique: Tuple[str, ...] = ()
    order_by: str = "created_at DESC"
    soft_delete: bool = True
    slug_column: Optional[str] = None
    statuses: Tuple[str, ...] = ()
    # Written once on create, never through update
    immutable: Tuple[str, ...] = ()
    patterns: Tuple[Tuple[str, Pattern], ...] = ()

    def has(self, column: str) -> bool:
        return column in self.columns


def _validate_columns(updates: Dict[str, Any], allowed, entity: str) -> None:
    """Raise ValidationError if any key in updates is not an allowed column name."""
    invalid = set(updates.keys()) - set(allowed)
    if invalid:
        raise ValidationError(f"Invalid {entity} fields: {sorted(invalid)}", field=sorted(invalid)[0])


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


@contextmanager
def store_cursor(table: str, unique_columns=()):
    """get_db_cursor() with driver errors translated to the folio taxonomy."""
    try:
        with get_db_cursor() as cur:
            yield cur
    except psycopg2.Error as e:
        raise translate_store_error(e, table, unique_columns) from e


class SoftDeletableRepository:
    """
    CRUD + soft delete + restore + publish/feature toggles over one table.

    For schemas with soft_delete=False, delete() removes the row and
    restore() is refused.
    """

    def __init__(self, schema: EntitySchema, channel_factory: Callable = Channel):
        self.schema = schema
        self._channel_factory = channel_factory

    def __repr__(self):
        return f"{type(self).__name__}({self.schema.table!r})"

    @property
    def table(self) -> str:
        return self.schema.table

    @contextmanager
    def _cursor(self):
        with store_cursor(self.table, self.schema.unique) as cur:
            yield cur

    def _to_model(self, row):
        return from_row(self.schema.model, row)

    def _require(self, column: str):
        if not self.schema.has(column):
            raise ValidationError(f"{self.table} has no {column} column", field=column)

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def validate(self, fields: Dict[str, Any], creating: bool) -> None:
        """Check a field dict before it is written. Subclasses extend this."""
        writable = self.schema.columns if creating else self.schema.columns - set(self.schema.immutable)
        _validate_columns(fields, writable, self.table)

        checked = self.schema.required if creating else [c for c in self.schema.required if c in fields]
        for column in checked:
            if _blank(fields.get(column)):
                raise ValidationError(f"{self.table}.{column} is required", field=column)

        status = fields.get('status')
        if self.schema.statuses and 'status' in fields and status not in self.schema.statuses:
            raise ValidationError(f"Invalid {self.table} status: {status!r}", field='status')

        for column, pattern in self.schema.patterns:
            value = fields.get(column)
            if value is not None and not pattern.match(value):
                raise ValidationError(f"{self.table}.{column} has an invalid format: {value!r}", field=column)

    # =========================================================================
    # READS
    # =========================================================================

    def _filters(self, published_only=False, featured_only=False, include_deleted=False, status=None):
        conditions = []
        params: Dict[str, Any] = {}

        # Active-only filter always comes first
        if self.schema.soft_delete and not include_deleted:
            conditions.append("deleted_at IS NULL")

        if published_only:
            self._require('published')
            conditions.append("published = TRUE")

        if featured_only:
            self._require('featured')
            conditions.append("featured = TRUE")

        if status is not None:
            if status not in self.schema.statuses:
                raise ValidationError(f"Invalid {self.table} status: {status!r}", field='status')
            conditions.append("status = %(status)s")
            params['status'] = status

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        return where_clause, params

    @log_call
    def list(
        self,
        published_only: bool = False,
        featured_only: bool = False,
        include_deleted: bool = False,
        status: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Any]:
        """
        Rows matching all given filters, in the table's default order.
        Soft-deleted rows are excluded unless include_deleted is set.
        """
        where_clause, params = self._filters(published_only, featured_only, include_deleted, status)

        query = f"SELECT * FROM {self.table} {where_clause} ORDER BY {self.schema.order_by}"
        if limit is not None:
            query += " LIMIT %(limit)s"
            params['limit'] = limit
        if offset is not None:
            query += " OFFSET %(offset)s"
            params['offset'] = offset

        with self._cursor() as cur:
            cur.execute(query, params)
            rows = cur.fetchall() or []

        logger.debug(f"list {self.table}: {len(rows)} rows (include_deleted={include_deleted}, status={status})")
        return [self._to_model(row) for row in rows]

    def count(self, published_only=False, featured_only=False, include_deleted=False, status=None) -> int:
        where_clause, params = self._filters(published_only, featured_only, include_deleted, status)
        with self._cursor() as cur:
            cur.execute(f"SELECT COUNT(*) AS count FROM {self.table} {where_clause}", params)
            row = cur.fetchone()
        return row['count'] if row else 0

    def get_by_id(self, row_id) -> Optional[Any]:
        """Any row with this id, deleted or not. None when absent."""
        with self._cursor() as cur:
            cur.execute(f"SELECT * FROM {self.table} WHERE id = %s", (row_id,))
            row = cur.fetchone()
        if row is None:
            logger.debug(f"get_by_id {self.table}: id={row_id} not found")
        return self._to_model(row)

    def get_by_slug(self, slug: str) -> Optional[Any]:
        """The active row with this slug. None when absent."""
        if not self.schema.slug_column:
            raise ValidationError(f"{self.table} has no slug", field='slug')
        return self.find_one(self.schema.slug_column, slug)

    def find_one(self, column: str, value: Any, include_deleted: bool = False) -> Optional[Any]:
        self._require(column)
        conditions = [f"{column} = %s"]
        if self.schema.soft_delete and not include_deleted:
            conditions.append("deleted_at IS NULL")
        with self._cursor() as cur:
            cur.execute(f"SELECT * FROM {self.table} WHERE {' AND '.join(conditions)} LIMIT 1", (value,))
            row = cur.fetchone()
        return self._to_model(row)

    # =========================================================================
    # WRITES
    # =========================================================================

    @log_call
    def create(self, fields: Dict[str, Any]) -> Any:
        """Insert a row. Returns it with store-assigned id and timestamps."""
        fields = dict(fields)
        self.validate(fields, creating=True)

        if fields:
            columns = ', '.join(fields)
            values = ', '.join(f"%({key})s" for key in fields)
            query = f"INSERT INTO {self.table} ({columns}) VALUES ({values}) RETURNING *"
        else:
            query = f"INSERT INTO {self.table} DEFAULT VALUES RETURNING *"

        with self._cursor() as cur:
            cur.execute(query, fields)
            row = cur.fetchone()

        logger.info(f"Created {self.table} row {row['id']}")
        return self._to_model(row)

    @log_call
    def update(self, row_id, updates: Dict[str, Any]) -> Any:
        """
        Update fields of an active row. Bumps updated_at.
        Raises NotFoundError when the row is absent or soft-deleted.
        """
        if not updates:
            raise ValidationError(f"No {self.table} fields to update")
        updates = dict(updates)
        self.validate(updates, creating=False)

        set_clause = ', '.join(f"{key} = %({key})s" for key in updates)
        where_clause = "id = %(row_id)s"
        if self.schema.soft_delete:
            where_clause += " AND deleted_at IS NULL"

        params = dict(updates, row_id=row_id)
        with self._cursor() as cur:
            cur.execute(f"""
                UPDATE {self.table}
                SET {set_clause}, updated_at = NOW()
                WHERE {where_clause}
                RETURNING *
            """, params)
            row = cur.fetchone()

        if row is None:
            raise NotFoundError(f"{self.table} row {row_id} not found")
        logger.info(f"Updated {self.table} row {row_id}: {list(updates.keys())}")
        return self._to_model(row)

    @log_call
    def delete(self, row_id, actor: Optional[str] = None) -> bool:
        """
        Soft delete: stamp deleted_at/deleted_by. Deleting an already deleted
        row keeps its original stamp. Hard delete for non-soft-delete tables.
        """
        with self._cursor() as cur:
            if self.schema.soft_delete:
                cur.execute(f"""
                    UPDATE {self.table}
                    SET deleted_by = CASE WHEN deleted_at IS NULL THEN %(actor)s ELSE deleted_by END,
                        deleted_at = COALESCE(deleted_at, NOW()),
                        updated_at = NOW()
                    WHERE id = %(row_id)s
                """, {'actor': actor, 'row_id': row_id})
            else:
                cur.execute(f"DELETE FROM {self.table} WHERE id = %(row_id)s", {'row_id': row_id})
            affected = cur.rowcount

        if affected == 0:
            raise NotFoundError(f"{self.table} row {row_id} not found")
        logger.info(f"{'Soft d' if self.schema.soft_delete else 'D'}eleted {self.table} row {row_id}")
        return True

    @log_call
    def restore(self, row_id) -> bool:
        """Clear deleted_at and deleted_by in a single statement."""
        if not self.schema.soft_delete:
            raise ValidationError(f"{self.table} rows are deleted permanently and cannot be restored")

        with self._cursor() as cur:
            cur.execute(f"""
                UPDATE {self.table}
                SET deleted_at = NULL, deleted_by = NULL, updated_at = NOW()
                WHERE id = %s
            """, (row_id,))
            affected = cur.rowcount

        if affected == 0:
            raise NotFoundError(f"{self.table} row {row_id} not found")
        logger.info(f"Restored {self.table} row {row_id}")
        return True

    def toggle_publish(self, row_id, published: bool) -> Any:
        self._require('published')
        return self.update(row_id, {'published': bool(published)})

    def toggle_featured(self, row_id, featured: bool) -> Any:
        self._require('featured')
        return self.update(row_id, {'featured': bool(featured)})

    # =========================================================================
    # LIVE UPDATES
    # =========================================================================

    def subscribe_to_changes(self, callback: Callable) -> Channel:
        """
        Open an independent change channel for this table. The callback gets
        ChangeEvent(event_type, table, new, old); call .unsubscribe() on the
        returned handle to close it.
        """
        channel = self._channel_factory(self.table, callback, model=self.schema.model)
        try:
            return channel.subscribe()
        except psycopg2.Error as e:
            raise translate_store_error(e, self.table) from e
