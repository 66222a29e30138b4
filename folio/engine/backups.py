"""
Backups - the audit trail written by the store's data_backups trigger.

Every write to an audited table leaves one data_backups row holding the row
before and after the change. A soft delete is recorded as DELETE and a
restore as RESTORE, so the trail doubles as the history of a row's
soft-delete lifecycle. Rows can be rolled back to any recorded version.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from folio.engine import blogs, contact, newsletter, projects, settings, testimonials
from folio.engine.repository import EntitySchema, store_cursor
from folio.errors import NotFoundError, ValidationError
from folio.logging_config import log_call
from folio.models import BACKUP_OPERATIONS, DataBackup, from_row

logger = logging.getLogger(__name__)

BACKUPS_TABLE = 'data_backups'

# Tables carrying the audit trigger (see migrations/001_schema.sql)
AUDITED: Dict[str, EntitySchema] = {
    schema.table: schema for schema in (
        blogs.BLOG_SCHEMA,
        projects.PROJECT_SCHEMA,
        testimonials.TESTIMONIAL_SCHEMA,
        contact.CONTACT_SCHEMA,
        newsletter.SUBSCRIBER_SCHEMA,
        settings.SETTING_SCHEMA,
    )
}

# Never copied back from a stored version
_BOOKKEEPING = frozenset({'id', 'created_at', 'updated_at', 'deleted_at', 'deleted_by'})


def _audited_schema(table_name: str) -> EntitySchema:
    schema = AUDITED.get(table_name)
    if schema is None:
        raise ValidationError(f"{table_name!r} has no backup history", field='table_name')
    return schema


# =============================================================================
# HISTORY
# =============================================================================

def backup_history(
    table_name: Optional[str] = None,
    record_id: Optional[str] = None,
    operation: Optional[str] = None,
    limit: Optional[int] = None,
) -> List[DataBackup]:
    """Audit rows matching all given filters, newest first."""
    conditions = []
    params: Dict[str, Any] = {}

    if table_name is not None:
        conditions.append("table_name = %(table_name)s")
        params['table_name'] = table_name
    if record_id is not None:
        conditions.append("record_id = %(record_id)s")
        params['record_id'] = record_id
    if operation is not None:
        if operation not in BACKUP_OPERATIONS:
            raise ValidationError(f"Invalid backup operation: {operation!r}", field='operation')
        conditions.append("operation = %(operation)s")
        params['operation'] = operation

    where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
    query = f"SELECT * FROM {BACKUPS_TABLE} {where_clause} ORDER BY changed_at DESC"
    if limit is not None:
        query += " LIMIT %(limit)s"
        params['limit'] = limit

    with store_cursor(BACKUPS_TABLE) as cur:
        cur.execute(query, params)
        rows = cur.fetchall() or []
    return [from_row(DataBackup, row) for row in rows]


def record_history(table_name: str, record_id) -> List[DataBackup]:
    return backup_history(table_name=table_name, record_id=record_id)


def deleted_records(table_name: str) -> List[Dict[str, Any]]:
    """Soft deletes recorded for a table: [{id, deleted_at, data}], newest first."""
    return [
        {'id': backup.record_id, 'deleted_at': backup.changed_at, 'data': backup.old_data}
        for backup in backup_history(table_name=table_name, operation='DELETE')
    ]


# =============================================================================
# RESTORE
# =============================================================================

@log_call
def restore_to_version(table_name: str, record_id, backup_id) -> Any:
    """
    Overwrite a row with the version stored in one backup and make it active
    again. INSERT backups restore their new_data, all others their old_data.
    Immutable columns keep their current values.
    """
    schema = _audited_schema(table_name)

    with store_cursor(BACKUPS_TABLE) as cur:
        cur.execute(f"SELECT * FROM {BACKUPS_TABLE} WHERE id = %s", (backup_id,))
        row = cur.fetchone()
    if row is None:
        raise NotFoundError(f"Backup {backup_id} not found")

    backup = from_row(DataBackup, row)
    if backup.table_name != table_name or str(backup.record_id) != str(record_id):
        raise ValidationError(f"Backup {backup_id} does not belong to {table_name} row {record_id}",
                              field='backup_id')

    data = backup.new_data if backup.operation == 'INSERT' else backup.old_data
    if not data:
        raise ValidationError(f"Backup {backup_id} holds no data to restore", field='backup_id')

    writable = schema.columns - _BOOKKEEPING - set(schema.immutable)
    values = {key: value for key, value in data.items() if key in writable}

    assignments = [f"{key} = %({key})s" for key in values]
    assignments += ["deleted_at = NULL", "deleted_by = NULL", "updated_at = NOW()"]
    params = dict(values, record_id=record_id)

    with store_cursor(table_name, schema.unique) as cur:
        cur.execute(f"""
            UPDATE {table_name}
            SET {', '.join(assignments)}
            WHERE id = %(record_id)s
            RETURNING *
        """, params)
        restored = cur.fetchone()

    if restored is None:
        raise NotFoundError(f"{table_name} row {record_id} not found")
    logger.info(f"Restored {table_name} row {record_id} to backup {backup_id} ({backup.operation})")
    return from_row(schema.model, restored)


# =============================================================================
# STATS
# =============================================================================

def backup_stats(now: Optional[datetime] = None) -> Dict[str, Any]:
    """Totals per table and per operation, plus changes in the last 24 hours."""
    since = (now or datetime.now(timezone.utc)) - timedelta(days=1)

    with store_cursor(BACKUPS_TABLE) as cur:
        cur.execute(f"""
            SELECT table_name, operation, COUNT(*) AS count,
                   COUNT(*) FILTER (WHERE changed_at > %s) AS recent
            FROM {BACKUPS_TABLE}
            GROUP BY table_name, operation
        """, (since,))
        rows = cur.fetchall() or []

    by_table: Dict[str, int] = {}
    by_operation: Dict[str, int] = {}
    total = recent = 0
    for row in rows:
        by_table[row['table_name']] = by_table.get(row['table_name'], 0) + row['count']
        by_operation[row['operation']] = by_operation.get(row['operation'], 0) + row['count']
        total += row['count']
        recent += row['recent']

    return {
        'total_backups': total,
        'by_table': by_table,
        'by_operation': by_operation,
        'last_24_hours': recent,
    }
