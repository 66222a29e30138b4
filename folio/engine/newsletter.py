"""
Newsletter - subscribers, the subscribe/unsubscribe flows and their stats.

An email address owns exactly one row. Subscribing an unsubscribed (or
soft-deleted) address reactivates that row instead of inserting another.
"""

import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from folio.engine.repository import EntitySchema, SoftDeletableRepository, EMAIL_RE, store_cursor
from folio.errors import ConflictError, FolioError, NotFoundError, ValidationError
from folio.logging_config import log_call
from folio.models import NewsletterSubscriber, SUBSCRIBER_STATUSES

logger = logging.getLogger(__name__)

TOKENS_TABLE = 'unsubscribe_tokens'

SUBSCRIBER_SCHEMA = EntitySchema(
    table='newsletter_subscribers',
    model=NewsletterSubscriber,
    columns=frozenset({
        'email', 'name', 'status', 'source', 'subscribed_at', 'unsubscribed_at',
    }),
    required=('email',),
    unique=('email',),
    order_by="subscribed_at DESC NULLS LAST",
    statuses=SUBSCRIBER_STATUSES,
    patterns=(('email', EMAIL_RE),),
)


class SubscriberRepository(SoftDeletableRepository):

    def find_by_email(self, email: str, include_deleted: bool = True) -> Optional[NewsletterSubscriber]:
        return self.find_one('email', normalize_email(email), include_deleted=include_deleted)


repository = SubscriberRepository(SUBSCRIBER_SCHEMA)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def normalize_email(email: str) -> str:
    email = (email or '').strip().lower()
    if not EMAIL_RE.match(email):
        raise ValidationError(f"Invalid email address: {email!r}", field='email')
    return email


# =============================================================================
# SUBSCRIBE / UNSUBSCRIBE
# =============================================================================

@log_call
def subscribe(email: str, name: Optional[str] = None, source: str = 'website') -> NewsletterSubscriber:
    """
    Subscribe an address. Raises ConflictError if it is already subscribed.
    """
    email = normalize_email(email)
    existing = repository.find_by_email(email)

    if existing is not None:
        if existing.deleted_at is not None:
            repository.restore(existing.id)
            logger.info(f"Subscriber {existing.id} restored on resubscribe")
            return _reactivate(existing.id)
        if existing.status == 'unsubscribed':
            return _reactivate(existing.id)
        raise ConflictError(f"{email} is already subscribed", field='email')

    subscriber = repository.create({
        'email': email,
        'name': name or None,
        'source': source,
        'status': 'active',
        'subscribed_at': _now(),
    })
    create_unsubscribe_token(subscriber.id)
    return subscriber


def _reactivate(subscriber_id) -> NewsletterSubscriber:
    subscriber = repository.update(subscriber_id, {
        'status': 'active',
        'unsubscribed_at': None,
        'subscribed_at': _now(),
    })
    logger.info(f"Subscriber {subscriber_id} reactivated")
    return subscriber


@log_call
def unsubscribe(subscriber_id) -> NewsletterSubscriber:
    """Admin-side unsubscribe by id."""
    return repository.update(subscriber_id, {
        'status': 'unsubscribed',
        'unsubscribed_at': _now(),
    })


@log_call
def unsubscribe_by_token(token: str) -> NewsletterSubscriber:
    """Unsubscribe through an emailed link. Each token works once."""
    with store_cursor(TOKENS_TABLE) as cur:
        cur.execute(f"""
            SELECT id, subscriber_id FROM {TOKENS_TABLE}
            WHERE token = %s AND used_at IS NULL
        """, (token,))
        row = cur.fetchone()

    if row is None:
        raise NotFoundError("Invalid or already used unsubscribe link")

    subscriber = unsubscribe(row['subscriber_id'])

    with store_cursor(TOKENS_TABLE) as cur:
        cur.execute(f"UPDATE {TOKENS_TABLE} SET used_at = NOW() WHERE id = %s", (row['id'],))

    return subscriber


def create_unsubscribe_token(subscriber_id) -> Optional[str]:
    """
    Issue a fresh unsubscribe token. A failure here is logged and yields None;
    the subscription itself already succeeded.
    """
    token = secrets.token_hex(32)
    try:
        with store_cursor(TOKENS_TABLE) as cur:
            cur.execute(
                f"INSERT INTO {TOKENS_TABLE} (subscriber_id, token) VALUES (%s, %s)",
                (subscriber_id, token),
            )
    except FolioError as e:
        logger.error(f"Failed to create unsubscribe token for {subscriber_id}: {e}")
        return None
    return token


def get_unsubscribe_token(subscriber_id) -> Optional[str]:
    """The subscriber's unused token, issuing one if none exists."""
    with store_cursor(TOKENS_TABLE) as cur:
        cur.execute(f"""
            SELECT token FROM {TOKENS_TABLE}
            WHERE subscriber_id = %s AND used_at IS NULL
            LIMIT 1
        """, (subscriber_id,))
        row = cur.fetchone()

    if row:
        return row['token']
    return create_unsubscribe_token(subscriber_id)


# =============================================================================
# QUERIES
# =============================================================================

def active_subscribers() -> List[NewsletterSubscriber]:
    return repository.list(status='active')


def _month_start(moment: datetime, months_back: int = 0) -> datetime:
    year, month = moment.year, moment.month - months_back
    while month < 1:
        month += 12
        year -= 1
    return moment.replace(year=year, month=month, day=1, hour=0, minute=0, second=0, microsecond=0)


def subscriber_stats(now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Counts by status over active rows, plus sign-ups this month vs last month.
    growth_rate is a percentage with one decimal.
    """
    now = now or _now()
    this_month_start = _month_start(now)
    last_month_start = _month_start(now, 1)

    with store_cursor(SUBSCRIBER_SCHEMA.table) as cur:
        cur.execute(f"""
            SELECT status, subscribed_at FROM {SUBSCRIBER_SCHEMA.table}
            WHERE deleted_at IS NULL
        """)
        rows = cur.fetchall() or []

    by_status = {status: 0 for status in SUBSCRIBER_STATUSES}
    this_month = last_month = 0
    for row in rows:
        if row['status'] in by_status:
            by_status[row['status']] += 1
        subscribed_at = row['subscribed_at']
        if subscribed_at is None:
            continue
        if subscribed_at >= this_month_start:
            this_month += 1
        elif subscribed_at >= last_month_start:
            last_month += 1

    if last_month > 0:
        growth_rate = (this_month - last_month) / last_month * 100
    else:
        growth_rate = 100.0 if this_month > 0 else 0.0

    return {
        'total': len(rows),
        'active': by_status['active'],
        'unsubscribed': by_status['unsubscribed'],
        'bounced': by_status['bounced'],
        'this_month': this_month,
        'last_month': last_month,
        'growth_rate': round(growth_rate, 1),
    }
