"""
Data Models
Dataclasses for all content entities. These are pure Python objects, no database logic.
"""

import re
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, List, Optional

# =============================================================================
# STATUS VOCABULARIES
# =============================================================================

MESSAGE_STATUSES = ('new', 'read', 'replied', 'archived')
SUBSCRIBER_STATUSES = ('active', 'unsubscribed', 'bounced')
CAMPAIGN_STATUSES = ('draft', 'scheduled', 'sending', 'sent', 'failed')
SETTING_TYPES = ('text', 'json')

EVENT_TYPES = ('INSERT', 'UPDATE', 'DELETE')

# Audit trail: soft delete and restore are recorded as DELETE and RESTORE
BACKUP_OPERATIONS = ('INSERT', 'UPDATE', 'DELETE', 'RESTORE')


@dataclass
class Blog:
    """Bilingual blog post."""
    id: Optional[str] = None
    slug: str = ''
    title_tr: str = ''
    title_en: str = ''
    excerpt_tr: Optional[str] = None
    excerpt_en: Optional[str] = None
    content_tr: Optional[str] = None
    content_en: Optional[str] = None
    category: Optional[str] = None
    emoji: Optional[str] = None
    published: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None


@dataclass
class Project:
    """Portfolio project, displayed by order_index."""
    id: Optional[str] = None
    slug: str = ''
    title_tr: str = ''
    title_en: str = ''
    description_tr: Optional[str] = None
    description_en: Optional[str] = None
    category: Optional[str] = None
    tech: List[str] = field(default_factory=list)
    link: Optional[str] = None
    image_url: Optional[str] = None
    order_index: int = 0
    published: bool = False
    featured: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None


@dataclass
class Testimonial:
    id: Optional[str] = None
    name: str = ''
    company: Optional[str] = None
    role_tr: Optional[str] = None
    role_en: Optional[str] = None
    quote_tr: str = ''
    quote_en: str = ''
    rating: int = 5
    order_index: int = 0
    published: bool = False
    featured: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None


@dataclass
class ContactMessage:
    """Message submitted through the public contact form."""
    id: Optional[str] = None
    name: str = ''
    email: str = ''
    phone: Optional[str] = None
    subject: Optional[str] = None
    message: str = ''
    kvkk_consent: bool = False
    user_agent: Optional[str] = None
    status: str = 'new'
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None


@dataclass
class NewsletterSubscriber:
    id: Optional[str] = None
    email: str = ''
    name: Optional[str] = None
    status: str = 'active'
    source: str = 'website'
    subscribed_at: Optional[datetime] = None
    unsubscribed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None


@dataclass
class EmailCampaign:
    """Newsletter campaign. Hard-deleted, so it carries no soft-delete columns."""
    id: Optional[str] = None
    subject: str = ''
    content_html: str = ''
    content_text: Optional[str] = None
    blog_id: Optional[str] = None
    status: str = 'draft'
    scheduled_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    total_recipients: int = 0
    delivered: int = 0
    opened: int = 0
    clicked: int = 0
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def deleted_at(self) -> None:
        return None


@dataclass
class Setting:
    """Site setting with per-language values."""
    id: Optional[str] = None
    key: str = ''
    value_tr: Optional[str] = None
    value_en: Optional[str] = None
    type: str = 'text'
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None


@dataclass
class EmailSendLog:
    id: Optional[str] = None
    campaign_id: Optional[str] = None
    subscriber_id: Optional[str] = None
    email: str = ''
    status: str = 'pending'
    sent_at: Optional[datetime] = None
    opened_at: Optional[datetime] = None
    clicked_at: Optional[datetime] = None
    error_message: Optional[str] = None


@dataclass
class DataBackup:
    """One audited row change: the row before (old_data) and after (new_data)."""
    id: Optional[str] = None
    table_name: str = ''
    record_id: Optional[str] = None
    operation: str = 'UPDATE'
    old_data: Optional[Dict[str, Any]] = None
    new_data: Optional[Dict[str, Any]] = None
    changed_by: Optional[str] = None
    changed_at: Optional[datetime] = None


@dataclass
class ChangeEvent:
    """One row-level change pushed by the store: {eventType, new, old}."""
    event_type: str
    table: str
    new: Optional[Any] = None
    old: Optional[Any] = None


# =============================================================================
# ROW HELPERS
# =============================================================================

# Postgres trims trailing zeros from fractional seconds; fromisoformat before
# 3.11 only accepts 3 or 6 digits and no Z suffix.
_FRACTION_RE = re.compile(r'\.(\d{1,6})(?=[+-]|$)')


def _parse_timestamp(value: Any) -> Any:
    if isinstance(value, str):
        text = value[:-1] + '+00:00' if value.endswith('Z') else value
        text = _FRACTION_RE.sub(lambda m: '.' + m.group(1).ljust(6, '0'), text)
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return value
    return value


def from_row(model, row: Optional[Dict[str, Any]]):
    """
    Build a model instance from a store row, ignoring columns the model does
    not declare. Timestamps arriving as ISO strings (change-feed JSON) are parsed.
    """
    if row is None:
        return None
    known = {f.name for f in fields(model)}
    values = {}
    for key, value in row.items():
        if key not in known:
            continue
        values[key] = _parse_timestamp(value) if key.endswith('_at') else value
    return model(**values)


# Table name -> model, used to decode change-feed rows
TABLE_MODELS = {
    'blogs': Blog,
    'projects': Project,
    'testimonials': Testimonial,
    'contact_messages': ContactMessage,
    'newsletter_subscribers': NewsletterSubscriber,
    'email_campaigns': EmailCampaign,
    'settings': Setting,
}
