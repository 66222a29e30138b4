"""
Contact Messages - public form submissions and their operator workflow.

Status moves forward only: new -> read -> replied -> archived. Steps may be
skipped (archive straight from new) but never reversed.
"""

import logging
from typing import Optional

from folio.engine.repository import EntitySchema, SoftDeletableRepository, EMAIL_RE
from folio.errors import ValidationError
from folio.logging_config import log_call
from folio.models import ContactMessage, MESSAGE_STATUSES

logger = logging.getLogger(__name__)

CONTACT_SCHEMA = EntitySchema(
    table='contact_messages',
    model=ContactMessage,
    columns=frozenset({
        'name', 'email', 'phone', 'subject', 'message', 'kvkk_consent', 'user_agent', 'status',
    }),
    required=('name', 'email', 'message'),
    order_by="created_at DESC",
    statuses=MESSAGE_STATUSES,
    immutable=('kvkk_consent', 'name', 'email', 'phone', 'subject', 'message', 'user_agent'),
    patterns=(('email', EMAIL_RE),),
)


def assert_forward_transition(current: str, target: str) -> None:
    """Raise ValidationError if target would move a message backwards."""
    if target not in MESSAGE_STATUSES:
        raise ValidationError(f"Invalid contact_messages status: {target!r}", field='status')
    if MESSAGE_STATUSES.index(target) < MESSAGE_STATUSES.index(current):
        raise ValidationError(f"Cannot move a message from {current} back to {target}", field='status')


class ContactMessageRepository(SoftDeletableRepository):

    @log_call
    def update_status(self, row_id, status: str) -> ContactMessage:
        return self.update(row_id, {'status': status})

    def mark_read(self, row_id) -> ContactMessage:
        return self.update_status(row_id, 'read')

    def mark_replied(self, row_id) -> ContactMessage:
        return self.update_status(row_id, 'replied')

    def archive(self, row_id) -> ContactMessage:
        return self.update_status(row_id, 'archived')

    def new_message_count(self) -> int:
        return self.count(status='new')


repository = ContactMessageRepository(CONTACT_SCHEMA)


@log_call
def submit_message(
    name: str,
    email: str,
    message: str,
    kvkk_consent: bool,
    phone: Optional[str] = None,
    subject: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> ContactMessage:
    """
    Store a contact form submission. Consent to process personal data (KVKK)
    is mandatory and recorded with the message.
    """
    if kvkk_consent is not True:
        raise ValidationError("Consent to process personal data is required", field='kvkk_consent')

    saved = repository.create({
        'name': (name or '').strip(),
        'email': (email or '').strip(),
        'message': (message or '').strip(),
        'phone': phone or None,
        'subject': subject or None,
        'user_agent': user_agent,
        'kvkk_consent': True,
        'status': 'new',
    })
    logger.info(f"Contact message {saved.id} received")
    return saved
