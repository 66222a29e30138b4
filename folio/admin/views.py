"""
Admin list views, one per content table.
Each one only names its repository and route and adds entity-specific actions.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from folio.admin.list_view import EntityListView
from folio.engine import blogs, campaigns, contact, newsletter, projects, settings, testimonials
from folio.errors import FolioError, ValidationError

logger = logging.getLogger(__name__)


class BlogsListView(EntityListView):
    default_repository = blogs.repository
    route = '/admin/blogs'
    title = 'Bloglar'


class ProjectsListView(EntityListView):
    default_repository = projects.repository
    route = '/admin/projects'
    title = 'Projeler'
    order_key = 'order_index'

    def move(self, row_id, order_index: int) -> bool:
        if not self.perform(self.repository.update_order, row_id, order_index):
            return False
        self.patch(row_id, order_index=order_index)
        return True


class TestimonialsListView(EntityListView):
    default_repository = testimonials.repository
    route = '/admin/testimonials'
    title = 'Referanslar'
    order_key = 'order_index'


class ContactMessagesListView(EntityListView):
    """Inbox. Opening a new message marks it read."""

    default_repository = contact.repository
    route = '/admin/messages'
    title = 'İletişim Mesajları'

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.selected = None

    @property
    def new_count(self) -> int:
        return sum(1 for message in self.active if message.status == 'new')

    def reconcile(self, row):
        super().reconcile(row)
        if self.selected is not None and self.selected.id == row.id:
            self.selected = row

    def select(self, row_id):
        message = self.find(row_id)
        if message is None:
            return None
        self.selected = message
        if message.status == 'new' and message.deleted_at is None:
            self.set_status(row_id, 'read')
        return self.selected

    def set_status(self, row_id, status: str) -> bool:
        message = self.find(row_id)
        if message is None:
            return False
        try:
            contact.assert_forward_transition(message.status, status)
        except ValidationError as e:
            self.report(e)
            return False
        if not self.perform(self.repository.update_status, row_id, status):
            return False
        self.patch(row_id, status=status)
        return True

    def mark_replied(self, row_id) -> bool:
        return self.set_status(row_id, 'replied')

    def archive(self, row_id) -> bool:
        return self.set_status(row_id, 'archived')


class SubscribersListView(EntityListView):
    default_repository = newsletter.repository
    route = '/admin/subscribers'
    title = 'Aboneler'

    def unsubscribe(self, row_id) -> bool:
        if not self.perform(newsletter.unsubscribe, row_id):
            return False
        self.patch(row_id, status='unsubscribed', unsubscribed_at=datetime.now(timezone.utc))
        return True


class CampaignsListView(EntityListView):
    """Campaigns are hard-deleted, so there is no deleted partition here."""

    default_repository = campaigns.repository
    route = '/admin/campaigns'
    title = 'Kampanyalar'

    def create_from_blog(self, blog_id, lang: str = 'tr'):
        try:
            campaign = campaigns.create_from_blog(blog_id, lang, created_by=self.actor)
        except FolioError as e:
            self.report(e)
            return None
        self.on_insert(campaign)
        return campaign


class SettingsView(EntityListView):
    default_repository = settings.repository
    route = '/admin/settings'
    title = 'Ayarlar'

    def save(self, key: str, value_tr: Optional[str] = None, value_en: Optional[str] = None) -> bool:
        setting = next((s for s in self.collection if s.key == key), None)
        if setting is None:
            self.report(ValidationError(f"Unknown setting {key!r}", field='key'))
            return False
        updates = {}
        if value_tr is not None:
            updates['value_tr'] = value_tr
        if value_en is not None:
            updates['value_en'] = value_en
        if not updates:
            return False
        if not self.perform(self.repository.update, setting.id, updates):
            return False
        self.patch(setting.id, **updates)
        return True


LIST_VIEWS = (
    BlogsListView,
    ProjectsListView,
    TestimonialsListView,
    ContactMessagesListView,
    SubscribersListView,
    CampaignsListView,
    SettingsView,
)
