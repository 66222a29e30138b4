"""
Admin Dashboard - headline numbers across all content tables.
"""

import logging
from typing import Any, Dict, Optional

from folio.engine import blogs, campaigns, contact, newsletter, projects, testimonials
from folio.admin.list_view import alert_message
from folio.errors import FolioError
from folio.logging_config import log_call

logger = logging.getLogger(__name__)


@log_call
def dashboard_summary() -> Dict[str, Any]:
    return {
        'blogs': {
            'active': blogs.repository.count(),
            'published': blogs.repository.count(published_only=True),
        },
        'projects': {
            'active': projects.repository.count(),
            'published': projects.repository.count(published_only=True),
            'featured': projects.repository.count(featured_only=True),
        },
        'testimonials': {
            'active': testimonials.repository.count(),
            'published': testimonials.repository.count(published_only=True),
        },
        'new_messages': contact.repository.new_message_count(),
        'subscribers': newsletter.subscriber_stats(),
        'campaigns': campaigns.campaign_stats(),
    }


class DashboardView:
    """Static snapshot; the dashboard has no live channel."""

    route = '/admin/dashboard'
    title = 'Dashboard'

    def __init__(self, alert=None, loader=dashboard_summary, **_ignored):
        self.summary: Optional[Dict[str, Any]] = None
        self.alerts = []
        self.mounted = False
        self._alert = alert
        self._loader = loader

    def mount(self):
        self.mounted = True
        self.refresh()

    def unmount(self):
        self.mounted = False

    def refresh(self) -> bool:
        try:
            self.summary = self._loader()
        except FolioError as e:
            message = alert_message(e)
            logger.warning(f"dashboard: {type(e).__name__}: {e}")
            self.alerts.append(message)
            if self._alert is not None:
                self._alert(message)
            return False
        return True

    def poll(self, timeout: float = 0.0) -> int:
        return 0
