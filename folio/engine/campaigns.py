"""
Email Campaigns - newsletter issues and their delivery counters.

Campaigns are operational records: delete() removes the row for good and
there is no restore. Sending itself happens outside this package.
"""

import html
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from folio.config import config
from folio.engine import blogs
from folio.engine.repository import EntitySchema, SoftDeletableRepository
from folio.errors import NotFoundError, ValidationError
from folio.logging_config import log_call
from folio.models import EmailCampaign, EmailSendLog, CAMPAIGN_STATUSES, from_row

logger = logging.getLogger(__name__)

SEND_LOG_TABLE = 'email_send_log'

CAMPAIGN_SCHEMA = EntitySchema(
    table='email_campaigns',
    model=EmailCampaign,
    columns=frozenset({
        'subject', 'content_html', 'content_text', 'blog_id', 'status', 'scheduled_at',
        'sent_at', 'total_recipients', 'delivered', 'opened', 'clicked', 'created_by',
    }),
    required=('subject', 'content_html'),
    order_by="created_at DESC",
    soft_delete=False,
    statuses=CAMPAIGN_STATUSES,
)


class CampaignRepository(SoftDeletableRepository):

    @log_call
    def update_status(self, row_id, status: str, **extra: Any) -> EmailCampaign:
        """Set status (plus any extra columns); stamps sent_at when status is 'sent'."""
        updates = dict(extra, status=status)
        if status == 'sent':
            updates.setdefault('sent_at', datetime.now(timezone.utc))
        return self.update(row_id, updates)

    def send_logs(self, campaign_id) -> List[EmailSendLog]:
        with self._cursor() as cur:
            cur.execute(f"""
                SELECT * FROM {SEND_LOG_TABLE}
                WHERE campaign_id = %s
                ORDER BY sent_at DESC NULLS LAST
            """, (campaign_id,))
            rows = cur.fetchall() or []
        return [from_row(EmailSendLog, row) for row in rows]

    def stats(self) -> Dict[str, int]:
        """Totals over sent campaigns; rates are rounded percentages."""
        sent = self.list(status='sent')
        delivered = sum(c.delivered for c in sent)
        opened = sum(c.opened for c in sent)
        clicked = sum(c.clicked for c in sent)
        return {
            'total_campaigns': len(sent),
            'total_sent': sum(c.total_recipients for c in sent),
            'total_delivered': delivered,
            'total_opened': opened,
            'total_clicked': clicked,
            'avg_open_rate': round(opened / delivered * 100) if delivered else 0,
            'avg_click_rate': round(clicked / opened * 100) if opened else 0,
        }


repository = CampaignRepository(CAMPAIGN_SCHEMA)


@log_call
def create_campaign(subject: str, content_html: str, content_text: Optional[str] = None,
                    created_by: Optional[str] = None, **extra: Any) -> EmailCampaign:
    """Draft a campaign by hand. Status defaults to draft."""
    fields = dict(extra, subject=subject, content_html=content_html,
                  content_text=content_text, created_by=created_by)
    fields.setdefault('status', 'draft')
    return repository.create(fields)


def campaign_stats() -> Dict[str, int]:
    return repository.stats()


# =============================================================================
# BLOG -> CAMPAIGN
# =============================================================================

def render_blog_email(title: str, excerpt: str, blog_url: str, emoji: str, category: str) -> str:
    """
    HTML body announcing a blog post. {{unsubscribe_url}} is left in place
    for the sender to fill per recipient.
    """
    title, excerpt, category = html.escape(title), html.escape(excerpt), html.escape(category)
    blog_url, emoji = html.escape(blog_url, quote=True), html.escape(emoji)
    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
</head>
<body style="margin: 0; padding: 0; font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; background-color: #f4f4f5;">
  <table width="100%" cellpadding="0" cellspacing="0" role="presentation">
    <tr>
      <td align="center" style="padding: 40px 20px;">
        <table width="100%" cellpadding="0" cellspacing="0" role="presentation" style="max-width: 600px; background-color: #ffffff; border-radius: 16px;">
          <tr>
            <td style="padding: 32px;">
              <span style="background-color: #f0f9ff; color: #0369a1; padding: 4px 12px; border-radius: 9999px; font-size: 12px;">{category}</span>
              <h2 style="margin: 16px 0; font-size: 28px; color: #18181b;">{emoji} {title}</h2>
              <p style="margin: 0 0 24px; font-size: 16px; line-height: 1.6; color: #52525b;">{excerpt}</p>
              <a href="{blog_url}" style="background: #6366f1; color: #ffffff; text-decoration: none; padding: 14px 28px; border-radius: 8px;">Devamını Oku / Read more →</a>
            </td>
          </tr>
          <tr>
            <td style="background-color: #fafafa; padding: 24px 32px; border-top: 1px solid #e4e4e7; text-align: center; font-size: 14px; color: #71717a;">
              <a href="{{{{unsubscribe_url}}}}" style="color: #6366f1;">Abonelikten çık / Unsubscribe</a>
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>
"""


@log_call
def create_from_blog(blog_id, lang: str = 'tr', created_by: Optional[str] = None) -> EmailCampaign:
    """Draft a campaign announcing an active blog post in one language."""
    if lang not in ('tr', 'en'):
        raise ValidationError(f"Unsupported language: {lang!r}", field='lang')

    blog = blogs.repository.get_by_id(blog_id)
    if blog is None or blog.deleted_at is not None:
        raise NotFoundError(f"blogs row {blog_id} not found")

    title = getattr(blog, f"title_{lang}")
    excerpt = getattr(blog, f"excerpt_{lang}") or ''
    emoji = blog.emoji or '📝'
    blog_url = f"{config.SITE_URL}/{lang}/blog/{blog.slug}"
    read_more = 'Devamını oku' if lang == 'tr' else 'Read more'

    campaign = repository.create({
        'subject': f"{emoji} {title}",
        'content_html': render_blog_email(title, excerpt, blog_url, emoji, blog.category or 'Genel'),
        'content_text': f"{title}\n\n{excerpt}\n\n{read_more}: {blog_url}",
        'blog_id': blog_id,
        'status': 'draft',
        'created_by': created_by,
    })
    logger.info(f"Campaign {campaign.id} drafted from blog {blog_id} ({lang})")
    return campaign
