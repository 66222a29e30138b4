"""
Unit tests for the entity dataclasses and row helpers (folio/models).
"""

from datetime import datetime, timezone

import pytest

from folio.models import (
    Blog, Project, Testimonial, ContactMessage, NewsletterSubscriber, EmailCampaign, Setting,
    ChangeEvent, MESSAGE_STATUSES, TABLE_MODELS, from_row,
)


def test_defaults_describe_an_active_unpublished_row():
    blog = Blog(slug='merhaba', title_tr='Merhaba', title_en='Hello')
    assert blog.published is False
    assert blog.deleted_at is None
    assert blog.deleted_by is None


def test_project_tech_lists_are_not_shared():
    a, b = Project(), Project()
    a.tech.append('python')
    assert b.tech == []


def test_testimonial_rating_defaults_to_five():
    assert Testimonial().rating == 5


def test_contact_message_starts_new():
    assert ContactMessage().status == 'new'
    assert MESSAGE_STATUSES[0] == 'new'


def test_campaign_is_never_deleted():
    assert EmailCampaign().deleted_at is None


def test_from_row_none_is_none():
    assert from_row(Blog, None) is None


def test_from_row_ignores_unknown_columns():
    blog = from_row(Blog, {'id': 'b1', 'slug': 'a', 'title_tr': 'X', 'title_en': 'Y', 'view_count': 9})
    assert blog.id == 'b1'
    assert not hasattr(blog, 'view_count')


def test_from_row_parses_iso_timestamps():
    row = {'id': 's1', 'email': 'a@b.com', 'subscribed_at': '2026-03-01T10:00:00+00:00', 'deleted_at': None}
    subscriber = from_row(NewsletterSubscriber, row)
    assert subscriber.subscribed_at == datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)
    assert subscriber.deleted_at is None


@pytest.mark.parametrize('text,micro', [
    ('2026-05-01T12:34:56.12345+00:00', 123450),
    ('2026-05-01T12:34:56.1+00:00', 100000),
    ('2026-05-01T12:34:56.123456+00:00', 123456),
    ('2026-05-01T12:34:56.12Z', 120000),
])
def test_from_row_parses_trimmed_fractional_seconds(text, micro):
    blog = from_row(Blog, {'id': 'b1', 'deleted_at': text})
    assert blog.deleted_at == datetime(2026, 5, 1, 12, 34, 56, micro, tzinfo=timezone.utc)


def test_from_row_keeps_datetime_values():
    moment = datetime(2026, 1, 2, tzinfo=timezone.utc)
    setting = from_row(Setting, {'key': 'site_title', 'created_at': moment})
    assert setting.created_at is moment


def test_from_row_leaves_unparseable_timestamp_text():
    blog = from_row(Blog, {'created_at': 'yesterday'})
    assert blog.created_at == 'yesterday'


def test_table_models_cover_every_live_table():
    assert set(TABLE_MODELS) == {
        'blogs', 'projects', 'testimonials', 'contact_messages',
        'newsletter_subscribers', 'email_campaigns', 'settings',
    }


def test_change_event_fields():
    event = ChangeEvent('DELETE', 'blogs', old=Blog(id='b1'))
    assert event.new is None
    assert event.old.id == 'b1'
