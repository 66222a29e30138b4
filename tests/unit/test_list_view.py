"""
Unit tests for the generic admin list view (folio/admin/list_view.py).

The repository is a MagicMock carrying a real EntitySchema; the live
subscription is FakeSubscription, which keeps the handlers the view passes
in so tests can push events through them.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from folio.admin.list_view import EntityListView, alert_message
from folio.engine.blogs import BLOG_SCHEMA
from folio.engine.campaigns import CAMPAIGN_SCHEMA
from folio.engine.contact import CONTACT_SCHEMA
from folio.errors import AuthError, ConflictError, NotFoundError, StoreError, ValidationError
from folio.models import Blog, ChangeEvent, ContactMessage, EmailCampaign, Project

DELETED_AT = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeSubscription:
    def __init__(self, table, on_insert=None, on_update=None, on_delete=None):
        self.table = table
        self.on_insert, self.on_update, self.on_delete = on_insert, on_update, on_delete
        self.active = False
        self.deactivations = 0

    def activate(self):
        self.active = True
        return True

    def deactivate(self):
        self.active = False
        self.deactivations += 1

    @property
    def subscribed(self):
        return self.active

    def poll(self, timeout=0.0):
        return 0


def make_repo(schema=BLOG_SCHEMA, rows=()):
    repo = MagicMock()
    repo.table = schema.table
    repo.schema = schema
    repo.list.return_value = list(rows)
    return repo


def blog(row_id, **values):
    return Blog(id=row_id, slug=f'post-{row_id}', title_tr='X', title_en='Y', **values)


@pytest.fixture
def alerts():
    return []


@pytest.fixture
def view_for(alerts):
    def _make(repo, **kwargs):
        return EntityListView(repo, alert=alerts.append, subscription_factory=FakeSubscription, **kwargs)
    return _make


@pytest.fixture
def repo():
    return make_repo(rows=[blog('b2'), blog('b1')])


@pytest.fixture
def view(repo, view_for):
    v = view_for(repo, actor='u1')
    v.mount()
    return v


# ---------------------------------------------------------------------------
# alert_message
# ---------------------------------------------------------------------------

@pytest.mark.parametrize('exc,expected', [
    (ValidationError('is required', field='slug'), 'slug: is required'),
    (ValidationError('bad input'), 'bad input'),
    (ConflictError('dup', field='slug'), 'A record with this slug already exists.'),
    (ConflictError('dup'), 'A record with this value already exists.'),
    (NotFoundError('gone'), 'Not found.'),
    (AuthError('expired'), 'Your session is no longer valid. Please sign in again.'),
    (StoreError('timeout'), 'The server could not complete the request. Please try again.'),
])
def test_alert_message(exc, expected):
    assert alert_message(exc) == expected


# ---------------------------------------------------------------------------
# mount / unmount
# ---------------------------------------------------------------------------

def test_mount_fetches_then_subscribes(view, repo):
    repo.list.assert_called_once_with(include_deleted=False, status=None)
    assert [b.id for b in view.active] == ['b2', 'b1']
    assert view.is_loading is False
    assert view.live


def test_unmount_closes_subscription(view):
    subscription = view._subscription
    view.unmount()
    assert subscription.deactivations == 1
    assert not view.live
    assert not view.mounted


def test_unmount_twice_is_harmless(view):
    view.unmount()
    view.unmount()


def test_poll_without_subscription_is_zero(repo, view_for):
    assert view_for(repo).poll() == 0


def test_context_manager_mounts_and_unmounts(repo, view_for):
    with view_for(repo) as v:
        assert v.mounted
    assert not v.mounted


def test_failed_initial_fetch_alerts_and_stops_loading(view_for, alerts):
    repo = make_repo()
    repo.list.side_effect = StoreError('down')
    v = view_for(repo)
    v.mount()
    assert v.collection == []
    assert v.is_loading is False
    assert alerts == ['The server could not complete the request. Please try again.']
    assert v.live


# ---------------------------------------------------------------------------
# fetch sequencing
# ---------------------------------------------------------------------------

def test_stale_snapshot_is_discarded(view):
    older = view.begin_fetch()
    newer = view.begin_fetch()
    assert view.apply_snapshot(newer, [blog('fresh')]) is True
    assert view.apply_snapshot(older, [blog('stale')]) is False
    assert [b.id for b in view.collection] == ['fresh']


def test_show_deleted_requeries(view, repo):
    repo.list.return_value = [blog('b3', deleted_at=DELETED_AT)]
    assert view.set_show_deleted(True) is True
    repo.list.assert_called_with(include_deleted=True, status=None)
    assert [b.id for b in view.visible] == ['b3']
    assert view.set_show_deleted(True) is False


def test_show_deleted_ignored_for_hard_delete_tables(view_for):
    repo = make_repo(CAMPAIGN_SCHEMA)
    v = view_for(repo)
    v.mount()
    assert v.set_show_deleted(True) is False
    assert v.show_deleted is False


def test_unknown_status_filter_alerts(view_for, alerts):
    v = view_for(make_repo(CONTACT_SCHEMA))
    v.mount()
    assert v.set_status_filter('spam') is False
    assert alerts == ["status: Unknown status 'spam'"]


def test_status_filter_requeries(view_for):
    repo = make_repo(CONTACT_SCHEMA)
    v = view_for(repo)
    v.mount()
    assert v.set_status_filter('new') is True
    repo.list.assert_called_with(include_deleted=False, status='new')


# ---------------------------------------------------------------------------
# reconciliation from push events
# ---------------------------------------------------------------------------

def test_insert_prepends(view):
    view._subscription.on_insert(blog('b3'))
    assert [b.id for b in view.collection] == ['b3', 'b2', 'b1']


def test_insert_of_known_id_is_skipped(view):
    view._subscription.on_insert(blog('b1', published=True))
    assert len(view.collection) == 2
    assert view.find('b1').published is False


def test_update_replaces_in_place(view):
    view._subscription.on_update(blog('b1', published=True), blog('b1'))
    assert [b.id for b in view.collection] == ['b2', 'b1']
    assert view.find('b1').published is True


def test_update_for_unknown_row_inserts_when_it_matches(view):
    view._subscription.on_update(blog('b9'), None)
    assert view.collection[0].id == 'b9'


def test_update_that_soft_deletes_leaves_active_partition(view):
    view._subscription.on_update(blog('b1', deleted_at=DELETED_AT), blog('b1'))
    assert view.find('b1') is None
    assert [b.id for b in view.active] == ['b2']


def test_update_that_restores_enters_active_partition(view):
    view._subscription.on_update(blog('b5'), blog('b5', deleted_at=DELETED_AT))
    assert view.find('b5') is not None


def test_restore_event_moves_row_out_of_deleted_partition(repo, view):
    repo.list.return_value = [blog('b3', deleted_at=DELETED_AT)]
    view.set_show_deleted(True)
    view._subscription.on_update(blog('b3'), None)
    assert view.deleted == []


def test_delete_removes(view):
    view._subscription.on_delete(blog('b1'))
    assert [b.id for b in view.collection] == ['b2']
    view._subscription.on_delete(blog('b1'))
    assert [b.id for b in view.collection] == ['b2']


def test_duplicate_update_is_idempotent(view):
    event = ChangeEvent('UPDATE', 'blogs', new=blog('b1', published=True), old=blog('b1'))
    view.apply_event(event)
    once = list(view.collection)
    view.apply_event(event)
    assert view.collection == once


def test_status_filter_drops_rows_that_leave_it(view_for):
    repo = make_repo(CONTACT_SCHEMA, rows=[ContactMessage(id='m1', status='new')])
    v = view_for(repo)
    v.mount()
    v.set_status_filter('new')
    v.on_update(ContactMessage(id='m1', status='read'))
    assert v.collection == []


def test_order_key_sorts_partitions():
    class Ordered(EntityListView):
        order_key = 'order_index'

    v = Ordered(make_repo(), subscription_factory=FakeSubscription)
    v.collection = [Project(id='a', order_index=2), Project(id='b', order_index=1),
                    Project(id='c', order_index=0, deleted_at=DELETED_AT)]
    assert [r.id for r in v.active] == ['b', 'a']
    assert [r.id for r in v.deleted] == ['c']


# ---------------------------------------------------------------------------
# user actions
# ---------------------------------------------------------------------------

def test_delete_patches_locally_and_hides_row(view, repo):
    assert view.delete('b1') is True
    repo.delete.assert_called_once_with('b1', 'u1')
    assert view.find('b1') is None


def test_delete_then_push_event_leaves_same_state(view):
    view.delete('b1')
    after_patch = list(view.collection)
    view._subscription.on_update(blog('b1', deleted_at=DELETED_AT, deleted_by='u1'), blog('b1'))
    assert view.collection == after_patch


def test_delete_failure_leaves_collection(view, repo, alerts):
    repo.delete.side_effect = NotFoundError('gone')
    before = list(view.collection)
    assert view.delete('b1') is False
    assert view.collection == before
    assert alerts == ['Not found.']


def test_delete_in_deleted_partition_keeps_original_stamp(view, repo):
    repo.list.return_value = [blog('b3', deleted_at=DELETED_AT, deleted_by='u0')]
    view.set_show_deleted(True)
    view.delete('b3')
    row = view.find('b3')
    assert row.deleted_at == DELETED_AT
    assert row.deleted_by == 'u0'


def test_hard_delete_removes_row(view_for):
    repo = make_repo(CAMPAIGN_SCHEMA, rows=[EmailCampaign(id='c1')])
    v = view_for(repo)
    v.mount()
    assert v.delete('c1') is True
    assert v.collection == []


def test_restore_moves_row_to_active_partition(view, repo):
    repo.list.return_value = [blog('b1'), blog('b3', deleted_at=DELETED_AT, deleted_by='u0')]
    view.set_show_deleted(True)
    assert view.restore('b3') is True
    repo.restore.assert_called_once_with('b3')
    assert view.deleted == []
    row = view.find('b3')
    assert row.deleted_at is None
    assert row.deleted_by is None


def test_toggle_publish_twice_same_state(view, repo):
    assert view.toggle_publish('b1', True) is True
    assert view.toggle_publish('b1', True) is True
    assert view.find('b1').published is True
    assert repo.toggle_publish.call_count == 2


def test_toggle_failure_alerts_and_keeps_state(view, repo, alerts):
    repo.toggle_publish.side_effect = StoreError('timeout')
    assert view.toggle_publish('b1', True) is False
    assert view.find('b1').published is False
    assert len(alerts) == 1


def test_conflict_message_names_field(view, repo, alerts):
    repo.toggle_publish.side_effect = ConflictError('dup', field='slug')
    view.toggle_publish('b1', True)
    assert alerts == ['A record with this slug already exists.']
    assert view.alerts == alerts
