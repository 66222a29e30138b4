"""
Unit tests for contact messages (folio/engine/contact.py).
submit_message is tested against a mocked module repository; the status
helpers against a mocked cursor.
"""

from contextlib import contextmanager
from unittest.mock import MagicMock, patch

import pytest

from folio.engine import contact
from folio.engine.contact import assert_forward_transition, submit_message
from folio.errors import ValidationError
from folio.models import ContactMessage


@pytest.fixture
def mock_repo():
    with patch('folio.engine.contact.repository') as repo:
        repo.create.side_effect = lambda fields: ContactMessage(id='m1', **fields)
        yield repo


def test_submit_requires_consent(mock_repo):
    with pytest.raises(ValidationError) as exc_info:
        submit_message('Ayşe', 'ayse@example.com', 'Merhaba', kvkk_consent=False)
    assert exc_info.value.field == 'kvkk_consent'
    mock_repo.create.assert_not_called()


def test_submit_rejects_truthy_non_bool_consent(mock_repo):
    with pytest.raises(ValidationError):
        submit_message('Ayşe', 'ayse@example.com', 'Merhaba', kvkk_consent='yes')


def test_submit_stores_new_message_with_consent(mock_repo):
    message = submit_message(' Ayşe ', 'ayse@example.com ', ' Merhaba ', kvkk_consent=True,
                             phone='', user_agent='Mozilla/5.0')
    fields = mock_repo.create.call_args[0][0]
    assert fields['status'] == 'new'
    assert fields['kvkk_consent'] is True
    assert fields['name'] == 'Ayşe'
    assert fields['email'] == 'ayse@example.com'
    assert fields['phone'] is None
    assert message.id == 'm1'


def test_schema_rejects_bad_email():
    with pytest.raises(ValidationError) as exc_info:
        contact.repository.validate({'name': 'A', 'email': 'not-an-email', 'message': 'x'}, creating=True)
    assert exc_info.value.field == 'email'


def test_consent_is_not_writable_after_create():
    with pytest.raises(ValidationError):
        contact.repository.validate({'kvkk_consent': False}, creating=False)


def test_message_body_is_not_writable_after_create():
    with pytest.raises(ValidationError):
        contact.repository.validate({'message': 'edited'}, creating=False)


@pytest.mark.parametrize('current,target', [
    ('new', 'read'), ('new', 'archived'), ('read', 'replied'), ('replied', 'archived'), ('read', 'read'),
])
def test_forward_transitions_allowed(current, target):
    assert_forward_transition(current, target)


@pytest.mark.parametrize('current,target', [
    ('read', 'new'), ('archived', 'replied'), ('replied', 'read'),
])
def test_backward_transitions_rejected(current, target):
    with pytest.raises(ValidationError, match='back'):
        assert_forward_transition(current, target)


def test_unknown_target_status_rejected():
    with pytest.raises(ValidationError):
        assert_forward_transition('new', 'spam')


def _cursor(fetchone):
    cur = MagicMock()
    cur.fetchone.return_value = fetchone

    @contextmanager
    def _mock_ctx():
        yield cur

    return cur, patch('folio.engine.repository.get_db_cursor', _mock_ctx)


def test_mark_read_updates_status():
    cur, cursor_patch = _cursor({'id': 'm1', 'status': 'read'})
    with cursor_patch:
        message = contact.repository.mark_read('m1')
    assert cur.execute.call_args[0][1] == {'status': 'read', 'row_id': 'm1'}
    assert message.status == 'read'


def test_new_message_count_filters_on_status():
    cur, cursor_patch = _cursor({'count': 4})
    with cursor_patch:
        assert contact.repository.new_message_count() == 4
    assert cur.execute.call_args[0][1] == {'status': 'new'}
