"""
Shared fixtures and step definitions for BDD tests.

- context: available to all scenario files in this directory
- no_logging: autouse, prevents log file creation during tests
- alert steps: shared across all feature files
"""

import pytest
from unittest.mock import patch
from pytest_bdd import then, parsers


@pytest.fixture
def context():
    """Mutable dict shared between Given/When/Then steps within a scenario."""
    return {"alerts": []}


@pytest.fixture(autouse=True)
def no_logging():
    with patch("folio.admin.app.configure_logging"):
        yield


@then(parsers.parse('the operator sees the alert "{text}"'))
def operator_sees_alert(context, text):
    assert text in context["alerts"], f"Expected {text!r} in alerts: {context['alerts']}"


@then("no alert is shown")
def no_alert(context):
    assert context["alerts"] == []
