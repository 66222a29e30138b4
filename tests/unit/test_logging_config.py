"""
Unit tests for folio/logging_config.py.

configure_logging: handler setup, idempotency, level selection.
log_call: CALL / OK / FAIL lines, pass-through of results and exceptions.
"""

import logging
import logging.handlers
import os
from unittest.mock import MagicMock, patch

import pytest

from folio.errors import ConflictError
from folio.logging_config import configure_logging, log_call


def _reset_folio_logger():
    logger = logging.getLogger("folio")
    for h in logger.handlers[:]:
        h.close()
        logger.removeHandler(h)
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def log_dir(tmp_path):
    """Point the log file into tmp_path and leave the folio logger clean."""
    _reset_folio_logger()
    target = tmp_path / "logs"
    with patch("folio.logging_config._LOG_DIR", target), \
         patch("folio.logging_config._LOG_FILE", target / "folio.log"):
        yield target
    _reset_folio_logger()


@pytest.fixture
def folio_logger():
    mock_logger = MagicMock()
    with patch("folio.logging_config.logging") as mock_logging:
        mock_logging.getLogger.return_value = mock_logger
        yield mock_logger


# ---------------------------------------------------------------------------
# configure_logging
# ---------------------------------------------------------------------------

def test_returns_folio_logger(log_dir):
    logger = configure_logging()
    assert logger.name == "folio"


def test_creates_log_directory(log_dir):
    assert not log_dir.exists()
    configure_logging()
    assert log_dir.is_dir()


def test_single_rotating_handler_even_when_called_repeatedly(log_dir):
    configure_logging()
    configure_logging()
    handlers = logging.getLogger("folio").handlers
    assert len(handlers) == 1
    assert isinstance(handlers[0], logging.handlers.RotatingFileHandler)
    assert handlers[0].baseFilename == str(log_dir / "folio.log")


def test_module_loggers_propagate_to_folio(log_dir):
    configure_logging()
    logging.getLogger("folio.engine.repository").warning("slug taken")
    logging.getLogger("folio").handlers[0].flush()
    assert "slug taken" in (log_dir / "folio.log").read_text(encoding="utf-8")


@pytest.mark.parametrize("name,level", [
    ("DEBUG", logging.DEBUG),
    ("warning", logging.WARNING),
    ("ERROR", logging.ERROR),
    ("NOPE", logging.INFO),
])
def test_level_from_environment(log_dir, name, level):
    with patch.dict(os.environ, {"LOG_LEVEL": name}):
        configure_logging()
    assert logging.getLogger("folio").level == level


def test_level_defaults_to_info(log_dir):
    env = {k: v for k, v in os.environ.items() if k != "LOG_LEVEL"}
    with patch.dict(os.environ, env, clear=True):
        configure_logging()
    assert logging.getLogger("folio").level == logging.INFO


# ---------------------------------------------------------------------------
# log_call
# ---------------------------------------------------------------------------

def test_log_call_keeps_name_and_result(folio_logger):
    @log_call
    def restore(row_id):
        return True

    assert restore.__name__ == "restore"
    assert restore("b1") is True


def test_log_call_traces_arguments(folio_logger):
    @log_call
    def toggle_publish(row_id, published=False):
        return published

    toggle_publish("b1", published=True)
    msg = folio_logger.debug.call_args[0][0]
    assert msg.startswith("CALL toggle_publish")
    assert "'b1'" in msg
    assert "published=True" in msg


def test_log_call_ok_line_has_timing(folio_logger):
    @log_call
    def refresh():
        pass

    refresh()
    msg = folio_logger.info.call_args[0][0]
    assert msg.startswith("OK   refresh")
    assert msg.endswith("ms")


def test_log_call_logs_and_reraises_failures(folio_logger):
    @log_call
    def create(fields):
        raise ConflictError("blogs.slug already exists", field="slug")

    with pytest.raises(ConflictError, match="slug"):
        create({"slug": "a"})

    msg = folio_logger.error.call_args[0][0]
    assert "FAIL create" in msg
    assert "ConflictError: blogs.slug already exists" in msg
    folio_logger.info.assert_not_called()


def test_log_call_masks_secret_keyword_arguments(folio_logger):
    @log_call
    def sign_in(email, password=None):
        return email

    sign_in("ada@example.com", password="hunter2")
    msg = folio_logger.debug.call_args[0][0]
    assert "password=***" in msg
    assert "hunter2" not in msg


def test_log_call_cuts_long_arguments(folio_logger):
    @log_call
    def create(fields):
        return fields

    create({"content_en": "x" * 500})
    msg = folio_logger.debug.call_args[0][0]
    assert "..." in msg
    assert "x" * 200 not in msg


def test_quiet_libraries_held_at_warning(log_dir):
    with patch.dict(os.environ, {"LOG_LEVEL": "DEBUG"}):
        configure_logging()
    assert logging.getLogger("urllib3").level == logging.WARNING


def test_log_call_masks_secret_positional_arguments(folio_logger):
    @log_call
    def unsubscribe_by_token(token):
        return token

    unsubscribe_by_token("f3a9c1d2e4b5")
    msg = folio_logger.debug.call_args[0][0]
    assert msg == "CALL unsubscribe_by_token | args=(***)"


def test_log_call_masks_by_position_on_methods(folio_logger):
    class Gate:
        def __repr__(self):
            return "Gate()"

        @log_call
        def login(self, email, password):
            return email

    Gate().login("ada@example.com", "hunter2")
    msg = folio_logger.debug.call_args[0][0]
    assert "'ada@example.com'" in msg
    assert "Gate()" in msg
    assert "hunter2" not in msg
