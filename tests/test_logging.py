import logging
from unittest.mock import MagicMock, patch

import pytest

from modheader_proxy.core.logging import (
    DEFAULT_LOG_LEVEL,
    NOISY_LIBRARIES,
    _get_loki_handler,
    log_header_mutations,
    setup_logging,
)
from modheader_proxy.rules.models import MutationSet


# Ensure clean logging state between tests
@pytest.fixture(autouse=True)
def reset_logging():
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    root.handlers.clear()

    yield

    root.handlers.clear()
    root.handlers.extend(original_handlers)
    root.setLevel(original_level)


@patch("modheader_proxy.core.logging.Settings")
def test_setup_logging_default_level(MockSettings):
    """Test setup_logging configures logging with default level."""
    mock_settings_instance = MockSettings.return_value
    mock_settings_instance.get_log_level.return_value = DEFAULT_LOG_LEVEL
    mock_settings_instance.get_loki_url.return_value = None

    setup_logging()

    root_logger = logging.getLogger()
    assert root_logger.level == logging.INFO
    assert len(root_logger.handlers) == 1
    assert isinstance(root_logger.handlers[0], logging.StreamHandler)

    for lib_name in NOISY_LIBRARIES:
        assert logging.getLogger(lib_name).level == logging.WARNING


@patch("modheader_proxy.core.logging.Settings")
def test_setup_logging_specific_level(MockSettings):
    """Test setup_logging uses the level provided by settings."""
    mock_settings_instance = MockSettings.return_value
    mock_settings_instance.get_log_level.return_value = "DEBUG"
    mock_settings_instance.get_loki_url.return_value = None

    setup_logging()

    assert logging.getLogger().level == logging.DEBUG


@patch("modheader_proxy.core.logging.Settings")
def test_setup_logging_invalid_level(MockSettings, capsys):
    """Test setup_logging defaults to INFO and warns on invalid level."""
    invalid_level = "CHATTY"
    mock_settings_instance = MockSettings.return_value
    mock_settings_instance.get_log_level.return_value = invalid_level
    mock_settings_instance.get_loki_url.return_value = None

    setup_logging()

    captured = capsys.readouterr()
    assert f"WARNING: Invalid LOG_LEVEL '{invalid_level}'" in captured.err
    assert logging.getLogger().level == logging.INFO


@patch("modheader_proxy.core.logging.Settings")
def test_setup_logging_with_loki(MockSettings):
    """Test setup_logging adds the Loki handler when LOKI_URL is set."""
    mock_settings_instance = MockSettings.return_value
    mock_settings_instance.get_log_level.return_value = DEFAULT_LOG_LEVEL
    mock_settings_instance.get_loki_url.return_value = "http://localhost:3100"

    mock_loki_handler = MagicMock()
    mock_loki_handler.level = logging.INFO
    with patch("modheader_proxy.core.logging._get_loki_handler", return_value=mock_loki_handler) as mock_factory:
        setup_logging()

    mock_factory.assert_called_once_with("http://localhost:3100")
    assert mock_loki_handler in logging.getLogger().handlers


# --- Loki handler ---


def test_get_loki_handler_success():
    """Test _get_loki_handler creates a handler pointed at the push endpoint."""
    mock_handler = MagicMock()
    with patch("logging_loki.LokiHandler", return_value=mock_handler) as MockLokiHandler:
        handler = _get_loki_handler("http://localhost:3100", "test_app")

    assert handler == mock_handler
    MockLokiHandler.assert_called_once_with(
        url="http://localhost:3100/loki/api/v1/push",
        tags={"application": "test_app", "environment": "development"},
        version="1",
    )
    assert mock_handler.setFormatter.call_count == 1


@pytest.mark.parametrize("loki_url", ["localhost:3100", ""])
def test_get_loki_handler_invalid_url(loki_url):
    """Test _get_loki_handler returns None for URLs without scheme or host."""
    with patch("logging_loki.LokiHandler") as MockLokiHandler:
        assert _get_loki_handler(loki_url) is None
    MockLokiHandler.assert_not_called()


def test_get_loki_handler_exception():
    """Test _get_loki_handler returns None on unexpected exceptions."""
    with patch("logging_loki.LokiHandler", side_effect=Exception("Test error")):
        assert _get_loki_handler("http://localhost:3100") is None


# --- Header mutation log lines ---


def test_log_header_mutations_lists_names(caplog):
    mutation_set = MutationSet(
        to_add={"Authorization": "Bearer secret"},
        to_modify={"User-Agent": "Bot/1.0"},
        to_remove=("Cookie",),
    )

    with caplog.at_level(logging.INFO, logger="modheader_proxy.proxy.mutations"):
        log_header_mutations("Request", "GET", "/v1/items", mutation_set)

    assert len(caplog.records) == 1
    record = caplog.records[0]
    assert record.getMessage() == (
        "[Request] GET /v1/items - Modified headers: "
        "added=['Authorization'] modified=['User-Agent'] removed=['Cookie']"
    )
    assert record.stage == "Request"
    assert record.removed == ["Cookie"]
    # values are never logged
    assert "Bearer secret" not in caplog.text
