"""Unit tests for logging setup."""

import logging
import warnings
from datetime import date
from decimal import Decimal

import pytest

from rentledger.services.aggregation_service import aggregate
from rentledger.services.logging import get_log_level, setup_server_logging
from rentledger.services.records import PaymentRecord
from rentledger.services.report_filter import ScopeFilter


@pytest.fixture
def restore_root_logger():
    """Drop the handlers added by setup_server_logging after the test."""
    root = logging.getLogger()
    level = root.level
    yield root
    for handler in list(root.handlers):
        if isinstance(handler, logging.FileHandler) or type(handler) is logging.StreamHandler:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


class TestLogging:
    """Test log level resolution and handler setup."""

    def test_get_log_level_explicit(self):
        assert get_log_level("debug") == logging.DEBUG
        assert get_log_level("WARNING") == logging.WARNING

    def test_get_log_level_env(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        assert get_log_level() == logging.ERROR

    def test_get_log_level_unknown_defaults_to_info(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        assert get_log_level("verbose") == logging.INFO
        assert get_log_level() == logging.INFO

    def test_setup_writes_to_file(self, tmp_path, restore_root_logger):
        log_file = tmp_path / "nested" / "server.log"

        setup_server_logging(str(log_file), level_name="INFO")
        logging.getLogger("rentledger.test").info("allocation done")
        for handler in restore_root_logger.handlers:
            handler.flush()

        assert log_file.exists()
        assert "allocation done" in log_file.read_text()
        assert restore_root_logger.level == logging.INFO
        assert len(restore_root_logger.handlers) == 2

    def test_unassigned_property_logged_once(self, tmp_path, restore_root_logger):
        """A property without owners produces a single log line, not one per channel."""
        log_file = tmp_path / "server.log"
        setup_server_logging(str(log_file), level_name="INFO")
        payment = PaymentRecord(
            id=1,
            tenant_name="María Rojas",
            property_id=7,
            property_name="Local Centro",
            date=date(2024, 1, 10),
            amount=Decimal("250.00"),
            currency="USD",
            status="approved",
            concept="Canon enero 2024",
        )

        with warnings.catch_warnings():
            warnings.simplefilter("always")
            aggregate([payment], [], {}, ScopeFilter(year=2024))
        for handler in restore_root_logger.handlers:
            handler.flush()

        assert log_file.read_text(encoding="utf-8").count("no registered owners") == 1
