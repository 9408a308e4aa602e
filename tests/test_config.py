"""
Tests for configuration and structured logging
"""

import json
import logging

import pytest

from vault_ledger import config as config_module
from vault_ledger.config import VaultConfig, get_config, reload_config
from vault_ledger.logging_config import JSONFormatter, TEXT_FORMAT, setup_logging, log_action


class TestVaultConfig:
    """Test environment-based configuration"""

    def test_defaults(self, monkeypatch):
        """Test default values"""
        monkeypatch.delenv("VAULT_WITHDRAW_LIMIT", raising=False)
        monkeypatch.delenv("VAULT_BANK_CAP", raising=False)

        config = VaultConfig(_env_file=None)

        assert config.withdraw_limit == 1000
        assert config.bank_cap == 1_000_000
        assert config.payout_url == ""
        assert config.enable_audit_logging is True

    def test_environment_overrides(self, monkeypatch):
        """Test VAULT_ prefixed environment variables"""
        monkeypatch.setenv("VAULT_WITHDRAW_LIMIT", "25")
        monkeypatch.setenv("VAULT_BANK_CAP", "500")
        monkeypatch.setenv("VAULT_PAYOUT_URL", "http://payouts.local:9000")

        config = VaultConfig(_env_file=None)

        assert config.withdraw_limit == 25
        assert config.bank_cap == 500
        assert config.payout_url == "http://payouts.local:9000"

    def test_reload_config(self, monkeypatch):
        """Test reloading the global configuration"""
        original = config_module.config
        monkeypatch.setenv("VAULT_BANK_CAP", "777")
        try:
            reloaded = reload_config()
            assert reloaded.bank_cap == 777
            assert get_config() is reloaded
        finally:
            config_module.config = original


class TestStructuredLogging:
    """Test JSON log formatting"""

    def test_json_formatter_includes_structured_fields(self):
        """Test that custom fields end up in the JSON document"""
        record = logging.LogRecord("vault.ledger", logging.INFO, __file__, 1,
                                   "Deposit accepted", (), None)
        record.owner = "alice"
        record.action = "deposit"
        record.extra = {"amount": 10}

        data = json.loads(JSONFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["logger"] == "vault.ledger"
        assert data["message"] == "Deposit accepted"
        assert data["owner"] == "alice"
        assert data["extra"] == {"amount": 10}
        assert "correlation_id" not in data

    def test_setup_logging_replaces_handlers(self):
        """Test that repeated setup does not stack handlers"""
        logger = setup_logging("DEBUG", logger_name="vault.test")
        logger = setup_logging("WARNING", logger_name="vault.test")

        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)

    def test_log_action_attaches_fields(self, caplog):
        """Test that log_action passes structured data on the record"""
        logger = logging.getLogger("logtest.actions")

        with caplog.at_level(logging.INFO, logger="logtest.actions"):
            log_action(logger, "info", "Withdrawal paid out", owner="bob",
                       action="withdraw", extra={"amount": 5})

        record = caplog.records[-1]
        assert record.owner == "bob"
        assert record.action == "withdraw"
        assert record.extra == {"amount": 5}

    def test_log_action_respects_level(self, caplog):
        """Test that filtered levels are not emitted"""
        logger = logging.getLogger("logtest.quiet")

        with caplog.at_level(logging.WARNING, logger="logtest.quiet"):
            log_action(logger, "info", "not shown")

        assert caplog.records == []

    def test_setup_logging_writes_json_lines_to_file(self, tmp_path):
        """Test the file handler and the record-derived fields"""
        log_file = tmp_path / "vault.log"
        logger = setup_logging("INFO", logger_name="vault.filetest", log_file=str(log_file))

        log_action(logger, "warning", "withdraw rejected", owner=7, action="withdraw")
        logger.debug("dropped below INFO")
        for handler in logger.handlers:
            handler.close()

        lines = log_file.read_text().splitlines()
        assert len(lines) == 1
        data = json.loads(lines[0])
        assert data["level"] == "WARNING"
        assert data["logger"] == "vault.filetest"
        assert data["owner"] == "7"
        assert data["action"] == "withdraw"
        assert data["timestamp"].endswith("+00:00")
        assert "extra" not in data

    def test_text_format(self):
        """Test the plain-text alternative"""
        logger = setup_logging("INFO", logger_name="vault.texttest", log_format="text")

        formatter = logger.handlers[0].formatter
        assert not isinstance(formatter, JSONFormatter)
        assert formatter._fmt == TEXT_FORMAT
