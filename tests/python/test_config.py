"""Tests for configuration module."""

import logging
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../../python'))

from tdd_relay.config import RelayConfig, get_config, reset_config
from tdd_relay.config import find_manager_secret, autodetect_ami_secret
from tdd_relay.config import setup_logging, get_logger


class TestRelayConfig:
    """Test RelayConfig class."""

    def setup_method(self):
        """Reset config before each test."""
        reset_config()
        for key in list(os.environ.keys()):
            if key.startswith('TDD_RELAY_') and key != 'TDD_RELAY_LOG_LEVEL':
                del os.environ[key]

    def test_default_values(self):
        """Test default configuration values."""
        config = RelayConfig()

        assert config.ami_host == "127.0.0.1"
        assert config.ami_port == 5038
        assert config.channel == ""
        assert config.always_refresh is False
        assert config.greeting == "HELLO GA"
        assert config.rx_options == "b(1)s"
        assert config.dtmf_interval == pytest.approx(0.1)
        assert config.select_poll_sec == 1.0
        assert config.ws_urls == []
        assert config.metrics_port == 0

    def test_env_var_override(self):
        """Test environment variable overrides."""
        os.environ['TDD_RELAY_AMI_HOST'] = '10.0.0.5'
        os.environ['TDD_RELAY_AMI_PORT'] = '5039'
        os.environ['TDD_RELAY_ALWAYS_REFRESH'] = 'true'
        os.environ['TDD_RELAY_CHANNEL'] = 'SIP/100-1'

        config = RelayConfig()

        assert config.ami_host == '10.0.0.5'
        assert config.ami_port == 5039
        assert config.always_refresh is True
        assert config.channel == 'SIP/100-1'
        assert config.is_local is False

    def test_ws_urls_from_env(self):
        """Test mirror URL collection from env vars."""
        os.environ['TDD_RELAY_WS_URL'] = 'wss://main.example.com'
        os.environ['TDD_RELAY_WS_URL_1'] = 'wss://backup1.example.com'

        config = RelayConfig()

        assert config.ws_urls == ['wss://main.example.com', 'wss://backup1.example.com']

    def test_invalid_poll_interval_rejected(self):
        os.environ['TDD_RELAY_SELECT_POLL_SEC'] = '0'

        with pytest.raises(ValueError):
            RelayConfig()

    @pytest.mark.parametrize("host", ["127.0.0.1", "localhost", "::1"])
    def test_local_hosts(self, host):
        assert RelayConfig(ami_host=host).is_local is True

    def test_singleton_get_config(self):
        """Test singleton pattern of get_config."""
        config1 = get_config()
        config2 = get_config()

        assert config1 is config2

    def test_reset_config(self):
        """Test config reset."""
        config1 = get_config()
        reset_config()
        config2 = get_config()

        assert config1 is not config2


class TestLogging:
    """Test logging setup."""

    def test_setup_logging_writes_to_stderr(self, tmp_path):
        log_file = tmp_path / "relay.log"
        logger = setup_logging("ERROR", str(log_file), name="tdd_relay_test")

        logger.debug("action sent")
        for handler in logger.handlers:
            handler.flush()

        assert logger.propagate is False
        assert logger.handlers[0].level == logging.ERROR
        assert "action sent" in log_file.read_text()
        for handler in logger.handlers:
            handler.close()
        logger.handlers.clear()

    def test_get_logger_prefixes_name(self):
        assert get_logger("selector").name == "tdd_relay.selector"
        assert get_logger("tdd_relay.ami").name == "tdd_relay.ami"


MANAGER_CONF = """\
[general]
enabled = yes
port = 5038

; operator accounts
[relay]
secret = s3cret ; trailing comment
read = call,system
write = call,originate

[other](some-template)
secret => another\\;one
"""


class TestManagerSecret:
    """Test manager.conf secret lookup."""

    def test_finds_secret_for_user(self):
        assert find_manager_secret(MANAGER_CONF, "relay") == "s3cret"

    def test_template_section_and_escaped_semicolon(self):
        assert find_manager_secret(MANAGER_CONF, "other") == "another;one"

    def test_unknown_user(self):
        assert find_manager_secret(MANAGER_CONF, "nobody") is None

    def test_section_without_secret(self):
        assert find_manager_secret(MANAGER_CONF, "general") is None

    def test_autodetect_reads_file(self, tmp_path):
        conf = tmp_path / "manager.conf"
        conf.write_text(MANAGER_CONF)

        assert autodetect_ami_secret("relay", str(conf)) == "s3cret"

    def test_autodetect_missing_file(self, tmp_path):
        assert autodetect_ami_secret("relay", str(tmp_path / "missing.conf")) is None


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
