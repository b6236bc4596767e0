"""
Relay configuration with environment variable support.

Environment Variables:
    TDD_RELAY_AMI_HOST - AMI host (default: 127.0.0.1)
    TDD_RELAY_AMI_PORT - AMI TCP port (default: 5038)
    TDD_RELAY_AMI_USERNAME - AMI username
    TDD_RELAY_AMI_PASSWORD - AMI secret (autodetected for local hosts)
    TDD_RELAY_CHANNEL - Target channel, skips the channel selector
    TDD_RELAY_ALWAYS_REFRESH - Refresh the channel list every poll (true/false)
    TDD_RELAY_WS_URL, TDD_RELAY_WS_URL_1... - Transcript mirror endpoints
    TDD_RELAY_METRICS_PORT - Prometheus exporter port (0 disables)
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

LOCAL_HOSTS = ("127.0.0.1", "localhost", "::1")


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _get_ws_urls_from_env() -> List[str]:
    """Collect transcript mirror URLs from environment variables."""
    urls = []

    main_url = os.getenv("TDD_RELAY_WS_URL")
    if main_url:
        urls.append(main_url)

    i = 1
    while True:
        url = os.getenv(f"TDD_RELAY_WS_URL_{i}")
        if not url:
            break
        urls.append(url)
        i += 1

    return urls


@dataclass
class RelayConfig:
    """Relay configuration."""

    # AMI connection
    ami_host: str = field(
        default_factory=lambda: os.getenv("TDD_RELAY_AMI_HOST", "127.0.0.1")
    )
    ami_port: int = field(
        default_factory=lambda: int(os.getenv("TDD_RELAY_AMI_PORT", "5038"))
    )
    ami_username: str = field(
        default_factory=lambda: os.getenv("TDD_RELAY_AMI_USERNAME", "")
    )
    ami_password: str = field(
        default_factory=lambda: os.getenv("TDD_RELAY_AMI_PASSWORD", "")
    )
    connect_timeout: float = field(
        default_factory=lambda: float(os.getenv("TDD_RELAY_CONNECT_TIMEOUT", "10.0"))
    )
    action_timeout: float = field(
        default_factory=lambda: float(os.getenv("TDD_RELAY_ACTION_TIMEOUT", "10.0"))
    )
    event_queue_maxsize: int = field(
        default_factory=lambda: int(os.getenv("TDD_RELAY_EVENT_QUEUE_MAXSIZE", "1000"))
    )
    manager_conf_path: str = field(
        default_factory=lambda: os.getenv(
            "TDD_RELAY_MANAGER_CONF", "/etc/asterisk/manager.conf"
        )
    )

    # Relay behaviour
    channel: str = field(default_factory=lambda: os.getenv("TDD_RELAY_CHANNEL", ""))
    always_refresh: bool = field(
        default_factory=lambda: _env_bool("TDD_RELAY_ALWAYS_REFRESH")
    )
    greeting: str = field(
        default_factory=lambda: os.getenv("TDD_RELAY_GREETING", "HELLO GA")
    )
    rx_options: str = field(
        default_factory=lambda: os.getenv("TDD_RELAY_RX_OPTIONS", "b(1)s")
    )
    dtmf_interval_ms: float = field(
        default_factory=lambda: float(os.getenv("TDD_RELAY_DTMF_INTERVAL_MS", "100"))
    )
    select_poll_sec: float = field(
        default_factory=lambda: float(os.getenv("TDD_RELAY_SELECT_POLL_SEC", "1.0"))
    )

    # Transcript mirror
    ws_urls: List[str] = field(default_factory=_get_ws_urls_from_env)
    ws_queue_maxsize: int = field(
        default_factory=lambda: int(os.getenv("TDD_RELAY_WS_QUEUE_MAXSIZE", "1000"))
    )
    ws_reconnect_interval: float = field(
        default_factory=lambda: float(os.getenv("TDD_RELAY_WS_RECONNECT_INTERVAL", "5.0"))
    )

    # Observability
    metrics_port: int = field(
        default_factory=lambda: int(os.getenv("TDD_RELAY_METRICS_PORT", "0"))
    )
    log_level: str = field(
        default_factory=lambda: os.getenv("TDD_RELAY_LOG_LEVEL", "WARNING").upper()
    )
    log_file: Optional[str] = field(
        default_factory=lambda: os.getenv("TDD_RELAY_LOG_FILE") or None
    )

    def __post_init__(self):
        if self.select_poll_sec <= 0:
            raise ValueError("select_poll_sec must be positive")
        if self.dtmf_interval_ms < 0:
            raise ValueError("dtmf_interval_ms must not be negative")

    @property
    def is_local(self) -> bool:
        """True when the AMI host is this machine."""
        return self.ami_host in LOCAL_HOSTS

    @property
    def dtmf_interval(self) -> float:
        """Pause between dialed digits, in seconds."""
        return self.dtmf_interval_ms / 1000


# Singleton config instance
_config: Optional[RelayConfig] = None


def get_config() -> RelayConfig:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = RelayConfig()
    return _config


def reset_config():
    """Reset the global config (useful for testing)."""
    global _config
    _config = None
