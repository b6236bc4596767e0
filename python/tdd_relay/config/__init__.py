"""Configuration module."""
from .settings import RelayConfig, get_config, reset_config
from .logging import setup_logging, get_logger
from .credentials import autodetect_ami_secret, find_manager_secret

__all__ = [
    "RelayConfig",
    "get_config",
    "reset_config",
    "setup_logging",
    "get_logger",
    "autodetect_ami_secret",
    "find_manager_secret",
]
