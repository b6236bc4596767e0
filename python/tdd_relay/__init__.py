"""
TDD Relay - virtual TDD/TTY for Asterisk.

Turns a terminal into a TDD attached to one leg of an active call:
- Channel selection from the live AMI channel list
- Typed text sent as TddTx, received TddRxMsg text displayed in real time
- Escape commands (dial, greeting, hangup, clear) and DTMF passthrough
- Optional live transcript mirror and Prometheus metrics

The target channel should be the non-TTY side of the call, i.e. the channel
with which the TTY user is currently bridged. Requires app_tdd on Asterisk and
an AMI user with call read/write permission.

Usage:
    python -m tdd_relay -u <ami user> [-c <channel>]

Environment Variables:
    TDD_RELAY_AMI_HOST - AMI host (default: 127.0.0.1)
    TDD_RELAY_AMI_USERNAME / TDD_RELAY_AMI_PASSWORD - AMI credentials
    TDD_RELAY_WS_URL - Transcript mirror endpoint
    TDD_RELAY_LOG_LEVEL - Log level (default: WARNING)
"""

__version__ = "1.0.0"

from .config import RelayConfig, get_config
from .core import RelayEngine, Session

__all__ = [
    "RelayConfig",
    "get_config",
    "RelayEngine",
    "Session",
]
