"""Asterisk Manager Interface client."""
from .errors import AMIError, AMIConnectionError, AMILoginError, AMIProtocolError
from .protocol import AMIMessage, AMIResponse, AMIListResponse, MessageParser, build_action
from .client import AMIClient

__all__ = [
    "AMIError",
    "AMIConnectionError",
    "AMILoginError",
    "AMIProtocolError",
    "AMIMessage",
    "AMIResponse",
    "AMIListResponse",
    "MessageParser",
    "build_action",
    "AMIClient",
]
