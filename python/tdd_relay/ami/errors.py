"""
AMI exception hierarchy.

A refused action is not an exception: it comes back as an AMIResponse with
success=False. Exceptions are reserved for the transport itself.
"""

from typing import Optional


class AMIError(Exception):
    """Base exception for all AMI errors."""

    default_message: str = "AMI error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class AMIConnectionError(AMIError):
    """Connection could not be made or was lost."""
    default_message = "AMI connection lost"


class AMILoginError(AMIError):
    """Authentication was refused."""
    default_message = "AMI login failed"


class AMIProtocolError(AMIError):
    """Malformed frame, or a value that cannot be framed."""
    default_message = "AMI protocol error"
