"""
TDD text codec for AMI transport.

AMI treats whitespace in header values as insignificant, so spaces travel as
'_' and line breaks as the two-character marker '\\n'.
"""

SPACE_PLACEHOLDER = "_"
NEWLINE_MARKER = "\\n"

# Touch-tone eligible characters (0-9, A-D, * and #)
DTMF_DIGITS = frozenset("0123456789ABCD*#")


def is_dtmf(ch: str) -> bool:
    """Check if a single character can be sent as a DTMF digit."""
    return len(ch) == 1 and ch in DTMF_DIGITS


def encode_outbound(text: str) -> str:
    """Prepare operator text for a TddTx Message header."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return text.replace(" ", SPACE_PLACEHOLDER).replace("\n", NEWLINE_MARKER)


def decode_inbound(message: str) -> str:
    """Turn a TddRxMsg Message header back into display text."""
    return message.replace(NEWLINE_MARKER, "\n").replace(SPACE_PLACEHOLDER, " ")
