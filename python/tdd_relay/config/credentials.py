"""
AMI secret autodetection from the local Asterisk manager.conf.

Only used when a username is given without a password and the AMI host is
local; the process then needs read access to the Asterisk configuration.
"""

import logging
import re
from typing import Optional

logger = logging.getLogger("tdd_relay.credentials")

# [name] or [name](template,...)
_SECTION_RE = re.compile(r"^\[([^\]]+)\]")
# secret = value, secret => value
_SECRET_RE = re.compile(r"^secret\s*=>?\s*(.*)$", re.IGNORECASE)


def _strip_comment(line: str) -> str:
    """Drop a ';' comment, honouring the '\\;' escape."""
    out = []
    i = 0
    while i < len(line):
        ch = line[i]
        if ch == "\\" and i + 1 < len(line) and line[i + 1] == ";":
            out.append(";")
            i += 2
            continue
        if ch == ";":
            break
        out.append(ch)
        i += 1
    return "".join(out).strip()


def find_manager_secret(text: str, username: str) -> Optional[str]:
    """
    Return the secret of the [username] section of manager.conf text.

    Args:
        text: Contents of manager.conf
        username: AMI user (section name)

    Returns:
        The secret, or None if the section or its secret is missing.
    """
    in_section = False
    for raw in text.splitlines():
        line = _strip_comment(raw)
        if not line:
            continue

        match = _SECTION_RE.match(line)
        if match:
            in_section = match.group(1).strip() == username
            continue

        if in_section:
            secret = _SECRET_RE.match(line)
            if secret:
                return secret.group(1).strip()

    return None


def autodetect_ami_secret(username: str, path: str = "/etc/asterisk/manager.conf") -> Optional[str]:
    """Read the AMI secret for username from a manager.conf file."""
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            text = f.read()
    except OSError as e:
        logger.debug(f"Cannot read {path}: {e}")
        return None

    secret = find_manager_secret(text, username)
    if secret is None:
        logger.debug(f"No secret for user '{username}' in {path}")
    return secret
