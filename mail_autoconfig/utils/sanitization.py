"""
Sanitization Utility Module
Provides functions to sanitize inputs for safe logging and display.
"""

import re
import unicodedata
from typing import Any, Dict

ANSI_ESCAPE_PATTERN = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')

# Settings keys whose values never appear in logs or CLI output
SECRET_SETTINGS_KEYS = ("password", "token", "secret")


def sanitize_for_logging(text: str, max_length: int = 255) -> str:
    """
    Sanitize text for safe logging to prevent Log Injection (CRLF) and terminal manipulation.

    Args:
        text: The input string to sanitize.
        max_length: Maximum allowed length for the log entry (truncates if longer).

    Returns:
        Sanitized string safe for logging.
    """
    if not text:
        return ""

    text = unicodedata.normalize('NFKC', str(text))

    # Escape line breaks so a hostile value cannot forge extra log lines
    text = text.replace('\n', '\\n').replace('\r', '\\r')

    text = ANSI_ESCAPE_PATTERN.sub('', text)

    # Remaining control characters (ASCII 0-31 except tab)
    text = "".join(ch for ch in text if ch == '\t' or ord(ch) >= 32)

    if len(text) > max_length:
        text = text[:max_length] + "..."

    return text


def redact_email(address: str) -> str:
    """
    Mask the local part of an email address for logging.

    >>> redact_email("jane.doe@example.com")
    'j***@example.com'
    """
    if not address:
        return ""

    address = sanitize_for_logging(address)
    local, sep, domain = address.rpartition("@")
    if not sep:
        return "***"
    if not local:
        return f"***@{domain}"
    return f"{local[0]}***@{domain}"


def redact_settings(settings: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of connection settings with credentials masked."""
    redacted = {}
    for key, value in settings.items():
        if value and any(secret in key for secret in SECRET_SETTINGS_KEYS):
            redacted[key] = "[REDACTED]"
        else:
            redacted[key] = value
    return redacted
