"""
Account identity hashing
"""

import hashlib
import json
from typing import Any, Dict

from .account import IDENTITY_SETTINGS_KEYS


def id_for_account(email_address: str, connection_settings: Dict[str, Any]) -> str:
    """
    Derive the stable 8 character account id.

    Only the host and username fields take part, so changing ports, security
    or passwords keeps the id (and every piece of metadata keyed on it).
    The serialization matches JavaScript's ``JSON.stringify``: compact, no
    ASCII escaping, unset keys omitted; ids therefore line up with accounts
    created by the desktop client.

    Args:
        email_address: Account email address
        connection_settings: Flat connection settings mapping

    Returns:
        First 8 hex characters of the SHA-256 digest
    """
    identifying = {
        key: connection_settings.get(key)
        for key in IDENTITY_SETTINGS_KEYS
        if connection_settings.get(key) is not None
    }
    id_string = email_address + json.dumps(
        identifying, separators=(",", ":"), ensure_ascii=False
    )
    return hashlib.sha256(id_string.encode("utf-8")).hexdigest()[:8]
