"""
Account Data Model
Contains the Account dataclass and the connection settings vocabulary
"""

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

SECURITY_NONE = "none"
SECURITY_STARTTLS = "STARTTLS"
SECURITY_SSL = "SSL / TLS"

SECURITY_MODES = (SECURITY_NONE, SECURITY_STARTTLS, SECURITY_SSL)

# Well-known ports per protocol and security tier
IMAP_PORT_SSL = 993
IMAP_PORT_PLAIN = 143
SMTP_PORT_SSL = 465
SMTP_PORT_STARTTLS = 587
SMTP_PORT_PLAIN = 25

CONNECTION_SETTINGS_KEYS = (
    "imap_host",
    "imap_port",
    "imap_username",
    "imap_password",
    "imap_security",
    "imap_allow_insecure_ssl",
    "smtp_host",
    "smtp_port",
    "smtp_username",
    "smtp_password",
    "smtp_security",
    "smtp_allow_insecure_ssl",
    "container_folder",
)

# Fields that decide which mailbox the account points at
IDENTITY_SETTINGS_KEYS = ("imap_username", "imap_host", "smtp_username", "smtp_host")


@dataclass
class Account:
    """
    A mail account being set up.

    ``settings`` is a flat mapping of connection settings (see
    CONNECTION_SETTINGS_KEYS) plus provider specific keys such as
    ``refresh_client_id`` and ``refresh_token`` for OAuth accounts.
    """
    email_address: str
    provider: str = "imap"
    settings: Dict[str, Any] = field(default_factory=dict)
    name: str = ""
    label: str = ""
    id: Optional[str] = None
    authed_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.label:
            self.label = self.email_address

    def clone(self) -> "Account":
        """Deep copy, so callers can populate settings without touching the original"""
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "label": self.label,
            "emailAddress": self.email_address,
            "provider": self.provider,
            "settings": dict(self.settings),
            "authedAt": self.authed_at.isoformat() if self.authed_at else None,
        }
