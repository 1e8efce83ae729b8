"""
Provider Template Model
Common shape every resolution source normalizes its data into
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

SOURCE_STRUCTURED = "structured"
SOURCE_AUTOCONFIG = "autoconfig"
SOURCE_PRESET = "preset"
SOURCE_FALLBACK = "fallback"

# Logged when a source wins; the console formatter highlights these
SOURCE_LOG_MESSAGES = {
    SOURCE_STRUCTURED: "Using structured template",
    SOURCE_AUTOCONFIG: "Using autoconfig document",
    SOURCE_PRESET: "Using preset template",
    SOURCE_FALLBACK: "Using fallback template",
}

USERNAME_FORMAT_EMAIL = "email"
USERNAME_FORMAT_LOCAL_PART = "email-without-domain"


@dataclass
class ServerTemplate:
    """One protocol's server entry; ``host`` may still contain placeholders"""
    host: Optional[str] = None
    port: Any = None
    security: Optional[str] = None
    username_format: Optional[str] = USERNAME_FORMAT_EMAIL
    allow_insecure_ssl: bool = False


@dataclass
class ProviderTemplate:
    """
    Provider settings selected by one resolution source.

    ``infer_port_security`` is set for preset and fallback templates, whose
    port or security may be missing and are completed from well-known values.
    """
    source: str
    imap: ServerTemplate = field(default_factory=ServerTemplate)
    smtp: ServerTemplate = field(default_factory=ServerTemplate)
    container_folder: Optional[str] = ""
    infer_port_security: bool = False
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)
