"""
Configuration Management Module
Handles loading and validation of environment variables and settings
"""

import base64
import hashlib
import os
import secrets
from typing import Optional
from dataclasses import dataclass, field
from dotenv import load_dotenv


# Container folder value that means "no deployment-wide override"
CONTAINER_FOLDER_SENTINEL = "Mailspring"


class ConfigurationError(ValueError):
    """Raised when the loaded configuration cannot be used"""


@dataclass
class OAuthConfig:
    """Configuration for the Gmail and Microsoft OAuth flows"""
    gmail_client_id: str
    gmail_client_secret: str
    o365_client_id: str
    local_server_port: int
    code_verifier: str
    gmail_scopes: list = field(default_factory=list)
    o365_scopes: list = field(default_factory=list)

    @property
    def code_challenge(self) -> str:
        """S256 PKCE challenge derived from the code verifier"""
        digest = hashlib.sha256(self.code_verifier.encode("ascii")).digest()
        return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


@dataclass
class ResolverConfig:
    """Configuration for provider resolution"""
    container_folder_default: str
    autoconfig_timeout: float
    dns_timeout: float
    structured_providers_file: Optional[str]
    preset_providers_file: Optional[str]


@dataclass
class SystemConfig:
    """Configuration for system settings"""
    log_level: str
    log_file: Optional[str]
    log_format: str
    validation_timeout: int


GMAIL_SCOPES = [
    "https://mail.google.com/",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/contacts",
    "https://www.googleapis.com/auth/calendar",
]

O365_SCOPES = [
    "user.read",
    "offline_access",
    "Contacts.ReadWrite",
    "Contacts.ReadWrite.Shared",
    "Calendars.ReadWrite",
    "Calendars.ReadWrite.Shared",
    "https://outlook.office.com/IMAP.AccessAsUser.All",
    "https://outlook.office.com/SMTP.Send",
]


class Config:
    """Main configuration class"""

    def __init__(self, env_file: str = ".env"):
        """
        Initialize configuration from environment file

        Args:
            env_file: Path to environment file (default: .env)
        """
        load_dotenv(env_file)

        self.oauth = self._load_oauth_config()
        self.resolver = self._load_resolver_config()
        self.system = self._load_system_config()

    def _load_oauth_config(self) -> OAuthConfig:
        """Load OAuth client configuration"""
        return OAuthConfig(
            gmail_client_id=os.getenv("GMAIL_CLIENT_ID", ""),
            gmail_client_secret=os.getenv("GMAIL_CLIENT_SECRET", ""),
            o365_client_id=os.getenv("O365_CLIENT_ID", ""),
            local_server_port=self._get_int("OAUTH_LOCAL_SERVER_PORT", 12141),
            # Must be the same for the auth URL and the code exchange
            code_verifier=os.getenv("OAUTH_CODE_VERIFIER") or secrets.token_urlsafe(64),
            gmail_scopes=list(GMAIL_SCOPES),
            o365_scopes=list(O365_SCOPES),
        )

    def _load_resolver_config(self) -> ResolverConfig:
        """Load provider resolution configuration"""
        return ResolverConfig(
            container_folder_default=os.getenv(
                "CONTAINER_FOLDER_DEFAULT", CONTAINER_FOLDER_SENTINEL
            ),
            autoconfig_timeout=self._get_float("AUTOCONFIG_TIMEOUT", 10.0),
            dns_timeout=self._get_float("DNS_TIMEOUT", 10.0),
            structured_providers_file=os.getenv("STRUCTURED_PROVIDERS_FILE") or None,
            preset_providers_file=os.getenv("PRESET_PROVIDERS_FILE") or None,
        )

    def _load_system_config(self) -> SystemConfig:
        """Load system configuration"""
        return SystemConfig(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_file=os.getenv("LOG_FILE") or None,
            log_format=os.getenv("LOG_FORMAT", "text").lower(),
            validation_timeout=self._get_int("VALIDATION_TIMEOUT", 30),
        )

    @staticmethod
    def _get_int(key: str, default: int) -> int:
        """Read an integer environment variable"""
        raw = os.getenv(key)
        if raw is None or raw.strip() == "":
            return default
        try:
            return int(raw)
        except ValueError:
            raise ConfigurationError(f"{key} must be an integer, got {raw!r}")

    @staticmethod
    def _get_float(key: str, default: float) -> float:
        """Read a float environment variable"""
        raw = os.getenv(key)
        if raw is None or raw.strip() == "":
            return default
        try:
            return float(raw)
        except ValueError:
            raise ConfigurationError(f"{key} must be a number, got {raw!r}")

    def validate(self) -> bool:
        """
        Validate configuration

        Returns:
            True if configuration is valid

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if not 0 < self.oauth.local_server_port < 65536:
            raise ConfigurationError(
                f"OAUTH_LOCAL_SERVER_PORT out of range: {self.oauth.local_server_port}"
            )

        if self.resolver.autoconfig_timeout <= 0 or self.resolver.dns_timeout <= 0:
            raise ConfigurationError("Lookup timeouts must be positive")

        if self.system.log_format not in ("text", "json"):
            raise ConfigurationError(
                f"LOG_FORMAT must be 'text' or 'json', got {self.system.log_format!r}"
            )

        for path in (self.resolver.structured_providers_file,
                     self.resolver.preset_providers_file):
            if path and not os.path.isfile(path):
                raise ConfigurationError(f"Provider table not found: {path}")

        return True

    def require_gmail_client(self) -> None:
        """Raise if the Gmail OAuth client is not configured"""
        if not self.oauth.gmail_client_id or not self.oauth.gmail_client_secret:
            raise ConfigurationError(
                "GMAIL_CLIENT_ID and GMAIL_CLIENT_SECRET are required for Gmail sign-in"
            )

    def require_o365_client(self) -> None:
        """Raise if the Microsoft OAuth client is not configured"""
        if not self.oauth.o365_client_id:
            raise ConfigurationError("O365_CLIENT_ID is required for Microsoft sign-in")
