"""
Mail Account Autoconfiguration
Wires configuration, logging, provider resolution, OAuth and validation together
"""

import logging
from typing import Any, Dict, Optional

from .modules.account import Account
from .modules.connection_validator import AccountValidator, MailConnectionValidator
from .modules.finalizer import finalize_and_validate_account
from .modules.oauth import OAuthAccountBuilder, build_gmail_auth_url, build_o365_auth_url
from .modules.settings_synthesizer import (
    AccountSettingsResolver,
    expand_account_with_common_settings,
)
from .utils.config import Config
from .utils.logging_formatter import setup_logging


class AccountSetup:
    """Account setup service: one instance per process"""

    def __init__(self, config_file: str = ".env",
                 validator: Optional[AccountValidator] = None,
                 configure_logging: bool = True):
        """
        Args:
            config_file: Path to the .env file
            validator: Connection tester (defaults to MailConnectionValidator)
            configure_logging: Install the console/file handlers from config
        """
        self.config = Config(config_file)
        self.config.validate()

        if configure_logging:
            setup_logging(
                self.config.system.log_level,
                self.config.system.log_file,
                self.config.system.log_format,
            )

        self.logger = logging.getLogger("AccountSetup")

        self.resolver = AccountSettingsResolver.from_config(self.config)
        self.validator = validator or MailConnectionValidator(
            timeout=self.config.system.validation_timeout
        )
        self.oauth_builder = OAuthAccountBuilder(
            self.config.oauth, self.resolver, self.validator
        )

    def resolve(self, email_address: str, provider: str = "imap",
                settings: Optional[Dict[str, Any]] = None) -> Account:
        """Resolve connection settings for an address without testing them"""
        account = Account(
            email_address=email_address,
            provider=provider,
            settings=dict(settings or {}),
        )
        return expand_account_with_common_settings(account, self.resolver)

    def validate(self, account: Account) -> Account:
        """Finalize an account and run the live connection test"""
        return finalize_and_validate_account(account, self.validator)

    def auth_url(self, provider: str) -> str:
        """Authorization URL for "gmail" or a Microsoft provider"""
        if provider == "gmail":
            self.config.require_gmail_client()
            return build_gmail_auth_url(self.config.oauth)
        self.config.require_o365_client()
        return build_o365_auth_url(self.config.oauth)

    def sign_in(self, provider: str, code: str) -> Account:
        """Build a validated account from an OAuth authorization code"""
        if provider == "gmail":
            self.config.require_gmail_client()
            return self.oauth_builder.build_gmail_account(code)
        self.config.require_o365_client()
        return self.oauth_builder.build_microsoft_account(code, provider)
