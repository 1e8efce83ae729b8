"""
Settings Synthesizer Module
Chooses a provider template for an account and turns it into concrete
connection settings

Resolution walks an ordered chain of sources and stops at the first one that
produces a template:

1. structured table (domain or MX host regex match)
2. remote autoconfig document (two well-known URLs)
3. preset table (domain, then provider hint; one-hop alias)
4. generic fallback (imap.<domain> / smtp.<domain>)

The chosen template is then expanded into defaults, and any setting already
present on the account overrides the matching default.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .account import (
    IMAP_PORT_PLAIN,
    IMAP_PORT_SSL,
    SECURITY_NONE,
    SECURITY_SSL,
    SECURITY_STARTTLS,
    SMTP_PORT_PLAIN,
    SMTP_PORT_SSL,
    SMTP_PORT_STARTTLS,
    Account,
)
from .autoconfig_fetcher import AutoconfigFetcher
from .mx_resolver import MXResolver
from .provider_tables import ProviderTables
from .provider_template import (
    SOURCE_AUTOCONFIG,
    SOURCE_FALLBACK,
    SOURCE_LOG_MESSAGES,
    SOURCE_PRESET,
    SOURCE_STRUCTURED,
    USERNAME_FORMAT_EMAIL,
    USERNAME_FORMAT_LOCAL_PART,
    ProviderTemplate,
    ServerTemplate,
)
from ..utils.config import CONTAINER_FOLDER_SENTINEL, Config
from ..utils.sanitization import redact_email
from ..utils.templating import expand_placeholders, split_address

logger = logging.getLogger(__name__)


@dataclass
class ResolutionContext:
    """Inputs shared by every source in one resolution attempt"""
    account: Account
    domain: str
    mx_records: List[str]


TemplateSource = Callable[[ResolutionContext], Optional[ProviderTemplate]]


def username_with_format(email_address: str, username_format: Optional[str]) -> Optional[str]:
    """
    Expand a username format.

    "email" gives the full address, "email-without-domain" the local part,
    anything else leaves the username unset.
    """
    if username_format == USERNAME_FORMAT_EMAIL:
        return email_address
    if username_format == USERNAME_FORMAT_LOCAL_PART:
        return split_address(email_address)[0]
    return None


def _to_port(value: Any) -> Optional[int]:
    """Numeric port, or None for missing, zero or non-numeric values"""
    if value is None or isinstance(value, bool):
        return None
    try:
        port = int(str(value).strip())
    except ValueError:
        return None
    return port or None


def infer_imap_port_security(port: Any, security: Optional[str]) -> Tuple[int, str]:
    """
    Complete a partial IMAP port/security pair from well-known values.

    Neither given: 993 with SSL / TLS. Port only: SSL / TLS on 993, otherwise
    none. Security only: 993 for SSL / TLS, otherwise 143.
    """
    port = _to_port(port)
    if not security and not port:
        return IMAP_PORT_SSL, SECURITY_SSL
    if not security:
        return port, SECURITY_SSL if port == IMAP_PORT_SSL else SECURITY_NONE
    if not port:
        return (IMAP_PORT_SSL if security == SECURITY_SSL else IMAP_PORT_PLAIN), security
    return port, security


def infer_smtp_port_security(port: Any, security: Optional[str]) -> Tuple[int, str]:
    """
    Complete a partial SMTP port/security pair from well-known values.

    Neither given: 465 with SSL / TLS. Port only: 587 is STARTTLS, 465 is
    SSL / TLS, anything else none. Security only: STARTTLS uses 587,
    SSL / TLS uses 465, anything else 25.
    """
    port = _to_port(port)
    if not security and not port:
        return SMTP_PORT_SSL, SECURITY_SSL
    if not security:
        if port == SMTP_PORT_STARTTLS:
            return port, SECURITY_STARTTLS
        return port, SECURITY_SSL if port == SMTP_PORT_SSL else SECURITY_NONE
    if not port:
        if security == SECURITY_STARTTLS:
            return SMTP_PORT_STARTTLS, security
        return (SMTP_PORT_SSL if security == SECURITY_SSL else SMTP_PORT_PLAIN), security
    return port, security


class AccountSettingsResolver:
    """
    Resolves and synthesizes connection settings for accounts.

    Tables, MX resolver and autoconfig fetcher are injected so tests can run
    the whole chain against fixture data without network access.
    """

    def __init__(
        self,
        tables: ProviderTables,
        mx_resolver: Optional[Callable[[str], List[str]]] = None,
        autoconfig_fetcher: Optional[AutoconfigFetcher] = None,
        container_folder_default: str = CONTAINER_FOLDER_SENTINEL,
    ):
        """
        Args:
            tables: Structured and preset provider tables
            mx_resolver: Callable returning MX hosts for a domain
            autoconfig_fetcher: Fetcher for remote autoconfig documents
            container_folder_default: Deployment-wide container folder; the
                "Mailspring" sentinel disables the override
        """
        self.tables = tables
        self.mx_resolver = mx_resolver or MXResolver().lookup
        self.autoconfig_fetcher = autoconfig_fetcher or AutoconfigFetcher()
        self.container_folder_default = container_folder_default
        self.sources: Sequence[Tuple[str, TemplateSource]] = (
            (SOURCE_STRUCTURED, self._structured_source),
            (SOURCE_AUTOCONFIG, self._autoconfig_source),
            (SOURCE_PRESET, self._preset_source),
        )

    @classmethod
    def from_config(cls, config: Config) -> "AccountSettingsResolver":
        """Build a resolver from loaded configuration"""
        tables = ProviderTables.load(
            config.resolver.structured_providers_file,
            config.resolver.preset_providers_file,
        )
        return cls(
            tables,
            mx_resolver=MXResolver(lifetime=config.resolver.dns_timeout).lookup,
            autoconfig_fetcher=AutoconfigFetcher(timeout=config.resolver.autoconfig_timeout),
            container_folder_default=config.resolver.container_folder_default,
        )

    def _structured_source(self, context: ResolutionContext) -> Optional[ProviderTemplate]:
        return self.tables.match_structured(context.domain, context.mx_records)

    def _autoconfig_source(self, context: ResolutionContext) -> Optional[ProviderTemplate]:
        return self.autoconfig_fetcher.resolve(context.account.email_address)

    def _preset_source(self, context: ResolutionContext) -> Optional[ProviderTemplate]:
        return self.tables.match_preset(context.domain, context.account.provider)

    def resolve_template(self, account: Account) -> ProviderTemplate:
        """
        Walk the source chain and return the first template found.

        Never raises for lookup failures; the generic fallback is returned
        when no source matches.
        """
        _, domain = split_address(account.email_address)
        context = ResolutionContext(
            account=account,
            domain=domain,
            mx_records=self.mx_resolver(domain),
        )

        for name, source in self.sources:
            template = source(context)
            if template is not None:
                break
            logger.debug(f"No {name} template for {domain}")
        else:
            template = self.tables.fallback_template(domain)

        logger.info(f"{SOURCE_LOG_MESSAGES[template.source]} for {domain}")
        if template.raw:
            logger.debug(json.dumps(template.raw, indent=2, sort_keys=True))
        return template

    def synthesize_settings(self, template: ProviderTemplate, account: Account) -> Dict[str, Any]:
        """
        Turn a template into settings and overlay the account's existing ones.

        Args:
            template: Template picked by ``resolve_template``
            account: Account whose settings take precedence

        Returns:
            New settings mapping; ``account`` is not modified
        """
        email = account.email_address
        existing = {k: v for k, v in account.settings.items() if v is not None}

        imap_port, imap_security = template.imap.port, template.imap.security
        smtp_port, smtp_security = template.smtp.port, template.smtp.security
        if template.infer_port_security:
            imap_port, imap_security = infer_imap_port_security(imap_port, imap_security)
            smtp_port, smtp_security = infer_smtp_port_security(smtp_port, smtp_security)

        defaults = {
            **self._server_defaults("imap", template.imap, email, imap_port, imap_security),
            "imap_password": existing.get("imap_password"),
            **self._server_defaults("smtp", template.smtp, email, smtp_port, smtp_security),
            "smtp_password": existing.get("smtp_password") or existing.get("imap_password"),
            "container_folder": template.container_folder,
        }

        settings = {**defaults, **existing}

        if settings.get("smtp_security") == SECURITY_NONE and "smtp_security" not in existing:
            logger.warning(
                f"Falling back to unencrypted SMTP on {settings.get('smtp_host')}:"
                f"{settings.get('smtp_port')}"
            )

        # structured and autoconfig results keep their own folder layout
        if (
            template.source in (SOURCE_PRESET, SOURCE_FALLBACK)
            and self.container_folder_default != CONTAINER_FOLDER_SENTINEL
            and settings.get("container_folder") in ("", None)
        ):
            settings["container_folder"] = self.container_folder_default

        return settings

    @staticmethod
    def _server_defaults(protocol: str, server: ServerTemplate, email: str,
                         port: Any, security: Optional[str]) -> Dict[str, Any]:
        return {
            f"{protocol}_host": expand_placeholders(server.host or "", email),
            f"{protocol}_port": port,
            f"{protocol}_username": username_with_format(email, server.username_format),
            f"{protocol}_security": security,
            f"{protocol}_allow_insecure_ssl": bool(server.allow_insecure_ssl),
        }

    def expand(self, account: Account) -> Account:
        """Return a copy of ``account`` with its connection settings populated"""
        logger.debug(f"Resolving settings for {redact_email(account.email_address)}")
        template = self.resolve_template(account)
        populated = account.clone()
        populated.settings = self.synthesize_settings(template, account)
        logger.debug(
            "Synthesized connection settings",
            extra={"extra_fields": {"source": template.source, "settings": populated.settings}},
        )
        return populated


def expand_account_with_common_settings(account: Account,
                                        resolver: AccountSettingsResolver) -> Account:
    """
    Populate an account's connection settings from the best available source.

    Args:
        account: Account with at least an email address
        resolver: Configured resolver (tables, MX lookup, autoconfig fetcher)

    Returns:
        A new Account; settings already present on ``account`` are kept
    """
    return resolver.expand(account)
