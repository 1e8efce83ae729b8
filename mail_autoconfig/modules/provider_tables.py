"""
Static Provider Tables
Structured (regex keyed) and preset (domain / provider keyed) lookup tables

The structured table matches the email domain or the domain's MX hosts against
regular expressions, which is how a custom domain hosted by a big provider is
recognized. The preset table is keyed by domain or by provider name ("yahoo")
and may alias one entry to another.
"""

import json
import logging
import re
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Pattern, Sequence, Tuple

from .account import SECURITY_NONE, SECURITY_SSL, SECURITY_STARTTLS
from .provider_template import (
    SOURCE_FALLBACK,
    SOURCE_PRESET,
    SOURCE_STRUCTURED,
    USERNAME_FORMAT_EMAIL,
    ProviderTemplate,
    ServerTemplate,
)

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parent.parent / "data"
DEFAULT_STRUCTURED_FILE = DATA_DIR / "structured_providers.json"
DEFAULT_PRESET_FILE = DATA_DIR / "preset_providers.json"


class ProviderTableError(ValueError):
    """Raised when a provider table file cannot be loaded"""


def _compile_patterns(name: str, key: str, patterns: Sequence[str]) -> Tuple[Pattern, ...]:
    compiled = []
    for pattern in patterns or ():
        try:
            compiled.append(re.compile(pattern))
        except re.error as e:
            raise ProviderTableError(
                f"Provider '{name}' has an invalid {key} pattern {pattern!r}: {e}"
            )
    return tuple(compiled)


def _security_from_flags(server: Mapping[str, Any]) -> str:
    if server.get("starttls"):
        return SECURITY_STARTTLS
    if server.get("ssl") or server.get("tls"):
        return SECURITY_SSL
    return SECURITY_NONE


class StructuredProvider:
    """One entry of the structured table with its patterns compiled"""

    def __init__(self, name: str, entry: Mapping[str, Any]):
        self.name = name
        self.entry = entry
        self.domain_patterns = _compile_patterns(name, "domain-match", entry.get("domain-match"))
        self.mx_patterns = _compile_patterns(name, "mx-match", entry.get("mx-match"))

    def matches(self, domain: str, mx_records: Sequence[str]) -> bool:
        """True when a domain pattern fully matches the domain or an MX pattern fully matches any MX host"""
        if any(p.fullmatch(domain) for p in self.domain_patterns):
            return True
        return any(p.fullmatch(record) for p in self.mx_patterns for record in mx_records)

    def to_template(self) -> ProviderTemplate:
        servers = self.entry.get("servers") or {}
        imap = (servers.get("imap") or [{}])[0]
        smtp = (servers.get("smtp") or [{}])[0]
        return ProviderTemplate(
            source=SOURCE_STRUCTURED,
            imap=ServerTemplate(
                host=imap.get("hostname") or "",
                port=imap.get("port"),
                security=_security_from_flags(imap),
                username_format=USERNAME_FORMAT_EMAIL,
            ),
            smtp=ServerTemplate(
                host=smtp.get("hostname") or "",
                port=smtp.get("port"),
                security=_security_from_flags(smtp),
                username_format=USERNAME_FORMAT_EMAIL,
            ),
            container_folder="",
            raw=dict(self.entry),
        )


class ProviderTables:
    """
    Immutable, process-lifetime provider data.

    Build one with ``ProviderTables.load()`` for the bundled (or configured)
    files, or pass dictionaries directly for fixture tables in tests.
    """

    def __init__(self, structured: Mapping[str, Any], presets: Mapping[str, Any]):
        for key, value in list(structured.items()) + list(presets.items()):
            if not isinstance(value, Mapping):
                raise ProviderTableError(f"Provider entry '{key}' must be an object")

        self.structured: Tuple[StructuredProvider, ...] = tuple(
            StructuredProvider(name, entry) for name, entry in structured.items()
        )
        self.presets: Mapping[str, Any] = MappingProxyType(
            {key: MappingProxyType(dict(value)) for key, value in presets.items()}
        )

    @classmethod
    def load(cls, structured_file: Optional[str] = None,
             preset_file: Optional[str] = None) -> "ProviderTables":
        """
        Load both tables from JSON files.

        Args:
            structured_file: Path overriding the bundled structured table
            preset_file: Path overriding the bundled preset table

        Raises:
            ProviderTableError: If a file is missing, unparsable or malformed
        """
        structured = cls._read_json(Path(structured_file or DEFAULT_STRUCTURED_FILE))
        presets = cls._read_json(Path(preset_file or DEFAULT_PRESET_FILE))
        tables = cls(structured, presets)
        logger.debug(
            f"Loaded {len(tables.structured)} structured providers and "
            f"{len(tables.presets)} presets"
        )
        return tables

    @staticmethod
    def _read_json(path: Path) -> Dict[str, Any]:
        try:
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ProviderTableError(f"Could not read provider table {path}: {e}")
        if not isinstance(data, dict):
            raise ProviderTableError(f"Provider table {path} must be a JSON object")
        return data

    def match_structured(self, domain: str, mx_records: Sequence[str]) -> Optional[ProviderTemplate]:
        """Return the first structured provider matching the domain or its MX hosts"""
        for provider in self.structured:
            if provider.matches(domain, mx_records):
                logger.debug(f"Structured provider '{provider.name}' matched {domain}")
                return provider.to_template()
        return None

    def match_preset(self, domain: str, provider_hint: Optional[str]) -> Optional[ProviderTemplate]:
        """
        Look up a preset by domain, then by provider hint.

        An ``alias`` is followed exactly one level; the aliased entry's own
        ``alias`` key, if any, is ignored.
        """
        key = domain if domain in self.presets else provider_hint
        entry = self.presets.get(key) if key else None
        if entry is None:
            return None

        alias = entry.get("alias")
        if alias:
            target = self.presets.get(alias)
            if target is None:
                logger.warning(f"Preset '{key}' aliases unknown preset '{alias}'")
                return None
            entry = target

        return self._preset_to_template(entry, SOURCE_PRESET)

    @staticmethod
    def fallback_template(domain: str) -> ProviderTemplate:
        """Generic guess for domains no table knows about"""
        return ProviderTables._preset_to_template({
            "imap_host": f"imap.{domain}",
            "imap_user_format": USERNAME_FORMAT_EMAIL,
            "smtp_host": f"smtp.{domain}",
            "smtp_user_format": USERNAME_FORMAT_EMAIL,
            "container_folder": "",
        }, SOURCE_FALLBACK)

    @staticmethod
    def _preset_to_template(entry: Mapping[str, Any], source: str) -> ProviderTemplate:
        return ProviderTemplate(
            source=source,
            imap=ServerTemplate(
                host=entry.get("imap_host") or "",
                port=entry.get("imap_port"),
                security=entry.get("imap_security"),
                username_format=entry.get("imap_user_format"),
                allow_insecure_ssl=bool(entry.get("imap_allow_insecure_ssl", False)),
            ),
            smtp=ServerTemplate(
                host=entry.get("smtp_host") or "",
                port=entry.get("smtp_port"),
                security=entry.get("smtp_security"),
                username_format=entry.get("smtp_user_format"),
                allow_insecure_ssl=bool(entry.get("smtp_allow_insecure_ssl", False)),
            ),
            container_folder=entry.get("container_folder"),
            infer_port_security=True,
            raw=dict(entry),
        )
